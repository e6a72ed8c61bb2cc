# repositories/store.py
from __future__ import annotations

from typing import Any, AsyncContextManager, Collection, Mapping, Optional, Protocol, Sequence

from domain.models import Match, Participant, Tournament


class BracketStore(Protocol):
    """
    Persistence contract consumed by the bracket services.

    Implementations own storage; the services only read and write through
    these calls. Any backend (MySQL, in-memory) can satisfy it.

    Contract notes:
      - save_matches is all-or-nothing and returns the records with match_id set.
      - update_match with expected_status only applies the patch while the
        row's current status is one of expected_status, and returns None
        otherwise. This is what guarantees at-most-once advancement.
      - transaction() groups several calls; an exception inside it leaves
        the store as it was before entering.
      - for_update=True reads lock the returned rows until the surrounding
        transaction() ends, so a check-then-write cannot race a concurrent writer.
      - Underlying errors surface as StoreFailureError.
    """

    def transaction(self) -> AsyncContextManager[None]: ...

    async def get_tournament(self, tournament_id: int, *, for_update: bool = False) -> Optional[Tournament]: ...

    async def list_participants(self, tournament_id: int) -> list[Participant]: ...

    async def get_match(self, match_id: int) -> Optional[Match]: ...

    async def find_match(self, tournament_id: int, round_no: int, bracket_position: int) -> Optional[Match]: ...

    async def list_matches(self, tournament_id: int, *, for_update: bool = False) -> list[Match]: ...

    async def save_matches(self, matches: Sequence[Match]) -> list[Match]: ...

    async def update_match(
        self,
        match_id: int,
        patch: Mapping[str, Any],
        *,
        expected_status: Collection[str] | None = None,
    ) -> Optional[Match]: ...

    async def delete_matches(self, tournament_id: int) -> int: ...

    async def set_tournament_bracket_flag(self, tournament_id: int, generated: bool) -> None: ...

    async def set_tournament_status(self, tournament_id: int, status: str) -> None: ...

    async def set_tournament_champion(self, tournament_id: int, champion_id: Optional[int]) -> None: ...

    async def set_participant_status(self, tournament_id: int, user_id: int, status: str) -> None: ...
