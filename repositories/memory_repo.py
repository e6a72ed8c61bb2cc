# repositories/memory_repo.py
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import replace
from itertools import count
from typing import Any, AsyncIterator, Collection, Mapping, Optional, Sequence

from domain.enums import ParticipantStatus, TournamentStatus
from domain.errors import NotFoundError
from domain.models import Match, Participant, Tournament

_in_tx: ContextVar[bool] = ContextVar("memory_repo_in_tx", default=False)


class InMemoryBracketRepo:
    """
    Process-local BracketStore. Used by tests and for running the engine
    without a database.

    transaction() holds one asyncio.Lock for its whole body, so concurrent
    result submissions are serialised, and restores a snapshot on error.
    Records are frozen dataclasses, so a shallow copy of each table is a
    full snapshot.
    """

    def __init__(self) -> None:
        self._tournaments: dict[int, Tournament] = {}
        self._participants: dict[int, Participant] = {}
        self._matches: dict[int, Match] = {}
        self._tournament_ids = count(1)
        self._participant_ids = count(1)
        self._match_ids = count(1)
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if _in_tx.get():
            yield
            return

        async with self._lock:
            snapshot = (dict(self._tournaments), dict(self._participants), dict(self._matches))
            token = _in_tx.set(True)
            try:
                yield
            except BaseException:
                self._tournaments, self._participants, self._matches = snapshot
                raise
            finally:
                _in_tx.reset(token)

    # -------------------------
    # Seeding helpers (registration lives outside the core)
    # -------------------------

    async def create_tournament(
        self,
        *,
        name: str,
        max_participants: int,
        status: str = TournamentStatus.REGISTRATION_OPEN.value,
    ) -> int:
        tournament_id = next(self._tournament_ids)
        self._tournaments[tournament_id] = Tournament(
            tournament_id=tournament_id,
            name=name,
            max_participants=max_participants,
            status=status,
        )
        return tournament_id

    async def register_participant(
        self,
        *,
        tournament_id: int,
        user_id: int,
        display_name: str | None = None,
    ) -> int:
        if tournament_id not in self._tournaments:
            raise NotFoundError(f"Tournament not found: {tournament_id}")
        participant_id = next(self._participant_ids)
        self._participants[participant_id] = Participant(
            participant_id=participant_id,
            tournament_id=tournament_id,
            user_id=user_id,
            display_name=display_name,
        )
        return participant_id

    # -------------------------
    # BracketStore
    # -------------------------

    async def get_tournament(self, tournament_id: int, *, for_update: bool = False) -> Optional[Tournament]:
        # the transaction lock already serialises writers
        return self._tournaments.get(tournament_id)

    async def list_participants(self, tournament_id: int) -> list[Participant]:
        return [
            p
            for p in sorted(self._participants.values(), key=lambda p: p.participant_id)
            if p.tournament_id == tournament_id and p.status == ParticipantStatus.REGISTERED.value
        ]

    async def get_match(self, match_id: int) -> Optional[Match]:
        return self._matches.get(match_id)

    async def find_match(self, tournament_id: int, round_no: int, bracket_position: int) -> Optional[Match]:
        for m in self._matches.values():
            if m.tournament_id == tournament_id and m.round_no == round_no and m.bracket_position == bracket_position:
                return m
        return None

    async def list_matches(self, tournament_id: int, *, for_update: bool = False) -> list[Match]:
        ms = [m for m in self._matches.values() if m.tournament_id == tournament_id]
        ms.sort(key=lambda m: (m.round_no, m.bracket_position))
        return ms

    async def save_matches(self, matches: Sequence[Match]) -> list[Match]:
        saved: list[Match] = []
        for m in matches:
            saved.append(m.with_patch({"match_id": next(self._match_ids)}))
        for m in saved:
            self._matches[m.match_id] = m
        return saved

    async def update_match(
        self,
        match_id: int,
        patch: Mapping[str, Any],
        *,
        expected_status: Collection[str] | None = None,
    ) -> Optional[Match]:
        current = self._matches.get(match_id)
        if current is None:
            return None
        if expected_status is not None and current.status not in expected_status:
            return None
        updated = current.with_patch(patch)
        self._matches[match_id] = updated
        return updated

    async def delete_matches(self, tournament_id: int) -> int:
        doomed = [mid for mid, m in self._matches.items() if m.tournament_id == tournament_id]
        for mid in doomed:
            del self._matches[mid]
        return len(doomed)

    async def set_tournament_bracket_flag(self, tournament_id: int, generated: bool) -> None:
        self._patch_tournament(tournament_id, bracket_generated=bool(generated))

    async def set_tournament_status(self, tournament_id: int, status: str) -> None:
        self._patch_tournament(tournament_id, status=status)

    async def set_tournament_champion(self, tournament_id: int, champion_id: Optional[int]) -> None:
        self._patch_tournament(tournament_id, champion_id=champion_id)

    async def set_participant_status(self, tournament_id: int, user_id: int, status: str) -> None:
        for pid, p in self._participants.items():
            if p.tournament_id == tournament_id and p.user_id == user_id:
                self._participants[pid] = replace(p, status=status)

    def _patch_tournament(self, tournament_id: int, **changes: Any) -> None:
        t = self._tournaments.get(tournament_id)
        if t is None:
            raise NotFoundError(f"Tournament not found: {tournament_id}")
        self._tournaments[tournament_id] = replace(t, **changes)
