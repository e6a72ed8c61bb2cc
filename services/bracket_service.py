# services/bracket_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from domain.enums import MatchStatus, ParticipantStatus, TournamentStatus
from domain.errors import (
    BracketAlreadyExistsError,
    BracketInProgressError,
    InsufficientParticipantsError,
    InvalidArgumentError,
    NotFoundError,
)
from domain.models import Match, Participant, Tournament
from repositories.store import BracketStore
from services.advancement_engine import AdvancementEngine
from services.match_factory import MatchFactory

log = logging.getLogger(__name__)


class BracketService:
    """
    Responsible for:
      - Creating the full bracket for a tournament (one-time, randomized)
      - Recording results (delegated to AdvancementEngine)
      - Resetting a bracket that has not progressed past round 1

    Notes:
      - All bracket state lives in match records in the store.
      - BYEs are matches with player2_id = NULL, created completed.
      - Reset policy: allowed while only round-1 results exist. Any recorded
        result in round 2+ (or a completed tournament) blocks it.
    """

    def __init__(
        self,
        *,
        store: BracketStore,
        engine: AdvancementEngine,
        factory: MatchFactory | None = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._factory = factory or MatchFactory()

    # -------------------------
    # Public API
    # -------------------------

    async def generate_bracket(
        self,
        *,
        tournament_id: int,
        participants: Sequence[Participant] | None = None,
        seed: int | None = None,
        now: datetime | None = None,
    ) -> list[Match]:
        """
        Build and persist every match of the bracket.
        Requires:
          - tournament exists and has no bracket yet
          - at least 2 distinct participants, no more than max_participants
        When participants is None the registered participants are loaded from the store.
        """
        async with self._store.transaction():
            tournament = await self._require_tournament(tournament_id, for_update=True)
            if tournament.bracket_generated:
                raise BracketAlreadyExistsError(f"Bracket already generated for tournament {tournament_id}.")
            if tournament.status in (TournamentStatus.COMPLETED.value, TournamentStatus.CANCELLED.value):
                raise InvalidArgumentError(f"Tournament {tournament_id} is {tournament.status}.")

            if participants is None:
                participants = await self._store.list_participants(tournament_id)
            self._check_participants(tournament, participants)

            records = self._factory.build(
                tournament_id=tournament_id,
                participants=participants,
                seed=seed,
                now=now,
            )
            saved = await self._store.save_matches(records)
            await self._store.set_tournament_bracket_flag(tournament_id, True)
            await self._store.set_tournament_status(tournament_id, TournamentStatus.IN_PROGRESS.value)

        log.info(
            "Bracket generated: tournament=%s participants=%d matches=%d byes=%d",
            tournament_id,
            len(participants),
            len(saved),
            sum(1 for m in saved if m.is_bye),
        )
        return saved

    async def record_result(
        self,
        *,
        match_id: int,
        winner_id: int,
        score_player1: int,
        score_player2: int,
    ) -> Match:
        return await self._engine.record_result(
            match_id=match_id,
            winner_id=winner_id,
            score_player1=score_player1,
            score_player2=score_player2,
        )

    async def start_match(self, *, match_id: int) -> Match:
        return await self._engine.start_match(match_id=match_id)

    async def reset_bracket(self, *, tournament_id: int) -> int:
        """
        Deletes all matches and reopens registration. Returns deleted match count.
        """
        async with self._store.transaction():
            tournament = await self._require_tournament(tournament_id, for_update=True)
            if tournament.status == TournamentStatus.COMPLETED.value:
                raise BracketInProgressError(f"Tournament {tournament_id} is already completed.")
            if tournament.status == TournamentStatus.CANCELLED.value:
                raise InvalidArgumentError(f"Tournament {tournament_id} is cancelled.")

            matches = await self._store.list_matches(tournament_id, for_update=True)
            progressed = [m for m in matches if m.round_no > 1 and m.has_result]
            if progressed:
                raise BracketInProgressError(
                    f"Tournament {tournament_id} has results beyond round 1 "
                    f"({', '.join(m.code for m in progressed)}); refusing to reset."
                )

            deleted = await self._store.delete_matches(tournament_id)
            await self._store.set_tournament_bracket_flag(tournament_id, False)
            await self._store.set_tournament_status(tournament_id, TournamentStatus.REGISTRATION_OPEN.value)

        log.info("Bracket reset: tournament=%s deleted_matches=%d", tournament_id, deleted)
        return deleted

    async def get_bracket_matches(self, *, tournament_id: int) -> list[Match]:
        return await self._store.list_matches(tournament_id)

    async def get_next_matches(self, *, tournament_id: int) -> list[Match]:
        """Scheduled matches whose two players are known, in play order."""
        matches = await self._store.list_matches(tournament_id)
        return [m for m in matches if m.status == MatchStatus.SCHEDULED.value and m.is_ready]

    async def check_tournament_completion(self, *, tournament_id: int) -> bool:
        final = await self._final_match(tournament_id)
        return final is not None and final.is_completed and final.winner_id is not None

    async def get_champion(self, *, tournament_id: int) -> Optional[int]:
        final = await self._final_match(tournament_id)
        if final is None or not final.is_completed:
            return None
        return final.winner_id

    # -------------------------
    # Internals
    # -------------------------

    async def _require_tournament(self, tournament_id: int, *, for_update: bool = False) -> Tournament:
        tournament = await self._store.get_tournament(tournament_id, for_update=for_update)
        if tournament is None:
            raise NotFoundError(f"Tournament not found: {tournament_id}")
        return tournament

    async def _final_match(self, tournament_id: int) -> Optional[Match]:
        matches = await self._store.list_matches(tournament_id)
        if not matches:
            return None
        return max(matches, key=lambda m: (m.round_no, -m.bracket_position))

    def _check_participants(self, tournament: Tournament, participants: Sequence[Participant]) -> None:
        if len(participants) < 2:
            raise InsufficientParticipantsError(
                f"Need at least 2 participants to generate bracket, got {len(participants)}."
            )
        if len(participants) > tournament.max_participants:
            raise InvalidArgumentError(
                f"{len(participants)} participants exceed max_participants={tournament.max_participants}."
            )
        user_ids = [p.user_id for p in participants]
        if len(set(user_ids)) != len(user_ids):
            raise InvalidArgumentError("Participant list contains the same user more than once.")
        strangers = [p.user_id for p in participants if p.tournament_id != tournament.tournament_id]
        if strangers:
            raise InvalidArgumentError(f"Participants not registered for this tournament: {strangers}")
        inactive = [p.user_id for p in participants if p.status != ParticipantStatus.REGISTERED.value]
        if inactive:
            raise InvalidArgumentError(f"Participants no longer registered (withdrawn or finished): {inactive}")
