# services/advancement_engine.py
from __future__ import annotations

import logging

from domain.enums import OPEN_MATCH_STATUSES, MatchStatus
from domain.errors import (
    AlreadyCompletedError,
    InvalidArgumentError,
    NotFoundError,
    ScoreWinnerMismatchError,
    SlotConflictError,
)
from domain.models import Match
from repositories.store import BracketStore
from services import bracket_topology as topo
from services.lifecycle_service import TournamentLifecycle

log = logging.getLogger(__name__)


def _validate_score(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidArgumentError(f"{name} must be >= 0, got {value}")
    return value


class AdvancementEngine:
    """
    Applies one match result and pushes the winner downstream.

    Everything for one result runs inside a single store transaction:
      1) conditional update scheduled/in_progress -> completed
         (a second submission loses and gets AlreadyCompletedError)
      2) winner written into player1/player2 of the downstream match
      3) walkovers: if the downstream match's other feeder is an empty slot,
         it completes as a bye and the winner keeps moving
      4) no downstream match -> the lifecycle is told who won

    A failure anywhere leaves every touched match as it was.
    No retries here; the caller decides.
    """

    def __init__(self, store: BracketStore, lifecycle: TournamentLifecycle) -> None:
        self._store = store
        self._lifecycle = lifecycle

    async def record_result(
        self,
        *,
        match_id: int,
        winner_id: int,
        score_player1: int,
        score_player2: int,
    ) -> Match:
        s1 = _validate_score(score_player1, "score_player1")
        s2 = _validate_score(score_player2, "score_player2")
        if s1 == s2:
            raise InvalidArgumentError("Scores are tied; ties must be resolved before reporting.")

        async with self._store.transaction():
            match = await self._require_match(match_id)
            if match.is_completed:
                raise AlreadyCompletedError(f"Match {match_id} ({match.code}) is already completed.")
            if match.player1_id is None or match.player2_id is None:
                raise InvalidArgumentError(f"Match {match_id} ({match.code}) is still waiting for players.")

            expected = match.player1_id if s1 > s2 else match.player2_id
            if winner_id != expected:
                raise ScoreWinnerMismatchError(
                    f"Reported winner {winner_id} does not match scores {s1}-{s2} "
                    f"(expected {expected}) for match {match_id}."
                )

            updated = await self._store.update_match(
                match_id,
                {
                    "status": MatchStatus.COMPLETED.value,
                    "winner_id": winner_id,
                    "score_player1": s1,
                    "score_player2": s2,
                },
                expected_status=OPEN_MATCH_STATUSES,
            )
            if updated is None:
                raise AlreadyCompletedError(f"Match {match_id} was completed concurrently.")

            log.info(
                "Result recorded: tournament=%s match=%s %s winner=%s score=%d-%d",
                updated.tournament_id,
                match_id,
                updated.code,
                winner_id,
                s1,
                s2,
            )
            await self._advance(updated, winner_id)
            return updated

    async def start_match(self, *, match_id: int) -> Match:
        async with self._store.transaction():
            match = await self._require_match(match_id)
            if match.is_completed:
                raise AlreadyCompletedError(f"Match {match_id} ({match.code}) is already completed.")
            if match.status == MatchStatus.IN_PROGRESS.value:
                return match
            if not match.is_ready:
                raise InvalidArgumentError(f"Match {match_id} ({match.code}) is still waiting for players.")

            updated = await self._store.update_match(
                match_id,
                {"status": MatchStatus.IN_PROGRESS.value},
                expected_status=(MatchStatus.SCHEDULED.value,),
            )
            if updated is None:
                raise AlreadyCompletedError(f"Match {match_id} changed state concurrently.")
            return updated

    # -------------------------
    # Internals
    # -------------------------

    async def _require_match(self, match_id: int) -> Match:
        match = await self._store.get_match(match_id)
        if match is None:
            raise NotFoundError(f"Match not found: {match_id}")
        return match

    async def _advance(self, match: Match, winner_id: int) -> None:
        current = match
        while True:
            next_round, next_pos = topo.downstream(current.round_no, current.bracket_position)
            nxt = await self._store.find_match(current.tournament_id, next_round, next_pos)
            if nxt is None:
                await self._lifecycle.on_tournament_complete(current.tournament_id, winner_id)
                return

            slot = "player1_id" if topo.is_upper_slot(current.bracket_position) else "player2_id"
            if nxt.is_completed:
                raise SlotConflictError(f"Downstream match {nxt.match_id} ({nxt.code}) is already completed.")
            occupant = getattr(nxt, slot)
            if occupant is not None:
                raise SlotConflictError(
                    f"Slot {slot} of match {nxt.match_id} ({nxt.code}) already holds {occupant}."
                )

            sibling = await self._store.find_match(
                current.tournament_id, current.round_no, topo.sibling_position(current.bracket_position)
            )
            # other side can never be filled: walkover
            walkover = sibling is not None and sibling.is_empty_slot

            patch: dict[str, object] = {slot: winner_id}
            if walkover:
                patch.update(status=MatchStatus.COMPLETED.value, winner_id=winner_id)
            nxt = await self._store.update_match(nxt.match_id, patch, expected_status=OPEN_MATCH_STATUSES)
            if nxt is None:
                raise SlotConflictError(f"Downstream match {next_round}/{next_pos} changed state concurrently.")

            if not walkover:
                log.debug("Advanced %s into %s.%s", winner_id, nxt.code, slot)
                return
            log.info("Walkover: %s advances through %s", winner_id, nxt.code)
            current = nxt
