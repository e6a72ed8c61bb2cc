# services/match_factory.py
from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from domain.enums import MatchStatus
from domain.errors import InsufficientParticipantsError
from domain.models import Match, Participant
from services import bracket_topology as topo

log = logging.getLogger(__name__)


def _completed(match: Match, winner_id: Optional[int]) -> Match:
    return match.with_patch({"status": MatchStatus.COMPLETED.value, "winner_id": winner_id})


class MatchFactory:
    """
    Builds every match record of a single-elimination bracket in one pass.

    Layout:
      - Round 1 has bracket_size/2 positions. Participants are paired in
        shuffled order into the first ceil(N/2) positions; an odd one out gets
        a bye. The remaining positions are empty slots (completed, no players).
      - Later rounds are placeholders. Known winners (byes) are already written
        into their downstream slot, and a match fed by one empty slot and one
        known winner is itself a bye, so bye chains resolve here.

    The shuffle is the only randomness. Output is not reproducible unless a
    seed is given; callers persist the result immediately.
    Nothing is persisted here.
    """

    def __init__(
        self,
        *,
        match_spacing: timedelta = timedelta(hours=1),
        round_spacing: timedelta = timedelta(hours=24),
    ) -> None:
        self._match_spacing = match_spacing
        self._round_spacing = round_spacing

    def build(
        self,
        *,
        tournament_id: int,
        participants: Sequence[Participant],
        seed: int | None = None,
        now: datetime | None = None,
    ) -> list[Match]:
        if len(participants) < 2:
            raise InsufficientParticipantsError(
                f"Need at least 2 participants to generate a bracket, got {len(participants)}."
            )

        now = now or datetime.now(timezone.utc)
        rng = random.Random(seed)
        shuffled = list(participants)
        rng.shuffle(shuffled)
        user_ids = [p.user_id for p in shuffled]

        n = len(user_ids)
        rounds = topo.round_count(n)
        occupied = topo.first_round_match_count(n)
        match_number = 0

        def next_number() -> int:
            nonlocal match_number
            match_number += 1
            return match_number

        # Round 1
        current: list[Match] = []
        for i in range(topo.matches_in_round(n, 1)):
            m = Match(
                tournament_id=tournament_id,
                round_no=1,
                match_number=next_number(),
                bracket_position=i,
                scheduled_time=now + self._match_spacing * (i + 1),
            )
            if i < occupied:
                p1 = user_ids[2 * i]
                p2 = user_ids[2 * i + 1] if 2 * i + 1 < n else None
                m = m.with_patch({"player1_id": p1, "player2_id": p2})
                if p2 is None:
                    m = _completed(m, p1)
            else:
                m = _completed(m, None)
            current.append(m)

        out = list(current)

        # Rounds 2..R
        for round_no in range(2, rounds + 1):
            nxt: list[Match] = []
            for pos in range(topo.matches_in_round(n, round_no)):
                upper = current[2 * pos]
                lower = current[2 * pos + 1]
                m = Match(
                    tournament_id=tournament_id,
                    round_no=round_no,
                    match_number=next_number(),
                    bracket_position=pos,
                    player1_id=upper.winner_id,
                    player2_id=lower.winner_id,
                    scheduled_time=now + self._round_spacing * round_no + self._match_spacing * pos,
                )
                if upper.is_empty_slot and lower.is_empty_slot:
                    m = _completed(m, None)
                elif upper.is_empty_slot and lower.winner_id is not None:
                    m = _completed(m, lower.winner_id)
                elif lower.is_empty_slot and upper.winner_id is not None:
                    m = _completed(m, upper.winner_id)
                nxt.append(m)
            out.extend(nxt)
            current = nxt

        log.debug(
            "Built bracket for tournament %s: participants=%d rounds=%d matches=%d",
            tournament_id,
            n,
            rounds,
            len(out),
        )
        return out
