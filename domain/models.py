# domain/models.py
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Any, Mapping, Optional

from domain.enums import MatchStatus, ParticipantStatus, TournamentStatus


def match_code(round_no: int, bracket_position: int) -> str:
    """
    Human readable match code, e.g. R1-01 for round 1, position 0.
    """
    return f"R{round_no}-{bracket_position + 1:02d}"


@dataclass(frozen=True)
class Tournament:
    tournament_id: int
    name: str
    max_participants: int
    status: str = TournamentStatus.UPCOMING.value
    bracket_generated: bool = False
    champion_id: Optional[int] = None


@dataclass(frozen=True)
class Participant:
    participant_id: int
    tournament_id: int
    user_id: int
    display_name: Optional[str] = None
    status: str = ParticipantStatus.REGISTERED.value


@dataclass(frozen=True)
class Match:
    tournament_id: int
    round_no: int
    match_number: int
    bracket_position: int
    player1_id: Optional[int] = None
    player2_id: Optional[int] = None
    winner_id: Optional[int] = None
    score_player1: Optional[int] = None
    score_player2: Optional[int] = None
    status: str = MatchStatus.SCHEDULED.value
    scheduled_time: Optional[datetime] = None
    match_id: Optional[int] = None  # assigned by the store on save

    @property
    def code(self) -> str:
        return match_code(self.round_no, self.bracket_position)

    @property
    def is_completed(self) -> bool:
        return self.status == MatchStatus.COMPLETED.value

    @property
    def has_result(self) -> bool:
        """Completed through a recorded score rather than a bye or empty slot."""
        return self.is_completed and self.score_player1 is not None and self.score_player2 is not None

    @property
    def is_empty_slot(self) -> bool:
        # no participant can ever reach this position
        return self.is_completed and self.player1_id is None and self.player2_id is None and self.winner_id is None

    @property
    def is_bye(self) -> bool:
        return (
            self.is_completed
            and self.winner_id is not None
            and not self.has_result
            and (self.player1_id is None) != (self.player2_id is None)
        )

    @property
    def is_ready(self) -> bool:
        """Both players known and no result yet."""
        return (not self.is_completed) and self.player1_id is not None and self.player2_id is not None

    def with_patch(self, patch: Mapping[str, Any]) -> "Match":
        unknown = set(patch) - MATCH_FIELDS
        if unknown:
            raise KeyError(f"Unknown match field(s): {sorted(unknown)}")
        return replace(self, **dict(patch))


MATCH_FIELDS = frozenset(f.name for f in fields(Match))
