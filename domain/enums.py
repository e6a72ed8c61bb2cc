# domain/enums.py
from __future__ import annotations

from enum import Enum


class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    REGISTRATION_OPEN = "registration_open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipantStatus(str, Enum):
    REGISTERED = "registered"
    WITHDRAWN = "withdrawn"
    WINNER = "winner"


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# statuses a result may still be recorded against
OPEN_MATCH_STATUSES = (MatchStatus.SCHEDULED.value, MatchStatus.IN_PROGRESS.value)
