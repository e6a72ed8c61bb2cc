# services/bracket_topology.py
"""
Pure bracket geometry. No I/O.

Positions are 0-indexed inside a round; rounds are 1-indexed.
The winner of (round r, position p) plays in (round r+1, position p // 2),
taking the player1 slot when p is even and player2 when p is odd.
"""
from __future__ import annotations

from typing import Tuple

from domain.errors import InvalidArgumentError


def _require_count(participant_count: int) -> int:
    if isinstance(participant_count, bool) or not isinstance(participant_count, int):
        raise InvalidArgumentError(f"participant_count must be an integer, got {participant_count!r}")
    if participant_count < 2:
        raise InvalidArgumentError(f"A bracket needs at least 2 participants, got {participant_count}")
    return participant_count


def bracket_size(participant_count: int) -> int:
    n = _require_count(participant_count)
    return 1 << (n - 1).bit_length()


def round_count(participant_count: int) -> int:
    return bracket_size(participant_count).bit_length() - 1


def first_round_match_count(participant_count: int) -> int:
    """Round-1 matches that hold at least one participant."""
    n = _require_count(participant_count)
    return (n + 1) // 2


def matches_in_round(participant_count: int, round_no: int) -> int:
    rounds = round_count(participant_count)
    if round_no < 1 or round_no > rounds:
        raise InvalidArgumentError(f"round_no must be within 1..{rounds}, got {round_no}")
    return bracket_size(participant_count) >> round_no


def total_match_count(participant_count: int) -> int:
    return bracket_size(participant_count) - 1


def downstream(round_no: int, bracket_position: int) -> Tuple[int, int]:
    """
    Returns (next_round, next_position) for the match fed by this one.
    """
    if round_no < 1 or bracket_position < 0:
        raise InvalidArgumentError(f"Invalid match coordinates: round={round_no} position={bracket_position}")
    return round_no + 1, bracket_position // 2


def is_upper_slot(bracket_position: int) -> bool:
    return bracket_position % 2 == 0


def sibling_position(bracket_position: int) -> int:
    """The other match feeding the same downstream match."""
    return bracket_position ^ 1


def round_name(round_no: int, total_rounds: int) -> str:
    remaining = 1 << (total_rounds - round_no + 1)
    if remaining == 2:
        return "Final"
    if remaining == 4:
        return "Semifinal"
    if remaining == 8:
        return "Quarterfinal"
    return f"Round of {remaining}"
