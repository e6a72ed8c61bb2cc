# domain/errors.py
from __future__ import annotations


class BracketServiceError(Exception):
    pass


class InvalidArgumentError(BracketServiceError):
    pass


class InsufficientParticipantsError(InvalidArgumentError):
    pass


class ScoreWinnerMismatchError(BracketServiceError):
    pass


class AlreadyCompletedError(BracketServiceError):
    pass


class BracketInProgressError(BracketServiceError):
    pass


class BracketAlreadyExistsError(BracketServiceError):
    pass


class SlotConflictError(BracketServiceError):
    """Downstream match cannot take the winner: the slot is occupied or the match is already completed."""


class NotFoundError(BracketServiceError):
    pass


class StoreFailureError(BracketServiceError):
    """
    Wraps an underlying persistence error. The original exception is kept
    as __cause__; the core does not interpret it further.
    """
