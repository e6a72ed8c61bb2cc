# services/lifecycle_service.py
from __future__ import annotations

import logging
from typing import Protocol

from domain.enums import ParticipantStatus, TournamentStatus
from repositories.store import BracketStore

log = logging.getLogger(__name__)


class TournamentLifecycle(Protocol):
    """
    Receives the terminal signal from the bracket engine.
    Registration, cancellation and refunds live behind this seam too,
    but the engine only ever calls on_tournament_complete.
    """

    async def on_tournament_complete(self, tournament_id: int, champion_id: int) -> None: ...


class StoreTournamentLifecycle:
    """
    Default lifecycle: closes the tournament in the same store the bracket uses.
      - tournament.status -> completed, champion recorded
      - champion's participant row -> winner
    """

    def __init__(self, store: BracketStore) -> None:
        self._store = store

    async def on_tournament_complete(self, tournament_id: int, champion_id: int) -> None:
        await self._store.set_tournament_status(tournament_id, TournamentStatus.COMPLETED.value)
        await self._store.set_tournament_champion(tournament_id, champion_id)
        await self._store.set_participant_status(tournament_id, champion_id, ParticipantStatus.WINNER.value)
        log.info("Tournament %s completed; champion=%s", tournament_id, champion_id)
