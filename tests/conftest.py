"""
Shared pytest fixtures for the bracket engine tests.

Running tests:
    pytest tests/
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Collection, Mapping, Optional

import pytest

from domain.models import Match
from repositories.memory_repo import InMemoryBracketRepo
from services.advancement_engine import AdvancementEngine
from services.bracket_service import BracketService
from services.lifecycle_service import StoreTournamentLifecycle


class CountingRepo(InMemoryBracketRepo):
    """In-memory store that remembers how often each (match, field) was written."""

    def __init__(self) -> None:
        super().__init__()
        self.field_writes: Counter = Counter()

    async def update_match(
        self,
        match_id: int,
        patch: Mapping[str, Any],
        *,
        expected_status: Collection[str] | None = None,
    ) -> Optional[Match]:
        updated = await super().update_match(match_id, patch, expected_status=expected_status)
        if updated is not None:
            for field in patch:
                self.field_writes[(match_id, field)] += 1
        return updated


class RecordingLifecycle(StoreTournamentLifecycle):
    def __init__(self, store) -> None:
        super().__init__(store)
        self.calls: list[tuple[int, int]] = []

    async def on_tournament_complete(self, tournament_id: int, champion_id: int) -> None:
        self.calls.append((tournament_id, champion_id))
        await super().on_tournament_complete(tournament_id, champion_id)


@pytest.fixture
def store() -> CountingRepo:
    return CountingRepo()


@pytest.fixture
def lifecycle(store) -> RecordingLifecycle:
    return RecordingLifecycle(store)


@pytest.fixture
def engine(store, lifecycle) -> AdvancementEngine:
    return AdvancementEngine(store, lifecycle)


@pytest.fixture
def service(store, engine) -> BracketService:
    return BracketService(store=store, engine=engine)


USER_BASE = 100


async def seed_tournament(store: InMemoryBracketRepo, players: int, *, max_participants: int = 64) -> int:
    """Creates a tournament with user ids USER_BASE .. USER_BASE + players - 1."""
    tournament_id = await store.create_tournament(name=f"cup-{players}", max_participants=max_participants)
    for i in range(players):
        await store.register_participant(tournament_id=tournament_id, user_id=USER_BASE + i, display_name=f"P{i + 1}")
    return tournament_id


async def play_out(service: BracketService, tournament_id: int) -> int:
    """
    Plays every ready match until none are left; the higher user id always wins 2-1.
    Returns the number of results recorded.
    """
    recorded = 0
    while True:
        ready = await service.get_next_matches(tournament_id=tournament_id)
        if not ready:
            return recorded
        for m in ready:
            p1_wins = m.player1_id > m.player2_id
            await service.record_result(
                match_id=m.match_id,
                winner_id=m.player1_id if p1_wins else m.player2_id,
                score_player1=2 if p1_wins else 1,
                score_player2=1 if p1_wins else 2,
            )
            recorded += 1
