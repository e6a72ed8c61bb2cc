"""
Tests for recording results and moving winners through the bracket.
"""
import asyncio

import pytest

from domain.enums import MatchStatus, ParticipantStatus, TournamentStatus
from domain.errors import (
    AlreadyCompletedError,
    InvalidArgumentError,
    NotFoundError,
    ScoreWinnerMismatchError,
    SlotConflictError,
)
from services.advancement_engine import AdvancementEngine
from tests.conftest import USER_BASE, play_out, seed_tournament


async def _generate(store, service, players, seed=11):
    tournament_id = await seed_tournament(store, players)
    await service.generate_bracket(tournament_id=tournament_id, seed=seed)
    return tournament_id


async def _round(store, tournament_id, round_no):
    return [m for m in await store.list_matches(tournament_id) if m.round_no == round_no]


def _win(match, *, upper=True):
    """kwargs for a 3-1 result won by player1 (upper) or player2."""
    if upper:
        return dict(match_id=match.match_id, winner_id=match.player1_id, score_player1=3, score_player2=1)
    return dict(match_id=match.match_id, winner_id=match.player2_id, score_player1=1, score_player2=3)


@pytest.mark.asyncio
async def test_four_player_round_trip(store, service, lifecycle):
    tournament_id = await _generate(store, service, 4)
    semi_a, semi_b = await _round(store, tournament_id, 1)

    await service.record_result(**_win(semi_a, upper=True))
    await service.record_result(**_win(semi_b, upper=False))
    assert lifecycle.calls == []

    (final,) = await _round(store, tournament_id, 2)
    assert final.player1_id == semi_a.player1_id
    assert final.player2_id == semi_b.player2_id
    assert final.status == MatchStatus.SCHEDULED.value

    result = await service.record_result(**_win(final, upper=False))
    assert result.status == MatchStatus.COMPLETED.value
    assert result.winner_id == semi_b.player2_id
    assert (result.score_player1, result.score_player2) == (1, 3)

    assert lifecycle.calls == [(tournament_id, semi_b.player2_id)]
    tournament = await store.get_tournament(tournament_id)
    assert tournament.status == TournamentStatus.COMPLETED.value
    assert tournament.champion_id == semi_b.player2_id

    # no field of any match was written more than once
    assert store.field_writes
    assert max(store.field_writes.values()) == 1


@pytest.mark.asyncio
async def test_champion_participant_marked_winner(store, service):
    tournament_id = await _generate(store, service, 2)
    (final,) = await _round(store, tournament_id, 1)
    await service.record_result(**_win(final))

    remaining = {p.user_id for p in await store.list_participants(tournament_id)}
    assert final.player1_id not in remaining
    assert remaining == {final.player2_id}
    assert store._participants  # sanity: rows still exist
    statuses = {p.user_id: p.status for p in store._participants.values()}
    assert statuses[final.player1_id] == ParticipantStatus.WINNER.value


@pytest.mark.asyncio
async def test_slot_assignment_across_two_rounds(store, service):
    tournament_id = await _generate(store, service, 16)
    r1 = await _round(store, tournament_id, 1)
    assert [m.bracket_position for m in r1] == list(range(8))

    for m in r1:
        await service.record_result(**_win(m, upper=True))

    r2 = await _round(store, tournament_id, 2)
    for p, m in enumerate(r1):
        target = r2[p // 2]
        if p % 2 == 0:
            assert target.player1_id == m.player1_id
        else:
            assert target.player2_id == m.player1_id

    for m in r2:
        await service.record_result(**_win(m, upper=False))

    r3 = await _round(store, tournament_id, 3)
    for p, m in enumerate(r2):
        target = r3[p // 2]
        slot = target.player1_id if p % 2 == 0 else target.player2_id
        assert slot == m.player2_id


@pytest.mark.asyncio
async def test_second_result_is_rejected(store, service):
    tournament_id = await _generate(store, service, 4)
    first, _ = await _round(store, tournament_id, 1)
    await service.record_result(**_win(first))
    (final_before,) = await _round(store, tournament_id, 2)

    with pytest.raises(AlreadyCompletedError):
        await service.record_result(**_win(first))
    with pytest.raises(AlreadyCompletedError):
        await service.record_result(**_win(first, upper=False))

    (final_after,) = await _round(store, tournament_id, 2)
    assert final_after == final_before


@pytest.mark.asyncio
async def test_concurrent_submissions_advance_once(store, service):
    tournament_id = await _generate(store, service, 4)
    first, _ = await _round(store, tournament_id, 1)

    results = await asyncio.gather(
        service.record_result(**_win(first)),
        service.record_result(**_win(first)),
        return_exceptions=True,
    )
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1 and isinstance(errors[0], AlreadyCompletedError)

    (final,) = await _round(store, tournament_id, 2)
    assert final.player1_id == first.player1_id
    assert store.field_writes[(final.match_id, "player1_id")] == 1


@pytest.mark.asyncio
async def test_winner_must_agree_with_scores(store, service):
    tournament_id = await _generate(store, service, 4)
    match, _ = await _round(store, tournament_id, 1)

    with pytest.raises(ScoreWinnerMismatchError):
        await service.record_result(
            match_id=match.match_id, winner_id=match.player1_id, score_player1=3, score_player2=5
        )
    with pytest.raises(ScoreWinnerMismatchError):
        await service.record_result(match_id=match.match_id, winner_id=999999, score_player1=3, score_player2=1)

    unchanged = await store.get_match(match.match_id)
    assert unchanged == match


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "s1, s2",
    [(-1, 2), (2, -1), (2, 2), (True, 0), (1.5, 0), ("3", 1), (None, 1)],
)
async def test_invalid_scores(store, service, s1, s2):
    tournament_id = await _generate(store, service, 2)
    (match,) = await _round(store, tournament_id, 1)
    with pytest.raises(InvalidArgumentError):
        await service.record_result(match_id=match.match_id, winner_id=match.player1_id, score_player1=s1, score_player2=s2)
    assert (await store.get_match(match.match_id)).status == MatchStatus.SCHEDULED.value


@pytest.mark.asyncio
async def test_unknown_match(service):
    with pytest.raises(NotFoundError):
        await service.record_result(match_id=404, winner_id=1, score_player1=1, score_player2=0)


@pytest.mark.asyncio
async def test_match_waiting_for_players(store, service):
    tournament_id = await _generate(store, service, 4)
    (final,) = await _round(store, tournament_id, 2)
    with pytest.raises(InvalidArgumentError):
        await service.record_result(match_id=final.match_id, winner_id=USER_BASE, score_player1=1, score_player2=0)


@pytest.mark.asyncio
async def test_bye_cannot_be_reported(store, service):
    tournament_id = await _generate(store, service, 3)
    _, bye = await _round(store, tournament_id, 1)
    assert bye.is_bye
    with pytest.raises(AlreadyCompletedError):
        await service.record_result(match_id=bye.match_id, winner_id=bye.player1_id, score_player1=1, score_player2=0)


@pytest.mark.asyncio
async def test_walkover_through_empty_slot(store, service, lifecycle):
    tournament_id = await _generate(store, service, 6)
    r1 = await _round(store, tournament_id, 1)
    assert r1[3].is_empty_slot

    await service.record_result(**_win(r1[2], upper=False))

    r2 = await _round(store, tournament_id, 2)
    assert r2[1].is_bye
    assert r2[1].player1_id == r1[2].player2_id
    assert r2[1].winner_id == r1[2].player2_id

    (final,) = await _round(store, tournament_id, 3)
    assert final.player2_id == r1[2].player2_id
    assert final.player1_id is None
    assert lifecycle.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("players", [2, 3, 4, 5, 6, 7, 9, 12, 13, 17])
async def test_full_playthrough_single_champion(store, service, lifecycle, players):
    tournament_id = await _generate(store, service, players)
    await play_out(service, tournament_id)

    champion = USER_BASE + players - 1
    assert lifecycle.calls == [(tournament_id, champion)]
    assert await service.check_tournament_completion(tournament_id=tournament_id)
    assert await service.get_champion(tournament_id=tournament_id) == champion

    matches = await store.list_matches(tournament_id)
    assert all(m.is_completed for m in matches)
    assert max(store.field_writes.values()) == 1


@pytest.mark.asyncio
async def test_failed_completion_rolls_back(store):
    class BrokenLifecycle:
        async def on_tournament_complete(self, tournament_id, champion_id):
            raise RuntimeError("lifecycle unavailable")

    from services.bracket_service import BracketService

    engine = AdvancementEngine(store, BrokenLifecycle())
    service = BracketService(store=store, engine=engine)
    tournament_id = await _generate(store, service, 2)
    (final,) = await _round(store, tournament_id, 1)

    with pytest.raises(RuntimeError):
        await service.record_result(**_win(final))

    assert await store.get_match(final.match_id) == final
    assert (await store.get_tournament(tournament_id)).status == TournamentStatus.IN_PROGRESS.value


@pytest.mark.asyncio
async def test_occupied_downstream_slot_is_a_conflict(store, service):
    tournament_id = await _generate(store, service, 4)
    first, _ = await _round(store, tournament_id, 1)
    (final,) = await _round(store, tournament_id, 2)
    await store.update_match(final.match_id, {"player1_id": 4242})

    with pytest.raises(SlotConflictError):
        await service.record_result(**_win(first))
    assert await store.get_match(first.match_id) == first


@pytest.mark.asyncio
async def test_completed_downstream_match_is_a_conflict(store, service):
    tournament_id = await _generate(store, service, 4)
    first, _ = await _round(store, tournament_id, 1)
    (final,) = await _round(store, tournament_id, 2)
    await store.update_match(final.match_id, {"status": MatchStatus.COMPLETED.value})

    with pytest.raises(SlotConflictError):
        await service.record_result(**_win(first))
    assert await store.get_match(first.match_id) == first


class TestStartMatch:
    @pytest.mark.asyncio
    async def test_start_then_report(self, store, service):
        tournament_id = await _generate(store, service, 2)
        (match,) = await _round(store, tournament_id, 1)

        started = await service.start_match(match_id=match.match_id)
        assert started.status == MatchStatus.IN_PROGRESS.value
        # starting twice is harmless
        assert (await service.start_match(match_id=match.match_id)).status == MatchStatus.IN_PROGRESS.value

        done = await service.record_result(**_win(match))
        assert done.status == MatchStatus.COMPLETED.value

        with pytest.raises(AlreadyCompletedError):
            await service.start_match(match_id=match.match_id)

    @pytest.mark.asyncio
    async def test_cannot_start_placeholder(self, store, service):
        tournament_id = await _generate(store, service, 4)
        (final,) = await _round(store, tournament_id, 2)
        with pytest.raises(InvalidArgumentError):
            await service.start_match(match_id=final.match_id)

    @pytest.mark.asyncio
    async def test_unknown_match(self, service):
        with pytest.raises(NotFoundError):
            await service.start_match(match_id=12345)
