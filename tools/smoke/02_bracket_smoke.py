from __future__ import annotations

import os, sys
from uuid import uuid4

HERE = os.path.dirname(__file__)
ROOT = os.path.abspath(os.path.join(HERE, "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import asyncio
from config import load_config
from db.pool import DbPool
from domain.errors import AlreadyCompletedError, BracketInProgressError
from repositories.bracket_repo import BracketRepo
from services import bracket_topology as topo
from services.advancement_engine import AdvancementEngine
from services.bracket_service import BracketService
from services.lifecycle_service import StoreTournamentLifecycle

async def main() -> None:
    cfg = load_config()

    run_id = os.getenv("SMOKE_RUN_ID") or f"smk_{uuid4().hex[:10]}"
    players = int(os.getenv("SMOKE_PLAYERS") or "6")

    db = DbPool()
    await db.start(cfg.mysql)

    repo = BracketRepo(db)
    engine = AdvancementEngine(repo, StoreTournamentLifecycle(repo))
    brackets = BracketService(store=repo, engine=engine)

    tournament_id = await repo.create_tournament(name=f"SMOKE_{run_id}", max_participants=players)
    for i in range(players):
        await repo.register_participant(
            tournament_id=tournament_id,
            user_id=930000000 + i,
            display_name=f"SMOKE_P{i + 1}_{run_id}",
        )

    matches = await brackets.generate_bracket(tournament_id=tournament_id, seed=42)
    assert len(matches) == topo.total_match_count(players), len(matches)

    # Reset + regenerate while nothing has been played
    await brackets.reset_bracket(tournament_id=tournament_id)
    await brackets.generate_bracket(tournament_id=tournament_id, seed=7)

    # Play it out: higher user id wins every match
    while True:
        ready = await brackets.get_next_matches(tournament_id=tournament_id)
        if not ready:
            break
        for m in ready:
            p1_wins = m.player1_id > m.player2_id
            await brackets.record_result(
                match_id=m.match_id,
                winner_id=m.player1_id if p1_wins else m.player2_id,
                score_player1=3 if p1_wins else 1,
                score_player2=1 if p1_wins else 3,
            )
            try:
                await brackets.record_result(
                    match_id=m.match_id,
                    winner_id=m.player1_id if p1_wins else m.player2_id,
                    score_player1=3 if p1_wins else 1,
                    score_player2=1 if p1_wins else 3,
                )
                raise AssertionError("second result on the same match was accepted")
            except AlreadyCompletedError:
                pass

    assert await brackets.check_tournament_completion(tournament_id=tournament_id)
    champion = await brackets.get_champion(tournament_id=tournament_id)
    assert champion == 930000000 + players - 1, champion

    tournament = await repo.get_tournament(tournament_id)
    assert tournament is not None and tournament.status == "completed"

    try:
        await brackets.reset_bracket(tournament_id=tournament_id)
        raise AssertionError("reset of a completed tournament was accepted")
    except BracketInProgressError:
        pass

    await db.close()
    print(f"OK: bracket smoke passed. run_id={run_id} tournament_id={tournament_id} champion={champion}")

if __name__ == "__main__":
    asyncio.run(main())
