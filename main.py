# main.py
from __future__ import annotations

import argparse
import asyncio
import logging
import random
from dataclasses import replace
from datetime import timedelta
from typing import Optional, Sequence

from config import AppConfig, load_config
from db.pool import DbPool
from domain.errors import BracketServiceError
from domain.models import Match
from repositories.bracket_repo import BracketRepo
from repositories.memory_repo import InMemoryBracketRepo
from repositories.store import BracketStore
from services import bracket_topology as topo
from services.advancement_engine import AdvancementEngine
from services.bracket_service import BracketService
from services.lifecycle_service import StoreTournamentLifecycle
from services.match_factory import MatchFactory


class BracketApp:
    """
    Composition root: store -> lifecycle -> engine -> service.
    """

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg
        self.db: Optional[DbPool] = None
        self.store: Optional[BracketStore] = None
        self.brackets: Optional[BracketService] = None

    async def start(self) -> None:
        logging.info("Starting bracket app (store=%s)...", self.cfg.store_backend)

        # --- Store ---
        if self.cfg.store_backend == "mysql":
            self.db = DbPool()
            await self.db.start(self.cfg.mysql)
            self.store = BracketRepo(self.db)
        else:
            self.store = InMemoryBracketRepo()

        # --- Services ---
        lifecycle = StoreTournamentLifecycle(self.store)
        engine = AdvancementEngine(self.store, lifecycle)
        factory = MatchFactory(
            match_spacing=timedelta(minutes=self.cfg.scheduling.match_spacing_minutes),
            round_spacing=timedelta(hours=self.cfg.scheduling.round_spacing_hours),
        )
        self.brackets = BracketService(store=self.store, engine=engine, factory=factory)

        logging.info("Bracket app ready.")

    async def close(self) -> None:
        if self.db:
            await self.db.close()
            self.db = None


def _format_match(m: Match) -> str:
    p1 = m.player1_id if m.player1_id is not None else "TBD"
    p2 = m.player2_id if m.player2_id is not None else ("BYE" if m.is_bye else "TBD")
    if m.is_empty_slot:
        return f"#{m.match_id} {m.code}  (empty)"
    line = f"#{m.match_id} {m.code}  {p1} vs {p2}  [{m.status}]"
    if m.has_result:
        line += f"  {m.score_player1}-{m.score_player2}"
    if m.winner_id is not None:
        line += f"  winner={m.winner_id}"
    return line


def _print_bracket(matches: Sequence[Match]) -> None:
    if not matches:
        print("(no matches)")
        return
    total_rounds = max(m.round_no for m in matches)
    current_round = 0
    for m in matches:
        if m.round_no != current_round:
            current_round = m.round_no
            print(f"-- {topo.round_name(current_round, total_rounds)} --")
        print("  " + _format_match(m))


async def _demo(app: BracketApp, players: int, seed: int | None) -> None:
    """Plays a whole bracket in memory with random scores."""
    store = app.store
    if not isinstance(store, InMemoryBracketRepo):
        raise RuntimeError("demo needs the in-memory store (BRACKET_STORE=memory).")
    tournament_id = await store.create_tournament(name="demo", max_participants=players)
    for i in range(players):
        await store.register_participant(tournament_id=tournament_id, user_id=1000 + i, display_name=f"Player {i + 1}")

    await app.brackets.generate_bracket(tournament_id=tournament_id, seed=seed)
    rng = random.Random(seed)
    while True:
        pending = await app.brackets.get_next_matches(tournament_id=tournament_id)
        if not pending:
            break
        for m in pending:
            a, b = rng.sample(range(0, 10), 2)
            winner = m.player1_id if a > b else m.player2_id
            await app.brackets.record_result(match_id=m.match_id, winner_id=winner, score_player1=a, score_player2=b)

    _print_bracket(await app.brackets.get_bracket_matches(tournament_id=tournament_id))
    print(f"Champion: {await app.brackets.get_champion(tournament_id=tournament_id)}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="brackets", description="Single-elimination bracket admin.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("generate", help="Generate the bracket from registered participants.")
    p.add_argument("tournament_id", type=int)
    p.add_argument("--seed", type=int, default=None)

    p = sub.add_parser("start", help="Mark a match in progress.")
    p.add_argument("match_id", type=int)

    p = sub.add_parser("report", help="Record a match result.")
    p.add_argument("match_id", type=int)
    p.add_argument("winner_id", type=int)
    p.add_argument("score_player1", type=int)
    p.add_argument("score_player2", type=int)

    p = sub.add_parser("reset", help="Discard a bracket that has not progressed.")
    p.add_argument("tournament_id", type=int)

    p = sub.add_parser("next", help="List playable matches.")
    p.add_argument("tournament_id", type=int)

    p = sub.add_parser("show", help="Print the whole bracket.")
    p.add_argument("tournament_id", type=int)

    p = sub.add_parser("demo", help="Play a random bracket in memory.")
    p.add_argument("--players", type=int, default=8)
    p.add_argument("--seed", type=int, default=None)

    return parser


async def _run(args: argparse.Namespace, cfg: AppConfig) -> int:
    app = BracketApp(cfg)
    await app.start()
    try:
        svc = app.brackets
        if args.command == "generate":
            matches = await svc.generate_bracket(tournament_id=args.tournament_id, seed=args.seed)
            _print_bracket(matches)
        elif args.command == "start":
            print(_format_match(await svc.start_match(match_id=args.match_id)))
        elif args.command == "report":
            m = await svc.record_result(
                match_id=args.match_id,
                winner_id=args.winner_id,
                score_player1=args.score_player1,
                score_player2=args.score_player2,
            )
            print(_format_match(m))
        elif args.command == "reset":
            deleted = await svc.reset_bracket(tournament_id=args.tournament_id)
            print(f"Deleted {deleted} matches.")
        elif args.command == "next":
            for m in await svc.get_next_matches(tournament_id=args.tournament_id):
                print(_format_match(m))
        elif args.command == "show":
            _print_bracket(await svc.get_bracket_matches(tournament_id=args.tournament_id))
        elif args.command == "demo":
            await _demo(app, args.players, args.seed)
    except BracketServiceError as e:
        logging.error("%s: %s", type(e).__name__, e)
        return 1
    finally:
        await app.close()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    cfg = load_config()
    if args.command == "demo" and cfg.store_backend != "memory":
        cfg = replace(cfg, store_backend="memory")

    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args, cfg))


if __name__ == "__main__":
    raise SystemExit(main())
