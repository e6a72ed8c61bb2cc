# repositories/bracket_repo.py
from __future__ import annotations

from typing import Any, Collection, Mapping, Optional, Sequence

from domain.enums import ParticipantStatus, TournamentStatus
from domain.models import Match, Participant, Tournament
from repositories.base_repo import BaseRepo

# Match fields that may be patched -> column names
_MATCH_COLUMNS: dict[str, str] = {
    "player1_id": "player1_id",
    "player2_id": "player2_id",
    "winner_id": "winner_id",
    "score_player1": "score_player1",
    "score_player2": "score_player2",
    "status": "status",
    "scheduled_time": "scheduled_time",
}


def _opt_int(v: Any) -> Optional[int]:
    return int(v) if v is not None else None


def row_to_tournament(r: Mapping[str, Any]) -> Tournament:
    return Tournament(
        tournament_id=int(r["tournament_id"]),
        name=str(r["name"]),
        max_participants=int(r["max_participants"]),
        status=str(r["status"]),
        bracket_generated=bool(r["bracket_generated"]),
        champion_id=_opt_int(r.get("champion_id")),
    )


def row_to_participant(r: Mapping[str, Any]) -> Participant:
    return Participant(
        participant_id=int(r["participant_id"]),
        tournament_id=int(r["tournament_id"]),
        user_id=int(r["user_id"]),
        display_name=r.get("display_name"),
        status=str(r["status"]),
    )


def row_to_match(r: Mapping[str, Any]) -> Match:
    return Match(
        match_id=int(r["match_id"]),
        tournament_id=int(r["tournament_id"]),
        round_no=int(r["round_no"]),
        match_number=int(r["match_number"]),
        bracket_position=int(r["bracket_position"]),
        player1_id=_opt_int(r.get("player1_id")),
        player2_id=_opt_int(r.get("player2_id")),
        winner_id=_opt_int(r.get("winner_id")),
        score_player1=_opt_int(r.get("score_player1")),
        score_player2=_opt_int(r.get("score_player2")),
        status=str(r["status"]),
        scheduled_time=r.get("scheduled_time"),
    )


class BracketRepo(BaseRepo):
    """
    MySQL BracketStore (see db/schema.sql).
    """

    # -------------------------
    # Tournaments / participants
    # -------------------------

    async def create_tournament(
        self,
        *,
        name: str,
        max_participants: int,
        status: str = TournamentStatus.REGISTRATION_OPEN.value,
    ) -> int:
        return await self.insert_returning_id(
            """
            INSERT INTO tournament (name, max_participants, status)
            VALUES (%s, %s, %s);
            """,
            (name, max_participants, status),
        )

    async def register_participant(
        self,
        *,
        tournament_id: int,
        user_id: int,
        display_name: str | None = None,
    ) -> int:
        return await self.insert_returning_id(
            """
            INSERT INTO tournament_participant (tournament_id, user_id, display_name)
            VALUES (%s, %s, %s);
            """,
            (tournament_id, user_id, display_name),
        )

    async def get_tournament(self, tournament_id: int, *, for_update: bool = False) -> Optional[Tournament]:
        sql = "SELECT * FROM tournament WHERE tournament_id=%s"
        if for_update:
            sql += " FOR UPDATE"
        row = await self.fetch_one(sql + ";", (tournament_id,))
        return row_to_tournament(row) if row else None

    async def list_participants(self, tournament_id: int) -> list[Participant]:
        rows = await self.fetch_all(
            """
            SELECT *
            FROM tournament_participant
            WHERE tournament_id=%s AND status=%s
            ORDER BY participant_id;
            """,
            (tournament_id, ParticipantStatus.REGISTERED.value),
        )
        return [row_to_participant(r) for r in rows]

    async def set_tournament_bracket_flag(self, tournament_id: int, generated: bool) -> None:
        await self.execute(
            "UPDATE tournament SET bracket_generated=%s, updated_at=NOW(6) WHERE tournament_id=%s;",
            (1 if generated else 0, tournament_id),
        )

    async def set_tournament_status(self, tournament_id: int, status: str) -> None:
        await self.execute(
            "UPDATE tournament SET status=%s, updated_at=NOW(6) WHERE tournament_id=%s;",
            (status, tournament_id),
        )

    async def set_tournament_champion(self, tournament_id: int, champion_id: Optional[int]) -> None:
        await self.execute(
            "UPDATE tournament SET champion_id=%s, updated_at=NOW(6) WHERE tournament_id=%s;",
            (champion_id, tournament_id),
        )

    async def set_participant_status(self, tournament_id: int, user_id: int, status: str) -> None:
        await self.execute(
            "UPDATE tournament_participant SET status=%s WHERE tournament_id=%s AND user_id=%s;",
            (status, tournament_id, user_id),
        )

    # -------------------------
    # Matches
    # -------------------------

    async def get_match(self, match_id: int) -> Optional[Match]:
        row = await self.fetch_one("SELECT * FROM bracket_match WHERE match_id=%s;", (match_id,))
        return row_to_match(row) if row else None

    async def find_match(self, tournament_id: int, round_no: int, bracket_position: int) -> Optional[Match]:
        row = await self.fetch_one(
            """
            SELECT *
            FROM bracket_match
            WHERE tournament_id=%s AND round_no=%s AND bracket_position=%s;
            """,
            (tournament_id, round_no, bracket_position),
        )
        return row_to_match(row) if row else None

    async def list_matches(self, tournament_id: int, *, for_update: bool = False) -> list[Match]:
        sql = """
            SELECT *
            FROM bracket_match
            WHERE tournament_id=%s
            ORDER BY round_no, bracket_position
            """
        if for_update:
            # locks every match row so no result can land between check and delete
            sql += " FOR UPDATE"
        rows = await self.fetch_all(sql + ";", (tournament_id,))
        return [row_to_match(r) for r in rows]

    async def save_matches(self, matches: Sequence[Match]) -> list[Match]:
        saved: list[Match] = []
        async with self.transaction():
            for m in matches:
                match_id = await self.insert_returning_id(
                    """
                    INSERT INTO bracket_match
                      (tournament_id, round_no, match_number, bracket_position,
                       player1_id, player2_id, winner_id, score_player1, score_player2,
                       status, scheduled_time)
                    VALUES
                      (%s, %s, %s, %s,
                       %s, %s, %s, %s, %s,
                       %s, %s);
                    """,
                    (
                        m.tournament_id,
                        m.round_no,
                        m.match_number,
                        m.bracket_position,
                        m.player1_id,
                        m.player2_id,
                        m.winner_id,
                        m.score_player1,
                        m.score_player2,
                        m.status,
                        m.scheduled_time,
                    ),
                )
                saved.append(m.with_patch({"match_id": match_id}))
        return saved

    async def update_match(
        self,
        match_id: int,
        patch: Mapping[str, Any],
        *,
        expected_status: Collection[str] | None = None,
    ) -> Optional[Match]:
        unknown = set(patch) - set(_MATCH_COLUMNS)
        if unknown:
            raise KeyError(f"Match field(s) not updatable: {sorted(unknown)}")
        if not patch:
            return await self.get_match(match_id)

        assignments = ", ".join(f"{_MATCH_COLUMNS[k]}=%s" for k in patch)
        params: list[Any] = [patch[k] for k in patch]
        sql = f"UPDATE bracket_match SET {assignments}, updated_at=NOW(6) WHERE match_id=%s"
        params.append(match_id)

        if expected_status is not None:
            statuses = list(expected_status)
            if not statuses:
                return None
            sql += " AND status IN (" + ", ".join(["%s"] * len(statuses)) + ")"
            params.extend(statuses)

        affected = await self.execute(sql + ";", params)
        if expected_status is not None and affected == 0:
            return None
        return await self.get_match(match_id)

    async def delete_matches(self, tournament_id: int) -> int:
        return await self.execute("DELETE FROM bracket_match WHERE tournament_id=%s;", (tournament_id,))
