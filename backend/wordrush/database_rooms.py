from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import asyncpg


@dataclass
class RoomRecord:
    room_id: str
    invite_code: str
    game_status: str
    is_active: bool
    player_count: int
    state_json: dict[str, Any]
    last_activity: datetime
    updated_at: datetime


def _row_to_record(row: asyncpg.Record) -> RoomRecord:
    raw_state = row["state_json"] or "{}"
    try:
        state_json = json.loads(raw_state)
        if not isinstance(state_json, dict):
            state_json = {}
    except (TypeError, ValueError):
        state_json = {}

    return RoomRecord(
        room_id=row["room_id"],
        invite_code=row["invite_code"],
        game_status=row["game_status"],
        is_active=bool(row["is_active"]),
        player_count=int(row["player_count"]),
        state_json=state_json,
        last_activity=row["last_activity"],
        updated_at=row["updated_at"],
    )


async def load_room_record(pool: asyncpg.Pool, room_id: str) -> RoomRecord | None:
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """
            SELECT room_id, invite_code, game_status, is_active, player_count,
                   state_json, last_activity, updated_at
            FROM room_records
            WHERE room_id = $1
            """,
            room_id,
        )

    if row is None:
        return None
    return _row_to_record(row)


async def save_room_record(
    pool: asyncpg.Pool,
    *,
    room_id: str,
    invite_code: str,
    game_status: str,
    is_active: bool,
    player_count: int,
    state_json: dict[str, Any],
    last_activity: datetime,
) -> None:
    payload = json.dumps(state_json, ensure_ascii=False)
    async with pool.acquire() as conn:
        await conn.execute(
            """
            INSERT INTO room_records
              (room_id, invite_code, game_status, is_active, player_count, state_json, last_activity)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (room_id) DO UPDATE
            SET invite_code = EXCLUDED.invite_code,
                game_status = EXCLUDED.game_status,
                is_active = EXCLUDED.is_active,
                player_count = EXCLUDED.player_count,
                state_json = EXCLUDED.state_json,
                last_activity = EXCLUDED.last_activity,
                updated_at = NOW()
            """,
            room_id,
            invite_code,
            game_status,
            is_active,
            int(player_count),
            payload,
            last_activity,
        )


async def delete_room_record(pool: asyncpg.Pool, room_id: str) -> None:
    async with pool.acquire() as conn:
        await conn.execute("DELETE FROM room_records WHERE room_id = $1", room_id)


async def find_room_id_by_invite(pool: asyncpg.Pool, invite_code: str) -> str | None:
    # Invite codes are not unique; the most recently touched room wins.
    async with pool.acquire() as conn:
        return await conn.fetchval(
            """
            SELECT room_id
            FROM room_records
            WHERE invite_code = $1
            ORDER BY updated_at DESC
            LIMIT 1
            """,
            invite_code,
        )


async def list_stale_room_ids(
    pool: asyncpg.Pool,
    *,
    idle_before: datetime,
    keep_room_id: str,
) -> list[str]:
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            """
            SELECT room_id
            FROM room_records
            WHERE room_id <> $2
              AND ((NOT is_active AND last_activity < $1) OR player_count = 0)
            """,
            idle_before,
            keep_room_id,
        )
    return [row["room_id"] for row in rows]
