from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import asyncpg

from .config import settings
from .database_lexicon import (
    build_lexicon_entries,
    count_words,
    insert_words,
    lookup_word as lookup_word_impl,
)
from .database_rooms import (
    delete_room_record as delete_room_record_impl,
    find_room_id_by_invite as find_room_id_by_invite_impl,
    list_stale_room_ids as list_stale_room_ids_impl,
    load_room_record as load_room_record_impl,
    save_room_record as save_room_record_impl,
)
from .lexicon_data import SEED_WORDS
from .redis_cache import delete_room_snapshot, get_room_snapshot, set_room_snapshot
from .runtime_types import LexiconEntry

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


def _normalized_database_url() -> str:
    url = settings.database_url.strip()
    if url.startswith("postgresql+asyncpg://"):
        return "postgresql://" + url[len("postgresql+asyncpg://") :]
    return url


def _ms_to_datetime(value: Any) -> datetime:
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return datetime.now(timezone.utc)


async def _get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(dsn=_normalized_database_url(), min_size=1, max_size=10)
    return _pool


async def init_db() -> None:
    pool = await _get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS room_records (
              room_id VARCHAR(16) PRIMARY KEY,
              invite_code VARCHAR(8) NOT NULL,
              game_status VARCHAR(16) NOT NULL DEFAULT 'waiting',
              is_active BOOLEAN NOT NULL DEFAULT FALSE,
              player_count INTEGER NOT NULL DEFAULT 0,
              state_json TEXT NOT NULL DEFAULT '{}',
              last_activity TIMESTAMPTZ NOT NULL DEFAULT NOW(),
              created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
              updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS lexicon_words (
              id BIGSERIAL PRIMARY KEY,
              word VARCHAR(64) NOT NULL,
              theme VARCHAR(32) NOT NULL,
              normalized VARCHAR(64) NOT NULL,
              length INTEGER NOT NULL,
              first_letter VARCHAR(1) NOT NULL,
              last_letter VARCHAR(1) NOT NULL,
              created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
              UNIQUE (theme, normalized)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_room_records_invite_code ON room_records(invite_code)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_room_records_activity ON room_records(is_active, last_activity)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_lexicon_words_theme_length ON lexicon_words(theme, length)"
        )

    if settings.seed_lexicon:
        await seed_lexicon()


async def seed_lexicon() -> None:
    pool = await _get_pool()
    if await count_words(pool) > 0:
        return
    entries = build_lexicon_entries(SEED_WORDS)
    await insert_words(pool, entries)
    logger.info("Seeded lexicon with %s words", len(entries))


async def close_db() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def ping_db() -> bool:
    try:
        pool = await _get_pool()
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        return True
    except Exception:  # pragma: no cover
        logger.exception("Database ping failed")
        return False


async def load_room_state(room_id: str) -> dict[str, Any] | None:
    cached = await get_room_snapshot(room_id)
    if cached is not None and cached.get("roomId"):
        return cached

    pool = await _get_pool()
    record = await load_room_record_impl(pool, room_id)
    if record is None:
        return None
    await set_room_snapshot(record.room_id, record.state_json)
    return record.state_json


async def save_room_state(state_json: dict[str, Any]) -> None:
    room_id = str(state_json["roomId"])
    pool = await _get_pool()
    await save_room_record_impl(
        pool,
        room_id=room_id,
        invite_code=str(state_json.get("inviteCode") or ""),
        game_status=str(state_json.get("gameStatus") or "waiting"),
        is_active=bool(state_json.get("isActive")),
        player_count=len(state_json.get("players") or []),
        state_json=state_json,
        last_activity=_ms_to_datetime(state_json.get("lastActivity")),
    )
    await set_room_snapshot(room_id, state_json)


async def delete_room_state(room_id: str) -> None:
    pool = await _get_pool()
    await delete_room_record_impl(pool, room_id)
    await delete_room_snapshot(room_id)


async def find_room_id_by_invite(invite_code: str) -> str | None:
    pool = await _get_pool()
    return await find_room_id_by_invite_impl(pool, invite_code)


async def list_stale_room_ids(idle_before_ms: int, keep_room_id: str) -> list[str]:
    pool = await _get_pool()
    return await list_stale_room_ids_impl(
        pool,
        idle_before=_ms_to_datetime(idle_before_ms),
        keep_room_id=keep_room_id,
    )


async def lookup_word(theme: str, normalized: str) -> LexiconEntry | None:
    pool = await _get_pool()
    return await lookup_word_impl(pool, theme, normalized)


class DatabaseRoomBackend:
    """Durable room records in Postgres, fronted by the Redis room snapshot."""

    async def load_room(self, room_id: str) -> dict[str, Any] | None:
        return await load_room_state(room_id)

    async def save_room(self, state_json: dict[str, Any]) -> None:
        await save_room_state(state_json)

    async def delete_room(self, room_id: str) -> None:
        await delete_room_state(room_id)

    async def find_room_id_by_invite(self, invite_code: str) -> str | None:
        return await find_room_id_by_invite(invite_code)

    async def list_stale_room_ids(self, idle_before_ms: int, keep_room_id: str) -> list[str]:
        return await list_stale_room_ids(idle_before_ms, keep_room_id)


class DatabaseLexicon:
    async def lookup(self, theme: str, normalized: str) -> LexiconEntry | None:
        return await lookup_word(theme, normalized)
