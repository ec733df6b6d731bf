from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, Protocol

from .runtime_snapshot import room_from_snapshot, serialize_snapshot
from .runtime_types import (
    AnswerRecord,
    GameSettings,
    PlayerConnection,
    RankingEntry,
    RoomRuntime,
    RoomState,
    Round,
)
from .runtime_utils import now_ms

logger = logging.getLogger(__name__)


class RoomBackend(Protocol):
    async def load_room(self, room_id: str) -> dict[str, Any] | None: ...

    async def save_room(self, state_json: dict[str, Any]) -> None: ...

    async def delete_room(self, room_id: str) -> None: ...

    async def find_room_id_by_invite(self, invite_code: str) -> str | None: ...

    async def list_stale_room_ids(self, idle_before_ms: int, keep_room_id: str) -> list[str]: ...


@dataclass
class _RoomCheckpoint:
    owner_id: str | None
    owner_username: str | None
    settings: GameSettings
    players: dict[str, PlayerConnection]
    player_progress: dict[str, tuple[int, int, int]]
    current_round_number: int
    state: RoomState
    is_active: bool
    current_round: Round | None
    round_answers: list[AnswerRecord]
    final_ranking: list[RankingEntry]
    last_activity: int

    @classmethod
    def capture(cls, room: RoomRuntime) -> "_RoomCheckpoint":
        return cls(
            owner_id=room.owner_id,
            owner_username=room.owner_username,
            settings=replace(room.settings, themes=list(room.settings.themes)),
            players=dict(room.players),
            player_progress={
                conn_id: (player.score, player.round_answers, player.last_activity)
                for conn_id, player in room.players.items()
            },
            current_round_number=room.current_round_number,
            state=room.state,
            is_active=room.is_active,
            current_round=room.current_round,
            round_answers=list(room.current_round.answers) if room.current_round else [],
            final_ranking=list(room.final_ranking),
            last_activity=room.last_activity,
        )

    def restore(self, room: RoomRuntime) -> None:
        room.owner_id = self.owner_id
        room.owner_username = self.owner_username
        room.settings = self.settings
        room.players = dict(self.players)
        for conn_id, (score, round_answers, last_activity) in self.player_progress.items():
            player = room.players[conn_id]
            player.score = score
            player.round_answers = round_answers
            player.last_activity = last_activity
        room.current_round_number = self.current_round_number
        room.state = self.state
        room.is_active = self.is_active
        room.current_round = self.current_round
        if self.current_round is not None:
            self.current_round.answers[:] = self.round_answers
        room.final_ranking = list(self.final_ranking)
        room.last_activity = self.last_activity


class RoomStore:
    """Write-through pairing of the live room index and the durable records.

    Callers never touch either side directly: ``update`` serializes the room,
    writes the durable record and refreshes the live entry in one call.
    """

    def __init__(self, backend: RoomBackend) -> None:
        self.backend = backend
        self.rooms: dict[str, RoomRuntime] = {}
        self.invite_index: dict[str, str] = {}
        self.connections: dict[str, str] = {}
        self.lock = asyncio.Lock()

    def live(self, room_id: str) -> RoomRuntime | None:
        return self.rooms.get(room_id)

    def live_rooms(self) -> list[RoomRuntime]:
        return list(self.rooms.values())

    def room_id_for(self, conn_id: str) -> str | None:
        return self.connections.get(conn_id)

    def bind_connection(self, conn_id: str, room_id: str) -> None:
        self.connections[conn_id] = room_id

    def unbind_connection(self, conn_id: str, room_id: str | None = None) -> None:
        if room_id is None or self.connections.get(conn_id) == room_id:
            self.connections.pop(conn_id, None)

    async def get(self, room_id: str) -> RoomRuntime | None:
        if not room_id:
            return None
        existing = self.rooms.get(room_id)
        if existing is not None:
            return existing

        # Read outside the lock; other rooms must not wait on a cold load.
        room = await self._load(room_id)
        if room is None:
            return None
        async with self.lock:
            existing = self.rooms.get(room_id)
            if existing is not None:
                return existing
            self._index(room)
            return room

    async def peek(self, room_id: str) -> RoomRuntime | None:
        """Live room or a detached copy of the durable record; never indexes."""
        existing = self.rooms.get(room_id)
        if existing is not None:
            return existing
        return await self._load(room_id)

    async def resolve_invite(self, invite_code: str) -> str | None:
        if not invite_code:
            return None
        room_id = self.invite_index.get(invite_code)
        if room_id is not None:
            return room_id
        try:
            return await self.backend.find_room_id_by_invite(invite_code)
        except Exception:
            logger.exception("Failed to resolve invite code %s", invite_code)
            return None

    async def find_by_invite(self, invite_code: str) -> RoomRuntime | None:
        room_id = await self.resolve_invite(invite_code)
        if not room_id:
            return None
        return await self.get(room_id)

    async def add(self, room: RoomRuntime) -> bool:
        async with self.lock:
            if room.room_id in self.rooms:
                return False
            self._index(room)
        try:
            await self.update(room)
        except Exception:
            async with self.lock:
                self._unindex(room)
            raise
        return True

    async def update(self, room: RoomRuntime) -> None:
        room.last_activity = now_ms()
        state_json = serialize_snapshot(room)
        await self.backend.save_room(state_json)

    @asynccontextmanager
    async def mutation(self, room: RoomRuntime) -> AsyncIterator[RoomRuntime]:
        """Apply in-place changes to a live room and write them through.

        If the block raises or the durable write fails, the live room is put
        back the way it was before the block ran.
        """
        checkpoint = _RoomCheckpoint.capture(room)
        try:
            yield room
            await self.update(room)
        except Exception:
            checkpoint.restore(room)
            raise

    async def remove(self, room: RoomRuntime) -> None:
        async with self.lock:
            self._unindex(room)
            for conn_id in list(room.players):
                self.unbind_connection(conn_id, room.room_id)
        await self.backend.delete_room(room.room_id)

    async def delete_record(self, room_id: str) -> None:
        await self.backend.delete_room(room_id)

    def _index(self, room: RoomRuntime) -> None:
        self.rooms[room.room_id] = room
        # Codes are not checked for uniqueness; the newest room takes the code.
        self.invite_index[room.invite_code] = room.room_id

    def _unindex(self, room: RoomRuntime) -> None:
        if self.rooms.get(room.room_id) is room:
            self.rooms.pop(room.room_id, None)
        if self.invite_index.get(room.invite_code) == room.room_id:
            self.invite_index.pop(room.invite_code, None)

    async def _load(self, room_id: str) -> RoomRuntime | None:
        try:
            state = await self.backend.load_room(room_id)
        except Exception:
            logger.exception("Failed to load room record for %s", room_id)
            return None

        if not state:
            return None

        room = room_from_snapshot(state)
        if not room.room_id:
            return None

        # A record read back from storage has no live sockets or timers.
        room.players = {}
        room.owner_id = None
        room.owner_username = None
        room.is_active = False
        if room.state in {"playing", "round-ended"}:
            room.state = "waiting"
            room.current_round = None
            room.current_round_number = 1
        return room
