from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable

from fastapi import WebSocket, WebSocketDisconnect

from .config import Settings, settings
from .database import DatabaseLexicon, DatabaseRoomBackend
from .errors import (
    GameInProgress,
    InvalidInviteCode,
    InvalidSettings,
    NotInRoom,
    NotRoomOwner,
    RoomClosed,
    RoomFull,
    RoomNotFound,
)
from .redis_cache import RedisCacheBackend
from .room_store import RoomBackend, RoomStore
from .runtime_answers import submit_answer as submit_room_answer
from .runtime_constants import INVITE_CODE_LENGTH
from .runtime_membership import add_member, remove_member, transfer_owner
from .runtime_message_handlers import handle_message as handle_room_message
from .runtime_phase_flow import autostart_default_room
from .runtime_phase_flow import start_game as start_room_game
from .runtime_snapshot import serialize_settings
from .runtime_state_builders import (
    build_error_event,
    build_new_answer,
    build_ownership_transferred,
    build_players_update,
    build_room_info_update,
    build_room_joined,
    build_round_start,
)
from .runtime_types import AnswerRecord, GameSettings, PlayerConnection, RoomRuntime, RoomState
from .runtime_utils import (
    now_ms,
    random_id,
    random_invite_code,
    random_room_code,
    sanitize_invite_code,
    sanitize_player_name,
    sanitize_room_id,
)
from .validation_cache import ValidationCache

logger = logging.getLogger(__name__)

TimerCallback = Callable[["GameRuntime", RoomRuntime], Awaitable[None]]

SETTINGS_FIELDS = {
    "roundDuration": "round_duration",
    "maxAnswersPerRound": "max_answers_per_round",
    "minPlayers": "min_players",
    "maxPlayers": "max_players",
    "totalRounds": "total_rounds",
    "themes": "themes",
}


def merge_settings(current: GameSettings, patch: dict[str, Any]) -> GameSettings:
    changes = {SETTINGS_FIELDS[key]: value for key, value in patch.items() if key in SETTINGS_FIELDS}
    merged = replace(current, **changes)
    if merged.max_players < merged.min_players:
        raise InvalidSettings("maxPlayers must be at least minPlayers")
    if not merged.themes:
        raise InvalidSettings("At least one theme is required")
    merged.themes = list(merged.themes)
    return merged


class GameRuntime:
    def __init__(
        self,
        store_backend: RoomBackend,
        validation: ValidationCache,
        config: Settings = settings,
    ) -> None:
        self.store = RoomStore(store_backend)
        self.validation = validation
        self.config = config
        self._sweep_task: asyncio.Task[None] | None = None
        self._ws_stats: dict[str, int] = {
            "connectAttempts": 0,
            "connectSuccess": 0,
            "disconnects": 0,
            "sendFailures": 0,
            "messageReceived": 0,
            "malformedMessages": 0,
            "unknownMessages": 0,
            "rejectedEvents": 0,
            "internalErrors": 0,
            "pingReceived": 0,
            "validationFailures": 0,
            "staleTimers": 0,
            "persistFailures": 0,
            "roomsClosed": 0,
            "activeConnections": 0,
            "peakConnections": 0,
        }

    @property
    def active_rooms_count(self) -> int:
        return len(self.store.rooms)

    def _increment_stat(self, key: str, amount: int = 1) -> None:
        self._ws_stats[key] = int(self._ws_stats.get(key, 0)) + amount

    def _on_connect(self) -> None:
        self._increment_stat("connectSuccess")
        active_connections = int(self._ws_stats.get("activeConnections", 0)) + 1
        self._ws_stats["activeConnections"] = active_connections
        if active_connections > int(self._ws_stats.get("peakConnections", 0)):
            self._ws_stats["peakConnections"] = active_connections

    def _on_disconnect(self) -> None:
        self._increment_stat("disconnects")
        active_connections = max(0, int(self._ws_stats.get("activeConnections", 0)) - 1)
        self._ws_stats["activeConnections"] = active_connections

    def _log_ws_event(self, event: str, level: int = logging.INFO, **fields: object) -> None:
        logger.log(
            level,
            "ws.%s %s",
            event,
            json.dumps(fields, ensure_ascii=False, separators=(",", ":")),
        )

    async def get_ws_stats(self) -> dict[str, Any]:
        async with self.store.lock:
            room_summaries = [
                {
                    "roomId": room.room_id,
                    "connections": len(room.players),
                    "state": room.state,
                    "round": room.current_round_number,
                }
                for room in self.store.rooms.values()
            ]
            active_rooms = len(room_summaries)

        room_summaries.sort(key=lambda item: int(item.get("connections", 0)), reverse=True)

        return {
            "generatedAt": now_ms(),
            "activeRooms": active_rooms,
            "stats": dict(self._ws_stats),
            "validation": dict(self.validation.stats),
            "rooms": room_summaries[:50],
        }

    async def describe_room(self, room_id: str) -> dict[str, Any] | None:
        room = await self.store.peek(sanitize_room_id(room_id))
        if room is None:
            return None
        return {
            "roomId": room.room_id,
            "ownerUsername": room.owner_username,
            "playerCount": len(room.players),
            "gameStatus": room.game_status,
            "currentRound": room.current_round_number,
            "gameSettings": serialize_settings(room.settings),
            "isActive": room.is_active,
            "lastActivity": room.last_activity,
        }

    async def resolve_invite(self, invite_code: str) -> str | None:
        return await self.store.resolve_invite(sanitize_invite_code(invite_code))

    async def start(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop(), name="idle-room-sweep")

    async def shutdown(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        for room in self.store.live_rooms():
            async with room.lock:
                self._cancel_timer(room)

        self.store.rooms.clear()
        self.store.invite_index.clear()
        self.store.connections.clear()
        self._ws_stats["activeConnections"] = 0

    async def handle_websocket(self, websocket: WebSocket) -> None:
        await websocket.accept()
        conn_id = random_id()
        self._increment_stat("connectAttempts")
        self._on_connect()
        self._log_ws_event("connected", peerId=conn_id)
        await self._send_safe(websocket, {"type": "connected", "socketId": conn_id}, peer_id=conn_id)

        disconnect_code: int | None = None
        disconnect_reason = "unknown"

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    self._increment_stat("malformedMessages")
                    continue
                if not isinstance(data, dict):
                    self._increment_stat("malformedMessages")
                    continue
                self._increment_stat("messageReceived")

                try:
                    await handle_room_message(self, conn_id, websocket, data)
                except Exception:
                    self._increment_stat("internalErrors")
                    logger.exception("Failed to handle %r from peer %s", data.get("type"), conn_id)
                    await self._send_safe(
                        websocket,
                        {"type": "room-error", "code": "INTERNAL_ERROR", "message": "Server error"},
                        peer_id=conn_id,
                    )
        except WebSocketDisconnect as exc:
            disconnect_code = exc.code
            disconnect_reason = "websocket_disconnect"
        except Exception:
            disconnect_reason = "server_error"
            logger.exception("Unexpected websocket error for peer %s", conn_id)
        finally:
            await self._cleanup_connection(conn_id, reason=disconnect_reason, close_code=disconnect_code)

    async def _cleanup_connection(
        self,
        conn_id: str,
        *,
        reason: str,
        close_code: int | None,
    ) -> None:
        room_id = self.store.room_id_for(conn_id)
        self._on_disconnect()
        try:
            await self.leave(conn_id)
        except Exception:
            logger.exception("Failed to remove peer %s from room %s", conn_id, room_id)
        self._log_ws_event(
            "disconnected",
            roomId=room_id or "-",
            peerId=conn_id,
            reason=reason,
            closeCode=close_code,
        )

    # Room membership

    async def create_room(self, conn_id: str, websocket: Any, username: str) -> RoomRuntime:
        await self.leave(conn_id)

        for _ in range(24):
            room = RoomRuntime(room_id=random_room_code(), invite_code=random_invite_code())
            if room.room_id == self.config.default_room_id:
                continue
            async with room.lock:
                player = add_member(room, conn_id, sanitize_player_name(username), websocket)
                if not await self.store.add(room):
                    continue
                self.store.bind_connection(conn_id, room.room_id)
                self._log_ws_event(
                    "room_created",
                    roomId=room.room_id,
                    peerId=conn_id,
                    name=player.username,
                )
                await self._send_safe(
                    websocket,
                    build_room_joined(room, player, created=True),
                    room_id=room.room_id,
                    peer_id=conn_id,
                )
                await self._broadcast(room, build_room_info_update(room))
                await self._broadcast(room, build_players_update(room))
                return room

        raise RuntimeError("Failed to allocate room code")

    async def join_room(self, conn_id: str, websocket: Any, room_id: str, username: str) -> RoomRuntime:
        room = await self.store.get(sanitize_room_id(room_id))
        if room is None:
            raise RoomNotFound()
        return await self._join(room, conn_id, websocket, username)

    async def join_by_invite(
        self,
        conn_id: str,
        websocket: Any,
        invite_code: str,
        username: str,
    ) -> RoomRuntime:
        code = sanitize_invite_code(invite_code)
        if len(code) != INVITE_CODE_LENGTH:
            raise InvalidInviteCode()
        room = await self.store.find_by_invite(code)
        if room is None:
            raise InvalidInviteCode()
        return await self._join(room, conn_id, websocket, username)

    async def join_default_room(self, conn_id: str, websocket: Any, username: str) -> RoomRuntime:
        room_id = self.config.default_room_id
        room = await self.store.get(room_id)
        if room is None:
            created = RoomRuntime(room_id=room_id, invite_code=random_invite_code())
            if await self.store.add(created):
                self._log_ws_event("default_room_created", roomId=room_id)
                room = created
            else:
                room = self.store.live(room_id)
        if room is None:
            raise RoomNotFound()
        return await self._join(room, conn_id, websocket, username)

    async def _join(self, room: RoomRuntime, conn_id: str, websocket: Any, username: str) -> RoomRuntime:
        current_room_id = self.store.room_id_for(conn_id)
        if current_room_id and current_room_id != room.room_id:
            # Rejections must not cost the player the room they are in.
            if not self._is_live(room):
                raise RoomNotFound()
            if len(room.players) >= room.settings.max_players:
                raise RoomFull()
            await self.leave(conn_id)

        async with room.lock:
            if not self._is_live(room):
                raise RoomNotFound()

            async with self.store.mutation(room):
                player = add_member(room, conn_id, sanitize_player_name(username), websocket)
                self._maybe_autostart(room)
            self.store.bind_connection(conn_id, room.room_id)

            self._log_ws_event(
                "room_joined",
                roomId=room.room_id,
                peerId=conn_id,
                name=player.username,
                players=len(room.players),
                isOwner=room.owner_id == conn_id,
            )
            await self._send_safe(
                websocket,
                build_room_joined(room, player),
                room_id=room.room_id,
                peer_id=conn_id,
            )
            await self._broadcast(room, build_room_info_update(room))
            await self._broadcast(room, build_players_update(room))

            if room.state == "playing":
                late_round = build_round_start(room, now_ms())
                if late_round is not None:
                    await self._send_safe(websocket, late_round, room_id=room.room_id, peer_id=conn_id)
        return room

    async def leave(self, conn_id: str) -> None:
        room_id = self.store.room_id_for(conn_id)
        if room_id is None:
            return
        room = self.store.live(room_id)
        if room is None:
            self.store.unbind_connection(conn_id)
            return

        async with room.lock:
            self.store.unbind_connection(conn_id, room.room_id)
            if not self._is_live(room):
                return

            player, new_owner = remove_member(room, conn_id)
            if player is None:
                return
            self._log_ws_event(
                "room_left",
                roomId=room.room_id,
                peerId=conn_id,
                players=len(room.players),
            )

            if not room.players and not self._is_default_room(room):
                await self._close_room(room, "Room closed, everyone left")
                return

            # Departures stand even when the write fails.
            await self._persist(room)
            if new_owner is not None:
                await self._broadcast(
                    room,
                    build_ownership_transferred(
                        room,
                        f"{player.username} left, {new_owner.username} is now the room owner",
                    ),
                )
            await self._broadcast(room, build_room_info_update(room))
            await self._broadcast(room, build_players_update(room))

    # Owner actions

    async def start_game(self, conn_id: str, room_id: str | None = None) -> None:
        room = self._room_for(conn_id, room_id)
        async with room.lock:
            player = self._member(room, conn_id)
            await start_room_game(self, room, player)

    async def update_settings(self, conn_id: str, room_id: str | None, patch: dict[str, Any]) -> None:
        room = self._room_for(conn_id, room_id)
        async with room.lock:
            player = self._member(room, conn_id)
            if room.owner_id != player.conn_id:
                raise NotRoomOwner()
            if room.state not in {"waiting", "finished"}:
                raise GameInProgress("Settings can only change between games")

            async with self.store.mutation(room):
                room.settings = merge_settings(room.settings, patch)
            self._log_ws_event("settings_updated", roomId=room.room_id, changes=sorted(patch))
            await self._broadcast(room, build_room_info_update(room))

    async def transfer_ownership(self, conn_id: str, room_id: str | None, new_owner_id: str) -> None:
        room = self._room_for(conn_id, room_id)
        async with room.lock:
            player = self._member(room, conn_id)
            if room.owner_id != player.conn_id:
                raise NotRoomOwner()
            if new_owner_id == player.conn_id:
                return

            async with self.store.mutation(room):
                new_owner = transfer_owner(room, new_owner_id)
            self._log_ws_event(
                "owner_transferred",
                roomId=room.room_id,
                oldOwner=player.conn_id,
                newOwner=new_owner.conn_id,
            )
            await self._broadcast(
                room,
                build_ownership_transferred(
                    room,
                    f"{player.username} handed room ownership to {new_owner.username}",
                ),
            )
            await self._broadcast(room, build_room_info_update(room))
            await self._broadcast(room, build_players_update(room))

    # Gameplay

    async def submit_answer(self, conn_id: str, answer: str) -> AnswerRecord:
        room = self._room_for(conn_id, None)
        async with room.lock:
            player = self._member(room, conn_id)
            async with self.store.mutation(room):
                record = await submit_room_answer(self, room, player, answer)
            await self._broadcast(room, build_new_answer(record))
            await self._broadcast(room, build_players_update(room))
            return record

    async def sweep_idle_rooms(self, now_value: int | None = None) -> int:
        cutoff = (now_value if now_value is not None else now_ms()) - self.config.idle_room_timeout_ms
        closed = 0
        for room in self.store.live_rooms():
            if self._is_default_room(room):
                continue
            async with room.lock:
                if not self._is_live(room) or room.last_activity > cutoff:
                    continue
                await self._close_room(room, "Room closed after inactivity")
                closed += 1

        stale_ids = await self.store.backend.list_stale_room_ids(cutoff, self.config.default_room_id)
        for room_id in stale_ids:
            if self.store.live(room_id) is not None:
                continue
            await self.store.delete_record(room_id)
            closed += 1

        if closed:
            logger.info("Idle sweep removed %s rooms", closed)
        return closed

    async def _sweep_loop(self) -> None:
        interval_s = self.config.idle_sweep_interval_ms / 1000
        while True:
            await asyncio.sleep(interval_s)
            try:
                await self.sweep_idle_rooms()
            except Exception:
                logger.exception("Idle room sweep failed")

    # Internals used by the phase flow and message handlers

    def _is_default_room(self, room: RoomRuntime) -> bool:
        return room.room_id == self.config.default_room_id

    def _is_live(self, room: RoomRuntime) -> bool:
        return self.store.live(room.room_id) is room

    def _room_for(self, conn_id: str, room_id: str | None) -> RoomRuntime:
        current_room_id = self.store.room_id_for(conn_id)
        if current_room_id is None:
            raise NotInRoom()
        if room_id and sanitize_room_id(room_id) != current_room_id:
            raise NotInRoom("You are not a member of that room")
        room = self.store.live(current_room_id)
        if room is None:
            raise RoomNotFound()
        return room

    def _member(self, room: RoomRuntime, conn_id: str) -> PlayerConnection:
        if not self._is_live(room):
            raise RoomNotFound()
        player = room.players.get(conn_id)
        if player is None:
            raise NotInRoom()
        return player

    def _maybe_autostart(self, room: RoomRuntime) -> None:
        if not self._is_default_room(room):
            return
        if room.state != "waiting" or room.is_active or not room.players:
            return
        room.is_active = True
        self._schedule_timer(
            room,
            self.config.default_room_autostart_delay_ms,
            autostart_default_room,
            "waiting",
        )

    async def _persist(self, room: RoomRuntime) -> bool:
        """Write through for steps that cannot be refused, such as timers and departures.

        A failed write is logged and counted. The live room stays authoritative
        and the next successful write carries the missed change.
        """
        try:
            await self.store.update(room)
        except Exception:
            self._increment_stat("persistFailures")
            logger.exception("Failed to persist room %s (state=%s)", room.room_id, room.state)
            return False
        return True

    async def _close_room(self, room: RoomRuntime, message: str) -> None:
        self._cancel_timer(room)
        members = list(room.players.values())
        try:
            await self.store.remove(room)
        except Exception:
            # Already unindexed; the idle sweep deletes the orphaned record later.
            self._increment_stat("persistFailures")
            logger.exception("Failed to delete room record %s", room.room_id)
        self._increment_stat("roomsClosed")
        self._log_ws_event("room_closed", roomId=room.room_id, reason=message, players=len(members))
        notice = build_error_event(RoomClosed(message))
        for member in members:
            if member.websocket is not None:
                await self._send_safe(member.websocket, notice, room_id=room.room_id, peer_id=member.conn_id)

    def _cancel_timer(self, room: RoomRuntime) -> None:
        # Bumping the generation also invalidates a timer already waiting on the room lock.
        room.generation += 1
        task = room.timer
        room.timer = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _schedule_timer(
        self,
        room: RoomRuntime,
        delay_ms: int,
        callback: TimerCallback,
        expected_state: RoomState,
    ) -> None:
        self._cancel_timer(room)
        generation = room.generation
        delay_s = max(0, delay_ms or 0) / 1000

        async def runner() -> None:
            try:
                await asyncio.sleep(delay_s)
            except asyncio.CancelledError:
                return
            async with room.lock:
                if (
                    room.generation != generation
                    or room.state != expected_state
                    or not self._is_live(room)
                ):
                    self._increment_stat("staleTimers")
                    logger.debug(
                        "Dropping stale timer room=%s expected=%s state=%s",
                        room.room_id,
                        expected_state,
                        room.state,
                    )
                    return
                room.timer = None
                try:
                    await callback(self, room)
                except Exception:
                    logger.exception(
                        "Timer callback %s failed for room %s",
                        getattr(callback, "__name__", callback),
                        room.room_id,
                    )

        room.timer = asyncio.create_task(runner(), name=f"{room.room_id}:{expected_state}")

    async def _send_safe(
        self,
        websocket: Any,
        data: dict[str, Any],
        room_id: str | None = None,
        peer_id: str | None = None,
    ) -> None:
        try:
            await websocket.send_json(data)
        except Exception as exc:
            # Connection may already be closed.
            self._increment_stat("sendFailures")
            logger.debug(
                "[SEND_FAIL] room=%s peer=%s reason=%s",
                room_id or "-",
                peer_id or "-",
                repr(exc),
            )

    async def _broadcast(self, room: RoomRuntime, data: dict[str, Any]) -> None:
        for player in list(room.players.values()):
            if player.websocket is None:
                continue
            await self._send_safe(
                player.websocket,
                data,
                room_id=room.room_id,
                peer_id=player.conn_id,
            )


runtime = GameRuntime(
    DatabaseRoomBackend(),
    ValidationCache(
        DatabaseLexicon(),
        RedisCacheBackend(),
        word_ttl_seconds=settings.word_cache_ttl_seconds,
        positive_ttl_seconds=settings.validation_positive_ttl_seconds,
        negative_ttl_seconds=settings.validation_negative_ttl_seconds,
    ),
)
