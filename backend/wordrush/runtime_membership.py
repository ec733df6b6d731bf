from __future__ import annotations

import logging
from typing import Any

from .errors import NotInRoom, RoomFull
from .runtime_types import PlayerConnection, RoomRuntime
from .runtime_utils import now_ms

logger = logging.getLogger(__name__)


def set_owner(room: RoomRuntime, player: PlayerConnection | None) -> None:
    room.owner_id = player.conn_id if player else None
    room.owner_username = player.username if player else None


def add_member(
    room: RoomRuntime,
    conn_id: str,
    username: str,
    websocket: Any,
) -> PlayerConnection:
    existing = room.players.get(conn_id)
    if existing is not None:
        existing.websocket = websocket
        existing.last_activity = now_ms()
        return existing

    if len(room.players) >= room.settings.max_players:
        raise RoomFull()

    player = PlayerConnection(
        conn_id=conn_id,
        username=username,
        websocket=websocket,
        last_activity=now_ms(),
    )
    room.players[conn_id] = player
    if room.owner_id is None or room.owner_id not in room.players:
        set_owner(room, player)
    return player


def elect_owner(room: RoomRuntime) -> PlayerConnection | None:
    """Hand ownership to the earliest-joined remaining member."""
    candidate = next(iter(room.players.values()), None)
    set_owner(room, candidate)
    return candidate


def remove_member(room: RoomRuntime, conn_id: str) -> tuple[PlayerConnection | None, PlayerConnection | None]:
    """Drop a member and re-elect the owner in the same step.

    Returns the removed player and the new owner when ownership moved.
    """
    player = room.players.pop(conn_id, None)
    if player is None:
        return None, None

    if room.owner_id != conn_id:
        return player, None

    new_owner = elect_owner(room)
    if new_owner is not None:
        logger.info(
            "[OWNER_REASSIGNED] room=%s old_owner=%s new_owner=%s",
            room.room_id,
            conn_id,
            new_owner.conn_id,
        )
    return player, new_owner


def transfer_owner(room: RoomRuntime, new_owner_id: str) -> PlayerConnection:
    candidate = room.players.get(new_owner_id)
    if candidate is None:
        raise NotInRoom("Target player is not in this room")
    set_owner(room, candidate)
    return candidate
