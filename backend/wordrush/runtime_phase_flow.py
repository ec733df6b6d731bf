from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import BelowMinimumPlayers, GameInProgress, NotRoomOwner
from .runtime_ranking import build_final_ranking
from .runtime_rounds import generate_round
from .runtime_state_builders import (
    build_game_end,
    build_players_update,
    build_room_info_update,
    build_round_end,
    build_round_start,
)
from .runtime_types import RoomState
from .runtime_utils import now_ms

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from .runtime import GameRuntime
    from .runtime_types import PlayerConnection, RoomRuntime


TRANSITIONS: dict[tuple[RoomState, str], RoomState] = {
    ("waiting", "start"): "playing",
    ("finished", "start"): "playing",
    ("playing", "round-timeout"): "round-ended",
    ("round-ended", "next-round"): "playing",
    ("round-ended", "finish"): "finished",
    ("round-ended", "abandon"): "waiting",
    ("finished", "reset"): "waiting",
}


def can_transition(room: "RoomRuntime", event: str) -> bool:
    return (room.state, event) in TRANSITIONS


def transition(room: "RoomRuntime", event: str) -> RoomState:
    target = TRANSITIONS.get((room.state, event))
    if target is None:
        raise RuntimeError(f"Illegal transition {room.state!r} --{event}--> for room {room.room_id}")
    logger.debug("room=%s %s --%s--> %s", room.room_id, room.state, event, target)
    room.state = target
    return target


def reset_scores(room: "RoomRuntime") -> None:
    for player in room.players.values():
        player.score = 0
        player.round_answers = 0
    room.final_ranking = []


async def start_game(
    runtime: "GameRuntime",
    room: "RoomRuntime",
    player: "PlayerConnection | None",
) -> None:
    """Owner-issued start; ``player`` is None for the default room's autostart."""
    if player is not None and room.owner_id != player.conn_id:
        raise NotRoomOwner()
    if not can_transition(room, "start"):
        raise GameInProgress()
    if player is not None and len(room.players) < room.settings.min_players:
        raise BelowMinimumPlayers(
            f"At least {room.settings.min_players} players are needed to start"
        )

    reset_scores(room)
    transition(room, "start")
    room.current_round_number = 1
    room.is_active = True
    runtime._log_ws_event(
        "game_started",
        roomId=room.room_id,
        players=len(room.players),
        totalRounds=room.settings.total_rounds,
    )
    await start_round(runtime, room)


async def start_round(runtime: "GameRuntime", room: "RoomRuntime") -> None:
    round_ = generate_round(room.settings.themes, room.settings.round_duration * 1000)
    room.current_round = round_
    for player in room.players.values():
        player.round_answers = 0

    # Armed before the write; a failed write must not leave the room without a clock.
    runtime._schedule_timer(room, round_.duration_ms, on_round_timeout, "playing")
    await runtime._persist(room)

    payload = build_round_start(room, now_ms())
    if payload is not None:
        await runtime._broadcast(room, payload)
    await runtime._broadcast(room, build_players_update(room))


async def on_round_timeout(runtime: "GameRuntime", room: "RoomRuntime") -> None:
    transition(room, "round-timeout")
    runtime._schedule_timer(
        room,
        runtime.config.round_end_grace_ms,
        after_round_grace,
        "round-ended",
    )
    await runtime._persist(room)
    await runtime._broadcast(room, build_round_end(room))


async def after_round_grace(runtime: "GameRuntime", room: "RoomRuntime") -> None:
    if not room.players:
        transition(room, "abandon")
        room.is_active = False
        room.current_round = None
        await runtime._persist(room)
        runtime._log_ws_event("game_abandoned", roomId=room.room_id)
        return

    if room.current_round_number >= room.settings.total_rounds:
        await finish_game(runtime, room)
        return

    transition(room, "next-round")
    room.current_round_number += 1
    await start_round(runtime, room)


async def finish_game(runtime: "GameRuntime", room: "RoomRuntime") -> None:
    transition(room, "finish")
    room.final_ranking = build_final_ranking(room.players.values())
    room.is_active = False
    room.current_round = None
    runtime._schedule_timer(
        room,
        runtime.config.finished_room_retention_ms,
        after_finished_retention,
        "finished",
    )
    await runtime._persist(room)
    runtime._log_ws_event(
        "game_finished",
        roomId=room.room_id,
        rounds=room.current_round_number,
        winner=room.final_ranking[0].player_id if room.final_ranking else None,
    )
    await runtime._broadcast(room, build_game_end(room))


async def after_finished_retention(runtime: "GameRuntime", room: "RoomRuntime") -> None:
    if not runtime._is_default_room(room):
        await runtime._close_room(room, "Game over, room closed")
        return

    transition(room, "reset")
    room.current_round_number = 1
    await runtime._persist(room)
    await runtime._broadcast(room, build_room_info_update(room))
    runtime._maybe_autostart(room)


async def autostart_default_room(runtime: "GameRuntime", room: "RoomRuntime") -> None:
    if not room.players:
        room.is_active = False
        await runtime._persist(room)
        return
    await start_game(runtime, room, None)
