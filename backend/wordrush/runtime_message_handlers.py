from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .errors import InvalidPayload, InvalidSettings, RoomError
from .runtime_state_builders import build_error_event
from .runtime_utils import now_ms
from .schemas.events import (
    CreateRoomPayload,
    JoinByInvitePayload,
    JoinGamePayload,
    JoinRoomPayload,
    StartGamePayload,
    SubmitAnswerPayload,
    TransferOwnershipPayload,
    UpdateSettingsPayload,
)

if TYPE_CHECKING:
    from fastapi import WebSocket

    from .runtime import GameRuntime

logger = logging.getLogger(__name__)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Malformed message"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = str(first.get("msg") or "invalid value")
    return f"{location}: {message}" if location else message


async def dispatch(
    runtime: "GameRuntime",
    conn_id: str,
    websocket: "WebSocket",
    message_type: Any,
    data: dict[str, Any],
) -> None:
    if message_type == "ping":
        runtime._increment_stat("pingReceived")
        await runtime._send_safe(
            websocket,
            {"type": "pong", "serverTime": now_ms()},
            peer_id=conn_id,
        )
        return

    if message_type == "create-room":
        payload = CreateRoomPayload.model_validate(data)
        await runtime.create_room(conn_id, websocket, payload.playerData.username)
        return

    if message_type == "join-room":
        join = JoinRoomPayload.model_validate(data)
        await runtime.join_room(conn_id, websocket, join.roomId, join.playerData.username)
        return

    if message_type == "join-by-invite":
        invite = JoinByInvitePayload.model_validate(data)
        await runtime.join_by_invite(conn_id, websocket, invite.inviteCode, invite.playerData.username)
        return

    if message_type == "join-game":
        default_join = JoinGamePayload.model_validate(data)
        await runtime.join_default_room(conn_id, websocket, default_join.playerData.username)
        return

    if message_type == "start-game":
        start = StartGamePayload.model_validate(data)
        await runtime.start_game(conn_id, start.roomId)
        return

    if message_type == "update-settings":
        try:
            update = UpdateSettingsPayload.model_validate(data)
        except ValidationError as exc:
            raise InvalidSettings(_first_error(exc)) from exc
        await runtime.update_settings(
            conn_id,
            update.roomId,
            update.settings.model_dump(exclude_none=True),
        )
        return

    if message_type == "transfer-ownership":
        transfer = TransferOwnershipPayload.model_validate(data)
        await runtime.transfer_ownership(conn_id, transfer.roomId, transfer.newOwnerId)
        return

    if message_type == "submit-answer":
        submission = SubmitAnswerPayload.model_validate(data)
        await runtime.submit_answer(conn_id, submission.answer)
        return

    if message_type == "leave-room":
        await runtime.leave(conn_id)
        return

    runtime._increment_stat("unknownMessages")
    logger.debug("Ignoring unknown message type %r from %s", message_type, conn_id)


async def handle_message(
    runtime: "GameRuntime",
    conn_id: str,
    websocket: "WebSocket",
    data: dict[str, Any],
) -> None:
    message_type = data.get("type")
    try:
        await dispatch(runtime, conn_id, websocket, message_type, data)
    except ValidationError as exc:
        await _reject(runtime, conn_id, websocket, message_type, InvalidPayload(_first_error(exc)))
    except RoomError as error:
        await _reject(runtime, conn_id, websocket, message_type, error)


async def _reject(
    runtime: "GameRuntime",
    conn_id: str,
    websocket: "WebSocket",
    message_type: Any,
    error: RoomError,
) -> None:
    runtime._increment_stat("rejectedEvents")
    runtime._log_ws_event(
        "event_rejected",
        level=logging.DEBUG,
        peerId=conn_id,
        messageType=str(message_type),
        code=error.code,
    )
    await runtime._send_safe(websocket, build_error_event(error), peer_id=conn_id)
