from __future__ import annotations

from typing import Any

from .errors import AnswerRejected, RoomError
from .runtime_ranking import top_ranking
from .runtime_snapshot import (
    serialize_answer,
    serialize_ranking_entry,
    serialize_requirement,
    serialize_settings,
)
from .runtime_types import AnswerRecord, PlayerConnection, RoomRuntime


def build_player_summary(room: RoomRuntime, player: PlayerConnection) -> dict[str, Any]:
    return {
        "socketId": player.conn_id,
        "username": player.username,
        "score": player.score,
        "roundAnswers": player.round_answers,
        "isOwner": player.conn_id == room.owner_id,
    }


def build_player_summaries(room: RoomRuntime) -> list[dict[str, Any]]:
    return [build_player_summary(room, player) for player in room.players.values()]


def build_players_update(room: RoomRuntime) -> dict[str, Any]:
    return {"type": "players-update", "players": build_player_summaries(room)}


def build_room_info_update(room: RoomRuntime) -> dict[str, Any]:
    return {
        "type": "room-info-update",
        "roomId": room.room_id,
        "ownerId": room.owner_id,
        "ownerUsername": room.owner_username,
        "inviteCode": room.invite_code,
        "gameSettings": serialize_settings(room.settings),
        "gameStatus": room.game_status,
        "currentRound": room.current_round_number,
    }


def build_room_joined(room: RoomRuntime, player: PlayerConnection, *, created: bool = False) -> dict[str, Any]:
    return {
        "type": "room-created" if created else "room-joined",
        "roomId": room.room_id,
        "inviteCode": room.invite_code,
        "isOwner": player.conn_id == room.owner_id,
        "gameSettings": serialize_settings(room.settings),
        "gameStatus": room.game_status,
    }


def build_round_start(room: RoomRuntime, now_value: int) -> dict[str, Any] | None:
    round_ = room.current_round
    if round_ is None:
        return None
    return {
        "type": "round-start",
        "roundId": round_.id,
        "theme": round_.theme,
        "requirements": [serialize_requirement(req) for req in round_.requirements],
        "timeLeft": max(0, round_.ends_at - now_value),
        "duration": round_.duration_ms,
        "currentRound": room.current_round_number,
        "totalRounds": room.settings.total_rounds,
    }


def build_new_answer(answer: AnswerRecord) -> dict[str, Any]:
    return {"type": "new-answer", "answer": serialize_answer(answer)}


def build_round_end(room: RoomRuntime) -> dict[str, Any]:
    answers = room.current_round.answers if room.current_round else []
    return {
        "type": "round-end",
        "currentRound": room.current_round_number,
        "answers": [serialize_answer(answer) for answer in answers],
        "scores": build_player_summaries(room),
    }


def build_game_end(room: RoomRuntime) -> dict[str, Any]:
    return {
        "type": "game-end",
        "finalRanking": [serialize_ranking_entry(entry) for entry in room.final_ranking],
        "topThree": [serialize_ranking_entry(entry) for entry in top_ranking(room.final_ranking)],
        "totalRounds": room.settings.total_rounds,
    }


def build_ownership_transferred(room: RoomRuntime, message: str) -> dict[str, Any]:
    return {
        "type": "ownership-transferred",
        "newOwnerId": room.owner_id,
        "newOwnerUsername": room.owner_username,
        "message": message,
    }


def build_error_event(error: RoomError) -> dict[str, Any]:
    if isinstance(error, AnswerRejected):
        return {"type": "answer-rejected", "code": error.code, "reason": error.message}
    return {"type": "room-error", "code": error.code, "message": error.message}
