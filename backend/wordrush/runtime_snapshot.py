from __future__ import annotations

from typing import Any, cast

from .runtime_constants import THEMES
from .runtime_types import (
    AnswerRecord,
    GameSettings,
    PlayerConnection,
    RankingEntry,
    Requirement,
    RequirementType,
    RoomRuntime,
    RoomState,
    Round,
)

ROOM_STATES = {"waiting", "playing", "round-ended", "finished"}
REQUIREMENT_TYPES = {"prefix", "suffix", "length"}


def as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def serialize_settings(settings: GameSettings) -> dict[str, Any]:
    return {
        "roundDuration": settings.round_duration,
        "maxAnswersPerRound": settings.max_answers_per_round,
        "minPlayers": settings.min_players,
        "maxPlayers": settings.max_players,
        "totalRounds": settings.total_rounds,
        "themes": list(settings.themes),
    }


def serialize_requirement(requirement: Requirement) -> dict[str, Any]:
    return {
        "type": requirement.type,
        "description": requirement.description,
        "value": requirement.value,
        "points": requirement.points,
    }


def serialize_answer(answer: AnswerRecord) -> dict[str, Any]:
    return {
        "playerId": answer.player_id,
        "username": answer.username,
        "answer": answer.answer,
        "isValid": answer.is_valid,
        "points": answer.points,
        "metRequirements": list(answer.met_requirements),
        "timestamp": answer.timestamp,
    }


def serialize_round(round_: Round) -> dict[str, Any]:
    return {
        "id": round_.id,
        "theme": round_.theme,
        "requirements": [serialize_requirement(req) for req in round_.requirements],
        "startTime": round_.start_time,
        "duration": round_.duration_ms,
        "answers": [serialize_answer(answer) for answer in round_.answers],
    }


def serialize_ranking_entry(entry: RankingEntry) -> dict[str, Any]:
    return {
        "playerId": entry.player_id,
        "username": entry.username,
        "totalScore": entry.total_score,
        "rank": entry.rank,
    }


def serialize_snapshot(room: RoomRuntime) -> dict[str, Any]:
    return {
        "roomId": room.room_id,
        "inviteCode": room.invite_code,
        "ownerId": room.owner_id,
        "ownerUsername": room.owner_username,
        "players": [
            {
                "socketId": player.conn_id,
                "username": player.username,
                "score": player.score,
                "roundAnswers": player.round_answers,
                "lastActivity": player.last_activity,
            }
            for player in room.players.values()
        ],
        "gameSettings": serialize_settings(room.settings),
        "currentRoundNumber": room.current_round_number,
        "gameStatus": room.game_status,
        "roomState": room.state,
        "isActive": room.is_active,
        "currentRound": serialize_round(room.current_round) if room.current_round else None,
        "finalRanking": [serialize_ranking_entry(entry) for entry in room.final_ranking],
        "lastActivity": room.last_activity,
    }


def parse_settings(raw: Any) -> GameSettings:
    if not isinstance(raw, dict):
        return GameSettings()
    defaults = GameSettings()
    themes = [str(theme) for theme in raw.get("themes") or [] if str(theme) in THEMES]
    return GameSettings(
        round_duration=as_int(raw.get("roundDuration"), defaults.round_duration),
        max_answers_per_round=as_int(raw.get("maxAnswersPerRound"), defaults.max_answers_per_round),
        min_players=as_int(raw.get("minPlayers"), defaults.min_players),
        max_players=as_int(raw.get("maxPlayers"), defaults.max_players),
        total_rounds=as_int(raw.get("totalRounds"), defaults.total_rounds),
        themes=themes or list(defaults.themes),
    )


def parse_requirement(raw: Any) -> Requirement | None:
    if not isinstance(raw, dict) or raw.get("type") not in REQUIREMENT_TYPES:
        return None
    value = raw.get("value")
    if raw["type"] == "length":
        value = as_int(value)
    else:
        value = str(value or "")
    return Requirement(
        type=cast(RequirementType, raw["type"]),
        value=value,
        points=as_int(raw.get("points")),
        description=str(raw.get("description") or ""),
    )


def parse_answer(raw: Any) -> AnswerRecord | None:
    if not isinstance(raw, dict):
        return None
    met = tuple(
        cast(RequirementType, item)
        for item in raw.get("metRequirements") or []
        if item in REQUIREMENT_TYPES
    )
    return AnswerRecord(
        player_id=str(raw.get("playerId") or ""),
        username=str(raw.get("username") or ""),
        answer=str(raw.get("answer") or ""),
        is_valid=bool(raw.get("isValid")),
        points=as_int(raw.get("points")),
        met_requirements=met,
        timestamp=as_int(raw.get("timestamp")),
    )


def parse_round(raw: Any) -> Round | None:
    if not isinstance(raw, dict) or not raw.get("theme"):
        return None
    requirements = tuple(
        req for req in (parse_requirement(item) for item in raw.get("requirements") or []) if req
    )
    answers = [
        answer for answer in (parse_answer(item) for item in raw.get("answers") or []) if answer
    ]
    return Round(
        id=str(raw.get("id") or ""),
        theme=str(raw["theme"]),
        requirements=requirements,
        start_time=as_int(raw.get("startTime")),
        duration_ms=as_int(raw.get("duration")),
        answers=answers,
    )


def parse_ranking(raw: Any) -> list[RankingEntry]:
    if not isinstance(raw, list):
        return []
    return [
        RankingEntry(
            player_id=str(item.get("playerId") or ""),
            username=str(item.get("username") or ""),
            total_score=as_int(item.get("totalScore")),
            rank=as_int(item.get("rank")),
        )
        for item in raw
        if isinstance(item, dict)
    ]


def room_from_snapshot(state: dict[str, Any]) -> RoomRuntime:
    room_state = state.get("roomState") or state.get("gameStatus")
    players: dict[str, PlayerConnection] = {}
    for item in state.get("players") or []:
        if not isinstance(item, dict) or not item.get("socketId"):
            continue
        conn_id = str(item["socketId"])
        players[conn_id] = PlayerConnection(
            conn_id=conn_id,
            username=str(item.get("username") or ""),
            score=as_int(item.get("score")),
            round_answers=as_int(item.get("roundAnswers")),
            last_activity=as_int(item.get("lastActivity")),
        )

    return RoomRuntime(
        room_id=str(state.get("roomId") or ""),
        invite_code=str(state.get("inviteCode") or ""),
        owner_id=str(state["ownerId"]) if state.get("ownerId") else None,
        owner_username=str(state["ownerUsername"]) if state.get("ownerUsername") else None,
        settings=parse_settings(state.get("gameSettings")),
        players=players,
        current_round_number=max(1, as_int(state.get("currentRoundNumber"), 1)),
        state=cast(RoomState, room_state) if room_state in ROOM_STATES else "waiting",
        is_active=bool(state.get("isActive")),
        current_round=parse_round(state.get("currentRound")),
        final_ranking=parse_ranking(state.get("finalRanking")),
        last_activity=as_int(state.get("lastActivity")),
    )
