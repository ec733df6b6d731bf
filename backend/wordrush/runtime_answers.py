from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from .errors import AnswerLimitReached, DuplicateAnswer, NoActiveRound, ValidationBackendUnavailable
from .runtime_types import AnswerRecord, Requirement, RequirementType, Round
from .runtime_utils import normalize_word, now_ms, sanitize_answer
from .validation_cache import WordCheck, matched_requirements

if TYPE_CHECKING:
    from .runtime import GameRuntime
    from .runtime_types import PlayerConnection, RoomRuntime

logger = logging.getLogger(__name__)


def score_word(
    check: WordCheck,
    requirements: Iterable[Requirement],
) -> tuple[bool, int, tuple[RequirementType, ...]]:
    """Return (is_valid, points, met requirement types) for a looked-up word.

    Every requirement the word satisfies adds its own share, not just the
    first one that made the word valid.
    """
    requirements = tuple(requirements)
    if check.entry is None or not check.satisfies_any:
        return False, 0, ()
    met = matched_requirements(check.entry, requirements)
    if not met:
        return False, 0, ()
    points = sum(req.points for req in requirements if req.type in met)
    return True, points, met


def is_duplicate(round_: Round, normalized: str) -> bool:
    return any(
        answer.is_valid and normalize_word(answer.answer) == normalized
        for answer in round_.answers
    )


def active_round(room: "RoomRuntime") -> Round:
    if room.state != "playing" or room.current_round is None:
        raise NoActiveRound()
    return room.current_round


async def submit_answer(
    runtime: "GameRuntime",
    room: "RoomRuntime",
    player: "PlayerConnection",
    raw_answer: str,
) -> AnswerRecord:
    round_ = active_round(room)

    if player.round_answers >= room.settings.max_answers_per_round:
        raise AnswerLimitReached()

    answer = sanitize_answer(raw_answer)
    normalized = normalize_word(answer)
    if is_duplicate(round_, normalized):
        raise DuplicateAnswer()

    try:
        check = await runtime.validation.check(round_.theme, normalized, round_.requirements)
    except ValidationBackendUnavailable:
        runtime._increment_stat("validationFailures")
        logger.warning(
            "[VALIDATION_DEGRADED] room=%s player=%s word=%s",
            room.room_id,
            player.conn_id,
            normalized,
        )
        check = WordCheck(None, False)

    is_valid, points, met = score_word(check, round_.requirements)
    timestamp = now_ms()
    record = AnswerRecord(
        player_id=player.conn_id,
        username=player.username,
        answer=answer,
        is_valid=is_valid,
        points=points,
        met_requirements=met,
        timestamp=timestamp,
    )

    round_.answers.append(record)
    player.score += points
    player.round_answers += 1
    player.last_activity = timestamp
    return record
