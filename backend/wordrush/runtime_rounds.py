from __future__ import annotations

import logging
import random
from typing import Sequence

from .runtime_constants import (
    ALPHABET,
    MAX_FIRST_REQUIREMENT_POINTS,
    MIN_REQUIREMENT_POINTS,
    REQUIREMENT_DESCRIPTIONS,
    TARGET_LENGTH_MAX,
    TARGET_LENGTH_MIN,
    THEMES,
    TOTAL_ROUND_POINTS,
)
from .runtime_types import Requirement, Round
from .runtime_utils import now_ms, random_id

logger = logging.getLogger(__name__)


def split_points(rng: random.Random | None = None) -> tuple[int, int, int]:
    """Split 100 points into three shares of at least 10 each.

    The first share is drawn from [10, 60], the second from what keeps the
    third at or above the minimum, and the third takes the remainder so the
    total is exact.
    """
    rng = rng or random
    first = rng.randint(MIN_REQUIREMENT_POINTS, MAX_FIRST_REQUIREMENT_POINTS)
    second = rng.randint(
        MIN_REQUIREMENT_POINTS,
        TOTAL_ROUND_POINTS - first - MIN_REQUIREMENT_POINTS,
    )
    third = TOTAL_ROUND_POINTS - first - second
    return first, second, third


def build_requirements(
    prefix_letter: str,
    suffix_letter: str,
    target_length: int,
    points: tuple[int, int, int],
) -> tuple[Requirement, ...]:
    requirements = [
        Requirement("prefix", prefix_letter, points[0], REQUIREMENT_DESCRIPTIONS["prefix"]),
        Requirement("suffix", suffix_letter, points[1], REQUIREMENT_DESCRIPTIONS["suffix"]),
        Requirement("length", target_length, points[2], REQUIREMENT_DESCRIPTIONS["length"]),
    ]
    # Display order only; scoring never depends on it.
    requirements.sort(key=lambda item: item.points, reverse=True)
    return tuple(requirements)


def generate_round(
    themes: Sequence[str],
    duration_ms: int,
    rng: random.Random | None = None,
) -> Round:
    rng = rng or random
    theme = rng.choice(list(themes) or list(THEMES))
    requirements = build_requirements(
        rng.choice(ALPHABET),
        rng.choice(ALPHABET),
        rng.randint(TARGET_LENGTH_MIN, TARGET_LENGTH_MAX),
        split_points(rng),
    )
    round_ = Round(
        id=random_id(),
        theme=theme,
        requirements=requirements,
        start_time=now_ms(),
        duration_ms=int(duration_ms),
    )
    logger.debug(
        "Generated round theme=%s requirements=%s",
        theme,
        ", ".join(f"{req.type}:{req.value}({req.points})" for req in requirements),
    )
    return round_
