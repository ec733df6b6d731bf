from __future__ import annotations

import random
import re
import time
import uuid
from typing import Any

from .runtime_constants import (
    ANSWER_MAX_LENGTH,
    INVITE_CODE_CHARS,
    INVITE_CODE_LENGTH,
    PLAYER_NAME_MAX_LENGTH,
    ROOM_CODE_CHARS,
    ROOM_CODE_LENGTH,
)


def now_ms() -> int:
    return int(time.time() * 1000)


def random_id() -> str:
    return str(uuid.uuid4())


def random_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    return "".join(random.choice(ROOM_CODE_CHARS) for _ in range(max(4, length)))


def random_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    return "".join(random.choice(INVITE_CODE_CHARS) for _ in range(length))


def sanitize_room_id(raw: Any) -> str:
    value = str(raw or "").upper()
    filtered = "".join(ch for ch in value if ch.isalnum())
    return filtered[:16]


def sanitize_invite_code(raw: Any) -> str:
    value = str(raw or "").strip().upper()
    filtered = "".join(ch for ch in value if ch.isalnum())
    return filtered[:INVITE_CODE_LENGTH]


def sanitize_player_name(raw: Any) -> str:
    value = str(raw or "").strip()
    cleaned = re.sub(r"\s+", " ", value)[:PLAYER_NAME_MAX_LENGTH].strip()
    return cleaned or "Player"


def sanitize_answer(raw: Any) -> str:
    return re.sub(r"\s+", " ", str(raw or "")).strip()[:ANSWER_MAX_LENGTH]


def normalize_word(raw: str) -> str:
    return raw.strip().lower()
