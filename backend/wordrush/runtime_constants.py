from __future__ import annotations

THEMES: tuple[str, ...] = ("Hewan", "Buah", "Negara")
ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ROOM_CODE_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
INVITE_CODE_CHARS = ROOM_CODE_CHARS
ROOM_CODE_LENGTH = 6
INVITE_CODE_LENGTH = 6

TOTAL_ROUND_POINTS = 100
MIN_REQUIREMENT_POINTS = 10
MAX_FIRST_REQUIREMENT_POINTS = 60
TARGET_LENGTH_MIN = 3
TARGET_LENGTH_MAX = 10

REQUIREMENT_DESCRIPTIONS = {
    "prefix": "Starts with letter",
    "suffix": "Ends with letter",
    "length": "Letter count",
}

DEFAULT_ROUND_DURATION_SEC = 60
DEFAULT_MAX_ANSWERS_PER_ROUND = 3
DEFAULT_MIN_PLAYERS = 2
DEFAULT_MAX_PLAYERS = 10
DEFAULT_TOTAL_ROUNDS = 10

ROUND_DURATION_RANGE = (30, 300)
MAX_ANSWERS_RANGE = (1, 10)
MIN_PLAYERS_RANGE = (2, 10)
MAX_PLAYERS_RANGE = (2, 20)
TOTAL_ROUNDS_RANGE = (5, 20)

PLAYER_NAME_MAX_LENGTH = 24
ANSWER_MAX_LENGTH = 64
TOP_RANKING_SIZE = 3
