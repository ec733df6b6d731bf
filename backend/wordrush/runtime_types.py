from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Literal, cast

from .runtime_constants import (
    DEFAULT_MAX_ANSWERS_PER_ROUND,
    DEFAULT_MAX_PLAYERS,
    DEFAULT_MIN_PLAYERS,
    DEFAULT_ROUND_DURATION_SEC,
    DEFAULT_TOTAL_ROUNDS,
    THEMES,
)

RequirementType = Literal["prefix", "suffix", "length"]
GameStatus = Literal["waiting", "playing", "finished"]
# "round-ended" is the transient gap between a round's end and the next decision.
RoomState = Literal["waiting", "playing", "round-ended", "finished"]


@dataclass(frozen=True)
class Requirement:
    type: RequirementType
    value: str | int
    points: int
    description: str = ""


@dataclass(frozen=True)
class AnswerRecord:
    player_id: str
    username: str
    answer: str
    is_valid: bool
    points: int
    met_requirements: tuple[RequirementType, ...]
    timestamp: int


@dataclass
class Round:
    id: str
    theme: str
    requirements: tuple[Requirement, ...]
    start_time: int
    duration_ms: int
    answers: list[AnswerRecord] = field(default_factory=list)

    @property
    def ends_at(self) -> int:
        return self.start_time + self.duration_ms


@dataclass(frozen=True)
class LexiconEntry:
    word: str
    theme: str
    normalized: str
    length: int
    first_letter: str
    last_letter: str


@dataclass
class GameSettings:
    round_duration: int = DEFAULT_ROUND_DURATION_SEC
    max_answers_per_round: int = DEFAULT_MAX_ANSWERS_PER_ROUND
    min_players: int = DEFAULT_MIN_PLAYERS
    max_players: int = DEFAULT_MAX_PLAYERS
    total_rounds: int = DEFAULT_TOTAL_ROUNDS
    themes: list[str] = field(default_factory=lambda: list(THEMES))


@dataclass
class PlayerConnection:
    conn_id: str
    username: str
    websocket: Any = None
    score: int = 0
    round_answers: int = 0
    last_activity: int = 0


@dataclass(frozen=True)
class RankingEntry:
    player_id: str
    username: str
    total_score: int
    rank: int


@dataclass
class RoomRuntime:
    room_id: str
    invite_code: str
    owner_id: str | None = None
    owner_username: str | None = None
    settings: GameSettings = field(default_factory=GameSettings)
    # Insertion order is join order; ownership hand-over relies on it.
    players: dict[str, PlayerConnection] = field(default_factory=dict)
    current_round_number: int = 1
    state: RoomState = "waiting"
    is_active: bool = False
    current_round: Round | None = None
    final_ranking: list[RankingEntry] = field(default_factory=list)
    last_activity: int = 0
    generation: int = 0
    timer: asyncio.Task[None] | None = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def game_status(self) -> GameStatus:
        if self.state == "round-ended":
            return "playing"
        return cast(GameStatus, self.state)
