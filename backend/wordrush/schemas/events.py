from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from wordrush.runtime_constants import (
    ANSWER_MAX_LENGTH,
    MAX_ANSWERS_RANGE,
    MAX_PLAYERS_RANGE,
    MIN_PLAYERS_RANGE,
    PLAYER_NAME_MAX_LENGTH,
    ROUND_DURATION_RANGE,
    THEMES,
    TOTAL_ROUNDS_RANGE,
)


class PlayerData(BaseModel):
    username: str = Field(default="Player", max_length=PLAYER_NAME_MAX_LENGTH * 2)


class CreateRoomPayload(BaseModel):
    playerData: PlayerData = Field(default_factory=PlayerData)


class JoinRoomPayload(BaseModel):
    roomId: str = Field(min_length=1, max_length=16)
    playerData: PlayerData = Field(default_factory=PlayerData)


class JoinByInvitePayload(BaseModel):
    inviteCode: str = Field(min_length=1, max_length=16)
    playerData: PlayerData = Field(default_factory=PlayerData)


class JoinGamePayload(BaseModel):
    playerData: PlayerData = Field(default_factory=PlayerData)


class StartGamePayload(BaseModel):
    roomId: str | None = Field(default=None, max_length=16)


class GameSettingsPatch(BaseModel):
    roundDuration: int | None = Field(default=None, ge=ROUND_DURATION_RANGE[0], le=ROUND_DURATION_RANGE[1])
    maxAnswersPerRound: int | None = Field(default=None, ge=MAX_ANSWERS_RANGE[0], le=MAX_ANSWERS_RANGE[1])
    minPlayers: int | None = Field(default=None, ge=MIN_PLAYERS_RANGE[0], le=MIN_PLAYERS_RANGE[1])
    maxPlayers: int | None = Field(default=None, ge=MAX_PLAYERS_RANGE[0], le=MAX_PLAYERS_RANGE[1])
    totalRounds: int | None = Field(default=None, ge=TOTAL_ROUNDS_RANGE[0], le=TOTAL_ROUNDS_RANGE[1])
    themes: list[str] | None = Field(default=None, min_length=1)

    @field_validator("themes")
    @classmethod
    def validate_themes(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        unknown = [theme for theme in value if theme not in THEMES]
        if unknown:
            raise ValueError(f"Unknown themes: {', '.join(unknown)}")
        # Keep first occurrence order.
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def validate_player_bounds(self) -> "GameSettingsPatch":
        if (
            self.minPlayers is not None
            and self.maxPlayers is not None
            and self.maxPlayers < self.minPlayers
        ):
            raise ValueError("maxPlayers must be at least minPlayers")
        return self


class UpdateSettingsPayload(BaseModel):
    roomId: str | None = Field(default=None, max_length=16)
    settings: GameSettingsPatch


class TransferOwnershipPayload(BaseModel):
    roomId: str | None = Field(default=None, max_length=16)
    newOwnerId: str = Field(min_length=1, max_length=64)


class SubmitAnswerPayload(BaseModel):
    answer: str = Field(max_length=ANSWER_MAX_LENGTH * 2)

    @field_validator("answer")
    @classmethod
    def validate_answer(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Answer must not be empty")
        return stripped
