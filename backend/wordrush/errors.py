from __future__ import annotations


class RoomError(Exception):
    """Recoverable failure reported to the requesting connection only."""

    code = "ROOM_ERROR"
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class RoomNotFound(RoomError):
    code = "ROOM_NOT_FOUND"
    default_message = "Room not found"


class RoomFull(RoomError):
    code = "ROOM_FULL"
    default_message = "Room is full"


class InvalidInviteCode(RoomError):
    code = "INVALID_INVITE_CODE"
    default_message = "Invalid invite code"


class NotInRoom(RoomError):
    code = "NOT_IN_ROOM"
    default_message = "Not in room"


class NotRoomOwner(RoomError):
    code = "NOT_ROOM_OWNER"
    default_message = "Only the room owner can do that"


class BelowMinimumPlayers(RoomError):
    code = "BELOW_MINIMUM_PLAYERS"
    default_message = "Not enough players to start"


class GameInProgress(RoomError):
    code = "GAME_IN_PROGRESS"
    default_message = "Game is already running"


class InvalidSettings(RoomError):
    code = "INVALID_SETTINGS"
    default_message = "Invalid game settings"


class AnswerRejected(RoomError):
    """Base for rejections of a single submitted answer."""


class NoActiveRound(AnswerRejected):
    code = "NO_ACTIVE_ROUND"
    default_message = "No round is running"


class AnswerLimitReached(AnswerRejected):
    code = "ANSWER_LIMIT_REACHED"
    default_message = "Answer limit reached for this round"


class DuplicateAnswer(AnswerRejected):
    code = "DUPLICATE_ANSWER"
    default_message = "Answer already taken"


class ValidationBackendUnavailable(RoomError):
    code = "VALIDATION_BACKEND_UNAVAILABLE"
    default_message = "Word validation is temporarily unavailable"


class InvalidPayload(RoomError):
    code = "INVALID_PAYLOAD"
    default_message = "Malformed message"


class RoomClosed(RoomError):
    code = "ROOM_CLOSED"
    default_message = "Room closed"
