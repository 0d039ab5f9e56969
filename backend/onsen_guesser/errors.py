"""
Error kinds and the tagged result type returned by every game operation.

Services raise ``GameError`` subclasses internally; ``guarded`` converts them
(and storage failures) into a ``Failure`` so callers only ever branch on
``result.ok``.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, ClassVar, Generic, Optional, TypeVar, Union

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    SESSION_NOT_FOUND = "session_not_found"
    GAME_ALREADY_COMPLETE = "game_already_complete"
    INSUFFICIENT_CONTENT = "insufficient_content"
    LOCATION_NOT_FOUND = "location_not_found"
    USER_NOT_FOUND = "user_not_found"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    VALIDATION = "validation"


class GameError(Exception):
    """Base class for errors scoped to one session or request."""
    kind: ClassVar[ErrorKind]
    default_message: ClassVar[str] = "Game error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class SessionNotFoundError(GameError):
    kind = ErrorKind.SESSION_NOT_FOUND
    default_message = "Game session not found"


class GameAlreadyCompleteError(GameError):
    kind = ErrorKind.GAME_ALREADY_COMPLETE
    default_message = "Game already completed"


class RoundAlreadyResolvedError(GameAlreadyCompleteError):
    """Another request resolved the round between our read and our write."""
    default_message = "Round already resolved"


class InsufficientContentError(GameError):
    kind = ErrorKind.INSUFFICIENT_CONTENT
    default_message = "Not enough eligible locations to build a game"


class LocationNotFoundError(GameError):
    kind = ErrorKind.LOCATION_NOT_FOUND
    default_message = "Location for this round no longer exists"


class UserNotFoundError(GameError):
    kind = ErrorKind.USER_NOT_FOUND
    default_message = "User not found"


class StorageUnavailableError(GameError):
    kind = ErrorKind.STORAGE_UNAVAILABLE
    default_message = "Storage is unavailable, please retry"


class ValidationError(GameError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid request"


@dataclass(frozen=True)
class Success(Generic[T]):
    data: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    ok: ClassVar[bool] = False

    @classmethod
    def from_error(cls, error: GameError) -> "Failure":
        return cls(kind=error.kind, message=error.message)


Result = Union[Success[T], Failure]


async def guarded(operation: str, awaitable: Awaitable[Any], timeout: Optional[float] = None) -> Result:
    """
    Run one service operation and fold its outcome into a ``Result``.

    Args:
        operation: Name used in log lines
        awaitable: The coroutine doing the work
        timeout: Upper bound in seconds for the whole unit of work

    Returns:
        Success with the coroutine's value, or Failure with the error kind
    """
    try:
        data = await asyncio.wait_for(awaitable, timeout)
    except GameError as e:
        logger.info("%s rejected: %s", operation, e.message)
        return Failure.from_error(e)
    except asyncio.TimeoutError:
        logger.error("%s timed out after %ss", operation, timeout)
        return Failure.from_error(StorageUnavailableError())
    except (SQLAlchemyError, OSError):
        logger.exception("%s failed in the storage layer", operation)
        return Failure.from_error(StorageUnavailableError())
    return Success(data)
