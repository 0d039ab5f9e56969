from typing import Any

from fastapi import HTTPException, Request, status

from .config import Settings
from .errors import ErrorKind, Result
from .services.engine import SessionEngine
from .services.stats import StatsAggregator
from .services.users import UserService

ERROR_STATUS = {
    ErrorKind.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INSUFFICIENT_CONTENT: status.HTTP_404_NOT_FOUND,
    ErrorKind.GAME_ALREADY_COMPLETE: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.LOCATION_NOT_FOUND: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.STORAGE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def unwrap(result: Result) -> Any:
    """Return the payload of a successful result or raise the matching HTTP error."""
    if result.ok:
        return result.data
    raise HTTPException(status_code=ERROR_STATUS[result.kind], detail=result.message)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_engine(request: Request) -> SessionEngine:
    return request.app.state.session_engine


def get_stats(request: Request) -> StatsAggregator:
    return request.app.state.stats


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service
