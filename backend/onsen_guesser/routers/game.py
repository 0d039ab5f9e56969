from fastapi import APIRouter, Depends, status
from typing import Optional

from ..dependencies import get_session_engine, unwrap
from ..models.game import (
    GameResultsResponse, GameSessionResponse, GuessRequest, GuessResponse,
    StartSessionRequest, StartSessionResponse,
)
from ..services.engine import SessionEngine

router = APIRouter(prefix="/game", tags=["Game"])


@router.post("/sessions", response_model=StartSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    game_data: Optional[StartSessionRequest] = None,
    engine: SessionEngine = Depends(get_session_engine)
):
    """Start a new game session. The body is optional."""
    game_data = game_data or StartSessionRequest()
    return unwrap(await engine.create(game_data.user_id, game_data.round_count))


@router.get("/sessions/{session_id}", response_model=GameSessionResponse)
async def get_session(
    session_id: str,
    engine: SessionEngine = Depends(get_session_engine)
):
    """Get a session and the photo for its current round (without GPS coordinates)."""
    return unwrap(await engine.get_current_round(session_id))


@router.post("/sessions/{session_id}/guess", response_model=GuessResponse)
async def submit_guess(
    session_id: str,
    guess: GuessRequest,
    engine: SessionEngine = Depends(get_session_engine)
):
    """Submit a guess for the current round."""
    return unwrap(await engine.submit_guess(session_id, guess.lat, guess.lng, guess.time_spent))


@router.post("/sessions/{session_id}/time-expired", response_model=GuessResponse)
async def time_expired(
    session_id: str,
    engine: SessionEngine = Depends(get_session_engine)
):
    """Close the current round with zero points when the round clock runs out."""
    return unwrap(await engine.time_expired(session_id))


@router.get("/sessions/{session_id}/results", response_model=GameResultsResponse)
async def get_results(
    session_id: str,
    engine: SessionEngine = Depends(get_session_engine)
):
    """Get all rounds with their locations for the summary screen."""
    return unwrap(await engine.get_results(session_id))
