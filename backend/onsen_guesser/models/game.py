from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class StartSessionRequest(BaseModel):
    """Request to create a new game session."""
    user_id: Optional[str] = None
    round_count: Optional[int] = Field(default=None, ge=1)


class GuessRequest(BaseModel):
    """Request for submitting a guess."""
    lat: float
    lng: float
    time_spent: Optional[int] = Field(default=None, ge=0)


class MediaAssetResponse(BaseModel):
    """Image shown for a location."""
    id: int
    url: str
    thumbnail_url: Optional[str] = None
    alt: str
    width: Optional[int] = None
    height: Optional[int] = None
    is_primary: bool

    class Config:
        from_attributes = True


class ChallengeLocation(BaseModel):
    """Location fields safe to show before the round is answered."""
    id: int
    difficulty: str
    features: List[str] = []

    class Config:
        from_attributes = True


class ChallengeResponse(BaseModel):
    """Presentation payload for the round being played (GPS stripped)."""
    round_number: int
    location: ChallengeLocation
    image: MediaAssetResponse
    images: List[MediaAssetResponse]


class StartSessionResponse(BaseModel):
    """Response after starting a session."""
    session_id: str
    current_round: int
    total_rounds: int
    time_limit_sec: int
    current_challenge: ChallengeResponse


class CorrectLocation(BaseModel):
    """Where the photo was actually taken."""
    lat: float
    lng: float
    name: str
    prefecture: str
    city: str


class GuessResponse(BaseModel):
    """Response after submitting a guess or running out of time."""
    distance: Optional[float] = None
    score: int
    correct_location: CorrectLocation
    is_complete: bool
    is_time_up: bool = False
    total_score: int
    current_round: int
    total_rounds: int


class RoundResponse(BaseModel):
    """Response with round details."""
    round_index: int
    location_id: int
    media_asset_id: int
    guess_latitude: Optional[float] = None
    guess_longitude: Optional[float] = None
    distance_km: Optional[float] = None
    score: Optional[int] = None
    time_spent: Optional[int] = None
    is_time_up: bool = False
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GameSessionResponse(BaseModel):
    """Response with game session details."""
    id: str
    user_id: Optional[str] = None
    status: str
    current_round: int
    total_rounds: int
    total_score: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    rounds: List[RoundResponse]
    current_challenge: Optional[ChallengeResponse] = None


class LocationResponse(BaseModel):
    """Full location details, revealed once a round is over."""
    id: int
    name: str
    prefecture: str
    city: str
    address: Optional[str] = None
    latitude: float
    longitude: float
    description: Optional[str] = None
    features: Optional[List[str]] = []
    difficulty: str

    class Config:
        from_attributes = True


class RoundResultResponse(RoundResponse):
    """Round enriched with its location and image for the summary view."""
    location: Optional[LocationResponse] = None
    media_asset: Optional[MediaAssetResponse] = None


class GameResultsResponse(BaseModel):
    """Post-game summary."""
    id: str
    user_id: Optional[str] = None
    status: str
    current_round: int
    total_rounds: int
    total_score: int
    started_at: datetime
    completed_at: Optional[datetime] = None
    rounds: List[RoundResultResponse]
