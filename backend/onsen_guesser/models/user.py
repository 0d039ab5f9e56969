from pydantic import BaseModel, EmailStr
from typing import Optional, List
from datetime import datetime


class UserCreate(BaseModel):
    """Schema for guest creation. An email makes it find-or-create."""
    name: Optional[str] = None
    email: Optional[EmailStr] = None


class UserUpdate(BaseModel):
    """Schema for renaming a user."""
    name: str


class AvatarUpdate(BaseModel):
    """Schema for setting or clearing a user's avatar."""
    avatar: Optional[str] = None


class UserResponse(BaseModel):
    """Schema for user response."""
    id: str
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None
    total_games: int
    total_score: int
    best_score: int
    average_score: float
    created_at: datetime

    class Config:
        from_attributes = True


class RecentGame(BaseModel):
    """A completed session in a user's history."""
    session_id: str
    total_score: int
    total_rounds: int
    completed_at: Optional[datetime] = None
    rank_date: Optional[str] = None
    average_distance: Optional[float] = None


class UserStatsResponse(BaseModel):
    """Personal stats page."""
    user: UserResponse
    recent_games: List[RecentGame]
    current_rank: Optional[int] = None
