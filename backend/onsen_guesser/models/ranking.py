from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class RankedUser(BaseModel):
    """User fields shown on a leaderboard."""
    id: str
    name: str

    class Config:
        from_attributes = True


class DailyRankingEntry(BaseModel):
    rank: int
    user: RankedUser
    session_id: str
    score: int
    rounds_completed: int
    average_distance: Optional[float] = None
    completed_at: datetime
    date: str


class WeeklyRankingEntry(BaseModel):
    rank: int
    user: RankedUser
    total_score: int
    total_games: int
    average_score: int
    best_score: int
    week_start: str


class AllTimeRankingEntry(BaseModel):
    rank: int
    user: RankedUser
    best_score: int
    total_games: int
    total_score: int
    average_score: float


class TodayStats(BaseModel):
    date: str
    total_games: int
    average_score: int
    best_score: int
    unique_players: int


class DailyActivity(BaseModel):
    date: str
    games: int


class GlobalStats(BaseModel):
    total_users: int
    total_games: int
    average_score: int
    best_score: int
    recent_activity: List[DailyActivity]


class RankingEntryResponse(BaseModel):
    """Stored snapshot of one completed session."""
    id: int
    user_id: str
    session_id: str
    score: int
    rounds_completed: int
    average_distance: Optional[float] = None
    completed_at: datetime
    rank_date: str

    class Config:
        from_attributes = True
