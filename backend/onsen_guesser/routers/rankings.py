from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ..config import Settings
from ..dependencies import get_app_settings, get_stats, unwrap
from ..models.ranking import (
    AllTimeRankingEntry, DailyRankingEntry, GlobalStats, TodayStats, WeeklyRankingEntry,
)
from ..services.stats import StatsAggregator

router = APIRouter(prefix="/rankings", tags=["Rankings"])


def resolve_limit(limit: Optional[int], settings: Settings) -> int:
    if limit is None:
        return settings.DEFAULT_RANKING_LIMIT
    return min(limit, settings.MAX_RANKING_LIMIT)


@router.get("/daily", response_model=List[DailyRankingEntry])
async def get_daily_rankings(
    date: Optional[str] = Query(None, description="Calendar day as YYYY-MM-DD, defaults to today"),
    limit: Optional[int] = Query(None, ge=1),
    stats: StatsAggregator = Depends(get_stats),
    settings: Settings = Depends(get_app_settings)
):
    """Get the best games of one day."""
    return unwrap(await stats.daily_rankings(date, resolve_limit(limit, settings)))


@router.get("/weekly", response_model=List[WeeklyRankingEntry])
async def get_weekly_rankings(
    limit: Optional[int] = Query(None, ge=1),
    stats: StatsAggregator = Depends(get_stats),
    settings: Settings = Depends(get_app_settings)
):
    """Get players ranked by their summed score over the last week."""
    return unwrap(await stats.weekly_rankings(resolve_limit(limit, settings)))


@router.get("/all-time", response_model=List[AllTimeRankingEntry])
async def get_all_time_rankings(
    limit: Optional[int] = Query(None, ge=1),
    stats: StatsAggregator = Depends(get_stats),
    settings: Settings = Depends(get_app_settings)
):
    """Get players ranked by their best game."""
    return unwrap(await stats.all_time_rankings(resolve_limit(limit, settings)))


@router.get("/today", response_model=TodayStats)
async def get_today_stats(stats: StatsAggregator = Depends(get_stats)):
    """Get today's game count, average and best score."""
    return unwrap(await stats.today_stats())


@router.get("/global", response_model=GlobalStats)
async def get_global_stats(stats: StatsAggregator = Depends(get_stats)):
    """Get totals across all players plus recent daily activity."""
    return unwrap(await stats.global_stats())
