import logging
from datetime import date as date_type, datetime, timedelta
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import Float, case, cast, desc, distinct, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database.models import GameRound, GameSession, RankingEntry, SessionStatus, User
from ..errors import Result, SessionNotFoundError, ValidationError, guarded
from ..models.ranking import (
    AllTimeRankingEntry, DailyActivity, DailyRankingEntry, GlobalStats, RankedUser,
    RankingEntryResponse, TodayStats, WeeklyRankingEntry,
)
from .scoring import round_half_up

logger = logging.getLogger(__name__)


def dense_rank(rows: Iterable[Any], key: Callable[[Any], Tuple]) -> Iterator[Tuple[int, Any]]:
    """Yield (rank, row) for rows already sorted by ``key``; equal keys share a rank."""
    rank = 0
    previous = None
    for row in rows:
        current = key(row)
        if rank == 0 or current != previous:
            rank += 1
            previous = current
        yield rank, row


class StatsAggregator:
    """Leaderboards and per-user aggregates derived from completed sessions."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Callable[[], datetime] = datetime.now,
        weekly_window_days: int = 7,
        timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.weekly_window_days = weekly_window_days
        self.timeout = timeout

    def today(self) -> str:
        return self.clock().date().isoformat()

    def week_start(self) -> str:
        return (self.clock().date() - timedelta(days=self.weekly_window_days)).isoformat()

    # Completion

    async def apply_completion(
        self, db: AsyncSession, game: GameSession, completed_at: datetime
    ) -> Optional[RankingEntry]:
        """
        Insert the ranking entry for a completed session and fold its score
        into the owner's aggregates, inside the caller's transaction.

        Calling it again for the same session returns the existing entry
        without touching the user row.

        Returns:
            The ranking entry, or None for guest sessions
        """
        if game.user_id is None:
            return None

        existing = await db.scalar(select(RankingEntry).where(RankingEntry.session_id == game.id))
        if existing is not None:
            logger.info("Session %s already has ranking entry %s", game.id, existing.id)
            return existing

        score = await db.scalar(
            select(func.coalesce(func.sum(GameRound.score), 0)).where(GameRound.game_session_id == game.id)
        )
        average_distance = await db.scalar(
            select(func.avg(GameRound.distance_km)).where(
                GameRound.game_session_id == game.id,
                GameRound.distance_km.is_not(None),
            )
        )

        entry = RankingEntry(
            user_id=game.user_id,
            session_id=game.id,
            score=score,
            rounds_completed=game.round_count,
            average_distance=average_distance,
            completed_at=completed_at,
            rank_date=completed_at.date().isoformat(),
        )
        db.add(entry)
        await db.flush()

        # Single UPDATE so concurrent completions by one user cannot lose increments
        updated = await db.execute(
            update(User)
            .where(User.id == game.user_id)
            .values(
                total_games=User.total_games + 1,
                total_score=User.total_score + score,
                best_score=case((User.best_score < score, score), else_=User.best_score),
                average_score=cast(User.total_score + score, Float) / (User.total_games + 1),
                updated_at=completed_at,
            )
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            logger.warning("User %s missing while recording session %s", game.user_id, game.id)

        logger.info("Recorded ranking entry for session %s: user=%s score=%s", game.id, game.user_id, score)
        return entry

    async def _record_completion(self, session_id: str) -> Optional[RankingEntryResponse]:
        async with self.session_factory() as db:
            async with db.begin():
                game = await db.get(GameSession, session_id)
                if game is None:
                    raise SessionNotFoundError()
                if game.status != SessionStatus.COMPLETED.value:
                    raise ValidationError("Session is not completed yet")
                entry = await self.apply_completion(db, game, game.completed_at or self.clock())
                if entry is None:
                    return None
                return RankingEntryResponse.model_validate(entry)

    async def record_completion(self, session_id: str) -> Result:
        """Create the ranking entry for a completed session; safe to retry."""
        return await guarded("record_completion", self._record_completion(session_id), self.timeout)

    # Leaderboards

    def _check_limit(self, limit: int) -> None:
        if limit < 1:
            raise ValidationError("limit must be at least 1")

    async def _daily_rankings(self, date: Optional[str], limit: int) -> List[DailyRankingEntry]:
        self._check_limit(limit)
        target_date = date or self.today()
        try:
            # rank_date is stored as YYYY-MM-DD; compact forms must match it too
            target_date = date_type.fromisoformat(target_date).isoformat()
        except ValueError:
            raise ValidationError(f"Invalid date '{target_date}', expected YYYY-MM-DD")

        async with self.session_factory() as db:
            result = await db.execute(
                select(RankingEntry, User)
                .join(User, RankingEntry.user_id == User.id)
                .where(RankingEntry.rank_date == target_date)
                .order_by(
                    desc(RankingEntry.score),
                    desc(RankingEntry.rounds_completed),
                    RankingEntry.completed_at,
                )
                .limit(limit)
            )
            rows = result.all()

        return [
            DailyRankingEntry(
                rank=rank,
                user=RankedUser.model_validate(user),
                session_id=entry.session_id,
                score=entry.score,
                rounds_completed=entry.rounds_completed,
                average_distance=entry.average_distance,
                completed_at=entry.completed_at,
                date=target_date,
            )
            for rank, (entry, user) in dense_rank(rows, key=lambda row: (row[0].score, row[0].rounds_completed))
        ]

    async def daily_rankings(self, date: Optional[str] = None, limit: int = 10) -> Result:
        """Top entries for one calendar day (today when ``date`` is omitted)."""
        return await guarded("daily_rankings", self._daily_rankings(date, limit), self.timeout)

    async def _weekly_rankings(self, limit: int) -> List[WeeklyRankingEntry]:
        self._check_limit(limit)
        week_start = self.week_start()

        total_score = func.sum(RankingEntry.score).label("total_score")
        total_games = func.count(RankingEntry.id).label("total_games")
        avg_score = func.avg(RankingEntry.score).label("avg_score")
        best_score = func.max(RankingEntry.score).label("best_score")

        async with self.session_factory() as db:
            result = await db.execute(
                select(User, total_score, total_games, avg_score, best_score)
                .join(RankingEntry, RankingEntry.user_id == User.id)
                .where(RankingEntry.rank_date >= week_start)
                .group_by(User.id)
                .order_by(desc(total_score), desc(avg_score), User.id)
                .limit(limit)
            )
            rows = result.all()

        return [
            WeeklyRankingEntry(
                rank=rank,
                user=RankedUser.model_validate(row.User),
                total_score=row.total_score,
                total_games=row.total_games,
                average_score=round_half_up(row.avg_score),
                best_score=row.best_score,
                week_start=week_start,
            )
            for rank, row in dense_rank(rows, key=lambda row: (row.total_score, row.avg_score))
        ]

    async def weekly_rankings(self, limit: int = 10) -> Result:
        """Users ranked by summed score over the trailing window."""
        return await guarded("weekly_rankings", self._weekly_rankings(limit), self.timeout)

    async def _all_time_rankings(self, limit: int) -> List[AllTimeRankingEntry]:
        self._check_limit(limit)
        async with self.session_factory() as db:
            result = await db.execute(
                select(User)
                .where(User.total_games > 0)
                .order_by(desc(User.best_score), desc(User.total_games), User.id)
                .limit(limit)
            )
            users = result.scalars().all()

        return [
            AllTimeRankingEntry(
                rank=rank,
                user=RankedUser.model_validate(user),
                best_score=user.best_score,
                total_games=user.total_games,
                total_score=user.total_score,
                average_score=user.average_score,
            )
            for rank, user in dense_rank(users, key=lambda user: (user.best_score, user.total_games))
        ]

    async def all_time_rankings(self, limit: int = 10) -> Result:
        """Users ranked by best single-game score."""
        return await guarded("all_time_rankings", self._all_time_rankings(limit), self.timeout)

    # Aggregates

    async def _today_stats(self) -> TodayStats:
        today = self.today()
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    func.count(RankingEntry.id),
                    func.avg(RankingEntry.score),
                    func.max(RankingEntry.score),
                    func.count(distinct(RankingEntry.user_id)),
                ).where(RankingEntry.rank_date == today)
            )
            total_games, avg_score, best_score, unique_players = result.one()

        return TodayStats(
            date=today,
            total_games=total_games or 0,
            average_score=round_half_up(avg_score or 0),
            best_score=best_score or 0,
            unique_players=unique_players or 0,
        )

    async def today_stats(self) -> Result:
        return await guarded("today_stats", self._today_stats(), self.timeout)

    async def _global_stats(self) -> GlobalStats:
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    func.count(User.id),
                    func.sum(User.total_games),
                    func.avg(User.average_score),
                    func.max(User.best_score),
                ).where(User.total_games > 0)
            )
            total_users, total_games, avg_score, best_score = result.one()

            games = func.count(RankingEntry.id).label("games")
            activity = await db.execute(
                select(RankingEntry.rank_date, games)
                .where(RankingEntry.rank_date >= self.week_start())
                .group_by(RankingEntry.rank_date)
                .order_by(RankingEntry.rank_date)
            )
            recent_activity = [DailyActivity(date=row.rank_date, games=row.games) for row in activity]

        return GlobalStats(
            total_users=total_users or 0,
            total_games=total_games or 0,
            average_score=round_half_up(avg_score or 0),
            best_score=best_score or 0,
            recent_activity=recent_activity,
        )

    async def global_stats(self) -> Result:
        return await guarded("global_stats", self._global_stats(), self.timeout)
