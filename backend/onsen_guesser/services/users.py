import logging
import random
import uuid
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import and_, delete, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database.models import GameSession, RankingEntry, SessionStatus, User
from ..errors import Result, UserNotFoundError, ValidationError, guarded
from ..models.user import RecentGame, UserResponse, UserStatsResponse

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
RECENT_GAMES_LIMIT = 10


def clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError("Name is too long")
    return name


class UserService:
    """Guest accounts and personal stats."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Callable[[], datetime] = datetime.now,
        timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.timeout = timeout
        self.rng = rng or random.Random()

    async def _get_or_raise(self, db: AsyncSession, user_id: str) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def _create_guest(self, name: Optional[str], email: Optional[str]) -> UserResponse:
        if name is not None:
            name = clean_name(name)
        elif email:
            name = clean_name(email.split("@")[0][:MAX_NAME_LENGTH])
        else:
            name = f"Guest{self.rng.randrange(10000)}"
        async with self.session_factory() as db:
            async with db.begin():
                if email:
                    existing = await db.scalar(select(User).where(User.email == email))
                    if existing is not None:
                        return UserResponse.model_validate(existing)

                now = self.clock()
                user = User(
                    id=str(uuid.uuid4()),
                    name=name,
                    email=email,
                    total_games=0,
                    total_score=0,
                    best_score=0,
                    average_score=0.0,
                    created_at=now,
                    updated_at=now,
                )
                db.add(user)

        logger.info("Created user %s (%s)", user.id, user.name)
        return UserResponse.model_validate(user)

    async def create_guest(self, name: Optional[str] = None, email: Optional[str] = None) -> Result:
        """Create a guest, or return the user already registered with ``email``."""
        return await guarded("create_guest", self._create_guest(name, email), self.timeout)

    async def _get_user(self, user_id: str) -> UserResponse:
        async with self.session_factory() as db:
            return UserResponse.model_validate(await self._get_or_raise(db, user_id))

    async def get_user(self, user_id: str) -> Result:
        return await guarded("get_user", self._get_user(user_id), self.timeout)

    async def _rename_user(self, user_id: str, name: str) -> UserResponse:
        name = clean_name(name)
        async with self.session_factory() as db:
            async with db.begin():
                user = await self._get_or_raise(db, user_id)
                user.name = name
                user.updated_at = self.clock()
        return UserResponse.model_validate(user)

    async def rename_user(self, user_id: str, name: str) -> Result:
        return await guarded("rename_user", self._rename_user(user_id, name), self.timeout)

    async def _reset_stats(self, user_id: str) -> UserResponse:
        async with self.session_factory() as db:
            async with db.begin():
                user = await self._get_or_raise(db, user_id)
                user.total_games = 0
                user.total_score = 0
                user.best_score = 0
                user.average_score = 0.0
                user.updated_at = self.clock()
        logger.info("Reset stats for user %s", user_id)
        return UserResponse.model_validate(user)

    async def reset_stats(self, user_id: str) -> Result:
        """Zero a user's aggregates. Ranking entries are kept."""
        return await guarded("reset_stats", self._reset_stats(user_id), self.timeout)

    async def _update_avatar(self, user_id: str, avatar: Optional[str]) -> UserResponse:
        avatar = (avatar or "").strip() or None
        async with self.session_factory() as db:
            async with db.begin():
                user = await self._get_or_raise(db, user_id)
                user.avatar = avatar
                user.updated_at = self.clock()
        return UserResponse.model_validate(user)

    async def update_avatar(self, user_id: str, avatar: Optional[str]) -> Result:
        """Set the avatar URL; an empty value clears it."""
        return await guarded("update_avatar", self._update_avatar(user_id, avatar), self.timeout)

    async def _delete_user(self, user_id: str) -> None:
        async with self.session_factory() as db:
            async with db.begin():
                await self._get_or_raise(db, user_id)
                # Played sessions stay as anonymous history
                await db.execute(
                    update(GameSession)
                    .where(GameSession.user_id == user_id)
                    .values(user_id=None)
                    .execution_options(synchronize_session=False)
                )
                await db.execute(
                    delete(RankingEntry)
                    .where(RankingEntry.user_id == user_id)
                    .execution_options(synchronize_session=False)
                )
                await db.execute(
                    delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
                )
        logger.info("Deleted user %s", user_id)

    async def delete_user(self, user_id: str) -> Result:
        """
        Remove a user and their ranking entries.

        Their sessions are kept but detached, so they no longer appear on
        any leaderboard or in anyone's stats.
        """
        return await guarded("delete_user", self._delete_user(user_id), self.timeout)

    async def _user_stats(self, user_id: str) -> UserStatsResponse:
        async with self.session_factory() as db:
            user = await self._get_or_raise(db, user_id)

            result = await db.execute(
                select(GameSession, RankingEntry)
                .outerjoin(RankingEntry, RankingEntry.session_id == GameSession.id)
                .where(
                    GameSession.user_id == user_id,
                    GameSession.status == SessionStatus.COMPLETED.value,
                )
                .order_by(desc(GameSession.completed_at))
                .limit(RECENT_GAMES_LIMIT)
            )
            recent_games = [
                RecentGame(
                    session_id=game.id,
                    total_score=game.total_score,
                    total_rounds=game.round_count,
                    completed_at=game.completed_at,
                    rank_date=entry.rank_date if entry else None,
                    average_distance=entry.average_distance if entry else None,
                )
                for game, entry in result.all()
            ]

            current_rank = None
            if user.total_games > 0:
                # Dense rank under the all-time leaderboard ordering
                ahead = (
                    select(User.best_score, User.total_games)
                    .where(
                        User.total_games > 0,
                        or_(
                            User.best_score > user.best_score,
                            and_(User.best_score == user.best_score, User.total_games > user.total_games),
                        ),
                    )
                    .distinct()
                    .subquery()
                )
                current_rank = await db.scalar(select(func.count()).select_from(ahead)) + 1

            return UserStatsResponse(
                user=UserResponse.model_validate(user),
                recent_games=recent_games,
                current_rank=current_rank,
            )

    async def user_stats(self, user_id: str) -> Result:
        """Profile, recent completed games and all-time rank."""
        return await guarded("user_stats", self._user_stats(user_id), self.timeout)
