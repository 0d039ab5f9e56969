"""
Game session state machine.

A session is created in ``playing`` with a fixed list of rounds. Each guess or
time-up resolves exactly one round and advances ``current_round``; when the
cursor reaches the round count the session becomes ``completed`` and, for
sessions with an owner, a ranking entry is written in the same transaction.

Round resolution is a conditional update on ``current_round`` so two requests
racing for the same round cannot both win.
"""
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol, List

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database.models import GameRound, GameSession, Location, MediaAsset, SessionStatus, User
from ..errors import (
    GameAlreadyCompleteError, InsufficientContentError, LocationNotFoundError, Result,
    RoundAlreadyResolvedError, SessionNotFoundError, UserNotFoundError, ValidationError, guarded,
)
from ..models.game import (
    ChallengeLocation, ChallengeResponse, CorrectLocation, GameResultsResponse,
    GameSessionResponse, GuessResponse, MediaAssetResponse,
    RoundResponse, RoundResultResponse, StartSessionResponse,
)
from .catalog import pick_cover_asset, ready_assets
from .scoring import Coordinate, calculate_score, distance_km
from .stats import StatsAggregator

logger = logging.getLogger(__name__)


class ChallengeCatalog(Protocol):
    async def sample_unique_active(self, count: int) -> List[Location]:
        ...


@dataclass(frozen=True)
class RoundOutcome:
    """What gets written onto a round when it is resolved."""
    guess: Optional[Coordinate]
    distance: Optional[float]
    score: int
    time_spent: Optional[int]
    is_time_up: bool


def validate_guess(lat: float, lng: float) -> Coordinate:
    if not (isinstance(lat, (int, float)) and isinstance(lng, (int, float))):
        raise ValidationError("Guess coordinates must be numbers")
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValidationError("Guess coordinates must be finite numbers")
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError("Guess is outside the map (lat -90..90, lng -180..180)")
    return Coordinate(float(lat), float(lng))


def build_challenge(round_index: int, location: Location, asset: MediaAsset) -> ChallengeResponse:
    return ChallengeResponse(
        round_number=round_index + 1,
        location=ChallengeLocation(
            id=location.id,
            difficulty=location.difficulty,
            features=list(location.features or []),
        ),
        image=MediaAssetResponse.model_validate(asset),
        images=[MediaAssetResponse.model_validate(a) for a in ready_assets(location)],
    )


class SessionEngine:
    """Creates sessions and resolves their rounds."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        catalog: ChallengeCatalog,
        stats: StatsAggregator,
        rounds_per_game: int = 5,
        max_rounds_per_game: int = 20,
        time_limit_sec: int = 60,
        clock: Callable[[], datetime] = datetime.now,
        timeout: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.catalog = catalog
        self.stats = stats
        self.rounds_per_game = rounds_per_game
        self.max_rounds_per_game = max_rounds_per_game
        self.time_limit_sec = time_limit_sec
        self.clock = clock
        self.timeout = timeout

    # Public operations, each returns a Result

    async def create(self, user_id: Optional[str] = None, round_count: Optional[int] = None) -> Result:
        """Start a new session and return its first challenge."""
        return await guarded("create_session", self._create(user_id, round_count), self.timeout)

    async def get_current_round(self, session_id: str) -> Result:
        """Session state plus the challenge for the round being played."""
        return await guarded("get_current_round", self._get_current_round(session_id), self.timeout)

    async def submit_guess(
        self, session_id: str, lat: float, lng: float, time_spent: Optional[int] = None
    ) -> Result:
        """Score a guess against the current round."""
        return await guarded("submit_guess", self._submit_guess(session_id, lat, lng, time_spent), self.timeout)

    async def time_expired(self, session_id: str) -> Result:
        """Resolve the current round with zero points because the clock ran out."""
        return await guarded("time_expired", self._time_expired(session_id), self.timeout)

    async def get_results(self, session_id: str) -> Result:
        """Every round enriched with its location and image."""
        return await guarded("get_results", self._get_results(session_id), self.timeout)

    # Implementation

    async def _load_game(self, db: AsyncSession, session_id: str) -> GameSession:
        game = await db.get(GameSession, session_id)
        if game is None:
            raise SessionNotFoundError()
        return game

    async def _create(self, user_id: Optional[str], round_count: Optional[int]) -> StartSessionResponse:
        round_count = self.rounds_per_game if round_count is None else round_count
        if not 1 <= round_count <= self.max_rounds_per_game:
            raise ValidationError(f"round_count must be between 1 and {self.max_rounds_per_game}")

        locations = await self.catalog.sample_unique_active(round_count)
        if len({location.id for location in locations}) != round_count:
            raise InsufficientContentError("Catalog returned duplicate or too few locations")

        covers = []
        for location in locations:
            asset = pick_cover_asset(location)
            if asset is None:
                raise InsufficientContentError(f"Location {location.id} has no ready image")
            covers.append(asset)

        now = self.clock()
        game = GameSession(
            id=str(uuid.uuid4()),
            user_id=user_id,
            round_count=round_count,
            current_round=0,
            total_score=0,
            status=SessionStatus.PLAYING.value,
            started_at=now,
            updated_at=now,
        )
        game.rounds = [
            GameRound(round_index=i, location_id=location.id, media_asset_id=asset.id)
            for i, (location, asset) in enumerate(zip(locations, covers))
        ]

        async with self.session_factory() as db:
            async with db.begin():
                if user_id is not None and await db.get(User, user_id) is None:
                    raise UserNotFoundError()
                db.add(game)

        logger.info("Started session %s (user=%s, rounds=%d)", game.id, user_id, round_count)
        return StartSessionResponse(
            session_id=game.id,
            current_round=0,
            total_rounds=round_count,
            time_limit_sec=self.time_limit_sec,
            current_challenge=build_challenge(0, locations[0], covers[0]),
        )

    def _challenge_for(self, game_round: GameRound) -> ChallengeResponse:
        if game_round.location is None or game_round.media_asset is None:
            raise LocationNotFoundError()
        return build_challenge(game_round.round_index, game_round.location, game_round.media_asset)

    async def _get_current_round(self, session_id: str) -> GameSessionResponse:
        async with self.session_factory() as db:
            game = await self._load_game(db, session_id)
            challenge = None
            if game.current_round < len(game.rounds):
                challenge = self._challenge_for(game.rounds[game.current_round])

            return GameSessionResponse(
                id=game.id,
                user_id=game.user_id,
                status=game.status,
                current_round=game.current_round,
                total_rounds=len(game.rounds),
                total_score=game.total_score,
                started_at=game.started_at,
                completed_at=game.completed_at,
                rounds=[RoundResponse.model_validate(r) for r in game.rounds],
                current_challenge=challenge,
            )

    async def _submit_guess(
        self, session_id: str, lat: float, lng: float, time_spent: Optional[int]
    ) -> GuessResponse:
        guess = validate_guess(lat, lng)
        if time_spent is not None and time_spent < 0:
            raise ValidationError("time_spent cannot be negative")

        def outcome(location: Location) -> RoundOutcome:
            distance = distance_km(guess, Coordinate(location.latitude, location.longitude))
            return RoundOutcome(
                guess=guess,
                distance=distance,
                score=calculate_score(distance),
                time_spent=time_spent,
                is_time_up=False,
            )

        return await self._resolve_current_round(session_id, outcome)

    async def _time_expired(self, session_id: str) -> GuessResponse:
        def outcome(location: Location) -> RoundOutcome:
            return RoundOutcome(
                guess=None,
                distance=None,
                score=0,
                time_spent=self.time_limit_sec,
                is_time_up=True,
            )

        return await self._resolve_current_round(session_id, outcome)

    async def _resolve_current_round(
        self, session_id: str, make_outcome: Callable[[Location], RoundOutcome]
    ) -> GuessResponse:
        async with self.session_factory() as db:
            async with db.begin():
                game = await self._load_game(db, session_id)
                round_index = game.current_round
                if round_index >= len(game.rounds) or game.status != SessionStatus.PLAYING.value:
                    raise GameAlreadyCompleteError()

                game_round = game.rounds[round_index]
                location = await db.get(Location, game_round.location_id)
                if location is None:
                    raise LocationNotFoundError()

                response = await self.resolve_round(db, game, round_index, location, make_outcome(location))
        return response

    async def resolve_round(
        self,
        db: AsyncSession,
        game: GameSession,
        round_index: int,
        location: Location,
        outcome: RoundOutcome,
    ) -> GuessResponse:
        """
        Write ``outcome`` onto round ``round_index`` and advance the session,
        within the caller's transaction.

        ``round_index`` is the cursor value the caller read; if another
        request has moved the cursor since, nothing is written.

        Raises:
            RoundAlreadyResolvedError: the round was resolved by someone else
        """
        now = self.clock()
        round_count = game.round_count
        next_round = round_index + 1
        is_complete = next_round == round_count
        status = SessionStatus.COMPLETED.value if is_complete else SessionStatus.PLAYING.value

        advanced = await db.execute(
            update(GameSession)
            .where(
                GameSession.id == game.id,
                GameSession.current_round == round_index,
                GameSession.status == SessionStatus.PLAYING.value,
            )
            .values(
                current_round=next_round,
                status=status,
                completed_at=now if is_complete else None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if advanced.rowcount != 1:
            raise RoundAlreadyResolvedError()

        written = await db.execute(
            update(GameRound)
            .where(
                GameRound.game_session_id == game.id,
                GameRound.round_index == round_index,
                GameRound.resolved_at.is_(None),
            )
            .values(
                guess_latitude=outcome.guess.latitude if outcome.guess else None,
                guess_longitude=outcome.guess.longitude if outcome.guess else None,
                distance_km=outcome.distance,
                score=outcome.score,
                time_spent=outcome.time_spent,
                is_time_up=outcome.is_time_up,
                resolved_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if written.rowcount != 1:
            raise RoundAlreadyResolvedError()

        total_score = await db.scalar(
            select(func.coalesce(func.sum(GameRound.score), 0)).where(GameRound.game_session_id == game.id)
        )
        await db.execute(
            update(GameSession)
            .where(GameSession.id == game.id)
            .values(total_score=total_score)
            .execution_options(synchronize_session=False)
        )

        if is_complete:
            logger.info("Session %s completed with %s points", game.id, total_score)
            await self.stats.apply_completion(db, game, now)

        return GuessResponse(
            distance=outcome.distance,
            score=outcome.score,
            correct_location=CorrectLocation(
                lat=location.latitude,
                lng=location.longitude,
                name=location.name,
                prefecture=location.prefecture,
                city=location.city,
            ),
            is_complete=is_complete,
            is_time_up=outcome.is_time_up,
            total_score=total_score,
            current_round=next_round,
            total_rounds=round_count,
        )

    async def _get_results(self, session_id: str) -> GameResultsResponse:
        async with self.session_factory() as db:
            game = await self._load_game(db, session_id)
            return GameResultsResponse(
                id=game.id,
                user_id=game.user_id,
                status=game.status,
                current_round=game.current_round,
                total_rounds=len(game.rounds),
                total_score=game.total_score,
                started_at=game.started_at,
                completed_at=game.completed_at,
                rounds=[RoundResultResponse.model_validate(r) for r in game.rounds],
            )
