import random
import uuid
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from onsen_guesser.config import Settings
from onsen_guesser.database.models import (
    GameSession, Location, MediaAsset, RankingEntry, SessionStatus, User,
)
from onsen_guesser.database.session import Database
from onsen_guesser.main import create_app
from onsen_guesser.services.catalog import LocationCatalog
from onsen_guesser.services.engine import SessionEngine
from onsen_guesser.services.stats import StatsAggregator
from onsen_guesser.services.users import UserService

KUSATSU = (36.6227, 138.5969)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock():
    return FixedClock(datetime(2024, 5, 20, 12, 0, 0))


@pytest.fixture()
async def database(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await database.init_db()
    yield database
    await database.dispose()


@pytest.fixture()
def stats(database, clock):
    return StatsAggregator(database.session_factory, clock=clock)


@pytest.fixture()
def engine(database, stats, clock):
    catalog = LocationCatalog(database.session_factory, rng=random.Random(7))
    return SessionEngine(database.session_factory, catalog, stats, clock=clock)


@pytest.fixture()
def user_service(database, clock):
    return UserService(database.session_factory, clock=clock, rng=random.Random(3))


@pytest.fixture()
def make_location(database):
    async def _make_location(
        name="Kusatsu Onsen",
        lat=KUSATSU[0],
        lng=KUSATSU[1],
        is_active=True,
        asset_status="ready",
        primary=True,
        extra_assets=0,
    ) -> int:
        async with database.session_factory() as db:
            async with db.begin():
                location = Location(
                    name=name,
                    prefecture="Gunma",
                    city="Kusatsu",
                    latitude=lat,
                    longitude=lng,
                    description=f"{name} description",
                    features=["hot spring town"],
                    difficulty="easy",
                    is_active=is_active,
                )
                location.media_assets = [
                    MediaAsset(
                        url=f"https://img.example/{name}/{i}.jpg",
                        alt=name,
                        is_primary=primary and i == 0,
                        status=asset_status,
                    )
                    for i in range(1 + extra_assets)
                ]
                db.add(location)
        return location.id

    return _make_location


@pytest.fixture()
def make_locations(make_location):
    async def _make_locations(count: int):
        return [
            await make_location(name=f"Onsen {i}", lat=33.0 + i * 0.5, lng=131.0 + i * 0.5)
            for i in range(count)
        ]

    return _make_locations


@pytest.fixture()
def make_user(database, clock):
    async def _make_user(name="Hanako", total_games=0, total_score=0, best_score=0) -> str:
        async with database.session_factory() as db:
            async with db.begin():
                user = User(
                    id=str(uuid.uuid4()),
                    name=name,
                    total_games=total_games,
                    total_score=total_score,
                    best_score=best_score,
                    average_score=total_score / total_games if total_games else 0.0,
                    created_at=clock(),
                )
                db.add(user)
        return user.id

    return _make_user


@pytest.fixture()
def make_ranking_entry(database):
    """Store a completed session and its ranking entry directly."""
    async def _make_ranking_entry(user_id, score, rank_date, rounds_completed=5, average_distance=100.0):
        completed_at = datetime.fromisoformat(rank_date + "T18:00:00")
        session_id = str(uuid.uuid4())
        async with database.session_factory() as db:
            async with db.begin():
                db.add(GameSession(
                    id=session_id,
                    user_id=user_id,
                    round_count=rounds_completed,
                    current_round=rounds_completed,
                    total_score=score,
                    status=SessionStatus.COMPLETED.value,
                    started_at=completed_at,
                    completed_at=completed_at,
                ))
                db.add(RankingEntry(
                    user_id=user_id,
                    session_id=session_id,
                    score=score,
                    rounds_completed=rounds_completed,
                    average_distance=average_distance,
                    completed_at=completed_at,
                    rank_date=rank_date,
                ))
        return session_id

    return _make_ranking_entry


@pytest.fixture()
def client(tmp_path):
    settings = Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        SEED_SAMPLE_DATA=True,
        LOG_LEVEL="WARNING",
    )
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
