import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, Boolean, Text, JSON,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from .session import Base


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class AssetStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


class SessionStatus(str, enum.Enum):
    PLAYING = "playing"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Location(Base):
    """A real-world place players have to find on the map."""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    prefecture = Column(String(50), nullable=False, index=True)
    city = Column(String(100), nullable=False)
    address = Column(Text, nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    features = Column(JSON, default=list)
    difficulty = Column(String(10), nullable=False, default=Difficulty.MEDIUM.value, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    media_assets = relationship(
        "MediaAsset",
        back_populates="location",
        cascade="all, delete-orphan",
        order_by="MediaAsset.id",
        lazy="selectin",
    )


class MediaAsset(Base):
    """An image of a location shown to the player."""
    __tablename__ = "media_assets"

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    thumbnail_url = Column(Text, nullable=True)
    alt = Column(Text, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=AssetStatus.READY.value, index=True)
    created_at = Column(DateTime, default=datetime.now)

    # Relationships
    location = relationship("Location", back_populates="media_assets")


class User(Base):
    """Guest or registered player with running aggregates."""
    __tablename__ = "users"

    id = Column(String(50), primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, unique=True, index=True)
    avatar = Column(Text, nullable=True)
    total_games = Column(Integer, nullable=False, default=0)
    total_score = Column(Integer, nullable=False, default=0)
    best_score = Column(Integer, nullable=False, default=0, index=True)
    average_score = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    game_sessions = relationship("GameSession", back_populates="user")
    ranking_entries = relationship("RankingEntry", back_populates="user", cascade="all, delete-orphan")


class GameSession(Base):
    """Game session model tracking a complete game."""
    __tablename__ = "game_sessions"

    id = Column(String(50), primary_key=True, index=True)
    user_id = Column(String(50), ForeignKey("users.id"), nullable=True, index=True)
    round_count = Column(Integer, nullable=False)
    current_round = Column(Integer, nullable=False, default=0)
    total_score = Column(Integer, nullable=False, default=0, index=True)
    status = Column(String(20), nullable=False, default=SessionStatus.PLAYING.value, index=True)
    started_at = Column(DateTime, default=datetime.now)
    completed_at = Column(DateTime, nullable=True, index=True)
    updated_at = Column(DateTime, default=datetime.now)

    # Relationships
    user = relationship("User", back_populates="game_sessions")
    rounds = relationship(
        "GameRound",
        back_populates="game_session",
        cascade="all, delete-orphan",
        order_by="GameRound.round_index",
        lazy="selectin",
    )


class GameRound(Base):
    """Individual round within a game session."""
    __tablename__ = "game_rounds"
    __table_args__ = (
        UniqueConstraint("game_session_id", "round_index", name="uq_round_index"),
        UniqueConstraint("game_session_id", "location_id", name="uq_round_location"),
    )

    id = Column(Integer, primary_key=True, index=True)
    game_session_id = Column(String(50), ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False)
    round_index = Column(Integer, nullable=False)

    # Challenge, fixed at creation
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    media_asset_id = Column(Integer, ForeignKey("media_assets.id"), nullable=False)

    # Outcome, written once
    guess_latitude = Column(Float, nullable=True)
    guess_longitude = Column(Float, nullable=True)
    distance_km = Column(Float, nullable=True)
    score = Column(Integer, nullable=True)
    time_spent = Column(Integer, nullable=True)
    is_time_up = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime, nullable=True)

    # Relationships
    game_session = relationship("GameSession", back_populates="rounds")
    location = relationship("Location", lazy="selectin")
    media_asset = relationship("MediaAsset", lazy="selectin")


class RankingEntry(Base):
    """Snapshot of one completed session, bucketed by calendar day."""
    __tablename__ = "ranking_entries"
    __table_args__ = (
        Index("ix_ranking_user_date", "user_id", "rank_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(50), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(String(50), ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False, unique=True)
    score = Column(Integer, nullable=False, index=True)
    rounds_completed = Column(Integer, nullable=False)
    average_distance = Column(Float, nullable=True)
    completed_at = Column(DateTime, nullable=False)
    rank_date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    created_at = Column(DateTime, default=datetime.now)

    # Relationships
    user = relationship("User", back_populates="ranking_entries")
    game_session = relationship("GameSession")
