"""SQLAlchemy models for users, raw points, tracks, and their mode segments."""

import datetime
from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    points = relationship("Point", back_populates="owner", cascade="all, delete-orphan")
    tracks = relationship("Track", back_populates="owner", cascade="all, delete-orphan")


class Point(Base):
    """A raw location sample as received from the recording app.

    ``motion_data`` holds the provider's activity fields already extracted at
    ingestion; ``raw_data`` is the untouched payload.  ``track_id`` stays NULL
    until the point has been assigned to a track.
    """

    __tablename__ = "points"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    track_id = Column(Integer, ForeignKey("tracks.id", ondelete="SET NULL"), nullable=True, index=True)
    timestamp = Column(Integer, nullable=False, index=True)  # epoch seconds
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    altitude = Column(Float, nullable=True)
    velocity = Column(Float, nullable=True)  # m/s as reported
    motion_data = Column(JSON, nullable=True)
    raw_data = Column(JSON, nullable=True)
    received_at = Column(DateTime, default=datetime.datetime.utcnow)

    owner = relationship("User", back_populates="points")
    track = relationship("Track", back_populates="points")


class Track(Base):
    """A stored track with its aggregates and dominant transportation mode."""

    __tablename__ = "tracks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_at = Column(Integer, nullable=False)  # epoch seconds
    end_at = Column(Integer, nullable=False, index=True)
    distance = Column(Integer, default=0)       # metres
    duration = Column(Integer, default=0)       # seconds
    avg_speed = Column(Float, default=0.0)      # km/h
    elevation_gain = Column(Integer, default=0)
    elevation_loss = Column(Integer, default=0)
    elevation_max = Column(Float, default=0.0)
    elevation_min = Column(Float, default=0.0)
    dominant_mode = Column(String, default="unknown")
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    owner = relationship("User", back_populates="tracks")
    points = relationship("Point", back_populates="track", order_by="Point.timestamp")
    segments = relationship(
        "TrackSegment", back_populates="track",
        cascade="all, delete-orphan", order_by="TrackSegment.start_index",
    )


class TrackSegment(Base):
    """A contiguous range of a track's points travelled in one mode.

    Indices are inclusive positions into the track's time-ordered points.
    """

    __tablename__ = "track_segments"

    id = Column(Integer, primary_key=True, index=True)
    track_id = Column(Integer, ForeignKey("tracks.id"), nullable=False, index=True)
    transportation_mode = Column(String, nullable=False)
    start_index = Column(Integer, nullable=False)
    end_index = Column(Integer, nullable=False)
    distance = Column(Integer, default=0)
    duration = Column(Integer, default=0)
    avg_speed = Column(Float, default=0.0)
    max_speed = Column(Float, nullable=True)
    avg_acceleration = Column(Float, nullable=True)
    confidence = Column(String, nullable=False)
    source = Column(String, nullable=False)

    track = relationship("Track", back_populates="segments")


class Config(Base):
    """Key/value algorithm tunables, read by ``processing.get_thresholds``."""

    __tablename__ = "config"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
