"""Database setup and session management using SQLAlchemy + SQLite."""

import logging
import os

logger = logging.getLogger(__name__)

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///tracks.db")

engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db():
    """Create all tables and seed the default thresholds."""
    from models import User, Point, Track, TrackSegment, Config  # noqa: F401

    logger.info("Initializing database at %s", DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    _seed_config()


# Default algorithm thresholds (must match the module-level constants of
# segmentation.py, mode_detection.py and movement.py)
DEFAULT_THRESHOLDS = {
    "time_threshold_minutes": "60",
    "distance_threshold_meters": "500",
    "min_points": "2",
    "min_track_duration_seconds": "30",
    "gap_threshold_seconds": "180",
    "speed_change_threshold_kmh": "25",
    "acceleration_spike_threshold": "3.0",
    "calm_acceleration_threshold": "0.3",
    "min_segment_duration_seconds": "60",
    "smoothing_window_size": "5",
}


def _seed_config():
    """Insert default algorithm thresholds if not present."""
    from models import Config

    db = SessionLocal()
    try:
        for key, value in DEFAULT_THRESHOLDS.items():
            if not db.query(Config).filter(Config.key == key).first():
                db.add(Config(key=key, value=value))
        db.commit()
    finally:
        db.close()
