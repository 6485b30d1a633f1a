"""Tests for database initialization and threshold seeding."""

from unittest.mock import patch

from sqlalchemy import inspect
from sqlalchemy.orm import sessionmaker

from database import DEFAULT_THRESHOLDS, init_db
from models import Config
from processing import get_thresholds


def _init(engine):
    with patch("database.engine", engine), patch("database.SessionLocal", sessionmaker(bind=engine)):
        init_db()


class TestInitDb:
    def test_creates_tables(self, engine):
        _init(engine)
        tables = set(inspect(engine).get_table_names())
        assert {"users", "points", "tracks", "track_segments", "config"} <= tables

    def test_seeds_default_thresholds(self, engine, db):
        _init(engine)
        rows = {row.key: row.value for row in db.query(Config).all()}
        assert rows == DEFAULT_THRESHOLDS

    def test_seeded_values_match_module_defaults(self, engine, db):
        _init(engine)
        thresholds = get_thresholds(db)
        for key, value in DEFAULT_THRESHOLDS.items():
            assert thresholds[key] == float(value)

    def test_existing_values_are_kept(self, engine, db):
        db.add(Config(key="distance_threshold_meters", value="250"))
        db.commit()
        _init(engine)
        _init(engine)
        rows = db.query(Config).filter(Config.key == "distance_threshold_meters").all()
        assert [row.value for row in rows] == ["250"]
