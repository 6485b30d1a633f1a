#!/usr/bin/env python3
"""Seed the database with synthetic GPS fixture data for development.

Usage:
    python seed_test_data.py

This creates a demo user with a morning commute (walk, then drive) and an
evening walk, then runs the track pipeline so the tracks and their
transportation-mode segments can be inspected.
"""

from database import init_db, SessionLocal
from models import User, Point
from tests.gps_test_fixtures import TWO_TRIPS
from processing import process_user_points


def seed():
    init_db()
    db = SessionLocal()

    existing = db.query(User).filter(User.username == "demo").first()
    if existing:
        print("Demo user already exists. Skipping seed.")
        db.close()
        return

    user = User(username="demo", email="demo@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"Created user: demo (id={user.id})")

    for pt in TWO_TRIPS:
        db.add(Point(
            user_id=user.id,
            timestamp=pt["timestamp"],
            latitude=pt["latitude"],
            longitude=pt["longitude"],
            altitude=pt.get("altitude"),
            velocity=pt.get("velocity"),
            motion_data=pt.get("motion_data"),
            raw_data=pt.get("raw_data"),
        ))
    db.commit()
    print(f"Inserted {len(TWO_TRIPS)} location points")

    tracks = process_user_points(db, user.id)
    print(f"Created {len(tracks)} tracks")

    for t in tracks:
        modes = ", ".join(
            f"{s.transportation_mode} [{s.start_index}-{s.end_index}] ({s.confidence})" for s in t.segments
        )
        print(f"  - {t.distance} m in {t.duration // 60}m, mostly {t.dominant_mode}: {modes}")

    db.close()
    print("\nDone! Run `python main.py --user-id {} --cleanup` to rebuild.".format(user.id))


if __name__ == "__main__":
    seed()
