"""Entry point: builds tracks and transportation-mode segments for one user."""

import argparse
import logging
import logging.handlers
import os
import sys

from sqlalchemy.exc import SQLAlchemyError

from database import SessionLocal, init_db
from processing import MODES, process_user_points

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
LOG_DIR = os.environ.get("LOG_DIR", "/data" if os.path.isdir("/data") else ".")
LOG_FILE = os.path.join(LOG_DIR, "location-tracks.log")

logger = logging.getLogger("locationtracks")


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(),
            logging.handlers.RotatingFileHandler(
                LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3,
            ),
        ],
    )
    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Split a user's points into tracks and detect transportation modes.")
    parser.add_argument("--user-id", type=int, required=True)
    parser.add_argument("--mode", choices=MODES, default="bulk")
    parser.add_argument("--point-id", type=int, default=None, help="anchor point for incremental mode")
    parser.add_argument("--cleanup", action="store_true", help="dissolve existing tracks in the affected range first")
    parser.add_argument("--workers", type=int, default=None, help="mode detection threads (1 = serial)")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.mode == "incremental" and args.point_id is None:
        build_parser().error("--point-id is required in incremental mode")

    setup_logging(args.verbose)
    init_db()

    db = SessionLocal()
    try:
        tracks = process_user_points(
            db, args.user_id,
            mode=args.mode,
            point_id=args.point_id,
            cleanup=args.cleanup,
            max_workers=args.workers,
        )
        for track in tracks:
            logger.info(
                "Track %d: %d m in %d s, dominant mode %s",
                track.id, track.distance, track.duration, track.dominant_mode,
            )
    except SQLAlchemyError:
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
