"""
Command-line entry point for scheduled maintenance

Usage:
    python -m progression.main init-db
    python -m progression.main sweep [--now ISO_DATETIME]

The expiry sweep is meant to be run from an external scheduler (cron, k8s
CronJob); the engine itself keeps no timers.
"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional

from progression.config import validate_config, LOG_LEVEL
from progression.db.connection import db
from progression.db.postgres_store import PostgresRecordStore
from progression.exceptions import ProgressionError
from progression.services.container import init_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)


async def run(command: str, now: Optional[datetime] = None) -> int:
    """Run one maintenance command against PostgreSQL"""
    try:
        logger.info("Validating configuration...")
        validate_config()

        logger.info("Initializing database connection pool...")
        await db.init_pool()
        store = PostgresRecordStore(db)

        if command == "init-db":
            await store.ensure_schema()
        elif command == "sweep":
            container = init_container(store)
            removed = await container.progression_service.sweep_expired_badges(now)
            logger.info(f"Removed {removed} expired badge(s)")
        return 0

    except ProgressionError as e:
        logger.error(f"{command} failed: {e.message}")
        return 1
    finally:
        logger.info("Closing database connection...")
        await db.close_pool()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="progression", description="Progression engine maintenance")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Create the records table")
    sweep = subparsers.add_parser("sweep", help="Delete expired badges")
    sweep.add_argument("--now", type=datetime.fromisoformat, default=None,
                       help="Reference time (ISO 8601, defaults to now)")

    args = parser.parse_args(argv)
    return asyncio.run(run(args.command, getattr(args, "now", None)))


if __name__ == "__main__":
    sys.exit(main())
