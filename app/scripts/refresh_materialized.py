"""
Recompute the materialized bookings collection.

    python -m app.scripts.refresh_materialized            # upsert every booking
    python -m app.scripts.refresh_materialized --rebuild  # drop and rebuild
    python -m app.scripts.refresh_materialized --id b-1   # one booking
"""
import argparse
import asyncio
import logging
from typing import List, Optional

from app.core.config import Settings, get_settings
from app.crud.booking import crud_booking
from app.db.core import BookingContext, build_store

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh the materialized bookings collection")
    parser.add_argument("--rebuild", action="store_true", help="drop the collection before recomputing it")
    parser.add_argument("--id", dest="booking_id", help="refresh a single booking")
    return parser.parse_args(argv)


async def refresh(args: argparse.Namespace, settings: Settings) -> None:
    store = build_store(settings)
    await store.connect()
    try:
        # the script always writes the materialized collection, whether it exists yet or not
        ctx = BookingContext(store=store, materialized=True)
        if args.booking_id:
            await ctx.store.refresh_one(args.booking_id)
            logger.info(f"Refreshed booking {args.booking_id}")
        else:
            await crud_booking.refresh_all(ctx, rebuild=args.rebuild)
            logger.info("Materialized collection refreshed")
    finally:
        await store.close()


async def main(argv: Optional[List[str]] = None):
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    try:
        await refresh(parse_args(argv), settings)
    except Exception as e:
        logger.error(f"Error refreshing materialized bookings: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    asyncio.run(main())
