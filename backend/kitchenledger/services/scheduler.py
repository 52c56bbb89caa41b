"""Background expiry sweep — reports expired lots once per day.

Uses FastAPI's lifespan context to start/stop an asyncio background loop
that fires once per day at the configured hour.  The sweep only reads:
it logs every active lot past its expiry date together with the value
that would be written off, and leaves the write-off itself to an explicit
waste entry.

Usage:
    In main.py:

        from kitchenledger.services.scheduler import lifespan
        app = FastAPI(lifespan=lifespan, ...)

Configuration:
    EXPIRY_SWEEP_HOUR=2   (run at 02:00 UTC daily, via .env)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from fastapi import FastAPI

from kitchenledger.config import settings
from kitchenledger.database import async_session
from kitchenledger.services.lots import ExpiredLot, expired_lots

logger = logging.getLogger("kitchenledger.scheduler")


async def run_expiry_sweep(as_of: date | None = None) -> list[ExpiredLot]:
    """Log every expired lot still holding stock and return the report."""
    as_of = as_of or date.today()
    async with async_session() as db:
        report = await expired_lots(db, as_of)

    if not report:
        logger.info("Expiry sweep %s: no expired lots", as_of)
        return report

    total = Decimal("0")
    for lot in report:
        logger.warning(
            "Expired lot %s: %s %s %s, expired %s (%d days), waste value %s",
            lot.lot_number,
            lot.remaining_quantity,
            lot.unit,
            lot.ingredient_name,
            lot.expiry_date,
            lot.days_expired,
            lot.waste_value if lot.waste_value is not None else "unpriced",
        )
        total += lot.waste_value or Decimal("0")
    logger.info(
        "Expiry sweep %s: %d expired lots, %s %s at risk",
        as_of, len(report), total, settings.currency,
    )
    return report


def _next_run(now: datetime, target_hour: int) -> datetime:
    next_run = now.replace(hour=target_hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return next_run


async def _scheduler_loop() -> None:
    """Sleep until the sweep hour, sweep, repeat."""
    while True:
        now = datetime.now(timezone.utc)
        next_run = _next_run(now, settings.expiry_sweep_hour)
        wait_seconds = (next_run - now).total_seconds()
        logger.info(
            "Next expiry sweep at %s (in %.0f seconds)",
            next_run.isoformat(),
            wait_seconds,
        )

        await asyncio.sleep(wait_seconds)

        try:
            await run_expiry_sweep()
        except Exception:
            logger.exception("Unhandled error in expiry sweep")

        # Small buffer to avoid running twice in the same minute
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: start the sweep on startup, cancel on shutdown."""
    task = asyncio.create_task(_scheduler_loop())
    logger.info("Expiry sweep scheduler started")
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Expiry sweep scheduler stopped")
