"""Background tasks for booking reclamation."""

import asyncio
import logging

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from railnet.config import get_settings
from railnet.database import get_session_factory
from railnet.distributed_lock import DistributedLockError, distributed_lock
from railnet.redis_client import get_redis
from railnet.schemas.cleanup import PendingBookingStats, SweepResult
from railnet.services.reclamation_service import ReclamationService

logger = logging.getLogger(__name__)

SWEEP_LOCK_KEY = "reclamation-sweep"


async def run_sweep(
    redis_client: redis.Redis,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> SweepResult | None:
    """
    Run one reclamation sweep if no other instance is running one.

    The lock only avoids duplicate work; the sweep itself is safe to run
    concurrently.

    Returns:
        Sweep result, or None if the tick was skipped
    """
    settings = get_settings()
    factory = session_factory or get_session_factory()

    try:
        async with distributed_lock(
            redis_client,
            SWEEP_LOCK_KEY,
            timeout_seconds=settings.SWEEP_LOCK_TIMEOUT_SECONDS,
        ):
            async with factory() as db:
                service = ReclamationService(db, settings)
                return await service.sweep(settings.BOOKING_EXPIRY_MINUTES)
    except DistributedLockError as e:
        logger.debug(f"Skipping sweep tick: {e}")
        return None


async def run_stats(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> PendingBookingStats:
    """Log a snapshot of bookings awaiting payment."""
    factory = session_factory or get_session_factory()
    async with factory() as db:
        stats = await ReclamationService(db).get_pending_stats()

    logger.info(
        f"Pending bookings: {stats.total_pending} total, "
        f"{stats.expiring_soon} expiring soon, {stats.expired} past deadline"
    )
    return stats


async def reclaim_expired_bookings() -> None:
    """
    Background task to reclaim expired bookings.

    Runs periodically to:
    1. Mark unpaid tickets past their deadline as expired
    2. Cancel their open payment transactions
    3. Release seats and compartment capacity
    """
    settings = get_settings()
    logger.info("Starting expired booking reclamation task")

    while True:
        try:
            redis_client = await get_redis()
            result = await run_sweep(redis_client)
            if result and result.expired_count > 0:
                logger.info(f"Reclaimed {result.expired_count} expired bookings")
            if result and result.errors:
                logger.warning(f"Reclamation errors: {result.errors}")
        except Exception as e:
            logger.error(f"Error in reclamation task: {e}")

        await asyncio.sleep(settings.CLEANUP_INTERVAL_SECONDS)


async def report_pending_bookings() -> None:
    """Background task logging pending booking stats."""
    settings = get_settings()

    while True:
        try:
            await run_stats()
        except Exception as e:
            logger.error(f"Error in stats task: {e}")

        await asyncio.sleep(settings.STATS_INTERVAL_SECONDS)


class BackgroundTaskManager:
    """Manager for background tasks."""

    def __init__(self):
        self.tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start all background tasks."""
        self.tasks.append(asyncio.create_task(reclaim_expired_bookings()))
        self.tasks.append(asyncio.create_task(report_pending_bookings()))
        logger.info("Background tasks started")

    async def stop(self) -> None:
        """Stop all background tasks."""
        for task in self.tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.tasks.clear()
        logger.info("Background tasks stopped")


# Global instance
background_tasks = BackgroundTaskManager()
