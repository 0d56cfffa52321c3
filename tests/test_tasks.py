"""Periodic sweep and stats jobs."""

import fakeredis
import pytest
from sqlalchemy import select

from railnet.models import Ticket
from railnet.models.ticket import TicketStatus
from railnet.services.booking_service import BookingService
from railnet.tasks import SWEEP_LOCK_KEY, BackgroundTaskManager, run_stats, run_sweep
from tests.helpers import age_ticket

LOCK_NAME = f"railnet:lock:{SWEEP_LOCK_KEY}"


@pytest.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.aclose()


async def stale_ticket(session_factory, seed, make_request) -> int:
    async with session_factory() as db:
        ticket = await BookingService(db).book_ticket(seed.user_id, make_request())
        await age_ticket(db, ticket.ticket_id)
        return ticket.ticket_id


async def ticket_status(session_factory, ticket_id: int) -> TicketStatus:
    async with session_factory() as db:
        result = await db.execute(select(Ticket.status).where(Ticket.ticket_id == ticket_id))
        return result.scalar_one()


async def test_run_sweep_expires_stale_bookings(session_factory, seed, make_request, redis_client):
    ticket_id = await stale_ticket(session_factory, seed, make_request)

    result = await run_sweep(redis_client, session_factory)

    assert result.expired_count == 1
    assert await ticket_status(session_factory, ticket_id) == TicketStatus.EXPIRED
    assert await redis_client.exists(LOCK_NAME) == 0


async def test_run_sweep_skips_tick_while_another_instance_sweeps(
    session_factory, seed, make_request, redis_client
):
    ticket_id = await stale_ticket(session_factory, seed, make_request)
    await redis_client.set(LOCK_NAME, "other-instance")

    result = await run_sweep(redis_client, session_factory)

    assert result is None
    assert await ticket_status(session_factory, ticket_id) == TicketStatus.PENDING
    assert await redis_client.get(LOCK_NAME) == "other-instance"


async def test_run_stats(session_factory, seed, make_request):
    await stale_ticket(session_factory, seed, make_request)

    stats = await run_stats(session_factory)

    assert stats.total_pending == 1
    assert stats.expired == 1


async def test_background_tasks_start_and_stop(monkeypatch):
    calls = []

    async def fake_loop():
        calls.append("started")

    monkeypatch.setattr("railnet.tasks.reclaim_expired_bookings", fake_loop)
    monkeypatch.setattr("railnet.tasks.report_pending_bookings", fake_loop)
    manager = BackgroundTaskManager()

    await manager.start()
    assert len(manager.tasks) == 2
    await manager.stop()

    assert manager.tasks == []
