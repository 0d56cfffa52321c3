"""HTTP surface: routing, auth headers and error mapping."""

from decimal import Decimal

import httpx
import pytest

from railnet.database import get_db
from railnet.exceptions import GatewayError
from railnet.gateway import get_gateway
from railnet.main import create_app


@pytest.fixture
async def client(session_factory, seed, gateway):
    app = create_app(run_background_tasks=False)

    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_gateway] = lambda: gateway

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def booking(seed, **overrides) -> dict:
    body = {
        "schedule_id": seed.schedule_id,
        "from_station_id": seed.delhi_id,
        "to_station_id": seed.mumbai_id,
        "compartment_id": seed.ac_id,
        "seat_number": "A1",
        "passenger_name": "Asha Rahman",
        "passenger_age": 31,
        "passenger_gender": "female",
    }
    body.update(overrides)
    return body


def as_user(user_id: int) -> dict:
    return {"X-User-ID": str(user_id)}


async def book(client, seed, **overrides) -> dict:
    response = await client.post(
        "/api/v1/tickets", json=booking(seed, **overrides), headers=as_user(seed.user_id)
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_user_header_required(client, seed):
    response = await client.post("/api/v1/tickets", json=booking(seed))
    assert response.status_code == 401

    response = await client.post("/api/v1/tickets", json=booking(seed), headers=as_user(9999))
    assert response.status_code == 401


async def test_book_ticket(client, seed):
    ticket = await book(client, seed)

    assert ticket["status"] == "pending"
    assert ticket["payment_status"] == "pending"
    assert Decimal(ticket["price"]) == Decimal("2076.00")
    assert ticket["seat_number"] == "A1"


async def test_book_taken_seat_conflicts(client, seed):
    await book(client, seed)

    response = await client.post(
        "/api/v1/tickets", json=booking(seed), headers=as_user(seed.stranger_id)
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "Seat already booked"


async def test_book_invalid_segment(client, seed):
    response = await client.post(
        "/api/v1/tickets",
        json=booking(seed, from_station_id=seed.mumbai_id, to_station_id=seed.delhi_id),
        headers=as_user(seed.user_id),
    )

    assert response.status_code == 400


async def test_book_rejects_malformed_request(client, seed):
    response = await client.post(
        "/api/v1/tickets",
        json=booking(seed, passenger_age=-1),
        headers=as_user(seed.user_id),
    )

    assert response.status_code == 422


async def test_list_and_read_tickets(client, seed):
    ticket = await book(client, seed)

    listed = await client.get("/api/v1/tickets", headers=as_user(seed.user_id))
    by_id = await client.get(
        f"/api/v1/tickets/{ticket['ticket_id']}", headers=as_user(seed.user_id)
    )
    by_code = await client.get(
        f"/api/v1/tickets/code/{ticket['ticket_code']}", headers=as_user(seed.user_id)
    )
    filtered = await client.get(
        "/api/v1/tickets",
        params={"status_filter": "confirmed"},
        headers=as_user(seed.user_id),
    )

    assert [t["ticket_id"] for t in listed.json()] == [ticket["ticket_id"]]
    assert by_id.json()["ticket_code"] == ticket["ticket_code"]
    assert by_code.json()["ticket_id"] == ticket["ticket_id"]
    assert filtered.json() == []


async def test_other_users_ticket_is_forbidden(client, seed):
    ticket = await book(client, seed)

    by_id = await client.get(
        f"/api/v1/tickets/{ticket['ticket_id']}", headers=as_user(seed.stranger_id)
    )
    by_code = await client.get(
        f"/api/v1/tickets/code/{ticket['ticket_code']}", headers=as_user(seed.stranger_id)
    )

    assert by_id.status_code == 403
    assert by_code.status_code == 403


async def test_cancel_ticket(client, seed):
    ticket = await book(client, seed)

    response = await client.post(
        f"/api/v1/tickets/{ticket['ticket_id']}/cancel", headers=as_user(seed.user_id)
    )
    again = await client.post(
        f"/api/v1/tickets/{ticket['ticket_id']}/cancel", headers=as_user(seed.user_id)
    )

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert again.status_code == 409


async def test_seat_map(client, seed):
    await book(client, seed, seat_number="A7")

    response = await client.get(
        f"/api/v1/schedules/{seed.schedule_id}/compartments/{seed.ac_id}/seats"
    )

    body = response.json()
    assert response.status_code == 200
    assert body["booked_seats"] == 1
    assert body["available_seats"] == 49
    assert body["occupied_seats"] == ["A7"]


async def test_seat_map_unknown_compartment(client, seed):
    response = await client.get(
        f"/api/v1/schedules/{seed.schedule_id}/compartments/{seed.unused_compartment_id}/seats"
    )

    assert response.status_code == 400


async def test_payment_flow(client, seed, gateway):
    ticket = await book(client, seed)

    initiated = await client.post(
        "/api/v1/payments/initiate",
        json={"ticket_id": ticket["ticket_id"]},
        headers=as_user(seed.user_id),
    )
    assert initiated.status_code == 200, initiated.text
    payment = initiated.json()
    assert payment["payment_url"] == "https://sandbox.example/pay/SESSION-KEY"
    assert Decimal(payment["amount"]) == Decimal("2076.00")

    gateway.approve("VAL-1", payment["transaction_id"], Decimal("2076.00"))
    params = {"tran_id": payment["transaction_id"], "val_id": "VAL-1"}
    first = await client.get("/api/v1/payments/success", params=params)
    second = await client.get("/api/v1/payments/success", params=params)

    assert first.json()["outcome"] == "COMPLETED"
    assert second.json()["outcome"] == "ALREADY_PROCESSED"

    confirmed = await client.get(
        f"/api/v1/tickets/{ticket['ticket_id']}", headers=as_user(seed.user_id)
    )
    assert confirmed.json()["status"] == "confirmed"
    assert confirmed.json()["payment_status"] == "paid"

    transaction = await client.get(
        f"/api/v1/payments/transactions/{payment['transaction_id']}",
        headers=as_user(seed.user_id),
    )
    assert transaction.json()["status"] == "COMPLETED"
    assert transaction.json()["val_id"] == "VAL-1"

    hidden = await client.get(
        f"/api/v1/payments/transactions/{payment['transaction_id']}",
        headers=as_user(seed.stranger_id),
    )
    assert hidden.status_code == 403


async def test_initiate_for_someone_elses_ticket(client, seed):
    ticket = await book(client, seed)

    response = await client.post(
        "/api/v1/payments/initiate",
        json={"ticket_id": ticket["ticket_id"]},
        headers=as_user(seed.stranger_id),
    )

    assert response.status_code == 403


async def test_initiate_when_gateway_down(client, seed, gateway):
    gateway.session_error = GatewayError("Failed to initiate payment")
    ticket = await book(client, seed)

    response = await client.post(
        "/api/v1/payments/initiate",
        json={"ticket_id": ticket["ticket_id"]},
        headers=as_user(seed.user_id),
    )

    assert response.status_code == 502


async def test_callbacks_need_transaction_id(client):
    assert (await client.get("/api/v1/payments/success")).status_code == 400
    assert (await client.get("/api/v1/payments/fail")).status_code == 400
    assert (await client.get("/api/v1/payments/cancel")).status_code == 400


async def test_success_without_validation_id(client, seed):
    ticket = await book(client, seed)
    initiated = await client.post(
        "/api/v1/payments/initiate",
        json={"ticket_id": ticket["ticket_id"]},
        headers=as_user(seed.user_id),
    )

    response = await client.get(
        "/api/v1/payments/success", params={"tran_id": initiated.json()["transaction_id"]}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing validation ID"


async def test_fail_and_cancel_callbacks(client, seed):
    ticket = await book(client, seed)
    headers = as_user(seed.user_id)
    body = {"ticket_id": ticket["ticket_id"]}

    first = (await client.post("/api/v1/payments/initiate", json=body, headers=headers)).json()
    failed = await client.get(
        "/api/v1/payments/fail",
        params={"tran_id": first["transaction_id"], "error": "Card declined"},
    )
    second = (await client.post("/api/v1/payments/initiate", json=body, headers=headers)).json()
    cancelled = await client.get(
        "/api/v1/payments/cancel", params={"tran_id": second["transaction_id"]}
    )

    assert failed.json()["outcome"] == "FAILED"
    assert cancelled.json()["outcome"] == "CANCELLED"
    assert first["transaction_id"] != second["transaction_id"]
    still_pending = await client.get(f"/api/v1/tickets/{ticket['ticket_id']}", headers=headers)
    assert still_pending.json()["status"] == "pending"


async def test_unknown_transaction_callback(client):
    response = await client.get("/api/v1/payments/fail", params={"tran_id": "TXN-NOPE"})

    assert response.status_code == 404


async def test_ipn_confirms_payment(client, seed, gateway):
    ticket = await book(client, seed)
    payment = (
        await client.post(
            "/api/v1/payments/initiate",
            json={"ticket_id": ticket["ticket_id"]},
            headers=as_user(seed.user_id),
        )
    ).json()
    gateway.approve("VAL-9", payment["transaction_id"], Decimal("2076.00"))

    response = await client.post("/api/v1/payments/ipn", json={"val_id": "VAL-9"})

    assert response.status_code == 200
    assert response.json() == {"status": "SUCCESS", "message": "COMPLETED"}


async def test_ipn_with_unknown_validation(client):
    response = await client.post("/api/v1/payments/ipn", json={"val_id": "VAL-NOPE"})

    assert response.status_code == 502


async def test_admin_endpoints_need_admin(client, seed):
    response = await client.post("/api/v1/admin/cleanup", headers=as_user(seed.user_id))

    assert response.status_code == 403


async def test_admin_cleanup(client, seed):
    ticket = await book(client, seed)
    admin = as_user(seed.admin_id)

    stats = await client.get("/api/v1/admin/cleanup/stats", headers=admin)
    swept = await client.post("/api/v1/admin/cleanup", headers=admin)
    expire_url = f"/api/v1/admin/tickets/{ticket['ticket_id']}/expire"
    expired = await client.post(expire_url, headers=admin)
    repeat = await client.post(expire_url, headers=admin)

    assert stats.json()["total_pending"] == 1
    assert swept.json() == {"expired_count": 0, "cancelled_transaction_count": 0, "errors": []}
    assert expired.json()["status"] == "expired"
    assert repeat.status_code == 409
