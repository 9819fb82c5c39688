"""
End-to-end API tests: a driver publishes a ride, a rider books and pays,
the booking is cancelled, and the ledger survives.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from sqlalchemy import select

from ridepool.app.models.enums import UserRole
from ridepool.app.models.payment_enums import TransactionType
from ridepool.app.models.payment_transaction import PaymentTransaction
from ridepool.app.models.ride import Ride
from ridepool.app.models.user import User


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "up"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client, world):
    response = await client.get("/v1/rides/available")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_ride_booking_payment_cancel_flow(client, world, auth_headers, session_factory):
    driver = auth_headers(world.driver_id, UserRole.DRIVER)
    rider = auth_headers(world.rider_id, UserRole.RIDER)

    # Driver publishes a ride
    departure = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    response = await client.post("/v1/rides", headers=driver, json={
        "route_id": world.route_id,
        "departure_time": departure,
        "total_seats": 3,
        "pickup_point_ids": [world.pickup_point_id, world.second_pickup_point_id],
    })
    assert response.status_code == 201, response.text
    ride = response.json()
    assert ride["available_seats"] == 3
    assert ride["route"]["origin"] == "Lekki"
    assert ride["driver_name"] == "Tunde"
    assert len(ride["pickup_points"]) == 2

    # Rider finds and books it
    response = await client.get("/v1/rides/available", headers=rider, params={"from": "Lekki", "to": "Victoria"})
    assert response.status_code == 200
    assert ride["id"] in [r["id"] for r in response.json()]

    response = await client.post("/v1/bookings", headers=rider, json={
        "ride_id": ride["id"], "seat_count": 2, "pickup_point_id": world.pickup_point_id,
    })
    assert response.status_code == 201, response.text
    booking = response.json()
    assert booking["status"] == "CONFIRMED"
    assert booking["payment_status"] == "PENDING"
    assert Decimal(booking["total_price"]) == Decimal("5000.00")

    response = await client.get(f"/v1/rides/{ride['id']}", headers=rider)
    assert response.json()["available_seats"] == 1

    # Driver's virtual account, then the rider confirms the transfer
    response = await client.get("/v1/driver/virtual-account", headers=driver)
    assert response.status_code == 200
    assert response.json()["account_number"].startswith("SR")

    response = await client.post("/v1/payments/confirm-transfer", headers=rider, json={
        "booking_id": booking["id"], "amount": "5000.00", "payment_reference": "GTB-778812",
    })
    assert response.status_code == 200, response.text
    paid = response.json()
    assert paid["booking"]["payment_status"] == "PAID"
    assert Decimal(paid["commission_amount"]) == Decimal("500.00")
    assert Decimal(paid["driver_amount"]) == Decimal("4500.00")
    assert paid["payout_status"] == "PENDING"

    response = await client.get("/v1/driver/wallet", headers=driver)
    assert Decimal(response.json()["balance"]) == Decimal("4500.00")

    # Rider cancels: seats come back, the ledger is not reversed
    response = await client.post(f"/v1/bookings/{booking['id']}/cancel", headers=rider)
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["payment_status"] == "REFUNDED"

    async with session_factory() as db:
        stored_ride = await db.get(Ride, ride["id"])
        assert stored_ride.available_seats == 3

        ledger = (await db.execute(
            select(PaymentTransaction.transaction_type)
            .where(PaymentTransaction.booking_id == booking["id"])
            .order_by(PaymentTransaction.id)
        )).scalars().all()
        assert ledger == [
            TransactionType.PAYMENT_RECEIVED,
            TransactionType.COMMISSION_DEDUCTED,
            TransactionType.DRIVER_PAYOUT,
        ]

    response = await client.get("/v1/driver/payment-stats", headers=driver)
    stats = response.json()
    assert Decimal(stats["total_received"]) == Decimal("5000.00")
    assert Decimal(stats["pending_payouts"]) == Decimal("4500.00")
    assert stats["payments_count"] == 1

    # Driver got booking, payment and cancellation notifications
    response = await client.get("/v1/notifications", headers=driver)
    types = {n["type"] for n in response.json()}
    assert {"BOOKING_CONFIRMED", "PAYMENT_RECEIVED", "BOOKING_CANCELLED"} <= types

    response = await client.patch("/v1/notifications/read-all", headers=driver)
    assert response.json()["count"] == 3

    response = await client.get("/v1/notifications", headers=driver, params={"unread_only": True})
    assert response.json() == []


@pytest.mark.asyncio
async def test_role_guards(client, world, auth_headers):
    rider = auth_headers(world.rider_id, UserRole.RIDER)
    driver = auth_headers(world.driver_id, UserRole.DRIVER)

    response = await client.post("/v1/rides", headers=rider, json={
        "route_id": world.route_id,
        "departure_time": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
    })
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_FORBIDDEN"

    response = await client.post("/v1/bookings", headers=driver, json={"ride_id": world.ride_id})
    assert response.status_code == 403

    response = await client.get("/v1/admin/settings/commission", headers=driver)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_role_comes_from_the_user_record(client, world, auth_headers):
    # Token claims DRIVER, but the account is a rider
    forged = auth_headers(world.rider_id, UserRole.DRIVER)

    response = await client.get("/v1/driver/wallet", headers=forged)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_inactive_user_is_refused(client, world, auth_headers, session_factory):
    async with session_factory() as db:
        user = await db.get(User, world.rider_id)
        user.is_active = False
        await db.commit()

    response = await client.get("/v1/bookings/me", headers=auth_headers(world.rider_id, UserRole.RIDER))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_error_body_format(client, world, auth_headers, make_ride):
    rider = auth_headers(world.rider_id, UserRole.RIDER)
    ride_id = await make_ride(total_seats=1)

    response = await client.post("/v1/bookings", headers=rider, json={"ride_id": ride_id, "seat_count": 2})
    assert response.status_code == 409
    body = response.json()
    assert body["error_code"] == "ERR_SEATS_001"
    assert body["details"] == {"ride_id": ride_id, "requested": 2, "available": 1}

    response = await client.post("/v1/bookings", headers=rider, json={"ride_id": ride_id, "seat_count": 0})
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_INPUT_001"

    response = await client.get("/v1/bookings/99999", headers=rider)
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"

    response = await client.post("/v1/bookings", headers=rider, json={"seat_count": 1})
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_booking_visibility(client, world, auth_headers):
    rider = auth_headers(world.rider_id, UserRole.RIDER)
    response = await client.post("/v1/bookings", headers=rider, json={"ride_id": world.ride_id})
    booking_id = response.json()["id"]

    other = auth_headers(world.other_rider_id, UserRole.RIDER)
    assert (await client.get(f"/v1/bookings/{booking_id}", headers=other)).status_code == 403
    assert (await client.get(f"/v1/bookings/{booking_id}", headers=rider)).status_code == 200

    driver = auth_headers(world.driver_id, UserRole.DRIVER)
    assert (await client.get(f"/v1/bookings/{booking_id}", headers=driver)).status_code == 200

    response = await client.get(f"/v1/rides/{world.ride_id}/bookings", headers=driver)
    assert [b["id"] for b in response.json()] == [booking_id]


@pytest.mark.asyncio
async def test_rating_over_http(client, world, auth_headers):
    rider = auth_headers(world.rider_id, UserRole.RIDER)
    booking_id = (await client.post("/v1/bookings", headers=rider, json={"ride_id": world.ride_id})).json()["id"]

    response = await client.post(f"/v1/bookings/{booking_id}/rating", headers=rider,
                                  json={"rating": 5, "compliment": "Great music"})
    assert response.status_code == 200
    assert response.json()["rating_value"] == 5

    response = await client.post(f"/v1/bookings/{booking_id}/rating", headers=rider, json={"rating": 4})
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_STATE_001"

    me = await client.get("/v1/auth/me", headers=auth_headers(world.driver_id, UserRole.DRIVER))
    assert me.json()["driver_profile"]["total_ratings"] == 1
    assert me.json()["driver_profile"]["overall_rating"] == 5.0


@pytest.mark.asyncio
async def test_admin_commission_and_bank_verification(client, world, auth_headers):
    admin = auth_headers(world.admin_id, UserRole.ADMIN)
    driver = auth_headers(world.driver_id, UserRole.DRIVER)

    response = await client.get("/v1/admin/settings/commission", headers=admin)
    assert Decimal(response.json()["commission_percentage"]) == Decimal("10")

    response = await client.put("/v1/admin/settings/commission", headers=admin, json={"commission_percentage": "12.5"})
    assert response.status_code == 200
    assert Decimal(response.json()["commission_percentage"]) == Decimal("12.50")

    response = await client.put("/v1/admin/settings/commission", headers=admin, json={"commission_percentage": "150"})
    assert response.status_code == 400

    response = await client.put("/v1/driver/bank-account", headers=driver, json={
        "account_number": "0123456789", "bank_name": "GTBank", "bank_code": "058", "account_name": "Tunde Driver",
    })
    assert response.status_code == 200
    assert response.json()["is_verified"] is False

    response = await client.post(f"/v1/admin/bank-accounts/{world.driver_id}/verify", headers=admin)
    assert response.json()["is_verified"] is True

    response = await client.get("/v1/driver/bank-account", headers=driver)
    assert response.json()["is_verified"] is True


@pytest.mark.asyncio
async def test_driver_payout_over_http(client, world, auth_headers):
    driver = auth_headers(world.driver_id, UserRole.DRIVER)
    account = (await client.get("/v1/driver/virtual-account", headers=driver)).json()

    response = await client.post("/v1/payments/webhook", json={
        "virtual_account_number": account["account_number"],
        "amount": "2000.00",
        "payment_reference": "NIP-0001",
    })
    assert response.json()["processed"] is True

    response = await client.post("/v1/driver/payout", headers=driver, json={"amount": "5000"})
    assert response.status_code == 400

    response = await client.post("/v1/driver/payout", headers=driver, json={"amount": "1000"})
    assert response.status_code == 200
    assert response.json()["status"] == "PENDING"
    assert response.json()["metadata_payload"]["reason"] == "BANK_ACCOUNT_NOT_SETUP"

    response = await client.get("/v1/driver/transactions", headers=driver, params={"type": "PAYMENT_RECEIVED"})
    assert [t["payment_reference"] for t in response.json()] == ["NIP-0001"]


@pytest.mark.asyncio
async def test_route_catalogue(client, world, auth_headers):
    rider = auth_headers(world.rider_id, UserRole.RIDER)

    response = await client.get("/v1/routes", headers=rider)
    assert [(r["origin"], r["destination"]) for r in response.json()] == [
        ("Ikeja", "Yaba"), ("Lekki", "Victoria Island"),
    ]

    response = await client.get(f"/v1/routes/{world.route_id}/pickup-points", headers=rider)
    assert [p["id"] for p in response.json()] == [world.pickup_point_id, world.second_pickup_point_id]

    response = await client.get("/v1/routes/99999", headers=rider)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_deactivates_virtual_account(client, world, auth_headers):
    admin = auth_headers(world.admin_id, UserRole.ADMIN)
    driver = auth_headers(world.driver_id, UserRole.DRIVER)
    account = (await client.get("/v1/driver/virtual-account", headers=driver)).json()

    response = await client.post(f"/v1/admin/virtual-accounts/{world.driver_id}/deactivate", headers=admin)
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = await client.post("/v1/payments/webhook", json={
        "virtual_account_number": account["account_number"], "amount": "100", "payment_reference": "NIP-OFF",
    })
    assert response.json()["processed"] is False
    assert response.json()["error_code"] == "ERR_STATE_001"


@pytest.mark.asyncio
async def test_admin_expires_unpaid_bookings(client, world, auth_headers):
    admin = auth_headers(world.admin_id, UserRole.ADMIN)
    rider = auth_headers(world.rider_id, UserRole.RIDER)
    await client.post("/v1/bookings", headers=rider, json={"ride_id": world.ride_id, "seat_count": 2})

    # Default hold window: the fresh booking is kept
    response = await client.post("/v1/admin/bookings/expire-unpaid", headers=admin)
    assert response.json() == {"expired": 0}

    response = await client.get(f"/v1/rides/{world.ride_id}", headers=rider)
    assert response.json()["available_seats"] == 2
