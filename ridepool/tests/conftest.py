"""
Centralized Test Configuration.

Each test gets its own file-backed SQLite database. Every transaction opens
with BEGIN IMMEDIATE, so concurrent sessions serialize on the database write
lock the way the services' row locks serialize them on PostgreSQL.
"""

import pytest
from types import SimpleNamespace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, insert
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from ridepool.app.main import app
from ridepool.app.db.session import get_db, Base
from ridepool.app.core.jwt import create_access_token
from ridepool.app.core.reliability import payout_circuit_breaker
import ridepool.app.core.redis_client as redis_client_module
from ridepool.app.models.enums import UserRole
from ridepool.app.models.user import User
from ridepool.app.models.route import Route, PickupPoint
from ridepool.app.models.ride import Ride, ride_pickup_points
from ridepool.app.models.ride_enums import RideStatus


@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ridepool_test.db'}",
        connect_args={"timeout": 30},
        poolclass=NullPool,
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        # Take over transaction control from the driver, enable FK checks
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(test_engine.sync_engine, "begin")
    def on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture(autouse=True)
def apply_overrides(mock_redis, monkeypatch):
    """Patch the global redis client and reset the payout breaker for every test."""
    monkeypatch.setattr(redis_client_module, "redis_client", mock_redis)
    payout_circuit_breaker.reset_state()
    yield
    payout_circuit_breaker.reset_state()


@pytest.fixture
async def client(session_factory):
    """Async client for testing, bound to the per-test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}


def _auth_headers(user_id: int, role: UserRole) -> dict:
    token = create_access_token(data={"sub": str(user_id), "user_id": user_id, "role": role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Bearer headers for a user id and role, as the identity provider would issue."""
    return _auth_headers


@pytest.fixture
async def world(session_factory):
    """
    A small marketplace: admin, driver, two riders, the Lekki -> Victoria
    Island route (price 2500.00) with two pickup points, a third pickup point
    on another route, and one scheduled 4-seat ride.

    Only ids are exposed; tests load fresh rows through their own sessions.
    """
    async with session_factory() as db:
        admin = User(email="admin@ridepool.ng", name="Admin", role=UserRole.ADMIN, is_active=True)
        driver = User(email="driver@ridepool.ng", name="Tunde", role=UserRole.DRIVER, is_active=True,
                      car_model="Toyota Corolla", car_plate="LND-123-AA")
        rider = User(email="rider@ridepool.ng", name="Ada", role=UserRole.RIDER, is_active=True)
        other_rider = User(email="rider2@ridepool.ng", name="Bola", role=UserRole.RIDER, is_active=True)
        route = Route(origin="Lekki", destination="Victoria Island", price=Decimal("2500.00"),
                      distance_km=Decimal("8"), duration_mins=25)
        other_route = Route(origin="Ikeja", destination="Yaba", price=Decimal("3500.00"),
                            distance_km=Decimal("18"), duration_mins=40)
        db.add_all([admin, driver, rider, other_rider, route, other_route])
        await db.flush()

        phase1 = PickupPoint(route_id=route.id, name="Lekki Phase 1", lat=Decimal("6.4449"), lng=Decimal("3.4774"))
        admiralty = PickupPoint(route_id=route.id, name="Admiralty Way", lat=Decimal("6.4504"), lng=Decimal("3.4727"))
        mall = PickupPoint(route_id=other_route.id, name="Ikeja City Mall", lat=Decimal("6.6018"), lng=Decimal("3.3515"))
        db.add_all([phase1, admiralty, mall])
        await db.flush()

        ride = Ride(
            driver_id=driver.id,
            route_id=route.id,
            departure_time=datetime.now(timezone.utc) + timedelta(hours=3),
            total_seats=4,
            available_seats=4,
            status=RideStatus.SCHEDULED,
        )
        db.add(ride)
        await db.flush()
        await db.execute(insert(ride_pickup_points), [
            {"ride_id": ride.id, "pickup_point_id": phase1.id},
            {"ride_id": ride.id, "pickup_point_id": admiralty.id},
        ])
        await db.commit()

        return SimpleNamespace(
            admin_id=admin.id,
            driver_id=driver.id,
            rider_id=rider.id,
            other_rider_id=other_rider.id,
            route_id=route.id,
            other_route_id=other_route.id,
            pickup_point_id=phase1.id,
            second_pickup_point_id=admiralty.id,
            foreign_pickup_point_id=mall.id,
            ride_id=ride.id,
        )


@pytest.fixture
def make_ride(session_factory, world):
    """Factory for extra scheduled rides on the world's route."""
    async def _make_ride(total_seats: int = 4) -> int:
        async with session_factory() as db:
            ride = Ride(
                driver_id=world.driver_id,
                route_id=world.route_id,
                departure_time=datetime.now(timezone.utc) + timedelta(hours=5),
                total_seats=total_seats,
                available_seats=total_seats,
                status=RideStatus.SCHEDULED,
            )
            db.add(ride)
            await db.commit()
            return ride.id

    return _make_ride
