"""
Shared fixtures: an in-memory SQLite database per test and payload builders
for itineraries and wishlist entries.
"""

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import tabiplan.db.models  # noqa: F401  (register tables)
from tabiplan.api.schemas import TripCreate, WishlistCreate
from tabiplan.core.settings import Settings

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings():
    return Settings(DB_URL="sqlite:///:memory:", LOG_FILE="")


@pytest.fixture
def spot_payload():
    """Build one itinerary stop as a plain dict"""
    def build(spot_id, name=None, prefecture="Tokyo", methods=(2,), cost=None,
              travel_time=None, **extra):
        data = {
            "id": spot_id,
            "location": {"name": name or f"Spot {spot_id}", "lat": 35.68, "lng": 139.76},
            "stay_start": "10:00",
            "stay_end": "11:00",
            "prefecture": prefecture,
            "transports": {
                "transport_method_ids": list(methods),
                "travel_time": travel_time,
                "cost": cost,
            },
        }
        data.update(extra)
        return data
    return build


@pytest.fixture
def trip_payload():
    """Build a TripCreate from (iso_date, [stop dicts]) pairs"""
    def build(plans, title="Weekend trip"):
        dates = sorted(day for day, _ in plans)
        return TripCreate.model_validate({
            "title": title,
            "start_date": dates[0],
            "end_date": dates[-1],
            "trip_info": [
                {"date": day, "genre_id": 1, "transportation_method": [1]}
                for day, _ in plans
            ],
            "plans": [{"date": day, "spots": stops} for day, stops in plans],
        })
    return build


@pytest.fixture
def wishlist_payload():
    def build(spot_id, priority=1, visited=False, visited_at=None, prefecture="Tokyo", name=None):
        return WishlistCreate.model_validate({
            "spot_id": spot_id,
            "spot": {"meta": {
                "name": name or f"Spot {spot_id}",
                "latitude": 35.0,
                "longitude": 135.0,
                "prefecture": prefecture,
            }},
            "priority": priority,
            "visited": visited,
            "visited_at": visited_at,
        })
    return build
