from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any

from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, DateTime, Index, CheckConstraint, UniqueConstraint, JSON
from sqlalchemy import Enum as SAEnum

# Spot IDs starting with these prefixes are virtual trip endpoints, not places
DEPARTURE_PREFIX = "departure"
DESTINATION_PREFIX = "destination"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class TransportNodeType(str, Enum):
    DEPARTURE = "DEPARTURE"
    DESTINATION = "DESTINATION"
    SPOT = "SPOT"

class RoleType(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"
    GUEST = "GUEST"


class AuditMixin(SQLModel):
    """Creation and modification timestamps shared by user-owned tables"""

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
        sa_column_kwargs={"onupdate": utc_now},
    )


# Models
class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True, max_length=255, description="Identity provider user id")
    email: Optional[str] = Field(default=None, max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    role: RoleType = Field(
        default=RoleType.USER,
        sa_column=Column(SAEnum(RoleType, name="roletype"), nullable=False),
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )

    trips: List["Trip"] = Relationship(back_populates="user")
    wishlist_entries: List["Wishlist"] = Relationship(back_populates="user")


class Spot(SQLModel, table=True):
    __tablename__ = "spots"

    id: str = Field(primary_key=True, max_length=255, description="External place id")

    # Relationships
    meta: Optional["SpotMeta"] = Relationship(
        back_populates="spot",
        sa_relationship_kwargs={"uselist": False},
    )
    nearest_stations: List["NearestStation"] = Relationship(back_populates="spot")
    plan_spots: List["PlanSpot"] = Relationship(back_populates="spot")

    @property
    def is_virtual(self) -> bool:
        return self.id.startswith(DEPARTURE_PREFIX) or self.id.startswith(DESTINATION_PREFIX)


class SpotMeta(SQLModel, table=True):
    __tablename__ = "spot_metas"

    __table_args__ = (
        Index('idx_spot_metas_prefecture', 'prefecture'),
        CheckConstraint('latitude BETWEEN -90 AND 90', name='check_valid_latitude'),
        CheckConstraint('longitude BETWEEN -180 AND 180', name='check_valid_longitude'),
    )

    id: str = Field(primary_key=True, max_length=255)
    spot_id: str = Field(foreign_key="spots.id", unique=True, nullable=False, max_length=255)
    name: str = Field(max_length=255, description="Place name")
    latitude: float = Field(description="Latitude coordinate")
    longitude: float = Field(description="Longitude coordinate")
    image: Optional[str] = Field(default=None, description="Image URL")
    url: Optional[str] = Field(default=None)
    prefecture: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=255)
    rating: Optional[float] = Field(default=None, description="Average rating (0-5)")
    categories: Optional[List[str]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="Category tags",
    )
    catchphrase: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None)
    opening_hours: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        sa_column=Column(JSON, nullable=True),
        description="Opening hours as a list of {day, hours}",
    )

    spot: Spot = Relationship(back_populates="meta")


class NearestStation(SQLModel, table=True):
    __tablename__ = "nearest_stations"

    id: Optional[int] = Field(default=None, primary_key=True)
    spot_id: Optional[str] = Field(default=None, foreign_key="spots.id", ondelete="SET NULL")
    name: str = Field(max_length=255)
    walking_time: int = Field(description="Walking time in minutes")
    latitude: float
    longitude: float

    spot: Optional[Spot] = Relationship(back_populates="nearest_stations")


class Trip(AuditMixin, table=True):
    __tablename__ = "trips"

    __table_args__ = (
        Index('idx_trips_user_id', 'user_id'),
        CheckConstraint('length(title) > 0', name='check_title_not_empty'),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=50, description="Trip title")
    user_id: str = Field(foreign_key="users.id", nullable=False, max_length=255)
    image_url: Optional[str] = Field(default=None, max_length=255)
    start_date: str = Field(max_length=10, description="ISO start date (YYYY-MM-DD)")
    end_date: str = Field(max_length=10, description="ISO end date (YYYY-MM-DD)")

    # Relationships
    user: Optional[User] = Relationship(back_populates="trips")
    trip_infos: List["TripInfo"] = Relationship(
        back_populates="trip",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "TripInfo.id"},
    )
    plans: List["Plan"] = Relationship(
        back_populates="trip",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "Plan.id"},
    )


class TripInfo(SQLModel, table=True):
    __tablename__ = "trip_infos"

    id: Optional[int] = Field(default=None, primary_key=True)
    trip_id: int = Field(foreign_key="trips.id", nullable=False, ondelete="CASCADE")
    date: str = Field(max_length=10)
    genre_id: int = Field(default=1)
    transportation_methods: List[int] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Transport method ids chosen for the day",
    )
    memo: Optional[str] = Field(default=None)

    trip: Optional[Trip] = Relationship(back_populates="trip_infos")


class Plan(SQLModel, table=True):
    __tablename__ = "plans"

    __table_args__ = (
        Index('idx_plans_trip_id', 'trip_id'),
        Index('idx_plans_date', 'date'),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    trip_id: int = Field(foreign_key="trips.id", nullable=False, ondelete="CASCADE")
    date: str = Field(max_length=10, description="ISO calendar date (YYYY-MM-DD)")

    trip: Optional[Trip] = Relationship(back_populates="plans")
    plan_spots: List["PlanSpot"] = Relationship(
        back_populates="plan",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "PlanSpot.order"},
    )
    transports: List["Transport"] = Relationship(
        back_populates="plan",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "Transport.id"},
    )


class PlanSpot(SQLModel, table=True):
    __tablename__ = "plan_spots"

    __table_args__ = (
        Index('idx_plan_spots_plan', 'plan_id'),
        Index('idx_plan_spots_spot', 'spot_id'),
        CheckConstraint('"order" >= 0', name='check_valid_order'),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    plan_id: int = Field(foreign_key="plans.id", nullable=False, ondelete="CASCADE")
    spot_id: str = Field(foreign_key="spots.id", nullable=False, max_length=255)
    stay_start: str = Field(max_length=5, description="HH:MM")
    stay_end: str = Field(max_length=5, description="HH:MM")
    memo: Optional[str] = Field(default=None)
    order: int = Field(default=0, description="Position within the plan")

    plan: Optional[Plan] = Relationship(back_populates="plan_spots")
    spot: Optional[Spot] = Relationship(back_populates="plan_spots")


class Transport(SQLModel, table=True):
    __tablename__ = "transports"

    __table_args__ = (
        Index('idx_transports_plan', 'plan_id'),
        CheckConstraint('cost IS NULL OR cost >= 0', name='check_valid_cost'),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    plan_id: int = Field(foreign_key="plans.id", nullable=False, ondelete="CASCADE")
    from_type: TransportNodeType = Field(
        sa_column=Column(SAEnum(TransportNodeType, name="transportnodetype"), nullable=False),
    )
    to_type: TransportNodeType = Field(
        sa_column=Column(SAEnum(TransportNodeType, name="transportnodetype"), nullable=False),
    )
    from_spot_id: Optional[int] = Field(default=None, foreign_key="plan_spots.id", ondelete="SET NULL")
    to_spot_id: Optional[int] = Field(default=None, foreign_key="plan_spots.id", ondelete="SET NULL")
    travel_time: Optional[str] = Field(default=None, description="Travel time label")
    cost: Optional[int] = Field(default=0)
    transport_methods: List[int] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    plan: Optional[Plan] = Relationship(back_populates="transports")


class Wishlist(AuditMixin, table=True):
    __tablename__ = "wishlists"

    __table_args__ = (
        UniqueConstraint('user_id', 'spot_id', name='uq_wishlists_user_spot'),
        Index('idx_wishlists_user_visited', 'user_id', 'visited'),
        CheckConstraint('priority BETWEEN 1 AND 5', name='check_valid_priority'),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.id", nullable=False, max_length=255)
    spot_id: str = Field(foreign_key="spots.id", nullable=False, max_length=255)
    memo: Optional[str] = Field(default=None)
    priority: int = Field(default=1, description="Priority (1-5)")
    visited: bool = Field(default=False)
    visited_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),
        nullable=True,
    )

    user: Optional[User] = Relationship(back_populates="wishlist_entries")
    spot: Optional[Spot] = Relationship()
