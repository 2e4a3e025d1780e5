import re
from datetime import date, datetime
from datetime import date as CalendarDate
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tabiplan.db.models import TransportNodeType

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def collapse_meta(value: Any) -> Any:
    """Joins may hand back the one-to-one metadata as a collection of size <= 1."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


# ===== SPOT SCHEMAS =====

class OpeningHours(BaseModel):
    day: str = Field(..., examples=["Mon"])
    hours: str = Field(..., examples=["9:00-18:00"])

class SpotMetaBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    image: Optional[str] = None
    url: Optional[str] = None
    prefecture: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    rating: Optional[float] = None
    categories: Optional[List[str]] = None
    catchphrase: Optional[str] = None
    description: Optional[str] = None
    opening_hours: Optional[List[OpeningHours]] = None

class SpotMetaRead(SpotMetaBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    spot_id: str

class NearestStationPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    walking_time: int = Field(..., ge=0)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

class NearestStationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    walking_time: int
    latitude: float
    longitude: float

class SpotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    meta: Optional[SpotMetaRead] = None

    @field_validator("meta", mode="before")
    @classmethod
    def normalize_meta(cls, v):
        return collapse_meta(v)

class SpotDetailRead(SpotRead):
    nearest_stations: List[NearestStationRead] = []


# ===== TRIP CREATION SCHEMAS =====

class Location(BaseModel):
    name: str = Field(..., min_length=1, description="Place name")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

class TransportPayload(BaseModel):
    """Transport used when leaving the stop it is attached to"""
    transport_method_ids: List[int] = Field(..., min_length=1)
    travel_time: Optional[str] = None
    cost: Optional[int] = Field(None, ge=0)
    from_type: TransportNodeType = TransportNodeType.SPOT
    to_type: TransportNodeType = TransportNodeType.SPOT

class SpotPayload(BaseModel):
    id: str = Field(..., min_length=1, max_length=255)
    location: Location
    stay_start: str = Field(..., description="HH:MM")
    stay_end: str = Field(..., description="HH:MM")
    memo: Optional[str] = Field(None, max_length=1000)
    image: Optional[str] = None
    url: Optional[str] = None
    prefecture: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    rating: Optional[float] = None
    category: Optional[List[str]] = None
    catchphrase: Optional[str] = None
    description: Optional[str] = None
    regular_opening_hours: Optional[List[OpeningHours]] = None
    transports: TransportPayload
    order: Optional[int] = Field(None, ge=0)
    nearest_station: Optional[NearestStationPayload] = None

    @field_validator("stay_start", "stay_end")
    @classmethod
    def validate_stay_time(cls, v: str) -> str:
        if not HHMM_PATTERN.match(v):
            raise ValueError("Stay time must be formatted as HH:MM")
        return v

class TripInfoPayload(BaseModel):
    date: CalendarDate
    genre_id: int = 1
    transportation_method: List[int] = Field(..., min_length=1)
    memo: Optional[str] = Field(None, max_length=1000)

class PlanPayload(BaseModel):
    date: CalendarDate
    spots: List[SpotPayload] = []

    @model_validator(mode="after")
    def assign_order(self):
        """Stops are ordered 0..N-1 in submission order"""
        for position, spot in enumerate(self.spots):
            if spot.order is None:
                spot.order = position
            elif spot.order != position:
                raise ValueError(
                    f"Spot order must follow submission order (expected {position}, got {spot.order})"
                )
        return self

class TripCreate(BaseModel):
    title: str = Field(..., max_length=50)
    image_url: Optional[str] = Field(None, max_length=255)
    start_date: date
    end_date: date
    trip_info: List[TripInfoPayload] = Field(..., min_length=1)
    plans: List[PlanPayload] = Field(..., min_length=1)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Title is required")
        return v

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# ===== TRIP READ SCHEMAS =====

class TripInfoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: str
    genre_id: int
    transportation_methods: List[int]
    memo: Optional[str] = None

class PlanSpotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    spot_id: str
    stay_start: str
    stay_end: str
    memo: Optional[str] = None
    order: int
    spot: SpotDetailRead

class TransportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    from_type: TransportNodeType
    to_type: TransportNodeType
    from_spot_id: Optional[int] = None
    to_spot_id: Optional[int] = None
    travel_time: Optional[str] = None
    cost: Optional[int] = None
    transport_methods: List[int]

class PlanRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: str
    plan_spots: List[PlanSpotRead] = []
    transports: List[TransportRead] = []

class PlanSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: str

class TripSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    image_url: Optional[str] = None
    start_date: str
    end_date: str
    created_at: datetime
    updated_at: datetime
    trip_infos: List[TripInfoRead] = []
    plans: List[PlanSummaryRead] = []

class TripRead(TripSummaryRead):
    plans: List[PlanRead] = []

class CountRead(BaseModel):
    count: int
    limit: int

class EndpointRead(BaseModel):
    id: str
    name: str
    lat: float
    lng: float

class EndpointHistoryRead(BaseModel):
    departure: List[EndpointRead]
    destination: List[EndpointRead]


# ===== WISHLIST SCHEMAS =====

class SpotCreate(BaseModel):
    meta: SpotMetaBase

class WishlistCreate(BaseModel):
    spot_id: str = Field(..., min_length=1, max_length=255)
    spot: SpotCreate
    memo: Optional[str] = None
    priority: int = Field(1, ge=1, le=5)
    visited: bool = False
    visited_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_visited_state(self):
        if self.visited_at is not None and not self.visited:
            raise ValueError("visited_at can only be set on visited entries")
        return self

class WishlistUpdate(BaseModel):
    id: int
    memo: Optional[str] = None
    priority: int = Field(..., ge=1, le=5)
    visited: bool = False
    visited_at: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_visited_state(self):
        if self.visited_at is not None and not self.visited:
            raise ValueError("visited_at can only be set on visited entries")
        return self

class WishlistRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    spot_id: str
    user_id: str
    memo: Optional[str] = None
    priority: int
    visited: bool
    visited_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    spot: SpotRead


# ===== SPOT HISTORY QUERY SCHEMAS =====

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

class UnvisitedSortKey(str, Enum):
    PRIORITY = "priority"
    CREATED_AT = "createdAt"

class VisitedSortKey(str, Enum):
    VISITED_AT = "visitedAt"
    CREATED_AT = "createdAt"
    PLAN_DATE = "planDate"
    VISIT_COUNT = "visitCount"

class UnvisitedSpotsQuery(BaseModel):
    prefecture: Optional[str] = None
    priority: Optional[int] = Field(None, ge=1, le=5)
    sort_by: UnvisitedSortKey = UnvisitedSortKey.PRIORITY
    sort_order: SortOrder = SortOrder.DESC

class VisitedSpotsQuery(BaseModel):
    prefecture: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_visit_count: Optional[int] = Field(None, ge=1)
    sort_by: VisitedSortKey = VisitedSortKey.VISITED_AT
    sort_order: SortOrder = SortOrder.DESC

class SpotRecord(WishlistRead):
    """One row of the visited-spot history, from the want-list or a past plan"""
    origin: Literal["wishlist", "plan"]
    plan_date: Optional[str] = None
    visit_count: int = 1
