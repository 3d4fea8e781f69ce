"""
Route Details Backend: Route Request/Response Schemas
=======================================================

What:  Pydantic models defining the route API contract.
How:   Field names are snake_case in Python and camelCase on the wire
       (`travelMode`, `routeId`, `createdAt`, ...) via an alias generator.
       Input models forbid unknown keys, which is also how identifier fields
       (`id`, `routeId`, timestamps) are kept out of create/update payloads.
Who:   services.validation parses payloads into these models; RouteService
       returns RouteResponse / RouteListResponse.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TravelMode(str, Enum):
    DRIVING = "DRIVING"
    WALKING = "WALKING"
    BICYCLING = "BICYCLING"
    TRANSIT = "TRANSIT"


class CamelModel(BaseModel):
    """Base for every route schema: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ══════════════════════════════════════════════════════════════════════════
# Embedded value objects
# ══════════════════════════════════════════════════════════════════════════


class Coordinate(CamelModel):
    """A latitude/longitude pair with an optional display name."""

    name: Optional[str] = Field(default=None, description="Place name", examples=["Home"])
    lat: float = Field(ge=-90, le=90, description="Latitude", examples=[40.7128])
    lng: float = Field(ge=-180, le=180, description="Longitude", examples=[-74.006])


class Distance(CamelModel):
    value: float = Field(ge=0, description="Distance in meters", examples=[12345])
    text: str = Field(min_length=1, description="Formatted distance", examples=["12.3 km"])


class Duration(CamelModel):
    value: float = Field(ge=0, description="Duration in seconds", examples=[3600])
    text: str = Field(min_length=1, description="Formatted duration", examples=["1 hour"])


def normalize_tags(tags: List[str]) -> List[str]:
    """
    Strips tags and drops duplicates keeping first-seen order.

    Commas are refused because tag lookups split comma-joined lists.
    """
    cleaned: List[str] = []
    for tag in tags:
        value = tag.strip()
        if not value:
            raise ValueError("tags must not contain empty values")
        if "," in value:
            raise ValueError(f"tag '{value[:16]}' must not contain a comma")
        if len(value) > 64:
            raise ValueError(f"tag '{value[:16]}...' is longer than 64 characters")
        if value not in cleaned:
            cleaned.append(value)
    return cleaned


# ══════════════════════════════════════════════════════════════════════════
# Input models
# ══════════════════════════════════════════════════════════════════════════


class RouteCreate(CamelModel):
    """
    Payload for creating a route.

    Server-assigned fields (id, routeId, createdAt, updatedAt) are rejected.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=255, examples=["Home to Work"])
    travel_mode: TravelMode = Field(examples=[TravelMode.DRIVING])
    distance: Distance
    duration: Duration
    origin: Coordinate
    destination: Coordinate
    waypoints: List[Coordinate] = Field(default_factory=list)
    path: List[Coordinate] = Field(min_length=1, description="Route geometry, at least one point")
    user_id: Optional[str] = Field(default=None, description="Free-text owner identifier")
    tags: List[str] = Field(default_factory=list)
    is_favorite: bool = False

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)


class RouteUpdate(CamelModel):
    """
    Partial update payload. Only the keys present in the payload are applied.

    Nested objects (distance, duration, origin, destination, waypoints, path)
    replace the stored value wholesale; there is no deep merge.
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    travel_mode: Optional[TravelMode] = None
    distance: Optional[Distance] = None
    duration: Optional[Duration] = None
    origin: Optional[Coordinate] = None
    destination: Optional[Coordinate] = None
    waypoints: Optional[List[Coordinate]] = None
    path: Optional[List[Coordinate]] = None
    user_id: Optional[str] = None
    tags: Optional[List[str]] = None
    is_favorite: Optional[bool] = None

    # userId is the only field that may be explicitly cleared with null
    @field_validator(
        "name", "travel_mode", "distance", "duration", "origin",
        "destination", "waypoints", "path", "tags", "is_favorite",
    )
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("may not be null")
        return v

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("must not be blank")
        if v is not None and len(v) > 255:
            raise ValueError("must be at most 255 characters")
        return v

    @field_validator("path")
    @classmethod
    def path_not_empty(cls, v: Optional[List[Coordinate]]) -> Optional[List[Coordinate]]:
        if v is not None and not v:
            raise ValueError("must contain at least one point")
        return v

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else normalize_tags(v)


# ══════════════════════════════════════════════════════════════════════════
# Response models
# ══════════════════════════════════════════════════════════════════════════


class RouteResponse(CamelModel):
    """Full representation of a stored route, built from the ORM object."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    route_id: str
    name: str
    travel_mode: TravelMode
    distance: Distance
    duration: Duration
    origin: Coordinate
    destination: Coordinate
    waypoints: List[Coordinate] = Field(default_factory=list)
    path: List[Coordinate]
    user_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_favorite: bool = False
    created_at: datetime
    updated_at: datetime

    @field_validator("tags", mode="before")
    @classmethod
    def tag_rows_to_names(cls, v: Any) -> Any:
        # ORM objects carry RouteTag rows; plain dicts carry strings
        if isinstance(v, list):
            return [getattr(item, "tag", item) for item in v]
        return v


class RouteListResponse(CamelModel):
    """A page of routes plus the number of routes matching the query."""

    routes: List[RouteResponse] = Field(default_factory=list)
    total: int = Field(ge=0, description="Total matches across all pages")


class RouteCountResponse(CamelModel):
    count: int = Field(ge=0)
