"""
Route Details Backend: Route SQLAlchemy Models
================================================

What:  ORM models for the `routes` table and its `route_tags` association table.
How:   Nested route data (distance, duration, coordinates, path) lives in JSON
       columns, so a route row reads back as one self-contained document.
Who:   Used by RouteService for every query and by Alembic for the schema.

Table Design:
    - id: opaque UUID4 string assigned on insert; the store-level identity
    - route_id: human-facing "route-<ms>-<8 hex>" identifier, UNIQUE
    - distance / duration / origin / destination / waypoints / path: JSON
    - origin_name / destination_name / waypoint_names: plain-text copies of
      the coordinate names, kept in sync by refresh_search_columns() so the
      substring search runs as column predicates on PostgreSQL and SQLite
    - created_at / updated_at: UTC, timezone-aware on every backend

    Index on created_at DESC serves list/search ordering.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from route_details.database import Base


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    DateTime column that always round-trips as timezone-aware UTC.

    PostgreSQL keeps the offset natively; SQLite drops it on write and returns
    naive values. Normalizing on both edges keeps comparisons between freshly
    assigned and freshly loaded timestamps valid.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self) -> None:
        super().__init__(timezone=True)

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Route(Base):
    """
    A stored travel route.

    Lifecycle:
        1. Created by RouteService.create() with a generated route_id
        2. Partially updated; nested objects are replaced wholesale
        3. Hard-deleted by RouteService.remove() (tags cascade)
    """

    __tablename__ = "routes"

    # ── Identity ──────────────────────────────────────────────────────────
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Store-assigned identifier (UUID4 text)",
    )
    route_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Application identifier: route-<epoch ms>-<8 hex chars>",
    )

    # ── Descriptive fields ────────────────────────────────────────────────
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    travel_mode: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="DRIVING, WALKING, BICYCLING or TRANSIT",
    )

    # ── Metrics: {value, text} ────────────────────────────────────────────
    distance: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    duration: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    # ── Geometry: {name?, lat, lng} and lists thereof ─────────────────────
    origin: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    destination: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    waypoints: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    path: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)

    # ── Search columns (derived from the JSON above) ──────────────────────
    origin_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    destination_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    waypoint_names: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # ── Ownership & flags ─────────────────────────────────────────────────
    # Free text; no foreign key, no enforcement
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_favorite: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    # ── Tags ──────────────────────────────────────────────────────────────
    # selectin: loaded eagerly so response building never lazy-loads under
    # an AsyncSession
    tags: Mapped[List["RouteTag"]] = relationship(
        back_populates="route",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RouteTag.id",
    )

    __table_args__ = (
        UniqueConstraint("route_id", name="uq_routes_route_id"),
        Index("idx_routes_created_at", created_at.desc()),
        Index("idx_routes_user_id", "user_id"),
    )

    def set_tags(self, names: Iterable[str]) -> None:
        """
        Replaces the tag set, reusing rows for tags that stay.

        Reuse matters: deleting and re-inserting the same (route, tag) pair in
        one flush would trip the unique constraint, since inserts run first.
        """
        existing = {tag.tag: tag for tag in self.tags}
        self.tags = [existing.get(name) or RouteTag(tag=name) for name in names]

    def refresh_search_columns(self) -> None:
        """Copies coordinate names out of the JSON columns into search columns."""
        self.origin_name = (self.origin or {}).get("name")
        self.destination_name = (self.destination or {}).get("name")
        self.waypoint_names = "\n".join(
            point["name"] for point in (self.waypoints or []) if point.get("name")
        )

    def __repr__(self) -> str:
        return f"<Route(id={self.id}, route_id='{self.route_id}', name='{self.name}')>"


class RouteTag(Base):
    """One tag attached to one route."""

    __tablename__ = "route_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    route_pk: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("routes.id", ondelete="CASCADE"),
        nullable=False,
    )
    tag: Mapped[str] = mapped_column(String(64), nullable=False)

    route: Mapped[Route] = relationship(back_populates="tags")

    __table_args__ = (
        UniqueConstraint("route_pk", "tag", name="uq_route_tags_route_tag"),
        Index("idx_route_tags_tag", "tag"),
    )

    def __repr__(self) -> str:
        return f"<RouteTag(route_pk={self.route_pk}, tag='{self.tag}')>"
