"""
Route Details Backend: Route Service (Repository / Query Layer)
=================================================================

What:  Translates route operations into SQLAlchemy queries.
How:   Stateless; every method receives the caller's AsyncSession. Writes are
       flushed (not committed) so constraint violations surface here; the
       session provider commits at the end of the request or message.
Who:   Called by RouteHandlers only.

Operations:
    create         → RouteResponse                 (raises on failure)
    find_all       → RouteListResponse             (newest first, offset paging)
    find_one       → Found[RouteResponse] | NotFound
    update         → Found[RouteResponse] | NotFound
    remove         → Found[RouteResponse] | NotFound  (hard delete)
    search_routes  → RouteListResponse             (substring OR across names)
    find_by_tags   → RouteListResponse             (tag intersection)
    count_routes   → int

Error Handling:
    SQLAlchemy errors are translated once, at the statement boundary:
        IntegrityError (unique)  → ConflictError
        IntegrityError (other)   → ValidationError
        any other SQLAlchemyError → StorageError
    The session is rolled back first so it stays usable, and the driver
    error is chained as __cause__. Missing records are NOT errors; they come
    back as the NOT_FOUND sentinel.
"""

import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import ColumnElement, desc, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from route_details.exceptions import ConflictError, StorageError, ValidationError
from route_details.models.route import Route, RouteTag, utcnow
from route_details.schemas.route import (
    RouteCreate,
    RouteListResponse,
    RouteResponse,
    RouteUpdate,
)
from route_details.services.results import NOT_FOUND, Found, LookupResult

logger = logging.getLogger(__name__)


def generate_route_id(now_ms: Optional[int] = None) -> str:
    """
    Builds a human-facing route identifier: route-<epoch ms>-<8 hex chars>.

    The hex suffix is the first 8 characters of a fresh UUID4. Uniqueness is
    not checked here; the unique index on routes.route_id is authoritative.
    """
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"route-{timestamp}-{uuid.uuid4().hex[:8]}"


def _driver_message(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


def _next_timestamp(previous: Optional[datetime]) -> datetime:
    # updated_at must strictly increase even when two writes share a clock tick
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def _apply_fields(route: Route, values: Dict[str, Any]) -> None:
    """
    Copies validated (JSON-mode) field values onto the ORM object.

    Nested objects are assigned as whole values, which replaces rather than
    merges them. Search columns are recomputed afterwards.
    """
    for name, value in values.items():
        if name == "tags":
            route.set_tags(value)
        else:
            setattr(route, name, value)
    route.refresh_search_columns()


class RouteService:
    """
    Data-access layer for routes.

    Every public method is a coroutine that issues one or two statements on
    the given session. Paginated reads run the count and the page query
    back-to-back because an AsyncSession cannot run statements concurrently.
    """

    # ── Statement helpers ─────────────────────────────────────────────────

    async def _rollback_quietly(self, db: AsyncSession) -> None:
        try:
            await db.rollback()
        except SQLAlchemyError as exc:
            logger.error("Rollback failed: %s", _driver_message(exc))

    async def _flush(self, db: AsyncSession, operation: str) -> None:
        try:
            await db.flush()
        except IntegrityError as exc:
            await self._rollback_quietly(db)
            message = _driver_message(exc)
            logger.error("Integrity error during %s: %s", operation, message)
            lowered = message.lower()
            if "unique" in lowered or "duplicate" in lowered:
                raise ConflictError(message=message, context={"operation": operation}) from exc
            raise ValidationError(message=message, context={"operation": operation}) from exc
        except SQLAlchemyError as exc:
            await self._rollback_quietly(db)
            message = _driver_message(exc)
            logger.error("Storage error during %s: %s", operation, message)
            raise StorageError(message=message, context={"operation": operation}) from exc

    async def _run(self, db: AsyncSession, operation: str, statement):
        try:
            return await db.execute(statement)
        except SQLAlchemyError as exc:
            await self._rollback_quietly(db)
            message = _driver_message(exc)
            logger.error("Storage error during %s: %s", operation, message)
            raise StorageError(message=message, context={"operation": operation}) from exc

    async def _get(self, db: AsyncSession, record_id: str, operation: str) -> Optional[Route]:
        result = await self._run(db, operation, select(Route).where(Route.id == record_id))
        return result.scalar_one_or_none()

    async def _page(
        self,
        db: AsyncSession,
        operation: str,
        criteria: Optional[ColumnElement[bool]],
        page: int,
        limit: int,
    ) -> RouteListResponse:
        count_query = select(func.count()).select_from(Route)
        page_query = select(Route)
        if criteria is not None:
            count_query = count_query.where(criteria)
            page_query = page_query.where(criteria)
        page_query = (
            page_query.order_by(desc(Route.created_at), desc(Route.route_id))
            .offset((page - 1) * limit)
            .limit(limit)
        )

        total = (await self._run(db, operation, count_query)).scalar() or 0
        routes = (await self._run(db, operation, page_query)).scalars().all()
        return RouteListResponse(
            routes=[RouteResponse.model_validate(route) for route in routes],
            total=total,
        )

    # ── Public operations ─────────────────────────────────────────────────

    async def create(self, db: AsyncSession, data: RouteCreate) -> RouteResponse:
        """
        Persists a new route with a freshly generated routeId.

        Raises:
            ConflictError:   the generated routeId already exists
            ValidationError: the store rejected the record's shape
            StorageError:    the store is unreachable or failed otherwise
        """
        logger.info("Creating route: %s", data.name)
        now = utcnow()
        route = Route(
            id=str(uuid.uuid4()),
            route_id=generate_route_id(),
            created_at=now,
            updated_at=now,
        )
        _apply_fields(route, data.model_dump(mode="json"))
        db.add(route)
        await self._flush(db, "create")
        logger.info("Route created: %s (%s)", route.id, route.route_id)
        return RouteResponse.model_validate(route)

    async def find_all(self, db: AsyncSession, page: int = 1, limit: int = 10) -> RouteListResponse:
        """Lists routes newest first; `total` counts the whole collection."""
        logger.info("Finding routes: page=%d limit=%d", page, limit)
        return await self._page(db, "find_all", None, page, limit)

    async def find_one(self, db: AsyncSession, record_id: str) -> LookupResult[RouteResponse]:
        logger.info("Finding route by ID: %s", record_id)
        route = await self._get(db, record_id, "find_one")
        if route is None:
            logger.warning("Route not found with ID: %s", record_id)
            return NOT_FOUND
        return Found(RouteResponse.model_validate(route))

    async def update(
        self,
        db: AsyncSession,
        record_id: str,
        changes: RouteUpdate,
    ) -> LookupResult[RouteResponse]:
        """
        Applies the fields present in `changes`; identifiers never change.

        An update with no fields still bumps updated_at.
        """
        logger.info("Updating route with ID: %s", record_id)
        route = await self._get(db, record_id, "update")
        if route is None:
            logger.warning("Route not found for update with ID: %s", record_id)
            return NOT_FOUND

        _apply_fields(route, changes.model_dump(mode="json", exclude_unset=True))
        route.updated_at = _next_timestamp(route.updated_at)
        await self._flush(db, "update")
        return Found(RouteResponse.model_validate(route))

    async def remove(self, db: AsyncSession, record_id: str) -> LookupResult[RouteResponse]:
        """Hard-deletes the route and its tags; returns the removed route."""
        logger.info("Removing route with ID: %s", record_id)
        route = await self._get(db, record_id, "remove")
        if route is None:
            logger.warning("Route not found for deletion with ID: %s", record_id)
            return NOT_FOUND

        removed = RouteResponse.model_validate(route)
        await db.delete(route)
        await self._flush(db, "remove")
        return Found(removed)

    @staticmethod
    def search_predicate(search_text: str) -> ColumnElement[bool]:
        """
        Case-insensitive substring match across routeId, name, origin name,
        destination name and every waypoint name.

        The text is matched literally: LIKE wildcards are escaped. An empty
        string matches every route.
        """
        return or_(
            Route.route_id.icontains(search_text, autoescape=True),
            Route.name.icontains(search_text, autoescape=True),
            Route.origin_name.icontains(search_text, autoescape=True),
            Route.destination_name.icontains(search_text, autoescape=True),
            Route.waypoint_names.icontains(search_text, autoescape=True),
        )

    async def search_routes(
        self,
        db: AsyncSession,
        search_text: str,
        page: int = 1,
        limit: int = 10,
    ) -> RouteListResponse:
        logger.info("Searching routes with text '%s': page=%d limit=%d", search_text, page, limit)
        return await self._page(db, "search_routes", self.search_predicate(search_text), page, limit)

    async def find_by_tags(self, db: AsyncSession, tags: List[str]) -> RouteListResponse:
        """Routes carrying at least one of `tags`, newest first; unpaginated."""
        logger.info("Finding routes by tags: %s", tags)
        if not tags:
            return RouteListResponse(routes=[], total=0)

        query = (
            select(Route)
            .where(Route.tags.any(RouteTag.tag.in_(tags)))
            .order_by(desc(Route.created_at), desc(Route.route_id))
        )
        routes = (await self._run(db, "find_by_tags", query)).scalars().all()
        return RouteListResponse(
            routes=[RouteResponse.model_validate(route) for route in routes],
            total=len(routes),
        )

    async def count_routes(
        self,
        db: AsyncSession,
        user_id: Optional[str] = None,
        favorites: Optional[bool] = None,
    ) -> int:
        """Counts routes matching the optional userId / isFavorite equality filters."""
        query = select(func.count()).select_from(Route)
        if user_id is not None:
            query = query.where(Route.user_id == user_id)
        if favorites is not None:
            query = query.where(Route.is_favorite == favorites)
        return (await self._run(db, "count_routes", query)).scalar() or 0


# ── Singleton Instance ────────────────────────────────────────────────────
route_service = RouteService()
