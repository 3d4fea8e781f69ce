"""
Route Details Backend: Request Handler Core
=============================================

What:  The one place where route operations become response envelopes.
How:   Validate input → call RouteService → branch on Found / NotFound /
       Failed → ApiResponse. The HTTP routes and the message patterns are
       thin adapters over the same RouteHandlers class; they differ only in
       how input is framed and in the StatusPolicy they pass in.
Who:   routes.route_endpoints (HTTP_POLICY), messaging.patterns (MESSAGE_POLICY).

Status mapping:
    success        → policy.created (create) or 200
    not found      → 404, "Route not found"
    bad input      → 400, "Validation failed"
    raised failure → policy.create_failure (create) or policy.failure
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from route_details.exceptions import RouteDetailsError
from route_details.schemas.envelope import ApiResponse
from route_details.schemas.route import RouteCountResponse
from route_details.services.results import Failed, Found, NotFound, Outcome
from route_details.services.route_service import RouteService, route_service
from route_details.services.validation import (
    validate_count_filter,
    validate_pagination,
    validate_record_id,
    validate_route_create,
    validate_route_update,
    validate_search_text,
    validate_tags,
)

logger = logging.getLogger(__name__)

ROUTE_NOT_FOUND = "Route not found"
VALIDATION_FAILED = "Validation failed"


@dataclass(frozen=True)
class StatusPolicy:
    """Status codes that differ between the HTTP and message transports."""

    created: int
    create_failure: int
    failure: int


HTTP_POLICY = StatusPolicy(created=201, create_failure=400, failure=500)
MESSAGE_POLICY = StatusPolicy(created=200, create_failure=400, failure=400)


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    return value


def _invalid(errors: List[str]) -> ApiResponse:
    return ApiResponse.error_response(VALIDATION_FAILED, "; ".join(errors), status_code=400)


class RouteHandlers:
    """Envelope-producing operations shared by both transports."""

    def __init__(self, policy: StatusPolicy, service: RouteService = route_service):
        self.policy = policy
        self.service = service

    # ── Result mapping ────────────────────────────────────────────────────

    async def _attempt(self, action: str, call: Callable[[], Awaitable[Any]]) -> Outcome:
        try:
            result = await call()
        except RouteDetailsError as exc:
            logger.error("Error %s: %s", action, exc.message)
            return Failed(exc)
        except Exception as exc:
            logger.error("Unexpected error %s: %s", action, exc, exc_info=True)
            return Failed(exc)
        if isinstance(result, (Found, NotFound)):
            return result
        return Found(result)

    def _envelope(
        self,
        outcome: Outcome,
        record_id: Optional[str],
        success_message: str,
        failure_message: str,
        success_status: int = 200,
        failure_status: Optional[int] = None,
    ) -> ApiResponse:
        if isinstance(outcome, Found):
            return ApiResponse.success_response(
                _dump(outcome.value), success_message, status_code=success_status
            )
        if isinstance(outcome, NotFound):
            return ApiResponse.error_response(
                ROUTE_NOT_FOUND, f"No route found with ID: {record_id}", status_code=404
            )
        return ApiResponse.error_response(
            failure_message,
            outcome.message,
            status_code=failure_status if failure_status is not None else self.policy.failure,
        )

    # ── Operations ────────────────────────────────────────────────────────

    async def create(self, db: AsyncSession, payload: Any) -> ApiResponse:
        checked = validate_route_create(payload)
        if not checked.is_valid:
            return _invalid(checked.errors)
        outcome = await self._attempt("creating route", lambda: self.service.create(db, checked.value))
        return self._envelope(
            outcome,
            None,
            "Route created successfully",
            "Failed to create route",
            success_status=self.policy.created,
            failure_status=self.policy.create_failure,
        )

    async def find_all(self, db: AsyncSession, page: Any = None, limit: Any = None) -> ApiResponse:
        checked = validate_pagination(page, limit)
        if not checked.is_valid:
            return _invalid(checked.errors)
        page_number, page_size = checked.value
        outcome = await self._attempt(
            "finding routes", lambda: self.service.find_all(db, page_number, page_size)
        )
        return self._envelope(outcome, None, "Routes retrieved successfully", "Failed to fetch routes")

    async def find_one(self, db: AsyncSession, record_id: Any) -> ApiResponse:
        checked = validate_record_id(record_id)
        if not checked.is_valid:
            return _invalid(checked.errors)
        outcome = await self._attempt("finding route", lambda: self.service.find_one(db, checked.value))
        return self._envelope(outcome, checked.value, "Route retrieved successfully", "Failed to fetch route")

    async def update(self, db: AsyncSession, record_id: Any, payload: Any) -> ApiResponse:
        checked_id = validate_record_id(record_id)
        checked = validate_route_update(payload)
        errors = checked_id.errors + checked.errors
        if errors:
            return _invalid(errors)
        outcome = await self._attempt(
            "updating route", lambda: self.service.update(db, checked_id.value, checked.value)
        )
        return self._envelope(outcome, checked_id.value, "Route updated successfully", "Failed to update route")

    async def remove(self, db: AsyncSession, record_id: Any) -> ApiResponse:
        checked = validate_record_id(record_id)
        if not checked.is_valid:
            return _invalid(checked.errors)
        outcome = await self._attempt("deleting route", lambda: self.service.remove(db, checked.value))
        return self._envelope(outcome, checked.value, "Route deleted successfully", "Failed to delete route")

    async def search(
        self,
        db: AsyncSession,
        search_text: Any = None,
        page: Any = None,
        limit: Any = None,
    ) -> ApiResponse:
        checked_text = validate_search_text(search_text)
        checked_page = validate_pagination(page, limit)
        errors = checked_text.errors + checked_page.errors
        if errors:
            return _invalid(errors)
        page_number, page_size = checked_page.value
        outcome = await self._attempt(
            "searching routes",
            lambda: self.service.search_routes(db, checked_text.value, page_number, page_size),
        )
        return self._envelope(outcome, None, "Routes retrieved successfully", "Failed to search routes")

    async def count(self, db: AsyncSession, user_id: Any = None, favorites: Any = None) -> ApiResponse:
        checked = validate_count_filter(user_id, favorites)
        if not checked.is_valid:
            return _invalid(checked.errors)
        owner, favorite = checked.value

        async def count_routes() -> RouteCountResponse:
            return RouteCountResponse(count=await self.service.count_routes(db, owner, favorite))

        outcome = await self._attempt("counting routes", count_routes)
        return self._envelope(outcome, None, "Routes counted successfully", "Failed to count routes")

    async def find_by_tags(self, db: AsyncSession, tags: Any) -> ApiResponse:
        checked = validate_tags(tags)
        if not checked.is_valid:
            return _invalid(checked.errors)
        outcome = await self._attempt(
            "finding routes by tags", lambda: self.service.find_by_tags(db, checked.value)
        )
        return self._envelope(outcome, None, "Routes retrieved successfully", "Failed to fetch routes")


http_handlers = RouteHandlers(HTTP_POLICY)
message_handlers = RouteHandlers(MESSAGE_POLICY)
