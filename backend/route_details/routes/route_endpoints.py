"""
Route Details Backend: Route HTTP Endpoints
=============================================

What:  CRUD, search, count and tag lookup for routes under /routes.
How:   Each endpoint pulls its input from the path, query string or body and
       hands it to the shared RouteHandlers core (HTTP status policy). The
       envelope's statusCode becomes the HTTP status.
Who:   Called by the route-planning frontend and any HTTP client.

Path ordering:
    /routes/search, /routes/count and /routes/by-tags are declared before
    /routes/{record_id}, otherwise "search" would be captured as an id.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from route_details.database import get_db_session
from route_details.schemas.envelope import ApiResponse
from route_details.services.route_handlers import http_handlers

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/routes", tags=["Routes"])

_ENVELOPE_RESPONSES = {
    400: {"description": "Invalid input or failed create", "model": ApiResponse},
    500: {"description": "Store failure", "model": ApiResponse},
}


def _reply(envelope: ApiResponse) -> JSONResponse:
    return JSONResponse(status_code=envelope.status_code, content=envelope.to_payload())


@router.post(
    "",
    status_code=201,
    response_model=ApiResponse,
    responses=_ENVELOPE_RESPONSES,
    summary="Create a new route",
    description="Stores a route and assigns its id and routeId. Server-managed fields are rejected.",
)
async def create_route(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    return _reply(await http_handlers.create(db, payload))


@router.get(
    "",
    response_model=ApiResponse,
    responses=_ENVELOPE_RESPONSES,
    summary="List routes, newest first",
)
async def list_routes(
    page: Optional[int] = Query(default=None, description="Page number, starting at 1"),
    limit: Optional[int] = Query(default=None, description="Routes per page, defaults to DEFAULT_PAGE_SIZE"),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    """
    Returns `{routes, total}` in `data`; `total` is the size of the whole
    collection, not of the page.
    """
    return _reply(await http_handlers.find_all(db, page, limit))


@router.get(
    "/search",
    response_model=ApiResponse,
    responses=_ENVELOPE_RESPONSES,
    summary="Search routes by name or place",
    description=(
        "Case-insensitive substring search across routeId, name, origin name, "
        "destination name and waypoint names."
    ),
)
async def search_routes(
    search_text: Optional[str] = Query(default=None, alias="searchText"),
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    return _reply(await http_handlers.search(db, search_text, page, limit))


@router.get(
    "/count",
    response_model=ApiResponse,
    responses=_ENVELOPE_RESPONSES,
    summary="Count routes, optionally per owner or favorites only",
)
async def count_routes(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    favorites: Optional[bool] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    return _reply(await http_handlers.count(db, user_id, favorites))


@router.get(
    "/by-tags",
    response_model=ApiResponse,
    responses=_ENVELOPE_RESPONSES,
    summary="Routes carrying any of the given tags",
)
async def routes_by_tags(
    tags: List[str] = Query(default=[], description="Repeat the parameter or comma-separate"),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    return _reply(await http_handlers.find_by_tags(db, tags))


@router.get(
    "/{record_id}",
    response_model=ApiResponse,
    responses={404: {"description": "Route not found", "model": ApiResponse}, **_ENVELOPE_RESPONSES},
    summary="Get a route by id",
)
async def get_route(
    record_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    return _reply(await http_handlers.find_one(db, record_id))


@router.patch(
    "/{record_id}",
    response_model=ApiResponse,
    responses={404: {"description": "Route not found", "model": ApiResponse}, **_ENVELOPE_RESPONSES},
    summary="Partially update a route",
    description="Only the fields present in the body change. Nested objects are replaced whole.",
)
async def update_route(
    record_id: str,
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    return _reply(await http_handlers.update(db, record_id, payload))


@router.delete(
    "/{record_id}",
    response_model=ApiResponse,
    responses={404: {"description": "Route not found", "model": ApiResponse}, **_ENVELOPE_RESPONSES},
    summary="Delete a route",
)
async def delete_route(
    record_id: str,
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    return _reply(await http_handlers.remove(db, record_id))
