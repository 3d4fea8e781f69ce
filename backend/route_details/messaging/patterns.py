"""
Route Details Backend: Message Pattern Handlers
=================================================

What:  Maps message patterns to the shared route handler core.
How:   Each pattern function receives a session and the message's `data`
       field, unpacks it and calls message_handlers (MESSAGE_POLICY: create
       answers 200 and failures answer 400).

Payloads:
    route.create       {name, travelMode, distance, ...}
    route.findAll      {page?, limit?}
    route.findOne      "<id>" or {id}
    route.update       {id, updateData}
    route.remove       "<id>" or {id}
    route.search       {searchText, page?, limit?}
    route.count        {userId?, favorites?}
    route.findByTags   {tags} or [tags]
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from route_details.schemas.envelope import ApiResponse
from route_details.services.route_handlers import message_handlers

logger = logging.getLogger(__name__)

PatternHandler = Callable[[AsyncSession, Any], Awaitable[ApiResponse]]


def normalize_pattern(pattern: Any) -> str:
    """
    String patterns are used as-is; object patterns are matched on their
    key-sorted compact JSON, which is how NestJS clients serialize them.
    """
    if isinstance(pattern, str):
        return pattern
    return json.dumps(pattern, sort_keys=True, separators=(",", ":"))


class PatternRegistry:
    """Name → coroutine table consulted by the message server."""

    def __init__(self) -> None:
        self._handlers: Dict[str, PatternHandler] = {}

    def pattern(self, name: str) -> Callable[[PatternHandler], PatternHandler]:
        def register(handler: PatternHandler) -> PatternHandler:
            if name in self._handlers:
                raise ValueError(f"Pattern already registered: {name}")
            self._handlers[name] = handler
            return handler

        return register

    def get(self, pattern: Any) -> Optional[PatternHandler]:
        return self._handlers.get(normalize_pattern(pattern))

    @property
    def names(self) -> List[str]:
        return sorted(self._handlers)


def _field(data: Any, name: str) -> Any:
    return data.get(name) if isinstance(data, dict) else None


def _record_id(data: Any) -> Any:
    # NestJS clients send either the bare id or {id: ...}
    if isinstance(data, dict):
        return data.get("id")
    return data


registry = PatternRegistry()


@registry.pattern("route.create")
async def create_route(db: AsyncSession, data: Any) -> ApiResponse:
    return await message_handlers.create(db, data)


@registry.pattern("route.findAll")
async def find_all_routes(db: AsyncSession, data: Any) -> ApiResponse:
    return await message_handlers.find_all(db, _field(data, "page"), _field(data, "limit"))


@registry.pattern("route.findOne")
async def find_one_route(db: AsyncSession, data: Any) -> ApiResponse:
    return await message_handlers.find_one(db, _record_id(data))


@registry.pattern("route.update")
async def update_route(db: AsyncSession, data: Any) -> ApiResponse:
    return await message_handlers.update(db, _record_id(data), _field(data, "updateData"))


@registry.pattern("route.remove")
async def remove_route(db: AsyncSession, data: Any) -> ApiResponse:
    return await message_handlers.remove(db, _record_id(data))


@registry.pattern("route.search")
async def search_routes(db: AsyncSession, data: Any) -> ApiResponse:
    return await message_handlers.search(
        db, _field(data, "searchText"), _field(data, "page"), _field(data, "limit")
    )


@registry.pattern("route.count")
async def count_routes(db: AsyncSession, data: Any) -> ApiResponse:
    return await message_handlers.count(db, _field(data, "userId"), _field(data, "favorites"))


@registry.pattern("route.findByTags")
async def find_routes_by_tags(db: AsyncSession, data: Any) -> ApiResponse:
    tags = data if isinstance(data, list) else _field(data, "tags")
    return await message_handlers.find_by_tags(db, tags)
