"""
Route Details Backend: Tagged Lookup Results
==============================================

What:  Found / NotFound / Failed result types.
How:   RouteService returns Found(value) or NOT_FOUND for single-record
       operations; store failures are raised. RouteHandlers wraps each
       service call and turns a raised error into Failed(error), so the
       envelope mapping is a three-way branch on the result type.

Example:
    result = await route_service.find_one(db, record_id)
    if isinstance(result, NotFound):
        ...
    route = result.value
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Found(Generic[T]):
    """The operation produced a value."""

    value: T


@dataclass(frozen=True)
class NotFound:
    """No record matched. Absence, not failure."""

    def __repr__(self) -> str:
        return "NOT_FOUND"


@dataclass(frozen=True)
class Failed:
    """The operation raised; `error` is the exception it raised."""

    error: Exception

    @property
    def message(self) -> str:
        return getattr(self.error, "message", None) or str(self.error) or type(self.error).__name__


NOT_FOUND = NotFound()

LookupResult = Union[Found[T], NotFound]
Outcome = Union[Found[T], NotFound, Failed]
