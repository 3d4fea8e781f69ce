"""
Route Details Backend: Input Validation
=========================================

What:  Explicit validation functions for every inbound payload.
How:   Each function returns a ValidationOutcome: the parsed value plus a list
       of human-readable error strings ("path: must contain at least one
       point"). Callers check `is_valid` before touching the store.
Who:   RouteHandlers, for both HTTP and message-pattern input.

HTTP query strings and message payloads arrive loosely typed ("2" vs 2), so
pagination values are coerced here the same way for both transports.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from pydantic import ValidationError as PydanticValidationError

from route_details.config import settings
from route_details.schemas.route import RouteCreate, RouteUpdate, normalize_tags

T = TypeVar("T")


@dataclass
class ValidationOutcome(Generic[T]):
    """Parsed value on success; `errors` lists every problem found otherwise."""

    value: Optional[T] = None
    errors: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def format_error_details(errors: Iterable[Dict[str, Any]]) -> List[str]:
    """Flattens Pydantic-style error dicts into "field.path: message" strings."""
    messages = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = str(error.get("msg", "invalid value")).removeprefix("Value error, ")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def format_pydantic_errors(exc: PydanticValidationError) -> List[str]:
    return format_error_details(exc.errors())


def validate_route_create(payload: Any) -> ValidationOutcome[RouteCreate]:
    try:
        return ValidationOutcome(value=RouteCreate.model_validate(payload))
    except PydanticValidationError as exc:
        return ValidationOutcome(errors=format_pydantic_errors(exc))


def validate_route_update(payload: Any) -> ValidationOutcome[RouteUpdate]:
    """Validates a partial update; an empty object is valid and only bumps updatedAt."""
    try:
        return ValidationOutcome(value=RouteUpdate.model_validate(payload))
    except PydanticValidationError as exc:
        return ValidationOutcome(errors=format_pydantic_errors(exc))


def validate_record_id(record_id: Any) -> ValidationOutcome[str]:
    if not isinstance(record_id, str) or not record_id.strip():
        return ValidationOutcome(errors=["id: must be a non-empty string"])
    return ValidationOutcome(value=record_id.strip())


def _coerce_positive_int(name: str, value: Any, default: int, errors: List[str]) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        errors.append(f"{name}: must be an integer")
        return default
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        errors.append(f"{name}: must be an integer")
        return default
    if isinstance(value, float) and not value.is_integer():
        errors.append(f"{name}: must be an integer")
        return default
    if number < 1:
        errors.append(f"{name}: must be greater than or equal to 1")
        return default
    return number


def validate_pagination(page: Any = None, limit: Any = None) -> ValidationOutcome[Tuple[int, int]]:
    """
    Validates page/limit. Defaults: page 1, limit settings.default_page_size.

    No upper bound is enforced on limit.
    """
    errors: List[str] = []
    page_number = _coerce_positive_int("page", page, 1, errors)
    page_size = _coerce_positive_int("limit", limit, settings.default_page_size, errors)
    if errors:
        return ValidationOutcome(errors=errors)
    return ValidationOutcome(value=(page_number, page_size))


def validate_search_text(search_text: Any) -> ValidationOutcome[str]:
    """
    A missing search text is treated as empty, which matches every route.

    Line breaks are refused: waypoint names are stored newline-joined, so a
    newline in the text could match across two names.
    """
    if search_text is None:
        return ValidationOutcome(value="")
    if not isinstance(search_text, str):
        return ValidationOutcome(errors=["searchText: must be a string"])
    if "\n" in search_text:
        return ValidationOutcome(errors=["searchText: must not contain line breaks"])
    return ValidationOutcome(value=search_text)


def validate_tags(tags: Any) -> ValidationOutcome[List[str]]:
    """
    Accepts a list of tags or a comma-separated string.

    Both forms may be mixed ("a,b" inside a list), which is what repeated
    and comma-joined query parameters produce.
    """
    if tags is None:
        return ValidationOutcome(value=[])
    if isinstance(tags, str):
        tags = [tags]
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        return ValidationOutcome(errors=["tags: must be a list of strings"])
    parts = [part for tag in tags for part in tag.split(",") if part.strip()]
    try:
        return ValidationOutcome(value=normalize_tags(parts))
    except ValueError as exc:
        return ValidationOutcome(errors=[f"tags: {exc}"])


def validate_count_filter(user_id: Any = None, favorites: Any = None) -> ValidationOutcome[Tuple[Optional[str], Optional[bool]]]:
    errors: List[str] = []
    if user_id is not None and not isinstance(user_id, str):
        errors.append("userId: must be a string")
    if isinstance(favorites, str):
        lowered = favorites.strip().lower()
        if lowered in {"true", "1", "yes"}:
            favorites = True
        elif lowered in {"false", "0", "no"}:
            favorites = False
        elif lowered == "":
            favorites = None
    if favorites is not None and not isinstance(favorites, bool):
        errors.append("favorites: must be a boolean")
    if errors:
        return ValidationOutcome(errors=errors)
    return ValidationOutcome(value=(user_id, favorites))
