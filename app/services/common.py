import math
import uuid

from app.errors import InvalidInputError, NotFoundError


def coerce_uuid(value, label: str = "Resource"):
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        # A malformed id can never match a stored record.
        raise NotFoundError(f"{label} not found")


def validate_page(page: int, limit: int) -> None:
    if page < 1:
        raise InvalidInputError("page must be a positive integer")
    if limit < 1:
        raise InvalidInputError("limit must be a positive integer")


def apply_page(query, page: int, limit: int):
    return query.limit(limit).offset((page - 1) * limit)


def page_count(total: int, limit: int) -> int:
    if total == 0:
        return 0
    return math.ceil(total / limit)
