"""
Miscelaneous utilities.
"""

import dataclasses
import math
import time
from enum import Enum
from functools import wraps
from typing import Any, Callable, Optional
from uuid import UUID

from fastapi.encoders import jsonable_encoder

from app.errors import InvalidArgument
from app.logger import logger
from app.models import PageRequest, Pagination

# keeps (page - 1) * limit inside Postgres' bigint OFFSET
MAX_PAGE = 2 ** 31


def timed(func) -> Callable:
    @wraps(func)
    async def timed_func(*args, **kwargs):
        init = time.perf_counter()
        out = await func(*args, **kwargs)
        end = time.perf_counter() - init
        logger.info(f"{func.__name__} finished in {1000 * end:.2f} ms")
        return out
    return timed_func


def parse_id(raw: Any, name: str = "ID") -> UUID:
    """Parse an opaque identifier, raising InvalidArgument when malformed."""
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw))
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"Invalid {name}") from exc


def page_request(page: int, page_size: int) -> PageRequest:
    if page < 1 or page_size < 1:
        raise InvalidArgument("page and limit must be positive integers")
    if page > MAX_PAGE:
        raise InvalidArgument(f"page must be at most {MAX_PAGE}")
    return PageRequest(page=page, page_size=page_size)


def paginate(request: PageRequest, total: int) -> Pagination:
    total_pages = math.ceil(total / request.page_size)
    return Pagination(
        current_page=request.page,
        total_pages=total_pages,
        total_items=total,
        has_next=request.page < total_pages,
        has_prev=request.page > 1,
    )


def _camel_case(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(word.capitalize() for word in rest)


def to_json(obj: Any) -> Any:
    """Turn models into JSON-ready values with camelCase keys."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        obj = dataclasses.asdict(obj)
    if isinstance(obj, dict):
        return {_camel_case(key): to_json(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [to_json(value) for value in obj]
    if isinstance(obj, Enum):
        return obj.value
    return jsonable_encoder(obj)


def strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None
