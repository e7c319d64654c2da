"""
Page window parsing shared by every paginated listing.

Pages are 1-indexed; offset = (page - 1) * limit. The page size is clamped to
MAX_PAGE_SIZE (settings.TASKS_MAX_PAGE_SIZE) to bound memory and latency.
"""
import math
from typing import Any, Tuple

from django.conf import settings

from .exceptions import ValidationFailed

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10


def max_page_size() -> int:
    return getattr(settings, 'TASKS_MAX_PAGE_SIZE', 100)


def _positive_int(name: str, value: Any, default: int) -> int:
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationFailed(f"{name} must be an integer", errors={name: ["Must be an integer."]})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{name} must be an integer", errors={name: ["Must be an integer."]})
    if number < 1:
        raise ValidationFailed(f"{name} must be at least 1", errors={name: ["Must be at least 1."]})
    return number


def parse_page_window(page: Any = None, limit: Any = None) -> Tuple[int, int]:
    """
    Normalize raw page/limit values.

    Returns:
        (page, page_size) with page >= 1 and 1 <= page_size <= max_page_size().
    """
    page_number = _positive_int('page', page, DEFAULT_PAGE)
    page_size = _positive_int('limit', limit, DEFAULT_PAGE_SIZE)
    return page_number, min(page_size, max_page_size())


def page_count(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size else 0
