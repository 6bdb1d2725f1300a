"""
Pagination shared by the song and photo list endpoints.

Out-of-range pages are not an error: they produce an empty slice with the
same metadata a valid page would carry.
"""
import math
import re
from typing import List, Optional, Sequence, Tuple, TypeVar

from club_api.schemas.common import Pagination

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: Optional[str]) -> Optional[int]:
    """
    Parse the leading integer of a query string value.

    "12", " 12abc" -> 12; "abc", "", None -> None.
    """
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if not match:
        return None
    return int(match.group(1))


def parse_page_params(
    page: Optional[str],
    limit: Optional[str],
    default_limit: int = DEFAULT_LIMIT,
) -> Tuple[int, int]:
    """Lenient page/limit parsing: missing, non-numeric or < 1 falls back to the default."""
    parsed_page = parse_int(page)
    parsed_limit = parse_int(limit)
    if parsed_page is None or parsed_page < 1:
        parsed_page = DEFAULT_PAGE
    if parsed_limit is None or parsed_limit < 1:
        parsed_limit = default_limit
    return parsed_page, parsed_limit


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    total_pages = math.ceil(total / limit)
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        totalPages=total_pages,
        hasNextPage=page < total_pages,
        hasPrevPage=page > 1,
    )


def paginate(items: Sequence[T], page: int, limit: int) -> Tuple[List[T], Pagination]:
    """
    Slice `items` to the requested page.

    Args:
        items: Filtered and sorted collection
        page: 1-based page number
        limit: Page size

    Returns:
        (page items, pagination metadata)
    """
    skip = (page - 1) * limit
    return list(items[skip:skip + limit]), build_pagination(len(items), page, limit)
