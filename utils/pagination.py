"""Page parameters and response metadata for Flask-SQLAlchemy paginated listings."""
from typing import Any, Dict, List, Union

PageLink = Union[int, str]
ELLIPSIS = "..."


def parse_page(value: Any) -> int:
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 1
    return page if page > 0 else 1


def page_window(current: int, total: int) -> List[PageLink]:
    """Compact page list, e.g. ``[1, 2, 3, "...", 9, 10]`` for page 2 of 10."""
    if total <= 7:
        return list(range(1, total + 1))
    if current <= 3:
        return [1, 2, 3, ELLIPSIS, total - 1, total]
    if current >= total - 2:
        return [1, 2, ELLIPSIS, total - 2, total - 1, total]
    return [1, ELLIPSIS, current - 1, current, current + 1, ELLIPSIS, total]


def pagination_meta(pagination) -> Dict[str, Any]:
    """JSON metadata for a ``query.paginate(...)`` result."""
    return {
        "page": pagination.page,
        "per_page": pagination.per_page,
        "total": pagination.total,
        "pages": pagination.pages,
        "has_next": pagination.has_next,
        "has_prev": pagination.has_prev,
        "links": page_window(pagination.page, pagination.pages),
    }
