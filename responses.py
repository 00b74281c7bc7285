"""Response envelope and pagination helpers shared by every route group."""
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import Query


def envelope(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def error_envelope(message: str, errors: Optional[List[Dict[str, str]]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return body


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def page_params(default_limit: int = 10):
    """Build a dependency reading ``page`` and ``limit`` from the query string."""

    def dependency(
        page: int = Query(1, ge=1),
        limit: int = Query(default_limit, ge=1, le=100),
    ) -> PageParams:
        return PageParams(page=page, limit=limit)

    return dependency


def pagination(params: PageParams, total: int, total_key: str, with_nav: bool = False) -> Dict[str, Any]:
    total_pages = math.ceil(total / params.limit)
    info: Dict[str, Any] = {
        "currentPage": params.page,
        "totalPages": total_pages,
        total_key: total,
    }
    if with_nav:
        info["hasNext"] = params.page < total_pages
        info["hasPrev"] = params.page > 1
    return info
