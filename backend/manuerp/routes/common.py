# Overview: Shared request parsing and response shaping for list endpoints.

import math

from flask import request

from ..errors import ValidationError

MAX_PAGE_SIZE = 500


def pagination_args(default_limit: int = 50) -> tuple[int, int]:
    """Read ?page=&limit= with bounds; page is 1-based."""
    page = request.args.get("page", default=1, type=int)
    limit = request.args.get("limit", default=default_limit, type=int)
    if page is None or limit is None:
        raise ValidationError("page and limit must be integers")
    return max(1, page), max(1, min(limit, MAX_PAGE_SIZE))


def pagination_body(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
