# Overview: Page/limit handling shared by the ledger and sale listings.

from __future__ import annotations

import math

from flask import current_app

from ..validation import optional_int
from ..errors import ValidationError


def paginate(query, *, page=None, limit=None) -> dict:
    """
    Apply 1-based page/limit to a query.

    limit is capped at PAGINATION_MAX_LIMIT. Returns the model rows plus
    counts; callers serialize.
    """
    default_limit = current_app.config.get("PAGINATION_DEFAULT_LIMIT", 10)
    max_limit = current_app.config.get("PAGINATION_MAX_LIMIT", 100)

    page = optional_int(page, "page")
    page = 1 if page is None else page
    limit = optional_int(limit, "limit")
    limit = default_limit if limit is None else limit
    if page < 1:
        raise ValidationError("page must be 1 or greater")
    if limit < 1:
        raise ValidationError("limit must be 1 or greater")
    limit = min(limit, max_limit)

    total = query.order_by(None).count()
    items = query.limit(limit).offset((page - 1) * limit).all()

    return {
        "items": items,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }
