# Overview: Shared page/per_page handling for list endpoints.

from __future__ import annotations

from flask import current_app

MAX_PER_PAGE = 100


def paginate(query, page: int | None = None, per_page: int | None = None) -> dict:
    """
    Run `query` one page at a time.

    Args:
        query: Ordered SQLAlchemy query of model instances with to_dict()
        page: Page number (1-indexed). Defaults to 1.
        per_page: Items per page (default DEFAULT_PAGE_SIZE, max 100)

    Returns:
        Dict with 'items', 'count' and 'pagination' metadata.
    """
    default_size = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    per_page = max(1, min(per_page or default_size, MAX_PER_PAGE))  # Default from config, 1..100
    page = max(page or 1, 1)  # Ensure page >= 1

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [row.to_dict() for row in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
