from __future__ import annotations


MAX_PER_PAGE = 100


def paginate(query, page: int = 1, per_page: int = 20) -> tuple[list, dict]:
    """Apply offset/limit to query; return (rows, pagination dict)."""
    page = max(page, 1)
    per_page = min(max(per_page, 1), MAX_PER_PAGE)

    total = query.order_by(None).count()
    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    return rows, {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
