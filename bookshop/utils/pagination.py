from typing import Callable, Optional

from sqlalchemy import func
from sqlmodel import select

MAX_PAGE_SIZE = 100


def paginate(
    *,
    session,
    query,
    page: int = 1,
    limit: int = 10,
    serializer: Optional[Callable] = None,
):
    if page < 1:
        page = 1

    if limit < 1:
        limit = 10
    limit = min(limit, MAX_PAGE_SIZE)

    offset = (page - 1) * limit

    total = session.exec(
        select(func.count()).select_from(query.order_by(None).subquery())
    ).one()

    results = session.exec(
        query.offset(offset).limit(limit)
    ).all()

    return {
        "total_items": total,
        "total_pages": (total + limit - 1) // limit,
        "current_page": page,
        "limit": limit,
        "results": [serializer(r) for r in results] if serializer else results,
    }
