"""Listing, search and stats queries shared by the SQL-backed stores.

The functions take the mapped row class (PageRow or IndexRow) so that the
table backend and the blob-index backend apply identical filtering, sorting
and pagination.
"""

from typing import List, Tuple, Type, Union

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from src.wiki_core.page_store import RECENT_PAGES_LIMIT, ListQuery

from .sql_schema import CategoryRow, IndexRow, PageRow

PageModel = Union[Type[PageRow], Type[IndexRow]]


def _contains(column, needle: str):
    return func.lower(column).contains(needle.lower(), autoescape=True)


def list_conditions(model: PageModel, query: ListQuery) -> list:
    """WHERE clauses for a normalized listing query."""
    conditions = []
    if query.category_id:
        conditions.append(model.category_id == query.category_id)
    if query.author_id:
        conditions.append(model.author_id == query.author_id)
    if query.is_published is not None:
        conditions.append(model.is_published.is_(query.is_published))
    if query.search:
        # Tags are comma-joined, so a comma in the query can only match a title
        if "," in query.search:
            conditions.append(_contains(model.title, query.search))
        else:
            conditions.append(or_(_contains(model.title, query.search), _contains(model.tags, query.search)))
    return conditions


def list_rows(session: Session, model: PageModel, query: ListQuery) -> Tuple[list, int]:
    """One page of rows plus the total number of matching rows."""
    conditions = list_conditions(model, query)

    total = session.scalar(select(func.count()).select_from(model).where(*conditions)) or 0

    stmt = select(model).where(*conditions)
    if query.sort_field:
        column = getattr(model, query.sort_field)
        stmt = stmt.order_by(column.desc() if query.descending else column.asc(), model.slug.asc())
    stmt = stmt.offset(query.offset).limit(query.limit)

    return list(session.scalars(stmt)), int(total)


def search_candidates(session: Session, model: PageModel, needle: str) -> list:
    """Published rows whose title, tags or excerpt contain the query."""
    stmt = select(model).where(
        model.is_published.is_(True),
        or_(
            _contains(model.title, needle),
            _contains(model.tags, needle),
            _contains(model.excerpt, needle),
        ),
    )
    return list(session.scalars(stmt))


def published_count(session: Session, model: PageModel) -> int:
    stmt = select(func.count()).select_from(model).where(model.is_published.is_(True))
    return int(session.scalar(stmt) or 0)


def active_category_count(session: Session) -> int:
    stmt = select(func.count()).select_from(CategoryRow).where(CategoryRow.is_active.is_(True))
    return int(session.scalar(stmt) or 0)


def recent_published(session: Session, model: PageModel, limit: int = RECENT_PAGES_LIMIT) -> List:
    stmt = (
        select(model)
        .where(model.is_published.is_(True))
        .order_by(model.updated_at.desc(), model.slug.asc())
        .limit(limit)
    )
    return list(session.scalars(stmt))
