"""Document listing: filter parsing and query building."""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import Select, desc, or_, select

from docvault.errors import NotFound
from docvault.models.document import Document
from docvault.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
ALL_TYPES = "all"
# Largest OFFSET a 64-bit SQL integer can bind.
MAX_OFFSET = 2**63 - 1


def parse_date_bound(value: Optional[str]) -> tuple[Optional[datetime], bool]:
    """Parse an ISO date or datetime query value.

    Returns ``(moment, date_only)``. Empty or malformed input yields
    ``(None, False)`` so that bad client values simply drop the filter.
    Naive datetimes are taken as UTC.
    """
    if value is None or not value.strip():
        return None, False
    value = value.strip()
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            return datetime.combine(day, time.min, tzinfo=timezone.utc), True
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring malformed date filter %r", value)
        return None, False
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    try:
        moment.astimezone(timezone.utc)
    except OverflowError:
        logger.debug("Ignoring out-of-range date filter %r", value)
        return None, False
    return moment, False


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class DocumentFilters:
    search: Optional[str] = None
    date_from: Optional[datetime] = None
    # Upper bound; exclusive when derived from a date-only value (start of the next day).
    date_to: Optional[datetime] = None
    date_to_exclusive: bool = False
    doc_type: Optional[str] = None
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0

    @classmethod
    def from_params(
        cls,
        search: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        doc_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        max_limit: int = 500,
    ) -> "DocumentFilters":
        """Normalize raw request values. Never raises on bad input."""
        lower, _ = parse_date_bound(date_from)
        upper, upper_is_date = parse_date_bound(date_to)
        if upper is not None and upper_is_date:
            try:
                upper = upper + timedelta(days=1)
            except OverflowError:
                # 9999-12-31 has no next day; the bound excludes nothing.
                upper, upper_is_date = None, False

        search = (search or "").strip() or None
        doc_type = (doc_type or "").strip() or None
        if doc_type is not None and doc_type.lower() == ALL_TYPES:
            doc_type = None

        limit = DEFAULT_PAGE_SIZE if limit is None else limit
        return cls(
            search=search,
            date_from=lower,
            date_to=upper,
            date_to_exclusive=upper_is_date,
            doc_type=doc_type,
            limit=max(1, min(limit, max_limit)),
            offset=min(max(0, offset or 0), MAX_OFFSET),
        )

    def to_statement(self) -> Select:
        stmt = select(Document)
        if self.search:
            pattern = f"%{escape_like(self.search)}%"
            stmt = stmt.where(
                or_(
                    Document.title.ilike(pattern, escape="\\"),
                    Document.original_name.ilike(pattern, escape="\\"),
                )
            )
        if self.date_from is not None:
            stmt = stmt.where(Document.upload_date >= self.date_from)
        if self.date_to is not None:
            if self.date_to_exclusive:
                stmt = stmt.where(Document.upload_date < self.date_to)
            else:
                stmt = stmt.where(Document.upload_date <= self.date_to)
        if self.doc_type:
            stmt = stmt.where(Document.doc_type == self.doc_type)
        return (
            stmt.order_by(desc(Document.upload_date), Document.id)
            .limit(self.limit)
            .offset(self.offset)
        )


class DocumentQueryService:
    """Read side: filtered listings and single-record lookups."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def list(self, filters: DocumentFilters) -> list[Document]:
        return await self.store.fetch_all(filters.to_statement())

    async def get(self, document_id: uuid.UUID) -> Document:
        document = await self.store.get(document_id)
        if document is None:
            raise NotFound()
        return document
