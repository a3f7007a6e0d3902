# helpdesk_console/query/engine.py
"""Projects a collection into a bounded, navigable page.

Two kinds of source are supported:

* ``RemoteSource`` wraps a service that filters, sorts and paginates natively.
  Criteria are forwarded as-is and the returned items and total are trusted.
* ``MemorySource`` wraps the full set already held by the caller. Filtering,
  searching, sorting and slicing happen here, driven by a ``QueryFields``
  description of the entity.

Both produce a ``Page``. ``query`` is a pure function of its inputs and of the
current contents of the source.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from pydantic import BaseModel

from helpdesk_console.core.errors import PageOutOfRange
from helpdesk_console.query.criteria import FilterCriteria

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetch = Callable[[FilterCriteria, int, int], Awaitable[tuple[list[Any], int]]]


def total_pages(total_count: int, page_size: int) -> int:
    return max(1, math.ceil(total_count / page_size))


def check_page(page: int, total_count: int | None, page_size: int) -> None:
    """Reject a page request that cannot be served.

    ``total_count`` is None when nothing is known about the collection yet;
    only the lower bound can be checked then.
    """
    if page < 1:
        raise PageOutOfRange(page, total_pages(total_count or 0, page_size))
    if total_count is None:
        return
    last = total_pages(total_count, page_size)
    if page > last:
        raise PageOutOfRange(page, last)


class Page(BaseModel, Generic[T]):
    items: list[T]
    total_count: int
    page: int
    page_size: int

    model_config = {"frozen": True}

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_count, self.page_size)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def window_start(self) -> int:
        """1-based index of the first item shown, 0 for an empty collection."""
        return 0 if self.total_count == 0 else self.offset + 1

    @property
    def window_end(self) -> int:
        return min(self.page * self.page_size, self.total_count)

    def summary(self) -> str:
        return f"Showing {self.window_start}-{self.window_end} of {self.total_count}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [i.model_dump(mode="json") if isinstance(i, BaseModel) else i for i in self.items],
            "total": self.total_count,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "from": self.window_start,
            "to": self.window_end,
        }


def _sort_key(attr: str) -> Callable[[Any], Any]:
    # missing values sort last in ascending order
    def key(item: Any) -> tuple[bool, Any]:
        value = getattr(item, attr, None)
        if isinstance(value, datetime):
            value = _as_utc(value)
        elif isinstance(value, str):
            value = value.lower()
        return (value is None, value if value is not None else 0)

    return key


@dataclass(frozen=True)
class QueryFields:
    """How an entity is searched, filtered and sorted in memory."""

    searchable: tuple[str, ...] = ()
    # criteria field -> entity attribute, exact match
    filters: dict[str, str] = field(default_factory=dict)
    date_attr: str | None = None
    # sort_by value -> key function
    sort_keys: dict[str, Callable[[Any], Any]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        searchable: Sequence[str] = (),
        filters: Sequence[str] = (),
        date_attr: str | None = None,
        sortable: dict[str, str | Callable[[Any], Any]] | None = None,
    ) -> "QueryFields":
        keys = {
            name: _sort_key(spec) if isinstance(spec, str) else spec
            for name, spec in (sortable or {}).items()
        }
        return cls(
            searchable=tuple(searchable),
            filters={f: f for f in filters},
            date_attr=date_attr,
            sort_keys=keys,
        )


class RemoteSource:
    def __init__(self, fetch: Fetch):
        self._fetch = fetch

    async def fetch(self, criteria: FilterCriteria) -> tuple[list[Any], int]:
        return await self._fetch(criteria, criteria.page_size, criteria.offset)


class MemorySource:
    def __init__(self, items: Sequence[Any], fields: QueryFields):
        self.items = list(items)
        self.fields = fields


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _value(value: Any) -> Any:
    return getattr(value, "value", value)


def _matches(item: Any, criteria: FilterCriteria, fields: QueryFields) -> bool:
    for criterion, attr in fields.filters.items():
        wanted = getattr(criteria, criterion)
        if wanted and _value(getattr(item, attr, None)) != wanted:
            return False

    if criteria.search and fields.searchable:
        needle = criteria.search.lower()
        haystacks = (getattr(item, attr, None) or "" for attr in fields.searchable)
        if not any(needle in h.lower() for h in haystacks):
            return False

    if fields.date_attr and (criteria.date_from or criteria.date_to):
        stamp = getattr(item, fields.date_attr, None)
        if stamp is None:
            return False
        stamp = _as_utc(stamp)
        if criteria.date_from and stamp < _as_utc(criteria.date_from):
            return False
        if criteria.date_to and stamp > _as_utc(criteria.date_to):
            return False
    return True


def filter_items(items: Sequence[T], criteria: FilterCriteria, fields: QueryFields) -> list[T]:
    return [item for item in items if _matches(item, criteria, fields)]


def sort_items(items: Sequence[T], criteria: FilterCriteria, fields: QueryFields) -> list[T]:
    key = fields.sort_keys.get(criteria.sort_by)
    if key is None:
        # unknown or empty sort key: keep insertion order
        return list(items)
    # sorted() is stable in both directions, ties keep their relative order
    return sorted(items, key=key, reverse=criteria.sort_order == "desc")


def run_local(criteria: FilterCriteria, source: MemorySource) -> Page:
    matched = sort_items(filter_items(source.items, criteria, source.fields), criteria, source.fields)
    check_page(criteria.page, len(matched), criteria.page_size)
    start = criteria.offset
    return Page(
        items=matched[start:start + criteria.page_size],
        total_count=len(matched),
        page=criteria.page,
        page_size=criteria.page_size,
    )


def settle_local(criteria: FilterCriteria, source: MemorySource) -> Page:
    """Like ``run_local``, but a page past the end lands on the last page.

    Used when the held set may have shrunk under the current page. A page
    below 1 is still rejected.
    """
    try:
        return run_local(criteria, source)
    except PageOutOfRange as e:
        if criteria.page < 1:
            raise
        logger.debug("Page %s gone, stepping back to %s", criteria.page, e.total_pages)
        return run_local(criteria.with_page(e.total_pages), source)


async def query(
    criteria: FilterCriteria,
    source: RemoteSource | MemorySource,
    known_total: int | None = None,
) -> Page:
    """Produce the page of ``source`` selected by ``criteria``.

    For a remote source the page bounds are checked against ``known_total``
    (the total of the last page served for this view) before dispatch. If the
    collection shrank since, the last page is fetched instead, so the page
    returned may differ from ``criteria.page``. A memory source steps back the
    same way.
    """
    if isinstance(source, MemorySource):
        return settle_local(criteria, source)

    check_page(criteria.page, known_total, criteria.page_size)
    logger.debug("Remote query page=%s filters=%s", criteria.page, criteria.active_filters())
    items, total = await source.fetch(criteria)

    last = total_pages(total, criteria.page_size)
    if criteria.page > last:
        logger.info("Remote total fell to %s, stepping back from page %s to %s", total, criteria.page, last)
        criteria = criteria.with_page(last)
        items, total = await source.fetch(criteria)
        # shrank again in between: give up rather than serve an empty window
        check_page(criteria.page, total, criteria.page_size)

    return Page(items=items, total_count=total, page=criteria.page, page_size=criteria.page_size)
