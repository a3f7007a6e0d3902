# helpdesk_console/query/criteria.py
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

SortOrder = Literal["asc", "desc"]

FILTER_FIELDS = (
    "search",
    "status",
    "priority",
    "trigger",
    "type_of_request",
    "workflow_id",
    "date_from",
    "date_to",
)
SORT_FIELDS = ("sort_by", "sort_order")

DATE_PRESETS = ("today", "week", "month")


class FilterCriteria(BaseModel):
    """Immutable snapshot of the filter, sort and page selections of one view.

    Every change goes through ``with_filters``/``with_sort``/``toggle_sort``/
    ``cleared``, which all land back on page 1. Only ``with_page`` moves the
    page, and ``page_size`` is fixed for the life of the view.
    """

    search: str = ""
    status: str = ""
    priority: str = ""
    trigger: str = ""
    type_of_request: str = ""
    workflow_id: str = ""
    date_from: datetime | None = None
    date_to: datetime | None = None
    sort_by: str = ""
    sort_order: SortOrder = "desc"
    page: int = 1
    page_size: int = Field(default=10, gt=0)

    model_config = {"frozen": True}

    def _derive(self, **changes: Any) -> "FilterCriteria":
        return type(self).model_validate({**self.model_dump(), **changes})

    def with_filters(self, **changes: Any) -> "FilterCriteria":
        unknown = set(changes) - set(FILTER_FIELDS) - set(SORT_FIELDS)
        if unknown:
            raise ValueError(f"Not a filter field: {', '.join(sorted(unknown))}")
        changes = {
            k: ("" if v is None and k in FILTER_FIELDS and not k.startswith("date_") else v)
            for k, v in changes.items()
            if not (v is None and k in SORT_FIELDS)
        }
        if all(getattr(self, k) == v for k, v in changes.items()):
            return self
        return self._derive(**changes, page=1)

    def with_sort(self, sort_by: str, sort_order: SortOrder) -> "FilterCriteria":
        return self.with_filters(sort_by=sort_by, sort_order=sort_order)

    def toggle_sort(self, sort_by: str) -> "FilterCriteria":
        if sort_by == self.sort_by:
            order = "asc" if self.sort_order == "desc" else "desc"
            return self._derive(sort_order=order, page=1)
        return self._derive(sort_by=sort_by, sort_order="desc", page=1)

    def with_page(self, page: int) -> "FilterCriteria":
        if page == self.page:
            return self
        return self._derive(page=page)

    def cleared(self) -> "FilterCriteria":
        return type(self)(
            sort_by=self.sort_by,
            sort_order=self.sort_order,
            page_size=self.page_size,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def active_filters(self) -> dict[str, Any]:
        """Filter fields that are set, in the shape remote services expect."""
        out: dict[str, Any] = {}
        for name in FILTER_FIELDS:
            value = getattr(self, name)
            if value in ("", None):
                continue
            out[name] = value.isoformat() if isinstance(value, datetime) else value
        return out


def date_bounds(preset: str, now: datetime | None = None) -> tuple[datetime | None, datetime | None]:
    """Resolve a named date range to (start, end) bounds; '' means unbounded.

    Presets reach back from the start of today and stay open-ended, so runs
    started after the range was picked still fall inside it.
    """
    if not preset:
        return None, None
    if preset not in DATE_PRESETS:
        raise ValueError(f"Unknown date range: {preset}")
    now = now or datetime.now(timezone.utc)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if preset == "today":
        return start_of_day, None
    if preset == "week":
        return start_of_day - timedelta(days=7), None
    return start_of_day - timedelta(days=30), None
