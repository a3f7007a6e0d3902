# helpdesk_console/view/state.py
"""Per-view coordination state.

A ``ViewState`` holds the page last loaded for one view, the selected entity
and the single in-flight guard. It owns no business rules. The selection has
exactly one writer, ``open_detail``; everything else only reads it.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from helpdesk_console.core.errors import ConsoleError, NotFound
from helpdesk_console.query.criteria import FilterCriteria
from helpdesk_console.query.engine import Page

logger = logging.getLogger(__name__)

T = TypeVar("T")

Loader = Callable[[FilterCriteria], Awaitable[Page]]
FetchOne = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class DeepLink:
    """Open-this-entity intent carried in from a link, consumed once."""

    entity_id: str | None = None
    tab: str | None = None


class ViewState(Generic[T]):
    def __init__(self, name: str, criteria: FilterCriteria):
        self.name = name
        self.criteria = criteria
        self.page: Page | None = None
        self.is_loading = False
        self.error: str | None = None
        self.tab: str | None = None
        self._selected_id: str | None = None
        self._intent: DeepLink | None = None

    # -- loading -----------------------------------------------------------

    @property
    def has_loaded(self) -> bool:
        return self.page is not None

    @property
    def known_total(self) -> int | None:
        return self.page.total_count if self.page else None

    async def load(self, loader: Loader) -> bool:
        """Run ``loader`` for the current criteria.

        Returns False without doing anything when a load is already in flight.
        On failure the previous page is kept and the error re-raised; only a
        view that never loaded records an error state.
        """
        if self.is_loading:
            logger.debug("%s: load already in flight, ignoring", self.name)
            return False
        self.is_loading = True
        try:
            page = await loader(self.criteria)
        except ConsoleError as e:
            if self.page is None:
                self.error = e.message
            logger.warning("%s: load failed: %s", self.name, e.message)
            raise
        finally:
            self.is_loading = False
        self.show(page)
        return True

    def show(self, page: Page) -> None:
        """Replace the page outright.

        The criteria follow the page actually served, which is the last page
        when the collection shrank under the one asked for.
        """
        if page.page != self.criteria.page:
            logger.info("%s: page %s is gone, showing page %s", self.name, self.criteria.page, page.page)
            self.criteria = self.criteria.with_page(page.page)
        # single assignment, readers never see a half-built page
        self.page = page
        self.error = None

    # -- cached entities ---------------------------------------------------

    @property
    def items(self) -> list[T]:
        return list(self.page.items) if self.page else []

    def find(self, entity_id: str) -> T | None:
        return next((i for i in self.items if getattr(i, "id", None) == entity_id), None)

    def replace(self, entity: T) -> bool:
        """Swap the cached copy of ``entity`` for the confirmed one."""
        if self.page is None:
            return False
        entity_id = getattr(entity, "id")
        if self.find(entity_id) is None:
            return False
        items = [entity if getattr(i, "id", None) == entity_id else i for i in self.page.items]
        self.page = self.page.model_copy(update={"items": items})
        return True

    def remove(self, entity_id: str) -> bool:
        if self.page is None or self.find(entity_id) is None:
            return False
        items = [i for i in self.page.items if getattr(i, "id", None) != entity_id]
        self.page = self.page.model_copy(
            update={"items": items, "total_count": max(0, self.page.total_count - 1)}
        )
        if self._selected_id == entity_id:
            self._selected_id = None
        return True

    # -- selection ---------------------------------------------------------

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    async def open_detail(self, entity_id: str, fetch_one: FetchOne) -> T:
        """Select ``entity_id``, from the cached page or straight from the service.

        Opening a second entity overwrites the selection. If the entity cannot be
        found anywhere the selection is left as it was.
        """
        entity = self.find(entity_id)
        if entity is None:
            logger.debug("%s: %s not cached, fetching", self.name, entity_id)
            entity = await fetch_one(entity_id)
            if entity is None:
                raise NotFound(f"{self.name}: {entity_id} not found")
        self._selected_id = entity_id
        return entity

    def clear_selection(self) -> None:
        self._selected_id = None

    # -- deep links --------------------------------------------------------

    def set_intent(self, entity_id: str | None = None, tab: str | None = None) -> None:
        if entity_id or tab:
            self._intent = DeepLink(entity_id=entity_id, tab=tab)

    def consume_intent(self) -> DeepLink | None:
        intent, self._intent = self._intent, None
        return intent

    def snapshot(self) -> dict[str, Any]:
        page = self.page
        return {
            "criteria": self.criteria.model_dump(mode="json"),
            "page": page.to_dict() if page else None,
            "summary": page.summary() if page else None,
            "is_loading": self.is_loading,
            "error": self.error,
            "selected_id": self.selected_id,
        }
