from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..config import settings
from ..stores.pins import PinFilter, PinRecord, PinStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1


@dataclass(frozen=True)
class FeedPage:
    items: list[PinRecord]
    total: int
    has_more: bool


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def clamp_page(page: Any) -> int:
    value = _as_int(page)
    return value if value is not None and value >= 1 else DEFAULT_PAGE


def clamp_page_size(page_size: Any, default: int | None = None, maximum: int | None = None) -> int:
    default = default or settings.FEED_DEFAULT_PAGE_SIZE
    maximum = maximum or settings.FEED_MAX_PAGE_SIZE
    value = _as_int(page_size)
    if value is None or value < 1:
        return default
    return min(value, maximum)


class FeedService:
    """
    Paginated, searchable view over all pins.

    The main feed, the explore view and the history feed all go through
    ``query`` so ordering and paging rules cannot drift between them.
    Out-of-range ``page``/``page_size`` values are clamped to defaults instead
    of being rejected.
    """

    def __init__(self, store: PinStore, *, default_page_size: int | None = None, max_page_size: int | None = None):
        self.store = store
        self.default_page_size = default_page_size or settings.FEED_DEFAULT_PAGE_SIZE
        self.max_page_size = max_page_size or settings.FEED_MAX_PAGE_SIZE

    def query(self, search_text: str | None = "", page: Any = DEFAULT_PAGE, page_size: Any = None) -> FeedPage:
        page = clamp_page(page)
        page_size = clamp_page_size(page_size, self.default_page_size, self.max_page_size)
        criteria = PinFilter(search=(search_text or "").strip())

        skip = (page - 1) * page_size
        total = self.store.count_matching(criteria)
        if skip >= total:
            # past the last page; also keeps huge offsets away from the database
            return FeedPage(items=[], total=total, has_more=False)

        # one extra record tells us whether another page exists
        fetched = self.store.find_matching(criteria, skip=skip, limit=page_size + 1)
        has_more = len(fetched) > page_size
        if has_more:
            fetched = fetched[:page_size]

        logger.debug("feed query %r page=%s size=%s -> %s/%s", criteria.search, page, page_size, len(fetched), total)
        return FeedPage(items=fetched, total=total, has_more=has_more)

    def history(self, limit: int | None = None) -> list[PinRecord]:
        limit = limit or settings.HISTORY_LIMIT
        return self.query("", page=1, page_size=min(limit, self.max_page_size)).items

    def user_pins(self, owner_id: int) -> list[PinRecord]:
        criteria = PinFilter(owner_id=owner_id)
        total = self.store.count_matching(criteria)
        return self.store.find_matching(criteria, skip=0, limit=total) if total else []
