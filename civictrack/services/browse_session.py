# File: civictrack/services/browse_session.py
"""Per-client browsing state: postal code, filters, page, radius and map layer.

One ``BrowseSession`` owns one issue store and one marker layer. Filtering,
paging and distance checks are synchronous; only the issue load and the
postal-code geocode suspend. A load that finishes after a newer postal code
was selected is dropped.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, Optional, Protocol, Sequence

from civictrack.services.filtering import IssuePredicates
from civictrack.services.issue_store import IssueRecord, IssueStore
from civictrack.services.map_sync import LatLng, MarkerLayer, MarkerSynchronizer
from civictrack.services.pagination import PageControl, page_controls, paginate

logger = logging.getLogger(__name__)

POSTAL_CODE_RE = re.compile(r"^\d{6}$")

IssueLoader = Callable[[str], Awaitable[Sequence[IssueRecord]]]


class CenterResolver(Protocol):
    default_center: LatLng

    def resolve_or_default(self, postal_code: Optional[str]) -> tuple[LatLng, bool]: ...


@dataclass(frozen=True)
class BrowseSnapshot:
    postal_code: Optional[str]
    page: int
    page_items: list[IssueRecord]
    total: int
    total_pages: int
    controls: list[PageControl]
    view: str


def is_valid_postal_code(value: Optional[str]) -> bool:
    return bool(value) and bool(POSTAL_CODE_RE.match(value))


class BrowseSession:
    def __init__(
        self,
        loader: IssueLoader,
        resolver: CenterResolver,
        page_size: int = 9,
        radius_km: float = 5.0,
    ):
        self._loader = loader
        self._resolver = resolver
        self.page_size = page_size
        self.radius_km = radius_km
        self.store = IssueStore()
        self.layer = MarkerLayer()
        self._synchronizer = MarkerSynchronizer(self.layer, resolver.default_center)
        self.predicates = IssuePredicates()
        self.current_user_id: Optional[str] = None
        self.page = 1
        self.view: Literal["grid", "map"] = "grid"
        self.map_category: Optional[str] = None
        self._active_postal_code: Optional[str] = None
        self._listeners: list[Callable[[BrowseSnapshot], None]] = []

    # -- callbacks ---------------------------------------------------------

    def on_change(self, callback: Callable[[BrowseSnapshot], None]) -> None:
        self._listeners.append(callback)

    def _notify(self) -> None:
        snap = self.snapshot()
        for cb in self._listeners:
            cb(snap)

    def snapshot(self) -> BrowseSnapshot:
        items, total_pages = paginate(self.store.filtered_issues, self.page_size, self.page)
        return BrowseSnapshot(
            postal_code=self.store.postal_code,
            page=self.page,
            page_items=items,
            total=len(self.store.filtered_issues),
            total_pages=total_pages,
            controls=page_controls(self.page, total_pages),
            view=self.view,
        )

    # -- loading -----------------------------------------------------------

    async def select_postal_code(self, postal_code: str) -> bool:
        """Load issues for ``postal_code``; False when the result went stale."""
        if not is_valid_postal_code(postal_code):
            raise ValueError("Please enter a valid 6-digit postal code")
        self._active_postal_code = postal_code
        issues = await self._loader(postal_code)
        if self._active_postal_code != postal_code:
            logger.info(
                "Discarding stale load for %s (active is %s)",
                postal_code, self._active_postal_code,
            )
            return False
        self.store.replace(postal_code, issues)
        self.page = 1
        self._refilter()
        return True

    # -- filters -----------------------------------------------------------

    def set_user(self, user_id: Optional[str]) -> None:
        self.current_user_id = user_id
        if self.predicates.mine_only:
            self.predicates = IssuePredicates(
                category=self.predicates.category,
                status=self.predicates.status,
                mine_only=True,
                current_user_id=user_id,
            )
            self._refilter()

    def set_filters(self, category: Optional[str] = None, status: Optional[str] = None) -> None:
        self.predicates = IssuePredicates(category=category or None, status=status or None)
        self.page = 1
        self._refilter()

    def show_my_issues(self) -> None:
        self.predicates = IssuePredicates(mine_only=True, current_user_id=self.current_user_id)
        self.page = 1
        self._refilter()

    def _refilter(self) -> None:
        self.store.apply(self.predicates)
        self._notify()

    def change_page(self, page: int) -> BrowseSnapshot:
        self.page = page
        snap = self.snapshot()
        for cb in self._listeners:
            cb(snap)
        return snap

    # -- map -----------------------------------------------------------------

    async def refresh_map(
        self,
        radius_km: Optional[float] = None,
        category: Optional[str] = None,
    ) -> MarkerLayer:
        if radius_km is not None:
            if radius_km <= 0:
                raise ValueError("radius_km must be positive")
            self.radius_km = radius_km
        self.map_category = category or None
        postal_code = self.store.postal_code
        center, fell_back = await asyncio.to_thread(self._resolver.resolve_or_default, postal_code)
        if postal_code != self.store.postal_code:
            # a newer load landed while geocoding; redraw for it instead
            return await self.refresh_map(category=self.map_category)
        return self._synchronizer.sync(
            self.store.filtered_issues,
            None if fell_back else center,
            self.radius_km,
            self.map_category,
        )

    async def toggle_view(self) -> str:
        self.view = "map" if self.view == "grid" else "grid"
        if self.view == "map":
            await self.refresh_map(category=self.map_category)
        self._notify()
        return self.view
