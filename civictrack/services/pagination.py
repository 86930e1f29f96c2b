# File: civictrack/services/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class PageControl:
    kind: Literal["previous", "page", "next"]
    page: int
    label: str
    current: bool = False


def total_pages_for(count: int, page_size: int) -> int:
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    return math.ceil(count / page_size) if count > 0 else 0


def paginate(items: Sequence[T], page_size: int, current_page: int) -> tuple[list[T], int]:
    """Slice one 1-based page. Out-of-range pages give an empty slice."""
    total_pages = total_pages_for(len(items), page_size)
    if current_page < 1:
        return [], total_pages
    start = (current_page - 1) * page_size
    return list(items[start:start + page_size]), total_pages


def page_controls(current_page: int, total_pages: int) -> list[PageControl]:
    if total_pages <= 1:
        return []
    controls: list[PageControl] = []
    if current_page > 1:
        # never point "Previous" past the last real page
        prev_page = min(current_page - 1, total_pages)
        controls.append(PageControl(kind="previous", page=prev_page, label="Previous"))
    for i in range(1, total_pages + 1):
        controls.append(PageControl(kind="page", page=i, label=str(i), current=i == current_page))
    if current_page < total_pages:
        controls.append(PageControl(kind="next", page=max(current_page + 1, 1), label="Next"))
    return controls
