# File: civictrack/services/filtering.py
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from civictrack.services.issue_store import IssueRecord


@dataclass(frozen=True)
class IssuePredicates:
    """Active list filters. Empty category/status match everything."""
    category: Optional[str] = None
    status: Optional[str] = None
    mine_only: bool = False
    current_user_id: Optional[str] = None


def filter_issues(all_issues: Iterable["IssueRecord"], predicates: IssuePredicates) -> list["IssueRecord"]:
    """Return the issues matching every active predicate, in input order.

    The ownership predicate with nobody signed in matches nothing.
    """
    if predicates.mine_only and not predicates.current_user_id:
        return []

    result = []
    for issue in all_issues:
        if predicates.category and issue.category != predicates.category:
            continue
        if predicates.status and issue.status != predicates.status:
            continue
        if predicates.mine_only and issue.reporter_id != predicates.current_user_id:
            continue
        result.append(issue)
    return result
