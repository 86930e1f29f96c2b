# File: civictrack/services/issue_store.py
"""In-memory issue store plus the database loaders that populate it.

The store holds every issue loaded for one postal code (``all_issues``) and
the subset produced by the last filter run (``filtered_issues``). Loads
replace the whole set; the filtered subset is always recomputed from it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from civictrack.models.issue import Issue, PUBLIC_STATUSES
from civictrack.models.issue_activity import IssueActivity
from civictrack.models.issue_photo import IssuePhoto
from civictrack.models.user import User
from civictrack.services.filtering import IssuePredicates, filter_issues


@dataclass(frozen=True)
class ActivityEntry:
    created_at: datetime
    description: str


@dataclass
class IssueRecord:
    id: str
    title: str
    description: str
    category: str
    status: str
    postal_code: str
    # raw values; may be missing or non-numeric, see map_sync.parse_coordinates
    latitude: Any = None
    longitude: Any = None
    reporter_id: Optional[str] = None
    reporter_name: Optional[str] = None
    is_anonymous: bool = False
    is_hidden: bool = False
    spam_reports: int = 0
    area: Optional[str] = None
    location_address: Optional[str] = None
    created_at: Optional[datetime] = None
    photos: list[str] = field(default_factory=list)
    activity_log: list[ActivityEntry] = field(default_factory=list)

    @property
    def cover_photo(self) -> Optional[str]:
        return self.photos[0] if self.photos else None

    @property
    def reporter_display(self) -> str:
        if self.is_anonymous:
            return "Anonymous"
        return self.reporter_name or "Unknown"


class IssueStore:
    def __init__(self) -> None:
        self.postal_code: Optional[str] = None
        self._all: tuple[IssueRecord, ...] = ()
        self._filtered: tuple[IssueRecord, ...] = ()

    @property
    def all_issues(self) -> tuple[IssueRecord, ...]:
        return self._all

    @property
    def filtered_issues(self) -> tuple[IssueRecord, ...]:
        return self._filtered

    def replace(self, postal_code: Optional[str], issues: Iterable[IssueRecord]) -> None:
        """Swap in a freshly loaded set. Never merges with the previous load."""
        self.postal_code = postal_code
        self._all = tuple(issues)
        self._filtered = self._all

    def apply(self, predicates: IssuePredicates) -> tuple[IssueRecord, ...]:
        self._filtered = tuple(filter_issues(self._all, predicates))
        return self._filtered

    def get(self, issue_id: str) -> Optional[IssueRecord]:
        for issue in self._all:
            if issue.id == issue_id:
                return issue
        return None


# ---------------------------------------------------------------------------
# loaders
# ---------------------------------------------------------------------------

def _enum_value(v):
    return v.value if hasattr(v, "value") else v


def to_records(db: Session, issues: Sequence[Issue]) -> list[IssueRecord]:
    """Convert rows to records, batch-fetching photos, activity and reporters."""
    if not issues:
        return []
    issue_ids = [i.id for i in issues]

    photos_by_issue: dict[str, list[str]] = {}
    photos = (
        db.query(IssuePhoto)
        .filter(IssuePhoto.issue_id.in_(issue_ids))
        .order_by(IssuePhoto.issue_id, IssuePhoto.position, IssuePhoto.id)
        .all()
    )
    for p in photos:
        photos_by_issue.setdefault(p.issue_id, []).append(p.photo_url)

    activity_by_issue: dict[str, list[ActivityEntry]] = {}
    activities = (
        db.query(IssueActivity)
        .filter(IssueActivity.issue_id.in_(issue_ids))
        .order_by(IssueActivity.created_at, IssueActivity.id)
        .all()
    )
    for a in activities:
        activity_by_issue.setdefault(a.issue_id, []).append(
            ActivityEntry(created_at=a.created_at, description=a.description)
        )

    reporter_ids = {i.reporter_id for i in issues if i.reporter_id}
    reporters: dict[str, str] = {}
    if reporter_ids:
        for u in db.query(User).filter(User.id.in_(reporter_ids)):
            reporters[u.id] = u.username

    return [
        IssueRecord(
            id=i.id,
            title=i.title,
            description=i.description,
            category=_enum_value(i.category),
            status=_enum_value(i.status),
            postal_code=i.postal_code,
            latitude=i.latitude,
            longitude=i.longitude,
            reporter_id=i.reporter_id,
            reporter_name=reporters.get(i.reporter_id) if i.reporter_id else None,
            is_anonymous=bool(i.is_anonymous),
            is_hidden=bool(i.is_hidden),
            spam_reports=i.spam_reports or 0,
            area=i.area,
            location_address=i.location_address,
            created_at=i.created_at,
            photos=photos_by_issue.get(i.id, []),
            activity_log=activity_by_issue.get(i.id, []),
        )
        for i in issues
    ]


def fetch_local_issues(db: Session, postal_code: str) -> list[IssueRecord]:
    """Citizen view: visible issues of one postal code, newest first."""
    rows = (
        db.query(Issue)
        .filter(
            Issue.postal_code == postal_code,
            Issue.is_hidden.is_(False),
            Issue.status.in_(PUBLIC_STATUSES),
        )
        .order_by(Issue.created_at.desc(), Issue.id)
        .all()
    )
    return to_records(db, rows)


def fetch_all_issues(db: Session, postal_code: Optional[str] = None) -> list[IssueRecord]:
    """Admin view: every issue, hidden and moderated ones included."""
    q = db.query(Issue)
    if postal_code:
        q = q.filter(Issue.postal_code == postal_code)
    rows = q.order_by(Issue.created_at.desc(), Issue.id).all()
    return to_records(db, rows)


def load_store(db: Session, postal_code: str) -> IssueStore:
    store = IssueStore()
    store.replace(postal_code, fetch_local_issues(db, postal_code))
    return store
