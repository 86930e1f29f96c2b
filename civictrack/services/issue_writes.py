# File: civictrack/services/issue_writes.py
"""Write-side helpers shared by the citizen and admin routers."""
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from civictrack.models.issue import Issue
from civictrack.models.issue_activity import IssueActivity, ActivityAction
from civictrack.models.issue_photo import IssuePhoto
from civictrack.models.spam_report import SpamReport

logger = logging.getLogger(__name__)


def log_activity(db: Session, issue_id: str, action: ActivityAction, description: str,
                 user_id: Optional[str] = None) -> IssueActivity:
    entry = IssueActivity(
        issue_id=issue_id,
        action=action.value,
        description=description,
        user_id=user_id,
    )
    db.add(entry)
    return entry


def touch(issue: Issue) -> None:
    issue.updated_at = datetime.now(timezone.utc)


def purge_issues(db: Session, issues: Sequence[Issue]) -> list[str]:
    """Delete issues with their photos, activity and spam reports.

    Returns the photo URLs so the caller can remove the stored objects after
    the transaction commits.
    """
    if not issues:
        return []
    ids = [i.id for i in issues]
    urls = [
        p.photo_url
        for p in db.query(IssuePhoto).filter(IssuePhoto.issue_id.in_(ids)).all()
    ]
    db.query(IssuePhoto).filter(IssuePhoto.issue_id.in_(ids)).delete(synchronize_session=False)
    db.query(IssueActivity).filter(IssueActivity.issue_id.in_(ids)).delete(synchronize_session=False)
    db.query(SpamReport).filter(SpamReport.issue_id.in_(ids)).delete(synchronize_session=False)
    for issue in issues:
        db.delete(issue)
    logger.info("Deleted %d issue(s)", len(ids))
    return urls
