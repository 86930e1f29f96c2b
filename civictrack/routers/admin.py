# File: civictrack/routers/admin.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from civictrack.core.config import settings
from civictrack.core.notices import ok, WarningNotice
from civictrack.core.security import require_role
from civictrack.db.session import get_db
from civictrack.models.issue import Issue, IssueStatus, MODERATION_STATUSES
from civictrack.models.issue_activity import ActivityAction
from civictrack.models.spam_report import SpamReport
from civictrack.models.user import User
from civictrack.routers.issues import (
    CATEGORY_VALUES, INVALID_POSTAL_CODE, commit_or_500, check_choice, paginated_response, to_detail,
)
from civictrack.schemas.issue import AdminIssuesOut, IssueIdsIn, IssueStatusPatch
from civictrack.schemas.user import UserIdsIn, UserOut
from civictrack.services import analytics
from civictrack.services.browse_session import is_valid_postal_code
from civictrack.services.filtering import IssuePredicates
from civictrack.services.issue_store import IssueStore, fetch_all_issues, to_records
from civictrack.services.issue_writes import log_activity, purge_issues, touch
from civictrack.services.storage import remove_images_safe

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

admin_only = require_role("admin")
STATUS_VALUES = [s.value for s in IssueStatus]


def _admin_view(rec):
    return to_detail(rec, None)


def _issues_by_ids(db: Session, ids: list[str]) -> list[Issue]:
    if not ids:
        return []
    return db.query(Issue).filter(Issue.id.in_(ids)).all()


# ---- dashboard -------------------------------------------------------------

@router.get("/dashboard", dependencies=[Depends(admin_only)])
def dashboard(db: Session = Depends(get_db)):
    total = db.query(func.count(Issue.id)).scalar() or 0
    pending = db.query(func.count(Issue.id)).filter(Issue.status == IssueStatus.reported).scalar() or 0
    resolved = db.query(func.count(Issue.id)).filter(Issue.status == IssueStatus.resolved).scalar() or 0
    spam = db.query(func.count(Issue.id)).filter(Issue.status.in_(MODERATION_STATUSES)).scalar() or 0
    active_users = db.query(func.count(User.id)).filter(User.is_banned.is_(False)).scalar() or 0
    spam_reports = db.query(func.count(SpamReport.id)).scalar() or 0
    return {
        "total_issues": total,
        "pending_issues": pending,
        "resolved_issues": resolved,
        "spam_issues": spam,
        "active_users": active_users,
        "spam_reports": spam_reports,
        "last_updated": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/recent-activity", dependencies=[Depends(admin_only)])
def recent_activity(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    rows = db.query(Issue).order_by(Issue.created_at.desc(), Issue.id).limit(limit).all()
    return [
        {
            "id": r.id,
            "title": r.title,
            "status": r.status,
            "reporter": r.reporter_display,
            "created_at": r.created_at,
        }
        for r in to_records(db, rows)
    ]


# ---- issues ----------------------------------------------------------------

@router.get("/issues", response_model=AdminIssuesOut, dependencies=[Depends(admin_only)])
def list_all_issues(
    status: Optional[str] = None,
    category: Optional[str] = None,
    postal_code: Optional[str] = None,
    page: int = 1,
    db: Session = Depends(get_db),
):
    predicates = IssuePredicates(
        category=check_choice(category, CATEGORY_VALUES, "category"),
        status=check_choice(status, STATUS_VALUES, "status"),
    )
    postal_code = (postal_code or "").strip() or None
    if postal_code and not is_valid_postal_code(postal_code):
        raise HTTPException(status_code=400, detail=INVALID_POSTAL_CODE)
    store = IssueStore()
    store.replace(postal_code, fetch_all_issues(db, postal_code))
    store.apply(predicates)
    return paginated_response(store, page, settings.issues_per_page, render=_admin_view)


@router.patch("/issues/{issue_id}/status")
def update_status(
    issue_id: str,
    body: IssueStatusPatch,
    db: Session = Depends(get_db),
    me: User = Depends(admin_only),
):
    issue = db.query(Issue).filter(Issue.id == issue_id).first()
    if not issue:
        raise HTTPException(status_code=404, detail="Issue not found")
    old = issue.status
    issue.status = body.status
    touch(issue)
    log_activity(
        db, issue.id, ActivityAction.status_updated,
        f"Status updated to {body.status.value} by admin", me.id,
    )
    commit_or_500(db, "update status")
    logger.info("Issue %s status %s -> %s by %s", issue.id, old.value, body.status.value, me.id)
    return ok("Status updated successfully", id=issue.id, status=body.status.value)


@router.delete("/issues/{issue_id}", dependencies=[Depends(admin_only)])
def delete_issue(issue_id: str, db: Session = Depends(get_db)):
    issue = db.query(Issue).filter(Issue.id == issue_id).first()
    if not issue:
        raise HTTPException(status_code=404, detail="Issue not found")
    urls = purge_issues(db, [issue])
    commit_or_500(db, "delete issue")
    remove_images_safe(urls)
    return ok("Issue deleted successfully", id=issue_id)


@router.post("/issues/delete", dependencies=[Depends(admin_only)])
def delete_issues(body: IssueIdsIn, db: Session = Depends(get_db)):
    if not body.issue_ids:
        raise WarningNotice("Please select issues to delete")
    issues = _issues_by_ids(db, body.issue_ids)
    urls = purge_issues(db, issues)
    commit_or_500(db, "delete issues")
    remove_images_safe(urls)
    return ok(f"{len(issues)} issues deleted successfully", deleted=len(issues))


@router.post("/issues/approve")
def approve_issues(body: IssueIdsIn, db: Session = Depends(get_db), me: User = Depends(admin_only)):
    if not body.issue_ids:
        raise WarningNotice("Please select issues to approve")
    issues = _issues_by_ids(db, body.issue_ids)
    for issue in issues:
        issue.status = IssueStatus.reported
        issue.is_hidden = False
        touch(issue)
        log_activity(db, issue.id, ActivityAction.approved, "Issue approved by admin", me.id)
    commit_or_500(db, "approve issues")
    noun = "Issue" if len(issues) == 1 else f"{len(issues)} issues"
    return ok(f"{noun} approved successfully", approved=len(issues))


@router.get("/spam-issues", dependencies=[Depends(admin_only)])
def spam_issues(db: Session = Depends(get_db)):
    rows = (
        db.query(Issue)
        .filter(or_(Issue.status.in_(MODERATION_STATUSES), Issue.is_hidden.is_(True)))
        .order_by(Issue.created_at.desc(), Issue.id)
        .all()
    )
    return [_admin_view(r) for r in to_records(db, rows)]


@router.get("/spam-reports", dependencies=[Depends(admin_only)])
def spam_reports(db: Session = Depends(get_db)):
    rows = (
        db.query(SpamReport, Issue.title, User.username)
        .join(Issue, Issue.id == SpamReport.issue_id)
        .outerjoin(User, User.id == SpamReport.reporter_id)
        .order_by(SpamReport.created_at.desc(), SpamReport.id.desc())
        .all()
    )
    return [
        {
            "id": r.id,
            "issue_id": r.issue_id,
            "issue_title": title,
            "reported_by": username or "Unknown",
            "reason": r.reason,
            "created_at": r.created_at,
        }
        for r, title, username in rows
    ]


@router.delete("/spam-reports/{report_id}", dependencies=[Depends(admin_only)])
def dismiss_spam_report(report_id: int, db: Session = Depends(get_db)):
    report = db.query(SpamReport).filter(SpamReport.id == report_id).first()
    if not report:
        raise HTTPException(status_code=404, detail="Spam report not found")
    issue = db.query(Issue).filter(Issue.id == report.issue_id).first()
    if issue and issue.spam_reports:
        issue.spam_reports -= 1
    db.delete(report)
    commit_or_500(db, "dismiss spam report")
    return ok("Spam report dismissed", id=report_id)


# ---- users -----------------------------------------------------------------

@router.get("/users", response_model=list[UserOut], dependencies=[Depends(admin_only)])
def list_users(q: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(User)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(User.email.ilike(like), User.username.ilike(like)))
    users = query.order_by(User.created_at.desc(), User.id).all()

    counts = {}
    if users:
        counts = dict(
            db.query(Issue.reporter_id, func.count(Issue.id))
            .filter(Issue.reporter_id.in_([u.id for u in users]))
            .group_by(Issue.reporter_id)
            .all()
        )
    return [
        UserOut(
            id=u.id, email=u.email, username=u.username, phone=u.phone,
            role=u.role.value, is_banned=bool(u.is_banned), created_at=u.created_at,
            issue_count=counts.get(u.id, 0),
        )
        for u in users
    ]


def _set_banned(db: Session, user_ids: list[str], banned: bool) -> int:
    users = db.query(User).filter(User.id.in_(user_ids)).all()
    for u in users:
        u.is_banned = banned
    return len(users)


@router.post("/users/ban")
def ban_users(body: UserIdsIn, db: Session = Depends(get_db), me: User = Depends(admin_only)):
    if not body.user_ids:
        raise WarningNotice("Please select users to ban")
    if me.id in body.user_ids:
        raise HTTPException(status_code=400, detail="You cannot ban yourself")
    n = _set_banned(db, body.user_ids, True)
    commit_or_500(db, "ban users")
    logger.info("Admin %s banned %d user(s)", me.id, n)
    return ok("User banned successfully" if n == 1 else f"{n} users banned successfully", banned=n)


@router.post("/users/unban")
def unban_users(body: UserIdsIn, db: Session = Depends(get_db), me: User = Depends(admin_only)):
    if not body.user_ids:
        raise WarningNotice("Please select users to unban")
    n = _set_banned(db, body.user_ids, False)
    commit_or_500(db, "unban users")
    return ok("User unbanned successfully" if n == 1 else f"{n} users unbanned successfully", unbanned=n)


# ---- analytics -------------------------------------------------------------

@router.get("/analytics", dependencies=[Depends(admin_only)])
def analytics_charts(days: int = Query(30, ge=1, le=365), db: Session = Depends(get_db)):
    now = datetime.now(timezone.utc)
    since = now - timedelta(days=days)
    rows = (
        db.query(Issue.category, Issue.status, Issue.created_at)
        .filter(Issue.created_at >= since)
        .order_by(Issue.created_at.asc())
        .all()
    )
    reporters = (
        db.query(User.username, func.count(Issue.id))
        .join(Issue, Issue.reporter_id == User.id)
        .filter(User.is_banned.is_(False))
        .group_by(User.id, User.username)
        .all()
    )
    return {
        "days": days,
        "category": analytics.category_chart(r[0] for r in rows),
        "status": analytics.status_chart(r[1] for r in rows),
        "timeline": analytics.timeline_chart((r[2] for r in rows), since.date(), now.date()),
        "top_reporters": analytics.top_reporters(reporters),
    }
