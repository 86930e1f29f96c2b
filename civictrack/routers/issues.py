# File: civictrack/routers/issues.py
import logging
from dataclasses import asdict

import requests
from fastapi import APIRouter, Depends, Query, HTTPException, UploadFile, File, Request, Form
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
from civictrack.db.session import get_db
from civictrack.core.config import settings
from civictrack.core.notices import ok, WarningNotice
from civictrack.core.ratelimit import limiter
from civictrack.core.security import get_current_user, get_optional_user
from civictrack.models.issue import Issue, IssueCategory, IssueStatus, PUBLIC_STATUSES
from civictrack.models.issue_activity import ActivityAction
from civictrack.models.issue_photo import IssuePhoto
from civictrack.models.spam_report import SpamReport
from civictrack.models.user import User, UserRole
from civictrack.schemas.issue import IssueCard, IssueDetail, IssueEdit, MapOut, PaginatedIssuesOut, SpamReportIn
from civictrack.services.browse_session import is_valid_postal_code
from civictrack.services.filtering import IssuePredicates
from civictrack.services.geocoding import GeocodingError, NominatimGeocoder, get_geocoder
from civictrack.services.issue_store import IssueRecord, IssueStore, load_store, to_records
from civictrack.services.issue_writes import log_activity, purge_issues, touch
from civictrack.services.map_sync import MarkerLayer, MarkerSynchronizer, parse_coordinates
from civictrack.services.pagination import page_controls, paginate
from civictrack.services.storage import (
    PhotoUpload, PhotoValidationError, make_object_key, remove_images_safe, upload_image, validate_photos,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/issues", tags=["issues"])

CATEGORY_VALUES = [c.value for c in IssueCategory]
PUBLIC_STATUS_VALUES = [s.value for s in PUBLIC_STATUSES]
INVALID_POSTAL_CODE = "Please enter a valid 6-digit postal code"


def _is_admin(user: Optional[User]) -> bool:
    return bool(user) and user.role == UserRole.admin


def check_choice(value: Optional[str], allowed: List[str], label: str) -> Optional[str]:
    """Empty means "all"; anything else must be one of ``allowed``."""
    if not value:
        return None
    if value not in allowed:
        raise HTTPException(status_code=400, detail=f"Invalid {label}: {value}")
    return value


def to_card(rec: IssueRecord) -> IssueCard:
    point = parse_coordinates(rec.latitude, rec.longitude)
    return IssueCard(
        id=rec.id,
        title=rec.title,
        description=rec.description,
        category=rec.category,
        status=rec.status,
        postal_code=rec.postal_code,
        area=rec.area,
        location_address=rec.location_address,
        latitude=point.lat if point else None,
        longitude=point.lng if point else None,
        created_at=rec.created_at,
        cover_photo=rec.cover_photo,
        photo_count=len(rec.photos),
        reporter=rec.reporter_display,
    )


def to_detail(rec: IssueRecord, viewer: Optional[User]) -> IssueDetail:
    card = to_card(rec)
    return IssueDetail(
        **card.model_dump(),
        is_anonymous=rec.is_anonymous,
        photos=list(rec.photos),
        activity_log=[{"created_at": a.created_at, "description": a.description} for a in rec.activity_log],
        can_edit=bool(viewer) and rec.reporter_id is not None and rec.reporter_id == viewer.id,
        is_hidden=rec.is_hidden,
        spam_reports=rec.spam_reports,
    )


def paginated_response(store: IssueStore, page: int, page_size: int, render=to_card) -> dict:
    items, total_pages = paginate(store.filtered_issues, page_size, page)
    return {
        "items": [render(r) for r in items],
        "postal_code": store.postal_code,
        "page": page,
        "page_size": page_size,
        "total": len(store.filtered_issues),
        "total_pages": total_pages,
        "controls": [asdict(c) for c in page_controls(page, total_pages)],
    }


def _local_store(db: Session, postal_code: str, predicates: IssuePredicates) -> IssueStore:
    if not is_valid_postal_code(postal_code):
        raise HTTPException(status_code=400, detail=INVALID_POSTAL_CODE)
    store = load_store(db, postal_code)
    store.apply(predicates)
    return store


def _get_issue(db: Session, issue_id: str, viewer: Optional[User]) -> Issue:
    issue = db.query(Issue).filter(Issue.id == issue_id).first()
    if not issue or (issue.is_hidden and not _is_admin(viewer)):
        raise HTTPException(status_code=404, detail="Issue not found")
    return issue


def commit_or_500(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to {what}: {e}", exc_info=True)
        reason = getattr(e, "orig", None) or e.__class__.__name__
        raise HTTPException(status_code=500, detail=f"Failed to {what}: {reason}")


@router.get("", response_model=PaginatedIssuesOut)
@limiter.limit("60/minute")
def list_issues(
    request: Request,
    postal_code: str = Query(...),
    category: Optional[str] = None,
    status: Optional[str] = None,
    mine: bool = False,
    page: int = 1,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    predicates = IssuePredicates(
        category=check_choice(category, CATEGORY_VALUES, "category"),
        status=check_choice(status, PUBLIC_STATUS_VALUES, "status"),
        mine_only=mine,
        current_user_id=user.id if user else None,
    )
    store = _local_store(db, postal_code.strip(), predicates)
    return paginated_response(store, page, settings.issues_per_page)


@router.get("/map", response_model=MapOut)
def issues_map(
    postal_code: str = Query(...),
    radius_km: float = Query(default=settings.default_radius_km, gt=0),
    category: Optional[str] = None,
    status: Optional[str] = None,
    mine: bool = False,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
    geo: NominatimGeocoder = Depends(get_geocoder),
):
    category = check_choice(category, CATEGORY_VALUES, "category")
    predicates = IssuePredicates(
        status=check_choice(status, PUBLIC_STATUS_VALUES, "status"),
        mine_only=mine,
        current_user_id=user.id if user else None,
    )
    store = _local_store(db, postal_code.strip(), predicates)
    center, fell_back = geo.resolve_or_default(store.postal_code)
    layer = MarkerSynchronizer(MarkerLayer(), geo.default_center).sync(
        store.filtered_issues, None if fell_back else center, radius_km, category,
    )
    return {"postal_code": store.postal_code, "radius_km": radius_km, **layer.to_dict()}


@router.post("", status_code=201)
@limiter.limit("10/minute")
def create_issue(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    category: str = Form(""),
    postal_code: str = Form(""),
    address: str = Form(""),
    area: str = Form(""),
    is_anonymous: bool = Form(False),
    latitude: Optional[str] = Form(None),
    longitude: Optional[str] = Form(None),
    photos: List[UploadFile] | None = File(default=None),
    db: Session = Depends(get_db),
    auth: User = Depends(get_current_user),
    geo: NominatimGeocoder = Depends(get_geocoder),
):
    title = title.strip()
    if len(title) < 3 or len(title) > 200:
        raise HTTPException(status_code=400, detail="Title must be between 3 and 200 characters")
    description = description.strip()
    if not description:
        raise HTTPException(status_code=400, detail="Description is required")
    if category not in CATEGORY_VALUES:
        raise HTTPException(status_code=400, detail="Please select a valid category")
    postal_code = postal_code.strip()
    if not is_valid_postal_code(postal_code):
        raise HTTPException(status_code=400, detail=INVALID_POSTAL_CODE)
    if not address.strip():
        raise HTTPException(status_code=400, detail="Address is required")
    if not area.strip():
        raise HTTPException(status_code=400, detail="Area is required")

    uploads = [
        PhotoUpload(
            filename=f.filename or "upload.jpg",
            content_type=f.content_type or "",
            # one byte past the limit is enough to reject oversize files
            data=f.file.read(settings.max_photo_bytes + 1),
        )
        for f in (photos or [])
    ]
    try:
        validate_photos(uploads)
    except PhotoValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    point = parse_coordinates(latitude, longitude)
    if point is None:
        try:
            point = geo.locate_address(address, postal_code)
        except GeocodingError as e:
            logger.info("Address lookup failed, using postal code center: %s", e)
            point, _ = geo.resolve_or_default(postal_code)

    obj = Issue(
        title=title,
        description=description,
        category=IssueCategory(category),
        status=IssueStatus.reported,
        postal_code=postal_code,
        area=area.strip(),
        location_address=address.strip(),
        latitude=point.lat,
        longitude=point.lng,
        reporter_id=None if is_anonymous else auth.id,
        is_anonymous=is_anonymous,
    )
    db.add(obj)
    db.flush()

    uploaded: list[str] = []
    try:
        for position, photo in enumerate(uploads):
            key = make_object_key(obj.id, photo.filename)
            try:
                url = upload_image(photo.data, photo.content_type, key)
            except requests.RequestException as e:
                logger.error(f"Photo {position + 1} upload failed: {e}", exc_info=True)
                raise HTTPException(status_code=502, detail=f"Error uploading photo {position + 1}. Please try again.")
            uploaded.append(url)
            db.add(IssuePhoto(issue_id=obj.id, photo_url=url, position=position))

        log_activity(db, obj.id, ActivityAction.reported, "Issue reported by user", auth.id)
        commit_or_500(db, "save issue")
    except HTTPException:
        db.rollback()
        remove_images_safe(uploaded)
        raise
    db.refresh(obj)
    logger.info("Issue %s reported in %s with %d photo(s)", obj.id, postal_code, len(uploads))

    rec = to_records(db, [obj])[0]
    return ok("Issue reported successfully!", issue=to_detail(rec, auth))


@router.get("/{issue_id}", response_model=IssueDetail)
def get_issue(
    issue_id: str,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    issue = _get_issue(db, issue_id, user)
    return to_detail(to_records(db, [issue])[0], user)


@router.patch("/{issue_id}")
def update_issue(
    issue_id: str,
    body: IssueEdit,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    issue = _get_issue(db, issue_id, user)
    if issue.reporter_id is None or issue.reporter_id != user.id:
        raise HTTPException(status_code=403, detail="Only the reporter can edit this issue")

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise WarningNotice("No changes to save")
    for field, value in changes.items():
        setattr(issue, field, value)
    touch(issue)
    log_activity(db, issue.id, ActivityAction.updated, "Issue details updated by reporter", user.id)
    commit_or_500(db, "update issue")
    db.refresh(issue)

    return ok("Issue updated successfully", issue=to_detail(to_records(db, [issue])[0], user))


@router.delete("/{issue_id}")
def delete_issue(
    issue_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    issue = _get_issue(db, issue_id, user)
    is_reporter = issue.reporter_id is not None and issue.reporter_id == user.id
    if not (is_reporter or _is_admin(user)):
        raise HTTPException(status_code=403, detail="You can only delete issues you reported")
    urls = purge_issues(db, [issue])
    commit_or_500(db, "delete issue")
    remove_images_safe(urls)
    return ok("Issue deleted successfully", id=issue_id)


@router.post("/{issue_id}/spam")
@limiter.limit("10/minute")
def report_spam(
    request: Request,
    issue_id: str,
    body: Optional[SpamReportIn] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    issue = _get_issue(db, issue_id, None)
    existing = (
        db.query(SpamReport)
        .filter(SpamReport.issue_id == issue.id, SpamReport.reporter_id == user.id)
        .first()
    )
    if existing:
        raise WarningNotice("You have already reported this issue")

    db.add(SpamReport(issue_id=issue.id, reporter_id=user.id, reason=body.reason if body else None))
    issue.spam_reports = (issue.spam_reports or 0) + 1
    hidden_now = False
    if issue.spam_reports >= settings.spam_threshold and not issue.is_hidden:
        issue.is_hidden = True
        hidden_now = True
        log_activity(
            db, issue.id, ActivityAction.hidden,
            f"Issue hidden after {issue.spam_reports} spam reports",
        )
        logger.warning("Issue %s auto-hidden after %d spam reports", issue.id, issue.spam_reports)
    touch(issue)
    commit_or_500(db, "report spam")

    return ok(
        "Thank you for reporting. Our moderators will review this issue.",
        spam_reports=issue.spam_reports,
        hidden=hidden_now or issue.is_hidden,
    )
