# File: civictrack/models/issue.py
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import String, Float, Enum, Integer, Boolean, DateTime, ForeignKey, func, Index
from sqlalchemy.orm import Mapped, mapped_column
from civictrack.db.base import Base

class IssueCategory(PyEnum):
    roads = "roads"
    lighting = "lighting"
    water = "water"
    cleanliness = "cleanliness"
    safety = "safety"
    obstructions = "obstructions"

class IssueStatus(PyEnum):
    reported = "reported"
    in_progress = "in_progress"
    resolved = "resolved"
    # moderation outcomes, admin view only
    spam = "spam"
    invalid = "invalid"

PUBLIC_STATUSES = (IssueStatus.reported, IssueStatus.in_progress, IssueStatus.resolved)
MODERATION_STATUSES = (IssueStatus.spam, IssueStatus.invalid)

CATEGORY_INFO = {
    "roads": {"name": "Roads", "icon": "🛣️", "description": "Potholes, obstructions, road damage"},
    "lighting": {"name": "Lighting", "icon": "💡", "description": "Broken or flickering street lights"},
    "water": {"name": "Water Supply", "icon": "💧", "description": "Leaks, low pressure, water issues"},
    "cleanliness": {"name": "Cleanliness", "icon": "🧹", "description": "Overflowing bins, garbage, waste"},
    "safety": {"name": "Public Safety", "icon": "⚠️", "description": "Open manholes, exposed wiring, hazards"},
    "obstructions": {"name": "Obstructions", "icon": "🌳", "description": "Fallen trees, debris, blockages"},
}

STATUS_INFO = {
    "reported": {"name": "Reported", "color": "yellow", "description": "Issue has been reported and is pending review"},
    "in_progress": {"name": "In Progress", "color": "blue", "description": "Issue is being worked on"},
    "resolved": {"name": "Resolved", "color": "green", "description": "Issue has been resolved"},
    "spam": {"name": "Spam", "color": "red", "description": "Marked as spam by a moderator"},
    "invalid": {"name": "Invalid", "color": "gray", "description": "Marked invalid by a moderator"},
}

def _new_id() -> str:
    return str(uuid.uuid4())

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Issue(Base):
    __tablename__ = "issues"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(200), index=True)
    description: Mapped[str] = mapped_column(String(4000))
    category: Mapped[IssueCategory] = mapped_column(Enum(IssueCategory), index=True)
    status: Mapped[IssueStatus] = mapped_column(Enum(IssueStatus), default=IssueStatus.reported, index=True)

    postal_code: Mapped[str] = mapped_column(String(6), index=True)
    area: Mapped[str | None] = mapped_column(String(200), nullable=True)
    location_address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    reporter_id: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", index=True)
    spam_reports: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), index=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

Index("ix_issues_postal_hidden", Issue.postal_code, Issue.is_hidden)
