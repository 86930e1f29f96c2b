from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal, List
from datetime import datetime

from civictrack.models.issue import IssueCategory, IssueStatus


class ActivityOut(BaseModel):
    created_at: datetime
    description: str


class IssueCard(BaseModel):
    """One grid card: enough to render the list without a detail fetch."""
    id: str
    title: str
    description: str
    category: str
    status: str
    postal_code: str
    area: Optional[str] = None
    location_address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    cover_photo: Optional[str] = None
    photo_count: int = 0
    reporter: str


class IssueDetail(IssueCard):
    is_anonymous: bool = False
    photos: List[str] = []
    activity_log: List[ActivityOut] = []
    can_edit: bool = False
    is_hidden: bool = False
    spam_reports: int = 0


class PageControlOut(BaseModel):
    kind: Literal["previous", "page", "next"]
    page: int
    label: str
    current: bool = False


class PaginatedIssuesOut(BaseModel):
    items: list[IssueCard]
    postal_code: Optional[str] = None
    page: int
    page_size: int
    total: int
    total_pages: int
    controls: list[PageControlOut] = []


class AdminIssuesOut(PaginatedIssuesOut):
    items: list[IssueDetail]


class LatLngOut(BaseModel):
    lat: float
    lng: float


class CircleOut(BaseModel):
    lat: float
    lng: float
    radius_km: float


class MarkerOut(BaseModel):
    issue_id: str
    title: str
    category: str
    status: str
    lat: float
    lng: float
    distance_km: float


class MapOut(BaseModel):
    postal_code: Optional[str] = None
    radius_km: float
    center: Optional[LatLngOut] = None
    zoom: int
    fallback: bool
    circle: Optional[CircleOut] = None
    markers: list[MarkerOut] = []
    skipped: list[str] = []


class IssueEdit(BaseModel):
    # postal code is immutable; unknown fields are rejected
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=4000)
    category: Optional[IssueCategory] = None
    location_address: Optional[str] = Field(default=None, min_length=1, max_length=300)
    area: Optional[str] = Field(default=None, min_length=1, max_length=200)


class IssueStatusPatch(BaseModel):
    status: IssueStatus


class IssueIdsIn(BaseModel):
    issue_ids: list[str] = Field(default_factory=list)


class SpamReportIn(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
