# File: civictrack\routers\public.py
# Project: civictrack

from fastapi import APIRouter
from civictrack.core.config import settings, radius_options
from civictrack.models.issue import CATEGORY_INFO, STATUS_INFO, PUBLIC_STATUSES

router = APIRouter(prefix="/public", tags=["public"])

@router.get("/config")
def public_config():
    public = {s.value for s in PUBLIC_STATUSES}
    return {
        "categories": [{"value": k, **v} for k, v in CATEGORY_INFO.items()],
        "statuses": [{"value": k, **v} for k, v in STATUS_INFO.items() if k in public],
        "radius_options_km": radius_options(),
        "default_radius_km": settings.default_radius_km,
        "issues_per_page": settings.issues_per_page,
        "default_center": {"lat": settings.default_lat, "lng": settings.default_lng},
        "max_photos_per_issue": settings.max_photos_per_issue,
        "max_photo_bytes": settings.max_photo_bytes,
    }
