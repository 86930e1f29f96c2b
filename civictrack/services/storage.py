#civictrack\services\storage.py
import base64
import logging
import uuid
from dataclasses import dataclass
from typing import Sequence

import requests
from civictrack.core.config import settings, allowed_photo_types

logger = logging.getLogger(__name__)

SUPABASE_URL = settings.supabase_url
SUPABASE_SERVICE_ROLE = settings.supabase_service_role
BUCKET = settings.supabase_bucket


class PhotoValidationError(ValueError):
    pass


@dataclass(frozen=True)
class PhotoUpload:
    filename: str
    content_type: str
    data: bytes


def validate_photos(photos: Sequence[PhotoUpload]) -> None:
    """Check count, type and size of every photo before anything is uploaded."""
    limit = settings.max_photos_per_issue
    if len(photos) > limit:
        raise PhotoValidationError(f"Maximum {limit} photos allowed")
    allowed = allowed_photo_types()
    max_mb = settings.max_photo_bytes // (1024 * 1024)
    for n, p in enumerate(photos, start=1):
        if p.content_type not in allowed:
            raise PhotoValidationError(f"Photo {n}: Invalid file type. Please use JPEG, PNG, or WebP.")
        if len(p.data) > settings.max_photo_bytes:
            raise PhotoValidationError(f"Photo {n}: File too large. Maximum size is {max_mb}MB.")


def upload_image(data: bytes, content_type: str, path: str) -> str:
    """Uploads to Supabase Storage via REST; returns public URL (bucket must be public)."""
    if not (SUPABASE_URL and SUPABASE_SERVICE_ROLE):
        # storage not configured: keep the image inline
        b64 = base64.b64encode(data).decode('utf-8')
        return f"data:{content_type};base64,{b64}"
    url = f"{SUPABASE_URL}/storage/v1/object/{BUCKET}/{path}"
    r = requests.post(url, headers={
        "Authorization": f"Bearer {SUPABASE_SERVICE_ROLE}",
        "Content-Type": content_type,
        "x-upsert": "true",
    }, data=data, timeout=30)
    r.raise_for_status()
    # public URL pattern:
    return f"{SUPABASE_URL}/storage/v1/object/public/{BUCKET}/{path}"


def remove_image(public_url: str) -> bool:
    """Delete an uploaded object. Returns False when there was nothing to delete."""
    prefix = f"{SUPABASE_URL}/storage/v1/object/public/{BUCKET}/"
    if not (SUPABASE_URL and SUPABASE_SERVICE_ROLE) or not public_url.startswith(prefix):
        return False
    path = public_url[len(prefix):]
    r = requests.delete(
        f"{SUPABASE_URL}/storage/v1/object/{BUCKET}/{path}",
        headers={"Authorization": f"Bearer {SUPABASE_SERVICE_ROLE}"},
        timeout=30,
    )
    r.raise_for_status()
    return True


def remove_images_safe(urls: Sequence[str]) -> int:
    removed = 0
    for url in urls:
        try:
            if remove_image(url):
                removed += 1
        except requests.RequestException as e:
            logger.error(f"Failed to remove stored photo {url}: {e}", exc_info=True)
    return removed


def make_object_key(issue_id: str, filename: str) -> str:
    ext = (filename.rsplit(".",1)[-1] if "." in filename else "jpg").lower()
    return f"{issue_id}/{uuid.uuid4().hex}.{ext}"
