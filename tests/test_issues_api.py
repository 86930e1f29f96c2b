from unittest import mock

import pytest
import requests
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from civictrack.core.config import settings
from civictrack.models.issue import Issue, IssueCategory, IssueStatus
from civictrack.models.issue_activity import IssueActivity
from civictrack.models.issue_photo import IssuePhoto
from civictrack.routers.issues import commit_or_500
from civictrack.services.map_sync import LatLng
from conftest import ANAND, auth_headers, make_issue, make_user

CATEGORIES = [IssueCategory.roads] * 4 + [IssueCategory.water] * 4 + [IssueCategory.lighting] * 4


def seed_twelve(db, reporter=None):
    return [make_issue(db, n, category=c, reporter=reporter if n % 2 else None) for n, c in enumerate(CATEGORIES)]


def form(**overrides):
    data = {
        "title": "Pothole near station",
        "description": "Deep pothole in the left lane",
        "category": "roads",
        "postal_code": "388001",
        "address": "Station Road",
        "area": "Anand",
        "is_anonymous": "false",
    }
    data.update(overrides)
    return data


# ---- listing ---------------------------------------------------------------

def test_list_roads_fits_on_one_page(client, db):
    seed_twelve(db)
    r = client.get("/issues", params={"postal_code": "388001", "category": "roads"})
    assert r.status_code == 200
    body = r.json()
    assert len(body["items"]) == 4
    assert body["total"] == 4
    assert body["total_pages"] == 1
    assert body["controls"] == []


def test_list_is_newest_first_and_paginated(client, db):
    seed_twelve(db)
    body = client.get("/issues", params={"postal_code": "388001"}).json()
    assert body["total"] == 12
    assert body["total_pages"] == 2
    assert [i["title"] for i in body["items"][:2]] == ["Issue 11", "Issue 10"]
    kinds = [c["kind"] for c in body["controls"]]
    assert kinds == ["page", "page", "next"]

    page2 = client.get("/issues", params={"postal_code": "388001", "page": 2}).json()
    assert len(page2["items"]) == 3
    assert client.get("/issues", params={"postal_code": "388001", "page": 99}).json()["items"] == []


def test_list_excludes_hidden_and_moderated(client, db):
    make_issue(db, 1)
    make_issue(db, 2, hidden=True)
    make_issue(db, 3, status=IssueStatus.spam)
    make_issue(db, 4, postal_code="380001")
    body = client.get("/issues", params={"postal_code": "388001"}).json()
    assert [i["title"] for i in body["items"]] == ["Issue 1"]


def test_list_rejects_bad_postal_code(client):
    r = client.get("/issues", params={"postal_code": "12ab"})
    assert r.status_code == 400
    assert r.json()["notice"]["severity"] == "error"
    assert r.json()["notice"]["dismiss_after_ms"] == 5000


def test_citizen_status_filter_rejects_admin_statuses(client):
    r = client.get("/issues", params={"postal_code": "388001", "status": "spam"})
    assert r.status_code == 400


def test_mine_without_login_is_empty(client, db, citizen):
    seed_twelve(db, reporter=citizen)
    body = client.get("/issues", params={"postal_code": "388001", "mine": True}).json()
    assert body["items"] == []
    assert body["total"] == 0


def test_mine_with_login(client, db, citizen):
    seed_twelve(db, reporter=citizen)
    body = client.get("/issues", params={"postal_code": "388001", "mine": True},
                      headers=auth_headers(citizen)).json()
    assert body["total"] == 6


def test_card_shows_cover_and_reporter(client, db, citizen):
    make_issue(db, 1, reporter=citizen, photos=["https://cdn/a.jpg", "https://cdn/b.jpg"])
    make_issue(db, 2, reporter=citizen, anonymous=True)
    items = client.get("/issues", params={"postal_code": "388001"}).json()["items"]
    by_title = {i["title"]: i for i in items}
    assert by_title["Issue 1"]["cover_photo"] == "https://cdn/a.jpg"
    assert by_title["Issue 1"]["photo_count"] == 2
    assert by_title["Issue 1"]["reporter"] == "asha"
    assert by_title["Issue 2"]["reporter"] == "Anonymous"


# ---- map -------------------------------------------------------------------

def test_map_radius(client, db):
    make_issue(db, 1)
    make_issue(db, 2, lat=ANAND.lat + 0.054, lng=ANAND.lng)  # ~6 km
    make_issue(db, 3, lat=None, lng=None)
    near = client.get("/issues/map", params={"postal_code": "388001", "radius_km": 5}).json()
    assert len(near["markers"]) == 1
    assert near["zoom"] == 12
    assert near["fallback"] is False
    assert near["circle"]["radius_km"] == 5
    assert len(near["skipped"]) == 1

    wide = client.get("/issues/map", params={"postal_code": "388001", "radius_km": 10}).json()
    assert len(wide["markers"]) == 2


def test_map_unknown_center_falls_back(client, db):
    make_issue(db, 1, postal_code="999999", lat=20.5937, lng=78.9629)
    body = client.get("/issues/map", params={"postal_code": "999999"}).json()
    assert body["fallback"] is True
    assert body["zoom"] == 5
    assert body["center"] == {"lat": 20.5937, "lng": 78.9629}
    assert len(body["markers"]) == 1


def test_map_rejects_non_positive_radius(client):
    r = client.get("/issues/map", params={"postal_code": "388001", "radius_km": 0})
    assert r.status_code == 422
    assert "notice" in r.json()


# ---- create ----------------------------------------------------------------

def test_create_requires_login(client):
    r = client.post("/issues", data=form())
    assert r.status_code == 401


def test_create_with_photos(client, db, citizen):
    files = [
        ("photos", ("a.jpg", b"jpegdata", "image/jpeg")),
        ("photos", ("b.png", b"pngdata", "image/png")),
    ]
    r = client.post("/issues", data=form(latitude="22.57", longitude="72.93"), files=files,
                    headers=auth_headers(citizen))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["notice"]["severity"] == "success"
    issue = body["issue"]
    assert issue["status"] == "reported"
    assert issue["reporter"] == "asha"
    assert issue["can_edit"] is True
    assert len(issue["photos"]) == 2
    assert issue["cover_photo"].startswith("data:image/jpeg;base64,")
    assert [a["description"] for a in issue["activity_log"]] == ["Issue reported by user"]
    assert (issue["latitude"], issue["longitude"]) == (22.57, 72.93)


def test_create_without_coordinates_uses_postal_center(client, db, citizen, geocoder):
    r = client.post("/issues", data=form(latitude="abc"), headers=auth_headers(citizen))
    assert r.status_code == 201
    issue = r.json()["issue"]
    assert (issue["latitude"], issue["longitude"]) == (ANAND.lat, ANAND.lng)
    assert geocoder.calls == ["388001"]


def test_create_anonymous_drops_reporter(client, db, citizen):
    r = client.post("/issues", data=form(is_anonymous="true"), headers=auth_headers(citizen))
    issue_id = r.json()["issue"]["id"]
    row = db.query(Issue).filter(Issue.id == issue_id).one()
    assert row.reporter_id is None
    assert row.is_anonymous is True
    assert r.json()["issue"]["reporter"] == "Anonymous"


def test_create_validation_order(client, citizen):
    headers = auth_headers(citizen)
    r = client.post("/issues", data=form(title="", postal_code="1"), headers=headers)
    assert r.json()["detail"] == "Title must be between 3 and 200 characters"
    r = client.post("/issues", data=form(category="parks", postal_code="1"), headers=headers)
    assert r.json()["detail"] == "Please select a valid category"
    r = client.post("/issues", data=form(postal_code="38800"), headers=headers)
    assert r.json()["detail"] == "Please enter a valid 6-digit postal code"
    r = client.post("/issues", data=form(area=" "), headers=headers)
    assert r.json()["detail"] == "Area is required"


def test_create_rejects_bad_photo_before_upload(client, db, citizen):
    files = [("photos", ("a.gif", b"gif", "image/gif"))]
    with mock.patch("civictrack.routers.issues.upload_image") as upload:
        r = client.post("/issues", data=form(), files=files, headers=auth_headers(citizen))
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Photo 1: Invalid file type")
    upload.assert_not_called()
    assert db.query(Issue).count() == 0


def test_create_prefers_located_address(client, db, citizen, geocoder):
    geocoder.addresses[("Station Road", "388001")] = LatLng(22.5601, 72.9512)
    r = client.post("/issues", data=form(), headers=auth_headers(citizen))
    assert r.status_code == 201
    issue = r.json()["issue"]
    assert (issue["latitude"], issue["longitude"]) == (22.5601, 72.9512)
    assert geocoder.address_calls == [("Station Road", "388001")]
    assert geocoder.calls == []


def test_failed_upload_removes_earlier_photos(client, db, citizen):
    files = [
        ("photos", ("a.jpg", b"jpegdata", "image/jpeg")),
        ("photos", ("b.jpg", b"jpegdata", "image/jpeg")),
    ]
    stored = "https://cdn/issue-photos/first.jpg"
    with mock.patch("civictrack.routers.issues.upload_image",
                    side_effect=[stored, requests.ConnectionError("reset")]), \
            mock.patch("civictrack.routers.issues.remove_images_safe") as remove:
        r = client.post("/issues", data=form(), files=files, headers=auth_headers(citizen))
    assert r.status_code == 502
    assert r.json()["detail"] == "Error uploading photo 2. Please try again."
    remove.assert_called_once_with([stored])
    assert db.query(Issue).count() == 0
    assert db.query(IssuePhoto).count() == 0


def test_failed_save_removes_uploaded_photos(client, db, citizen):
    files = [("photos", ("a.jpg", b"jpegdata", "image/jpeg"))]
    stored = "https://cdn/issue-photos/only.jpg"
    failure = HTTPException(status_code=500, detail="Failed to save issue: disk full")
    with mock.patch("civictrack.routers.issues.upload_image", return_value=stored), \
            mock.patch("civictrack.routers.issues.commit_or_500", side_effect=failure), \
            mock.patch("civictrack.routers.issues.remove_images_safe") as remove:
        r = client.post("/issues", data=form(), files=files, headers=auth_headers(citizen))
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to save issue: disk full"
    remove.assert_called_once_with([stored])
    assert db.query(Issue).count() == 0


def test_commit_failure_carries_database_message():
    session = mock.Mock()
    session.commit.side_effect = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: issues.id"))
    with pytest.raises(HTTPException) as exc:
        commit_or_500(session, "save issue")
    assert exc.value.status_code == 500
    assert exc.value.detail == "Failed to save issue: UNIQUE constraint failed: issues.id"
    session.rollback.assert_called_once()


def test_oversize_photo_is_rejected(client, db, citizen, monkeypatch):
    monkeypatch.setattr(settings, "max_photo_bytes", 16)
    files = [("photos", ("big.jpg", b"x" * 4096, "image/jpeg"))]
    with mock.patch("civictrack.routers.issues.upload_image") as upload:
        r = client.post("/issues", data=form(), files=files, headers=auth_headers(citizen))
    assert r.status_code == 400
    assert r.json()["detail"].startswith("Photo 1: File too large")
    upload.assert_not_called()


def test_banned_user_cannot_report(client, db):
    banned = make_user(db, "spammer", banned=True)
    r = client.post("/issues", data=form(), headers=auth_headers(banned))
    assert r.status_code == 403


# ---- detail / edit / delete ------------------------------------------------

def test_detail_activity_oldest_first(client, db, citizen):
    issue = make_issue(db, 1, reporter=citizen)
    db.add(IssueActivity(issue_id=issue.id, action="updated", description="Issue details updated by reporter"))
    db.commit()
    body = client.get(f"/issues/{issue.id}").json()
    assert [a["description"] for a in body["activity_log"]] == [
        "Issue reported by user", "Issue details updated by reporter",
    ]
    assert body["can_edit"] is False


def test_hidden_issue_is_404_for_citizens(client, db, citizen, admin_user):
    issue = make_issue(db, 1, hidden=True)
    assert client.get(f"/issues/{issue.id}", headers=auth_headers(citizen)).status_code == 404
    assert client.get(f"/issues/{issue.id}", headers=auth_headers(admin_user)).status_code == 200


def test_reporter_can_edit(client, db, citizen):
    issue = make_issue(db, 1, reporter=citizen)
    r = client.patch(f"/issues/{issue.id}", json={"title": "Updated title", "category": "water"},
                     headers=auth_headers(citizen))
    assert r.status_code == 200, r.text
    body = r.json()["issue"]
    assert body["title"] == "Updated title"
    assert body["category"] == "water"
    assert body["activity_log"][-1]["description"] == "Issue details updated by reporter"


def test_postal_code_cannot_be_edited(client, db, citizen):
    issue = make_issue(db, 1, reporter=citizen)
    r = client.patch(f"/issues/{issue.id}", json={"postal_code": "380001"}, headers=auth_headers(citizen))
    assert r.status_code == 422
    db.expire_all()
    assert db.query(Issue).filter(Issue.id == issue.id).one().postal_code == "388001"


def test_only_reporter_can_edit(client, db, citizen, other_citizen):
    issue = make_issue(db, 1, reporter=citizen)
    r = client.patch(f"/issues/{issue.id}", json={"title": "Hijacked"}, headers=auth_headers(other_citizen))
    assert r.status_code == 403


def test_edit_strips_before_length_check(client, db, citizen):
    issue = make_issue(db, 1, reporter=citizen)
    headers = auth_headers(citizen)
    r = client.patch(f"/issues/{issue.id}", json={"title": "  ab  "}, headers=headers)
    assert r.status_code == 422
    r = client.patch(f"/issues/{issue.id}", json={"title": "  Broken light  "}, headers=headers)
    assert r.json()["issue"]["title"] == "Broken light"


def test_empty_edit_is_a_warning(client, db, citizen):
    issue = make_issue(db, 1, reporter=citizen)
    r = client.patch(f"/issues/{issue.id}", json={}, headers=auth_headers(citizen))
    assert r.status_code == 400
    assert r.json()["notice"]["severity"] == "warning"


def test_reporter_deletes_issue_and_photos(client, db, citizen):
    issue = make_issue(db, 1, reporter=citizen, photos=["https://cdn/a.jpg"])
    with mock.patch("civictrack.routers.issues.remove_images_safe") as remove:
        r = client.delete(f"/issues/{issue.id}", headers=auth_headers(citizen))
    assert r.status_code == 200
    remove.assert_called_once_with(["https://cdn/a.jpg"])
    db.expire_all()
    assert db.query(Issue).count() == 0
    assert db.query(IssuePhoto).count() == 0


def test_stranger_cannot_delete(client, db, citizen, other_citizen):
    issue = make_issue(db, 1, reporter=citizen)
    assert client.delete(f"/issues/{issue.id}", headers=auth_headers(other_citizen)).status_code == 403


# ---- spam ------------------------------------------------------------------

def test_spam_reports_hide_at_threshold(client, db, citizen):
    issue = make_issue(db, 1, reporter=citizen)
    reporters = [make_user(db, f"user{i}") for i in range(5)]
    for n, u in enumerate(reporters, start=1):
        r = client.post(f"/issues/{issue.id}/spam", json={"reason": "fake"}, headers=auth_headers(u))
        assert r.status_code == 200
        assert r.json()["spam_reports"] == n
    assert r.json()["hidden"] is True
    assert client.get("/issues", params={"postal_code": "388001"}).json()["total"] == 0


def test_spam_report_once_per_user(client, db, citizen, other_citizen):
    issue = make_issue(db, 1, reporter=citizen)
    headers = auth_headers(other_citizen)
    assert client.post(f"/issues/{issue.id}/spam", headers=headers).status_code == 200
    r = client.post(f"/issues/{issue.id}/spam", headers=headers)
    assert r.status_code == 400
    assert r.json()["notice"]["severity"] == "warning"
