import asyncio

import pytest

from civictrack.services.browse_session import BrowseSession, is_valid_postal_code
from civictrack.services.issue_store import IssueRecord
from civictrack.services.map_sync import LatLng

ANAND = LatLng(22.5645, 72.9289)
DEFAULT = LatLng(20.5937, 78.9629)


def rec(i, postal_code="388001", category="roads", reporter_id=None, lat=ANAND.lat, lng=ANAND.lng):
    return IssueRecord(
        id=f"{postal_code}-{i}", title=f"Issue {i}", description="", category=category,
        status="reported", postal_code=postal_code, reporter_id=reporter_id,
        latitude=lat, longitude=lng,
    )


class Resolver:
    default_center = DEFAULT

    def resolve_or_default(self, postal_code):
        if postal_code == "388001":
            return ANAND, False
        return DEFAULT, True


def twelve_issues():
    categories = ["roads"] * 4 + ["water"] * 4 + ["lighting"] * 4
    return [rec(i, category=c, reporter_id="u1" if i % 3 == 0 else "u2") for i, c in enumerate(categories)]


def loader_for(data, delays=None):
    async def load(postal_code):
        await asyncio.sleep((delays or {}).get(postal_code, 0))
        return data.get(postal_code, [])
    return load


def test_postal_code_validation():
    assert is_valid_postal_code("388001")
    assert not is_valid_postal_code("38800")
    assert not is_valid_postal_code("38800a")
    assert not is_valid_postal_code(None)


def test_invalid_postal_code_is_rejected_before_loading():
    calls = []

    async def load(code):
        calls.append(code)
        return []

    session = BrowseSession(load, Resolver())
    with pytest.raises(ValueError):
        asyncio.run(session.select_postal_code("12"))
    assert calls == []


def test_category_filter_fits_on_one_page():
    session = BrowseSession(loader_for({"388001": twelve_issues()}), Resolver(), page_size=9)
    asyncio.run(session.select_postal_code("388001"))
    assert session.snapshot().total_pages == 2

    session.set_filters(category="roads")
    snap = session.snapshot()
    assert len(snap.page_items) == 4
    assert snap.controls == []


def test_stale_load_is_discarded():
    data = {"388001": twelve_issues(), "380001": [rec(1, "380001")]}
    session = BrowseSession(loader_for(data, delays={"388001": 0.05}), Resolver())

    async def race():
        slow = asyncio.create_task(session.select_postal_code("388001"))
        await asyncio.sleep(0)
        fast = await session.select_postal_code("380001")
        return await slow, fast

    slow_applied, fast_applied = asyncio.run(race())
    assert (slow_applied, fast_applied) == (False, True)
    assert session.store.postal_code == "380001"
    assert [i.id for i in session.store.all_issues] == ["380001-1"]


def test_change_page_does_not_refilter():
    session = BrowseSession(loader_for({"388001": twelve_issues()}), Resolver(), page_size=9)
    asyncio.run(session.select_postal_code("388001"))
    before = session.store.filtered_issues
    snap = session.change_page(2)
    assert session.store.filtered_issues is before
    assert len(snap.page_items) == 3


def test_my_issues_follows_user():
    session = BrowseSession(loader_for({"388001": twelve_issues()}), Resolver())
    asyncio.run(session.select_postal_code("388001"))
    session.show_my_issues()
    assert session.snapshot().total == 0
    session.set_user("u1")
    assert session.snapshot().total == 4


def test_callbacks_receive_snapshots():
    seen = []
    session = BrowseSession(loader_for({"388001": twelve_issues()}), Resolver(), page_size=9)
    session.on_change(seen.append)
    asyncio.run(session.select_postal_code("388001"))
    session.set_filters(status="resolved")
    assert [s.total for s in seen] == [12, 0]


def test_map_refresh_and_toggle():
    far = rec(99, lat=ANAND.lat + 0.1, lng=ANAND.lng)
    session = BrowseSession(loader_for({"388001": twelve_issues() + [far]}), Resolver(), radius_km=5)
    asyncio.run(session.select_postal_code("388001"))
    assert asyncio.run(session.toggle_view()) == "map"
    assert len(session.layer.markers) == 12
    assert session.layer.zoom == 12

    layer = asyncio.run(session.refresh_map(radius_km=20, category="water"))
    assert len(layer.markers) == 4
    assert asyncio.run(session.toggle_view()) == "grid"


def test_map_falls_back_to_default_center():
    session = BrowseSession(loader_for({"999999": []}), Resolver())
    asyncio.run(session.select_postal_code("999999"))
    layer = asyncio.run(session.refresh_map())
    assert layer.center == DEFAULT
    assert layer.fallback is True
    assert layer.zoom == 5
