# File: civictrack/services/analytics.py
"""Chart dataset builders for the admin analytics tab.

Each builder returns a chart-library-neutral object
``{"type", "labels", "datasets": [{"label", "data", ...}]}``; rendering is
left to the client.
"""
from collections import Counter, OrderedDict
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from civictrack.models.issue import CATEGORY_INFO

CATEGORY_COLORS = ["#3B82F6", "#EF4444", "#10B981", "#F59E0B", "#8B5CF6", "#06B6D4"]
STATUS_COLORS = ["#F59E0B", "#3B82F6", "#10B981", "#EF4444", "#6B7280"]


def _value(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def _counts_in_order(values: Iterable) -> "OrderedDict[str, int]":
    # labels appear in first-seen order
    counts: "OrderedDict[str, int]" = OrderedDict()
    for v in values:
        key = _value(v)
        counts[key] = counts.get(key, 0) + 1
    return counts


def category_chart(categories: Iterable) -> dict:
    counts = _counts_in_order(categories)
    return {
        "type": "doughnut",
        "labels": [CATEGORY_INFO.get(c, {}).get("name", c) for c in counts],
        "datasets": [{
            "label": "Issues",
            "data": list(counts.values()),
            "backgroundColor": CATEGORY_COLORS[: max(len(counts), 1)],
        }],
    }


def status_chart(statuses: Iterable) -> dict:
    counts = _counts_in_order(statuses)
    return {
        "type": "bar",
        "labels": [s.replace("_", " ").upper() for s in counts],
        "datasets": [{
            "label": "Issues",
            "data": list(counts.values()),
            "backgroundColor": STATUS_COLORS[: max(len(counts), 1)],
        }],
    }


def timeline_chart(created: Iterable[datetime], since: date, until: date) -> dict:
    """One point per calendar day in ``[since, until]``; days without issues are 0."""
    per_day = Counter(ts.date() for ts in created if ts is not None)
    labels, data = [], []
    day = since
    while day <= until:
        labels.append(day.isoformat())
        data.append(per_day.get(day, 0))
        day += timedelta(days=1)
    return {
        "type": "line",
        "labels": labels,
        "datasets": [{
            "label": "Issues",
            "data": data,
            "borderColor": "#3B82F6",
            "backgroundColor": "rgba(59, 130, 246, 0.1)",
            "tension": 0.4,
        }],
    }


def top_reporters(rows: Iterable[tuple[Optional[str], int]], limit: int = 10) -> list[dict]:
    ranked = sorted(rows, key=lambda r: (-r[1], r[0] or ""))[:limit]
    return [
        {"rank": n, "username": username or "Anonymous", "issues": count}
        for n, (username, count) in enumerate(ranked, start=1)
    ]
