"""
Download Limits - per-company daily/monthly quotas on student data.

Counters live in company.download_tracking. The daily counter resets
24 hours after its last reset and the monthly counter after 30 days.
"""

from datetime import timedelta
from typing import Optional, Dict, Any
from bson import ObjectId

from app.db.mongodb import get_collection, COLLECTIONS
from app.services.mongo_service import utcnow

DEFAULT_DAILY_LIMIT = 50
DEFAULT_MONTHLY_LIMIT = 500
MAX_HISTORY = 1000

DAILY_WINDOW = timedelta(hours=24)
MONTHLY_WINDOW = timedelta(days=30)


def default_tracking() -> Dict[str, Any]:
    now = utcnow()
    return {
        "daily_limit": DEFAULT_DAILY_LIMIT,
        "monthly_limit": DEFAULT_MONTHLY_LIMIT,
        "daily_count": 0,
        "monthly_count": 0,
        "last_daily_reset": now,
        "last_monthly_reset": now,
    }


def _reset_if_due(company: dict) -> dict:
    """Apply window resets and persist them. Returns the current tracking dict."""
    stored = company.get("download_tracking") or {}
    tracking = {**default_tracking(), **stored}
    now = utcnow()
    changed = len(stored) < len(tracking)

    if now - tracking["last_daily_reset"] >= DAILY_WINDOW:
        tracking["daily_count"] = 0
        tracking["last_daily_reset"] = now
        changed = True

    if now - tracking["last_monthly_reset"] >= MONTHLY_WINDOW:
        tracking["monthly_count"] = 0
        tracking["last_monthly_reset"] = now
        changed = True

    if changed:
        get_collection(COLLECTIONS["companies"]).update_one(
            {"_id": company["_id"]}, {"$set": {"download_tracking": tracking}}
        )
    return tracking


def _load(company_id: ObjectId) -> dict:
    company = get_collection(COLLECTIONS["companies"]).find_one({"_id": company_id})
    if not company:
        raise LookupError("Company not found")
    return company


def check_download_limits(company_id: ObjectId) -> Dict[str, Any]:
    tracking = _reset_if_due(_load(company_id))
    daily_remaining = max(tracking["daily_limit"] - tracking["daily_count"], 0)
    monthly_remaining = max(tracking["monthly_limit"] - tracking["monthly_count"], 0)
    return {
        "can_download": daily_remaining > 0 and monthly_remaining > 0,
        "daily_remaining": daily_remaining,
        "monthly_remaining": monthly_remaining,
        "daily_limit": tracking["daily_limit"],
        "monthly_limit": tracking["monthly_limit"],
        "daily_count": tracking["daily_count"],
        "monthly_count": tracking["monthly_count"],
    }


def increment_download_count(
    company_id: ObjectId,
    student_id: Optional[ObjectId],
    user_id: ObjectId,
    kind: str,
    metadata: Optional[Dict[str, Any]] = None,
    count: int = 1,
) -> None:
    entry = {
        "student": student_id,
        "downloaded_by": user_id,
        "download_type": kind,
        "record_count": count,
        "metadata": metadata or {},
        "downloaded_at": utcnow(),
    }
    get_collection(COLLECTIONS["companies"]).update_one(
        {"_id": company_id},
        {
            "$inc": {
                "download_tracking.daily_count": count,
                "download_tracking.monthly_count": count,
                "stats.total_downloads": count,
            },
            "$push": {"download_history": {"$each": [entry], "$slice": -MAX_HISTORY}},
        },
    )


def get_download_stats(company_id: ObjectId) -> Dict[str, Any]:
    limits = check_download_limits(company_id)
    company = _load(company_id)
    tracking = company["download_tracking"]
    history = company.get("download_history", [])
    return {
        **limits,
        "next_daily_reset": tracking["last_daily_reset"] + DAILY_WINDOW,
        "next_monthly_reset": tracking["last_monthly_reset"] + MONTHLY_WINDOW,
        "total_downloads": (company.get("stats") or {}).get("total_downloads", 0),
        "recent_downloads": list(reversed(history[-20:])),
    }
