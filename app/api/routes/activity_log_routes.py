"""
Activity Log Routes (super admin and college admin)

GET /activity-logs                     - Filtered audit trail
GET /activity-logs/stats               - Counts by action, top users, 7-day timeline
GET /activity-logs/export              - CSV export (up to 1000 rows)
GET /activity-logs/student/{id}        - Company activity on one student

College admins only see their own actions and actions on their students.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional
from fastapi import APIRouter, HTTPException, Depends, Query

from app.core.auth import require_roles
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import ActivityAction, PaginatedResponse
from app.services.activity_service import ActivityLogService
from app.services.mongo_service import paginate, paginated_response, to_object_id, to_naive_utc, utcnow
from app.utils.exporter import export_rows, format_activity_log_rows

router = APIRouter(prefix="/activity-logs", tags=["Activity Logs"])

EXPORT_LIMIT = 1000
STUDENT_ACTIONS = ["view_student", "download_student_data", "shortlist_student", "invite_student", "view_resume"]


async def get_log_viewer(user: dict = Depends(require_roles("super_admin", "college_admin"))) -> dict:
    """Super admin, or college admin with their college loaded."""
    if user["role"] == "college_admin":
        college = get_collection(COLLECTIONS["colleges"]).find_one({
            "_id": user["doc"].get("college_profile"), "is_deleted": {"$ne": True}
        })
        if not college:
            raise HTTPException(status_code=404, detail="College profile not found")
        user["college_id"] = college["_id"]
    return user


def _attach_users(logs: List[dict]) -> List[dict]:
    users = {
        u["_id"]: {"email": u["email"], "role": u["role"]}
        for u in get_collection(COLLECTIONS["users"]).find(
            {"_id": {"$in": list({log["user"] for log in logs})}}, {"email": 1, "role": 1}
        )
    }
    for log in logs:
        log["user_info"] = users.get(log["user"])
    return logs


def _query(
    viewer: dict,
    action: Optional[ActivityAction],
    target_model: Optional[str],
    user_id: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> dict:
    service = ActivityLogService()
    return service.filter_query(
        service.scope_query(viewer),
        action=action.value if action else None,
        target_model=target_model,
        user_id=to_object_id(user_id) if user_id else None,
        start_date=to_naive_utc(start_date),
        end_date=to_naive_utc(end_date),
    )


@router.get("", response_model=PaginatedResponse)
async def list_logs(
    action: Optional[ActivityAction] = Query(None),
    target_model: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    viewer: dict = Depends(get_log_viewer)
):
    query = _query(viewer, action, target_model, user_id, start_date, end_date)
    result = paginate(get_collection(COLLECTIONS["activity_logs"]), query, page, limit, sort=[("created_at", -1)])
    _attach_users(result["items"])
    return paginated_response(result)


@router.get("/stats")
async def get_log_stats(viewer: dict = Depends(get_log_viewer)):
    """Counts by action, the 10 most active users and a 7-day timeline."""
    logs = get_collection(COLLECTIONS["activity_logs"])
    scope = ActivityLogService().scope_query(viewer)

    by_action = {
        row["_id"]: row["count"]
        for row in logs.aggregate([
            {"$match": scope},
            {"$group": {"_id": "$action", "count": {"$sum": 1}}},
        ])
    }
    top = list(logs.aggregate([
        {"$match": scope},
        {"$group": {"_id": "$user", "count": {"$sum": 1}}},
        {"$sort": {"count": -1, "_id": 1}},
        {"$limit": 10},
    ]))
    emails = {
        u["_id"]: u["email"] for u in get_collection(COLLECTIONS["users"]).find(
            {"_id": {"$in": [row["_id"] for row in top]}}, {"email": 1}
        )
    }

    today = utcnow().date()
    days = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    since = datetime.combine(days[0], datetime.min.time())
    per_day = {
        date(row["_id"]["year"], row["_id"]["month"], row["_id"]["day"]): row["count"]
        for row in logs.aggregate([
            {"$match": {"$and": [scope, {"created_at": {"$gte": since}}]}},
            {"$group": {
                "_id": {
                    "year": {"$year": "$created_at"},
                    "month": {"$month": "$created_at"},
                    "day": {"$dayOfMonth": "$created_at"},
                },
                "count": {"$sum": 1},
            }},
        ])
    }

    return {
        "total": sum(by_action.values()),
        "by_action": by_action,
        "top_users": [
            {"user_id": str(row["_id"]), "email": emails.get(row["_id"]), "count": row["count"]}
            for row in top
        ],
        "timeline": [{"date": day.isoformat(), "count": per_day.get(day, 0)} for day in days],
    }


@router.get("/export")
async def export_logs(
    action: Optional[ActivityAction] = Query(None),
    target_model: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    viewer: dict = Depends(get_log_viewer)
):
    query = _query(viewer, action, target_model, user_id, start_date, end_date)
    logs = list(
        get_collection(COLLECTIONS["activity_logs"]).find(query).sort("created_at", -1).limit(EXPORT_LIMIT)
    )
    return export_rows(format_activity_log_rows(_attach_users(logs)), "activity_logs", "csv")


@router.get("/student/{student_id}", response_model=PaginatedResponse)
async def get_student_logs(
    student_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    viewer: dict = Depends(get_log_viewer)
):
    """Who viewed, downloaded, shortlisted or invited a student."""
    student_query = {"_id": to_object_id(student_id)}
    if viewer["role"] == "college_admin":
        student_query["college"] = viewer["college_id"]
    student = get_collection(COLLECTIONS["students"]).find_one(student_query, {"_id": 1})
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")

    query = {"target_model": "Student", "target_id": student["_id"], "action": {"$in": STUDENT_ACTIONS}}
    result = paginate(get_collection(COLLECTIONS["activity_logs"]), query, page, limit, sort=[("created_at", -1)])
    _attach_users(result["items"])
    return paginated_response(result)
