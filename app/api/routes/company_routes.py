"""
Company / Agency Routes

GET    /company/stats                            - Hiring dashboard
GET    /company/profile                          - Own profile
PUT    /company/profile                          - Update profile
GET    /company/colleges                         - Verified colleges with access status
POST   /company/colleges/{id}/request-access     - Request access to a college
GET    /company/my-colleges                      - Access list
GET    /company/students/search                  - Search students
POST   /company/students/bulk-download           - Download student data (CSV/XLSX)
GET    /company/students/{id}                    - Student profile
POST   /company/students/{id}/invite             - Invite student to a job
POST   /company/students/{id}/log-resume-view    - Count a resume view
GET    /company/download-stats                   - Download limits and history
GET    /company/search-filters                   - Saved search filters
POST   /company/search-filters                   - Save a search filter
DELETE /company/search-filters/{id}              - Delete a search filter
GET    /company/invitations                      - Invitations sent

Applications and the shortlist live in shortlist_routes.
"""

import logging
from typing import Optional
from bson import ObjectId
from fastapi import APIRouter, HTTPException, Depends, Query, Request

from app.core.auth import get_current_company
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    CompanyUpdate, InviteRequest, BulkDownloadRequest, SearchFilterCreate,
    MessageResponse, PaginatedResponse, PlacementStatus, InvitationStatus
)
from app.services.activity_service import ActivityLogService
from app.services.download_limits import check_download_limits, increment_download_count, get_download_stats
from app.services.mongo_service import (
    paginate, paginated_response, serialize_doc, serialize_docs, search_regex,
    to_object_id, to_object_ids, utcnow, full_name
)
from app.services.notification_service import NotificationService, notification_template
from app.services.student_visibility import (
    ensure_students_visible, college_scope, mask_student, attach_college_names
)
from app.utils.exporter import export_rows, format_student_rows

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/company", tags=["Company"])


# ============================================================
# DASHBOARD / PROFILE
# ============================================================

@router.get("/stats")
async def get_stats(company: dict = Depends(get_current_company)):
    """Jobs and applications by status, hires, recent applications and download usage."""
    jobs = get_collection(COLLECTIONS["jobs"])
    applications = get_collection(COLLECTIONS["applications"])
    company_id = company["company_id"]

    jobs_by_status = {
        row["_id"]: row["count"]
        for row in jobs.aggregate([
            {"$match": {"company": company_id}},
            {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        ])
    }
    applications_by_status = {
        row["_id"]: row["count"]
        for row in applications.aggregate([
            {"$match": {"company": company_id}},
            {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        ])
    }

    recent = list(applications.find({"company": company_id}).sort("applied_at", -1).limit(5))
    students = {
        s["_id"]: s for s in get_collection(COLLECTIONS["students"]).find(
            {"_id": {"$in": [a["student"] for a in recent]}}, {"name": 1, "department": 1}
        )
    }
    titles = {
        j["_id"]: j["title"] for j in jobs.find({"_id": {"$in": [a["job"] for a in recent]}}, {"title": 1})
    }
    for app in recent:
        app["student_name"] = full_name(students.get(app["student"]))
        app["job_title"] = titles.get(app["job"])

    return {
        "jobs": {"total": sum(jobs_by_status.values()), "by_status": jobs_by_status},
        "applications": {
            "total": sum(applications_by_status.values()),
            "by_status": applications_by_status,
        },
        "hires": applications_by_status.get("hired", 0),
        "recent_applications": serialize_docs(recent),
        "downloads": check_download_limits(company_id),
    }


@router.get("/profile")
async def get_profile(company: dict = Depends(get_current_company)):
    profile = {k: v for k, v in company["company"].items() if k != "download_history"}
    return serialize_doc(profile)


@router.put("/profile")
async def update_profile(data: CompanyUpdate, company: dict = Depends(get_current_company)):
    updates = data.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    updates["updated_at"] = utcnow()

    companies = get_collection(COLLECTIONS["companies"])
    companies.update_one({"_id": company["company_id"]}, {"$set": updates})
    updated = companies.find_one({"_id": company["company_id"]}, {"download_history": 0})
    return {"message": "Profile updated successfully", "company": serialize_doc(updated)}


# ============================================================
# COLLEGES / ACCESS
# ============================================================

def _access_status(company: dict, college_id: ObjectId) -> Optional[str]:
    entry = next((e for e in company.get("college_access", []) if e["college"] == college_id), None)
    return entry["status"] if entry else None


@router.get("/colleges", response_model=PaginatedResponse)
async def list_colleges(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    company: dict = Depends(get_current_company)
):
    """Verified colleges, each with this company's access status."""
    query = {"is_verified": True, "is_active": True, "is_deleted": {"$ne": True}}
    if search:
        regex = search_regex(search)
        query["$or"] = [{"name": regex}, {"code": regex}, {"address.city": regex}]

    result = paginate(
        get_collection(COLLECTIONS["colleges"]), query, page, limit, sort=[("name", 1)],
        projection={"name": 1, "code": 1, "university": 1, "address": 1, "website": 1,
                    "departments": 1, "stats": 1}
    )
    for college in result["items"]:
        college["access_status"] = _access_status(company["company"], college["_id"])
    return paginated_response(result)


@router.post("/colleges/{college_id}/request-access", response_model=MessageResponse)
async def request_college_access(college_id: str, company: dict = Depends(get_current_company)):
    college = get_collection(COLLECTIONS["colleges"]).find_one({
        "_id": to_object_id(college_id), "is_verified": True, "is_deleted": {"$ne": True}
    })
    if not college:
        raise HTTPException(status_code=404, detail="College not found")

    companies = get_collection(COLLECTIONS["companies"])
    status = _access_status(company["company"], college["_id"])
    if status == "pending":
        raise HTTPException(status_code=400, detail="Access request is already pending")
    if status == "approved":
        raise HTTPException(status_code=400, detail="Access has already been granted")

    now = utcnow()
    if status == "rejected":
        companies.update_one(
            {"_id": company["company_id"], "college_access.college": college["_id"]},
            {"$set": {
                "college_access.$.status": "pending",
                "college_access.$.requested_at": now,
                "college_access.$.responded_at": None,
            }}
        )
    else:
        companies.update_one({"_id": company["company_id"]}, {"$push": {"college_access": {
            "college": college["_id"],
            "status": "pending",
            "requested_at": now,
            "responded_at": None,
        }}})
    return MessageResponse(message="Access request sent")


@router.get("/my-colleges")
async def get_my_colleges(company: dict = Depends(get_current_company)):
    access = company["company"].get("college_access", [])
    colleges = {
        c["_id"]: c for c in get_collection(COLLECTIONS["colleges"]).find(
            {"_id": {"$in": [e["college"] for e in access]}}, {"name": 1, "code": 1, "address": 1}
        )
    }
    return {"colleges": [
        serialize_doc({**entry, "college_info": colleges.get(entry["college"])})
        for entry in access
    ]}


# ============================================================
# STUDENT SEARCH
# ============================================================

def _visible_student_query(company: dict, visibility: dict) -> dict:
    query = {"is_verified": True, "is_deleted": {"$ne": True}}
    scope = college_scope(company["company"], visibility)
    if scope is not None:
        query["college"] = {"$in": scope}
    return query


def _get_visible_student(company: dict, student_id: str, visibility: dict) -> dict:
    query = _visible_student_query(company, visibility)
    query["_id"] = to_object_id(student_id)
    student = get_collection(COLLECTIONS["students"]).find_one(query)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@router.get("/students/search", response_model=PaginatedResponse)
async def search_students(
    q: Optional[str] = Query(None, description="Name, email, department or skill"),
    college_id: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    batch: Optional[int] = Query(None),
    min_cgpa: Optional[float] = Query(None, ge=0, le=10),
    max_backlogs: Optional[int] = Query(None, ge=0),
    skills: Optional[str] = Query(None, description="Comma-separated; all must match"),
    placement_status: Optional[PlacementStatus] = Query(None),
    is_star_student: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    company: dict = Depends(get_current_company)
):
    """
    Search verified students.

    When the platform requires college approval, only colleges that
    approved this company's access request are searched.
    """
    visibility = ensure_students_visible(company["company"])
    query = _visible_student_query(company, visibility)
    conditions = []

    if college_id:
        wanted = to_object_id(college_id)
        scope = query.get("college", {}).get("$in")
        if scope is not None and wanted not in scope:
            raise HTTPException(status_code=403, detail="You do not have access to this college's students")
        query["college"] = wanted
    if department:
        query["department"] = department
    if batch:
        query["batch"] = batch
    if min_cgpa is not None:
        query["cgpa"] = {"$gte": min_cgpa}
    if max_backlogs is not None:
        query["backlogs.active"] = {"$lte": max_backlogs}
    if placement_status:
        query["placement_status"] = placement_status.value
    if is_star_student is not None:
        query["is_star_student"] = is_star_student
    for skill in [s.strip() for s in (skills or "").split(",") if s.strip()]:
        conditions.append({"skills": {"$regex": f"^{search_regex(skill)['$regex']}$", "$options": "i"}})
    if q:
        regex = search_regex(q)
        conditions.append({"$or": [
            {"name.first_name": regex}, {"name.last_name": regex}, {"email": regex},
            {"department": regex}, {"skills": regex},
        ]})
    if conditions:
        query["$and"] = conditions

    result = paginate(
        get_collection(COLLECTIONS["students"]), query, page, limit,
        sort=[("is_star_student", -1), ("cgpa", -1)]
    )
    attach_college_names(result["items"])
    result["items"] = [mask_student(s, visibility) for s in result["items"]]
    return paginated_response(result)


@router.post("/students/bulk-download")
async def bulk_download_students(
    data: BulkDownloadRequest,
    request: Request,
    company: dict = Depends(get_current_company)
):
    """Download selected student records; each record counts against the download limits."""
    visibility = ensure_students_visible(company["company"])
    if not visibility["allow_bulk_download"]:
        raise HTTPException(status_code=403, detail="Bulk download is currently disabled")

    limits = check_download_limits(company["company_id"])
    remaining = min(limits["daily_remaining"], limits["monthly_remaining"])
    if len(data.student_ids) > remaining:
        raise HTTPException(
            status_code=429,
            detail=f"Download limit exceeded. You can download {remaining} more records"
        )

    query = _visible_student_query(company, visibility)
    query["_id"] = {"$in": to_object_ids(data.student_ids)}
    students = list(get_collection(COLLECTIONS["students"]).find(query))
    if not students:
        raise HTTPException(status_code=404, detail="No students found")

    attach_college_names(students)
    rows = format_student_rows([mask_student(s, visibility) for s in students])
    response = export_rows(rows, "students", data.format.value, sheet_name="Students")

    increment_download_count(
        company["company_id"], None, company["user_id"], "bulk_download",
        {"student_ids": [str(s["_id"]) for s in students], "format": data.format.value},
        count=len(students),
    )
    ActivityLogService().log(
        company["user_id"], "download_student_data", "Student", None,
        {"count": len(students), "format": data.format.value}, request,
    )
    return response


@router.get("/students/{student_id}")
async def get_student(student_id: str, request: Request, company: dict = Depends(get_current_company)):
    visibility = ensure_students_visible(company["company"])
    student = _get_visible_student(company, student_id, visibility)
    attach_college_names([student])

    applications = list(get_collection(COLLECTIONS["applications"]).find(
        {"student": student["_id"], "company": company["company_id"]},
        {"job": 1, "status": 1, "applied_at": 1},
    ))
    ActivityLogService().log(
        company["user_id"], "view_student", "Student", student["_id"],
        {"company_name": company["company"]["name"]}, request,
    )
    return {
        "student": serialize_doc(mask_student(student, visibility)),
        "applications": serialize_docs(applications),
    }


@router.post("/students/{student_id}/invite", status_code=201)
async def invite_student(
    student_id: str,
    data: InviteRequest,
    request: Request,
    company: dict = Depends(get_current_company)
):
    """Invite a student who has not applied yet to one of this company's open jobs."""
    visibility = ensure_students_visible(company["company"])
    student = _get_visible_student(company, student_id, visibility)

    job = get_collection(COLLECTIONS["jobs"]).find_one(
        {"_id": to_object_id(data.job_id), "company": company["company_id"]}
    )
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    if job["status"] != "open":
        raise HTTPException(status_code=400, detail="Invitations can only be sent for open jobs")

    if get_collection(COLLECTIONS["applications"]).find_one({"student": student["_id"], "job": job["_id"]}):
        raise HTTPException(status_code=400, detail="Student has already applied to this job")

    invitations = get_collection(COLLECTIONS["invitations"])
    key = {"student": student["_id"], "job": job["_id"], "company": company["company_id"]}
    if invitations.find_one(key):
        raise HTTPException(status_code=400, detail="Student has already been invited to this job")
    if not student.get("user"):
        raise HTTPException(status_code=404, detail="Student does not have an account yet")

    invitation = {
        **key,
        "message": data.message,
        "status": "sent",
        "sent_by": company["user_id"],
        "sent_at": utcnow(),
        "responded_at": None,
    }
    invitations.insert_one(invitation)

    NotificationService().create(
        student["user"], notification_template("invitation", company["company"]["name"], job["title"]),
        link="/student/invitations", related_model="Invitation", related_id=invitation["_id"],
    )
    ActivityLogService().log(
        company["user_id"], "invite_student", "Student", student["_id"],
        {"job_id": str(job["_id"]), "job_title": job["title"]}, request,
    )
    return {"message": "Invitation sent successfully", "invitation": serialize_doc(invitation)}


@router.post("/students/{student_id}/log-resume-view")
async def log_resume_view(student_id: str, request: Request, company: dict = Depends(get_current_company)):
    """Count a resume view against the download limits."""
    visibility = ensure_students_visible(company["company"])
    student = _get_visible_student(company, student_id, visibility)

    limits = check_download_limits(company["company_id"])
    if not limits["can_download"]:
        raise HTTPException(status_code=429, detail="Download limit reached. Please try again later.")

    increment_download_count(company["company_id"], student["_id"], company["user_id"], "resume_view")
    ActivityLogService().log(
        company["user_id"], "view_resume", "Student", student["_id"],
        {"resume_url": student.get("resume_url")}, request,
    )
    return {
        "message": "Resume view logged",
        "resume_url": student.get("resume_url") if visibility["visible_fields"]["resume"] else None,
        "limits": check_download_limits(company["company_id"]),
    }


@router.get("/download-stats")
async def download_stats(company: dict = Depends(get_current_company)):
    return serialize_doc(get_download_stats(company["company_id"]))


# ============================================================
# SAVED SEARCH FILTERS
# ============================================================

@router.get("/search-filters")
async def list_search_filters(company: dict = Depends(get_current_company)):
    return {"filters": serialize_docs(company["company"].get("saved_search_filters", []))}


@router.post("/search-filters", status_code=201)
async def save_search_filter(data: SearchFilterCreate, company: dict = Depends(get_current_company)):
    entry = {"_id": ObjectId(), "name": data.name, "filters": data.filters, "created_at": utcnow()}
    get_collection(COLLECTIONS["companies"]).update_one(
        {"_id": company["company_id"]}, {"$push": {"saved_search_filters": entry}}
    )
    return {"message": "Search filter saved", "filter": serialize_doc(entry)}


@router.delete("/search-filters/{filter_id}", response_model=MessageResponse)
async def delete_search_filter(filter_id: str, company: dict = Depends(get_current_company)):
    result = get_collection(COLLECTIONS["companies"]).update_one(
        {"_id": company["company_id"]},
        {"$pull": {"saved_search_filters": {"_id": to_object_id(filter_id)}}}
    )
    if result.modified_count == 0:
        raise HTTPException(status_code=404, detail="Search filter not found")
    return MessageResponse(message="Search filter deleted")


# ============================================================
# INVITATIONS
# ============================================================

@router.get("/invitations", response_model=PaginatedResponse)
async def list_invitations(
    status: Optional[InvitationStatus] = Query(None),
    job_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    company: dict = Depends(get_current_company)
):
    query = {"company": company["company_id"]}
    if status:
        query["status"] = status.value
    if job_id:
        query["job"] = to_object_id(job_id)

    result = paginate(get_collection(COLLECTIONS["invitations"]), query, page, limit, sort=[("sent_at", -1)])
    students = {
        s["_id"]: s for s in get_collection(COLLECTIONS["students"]).find(
            {"_id": {"$in": [i["student"] for i in result["items"]]}}, {"name": 1, "email": 1, "department": 1}
        )
    }
    titles = {
        j["_id"]: j["title"] for j in get_collection(COLLECTIONS["jobs"]).find(
            {"_id": {"$in": [i["job"] for i in result["items"]]}}, {"title": 1}
        )
    }
    for invitation in result["items"]:
        student = students.get(invitation["student"])
        invitation["student_name"] = full_name(student)
        invitation["student_email"] = (student or {}).get("email")
        invitation["job_title"] = titles.get(invitation["job"])
    return paginated_response(result)
