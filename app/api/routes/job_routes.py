"""
Job Routes

GET    /jobs/public               - Open jobs (no auth)
GET    /jobs/public/{id}          - Public job detail
GET    /jobs                      - Company's own jobs
POST   /jobs                      - Create job posting (company only)
GET    /jobs/{id}                 - Job detail (owner)
PUT    /jobs/{id}                 - Update job (owner)
DELETE /jobs/{id}                 - Delete job without applications (owner)
PATCH  /jobs/{id}/close           - Close job (owner)
GET    /jobs/{id}/applicants      - Applicants with student details (owner)
GET    /jobs/{id}/applicants/export - Export applicants (CSV/XLSX, owner)
"""

import logging
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends, Query, Request

from app.core.auth import get_current_company
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    JobCreate, JobUpdate, JobType, WorkMode, JobStatus, ApplicationStatus,
    ExportFormat, MessageResponse, PaginatedResponse
)
from app.services import email_service
from app.services.activity_service import ActivityLogService
from app.services.application_workflow import attach_application_details
from app.services.download_limits import check_download_limits, increment_download_count
from app.services.eligibility import check_eligibility
from app.services.mongo_service import (
    paginate, paginated_response, serialize_doc, search_regex, to_object_id, to_naive_utc, utcnow
)
from app.services.notification_service import NotificationService, notification_template
from app.services.platform_settings import get_section
from app.utils.exporter import export_rows, format_application_rows

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _company_names(jobs: List[dict]) -> dict:
    return {
        c["_id"]: c["name"] for c in get_collection(COLLECTIONS["companies"]).find(
            {"_id": {"$in": list({j["company"] for j in jobs})}}, {"name": 1}
        )
    }


def announce_job(job: dict, company: dict, background_tasks: BackgroundTasks) -> int:
    """
    Notify and email eligible students about a newly opened job when the
    platform's job posting alert is on. Returns the number of students reached.

    Emails go out after the response is sent, one SMTP session per student.
    """
    if not get_section("notifications")["job_posting_alert"]:
        return 0

    query = {"is_verified": True, "is_deleted": {"$ne": True}, "user": {"$ne": None},
             "placement_status": {"$ne": "placed"}}
    if job.get("is_placement_drive"):
        query["college"] = job["college"]
    students = [
        s for s in get_collection(COLLECTIONS["students"]).find(query)
        if not check_eligibility(s, job)
    ]

    NotificationService().create_many(
        [s["user"] for s in students], notification_template("job_posted", job["title"]),
        link=f"/student/jobs/{job['_id']}", related_model="Job", related_id=job["_id"],
    )
    for student in students:
        background_tasks.add_task(email_service.send_job_posted_email, student, job, company)
    logger.info("Job %s announced to %d students", job["_id"], len(students))
    return len(students)


# ============================================================
# PUBLIC
# ============================================================

@router.get("/public", response_model=PaginatedResponse)
async def list_public_jobs(
    type: Optional[JobType] = Query(None),
    work_mode: Optional[WorkMode] = Query(None),
    location: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Open jobs whose application deadline has not passed."""
    query = {"status": "open", "application_deadline": {"$gte": utcnow()}}
    if type:
        query["type"] = type.value
    if work_mode:
        query["work_mode"] = work_mode.value
    if location:
        query["locations"] = search_regex(location)
    if search:
        regex = search_regex(search)
        query["$or"] = [{"title": regex}, {"description": regex}, {"category": regex}]

    result = paginate(
        get_collection(COLLECTIONS["jobs"]), query, page, limit,
        sort=[("created_at", -1)], projection={"created_by": 0}
    )
    names = _company_names(result["items"])
    for job in result["items"]:
        job["company_name"] = names.get(job["company"])
    return paginated_response(result)


@router.get("/public/{job_id}")
async def get_public_job(job_id: str):
    jobs = get_collection(COLLECTIONS["jobs"])
    job = jobs.find_one({"_id": to_object_id(job_id), "status": {"$ne": "draft"}}, {"created_by": 0})
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    jobs.update_one({"_id": job["_id"]}, {"$inc": {"stats.views": 1}})
    job["company_info"] = get_collection(COLLECTIONS["companies"]).find_one(
        {"_id": job["company"]}, {"name": 1, "type": 1, "industry": 1, "website": 1, "description": 1}
    )
    return serialize_doc(job)


# ============================================================
# COMPANY
# ============================================================

def _get_own_job(company: dict, job_id: str) -> dict:
    job = get_collection(COLLECTIONS["jobs"]).find_one(
        {"_id": to_object_id(job_id), "company": company["company_id"]}
    )
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("", response_model=PaginatedResponse)
async def list_company_jobs(
    status: Optional[JobStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    company: dict = Depends(get_current_company)
):
    """Get all jobs posted by this company."""
    query = {"company": company["company_id"]}
    if status:
        query["status"] = status.value
    result = paginate(get_collection(COLLECTIONS["jobs"]), query, page, limit, sort=[("created_at", -1)])
    return paginated_response(result)


@router.post("", status_code=201)
async def create_job(
    data: JobCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    company: dict = Depends(get_current_company)
):
    """
    Create a job posting.

    A placement drive targets one college and needs `college_id`.
    Open jobs are announced to eligible students when job alerts are on.
    """
    posting = get_section("job_posting")
    is_agency = company["company"].get("type") == "placement_agency"
    if not posting["allow_agencies" if is_agency else "allow_companies"]:
        raise HTTPException(status_code=403, detail="Job posting is currently disabled for your account type")

    college_id = None
    if data.is_placement_drive:
        if not data.college_id:
            raise HTTPException(status_code=400, detail="college_id is required for a placement drive")
        college = get_collection(COLLECTIONS["colleges"]).find_one(
            {"_id": to_object_id(data.college_id), "is_deleted": {"$ne": True}}
        )
        if not college:
            raise HTTPException(status_code=404, detail="College not found")
        college_id = college["_id"]

    now = utcnow()
    job = data.model_dump(exclude={"college_id"})
    job.update({
        "application_deadline": to_naive_utc(data.application_deadline),
        "company": company["company_id"],
        "college": college_id,
        "stats": {"views": 0, "total_applications": 0, "shortlisted": 0, "hired": 0},
        "created_by": company["user_id"],
        "created_at": now,
        "updated_at": now,
    })
    get_collection(COLLECTIONS["jobs"]).insert_one(job)
    get_collection(COLLECTIONS["companies"]).update_one(
        {"_id": company["company_id"]}, {"$inc": {"stats.total_jobs": 1}}
    )

    if job["status"] == "open":
        announce_job(job, company["company"], background_tasks)
    ActivityLogService().log(
        company["user_id"], "post_job", "Job", job["_id"],
        {"title": job["title"], "status": job["status"]}, request,
    )
    return {"message": "Job created successfully", "job": serialize_doc(job)}


@router.get("/{job_id}")
async def get_job(job_id: str, company: dict = Depends(get_current_company)):
    return serialize_doc(_get_own_job(company, job_id))


@router.put("/{job_id}")
async def update_job(
    job_id: str,
    data: JobUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    company: dict = Depends(get_current_company)
):
    job = _get_own_job(company, job_id)
    updates = data.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if updates.get("application_deadline"):
        updates["application_deadline"] = to_naive_utc(updates["application_deadline"])
    updates["updated_at"] = utcnow()

    jobs = get_collection(COLLECTIONS["jobs"])
    jobs.update_one({"_id": job["_id"]}, {"$set": updates})
    updated = jobs.find_one({"_id": job["_id"]})

    if job["status"] != "open" and updated["status"] == "open":
        announce_job(updated, company["company"], background_tasks)
    ActivityLogService().log(
        company["user_id"], "update_job", "Job", job["_id"],
        {"fields": sorted(k for k in updates if k != "updated_at")}, request,
    )
    return {"message": "Job updated successfully", "job": serialize_doc(updated)}


@router.delete("/{job_id}", response_model=MessageResponse)
async def delete_job(job_id: str, company: dict = Depends(get_current_company)):
    job = _get_own_job(company, job_id)
    if get_collection(COLLECTIONS["applications"]).count_documents({"job": job["_id"]}):
        raise HTTPException(status_code=400, detail="Cannot delete a job that has applications. Close it instead.")

    get_collection(COLLECTIONS["jobs"]).delete_one({"_id": job["_id"]})
    get_collection(COLLECTIONS["invitations"]).delete_many({"job": job["_id"]})
    get_collection(COLLECTIONS["companies"]).update_one(
        {"_id": company["company_id"]}, {"$inc": {"stats.total_jobs": -1}}
    )
    return MessageResponse(message="Job deleted successfully")


@router.patch("/{job_id}/close", response_model=MessageResponse)
async def close_job(job_id: str, company: dict = Depends(get_current_company)):
    job = _get_own_job(company, job_id)
    if job["status"] == "closed":
        raise HTTPException(status_code=400, detail="Job is already closed")
    get_collection(COLLECTIONS["jobs"]).update_one(
        {"_id": job["_id"]}, {"$set": {"status": "closed", "closed_at": utcnow(), "updated_at": utcnow()}}
    )
    return MessageResponse(message="Job closed successfully")


@router.get("/{job_id}/applicants", response_model=PaginatedResponse)
async def get_applicants(
    job_id: str,
    status: Optional[ApplicationStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    company: dict = Depends(get_current_company)
):
    job = _get_own_job(company, job_id)
    query = {"job": job["_id"]}
    if status:
        query["status"] = status.value
    result = paginate(get_collection(COLLECTIONS["applications"]), query, page, limit, sort=[("applied_at", -1)])
    attach_application_details(result["items"], with_college=True)
    return paginated_response(result)


@router.get("/{job_id}/applicants/export")
async def export_applicants(
    job_id: str,
    request: Request,
    format: ExportFormat = Query(ExportFormat.csv),
    status: Optional[ApplicationStatus] = Query(None),
    company: dict = Depends(get_current_company)
):
    """Export a job's applicants; each record counts as one download."""
    job = _get_own_job(company, job_id)
    query = {"job": job["_id"]}
    if status:
        query["status"] = status.value
    applications = list(get_collection(COLLECTIONS["applications"]).find(query).sort("applied_at", -1))

    limits = check_download_limits(company["company_id"])
    remaining = min(limits["daily_remaining"], limits["monthly_remaining"])
    if len(applications) > remaining:
        raise HTTPException(
            status_code=429,
            detail=f"Download limit exceeded. You can download {remaining} more records"
        )

    rows = format_application_rows(attach_application_details(applications))
    response = export_rows(rows, f"applicants_{job['_id']}", format.value, sheet_name="Applicants")

    increment_download_count(
        company["company_id"], None, company["user_id"], "applicants_export",
        {"format": format.value, "job_id": str(job["_id"])}, count=len(rows),
    )
    ActivityLogService().log(
        company["user_id"], "export_data", "Application", None,
        {"count": len(rows), "format": format.value, "export": "applicants", "job_id": str(job["_id"])}, request,
    )
    return response
