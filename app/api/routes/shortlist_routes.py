"""
Application Pipeline / Shortlist Routes

GET    /company/applications              - Applications received
PATCH  /company/applications/{id}/status  - Move an application through the pipeline
POST   /company/students/{id}/shortlist   - Shortlist a student's application
GET    /company/shortlist                 - Shortlisted candidates
GET    /company/shortlist/export          - Export shortlist (CSV/XLSX)
GET    /company/shortlist/{id}            - Shortlist entry detail
POST   /company/shortlist/{id}/notes      - Add a note
DELETE /company/shortlist/{id}            - Remove from shortlist

The shortlist is the set of applications in the pipeline statuses
(shortlisted through hired); there is no separate shortlist record.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query, Request

from app.core.auth import get_current_company
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    ApplicationStatusUpdate, ShortlistRequest, NoteRequest, ApplicationStatus,
    PaginatedResponse, MessageResponse, ExportFormat
)
from app.services.activity_service import ActivityLogService
from app.services.application_workflow import (
    PIPELINE_STATUSES, change_status, remove_from_shortlist, attach_application_details
)
from app.services.download_limits import check_download_limits, increment_download_count
from app.services.mongo_service import paginate, paginated_response, serialize_doc, to_object_id, utcnow
from app.utils.exporter import export_rows, format_shortlist_rows

router = APIRouter(prefix="/company", tags=["Company Pipeline"])


def _get_application(company: dict, application_id: str) -> dict:
    application = get_collection(COLLECTIONS["applications"]).find_one({"_id": to_object_id(application_id)})
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    if application["company"] != company["company_id"]:
        raise HTTPException(status_code=403, detail="You can only manage applications for your own jobs")
    return application


def _get_shortlisted(company: dict, application_id: str) -> dict:
    application = _get_application(company, application_id)
    if application["status"] not in PIPELINE_STATUSES:
        raise HTTPException(status_code=404, detail="Shortlist entry not found")
    return application


def _pipeline_query(company: dict, job_id: Optional[str]) -> dict:
    query = {"company": company["company_id"], "status": {"$in": PIPELINE_STATUSES}}
    if job_id:
        query["job"] = to_object_id(job_id)
    return query


# ============================================================
# APPLICATIONS
# ============================================================

@router.get("/applications", response_model=PaginatedResponse)
async def list_applications(
    job_id: Optional[str] = Query(None),
    status: Optional[ApplicationStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    company: dict = Depends(get_current_company)
):
    """Applications to this company's jobs, newest first."""
    query = {"company": company["company_id"]}
    if job_id:
        query["job"] = to_object_id(job_id)
    if status:
        query["status"] = status.value

    result = paginate(get_collection(COLLECTIONS["applications"]), query, page, limit, sort=[("applied_at", -1)])
    attach_application_details(result["items"])
    return paginated_response(result)


# Sends SMTP email: sync handler, runs in the threadpool
@router.patch("/applications/{application_id}/status")
def update_application_status(
    application_id: str,
    data: ApplicationStatusUpdate,
    request: Request,
    company: dict = Depends(get_current_company)
):
    """
    Apply a pipeline transition.

    - interview_scheduled requires `interview` details
    - offered stores `offer` (package, joining date)
    - hired marks the student placed
    """
    application = _get_application(company, application_id)
    updated = change_status(
        application,
        data.status.value,
        actor="company",
        user_id=company["user_id"],
        remarks=data.remarks,
        interview=data.interview.model_dump() if data.interview else None,
        offer=data.offer.model_dump() if data.offer else None,
    )
    if data.status == ApplicationStatus.shortlisted:
        ActivityLogService().log(
            company["user_id"], "shortlist_student", "Student", application["student"],
            {"application_id": str(application["_id"]), "job_id": str(application["job"])}, request,
        )
    return {"message": "Application status updated", "application": serialize_doc(updated)}


# ============================================================
# SHORTLIST
# ============================================================

# Sends SMTP email: sync handler, runs in the threadpool
@router.post("/students/{student_id}/shortlist")
def shortlist_student(
    student_id: str,
    data: ShortlistRequest,
    request: Request,
    company: dict = Depends(get_current_company)
):
    """Shortlist a student who applied to one of this company's jobs."""
    job = get_collection(COLLECTIONS["jobs"]).find_one(
        {"_id": to_object_id(data.job_id), "company": company["company_id"]}
    )
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    application = get_collection(COLLECTIONS["applications"]).find_one(
        {"student": to_object_id(student_id), "job": job["_id"]}
    )
    if not application:
        raise HTTPException(status_code=404, detail="Student has not applied to this job")
    if application["status"] in PIPELINE_STATUSES:
        raise HTTPException(status_code=400, detail="Student is already shortlisted for this job")

    updated = change_status(application, "shortlisted", actor="company",
                            user_id=company["user_id"], remarks=data.notes)
    if data.notes:
        _append_note(updated, data.notes)

    ActivityLogService().log(
        company["user_id"], "shortlist_student", "Student", application["student"],
        {"application_id": str(application["_id"]), "job_id": str(job["_id"])}, request,
    )
    return {"message": "Student shortlisted successfully",
            "application": serialize_doc(get_collection(COLLECTIONS["applications"]).find_one(
                {"_id": application["_id"]}))}


@router.get("/shortlist", response_model=PaginatedResponse)
async def list_shortlist(
    job_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    company: dict = Depends(get_current_company)
):
    result = paginate(
        get_collection(COLLECTIONS["applications"]), _pipeline_query(company, job_id),
        page, limit, sort=[("updated_at", -1)]
    )
    attach_application_details(result["items"], with_college=True)
    return paginated_response(result)


@router.get("/shortlist/export")
async def export_shortlist(
    request: Request,
    format: ExportFormat = Query(ExportFormat.xlsx),
    job_id: Optional[str] = Query(None),
    company: dict = Depends(get_current_company)
):
    """Export the shortlist; each record counts as one download."""
    applications = list(
        get_collection(COLLECTIONS["applications"]).find(_pipeline_query(company, job_id)).sort("updated_at", -1)
    )
    limits = check_download_limits(company["company_id"])
    remaining = min(limits["daily_remaining"], limits["monthly_remaining"])
    if len(applications) > remaining:
        raise HTTPException(
            status_code=429,
            detail=f"Download limit exceeded. You can download {remaining} more records"
        )

    rows = format_shortlist_rows(attach_application_details(applications))
    response = export_rows(rows, "shortlist", format.value, sheet_name="Shortlist")

    increment_download_count(
        company["company_id"], None, company["user_id"], "shortlist_export",
        {"format": format.value, "job_id": job_id}, count=len(rows),
    )
    ActivityLogService().log(
        company["user_id"], "export_data", "Application", None,
        {"count": len(rows), "format": format.value, "export": "shortlist"}, request,
    )
    return response


@router.get("/shortlist/{application_id}")
async def get_shortlist_entry(application_id: str, company: dict = Depends(get_current_company)):
    application = _get_shortlisted(company, application_id)
    attach_application_details([application], with_college=True)
    return serialize_doc(application)


def _append_note(application: dict, note: str) -> None:
    stamp = utcnow().strftime("%Y-%m-%d %H:%M")
    existing = application.get("company_notes") or ""
    notes = f"{existing}\n[{stamp}] {note}" if existing else f"[{stamp}] {note}"
    get_collection(COLLECTIONS["applications"]).update_one(
        {"_id": application["_id"]}, {"$set": {"company_notes": notes, "updated_at": utcnow()}}
    )


@router.post("/shortlist/{application_id}/notes", response_model=MessageResponse)
async def add_shortlist_note(
    application_id: str,
    data: NoteRequest,
    company: dict = Depends(get_current_company)
):
    application = _get_shortlisted(company, application_id)
    if not data.note.strip():
        raise HTTPException(status_code=400, detail="Note cannot be empty")
    _append_note(application, data.note.strip())
    return MessageResponse(message="Note added")


@router.delete("/shortlist/{application_id}", response_model=MessageResponse)
async def remove_shortlist_entry(application_id: str, company: dict = Depends(get_current_company)):
    """Send the application back to under_review."""
    application = _get_shortlisted(company, application_id)
    remove_from_shortlist(application, company["user_id"])
    return MessageResponse(message="Removed from shortlist")
