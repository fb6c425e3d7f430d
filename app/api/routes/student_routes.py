"""
Student Routes

GET   /student/stats                       - Dashboard stats
GET   /student/profile                     - Own profile with completeness
PUT   /student/profile                     - Update self-editable fields
GET   /student/jobs                        - Eligible open jobs
GET   /student/jobs/{id}                   - Job detail with eligibility
POST  /student/jobs/{id}/apply             - Apply to a job
GET   /student/applications                - Own applications
PATCH /student/applications/{id}/withdraw  - Withdraw an application
PATCH /student/applications/{id}/offer     - Accept or decline an offer
GET   /student/invitations                 - Invitations received
PATCH /student/invitations/{id}            - Respond to an invitation
"""

import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query

from app.core.auth import get_current_student
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    StudentProfileUpdate, ApplyRequest, OfferResponse, InvitationResponse,
    ApplicationStatus, InvitationStatus, PaginatedResponse
)
from app.services.application_workflow import change_status, attach_application_details
from app.services.eligibility import check_eligibility, is_accepting_applications, eligible_jobs_query
from app.services.mongo_service import (
    paginate, paginated_response, serialize_doc, to_object_id, utcnow
)
from app.services.notification_service import NotificationService
from app.services.profile_completeness import calculate_profile_completeness

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/student", tags=["Students"])

DRIVE_REASON = "This placement drive is not open to your college"


# ============================================================
# DASHBOARD / PROFILE
# ============================================================

@router.get("/stats")
async def get_stats(student: dict = Depends(get_current_student)):
    profile = student["student"]
    by_status = {
        row["_id"]: row["count"]
        for row in get_collection(COLLECTIONS["applications"]).aggregate([
            {"$match": {"student": profile["_id"]}},
            {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        ])
    }
    return {
        "applications": {"total": sum(by_status.values()), "by_status": by_status},
        "pending_invitations": get_collection(COLLECTIONS["invitations"]).count_documents(
            {"student": profile["_id"], "status": {"$in": ["sent", "viewed"]}}
        ),
        "unread_notifications": NotificationService().unread_count(student["user_id"]),
        "eligible_jobs": get_collection(COLLECTIONS["jobs"]).count_documents(eligible_jobs_query(profile)),
        "placement_status": profile.get("placement_status"),
        "profile_completeness": calculate_profile_completeness(profile),
    }


@router.get("/profile")
async def get_profile(student: dict = Depends(get_current_student)):
    profile = student["student"]
    college = get_collection(COLLECTIONS["colleges"]).find_one(
        {"_id": profile["college"]}, {"name": 1, "code": 1}
    )
    return {
        "student": serialize_doc(profile),
        "college": serialize_doc(college),
        "profile_completeness": calculate_profile_completeness(profile),
    }


@router.put("/profile")
async def update_profile(data: StudentProfileUpdate, student: dict = Depends(get_current_student)):
    """Update contact details, skills, projects, links and about. Academic data stays with the college."""
    updates = data.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "placement_status" in updates and student["student"].get("placement_status") in ("placed", "in_process"):
        raise HTTPException(status_code=400, detail="Placement status cannot be changed while in process or placed")
    updates["updated_at"] = utcnow()

    students = get_collection(COLLECTIONS["students"])
    students.update_one({"_id": student["student_id"]}, {"$set": updates})
    updated = students.find_one({"_id": student["student_id"]})
    return {
        "message": "Profile updated successfully",
        "student": serialize_doc(updated),
        "profile_completeness": calculate_profile_completeness(updated),
    }


# ============================================================
# JOBS
# ============================================================

@router.get("/jobs", response_model=PaginatedResponse)
async def list_eligible_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    student: dict = Depends(get_current_student)
):
    """Open jobs the student is eligible for, flagged with has_applied."""
    result = paginate(
        get_collection(COLLECTIONS["jobs"]), eligible_jobs_query(student["student"]),
        page, limit, sort=[("application_deadline", 1)], projection={"created_by": 0}
    )
    applied = set(get_collection(COLLECTIONS["applications"]).distinct(
        "job", {"student": student["student_id"]}
    ))
    names = {
        c["_id"]: c["name"] for c in get_collection(COLLECTIONS["companies"]).find(
            {"_id": {"$in": [j["company"] for j in result["items"]]}}, {"name": 1}
        )
    }
    for job in result["items"]:
        job["has_applied"] = job["_id"] in applied
        job["company_name"] = names.get(job["company"])
    return paginated_response(result)


def _get_job(job_id: str) -> dict:
    job = get_collection(COLLECTIONS["jobs"]).find_one(
        {"_id": to_object_id(job_id), "status": {"$ne": "draft"}}, {"created_by": 0}
    )
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, student: dict = Depends(get_current_student)):
    job = _get_job(job_id)
    reasons = check_eligibility(student["student"], job)
    closed = is_accepting_applications(job)
    application = get_collection(COLLECTIONS["applications"]).find_one(
        {"student": student["student_id"], "job": job["_id"]}, {"status": 1}
    )
    job["company_info"] = get_collection(COLLECTIONS["companies"]).find_one(
        {"_id": job["company"]}, {"name": 1, "industry": 1, "website": 1, "description": 1}
    )
    return {
        "job": serialize_doc(job),
        "eligibility": {"eligible": not reasons, "reasons": reasons},
        "accepting_applications": closed is None,
        "has_applied": application is not None,
        "application_status": application["status"] if application else None,
    }


@router.post("/jobs/{job_id}/apply", status_code=201)
async def apply_to_job(job_id: str, data: ApplyRequest, student: dict = Depends(get_current_student)):
    """
    Apply to a job.

    The student must be verified, eligible, and satisfy the college's
    placement rules (resume upload, multiple offers).
    """
    profile = student["student"]
    if not profile.get("is_verified"):
        raise HTTPException(status_code=403, detail="Your profile must be verified by your college before applying")

    job = _get_job(job_id)
    closed = is_accepting_applications(job)
    if closed:
        raise HTTPException(status_code=400, detail=closed)

    reasons = check_eligibility(profile, job)
    if DRIVE_REASON in reasons:
        raise HTTPException(status_code=403, detail=DRIVE_REASON)
    if reasons:
        raise HTTPException(status_code=400, detail=reasons[0])

    applications = get_collection(COLLECTIONS["applications"])
    if applications.find_one({"student": profile["_id"], "job": job["_id"]}):
        raise HTTPException(status_code=400, detail="You have already applied to this job")

    college = get_collection(COLLECTIONS["colleges"]).find_one({"_id": profile["college"]}) or {}
    rules = (college.get("settings") or {}).get("placement_rules") or {}
    if rules.get("require_resume_upload", True) and not profile.get("resume_url"):
        raise HTTPException(status_code=400, detail="Please upload your resume before applying")
    if profile.get("placement_status") == "placed" and not rules.get("allow_multiple_offers", False):
        raise HTTPException(status_code=400, detail="You are already placed and your college does not allow multiple offers")

    now = utcnow()
    application = {
        "student": profile["_id"],
        "job": job["_id"],
        "company": job["company"],
        "status": "applied",
        "status_history": [{"status": "applied", "changed_at": now, "changed_by": student["user_id"], "remarks": ""}],
        "cover_letter": data.cover_letter,
        "resume_snapshot": {"url": profile.get("resume_url"), "captured_at": now},
        "interviews": [],
        "company_notes": None,
        "last_updated_by": student["user_id"],
        "applied_at": now,
        "updated_at": now,
    }
    applications.insert_one(application)
    get_collection(COLLECTIONS["jobs"]).update_one({"_id": job["_id"]}, {"$inc": {"stats.total_applications": 1}})
    get_collection(COLLECTIONS["invitations"]).update_many(
        {"student": profile["_id"], "job": job["_id"], "status": {"$in": ["sent", "viewed"]}},
        {"$set": {"status": "accepted", "responded_at": now}}
    )
    logger.info("Student %s applied to job %s", profile["_id"], job["_id"])
    return {"message": "Application submitted successfully", "application": serialize_doc(application)}


# ============================================================
# APPLICATIONS
# ============================================================

@router.get("/applications", response_model=PaginatedResponse)
async def list_applications(
    status: Optional[ApplicationStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    student: dict = Depends(get_current_student)
):
    query = {"student": student["student_id"]}
    if status:
        query["status"] = status.value
    result = paginate(get_collection(COLLECTIONS["applications"]), query, page, limit, sort=[("applied_at", -1)])
    attach_application_details(result["items"])
    for app in result["items"]:
        app.pop("student_info", None)
        app.pop("company_notes", None)
    return paginated_response(result)


def _get_own_application(student: dict, application_id: str) -> dict:
    application = get_collection(COLLECTIONS["applications"]).find_one(
        {"_id": to_object_id(application_id), "student": student["student_id"]}
    )
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    return application


@router.patch("/applications/{application_id}/withdraw")
async def withdraw_application(application_id: str, student: dict = Depends(get_current_student)):
    application = _get_own_application(student, application_id)
    updated = change_status(application, "withdrawn", actor="student", user_id=student["user_id"],
                            remarks="Withdrawn by student")
    return {"message": "Application withdrawn", "application": serialize_doc(updated)}


@router.patch("/applications/{application_id}/offer")
async def respond_to_offer(
    application_id: str,
    data: OfferResponse,
    student: dict = Depends(get_current_student)
):
    """Accept an offer, or decline it (which withdraws the application)."""
    application = _get_own_application(student, application_id)
    if application["status"] != "offered":
        raise HTTPException(status_code=400, detail="There is no pending offer for this application")

    if data.accept:
        updated = change_status(application, "offer_accepted", actor="student",
                                user_id=student["user_id"], remarks="Offer accepted")
    else:
        updated = change_status(application, "withdrawn", actor="student",
                                user_id=student["user_id"], remarks="Offer declined")
    return {
        "message": "Offer accepted" if data.accept else "Offer declined",
        "application": serialize_doc(updated),
    }


# ============================================================
# INVITATIONS
# ============================================================

@router.get("/invitations", response_model=PaginatedResponse)
async def list_invitations(
    status: Optional[InvitationStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    student: dict = Depends(get_current_student)
):
    query = {"student": student["student_id"]}
    if status:
        query["status"] = status.value
    result = paginate(get_collection(COLLECTIONS["invitations"]), query, page, limit, sort=[("sent_at", -1)])

    jobs = {
        j["_id"]: j for j in get_collection(COLLECTIONS["jobs"]).find(
            {"_id": {"$in": [i["job"] for i in result["items"]]}},
            {"title": 1, "status": 1, "application_deadline": 1, "type": 1},
        )
    }
    names = {
        c["_id"]: c["name"] for c in get_collection(COLLECTIONS["companies"]).find(
            {"_id": {"$in": [i["company"] for i in result["items"]]}}, {"name": 1}
        )
    }
    for invitation in result["items"]:
        invitation["job_info"] = jobs.get(invitation["job"])
        invitation["company_name"] = names.get(invitation["company"])
    return paginated_response(result)


@router.patch("/invitations/{invitation_id}")
async def respond_to_invitation(
    invitation_id: str,
    data: InvitationResponse,
    student: dict = Depends(get_current_student)
):
    """Mark an invitation viewed, accepted or declined."""
    invitations = get_collection(COLLECTIONS["invitations"])
    invitation = invitations.find_one({"_id": to_object_id(invitation_id), "student": student["student_id"]})
    if not invitation:
        raise HTTPException(status_code=404, detail="Invitation not found")
    if invitation["status"] in ("accepted", "declined"):
        raise HTTPException(status_code=400, detail=f"Invitation has already been {invitation['status']}")

    update = {"status": data.status.value}
    if data.status != InvitationStatus.viewed:
        update["responded_at"] = utcnow()
    invitations.update_one({"_id": invitation["_id"]}, {"$set": update})
    return {"message": f"Invitation {data.status.value}",
            "invitation": serialize_doc(invitations.find_one({"_id": invitation["_id"]}))}
