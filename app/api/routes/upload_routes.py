"""
Upload Routes

POST /upload/resume                - Upload own resume (student)
GET  /upload/resume/formats        - Supported resume formats
GET  /upload/resume/{student_id}   - Download a student's resume
POST /upload/logo                  - Upload own logo (college admin or company)
GET  /upload/logo/{owner_id}       - Fetch a college or company logo

Resume files are kept in the `resumes` collection, one per student,
with their extracted text. Logos live in `logos`, one per college or company.
"""

import logging
from bson import Binary
from fastapi import APIRouter, HTTPException, Depends, UploadFile, File, Request
from fastapi.responses import Response

from app.core.auth import get_current_student, get_current_user, require_roles
from app.db.mongodb import get_collection, COLLECTIONS
from app.services.activity_service import ActivityLogService
from app.services.download_limits import check_download_limits, increment_download_count
from app.services.mongo_service import to_object_id, utcnow
from app.services.student_visibility import ensure_students_visible, college_scope
from app.utils.file_upload import (
    CONTENT_TYPES, LOGO_CONTENT_TYPES, LOGO_MAX_BYTES,
    content_disposition, extract_resume, get_supported_formats, read_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Uploads"])


def resume_path(student_id) -> str:
    return f"/api/upload/resume/{student_id}"


@router.post("/resume")
async def upload_resume(
    file: UploadFile = File(..., description="Resume file (PDF, DOCX, or TXT)"),
    student: dict = Depends(get_current_student)
):
    """
    Upload a resume and extract its text.

    Supported formats: PDF, DOCX, TXT (max 5MB). A new upload replaces the previous one.
    """
    content, ext, text = await extract_resume(file)
    now = utcnow()

    get_collection(COLLECTIONS["resumes"]).replace_one(
        {"student": student["student_id"]},
        {
            "student": student["student_id"],
            "filename": file.filename,
            "content_type": CONTENT_TYPES[ext],
            "size": len(content),
            "content": Binary(content),
            "text": text,
            "uploaded_at": now,
        },
        upsert=True,
    )
    url = resume_path(student["student_id"])
    get_collection(COLLECTIONS["students"]).update_one(
        {"_id": student["student_id"]}, {"$set": {"resume_url": url, "updated_at": now}}
    )
    logger.info("Resume uploaded for student %s (%d bytes)", student["student_id"], len(content))

    return {
        "message": "Resume uploaded successfully",
        "filename": file.filename,
        "size": len(content),
        "resume_url": url,
        "word_count": len(text.split()),
        "text_preview": text[:500],
    }


@router.get("/resume/formats")
async def resume_formats():
    """Get supported resume file formats."""
    return get_supported_formats()


def _authorize_company(user: dict, student: dict, request: Request) -> None:
    """Companies need approval, visibility and remaining download quota."""
    if not user["is_approved"]:
        raise HTTPException(status_code=403, detail="Account pending approval")
    company = get_collection(COLLECTIONS["companies"]).find_one({
        "_id": user["doc"].get("company_profile"), "is_deleted": {"$ne": True}
    })
    if not company:
        raise HTTPException(status_code=404, detail="Company profile not found")
    if company.get("is_suspended"):
        raise HTTPException(status_code=403, detail="Company account is suspended")

    visibility = ensure_students_visible(company)
    scope = college_scope(company, visibility)
    if not visibility["visible_fields"]["resume"] or not student.get("is_verified") or (
        scope is not None and student["college"] not in scope
    ):
        raise HTTPException(status_code=403, detail="You do not have access to this resume")

    if not check_download_limits(company["_id"])["can_download"]:
        raise HTTPException(status_code=429, detail="Download limit reached. Please try again later.")
    increment_download_count(company["_id"], student["_id"], user["user_id"], "resume_download")
    ActivityLogService().log(
        user["user_id"], "view_resume", "Student", student["_id"],
        {"company_name": company["name"]}, request,
    )


@router.get("/resume/{student_id}")
async def download_resume(student_id: str, request: Request, user: dict = Depends(get_current_user)):
    """
    Stream a resume to the student, their college admin, a super admin,
    or an approved company (counted against its download limits).
    """
    student = get_collection(COLLECTIONS["students"]).find_one(
        {"_id": to_object_id(student_id), "is_deleted": {"$ne": True}}
    )
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")

    role = user["role"]
    if role == "student":
        if user["doc"].get("student_profile") != student["_id"]:
            raise HTTPException(status_code=403, detail="You do not have access to this resume")
    elif role == "college_admin":
        if user["doc"].get("college_profile") != student["college"]:
            raise HTTPException(status_code=403, detail="You do not have access to this resume")

    resume = get_collection(COLLECTIONS["resumes"]).find_one({"student": student["_id"]})
    if not resume:
        raise HTTPException(status_code=404, detail="Resume not found")

    if role == "company":
        _authorize_company(user, student, request)

    return Response(
        content=bytes(resume["content"]),
        media_type=resume["content_type"],
        headers={"Content-Disposition": content_disposition(resume["filename"])},
    )


# ============================================================
# LOGOS
# ============================================================

def logo_path(owner_id) -> str:
    return f"/api/upload/logo/{owner_id}"


@router.post("/logo")
async def upload_logo(
    file: UploadFile = File(..., description="Logo image (JPG, PNG or WEBP)"),
    user: dict = Depends(require_roles("college_admin", "company", approved=False))
):
    """
    Upload the logo of the caller's college or company (max 2MB).

    A new upload replaces the previous one and updates the profile's `logo`.
    """
    if user["role"] == "college_admin":
        owner_id, collection = user["doc"].get("college_profile"), COLLECTIONS["colleges"]
    else:
        owner_id, collection = user["doc"].get("company_profile"), COLLECTIONS["companies"]
    if not owner_id:
        raise HTTPException(status_code=404, detail="Profile not found")

    content, ext = await read_upload(file, set(LOGO_CONTENT_TYPES), max_bytes=LOGO_MAX_BYTES)
    now = utcnow()
    get_collection(COLLECTIONS["logos"]).replace_one(
        {"owner": owner_id},
        {
            "owner": owner_id,
            "filename": file.filename,
            "content_type": LOGO_CONTENT_TYPES[ext],
            "size": len(content),
            "content": Binary(content),
            "uploaded_at": now,
        },
        upsert=True,
    )
    url = logo_path(owner_id)
    get_collection(collection).update_one({"_id": owner_id}, {"$set": {"logo": url, "updated_at": now}})
    logger.info("Logo uploaded for %s %s (%d bytes)", user["role"], owner_id, len(content))

    return {"message": "Logo uploaded successfully", "filename": file.filename, "url": url}


@router.get("/logo/{owner_id}")
async def get_logo(owner_id: str):
    """Logos are public so job listings can show them."""
    logo = get_collection(COLLECTIONS["logos"]).find_one({"owner": to_object_id(owner_id)})
    if not logo:
        raise HTTPException(status_code=404, detail="Logo not found")
    return Response(
        content=bytes(logo["content"]),
        media_type=logo["content_type"],
        headers={"Content-Disposition": content_disposition(logo["filename"])},
    )
