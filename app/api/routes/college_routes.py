"""
College Admin Routes

GET    /college/stats                      - Dashboard stats
GET    /college/profile                    - College profile
PUT    /college/profile                    - Update profile
GET    /college/settings                   - Self-signup and placement rules
PUT    /college/settings                   - Update settings
GET    /college/students                   - List/search students
POST   /college/students                   - Add student
POST   /college/students/bulk              - Bulk add (JSON rows)
POST   /college/students/bulk-upload       - Bulk add (Excel/CSV)
GET    /college/students/template          - Excel template
GET    /college/students/export            - Export students (CSV/XLSX)
GET    /college/students/{id}              - Student detail
PUT    /college/students/{id}              - Update student
DELETE /college/students/{id}              - Soft delete student
PATCH  /college/students/{id}/verify       - Verify student
PATCH  /college/students/{id}/reject       - Reject student
PATCH  /college/students/{id}/star         - Toggle star student
POST   /college/students/{id}/account      - Create student login
GET    /college/departments                - Departments in use
GET    /college/placements                 - Placement report
GET    /college/jobs                       - Jobs visible to the college
GET    /college/access-requests            - Company access requests
PATCH  /college/access-requests/{company}  - Approve/reject access
"""

import logging
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends, Query, Request, UploadFile, File

from app.core.auth import get_current_college_admin
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    CollegeUpdate, CollegeSettings, StudentCreate, StudentUpdate, StudentRejectRequest,
    StudentAccountCreate, BulkStudentsRequest, AccessDecision, MessageResponse,
    PaginatedResponse, PlacementStatus, ExportFormat
)
from app.services import email_service
from app.services.accounts import new_user_doc, new_student_doc
from app.services.activity_service import ActivityLogService
from app.services.mongo_service import (
    paginate, paginated_response, serialize_doc, serialize_docs, search_regex, to_object_id, utcnow
)
from app.services.notification_service import NotificationService, notification_template
from app.services.profile_completeness import calculate_profile_completeness
from app.services.student_import import import_students
from app.services.student_visibility import attach_college_names
from app.utils.excel import ALLOWED_SHEET_EXTENSIONS, parse_student_sheet, generate_student_template
from app.utils.exporter import export_rows, file_response, format_student_rows
from app.utils.file_upload import read_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/college", tags=["College Admin"])

SORT_FIELDS = {"created_at", "name.first_name", "roll_number", "cgpa", "batch", "department"}


# ============================================================
# DASHBOARD / PROFILE
# ============================================================

@router.get("/stats")
async def get_stats(admin: dict = Depends(get_current_college_admin)):
    """Student totals, department breakdown, recent students and visible jobs."""
    students = get_collection(COLLECTIONS["students"])
    live = {"college": admin["college_id"], "is_deleted": {"$ne": True}}

    breakdown = {}
    for s in students.find(live, {"department": 1, "placement_status": 1}):
        dept = breakdown.setdefault(s.get("department") or "Unknown", {"total": 0, "placed": 0})
        dept["total"] += 1
        if s.get("placement_status") == "placed":
            dept["placed"] += 1
    departments = [{"department": name, **counts} for name, counts in sorted(breakdown.items())]
    recent = list(students.find(live).sort("created_at", -1).limit(5))

    return {
        "students": {
            "total": students.count_documents(live),
            "verified": students.count_documents({**live, "is_verified": True}),
            "unverified": students.count_documents({**live, "is_verified": False}),
            "placed": students.count_documents({**live, "placement_status": "placed"}),
            "in_process": students.count_documents({**live, "placement_status": "in_process"}),
            "star": students.count_documents({**live, "is_star_student": True}),
        },
        "departments": departments,
        "recent_students": serialize_docs(recent),
        "active_jobs": get_collection(COLLECTIONS["jobs"]).count_documents(_visible_jobs_query(admin["college_id"])),
        "pending_access_requests": get_collection(COLLECTIONS["companies"]).count_documents({
            "college_access": {"$elemMatch": {"college": admin["college_id"], "status": "pending"}}
        }),
    }


@router.get("/profile")
async def get_profile(admin: dict = Depends(get_current_college_admin)):
    return serialize_doc(admin["college"])


@router.put("/profile")
async def update_profile(data: CollegeUpdate, admin: dict = Depends(get_current_college_admin)):
    updates = data.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    updates["updated_at"] = utcnow()

    colleges = get_collection(COLLECTIONS["colleges"])
    colleges.update_one({"_id": admin["college_id"]}, {"$set": updates})
    return {"message": "Profile updated successfully",
            "college": serialize_doc(colleges.find_one({"_id": admin["college_id"]}))}


@router.get("/settings")
async def get_college_settings(admin: dict = Depends(get_current_college_admin)):
    return admin["college"].get("settings", CollegeSettings().model_dump())


@router.put("/settings")
async def update_college_settings(data: CollegeSettings, admin: dict = Depends(get_current_college_admin)):
    """Replace the self-signup toggle and placement rules."""
    get_collection(COLLECTIONS["colleges"]).update_one(
        {"_id": admin["college_id"]},
        {"$set": {"settings": data.model_dump(), "updated_at": utcnow()}}
    )
    return {"message": "Settings updated successfully", "settings": data.model_dump()}


# ============================================================
# STUDENTS
# ============================================================

def _student_query(
    college_id,
    search: Optional[str] = None,
    department: Optional[str] = None,
    batch: Optional[int] = None,
    is_verified: Optional[bool] = None,
    placement_status: Optional[PlacementStatus] = None,
    is_star_student: Optional[bool] = None,
) -> dict:
    query = {"college": college_id, "is_deleted": {"$ne": True}}
    if search:
        regex = search_regex(search)
        query["$or"] = [
            {"name.first_name": regex}, {"name.last_name": regex},
            {"email": regex}, {"roll_number": regex},
        ]
    if department:
        query["department"] = department
    if batch:
        query["batch"] = batch
    if is_verified is not None:
        query["is_verified"] = is_verified
    if placement_status:
        query["placement_status"] = placement_status.value
    if is_star_student is not None:
        query["is_star_student"] = is_star_student
    return query


def _get_student(admin: dict, student_id: str) -> dict:
    student = get_collection(COLLECTIONS["students"]).find_one({
        "_id": to_object_id(student_id),
        "college": admin["college_id"],
        "is_deleted": {"$ne": True},
    })
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@router.get("/students", response_model=PaginatedResponse)
async def list_students(
    search: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    batch: Optional[int] = Query(None),
    is_verified: Optional[bool] = Query(None),
    placement_status: Optional[PlacementStatus] = Query(None),
    is_star_student: Optional[bool] = Query(None),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_current_college_admin)
):
    """List the college's students with search, filters and sorting."""
    if sort_by not in SORT_FIELDS:
        raise HTTPException(status_code=400, detail=f"Cannot sort by '{sort_by}'")
    query = _student_query(admin["college_id"], search, department, batch,
                           is_verified, placement_status, is_star_student)
    result = paginate(
        get_collection(COLLECTIONS["students"]), query, page, limit,
        sort=[(sort_by, 1 if order == "asc" else -1)]
    )
    return paginated_response(result)


@router.post("/students", status_code=201)
async def add_student(data: StudentCreate, admin: dict = Depends(get_current_college_admin)):
    """Manually add a student. Students added by the college are verified."""
    students = get_collection(COLLECTIONS["students"])
    if students.find_one({"email": data.email.lower()}):
        raise HTTPException(status_code=400, detail="A student with this email already exists")
    if students.find_one({"college": admin["college_id"], "roll_number": data.roll_number}):
        raise HTTPException(status_code=400, detail="Roll number already exists for this college")

    student = new_student_doc(data.model_dump(), admin["college_id"], "manual", admin["user_id"], verified=True)
    students.insert_one(student)
    get_collection(COLLECTIONS["colleges"]).update_one(
        {"_id": admin["college_id"]},
        {"$inc": {"stats.total_students": 1, "stats.verified_students": 1}}
    )
    return {"message": "Student added successfully", "student": serialize_doc(student)}


def _bulk_result(result: dict, admin: dict, request: Request, source: str,
                 background_tasks: BackgroundTasks) -> dict:
    background_tasks.add_task(
        email_service.send_bulk_upload_success_email,
        admin["email"], len(result["success"]), len(result["failed"]),
    )
    ActivityLogService().log(
        admin["user_id"], "bulk_upload", "College", admin["college_id"],
        {"source": source, "success": len(result["success"]), "failed": len(result["failed"])},
        request,
    )
    return {
        "message": f"{len(result['success'])} students added, {len(result['failed'])} failed",
        "success": result["success"],
        "failed": result["failed"],
    }


@router.post("/students/bulk")
async def bulk_add_students(
    data: BulkStudentsRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_current_college_admin)
):
    """Add many students from JSON rows; each row succeeds or fails on its own."""
    result = import_students(data.students, admin["college"], admin["user_id"], "bulk_upload")
    return _bulk_result(result, admin, request, "json", background_tasks)


@router.post("/students/bulk-upload")
async def bulk_upload_students(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    admin: dict = Depends(get_current_college_admin)
):
    """
    Add students from an Excel (.xlsx/.xls) or CSV sheet.

    Headers are matched loosely (e.g. "First Name" or "firstName");
    download /college/students/template for the expected layout.
    """
    content, _ = await read_upload(file, ALLOWED_SHEET_EXTENSIONS)
    try:
        rows = parse_student_sheet(content, file.filename)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not rows:
        raise HTTPException(status_code=400, detail="No valid student rows found in file")

    result = import_students(rows, admin["college"], admin["user_id"], "bulk_upload")
    return _bulk_result(result, admin, request, file.filename, background_tasks)


@router.get("/students/template")
async def download_template(admin: dict = Depends(get_current_college_admin)):
    return file_response(generate_student_template(), "student_upload_template", "xlsx")


@router.get("/students/export")
async def export_students(
    request: Request,
    format: ExportFormat = Query(ExportFormat.csv),
    search: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    batch: Optional[int] = Query(None),
    is_verified: Optional[bool] = Query(None),
    placement_status: Optional[PlacementStatus] = Query(None),
    admin: dict = Depends(get_current_college_admin)
):
    """Export the filtered student list as CSV or XLSX."""
    query = _student_query(admin["college_id"], search, department, batch, is_verified, placement_status)
    students = list(get_collection(COLLECTIONS["students"]).find(query).sort("roll_number", 1))
    rows = format_student_rows(attach_college_names(students))
    response = export_rows(rows, "students", format.value, sheet_name="Students")

    ActivityLogService().log(
        admin["user_id"], "export_data", "Student", None,
        {"count": len(rows), "format": format.value}, request,
    )
    return response


@router.get("/students/{student_id}")
async def get_student(student_id: str, admin: dict = Depends(get_current_college_admin)):
    """Student detail with profile completeness and applications."""
    student = _get_student(admin, student_id)
    applications = list(
        get_collection(COLLECTIONS["applications"]).find({"student": student["_id"]}).sort("applied_at", -1)
    )
    jobs = {
        j["_id"]: j for j in get_collection(COLLECTIONS["jobs"]).find(
            {"_id": {"$in": [a["job"] for a in applications]}}, {"title": 1, "company": 1}
        )
    }
    for app in applications:
        app["job_title"] = (jobs.get(app["job"]) or {}).get("title")

    return {
        "student": serialize_doc(student),
        "profile_completeness": calculate_profile_completeness(student),
        "applications": serialize_docs(applications),
    }


@router.put("/students/{student_id}")
async def update_student(
    student_id: str,
    data: StudentUpdate,
    request: Request,
    admin: dict = Depends(get_current_college_admin)
):
    student = _get_student(admin, student_id)
    updates = data.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    students = get_collection(COLLECTIONS["students"])
    if "email" in updates and updates["email"].lower() != student["email"]:
        updates["email"] = updates["email"].lower()
        if students.find_one({"email": updates["email"]}):
            raise HTTPException(status_code=400, detail="A student with this email already exists")
    if "roll_number" in updates and updates["roll_number"] != student["roll_number"]:
        if students.find_one({"college": admin["college_id"], "roll_number": updates["roll_number"]}):
            raise HTTPException(status_code=400, detail="Roll number already exists for this college")

    updates["updated_at"] = utcnow()
    students.update_one({"_id": student["_id"]}, {"$set": updates})

    was_placed = student.get("placement_status") == "placed"
    is_placed = updates.get("placement_status", student.get("placement_status")) == "placed"
    if was_placed != is_placed:
        get_collection(COLLECTIONS["colleges"]).update_one(
            {"_id": admin["college_id"]}, {"$inc": {"stats.placed_students": 1 if is_placed else -1}}
        )

    ActivityLogService().log(
        admin["user_id"], "update_student", "Student", student["_id"],
        {"fields": sorted(k for k in updates if k != "updated_at")}, request,
    )
    return {"message": "Student updated successfully",
            "student": serialize_doc(students.find_one({"_id": student["_id"]}))}


@router.delete("/students/{student_id}", response_model=MessageResponse)
async def delete_student(student_id: str, request: Request, admin: dict = Depends(get_current_college_admin)):
    """Soft delete a student and keep the college counters in step."""
    student = _get_student(admin, student_id)
    get_collection(COLLECTIONS["students"]).update_one(
        {"_id": student["_id"]}, {"$set": {"is_deleted": True, "updated_at": utcnow()}}
    )

    dec = {"stats.total_students": -1}
    if student.get("is_verified"):
        dec["stats.verified_students"] = -1
    if student.get("placement_status") == "placed":
        dec["stats.placed_students"] = -1
    get_collection(COLLECTIONS["colleges"]).update_one({"_id": admin["college_id"]}, {"$inc": dec})

    if student.get("user"):
        get_collection(COLLECTIONS["users"]).update_one({"_id": student["user"]}, {"$set": {"is_active": False}})

    ActivityLogService().log(
        admin["user_id"], "delete_student", "Student", student["_id"],
        {"email": student["email"], "roll_number": student["roll_number"]}, request,
    )
    return MessageResponse(message="Student deleted successfully")


@router.patch("/students/{student_id}/verify", response_model=MessageResponse)
async def verify_student(
    student_id: str,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_current_college_admin)
):
    """Verify a student, approve their login and tell them about it."""
    student = _get_student(admin, student_id)
    if student.get("is_verified"):
        raise HTTPException(status_code=400, detail="Student is already verified")

    now = utcnow()
    get_collection(COLLECTIONS["students"]).update_one({"_id": student["_id"]}, {"$set": {
        "is_verified": True,
        "verified_at": now,
        "verified_by": admin["user_id"],
        "is_rejected": False,
        "rejection_reason": None,
        "updated_at": now,
    }})
    get_collection(COLLECTIONS["colleges"]).update_one(
        {"_id": admin["college_id"]}, {"$inc": {"stats.verified_students": 1}}
    )
    if student.get("user"):
        get_collection(COLLECTIONS["users"]).update_one(
            {"_id": student["user"]}, {"$set": {"is_approved": True, "updated_at": now}}
        )

    NotificationService().create(student.get("user"), notification_template("student_verified"),
                                 link="/student/profile", related_model="Student", related_id=student["_id"])
    background_tasks.add_task(email_service.send_student_verified_email, student)
    return MessageResponse(message="Student verified successfully")


@router.patch("/students/{student_id}/reject", response_model=MessageResponse)
async def reject_student(
    student_id: str,
    data: StudentRejectRequest,
    admin: dict = Depends(get_current_college_admin)
):
    student = _get_student(admin, student_id)
    get_collection(COLLECTIONS["students"]).update_one({"_id": student["_id"]}, {"$set": {
        "is_verified": False,
        "is_rejected": True,
        "rejection_reason": data.reason,
        "updated_at": utcnow(),
    }})
    if student.get("is_verified"):
        get_collection(COLLECTIONS["colleges"]).update_one(
            {"_id": admin["college_id"]}, {"$inc": {"stats.verified_students": -1}}
        )
    return MessageResponse(message="Student rejected")


@router.patch("/students/{student_id}/star")
async def toggle_star_student(student_id: str, admin: dict = Depends(get_current_college_admin)):
    student = _get_student(admin, student_id)
    is_star = not student.get("is_star_student", False)
    get_collection(COLLECTIONS["students"]).update_one(
        {"_id": student["_id"]}, {"$set": {"is_star_student": is_star, "updated_at": utcnow()}}
    )
    return {"message": "Star student updated", "is_star_student": is_star}


@router.post("/students/{student_id}/account", status_code=201)
async def create_student_account(
    student_id: str,
    data: StudentAccountCreate,
    background_tasks: BackgroundTasks,
    admin: dict = Depends(get_current_college_admin)
):
    """Create a login for a student record that has none."""
    student = _get_student(admin, student_id)
    if student.get("user"):
        raise HTTPException(status_code=400, detail="Student already has an account")

    users = get_collection(COLLECTIONS["users"])
    if users.find_one({"email": student["email"]}):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = new_user_doc(student["email"], data.password, "student", bool(student.get("is_verified")),
                        profile_id=student["_id"])
    users.insert_one(user)
    get_collection(COLLECTIONS["students"]).update_one({"_id": student["_id"]}, {"$set": {"user": user["_id"]}})
    background_tasks.add_task(email_service.send_welcome_email, user)
    return {"message": "Student account created successfully", "user_id": str(user["_id"])}


# ============================================================
# DEPARTMENTS / PLACEMENTS / JOBS
# ============================================================

@router.get("/departments")
async def get_departments(admin: dict = Depends(get_current_college_admin)):
    in_use = get_collection(COLLECTIONS["students"]).distinct(
        "department", {"college": admin["college_id"], "is_deleted": {"$ne": True}}
    )
    configured = admin["college"].get("departments") or []
    return {"departments": sorted({d for d in list(configured) + list(in_use) if d})}


@router.get("/placements")
async def get_placements(
    batch: Optional[int] = Query(None),
    admin: dict = Depends(get_current_college_admin)
):
    """Placed students and the placement rate of each department."""
    query = {"college": admin["college_id"], "is_deleted": {"$ne": True}}
    if batch:
        query["batch"] = batch
    students = list(get_collection(COLLECTIONS["students"]).find(query))

    rates = {}
    for s in students:
        dept = rates.setdefault(s.get("department") or "Unknown", {"total": 0, "placed": 0})
        dept["total"] += 1
        if s.get("placement_status") == "placed":
            dept["placed"] += 1
    department_rates = [
        {"department": name, **counts, "rate": round(100 * counts["placed"] / counts["total"], 1)}
        for name, counts in sorted(rates.items())
    ]

    placed = [s for s in students if s.get("placement_status") == "placed"]
    placed.sort(key=lambda s: (s.get("placement_details") or {}).get("placed_at") or utcnow(), reverse=True)
    return {
        "total_students": len(students),
        "total_placed": len(placed),
        "placement_rate": round(100 * len(placed) / len(students), 1) if students else 0,
        "departments": department_rates,
        "placed_students": serialize_docs(placed),
    }


def _visible_jobs_query(college_id) -> dict:
    """Placement drives for this college plus open jobs from any company."""
    return {"$or": [
        {"is_placement_drive": True, "college": college_id},
        {"is_placement_drive": {"$ne": True}, "status": "open"},
    ]}


@router.get("/jobs", response_model=PaginatedResponse)
async def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_current_college_admin)
):
    result = paginate(
        get_collection(COLLECTIONS["jobs"]), _visible_jobs_query(admin["college_id"]),
        page, limit, sort=[("created_at", -1)]
    )
    return paginated_response(result)


# ============================================================
# COMPANY ACCESS REQUESTS
# ============================================================

@router.get("/access-requests")
async def list_access_requests(
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected)$"),
    admin: dict = Depends(get_current_college_admin)
):
    companies = get_collection(COLLECTIONS["companies"]).find(
        {"college_access.college": admin["college_id"], "is_deleted": {"$ne": True}},
        {"name": 1, "type": 1, "industry": 1, "website": 1, "contact_person": 1, "college_access": 1},
    )
    requests = []
    for company in companies:
        entry = next(e for e in company["college_access"] if e["college"] == admin["college_id"])
        if status and entry["status"] != status:
            continue
        requests.append({
            "company_id": str(company["_id"]),
            "name": company["name"],
            "type": company.get("type"),
            "industry": company.get("industry"),
            "website": company.get("website"),
            "contact_person": company.get("contact_person"),
            "status": entry["status"],
            "requested_at": entry.get("requested_at"),
            "responded_at": entry.get("responded_at"),
        })
    return {"requests": requests, "total": len(requests)}


@router.patch("/access-requests/{company_id}", response_model=MessageResponse)
async def respond_access_request(
    company_id: str,
    data: AccessDecision,
    admin: dict = Depends(get_current_college_admin)
):
    result = get_collection(COLLECTIONS["companies"]).update_one(
        {"_id": to_object_id(company_id), "college_access.college": admin["college_id"]},
        {"$set": {
            "college_access.$.status": "approved" if data.approved else "rejected",
            "college_access.$.responded_at": utcnow(),
        }}
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Access request not found")
    return MessageResponse(message=f"Access {'approved' if data.approved else 'rejected'}")
