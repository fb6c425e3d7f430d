"""
Super Admin Routes

GET    /super-admin/stats                         - Platform dashboard
GET    /super-admin/colleges                      - List colleges
POST   /super-admin/colleges                      - Create college with admin
GET    /super-admin/colleges/{id}                 - College detail
PATCH  /super-admin/colleges/{id}/approve         - Approve/reject college
DELETE /super-admin/colleges/{id}                 - Soft delete college
GET    /super-admin/colleges/{id}/students        - Students of a college
POST   /super-admin/colleges/{id}/students        - Add student to a college
GET    /super-admin/companies                     - List companies/agencies
POST   /super-admin/companies                     - Create company/agency
PATCH  /super-admin/companies/{id}/approve        - Approve/reject company
PATCH  /super-admin/companies/{id}/suspend        - Suspend/unsuspend company
PATCH  /super-admin/companies/{id}/download-limits - Set download limits
GET    /super-admin/users                         - List users
PATCH  /super-admin/users/{id}/toggle-status      - Activate/deactivate user
GET    /super-admin/jobs                          - List all jobs
"""

from typing import Optional
from bson import ObjectId
from fastapi import APIRouter, HTTPException, Depends, Query, Request
from pymongo.errors import DuplicateKeyError

from app.core.auth import get_current_super_admin
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    CollegeCreate, CompanyCreate, StudentCreate, ApprovalRequest, SuspendRequest,
    DownloadLimitsUpdate, MessageResponse, PaginatedResponse, CompanyType, UserRole, JobStatus
)
from app.services.accounts import (
    new_user_doc, new_college_doc, new_company_doc, new_student_doc, apply_approval_decision
)
from app.services.activity_service import ActivityLogService
from app.services.mongo_service import (
    paginate, paginated_response, serialize_doc, serialize_user, search_regex,
    to_object_id, utcnow
)

router = APIRouter(prefix="/super-admin", tags=["Super Admin"])


# ============================================================
# DASHBOARD
# ============================================================

@router.get("/stats")
async def get_dashboard_stats(admin: dict = Depends(get_current_super_admin)):
    """Platform-wide counts for the super admin dashboard."""
    colleges = get_collection(COLLECTIONS["colleges"])
    companies = get_collection(COLLECTIONS["companies"])
    students = get_collection(COLLECTIONS["students"])
    jobs = get_collection(COLLECTIONS["jobs"])
    applications = get_collection(COLLECTIONS["applications"])
    users = get_collection(COLLECTIONS["users"])

    live = {"is_deleted": {"$ne": True}}
    by_status = {
        row["_id"]: row["count"]
        for row in applications.aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}])
    }

    recent_logs = list(
        get_collection(COLLECTIONS["activity_logs"]).find().sort("created_at", -1).limit(10)
    )
    emails = {
        u["_id"]: u["email"]
        for u in users.find({"_id": {"$in": [log["user"] for log in recent_logs]}}, {"email": 1})
    }
    for log in recent_logs:
        log["user_email"] = emails.get(log["user"])

    return {
        "colleges": {
            "total": colleges.count_documents(live),
            "verified": colleges.count_documents({**live, "is_verified": True}),
            "pending": colleges.count_documents({**live, "is_verified": False}),
        },
        "companies": {
            "total": companies.count_documents({**live, "type": "company"}),
            "agencies": companies.count_documents({**live, "type": "placement_agency"}),
            "pending": companies.count_documents({**live, "is_approved": False}),
        },
        "students": {
            "total": students.count_documents(live),
            "verified": students.count_documents({**live, "is_verified": True}),
            "placed": students.count_documents({**live, "placement_status": "placed"}),
        },
        "jobs": {
            "total": jobs.count_documents({}),
            "open": jobs.count_documents({"status": "open"}),
        },
        "pending_approvals": users.count_documents({"is_approved": False, "role": {"$ne": "student"}}),
        "applications_by_status": by_status,
        "recent_activity": [serialize_doc(log) for log in recent_logs],
    }


# ============================================================
# COLLEGES
# ============================================================

@router.get("/colleges", response_model=PaginatedResponse)
async def list_colleges(
    status: str = Query("all", pattern="^(all|pending|verified)$"),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_current_super_admin)
):
    """List colleges by verification status, searchable by name/code/city."""
    query = {"is_deleted": {"$ne": True}}
    if status == "pending":
        query["is_verified"] = False
    elif status == "verified":
        query["is_verified"] = True
    if search:
        regex = search_regex(search)
        query["$or"] = [{"name": regex}, {"code": regex}, {"address.city": regex}]

    result = paginate(get_collection(COLLECTIONS["colleges"]), query, page, limit, sort=[("created_at", -1)])
    return paginated_response(result)


@router.post("/colleges", status_code=201)
async def create_college(data: CollegeCreate, admin: dict = Depends(get_current_super_admin)):
    """Create a verified college together with an approved admin account."""
    users = get_collection(COLLECTIONS["users"])
    colleges = get_collection(COLLECTIONS["colleges"])

    if users.find_one({"email": data.admin_email.lower()}):
        raise HTTPException(status_code=400, detail="Email already registered")
    if colleges.find_one({"code": data.code.strip().upper()}):
        raise HTTPException(status_code=400, detail="College code already exists")

    user_id = ObjectId()
    college = new_college_doc(
        data.model_dump(exclude={"admin_email", "admin_password"}),
        admin_id=user_id, verified=True, verified_by=admin["user_id"],
    )
    college_id = colleges.insert_one(college).inserted_id
    try:
        users.insert_one(new_user_doc(data.admin_email, data.admin_password, "college_admin", True,
                                      profile_id=college_id, user_id=user_id))
    except DuplicateKeyError:
        colleges.delete_one({"_id": college_id})
        raise

    return {"message": "College created successfully", "college": serialize_doc(college)}


def _get_college(college_id: str) -> dict:
    college = get_collection(COLLECTIONS["colleges"]).find_one(
        {"_id": to_object_id(college_id), "is_deleted": {"$ne": True}}
    )
    if not college:
        raise HTTPException(status_code=404, detail="College not found")
    return college


@router.get("/colleges/{college_id}")
async def get_college(college_id: str, admin: dict = Depends(get_current_super_admin)):
    """College detail with its admin account and live student counts."""
    college = _get_college(college_id)
    students = get_collection(COLLECTIONS["students"])
    live = {"college": college["_id"], "is_deleted": {"$ne": True}}
    admin_user = get_collection(COLLECTIONS["users"]).find_one({"_id": college.get("admin")})

    return {
        "college": serialize_doc(college),
        "admin": serialize_user(admin_user),
        "student_counts": {
            "total": students.count_documents(live),
            "verified": students.count_documents({**live, "is_verified": True}),
            "placed": students.count_documents({**live, "placement_status": "placed"}),
        },
    }


# Sends SMTP email: sync handler, runs in the threadpool
@router.patch("/colleges/{college_id}/approve", response_model=MessageResponse)
def approve_college(
    college_id: str,
    data: ApprovalRequest,
    request: Request,
    admin: dict = Depends(get_current_super_admin)
):
    """Approve or reject a college registration and its admin account."""
    college = _get_college(college_id)
    now = utcnow()
    update = {"is_verified": data.approved, "updated_at": now}
    if data.approved:
        update.update({"verified_at": now, "verified_by": admin["user_id"], "rejection_reason": None})
    else:
        update.update({"rejection_reason": data.reason})
    get_collection(COLLECTIONS["colleges"]).update_one({"_id": college["_id"]}, {"$set": update})

    admin_user = get_collection(COLLECTIONS["users"]).find_one({"_id": college.get("admin")})
    if admin_user:
        apply_approval_decision(admin_user, data.approved, data.reason)

    ActivityLogService().log(
        admin["user_id"], "approve_college", "College", college["_id"],
        {"college_name": college["name"], "approved": data.approved, "reason": data.reason},
        request,
    )
    return MessageResponse(message=f"College {'approved' if data.approved else 'rejected'} successfully")


@router.delete("/colleges/{college_id}", response_model=MessageResponse)
async def delete_college(college_id: str, admin: dict = Depends(get_current_super_admin)):
    """Soft delete a college and deactivate its admin login."""
    college = _get_college(college_id)
    get_collection(COLLECTIONS["colleges"]).update_one(
        {"_id": college["_id"]},
        {"$set": {"is_deleted": True, "is_active": False, "updated_at": utcnow()}}
    )
    get_collection(COLLECTIONS["users"]).update_one(
        {"_id": college.get("admin")}, {"$set": {"is_active": False}}
    )
    return MessageResponse(message="College deleted successfully")


@router.get("/colleges/{college_id}/students", response_model=PaginatedResponse)
async def list_college_students(
    college_id: str,
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_current_super_admin)
):
    college = _get_college(college_id)
    query = {"college": college["_id"], "is_deleted": {"$ne": True}}
    if search:
        regex = search_regex(search)
        query["$or"] = [{"name.first_name": regex}, {"name.last_name": regex},
                        {"email": regex}, {"roll_number": regex}]
    result = paginate(get_collection(COLLECTIONS["students"]), query, page, limit, sort=[("roll_number", 1)])
    return paginated_response(result)


@router.post("/colleges/{college_id}/students", status_code=201)
async def add_college_student(
    college_id: str,
    data: StudentCreate,
    admin: dict = Depends(get_current_super_admin)
):
    """Add a verified student record to any college."""
    college = _get_college(college_id)
    student = new_student_doc(data.model_dump(), college["_id"], "manual", admin["user_id"], verified=True)
    get_collection(COLLECTIONS["students"]).insert_one(student)
    get_collection(COLLECTIONS["colleges"]).update_one(
        {"_id": college["_id"]},
        {"$inc": {"stats.total_students": 1, "stats.verified_students": 1}}
    )
    return {"message": "Student added successfully", "student": serialize_doc(student)}


# ============================================================
# COMPANIES / AGENCIES
# ============================================================

@router.get("/companies", response_model=PaginatedResponse)
async def list_companies(
    type: Optional[CompanyType] = Query(None),
    status: str = Query("all", pattern="^(all|pending|approved|suspended)$"),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_current_super_admin)
):
    """List companies and placement agencies."""
    query = {"is_deleted": {"$ne": True}}
    if type:
        query["type"] = type.value
    if status == "pending":
        query["is_approved"] = False
    elif status == "approved":
        query["is_approved"] = True
    elif status == "suspended":
        query["is_suspended"] = True
    if search:
        regex = search_regex(search)
        query["$or"] = [{"name": regex}, {"industry": regex}]

    result = paginate(
        get_collection(COLLECTIONS["companies"]), query, page, limit,
        sort=[("created_at", -1)], projection={"download_history": 0}
    )
    return paginated_response(result)


@router.post("/companies", status_code=201)
async def create_company(data: CompanyCreate, admin: dict = Depends(get_current_super_admin)):
    """Create an approved company or agency together with its login."""
    users = get_collection(COLLECTIONS["users"])
    companies = get_collection(COLLECTIONS["companies"])
    if users.find_one({"email": data.email.lower()}):
        raise HTTPException(status_code=400, detail="Email already registered")

    user_id = ObjectId()
    company = new_company_doc(
        data.model_dump(exclude={"email", "password"}, mode="json"),
        user_id=user_id, approved=True, approved_by=admin["user_id"],
    )
    company_id = companies.insert_one(company).inserted_id
    try:
        users.insert_one(new_user_doc(data.email, data.password, "company", True,
                                      profile_id=company_id, user_id=user_id))
    except DuplicateKeyError:
        companies.delete_one({"_id": company_id})
        raise

    label = "Agency" if data.type == CompanyType.placement_agency else "Company"
    return {"message": f"{label} created successfully", "company": serialize_doc(company)}


def _get_company(company_id: str) -> dict:
    company = get_collection(COLLECTIONS["companies"]).find_one(
        {"_id": to_object_id(company_id), "is_deleted": {"$ne": True}}
    )
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return company


# Sends SMTP email: sync handler, runs in the threadpool
@router.patch("/companies/{company_id}/approve", response_model=MessageResponse)
def approve_company(
    company_id: str,
    data: ApprovalRequest,
    request: Request,
    admin: dict = Depends(get_current_super_admin)
):
    """Approve or reject a company/agency registration."""
    company = _get_company(company_id)
    now = utcnow()
    update = {"is_approved": data.approved, "updated_at": now}
    if data.approved:
        update.update({"approved_at": now, "approved_by": admin["user_id"], "rejection_reason": None})
    else:
        update.update({"rejection_reason": data.reason})
    get_collection(COLLECTIONS["companies"]).update_one({"_id": company["_id"]}, {"$set": update})

    user = get_collection(COLLECTIONS["users"]).find_one({"_id": company.get("user")})
    if user:
        apply_approval_decision(user, data.approved, data.reason)

    ActivityLogService().log(
        admin["user_id"], "approve_company", "Company", company["_id"],
        {"company_name": company["name"], "type": company.get("type"),
         "approved": data.approved, "reason": data.reason},
        request,
    )
    return MessageResponse(message=f"Company {'approved' if data.approved else 'rejected'} successfully")


@router.patch("/companies/{company_id}/suspend", response_model=MessageResponse)
async def suspend_company(company_id: str, data: SuspendRequest, admin: dict = Depends(get_current_super_admin)):
    company = _get_company(company_id)
    get_collection(COLLECTIONS["companies"]).update_one(
        {"_id": company["_id"]}, {"$set": {"is_suspended": data.suspended, "updated_at": utcnow()}}
    )
    return MessageResponse(message=f"Company {'suspended' if data.suspended else 'reactivated'} successfully")


@router.patch("/companies/{company_id}/download-limits", response_model=MessageResponse)
async def update_download_limits(
    company_id: str,
    data: DownloadLimitsUpdate,
    admin: dict = Depends(get_current_super_admin)
):
    company = _get_company(company_id)
    get_collection(COLLECTIONS["companies"]).update_one(
        {"_id": company["_id"]},
        {"$set": {
            "download_tracking.daily_limit": data.daily_limit,
            "download_tracking.monthly_limit": data.monthly_limit,
        }}
    )
    return MessageResponse(message="Download limits updated successfully")


# ============================================================
# USERS
# ============================================================

@router.get("/users", response_model=PaginatedResponse)
async def list_users(
    role: Optional[UserRole] = Query(None),
    is_approved: Optional[bool] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_current_super_admin)
):
    query = {}
    if role:
        query["role"] = role.value
    if is_approved is not None:
        query["is_approved"] = is_approved
    if is_active is not None:
        query["is_active"] = is_active
    if search:
        query["email"] = search_regex(search)

    result = paginate(
        get_collection(COLLECTIONS["users"]), query, page, limit,
        sort=[("created_at", -1)], projection={"password": 0}
    )
    return paginated_response(result, serializer=serialize_user)


@router.patch("/users/{user_id}/toggle-status")
async def toggle_user_status(user_id: str, admin: dict = Depends(get_current_super_admin)):
    """Activate or deactivate a user account."""
    target_id = to_object_id(user_id)
    if target_id == admin["user_id"]:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    users = get_collection(COLLECTIONS["users"])
    user = users.find_one({"_id": target_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    is_active = not user.get("is_active", True)
    users.update_one({"_id": target_id}, {"$set": {"is_active": is_active, "updated_at": utcnow()}})
    return {
        "message": f"User {'activated' if is_active else 'deactivated'} successfully",
        "is_active": is_active,
    }


# ============================================================
# JOBS
# ============================================================

@router.get("/jobs", response_model=PaginatedResponse)
async def list_all_jobs(
    status: Optional[JobStatus] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: dict = Depends(get_current_super_admin)
):
    query = {}
    if status:
        query["status"] = status.value
    if search:
        query["title"] = search_regex(search)
    result = paginate(get_collection(COLLECTIONS["jobs"]), query, page, limit, sort=[("created_at", -1)])
    return paginated_response(result)
