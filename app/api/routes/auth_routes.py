"""
Authentication Routes

POST /auth/register        - Register college admin, company/agency or student
POST /auth/login           - Login and get JWT token
GET  /auth/me              - Current user with profile
PUT  /auth/password        - Change password
POST /auth/logout          - Logout (tokens are stateless)
POST /auth/forgot-password - Email a password reset link
POST /auth/reset-password  - Set a new password with a reset token
"""

import logging
from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, HTTPException, Depends
from pymongo.errors import DuplicateKeyError

from app.core.auth import (
    hash_password, verify_password, create_access_token, get_current_user,
    create_password_reset_token, verify_password_reset_token
)
from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import (
    RegisterRequest, LoginRequest, TokenResponse, MessageResponse,
    ChangePasswordRequest, ForgotPasswordRequest, ResetPasswordRequest
)
from app.services import email_service
from app.services.accounts import (
    new_user_doc, new_college_doc, new_company_doc, new_student_doc, load_profile
)
from app.services.mongo_service import serialize_doc, serialize_user, utcnow
from app.services.notification_service import NotificationService, notification_template
from app.services.platform_settings import registration_settings, get_section

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_for(user: dict) -> str:
    return create_access_token(data={"sub": str(user["_id"]), "role": user["role"]})


def _register_college(request: RegisterRequest, auto_approved: bool) -> dict:
    colleges = get_collection(COLLECTIONS["colleges"])
    code = request.college_code.strip().upper()
    if colleges.find_one({"code": code}):
        raise HTTPException(status_code=400, detail="College code already exists")

    user_id = ObjectId()
    college = new_college_doc(
        {
            "name": request.college_name,
            "code": code,
            "university": request.university,
            "address": request.address.model_dump(),
            "contact_email": request.email,
            "phone": request.phone,
            "website": request.website,
        },
        admin_id=user_id,
        verified=auto_approved,
    )
    college_id = colleges.insert_one(college).inserted_id
    user = new_user_doc(request.email, request.password, "college_admin", auto_approved,
                        profile_id=college_id, user_id=user_id)
    try:
        get_collection(COLLECTIONS["users"]).insert_one(user)
    except DuplicateKeyError:
        colleges.delete_one({"_id": college_id})
        raise
    return user


def _register_company(request: RegisterRequest, auto_approved: bool) -> dict:
    companies = get_collection(COLLECTIONS["companies"])
    user_id = ObjectId()
    company = new_company_doc(
        {
            "name": request.company_name,
            "type": request.company_type.value,
            "industry": request.industry,
            "website": request.website,
            "contact_person": {
                "name": request.contact_person_name,
                "email": request.email,
                "phone": request.phone,
            },
        },
        user_id=user_id,
        approved=auto_approved,
    )
    company_id = companies.insert_one(company).inserted_id
    user = new_user_doc(request.email, request.password, "company", auto_approved,
                        profile_id=company_id, user_id=user_id)
    try:
        get_collection(COLLECTIONS["users"]).insert_one(user)
    except DuplicateKeyError:
        companies.delete_one({"_id": company_id})
        raise
    return user


def _register_student(request: RegisterRequest, auto_approved: bool, signup: dict) -> dict:
    domains = [d.lower().lstrip("@") for d in signup.get("allowed_domains") or []]
    if domains and request.email.split("@")[1].lower() not in domains:
        raise HTTPException(status_code=403, detail="Email domain is not allowed for self-signup")

    colleges = get_collection(COLLECTIONS["colleges"])
    college = colleges.find_one({
        "code": request.college_code.strip().upper(),
        "is_deleted": {"$ne": True},
        "is_active": True,
        "is_verified": True,
    })
    if not college:
        raise HTTPException(status_code=404, detail="College not found")
    if not college.get("settings", {}).get("allow_student_self_signup", True):
        raise HTTPException(status_code=403, detail="This college does not allow student self-signup")

    students = get_collection(COLLECTIONS["students"])
    if students.find_one({"email": request.email.lower()}):
        raise HTTPException(status_code=400, detail="A student with this email already exists")
    if students.find_one({"college": college["_id"], "roll_number": request.roll_number}):
        raise HTTPException(status_code=400, detail="Roll number already exists for this college")

    user_id = ObjectId()
    student = new_student_doc(
        {
            "name": {"first_name": request.first_name, "last_name": request.last_name or ""},
            "email": request.email,
            "phone": request.phone,
            "department": request.department,
            "batch": request.batch,
            "roll_number": request.roll_number,
            "user": user_id,
        },
        college_id=college["_id"],
        source="self_registration",
        added_by=None,
        verified=False,
    )
    student_id = students.insert_one(student).inserted_id
    user = new_user_doc(request.email, request.password, "student", auto_approved,
                        profile_id=student_id, user_id=user_id)
    try:
        get_collection(COLLECTIONS["users"]).insert_one(user)
    except DuplicateKeyError:
        students.delete_one({"_id": student_id})
        raise
    colleges.update_one({"_id": college["_id"]}, {"$inc": {"stats.total_students": 1}})
    return user


@router.post("/register", status_code=201)
async def register(request: RegisterRequest, background_tasks: BackgroundTasks):
    """
    Register a new account and its profile.

    Approval is automatic only when the platform's approval rules allow it;
    otherwise the account can login but protected routes answer 403 until
    an administrator approves it.
    """
    users = get_collection(COLLECTIONS["users"])
    if users.find_one({"email": request.email.lower()}):
        raise HTTPException(status_code=400, detail="Email already registered")

    company_type = request.company_type.value if request.role.value == "company" else None
    reg = registration_settings(request.role.value, company_type)
    if not reg["enabled"]:
        label = "Agency" if company_type == "placement_agency" else request.role.value.replace("_", " ").capitalize()
        raise HTTPException(status_code=403, detail=f"{label} registration is currently disabled")

    if request.role.value == "college_admin":
        user = _register_college(request, reg["auto_approved"])
    elif request.role.value == "company":
        user = _register_company(request, reg["auto_approved"])
    else:
        user = _register_student(request, reg["auto_approved"], reg["section"])

    background_tasks.add_task(email_service.send_welcome_email, user)
    if get_section("notifications")["new_registration_alert"]:
        NotificationService().notify_super_admins(
            notification_template("new_registration", company_type or user["role"], user["email"])
        )
    logger.info("Registered %s account %s", user["role"], user["email"])

    return {
        "message": "Registration successful" if user["is_approved"]
        else "Registration successful. Your account is pending approval.",
        "access_token": _token_for(user),
        "token_type": "bearer",
        "user": serialize_user(user),
    }


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    users = get_collection(COLLECTIONS["users"])
    user = users.find_one({"email": request.email.lower()})

    if not user or not verify_password(request.password, user["password"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account deactivated")

    users.update_one({"_id": user["_id"]}, {"$set": {"last_login": utcnow()}})

    return TokenResponse(
        access_token=_token_for(user),
        user_id=str(user["_id"]),
        role=user["role"],
        is_approved=user.get("is_approved", False),
    )


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    """Get current authenticated user's info and profile."""
    return {
        "user": serialize_user(user["doc"]),
        "profile": serialize_doc(load_profile(user["doc"])),
    }


@router.put("/password", response_model=MessageResponse)
async def change_password(data: ChangePasswordRequest, user: dict = Depends(get_current_user)):
    """Change password after confirming the current one."""
    if not verify_password(data.current_password, user["doc"]["password"]):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    get_collection(COLLECTIONS["users"]).update_one(
        {"_id": user["user_id"]},
        {"$set": {"password": hash_password(data.new_password), "updated_at": utcnow()}}
    )
    return MessageResponse(message="Password updated successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(user: dict = Depends(get_current_user)):
    """Tokens are stateless; the client discards its token."""
    return MessageResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(data: ForgotPasswordRequest, background_tasks: BackgroundTasks):
    """Send a reset link. The answer is identical whether or not the email exists."""
    user = get_collection(COLLECTIONS["users"]).find_one({"email": data.email.lower(), "is_active": True})
    if user:
        background_tasks.add_task(email_service.send_password_reset_email, user, create_password_reset_token(user))
    return MessageResponse(message="If that email is registered, a password reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(data: ResetPasswordRequest):
    """Set a new password using a reset token (single use)."""
    user = verify_password_reset_token(data.token)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    get_collection(COLLECTIONS["users"]).update_one(
        {"_id": user["_id"]},
        {"$set": {"password": hash_password(data.new_password), "updated_at": utcnow()}}
    )
    return MessageResponse(message="Password has been reset. Please login.")
