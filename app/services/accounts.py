"""
Account helpers shared by registration, super admin and college routes.
"""

import logging
from typing import Optional, Dict, Any
from bson import ObjectId

from app.core.auth import hash_password
from app.db.mongodb import get_collection, COLLECTIONS
from app.services import email_service
from app.services.download_limits import default_tracking
from app.services.mongo_service import utcnow
from app.services.notification_service import NotificationService, notification_template

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {
    "college_admin": ("college_profile", "colleges"),
    "company": ("company_profile", "companies"),
    "student": ("student_profile", "students"),
}


def new_user_doc(
    email: str,
    password: str,
    role: str,
    is_approved: bool,
    profile_id: Optional[ObjectId] = None,
    user_id: Optional[ObjectId] = None,
) -> Dict[str, Any]:
    now = utcnow()
    doc = {
        "_id": user_id or ObjectId(),
        "email": email.lower(),
        "password": hash_password(password),
        "role": role,
        "is_approved": is_approved,
        "is_active": True,
        "last_login": None,
        "created_at": now,
        "updated_at": now,
    }
    if role in PROFILE_FIELDS:
        doc[PROFILE_FIELDS[role][0]] = profile_id
    return doc


def new_college_doc(data: Dict[str, Any], admin_id: ObjectId, verified: bool,
                    verified_by: Optional[ObjectId] = None) -> Dict[str, Any]:
    now = utcnow()
    return {
        "name": data["name"],
        "code": data["code"].strip().upper(),
        "university": data.get("university"),
        "address": data["address"],
        "contact_email": data.get("contact_email"),
        "phone": data.get("phone"),
        "website": data.get("website"),
        "logo": None,
        "departments": data.get("departments", []),
        "admin": admin_id,
        "is_verified": verified,
        "verified_at": now if verified else None,
        "verified_by": verified_by,
        "is_active": True,
        "is_deleted": False,
        "stats": {"total_students": 0, "verified_students": 0, "placed_students": 0},
        "settings": {
            "allow_student_self_signup": True,
            "placement_rules": {
                "min_cgpa": 6.0,
                "max_active_backlogs": 2,
                "allow_multiple_offers": False,
                "require_resume_upload": True,
            },
        },
        "created_at": now,
        "updated_at": now,
    }


def new_company_doc(data: Dict[str, Any], user_id: ObjectId, approved: bool,
                    approved_by: Optional[ObjectId] = None) -> Dict[str, Any]:
    now = utcnow()
    return {
        "name": data["name"],
        "type": data.get("type", "company"),
        "industry": data.get("industry"),
        "description": data.get("description"),
        "website": data.get("website"),
        "logo": None,
        "size": data.get("size"),
        "headquarters": data.get("headquarters"),
        "contact_person": data.get("contact_person") or {},
        "user": user_id,
        "is_approved": approved,
        "approved_at": now if approved else None,
        "approved_by": approved_by,
        "is_active": True,
        "is_suspended": False,
        "is_deleted": False,
        "stats": {"total_jobs": 0, "total_hires": 0, "total_downloads": 0},
        "download_tracking": default_tracking(),
        "download_history": [],
        "saved_search_filters": [],
        "college_access": [],
        "created_at": now,
        "updated_at": now,
    }


def new_student_doc(data: Dict[str, Any], college_id: ObjectId, source: str,
                    added_by: Optional[ObjectId], verified: bool) -> Dict[str, Any]:
    now = utcnow()
    doc = {
        "phone": None,
        "gender": None,
        "date_of_birth": None,
        "cgpa": None,
        "percentage": None,
        "backlogs": {"active": 0, "history": 0},
        "education": {"tenth": {}, "twelfth": {}},
        "skills": [],
        "projects": [],
        "certifications": [],
        "resume_url": None,
        "linkedin_url": None,
        "github_url": None,
        "portfolio_url": None,
        "about": None,
    }
    doc.update(data)
    doc.update({
        "email": data["email"].lower(),
        "college": college_id,
        "source": source,
        "added_by": added_by,
        "user": data.get("user"),
        "placement_status": data.get("placement_status", "not_placed"),
        "placement_details": None,
        "is_verified": verified,
        "verified_at": now if verified else None,
        "verified_by": added_by if verified else None,
        "is_rejected": False,
        "rejection_reason": None,
        "is_star_student": False,
        "is_deleted": False,
        "created_at": now,
        "updated_at": now,
    })
    return doc


def load_profile(user: dict) -> Optional[dict]:
    """Return the profile document linked to a user, if any."""
    if user["role"] not in PROFILE_FIELDS:
        return None
    field, collection = PROFILE_FIELDS[user["role"]]
    profile_id = user.get(field)
    if not profile_id:
        return None
    return get_collection(COLLECTIONS[collection]).find_one({"_id": profile_id})


def apply_approval_decision(user: dict, approved: bool, reason: Optional[str] = None) -> None:
    """
    Set a user's approval, then notify and email them about the outcome.
    """
    get_collection(COLLECTIONS["users"]).update_one(
        {"_id": user["_id"]}, {"$set": {"is_approved": approved, "updated_at": utcnow()}}
    )
    notifications = NotificationService()
    if approved:
        notifications.create(user["_id"], notification_template("account_approved", user["role"]))
        email_service.send_account_approved_email(user)
    else:
        notifications.create(user["_id"], notification_template("account_rejected", user["role"], reason))
        email_service.send_account_rejected_email(user, reason)
    logger.info("Account %s %s", user["email"], "approved" if approved else "rejected")


def seed_super_admin(email: str, password: str) -> bool:
    """
    Create the super admin account if no user has this email.

    Returns:
        True if a new account was created
    """
    users = get_collection(COLLECTIONS["users"])
    if users.find_one({"email": email.lower()}):
        return False
    users.insert_one(new_user_doc(email, password, "super_admin", True))
    logger.info("Seeded super admin %s", email.lower())
    return True
