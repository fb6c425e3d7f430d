"""
What companies and agencies may see of a student record.
"""

from typing import Dict, Any, Optional, List

from bson import ObjectId
from fastapi import HTTPException

from app.db.mongodb import get_collection, COLLECTIONS
from app.services.platform_settings import get_section

CONTACT_FIELDS = ("email", "phone")
ACADEMIC_FIELDS = ("cgpa", "percentage", "backlogs", "education")
RESUME_FIELDS = ("resume_url", "linkedin_url", "github_url", "portfolio_url")
PERSONAL_FIELDS = ("gender", "date_of_birth", "address")

# Never shown outside the college
INTERNAL_FIELDS = ("added_by", "source", "is_deleted", "rejection_reason", "verified_by", "user")


def ensure_students_visible(company: dict) -> Dict[str, Any]:
    """Raise 403 when the platform hides student data from this company type."""
    visibility = get_section("data_visibility")
    if company.get("type") == "placement_agency":
        visible = visibility["student_data_visible_to_agencies"]
    else:
        visible = visibility["student_data_visible_to_companies"]
    if not visible:
        raise HTTPException(status_code=403, detail="Student data is currently not visible to your account type")
    return visibility


def approved_college_ids(company: dict) -> List[ObjectId]:
    return [
        entry["college"] for entry in company.get("college_access", [])
        if entry.get("status") == "approved"
    ]


def college_scope(company: dict, visibility: Dict[str, Any]) -> Optional[List[ObjectId]]:
    """
    Colleges whose students the company may browse, or None for no restriction.
    """
    if not visibility["require_college_approval_for_access"]:
        return None
    return approved_college_ids(company)


def mask_student(student: dict, visibility: Dict[str, Any]) -> dict:
    fields = visibility["visible_fields"]
    hidden = set(INTERNAL_FIELDS)
    if not fields["contact_info"]:
        hidden.update(CONTACT_FIELDS)
    if not fields["academic_details"]:
        hidden.update(ACADEMIC_FIELDS)
    if not fields["resume"]:
        hidden.update(RESUME_FIELDS)
    if not fields["personal_info"]:
        hidden.update(PERSONAL_FIELDS)
    return {k: v for k, v in student.items() if k not in hidden}


def attach_college_names(students: List[dict]) -> List[dict]:
    """Add a `college_info` {name, code} to each student (one query)."""
    college_ids = list({s["college"] for s in students if s.get("college")})
    colleges = {
        c["_id"]: {"name": c["name"], "code": c["code"]}
        for c in get_collection(COLLECTIONS["colleges"]).find({"_id": {"$in": college_ids}})
    }
    for s in students:
        s["college_info"] = colleges.get(s.get("college"))
    return students
