"""
Eligibility - whether a student may apply to a job.

check_eligibility() returns human-readable reasons so the same rules
drive both the apply endpoint (first reason becomes the error) and the
job detail view (all reasons listed).
"""

from typing import List, Dict, Any, Optional

from app.services.mongo_service import utcnow


def check_eligibility(student: dict, job: dict) -> List[str]:
    """Return a list of reasons the student is not eligible (empty if eligible)."""
    reasons: List[str] = []
    rules = job.get("eligibility") or {}

    departments = rules.get("allowed_departments") or []
    if departments and student.get("department") not in departments:
        reasons.append("Your department is not eligible for this job")

    batches = rules.get("allowed_batches") or []
    if batches and student.get("batch") not in batches:
        reasons.append("Your batch is not eligible for this job")

    min_cgpa = rules.get("min_cgpa")
    if min_cgpa is not None and (student.get("cgpa") or 0) < min_cgpa:
        reasons.append(f"Minimum CGPA required is {min_cgpa}")

    max_backlogs = rules.get("max_backlogs")
    active_backlogs = (student.get("backlogs") or {}).get("active", 0)
    if max_backlogs is not None and active_backlogs > max_backlogs:
        reasons.append(f"Maximum {max_backlogs} active backlogs allowed")

    if job.get("is_placement_drive") and job.get("college") != student.get("college"):
        reasons.append("This placement drive is not open to your college")

    return reasons


def is_accepting_applications(job: dict) -> Optional[str]:
    """Return why the job is closed for applications, or None if open."""
    if job.get("status") != "open":
        return "This job is not accepting applications"
    deadline = job.get("application_deadline")
    if deadline and deadline < utcnow():
        return "Application deadline has passed"
    return None


def eligible_jobs_query(student: dict) -> Dict[str, Any]:
    """
    Mongo query for open, unexpired jobs whose eligibility rules admit the student.
    Mirrors check_eligibility() so list and detail views agree.
    """
    cgpa = student.get("cgpa") or 0
    active_backlogs = (student.get("backlogs") or {}).get("active", 0)
    return {
        "status": "open",
        "application_deadline": {"$gte": utcnow()},
        "$and": [
            {"$or": [
                {"eligibility.allowed_departments": {"$size": 0}},
                {"eligibility.allowed_departments": {"$exists": False}},
                {"eligibility.allowed_departments": student.get("department")},
            ]},
            {"$or": [
                {"eligibility.allowed_batches": {"$size": 0}},
                {"eligibility.allowed_batches": {"$exists": False}},
                {"eligibility.allowed_batches": student.get("batch")},
            ]},
            {"$or": [
                {"eligibility.min_cgpa": None},
                {"eligibility.min_cgpa": {"$lte": cgpa}},
            ]},
            {"$or": [
                {"eligibility.max_backlogs": None},
                {"eligibility.max_backlogs": {"$gte": active_backlogs}},
            ]},
            {"$or": [
                {"is_placement_drive": {"$ne": True}},
                {"college": student.get("college")},
            ]},
        ],
    }
