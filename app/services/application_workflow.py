"""
Application Workflow - status transitions for job applications.

Lifecycle:
    applied -> under_review -> shortlisted -> interview_scheduled -> interviewed
            -> offered -> offer_accepted / hired / rejected / withdrawn

Every change is appended to status_history. Side effects (job stats,
student placement status, college stats, notifications and emails)
are applied here so company and student routes share one path.
"""

import logging
from typing import Optional, Dict, Any, List
from bson import ObjectId
from fastapi import HTTPException

from app.db.mongodb import get_collection, COLLECTIONS
from app.services import email_service
from app.services.mongo_service import utcnow
from app.services.notification_service import NotificationService, notification_template
from app.services.student_visibility import attach_college_names

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"hired", "rejected", "withdrawn"}

ALLOWED_TRANSITIONS = {
    "applied": {"under_review", "shortlisted", "rejected", "withdrawn"},
    "under_review": {"shortlisted", "rejected", "withdrawn"},
    "shortlisted": {"interview_scheduled", "under_review", "rejected", "withdrawn"},
    "interview_scheduled": {"interviewed", "rejected", "withdrawn"},
    "interviewed": {"interview_scheduled", "offered", "rejected", "withdrawn"},
    "offered": {"offer_accepted", "hired", "rejected", "withdrawn"},
    "offer_accepted": {"hired", "withdrawn"},
    "hired": set(),
    "rejected": set(),
    "withdrawn": set(),
}

COMPANY_STATUSES = {
    "under_review", "shortlisted", "interview_scheduled", "interviewed",
    "offered", "hired", "rejected",
}
STUDENT_STATUSES = {"withdrawn", "offer_accepted"}

# Statuses that make up a company's shortlist
PIPELINE_STATUSES = ["shortlisted", "interview_scheduled", "interviewed", "offered", "offer_accepted", "hired"]
ACTIVE_PIPELINE_STATUSES = ["shortlisted", "interview_scheduled", "interviewed", "offered", "offer_accepted"]


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def validate_transition(current: str, new: str, actor: str) -> None:
    """
    Raise HTTPException 400 when the actor may not move the application
    from `current` to `new`.
    """
    allowed_for_actor = COMPANY_STATUSES if actor == "company" else STUDENT_STATUSES
    if new not in allowed_for_actor:
        raise HTTPException(status_code=400, detail=f"Status '{new}' cannot be set by {actor}")
    if current == new:
        raise HTTPException(status_code=400, detail=f"Application is already {current}")
    if not can_transition(current, new):
        raise HTTPException(status_code=400, detail=f"Cannot change status from '{current}' to '{new}'")


def change_status(
    application: dict,
    new_status: str,
    actor: str,
    user_id: ObjectId,
    remarks: Optional[str] = None,
    interview: Optional[Dict[str, Any]] = None,
    offer: Optional[Dict[str, Any]] = None,
) -> dict:
    """
    Move an application to new_status and apply side effects.

    Returns:
        The updated application document
    """
    validate_transition(application["status"], new_status, actor)
    if new_status == "interview_scheduled" and not interview:
        raise HTTPException(status_code=400, detail="Interview details are required to schedule an interview")

    applications = get_collection(COLLECTIONS["applications"])
    now = utcnow()

    update: Dict[str, Any] = {
        "$set": {"status": new_status, "last_updated_by": user_id, "updated_at": now},
        "$push": {"status_history": {
            "status": new_status,
            "changed_at": now,
            "changed_by": user_id,
            "remarks": remarks or "",
        }},
    }

    if new_status == "interview_scheduled":
        interview_doc = {
            **interview,
            "round": len(application.get("interviews", [])) + 1,
            "result": "pending",
        }
        update["$push"]["interviews"] = interview_doc
    if new_status == "interviewed" and application.get("interviews"):
        last_round = len(application["interviews"]) - 1
        update["$set"][f"interviews.{last_round}.result"] = "completed"
    if new_status == "offered":
        update["$set"]["offer"] = {**(offer or {}), "response": "pending", "offered_at": now}
    if new_status == "offer_accepted":
        update["$set"]["offer.response"] = "accepted"
        update["$set"]["offer.responded_at"] = now
    if new_status == "withdrawn" and application["status"] == "offered" and actor == "student":
        update["$set"]["offer.response"] = "rejected"
        update["$set"]["offer.responded_at"] = now

    applications.update_one({"_id": application["_id"]}, update)
    logger.info("Application %s: %s -> %s by %s", application["_id"], application["status"], new_status, actor)

    updated = applications.find_one({"_id": application["_id"]})
    _apply_side_effects(application["status"], updated, remarks)
    return updated


def _apply_side_effects(previous: str, application: dict, remarks: Optional[str]) -> None:
    jobs = get_collection(COLLECTIONS["jobs"])
    students = get_collection(COLLECTIONS["students"])

    job = jobs.find_one({"_id": application["job"]})
    student = students.find_one({"_id": application["student"]})
    company = get_collection(COLLECTIONS["companies"]).find_one({"_id": job["company"]})
    status = application["status"]
    notifications = NotificationService()
    link = "/student/applications"
    recipient = student.get("user")

    if status == "shortlisted" and previous not in PIPELINE_STATUSES:
        jobs.update_one({"_id": job["_id"]}, {"$inc": {"stats.shortlisted": 1}})
    if status == "under_review" and previous == "shortlisted":
        jobs.update_one({"_id": job["_id"]}, {"$inc": {"stats.shortlisted": -1}})

    if status in ACTIVE_PIPELINE_STATUSES and student.get("placement_status") == "not_placed":
        students.update_one({"_id": student["_id"]}, {"$set": {"placement_status": "in_process"}})

    if status in ("rejected", "withdrawn", "under_review"):
        _reset_student_if_idle(student)

    if status == "hired":
        jobs.update_one({"_id": job["_id"]}, {"$inc": {"stats.hired": 1}})
        get_collection(COLLECTIONS["companies"]).update_one(
            {"_id": company["_id"]}, {"$inc": {"stats.total_hires": 1}}
        )
        was_placed = student.get("placement_status") == "placed"
        students.update_one({"_id": student["_id"]}, {"$set": {
            "placement_status": "placed",
            "placement_details": {
                "company": company["_id"],
                "company_name": company["name"],
                "role": job["title"],
                "package": (application.get("offer") or {}).get("package"),
                "joining_date": (application.get("offer") or {}).get("joining_date"),
                "placed_at": utcnow(),
            },
        }})
        if not was_placed:
            get_collection(COLLECTIONS["colleges"]).update_one(
                {"_id": student["college"]}, {"$inc": {"stats.placed_students": 1}}
            )

    # Student-driven changes notify nobody but the company pipeline itself
    if status in STUDENT_STATUSES:
        return

    if status == "shortlisted":
        notifications.create(recipient, notification_template("shortlisted", company["name"], job["title"]),
                             link=link, related_model="Application", related_id=application["_id"])
        email_service.send_shortlisted_email(student, job, company)
    elif status == "interview_scheduled":
        interview = application["interviews"][-1]
        date_label = interview["scheduled_at"].strftime("%d %b %Y, %I:%M %p")
        notifications.create(recipient, notification_template("interview_scheduled", job["title"], date_label),
                             link=link, related_model="Application", related_id=application["_id"])
        email_service.send_interview_scheduled_email(student, job, company, interview)
    elif status == "offered":
        notifications.create(recipient, notification_template("offer_received", company["name"], job["title"]),
                             link=link, related_model="Application", related_id=application["_id"])
        email_service.send_offer_received_email(student, job, company, (application.get("offer") or {}).get("package"))
    else:
        notifications.create(recipient, notification_template("application_status", job["title"], status),
                             link=link, related_model="Application", related_id=application["_id"])
        email_service.send_application_status_email(student, job, status, remarks)


def _reset_student_if_idle(student: dict) -> None:
    """Return an in-process student to not_placed when no pipeline application remains."""
    if student.get("placement_status") != "in_process":
        return
    active = get_collection(COLLECTIONS["applications"]).count_documents({
        "student": student["_id"],
        "status": {"$in": ACTIVE_PIPELINE_STATUSES},
    })
    if active == 0:
        get_collection(COLLECTIONS["students"]).update_one(
            {"_id": student["_id"]}, {"$set": {"placement_status": "not_placed"}}
        )


def remove_from_shortlist(application: dict, user_id: ObjectId) -> dict:
    """
    Return a pipeline application to under_review, outside the normal
    transition table, and undo the shortlist counters.
    """
    if application["status"] not in PIPELINE_STATUSES:
        raise HTTPException(status_code=400, detail="Application is not shortlisted")
    if application["status"] == "hired":
        raise HTTPException(status_code=400, detail="Hired candidates cannot be removed from the shortlist")

    applications = get_collection(COLLECTIONS["applications"])
    now = utcnow()
    applications.update_one({"_id": application["_id"]}, {
        "$set": {"status": "under_review", "last_updated_by": user_id, "updated_at": now},
        "$push": {"status_history": {
            "status": "under_review",
            "changed_at": now,
            "changed_by": user_id,
            "remarks": "Removed from shortlist",
        }},
    })
    get_collection(COLLECTIONS["jobs"]).update_one(
        {"_id": application["job"]}, {"$inc": {"stats.shortlisted": -1}}
    )
    student = get_collection(COLLECTIONS["students"]).find_one({"_id": application["student"]})
    if student:
        _reset_student_if_idle(student)
    logger.info("Application %s removed from shortlist", application["_id"])
    return applications.find_one({"_id": application["_id"]})


def attach_application_details(applications: List[dict], with_college: bool = False) -> List[dict]:
    """
    Embed `student_info` and `job_info` (with company_name) in each application,
    plus `college_info` on the student when requested.
    """
    students = {
        s["_id"]: s for s in get_collection(COLLECTIONS["students"]).find(
            {"_id": {"$in": list({a["student"] for a in applications})}}
        )
    }
    jobs = {
        j["_id"]: j for j in get_collection(COLLECTIONS["jobs"]).find(
            {"_id": {"$in": list({a["job"] for a in applications})}},
            {"title": 1, "company": 1, "type": 1, "status": 1, "application_deadline": 1},
        )
    }
    companies = {
        c["_id"]: c["name"] for c in get_collection(COLLECTIONS["companies"]).find(
            {"_id": {"$in": list({j["company"] for j in jobs.values()})}}, {"name": 1}
        )
    }
    if with_college:
        attach_college_names(list(students.values()))

    for app in applications:
        app["student_info"] = students.get(app["student"])
        job = jobs.get(app["job"])
        if job:
            job = {**job, "company_name": companies.get(job["company"])}
        app["job_info"] = job
    return applications
