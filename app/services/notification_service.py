"""
Notification Service - in-app notifications stored in `notifications`.
"""

from typing import Optional, List
from bson import ObjectId
from pymongo.collection import Collection

from app.db.mongodb import get_collection, COLLECTIONS
from app.services.mongo_service import utcnow


# ============================================================
# TEMPLATES: (type, title, message, priority) per event
# ============================================================

NOTIFICATION_TEMPLATES = {
    "account_approved": lambda role: {
        "type": "account_approved",
        "title": "Account Approved",
        "message": f"Your {role.replace('_', ' ')} account has been approved. You can now access the platform.",
        "priority": "high",
    },
    "account_rejected": lambda role, reason=None: {
        "type": "account_rejected",
        "title": "Account Rejected",
        "message": f"Your {role.replace('_', ' ')} account has been rejected. {reason or ''}".strip(),
        "priority": "high",
    },
    "student_verified": lambda: {
        "type": "student_verified",
        "title": "Profile Verified",
        "message": "Your student profile has been verified by your college admin.",
        "priority": "medium",
    },
    "job_posted": lambda job_title: {
        "type": "job_posted",
        "title": "New Job Posted",
        "message": f"A new job opportunity for {job_title} has been posted.",
        "priority": "medium",
    },
    "application_status": lambda job_title, status: {
        "type": "application_status",
        "title": "Application Status Update",
        "message": f"Your application for {job_title} has been {status.replace('_', ' ')}.",
        "priority": "high",
    },
    "shortlisted": lambda company_name, job_title: {
        "type": "shortlisted",
        "title": "You've Been Shortlisted!",
        "message": f"{company_name} has shortlisted you for {job_title}.",
        "priority": "high",
    },
    "interview_scheduled": lambda job_title, date: {
        "type": "interview_scheduled",
        "title": "Interview Scheduled",
        "message": f"Your interview for {job_title} has been scheduled for {date}.",
        "priority": "high",
    },
    "offer_received": lambda company_name, job_title: {
        "type": "offer_received",
        "title": "Job Offer Received",
        "message": f"Congratulations! You have received an offer from {company_name} for {job_title}.",
        "priority": "high",
    },
    "invitation": lambda company_name, job_title: {
        "type": "invitation",
        "title": "Job Invitation",
        "message": f"{company_name} has invited you to apply for {job_title}.",
        "priority": "high",
    },
    "new_registration": lambda role, email: {
        "type": "system_announcement",
        "title": "New Registration",
        "message": f"A new {role.replace('_', ' ')} account ({email}) has registered.",
        "priority": "medium",
    },
}


def notification_template(name: str, *args) -> dict:
    return NOTIFICATION_TEMPLATES[name](*args)


class NotificationService:
    """Create and query in-app notifications."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["notifications"])

    def _build(
        self,
        recipient: ObjectId,
        template: dict,
        link: Optional[str] = None,
        related_model: Optional[str] = None,
        related_id: Optional[ObjectId] = None,
    ) -> dict:
        return {
            "recipient": recipient,
            "type": template["type"],
            "title": template["title"],
            "message": template["message"],
            "priority": template.get("priority", "medium"),
            "link": link,
            "related_model": related_model,
            "related_id": related_id,
            "is_read": False,
            "read_at": None,
            "created_at": utcnow(),
        }

    def create(self, recipient: Optional[ObjectId], template: dict, **kwargs) -> Optional[str]:
        """Insert one notification. Recipients without an account are skipped."""
        if recipient is None:
            return None
        result = self.collection.insert_one(self._build(recipient, template, **kwargs))
        return str(result.inserted_id)

    def create_many(self, recipients: List[ObjectId], template: dict, **kwargs) -> int:
        docs = [self._build(r, template, **kwargs) for r in recipients if r is not None]
        if not docs:
            return 0
        return len(self.collection.insert_many(docs).inserted_ids)

    def notify_super_admins(self, template: dict, **kwargs) -> int:
        admins = get_collection(COLLECTIONS["users"]).find(
            {"role": "super_admin", "is_active": True}, {"_id": 1}
        )
        return self.create_many([a["_id"] for a in admins], template, **kwargs)

    def unread_count(self, recipient: ObjectId) -> int:
        return self.collection.count_documents({"recipient": recipient, "is_read": False})

    def mark_read(self, notification_id: ObjectId, recipient: ObjectId) -> bool:
        result = self.collection.update_one(
            {"_id": notification_id, "recipient": recipient},
            {"$set": {"is_read": True, "read_at": utcnow()}},
        )
        return result.matched_count > 0

    def mark_all_read(self, recipient: ObjectId) -> int:
        result = self.collection.update_many(
            {"recipient": recipient, "is_read": False},
            {"$set": {"is_read": True, "read_at": utcnow()}},
        )
        return result.modified_count
