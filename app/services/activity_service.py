"""
Activity Log Service - audit trail of who did what to which record.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from bson import ObjectId
from fastapi import Request
from pymongo.collection import Collection

from app.db.mongodb import get_collection, COLLECTIONS
from app.services.mongo_service import utcnow


class ActivityLogService:

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["activity_logs"])

    def log(
        self,
        user_id: ObjectId,
        action: str,
        target_model: Optional[str] = None,
        target_id: Optional[ObjectId] = None,
        metadata: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
    ) -> str:
        doc = {
            "user": user_id,
            "action": action,
            "target_model": target_model,
            "target_id": target_id,
            "metadata": metadata or {},
            "ip_address": request.client.host if request and request.client else None,
            "user_agent": request.headers.get("user-agent") if request else None,
            "created_at": utcnow(),
        }
        return str(self.collection.insert_one(doc).inserted_id)

    def scope_query(self, user: dict) -> dict:
        """
        Base query for a viewer: super admins see everything, college admins
        see their own actions plus actions on their college's students.
        """
        if user["role"] != "college_admin":
            return {}
        student_ids = get_collection(COLLECTIONS["students"]).distinct(
            "_id", {"college": user["college_id"]}
        )
        return {"$or": [
            {"user": user["user_id"]},
            {"target_model": "Student", "target_id": {"$in": student_ids}},
        ]}

    @staticmethod
    def filter_query(
        base: dict,
        action: Optional[str] = None,
        target_model: Optional[str] = None,
        user_id: Optional[ObjectId] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> dict:
        query = dict(base)
        if action:
            query["action"] = action
        if target_model:
            query["target_model"] = target_model
        if user_id:
            query["user"] = user_id
        if start_date or end_date:
            query["created_at"] = {}
            if start_date:
                query["created_at"]["$gte"] = start_date
            if end_date:
                query["created_at"]["$lte"] = end_date
        return query
