"""
Bulk student import shared by the JSON and spreadsheet endpoints.

Each row is validated and inserted on its own, so one bad row never
blocks the rest of the batch.
"""

import logging
from typing import Any, Dict, List

from bson import ObjectId
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from app.db.mongodb import get_collection, COLLECTIONS
from app.schemas.schemas import StudentCreate
from app.services.accounts import new_student_doc

logger = logging.getLogger(__name__)


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"])
    return f"{field}: {first['msg']}" if field else first["msg"]


def import_students(rows: List[Dict[str, Any]], college: dict, added_by: ObjectId, source: str) -> Dict[str, List]:
    """
    Insert verified students for a college.

    Returns:
        {"success": [{row, id, email}], "failed": [{row, email, error}]}
    """
    students = get_collection(COLLECTIONS["students"])
    success, failed = [], []

    for index, row in enumerate(rows, start=1):
        email = str(row.get("email") or "").lower()
        try:
            data = StudentCreate.model_validate(row)
        except ValidationError as e:
            failed.append({"row": index, "email": email, "error": _validation_message(e)})
            continue

        email = data.email.lower()
        if students.find_one({"email": email}):
            failed.append({"row": index, "email": email, "error": "Email already exists"})
            continue
        if students.find_one({"college": college["_id"], "roll_number": data.roll_number}):
            failed.append({"row": index, "email": email, "error": "Roll number already exists"})
            continue

        doc = new_student_doc(data.model_dump(), college["_id"], source, added_by, verified=True)
        try:
            student_id = students.insert_one(doc).inserted_id
        except DuplicateKeyError:
            failed.append({"row": index, "email": email, "error": "Duplicate student"})
            continue
        success.append({"row": index, "id": str(student_id), "email": email})

    if success:
        get_collection(COLLECTIONS["colleges"]).update_one(
            {"_id": college["_id"]},
            {"$inc": {"stats.total_students": len(success), "stats.verified_students": len(success)}}
        )
    logger.info("Bulk import for %s: %d added, %d failed", college["code"], len(success), len(failed))
    return {"success": success, "failed": failed}
