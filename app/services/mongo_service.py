"""
MongoDB Service - shared helpers for document collections.

Route handlers work with collections directly through get_collection();
this module keeps the pieces they all need in one place:
- ObjectId conversion and JSON serialization
- Pagination over a query
- Timestamps
"""

import math
import re
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from bson import ObjectId
from pymongo.collection import Collection


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value


def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    return serialize_value(doc)


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


def serialize_user(user: dict) -> dict:
    """Serialize a user document without its password hash."""
    if user is None:
        return None
    data = serialize_doc(user)
    data.pop("password", None)
    return data


def to_object_id(value) -> ObjectId:
    """
    Convert a path/body id to ObjectId.
    Invalid ids raise bson.errors.InvalidId, which the app maps to 404.
    """
    if isinstance(value, ObjectId):
        return value
    return ObjectId(str(value))


def to_object_ids(values: Optional[List[str]]) -> List[ObjectId]:
    return [to_object_id(v) for v in values or []]


# ============================================================
# TIME
# ============================================================

def utcnow() -> datetime:
    """Naive UTC timestamp, the form pymongo hands back from the database."""
    return datetime.utcnow()


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# ============================================================
# QUERIES
# ============================================================

def search_regex(text: str) -> dict:
    """Case-insensitive 'contains' matcher for free-text search."""
    return {"$regex": re.escape(text.strip()), "$options": "i"}


def paginate(
    collection: Collection,
    query: dict,
    page: int = 1,
    limit: int = 20,
    sort: Optional[List[tuple]] = None,
    projection: Optional[dict] = None,
) -> Dict[str, Any]:
    """
    Run a paginated find.

    Returns:
        {"items": [raw docs], "pagination": {"page", "limit", "total", "pages"}}
    """
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    total = collection.count_documents(query)

    cursor = collection.find(query, projection)
    if sort:
        cursor = cursor.sort(sort)
    items = list(cursor.skip((page - 1) * limit).limit(limit))

    return {
        "items": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


def paginated_response(result: Dict[str, Any], serializer=serialize_doc) -> Dict[str, Any]:
    """Serialize the items of a paginate() result."""
    return {
        "items": [serializer(doc) for doc in result["items"]],
        "pagination": result["pagination"],
    }


def full_name(student: Optional[dict]) -> str:
    if not student:
        return ""
    name = student.get("name") or {}
    return f"{name.get('first_name', '')} {name.get('last_name', '')}".strip()
