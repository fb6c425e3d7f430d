"""
MongoDB Connection Utility

Every entity of the portal lives in its own collection:
- users / colleges / companies / students: accounts and profiles
- jobs / applications / invitations: recruitment pipeline
- notifications / activity_logs: feeds and audit trail
- platform_settings: singleton document with platform toggles
- resumes: uploaded resume files with extracted text
- logos: college and company logo images

Uniqueness rules are enforced with indexes, so a duplicate insert
raises pymongo.errors.DuplicateKeyError (mapped to HTTP 400).
"""
import logging

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(get_settings().mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the portal database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[get_settings().mongodb_db]
    return _db


def get_collection(name: str) -> Collection:
    """Get a specific collection by its name in COLLECTIONS."""
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        get_mongo_db().command("ping")
        return True
    except Exception as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "users": "users",
    "colleges": "colleges",
    "companies": "companies",
    "students": "students",
    "jobs": "jobs",
    "applications": "applications",
    "invitations": "invitations",
    "notifications": "notifications",
    "activity_logs": "activity_logs",
    "platform_settings": "platform_settings",
    "resumes": "resumes",
    "logos": "logos",
}


def init_mongo_indexes():
    """
    Create indexes for uniqueness rules and common lookups.
    Call this once during app startup.
    """
    db = get_mongo_db()

    db[COLLECTIONS["users"]].create_index("email", unique=True)
    db[COLLECTIONS["users"]].create_index("role")

    db[COLLECTIONS["colleges"]].create_index("code", unique=True)

    db[COLLECTIONS["companies"]].create_index("user")
    db[COLLECTIONS["companies"]].create_index("type")

    students = db[COLLECTIONS["students"]]
    students.create_index("email", unique=True)
    students.create_index([("college", ASCENDING), ("roll_number", ASCENDING)], unique=True)
    students.create_index([("college", ASCENDING), ("department", ASCENDING), ("batch", ASCENDING)])

    jobs = db[COLLECTIONS["jobs"]]
    jobs.create_index([("status", ASCENDING), ("application_deadline", ASCENDING)])
    jobs.create_index("company")

    # One application per student per job
    db[COLLECTIONS["applications"]].create_index(
        [("student", ASCENDING), ("job", ASCENDING)], unique=True
    )
    db[COLLECTIONS["applications"]].create_index("status")

    # One invitation per student/job/company triple
    db[COLLECTIONS["invitations"]].create_index(
        [("student", ASCENDING), ("job", ASCENDING), ("company", ASCENDING)], unique=True
    )

    db[COLLECTIONS["notifications"]].create_index(
        [("recipient", ASCENDING), ("is_read", ASCENDING), ("created_at", DESCENDING)]
    )

    logs = db[COLLECTIONS["activity_logs"]]
    logs.create_index([("user", ASCENDING), ("created_at", DESCENDING)])
    logs.create_index([("target_model", ASCENDING), ("target_id", ASCENDING)])
    logs.create_index([("created_at", DESCENDING)])

    db[COLLECTIONS["resumes"]].create_index("student", unique=True)
    db[COLLECTIONS["logos"]].create_index("owner", unique=True)

    logger.info("MongoDB indexes created successfully")
