from __future__ import annotations

import os
from datetime import timedelta
from typing import Any

import mongomock
import pytest
from fastapi.testclient import TestClient


def pytest_configure() -> None:
    # Emails go through the patched transport, never a real server.
    os.environ["SMTP_HOST"] = "smtp.test.local"
    os.environ["EMAIL_ENABLED"] = "true"
    os.environ["JWT_SECRET_KEY"] = "test-secret"
    os.environ["SUPER_ADMIN_EMAIL"] = ""
    os.environ["SUPER_ADMIN_PASSWORD"] = ""
    os.environ["FRONTEND_URL"] = "http://portal.test"


@pytest.fixture()
def db(monkeypatch: pytest.MonkeyPatch) -> Any:
    from app.core.config import get_settings
    from app.db import mongodb

    get_settings.cache_clear()
    database = mongomock.MongoClient()["placement_portal_test"]
    monkeypatch.setattr(mongodb, "_db", database)
    mongodb.init_mongo_indexes()
    yield database
    get_settings.cache_clear()


@pytest.fixture()
def outbox(monkeypatch: pytest.MonkeyPatch) -> list:
    """Messages handed to SMTP during the test."""
    from app.services import email_service

    sent: list = []
    monkeypatch.setattr(email_service, "deliver", sent.append)
    return sent


@pytest.fixture()
def client(db: Any, outbox: list) -> Any:
    from app.main import create_app

    app = create_app()
    with TestClient(app) as c:
        yield c


class Portal:
    """Builds accounts and records straight in the database for API tests."""

    def __init__(self, db: Any) -> None:
        self.db = db

    @staticmethod
    def headers(user: dict) -> dict:
        from app.core.auth import create_access_token

        token = create_access_token({"sub": str(user["_id"]), "role": user["role"]})
        return {"Authorization": f"Bearer {token}"}

    def super_admin(self, email: str = "admin@portal.test") -> dict:
        from app.services.accounts import new_user_doc

        user = new_user_doc(email, "AdminPass1", "super_admin", True)
        self.db.users.insert_one(user)
        return self.headers(user)

    def college(self, code: str = "ABC", approved: bool = True, **settings: Any) -> tuple:
        from bson import ObjectId
        from app.services.accounts import new_user_doc, new_college_doc

        admin_id = ObjectId()
        college = new_college_doc(
            {"name": f"College {code}", "code": code, "address": {"city": "Pune", "state": "MH"},
             "departments": ["CSE", "ECE"]},
            admin_id=admin_id, verified=approved,
        )
        college["settings"]["placement_rules"].update(settings)
        self.db.colleges.insert_one(college)
        user = new_user_doc(f"admin@{code.lower()}.edu", "CollegePass1", "college_admin", approved,
                            profile_id=college["_id"], user_id=admin_id)
        self.db.users.insert_one(user)
        return self.headers(user), college

    def company(self, name: str = "Acme", type: str = "company", approved: bool = True) -> tuple:
        from bson import ObjectId
        from app.services.accounts import new_user_doc, new_company_doc

        user_id = ObjectId()
        company = new_company_doc({"name": name, "type": type}, user_id=user_id, approved=approved)
        self.db.companies.insert_one(company)
        user = new_user_doc(f"hr@{name.lower()}.com", "CompanyPass1", "company", approved,
                            profile_id=company["_id"], user_id=user_id)
        self.db.users.insert_one(user)
        return self.headers(user), company

    def student(self, college: dict, email: str = "asha@abc.edu", roll: str = "CS001",
                with_account: bool = True, **fields: Any) -> tuple:
        from bson import ObjectId
        from app.services.accounts import new_user_doc, new_student_doc

        verified = fields.pop("verified", True)
        user_id = ObjectId() if with_account else None
        data = {
            "name": {"first_name": "Asha", "last_name": "Rao"},
            "email": email,
            "department": "CSE",
            "batch": 2025,
            "roll_number": roll,
            "cgpa": 8.2,
            "resume_url": "https://files.test/asha.pdf",
            "skills": ["Python", "SQL"],
            "user": user_id,
        }
        data.update(fields)
        student = new_student_doc(data, college["_id"], "manual", None, verified=verified)
        self.db.students.insert_one(student)
        if not with_account:
            return None, student
        user = new_user_doc(email, "StudentPass1", "student", True, profile_id=student["_id"], user_id=user_id)
        self.db.users.insert_one(user)
        return self.headers(user), student

    def job(self, company: dict, **fields: Any) -> dict:
        from app.services.mongo_service import utcnow

        now = utcnow()
        job = {
            "company": company["_id"],
            "college": None,
            "is_placement_drive": False,
            "title": "Backend Engineer",
            "description": "Build and run placement APIs",
            "type": "full_time",
            "work_mode": "onsite",
            "locations": ["Pune"],
            "eligibility": {"min_cgpa": 7.0, "max_backlogs": 0, "allowed_departments": ["CSE"],
                            "allowed_batches": []},
            "application_deadline": now + timedelta(days=10),
            "status": "open",
            "stats": {"views": 0, "total_applications": 0, "shortlisted": 0, "hired": 0},
            "created_at": now,
        }
        job.update(fields)
        self.db.jobs.insert_one(job)
        return job

    def application(self, student: dict, job: dict, status: str = "applied") -> dict:
        from app.services.mongo_service import utcnow

        now = utcnow()
        app = {
            "student": student["_id"],
            "job": job["_id"],
            "company": job["company"],
            "status": status,
            "status_history": [{"status": status, "changed_at": now, "changed_by": None, "remarks": ""}],
            "interviews": [],
            "applied_at": now,
            "updated_at": now,
        }
        self.db.applications.insert_one(app)
        return app


@pytest.fixture()
def portal(db: Any) -> Portal:
    return Portal(db)
