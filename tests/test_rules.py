from __future__ import annotations

from datetime import timedelta

import pytest
from bson import ObjectId
from fastapi import HTTPException

from app.services import download_limits
from app.services.application_workflow import can_transition, validate_transition
from app.services.eligibility import check_eligibility, is_accepting_applications
from app.services.mongo_service import utcnow
from app.services.profile_completeness import calculate_profile_completeness
from app.utils.excel import parse_student_sheet, read_sheet


# ============================================================
# ELIGIBILITY
# ============================================================

def _student(**extra) -> dict:
    student = {"department": "CSE", "batch": 2025, "cgpa": 8.0, "backlogs": {"active": 0}, "college": "abc"}
    student.update(extra)
    return student


def test_eligible_student_has_no_reasons() -> None:
    job = {"eligibility": {"min_cgpa": 7.5, "allowed_departments": ["CSE"], "allowed_batches": [2025]}}
    assert check_eligibility(_student(), job) == []


def test_every_failed_rule_is_reported() -> None:
    job = {
        "eligibility": {"min_cgpa": 8.5, "max_backlogs": 0, "allowed_departments": ["ECE"], "allowed_batches": [2024]},
        "is_placement_drive": True,
        "college": "xyz",
    }
    reasons = check_eligibility(_student(backlogs={"active": 2}), job)
    assert reasons == [
        "Your department is not eligible for this job",
        "Your batch is not eligible for this job",
        "Minimum CGPA required is 8.5",
        "Maximum 0 active backlogs allowed",
        "This placement drive is not open to your college",
    ]


def test_empty_rules_admit_everyone() -> None:
    assert check_eligibility(_student(cgpa=None), {"eligibility": {"allowed_departments": []}}) == []


def test_accepting_applications() -> None:
    future = utcnow() + timedelta(days=1)
    assert is_accepting_applications({"status": "open", "application_deadline": future}) is None
    assert is_accepting_applications({"status": "closed", "application_deadline": future}) == (
        "This job is not accepting applications"
    )
    past = utcnow() - timedelta(minutes=1)
    assert is_accepting_applications({"status": "open", "application_deadline": past}) == (
        "Application deadline has passed"
    )


# ============================================================
# APPLICATION WORKFLOW
# ============================================================

@pytest.mark.parametrize("current,new,allowed", [
    ("applied", "shortlisted", True),
    ("applied", "offered", False),
    ("interviewed", "interview_scheduled", True),
    ("offered", "hired", True),
    ("offer_accepted", "rejected", False),
    ("hired", "withdrawn", False),
])
def test_can_transition(current: str, new: str, allowed: bool) -> None:
    assert can_transition(current, new) is allowed


def test_actors_are_limited_to_their_statuses() -> None:
    with pytest.raises(HTTPException) as company_withdraw:
        validate_transition("applied", "withdrawn", "company")
    assert company_withdraw.value.detail == "Status 'withdrawn' cannot be set by company"

    with pytest.raises(HTTPException) as student_shortlist:
        validate_transition("applied", "shortlisted", "student")
    assert student_shortlist.value.status_code == 400

    with pytest.raises(HTTPException) as same:
        validate_transition("shortlisted", "shortlisted", "company")
    assert same.value.detail == "Application is already shortlisted"

    validate_transition("offered", "offer_accepted", "student")


# ============================================================
# PROFILE COMPLETENESS
# ============================================================

def test_empty_profile_scores_zero() -> None:
    result = calculate_profile_completeness({})
    assert result["percentage"] == 0
    assert result["breakdown"]["basic_info"] == {"score": 0, "max": 30}
    assert "first name" in result["missing"]
    assert "certifications" in result["missing"]


def test_full_profile_scores_hundred() -> None:
    student = {
        "name": {"first_name": "Asha", "last_name": "Rao"},
        "email": "asha@abc.edu",
        "phone": "9876543210",
        "gender": "female",
        "date_of_birth": utcnow(),
        "department": "CSE",
        "batch": 2025,
        "roll_number": "CS001",
        "cgpa": 8.2,
        "percentage": 81,
        "education": {
            "tenth": {"percentage": 92, "board": "CBSE"},
            "twelfth": {"percentage": 88, "board": "CBSE"},
        },
        "skills": ["Python"],
        "resume_url": "https://files.test/asha.pdf",
        "linkedin_url": "https://linkedin.com/in/asha",
        "github_url": "https://github.com/asha",
        "projects": [{"title": "Portal"}],
        "certifications": [{"name": "AWS"}],
    }
    result = calculate_profile_completeness(student)
    assert result["percentage"] == 100
    assert result["missing"] == []


def test_partial_profile_weights_categories() -> None:
    result = calculate_profile_completeness({"skills": ["Go"], "projects": []})
    assert result["breakdown"]["skills_resume"]["score"] == 7.5
    assert "projects" in result["missing"]
    assert result["percentage"] == 8


# ============================================================
# SPREADSHEETS
# ============================================================

def test_parse_sheet_normalizes_values() -> None:
    csv = (
        "FirstName,LastName,Email,Mobile,Branch,Year,RollNumber,CGPA,Active Backlogs,10th %,Skills\n"
        "Ravi,Kumar,RAVI@ABC.EDU,9876500000,ECE,2026,EC007,7.25,1,91.5,\"C, Verilog ,\"\n"
        "Meera,,,,,,,,,,\n"
    )
    rows = parse_student_sheet(csv.encode(), "upload.CSV")

    assert len(rows) == 1
    row = rows[0]
    assert row["name"] == {"first_name": "Ravi", "last_name": "Kumar"}
    assert row["email"] == "ravi@abc.edu"
    assert row["phone"] == "9876500000"
    assert row["department"] == "ECE"
    assert row["batch"] == 2026
    assert row["roll_number"] == "EC007"
    assert row["cgpa"] == 7.25
    assert row["backlogs"] == {"active": 1, "history": 0}
    assert row["education"]["tenth"]["percentage"] == 91.5
    assert row["skills"] == ["C", "Verilog"]


def test_unsupported_sheet_type() -> None:
    with pytest.raises(ValueError, match="Unsupported file type '.json'"):
        read_sheet(b"{}", "students.json")


def test_unreadable_sheet() -> None:
    with pytest.raises(ValueError, match="Could not read spreadsheet"):
        read_sheet(b"not a zip file", "students.xlsx")


# ============================================================
# DOWNLOAD LIMITS
# ============================================================

def test_limits_count_down(db, portal) -> None:
    _, company = portal.company("Acme")
    user_id = ObjectId()

    limits = download_limits.check_download_limits(company["_id"])
    assert limits["daily_remaining"] == download_limits.DEFAULT_DAILY_LIMIT
    assert limits["can_download"] is True

    download_limits.increment_download_count(company["_id"], None, user_id, "bulk_download", count=5)
    limits = download_limits.check_download_limits(company["_id"])
    assert limits["daily_count"] == 5
    assert limits["monthly_remaining"] == download_limits.DEFAULT_MONTHLY_LIMIT - 5


def test_daily_window_resets(db, portal) -> None:
    _, company = portal.company("Acme")
    yesterday = utcnow() - timedelta(hours=25)
    db.companies.update_one({"_id": company["_id"]}, {"$set": {
        "download_tracking.daily_count": 50,
        "download_tracking.monthly_count": 50,
        "download_tracking.last_daily_reset": yesterday,
    }})

    limits = download_limits.check_download_limits(company["_id"])
    assert limits["daily_count"] == 0
    assert limits["monthly_count"] == 50
    stored = db.companies.find_one({"_id": company["_id"]})["download_tracking"]
    assert stored["last_daily_reset"] > yesterday


def test_monthly_limit_blocks_downloads(db, portal) -> None:
    _, company = portal.company("Acme")
    db.companies.update_one({"_id": company["_id"]}, {"$set": {"download_tracking.monthly_count": 500}})
    assert download_limits.check_download_limits(company["_id"])["can_download"] is False


def test_history_keeps_latest_entries(db, portal, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(download_limits, "MAX_HISTORY", 3)
    _, company = portal.company("Acme")
    students = [ObjectId() for _ in range(5)]
    for student_id in students:
        download_limits.increment_download_count(company["_id"], student_id, ObjectId(), "resume_view")

    history = db.companies.find_one({"_id": company["_id"]})["download_history"]
    assert [entry["student"] for entry in history] == students[-3:]

    stats = download_limits.get_download_stats(company["_id"])
    assert stats["recent_downloads"][0]["student"] == students[-1]
    assert stats["total_downloads"] == 5


def test_unknown_company(db) -> None:
    with pytest.raises(LookupError, match="Company not found"):
        download_limits.check_download_limits(ObjectId())
