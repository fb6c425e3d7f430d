"""
Profile completeness score for a student document.

Weights: basic info 30, academic 25, school education 20,
skills & resume 15, additional 10.
"""

from typing import Dict, Any, List


def _filled(value) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict)):
        return len(value) > 0
    return True


def calculate_profile_completeness(student: dict) -> Dict[str, Any]:
    name = student.get("name") or {}
    education = student.get("education") or {}
    tenth = education.get("tenth") or {}
    twelfth = education.get("twelfth") or {}

    categories = {
        "basic_info": (30, [
            ("first name", name.get("first_name")),
            ("last name", name.get("last_name")),
            ("email", student.get("email")),
            ("phone", student.get("phone")),
            ("gender", student.get("gender")),
            ("date of birth", student.get("date_of_birth")),
        ]),
        "academic": (25, [
            ("department", student.get("department")),
            ("batch", student.get("batch")),
            ("roll number", student.get("roll_number")),
            ("cgpa", student.get("cgpa")),
            ("percentage", student.get("percentage")),
        ]),
        "education": (20, [
            ("10th percentage", tenth.get("percentage")),
            ("10th board", tenth.get("board")),
            ("12th percentage", twelfth.get("percentage")),
            ("12th board", twelfth.get("board")),
        ]),
        "skills_resume": (15, [
            ("skills", student.get("skills")),
            ("resume", student.get("resume_url")),
        ]),
        "additional": (10, [
            ("linkedin", student.get("linkedin_url")),
            ("github", student.get("github_url")),
            ("projects", student.get("projects")),
            ("certifications", student.get("certifications")),
        ]),
    }

    breakdown: Dict[str, Dict[str, float]] = {}
    missing: List[str] = []
    total = 0.0
    for category, (weight, fields) in categories.items():
        done = sum(1 for _, value in fields if _filled(value))
        missing.extend(label for label, value in fields if not _filled(value))
        score = round(weight * done / len(fields), 1)
        breakdown[category] = {"score": score, "max": weight}
        total += score

    return {
        "percentage": round(total),
        "breakdown": breakdown,
        "missing": missing,
    }
