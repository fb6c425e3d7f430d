"""
Report export - CSV/XLSX generation and download responses.
"""

from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi.responses import StreamingResponse

from app.services.mongo_service import full_name

MEDIA_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def to_csv_bytes(rows: List[Dict[str, Any]]) -> bytes:
    if not rows:
        raise ValueError("No data to export")
    return pd.DataFrame(rows).to_csv(index=False).encode("utf-8")


def to_excel_bytes(rows: List[Dict[str, Any]], sheet_name: str = "Data") -> bytes:
    if not rows:
        raise ValueError("No data to export")
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, index=False)
    return output.getvalue()


def file_response(content: bytes, filename: str, fmt: str) -> StreamingResponse:
    return StreamingResponse(
        BytesIO(content),
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}.{fmt}"'},
    )


def export_rows(rows: List[Dict[str, Any]], filename: str, fmt: str = "csv", sheet_name: str = "Data") -> StreamingResponse:
    """Build the file for `fmt` and wrap it in a download response."""
    stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S")
    content = to_csv_bytes(rows) if fmt == "csv" else to_excel_bytes(rows, sheet_name)
    return file_response(content, f"{filename}_{stamp}", fmt)


# ============================================================
# ROW FORMATTERS
# ============================================================

def _date(value: Optional[datetime], with_time: bool = False) -> str:
    if not value:
        return ""
    return value.strftime("%Y-%m-%d %H:%M" if with_time else "%Y-%m-%d")


def _na(value):
    return value if value not in (None, "") else "N/A"


def format_student_rows(students: List[dict]) -> List[Dict[str, Any]]:
    """Students must carry `college_info` (see attach_college_names)."""
    return [{
        "Roll Number": s.get("roll_number", ""),
        "First Name": (s.get("name") or {}).get("first_name", ""),
        "Last Name": (s.get("name") or {}).get("last_name", ""),
        "Email": s.get("email", ""),
        "Phone": s.get("phone") or "",
        "Department": s.get("department", ""),
        "Batch": s.get("batch", ""),
        "CGPA": _na(s.get("cgpa")),
        "Percentage": _na(s.get("percentage")),
        "Active Backlogs": (s.get("backlogs") or {}).get("active", 0),
        "Skills": ", ".join(s.get("skills") or []),
        "Placement Status": s.get("placement_status", ""),
        "Verified": "Yes" if s.get("is_verified") else "No",
        "College": (s.get("college_info") or {}).get("name", ""),
        "Resume URL": s.get("resume_url") or "",
        "LinkedIn": s.get("linkedin_url") or "",
        "GitHub": s.get("github_url") or "",
    } for s in students]


def format_application_rows(applications: List[dict]) -> List[Dict[str, Any]]:
    """Applications must carry embedded `student_info` and `job_info` docs."""
    rows = []
    for app in applications:
        student = app.get("student_info") or {}
        job = app.get("job_info") or {}
        rows.append({
            "Student Name": full_name(student),
            "Email": student.get("email", ""),
            "Roll Number": student.get("roll_number", ""),
            "Department": student.get("department", ""),
            "CGPA": _na(student.get("cgpa")),
            "Job Title": job.get("title", ""),
            "Company": job.get("company_name", ""),
            "Status": app.get("status", ""),
            "Applied Date": _date(app.get("applied_at")),
            "Resume URL": (app.get("resume_snapshot") or {}).get("url") or "",
        })
    return rows


def format_shortlist_rows(applications: List[dict]) -> List[Dict[str, Any]]:
    rows = []
    for app in applications:
        student = app.get("student_info") or {}
        job = app.get("job_info") or {}
        rows.append({
            "Student Name": full_name(student),
            "Email": student.get("email", ""),
            "Phone": student.get("phone") or "",
            "Roll Number": student.get("roll_number", ""),
            "Department": student.get("department", ""),
            "Batch": student.get("batch", ""),
            "CGPA": _na(student.get("cgpa")),
            "Skills": ", ".join(student.get("skills") or []),
            "Job Title": job.get("title", ""),
            "Status": app.get("status", ""),
            "Notes": app.get("company_notes") or "",
            "Applied Date": _date(app.get("applied_at")),
            "Resume URL": student.get("resume_url") or "",
            "LinkedIn": student.get("linkedin_url") or "",
            "GitHub": student.get("github_url") or "",
        })
    return rows


def format_activity_log_rows(logs: List[dict]) -> List[Dict[str, Any]]:
    """Logs must carry `user_info` {email, role}."""
    return [{
        "User": (log.get("user_info") or {}).get("email", ""),
        "Role": (log.get("user_info") or {}).get("role", ""),
        "Action": log.get("action", ""),
        "Target": log.get("target_model") or "",
        "Date": _date(log.get("created_at"), with_time=True),
        "IP Address": log.get("ip_address") or "",
    } for log in logs]
