"""
Student spreadsheet import.

Maps loosely-structured Excel/CSV sheets to the student schema:
- Headers are trimmed and matched case-insensitively against known aliases
- Skills are comma-separated
- Rows without a first name or an email are dropped

Supported formats: .xlsx (openpyxl), legacy .xls and .csv
"""

import logging
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional

import pandas as pd

from app.utils.file_upload import get_file_extension

logger = logging.getLogger(__name__)

ALLOWED_SHEET_EXTENSIONS = {".xlsx", ".xls", ".csv"}

COLUMN_ALIASES = {
    "first_name": ["first name", "firstname"],
    "last_name": ["last name", "lastname"],
    "email": ["email"],
    "phone": ["phone", "mobile"],
    "gender": ["gender"],
    "department": ["department", "branch"],
    "batch": ["batch", "year"],
    "roll_number": ["roll number", "rollnumber", "roll no"],
    "cgpa": ["cgpa"],
    "percentage": ["percentage"],
    "active_backlogs": ["active backlogs", "activebacklogs"],
    "backlog_history": ["backlog history", "totalbacklogs"],
    "tenth_percentage": ["10th %", "tenthpercentage"],
    "tenth_board": ["10th board"],
    "twelfth_percentage": ["12th %", "twelfthpercentage"],
    "twelfth_board": ["12th board"],
    "twelfth_stream": ["12th stream"],
    "skills": ["skills"],
    "linkedin_url": ["linkedin", "linkedinurl"],
    "github_url": ["github", "githuburl"],
    "resume_url": ["resume url", "resumeurl"],
}

TEMPLATE_HEADERS = [
    "First Name", "Last Name", "Email", "Phone", "Gender",
    "Department", "Batch", "Roll Number", "CGPA", "Percentage",
    "Active Backlogs", "Backlog History", "10th %", "10th Board",
    "12th %", "12th Board", "12th Stream", "Skills", "LinkedIn", "GitHub",
]

TEMPLATE_SAMPLE = [
    "John", "Doe", "john@email.com", "9876543210", "male",
    "Computer Science", 2024, "CS001", 8.5, 85, 0, 0, 90, "CBSE",
    88, "CBSE", "Science", "JavaScript, React, Node.js", "", "",
]


# ============================================================
# VALUE COERCION
# ============================================================

def _text(value: Any) -> str:
    if value is None:
        return ""
    # Excel hands back numeric ids/phones as floats (e.g. 101.0)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if _text(value) else default
    except (TypeError, ValueError):
        return default


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value)) if _text(value) else default
    except (TypeError, ValueError):
        return default


def _optional(value: Any) -> Optional[str]:
    return _text(value) or None


# ============================================================
# PARSING
# ============================================================

def read_sheet(content: bytes, filename: str) -> pd.DataFrame:
    """
    Load the first sheet of an upload into a DataFrame.

    Raises:
        ValueError if the file type is unsupported or unreadable
    """
    ext = get_file_extension(filename or "")
    if ext not in ALLOWED_SHEET_EXTENSIONS:
        raise ValueError(f"Unsupported file type '{ext}'. Allowed: .xlsx, .xls, .csv")
    try:
        if ext == ".csv":
            df = pd.read_csv(BytesIO(content))
        elif ext == ".xlsx":
            df = pd.read_excel(BytesIO(content), engine="openpyxl")
        else:
            df = pd.read_excel(BytesIO(content))
    except Exception as e:
        raise ValueError(f"Could not read spreadsheet: {e}") from e

    df.columns = [str(c).replace("\n", " ").strip().lower() for c in df.columns]
    return df.astype(object).where(pd.notna(df), None)


def _resolve_columns(columns: List[str]) -> Dict[str, str]:
    """Map schema field -> sheet column for the aliases present."""
    resolved = {}
    for field, aliases in COLUMN_ALIASES.items():
        match = next((c for c in columns if c in aliases), None)
        if match is not None:
            resolved[field] = match
    return resolved


def map_row(row: Dict[str, Any], columns: Dict[str, str]) -> Dict[str, Any]:
    """Convert one sheet row into a student document shape."""
    def get(field):
        column = columns.get(field)
        return row.get(column) if column else None

    skills = [s.strip() for s in _text(get("skills")).split(",") if s.strip()]

    return {
        "name": {
            "first_name": _text(get("first_name")),
            "last_name": _text(get("last_name")),
        },
        "email": _text(get("email")).lower(),
        "phone": _optional(get("phone")),
        "gender": _text(get("gender")).lower() or None,
        "department": _text(get("department")),
        "batch": _int(get("batch"), datetime.utcnow().year),
        "roll_number": _text(get("roll_number")),
        "cgpa": _float(get("cgpa")),
        "percentage": _float(get("percentage")),
        "backlogs": {
            "active": _int(get("active_backlogs")),
            "history": _int(get("backlog_history")),
        },
        "education": {
            "tenth": {
                "percentage": _float(get("tenth_percentage")),
                "board": _optional(get("tenth_board")),
            },
            "twelfth": {
                "percentage": _float(get("twelfth_percentage")),
                "board": _optional(get("twelfth_board")),
                "stream": _optional(get("twelfth_stream")),
            },
        },
        "skills": skills,
        "linkedin_url": _optional(get("linkedin_url")),
        "github_url": _optional(get("github_url")),
        "resume_url": _optional(get("resume_url")),
    }


def parse_student_sheet(content: bytes, filename: str) -> List[Dict[str, Any]]:
    """
    Parse an uploaded sheet into student dicts.

    Returns:
        List of student dicts; rows missing first name or email are dropped
    """
    df = read_sheet(content, filename)
    columns = _resolve_columns(list(df.columns))

    students = []
    for index, row in enumerate(df.to_dict(orient="records"), start=2):
        student = map_row(row, columns)
        if not student["name"]["first_name"] or not student["email"]:
            logger.debug("Skipping sheet row %d: missing first name or email", index)
            continue
        students.append(student)

    logger.info("Parsed %d of %d rows from %s", len(students), len(df), filename)
    return students


def generate_student_template() -> bytes:
    """XLSX template with the header row and one sample row."""
    df = pd.DataFrame([TEMPLATE_SAMPLE], columns=TEMPLATE_HEADERS)
    output = BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Students", index=False)
    return output.getvalue()
