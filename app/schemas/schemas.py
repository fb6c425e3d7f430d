"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Any, Dict
from datetime import datetime
from enum import Enum

from app.services.mongo_service import to_naive_utc


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    super_admin = "super_admin"
    college_admin = "college_admin"
    company = "company"
    student = "student"


class CompanyType(str, Enum):
    company = "company"
    placement_agency = "placement_agency"


class CompanySize(str, Enum):
    xs = "1-50"
    small = "51-200"
    medium = "201-500"
    large = "501-1000"
    enterprise = "1000+"


class Gender(str, Enum):
    male = "male"
    female = "female"
    other = "other"


class PlacementStatus(str, Enum):
    not_placed = "not_placed"
    in_process = "in_process"
    placed = "placed"
    not_interested = "not_interested"
    higher_studies = "higher_studies"


class StudentSource(str, Enum):
    manual = "manual"
    bulk_upload = "bulk_upload"
    self_registration = "self_registration"


class JobType(str, Enum):
    internship = "internship"
    full_time = "full_time"
    part_time = "part_time"
    contract = "contract"


class WorkMode(str, Enum):
    onsite = "onsite"
    remote = "remote"
    hybrid = "hybrid"


class JobStatus(str, Enum):
    draft = "draft"
    open = "open"
    closed = "closed"
    filled = "filled"
    cancelled = "cancelled"


class ApplicationStatus(str, Enum):
    applied = "applied"
    under_review = "under_review"
    shortlisted = "shortlisted"
    interview_scheduled = "interview_scheduled"
    interviewed = "interviewed"
    offered = "offered"
    offer_accepted = "offer_accepted"
    hired = "hired"
    rejected = "rejected"
    withdrawn = "withdrawn"


class InvitationStatus(str, Enum):
    sent = "sent"
    viewed = "viewed"
    accepted = "accepted"
    declined = "declined"


class AccessStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ActivityAction(str, Enum):
    view_student = "view_student"
    download_student_data = "download_student_data"
    shortlist_student = "shortlist_student"
    invite_student = "invite_student"
    approve_college = "approve_college"
    approve_company = "approve_company"
    bulk_upload = "bulk_upload"
    export_data = "export_data"
    update_student = "update_student"
    delete_student = "delete_student"
    post_job = "post_job"
    update_job = "update_job"
    view_resume = "view_resume"


class ExportFormat(str, Enum):
    csv = "csv"
    xlsx = "xlsx"


# ============================================================
# COMMON
# ============================================================

class StoredModel(BaseModel):
    """Base for request bodies that are written to MongoDB as-is (enums as plain strings)."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class MessageResponse(BaseModel):
    message: str
    success: bool = True


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PaginatedResponse(BaseModel):
    items: List[Dict[str, Any]]
    pagination: PaginationMeta


class Address(BaseModel):
    street: Optional[str] = None
    city: str
    state: str
    pincode: Optional[str] = None


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole

    # college_admin
    college_name: Optional[str] = None
    college_code: Optional[str] = None
    university: Optional[str] = None
    address: Optional[Address] = None
    phone: Optional[str] = None
    website: Optional[str] = None

    # company / placement agency
    company_name: Optional[str] = None
    company_type: CompanyType = CompanyType.company
    industry: Optional[str] = None
    contact_person_name: Optional[str] = None

    # student self-signup (college_code above identifies the college)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    department: Optional[str] = None
    batch: Optional[int] = Field(None, ge=1990, le=2100)
    roll_number: Optional[str] = None

    @model_validator(mode="after")
    def check_role_fields(self):
        if self.role == UserRole.super_admin:
            raise ValueError("Super admin accounts cannot be registered")
        if self.role == UserRole.college_admin:
            missing = [f for f in ("college_name", "college_code", "address") if not getattr(self, f)]
        elif self.role == UserRole.company:
            missing = [f for f in ("company_name",) if not getattr(self, f)]
        else:
            missing = [
                f for f in ("college_code", "first_name", "department", "batch", "roll_number")
                if not getattr(self, f)
            ]
        if missing:
            raise ValueError(f"Missing fields for {self.role.value}: {', '.join(missing)}")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str
    is_approved: bool


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=6)


# ============================================================
# COLLEGE SCHEMAS
# ============================================================

class PlacementRules(BaseModel):
    min_cgpa: float = Field(6.0, ge=0, le=10)
    max_active_backlogs: int = Field(2, ge=0)
    allow_multiple_offers: bool = False
    require_resume_upload: bool = True


class CollegeSettings(BaseModel):
    allow_student_self_signup: bool = True
    placement_rules: PlacementRules = PlacementRules()


class CollegeCreate(BaseModel):
    """Super admin creates a college together with its admin account."""
    name: str = Field(..., min_length=2, max_length=200)
    code: str = Field(..., min_length=2, max_length=20)
    university: Optional[str] = None
    address: Address
    contact_email: Optional[EmailStr] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    departments: List[str] = []
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=6)


class CollegeUpdate(StoredModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    university: Optional[str] = None
    address: Optional[Address] = None
    contact_email: Optional[EmailStr] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    departments: Optional[List[str]] = None


class ApprovalRequest(BaseModel):
    approved: bool
    reason: Optional[str] = None


class AccessDecision(BaseModel):
    approved: bool


# ============================================================
# COMPANY SCHEMAS
# ============================================================

class ContactPerson(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    designation: Optional[str] = None


class CompanyCreate(StoredModel):
    """Super admin creates a company/agency together with its login."""
    name: str = Field(..., min_length=2, max_length=200)
    type: CompanyType = CompanyType.company
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    size: Optional[CompanySize] = None
    headquarters: Optional[str] = None
    contact_person: Optional[ContactPerson] = None
    email: EmailStr
    password: str = Field(..., min_length=6)


class CompanyUpdate(StoredModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    industry: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    size: Optional[CompanySize] = None
    headquarters: Optional[str] = None
    contact_person: Optional[ContactPerson] = None


class SuspendRequest(BaseModel):
    suspended: bool


class DownloadLimitsUpdate(BaseModel):
    daily_limit: int = Field(..., ge=0)
    monthly_limit: int = Field(..., ge=0)


class SearchFilterCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    filters: Dict[str, Any]


class InviteRequest(BaseModel):
    job_id: str
    message: Optional[str] = Field(None, max_length=2000)


class BulkDownloadRequest(BaseModel):
    student_ids: List[str] = Field(..., min_length=1)
    format: ExportFormat = ExportFormat.xlsx


class ShortlistRequest(BaseModel):
    job_id: str
    notes: Optional[str] = None


class NoteRequest(BaseModel):
    note: str


# ============================================================
# STUDENT SCHEMAS
# ============================================================

class StudentName(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = ""


class Backlogs(BaseModel):
    active: int = Field(0, ge=0)
    history: int = Field(0, ge=0)


class SchoolRecord(BaseModel):
    percentage: Optional[float] = Field(None, ge=0, le=100)
    board: Optional[str] = None
    stream: Optional[str] = None


class Education(BaseModel):
    tenth: SchoolRecord = SchoolRecord()
    twelfth: SchoolRecord = SchoolRecord()


class Project(BaseModel):
    title: str
    description: Optional[str] = None
    technologies: List[str] = []
    link: Optional[str] = None


class Certification(BaseModel):
    name: str
    issuer: Optional[str] = None
    year: Optional[int] = None
    link: Optional[str] = None


class StudentCreate(StoredModel):
    """College admin adds a student record."""
    name: StudentName
    email: EmailStr
    phone: Optional[str] = None
    gender: Optional[Gender] = None
    date_of_birth: Optional[datetime] = None
    department: str
    batch: int = Field(..., ge=1990, le=2100)
    roll_number: str
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    percentage: Optional[float] = Field(None, ge=0, le=100)
    backlogs: Backlogs = Backlogs()
    education: Education = Education()
    skills: List[str] = []
    resume_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    portfolio_url: Optional[str] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return v.lower()

    @field_validator("gender", mode="before")
    @classmethod
    def blank_gender(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @field_validator("date_of_birth")
    @classmethod
    def naive_dob(cls, v):
        return to_naive_utc(v)


class StudentUpdate(StoredModel):
    """College admin edits a student record."""
    name: Optional[StudentName] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    gender: Optional[Gender] = None
    department: Optional[str] = None
    batch: Optional[int] = Field(None, ge=1990, le=2100)
    roll_number: Optional[str] = None
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    percentage: Optional[float] = Field(None, ge=0, le=100)
    backlogs: Optional[Backlogs] = None
    education: Optional[Education] = None
    skills: Optional[List[str]] = None
    placement_status: Optional[PlacementStatus] = None
    resume_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    portfolio_url: Optional[str] = None


class StudentProfileUpdate(StoredModel):
    """Fields a student may edit on their own profile."""
    phone: Optional[str] = None
    skills: Optional[List[str]] = None
    projects: Optional[List[Project]] = None
    certifications: Optional[List[Certification]] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    about: Optional[str] = Field(None, max_length=2000)
    placement_status: Optional[PlacementStatus] = None

    @field_validator("placement_status")
    @classmethod
    def self_service_status(cls, v):
        if v is not None and v not in (PlacementStatus.not_interested, PlacementStatus.higher_studies,
                                       PlacementStatus.not_placed):
            raise ValueError("Students may only set not_placed, not_interested or higher_studies")
        return v


class StudentRejectRequest(BaseModel):
    reason: Optional[str] = None


class StudentAccountCreate(BaseModel):
    password: str = Field(..., min_length=6)


class BulkStudentsRequest(BaseModel):
    students: List[Dict[str, Any]] = Field(..., min_length=1)


# ============================================================
# JOB SCHEMAS
# ============================================================

class Salary(BaseModel):
    min: Optional[float] = Field(None, ge=0)
    max: Optional[float] = Field(None, ge=0)
    currency: str = "INR"
    period: str = "yearly"


class Eligibility(BaseModel):
    min_cgpa: Optional[float] = Field(None, ge=0, le=10)
    max_backlogs: Optional[int] = Field(None, ge=0)
    allowed_departments: List[str] = []
    allowed_batches: List[int] = []
    required_skills: List[str] = []
    preferred_skills: List[str] = []


class HiringStep(BaseModel):
    step: int
    name: str
    description: Optional[str] = None


class JobCreate(StoredModel):
    title: str = Field(..., min_length=2, max_length=200)
    description: str = Field(..., min_length=10)
    requirements: List[str] = []
    type: JobType = JobType.full_time
    category: Optional[str] = None
    locations: List[str] = []
    work_mode: WorkMode = WorkMode.onsite
    salary: Optional[Salary] = None
    stipend: Optional[float] = Field(None, ge=0)
    openings: int = Field(1, ge=1)
    eligibility: Eligibility = Eligibility()
    hiring_process: List[HiringStep] = []
    application_deadline: datetime
    status: JobStatus = JobStatus.draft
    is_placement_drive: bool = False
    college_id: Optional[str] = None

    @field_validator("application_deadline")
    @classmethod
    def naive_deadline(cls, v):
        return to_naive_utc(v)


class JobUpdate(StoredModel):
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = Field(None, min_length=10)
    requirements: Optional[List[str]] = None
    type: Optional[JobType] = None
    category: Optional[str] = None
    locations: Optional[List[str]] = None
    work_mode: Optional[WorkMode] = None
    salary: Optional[Salary] = None
    stipend: Optional[float] = Field(None, ge=0)
    openings: Optional[int] = Field(None, ge=1)
    eligibility: Optional[Eligibility] = None
    hiring_process: Optional[List[HiringStep]] = None
    application_deadline: Optional[datetime] = None
    status: Optional[JobStatus] = None

    @field_validator("application_deadline")
    @classmethod
    def naive_deadline(cls, v):
        return to_naive_utc(v)


# ============================================================
# APPLICATION SCHEMAS
# ============================================================

class ApplyRequest(BaseModel):
    cover_letter: Optional[str] = Field(None, max_length=5000)


class InterviewDetails(BaseModel):
    scheduled_at: datetime
    mode: str = "online"
    location: Optional[str] = None
    meeting_link: Optional[str] = None

    @field_validator("scheduled_at")
    @classmethod
    def naive_schedule(cls, v):
        return to_naive_utc(v)


class OfferDetails(BaseModel):
    package: Optional[float] = Field(None, ge=0)
    joining_date: Optional[datetime] = None
    offer_letter_url: Optional[str] = None

    @field_validator("joining_date")
    @classmethod
    def naive_joining(cls, v):
        return to_naive_utc(v)


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    remarks: Optional[str] = None
    interview: Optional[InterviewDetails] = None
    offer: Optional[OfferDetails] = None


class OfferResponse(BaseModel):
    accept: bool


class InvitationResponse(BaseModel):
    status: InvitationStatus

    @field_validator("status")
    @classmethod
    def student_choices(cls, v):
        if v == InvitationStatus.sent:
            raise ValueError("Status must be viewed, accepted or declined")
        return v
