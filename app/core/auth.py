"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification (access and password-reset tokens)
- FastAPI dependencies for protected routes and role checks
"""

import hashlib
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import get_settings
from app.db.mongodb import get_collection, COLLECTIONS
from app.services.mongo_service import to_object_id
from app.services.platform_settings import get_section

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor
bearer_scheme = HTTPBearer()

RESET_TOKEN_TYPE = "password_reset"


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def _password_fingerprint(password_hash: str) -> str:
    return hashlib.sha256(password_hash.encode()).hexdigest()[:16]


def create_password_reset_token(user: dict) -> str:
    """
    Short-lived reset token bound to the current password hash,
    so it stops working once the password changes.
    """
    settings = get_settings()
    return create_access_token(
        {
            "sub": str(user["_id"]),
            "type": RESET_TOKEN_TYPE,
            "pwd": _password_fingerprint(user["password"]),
        },
        expires_delta=timedelta(minutes=settings.password_reset_expire_minutes),
    )


def verify_password_reset_token(token: str) -> Optional[dict]:
    """Return the user a reset token belongs to, or None if it is invalid or used."""
    payload = decode_token(token)
    if not payload or payload.get("type") != RESET_TOKEN_TYPE:
        return None
    user = get_collection(COLLECTIONS["users"]).find_one({"_id": to_object_id(payload["sub"])})
    if not user or payload.get("pwd") != _password_fingerprint(user["password"]):
        return None
    return user


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    """
    FastAPI dependency - Get current authenticated user.

    Usage:
        @app.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") == RESET_TOKEN_TYPE:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception

    user = get_collection(COLLECTIONS["users"]).find_one({"_id": to_object_id(user_id)})
    if not user:
        raise credentials_exception

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account deactivated")

    maintenance = get_section("maintenance_mode")
    if maintenance["enabled"] and user["role"] not in maintenance["allowed_roles"]:
        raise HTTPException(status_code=503, detail=maintenance["message"])

    return {
        "user_id": user["_id"],
        "email": user["email"],
        "role": user["role"],
        "is_approved": user.get("is_approved", False),
        "doc": user,
    }


def require_roles(*roles: str, approved: bool = True):
    """
    Dependency factory - allow only the given roles.

    Usage:
        @router.get("/logs")
        async def route(user: dict = Depends(require_roles("super_admin", "college_admin"))):
    """
    async def dependency(user: dict = Depends(get_current_user)) -> dict:
        if user["role"] not in roles:
            raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
        if approved and not user["is_approved"]:
            raise HTTPException(status_code=403, detail="Account pending approval")
        return user

    return dependency


async def get_current_super_admin(user: dict = Depends(require_roles("super_admin"))) -> dict:
    """Dependency - Require super admin."""
    return user


async def get_current_college_admin(user: dict = Depends(require_roles("college_admin"))) -> dict:
    """Dependency - Require approved college admin and load the college."""
    college = get_collection(COLLECTIONS["colleges"]).find_one({
        "_id": user["doc"].get("college_profile"),
        "is_deleted": {"$ne": True},
    })
    if not college:
        raise HTTPException(status_code=404, detail="College profile not found")

    user["college_id"] = college["_id"]
    user["college"] = college
    return user


async def get_current_company(user: dict = Depends(require_roles("company"))) -> dict:
    """Dependency - Require approved company/agency and load its profile."""
    company = get_collection(COLLECTIONS["companies"]).find_one({
        "_id": user["doc"].get("company_profile"),
        "is_deleted": {"$ne": True},
    })
    if not company:
        raise HTTPException(status_code=404, detail="Company profile not found")

    if company.get("is_suspended"):
        raise HTTPException(status_code=403, detail="Company account is suspended")

    user["company_id"] = company["_id"]
    user["company"] = company
    return user


async def get_current_student(user: dict = Depends(require_roles("student"))) -> dict:
    """Dependency - Require student role and load the student profile."""
    student = get_collection(COLLECTIONS["students"]).find_one({
        "_id": user["doc"].get("student_profile"),
        "is_deleted": {"$ne": True},
    })
    if not student:
        raise HTTPException(status_code=404, detail="Student profile not found")

    user["student_id"] = student["_id"]
    user["student"] = student
    return user
