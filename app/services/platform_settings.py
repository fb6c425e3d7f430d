"""
Platform Settings Service

A single document in `platform_settings` holds every platform-wide toggle.
It is created with DEFAULT_PLATFORM_SETTINGS on first read, and stored
values are always merged over the defaults so new keys appear without a
migration.
"""

import copy
import logging
from typing import Any, Dict, Optional

from bson import ObjectId

from app.db.mongodb import get_collection, COLLECTIONS
from app.services.mongo_service import utcnow

logger = logging.getLogger(__name__)


DEFAULT_PLATFORM_SETTINGS: Dict[str, Any] = {
    "student_self_signup": {
        "enabled": True,
        "require_approval": True,
        "allowed_domains": [],
    },
    "agency_registration": {
        "enabled": True,
        "require_approval": True,
        "auto_approve": False,
    },
    "college_registration": {
        "enabled": True,
        "require_approval": True,
    },
    "company_registration": {
        "enabled": True,
        "require_approval": True,
    },
    "approval_rules": {
        "auto_approve_colleges": False,
        "auto_approve_companies": False,
        "auto_approve_students": False,
        "auto_approve_agencies": False,
        "require_email_verification": False,
    },
    "maintenance_mode": {
        "enabled": False,
        "message": "System is under maintenance. Please check back later.",
        "allowed_roles": ["super_admin"],
    },
    "data_visibility": {
        "student_data_visible_to_companies": True,
        "student_data_visible_to_agencies": True,
        "require_college_approval_for_access": False,
        "visible_fields": {
            "contact_info": True,
            "academic_details": True,
            "resume": True,
            "personal_info": False,
        },
        "allow_bulk_download": True,
        "max_downloads_per_day": 100,
    },
    "job_posting": {
        "require_approval": False,
        "allow_companies": True,
        "allow_agencies": True,
    },
    "notifications": {
        "email_notifications": True,
        "new_registration_alert": True,
        "job_posting_alert": False,
    },
}

SETTINGS_SECTIONS = tuple(DEFAULT_PLATFORM_SETTINGS.keys())
SETTINGS_VERSION = "1.0.0"

# Bookkeeping keys stamped on each section, never set by clients
_META_KEYS = {"last_modified_by", "last_modified_at"}


def _merge(defaults: dict, stored: dict) -> dict:
    merged = copy.deepcopy(defaults)
    for key, value in (stored or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_platform_settings() -> Dict[str, Any]:
    """Return the settings singleton, creating it with defaults if missing."""
    collection = get_collection(COLLECTIONS["platform_settings"])
    doc = collection.find_one()
    if doc is None:
        doc = copy.deepcopy(DEFAULT_PLATFORM_SETTINGS)
        doc["version"] = SETTINGS_VERSION
        doc["last_updated"] = utcnow()
        collection.insert_one(doc)
        logger.info("Created default platform settings")
    return _merge(DEFAULT_PLATFORM_SETTINGS, doc)


def get_section(section: str) -> Dict[str, Any]:
    return get_platform_settings()[section]


_TYPE_NAMES = {bool: "a boolean", int: "an integer", str: "a string", list: "a list of strings"}


def _check_value(default: Any, value: Any, name: str) -> None:
    """Each value must have the type of its default; lists hold strings."""
    expected = type(default)
    # bool is a subclass of int, so compare exact types for those two
    if expected in (bool, int):
        valid = type(value) is expected
    elif expected is list:
        valid = isinstance(value, list) and all(isinstance(item, str) for item in value)
    else:
        valid = isinstance(value, expected)
    if not valid:
        raise ValueError(f"Setting '{name}' must be {_TYPE_NAMES[expected]}")
    if expected is int and value < 0:
        raise ValueError(f"Setting '{name}' cannot be negative")


def _validate_keys(defaults: dict, updates: dict, path: str) -> None:
    for key, value in updates.items():
        if key not in defaults:
            raise ValueError(f"Unknown setting '{path}.{key}'")
        if isinstance(defaults[key], dict):
            if not isinstance(value, dict):
                raise ValueError(f"Setting '{path}.{key}' must be an object")
            _validate_keys(defaults[key], value, f"{path}.{key}")
        else:
            _check_value(defaults[key], value, f"{path}.{key}")


def update_section(section: str, updates: Dict[str, Any], user_id: Optional[ObjectId] = None) -> Dict[str, Any]:
    """
    Partially update one settings section.

    Raises:
        ValueError for an unknown section or key, or a value of the wrong type
    """
    if section not in DEFAULT_PLATFORM_SETTINGS:
        raise ValueError(f"Unknown settings section '{section}'")
    updates = {k: v for k, v in updates.items() if k not in _META_KEYS}
    _validate_keys(DEFAULT_PLATFORM_SETTINGS[section], updates, section)

    current = get_platform_settings()
    merged_section = _merge(current[section], updates)
    now = utcnow()
    merged_section["last_modified_by"] = user_id
    merged_section["last_modified_at"] = now

    get_collection(COLLECTIONS["platform_settings"]).update_one(
        {"_id": current["_id"]},
        {"$set": {section: merged_section, "last_updated": now, "updated_by": user_id}},
    )
    logger.info("Platform settings section '%s' updated", section)
    return get_platform_settings()


def reset_platform_settings(user_id: Optional[ObjectId] = None) -> Dict[str, Any]:
    """Restore every section to its default value."""
    collection = get_collection(COLLECTIONS["platform_settings"])
    current = get_platform_settings()
    doc = copy.deepcopy(DEFAULT_PLATFORM_SETTINGS)
    doc["version"] = SETTINGS_VERSION
    doc["last_updated"] = utcnow()
    doc["updated_by"] = user_id
    collection.replace_one({"_id": current["_id"]}, doc)
    logger.info("Platform settings reset to defaults")
    return get_platform_settings()


def registration_settings(role: str, company_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Resolve (enabled, auto_approved) for a registering role.
    """
    settings = get_platform_settings()
    rules = settings["approval_rules"]

    if role == "college_admin":
        section = settings["college_registration"]
        auto = rules["auto_approve_colleges"]
    elif role == "student":
        section = settings["student_self_signup"]
        auto = rules["auto_approve_students"]
    elif company_type == "placement_agency":
        section = settings["agency_registration"]
        auto = rules["auto_approve_agencies"] or section["auto_approve"]
    else:
        section = settings["company_registration"]
        auto = rules["auto_approve_companies"]

    return {
        "enabled": section["enabled"],
        "auto_approved": bool(auto or not section["require_approval"]),
        "section": section,
    }


def public_settings() -> Dict[str, Any]:
    """Subset safe to expose without authentication."""
    settings = get_platform_settings()
    return {
        "student_self_signup": {
            "enabled": settings["student_self_signup"]["enabled"],
            "allowed_domains": settings["student_self_signup"]["allowed_domains"],
        },
        "agency_registration": {"enabled": settings["agency_registration"]["enabled"]},
        "college_registration": {"enabled": settings["college_registration"]["enabled"]},
        "company_registration": {"enabled": settings["company_registration"]["enabled"]},
        "maintenance_mode": {
            "enabled": settings["maintenance_mode"]["enabled"],
            "message": settings["maintenance_mode"]["message"],
        },
        "version": settings.get("version", SETTINGS_VERSION),
    }
