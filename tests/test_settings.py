from __future__ import annotations

import pytest

from app.services import platform_settings


def test_defaults_are_created_on_first_read(db) -> None:
    assert db.platform_settings.count_documents({}) == 0
    settings = platform_settings.get_platform_settings()
    assert db.platform_settings.count_documents({}) == 1
    assert settings["data_visibility"]["max_downloads_per_day"] == 100
    assert settings["maintenance_mode"]["enabled"] is False


def test_stored_values_merge_over_defaults(db) -> None:
    db.platform_settings.insert_one({"notifications": {"job_posting_alert": True}})
    notifications = platform_settings.get_section("notifications")
    assert notifications["job_posting_alert"] is True
    assert notifications["email_notifications"] is True


def test_update_section_rejects_unknown_keys(db) -> None:
    with pytest.raises(ValueError, match="maintenance_mode.colour"):
        platform_settings.update_section("maintenance_mode", {"colour": "red"})


def test_update_section_checks_value_types(db) -> None:
    with pytest.raises(ValueError, match="college_registration.enabled' must be a boolean"):
        platform_settings.update_section("college_registration", {"enabled": "false"})
    with pytest.raises(ValueError, match="must be a list of strings"):
        platform_settings.update_section("maintenance_mode", {"allowed_roles": "super_admin"})
    with pytest.raises(ValueError, match="must be an integer"):
        platform_settings.update_section("data_visibility", {"max_downloads_per_day": True})
    with pytest.raises(ValueError, match="cannot be negative"):
        platform_settings.update_section("data_visibility", {"max_downloads_per_day": -1})
    with pytest.raises(ValueError, match="must be a string"):
        platform_settings.update_section("maintenance_mode", {"message": None})

    assert platform_settings.get_section("college_registration")["enabled"] is True
    platform_settings.update_section("student_self_signup", {"allowed_domains": ["abc.edu"]})
    assert platform_settings.get_section("student_self_signup")["allowed_domains"] == ["abc.edu"]


def test_registration_settings_for_agencies(db) -> None:
    platform_settings.update_section("agency_registration", {"auto_approve": True})
    reg = platform_settings.registration_settings("company", "placement_agency")
    assert reg == {"enabled": True, "auto_approved": True, "section": reg["section"]}

    reg = platform_settings.registration_settings("company", "company")
    assert reg["auto_approved"] is False

    platform_settings.update_section("college_registration", {"require_approval": False})
    assert platform_settings.registration_settings("college_admin")["auto_approved"] is True


def test_patch_settings_over_api(client, portal) -> None:
    admin = portal.super_admin()

    unknown_section = client.patch("/api/super-admin/settings/theme", json={"dark": True}, headers=admin)
    assert unknown_section.status_code == 400

    unknown_key = client.patch(
        "/api/super-admin/settings/data_visibility", json={"visible_fields": {"salary": True}}, headers=admin
    )
    assert unknown_key.status_code == 400

    response = client.patch(
        "/api/super-admin/settings/data_visibility", json={"max_downloads_per_day": 10}, headers=admin
    )
    assert response.status_code == 200
    section = response.json()["settings"]["data_visibility"]
    assert section["max_downloads_per_day"] == 10
    assert section["visible_fields"]["resume"] is True
    assert section["last_modified_by"] is not None

    reset = client.post("/api/super-admin/settings/reset", headers=admin)
    assert reset.status_code == 200
    assert reset.json()["settings"]["data_visibility"]["max_downloads_per_day"] == 100


def test_maintenance_mode_blocks_other_roles(client, portal) -> None:
    admin = portal.super_admin()
    college_headers, _ = portal.college("ABC")

    client.patch(
        "/api/super-admin/settings/maintenance_mode",
        json={"enabled": True, "message": "Back at noon"},
        headers=admin,
    )

    blocked = client.get("/api/college/stats", headers=college_headers)
    assert blocked.status_code == 503
    assert blocked.json()["detail"] == "Back at noon"
    assert client.get("/api/super-admin/stats", headers=admin).status_code == 200

    public = client.get("/api/settings/public")
    assert public.status_code == 200
    assert public.json()["maintenance_mode"] == {"enabled": True, "message": "Back at noon"}
    assert "approval_rules" not in public.json()


def test_settings_api_rejects_string_flags(client, portal) -> None:
    admin = portal.super_admin()

    patched = client.patch(
        "/api/super-admin/settings/college_registration", json={"enabled": "false"}, headers=admin
    )
    assert patched.status_code == 400
    assert patched.json()["detail"] == "Setting 'college_registration.enabled' must be a boolean"

    client.patch("/api/super-admin/settings/college_registration", json={"enabled": False}, headers=admin)
    response = client.post("/api/auth/register", json={
        "email": "tpo@abc.edu",
        "password": "CollegePass1",
        "role": "college_admin",
        "college_name": "ABC Institute of Technology",
        "college_code": "abc",
        "address": {"city": "Pune", "state": "MH"},
    })
    assert response.status_code == 403
