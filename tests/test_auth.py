from __future__ import annotations

from urllib.parse import parse_qs, urlparse


def _register_college(client, *, email: str = "tpo@abc.edu", code: str = "abc"):
    payload = {
        "email": email,
        "password": "CollegePass1",
        "role": "college_admin",
        "college_name": "ABC Institute of Technology",
        "college_code": code,
        "address": {"city": "Pune", "state": "MH"},
    }
    return client.post("/api/auth/register", json=payload)


def _login(client, *, email: str, password: str):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_register_college_is_pending_until_approved(client, db, outbox) -> None:
    response = _register_college(client)
    assert response.status_code == 201
    body = response.json()
    assert body["user"]["role"] == "college_admin"
    assert body["user"]["is_approved"] is False
    assert "password" not in body["user"]
    assert "pending approval" in body["message"]

    college = db.colleges.find_one({"code": "ABC"})
    assert college is not None
    assert college["is_verified"] is False

    assert [m["Subject"] for m in outbox] == ["Welcome to Placement Management System"]

    headers = {"Authorization": f"Bearer {body['access_token']}"}
    assert client.get("/api/college/stats", headers=headers).status_code == 403


def test_register_duplicate_email_and_college_code(client) -> None:
    assert _register_college(client).status_code == 201

    again = _register_college(client, code="XYZ")
    assert again.status_code == 400
    assert again.json()["detail"] == "Email already registered"

    same_code = _register_college(client, email="other@abc.edu")
    assert same_code.status_code == 400
    assert same_code.json()["detail"] == "College code already exists"


def test_register_rejects_super_admin_and_missing_fields(client) -> None:
    response = client.post(
        "/api/auth/register",
        json={"email": "boss@portal.test", "password": "Secret123", "role": "super_admin"},
    )
    assert response.status_code == 422

    response = client.post(
        "/api/auth/register",
        json={"email": "hr@acme.com", "password": "Secret123", "role": "company"},
    )
    assert response.status_code == 422


def test_registration_can_be_disabled_per_role(client, portal) -> None:
    admin = portal.super_admin()
    patched = client.patch(
        "/api/super-admin/settings/agency_registration", json={"enabled": False}, headers=admin
    )
    assert patched.status_code == 200

    response = client.post("/api/auth/register", json={
        "email": "desk@hirefast.com",
        "password": "Secret123",
        "role": "company",
        "company_name": "HireFast",
        "company_type": "placement_agency",
    })
    assert response.status_code == 403
    assert response.json()["detail"] == "Agency registration is currently disabled"

    # Plain companies are governed by their own section.
    response = client.post("/api/auth/register", json={
        "email": "hr@acme.com",
        "password": "Secret123",
        "role": "company",
        "company_name": "Acme",
    })
    assert response.status_code == 201


def test_auto_approval_rule_approves_companies(client, db, portal) -> None:
    admin = portal.super_admin()
    client.patch(
        "/api/super-admin/settings/approval_rules", json={"auto_approve_companies": True}, headers=admin
    )
    response = client.post("/api/auth/register", json={
        "email": "hr@acme.com",
        "password": "Secret123",
        "role": "company",
        "company_name": "Acme",
    })
    assert response.status_code == 201
    assert response.json()["user"]["is_approved"] is True
    assert db.companies.find_one({"name": "Acme"})["is_approved"] is True


def test_student_self_signup_needs_verified_college(client, db, portal) -> None:
    payload = {
        "email": "ravi@abc.edu",
        "password": "Secret123",
        "role": "student",
        "college_code": "ABC",
        "first_name": "Ravi",
        "department": "CSE",
        "batch": 2025,
        "roll_number": "CS042",
    }
    assert client.post("/api/auth/register", json=payload).status_code == 404

    _, college = portal.college("ABC")
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201

    student = db.students.find_one({"email": "ravi@abc.edu"})
    assert student["source"] == "self_registration"
    assert student["is_verified"] is False
    assert db.colleges.find_one({"_id": college["_id"]})["stats"]["total_students"] == 1


def test_student_self_signup_domain_whitelist(client, portal) -> None:
    admin = portal.super_admin()
    portal.college("ABC")
    client.patch(
        "/api/super-admin/settings/student_self_signup",
        json={"allowed_domains": ["@abc.edu"]},
        headers=admin,
    )
    response = client.post("/api/auth/register", json={
        "email": "ravi@gmail.com",
        "password": "Secret123",
        "role": "student",
        "college_code": "ABC",
        "first_name": "Ravi",
        "department": "CSE",
        "batch": 2025,
        "roll_number": "CS042",
    })
    assert response.status_code == 403


def test_login_me_and_change_password(client) -> None:
    _register_college(client)

    assert _login(client, email="tpo@abc.edu", password="wrong").status_code == 401

    login = _login(client, email="TPO@abc.edu", password="CollegePass1")
    assert login.status_code == 200
    token = login.json()
    assert token["role"] == "college_admin"
    assert token["is_approved"] is False

    headers = {"Authorization": f"Bearer {token['access_token']}"}
    me = client.get("/api/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "tpo@abc.edu"
    assert me.json()["profile"]["code"] == "ABC"

    bad = client.put(
        "/api/auth/password",
        json={"current_password": "nope", "new_password": "NewPass123"},
        headers=headers,
    )
    assert bad.status_code == 400

    ok = client.put(
        "/api/auth/password",
        json={"current_password": "CollegePass1", "new_password": "NewPass123"},
        headers=headers,
    )
    assert ok.status_code == 200
    assert _login(client, email="tpo@abc.edu", password="NewPass123").status_code == 200


def test_deactivated_account_cannot_login(client, db) -> None:
    _register_college(client)
    db.users.update_one({"email": "tpo@abc.edu"}, {"$set": {"is_active": False}})
    response = _login(client, email="tpo@abc.edu", password="CollegePass1")
    assert response.status_code == 403


def test_password_reset_token_is_single_use(client, outbox) -> None:
    _register_college(client)
    outbox.clear()

    unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@abc.edu"})
    assert unknown.status_code == 200
    assert outbox == []

    response = client.post("/api/auth/forgot-password", json={"email": "tpo@abc.edu"})
    assert response.status_code == 200
    assert response.json()["message"] == unknown.json()["message"]
    assert outbox[0]["Subject"] == "Password Reset Request"

    html = outbox[0].get_payload()[1].get_payload(decode=True).decode()
    link = html.split('href="', 1)[1].split('"', 1)[0]
    token = parse_qs(urlparse(link).query)["token"][0]

    reset = client.post("/api/auth/reset-password", json={"token": token, "new_password": "Fresh1234"})
    assert reset.status_code == 200
    assert _login(client, email="tpo@abc.edu", password="Fresh1234").status_code == 200

    reused = client.post("/api/auth/reset-password", json={"token": token, "new_password": "Again1234"})
    assert reused.status_code == 400
