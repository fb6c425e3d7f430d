from __future__ import annotations


def test_super_admin_routes_reject_other_roles(client, portal) -> None:
    college_headers, _ = portal.college("ABC")
    response = client.get("/api/super-admin/stats", headers=college_headers)
    assert response.status_code == 403

    assert client.get("/api/super-admin/stats").status_code in (401, 403)


def test_approve_college_notifies_and_emails_admin(client, db, portal, outbox) -> None:
    admin = portal.super_admin()
    college_headers, college = portal.college("ABC", approved=False)

    pending = client.get("/api/super-admin/colleges", params={"status": "pending"}, headers=admin)
    assert pending.status_code == 200
    assert [c["code"] for c in pending.json()["items"]] == ["ABC"]

    response = client.patch(
        f"/api/super-admin/colleges/{college['_id']}/approve", json={"approved": True}, headers=admin
    )
    assert response.status_code == 200
    assert response.json()["message"] == "College approved successfully"

    assert db.colleges.find_one({"_id": college["_id"]})["is_verified"] is True
    assert db.users.find_one({"_id": college["admin"]})["is_approved"] is True
    assert [m["Subject"] for m in outbox] == ["Your Account Has Been Approved!"]

    notification = db.notifications.find_one({"recipient": college["admin"]})
    assert notification["type"] == "account_approved"
    assert db.activity_logs.find_one({"action": "approve_college"})["target_id"] == college["_id"]

    assert client.get("/api/college/stats", headers=college_headers).status_code == 200


def test_reject_company_keeps_reason(client, db, portal, outbox) -> None:
    admin = portal.super_admin()
    _, company = portal.company("Acme", approved=False)

    response = client.patch(
        f"/api/super-admin/companies/{company['_id']}/approve",
        json={"approved": False, "reason": "Incomplete <b>details</b>"},
        headers=admin,
    )
    assert response.status_code == 200
    assert db.companies.find_one({"_id": company["_id"]})["rejection_reason"] == "Incomplete <b>details</b>"

    assert outbox[0]["Subject"] == "Account Application Status"
    html = outbox[0].get_payload()[1].get_payload(decode=True).decode()
    assert "Incomplete &lt;b&gt;details&lt;/b&gt;" in html


def test_create_college_and_company_directly(client, db, portal) -> None:
    admin = portal.super_admin()
    response = client.post("/api/super-admin/colleges", json={
        "name": "XYZ College",
        "code": "xyz",
        "address": {"city": "Nagpur", "state": "MH"},
        "admin_email": "admin@xyz.edu",
        "admin_password": "Secret123",
    }, headers=admin)
    assert response.status_code == 201
    assert response.json()["college"]["code"] == "XYZ"
    assert db.users.find_one({"email": "admin@xyz.edu"})["is_approved"] is True

    response = client.post("/api/super-admin/companies", json={
        "name": "HireFast",
        "type": "placement_agency",
        "email": "desk@hirefast.com",
        "password": "Secret123",
    }, headers=admin)
    assert response.status_code == 201
    assert response.json()["message"] == "Agency created successfully"

    dup = client.post("/api/super-admin/companies", json={
        "name": "HireFast Two",
        "email": "desk@hirefast.com",
        "password": "Secret123",
    }, headers=admin)
    assert dup.status_code == 400


def test_suspended_company_is_locked_out(client, portal) -> None:
    admin = portal.super_admin()
    company_headers, company = portal.company("Acme")
    assert client.get("/api/company/stats", headers=company_headers).status_code == 200

    response = client.patch(
        f"/api/super-admin/companies/{company['_id']}/suspend", json={"suspended": True}, headers=admin
    )
    assert response.status_code == 200

    locked = client.get("/api/company/stats", headers=company_headers)
    assert locked.status_code == 403
    assert locked.json()["detail"] == "Company account is suspended"


def test_download_limits_can_be_changed(client, db, portal) -> None:
    admin = portal.super_admin()
    _, company = portal.company("Acme")
    response = client.patch(
        f"/api/super-admin/companies/{company['_id']}/download-limits",
        json={"daily_limit": 5, "monthly_limit": 50},
        headers=admin,
    )
    assert response.status_code == 200
    tracking = db.companies.find_one({"_id": company["_id"]})["download_tracking"]
    assert tracking["daily_limit"] == 5
    assert tracking["monthly_limit"] == 50


def test_toggle_user_status(client, db, portal) -> None:
    admin = portal.super_admin()
    admin_user = db.users.find_one({"role": "super_admin"})
    college_headers, college = portal.college("ABC")

    own = client.patch(f"/api/super-admin/users/{admin_user['_id']}/toggle-status", headers=admin)
    assert own.status_code == 400

    response = client.patch(f"/api/super-admin/users/{college['admin']}/toggle-status", headers=admin)
    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert client.get("/api/college/stats", headers=college_headers).status_code == 403


def test_unknown_ids_answer_404(client, portal) -> None:
    admin = portal.super_admin()
    assert client.get("/api/super-admin/colleges/not-an-id", headers=admin).status_code == 404
    assert client.get("/api/super-admin/colleges/64b7f0c2a1b2c3d4e5f60718", headers=admin).status_code == 404
