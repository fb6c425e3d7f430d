from __future__ import annotations


def _search(client, headers, **params):
    return client.get("/api/company/students/search", params=params, headers=headers)


def test_search_only_returns_verified_students(client, portal) -> None:
    _, college = portal.college("ABC")
    portal.student(college, email="a@abc.edu", roll="CS001", cgpa=9.0, skills=["Python", "Go"])
    portal.student(college, email="b@abc.edu", roll="CS002", cgpa=7.0, skills=["Java"])
    portal.student(college, email="c@abc.edu", roll="CS003", verified=False)
    headers, _ = portal.company("Acme")

    everyone = _search(client, headers).json()
    assert [s["email"] for s in everyone["items"]] == ["a@abc.edu", "b@abc.edu"]
    assert everyone["items"][0]["college_info"]["code"] == "ABC"
    assert "user" not in everyone["items"][0]
    assert "gender" not in everyone["items"][0]

    assert [s["email"] for s in _search(client, headers, min_cgpa=8).json()["items"]] == ["a@abc.edu"]
    assert [s["email"] for s in _search(client, headers, skills="python").json()["items"]] == ["a@abc.edu"]
    # Skill filters match whole skills, not substrings.
    assert _search(client, headers, skills="Jav").json()["pagination"]["total"] == 0
    assert _search(client, headers, q="java").json()["pagination"]["total"] == 1


def test_star_students_sort_first(client, portal) -> None:
    _, college = portal.college("ABC")
    portal.student(college, email="a@abc.edu", roll="CS001", cgpa=9.5)
    _, star = portal.student(college, email="b@abc.edu", roll="CS002", cgpa=7.2)
    portal.db.students.update_one({"_id": star["_id"]}, {"$set": {"is_star_student": True}})
    headers, _ = portal.company("Acme")

    items = _search(client, headers).json()["items"]
    assert [s["email"] for s in items] == ["b@abc.edu", "a@abc.edu"]


def test_visibility_settings_mask_and_block(client, portal) -> None:
    admin = portal.super_admin()
    _, college = portal.college("ABC")
    _, student = portal.student(college)
    company_headers, _ = portal.company("Acme")
    agency_headers, _ = portal.company("HireFast", type="placement_agency")

    client.patch(
        "/api/super-admin/settings/data_visibility",
        json={"student_data_visible_to_agencies": False, "visible_fields": {"contact_info": False}},
        headers=admin,
    )

    assert _search(client, agency_headers).status_code == 403
    detail = client.get(f"/api/company/students/{student['_id']}", headers=company_headers)
    assert detail.status_code == 200
    assert "email" not in detail.json()["student"]
    assert "phone" not in detail.json()["student"]
    assert detail.json()["student"]["cgpa"] == 8.2


def test_college_approval_scopes_search(client, db, portal) -> None:
    admin = portal.super_admin()
    _, abc = portal.college("ABC")
    _, xyz = portal.college("XYZ")
    portal.student(abc, email="a@abc.edu", roll="CS001")
    portal.student(xyz, email="x@xyz.edu", roll="CS001")
    headers, company = portal.company("Acme")

    client.patch(
        "/api/super-admin/settings/data_visibility",
        json={"require_college_approval_for_access": True},
        headers=admin,
    )
    assert _search(client, headers).json()["pagination"]["total"] == 0

    db.companies.update_one(
        {"_id": company["_id"]},
        {"$set": {"college_access": [{"college": abc["_id"], "status": "approved"}]}},
    )
    assert [s["email"] for s in _search(client, headers).json()["items"]] == ["a@abc.edu"]
    assert _search(client, headers, college_id=str(xyz["_id"])).status_code == 403


def test_view_student_is_logged(client, db, portal) -> None:
    college_headers, college = portal.college("ABC")
    _, student = portal.student(college)
    headers, _ = portal.company("Acme")

    assert client.get(f"/api/company/students/{student['_id']}", headers=headers).status_code == 200

    logs = client.get(f"/api/activity-logs/student/{student['_id']}", headers=college_headers).json()
    assert [log["action"] for log in logs["items"]] == ["view_student"]
    assert logs["items"][0]["user_info"]["email"] == "hr@acme.com"


def test_invite_student_once_per_job(client, db, portal) -> None:
    _, college = portal.college("ABC")
    student_headers, student = portal.student(college)
    headers, company = portal.company("Acme")
    job = portal.job(company)
    url = f"/api/company/students/{student['_id']}/invite"

    response = client.post(url, json={"job_id": str(job["_id"]), "message": "We liked your profile"}, headers=headers)
    assert response.status_code == 201
    assert db.notifications.find_one({"recipient": student["user"]})["type"] == "invitation"

    duplicate = client.post(url, json={"job_id": str(job["_id"])}, headers=headers)
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Student has already been invited to this job"

    draft = portal.job(company, status="draft")
    assert client.post(url, json={"job_id": str(draft["_id"])}, headers=headers).status_code == 400

    invitations = client.get("/api/student/invitations", headers=student_headers).json()["items"]
    assert invitations[0]["company_name"] == "Acme"
    invitation_id = invitations[0]["_id"]

    viewed = client.patch(f"/api/student/invitations/{invitation_id}", json={"status": "viewed"}, headers=student_headers)
    assert viewed.status_code == 200
    declined = client.patch(f"/api/student/invitations/{invitation_id}", json={"status": "declined"}, headers=student_headers)
    assert declined.json()["invitation"]["status"] == "declined"
    again = client.patch(f"/api/student/invitations/{invitation_id}", json={"status": "accepted"}, headers=student_headers)
    assert again.status_code == 400


def test_invite_requires_student_account(client, portal) -> None:
    _, college = portal.college("ABC")
    _, student = portal.student(college, with_account=False)
    headers, company = portal.company("Acme")
    job = portal.job(company)

    response = client.post(
        f"/api/company/students/{student['_id']}/invite", json={"job_id": str(job["_id"])}, headers=headers
    )
    assert response.status_code == 404


def test_bulk_download_counts_against_limits(client, db, portal) -> None:
    _, college = portal.college("ABC")
    _, first = portal.student(college, email="a@abc.edu", roll="CS001")
    _, second = portal.student(college, email="b@abc.edu", roll="CS002")
    headers, company = portal.company("Acme")
    db.companies.update_one({"_id": company["_id"]}, {"$set": {"download_tracking.daily_limit": 3}})
    ids = [str(first["_id"]), str(second["_id"])]

    response = client.post(
        "/api/company/students/bulk-download", json={"student_ids": ids, "format": "csv"}, headers=headers
    )
    assert response.status_code == 200
    assert "a@abc.edu" in response.text

    stored = db.companies.find_one({"_id": company["_id"]})
    assert stored["download_tracking"]["daily_count"] == 2
    assert stored["stats"]["total_downloads"] == 2
    assert stored["download_history"][-1]["record_count"] == 2

    over = client.post(
        "/api/company/students/bulk-download", json={"student_ids": ids, "format": "csv"}, headers=headers
    )
    assert over.status_code == 429
    assert over.json()["detail"] == "Download limit exceeded. You can download 1 more records"

    stats = client.get("/api/company/download-stats", headers=headers).json()
    assert stats["daily_remaining"] == 1
    assert stats["recent_downloads"][0]["download_type"] == "bulk_download"


def test_bulk_download_can_be_disabled(client, portal) -> None:
    admin = portal.super_admin()
    _, college = portal.college("ABC")
    _, student = portal.student(college)
    headers, _ = portal.company("Acme")
    client.patch("/api/super-admin/settings/data_visibility", json={"allow_bulk_download": False}, headers=admin)

    response = client.post(
        "/api/company/students/bulk-download", json={"student_ids": [str(student["_id"])]}, headers=headers
    )
    assert response.status_code == 403


def test_resume_views_exhaust_the_daily_limit(client, db, portal) -> None:
    _, college = portal.college("ABC")
    _, student = portal.student(college)
    headers, company = portal.company("Acme")
    db.companies.update_one({"_id": company["_id"]}, {"$set": {"download_tracking.daily_limit": 1}})
    url = f"/api/company/students/{student['_id']}/log-resume-view"

    first = client.post(url, headers=headers)
    assert first.status_code == 200
    assert first.json()["resume_url"] == "https://files.test/asha.pdf"
    assert first.json()["limits"]["can_download"] is False

    assert client.post(url, headers=headers).status_code == 429
    assert db.activity_logs.count_documents({"action": "view_resume"}) == 1


def test_saved_search_filters(client, portal) -> None:
    headers, _ = portal.company("Acme")

    saved = client.post(
        "/api/company/search-filters",
        json={"name": "Top CSE", "filters": {"department": "CSE", "min_cgpa": 8}},
        headers=headers,
    )
    assert saved.status_code == 201
    filter_id = saved.json()["filter"]["_id"]

    listed = client.get("/api/company/search-filters", headers=headers).json()["filters"]
    assert [f["name"] for f in listed] == ["Top CSE"]

    assert client.delete(f"/api/company/search-filters/{filter_id}", headers=headers).status_code == 200
    assert client.delete(f"/api/company/search-filters/{filter_id}", headers=headers).status_code == 404


def test_company_profile_update(client, portal) -> None:
    headers, _ = portal.company("Acme")

    assert client.put("/api/company/profile", json={}, headers=headers).status_code == 400
    response = client.put("/api/company/profile", json={"industry": "Fintech", "size": "51-200"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["company"]["industry"] == "Fintech"
    assert "download_history" not in client.get("/api/company/profile", headers=headers).json()
