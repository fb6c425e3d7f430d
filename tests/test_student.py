from __future__ import annotations


def test_profile_view_and_update(client, db, portal) -> None:
    _, college = portal.college("ABC")
    headers, student = portal.student(college)

    profile = client.get("/api/student/profile", headers=headers).json()
    assert profile["college"]["code"] == "ABC"
    assert "phone" in profile["profile_completeness"]["missing"]

    assert client.put("/api/student/profile", json={}, headers=headers).status_code == 400

    response = client.put(
        "/api/student/profile",
        json={"phone": "9876543210", "skills": ["Python", "Kafka"], "placement_status": "higher_studies"},
        headers=headers,
    )
    assert response.status_code == 200
    assert "phone" not in response.json()["profile_completeness"]["missing"]
    stored = db.students.find_one({"_id": student["_id"]})
    assert stored["skills"] == ["Python", "Kafka"]
    assert stored["placement_status"] == "higher_studies"


def test_students_cannot_edit_academic_data(client, db, portal) -> None:
    _, college = portal.college("ABC")
    headers, student = portal.student(college)

    client.put("/api/student/profile", json={"phone": "1", "cgpa": 10.0}, headers=headers)
    assert db.students.find_one({"_id": student["_id"]})["cgpa"] == 8.2

    placed = client.put("/api/student/profile", json={"placement_status": "placed"}, headers=headers)
    assert placed.status_code == 422


def test_placement_status_locked_while_in_process(client, portal) -> None:
    _, college = portal.college("ABC")
    headers, _ = portal.student(college, placement_status="in_process")

    response = client.put("/api/student/profile", json={"placement_status": "not_interested"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Placement status cannot be changed while in process or placed"


def test_student_dashboard(client, db, portal) -> None:
    _, college = portal.college("ABC")
    headers, student = portal.student(college)
    _, company = portal.company("Acme")
    applied_job = portal.job(company)
    portal.job(company, title="Data Engineer")
    portal.job(company, title="ECE only", eligibility={"allowed_departments": ["ECE"]})
    portal.application(student, applied_job, status="shortlisted")
    db.invitations.insert_one({"student": student["_id"], "job": applied_job["_id"], "status": "sent"})

    stats = client.get("/api/student/stats", headers=headers).json()
    assert stats["applications"] == {"total": 1, "by_status": {"shortlisted": 1}}
    assert stats["pending_invitations"] == 1
    assert stats["eligible_jobs"] == 2
    assert stats["unread_notifications"] == 0
    assert stats["placement_status"] == "not_placed"


def test_only_students_use_student_routes(client, portal) -> None:
    college_headers, _ = portal.college("ABC")
    assert client.get("/api/student/stats", headers=college_headers).status_code == 403
    assert client.get("/api/student/stats").status_code in (401, 403)
