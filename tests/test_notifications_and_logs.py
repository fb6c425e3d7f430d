from __future__ import annotations

from datetime import timedelta

from app.services.activity_service import ActivityLogService
from app.services.mongo_service import utcnow
from app.services.notification_service import NotificationService, notification_template


def test_notification_inbox(client, portal) -> None:
    _, college = portal.college("ABC")
    headers, student = portal.student(college)
    _, other = portal.student(college, email="b@abc.edu", roll="CS002")
    service = NotificationService()
    first = service.create(student["user"], notification_template("job_posted", "Data Analyst"))
    service.create(student["user"], notification_template("student_verified"))
    foreign = service.create(other["user"], notification_template("student_verified"))
    assert service.create(None, notification_template("student_verified")) is None

    inbox = client.get("/api/notifications", headers=headers).json()
    assert inbox["unread_count"] == 2
    assert inbox["pagination"]["total"] == 2

    assert client.patch(f"/api/notifications/{first}/read", headers=headers).status_code == 200
    unread = client.get("/api/notifications", params={"unread_only": True}, headers=headers).json()
    assert [n["type"] for n in unread["items"]] == ["student_verified"]

    assert client.patch(f"/api/notifications/{foreign}/read", headers=headers).status_code == 404
    assert client.patch("/api/notifications/read-all", headers=headers).json()["updated"] == 1
    assert client.get("/api/notifications", headers=headers).json()["unread_count"] == 0

    assert client.delete(f"/api/notifications/{first}", headers=headers).status_code == 200
    assert client.delete(f"/api/notifications/{first}", headers=headers).status_code == 404
    assert client.delete("/api/notifications/not-an-id", headers=headers).status_code == 404


def test_notify_super_admins_skips_inactive(db, portal) -> None:
    portal.super_admin()
    portal.super_admin("second@portal.test")
    db.users.update_one({"email": "second@portal.test"}, {"$set": {"is_active": False}})

    created = NotificationService().notify_super_admins(
        notification_template("new_registration", "college_admin", "admin@new.edu")
    )
    assert created == 1
    assert db.notifications.find_one()["message"] == "A new college admin account (admin@new.edu) has registered."


def test_activity_logs_for_super_admin(client, db, portal) -> None:
    admin = portal.super_admin()
    _, college = portal.college("ABC")
    _, student = portal.student(college)
    _, company = portal.company("Acme")
    company_user = db.users.find_one({"email": "hr@acme.com"})
    service = ActivityLogService()
    service.log(company_user["_id"], "view_student", "Student", student["_id"])
    service.log(company_user["_id"], "post_job", "Job")

    everything = client.get("/api/activity-logs", headers=admin).json()
    assert everything["pagination"]["total"] == 2
    assert everything["items"][0]["user_info"] == {"email": "hr@acme.com", "role": "company"}

    only_views = client.get("/api/activity-logs", params={"action": "view_student"}, headers=admin).json()
    assert only_views["pagination"]["total"] == 1

    future = (utcnow() + timedelta(days=1)).isoformat()
    later = client.get("/api/activity-logs", params={"start_date": future}, headers=admin).json()
    assert later["pagination"]["total"] == 0

    stats = client.get("/api/activity-logs/stats", headers=admin).json()
    assert stats["total"] == 2
    assert stats["by_action"] == {"view_student": 1, "post_job": 1}
    assert stats["top_users"][0] == {"user_id": str(company_user["_id"]), "email": "hr@acme.com", "count": 2}
    assert len(stats["timeline"]) == 7
    assert stats["timeline"][-1]["count"] == 2

    export = client.get("/api/activity-logs/export", headers=admin)
    assert export.status_code == 200
    lines = export.text.strip().splitlines()
    assert lines[0] == "User,Role,Action,Target,Date,IP Address"
    assert len(lines) == 3


def test_college_admin_sees_own_scope(client, db, portal) -> None:
    college_headers, college = portal.college("ABC")
    _, other_college = portal.college("XYZ")
    _, mine = portal.student(college)
    _, theirs = portal.student(other_college, email="x@xyz.edu")
    portal.company("Acme")
    company_user = db.users.find_one({"email": "hr@acme.com"})
    college_user = db.users.find_one({"email": "admin@abc.edu"})
    service = ActivityLogService()
    service.log(company_user["_id"], "view_student", "Student", mine["_id"])
    service.log(company_user["_id"], "view_student", "Student", theirs["_id"])
    service.log(college_user["_id"], "update_student", "Student", mine["_id"])
    service.log(company_user["_id"], "post_job", "Job")

    logs = client.get("/api/activity-logs", headers=college_headers).json()
    assert sorted(log["action"] for log in logs["items"]) == ["update_student", "view_student"]

    student_logs = client.get(f"/api/activity-logs/student/{mine['_id']}", headers=college_headers).json()
    assert [log["action"] for log in student_logs["items"]] == ["view_student"]

    hidden = client.get(f"/api/activity-logs/student/{theirs['_id']}", headers=college_headers)
    assert hidden.status_code == 404


def test_log_stats_follow_scope_and_window(client, db, portal) -> None:
    college_headers, college = portal.college("ABC")
    _, other_college = portal.college("XYZ")
    _, mine = portal.student(college)
    _, theirs = portal.student(other_college, email="x@xyz.edu")
    portal.company("Acme")
    company_user = db.users.find_one({"email": "hr@acme.com"})
    service = ActivityLogService()
    service.log(company_user["_id"], "view_student", "Student", mine["_id"])
    service.log(company_user["_id"], "shortlist_student", "Student", mine["_id"])
    service.log(company_user["_id"], "view_student", "Student", theirs["_id"])
    service.log(company_user["_id"], "view_resume", "Student", mine["_id"])
    db.activity_logs.update_one({"action": "view_resume"}, {"$set": {"created_at": utcnow() - timedelta(days=30)}})

    stats = client.get("/api/activity-logs/stats", headers=college_headers).json()
    assert stats["total"] == 3
    assert stats["by_action"] == {"view_student": 1, "shortlist_student": 1, "view_resume": 1}
    assert stats["top_users"] == [{"user_id": str(company_user["_id"]), "email": "hr@acme.com", "count": 3}]
    assert [day["count"] for day in stats["timeline"]] == [0, 0, 0, 0, 0, 0, 2]


def test_activity_logs_are_not_for_companies(client, portal) -> None:
    headers, _ = portal.company("Acme")
    assert client.get("/api/activity-logs", headers=headers).status_code == 403
