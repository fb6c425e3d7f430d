from __future__ import annotations

from io import BytesIO

from docx import Document

from app.utils.file_upload import content_disposition

RESUME = b"Asha Rao\nBackend developer\nPython, SQL, Docker\n"


def _upload(client, headers, name="resume.txt", content=RESUME, content_type="text/plain"):
    return client.post("/api/upload/resume", files={"file": (name, content, content_type)}, headers=headers)


def test_upload_text_resume(client, db, portal) -> None:
    _, college = portal.college("ABC")
    headers, student = portal.student(college)

    response = _upload(client, headers)
    assert response.status_code == 200
    body = response.json()
    assert body["resume_url"] == f"/api/upload/resume/{student['_id']}"
    assert body["word_count"] == 7

    stored = db.resumes.find_one({"student": student["_id"]})
    assert bytes(stored["content"]) == RESUME
    assert stored["content_type"] == "text/plain"
    assert db.students.find_one({"_id": student["_id"]})["resume_url"] == body["resume_url"]

    # A second upload replaces the first.
    _upload(client, headers, content=b"Updated resume")
    assert db.resumes.count_documents({"student": student["_id"]}) == 1


def test_upload_docx_resume(client, portal) -> None:
    _, college = portal.college("ABC")
    headers, _ = portal.student(college)
    document = Document()
    document.add_paragraph("Asha Rao")
    document.add_paragraph("Distributed systems")
    output = BytesIO()
    document.save(output)

    response = _upload(
        client, headers, name="resume.docx", content=output.getvalue(),
        content_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    )
    assert response.status_code == 200
    assert response.json()["text_preview"] == "Asha Rao\nDistributed systems"


def test_upload_rejects_bad_files(client, portal) -> None:
    _, college = portal.college("ABC")
    headers, _ = portal.student(college)

    assert _upload(client, headers, name="resume.exe").status_code == 400
    assert _upload(client, headers, content=b"").status_code == 400
    assert _upload(client, headers, content=b"   \n").status_code == 400

    too_big = _upload(client, headers, content=b"a" * (5 * 1024 * 1024 + 1))
    assert too_big.status_code == 413


def test_supported_formats(client) -> None:
    formats = client.get("/api/upload/resume/formats").json()
    assert [f["extension"] for f in formats["supported_formats"]] == [".pdf", ".docx", ".txt"]
    assert formats["max_size_mb"] == 5


def test_download_resume_access(client, db, portal) -> None:
    college_headers, college = portal.college("ABC")
    other_college_headers, _ = portal.college("XYZ")
    headers, student = portal.student(college)
    other_student_headers, _ = portal.student(college, email="b@abc.edu", roll="CS002")
    company_headers, company = portal.company("Acme")
    _upload(client, headers)
    url = f"/api/upload/resume/{student['_id']}"

    own = client.get(url, headers=headers)
    assert own.status_code == 200
    assert own.content == RESUME
    assert 'filename="resume.txt"' in own.headers["content-disposition"]

    assert client.get(url, headers=college_headers).status_code == 200
    assert client.get(url, headers=other_college_headers).status_code == 403
    assert client.get(url, headers=other_student_headers).status_code == 403

    assert client.get(url, headers=company_headers).status_code == 200
    stored = db.companies.find_one({"_id": company["_id"]})
    assert stored["download_tracking"]["daily_count"] == 1
    assert stored["download_history"][-1]["download_type"] == "resume_download"


def test_company_resume_download_limits(client, db, portal) -> None:
    _, college = portal.college("ABC")
    headers, student = portal.student(college)
    company_headers, company = portal.company("Acme")
    _upload(client, headers)
    db.companies.update_one({"_id": company["_id"]}, {"$set": {"download_tracking.daily_limit": 0}})

    response = client.get(f"/api/upload/resume/{student['_id']}", headers=company_headers)
    assert response.status_code == 429


def test_missing_resume(client, portal) -> None:
    _, college = portal.college("ABC")
    headers, student = portal.student(college)
    assert client.get(f"/api/upload/resume/{student['_id']}", headers=headers).status_code == 404


def test_download_resume_with_unicode_filename(client, db, portal) -> None:
    _, college = portal.college("ABC")
    headers, student = portal.student(college)
    company_headers, company = portal.company("Acme")
    assert _upload(client, headers, name="简历.txt").status_code == 200

    own = client.get(f"/api/upload/resume/{student['_id']}", headers=headers)
    assert own.status_code == 200
    assert own.content == RESUME
    disposition = own.headers["content-disposition"]
    assert "filename*=UTF-8''%E7%AE%80%E5%8E%86.txt" in disposition
    assert 'filename="??.txt"' in disposition

    assert client.get(f"/api/upload/resume/{student['_id']}", headers=company_headers).status_code == 200
    stored = db.companies.find_one({"_id": company["_id"]})
    assert stored["download_tracking"]["daily_count"] == 1



def test_content_disposition_quotes_and_newlines() -> None:
    value = content_disposition("CV \"v2\"\r\n.pdf", "attachment")
    assert value == "attachment; filename=\"CV 'v2'.pdf\"; filename*=UTF-8''CV%20%22v2%22%0D%0A.pdf"


# ============================================================
# LOGOS
# ============================================================

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def test_company_uploads_logo(client, db, portal) -> None:
    headers, company = portal.company("Acme")

    response = client.post("/api/upload/logo", files={"file": ("acme.png", PNG, "image/png")}, headers=headers)
    assert response.status_code == 200
    url = response.json()["url"]
    assert url == f"/api/upload/logo/{company['_id']}"
    assert db.companies.find_one({"_id": company["_id"]})["logo"] == url

    logo = client.get(url)
    assert logo.status_code == 200
    assert logo.content == PNG
    assert logo.headers["content-type"] == "image/png"


def test_college_logo_replaces_previous(client, db, portal) -> None:
    headers, college = portal.college("ABC", approved=False)

    client.post("/api/upload/logo", files={"file": ("old.jpg", b"old", "image/jpeg")}, headers=headers)
    response = client.post("/api/upload/logo", files={"file": ("new.webp", b"new", "image/webp")}, headers=headers)
    assert response.status_code == 200
    assert db.logos.count_documents({"owner": college["_id"]}) == 1
    assert db.colleges.find_one({"_id": college["_id"]})["logo"] == f"/api/upload/logo/{college['_id']}"
    assert client.get(f"/api/upload/logo/{college['_id']}").content == b"new"


def test_logo_upload_rules(client, portal) -> None:
    headers, company = portal.company("Acme")
    _, college = portal.college("ABC")
    student_headers, _ = portal.student(college)

    def upload(h, name="logo.png", content=PNG):
        return client.post("/api/upload/logo", files={"file": (name, content, "image/png")}, headers=h)

    assert upload(headers, name="logo.pdf").status_code == 400
    assert upload(headers, content=b"a" * (2 * 1024 * 1024 + 1)).status_code == 413
    assert upload(student_headers).status_code == 403
    assert client.get(f"/api/upload/logo/{company['_id']}").status_code == 404
