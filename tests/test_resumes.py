import json

import pytest

from applytrack.main import seed_system_templates
from applytrack.services.resume_parser import (
    ResumeParseError, detect_section, parse_date_range, parse_resume_text, extract_text,
)
from applytrack.services.resume_validator import validate_email, validate_phone, validate_resume


RESUME_TEXT = """Jane Doe
jane.doe@example.com | (555) 234-5678
Portland, OR

Summary
Backend engineer with six years of experience building APIs.

Experience
Senior Engineer at Initech
Jan 2020 - Present
- Led the billing service rewrite
- Cut p99 latency in half

Education
State University, Bachelor of Science in Computer Science 2016

Skills
Languages: Python, Go, SQL
"""


SECTIONS = {
    "contact": {"name": "Jane Doe", "email": "jane@example.com", "phone": "555-234-5678"},
    "summary": "Backend engineer.",
    "experience": [{
        "title": "Engineer", "company": "Initech", "start_date": "2020-01", "end_date": "Present",
        "responsibilities": ["Built the billing API", "Ran the on-call rotation"],
    }],
    "skills": ["Python", "Go"],
}


@pytest.fixture
def make_resume(client):
    def _make(**overrides):
        payload = {"name": "Main resume", "sections": SECTIONS}
        payload.update(overrides)
        response = client.post("/api/resumes/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


# --- Parsing and validation ---

def test_detect_section_headings():
    assert detect_section("Professional Summary:") == "summary"
    assert detect_section("WORK EXPERIENCE") == "experience"
    assert detect_section("Built a thing with Python") is None


def test_parse_date_range_normalises_present():
    assert parse_date_range("Mar 2019 - current") == ("Mar 2019", "Present")
    assert parse_date_range("2015 to 2018") == ("2015", "2018")
    assert parse_date_range("no dates here") == (None, None)


def test_parse_resume_text():
    sections = parse_resume_text(RESUME_TEXT)
    assert sections["contact"]["name"] == "Jane Doe"
    assert sections["contact"]["email"] == "jane.doe@example.com"
    assert sections["contact"]["location"] == "Portland, OR"
    job = sections["experience"][0]
    assert (job["title"], job["company"]) == ("Senior Engineer", "Initech")
    assert job["end_date"] == "Present"
    assert job["responsibilities"] == ["Led the billing service rewrite", "Cut p99 latency in half"]
    assert sections["skills"] == ["Python", "Go", "SQL"]


def test_extract_text_rejects_unknown_format():
    with pytest.raises(ResumeParseError):
        extract_text("resume.odt", b"hello")


def test_contact_validation():
    assert validate_email("not-an-email") == "Invalid email format"
    assert validate_email("a@b.co") is None
    assert validate_phone("+1 (555) 234-5678") is None
    assert "area code" in validate_phone("055-234-5678")


def test_validate_resume_flags_missing_contact():
    result = validate_resume({"summary": "Short."})
    assert result["is_valid"] is False
    fields = {issue["field"] for issue in result["errors"]}
    assert {"email", "phone", "name"} <= fields
    assert 0 <= result["score"] < 100


# --- API ---

def test_first_resume_becomes_default(make_resume):
    first = make_resume()
    second = make_resume(name="Second")
    assert first["is_default"] is True
    assert second["is_default"] is False
    assert first["source"] == "manual"


def test_unknown_section_order_is_rejected(client):
    response = client.post("/api/resumes/", json={"name": "x", "section_order": ["summary", "hobbies"]})
    assert response.status_code == 400
    assert "hobbies" in response.json()["message"]


def test_system_template_is_copied_when_made_default(client, make_resume):
    seed_system_templates()
    templates = client.get("/api/resumes/templates").json()
    system = next(t for t in templates if t["user_id"] is None)

    default = client.post(f"/api/resumes/templates/{system['id']}/default").json()
    assert default["id"] != system["id"]
    assert default["is_default"] is True
    assert default["name"] == system["name"]

    # New resumes pick up the default template
    assert make_resume()["template_id"] == default["id"]
    # Built-in templates cannot be edited
    assert client.patch(f"/api/resumes/templates/{system['id']}", json={"name": "Mine"}).status_code == 404


def test_import_text_without_saving(client):
    response = client.post(
        "/api/resumes/import?save=false",
        files={"file": ("jane.txt", RESUME_TEXT.encode(), "text/plain")},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["resume"] is None
    assert "experience" in body["sections_found"]
    assert client.get("/api/resumes/").json() == []


def test_import_text_and_save(client):
    response = client.post(
        "/api/resumes/import",
        files={"file": ("jane_doe.txt", RESUME_TEXT.encode(), "text/plain")},
    )
    resume = response.json()["resume"]
    assert resume["name"] == "jane_doe"
    assert resume["source"] == "import"
    assert resume["is_default"] is True


def test_import_rejects_bad_files(client):
    unsupported = client.post("/api/resumes/import", files={"file": ("cv.odt", b"data", "application/octet-stream")})
    assert unsupported.status_code == 400
    empty = client.post("/api/resumes/import", files={"file": ("cv.txt", b"", "text/plain")})
    assert empty.status_code == 400


def test_clone_and_merge(client, make_resume):
    original = make_resume()
    other = make_resume(name="Other", sections={"summary": "Completely different summary."})

    clone = client.post(f"/api/resumes/{original['id']}/clone").json()
    assert clone["name"] == "Main resume (Copy)"
    assert clone["sections"] == original["sections"]

    merged = client.post(f"/api/resumes/{clone['id']}/merge", json={
        "source_resume_id": other["id"], "sections": ["summary"],
    }).json()
    assert merged["sections"]["summary"] == "Completely different summary."
    assert merged["sections"]["skills"] == ["Python", "Go"]

    assert client.post(f"/api/resumes/{clone['id']}/merge", json={
        "source_resume_id": clone["id"], "sections": ["summary"],
    }).status_code == 400
    assert client.post(f"/api/resumes/{clone['id']}/merge", json={
        "source_resume_id": other["id"], "sections": ["education"],
    }).status_code == 400


def test_validate_stores_result(client, make_resume):
    resume = make_resume()
    result = client.post(f"/api/resumes/{resume['id']}/validate").json()
    assert result["summary"]["contact_info_valid"] is True
    assert result["page_count"] == 1

    stored = client.get(f"/api/resumes/{resume['id']}").json()
    assert stored["last_validation"]["score"] == result["score"]
    assert stored["validated_at"] is not None

    # Editing sections invalidates the stored result
    client.patch(f"/api/resumes/{resume['id']}", json={"sections": {"summary": "New"}})
    assert client.get(f"/api/resumes/{resume['id']}").json()["last_validation"] is None


def test_exports(client, make_resume):
    resume = make_resume()
    pdf = client.get(f"/api/resumes/{resume['id']}/export/pdf")
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")
    assert 'filename="Main_resume.pdf"' in pdf.headers["content-disposition"]

    text = client.get(f"/api/resumes/{resume['id']}/export/txt")
    assert text.text.startswith("Jane Doe")
    assert "Initech" in text.text


def test_tailor_without_ai_is_503(client, make_resume, make_job):
    resume = make_resume()
    job = make_job()
    response = client.post(f"/api/resumes/{resume['id']}/tailor", json={"job_id": job["id"]})
    assert response.status_code == 503


def test_tailor_saves_new_resume(client, make_resume, make_job, ai_responses):
    resume = make_resume()
    job = make_job(company="Globex")
    ai_responses.append(json.dumps({
        "summary": "Billing systems specialist.",
        "experience": [{"index": 0, "responsibilities": ["Rebuilt invoicing for Globex-scale load"]}],
    }))
    body = client.post(f"/api/resumes/{resume['id']}/tailor", json={
        "job_id": job["id"], "save_as_new": True,
    }).json()

    tailored = body["resume"]
    assert tailored["name"] == "Main resume - Globex"
    assert tailored["source"] == "ai"
    assert tailored["job_id"] == job["id"]
    assert tailored["sections"]["summary"] == "Billing systems specialist."
    assert tailored["sections"]["experience"][0]["responsibilities"] == ["Rebuilt invoicing for Globex-scale load"]
    # The original is untouched
    assert client.get(f"/api/resumes/{resume['id']}").json()["sections"]["summary"] == "Backend engineer."


def test_delete_default_passes_flag_on(client, make_resume):
    first = make_resume()
    second = make_resume(name="Second")
    assert client.delete(f"/api/resumes/{first['id']}").json() == {"message": "Resume deleted"}
    assert client.get(f"/api/resumes/{second['id']}").json()["is_default"] is True


def test_resumes_are_private(client, auth, users, make_resume):
    resume = make_resume()
    auth.use(users["bob"])
    assert client.get(f"/api/resumes/{resume['id']}").status_code == 404
    assert client.post(f"/api/resumes/{resume['id']}/clone").status_code == 404


def test_repeated_default_reuses_personal_copy(client):
    seed_system_templates()
    templates = client.get("/api/resumes/templates").json()
    system = [t for t in templates if t["user_id"] is None]
    first, other = system[0], system[1]

    copy_id = client.post(f"/api/resumes/templates/{first['id']}/default").json()["id"]
    client.post(f"/api/resumes/templates/{other['id']}/default")
    again = client.post(f"/api/resumes/templates/{first['id']}/default").json()
    assert again["id"] == copy_id
    assert again["is_default"] is True

    mine = [t for t in client.get("/api/resumes/templates").json() if t["user_id"] is not None]
    assert [t["name"] for t in mine].count(first["name"]) == 1
    assert sum(t["is_default"] for t in mine) == 1

    # An edited copy is left alone and a fresh one is made
    client.patch(f"/api/resumes/templates/{copy_id}", json={"layout": {"section_order": ["contact"]}})
    fresh = client.post(f"/api/resumes/templates/{first['id']}/default").json()
    assert fresh["id"] != copy_id
