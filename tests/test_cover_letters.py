from applytrack.main import seed_system_templates
from applytrack.services.cover_letter_options import (
    build_template_letter, fill_template, recommended_tone, template_values, tone_warnings,
)


def test_fill_template_keeps_unknown_placeholders():
    assert fill_template("Hi {name}, see {unknown}", {"name": "Sam"}) == "Hi Sam, see {unknown}"


def test_template_letter_without_summary_has_no_blank_runs():
    values = template_values(name="Sam Lee", company="Acme", role="Engineer", tone="casual",
                             skills=["Python", "SQL"], years_experience=3)
    letter = build_template_letter(values)
    assert letter.startswith("Dear Hiring Manager,")
    assert "Engineer opening at Acme" in letter
    assert "Python, SQL" in letter
    assert "3 years" in letter
    assert "\n\n\n" not in letter
    assert letter.endswith("Best,\nSam Lee")


def test_tone_advice():
    assert tone_warnings("formal", "technology", "startup")
    assert tone_warnings("formal", "technology", "corporate") == []
    assert recommended_tone("technology", "startup") == "enthusiastic"
    assert recommended_tone("finance", "enterprise") == "formal"


def test_options_catalog(client):
    options = client.get("/api/cover-letters/options").json()
    assert "formal" in options["tones"]
    assert options["lengths"]["brief"]["paragraphs"] == 3


def test_generate_falls_back_to_template_without_ai(client, make_job):
    job = make_job(title="Data Engineer", company="Globex")
    body = client.post("/api/cover-letters/generate", json={
        "job_id": job["id"], "tone": "formal", "company_culture": "startup", "save": True,
    }).json()
    assert body["source"] == "template"
    assert len(body["variations"]) == 1
    assert "Data Engineer position at Globex" in body["variations"][0]["content"]
    assert body["warnings"]
    saved = body["cover_letter"]
    assert saved["name"] == "Globex - Data Engineer"
    assert saved["is_ai_generated"] is False
    assert saved["job_id"] == job["id"]


def test_generate_with_named_template_counts_usage(client):
    seed_system_templates()
    templates = client.get("/api/cover-letters/templates").json()
    template = next(t for t in templates if t["name"] == "Results Focused")
    client.post("/api/cover-letters/generate", json={
        "company_name": "Initech", "role": "Analyst", "template_id": template["id"],
    })
    refreshed = client.get("/api/cover-letters/templates").json()
    assert next(t for t in refreshed if t["id"] == template["id"])["usage_count"] == 1


def test_generate_requires_a_target(client):
    response = client.post("/api/cover-letters/generate", json={"company_name": "Acme"})
    assert response.status_code == 422


def test_generate_rejects_unknown_options(client):
    response = client.post("/api/cover-letters/generate", json={
        "company_name": "Acme", "role": "Engineer", "tone": "sarcastic",
    })
    assert response.status_code == 400
    assert "sarcastic" in response.json()["message"]


def test_generate_with_ai_variations(client, ai_responses):
    ai_responses.extend([
        "Here's your cover letter:\nDear Hiring Team,\nFirst version.",
        "Dear Hiring Team,\nSecond version.",
    ])
    body = client.post("/api/cover-letters/generate", json={
        "company_name": "Acme", "role": "Engineer", "variations": 2, "save": True,
    }).json()
    assert body["source"] == "ai"
    assert [v["content"] for v in body["variations"]] == [
        "Dear Hiring Team,\nFirst version.",
        "Dear Hiring Team,\nSecond version.",
    ]
    assert body["cover_letter"]["is_ai_generated"] is True


def test_generate_ai_failure_uses_template(client, ai_responses):
    # Only one canned answer for two variations: the second call fails
    ai_responses.append("Dear Hiring Team,\nOnly one.")
    body = client.post("/api/cover-letters/generate", json={
        "company_name": "Acme", "role": "Engineer", "variations": 2,
    }).json()
    assert body["source"] == "template"
    assert len(body["variations"]) == 1


def test_cover_letter_crud_and_export(client, make_job):
    job = make_job()
    letter = client.post("/api/cover-letters/", json={
        "name": "Acme letter", "content": "Dear Acme,\nHire me.", "job_id": job["id"],
    }).json()
    client.patch(f"/api/jobs/{job['id']}", json={"cover_letter_id": letter["id"]})

    updated = client.patch(f"/api/cover-letters/{letter['id']}", json={"tone": "casual"}).json()
    assert updated["tone"] == "casual"

    text = client.get(f"/api/cover-letters/{letter['id']}/export/txt")
    assert text.text == "Dear Acme,\nHire me."
    pdf = client.get(f"/api/cover-letters/{letter['id']}/export/pdf")
    assert pdf.content.startswith(b"%PDF")

    client.delete(f"/api/cover-letters/{letter['id']}")
    assert client.get(f"/api/jobs/{job['id']}").json()["cover_letter_id"] is None


def test_system_template_cannot_be_deleted(client):
    seed_system_templates()
    system = client.get("/api/cover-letters/templates").json()[0]
    assert client.delete(f"/api/cover-letters/templates/{system['id']}").status_code == 404
