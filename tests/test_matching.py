from applytrack.services.skill_gap import extract_job_skills, analyze_skill_gap, skill_gap_report
from applytrack.services.job_matching import normalize_weights, DEFAULT_WEIGHTS


REQUIREMENTS = ["Python", "Docker", "Kubernetes is a plus"]


def _set_profile(client, skills):
    response = client.put("/api/profile/", json={"skills": skills, "years_experience": 4})
    assert response.status_code == 200, response.text


def test_extract_job_skills_tags_importance():
    skills = extract_job_skills(REQUIREMENTS, "We deploy on AWS.")
    by_name = {s["name"]: s for s in skills}
    assert by_name["Python"]["importance"] == "required"
    assert by_name["Kubernetes"]["importance"] == "preferred"
    assert by_name["AWS"]["source"] == "description"


def test_extract_skills_handles_symbols():
    names = [s["name"] for s in extract_job_skills(["C++ and C# experience"], None)]
    assert "C++" in names
    assert "C#" in names


def test_analyze_skill_gap_sorts_by_priority():
    job_skills = extract_job_skills(REQUIREMENTS, None)
    result = analyze_skill_gap([{"name": "python", "level": "beginner"}], job_skills)
    assert [s["name"] for s in result["weak"]] == ["Python"]
    assert [s["name"] for s in result["missing"]] == ["Docker", "Kubernetes"]
    assert result["missing"][0]["priority"] > result["missing"][1]["priority"]
    assert result["match_percentage"] == 0


def test_skill_gap_report_builds_learning_path():
    report = skill_gap_report([{"name": "Python", "level": "advanced"}], REQUIREMENTS, None)
    assert report["summary"] == {"matched": 1, "weak": 0, "missing": 2}
    skills_with_resources = [r["skill"] for r in report["learning_resources"]]
    assert skills_with_resources == ["Docker", "Kubernetes"]
    path = report["learning_path"]
    assert path["estimated_hours"] == sum(path["hours_by_phase"].values())


def test_normalize_weights_scales_to_100():
    weights = normalize_weights({"skills": 80})
    assert round(sum(weights.values())) == 100
    assert weights["skills"] > DEFAULT_WEIGHTS["skills"]


def test_job_match_endpoint(client, make_job):
    _set_profile(client, [
        {"name": "Python", "level": "expert"},
        {"name": "Docker", "level": "advanced"},
    ])
    job = make_job(requirements=REQUIREMENTS)

    match = client.get(f"/api/jobs/{job['id']}/match").json()
    assert 0 <= match["overall_score"] <= 100
    skills = match["category_scores"]["skills"]
    assert skills["weight"] == 40.0
    assert set(skills["details"]["matched"]) == {"Python", "Docker"}
    assert skills["details"]["missing"] == ["Kubernetes"]


def test_job_match_custom_weights(client, make_job):
    _set_profile(client, [{"name": "Python", "level": "expert"}])
    job = make_job(requirements=REQUIREMENTS)
    match = client.get(
        f"/api/jobs/{job['id']}/match?skills_weight=1&experience_weight=0&education_weight=0&additional_weight=0"
    ).json()
    assert match["category_scores"]["skills"]["weight"] == 100.0
    assert match["overall_score"] == match["category_scores"]["skills"]["score"]


def test_job_match_rejects_all_zero_weights(client, make_job):
    job = make_job()
    response = client.get(
        f"/api/jobs/{job['id']}/match?skills_weight=0&experience_weight=0&education_weight=0&additional_weight=0"
    )
    assert response.status_code == 400


def test_compare_matches_ranks_jobs(client, make_job):
    _set_profile(client, [{"name": "Python", "level": "expert"}, {"name": "Docker", "level": "expert"}])
    good = make_job(title="Good fit", requirements=["Python", "Docker"])
    poor = make_job(title="Poor fit", requirements=["Java", "Scala", "Kotlin"])

    result = client.post("/api/jobs/match/compare", json={"job_ids": [poor["id"], good["id"]]}).json()
    assert result["total_jobs"] == 2
    assert result["ranked"][0]["job_id"] == good["id"]
    assert result["best_match"]["job_id"] == good["id"]


def test_compare_matches_unknown_job(client, make_job):
    job = make_job()
    response = client.post("/api/jobs/match/compare", json={"job_ids": [job["id"], 4242]})
    assert response.status_code == 404


def test_skill_gap_endpoint(client, make_job):
    _set_profile(client, [{"name": "Docker", "level": "beginner"}])
    job = make_job(requirements=REQUIREMENTS)
    report = client.get(f"/api/jobs/{job['id']}/skill-gap").json()
    assert report["job_id"] == job["id"]
    assert [s["name"] for s in report["weak"]] == ["Docker"]
    assert "Python" in [s["name"] for s in report["missing"]]
