from datetime import datetime, timedelta
from types import SimpleNamespace

from applytrack.services.market_intelligence import (
    hiring_activity, market_overview, salary_by_industry, skill_demand,
)

NOW = datetime(2030, 6, 12, 12, 0)  # a Wednesday


def _job(days_ago=0, **kwargs):
    defaults = {
        "title": "Engineer", "industry": None, "location": None, "work_mode": None,
        "salary_min": None, "salary_max": None, "requirements": [], "description": None,
        "status": "interested", "created_at": NOW - timedelta(days=days_ago),
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


def test_skill_demand_counts_and_trend():
    jobs = [
        _job(days_ago=2, requirements=["Python", "Docker"]),
        _job(days_ago=5, requirements=["Python"]),
        _job(days_ago=60, requirements=["Docker"]),
    ]
    demand = {d["skill"]: d for d in skill_demand(jobs, [{"name": "python"}], NOW - timedelta(days=30))}
    assert demand["Python"]["job_count"] == 2
    assert demand["Python"]["percentage"] == 66.7
    assert demand["Python"]["trend"] == "rising"
    assert demand["Python"]["user_has_skill"] is True
    assert demand["Docker"]["trend"] == "stable"
    assert demand["Docker"]["user_has_skill"] is False


def test_salary_by_industry_uses_midpoints():
    jobs = [
        _job(industry="Technology", salary_min=100000, salary_max=140000),
        _job(industry="technology", salary_min=80000),
        _job(industry="finance", salary_min=150000, salary_max=170000),
        _job(industry="finance"),
    ]
    rows = salary_by_industry(jobs)
    assert [r["industry"] for r in rows] == ["finance", "technology"]
    tech = rows[1]
    assert tech["job_count"] == 2
    assert (tech["min"], tech["max"], tech["median"]) == (80000, 140000, 100000)


def test_hiring_activity_buckets_by_week():
    jobs = [
        _job(days_ago=0, status="applied"),
        _job(days_ago=1),
        _job(days_ago=8),
        _job(days_ago=200),
    ]
    weeks = hiring_activity(jobs, NOW, weeks=3)
    assert [w["week_start"] for w in weeks] == ["2030-05-27", "2030-06-03", "2030-06-10"]
    assert weeks[-1] == {"week_start": "2030-06-10", "jobs_added": 2, "applications": 1}
    assert weeks[-2]["jobs_added"] == 1


def test_overview_recommends_missing_skills():
    jobs = [_job(requirements=["Kubernetes"], industry="technology") for _ in range(3)]
    overview = market_overview(jobs, [], NOW)
    assert overview["total_jobs"] == 3
    assert overview["skill_coverage"] == 0
    titles = [r["title"] for r in overview["recommendations"]]
    assert "Learn Kubernetes" in titles
    assert overview["recommendations"][0]["priority"] == "high"
    assert overview["industries"][0] == {"name": "technology", "count": 3, "percentage": 100.0}


def test_overview_endpoint_with_preferences(client, make_job):
    make_job(industry="fintech", location="Remote", requirements=["Python"])
    make_job(industry="retail", location="Denver, CO", requirements=["Java"])

    assert client.get("/api/market/preferences").json()["update_frequency"] == "weekly"
    saved = client.put("/api/market/preferences", json={"industries": ["fintech"]}).json()
    assert saved["industries"] == ["fintech"]

    everything = client.get("/api/market/overview").json()
    assert everything["total_jobs"] == 2
    narrowed = client.get("/api/market/overview?use_preferences=true").json()
    assert narrowed["total_jobs"] == 1
    assert [d["skill"] for d in narrowed["skill_demand"]] == ["Python"]

    by_location = client.get("/api/market/overview?location=denver").json()
    assert by_location["total_jobs"] == 1


def test_preferences_reject_bad_frequency(client):
    assert client.put("/api/market/preferences", json={"update_frequency": "hourly"}).status_code == 422
