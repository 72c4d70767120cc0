from datetime import datetime, timedelta

import pytest

from applytrack.models import SalaryBenchmarkCache
from applytrack.services.salary_benchmarks import (
    compare_offers, estimate_company_size, evaluate_offer, location_multiplier, market_research,
)


def test_location_multiplier():
    assert location_multiplier("San Francisco, CA") == 1.35
    assert location_multiplier("Sacramento, California") == 1.25
    assert location_multiplier("Nowhere") == 1.0
    assert location_multiplier(None) == 1.0


def test_company_size_guess():
    assert estimate_company_size("Google LLC") == "enterprise"
    assert estimate_company_size("Stripe") == "large"
    assert estimate_company_size("Tiny Co") == "medium"
    assert estimate_company_size("Google", "startup") == "startup"


def test_market_research_applies_location_then_size():
    research = market_research("technology", "senior", "San Francisco, CA", "Google")
    assert research["location_adjusted"]["median"] == 222750
    assert research["adjusted"]["median"] == 267300
    # Benefits are adjusted for location only
    assert research["adjusted"]["benefits"] == 54000
    assert research["total_compensation"]["median"] == 321300
    assert len(research["historical_trends"]) == 5
    assert research["historical_trends"][-1]["median"] == 267300
    assert research["negotiation_range"]["ambitious"] == round(267300 * 1.10)


def test_unknown_industry_and_level_fall_back():
    research = market_research("underwater basket weaving", "wizard")
    assert research["factors"]["industry"] == "other"
    assert research["factors"]["experience_level"] == "mid"


def test_evaluate_offer_bands():
    below_target = evaluate_offer(100000, 90000, 110000, 130000)
    assert below_target["recommendation"] == "Counter Offer Recommended"
    assert below_target["counter_offer"] == 112000
    assert below_target["percent_of_target"] == 90.9

    great = evaluate_offer(140000, 90000, 110000, 130000)
    assert great["recommendation"] == "Accept"
    assert great["counter_offer"] is None

    low = evaluate_offer(80000, 90000, 110000, 130000)
    assert low["recommendation"] == "Counter Offer Strongly Recommended"
    assert low["counter_offer"] <= 130000


def test_evaluate_offer_fills_missing_thresholds():
    result = evaluate_offer(100000, None, 100000, None)
    assert result["thresholds"] == {"minimum_acceptable": 90000, "target_salary": 100000, "ideal_salary": 115000}
    with pytest.raises(ValueError):
        evaluate_offer(100000, None, None, None)


def test_evaluate_offer_with_only_ideal():
    result = evaluate_offer(100000, None, None, 115000)
    assert result["thresholds"] == {"minimum_acceptable": 90000, "target_salary": 100000, "ideal_salary": 115000}
    assert result["recommendation"] == "Consider Accepting or Minor Counter"


def test_compare_offers_adjusts_for_cost_of_living():
    ranked = compare_offers([
        {"company": "A", "base_salary": 150000, "location": "San Francisco"},
        {"company": "B", "base_salary": 110000, "location": "Phoenix"},
    ])
    assert [o["company"] for o in ranked] == ["B", "A"]
    assert ranked[0]["rank"] == 1
    assert ranked[1]["difference_from_best"] == 115789 - 111111


def test_research_endpoint(client):
    body = client.get("/api/salary/research?industry=finance&level=entry").json()
    assert body["base_benchmark"]["median"] == 65000
    assert client.get("/api/salary/research?level=intern").status_code == 422


def test_benchmark_is_cached(client):
    first = client.get("/api/salary/benchmarks?job_title=Data Engineer&location=Seattle").json()
    assert first["cached"] is False
    second = client.get("/api/salary/benchmarks?job_title=data engineer&location=seattle").json()
    assert second["cached"] is True
    assert second["data"]["median"] == first["data"]["median"]
    refreshed = client.get("/api/salary/benchmarks?job_title=Data Engineer&location=Seattle&refresh=true").json()
    assert refreshed["cached"] is False


def test_expired_benchmark_is_recomputed(client, db):
    client.get("/api/salary/benchmarks?job_title=Data Engineer&location=Seattle")
    row = db.query(SalaryBenchmarkCache).one()
    row.expires_at = datetime.utcnow() - timedelta(days=1)
    db.commit()

    stale = client.get("/api/salary/benchmarks?job_title=Data Engineer&location=Seattle").json()
    assert stale["cached"] is False
    db.expire_all()
    assert db.query(SalaryBenchmarkCache).count() == 1
    assert db.query(SalaryBenchmarkCache).one().expires_at > datetime.utcnow()
    assert client.get("/api/salary/benchmarks?job_title=Data Engineer&location=Seattle").json()["cached"] is True


def test_negotiation_lifecycle(client, make_job):
    job = make_job(company="Google", company_size="enterprise")
    negotiation = client.post("/api/salary/negotiations", json={
        "role": "Engineer", "company": "Google", "job_id": job["id"],
        "industry": "technology", "experience_level": "mid",
        "minimum_acceptable": 120000, "target_salary": 140000, "ideal_salary": 160000,
    }).json()
    assert negotiation["status"] == "preparing"
    assert negotiation["market_research"]["factors"]["company_size"] == "enterprise"

    with_offer = client.post(f"/api/salary/negotiations/{negotiation['id']}/offers", json={
        "base_salary": 130000, "bonus": 10000, "equity": 20000,
    }).json()
    assert with_offer["status"] == "negotiating"
    assert with_offer["offers"][0]["total"] == 160000

    # Thresholds must stay ordered against the stored values
    bad = client.patch(f"/api/salary/negotiations/{negotiation['id']}", json={"target_salary": 170000})
    assert bad.status_code == 400

    evaluation = client.post("/api/salary/evaluate", json={
        "offer_amount": 130000, "negotiation_id": negotiation["id"],
    }).json()
    assert evaluation["thresholds"]["target_salary"] == 140000
    assert evaluation["recommendation"] == "Counter Offer Recommended"


def test_create_negotiation_rejects_unordered_thresholds(client):
    response = client.post("/api/salary/negotiations", json={
        "role": "Engineer", "company": "Acme", "minimum_acceptable": 150000, "target_salary": 120000,
    })
    assert response.status_code == 422


def test_compare_endpoint_needs_two_offers(client):
    one = client.post("/api/salary/compare", json={"offers": [{"company": "A", "base_salary": 1}]})
    assert one.status_code == 422
    two = client.post("/api/salary/compare", json={"offers": [
        {"company": "A", "base_salary": 100000}, {"company": "B", "base_salary": 90000, "bonus": 20000},
    ]}).json()
    assert two["best"]["company"] == "B"


def test_progression_summary(client):
    client.post("/api/salary/progression", json={
        "company": "Initech", "role": "Engineer", "base_salary": 100000,
        "initial_offer": 95000, "negotiated": True, "offer_date": "2022-03-01",
    })
    client.post("/api/salary/progression", json={
        "company": "Globex", "role": "Senior Engineer", "base_salary": 130000,
        "annual_bonus": 10000, "offer_date": "2024-06-01",
    })
    summary = client.get("/api/salary/progression/summary").json()
    assert summary["count"] == 2
    assert summary["total_growth"] == 40000
    assert summary["total_growth_percent"] == 40.0
    assert summary["negotiated_count"] == 1
    assert summary["average_negotiation_gain"] == 5000
    records = client.get("/api/salary/progression").json()
    assert [r["company"] for r in records] == ["Globex", "Initech"]

    accepted = client.patch(f"/api/salary/progression/{records[0]['id']}", json={"outcome": "accepted"}).json()
    assert accepted["outcome"] == "accepted"
    assert accepted["total_compensation"] == 140000
    assert client.patch(f"/api/salary/progression/{records[0]['id']}",
                        json={"outcome": "maybe"}).status_code == 422
