def test_profile_is_created_empty(client):
    profile = client.get("/api/profile/").json()
    assert profile["skills"] == []
    assert profile["headline"] is None

    completion = client.get("/api/profile/completion").json()
    assert completion["completion_percentage"] == 0
    assert len(completion["suggestions"]) == 3
    assert completion["suggestions"][0].startswith("Add your skills")


def test_update_profile_partially(client):
    client.put("/api/profile/", json={"headline": "Backend engineer", "experience_level": "senior"})
    updated = client.put("/api/profile/", json={
        "skills": [{"name": "Python", "level": "expert"}, {"name": "SQL"}],
        "preferred_work_mode": "remote",
    }).json()
    assert updated["headline"] == "Backend engineer"
    assert updated["preferred_work_mode"] == "remote"
    assert updated["skills"][1] == {"name": "SQL", "level": "intermediate", "category": None}

    completion = client.get("/api/profile/completion").json()
    assert set(completion["filled_fields"]) == {"headline", "experience_level", "skills"}
    assert completion["completion_percentage"] == 33


def test_salary_expectations_must_be_ordered(client):
    client.put("/api/profile/", json={"salary_expectation_max": 100000})
    response = client.put("/api/profile/", json={"salary_expectation_min": 120000})
    assert response.status_code == 400
    assert client.get("/api/profile/").json()["salary_expectation_min"] is None


def test_profile_validation(client):
    assert client.put("/api/profile/", json={"experience_level": "guru"}).status_code == 422
    assert client.put("/api/profile/", json={"skills": [{"name": "Go", "level": "godlike"}]}).status_code == 422


def test_profiles_are_per_user(client, auth, users):
    client.put("/api/profile/", json={"headline": "Alice's headline"})
    auth.use(users["bob"])
    assert client.get("/api/profile/").json()["headline"] is None
