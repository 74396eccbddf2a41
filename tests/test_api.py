from fastapi.testclient import TestClient

from favorability.main import app

client = TestClient(app)

CAREER_CHART = {"planets": [{"name": "Saturn", "house": 10}, {"name": "Jupiter", "house": 10}]}


def test_root():
    r = client.get("/")
    assert r.status_code == 200
    assert r.json() == {"message": "Favorability API running!"}


def test_catalog_list_and_reload():
    r = client.post("/catalogs/reload")
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 5 and body["errors"] == []

    listing = client.get("/catalogs/list").json()
    assert "career" in listing["ids"]
    marriage = next(c for c in listing["catalogs"] if c["domain"] == "marriage")
    assert marriage["ratings"][0]["label"] == "Excellent"
    assert marriage["alignments"] == ["Jupiter-Venus Alignment"]


def test_classify():
    r = client.post("/timing/marriage/classify", params={"score": 75})
    assert r.status_code == 200
    assert r.json()["label"] == "Very Good"

    r = client.post("/timing/marriage/classify", params={"score": 150})
    assert r.status_code == 422
    assert r.json()["error"] == "contract_violation"


def test_unknown_domain_is_404():
    r = client.post("/timing/numerology/classify", params={"score": 50})
    assert r.status_code == 404


def test_aggregate():
    r = client.post("/timing/career/aggregate", json={"factors": [
        {"kind": "transit", "identity": "SATURN:H10"},
        {"kind": "transit", "identity": "JUPITER:H10"},
    ]})
    assert r.status_code == 200
    body = r.json()
    assert body["normalized_score"] == 76.0
    assert body["dominant"][0]["identity"] == "SATURN:H10"

    r = client.post("/timing/career/aggregate", json={"factors": [
        {"kind": "transit", "identity": "SATURN:H10", "strength": 1.5}]})
    assert r.status_code == 422


def test_analyze_static():
    r = client.post("/timing/career/analyze/static", json={
        "chart": CAREER_CHART, "reference_date": "2024-09-01", "horizon_days": 14})
    assert r.status_code == 200
    body = r.json()
    assert body["current_timing"]["rating"]["label"] == "Very Good"
    assert body["future_windows"][0]["start_date"] == "2024-09-01"
    assert body["future_windows"][0]["end_date"] == "2024-09-15"
    assert "favorable" in body["counseling"]["current_advice"]


def test_analyze_static_contract_errors():
    r = client.post("/timing/career/analyze/static", json={
        "chart": {"planets": [{"name": "Saturn", "house": 14}]}, "reference_date": "2024-09-01"})
    assert r.status_code == 422

    r = client.post("/timing/career/analyze/static", json={
        "chart": CAREER_CHART, "reference_date": "01/09/2024"})
    assert r.status_code == 422

    r = client.post("/timing/career/analyze/static", json={
        "chart": CAREER_CHART, "reference_date": "2024-09-01", "horizon_days": 5000})
    assert r.status_code == 422


def test_analyze_with_ephemeris():
    r = client.post("/timing/charity/analyze", json={
        "dob": "1990-05-15", "tob": "10:30", "lat": 28.61, "lon": 77.21, "tz": 5.5,
        "reference_date": "2024-01-04", "horizon_days": 6,
    })
    assert r.status_code == 200
    body = r.json()
    assert body["domain"] == "charity"
    assert 0 <= body["current_timing"]["breakdown"]["normalized_score"] <= 100
    assert any(o["type"] == "AlignmentMatch" for o in body["optimal_dates"])


def test_analyze_rejects_malformed_birth_data():
    body = {"dob": "15/05/1990", "tob": "10:30", "lat": 28.61, "lon": 77.21, "tz": 5.5,
            "reference_date": "2024-01-04", "horizon_days": 3}
    r = client.post("/timing/charity/analyze", json=body)
    assert r.status_code == 422
    assert "birth data" in r.json()["detail"]

    r = client.post("/timing/charity/analyze", json={**body, "dob": "1990-05-15", "tob": "25:99"})
    assert r.status_code == 422


def test_analyze_bounds_worker_count():
    body = {"dob": "1990-05-15", "tob": "10:30", "lat": 28.61, "lon": 77.21, "tz": 5.5,
            "reference_date": "2024-01-04", "horizon_days": 3}
    r = client.post("/timing/charity/analyze", params={"workers": 64}, json=body)
    assert r.status_code == 422
    r = client.post("/timing/charity/analyze", params={"workers": 0}, json=body)
    assert r.status_code == 422
