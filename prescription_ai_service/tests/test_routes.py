"""
HTTP tests for the prescription routes
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client():
    return TestClient(app)


def _analyze(client, text, **extra):
    body = {"text": text, "start_date": "2025-01-15", "today": "2025-01-15", **extra}
    return client.post("/prescription/analyze", json=body)


def test_health(client):
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/prescription/health").json()["ok"] is True
    assert client.get("/").status_code == 200


def test_analyze_then_get_data(client, sample_prescription_text):
    """Analyze returns a bundle and an id; get-data resolves options against it"""
    resp = _analyze(client, sample_prescription_text)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ACCEPTED"
    assert body["analysis_id"]
    assert body["full_data"] is None
    assert "reminders_today" in [o["id"] for o in body["bundle"]["options"]["view_options"]]

    data = client.post("/prescription/get-data", json={
        "option_id": "reminders_today",
        "analysis_id": body["analysis_id"],
        "today": "2025-01-15",
    })
    assert data.status_code == 200
    assert len(data.json()["data"]) == 8


def test_get_data_with_inline_full_data(client, sample_prescription_text):
    body = _analyze(client, sample_prescription_text, include_full_data=True).json()
    assert body["full_data"] is not None

    resp = client.post("/prescription/get-data", json={"option_id": "medications", "data": body["full_data"]})
    assert resp.status_code == 200
    assert [m["name"] for m in resp.json()["data"]] == ["Paracetamol", "Vitamin C", "Amoxicillin"]


def test_rejected_analysis_is_a_normal_response(client):
    resp = _analyze(client, "Hóa đơn tiền điện tháng này")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "REJECTED"
    assert body["analysis_id"] is None
    assert body["bundle"] is None
    assert body["validation"]["reasons"]


def test_blank_text_is_bad_request(client):
    assert client.post("/prescription/analyze", json={"text": "   "}).status_code == 400


def test_get_data_errors(client, sample_prescription_text):
    analysis_id = _analyze(client, sample_prescription_text).json()["analysis_id"]
    unknown_option = client.post("/prescription/get-data", json={"option_id": "nope", "analysis_id": analysis_id})
    assert unknown_option.status_code == 404

    unknown_analysis = client.post("/prescription/get-data", json={"option_id": "summary", "analysis_id": "ana_x"})
    assert unknown_analysis.status_code == 404

    no_source = client.post("/prescription/get-data", json={"option_id": "summary"})
    assert no_source.status_code == 400


def test_create_reminders_from_manual_entry(client):
    resp = client.post("/prescription/create-reminders", json={
        "medications": [{"name": "Metformin", "timing": ["morning", "evening"], "duration_text": "3 ngày"}],
        "appointments": [{"type": "Tái khám", "date": "20-01-2025"}],
        "start_date": "2025-01-15",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["medications"]) == 6
    assert body["medications"][0]["is_default_schedule"] is False
    assert body["appointments"][0]["date"] == "2025-01-20"
    assert body["appointments"][0]["time"] == "08:00"
    assert body["summary"]["medications_with_default_schedule"] == 0


def test_create_reminders_requires_records(client):
    resp = client.post("/prescription/create-reminders", json={"medications": []})
    assert resp.status_code == 400


def test_check_duplicates(client):
    resp = client.post("/prescription/check-duplicates", json={
        "medications": [
            {"name": "Paracetamol", "dosage_text": "500mg"},
            {"name": "Paracetamol", "dosage_text": "500mg"},
        ],
    })
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["clean_data"]["medications"]) == 1
    assert len(body["report"]["medications"]["duplicates"]) == 1
    assert body["message"]
