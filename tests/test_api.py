import pytest
from fastapi.testclient import TestClient

from api.main import app, get_workspace
from core.client import RecordApiError


@pytest.fixture
def api(workspace):
    app.dependency_overrides[get_workspace] = lambda: workspace
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def test_meta_entities(api):
    body = api.get("/meta/entities").json()
    names = [e["name"] for e in body["entities"]]
    assert "sales_order" in names and "pipeline_stage" in names
    deal = next(e for e in body["entities"] if e["name"] == "deal")
    assert deal["options"]["stage"][0] == "Lead"


def test_meta_options_include_loaded_tags(api):
    body = api.get("/meta/options/contacts").json()
    assert body["options"]["tags"] == ["lead", "vip"]
    assert api.get("/meta/options/widgets").status_code == 404


def test_views_return_page_payloads(api):
    for page in ("dashboard", "contacts", "companies", "pipeline", "activities", "quotes", "sales-orders", "tasks"):
        response = api.post(f"/views/{page}", json={})
        assert response.status_code == 200, page
        assert response.json()["page"] == page


def test_contacts_view_honours_filters(api):
    body = api.post("/views/contacts", json={"tag": "vip", "sort": {"key": "name", "direction": "asc"}}).json()
    assert [c["name"] for c in body["table"]] == ["Ann Lee"]
    assert body["filters"]["sort"] == {"key": "name", "direction": "asc"}


def test_invalid_filter_body_is_rejected(api):
    assert api.post("/views/activities", json={"time_window": "decade"}).status_code == 422


def test_create_record_returns_201_and_notifications(api):
    response = api.post("/records/contacts", json={"name": "Dee", "email": "dee@x.io"})
    assert response.status_code == 201
    body = response.json()
    assert body["value"]["name"] == "Dee"
    assert body["notifications"] == [{"level": "success", "message": "Contact created successfully"}]


def test_create_validation_failure_is_422(api, fake_client):
    response = api.post("/records/deal", json={"title": "x"})
    assert response.status_code == 422
    assert response.json()["field_errors"]["value"] == "Deal value must be greater than 0"
    assert not any(c[0] == "create_record" for c in fake_client.calls)


def test_get_missing_record_is_404(api):
    assert api.get("/records/deal/999").status_code == 404
    assert api.get("/records/deal/13").json()["value"]["title"] == "Initech rollout"


def test_update_and_delete(api):
    response = api.patch("/records/deal/13", json={"priority": "Low"})
    assert response.status_code == 200
    assert response.json()["value"]["priority"] == "Low"
    assert api.delete("/records/deal/13").json()["value"] is True


def test_backend_failure_is_502(api, fake_client):
    fake_client.queue("delete_record", RecordApiError("down"))
    response = api.delete("/records/deal/13")
    assert response.status_code == 502
    assert response.json()["errors"] == ["Failed to delete deal"]


def test_list_records_with_server_side_filter(api, fake_client):
    body = api.get("/records/deal", params={"search": "acme"}).json()
    assert [d["id"] for d in body["value"]] == [10, 11]
    assert fake_client.calls[-1][2]["where"][0]["Operator"] == "Contains"


def test_list_records_with_unknown_filter_field_is_422(api, fake_client):
    response = api.get("/records/contacts", params={"status": "Open"})
    assert response.status_code == 422
    assert "status" in response.json()["field_errors"]
    assert not any(c[0] == "fetch_records" and c[1] == "contact_c" for c in fake_client.calls)


def test_unknown_entity_is_404(api):
    assert api.get("/records/widgets").status_code == 404


def test_move_deal_stage(api):
    response = api.post("/deals/14/stage", json={"stage": "Won"})
    assert response.status_code == 200
    assert response.json()["value"]["stage"] == "Won"
    kpis = api.post("/views/dashboard", json={}).json()["kpis"]
    assert kpis["won_value"] == 400.0


def test_notifications_are_drained(api, fake_client):
    fake_client.queue("fetch_records", {"success": False, "message": "Table locked"})
    api.post("/views/companies", json={})
    assert api.get("/notifications").json()["notifications"] == [{"level": "error", "message": "Table locked"}]
    assert api.get("/notifications").json()["notifications"] == []


def test_export_csv(api):
    response = api.post("/export/contacts", json={"tag": "lead"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert len(lines) == 3
    assert "name" in lines[0]
    assert api.post("/export/reports", json={}).status_code == 404


def test_export_failure_is_500(api, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("api.main.export_frame", broken)
    response = api.post("/export/contacts", json={})
    assert response.status_code == 500
    assert response.json()["error"] == "boom"
