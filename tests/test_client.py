import json

import httpx
import pytest

from core.client import HttpRecordClient, RecordApiError


def _client(handler, **kwargs) -> HttpRecordClient:
    return HttpRecordClient("https://records.test/api/", transport=httpx.MockTransport(handler), **kwargs)


def test_fetch_posts_query_and_returns_envelope():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["key"] = request.headers.get("X-API-Key")
        return httpx.Response(200, json={"success": True, "data": [{"Id": 1}]})

    with _client(handler, api_key="secret") as client:
        out = client.fetch_records("deal_c", {"fields": []})

    assert out == {"success": True, "data": [{"Id": 1}]}
    assert seen == {"method": "POST", "path": "/api/tables/deal_c/records/query", "body": {"fields": []}, "key": "secret"}


def test_update_and_delete_use_put_and_delete():
    methods = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"success": True, "results": []})

    client = _client(handler)
    client.update_record("deal_c", {"records": [{"Id": 1}]})
    client.delete_record("deal_c", {"RecordIds": [1]})
    assert methods[0][0] == "PUT"
    assert methods[1] == ("DELETE", "/api/tables/deal_c/records", {"RecordIds": [1]})


def test_error_status_raises_record_api_error():
    client = _client(lambda request: httpx.Response(503, text="down"))
    with pytest.raises(RecordApiError) as info:
        client.get_record_by_id("deal_c", 1, {})
    assert info.value.status_code == 503


def test_non_json_body_raises():
    client = _client(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(RecordApiError):
        client.create_record("deal_c", {"records": []})


def test_network_failure_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RecordApiError):
        _client(handler).fetch_records("deal_c", {})
