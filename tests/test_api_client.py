from unittest.mock import MagicMock

import pytest
import requests

from storefront.services.api_client import ApiClient, ApiError


def make_response(status_code=200, payload=None, invalid_json=False):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    if invalid_json:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


def test_get_json_returns_payload(session):
    session.request.return_value = make_response(payload=[{"id": 1}])
    client = ApiClient("https://api.test/", timeout=3, session=session)
    assert client.get_json("/api/products") == [{"id": 1}]
    session.request.assert_called_once_with(
        "GET",
        "https://api.test/api/products",
        json=None,
        headers={"Content-Type": "application/json"},
        timeout=3,
    )


def test_post_sends_json_body(session):
    session.request.return_value = make_response(payload={"ok": True})
    client = ApiClient("https://api.test", session=session)
    client.post_json("/api/orders", {"a": 1})
    assert session.request.call_args.kwargs["json"] == {"a": 1}
    assert session.request.call_args.args[0] == "POST"


def test_error_uses_server_message(session):
    session.request.return_value = make_response(400, {"message": "Coupon expired"})
    client = ApiClient("https://api.test", session=session)
    with pytest.raises(ApiError, match="Coupon expired") as excinfo:
        client.post_json("/api/discounts/apply", {})
    assert excinfo.value.status_code == 400
    assert excinfo.value.path == "/api/discounts/apply"


def test_error_without_body_has_generic_message(session):
    session.request.return_value = make_response(500, invalid_json=True)
    client = ApiClient("https://api.test", session=session)
    with pytest.raises(ApiError, match="GET /api/x failed"):
        client.get_json("/api/x")


def test_empty_success_body_reads_as_empty_dict(session):
    session.request.return_value = make_response(204, invalid_json=True)
    assert ApiClient("https://api.test", session=session).post_json("/api/x", {}) == {}


def test_localhost_falls_back_to_loopback_ip(session):
    session.request.side_effect = [requests.ConnectionError("refused"), make_response(payload={"ok": True})]
    client = ApiClient("http://localhost:3001", session=session)
    assert client.get_json("/health") == {"ok": True}
    assert session.request.call_args.args[1] == "http://127.0.0.1:3001/health"


def test_unreachable_backend_raises_api_error(session):
    session.request.side_effect = requests.ConnectionError("refused")
    client = ApiClient("https://api.test", session=session)
    with pytest.raises(ApiError, match="Cannot reach backend"):
        client.get_json("/api/products")
    assert session.request.call_count == 1


def test_both_hosts_unreachable(session):
    session.request.side_effect = requests.Timeout("slow")
    client = ApiClient("http://localhost:3001", session=session)
    with pytest.raises(ApiError, match="127.0.0.1"):
        client.get_json("/api/products")
    assert session.request.call_count == 2


@pytest.mark.parametrize(
    "value,expected",
    [
        ("/uploads/a.jpg", "https://api.test/uploads/a.jpg"),
        ("uploads/a.jpg", "https://api.test/uploads/a.jpg"),
        ("https://cdn.test/a.jpg", "https://cdn.test/a.jpg"),
        ("data:image/png;base64,xx", "data:image/png;base64,xx"),
        ("", ""),
        (None, ""),
    ],
)
def test_resolve_file_url(value, expected):
    client = ApiClient("https://api.test", session=MagicMock(spec=requests.Session))
    assert client.resolve_file_url(value) == expected
