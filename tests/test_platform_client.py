"""Tests for PlatformClient REST wrapper."""

from datetime import datetime, timezone
from unittest.mock import patch, MagicMock

import pytest

from pkg_ops.exceptions import (
    PlatformError,
    PlatformNotFoundError,
    PlatformPermanentError,
    PlatformServerError,
    PlatformTransientError,
    PlatformUnauthorizedError,
)
from pkg_ops.platform_client import MAX_RETRIES, PlatformClient


def _resp(status, data=None, headers=None, text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = data if data is not None else {}
    resp.headers = headers or {}
    resp.text = text
    return resp


@pytest.fixture
def client():
    return PlatformClient("http://localhost:8086/", "secret-token")


class TestInit:
    # Tests that a trailing slash is stripped from the host.
    def test_base_url(self, client):
        assert client.base_url == "http://localhost:8086"

    # Tests that requests carry the token authorization header.
    @patch("pkg_ops.platform_client.requests.get")
    def test_token_header(self, mock_get, client):
        mock_get.return_value = _resp(200, {"id": "x"})
        client.get("/api/v2/buckets/x")
        headers = mock_get.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Token secret-token"


class TestList:
    # Tests that list returns items stored under the given key.
    @patch("pkg_ops.platform_client.requests.get")
    def test_list_returns_items(self, mock_get, client):
        mock_get.return_value = _resp(200, {"buckets": [{"name": "a"}, {"name": "b"}]})
        result = client.list_buckets("0000000000000001")
        assert [b["name"] for b in result] == ["a", "b"]
        assert mock_get.call_args.kwargs["params"]["orgID"] == "0000000000000001"

    # Tests that list follows links.next across pages.
    @patch("pkg_ops.platform_client.requests.get")
    def test_list_pagination(self, mock_get, client):
        mock_get.side_effect = [
            _resp(200, {"buckets": [{"name": "a"}],
                        "links": {"next": "/api/v2/buckets?offset=1&limit=1"}}),
            _resp(200, {"buckets": [{"name": "b"}], "links": {}}),
        ]
        result = client.list("/api/v2/buckets", "buckets", {"limit": 1})
        assert [b["name"] for b in result] == ["a", "b"]
        assert mock_get.call_args_list[1].args[0] == "http://localhost:8086/api/v2/buckets?offset=1&limit=1"
        assert mock_get.call_args_list[1].kwargs["params"] is None

    # Tests that pagination stops on an empty page even if a next link is present.
    @patch("pkg_ops.platform_client.requests.get")
    def test_list_stops_on_empty_page(self, mock_get, client):
        mock_get.return_value = _resp(200, {"labels": [], "links": {"next": "/api/v2/labels?offset=1"}})
        assert client.list("/api/v2/labels", "labels") == []
        assert mock_get.call_count == 1

    # Tests that resource labels are listed under the resource path.
    @patch("pkg_ops.platform_client.requests.get")
    def test_list_resource_labels(self, mock_get, client):
        mock_get.return_value = _resp(200, {"labels": [{"id": "0000000000000007"}]})
        result = client.list_resource_labels("buckets", "000000000000002a")
        assert result == [{"id": "0000000000000007"}]
        assert mock_get.call_args.args[0].endswith("/api/v2/buckets/000000000000002a/labels")


class TestErrors:
    # Tests that 404 raises a permanent not-found error with the platform message.
    @patch("pkg_ops.platform_client.requests.get")
    def test_not_found(self, mock_get, client):
        mock_get.return_value = _resp(404, {"code": "not found", "message": "bucket not found"})
        with pytest.raises(PlatformNotFoundError) as exc:
            client.get("/api/v2/buckets/x")
        assert isinstance(exc.value, PlatformPermanentError)
        assert exc.value.status_code == 404
        assert exc.value.error_code == "not found"
        assert exc.value.message == "not found: bucket not found"
        assert mock_get.call_count == 1

    # Tests that 401 is not retried.
    @patch("pkg_ops.platform_client.requests.get")
    def test_unauthorized_not_retried(self, mock_get, client):
        mock_get.return_value = _resp(401, {"code": "unauthorized", "message": "unauthorized access"})
        with pytest.raises(PlatformUnauthorizedError):
            client.get("/api/v2/labels")
        assert mock_get.call_count == 1

    # Tests that a non-JSON error body falls back to the response text.
    @patch("pkg_ops.platform_client.requests.get")
    def test_non_json_error(self, mock_get, client):
        resp = _resp(418, text="teapot")
        resp.json.side_effect = ValueError("no json")
        mock_get.return_value = resp
        with pytest.raises(PlatformError, match="teapot") as exc:
            client.get("/x")
        assert type(exc.value) is PlatformError


class TestRetry:
    # Tests that 429 is retried using the Retry-After header.
    @patch("pkg_ops.platform_client.time.sleep")
    @patch("pkg_ops.platform_client.requests.get")
    def test_retry_after_429(self, mock_get, mock_sleep, client):
        mock_get.side_effect = [
            _resp(429, {"code": "too many requests"}, headers={"Retry-After": "3"}),
            _resp(200, {"id": "x"}),
        ]
        assert client.get("/x") == {"id": "x"}
        mock_sleep.assert_called_once_with(3)

    # Tests that backoff doubles between attempts when no Retry-After is sent.
    @patch("pkg_ops.platform_client.time.sleep")
    @patch("pkg_ops.platform_client.requests.get")
    def test_exponential_backoff(self, mock_get, mock_sleep, client):
        mock_get.side_effect = [_resp(503), _resp(503), _resp(200, {"ok": True})]
        assert client.get("/x") == {"ok": True}
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2]

    # Tests that exhausted retries raise a transient server error.
    @patch("pkg_ops.platform_client.time.sleep")
    @patch("pkg_ops.platform_client.requests.get")
    def test_retries_exhausted(self, mock_get, mock_sleep, client):
        mock_get.return_value = _resp(500, {"code": "internal error", "message": "boom"})
        with pytest.raises(PlatformServerError) as exc:
            client.get("/x")
        assert isinstance(exc.value, PlatformTransientError)
        assert mock_get.call_count == MAX_RETRIES + 1

    # Tests that an HTTP-date Retry-After is measured against UTC.
    @patch("pkg_ops.platform_client.time.time")
    @patch("pkg_ops.platform_client.time.sleep")
    @patch("pkg_ops.platform_client.requests.get")
    def test_retry_after_http_date(self, mock_get, mock_sleep, mock_time, client):
        mock_time.return_value = datetime(2026, 10, 21, 7, 27, 50, tzinfo=timezone.utc).timestamp()
        mock_get.side_effect = [
            _resp(503, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}),
            _resp(200, {"ok": True}),
        ]
        assert client.get("/x") == {"ok": True}
        mock_sleep.assert_called_once_with(10)

    # Tests that an unparseable Retry-After falls back to the backoff.
    @patch("pkg_ops.platform_client.time.sleep")
    @patch("pkg_ops.platform_client.requests.get")
    def test_retry_after_garbage(self, mock_get, mock_sleep, client):
        mock_get.side_effect = [
            _resp(429, headers={"Retry-After": "soon"}),
            _resp(200, {"ok": True}),
        ]
        assert client.get("/x") == {"ok": True}
        mock_sleep.assert_called_once_with(1)
