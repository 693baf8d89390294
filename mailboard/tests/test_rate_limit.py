"""
Tests for HTTP throttling.
"""

from starlette.requests import Request

from mailboard.rate_limit import limiter, rate_limit_key


def make_request(headers: dict | None = None, host: str = "203.0.113.7") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/campaigns",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": (host, 51234),
    })


class TestRateLimitKey:
    """Tests for choosing the throttling bucket."""

    def test_anonymous_requests_keyed_by_address(self):
        assert rate_limit_key(make_request()) == "ip:203.0.113.7"

    def test_api_key_requests_share_a_bucket_across_addresses(self):
        a = rate_limit_key(make_request({"X-API-Key": "worker-key"}, host="10.0.0.1"))
        b = rate_limit_key(make_request({"X-API-Key": "worker-key"}, host="10.0.0.2"))
        assert a == b
        assert a.startswith("key:")

    def test_bearer_token_same_bucket_as_header(self):
        header = rate_limit_key(make_request({"X-API-Key": "worker-key"}))
        bearer = rate_limit_key(make_request({"Authorization": "Bearer worker-key"}))
        assert header == bearer

    def test_key_is_not_stored_in_clear(self):
        assert "worker-key" not in rate_limit_key(make_request({"X-API-Key": "worker-key"}))

    def test_other_auth_schemes_fall_back_to_address(self):
        request = make_request({"Authorization": "Basic dXNlcjpwYXNz"})
        assert rate_limit_key(request) == "ip:203.0.113.7"


def test_app_uses_shared_limiter(client):
    assert client.app.state.limiter is limiter
