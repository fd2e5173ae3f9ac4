import asyncio

import pytest
import requests

from core.api.network_client import HttpNetworkClient, NetworkResponse, join_url
from exceptions.exceptions import ApiError, NetworkError


def _response(status_code, content=b"", content_type="application/json"):
    response = requests.Response()
    response.status_code = status_code
    response._content = content
    response.encoding = "utf-8"
    response.headers["Content-Type"] = content_type
    return response


class FakeSession:
    """Stands in for requests.Session; returns or raises a preset outcome."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _request(session, method="GET", url="https://api.example.test/me", **kwargs):
    client = HttpNetworkClient(timeout=5, session=session)
    return asyncio.run(client.request(method, url, **kwargs))


def test_json_body_is_decoded():
    session = FakeSession(_response(200, b'{"token": "t-1"}'))
    result = _request(session, "POST", body={"email": "ann@example.com"}, params={"q": "1"})

    assert isinstance(result, NetworkResponse)
    assert result.status_code == 200
    assert result.body == {"token": "t-1"}
    call = session.calls[0]
    assert call["json"] == {"email": "ann@example.com"}
    assert call["params"] == {"q": "1"}
    assert call["timeout"] == 5


def test_non_json_body_falls_back_to_text():
    session = FakeSession(_response(200, b"plain text", "text/plain"))
    assert _request(session).body == "plain text"


def test_empty_body_is_none():
    assert _request(FakeSession(_response(204))).body is None


def test_error_status_raises_api_error_with_body():
    session = FakeSession(_response(404, b'{"detail": "missing"}'))
    with pytest.raises(ApiError) as exc:
        _request(session)
    assert exc.value.status_code == 404
    assert exc.value.body == {"detail": "missing"}
    assert exc.value.url == "https://api.example.test/me"


def test_timeout_raises_network_error():
    with pytest.raises(NetworkError, match="timed out"):
        _request(FakeSession(requests.Timeout("slow")), timeout=0.5)


def test_connection_failure_raises_network_error():
    with pytest.raises(NetworkError):
        _request(FakeSession(requests.ConnectionError("refused")))


@pytest.mark.parametrize(
    "base_url, endpoint, expected",
    [
        ("https://api.example.test", "/login", "https://api.example.test/login"),
        ("https://api.example.test/", "login", "https://api.example.test/login"),
        ("https://api.example.test/v1/", "/users", "https://api.example.test/v1/users"),
        ("https://api.example.test", "https://other.test/x", "https://other.test/x"),
        (None, "/login", "/login"),
    ],
)
def test_join_url(base_url, endpoint, expected):
    assert join_url(base_url, endpoint) == expected
