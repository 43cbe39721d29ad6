from __future__ import annotations

import json

import pytest
import requests

from engine.work_source import WorkSourceClient, WorkSourceError

BASE_URL = "https://work.example/api/admin/requests"


class _MockResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        return json.loads(self.text)


class _MockSession:
    def __init__(self, response=None, error=None):
        self.response = response or _MockResponse(200, {"ok": True, "requests": []})
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def _client(session, **kwargs) -> WorkSourceClient:
    return WorkSourceClient("s3cret", base_url=BASE_URL, session=session, **kwargs)


def test_fetch_sends_paging_params_and_secret_header() -> None:
    session = _MockSession()

    _client(session, timeout_sec=3).fetch_pending_ids(offset=10, limit=25)

    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert url == BASE_URL
    assert kwargs["params"] == {"offset": 10, "limit": 25}
    assert kwargs["headers"]["X-Secret"] == "s3cret"
    assert kwargs["timeout"] == 3
    assert kwargs["proxies"] is None


def test_fetch_returns_ids_in_order_and_drops_blanks() -> None:
    payload = {
        "ok": True,
        "requests": [
            {"video_id": "b2"},
            {"video_id": ""},
            {"other": "x"},
            "not-an-object",
            {"video_id": " a1 "},
        ],
    }
    session = _MockSession(_MockResponse(200, payload))

    assert _client(session).fetch_pending_ids() == ["b2", "a1"]


def test_fetch_without_requests_key_is_empty() -> None:
    session = _MockSession(_MockResponse(200, {"ok": True}))

    assert _client(session).fetch_pending_ids() == []


@pytest.mark.parametrize(
    "session",
    [
        _MockSession(_MockResponse(503, {"ok": False})),
        _MockSession(error=requests.ConnectionError("refused")),
        _MockSession(_MockResponse(200, text="<html>maintenance</html>")),
        _MockSession(_MockResponse(200, {"ok": False, "msg": "bad secret"})),
        _MockSession(_MockResponse(200, ["not", "an", "object"])),
    ],
)
def test_fetch_failures_raise_work_source_error(session) -> None:
    with pytest.raises(WorkSourceError):
        _client(session).fetch_pending_ids()


def test_mark_archived_sends_put_with_ids() -> None:
    session = _MockSession(_MockResponse(200, {"ok": True}))

    _client(session).mark_archived(["a1", "", "b2"])

    method, _, kwargs = session.calls[0]
    assert method == "PUT"
    assert kwargs["json"] == {"video_ids": ["a1", "b2"]}
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["headers"]["X-Secret"] == "s3cret"


def test_push_ids_sends_post_with_ids() -> None:
    session = _MockSession(_MockResponse(200, {"ok": True}))

    _client(session).push_ids(["a1"])

    method, _, kwargs = session.calls[0]
    assert method == "POST"
    assert kwargs["json"] == {"video_ids": ["a1"]}


def test_empty_id_lists_issue_no_request() -> None:
    session = _MockSession()
    client = _client(session)

    client.mark_archived([])
    client.push_ids(["", ""])

    assert session.calls == []


def test_mark_archived_non_2xx_raises() -> None:
    session = _MockSession(_MockResponse(401, {"ok": False}))

    with pytest.raises(WorkSourceError, match="401"):
        _client(session).mark_archived(["a1"])


def test_proxy_applies_to_both_schemes() -> None:
    session = _MockSession()

    _client(session, proxy="http://proxy.local:3128").fetch_pending_ids()

    assert session.calls[0][2]["proxies"] == {
        "http": "http://proxy.local:3128",
        "https": "http://proxy.local:3128",
    }


@pytest.mark.parametrize("secret", ["", "   ", None])
def test_missing_secret_is_rejected(secret) -> None:
    with pytest.raises(ValueError):
        WorkSourceClient(secret, base_url=BASE_URL, session=_MockSession())
