"""
Shared fixtures: a stub HTTP transport standing in for requests.Session,
and config/cache directories under tmp_path.
"""

import json
import urllib.parse

import pytest

import logscrobbler.lastfm as lastfm

LOG_HEADER = "#AUDIOSCROBBLER/1.1\n#TZ/UNKNOWN\n#CLIENT/Rockbox sansaclipplus $Revision$\n"


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400


def json_response(payload, status_code=200):
    return FakeResponse(status_code, json.dumps(payload))


class StubSession:
    """Replays queued responses and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if not self.responses:
            raise AssertionError(f"unexpected {method} {url}")
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def query(self, index):
        """Query parameters of the index-th request as a flat dict."""
        url = self.calls[index][1]
        return dict(urllib.parse.parse_qsl(urllib.parse.urlsplit(url).query, keep_blank_values=True))


@pytest.fixture
def stub():
    return StubSession()


@pytest.fixture
def client(stub):
    sleeps = []
    c = lastfm.LastfmClient("KEY", "SECRET", session=stub, backoff=1.0, sleep=sleeps.append)
    c.sleeps = sleeps
    return c


@pytest.fixture
def config_dir(tmp_path):
    d = tmp_path / "config"
    d.mkdir()
    (d / "config").write_text(
        "[core]\nuser = alice\n\n[api]\nkey = KEY\nsecret = SECRET\n",
        encoding="utf-8",
    )
    return d


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def write_log(tmp_path):
    def _write(*lines, header=LOG_HEADER, name=".scrobbler.log"):
        path = tmp_path / name
        path.write_text(header + "".join(line + "\n" for line in lines), encoding="utf-8")
        return path
    return _write
