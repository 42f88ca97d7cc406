"""
Last.fm web service plumbing: request signing, a small GET/POST client and the
session-key handshake with its on-disk cache.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import time
import urllib.parse
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from xml.etree import ElementTree

import requests

from logscrobbler import __version__
from logscrobbler.config import LASTFM_API_ROOT
from logscrobbler.errors import ApiError, MalformedResponseError, TransportError

log = logging.getLogger(__name__)

AUTH_URL = "https://www.last.fm/api/auth/"
USER_AGENT = f"logscrobbler/{__version__}"

# Last.fm error 16: "There was a temporary error processing your request."
TRANSIENT_ERROR = 16

SIGNING_SKIP = {"format", "callback", "api_sig"}
REDACTED = {"api_sig", "sk", "token"}

SESSION = requests.Session()
SESSION.headers.update({"User-Agent": USER_AGENT})

# ---------------------------
# Signing
# ---------------------------

def md5_hex(s: str) -> str:
    return hashlib.md5(s.encode("utf-8")).hexdigest()


def sign(params: Mapping[str, str], api_secret: str) -> str:
    """Concatenate key+value for every param in ascending key order, append secret, MD5."""
    return md5_hex("".join(k + params[k] for k in sorted(params)) + api_secret)


def redacted(params: Mapping[str, str]) -> Dict[str, str]:
    return {k: ("***" if k in REDACTED else v) for k, v in params.items()}

# ---------------------------
# Response decoding
# ---------------------------

def _decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def decode_error(text: str) -> Optional[Tuple[int, str]]:
    """
    Return (code, message) from a JSON or XML error payload, or None when the
    body is neither.
    """
    data = _decode_json(text)
    if isinstance(data, dict) and "error" in data:
        try:
            return int(data["error"]), str(data.get("message") or "")
        except (TypeError, ValueError):
            return None

    try:
        root = ElementTree.fromstring(text)
    except ElementTree.ParseError:
        return None
    err = root.find("error") if root.tag == "lfm" else None
    if err is None:
        return None
    try:
        return int(err.get("code", "")), (err.text or "").strip()
    except ValueError:
        return None

# ---------------------------
# Client
# ---------------------------

class LastfmClient:
    """Builds signed URLs and drives GET/POST calls against the 2.0 API."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        *,
        api_root: str = LASTFM_API_ROOT,
        session: Any = None,
        max_attempts: int = 5,
        backoff: float = 2.0,
        max_backoff: float = 60.0,
        timeout: float = 30,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_root = api_root
        self.session = session if session is not None else SESSION
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.max_backoff = max_backoff
        self.timeout = timeout
        self.sleep = sleep

    def build_params(self, method: str, params: Optional[Mapping[str, str]] = None, signed: bool = True) -> Dict[str, str]:
        out: Dict[str, str] = {"method": method, "api_key": self.api_key}
        out.update(params or {})
        if signed:
            out["api_sig"] = sign({k: v for k, v in out.items() if k not in SIGNING_SKIP}, self.api_secret)
        out["format"] = "json"
        return out

    def build_url(self, method: str, params: Optional[Mapping[str, str]] = None, signed: bool = True) -> str:
        query = urllib.parse.urlencode(self.build_params(method, params, signed))
        return f"{self.api_root}?{query}"

    def _send(self, url: str, http_method: str) -> requests.Response:
        try:
            if http_method == "POST":
                return self.session.post(url, timeout=self.timeout)
            return self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"{http_method} {self.api_root} failed: {exc}") from exc

    def call(
        self,
        method: str,
        params: Optional[Mapping[str, str]] = None,
        http_method: str = "GET",
        signed: bool = True,
    ) -> Dict[str, Any]:
        """
        Issue one API call and return the decoded JSON payload.

        Error code 16 is retried with exponential backoff up to max_attempts;
        every other error code raises ApiError at once.
        """
        http_method = http_method.upper()
        if http_method not in ("GET", "POST"):
            raise ValueError(f"Unsupported HTTP method: {http_method}")

        full = self.build_params(method, params, signed)
        url = f"{self.api_root}?{urllib.parse.urlencode(full)}"

        for attempt in range(1, self.max_attempts + 1):
            log.debug("%s %s (attempt %d): %s", http_method, method, attempt,
                      json.dumps(redacted(full), ensure_ascii=False))
            resp = self._send(url, http_method)
            text = resp.text
            log.debug("HTTP %s: %s", resp.status_code, text[:12000])

            if resp.ok:
                data = _decode_json(text)
                if isinstance(data, dict) and "error" not in data:
                    return data

            err = decode_error(text)
            if err is None:
                raise MalformedResponseError(resp.status_code, text)
            code, message = err
            if code != TRANSIENT_ERROR or attempt == self.max_attempts:
                raise ApiError(code, message)

            wait = min(self.backoff * 2 ** (attempt - 1), self.max_backoff)
            log.warning("%s: temporary Last.fm error (%s), attempt %d/%d, retrying in %.1fs",
                        method, message or code, attempt, self.max_attempts, wait)
            self.sleep(wait)

        raise AssertionError("unreachable")

# ---------------------------
# Auth handshake
# ---------------------------

def request_token(client: LastfmClient) -> str:
    data = client.call("auth.getToken")
    token = data.get("token")
    if not token:
        raise MalformedResponseError(None, f"Could not obtain token: {data}")
    return token


def authorization_url(api_key: str, token: str) -> str:
    return f"{AUTH_URL}?{urllib.parse.urlencode({'api_key': api_key, 'token': token})}"


def request_session_key(client: LastfmClient, token: str) -> Tuple[str, str]:
    data = client.call("auth.getSession", {"token": token})
    sess = data.get("session") or {}
    username = sess.get("name")
    session_key = sess.get("key")
    if not username or not session_key:
        raise MalformedResponseError(None, f"Incomplete session response: {data}")
    return username, session_key


class SessionCache:
    """
    Session key for one user, cached as plain text in <cache_dir>/<user>.session.

    There is no expiry: a revoked key stays until clear() is called or the
    file is removed.
    """

    def __init__(self, cache_dir: Path, username: str) -> None:
        self.cache_dir = Path(cache_dir)
        self.username = username

    @property
    def path(self) -> Path:
        return self.cache_dir / f"{self.username}.session"

    def load(self) -> Optional[str]:
        try:
            key = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return key or None

    def save(self, session_key: str) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        if tmp.exists():
            tmp.unlink()
        # owner-only from creation
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(session_key)
        tmp.replace(self.path)
        log.debug("Cached session key for %s in %s", self.username, self.path)

    def clear(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True

    def authorize(self, client: LastfmClient, confirm: Callable[[str], None]) -> str:
        """
        Token handshake: auth.getToken, operator approves the URL passed to
        confirm(), auth.getSession. The resulting key is cached and returned.
        """
        token = request_token(client)
        confirm(authorization_url(client.api_key, token))
        name, session_key = request_session_key(client, token)
        if name.lower() != self.username.lower():
            log.warning("Authorized as %s but the configured user is %s", name, self.username)
        self.save(session_key)
        return session_key
