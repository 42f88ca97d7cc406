from __future__ import annotations

from typing import Optional


class ScrobblerError(Exception):
    """Base class for every error the CLI reports and exits on."""


class ConfigError(ScrobblerError):
    pass


class LogFormatError(ScrobblerError):
    pass


class NotAuthorizedError(ScrobblerError):
    pass


class TransportError(ScrobblerError):
    pass


class ApiError(ScrobblerError):
    """Last.fm answered with an error payload."""

    def __init__(self, code: int, message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(f"Last.fm error {code}: {message}" if message else f"Last.fm error {code}")


class MalformedResponseError(ScrobblerError):
    """Response body could not be decoded as a success or error payload."""

    def __init__(self, status: Optional[int], body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Undecodable response (HTTP {status}): {body[:500]}")
