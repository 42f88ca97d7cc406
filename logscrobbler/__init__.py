"""Submit a portable player's .scrobbler.log to Last.fm."""

__version__ = "1.0.0"
