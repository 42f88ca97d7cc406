from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from logscrobbler.lastfm import LastfmClient, redacted
from logscrobbler.logfile import TrackEntry

log = logging.getLogger(__name__)


@dataclass
class SubmitResult:
    accepted: int = 0
    ignored: int = 0
    skipped: int = 0

    @property
    def complete(self) -> bool:
        return self.ignored == 0


class Scrobbler:
    """
    Replays log entries as track.scrobble calls, one request per track, in log order.

    utc_offset is the player clock's offset from UTC in hours; it is subtracted
    from every logged timestamp.
    """

    def __init__(self, client: LastfmClient, session_key: str, utc_offset: float = 0.0, dry_run: bool = False) -> None:
        self.client = client
        self.session_key = session_key
        self.utc_offset = utc_offset
        self.dry_run = dry_run

    def adjust_timestamp(self, timestamp: int) -> int:
        return int(timestamp - self.utc_offset * 3600)

    def build_params(self, entry: TrackEntry) -> Dict[str, str]:
        params: Dict[str, str] = {
            "sk": self.session_key,
            "artist": entry.artist,
            "track": entry.title,
            "timestamp": str(self.adjust_timestamp(entry.timestamp)),
        }
        if entry.album:
            params["album"] = entry.album
        if entry.position is not None:
            params["trackNumber"] = str(entry.position)
        if entry.duration > 0:
            params["duration"] = str(entry.duration)
        if entry.mbid:
            params["mbid"] = entry.mbid
        return params

    def submit(self, entry: TrackEntry) -> bool:
        """Scrobble one entry. Returns False when Last.fm ignored it."""
        params = self.build_params(entry)
        if self.dry_run:
            log.debug("[DRY_RUN] track.scrobble %s", json.dumps(redacted(params), ensure_ascii=False))
            return True

        data = self.client.call("track.scrobble", params, http_method="POST")
        return _accepted(data, entry)

    def submit_all(self, entries: Iterable[TrackEntry]) -> SubmitResult:
        entries = list(entries)
        todo: List[TrackEntry] = [e for e in entries if e.listened]
        result = SubmitResult(skipped=len(entries) - len(todo))

        for i, entry in enumerate(todo, start=1):
            ok = self.submit(entry)
            mark = "OK" if ok else "IGNORED"
            print(f"[{i}/{len(todo)}] {mark} {entry.artist} - {entry.title}")
            if ok:
                result.accepted += 1
            else:
                result.ignored += 1
        return result


def _accepted(data: Dict[str, Any], entry: TrackEntry) -> bool:
    scrob = data.get("scrobbles")
    if not isinstance(scrob, dict):
        log.warning("Unexpected track.scrobble response: %s", data)
        return False

    attr = scrob.get("@attr") or {}
    if int(attr.get("accepted") or 0) > 0:
        return True

    payload = scrob.get("scrobble")
    items = payload if isinstance(payload, list) else ([payload] if payload else [])
    for it in items:
        msg = (it or {}).get("ignoredMessage") or {}
        if msg.get("code") and msg.get("code") != "0":
            log.warning("Ignored %s - %s: code=%s %s", entry.artist, entry.title, msg.get("code"), msg.get("#text", ""))
            break
    return False
