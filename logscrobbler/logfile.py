"""
Reader for the Audioscrobbler 1.1 portable-player log (.scrobbler.log).

    #AUDIOSCROBBLER/1.1
    #TZ/UNKNOWN
    #CLIENT/Rockbox sansaclipplus $Revision$
    artist<TAB>album<TAB>title<TAB>pos<TAB>duration<TAB>rating<TAB>timestamp<TAB>mbid

rating is "L" when the track was listened to and "S" when it was skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from logscrobbler.errors import LogFormatError

FORMAT_LINE = "#AUDIOSCROBBLER/1.1"
TZ_UNKNOWN = "#TZ/UNKNOWN"
TZ_UTC = "#TZ/UTC"
TZ_LINES = (TZ_UNKNOWN, TZ_UTC)
FIELD_COUNT = 8
LISTENED = "L"


@dataclass(frozen=True)
class TrackEntry:
    artist: str
    album: Optional[str]
    title: str
    position: Optional[int]
    duration: int
    rating: str
    timestamp: int
    mbid: Optional[str] = None

    @property
    def listened(self) -> bool:
        return self.rating == LISTENED


@dataclass
class ScrobbleLog:
    path: Path
    timezone: str
    header: List[str] = field(default_factory=list)
    entries: List[TrackEntry] = field(default_factory=list)

    @property
    def is_utc(self) -> bool:
        return self.timezone == TZ_UTC


def _int_field(value: str, name: str, lineno: int) -> int:
    try:
        return int(value)
    except ValueError:
        raise LogFormatError(f"line {lineno}: {name} is not a number: {value!r}")


def parse_line(line: str, lineno: int = 0) -> TrackEntry:
    fields = line.rstrip("\r\n").split("\t")
    if len(fields) != FIELD_COUNT:
        raise LogFormatError(f"line {lineno}: expected {FIELD_COUNT} tab-separated fields, got {len(fields)}")
    artist, album, title, pos, dur, rating, ts, mbid = fields
    if not artist or not title:
        raise LogFormatError(f"line {lineno}: artist and title are required")
    return TrackEntry(
        artist=artist,
        album=album or None,
        title=title,
        position=_int_field(pos, "position", lineno) if pos else None,
        duration=_int_field(dur, "duration", lineno),
        rating=rating,
        timestamp=_int_field(ts, "timestamp", lineno),
        mbid=mbid or None,
    )


def parse_lines(lines: Iterable[str], path: Path = Path("<log>")) -> ScrobbleLog:
    it = iter(lines)
    first = next(it, "").rstrip("\r\n")
    if first != FORMAT_LINE:
        raise LogFormatError(f"{path}: not an Audioscrobbler 1.1 log (first line {first!r})")
    tz = next(it, "").rstrip("\r\n")
    if tz not in TZ_LINES:
        raise LogFormatError(f"{path}: unknown timezone marker {tz!r}")

    log = ScrobbleLog(path=path, timezone=tz, header=[first, tz])
    for lineno, line in enumerate(it, start=3):
        stripped = line.rstrip("\r\n")
        if not stripped.strip():
            continue
        # header lines (#CLIENT/...) only come before the first track and never hold a tab
        if not log.entries and stripped.startswith("#") and "\t" not in stripped:
            log.header.append(stripped)
            continue
        log.entries.append(parse_line(stripped, lineno))

    if not log.entries:
        raise LogFormatError(f"{path}: no tracks after the header")
    return log


def read_log(path: Path) -> ScrobbleLog:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as fh:
            return parse_lines(fh, path)
    except OSError as exc:
        raise LogFormatError(f"Can't open {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise LogFormatError(f"{path} is not UTF-8: {exc}") from exc


def listened(entries: Iterable[TrackEntry]) -> List[TrackEntry]:
    return [e for e in entries if e.listened]


def clear_log(log: ScrobbleLog) -> None:
    """Truncate the log back to its header lines."""
    try:
        log.path.write_text("\n".join(log.header) + "\n", encoding="utf-8")
    except OSError as exc:
        raise LogFormatError(f"Can't clear {log.path}: {exc}") from exc
