#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
.scrobbler.log → Last.fm (CLI)

    logscrobbler auth                   authorize once in the browser, caches the session key
    logscrobbler auth --reset           forget the cached session key and re-authorize
    logscrobbler scrobble --file PATH   submit every fully listened track in the log

--file belongs to the scrobble command; authorization is the separate auth step.
"""

from __future__ import annotations

import argparse
import logging
import sys
import webbrowser
from pathlib import Path
from typing import List, Optional

from logscrobbler import __version__
from logscrobbler.config import Config, load_config, parse_utc_offset
from logscrobbler.errors import NotAuthorizedError, ScrobblerError
from logscrobbler.lastfm import LastfmClient, SessionCache
from logscrobbler.logfile import clear_log, listened, read_log
from logscrobbler.scrobble import Scrobbler

log = logging.getLogger("logscrobbler")

DEBUG_LOG_NAME = "logscrobbler-debug.log"
LOG_FORMAT = "%(asctime)-15s %(levelname)-5s %(name)s: %(message)s"


def setup_logging(debug: bool, cache_dir: Path) -> None:
    log.setLevel(logging.DEBUG if debug else logging.WARNING)
    for h in list(log.handlers):
        log.removeHandler(h)
        h.close()

    stderr = logging.StreamHandler(sys.stderr)
    stderr.setLevel(logging.WARNING)
    stderr.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    log.addHandler(stderr)

    if debug:
        cache_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(cache_dir / DEBUG_LOG_NAME, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(fh)


def utc_offset_arg(value: str) -> float:
    try:
        return parse_utc_offset(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))


def make_client(cfg: Config) -> LastfmClient:
    return LastfmClient(cfg.api_key, cfg.api_secret, api_root=cfg.api_root)


def browser_confirm(open_browser: bool = True):
    def confirm(url: str) -> None:
        print("Open this URL and click 'Allow Access':")
        print(url)
        if open_browser:
            try:
                webbrowser.open(url)
            except webbrowser.Error:
                pass
        input("After approving, press Enter to continue...")
        print("Exchanging token for session key...")
    return confirm

# ---------------------------
# Commands
# ---------------------------

def cmd_auth(args: argparse.Namespace, cfg: Config) -> int:
    cache = SessionCache(cfg.cache_dir, cfg.user)
    if args.reset:
        if cache.clear():
            print(f"Cleared cached session key for {cfg.user}.")
    elif cache.load():
        print(f"Already authorized as {cfg.user} ({cache.path}). Use --reset to re-authorize.")
        return 0

    print("Requesting authorization token...")
    cache.authorize(make_client(cfg), browser_confirm(not args.no_browser))
    print(f"Authenticated as {cfg.user}. Session key cached in {cache.path}.")
    return 0


def cmd_scrobble(args: argparse.Namespace, cfg: Config) -> int:
    cache = SessionCache(cfg.cache_dir, cfg.user)
    session_key = cache.load()
    if not session_key:
        raise NotAuthorizedError(f"No session key cached for {cfg.user}; run `logscrobbler auth` first.")

    scrobble_log = read_log(args.file)
    offset = cfg.utc_offset if args.utc_offset is None else args.utc_offset
    if scrobble_log.is_utc and offset:
        log.warning("%s is already in UTC; ignoring UTC offset %+g", args.file, offset)
        offset = 0.0

    tracks = listened(scrobble_log.entries)
    print(f"Loaded {len(scrobble_log.entries)} entries, {len(tracks)} fully listened.")

    scrobbler = Scrobbler(make_client(cfg), session_key, utc_offset=offset, dry_run=args.dry_run)
    result = scrobbler.submit_all(scrobble_log.entries)

    if args.dry_run:
        print(f"Finished. {result.accepted} scrobbles processed (dry-run).")
        return 0
    print(f"Finished. {result.accepted} scrobbles submitted, {result.ignored} ignored, {result.skipped} skipped.")

    if args.clear:
        if result.complete:
            clear_log(scrobble_log)
            print(f"Cleared {args.file}.")
        else:
            print(f"Not clearing {args.file}: some scrobbles were ignored.")
    return 0

# ---------------------------
# CLI
# ---------------------------

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="logscrobbler",
        description="Submit a portable player's .scrobbler.log to Last.fm.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config-dir", type=Path, help="Directory holding the config file (default: ~/.config/logscrobbler)")
    p.add_argument("--cache-dir", type=Path, help="Directory holding cached session keys (default: ~/.cache/logscrobbler)")
    p.add_argument("--debug", action="store_true", help=f"Write {DEBUG_LOG_NAME} (redacted) to the cache dir")
    sub = p.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    a = sub.add_parser("auth", help="Authorize this client and cache the session key")
    a.add_argument("--reset", action="store_true", help="Forget the cached session key and re-authorize")
    a.add_argument("--no-browser", action="store_true", help="Only print the authorization URL")
    a.set_defaults(func=cmd_auth)

    s = sub.add_parser("scrobble", help="Submit fully listened tracks from a .scrobbler.log")
    s.add_argument("--file", "-f", type=Path, required=True, help="Path to .scrobbler.log")
    s.add_argument("--utc-offset", type=utc_offset_arg, default=None,
                   help="Player clock offset from UTC in hours, e.g. 3 or -5 (default: [scrobble] utc_offset)")
    s.add_argument("--dry-run", action="store_true", help="Build requests but do not submit")
    s.add_argument("--clear", action="store_true", help="Truncate the log to its header once every track was accepted")
    s.set_defaults(func=cmd_scrobble)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args.config_dir, args.cache_dir)
        setup_logging(args.debug, cfg.cache_dir)
        return args.func(args, cfg)
    except ScrobblerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
