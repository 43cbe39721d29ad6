#!/usr/bin/env python3
"""
YouTube metadata archiver fed by a remote work queue.
- Polls the work source for pending video ids and archives them with a fixed worker pool.
- Per video: page metadata (info.json), description, annotations, subtitles and thumbnail
  under a sharded directory (<output>/a/ab/abc123/).
- Completed ids are acknowledged back to the work source in batches.
- Local modes archive a single id or a list file without the work source.
"""

import argparse
import logging
import os
import signal
import sys
import threading
from datetime import datetime

from config.settings import DEFAULT_CONCURRENCY, LOG_DIR, OUTPUT_DIR
from download.fetcher import HttpFetcher
from engine.archive import VideoArchiver
from engine.job_queue import ArchivePipeline, PipelineConfig, archive_ids
from engine.paths import ensure_dir, resolve_output_root
from engine.runtime import get_runtime_info
from engine.work_source import WorkSourceClient, WorkSourceError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


# ─────────────────────────────────────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────────────────────────────────────
def setup_logging(log_dir, *, verbose=False, now=None):
    """Console plus one log file per run, named after the start time."""
    ensure_dir(log_dir)
    level = logging.DEBUG if verbose else logging.INFO
    log_path = os.path.join(log_dir, (now or datetime.now()).strftime("%Y%m%d%H%M%S") + ".log")

    root = logging.getLogger("")
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)
    has_file = any(
        isinstance(handler, logging.FileHandler)
        and os.path.abspath(getattr(handler, "baseFilename", "")) == os.path.abspath(log_path)
        for handler in root.handlers
    )
    if not has_file:
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        root.addHandler(file_handler)
    if not any(type(handler) is logging.StreamHandler for handler in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        console.setLevel(level)
        root.addHandler(console)
    # Per-request chatter from urllib3 is only useful when debugging it directly.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return log_path


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────
def load_ids(path):
    """Read video ids from a text file, one per line; blanks and # comments are skipped."""
    ids = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                ids.append(line)
    return ids


def install_stop_handlers(stop_event):
    def _handle(signum, _frame):
        logging.info("Received signal %s, stopping", signum)
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, _handle)


def build_parser():
    parser = argparse.ArgumentParser(prog="yt-metadata-archiver", description="YouTube metadata archiver")
    parser.add_argument("-j", "--concurrency", type=int, default=DEFAULT_CONCURRENCY, help="Number of archive workers")
    parser.add_argument("-o", "--output", default=OUTPUT_DIR, help="Output directory")
    parser.add_argument(
        "-s",
        "--secret",
        default=os.environ.get("YTMA_SECRET"),
        help="Work source API secret (defaults to $YTMA_SECRET)",
    )
    parser.add_argument("-p", "--proxy", default=None, help="Proxy URL used for every request")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--log-dir", default=LOG_DIR, help="Directory for per-run log files")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--single-id", help="Archive one video id and exit (no work source).")
    mode.add_argument("--list", dest="list_file", help="Archive every id in a file and exit (no work source).")
    mode.add_argument("--push", dest="push_file", help="Submit the ids in a file to the work source and exit.")
    return parser


# ─────────────────────────────────────────────────────────────────────────────
# Modes
# ─────────────────────────────────────────────────────────────────────────────
def run_single(archiver, video_id):
    result = archiver.archive(video_id)
    if not result.success:
        logging.error("Archiving %s failed: %s", video_id, result.error)
        return 1
    return 0


def run_list(archiver, path, concurrency):
    ids = load_ids(path)
    results = archive_ids(ids, archiver, concurrency=concurrency)
    failed = sorted(video_id for video_id, ok in results.items() if not ok)
    logging.info("Archived %d/%d ids from %s", len(results) - len(failed), len(results), path)
    if failed:
        logging.error("Failed ids: %s", ", ".join(failed))
        return 1
    return 0


def run_push(client, path):
    ids = load_ids(path)
    try:
        client.push_ids(ids)
    except WorkSourceError as exc:
        logging.error("Failed to push %d ids: %s", len(ids), exc)
        return 1
    logging.info("Pushed %d ids from %s", len(ids), path)
    return 0


def run_queue(client, archiver, config, *, stop_event=None):
    try:
        client.fetch_pending_ids(offset=0, limit=1)
    except WorkSourceError as exc:
        logging.error("Work source unreachable at startup: %s", exc)
        return 1
    stop_event = stop_event or threading.Event()
    install_stop_handlers(stop_event)
    pipeline = ArchivePipeline(client, archiver, config, stop_event=stop_event)
    pipeline.run_forever()
    return 0


# ─────────────────────────────────────────────────────────────────────────────
# Entry
# ─────────────────────────────────────────────────────────────────────────────
def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.concurrency < 1:
        parser.error("--concurrency must be >= 1")
    needs_source = not (args.single_id or args.list_file)
    if needs_source and not (args.secret or "").strip():
        parser.error("--secret is required unless --single-id or --list is used")

    log_path = setup_logging(args.log_dir, verbose=args.verbose)
    logging.info("Starting archiver log=%s runtime=%s", log_path, get_runtime_info())

    output_root = resolve_output_root(args.output)
    archiver = VideoArchiver(output_root, HttpFetcher(proxy=args.proxy))

    if args.single_id:
        return run_single(archiver, args.single_id)
    if args.list_file:
        return run_list(archiver, args.list_file, args.concurrency)

    client = WorkSourceClient(args.secret, proxy=args.proxy)
    if args.push_file:
        return run_push(client, args.push_file)
    return run_queue(client, archiver, PipelineConfig(concurrency=args.concurrency))


if __name__ == "__main__":
    sys.exit(main())
