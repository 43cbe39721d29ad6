import json
import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from config.settings import (
    ACK_BATCH_SIZE,
    COMPLETION_QUEUE_SIZE,
    DEFAULT_CONCURRENCY,
    INPUT_QUEUE_SIZE,
    POLL_INTERVAL_SECONDS,
    POLL_PAGE_SIZE,
    QUEUE_POLL_SECONDS,
)
from engine.dedup import InProgressSet
from engine.work_source import WorkSourceError

logger = logging.getLogger(__name__)

ITEM_STATUS_ARCHIVED = "archived"
ITEM_STATUS_FAILED = "failed"
ITEM_STATUS_SKIPPED_DUPLICATE = "skipped_duplicate"
ITEM_STATUS_STOPPED = "stopped"


def _log_event(level, message, **fields):
    payload = {"message": message, **fields}
    try:
        logger.log(level, json.dumps(payload, sort_keys=True, default=str))
    except Exception as exc:
        logger.log(level, f"log_event_serialization_failed: {exc} message={message}")


@dataclass(frozen=True)
class PipelineConfig:
    concurrency: int = DEFAULT_CONCURRENCY
    input_queue_size: int = INPUT_QUEUE_SIZE
    completion_queue_size: int = COMPLETION_QUEUE_SIZE
    ack_batch_size: int = ACK_BATCH_SIZE
    poll_page_size: int | None = None
    poll_interval_seconds: float = POLL_INTERVAL_SECONDS
    queue_poll_seconds: float = QUEUE_POLL_SECONDS

    def __post_init__(self):
        for name in ("concurrency", "input_queue_size", "completion_queue_size", "ack_batch_size"):
            if int(getattr(self, name)) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.poll_page_size is not None and self.poll_page_size < 1:
            raise ValueError("poll_page_size must be >= 1")

    @property
    def page_size(self):
        return self.poll_page_size or POLL_PAGE_SIZE or self.input_queue_size * 2


@dataclass
class PipelineStats:
    polled: int = 0
    poll_failures: int = 0
    archived: int = 0
    failed: int = 0
    skipped_duplicate: int = 0
    acknowledged: int = 0
    ack_batches: int = 0
    ack_failures: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, name, amount=1):
        with self.lock:
            setattr(self, name, getattr(self, name) + amount)

    def as_dict(self):
        with self.lock:
            return {
                "polled": self.polled,
                "poll_failures": self.poll_failures,
                "archived": self.archived,
                "failed": self.failed,
                "skipped_duplicate": self.skipped_duplicate,
                "acknowledged": self.acknowledged,
                "ack_batches": self.ack_batches,
                "ack_failures": self.ack_failures,
            }


def _put_until_stopped(target, item, stop_event, poll_seconds):
    """Blocking put that gives up once ``stop_event`` is set."""
    while not stop_event.is_set():
        try:
            target.put(item, timeout=poll_seconds)
            return True
        except queue.Full:
            continue
    return False


def _get_until_stopped(source, stop_event, poll_seconds):
    while not stop_event.is_set():
        try:
            return source.get(timeout=poll_seconds)
        except queue.Empty:
            continue
    return None


class IdFetcher:
    """Polls the work source and feeds the bounded input queue.

    A full input queue blocks the fetcher, which is what throttles polling.
    Every poll returns the head of the pending list, so ids sitting in the
    input queue (``queued``) or owned by a worker (``tracker``) are left out
    of the next enqueue. ``source_lock`` is shared with the batcher: a page is
    filtered either before an acknowledged batch is released or after the
    work source has dropped it, never in between.
    """

    def __init__(
        self,
        source,
        input_queue,
        *,
        stop_event,
        tracker=None,
        queued=None,
        source_lock=None,
        page_size=INPUT_QUEUE_SIZE * 2,
        poll_interval_seconds=POLL_INTERVAL_SECONDS,
        queue_poll_seconds=QUEUE_POLL_SECONDS,
        stats=None,
    ):
        self.source = source
        self.input_queue = input_queue
        self.stop_event = stop_event
        self.tracker = tracker
        self.queued = queued if queued is not None else InProgressSet()
        self.source_lock = source_lock or threading.Lock()
        self.page_size = page_size
        self.poll_interval_seconds = poll_interval_seconds
        self.queue_poll_seconds = queue_poll_seconds
        self.stats = stats or PipelineStats()

    def _reserve(self, video_id):
        # Workers add to the tracker before leaving ``queued``, so checking
        # ``queued`` first leaves no window where an id is in neither set.
        if video_id in self.queued:
            return False
        if self.tracker is not None and video_id in self.tracker:
            return False
        return not self.queued.add(video_id)

    def run_once(self):
        """Poll one page and enqueue its new ids; return the number enqueued."""
        with self.source_lock:
            ids = self.source.fetch_pending_ids(offset=0, limit=self.page_size)
            self.stats.increment("polled", len(ids))
            fresh = [video_id for video_id in ids if self._reserve(video_id)]
        for index, video_id in enumerate(fresh):
            if not _put_until_stopped(self.input_queue, video_id, self.stop_event, self.queue_poll_seconds):
                self.queued.remove_many(fresh[index:])
                return index
        return len(fresh)

    def run_loop(self):
        _log_event(logging.INFO, "id_fetcher_started", page_size=self.page_size)
        while not self.stop_event.is_set():
            try:
                enqueued = self.run_once()
            except WorkSourceError as exc:
                self.stats.increment("poll_failures")
                logger.warning("work source poll failed, retrying in %.1fs: %s", self.poll_interval_seconds, exc)
                self.stop_event.wait(self.poll_interval_seconds)
                continue
            except Exception:
                self.stats.increment("poll_failures")
                logger.exception("unexpected work source poll failure")
                self.stop_event.wait(self.poll_interval_seconds)
                continue
            logger.debug("poll enqueued=%d", enqueued)
            if enqueued == 0:
                self.stop_event.wait(self.poll_interval_seconds)
        _log_event(logging.INFO, "id_fetcher_stopped")


class ArchiveWorkerPool:
    """Fixed set of worker threads running ``archive_fn`` on queued ids.

    ``archive_fn(video_id)`` returns a truthy value on success. Successful ids
    keep their dedup slot and go to the completion queue; the batcher releases
    them once acknowledged. Failed ids are released immediately.
    """

    def __init__(
        self,
        archive_fn,
        input_queue,
        completion_queue,
        tracker,
        *,
        stop_event,
        queued=None,
        concurrency=DEFAULT_CONCURRENCY,
        queue_poll_seconds=QUEUE_POLL_SECONDS,
        stats=None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.archive_fn = archive_fn
        self.input_queue = input_queue
        self.completion_queue = completion_queue
        self.tracker = tracker
        self.queued = queued
        self.stop_event = stop_event
        self.concurrency = concurrency
        self.queue_poll_seconds = queue_poll_seconds
        self.stats = stats or PipelineStats()
        self._threads = []

    @property
    def threads(self):
        return list(self._threads)

    def start(self):
        if self._threads:
            raise RuntimeError("worker pool already started")
        for index in range(self.concurrency):
            thread = threading.Thread(target=self._run, name=f"archive-worker-{index}", daemon=True)
            thread.start()
            self._threads.append(thread)
        _log_event(logging.INFO, "workers_started", concurrency=self.concurrency)

    def join(self, timeout=None):
        for thread in self._threads:
            thread.join(timeout)

    def _run(self):
        while True:
            video_id = _get_until_stopped(self.input_queue, self.stop_event, self.queue_poll_seconds)
            if video_id is None:
                return
            try:
                self.process(video_id)
            finally:
                self.input_queue.task_done()

    def process(self, video_id):
        already_present = self.tracker.add(video_id)
        if self.queued is not None:
            self.queued.remove(video_id)
        if already_present:
            self.stats.increment("skipped_duplicate")
            logger.debug("[%s] already in progress, skipping", video_id)
            return ITEM_STATUS_SKIPPED_DUPLICATE

        try:
            ok = bool(self.archive_fn(video_id))
        except Exception:
            logger.exception("[%s] archive raised", video_id)
            ok = False

        if not ok:
            self.tracker.remove(video_id)
            self.stats.increment("failed")
            return ITEM_STATUS_FAILED

        self.stats.increment("archived")
        if not _put_until_stopped(self.completion_queue, video_id, self.stop_event, self.queue_poll_seconds):
            # Stopping with the completion queue full: the archive is on disk
            # but will not be acknowledged by this run.
            self.tracker.remove(video_id)
            return ITEM_STATUS_STOPPED
        return ITEM_STATUS_ARCHIVED


class CompletionBatcher:
    """Buffers completed ids and acknowledges them in batches.

    Acknowledgement is at-most-once: whether the request succeeds or not, the
    batch is dropped from the buffer and released from the dedup tracker. A
    failed batch is therefore visible again on a later poll and may be
    archived a second time (the on-disk idempotence check makes that cheap).
    """

    def __init__(
        self,
        source,
        completion_queue,
        tracker,
        *,
        stop_event,
        source_lock=None,
        batch_size=ACK_BATCH_SIZE,
        queue_poll_seconds=QUEUE_POLL_SECONDS,
        stats=None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.source = source
        self.completion_queue = completion_queue
        self.tracker = tracker
        self.stop_event = stop_event
        self.source_lock = source_lock or threading.Lock()
        self.batch_size = batch_size
        self.queue_poll_seconds = queue_poll_seconds
        self.stats = stats or PipelineStats()
        self._buffer = []
        self._lock = threading.Lock()

    def pending(self):
        with self._lock:
            return list(self._buffer)

    def add(self, video_id):
        with self._lock:
            self._buffer.append(video_id)
            if len(self._buffer) < self.batch_size:
                return False
            batch, self._buffer = self._buffer, []
        self._acknowledge(batch)
        return True

    def flush(self):
        with self._lock:
            batch, self._buffer = self._buffer, []
        if batch:
            self._acknowledge(batch)
        return len(batch)

    def drain_queue(self):
        """Move everything left in the completion queue into the buffer without flushing."""
        drained = 0
        while True:
            try:
                video_id = self.completion_queue.get_nowait()
            except queue.Empty:
                return drained
            with self._lock:
                self._buffer.append(video_id)
            drained += 1

    def _acknowledge(self, batch):
        with self.source_lock:
            self._acknowledge_locked(batch)

    def _acknowledge_locked(self, batch):
        try:
            self.source.mark_archived(batch)
        except WorkSourceError as exc:
            self.stats.increment("ack_failures")
            logger.error("failed to mark %d ids as archived: %s", len(batch), exc)
        except Exception:
            self.stats.increment("ack_failures")
            logger.exception("unexpected failure marking %d ids as archived", len(batch))
        else:
            self.stats.increment("acknowledged", len(batch))
            self.stats.increment("ack_batches")
            _log_event(logging.INFO, "batch_acknowledged", count=len(batch))
        finally:
            self.tracker.remove_many(batch)

    def run_loop(self):
        _log_event(logging.INFO, "completion_batcher_started", batch_size=self.batch_size)
        while True:
            video_id = _get_until_stopped(self.completion_queue, self.stop_event, self.queue_poll_seconds)
            if video_id is None:
                break
            self.add(video_id)
        _log_event(logging.INFO, "completion_batcher_stopped", pending=len(self.pending()))


class ArchivePipeline:
    """Fetcher -> input queue -> workers -> completion queue -> batcher.

    All shared state is created per instance, so several pipelines can run
    side by side (tests do).
    """

    def __init__(self, source, archive_fn, config=None, *, tracker=None, stop_event=None):
        self.config = config or PipelineConfig()
        self.source = source
        self.tracker = tracker if tracker is not None else InProgressSet()
        self.queued = InProgressSet()
        self.source_lock = threading.Lock()
        self.stop_event = stop_event or threading.Event()
        self.stats = PipelineStats()
        self.input_queue = queue.Queue(maxsize=self.config.input_queue_size)
        self.completion_queue = queue.Queue(maxsize=self.config.completion_queue_size)
        self.fetcher = IdFetcher(
            source,
            self.input_queue,
            stop_event=self.stop_event,
            tracker=self.tracker,
            queued=self.queued,
            source_lock=self.source_lock,
            page_size=self.config.page_size,
            poll_interval_seconds=self.config.poll_interval_seconds,
            queue_poll_seconds=self.config.queue_poll_seconds,
            stats=self.stats,
        )
        self.workers = ArchiveWorkerPool(
            archive_fn,
            self.input_queue,
            self.completion_queue,
            self.tracker,
            stop_event=self.stop_event,
            queued=self.queued,
            concurrency=self.config.concurrency,
            queue_poll_seconds=self.config.queue_poll_seconds,
            stats=self.stats,
        )
        self.batcher = CompletionBatcher(
            source,
            self.completion_queue,
            self.tracker,
            stop_event=self.stop_event,
            source_lock=self.source_lock,
            batch_size=self.config.ack_batch_size,
            queue_poll_seconds=self.config.queue_poll_seconds,
            stats=self.stats,
        )
        self._threads = []

    @property
    def running(self):
        return bool(self._threads) and not self.stop_event.is_set()

    def start(self):
        if self._threads:
            raise RuntimeError("pipeline already started")
        batcher = threading.Thread(target=self.batcher.run_loop, name="completion-batcher", daemon=True)
        batcher.start()
        self._threads.append(batcher)
        self.workers.start()
        fetcher = threading.Thread(target=self.fetcher.run_loop, name="id-fetcher", daemon=True)
        fetcher.start()
        self._threads.append(fetcher)
        _log_event(
            logging.INFO,
            "pipeline_started",
            concurrency=self.config.concurrency,
            input_queue_size=self.config.input_queue_size,
            completion_queue_size=self.config.completion_queue_size,
            ack_batch_size=self.config.ack_batch_size,
        )

    def stop(self, *, flush=True, timeout=None):
        """Stop all loops; with ``flush`` acknowledge whatever completed but was not yet sent."""
        self.stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
        self.workers.join(timeout)
        if flush:
            self.batcher.drain_queue()
            self.batcher.flush()
        _log_event(logging.INFO, "pipeline_stopped", **self.stats.as_dict())

    def run_forever(self, *, status_interval=60.0):
        self.start()
        try:
            while not self.stop_event.wait(status_interval):
                _log_event(logging.INFO, "pipeline_status", in_progress=len(self.tracker), **self.stats.as_dict())
        finally:
            self.stop()


def archive_ids(video_ids, archive_fn, *, concurrency=DEFAULT_CONCURRENCY):
    """Archive a fixed list of ids without a work source.

    Duplicate ids in the input run once. Returns ``{video_id: success}``.
    """
    unique_ids = list(dict.fromkeys(video_id for video_id in video_ids if video_id))
    results = {}
    if not unique_ids:
        return results
    with ThreadPoolExecutor(max_workers=max(1, min(concurrency, len(unique_ids)))) as pool:
        futures = {pool.submit(archive_fn, video_id): video_id for video_id in unique_ids}
        for future in as_completed(futures):
            video_id = futures[future]
            try:
                results[video_id] = bool(future.result())
            except Exception:
                logger.exception("[%s] archive raised", video_id)
                results[video_id] = False
    return results
