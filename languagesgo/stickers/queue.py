"""Background sticker generation queue.

Jobs live in an in-memory backlog and are driven by a single loop thread.
Each loop iteration takes up to ``batch_size`` pending jobs, runs them in
parallel, waits for all of them to settle, drops the finished ones from
the backlog, sleeps ``batch_delay_s`` and goes again until nothing is
pending.

Job state is mirrored to the jobs table. Mirror writes are best effort:
a failed write is remembered and can be replayed with flush_mirror() or
reconcile(). Writes for one job never overlap, so the row always ends at
the latest state. The in-memory copy is authoritative while the process
lives, and recently finished jobs stay answerable from memory.

One lock guards the backlog, the running flag and every job transition.
"""

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from languagesgo.models import JobStatus, StickerJob, VocabularyCard

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_S = 2.0
INTERRUPTED_ERROR = "Interrupted before completion"
FINISHED_HISTORY = 500
WRITE_LOCK_STRIPES = 16


class CardNotFoundError(Exception):
    """The card a job refers to is gone from the cards table."""


class StickerQueue:
    """Bounded-batch sticker job runner with a status mirror."""

    def __init__(
        self,
        store: Any,
        generator: Any,
        mirror: Any,
        *,
        cards_table: str = "vocabulary_cards",
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_s: float = DEFAULT_BATCH_DELAY_S,
        job_timeout_s: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        autostart: bool = True,
    ):
        """Initialize the queue.

        Args:
            store: Data store with fetch_row/update (SupabaseClient or a fake)
            generator: Object whose generate(card) returns a StickerGenerationResult
            mirror: JobMirror for durable job state
            cards_table: Table holding vocabulary cards
            batch_size: Maximum jobs dispatched per loop iteration
            batch_delay_s: Pause between loop iterations
            job_timeout_s: Deadline for a whole batch; None waits forever
            sleep: Sleep function used between batches
            autostart: Start the loop thread on enqueue
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.store = store
        self.generator = generator
        self.mirror = mirror
        self.cards_table = cards_table
        self.batch_size = batch_size
        self.batch_delay_s = batch_delay_s
        self.job_timeout_s = job_timeout_s
        self.autostart = autostart
        self._sleep = sleep

        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._jobs: list[StickerJob] = []
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._finalizing: set[str] = set()
        # job id -> (needs insert, latest snapshot) for failed mirror writes
        self._unsynced: dict[str, tuple[bool, StickerJob]] = {}
        # recently finished jobs, oldest first
        self._finished: OrderedDict[str, StickerJob] = OrderedDict()
        # mirror writes for one job never overlap
        self._write_locks = [threading.Lock() for _ in range(WRITE_LOCK_STRIPES)]

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "StickerQueue":
        """Wire a queue to Supabase and Gemini using StickerSettings."""
        from languagesgo.gemini.image import StickerImageClient
        from languagesgo.stickers.generator import StickerGenerator
        from languagesgo.stickers.mirror import JobMirror
        from languagesgo.supabase.client import SupabaseClient

        store = SupabaseClient(
            settings.supabase_url,
            settings.supabase_key,
            timeout=settings.http_timeout_s,
        )
        image_client = StickerImageClient(
            settings.gemini_api_key or None,
            model=settings.gemini_model,
            timeout_s=settings.http_timeout_s,
            max_attempts=settings.max_attempts,
            retry_base_delay_s=settings.retry_base_delay_s,
        )
        generator = StickerGenerator(image_client, store, bucket=settings.bucket)
        mirror = JobMirror(store, settings.jobs_table)

        kwargs.setdefault("cards_table", settings.cards_table)
        kwargs.setdefault("batch_size", settings.batch_size)
        kwargs.setdefault("batch_delay_s", settings.batch_delay_s)
        kwargs.setdefault("job_timeout_s", settings.job_timeout_s or None)
        return cls(store, generator, mirror, **kwargs)

    # === Public API ===

    def enqueue(self, card: VocabularyCard) -> str:
        """Queue one card and return its job id without waiting."""
        return self.enqueue_many([card])[0]

    def enqueue_many(self, cards: Iterable[VocabularyCard]) -> list[str]:
        """Queue several cards at once; the loop wakes after all are added."""
        cards = list(cards)
        for card in cards:
            if not card.word or not card.category:
                raise ValueError(f"Card {card.id!r} needs a word and a category")

        jobs = [StickerJob.for_card(card) for card in cards]
        for job in jobs:
            # Row exists before the loop can transition the job
            self._persist(job, insert=True)
            with self._lock:
                self._jobs.append(job)
            logger.info(f"Queued '{job.word}' for sticker generation (job: {job.id})")

        if self.autostart:
            self._start()
        return [job.id for job in jobs]

    def get_job_status(self, job_id: str) -> Optional[StickerJob]:
        """Snapshot of a job: memory first, then the mirror."""
        with self._lock:
            for job in self._jobs:
                if job.id == job_id:
                    return replace(job)
            if job_id in self._finished:
                return replace(self._finished[job_id])
            if job_id in self._unsynced:
                return replace(self._unsynced[job_id][1])
        return self.mirror.fetch(job_id)

    def get_pending_count(self) -> int:
        """Pending jobs resident in this process."""
        with self._lock:
            return sum(1 for job in self._jobs if job.status is JobStatus.PENDING)

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the loop stops. Returns False on timeout."""
        return self._idle.wait(timeout)

    def run_until_idle(self) -> None:
        """Drive the loop on the calling thread until nothing is pending."""
        with self._lock:
            if self._running:
                raise RuntimeError("Sticker queue loop is already running")
            self._running = True
            self._idle.clear()
        self._run_loop()

    def flush_mirror(self) -> int:
        """Replay mirror writes that failed earlier. Returns rows synced."""
        with self._lock:
            pending = list(self._unsynced)

        synced = 0
        for job_id in pending:
            with self._write_lock(job_id):
                with self._lock:
                    entry = self._unsynced.get(job_id)
                if entry is None:
                    continue
                needs_insert, snapshot = entry
                ok = self.mirror.insert(snapshot) if needs_insert else self.mirror.update(snapshot)
                if not ok:
                    continue
                synced += 1
                with self._lock:
                    del self._unsynced[job_id]
        if pending:
            logger.info(f"Flushed {synced}/{len(pending)} unsynced job record(s)")
        return synced

    def reconcile(self) -> dict[str, int]:
        """Bring memory and mirror back in line after a restart.

        Replays failed mirror writes, adopts mirror rows still pending into
        the backlog, and fails rows left in processing by a dead process.
        """
        flushed = self.flush_mirror()
        unfinished = self.mirror.fetch_unfinished()

        adopted = 0
        interrupted = 0
        for job in unfinished:
            with self._lock:
                # the row is stale when this process already holds the job
                if self._is_known(job.id):
                    continue
                if job.status is JobStatus.PENDING:
                    self._jobs.append(job)
                    adopted += 1
                    continue
                job.status = JobStatus.FAILED
                job.error = INTERRUPTED_ERROR
                self._remember_finished(job)
            self._persist(job)
            interrupted += 1

        logger.info(f"Reconciled jobs: {adopted} adopted, {interrupted} interrupted, {flushed} flushed")
        if adopted and self.autostart:
            self._start()
        return {"flushed": flushed, "adopted": adopted, "interrupted": interrupted}

    # === Loop ===

    def _start(self) -> None:
        with self._lock:
            if self._running:
                return
            if not any(job.status is JobStatus.PENDING for job in self._jobs):
                return
            self._running = True
            self._idle.clear()
            self._thread = threading.Thread(target=self._run_loop, name="sticker-queue", daemon=True)
            self._thread.start()

    def _next_batch(self) -> list[StickerJob]:
        with self._lock:
            batch = [job for job in self._jobs if job.status is JobStatus.PENDING][: self.batch_size]
            if not batch:
                self._running = False
                self._idle.set()
            return batch

    def _run_loop(self) -> None:
        try:
            while True:
                batch = self._next_batch()
                if not batch:
                    return

                logger.info(f"Processing batch of {len(batch)} sticker job(s)")
                self._process_batch(batch)

                with self._lock:
                    for job in self._jobs:
                        if job.is_terminal:
                            self._remember_finished(job)
                    self._jobs = [job for job in self._jobs if not job.is_terminal]
                    more = any(job.status is JobStatus.PENDING for job in self._jobs)
                if more:
                    self._sleep(self.batch_delay_s)
        except Exception:
            logger.exception("Sticker queue loop crashed")
            with self._lock:
                self._running = False
                self._idle.set()
            raise

    def _process_batch(self, batch: list[StickerJob]) -> None:
        executor = ThreadPoolExecutor(max_workers=len(batch), thread_name_prefix="sticker-job")
        futures = {executor.submit(self._process_job, job): job for job in batch}
        try:
            done, not_done = wait(futures, timeout=self.job_timeout_s)

            for future in not_done:
                job = futures[future]
                if self._fail(job, f"Timed out after {self.job_timeout_s:g}s", skip_finalizing=True):
                    logger.warning(f"Sticker job {job.id} ('{job.word}') timed out")

            for future in done:
                exc = future.exception()
                if exc is not None:
                    job = futures[future]
                    logger.error(f"Unexpected error in sticker job {job.id}: {exc}")
                    self._fail(job, str(exc) or "Unknown error")
        finally:
            # Timed-out workers are abandoned, not joined
            executor.shutdown(wait=False, cancel_futures=True)

    def _process_job(self, job: StickerJob) -> None:
        if not self._transition(job, JobStatus.PROCESSING):
            return

        try:
            card = self._fetch_card(job)
            result = self.generator.generate(card)
        except Exception as e:
            logger.warning(f"Sticker job {job.id} ('{job.word}') failed: {e}")
            self._fail(job, str(e) or "Unknown error")
            return

        if not (result.success and result.sticker_url):
            logger.warning(f"Sticker job {job.id} ('{job.word}') failed: {result.error}")
            self._fail(job, result.error or "Unknown error")
            return

        with self._lock:
            if job.is_terminal:
                logger.warning(f"Discarding late sticker for job {job.id}: {result.sticker_url}")
                return
            self._finalizing.add(job.id)

        try:
            self.store.update(self.cards_table, job.card_id, {"artwork_url": result.sticker_url})
        except Exception as e:
            with self._lock:
                self._finalizing.discard(job.id)
            logger.error(f"Error updating card {job.card_id} with sticker: {e}")
            self._fail(job, f"Card update failed: {e}")
            return

        self._transition(
            job,
            JobStatus.COMPLETED,
            sticker_url=result.sticker_url,
            completed_at=datetime.now(timezone.utc),
        )
        logger.info(f"Sticker job {job.id} ('{job.word}') completed")

    def _fetch_card(self, job: StickerJob) -> VocabularyCard:
        try:
            row = self.store.fetch_row(self.cards_table, job.card_id)
        except Exception as e:
            raise CardNotFoundError(f"Card not found: {e}") from e
        if not row:
            raise CardNotFoundError("Card not found")

        card = VocabularyCard.from_row(row)
        card.category = job.category or card.category
        return card

    # === Transitions ===

    def _transition(self, job: StickerJob, status: JobStatus, *, skip_finalizing: bool = False, **changes) -> bool:
        """Apply a status change unless the job is already terminal."""
        with self._lock:
            if job.is_terminal:
                return False
            if status is JobStatus.PROCESSING and job.status is not JobStatus.PENDING:
                return False
            if skip_finalizing and job.id in self._finalizing:
                return False
            job.status = status
            for name, value in changes.items():
                setattr(job, name, value)
            if status.is_terminal:
                self._finalizing.discard(job.id)
        self._persist(job)
        return True

    def _fail(self, job: StickerJob, error: str, *, skip_finalizing: bool = False) -> bool:
        return self._transition(job, JobStatus.FAILED, skip_finalizing=skip_finalizing, error=error)

    def _persist(self, job: StickerJob, insert: bool = False) -> None:
        # Snapshot and write under the job's write lock so writes land in order
        with self._write_lock(job.id):
            with self._lock:
                previous = self._unsynced.get(job.id)
                needs_insert = insert or (previous is not None and previous[0])
                snapshot = replace(job)

            ok = self.mirror.insert(snapshot) if needs_insert else self.mirror.update(snapshot)

            with self._lock:
                if ok:
                    self._unsynced.pop(job.id, None)
                else:
                    self._unsynced[job.id] = (needs_insert, snapshot)

    def _write_lock(self, job_id: str) -> threading.Lock:
        return self._write_locks[hash(job_id) % len(self._write_locks)]

    def _is_known(self, job_id: str) -> bool:
        """Caller holds the lock."""
        return (
            job_id in self._unsynced
            or job_id in self._finished
            or any(job.id == job_id for job in self._jobs)
        )

    def _remember_finished(self, job: StickerJob) -> None:
        """Caller holds the lock."""
        self._finished[job.id] = job
        self._finished.move_to_end(job.id)
        while len(self._finished) > FINISHED_HISTORY:
            self._finished.popitem(last=False)
