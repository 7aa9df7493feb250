"""Durable copy of job state in the jobs table.

Writes never raise: a failed write is logged and reported as False so the
in-memory state machine carries on regardless.
"""

import logging
from typing import Any, Optional

from languagesgo.models import JobStatus, StickerJob

logger = logging.getLogger(__name__)


class JobMirror:
    """Insert/update/fetch job rows in the jobs table."""

    def __init__(self, store: Any, table: str = "sticker_generation_jobs"):
        self.store = store
        self.table = table

    def insert(self, job: StickerJob) -> bool:
        try:
            self.store.insert(self.table, job.to_row())
            return True
        except Exception as e:
            logger.error(f"Error saving job {job.id}: {e}")
            return False

    def update(self, job: StickerJob) -> bool:
        try:
            self.store.update(self.table, job.id, job.update_row())
            return True
        except Exception as e:
            logger.error(f"Error updating job {job.id}: {e}")
            return False

    def fetch(self, job_id: str) -> Optional[StickerJob]:
        try:
            row = self.store.fetch_row(self.table, job_id)
        except Exception as e:
            logger.warning(f"Error fetching job {job_id}: {e}")
            return None
        return StickerJob.from_row(row) if row else None

    def fetch_unfinished(self) -> list[StickerJob]:
        """Jobs the table still shows as pending or processing, oldest first."""
        rows = self.store.select(
            self.table,
            {"status": ("in", [JobStatus.PENDING.value, JobStatus.PROCESSING.value])},
            order="created_at.asc",
        )
        return [StickerJob.from_row(row) for row in rows]
