"""Tests for the jobs table mirror."""

from datetime import datetime, timezone

from languagesgo.models import JobStatus, StickerJob, VocabularyCard

TABLE = "sticker_generation_jobs"


def _job():
    return StickerJob.for_card(VocabularyCard(id="7", word="tree", language="es", category="nature"))


def test_insert_and_fetch(store, mirror):
    job = _job()
    assert mirror.insert(job)

    row = store.tables[TABLE][job.id]
    assert row["status"] == "pending"
    assert row["completed_at"] is None

    fetched = mirror.fetch(job.id)
    assert fetched == job


def test_update_writes_transition_columns(store, mirror):
    job = _job()
    mirror.insert(job)
    job.status = JobStatus.COMPLETED
    job.sticker_url = "https://x/stickers/a.png"
    job.completed_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert mirror.update(job)

    row = store.tables[TABLE][job.id]
    assert row["status"] == "completed"
    assert row["sticker_url"] == "https://x/stickers/a.png"
    assert row["completed_at"] == "2024-01-01T00:00:00+00:00"
    assert row["word"] == "tree"


def test_write_failures_return_false(store, mirror):
    store.failing_tables.add(TABLE)
    job = _job()
    assert mirror.insert(job) is False
    assert mirror.update(job) is False
    assert mirror.fetch(job.id) is None


def test_fetch_missing(mirror):
    assert mirror.fetch("job-missing") is None


def test_from_row_parses_zulu_timestamps():
    job = StickerJob.from_row({
        "id": "job-1",
        "card_id": 3,
        "word": "sun",
        "language": "en",
        "category": "nature",
        "status": "failed",
        "created_at": "2024-05-01T10:00:00Z",
        "error": "Card not found",
    })
    assert job.card_id == "3"
    assert job.status is JobStatus.FAILED
    assert job.created_at == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert job.completed_at is None


def test_fetch_unfinished(store, mirror):
    jobs = [_job() for _ in range(3)]
    for job in jobs:
        mirror.insert(job)
    jobs[1].status = JobStatus.PROCESSING
    mirror.update(jobs[1])
    jobs[2].status = JobStatus.FAILED
    mirror.update(jobs[2])

    unfinished = {job.id: job.status for job in mirror.fetch_unfinished()}
    assert unfinished == {jobs[0].id: JobStatus.PENDING, jobs[1].id: JobStatus.PROCESSING}
