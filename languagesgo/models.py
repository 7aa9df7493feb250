"""Data models shared by the sticker pipeline."""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class VocabularyCard:
    """A vocabulary entry as stored in the cards table."""
    id: str
    word: str
    translation: str = ""
    language: str = "en"
    difficulty: int = 1  # 1-3
    category: str = "object"
    artwork_url: str = ""

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "VocabularyCard":
        return cls(
            id=str(row["id"]),
            word=row.get("word") or "",
            translation=row.get("translation") or "",
            language=row.get("language") or "en",
            difficulty=int(row.get("difficulty") or 1),
            category=row.get("category") or "object",
            artwork_url=row.get("artwork_url") or "",
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    # PostgREST returns ISO 8601, sometimes with a trailing Z
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def new_job_id() -> str:
    return f"job-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass
class StickerJob:
    """One sticker generation request for a single card."""
    id: str
    card_id: str
    word: str
    language: str
    category: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    sticker_url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def for_card(cls, card: VocabularyCard) -> "StickerJob":
        return cls(
            id=new_job_id(),
            card_id=card.id,
            word=card.word,
            language=card.language,
            category=card.category,
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize for the jobs table."""
        return {
            "id": self.id,
            "card_id": self.card_id,
            "word": self.word,
            "language": self.language,
            "category": self.category,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
            "sticker_url": self.sticker_url,
        }

    def update_row(self) -> dict[str, Any]:
        """Columns that change on a status transition."""
        row = self.to_row()
        return {k: row[k] for k in ("status", "completed_at", "error", "sticker_url")}

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "StickerJob":
        return cls(
            id=row["id"],
            card_id=str(row["card_id"]),
            word=row.get("word") or "",
            language=row.get("language") or "",
            category=row.get("category") or "",
            status=JobStatus(row.get("status") or JobStatus.PENDING.value),
            created_at=_parse_timestamp(row.get("created_at")) or _utcnow(),
            completed_at=_parse_timestamp(row.get("completed_at")),
            error=row.get("error"),
            sticker_url=row.get("sticker_url"),
        )
