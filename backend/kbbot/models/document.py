"""Document data models."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class DocumentStatus(str, Enum):
    """Processing status of a tracked source document."""

    UNPROCESSED = "unprocessed"
    NEEDS_PROCESSING = "needs_processing"
    PROCESSED = "processed"


@dataclass
class Chunk:
    """Represents a text chunk derived from one document."""

    source_document: str
    sequence_index: int
    text: str

    @property
    def char_length(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class RemoteFile:
    """One entry of a document store listing."""

    name: str
    fingerprint: str
    size_bytes: int = 0
    download_url: Optional[str] = None
    type: str = "file"

    @classmethod
    def from_listing(cls, entry: Dict[str, Any]) -> "RemoteFile":
        """Build from a contents-API listing entry (``sha`` is the fingerprint)."""
        return cls(
            name=entry["name"],
            fingerprint=entry.get("sha", ""),
            size_bytes=entry.get("size", 0) or 0,
            download_url=entry.get("download_url"),
            type=entry.get("type", "file"),
        )


@dataclass
class Document:
    """Represents a tracked source document."""

    name: str
    fingerprint: str
    size_bytes: int = 0
    status: DocumentStatus = DocumentStatus.UNPROCESSED
    processed_at: Optional[datetime] = None
    chunk_count: Optional[int] = None
    processed_file: Optional[str] = None

    def mark(self, status: DocumentStatus, **changes) -> "Document":
        """Return a copy moved to ``status``.

        Allowed moves are unprocessed -> needs_processing -> processed, or
        straight to processed. A document whose fingerprint changed starts
        over, so callers re-mark a fresh copy rather than mutate in place.
        """
        if self.status == DocumentStatus.PROCESSED and status != DocumentStatus.PROCESSED:
            raise ValueError(f"Cannot move {self.name} from processed to {status.value}")
        return replace(self, status=status, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "fingerprint": self.fingerprint,
            "size_bytes": self.size_bytes,
            "status": self.status.value,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "chunk_count": self.chunk_count,
            "processed_file": self.processed_file,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        processed_at = data.get("processed_at")
        return cls(
            name=data["name"],
            fingerprint=data["fingerprint"],
            size_bytes=data.get("size_bytes", 0),
            status=DocumentStatus(data.get("status", DocumentStatus.UNPROCESSED.value)),
            processed_at=datetime.fromisoformat(processed_at) if processed_at else None,
            chunk_count=data.get("chunk_count"),
            processed_file=data.get("processed_file"),
        )


@dataclass
class ChangeSet:
    """Result of comparing a remote listing with known documents."""

    new: List[RemoteFile] = field(default_factory=list)
    updated: List[RemoteFile] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def to_process(self) -> List[RemoteFile]:
        return [*self.new, *self.updated]


@dataclass(frozen=True)
class CorpusSnapshot:
    """Corpus text assembled for one question and where it came from."""

    text: str
    source: str
