"""Data models shared by the assistant components."""

import datetime
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np

Role = Literal["user", "assistant"]
VALID_ROLES: frozenset[str] = frozenset({"user", "assistant"})

RESULT_HEADER = "The following is a list of pages that may be relevant to the query:"


def current_timestamp_ms() -> int:
    """Return the current UTC time as milliseconds since the epoch."""
    return int(datetime.datetime.now(tz=datetime.UTC).timestamp() * 1000)


@dataclass(frozen=True)
class ConversationMessage:
    """A single stored message of a conversation window."""

    role: Role
    content: str
    timestamp: int
    image_id: str | None = None

    @property
    def has_attachment(self) -> bool:
        return bool(self.image_id)

    def to_record(self) -> dict[str, Any]:
        """Serialize the message for the key-value store.

        Returns:
            JSON-compatible mapping; ``image_id`` is omitted when absent.
        """
        record: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.image_id:
            record["image_id"] = self.image_id
        return record

    @classmethod
    def from_record(cls, record: object) -> "ConversationMessage | None":
        """Build a message from a decoded record, validating every field.

        Returns:
            The message, or None when the record is malformed.
        """
        if not isinstance(record, Mapping):
            return None

        role = record.get("role")
        content = record.get("content")
        timestamp = record.get("timestamp")
        image_id = record.get("image_id")

        if role not in VALID_ROLES or not isinstance(content, str):
            return None
        # bool is an int subclass; a stored True is not a timestamp
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return None
        if image_id is not None and not isinstance(image_id, str):
            return None

        return cls(
            role=role,
            content=content,
            timestamp=int(timestamp),
            image_id=image_id or None,
        )


@dataclass
class KnowledgeChunk:
    """A slice of corpus text addressed by page and 1-based chunk index."""

    page: int
    chunk_index: int
    content: str
    score: float = 0.0
    source: str = "document"
    embedding: np.ndarray | None = None

    @property
    def key(self) -> str:
        return chunk_key(self.page, self.chunk_index)


def chunk_key(page: int, chunk_index: int) -> str:
    """Return the index key of a chunk, e.g. ``"12-3"``."""
    return f"{page}-{chunk_index}"


@dataclass
class RetrievalResult:
    """Assembled passages grouped by page, in first-seen relevance order."""

    pages: dict[int, list[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not any(self.pages.values())

    def add(self, page: int, text: str) -> None:
        """Add an assembled block to a page unless the page already holds it."""
        blocks = self.pages.setdefault(page, [])
        if text not in blocks:
            blocks.append(text)

    def render(self) -> str:
        """Render the result as the listing handed to the generation oracle.

        Returns:
            A heading per page followed by its text blocks.
        """
        content = RESULT_HEADER
        for page, blocks in self.pages.items():
            if not blocks:
                continue
            content += f"\n# Page {page}\n"
            content += "\n\n".join(blocks)
        return content


@dataclass(frozen=True)
class InboundMessage:
    """A user turn as delivered by the messaging transport."""

    conversation_id: str
    text: str = ""
    attachment_id: str | None = None


@dataclass(frozen=True)
class OutboundMessage:
    """A reply to be delivered by the messaging transport."""

    conversation_id: str
    text: str
