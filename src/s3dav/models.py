from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class StoredObject:
    """An object fetched from the store, content included."""

    key: str
    content: bytes
    content_type: str | None
    size: int
    uploaded_at: datetime


@dataclass(frozen=True)
class ObjectSummary:
    """One entry of a prefix listing."""

    key: str
    size: int
    uploaded_at: datetime | None

    @property
    def is_folder(self):
        return self.key.endswith("/")
