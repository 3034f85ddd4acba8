"""Domain models for the photo session."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Selection:
    """The catalog item currently receiving newly arrived photos."""

    item_id: str
    title: str = ""
    sku: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Current selection and the number of queued photos."""

    selection: Selection | None
    queue_length: int


@dataclass(frozen=True)
class QueuedPhoto:
    """Preview entry for a queued photo."""

    display_name: str
    relative_path: str
    preview_url: str


@dataclass(frozen=True)
class FinalizeResult:
    """Outcome of a finalize run with any non-fatal warnings."""

    item_id: str
    uploaded_count: int
    normalized_count: int
    warnings: list[str] = field(default_factory=list)
