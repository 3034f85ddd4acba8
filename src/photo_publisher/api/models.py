"""Request and response models for the HTTP API."""

from datetime import datetime

from pydantic import BaseModel, Field


class SelectProductRequest(BaseModel):
    """Product chosen to receive the next photos."""

    id: str | int | None = None
    title: str | None = None
    sku: str | None = None
    created_at: datetime | None = None


class RemovePhotoRequest(BaseModel):
    """Queued photo to remove, relative to the watched folder."""

    path: str


class ReorderRequest(BaseModel):
    """Desired queue order as relative paths."""

    order: list[str] = Field(default_factory=list)

