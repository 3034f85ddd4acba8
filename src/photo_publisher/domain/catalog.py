"""Catalog domain models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class CatalogItem:
    """Summary of a catalog product."""

    id: str
    title: str
    sku: str | None
    status: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class ImageUpload:
    """Image bytes destined for a product gallery."""

    filename: str
    content: bytes
