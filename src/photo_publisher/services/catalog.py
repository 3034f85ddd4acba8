"""Catalog listing: recent in-stock products that still need photos."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from photo_publisher.domain.catalog import CatalogItem
from photo_publisher.domain.errors import UpstreamFailureError

_logger = logging.getLogger(__name__)


class ProductSource(Protocol):
    """Interface for reading raw product records."""

    async def fetch_products(self) -> list[dict[str, object]]:
        """Return raw product records, newest first where supported."""


@dataclass
class CatalogService:
    """Filters the raw product feed down to items missing photos."""

    source: ProductSource
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    async def list_recent_items_missing_photos(
        self, limit: int = 30, query: str | None = None
    ) -> list[CatalogItem]:
        """Return the newest in-stock, non-archived products with no images."""
        products = await self._fetch_with_retry()
        candidates = [
            product
            for product in products
            if _is_active(product) and _in_stock(product) and not product.get("images")
        ]
        items = [_to_catalog_item(product) for product in candidates]
        if query and query.strip():
            needle = query.strip().lower()
            items = [
                item
                for item in items
                if needle in item.title.lower() or needle in (item.sku or "").lower()
            ]
        items.sort(key=_created_sort_key, reverse=True)
        _logger.info(
            "Products without images: %s, returning %s (limit %s)",
            len(items),
            min(len(items), limit),
            limit,
        )
        return items[: max(limit, 0)]

    async def _fetch_with_retry(self) -> list[dict[str, object]]:
        attempt = 0
        while True:
            try:
                return await self.source.fetch_products()
            except Exception as exc:
                attempt += 1
                _logger.warning(
                    "Product fetch failed (attempt %s/%s): %s",
                    attempt,
                    self.retry_attempts + 1,
                    exc,
                )
                if attempt > self.retry_attempts:
                    raise UpstreamFailureError(
                        "Failed to fetch products from the catalog"
                    ) from exc
                await asyncio.sleep(self.retry_delay_seconds)


def _is_active(product: dict[str, object]) -> bool:
    return str(product.get("status") or "").lower() != "archived"


def _in_stock(product: dict[str, object]) -> bool:
    variants = product.get("variants")
    if not isinstance(variants, list):
        return False
    for variant in variants:
        if not isinstance(variant, dict):
            continue
        try:
            quantity = float(variant.get("inventory_quantity") or 0)
        except (TypeError, ValueError):
            continue
        if quantity >= 1:
            return True
    return False


def _to_catalog_item(product: dict[str, object]) -> CatalogItem:
    sku = None
    variants = product.get("variants")
    if isinstance(variants, list) and variants and isinstance(variants[0], dict):
        sku = variants[0].get("sku") or None
    return CatalogItem(
        id=str(product.get("id")),
        title=str(product.get("title") or ""),
        sku=str(sku) if sku else None,
        status=str(product["status"]) if product.get("status") else None,
        created_at=_parse_timestamp(product.get("created_at")),
    )


def _parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO 8601 timestamp, returning None when absent or malformed."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _created_sort_key(item: CatalogItem) -> float:
    if item.created_at is None:
        return float("-inf")
    return item.created_at.timestamp()
