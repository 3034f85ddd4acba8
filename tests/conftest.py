"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from photo_publisher.config import Settings
from photo_publisher.containers import AppContainer
from photo_publisher.domain.catalog import ImageUpload
from photo_publisher.services.catalog import CatalogService, ProductSource
from photo_publisher.services.events import FileEventPump
from photo_publisher.services.session import (
    CatalogClient,
    ImageNormalizer,
    PhotoSessionService,
)


@dataclass
class FakeCatalogClient(CatalogClient):
    """Fake catalog client that records uploads and publishes."""

    uploads: list[tuple[str, list[ImageUpload]]] = field(default_factory=list)
    published: list[str] = field(default_factory=list)
    fail_upload: bool = False
    fail_publish: bool = False
    upload_delay_seconds: float = 0.0

    async def upload_images(self, item_id: str, images: list[ImageUpload]) -> None:
        if self.upload_delay_seconds:
            await asyncio.sleep(self.upload_delay_seconds)
        if self.fail_upload:
            raise RuntimeError("Shopify REST error 500")
        self.uploads.append((item_id, list(images)))

    async def publish(self, item_id: str) -> None:
        if self.fail_publish:
            raise RuntimeError("publishablePublish userErrors")
        self.published.append(item_id)


@dataclass
class FakeNormalizer(ImageNormalizer):
    """Prefixes bytes; fails for inputs that start with b"bad"."""

    calls: list[bytes] = field(default_factory=list)

    def normalize(self, data: bytes) -> bytes:
        self.calls.append(data)
        if data.startswith(b"bad"):
            raise ValueError("cannot identify image file")
        return b"normalized:" + data


@dataclass
class FakeProductSource(ProductSource):
    """Product source returning a fixed list of raw products."""

    products: list[dict[str, object]] = field(default_factory=list)
    failures: int = 0
    calls: int = 0

    async def fetch_products(self) -> list[dict[str, object]]:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError("timeout")
        return self.products


def write_photo(root: Path, name: str, content: bytes = b"jpeg-bytes") -> Path:
    """Create a photo file below the root and return its path."""
    path = root / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture
def watch_root(tmp_path: Path) -> Path:
    root = tmp_path / "Watch"
    root.mkdir()
    return root


@pytest.fixture
def archive_root(tmp_path: Path) -> Path:
    return tmp_path / "Uploaded Photos"


@pytest.fixture
def catalog_client() -> FakeCatalogClient:
    return FakeCatalogClient()


@pytest.fixture
def normalizer() -> FakeNormalizer:
    return FakeNormalizer()


@pytest.fixture
def product_source() -> FakeProductSource:
    return FakeProductSource()


@pytest.fixture
def session_service(
    watch_root: Path,
    archive_root: Path,
    catalog_client: FakeCatalogClient,
    normalizer: FakeNormalizer,
) -> PhotoSessionService:
    return PhotoSessionService(
        watch_root=watch_root,
        catalog_client=catalog_client,
        normalizer=normalizer,
        archive_root=archive_root,
    )


@pytest.fixture
def settings(watch_root: Path, archive_root: Path) -> Settings:
    return Settings(
        shopify_shop_domain="https://test-shop.myshopify.com/",
        shopify_admin_token="admin-token",
        watch_dir=watch_root,
        archive_dir=archive_root,
    )


@pytest.fixture
def container(
    settings: Settings,
    session_service: PhotoSessionService,
    product_source: FakeProductSource,
) -> AppContainer:
    catalog_service = CatalogService(product_source, retry_delay_seconds=0)
    event_pump = FileEventPump(events=asyncio.Queue(), sink=session_service)

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_service=session_service,
        catalog_service=catalog_service,
        event_pump=event_pump,
        folder_watcher=None,
        close_resources=close_resources,
    )
