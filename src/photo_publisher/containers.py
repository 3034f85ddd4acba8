"""Dependency container wiring for the application."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from photo_publisher.adapters.folder_watcher import WatchdogFolderWatcher
from photo_publisher.adapters.pillow_normalizer import PillowImageNormalizer
from photo_publisher.adapters.shopify_client import HttpxShopifyClient
from photo_publisher.config import Settings, parse_publication_names
from photo_publisher.services.catalog import CatalogService
from photo_publisher.services.events import FileEventPump
from photo_publisher.services.session import PhotoSessionService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_service: PhotoSessionService
    catalog_service: CatalogService
    event_pump: FileEventPump
    folder_watcher: WatchdogFolderWatcher | None
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    shopify_client = HttpxShopifyClient.create(
        shop_domain=resolved_settings.shopify_shop_domain,
        admin_token=resolved_settings.shopify_admin_token,
        api_version=resolved_settings.shopify_api_version,
        timeout_seconds=resolved_settings.http_timeout_seconds,
        publication_names=parse_publication_names(
            resolved_settings.shopify_publication_names
        ),
    )
    normalizer = PillowImageNormalizer(
        max_size=resolved_settings.normalize_max_size,
        quality=resolved_settings.normalize_quality,
    )
    session_service = PhotoSessionService(
        watch_root=resolved_settings.watch_dir,
        catalog_client=shopify_client,
        normalizer=normalizer,
        archive_root=resolved_settings.archive_dir,
        archive_mode=resolved_settings.archive_mode,
        catalog_timeout_seconds=resolved_settings.upload_timeout_seconds,
    )
    catalog_service = CatalogService(shopify_client)
    events: asyncio.Queue[str] = asyncio.Queue()
    event_pump = FileEventPump(events=events, sink=session_service)
    folder_watcher = WatchdogFolderWatcher(
        root=session_service.watch_root, events=events
    )

    async def close_resources() -> None:
        folder_watcher.stop()
        await shopify_client.close()

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        catalog_service=catalog_service,
        event_pump=event_pump,
        folder_watcher=folder_watcher,
        close_resources=close_resources,
    )
