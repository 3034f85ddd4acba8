"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse

from photo_publisher.api.models import (
    RemovePhotoRequest,
    ReorderRequest,
    SelectProductRequest,
)
from photo_publisher.app_logging import configure_logging
from photo_publisher.containers import AppContainer
from photo_publisher.domain.catalog import CatalogItem
from photo_publisher.domain.errors import (
    InvalidPathError,
    InvalidRequestError,
    InvalidStateError,
    IOFailureError,
    NotFoundError,
    PhotoSessionError,
    UpstreamFailureError,
)
from photo_publisher.domain.session import Selection
from photo_publisher.services.paths import is_supported_image, resolve_within_root

_ERROR_STATUS: dict[type[PhotoSessionError], int] = {
    InvalidRequestError: status.HTTP_400_BAD_REQUEST,
    InvalidPathError: status.HTTP_400_BAD_REQUEST,
    InvalidStateError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    UpstreamFailureError: status.HTTP_502_BAD_GATEWAY,
    IOFailureError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        pump_task = asyncio.create_task(state_container.event_pump.run())
        if state_container.folder_watcher is not None:
            try:
                state_container.folder_watcher.start(asyncio.get_running_loop())
            except Exception:
                logger.exception("Failed to start the folder watcher")
        yield
        pump_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await pump_task
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(PhotoSessionError)
    async def session_error_handler(
        request: Request, exc: PhotoSessionError
    ) -> JSONResponse:
        status_code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.kind, "detail": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": InvalidRequestError.kind,
                "detail": _format_validation_errors(exc),
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/products-without-photos")
    async def products_without_photos(
        request: Request, limit: int | None = None, q: str | None = None
    ) -> list[dict[str, object]]:
        """Return the most recent products that still have no photos."""
        state_container: AppContainer = request.app.state.container
        items = await state_container.catalog_service.list_recent_items_missing_photos(
            limit=limit or state_container.settings.product_limit, query=q
        )
        return [_serialize_item(item) for item in items]

    @app.post("/api/select-product")
    async def select_product(
        payload: SelectProductRequest, request: Request
    ) -> dict[str, bool]:
        """Target a product for the next photos."""
        state_container: AppContainer = request.app.state.container
        await state_container.session_service.select(
            payload.id,
            title=payload.title,
            sku=payload.sku,
            created_at=payload.created_at,
        )
        return {"ok": True}

    @app.post("/api/clear-selection")
    async def clear_selection(request: Request) -> dict[str, bool]:
        """Drop the current product and its queue."""
        state_container: AppContainer = request.app.state.container
        await state_container.session_service.clear()
        return {"ok": True}

    @app.get("/api/current-product")
    async def current_product(request: Request) -> dict[str, object]:
        """Return the selected product and how many photos are queued."""
        state_container: AppContainer = request.app.state.container
        snapshot = await state_container.session_service.get_current()
        return {
            "product": _serialize_selection(snapshot.selection),
            "queuedCount": snapshot.queue_length,
        }

    @app.get("/api/queue")
    async def queue(request: Request) -> dict[str, object]:
        """Return queued photos in upload order."""
        state_container: AppContainer = request.app.state.container
        photos = await state_container.session_service.list_queued_for_preview()
        return {
            "photos": [
                {
                    "name": photo.display_name,
                    "path": photo.relative_path,
                    "url": photo.preview_url,
                }
                for photo in photos
            ]
        }

    @app.post("/api/remove-photo")
    async def remove_photo(
        payload: RemovePhotoRequest, request: Request
    ) -> dict[str, bool]:
        """Remove a queued photo and delete it from disk."""
        state_container: AppContainer = request.app.state.container
        await state_container.session_service.remove_photo(payload.path)
        return {"ok": True}

    @app.post("/api/reorder")
    async def reorder(payload: ReorderRequest, request: Request) -> dict[str, bool]:
        """Reorder the queue."""
        state_container: AppContainer = request.app.state.container
        await state_container.session_service.reorder(payload.order)
        return {"ok": True}

    @app.post("/api/done")
    async def done(request: Request) -> dict[str, object]:
        """Upload the queued photos, publish the product and archive originals."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.session_service.finalize()
        if result.warnings:
            logger.warning(
                "Finalize for %s finished with warnings: %s",
                result.item_id,
                "; ".join(result.warnings),
            )
        return {
            "ok": True,
            "uploaded": result.uploaded_count,
            "normalized": result.normalized_count,
            "warnings": result.warnings,
        }

    @app.get("/photos/{relative_path:path}")
    async def photo(relative_path: str, request: Request) -> FileResponse:
        """Serve a photo from the watched folder for previews."""
        state_container: AppContainer = request.app.state.container
        watch_root = state_container.session_service.watch_root
        target = resolve_within_root(watch_root, relative_path)
        if not is_supported_image(target) or not target.is_file():
            raise NotFoundError(f"No photo at {relative_path}")
        return FileResponse(target)

    return app


def _serialize_selection(selection: Selection | None) -> dict[str, object] | None:
    if selection is None:
        return None
    return {
        "id": selection.item_id,
        "title": selection.title,
        "sku": selection.sku,
        "created_at": (
            selection.created_at.isoformat() if selection.created_at else None
        ),
    }


def _serialize_item(item: CatalogItem) -> dict[str, object]:
    return {
        "id": item.id,
        "title": item.title,
        "sku": item.sku,
        "status": item.status,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }


def _format_validation_errors(exc: RequestValidationError) -> str:
    """Flatten pydantic validation errors into one message."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(messages) or "Invalid request"
