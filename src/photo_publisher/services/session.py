"""Photo session: the selected product and its ordered queue of local photos."""

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from photo_publisher.domain.catalog import ImageUpload
from photo_publisher.domain.errors import (
    InvalidPathError,
    InvalidRequestError,
    InvalidStateError,
    IOFailureError,
    NotFoundError,
    UpstreamFailureError,
)
from photo_publisher.domain.session import (
    FinalizeResult,
    QueuedPhoto,
    Selection,
    SessionSnapshot,
)
from photo_publisher.services.paths import (
    is_supported_image,
    is_within_root,
    normalize_path,
    relative_to_root,
    resolve_within_root,
    sanitize_folder_name,
)

_logger = logging.getLogger(__name__)

ARCHIVE_MODES = frozenset({"archive", "delete"})


class CatalogClient(Protocol):
    """Interface for attaching images to catalog items."""

    async def upload_images(self, item_id: str, images: list[ImageUpload]) -> None:
        """Attach images to an item, preserving gallery order."""

    async def publish(self, item_id: str) -> None:
        """Make an item visible on its sales channels."""


class ImageNormalizer(Protocol):
    """Interface for re-encoding a photo as an upright square crop."""

    def normalize(self, data: bytes) -> bytes:
        """Return normalized image bytes."""


@dataclass
class PhotoSessionService:
    """Owns the single active selection and its photo queue.

    One instance exists per watched root. Selection and queue form one
    critical section guarded by a single lock; finalize only holds it to
    snapshot and to clear, never across normalization or network calls.
    """

    watch_root: Path
    catalog_client: CatalogClient
    normalizer: ImageNormalizer
    archive_root: Path | None = None
    archive_mode: str = "archive"
    catalog_timeout_seconds: float = 120.0
    preview_prefix: str = "/photos"
    normalized_suffix: str = ".jpg"
    _selection: Selection | None = field(default=None, init=False)
    _queue: list[Path] = field(default_factory=list, init=False)
    _finalizing: Selection | None = field(default=None, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        if self.archive_mode not in ARCHIVE_MODES:
            raise ValueError(f"Unknown archive mode: {self.archive_mode}")
        self.watch_root = normalize_path(self.watch_root)

    async def select(
        self,
        item_id: str | int | None,
        title: str | None = "",
        sku: str | None = None,
        created_at: datetime | None = None,
    ) -> Selection:
        """Target a catalog item for incoming photos and reset the queue."""
        cleaned_id = str(item_id).strip() if item_id is not None else ""
        if not cleaned_id:
            raise InvalidRequestError("Missing product id")
        selection = Selection(
            item_id=cleaned_id,
            title=title or "",
            sku=sku or None,
            created_at=created_at,
        )
        async with self._lock:
            if self._queue:
                _logger.warning(
                    "Replacing selection %s, leaving %s queued photos on disk",
                    self._selection.item_id if self._selection else None,
                    len(self._queue),
                )
            self._selection = selection
            self._queue = []
        _logger.info("Selected product %s (%s)", selection.item_id, selection.title)
        return selection

    async def clear(self) -> None:
        """Drop the current selection and its queue."""
        async with self._lock:
            self._selection = None
            self._queue = []

    async def get_current(self) -> SessionSnapshot:
        """Return the current selection and queue length."""
        async with self._lock:
            return SessionSnapshot(
                selection=self._selection, queue_length=len(self._queue)
            )

    async def on_file_appeared(self, path: str | Path) -> bool:
        """Queue a newly arrived photo for the current selection."""
        if not is_supported_image(path):
            _logger.debug("Ignoring non image file: %s", path)
            return False
        normalized = normalize_path(path)
        if not is_within_root(self.watch_root, normalized):
            _logger.warning("Ignoring file outside the watched folder: %s", path)
            return False
        async with self._lock:
            if self._selection is None:
                _logger.info("No product selected, ignoring new file %s", path)
                return False
            if normalized in self._queue:
                return False
            self._queue.append(normalized)
            _logger.info(
                "Queued %s for product %s, total queued %s",
                normalized.name,
                self._selection.item_id,
                len(self._queue),
            )
        return True

    async def list_queued_for_preview(self) -> list[QueuedPhoto]:
        """Describe queued photos that still exist on disk, in queue order."""
        async with self._lock:
            entries = list(self._queue)
        photos: list[QueuedPhoto] = []
        for path in entries:
            if not path.is_file():
                _logger.warning("Queued file is missing, skipping preview: %s", path)
                continue
            relative = relative_to_root(self.watch_root, path)
            photos.append(
                QueuedPhoto(
                    display_name=path.name,
                    relative_path=relative,
                    preview_url=f"{self.preview_prefix}/{quote(relative)}",
                )
            )
        return photos

    async def remove_photo(self, relative_path: str) -> None:
        """Remove a photo from the queue and delete it from disk."""
        target = resolve_within_root(self.watch_root, relative_path)
        async with self._lock:
            if target not in self._queue:
                raise NotFoundError(f"Photo is not queued: {relative_path}")
            self._queue.remove(target)
        try:
            target.unlink()
        except OSError:
            _logger.exception(
                "Removed %s from the queue but could not delete it", target
            )

    async def reorder(self, ordered_relative_paths: list[str]) -> None:
        """Move the given photos to the front of the queue in the given order."""
        if not isinstance(ordered_relative_paths, list | tuple) or not all(
            isinstance(item, str) for item in ordered_relative_paths
        ):
            raise InvalidRequestError("Order must be a list of paths")
        requested: list[Path] = []
        for relative_path in ordered_relative_paths:
            try:
                requested.append(resolve_within_root(self.watch_root, relative_path))
            except InvalidPathError:
                _logger.warning(
                    "Ignoring unresolvable path in reorder: %s", relative_path
                )
        async with self._lock:
            queued = set(self._queue)
            head: list[Path] = []
            for path in requested:
                if path in queued and path not in head:
                    head.append(path)
            if not head:
                raise InvalidRequestError("None of the supplied paths are queued")
            placed = set(head)
            self._queue = head + [path for path in self._queue if path not in placed]

    async def finalize(self) -> FinalizeResult:
        """Normalize, upload, publish and archive the queued photos."""
        async with self._lock:
            if self._selection is None:
                raise InvalidStateError("No product selected")
            if not self._queue:
                raise InvalidStateError("No files queued")
            if self._finalizing is not None:
                raise InvalidStateError("Finalize already in progress")
            selection = self._selection
            files = list(self._queue)
            self._finalizing = selection
        try:
            return await self._finalize(selection, files)
        finally:
            self._finalizing = None

    async def _finalize(
        self, selection: Selection, files: list[Path]
    ) -> FinalizeResult:
        warnings: list[str] = []
        sources, missing, unreadable = await asyncio.to_thread(
            self._read_originals, files, warnings
        )
        if not sources:
            raise IOFailureError("None of the queued files could be read")
        images, normalized_count = await self._normalize(sources, warnings)

        _logger.info(
            "Uploading %s images for product %s", len(images), selection.item_id
        )
        try:
            await asyncio.wait_for(
                self.catalog_client.upload_images(selection.item_id, images),
                timeout=self.catalog_timeout_seconds,
            )
        except TimeoutError as exc:
            _logger.error("Upload timed out for product %s", selection.item_id)
            raise UpstreamFailureError(
                f"Upload timed out after {self.catalog_timeout_seconds:g}s"
            ) from exc
        except Exception as exc:
            _logger.exception("Upload failed for product %s", selection.item_id)
            raise UpstreamFailureError("Upload failed") from exc

        await self._publish(selection, warnings)
        uploaded = [path for path, _ in sources]
        await asyncio.to_thread(self._dispose_originals, selection, uploaded, warnings)

        consumed = set(uploaded) | set(missing)
        async with self._lock:
            if self._selection is selection and not unreadable:
                self._selection = None
                self._queue = []
            else:
                self._queue = [path for path in self._queue if path not in consumed]

        return FinalizeResult(
            item_id=selection.item_id,
            uploaded_count=len(images),
            normalized_count=normalized_count,
            warnings=warnings,
        )

    def _read_originals(
        self, files: list[Path], warnings: list[str]
    ) -> tuple[list[tuple[Path, bytes]], list[Path], list[Path]]:
        """Read queued files, splitting out the vanished and the unreadable."""
        sources: list[tuple[Path, bytes]] = []
        missing: list[Path] = []
        unreadable: list[Path] = []
        for path in files:
            try:
                sources.append((path, path.read_bytes()))
            except FileNotFoundError:
                _logger.warning("Queued file vanished before upload: %s", path)
                warnings.append(f"Skipped unreadable file {path.name}")
                missing.append(path)
            except OSError as exc:
                _logger.warning("Could not read queued file %s: %s", path, exc)
                warnings.append(f"Kept unreadable file {path.name} in the queue")
                unreadable.append(path)
        return sources, missing, unreadable

    async def _normalize(
        self, sources: list[tuple[Path, bytes]], warnings: list[str]
    ) -> tuple[list[ImageUpload], int]:
        outcomes = await asyncio.gather(
            *(
                asyncio.to_thread(self.normalizer.normalize, data)
                for _, data in sources
            ),
            return_exceptions=True,
        )
        images: list[ImageUpload] = []
        normalized_count = 0
        for (path, original), outcome in zip(sources, outcomes, strict=True):
            if isinstance(outcome, bytes) and outcome:
                normalized_count += 1
                images.append(
                    ImageUpload(
                        filename=f"{path.stem}{self.normalized_suffix}",
                        content=outcome,
                    )
                )
                continue
            _logger.warning(
                "Normalization failed for %s, uploading original: %s", path, outcome
            )
            warnings.append(f"Uploaded original for {path.name}")
            images.append(ImageUpload(filename=path.name, content=original))
        return images, normalized_count

    async def _publish(self, selection: Selection, warnings: list[str]) -> None:
        try:
            await asyncio.wait_for(
                self.catalog_client.publish(selection.item_id),
                timeout=self.catalog_timeout_seconds,
            )
        except Exception:
            _logger.exception("Could not publish product %s", selection.item_id)
            warnings.append(f"Product {selection.item_id} was not published")

    def _dispose_originals(
        self, selection: Selection, files: list[Path], warnings: list[str]
    ) -> None:
        if self.archive_mode == "delete" or self.archive_root is None:
            for path in files:
                try:
                    path.unlink(missing_ok=True)
                except OSError:
                    _logger.exception("Could not delete uploaded file %s", path)
                    warnings.append(f"Could not delete {path.name}")
            return

        destination = self.archive_root / sanitize_folder_name(selection.title)
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError:
            _logger.exception("Could not create archive folder %s", destination)
            warnings.append(f"Could not create archive folder {destination.name}")
            return
        for path in files:
            if not path.exists():
                _logger.warning("File missing when archiving, skipping %s", path)
                continue
            try:
                shutil.move(path, destination / path.name)
            except OSError:
                _logger.exception("Error archiving file %s", path)
                warnings.append(f"Could not archive {path.name}")
                continue
            _logger.info("Archived %s to %s", path.name, destination)
