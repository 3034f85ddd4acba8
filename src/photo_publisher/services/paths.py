"""Path helpers that keep queue entries inside the watched root."""

import os
import re
from pathlib import Path

from photo_publisher.domain.errors import InvalidPathError

SUPPORTED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".heic"})

_ILLEGAL_SEGMENT_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")


def is_supported_image(path: str | Path) -> bool:
    """Return whether a path names a visible image with a known extension."""
    candidate = Path(path)
    if candidate.name.startswith("."):
        return False
    return candidate.suffix.lower() in SUPPORTED_EXTENSIONS


def normalize_path(path: str | Path) -> Path:
    """Return the absolute, dot-collapsed form used to compare queue entries."""
    return Path(os.path.abspath(os.fspath(path)))


def is_within_root(root: Path, path: Path) -> bool:
    """Return whether a normalized path lies strictly below the root."""
    return normalize_path(root) in path.parents


def resolve_within_root(root: Path, relative_path: str) -> Path:
    """Resolve a caller-supplied relative path against the watched root."""
    if not isinstance(relative_path, str) or not relative_path.strip():
        raise InvalidPathError("Path must be a non-empty string")
    if "\x00" in relative_path:
        raise InvalidPathError("Path contains a null byte")
    resolved = normalize_path(normalize_path(root) / relative_path)
    if not is_within_root(root, resolved):
        raise InvalidPathError(f"Path escapes the watched folder: {relative_path}")
    return resolved


def relative_to_root(root: Path, path: Path) -> str:
    """Return a POSIX path relative to the root, or the bare file name."""
    try:
        return path.relative_to(normalize_path(root)).as_posix()
    except ValueError:
        return path.name


def sanitize_folder_name(
    name: str | None, max_length: int = 60, placeholder: str = "product"
) -> str:
    """Make a product title safe to use as a single folder name."""
    if not name or not isinstance(name, str):
        return placeholder
    cleaned = _ILLEGAL_SEGMENT_CHARS.sub("", name)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    if not cleaned:
        return placeholder
    return cleaned[:max_length].rstrip()
