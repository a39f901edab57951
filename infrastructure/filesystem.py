"""Filesystem enumeration of photo folders, images and track files."""

from __future__ import annotations

from collections.abc import Iterator
import os
from pathlib import Path

from core.models import PhotoFolder

IMAGE_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".orf",
    ".rw2",
    ".arw",
    ".cr2",
    ".dng",
    ".nef",
    ".heic",
    ".heif",
    ".tif",
    ".tiff",
}
TRACK_EXTENSIONS = {".gpx"}


def _list_files(folder: Path, extensions: set[str]) -> tuple[Path, ...]:
    try:
        entries = sorted(os.scandir(folder), key=lambda e: e.name)
    except OSError:
        return ()
    return tuple(
        Path(e.path)
        for e in entries
        if e.is_file() and os.path.splitext(e.name)[1].lower() in extensions
    )


def list_images(folder: Path) -> tuple[Path, ...]:
    """Image files directly inside `folder`, case-insensitive extension match."""
    return _list_files(folder, IMAGE_EXTENSIONS)


def list_tracks(folder: Path | None) -> tuple[Path, ...]:
    """``*.gpx`` files directly inside `folder` (any case), sorted by name."""
    if folder is None:
        return ()
    return _list_files(folder, TRACK_EXTENSIONS)


def iter_folders(root: Path) -> Iterator[Path]:
    """Yield `root` and every sub-directory, in sorted walk order."""
    for dirpath, dirnames, _ in os.walk(root):
        dirnames.sort()
        yield Path(dirpath)


def iter_photo_folders(root: Path) -> Iterator[PhotoFolder]:
    """Yield a `PhotoFolder` for every directory under `root`."""
    for folder in iter_folders(root):
        yield PhotoFolder(path=folder, images=list_images(folder), local_tracks=list_tracks(folder))
