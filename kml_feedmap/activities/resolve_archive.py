"""Archive resolution activity: locate the KML document in the input bytes.

Inputs arrive either as a plain KML document or as a KMZ/ZIP container.
For a container the first entry whose name ends in ``.kml``
(case-insensitive) and which is not under the ``__MACOSX`` platform
metadata directory is decompressed and returned.  Plain documents are
returned unchanged.  Nothing is written to disk.
"""

from __future__ import annotations

import io
import logging
import zipfile
import zlib

from kml_feedmap.core.constants import (
    CONTAINER_SUFFIXES,
    MARKUP_SUFFIX,
    RESERVED_ARCHIVE_PREFIX,
    ZIP_MAGIC,
)
from kml_feedmap.core.exceptions import ValidationError

logger = logging.getLogger("kml_feedmap.activities.resolve_archive")


class ArchiveError(ValidationError):
    """Raised when a compressed container cannot be opened."""

    default_stage = "resolve_archive"
    default_code = "ARCHIVE_OPEN_FAILED"


class NotFoundError(ValidationError):
    """Raised when no KML document can be located for the input."""

    default_stage = "resolve_archive"
    default_code = "KML_NOT_FOUND"


def is_container(content: bytes, filename_hint: str = "") -> bool:
    """Return ``True`` if the hint or the leading bytes identify a ZIP container."""
    if filename_hint.lower().endswith(CONTAINER_SUFFIXES):
        return True
    return content[: len(ZIP_MAGIC)] == ZIP_MAGIC


def resolve_markup(content: bytes, filename_hint: str = "") -> bytes:
    """Return the bytes of the KML document carried by *content*.

    Args:
        content: Raw input bytes (KML or KMZ/ZIP).
        filename_hint: Original filename; its suffix decides the format
            when present, otherwise the ZIP signature is sniffed.

    Returns:
        The markup document bytes.

    Raises:
        ArchiveError: If the container cannot be opened.
        NotFoundError: If the container holds no eligible ``.kml`` entry.
    """
    if not is_container(content, filename_hint):
        return content

    try:
        archive = zipfile.ZipFile(io.BytesIO(content))
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
        msg = f"Cannot open container '{filename_hint or '<bytes>'}': {exc}"
        raise ArchiveError(msg) from exc

    with archive:
        entry = find_markup_entry(archive.namelist())
        if entry is None:
            msg = f"No {MARKUP_SUFFIX} document inside container '{filename_hint or '<bytes>'}'"
            raise NotFoundError(msg)
        try:
            markup = archive.read(entry)
        except (
            zipfile.BadZipFile,
            zlib.error,
            EOFError,
            OSError,
            RuntimeError,
            NotImplementedError,
        ) as exc:
            msg = f"Cannot extract '{entry}' from container '{filename_hint or '<bytes>'}': {exc}"
            raise ArchiveError(msg) from exc

    logger.info(
        "Container resolved | source=%s | entry=%s | size=%d bytes",
        filename_hint or "<bytes>",
        entry,
        len(markup),
    )
    return markup


def find_markup_entry(names: list[str]) -> str | None:
    """Return the first eligible markup entry name, or ``None``."""
    for name in names:
        if RESERVED_ARCHIVE_PREFIX in name:
            continue
        if name.lower().endswith(MARKUP_SUFFIX):
            return name
    return None
