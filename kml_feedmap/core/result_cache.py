"""Result cache: memoise processed documents across pipeline runs.

Entries are keyed by the input's name (its resolved path) and validated
by a cheap content-identity token: ``"<size>-<mtime_ns>"`` of the input
file, so unchanged inputs are never read twice and any rewrite (size or
timestamp change) invalidates the entry.  An entry older than the
freshness window is a miss as well.

Two implementations share the narrow ``get`` / ``put`` / ``invalidate`` interface:

- ``MemoryResultCache``: process-local dictionary behind a lock.
- ``FileResultCache``: one JSON file per key; writes go to a temporary
  file in the same directory and are moved into place with
  ``os.replace`` so readers see either the old or the new entry, never a
  partial one.  Writers to the same key are serialised; last writer wins.

Read failures raise ``CacheIOError`` (or ``DocumentContractError`` for a
corrupt entry); the pipeline treats both as a miss and drops a corrupt
entry so the next store starts clean.  Write failures raise
``CacheIOError`` and never affect the document already computed.
"""

from __future__ import annotations

import abc
import hashlib
import json
import logging
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from kml_feedmap.core.constants import DEFAULT_CACHE_TTL_S
from kml_feedmap.core.exceptions import TransientError
from kml_feedmap.models.document import DocumentContractError, ProcessedDocument

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("kml_feedmap.core.result_cache")


class CacheIOError(TransientError):
    """Raised when the cache store cannot be read or written."""

    default_stage = "result_cache"
    default_code = "CACHE_IO_FAILED"


def content_identity(path: Path | str) -> str:
    """Return the ``"<size>-<mtime_ns>"`` identity token of *path*.

    Raises:
        OSError: If the file cannot be stat'ed.
    """
    st = os.stat(path)
    return f"{st.st_size}-{st.st_mtime_ns}"


def utc_now() -> datetime:
    return datetime.now(UTC)


class ResultCache(abc.ABC):
    """Key/value store of processed documents with a freshness window."""

    def __init__(
        self,
        *,
        ttl_s: float = DEFAULT_CACHE_TTL_S,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ttl_s = ttl_s
        self._clock = clock

    @abc.abstractmethod
    def get(self, key: str, identity: str) -> ProcessedDocument | None:
        """Return the stored document if it matches *identity* and is fresh."""

    @abc.abstractmethod
    def put(self, key: str, identity: str, document: ProcessedDocument) -> None:
        """Store *document* for *key*, replacing any previous entry atomically."""

    @abc.abstractmethod
    def invalidate(self, key: str) -> None:
        """Drop the entry for *key*; a missing entry is not an error."""

    def is_fresh(self, document: ProcessedDocument) -> bool:
        """Whether *document* was produced within the freshness window."""
        try:
            produced = datetime.fromisoformat(document.cache.produced_at)
        except (TypeError, ValueError):
            return False
        if produced.tzinfo is None:
            produced = produced.replace(tzinfo=UTC)
        age_s = (self._clock() - produced).total_seconds()
        return 0 <= age_s <= self.ttl_s

    def _accept(self, key: str, identity: str, document: ProcessedDocument) -> bool:
        if document.cache.identity != identity:
            logger.info("Cache entry stale (identity changed) | key=%s", key)
            return False
        if not self.is_fresh(document):
            logger.info("Cache entry stale (expired) | key=%s | ttl=%.0fs", key, self.ttl_s)
            return False
        return True


class MemoryResultCache(ResultCache):
    """Process-local cache.  Documents are stored serialised so callers own their copy."""

    def __init__(self, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str, identity: str) -> ProcessedDocument | None:
        with self._lock:
            text = self._entries.get(key)
        if text is None:
            return None
        document = ProcessedDocument.from_json(text)
        return document if self._accept(key, identity, document) else None

    def put(self, key: str, identity: str, document: ProcessedDocument) -> None:
        if document.cache.identity != identity:
            msg = (
                f"Document identity {document.cache.identity!r} does not match "
                f"cache identity {identity!r} for key {key!r}"
            )
            raise DocumentContractError(msg)
        text = document.to_json()
        with self._lock:
            self._entries[key] = text

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class FileResultCache(ResultCache):
    """One JSON file per key under *directory*, replaced atomically."""

    def __init__(self, directory: Path | str, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.directory = Path(directory)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def entry_path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self.directory / f"{digest}.json"

    def get(self, key: str, identity: str) -> ProcessedDocument | None:
        path = self.entry_path(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            msg = f"Cannot read cache entry {path}: {exc}"
            raise CacheIOError(msg) from exc

        try:
            entry = json.loads(text)
        except ValueError as exc:
            msg = f"Cache entry {path} is not valid JSON: {exc}"
            raise DocumentContractError(msg) from exc
        if not isinstance(entry, dict) or entry.get("key") != key:
            msg = f"Cache entry {path} does not belong to key {key!r}"
            raise DocumentContractError(msg)

        document = ProcessedDocument.from_dict(entry.get("document"))
        return document if self._accept(key, identity, document) else None

    def put(self, key: str, identity: str, document: ProcessedDocument) -> None:
        if document.cache.identity != identity:
            msg = (
                f"Document identity {document.cache.identity!r} does not match "
                f"cache identity {identity!r} for key {key!r}"
            )
            raise DocumentContractError(msg)

        path = self.entry_path(key)
        payload = json.dumps(
            {"key": key, "identity": identity, "document": document.to_dict()},
            ensure_ascii=False,
            separators=(",", ":"),
        )
        with self._lock_for(key):
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                atomic_write_text(path, payload)
            except OSError as exc:
                msg = f"Cannot write cache entry {path}: {exc}"
                raise CacheIOError(msg) from exc

        logger.debug("Cache entry stored | key=%s | identity=%s | path=%s", key, identity, path)

    def invalidate(self, key: str) -> None:
        path = self.entry_path(key)
        with self._lock_for(key):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                msg = f"Cannot remove cache entry {path}: {exc}"
                raise CacheIOError(msg) from exc
        logger.debug("Cache entry removed | key=%s | path=%s", key, path)

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


def atomic_write_text(path: Path | str, text: str) -> None:
    """Write *text* to *path* via a sibling temporary file and ``os.replace``.

    Raises:
        OSError: If the temporary file cannot be written or moved.
    """
    path = Path(path)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tmp:
        tmp.write(text)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    try:
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise
