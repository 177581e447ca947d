"""Filesystem object store.

Mirrors the object key layout as a directory tree under a base path:

    data/{entity_id}/{timestamp}/data.json
    data/{entity_id}/{timestamp}/data.csv

All I/O runs through asyncio.to_thread so writes never block the loop.
"""

import asyncio
import logging
from pathlib import Path

from orgpipe.errors import PersistenceFailure
from orgpipe.storage.base import ObjectStore

logger = logging.getLogger(__name__)


class LocalObjectStore(ObjectStore):
    """Object store backed by a local directory.

    Existing objects at the same key are overwritten, matching the
    semantics of an S3 put.

    Args:
        base_path: Root directory for objects. Defaults to 'data/'.
    """

    def __init__(self, base_path: str | Path = "data") -> None:
        self.base_path = Path(base_path)

    @property
    def location(self) -> str:
        return str(self.base_path)

    def _get_file_path(self, key: str) -> Path:
        """Map an object key onto a path under base_path.

        Raises:
            PersistenceFailure: If the key is empty or escapes base_path
        """
        parts = [part for part in key.split("/") if part]
        if not parts or any(part in {".", ".."} for part in parts):
            raise PersistenceFailure(f"Invalid object key: {key!r}")
        return self.base_path.joinpath(*parts)

    async def put(self, key: str, body: str, content_type: str) -> str:
        file_path = self._get_file_path(key)

        def _write() -> None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(body, encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise PersistenceFailure(f"Failed to write {file_path}: {e}") from e

        logger.debug("Wrote %s (%s, %d chars)", file_path, content_type, len(body))
        return str(file_path)

    async def read(self, key: str) -> str | None:
        """Read an object back, or None if it does not exist."""
        file_path = self._get_file_path(key)

        def _read() -> str | None:
            if not file_path.exists():
                return None
            return file_path.read_text(encoding="utf-8")

        return await asyncio.to_thread(_read)

    async def list_keys(self, prefix: str = "") -> list[str]:
        """List object keys under an optional key prefix, sorted."""

        def _list() -> list[str]:
            if not self.base_path.exists():
                return []
            keys = (
                path.relative_to(self.base_path).as_posix()
                for path in self.base_path.rglob("*")
                if path.is_file()
            )
            return sorted(key for key in keys if key.startswith(prefix))

        return await asyncio.to_thread(_list)
