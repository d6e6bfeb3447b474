"""Local filesystem object store."""

from __future__ import annotations

from pathlib import Path

from pettycash_kernel.exceptions import ValidationError
from pettycash_kernel.logging_config import get_logger

logger = get_logger("ingestion.object_store")


class LocalObjectStore:
    """Writes objects below ``root_dir``; URLs are ``{base_url}/{key}``."""

    def __init__(self, root_dir: Path | str, base_url: str = "/files"):
        self._root = Path(root_dir).resolve()
        self._base_url = base_url.rstrip("/")

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise ValidationError(f"Object key escapes the store root: {key!r}")
        return path

    def put(self, key: str, data: bytes, mime_type: str) -> str:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(
            "object_stored",
            extra={"key": key, "mime_type": mime_type, "size_bytes": len(data)},
        )
        return f"{self._base_url}/{key}"

    def get(self, key: str) -> bytes:
        return self._path_for(key).read_bytes()
