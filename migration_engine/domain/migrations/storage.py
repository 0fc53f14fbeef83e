"""
Local storage for uploaded export files.

Files are written once under ``<storage_dir>/<tenant>/<sha256>/<name>`` and
never modified; the orchestrator re-opens them by path for every pass.
"""
import hashlib
import logging
import os
import re
from typing import Tuple

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_component(value: str) -> str:
    cleaned = _UNSAFE.sub("_", os.path.basename(value or "")).strip("._")
    return cleaned or "upload"


class LocalFileStorage:
    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def save(self, tenant_id: str, file_name: str, content: bytes) -> Tuple[str, str]:
        """Write ``content`` and return ``(path, sha256 hex)``."""
        digest = hashlib.sha256(content).hexdigest()
        directory = os.path.join(self.root, _safe_component(tenant_id), digest)
        path = os.path.join(directory, _safe_component(file_name))
        try:
            os.makedirs(directory, exist_ok=True)
            if not os.path.exists(path):
                with open(path, "wb") as handle:
                    handle.write(content)
        except OSError as exc:
            logger.error("Failed to store %s: %s", file_name, exc)
            raise StorageError(f"Could not store {file_name}: {exc}") from exc
        logger.info("Stored %s (%d bytes) at %s", file_name, len(content), path)
        return path, digest

    def exists(self, path: str) -> bool:
        return os.path.exists(path)
