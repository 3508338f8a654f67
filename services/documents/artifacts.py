"""
Artifact Storage for rendered and signed PDFs

Stores artifact bytes under a relative storage path, which is the
locator recorded on documents, contracts and signatures.

LocalArtifactStorage keeps files under a base directory;
MemoryArtifactStorage keeps them in a dict for tests.
"""

import logging
import re
import uuid
from pathlib import Path
from typing import Dict

from .exceptions import ArtifactNotFound, PersistenceError

logger = logging.getLogger(__name__)

# Top-level folders
SOURCE_FOLDER = 'documents'
CONTRACT_FOLDER = 'contracts'
SIGNED_FOLDER = 'signed'

_SAFE_SEGMENT = re.compile(r'[^A-Za-z0-9._-]+')


def _safe(segment: str) -> str:
    return _SAFE_SEGMENT.sub('-', str(segment)).strip('-') or 'unnamed'


def generate_storage_path(folder: str, owner_id: str, extension: str = '.pdf') -> str:
    """
    Generate a unique storage path for an artifact.

    Files are organised by folder and owning entity id, e.g.
    `signed/doc-123/4f0c...e1.pdf`.
    """
    return f"{_safe(folder)}/{_safe(owner_id)}/{uuid.uuid4().hex}{extension}"


class LocalArtifactStorage:
    """Artifacts as files under `base_dir`."""

    def __init__(self, base_dir):
        self.base_dir = Path(base_dir).resolve()

    def _resolve(self, locator: str) -> Path:
        path = (self.base_dir / locator).resolve()
        if self.base_dir not in path.parents:
            logger.warning(f"Artifact locator escapes storage root: {locator}")
            raise ArtifactNotFound(locator)
        return path

    def upload(self, storage_path: str, data: bytes) -> str:
        """Write `data` and return its locator."""
        path = self._resolve(storage_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to store artifact {storage_path}: {e}")
            raise PersistenceError(f"Failed to store artifact {storage_path}: {e}", key=storage_path) from e
        logger.debug(f"Stored artifact {storage_path} ({len(data)} bytes)")
        return storage_path

    def download(self, locator: str) -> bytes:
        path = self._resolve(locator)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise ArtifactNotFound(locator) from e
        except OSError as e:
            logger.error(f"Failed to read artifact {locator}: {e}")
            raise PersistenceError(f"Failed to read artifact {locator}: {e}", key=locator) from e

    def delete(self, locator: str) -> bool:
        path = self._resolve(locator)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Failed to delete artifact {locator}: {e}")
            raise PersistenceError(f"Failed to delete artifact {locator}: {e}", key=locator) from e
        return True

    def exists(self, locator: str) -> bool:
        return self._resolve(locator).is_file()


class MemoryArtifactStorage:
    """Artifacts in a dict."""

    def __init__(self):
        self._files: Dict[str, bytes] = {}

    def upload(self, storage_path: str, data: bytes) -> str:
        self._files[storage_path] = bytes(data)
        return storage_path

    def download(self, locator: str) -> bytes:
        if locator not in self._files:
            raise ArtifactNotFound(locator)
        return self._files[locator]

    def delete(self, locator: str) -> bool:
        return self._files.pop(locator, None) is not None

    def exists(self, locator: str) -> bool:
        return locator in self._files

    def __len__(self):
        return len(self._files)
