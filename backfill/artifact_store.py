"""
Local storage for assembled transaction data.

Each content id maps to exactly one ``<id>.bin`` file. Writes go to a private
temporary file that is renamed into place, and writers for the same id are
serialized, so concurrent runs can never interleave bytes in one artifact.
"""

import os
import re
import logging
import tempfile
import weakref
import threading

from .constants import ARTIFACT_SUFFIX, DEFAULT_ARTIFACT_DIR
from .errors import UsageError

logger = logging.getLogger(__name__)

# Transaction ids are base64url strings
CONTENT_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,128}$')


class _PathLock:
    """Mutex for one artifact path."""

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info):
        self._lock.release()


# Entries live only while some writer holds the lock
_path_locks = weakref.WeakValueDictionary()
_path_locks_guard = threading.Lock()


def validate_content_id(content_id: str) -> str:
    """Return the id stripped of whitespace, or raise UsageError."""
    if not content_id or not isinstance(content_id, str):
        raise UsageError("Missing transaction id")
    content_id = content_id.strip()
    if not CONTENT_ID_PATTERN.match(content_id):
        raise UsageError(f"Invalid transaction id: {content_id!r}")
    return content_id


def _lock_for(path: str) -> _PathLock:
    with _path_locks_guard:
        lock = _path_locks.get(path)
        if lock is None:
            lock = _PathLock()
            _path_locks[path] = lock
        return lock


class ArtifactStore:
    """Directory of assembled payloads addressed by content id."""

    def __init__(self, directory: str = DEFAULT_ARTIFACT_DIR):
        self.directory = os.path.abspath(directory)

    def path_for(self, content_id: str) -> str:
        content_id = validate_content_id(content_id)
        return os.path.join(self.directory, f"{content_id}{ARTIFACT_SUFFIX}")

    def exists(self, content_id: str) -> bool:
        return os.path.isfile(self.path_for(content_id))

    def write(self, content_id: str, data: bytes, path: str = None) -> str:
        """
        Atomically write ``data`` as the artifact for ``content_id``.

        Re-running overwrites the previous artifact. Returns the final path.
        """
        final_path = os.path.abspath(path) if path else self.path_for(content_id)
        directory = os.path.dirname(final_path)
        os.makedirs(directory, exist_ok=True)

        with _lock_for(final_path):
            fd, temp_path = tempfile.mkstemp(prefix=f".{os.path.basename(final_path)}.", dir=directory)
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, final_path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise

        logger.debug(f"Wrote {len(data)} bytes to {final_path}")
        return final_path

    def read(self, content_id: str, path: str = None) -> bytes:
        """Load an artifact; a missing file is a usage error."""
        artifact_path = os.path.abspath(path) if path else self.path_for(content_id)
        if not os.path.isfile(artifact_path):
            raise UsageError(f"File not found: {artifact_path}")
        with open(artifact_path, 'rb') as f:
            return f.read()
