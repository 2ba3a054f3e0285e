"""
Local cache: one JSON document on disk holding the client and event collections.
"""

import json
import os
import tempfile
import threading
from pathlib import Path

from loguru import logger

from timetrack.errors import LocalCacheError


class LocalCache:
    """Process-wide key/value store persisted as a single JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise LocalCacheError(f"Cannot read local cache {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise LocalCacheError(f"Local cache {self.path} is not a JSON object")
        return data

    def get(self, key: str, default=None):
        with self._lock:
            return self._read_all().get(key, default)

    def set(self, key: str, value) -> None:
        """Rewrite the whole document with `key` replaced."""
        with self._lock:
            data = self._read_all()
            data[key] = value
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                # Write to a sibling temp file then swap, so readers never see half a document
                fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".cache-", suffix=".json")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(data, f, ensure_ascii=False, indent=2)
                    os.replace(tmp_name, self.path)
                finally:
                    if os.path.exists(tmp_name):
                        os.unlink(tmp_name)
            except (OSError, TypeError) as e:
                raise LocalCacheError(f"Cannot write local cache {self.path}: {e}") from e

        logger.debug(f"Saved {key} to local cache")
