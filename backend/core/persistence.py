# backend/core/persistence.py

from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

from backend.core.errors import StoreError

logger = logging.getLogger(__name__)


class JsonFile:
    """
    One JSON document on disk, used by the stores for file-based persistence.

    A ``JsonFile`` with no path is memory-only: ``load`` returns the default and
    ``save`` does nothing. Saves go through a temp file + ``os.replace`` so a
    crash never leaves half a document behind.
    """

    def __init__(self, path: Optional[str]) -> None:
        self.path = path

    @classmethod
    def in_dir(cls, data_dir: str, filename: str) -> "JsonFile":
        if not data_dir:
            return cls(None)
        return cls(os.path.join(data_dir, filename))

    def load(self, default: Any) -> Any:
        if not self.path or not os.path.exists(self.path):
            return default
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Load error ({self.path}): {e}")
            raise StoreError(f"Could not read {self.path}") from e

    def save(self, data: Any) -> None:
        if not self.path:
            return
        tmp_path = f"{self.path}.tmp"
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError) as e:
            logger.error(f"Save error ({self.path}): {e}")
            raise StoreError(f"Could not write {self.path}") from e
