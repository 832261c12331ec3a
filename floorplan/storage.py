from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .utils import LEGACY_STORAGE_KEY, STORAGE_KEY

logger = logging.getLogger(__name__)


class MemoryStore:
    """Key -> document map kept in memory. Same interface as :class:`LayoutStore`."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data or {})
        self.writes = 0

    def read(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if isinstance(raw, str):
            try:
                return json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Stored value for %s is not valid JSON", key)
                return None
        return raw

    def write(self, key: str, document: Any) -> bool:
        # stored as text so later mutation of the caller's dict cannot leak in
        self._data[key] = json.dumps(document, ensure_ascii=False)
        self.writes += 1
        return True

    def remove(self, key: str):
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())

    def read_layout(self, key: str = STORAGE_KEY, legacy_key: str = LEGACY_STORAGE_KEY) -> Optional[Any]:
        return _read_with_migration(self, key, legacy_key)


class LayoutStore(MemoryStore):
    """
    JSON file holding ``{storage_key: layout_document}``.

    Every write rewrites the whole file (last write wins). Read errors are
    logged and reported as "no data"; write errors are logged and reported
    as ``False``.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)

    def _load_file(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("%s does not hold an object; ignoring it", self.path)
            return {}
        return data

    def read(self, key: str) -> Optional[Any]:
        self._data = self._load_file()
        return super().read(key)

    def write(self, key: str, document: Any) -> bool:
        data = self._load_file()
        data[key] = document
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save layout to %s: %s", self.path, e)
            return False
        self._data = data
        self.writes += 1
        return True

    def remove(self, key: str):
        data = self._load_file()
        if data.pop(key, None) is None:
            return
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error("Failed to update %s: %s", self.path, e)

    def keys(self):
        return list(self._load_file().keys())


def _read_with_migration(store: MemoryStore, key: str, legacy_key: str) -> Optional[Any]:
    doc = store.read(key)
    if doc is not None:
        return doc
    if legacy_key and legacy_key != key:
        doc = store.read(legacy_key)
        if doc is not None:
            logger.info("Migrating layout from %s to %s", legacy_key, key)
            store.write(key, doc)
            return doc
    return None
