"""Remote sync of the layout document.

The transport is opaque: a :class:`RemoteChannel` saves and loads one JSON
document and answers with a :class:`SyncResult`. Both directions are
whole-document replaces, so repeating them is harmless and the last write wins.
"""
from __future__ import annotations
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .models import ALL_COLLECTIONS
from .utils import LEGACY_STORAGE_KEY, STORAGE_KEY

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def from_response(cls, response: Any) -> "SyncResult":
        if isinstance(response, SyncResult):
            return response
        if not isinstance(response, dict):
            return cls(False, error=f"unexpected response: {type(response).__name__}")
        return cls(bool(response.get("success", False)), response.get("data"), response.get("error"))


class RemoteChannel(ABC):
    @abstractmethod
    async def save(self, document: Dict[str, Any]) -> SyncResult:
        ...

    @abstractmethod
    async def load(self) -> SyncResult:
        ...


class FileChannel(RemoteChannel):
    """A shared JSON file (network drive, synced folder) standing in for the server."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _write(self, document):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(document, f, ensure_ascii=False, indent=2)

    def _read(self):
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def save(self, document: Dict[str, Any]) -> SyncResult:
        try:
            await asyncio.to_thread(self._write, document)
        except (OSError, TypeError, ValueError) as e:
            return SyncResult(False, error=str(e))
        return SyncResult(True)

    async def load(self) -> SyncResult:
        if not self.path.exists():
            return SyncResult(True, data=None)
        try:
            data = await asyncio.to_thread(self._read)
        except (OSError, json.JSONDecodeError) as e:
            return SyncResult(False, error=str(e))
        return SyncResult(True, data=data)


def _decode(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value

def extract_layout(payload: Any, storage_key: str = STORAGE_KEY,
                   legacy_key: str = LEGACY_STORAGE_KEY) -> Optional[Dict[str, Any]]:
    """
    Pull the layout document out of a server payload.

    Accepts a ``{key: document}`` envelope (document may be JSON text) under the
    legacy or current key, legacy first, or a bare layout document.
    """
    payload = _decode(payload)
    if isinstance(payload, list) and payload:
        # rows from a table query: [{"layout_data": "..."}]
        row = payload[0]
        payload = _decode(row.get("layout_data")) if isinstance(row, dict) else None
    if not isinstance(payload, dict):
        return None
    for key in (legacy_key, storage_key):
        if key and key in payload:
            doc = _decode(payload[key])
            return doc if isinstance(doc, dict) else None
    if any(name in payload for name in ALL_COLLECTIONS):
        return payload
    return None


class RemoteSync:
    def __init__(self, channel: Optional[RemoteChannel], store, storage_key: str = STORAGE_KEY):
        self.channel = channel
        self.store = store
        self.storage_key = storage_key

    async def save_to_server(self) -> bool:
        if self.channel is None:
            logger.info("No remote channel configured; cannot save to server")
            return False
        doc = self.store.read_layout(self.storage_key)
        if doc is None:
            logger.info("Nothing stored under %s; nothing to save", self.storage_key)
            return False
        try:
            result = SyncResult.from_response(await self.channel.save({self.storage_key: doc}))
        except Exception as e:  # transport failures are not ours to classify
            logger.error("Failed to save to server: %s", e, exc_info=True)
            return False
        if not result.success:
            logger.error("Server refused layout save: %s", result.error)
            return False
        logger.info("Layout saved to server")
        return True

    async def load_from_server(self) -> bool:
        """Fetch the shared layout into the local store. The caller re-hydrates afterwards."""
        if self.channel is None:
            logger.info("No remote channel configured; cannot load from server")
            return False
        try:
            result = SyncResult.from_response(await self.channel.load())
        except Exception as e:
            logger.error("Failed to load from server: %s", e, exc_info=True)
            return False
        if not result.success:
            logger.error("Server layout load failed: %s", result.error)
            return False
        try:
            doc = extract_layout(result.data, self.storage_key)
        except json.JSONDecodeError as e:
            logger.error("Server layout is not valid JSON: %s", e)
            return False
        if doc is None:
            logger.info("No layout data found on server")
            return False
        if not self.store.write(self.storage_key, doc):
            return False
        logger.info("Layout loaded from server into %s", self.storage_key)
        return True

    async def fetch(self) -> Optional[Dict[str, Any]]:
        """Fetch the remote document without touching the store (background refresh)."""
        if self.channel is None:
            return None
        try:
            result = SyncResult.from_response(await self.channel.load())
            if not result.success:
                logger.warning("Background refresh failed: %s", result.error)
                return None
            return extract_layout(result.data, self.storage_key)
        except Exception as e:
            logger.warning("Background refresh failed: %s", e)
            return None
