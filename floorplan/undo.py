from __future__ import annotations
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from .state import LayoutModel, empty_document
from .utils import HISTORY_LIMIT, LEGACY_STORAGE_KEY, STORAGE_KEY

logger = logging.getLogger(__name__)

Snapshot = str  # JSON text of the whole layout document; immutable by construction


class LayoutHistory:
    """
    Bounded undo/redo over the full layout model.

    Every committed mutation goes through :meth:`commit_change`, which records
    the pre-mutation snapshot and then lets the persistence step write the
    document. Programmatic restores (undo/redo/load) go through
    :meth:`apply_snapshot`, which skips exactly one save.
    """

    def __init__(self, model: LayoutModel, store=None, storage_key: str = STORAGE_KEY,
                 limit: int = HISTORY_LIMIT, on_change: Optional[Callable[[], None]] = None):
        self.model = model
        self.store = store
        self.storage_key = storage_key
        self.limit = limit
        self.on_change = on_change
        self._undo_stack: List[Snapshot] = []
        self._redo_stack: List[Snapshot] = []
        self._pre_snapshot: Optional[Snapshot] = None
        self._initial_load_done = False
        self._skip_next_save = False

    # ---------- snapshots ----------
    def snapshot(self) -> Snapshot:
        return json.dumps(self.model.to_document(), sort_keys=True)

    def serialize(self) -> Dict[str, Any]:
        return self.model.to_document()

    def _push_undo(self, snap: Snapshot):
        self._undo_stack.append(snap)
        if len(self._undo_stack) > self.limit:
            del self._undo_stack[0]
        self._redo_stack.clear()

    # ---------- commits ----------
    def commit_change(self, mutator: Callable[[], None]):
        self._push_undo(self.snapshot())
        mutator()
        self._settled()

    def stash(self):
        """Capture the current state as the "before" of a change applied live later."""
        self._pre_snapshot = self.snapshot()

    def commit_stashed(self) -> bool:
        if self._pre_snapshot is None:
            return False
        self._push_undo(self._pre_snapshot)
        self._pre_snapshot = None
        self._settled()
        return True

    def discard_stash(self):
        self._pre_snapshot = None

    @property
    def has_stash(self) -> bool:
        return self._pre_snapshot is not None

    # ---------- undo / redo ----------
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    @property
    def undo_depth(self) -> int:
        return len(self._undo_stack)

    @property
    def redo_depth(self) -> int:
        return len(self._redo_stack)

    def undo(self) -> bool:
        if not self._undo_stack:
            return False
        self._redo_stack.append(self.snapshot())
        if len(self._redo_stack) > self.limit:
            del self._redo_stack[0]
        self.apply_snapshot(self._undo_stack.pop())
        return True

    def redo(self) -> bool:
        if not self._redo_stack:
            return False
        self._undo_stack.append(self.snapshot())
        if len(self._undo_stack) > self.limit:
            del self._undo_stack[0]
        self.apply_snapshot(self._redo_stack.pop())
        return True

    def apply_snapshot(self, snap: Union[Snapshot, Dict[str, Any], None]):
        """Replace every collection wholesale; the resulting change is not saved."""
        if isinstance(snap, str):
            try:
                snap = json.loads(snap)
            except json.JSONDecodeError:
                logger.warning("Snapshot is not valid JSON; applying empty layout")
                snap = None
        self._skip_next_save = True
        self.model.replace_all(snap if snap is not None else empty_document())
        logger.debug("Applied snapshot: %r", self.model)
        self._settled()

    # ---------- storage ----------
    def load_from_storage(self) -> bool:
        """Hydrate from the store. Missing or malformed data gives an empty layout."""
        doc = None
        if self.store is not None:
            doc = self.store.read_layout(self.storage_key, LEGACY_STORAGE_KEY)
        if doc is not None and not isinstance(doc, dict):
            logger.warning("Stored layout under %s is malformed; starting empty", self.storage_key)
            doc = None
        self.apply_snapshot(doc)
        self._initial_load_done = True
        logger.info("Layout loaded: %r", self.model)
        return doc is not None

    @property
    def initial_load_done(self) -> bool:
        return self._initial_load_done

    def _settled(self):
        if self._skip_next_save:
            self._skip_next_save = False
            logger.debug("Skipping save - programmatic update")
        elif not self._initial_load_done:
            logger.debug("Skipping save - initial load not complete")
        else:
            self.save()
        if self.on_change:
            self.on_change()

    def save(self) -> bool:
        if self.store is None:
            return False
        try:
            ok = self.store.write(self.storage_key, self.serialize())
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save layout: %s", e, exc_info=True)
            return False
        if not ok:
            logger.error("Failed to save layout under %s", self.storage_key)
        return bool(ok)
