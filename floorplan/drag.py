from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from PySide6.QtCore import QPointF

from .models import Point
from .utils import DRAG_THRESHOLD, round_rel

logger = logging.getLogger(__name__)


@dataclass
class DragState:
    entity_id: str
    collection: str
    start: QPointF
    original: List[Point] = field(default_factory=list)
    moved: bool = False


class DragController:
    """
    Grab an entity (a whole polyline moves as one), move it live, commit on release.

    The pre-drag snapshot is stashed in the history at pointer-down; live writes
    during the move bypass history, and release pushes the stash as one undo
    entry. A release within the drag threshold is a tap instead.
    """

    def __init__(self, model, history, viewport,
                 on_tap: Optional[Callable[[str, object], None]] = None):
        self.model = model
        self.history = history
        self.viewport = viewport
        self.on_tap = on_tap
        self.state: Optional[DragState] = None

    @property
    def active(self) -> bool:
        return self.state is not None

    def on_pointer_down(self, entity_id: str, x: float, y: float, editable: bool = True) -> bool:
        if not editable or self.active:
            return False
        found = self.model.find(entity_id)
        if not found:
            return False
        collection, ent = found
        self.history.stash()
        self.state = DragState(entity_id, collection, QPointF(x, y), ent.positions())
        logger.debug("Drag start: %s", entity_id)
        return True

    def on_pointer_move(self, x: float, y: float):
        st = self.state
        image = self.viewport.image_size
        if st is None or image is None or image.width() <= 0 or image.height() <= 0:
            return
        found = self.model.find(st.entity_id)
        if not found:
            return
        sdx = x - st.start.x()
        sdy = y - st.start.y()
        if abs(sdx) > DRAG_THRESHOLD or abs(sdy) > DRAG_THRESHOLD:
            st.moved = True
        scale = self.viewport.scale
        rdx = sdx / scale / image.width()
        rdy = sdy / scale / image.height()
        found[1].set_positions([(round_rel(px + rdx), round_rel(py + rdy)) for px, py in st.original])

    def on_pointer_up(self) -> Optional[str]:
        """Returns ``"moved"`` or ``"tap"``, or None when no drag was active."""
        st = self.state
        if st is None:
            return None
        self.state = None
        if st.moved:
            self.history.commit_stashed()
            logger.debug("Drag committed: %s", st.entity_id)
            return "moved"
        self.history.discard_stash()
        found = self.model.find(st.entity_id)
        if found:
            found[1].set_positions(st.original)
            if self.on_tap:
                self.on_tap(st.collection, found[1])
        return "tap"

    def cancel(self):
        """Put the entity back where it was and drop the gesture."""
        st = self.state
        if st is None:
            return
        self.state = None
        self.history.discard_stash()
        found = self.model.find(st.entity_id)
        if found:
            found[1].set_positions(st.original)
