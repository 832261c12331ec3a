from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Set, Tuple, Union

from PySide6.QtCore import QPointF, QSizeF

from .drag import DragController
from .drawing import DrawingSession
from .factory import ItemFactory, is_point_tool, is_polyline_tool
from .mapper import relative_to_screen
from .models import POINT_COLLECTIONS, POLYLINE_COLLECTIONS, Interaction, Mode
from .state import Item, LayoutModel
from .storage import MemoryStore
from .undo import LayoutHistory
from .viewport import ViewportTransform
from .utils import (DRAG_THRESHOLD, HIT_RADIUS_LINE, HIT_RADIUS_POINT, STORAGE_KEY, distance,
                    segment_distance)

logger = logging.getLogger(__name__)


# ---------- input events ----------
@dataclass
class PointerInput:
    kind: str                   # "down" | "move" | "up" | "cancel"
    id: int
    x: float                    # client coordinates
    y: float
    pointer_type: str = "mouse"

@dataclass
class WheelInput:
    delta_y: float
    x: float
    y: float

@dataclass
class KeyInput:
    key: str

InputEvent = Union[PointerInput, WheelInput, KeyInput]


@dataclass
class _Press:
    pid: int
    start: QPointF
    pinched: bool = False


class EditorSession:
    """
    One editor instance: layout model, viewport and the gesture controllers
    wired together, with :meth:`dispatch` as the only input entry point.

    Pointer routing: while drawing, primary pointer-downs append points; in edit
    mode a single pointer landing on an entity drags it; everything else pans or
    pinches the viewport. A short press on the background is a tap.
    """

    def __init__(self, store=None, storage_key: str = STORAGE_KEY,
                 on_change: Optional[Callable[[], None]] = None,
                 on_tap: Optional[Callable[[str, Item], None]] = None):
        self.on_change = on_change
        self.on_tap = on_tap
        self.store = store if store is not None else MemoryStore()
        self.model = LayoutModel()
        self.viewport = ViewportTransform(on_change=self._changed)
        self.history = LayoutHistory(self.model, self.store, storage_key, on_change=self._changed)
        self.factory = ItemFactory(self.model, self.history, self.viewport)
        self.drawing = DrawingSession(self.model, self.history, self.viewport, self.factory)
        self.drag = DragController(self.model, self.history, self.viewport, on_tap=self._on_entity_tap)

        self.mode = Mode.VIEW
        self.tool: Optional[str] = None
        self.selected_id: Optional[str] = None
        self.origin = QPointF(0.0, 0.0)
        self._press: Optional[_Press] = None
        self._drag_pid: Optional[int] = None
        self._drawing_pids: Set[int] = set()
        self._closed = False

        self.load()

    # ---------- derived state ----------
    @property
    def interaction(self) -> str:
        if self.drawing.active:
            return Interaction.DRAWING
        if self.drag.active:
            return Interaction.DRAGGING
        return self.viewport.mode

    @property
    def snap90(self) -> bool:
        return self.drawing.snap90

    @snap90.setter
    def snap90(self, value: bool):
        self.drawing.snap90 = bool(value)

    @property
    def editing(self) -> bool:
        return self.mode == Mode.EDIT

    def selected(self) -> Optional[Tuple[str, Item]]:
        return self.model.find(self.selected_id) if self.selected_id else None

    # ---------- dispatch ----------
    def dispatch(self, event: InputEvent) -> bool:
        """Feed one input event. Returns True when the event was consumed."""
        if self._closed:
            return False
        if isinstance(event, PointerInput):
            handler = {
                "down": self._pointer_down,
                "move": self._pointer_move,
                "up": self._pointer_up,
                "cancel": self._pointer_cancel,
            }.get(event.kind)
            if handler is None:
                raise ValueError(f"unknown pointer event kind: {event.kind}")
            return handler(event)
        if isinstance(event, WheelInput):
            return self._wheel(event)
        if isinstance(event, KeyInput):
            return self.handle_key(event.key)
        raise TypeError(f"unsupported input event: {type(event).__name__}")

    def _local(self, x: float, y: float) -> QPointF:
        return QPointF(x - self.origin.x(), y - self.origin.y())

    def _pointer_down(self, ev: PointerInput) -> bool:
        client = QPointF(ev.x, ev.y)
        self.viewport.mark_interacted()
        if ev.pointer_type == "mouse" and self.drag.active and self._drag_pid is not None:
            # the previous mouse release never arrived
            logger.debug("Dropping drag with lost pointer-up")
            self.drag.cancel()
            self._drag_pid = None

        if self.drawing.active:
            if ev.pointer_type == "mouse":
                self._drawing_pids.clear()
            if not self._drawing_pids:
                self.drawing.add_point(client, self.origin)
            self._drawing_pids.add(ev.id)
            return True

        if self.editing and not self.viewport.pointers and not self.drag.active:
            hit = self.hit_test(client)
            if hit and self.drag.on_pointer_down(hit[1].id, ev.x, ev.y, editable=True):
                self._drag_pid = ev.id
                self._press = None
                return True

        local = self._local(ev.x, ev.y)
        self.viewport.on_pointer_down(ev.id, local.x(), local.y(), ev.pointer_type)
        if len(self.viewport.pointers) == 1:
            self._press = _Press(ev.id, client)
        elif self._press is not None:
            self._press.pinched = True
        return True

    def _pointer_move(self, ev: PointerInput) -> bool:
        if ev.id == self._drag_pid:
            self.drag.on_pointer_move(ev.x, ev.y)
            self._changed()
            return True
        if ev.id in self._drawing_pids:
            return True
        if ev.id not in self.viewport.pointers:
            return False
        local = self._local(ev.x, ev.y)
        self.viewport.on_pointer_move(ev.id, local.x(), local.y())
        if self._press is not None and self.viewport.mode == Interaction.PINCHING:
            self._press.pinched = True
        return True

    def _pointer_up(self, ev: PointerInput) -> bool:
        if ev.id == self._drag_pid:
            self._drag_pid = None
            self.drag.on_pointer_up()
            self._changed()
            return True
        if ev.id in self._drawing_pids:
            self._drawing_pids.discard(ev.id)
            return True
        if ev.id not in self.viewport.pointers:
            return False
        self.viewport.on_pointer_up(ev.id)
        press, self._press = self._press, None
        if press is not None and press.pid == ev.id and not press.pinched:
            if (abs(ev.x - press.start.x()) <= DRAG_THRESHOLD
                    and abs(ev.y - press.start.y()) <= DRAG_THRESHOLD):
                self._on_tap(QPointF(ev.x, ev.y))
        elif press is not None and press.pid != ev.id:
            self._press = press
        return True

    def _pointer_cancel(self, ev: PointerInput) -> bool:
        if ev.id == self._drag_pid:
            self._drag_pid = None
            self.drag.cancel()
            self._changed()
            return True
        self._drawing_pids.discard(ev.id)
        if self._press is not None and self._press.pid == ev.id:
            self._press = None
        self.viewport.on_pointer_up(ev.id)
        return True

    def _wheel(self, ev: WheelInput) -> bool:
        self.viewport.mark_interacted()
        if self.drawing.active or self.drag.active:
            return False
        local = self._local(ev.x, ev.y)
        self.viewport.on_wheel(ev.delta_y, local.x(), local.y())
        return True

    # ---------- taps ----------
    def _on_tap(self, client: QPointF):
        hit = self.hit_test(client)
        if hit is not None:
            # in edit mode an entity under the pointer would have started a drag
            if self.on_tap:
                self.on_tap(*hit)
            return
        if self.editing and self.tool and is_point_tool(self.tool):
            item = self.factory.create_at(self.tool, client, self.origin)
            if item is not None:
                self.select(item.id)
            return
        self.select(None)

    def _on_entity_tap(self, collection: str, entity: Item):
        if self.editing:
            self.select(entity.id)
        elif self.on_tap:
            self.on_tap(collection, entity)

    # ---------- keys ----------
    def handle_key(self, key: str) -> bool:
        k = key.lower() if len(key) == 1 else key
        if k == "a":
            self.set_mode(Mode.VIEW if self.editing else Mode.EDIT)
            return True
        if k == "Escape":
            if self.drawing.active:
                self.cancel_drawing()
            elif self.drag.active:
                self.drag.cancel()
                self._drag_pid = None
                self._changed()
            elif self.editing:
                self.set_mode(Mode.VIEW)
            else:
                return False
            return True
        if not self.editing:
            return False
        if k == "z":
            return self.undo()
        if k == "y":
            return self.redo()
        if k == "Delete":
            return self.delete_selected()
        if k in ("Enter", "Return"):
            return self.finish_drawing() if self.drawing.active else False
        if k == "Backspace":
            return self.shorten_selected()
        return False

    # ---------- mode / tool / selection ----------
    def set_mode(self, mode: str):
        if mode not in (Mode.EDIT, Mode.VIEW):
            raise ValueError(f"unknown mode: {mode}")
        if mode == self.mode:
            return
        if mode == Mode.VIEW:
            if self.drawing.active:
                self.drawing.cancel()
                self._drawing_pids.clear()
            self.drag.cancel()
            self._drag_pid = None
            self.selected_id = None
        self.mode = mode
        logger.info("Mode: %s", mode)
        self._changed()

    def set_tool(self, tool: Optional[str]):
        if tool is not None and not (is_point_tool(tool) or is_polyline_tool(tool)):
            raise ValueError(f"unknown tool: {tool}")
        self.tool = tool
        self._changed()

    def select(self, entity_id: Optional[str]):
        if entity_id is not None and not self.model.find(entity_id):
            entity_id = None
        if entity_id != self.selected_id:
            self.selected_id = entity_id
            self._changed()

    def hit_test(self, client: QPointF) -> Optional[Tuple[str, Item]]:
        """Topmost entity under ``client``: points before polylines, later before earlier."""
        image = self.viewport.image_size
        if image is None or image.width() <= 0 or image.height() <= 0:
            return None
        t, s = self.viewport.translate, self.viewport.scale
        p = (client.x(), client.y())

        def screen(rx, ry):
            q = relative_to_screen(rx, ry, image, self.origin, t, s)
            return (q.x(), q.y())

        for name in reversed(POINT_COLLECTIONS):
            for it in reversed(self.model.items(name)):
                if distance(p, screen(it.x, it.y)) <= HIT_RADIUS_POINT:
                    return name, it
        for name in reversed(POLYLINE_COLLECTIONS):
            for it in reversed(self.model.items(name)):
                pts = [screen(x, y) for x, y in it.points]
                if len(pts) == 1 and distance(p, pts[0]) <= HIT_RADIUS_LINE:
                    return name, it
                if any(segment_distance(p, a, b) <= HIT_RADIUS_LINE for a, b in zip(pts, pts[1:])):
                    return name, it
        return None

    def delete_selected(self) -> bool:
        if not self.editing or not self.selected_id:
            return False
        if self.drawing.active and self.drawing.entity_id == self.selected_id:
            self.cancel_drawing()
            return True
        ent_id = self.selected_id
        if not self.model.find(ent_id):
            self.select(None)
            return False
        self.history.commit_change(lambda: self.model.remove(ent_id))
        self.selected_id = None
        logger.info("Deleted %s", ent_id)
        self._changed()
        return True

    # ---------- drawing ----------
    def start_drawing(self, tool: Optional[str] = None) -> Optional[str]:
        tool = tool or self.tool
        if not self.editing or self.drawing.active or not tool or not is_polyline_tool(tool):
            return None
        self.drag.cancel()
        self._drag_pid = None
        ent_id = self.drawing.start(tool)
        self.tool = tool
        self.select(ent_id)
        return ent_id

    def finish_drawing(self) -> bool:
        if not self.drawing.active:
            return False
        ent_id = self.drawing.entity_id
        kept = self.drawing.finish()
        self._drawing_pids.clear()
        self.select(ent_id if kept else None)
        self._changed()
        return True

    def cancel_drawing(self) -> bool:
        if not self.drawing.active:
            return False
        self.drawing.cancel()
        self._drawing_pids.clear()
        self.select(None)
        self._changed()
        return True

    def shorten_selected(self) -> bool:
        if not self.editing or not self.selected_id:
            return False
        return self.drawing.shorten_last(self.selected_id)

    # ---------- geometry ----------
    def set_image_size(self, width: float, height: float):
        self.viewport.set_image_size(QSizeF(width, height))
        self.viewport.auto_fit_once()
        self._changed()

    def set_container_rect(self, left: float, top: float, width: float, height: float):
        self.origin = QPointF(left, top)
        self.viewport.set_container_size(QSizeF(width, height))
        self.viewport.auto_fit_once()
        self._changed()

    # ---------- history / storage ----------
    def undo(self) -> bool:
        self._end_drag()
        ok = self.history.undo()
        self._after_restore()
        return ok

    def redo(self) -> bool:
        self._end_drag()
        ok = self.history.redo()
        self._after_restore()
        return ok

    def load(self) -> bool:
        found = self.history.load_from_storage()
        self._after_restore()
        return found

    def apply_remote_document(self, document) -> bool:
        """Background refresh; ignored while anything is being edited."""
        if self.editing or self.drawing.active or self.drag.active:
            logger.debug("Remote refresh suppressed during edit session")
            return False
        if not isinstance(document, dict):
            logger.warning("Remote layout is %s, not an object; ignored", type(document).__name__)
            return False
        self.store.write(self.history.storage_key, document)
        self.history.apply_snapshot(document)
        self._after_restore()
        logger.info("Applied remote layout: %r", self.model)
        return True

    def _end_drag(self):
        if self.drag.active:
            self.drag.cancel()
            self._drag_pid = None

    def _after_restore(self):
        if self.drawing.active and not self.model.find(self.drawing.entity_id):
            # the entity being drawn was undone away
            self.drawing.cancel()
            self._drawing_pids.clear()
        if self.selected_id and not self.model.find(self.selected_id):
            self.selected_id = None
        self._changed()

    # ---------- lifecycle ----------
    def close(self):
        if self._closed:
            return
        self.cancel_drawing()
        self._end_drag()
        self.viewport.reset_pointers()
        self._press = None
        self.on_change = None
        self.on_tap = None
        self.viewport.on_change = None
        self.history.on_change = None
        self._closed = True
        logger.debug("Editor session closed")

    def _changed(self):
        if self.on_change:
            self.on_change()

    def __repr__(self) -> str:
        return (f"EditorSession(mode={self.mode}, interaction={self.interaction}, "
                f"selected={self.selected_id}, {self.model!r})")
