from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from PySide6.QtCore import QLineF, QPointF, QSizeF

from .models import Interaction
from .utils import PINCH_THRESHOLD, ZOOM_SPEED, clamp_scale

logger = logging.getLogger(__name__)


@dataclass
class PinchBaseline:
    distance: float
    scale: float
    translate: QPointF
    midpoint: QPointF

@dataclass
class _Pointer:
    pos: QPointF
    pointer_type: str = "touch"


class ViewportTransform:
    """
    Owns ``scale`` and ``translate`` and turns raw pointer/wheel input into pan,
    pinch-zoom and cursor-anchored wheel zoom.

    All positions passed in are container-local screen coordinates. Modes are
    ``Interaction.IDLE``, ``PANNING`` and ``PINCHING``; the number of registered
    pointers decides which one a move is interpreted as.
    """

    def __init__(self, on_change: Optional[Callable[[], None]] = None):
        self.scale: float = 1.0
        self.translate = QPointF(0.0, 0.0)
        self.image_size: Optional[QSizeF] = None
        self.container_size: Optional[QSizeF] = None
        self.mode = Interaction.IDLE
        self.pointers: Dict[int, _Pointer] = {}
        self.pinch_baseline: Optional[PinchBaseline] = None
        self._pan_start: Optional[QPointF] = None
        self._pan_orig = QPointF(0.0, 0.0)
        self._interacted = False
        self.on_change = on_change

    # ---------- pointers ----------
    def on_pointer_down(self, pid: int, x: float, y: float, pointer_type: str = "touch"):
        self.mark_interacted()
        if pointer_type == "mouse":
            # a mouse has one pointer; anything else left over lost its pointer-up
            stale = [k for k, p in self.pointers.items() if p.pointer_type == "mouse" and k != pid]
            for k in stale:
                del self.pointers[k]
        self.pointers[pid] = _Pointer(QPointF(x, y), pointer_type)

        count = len(self.pointers)
        if count == 1:
            self.pinch_baseline = None
            self._begin_pan(QPointF(x, y))
        elif count == 2:
            # mode is left alone until the threshold is crossed in on_pointer_move
            self._capture_pinch_baseline()
        logger.debug("pointer down %s -> %d pointers, mode=%s", pid, count, self.mode)

    def on_pointer_move(self, pid: int, x: float, y: float):
        ptr = self.pointers.get(pid)
        if ptr is None:
            return
        ptr.pos = QPointF(x, y)
        count = len(self.pointers)

        if count == 1 and self.mode == Interaction.PANNING and self._pan_start is not None:
            self.translate = self._pan_orig + (ptr.pos - self._pan_start)
            self._changed()
            return

        if count == 2 and self.pinch_baseline is not None:
            base = self.pinch_baseline
            p1, p2 = [p.pos for p in self.pointers.values()]
            current = QLineF(p1, p2).length()
            if self.mode != Interaction.PINCHING and abs(current - base.distance) > PINCH_THRESHOLD:
                self.mode = Interaction.PINCHING
                logger.debug("pinch started (baseline %.1f px)", base.distance)
            if self.mode != Interaction.PINCHING or base.distance <= 0:
                return
            new_scale = clamp_scale(base.scale * (current / base.distance))
            self.translate = self._anchored(base.midpoint, base.translate, new_scale / base.scale)
            self.scale = new_scale
            self._changed()

    def on_pointer_up(self, pid: int):
        if self.pointers.pop(pid, None) is None:
            return
        count = len(self.pointers)
        if count == 0:
            self.reset_pointers()
        elif count == 1:
            remaining = next(iter(self.pointers.values()))
            self.pinch_baseline = None
            self._begin_pan(remaining.pos)
        elif count == 2:
            self._capture_pinch_baseline()
        logger.debug("pointer up %s -> %d pointers, mode=%s", pid, count, self.mode)

    def reset_pointers(self):
        self.pointers.clear()
        self.pinch_baseline = None
        self._pan_start = None
        self.mode = Interaction.IDLE

    # ---------- wheel ----------
    def on_wheel(self, delta_y: float, cursor_x: float, cursor_y: float):
        self.mark_interacted()
        new_scale = clamp_scale(self.scale * math.exp(-delta_y * ZOOM_SPEED * 0.01))
        if new_scale == self.scale:
            return
        self.translate = self._anchored(QPointF(cursor_x, cursor_y), self.translate, new_scale / self.scale)
        self.scale = new_scale
        self._changed()

    # ---------- sizing ----------
    def set_image_size(self, size: QSizeF):
        self.image_size = QSizeF(size)

    def set_container_size(self, size: QSizeF):
        self.container_size = QSizeF(size)

    def auto_fit_once(self, image: Optional[QSizeF] = None, container: Optional[QSizeF] = None) -> bool:
        """Fit and centre the image until the first user gesture; after that never again."""
        if self._interacted:
            return False
        image = image if image is not None else self.image_size
        container = container if container is not None else self.container_size
        if image is None or container is None:
            return False
        iw, ih = image.width(), image.height()
        cw, ch = container.width(), container.height()
        if iw <= 0 or ih <= 0 or cw <= 0 or ch <= 0:
            return False
        self.scale = clamp_scale(min(cw / iw, ch / ih, 1.0))
        self.translate = QPointF((cw - iw * self.scale) / 2.0, (ch - ih * self.scale) / 2.0)
        self._changed()
        return True

    def mark_interacted(self):
        """Latch off auto-fit; any user gesture counts, not only pan and zoom."""
        self._interacted = True

    @property
    def interacted(self) -> bool:
        return self._interacted

    # ---------- helpers ----------
    def _begin_pan(self, start: QPointF):
        self.mode = Interaction.PANNING
        self._pan_start = QPointF(start)
        self._pan_orig = QPointF(self.translate)

    def _capture_pinch_baseline(self):
        p1, p2 = [p.pos for p in list(self.pointers.values())[:2]]
        self.pinch_baseline = PinchBaseline(
            distance=QLineF(p1, p2).length(),
            scale=self.scale,
            translate=QPointF(self.translate),
            midpoint=(p1 + p2) * 0.5,
        )

    @staticmethod
    def _anchored(anchor: QPointF, translate: QPointF, ratio: float) -> QPointF:
        return anchor - (anchor - translate) * ratio

    def _changed(self):
        if self.on_change:
            self.on_change()
