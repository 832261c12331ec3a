from __future__ import annotations
import logging
from typing import Optional

from PySide6.QtCore import QPointF

from .factory import POLYLINE_TOOLS
from .mapper import screen_to_relative
from .models import PolylineItem
from .utils import POINT_EPS, distance, snap_axis

logger = logging.getLogger(__name__)


class DrawingSession:
    """
    Accumulates points into a new LED strip or heating pipe.

    Idle -> ``start`` -> Active -> ``finish``/``cancel`` -> Idle. Every
    accepted point is its own commit, so each one can be undone.
    """

    def __init__(self, model, history, viewport, factory, snap90: bool = False):
        self.model = model
        self.history = history
        self.viewport = viewport
        self.factory = factory
        self.snap90 = snap90
        self.entity_id: Optional[str] = None
        self.collection: Optional[str] = None
        self.tool: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.entity_id is not None

    def _entity(self) -> Optional[PolylineItem]:
        found = self.model.find(self.entity_id) if self.entity_id else None
        if found and isinstance(found[1], PolylineItem):
            return found[1]
        return None

    def start(self, tool: str) -> Optional[str]:
        if self.active:
            return None
        if tool not in POLYLINE_TOOLS:
            raise ValueError(f"cannot draw with tool {tool!r}")
        collection, item = self.factory.make_polyline(tool)
        self.history.commit_change(lambda: self.model.add(collection, item))
        self.entity_id, self.collection, self.tool = item.id, collection, tool
        logger.debug("Drawing started: %s", item.id)
        return item.id

    def add_point(self, client: QPointF, origin: QPointF) -> bool:
        if not self.active:
            return False
        ent = self._entity()
        image = self.viewport.image_size
        if ent is None or image is None:
            return False
        cand = screen_to_relative(client, origin, self.viewport.translate, self.viewport.scale, image)
        if ent.points:
            last = ent.points[-1]
            if self.snap90:
                cand = snap_axis(last, cand)
            if distance(cand, last) < POINT_EPS:
                return False
            if len(ent.points) >= 2 and distance(cand, ent.points[-2]) < POINT_EPS:
                return False
        self.history.commit_change(lambda: ent.points.append(cand))
        return True

    def finish(self) -> bool:
        """Returns True when the entity was kept."""
        if not self.active:
            return False
        ent = self._entity()
        kept = ent is not None and len(ent.points) >= 2
        if ent is not None and not kept:
            ent_id = ent.id
            self.history.commit_change(lambda: self.model.remove(ent_id))
            logger.debug("Drawing abandoned: %s had %d point(s)", ent_id, len(ent.points))
        self._reset()
        return kept

    def cancel(self):
        if not self.active:
            return
        ent_id = self.entity_id
        if self.model.find(ent_id):
            self.history.commit_change(lambda: self.model.remove(ent_id))
        logger.debug("Drawing cancelled: %s", ent_id)
        self._reset()

    def shorten_last(self, entity_id: str) -> bool:
        if self.active:
            return False
        found = self.model.find(entity_id)
        if not found or not isinstance(found[1], PolylineItem):
            return False
        ent = found[1]
        if len(ent.points) <= 1:
            return False
        self.history.commit_change(ent.points.pop)
        return True

    def _reset(self):
        self.entity_id = self.collection = self.tool = None
