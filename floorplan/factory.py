from __future__ import annotations
import itertools
import logging
import time
from typing import Dict, Optional, Tuple

from PySide6.QtCore import QPointF

from .mapper import screen_to_world, unclamped_relative, world_to_relative
from .models import Collection, PointItem, PolylineItem
from .utils import round_rel

logger = logging.getLogger(__name__)

# tool -> (collection, id prefix, kind, default extra fields, label)
POINT_TOOLS: Dict[str, Tuple[str, str, str, Dict, str]] = {
    "lamp":                 (Collection.LAMPS, "lamp", "lamp", {}, "Lamp"),
    "mirror":               (Collection.LAMPS, "mirror", "mirror", {}, "Mirror light"),
    "spot":                 (Collection.LAMPS, "spot", "spot", {}, "Spot light"),
    "wallLight":            (Collection.WALL_LIGHTS, "wall", "wallLight", {"direction": "up"}, "Wall light"),
    "temperature":          (Collection.TEMPERATURE_ICONS, "temp", "temperature", {"currentTemp": 21.0}, "Room"),
    "heatpump":             (Collection.HEAT_PUMPS, "heatpump", "heatpump", {}, "Heat pump"),
    "compressor":           (Collection.COMPRESSORS, "compressor", "compressor", {}, "Compressor"),
    "fan":                  (Collection.FANS, "fan", "fan", {"fanType": "indoor"}, "Fan"),
    "heatpump-compressor":  (Collection.HEATPUMP_COMPRESSORS, "hpcompressor", "heatpump-compressor", {}, "Heat pump compressor"),
    "heatpump-indoor-unit": (Collection.HEATPUMP_INDOOR_UNITS, "hpindoor", "heatpump-indoor-unit", {}, "Indoor unit"),
}

# tool -> (collection, id prefix, label)
POLYLINE_TOOLS: Dict[str, Tuple[str, str, str]] = {
    "strip":   (Collection.STRIPS, "strip", "LED strip"),
    "heating": (Collection.HEATING_PIPES, "heating", "Heating pipe"),
}

_PREFIX_TO_COLLECTION = {spec[1]: spec[0] for spec in POINT_TOOLS.values()}
_PREFIX_TO_COLLECTION.update({spec[1]: spec[0] for spec in POLYLINE_TOOLS.values()})

_counter = itertools.count()


def new_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}{next(_counter) % 1000:03d}"

def collection_for_id(entity_id: str) -> Optional[str]:
    prefix = entity_id.split("_", 1)[0]
    return _PREFIX_TO_COLLECTION.get(prefix)

def is_polyline_tool(tool: str) -> bool:
    return tool in POLYLINE_TOOLS

def is_point_tool(tool: str) -> bool:
    return tool in POINT_TOOLS


class ItemFactory:
    def __init__(self, model, history, viewport):
        self.model = model
        self.history = history
        self.viewport = viewport

    def make_point(self, tool: str, rx: float, ry: float) -> Tuple[str, PointItem]:
        if tool not in POINT_TOOLS:
            raise ValueError(f"not a point tool: {tool}")
        collection, prefix, kind, extra, label = POINT_TOOLS[tool]
        ent_id = new_id(prefix)
        item = PointItem(ent_id, round_rel(rx), round_rel(ry), kind, on=False,
                         label=f"{label} {ent_id.split('_', 1)[1]}", extra=dict(extra))
        if tool == "temperature":
            suffix = ent_id.split("_", 1)[1]
            item.extra.update({"roomId": f"room_{suffix}", "roomName": f"Room {suffix}"})
        return collection, item

    def make_polyline(self, tool: str) -> Tuple[str, PolylineItem]:
        if tool not in POLYLINE_TOOLS:
            raise ValueError(f"not a polyline tool: {tool}")
        collection, prefix, label = POLYLINE_TOOLS[tool]
        ent_id = new_id(prefix)
        return collection, PolylineItem(ent_id, [], on=False, label=f"{label} {ent_id.split('_', 1)[1]}")

    def create_at(self, tool: str, client: QPointF, origin: QPointF) -> Optional[PointItem]:
        """Place a point entity under the click; clicks outside the image create nothing."""
        image = self.viewport.image_size
        if image is None:
            return None
        world = screen_to_world(client, origin, self.viewport.translate, self.viewport.scale)
        ux, uy = unclamped_relative(world, image)
        if not (0.0 <= ux <= 1.0 and 0.0 <= uy <= 1.0):
            return None
        rx, ry = world_to_relative(world, image)
        collection, item = self.make_point(tool, rx, ry)
        self.history.commit_change(lambda: self.model.add(collection, item))
        logger.info("Placed %s at (%.4f, %.4f)", item.id, rx, ry)
        return item
