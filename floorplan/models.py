from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

Point = Tuple[float, float]

@dataclass
class PointItem:
    id: str
    x: float = 0.0
    y: float = 0.0
    kind: str = "lamp"
    on: bool = False
    label: str = ""
    relay_id: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def positions(self) -> List[Point]:
        return [(self.x, self.y)]

    def set_positions(self, pts: List[Point]):
        self.x, self.y = pts[0]

@dataclass
class PolylineItem:
    id: str
    points: List[Point] = field(default_factory=list)
    on: bool = False
    label: str = ""
    relay_id: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def positions(self) -> List[Point]:
        return list(self.points)

    def set_positions(self, pts: List[Point]):
        self.points = list(pts)

class Mode:
    EDIT = "edit"
    VIEW = "view"

class Interaction:
    IDLE = "idle"
    PANNING = "panning"
    PINCHING = "pinching"
    DRAWING = "drawing"
    DRAGGING = "dragging"

class Collection:
    LAMPS = "lamps"
    STRIPS = "strips"
    HEATING_PIPES = "heatingPipes"
    TEMPERATURE_ICONS = "temperatureIcons"
    HEAT_PUMPS = "heatPumps"
    COMPRESSORS = "compressors"
    FANS = "fans"
    HEATPUMP_COMPRESSORS = "heatpumpCompressors"
    HEATPUMP_INDOOR_UNITS = "heatpumpIndoorUnits"
    WALL_LIGHTS = "wallLights"

# document order
ALL_COLLECTIONS = (
    Collection.LAMPS, Collection.STRIPS, Collection.HEATING_PIPES, Collection.TEMPERATURE_ICONS,
    Collection.HEAT_PUMPS, Collection.COMPRESSORS, Collection.FANS,
    Collection.HEATPUMP_COMPRESSORS, Collection.HEATPUMP_INDOOR_UNITS, Collection.WALL_LIGHTS,
)
POLYLINE_COLLECTIONS = (Collection.STRIPS, Collection.HEATING_PIPES)
POINT_COLLECTIONS = tuple(c for c in ALL_COLLECTIONS if c not in POLYLINE_COLLECTIONS)

# default `kind` written for point entities of each collection
DEFAULT_KIND = {
    Collection.LAMPS: "lamp",
    Collection.TEMPERATURE_ICONS: "temperature",
    Collection.HEAT_PUMPS: "heatpump",
    Collection.COMPRESSORS: "compressor",
    Collection.FANS: "fan",
    Collection.HEATPUMP_COMPRESSORS: "heatpump-compressor",
    Collection.HEATPUMP_INDOOR_UNITS: "heatpump-indoor-unit",
    Collection.WALL_LIGHTS: "wallLight",
}

def is_polyline(collection: str) -> bool:
    return collection in POLYLINE_COLLECTIONS
