from __future__ import annotations
import math
from typing import Tuple

# ===== Viewport =====
MIN_SCALE = 0.1
MAX_SCALE = 5.0
ZOOM_SPEED = 0.1
PINCH_THRESHOLD = 10.0      # px, distance change before a 2-finger gesture becomes a pinch

# ===== Editing =====
HISTORY_LIMIT = 30
POINT_EPS = 1e-4            # relative units
DRAG_THRESHOLD = 2.0        # screen px
REL_DECIMALS = 4
HIT_RADIUS_POINT = 18.0     # screen px
HIT_RADIUS_LINE = 8.0       # screen px

# ===== Storage =====
STORAGE_KEY = "homeLayout:v8"
LEGACY_STORAGE_KEY = "homeLayout:v7"


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))

def clamp_scale(s: float) -> float:
    return clamp(s, MIN_SCALE, MAX_SCALE)

def round_rel(v: float) -> float:
    return round(clamp(float(v), 0.0, 1.0), REL_DECIMALS)

def distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])

def snap_axis(prev: Tuple[float, float], cand: Tuple[float, float]) -> Tuple[float, float]:
    """Zero out the smaller component of the step from ``prev`` to ``cand``."""
    dx = cand[0] - prev[0]
    dy = cand[1] - prev[1]
    if abs(dx) >= abs(dy):
        return (cand[0], prev[1])
    return (prev[0], cand[1])

def segment_distance(p: Tuple[float, float], a: Tuple[float, float], b: Tuple[float, float]) -> float:
    abx = b[0] - a[0]; aby = b[1] - a[1]
    denom = abx * abx + aby * aby
    if denom <= 1e-12:
        return distance(p, a)
    t = ((p[0] - a[0]) * abx + (p[1] - a[1]) * aby) / denom
    t = clamp(t, 0.0, 1.0)
    return distance(p, (a[0] + abx * t, a[1] + aby * t))
