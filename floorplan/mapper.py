"""Conversions between screen, world (image pixel) and relative (0..1) space.

Screen coordinates are pointer positions in the container; world coordinates are
pixels of the background image before zoom/pan; relative coordinates are world
coordinates divided by the image size and are what gets persisted.
"""
from __future__ import annotations
from typing import Tuple

from PySide6.QtCore import QPointF, QSizeF

from .utils import round_rel


def screen_to_world(client: QPointF, origin: QPointF, translate: QPointF, scale: float) -> QPointF:
    return QPointF((client.x() - origin.x() - translate.x()) / scale,
                   (client.y() - origin.y() - translate.y()) / scale)

def world_to_screen(world: QPointF, origin: QPointF, translate: QPointF, scale: float) -> QPointF:
    return QPointF(world.x() * scale + translate.x() + origin.x(),
                   world.y() * scale + translate.y() + origin.y())

def world_to_relative(world: QPointF, image: QSizeF) -> Tuple[float, float]:
    """Clamped to [0, 1] and rounded to 4 decimals."""
    w, h = image.width(), image.height()
    rx = world.x() / w if w > 0 else 0.0
    ry = world.y() / h if h > 0 else 0.0
    return round_rel(rx), round_rel(ry)

def relative_to_world(rx: float, ry: float, image: QSizeF) -> QPointF:
    return QPointF(rx * image.width(), ry * image.height())

def screen_to_relative(client: QPointF, origin: QPointF, translate: QPointF, scale: float,
                       image: QSizeF) -> Tuple[float, float]:
    return world_to_relative(screen_to_world(client, origin, translate, scale), image)

def relative_to_screen(rx: float, ry: float, image: QSizeF, origin: QPointF,
                       translate: QPointF, scale: float) -> QPointF:
    return world_to_screen(relative_to_world(rx, ry, image), origin, translate, scale)

def unclamped_relative(world: QPointF, image: QSizeF) -> Tuple[float, float]:
    # used for in-bounds checks before placement
    w, h = image.width(), image.height()
    return (world.x() / w if w > 0 else -1.0, world.y() / h if h > 0 else -1.0)
