from __future__ import annotations
import logging
import os
from typing import Dict, Optional

from PySide6.QtCore import QEvent, QPointF, QRectF, Qt
from PySide6.QtGui import QBrush, QColor, QEventPoint, QIcon, QPainter, QPen, QPixmap, QPolygonF
from PySide6.QtSvg import QSvgRenderer
from PySide6.QtWidgets import QWidget

from .mapper import relative_to_screen
from .models import Collection, PolylineItem
from .session import EditorSession, KeyInput, PointerInput, WheelInput

logger = logging.getLogger(__name__)

# ===== Colors =====
BG_COLOR = QColor("#F2F4F7")
IMAGE_BORDER = QColor("#A8B3C2")
STRIP_COLOR = QColor(255, 176, 32)
HEATING_COLOR = QColor(220, 38, 38)
POINT_ON = QColor(255, 220, 0, 220)
POINT_OFF = QColor(148, 163, 184, 200)
POINT_BORDER = QColor(120, 95, 0)
SELECT_COLOR = QColor(34, 211, 238)
LABEL_COLOR = QColor("#111827")

POINT_RADIUS = 9.0
LINE_WIDTH = 4.0

MOUSE_ID = 0

_KEY_NAMES = {
    Qt.Key_A: "a",
    Qt.Key_Z: "z",
    Qt.Key_Y: "y",
    Qt.Key_Escape: "Escape",
    Qt.Key_Delete: "Delete",
    Qt.Key_Return: "Enter",
    Qt.Key_Enter: "Enter",
    Qt.Key_Backspace: "Backspace",
}


def load_svg_icon(path: str, size: int) -> Optional[QIcon]:
    if not os.path.exists(path):
        return None
    renderer = QSvgRenderer(path)
    if not renderer.isValid():
        logger.warning("Invalid SVG icon: %s", path)
        return None
    pm = QPixmap(size, size)
    pm.fill(Qt.transparent)
    p = QPainter(pm)
    renderer.render(p, QRectF(0, 0, size, size))
    p.end()
    return QIcon(pm)


class FloorplanCanvas(QWidget):
    """
    Paints the background plan and the layout entities under the session's
    viewport, and turns Qt mouse/wheel/touch/key events into session input.

    Widget-local coordinates are used as client coordinates, so the container
    rectangle always starts at (0, 0).
    """

    def __init__(self, session: EditorSession, parent=None):
        super().__init__(parent)
        self.session = session
        self._renderer: Optional[QSvgRenderer] = None
        self._pixmap: Optional[QPixmap] = None
        self._touch_ids: Dict[int, QPointF] = {}
        self.setAttribute(Qt.WA_AcceptTouchEvents, True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setMinimumSize(320, 240)

    # ---------- background ----------
    def load_background(self, path: str) -> bool:
        if not os.path.exists(path):
            logger.warning("Background image not found: %s", path)
            return False
        if path.lower().endswith(".svg"):
            renderer = QSvgRenderer(path)
            if not renderer.isValid():
                logger.error("Could not parse SVG background: %s", path)
                return False
            size = renderer.defaultSize()
            self._renderer, self._pixmap = renderer, None
        else:
            pm = QPixmap(path)
            if pm.isNull():
                logger.error("Could not load background image: %s", path)
                return False
            size = pm.size()
            self._renderer, self._pixmap = None, pm
        logger.info("Background %s (%dx%d)", path, size.width(), size.height())
        self.session.set_image_size(size.width(), size.height())
        self.update()
        return True

    # ---------- painting ----------
    def paintEvent(self, event):
        p = QPainter(self)
        p.setRenderHint(QPainter.Antialiasing, True)
        p.fillRect(self.rect(), BG_COLOR)

        vp = self.session.viewport
        image = vp.image_size
        if image is None:
            p.end()
            return

        p.save()
        p.translate(vp.translate)
        p.scale(vp.scale, vp.scale)
        target = QRectF(0, 0, image.width(), image.height())
        if self._renderer is not None:
            self._renderer.render(p, target)
        elif self._pixmap is not None:
            p.drawPixmap(target, self._pixmap, QRectF(self._pixmap.rect()))
        p.setPen(QPen(IMAGE_BORDER, 1.0 / vp.scale))
        p.setBrush(Qt.NoBrush)
        p.drawRect(target)
        p.restore()

        # entities are drawn in screen space so their size does not follow the zoom
        origin = QPointF(0, 0)

        def screen(rx, ry):
            return relative_to_screen(rx, ry, image, origin, vp.translate, vp.scale)

        selected = self.session.selected_id
        for name, it in self.session.model.all_items():
            if isinstance(it, PolylineItem):
                if not it.points:
                    continue
                pts = [screen(x, y) for x, y in it.points]
                poly = QPolygonF(pts)
                color = STRIP_COLOR if name == Collection.STRIPS else HEATING_COLOR
                if it.id == selected:
                    p.setPen(QPen(SELECT_COLOR, LINE_WIDTH + 4, Qt.SolidLine, Qt.RoundCap, Qt.RoundJoin))
                    p.drawPolyline(poly)
                if not it.on:
                    color = QColor(color)
                    color.setAlpha(150)
                p.setPen(QPen(color, LINE_WIDTH, Qt.SolidLine, Qt.RoundCap, Qt.RoundJoin))
                p.drawPolyline(poly)
                if self.session.editing:
                    p.setBrush(QBrush(color))
                    for q in pts:
                        p.drawEllipse(q, 3.0, 3.0)
                    p.setBrush(Qt.NoBrush)
            else:
                c = screen(it.x, it.y)
                pen = QPen(SELECT_COLOR, 3) if it.id == selected else QPen(POINT_BORDER, 1.5)
                p.setPen(pen)
                p.setBrush(QBrush(POINT_ON if it.on else POINT_OFF))
                p.drawEllipse(c, POINT_RADIUS, POINT_RADIUS)
                if it.id == selected and it.label:
                    p.setPen(LABEL_COLOR)
                    p.drawText(c + QPointF(POINT_RADIUS + 4, 4), it.label)
        p.end()

    # ---------- geometry ----------
    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.session.set_container_rect(0, 0, self.width(), self.height())

    # ---------- mouse ----------
    def mousePressEvent(self, event):
        if event.button() != Qt.LeftButton:
            super().mousePressEvent(event)
            return
        pos = event.position()
        self.session.dispatch(PointerInput("down", MOUSE_ID, pos.x(), pos.y(), "mouse"))
        event.accept()

    def mouseMoveEvent(self, event):
        if not (event.buttons() & Qt.LeftButton):
            super().mouseMoveEvent(event)
            return
        pos = event.position()
        self.session.dispatch(PointerInput("move", MOUSE_ID, pos.x(), pos.y(), "mouse"))
        event.accept()

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.LeftButton:
            super().mouseReleaseEvent(event)
            return
        pos = event.position()
        self.session.dispatch(PointerInput("up", MOUSE_ID, pos.x(), pos.y(), "mouse"))
        event.accept()

    def mouseDoubleClickEvent(self, event):
        # a double click while drawing finishes the line
        if event.button() == Qt.LeftButton and self.session.drawing.active:
            self.session.finish_drawing()
            event.accept()
            return
        super().mouseDoubleClickEvent(event)

    def wheelEvent(self, event):
        pos = event.position()
        self.session.dispatch(WheelInput(-event.angleDelta().y(), pos.x(), pos.y()))
        event.accept()

    # ---------- touch ----------
    def event(self, event):
        t = event.type()
        if t in (QEvent.TouchBegin, QEvent.TouchUpdate, QEvent.TouchEnd, QEvent.TouchCancel):
            self._touch_event(event)
            event.accept()
            return True
        return super().event(event)

    def _touch_event(self, event):
        if event.type() == QEvent.TouchCancel:
            for pid, pos in list(self._touch_ids.items()):
                self.session.dispatch(PointerInput("cancel", pid, pos.x(), pos.y(), "touch"))
            self._touch_ids.clear()
            return
        for pt in event.points():
            pid = pt.id() + 1  # 0 is the mouse
            pos = pt.position()
            state = pt.state()
            if state == QEventPoint.State.Pressed:
                self._touch_ids[pid] = pos
                self.session.dispatch(PointerInput("down", pid, pos.x(), pos.y(), "touch"))
            elif state == QEventPoint.State.Updated:
                self._touch_ids[pid] = pos
                self.session.dispatch(PointerInput("move", pid, pos.x(), pos.y(), "touch"))
            elif state == QEventPoint.State.Released:
                self._touch_ids.pop(pid, None)
                self.session.dispatch(PointerInput("up", pid, pos.x(), pos.y(), "touch"))

    # ---------- keys ----------
    def keyPressEvent(self, event):
        name = _KEY_NAMES.get(event.key())
        if name is None or event.modifiers() & (Qt.ControlModifier | Qt.AltModifier):
            super().keyPressEvent(event)
            return
        if self.session.dispatch(KeyInput(name)):
            event.accept()
        else:
            super().keyPressEvent(event)
