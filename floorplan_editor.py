#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from __future__ import annotations
import asyncio
import logging
import os
import sys
from typing import Optional

from PySide6.QtCore import QObject, QSizeF, Qt, QThread, QTimer, Signal
from PySide6.QtGui import QAction, QActionGroup, QKeySequence
from PySide6.QtWidgets import (
    QApplication, QFileDialog, QLabel, QMainWindow, QMenu, QMessageBox, QStatusBar, QStyle,
    QToolBar, QToolButton, QWidgetAction
)

from floorplan import (POINT_TOOLS, POLYLINE_TOOLS, EditorSession, FileChannel, LayoutStore, Mode,
                       RemoteSync, config)
from floorplan.canvas import FloorplanCanvas, load_svg_icon

logger = logging.getLogger(__name__)


class SyncWorker(QObject):
    """Runs one remote sync coroutine off the UI thread."""
    finished = Signal(str, object)

    def __init__(self, op: str, remote: RemoteSync):
        super().__init__()
        self.op = op
        self.remote = remote

    def run(self):
        if self.op == "save":
            coro = self.remote.save_to_server()
        elif self.op == "load":
            coro = self.remote.load_from_server()
        else:
            coro = self.remote.fetch()
        try:
            result = asyncio.run(coro)
        except Exception as e:
            logger.error("Sync %s failed: %s", self.op, e, exc_info=True)
            result = None
        self.finished.emit(self.op, result)


class MainWindow(QMainWindow):
    def __init__(self, store: Optional[LayoutStore] = None, remote: Optional[RemoteSync] = None):
        super().__init__()
        self.setWindowTitle("Floorplan Editor")
        self.resize(1280, 860)
        self.canvas: Optional[FloorplanCanvas] = None
        self._thread: Optional[QThread] = None
        self._worker: Optional[SyncWorker] = None

        # 1) Session and storage
        self.store = store if store is not None else LayoutStore(config.LAYOUT_FILE)
        channel = FileChannel(config.REMOTE_PATH) if config.REMOTE_PATH else None
        self.remote = remote if remote is not None else RemoteSync(channel, self.store)
        self.session = EditorSession(self.store, on_change=self._on_session_changed,
                                     on_tap=self._on_device_tap)

        # 2) Toolbar / status
        self._build_toolbar()
        self.setStatusBar(QStatusBar(self))

        # 3) Canvas
        self.canvas = FloorplanCanvas(self.session, self)
        self.setCentralWidget(self.canvas)
        if not self.canvas.load_background(str(config.BACKGROUND_PATH)):
            logger.warning("Starting without a background image")

        # 4) Background refresh from the remote store
        self.refresh_timer = QTimer(self)
        self.refresh_timer.timeout.connect(self._refresh_from_server)
        if self.remote.channel is not None and config.REFRESH_MS > 0:
            self.refresh_timer.start(config.REFRESH_MS)

        self.canvas.setFocus()
        self._update_status()

    # ---------- toolbar ----------
    def _build_toolbar(self):
        tb = QToolBar("Toolbar", self)
        tb.setMovable(False)
        tb.setIconSize(QSizeF(18, 18).toSize())
        tb.setToolButtonStyle(Qt.ToolButtonTextBesideIcon)
        self.addToolBar(Qt.TopToolBarArea, tb)

        style = self.style()
        def ico(path, fallback):
            return load_svg_icon(path, 18) or style.standardIcon(fallback)

        self.act_edit = QAction(ico("assets/icons/edit.svg", QStyle.SP_DesktopIcon),
                                "Edit", self, checkable=True)
        self.act_edit.setToolTip("Toggle edit mode (A)")
        self.act_edit.toggled.connect(self._toggle_edit)

        self.act_snap = QAction(ico("assets/icons/grid.svg", QStyle.SP_DialogResetButton),
                                "Snap 90°", self, checkable=True)
        self.act_snap.toggled.connect(self._toggle_snap)

        self.act_start = QAction(ico("assets/icons/line.svg", QStyle.SP_FileDialogNewFolder),
                                 "Start line", self)
        self.act_start.triggered.connect(self._start_drawing)

        self.act_finish = QAction(ico("assets/icons/finish.svg", QStyle.SP_DialogApplyButton),
                                  "Finish line", self)
        self.act_finish.triggered.connect(self.session.finish_drawing)

        self.act_shorten = QAction(ico("assets/icons/shorten.svg", QStyle.SP_MediaSeekBackward),
                                   "Remove last point", self)
        self.act_shorten.triggered.connect(self.session.shorten_selected)

        self.act_undo = QAction(ico("assets/icons/undo.svg", QStyle.SP_ArrowBack), "Undo", self)
        self.act_undo.setShortcut(QKeySequence("Ctrl+Z"))
        self.act_undo.triggered.connect(self.session.undo)

        self.act_redo = QAction(ico("assets/icons/redo.svg", QStyle.SP_ArrowForward), "Redo", self)
        self.act_redo.setShortcut(QKeySequence("Ctrl+Y"))
        self.act_redo.triggered.connect(self.session.redo)

        self.act_delete = QAction(ico("assets/icons/delete.svg", QStyle.SP_TrashIcon), "Delete", self)
        self.act_delete.triggered.connect(self.session.delete_selected)

        self.act_save_server = QAction(ico("assets/icons/save.svg", QStyle.SP_DialogSaveButton),
                                       "Save to server", self)
        self.act_save_server.setShortcut(QKeySequence("Ctrl+S"))
        self.act_save_server.triggered.connect(lambda: self._run_sync("save"))

        self.act_load_server = QAction(ico("assets/icons/open.svg", QStyle.SP_BrowserReload),
                                       "Load from server", self)
        self.act_load_server.triggered.connect(self._confirm_load_from_server)

        self.act_open_image = QAction(ico("assets/icons/image.svg", QStyle.SP_DirOpenIcon),
                                      "Open floorplan image…", self)
        self.act_open_image.setShortcut(QKeySequence("Ctrl+O"))
        self.act_open_image.triggered.connect(self._open_image_dialog)

        # ----- menu buttons -----
        def add_menu_button(title: str, icon_path: str, fallback, menu_builder):
            btn = QToolButton(self)
            btn.setText(title)
            btn.setIcon(ico(icon_path, fallback))
            btn.setPopupMode(QToolButton.InstantPopup)
            btn.setToolButtonStyle(Qt.ToolButtonTextBesideIcon)
            m = QMenu(btn); menu_builder(m)
            btn.setMenu(m)
            wa = QWidgetAction(self); wa.setDefaultWidget(btn)
            tb.addAction(wa)
            return btn

        # Tools
        self.tool_group = QActionGroup(self)
        self.tool_group.setExclusive(True)
        self.tool_actions = {}
        def build_tool_menu(m: QMenu):
            for tool, spec in POINT_TOOLS.items():
                m.addAction(self._tool_action(tool, spec[-1]))
            m.addSeparator()
            for tool, spec in POLYLINE_TOOLS.items():
                m.addAction(self._tool_action(tool, spec[-1]))
        self.tool_button = add_menu_button("Tool", "assets/icons/palette.svg", QStyle.SP_DirIcon,
                                           build_tool_menu)

        # Server
        def build_server_menu(m: QMenu):
            m.addAction(self.act_save_server)
            m.addAction(self.act_load_server)
            m.addSeparator()
            m.addAction(self.act_open_image)
        add_menu_button("Layout", "assets/icons/open.svg", QStyle.SP_DirOpenIcon, build_server_menu)

        tb.addSeparator()
        tb.addAction(self.act_edit)
        tb.addAction(self.act_snap)
        self._sep_label(tb, "Line")
        tb.addAction(self.act_start)
        tb.addAction(self.act_finish)
        tb.addAction(self.act_shorten)
        tb.addSeparator()
        tb.addAction(self.act_undo)
        tb.addAction(self.act_redo)
        tb.addAction(self.act_delete)

    def _tool_action(self, tool: str, label: str) -> QAction:
        act = QAction(label, self, checkable=True)
        act.triggered.connect(lambda _=False, t=tool: self._select_tool(t))
        self.tool_group.addAction(act)
        self.tool_actions[tool] = act
        return act

    def _sep_label(self, tb: QToolBar, text: str):
        lbl = QLabel(f"  {text}  ")
        lbl.setStyleSheet("color:#667085; font-weight:600;")
        wa = QWidgetAction(self)
        wa.setDefaultWidget(lbl)
        tb.addAction(wa)

    # ---------- actions ----------
    def _toggle_edit(self, on: bool):
        self.session.set_mode(Mode.EDIT if on else Mode.VIEW)

    def _toggle_snap(self, on: bool):
        self.session.snap90 = on
        self._update_status()

    def _select_tool(self, tool: str):
        self.session.set_tool(tool)
        label = (POINT_TOOLS.get(tool) or POLYLINE_TOOLS.get(tool))[-1]
        self.tool_button.setText(label)
        if not self.session.editing:
            self.session.set_mode(Mode.EDIT)
        self.canvas.setFocus()

    def _start_drawing(self):
        if not self.session.editing:
            self.session.set_mode(Mode.EDIT)
        tool = self.session.tool if self.session.tool in POLYLINE_TOOLS else "strip"
        if self.session.start_drawing(tool) is None:
            self._status("Cannot start a line right now")
            return
        self._status("Click to add points; Enter or double-click finishes, Esc cancels")
        self.canvas.setFocus()

    def _open_image_dialog(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Open floorplan image", str(config.BACKGROUND_PATH.parent),
            "Images (*.svg *.png *.jpg *.jpeg);;All files (*)")
        if not path:
            return
        if not self.canvas.load_background(path):
            QMessageBox.critical(self, "Open failed", f"Could not load {os.path.basename(path)}")
            return
        self._status(f"Floorplan: {os.path.basename(path)}")

    def _confirm_load_from_server(self):
        if self.remote.channel is None:
            QMessageBox.information(self, "Load from server", "No remote layout is configured.")
            return
        answer = QMessageBox.question(self, "Load from server",
                                      "Replace the local layout with the one on the server?")
        if answer == QMessageBox.Yes:
            self._run_sync("load")

    def _on_device_tap(self, collection: str, entity):
        # device control is handled elsewhere; flip the displayed state only
        entity.on = not entity.on
        self._status(f"{entity.label or entity.id}: {'on' if entity.on else 'off'}")
        self.canvas.update()

    # ---------- sync ----------
    def _refresh_from_server(self):
        if self.session.editing or self._thread is not None:
            return
        self._run_sync("refresh")

    def _run_sync(self, op: str):
        if self._thread is not None:
            self._status("Sync already running")
            return
        if self.remote.channel is None:
            self._status("No remote layout configured")
            return
        self.act_save_server.setEnabled(False)
        self.act_load_server.setEnabled(False)

        self._thread = QThread()
        self._worker = SyncWorker(op, self.remote)
        self._worker.moveToThread(self._thread)
        self._thread.started.connect(self._worker.run)
        self._worker.finished.connect(self._on_sync_finished)
        self._worker.finished.connect(self._thread.quit)
        self._thread.finished.connect(self._on_thread_done)
        self._thread.finished.connect(self._thread.deleteLater)
        self._thread.start()

    def _on_thread_done(self):
        self._thread = None
        self._worker = None
        self.act_save_server.setEnabled(True)
        self.act_load_server.setEnabled(True)

    def _on_sync_finished(self, op: str, result):
        if op == "save":
            self._status("Layout saved to server" if result else "Saving to server failed")
        elif op == "load":
            if result:
                self.session.load()
                self._status("Layout loaded from server")
            else:
                QMessageBox.warning(self, "Load from server", "Could not load the layout from the server.")
        elif isinstance(result, dict):
            self.session.apply_remote_document(result)

    # ---------- status ----------
    def _on_session_changed(self):
        if self.canvas is None:
            return
        if self.act_edit.isChecked() != self.session.editing:
            self.act_edit.blockSignals(True)
            self.act_edit.setChecked(self.session.editing)
            self.act_edit.blockSignals(False)
        self.canvas.update()
        self._update_status()

    def _status(self, text: str):
        self.statusBar().showMessage(text, 3000)

    def _update_status(self):
        s = self.session
        self.act_undo.setEnabled(s.history.can_undo())
        self.act_redo.setEnabled(s.history.can_redo())
        self.act_finish.setEnabled(s.drawing.active)
        self.act_delete.setEnabled(s.editing and s.selected_id is not None)
        self.statusBar().showMessage(
            f"Mode: {'Edit' if s.mode == Mode.EDIT else 'View'} | "
            f"Tool: {s.tool or '-'} | "
            f"Snap 90°: {'ON' if s.snap90 else 'OFF'} | "
            f"Zoom: {int(round(s.viewport.scale * 100))}%"
        )

    def closeEvent(self, event):
        self.refresh_timer.stop()
        if self._thread is not None:
            self._thread.quit()
            self._thread.wait(3000)
        self.session.close()
        super().closeEvent(event)


def main():
    config.configure_logging()
    app = QApplication(sys.argv)
    try:
        with open(config.THEME_PATH, "r", encoding="utf-8") as f:
            app.setStyleSheet(f.read())
    except OSError:
        logger.debug("No theme at %s", config.THEME_PATH)
    win = MainWindow()
    win.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
