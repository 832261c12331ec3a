# Floorplan imports
from floorplan.models import Collection, Interaction, Mode, PointItem, PolylineItem
from floorplan.session import EditorSession, KeyInput, PointerInput, WheelInput
from floorplan.storage import MemoryStore
from floorplan.utils import STORAGE_KEY

# Third-party imports
import pytest
from PySide6.QtCore import QPointF


@pytest.fixture
def taps():
    return []


@pytest.fixture
def session(taps):
    """Session on a 100 x 100 px image shown 1:1 in a 100 x 100 px container"""
    s = EditorSession(MemoryStore(), on_tap=lambda c, e: taps.append((c, e.id)))
    s.set_image_size(100, 100)
    s.set_container_rect(0, 0, 100, 100)
    return s


def add(session, collection, item):
    session.history.commit_change(lambda: session.model.add(collection, item))
    return item


def tap(session, x, y, pid=0, pointer_type="mouse"):
    session.dispatch(PointerInput("down", pid, x, y, pointer_type))
    session.dispatch(PointerInput("up", pid, x, y, pointer_type))


def drag(session, start, end, pid=0):
    session.dispatch(PointerInput("down", pid, *start))
    session.dispatch(PointerInput("move", pid, *end))
    session.dispatch(PointerInput("up", pid, *end))


class TestModes:
    """Tests for view/edit mode handling"""

    def test_defaults(self, session):
        assert session.mode == Mode.VIEW
        assert session.interaction == Interaction.IDLE
        assert session.viewport.scale == 1.0

    def test_a_toggles_edit(self, session):
        assert session.dispatch(KeyInput("a"))
        assert session.mode == Mode.EDIT
        session.dispatch(KeyInput("A"))
        assert session.mode == Mode.VIEW

    def test_edit_keys_ignored_in_view_mode(self, session):
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        assert not session.dispatch(KeyInput("z"))
        assert session.model.count() == 1

    def test_escape_cancels_drawing_then_leaves_edit(self, session):
        session.set_mode(Mode.EDIT)
        ent_id = session.start_drawing("strip")
        session.dispatch(KeyInput("Escape"))
        assert session.model.find(ent_id) is None
        assert session.mode == Mode.EDIT
        session.dispatch(KeyInput("Escape"))
        assert session.mode == Mode.VIEW

    def test_leaving_edit_cancels_drawing_and_selection(self, session):
        session.set_mode(Mode.EDIT)
        ent_id = session.start_drawing("strip")
        tap(session, 10, 10)
        tap(session, 50, 10)
        session.set_mode(Mode.VIEW)
        assert not session.drawing.active
        assert session.model.find(ent_id) is None
        assert session.selected_id is None

    def test_unknown_mode_and_tool(self, session):
        with pytest.raises(ValueError):
            session.set_mode("admin")
        with pytest.raises(ValueError):
            session.set_tool("sofa")


class TestTaps:
    """Tests for background and entity taps"""

    def test_edit_tap_places_point_entity(self, session):
        session.set_mode(Mode.EDIT)
        session.set_tool("lamp")
        tap(session, 30, 40)

        (name, item), = list(session.model.all_items())
        assert name == Collection.LAMPS
        assert (item.x, item.y) == (0.3, 0.4)
        assert session.selected_id == item.id

    def test_container_origin_applied(self, session):
        session.set_container_rect(100, 50, 100, 100)
        session.set_mode(Mode.EDIT)
        session.set_tool("fan")
        tap(session, 130, 90)
        (_, item), = list(session.model.all_items())
        assert (item.x, item.y) == (0.3, 0.4)

    def test_view_tap_creates_nothing(self, session):
        session.set_tool("lamp")
        tap(session, 30, 40)
        assert session.model.count() == 0

    def test_view_tap_on_entity_forwarded(self, session, taps):
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        tap(session, 52, 48)
        assert taps == [(Collection.LAMPS, "lamp_1")]
        assert session.selected_id is None

    def test_edit_tap_on_entity_selects(self, session, taps):
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        session.set_mode(Mode.EDIT)
        tap(session, 52, 48)
        assert session.selected_id == "lamp_1"
        assert taps == []

    def test_background_tap_clears_selection(self, session):
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        session.set_mode(Mode.EDIT)
        session.select("lamp_1")
        tap(session, 5, 5)
        assert session.selected_id is None

    def test_pan_is_not_a_tap(self, session):
        session.set_mode(Mode.EDIT)
        session.set_tool("lamp")
        drag(session, (10, 10), (40, 10))
        assert session.model.count() == 0
        assert session.viewport.translate.x() == 30


class TestGestures:
    """Tests for pointer routing"""

    def test_view_mode_pans_over_entities(self, session):
        lamp = add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        session.dispatch(PointerInput("down", 0, 50, 50))
        assert session.interaction == Interaction.PANNING
        session.dispatch(PointerInput("move", 0, 70, 50))
        session.dispatch(PointerInput("up", 0, 70, 50))
        assert lamp.x == 0.5
        assert session.viewport.translate.x() == 20

    def test_edit_mode_drags_entity(self, session):
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        session.set_mode(Mode.EDIT)
        depth = session.history.undo_depth

        session.dispatch(PointerInput("down", 0, 50, 50))
        assert session.interaction == Interaction.DRAGGING
        session.dispatch(PointerInput("move", 0, 60, 55))
        session.dispatch(PointerInput("move", 0, 70, 50))
        session.dispatch(PointerInput("up", 0, 70, 50))

        it = session.model.find("lamp_1")[1]
        assert (it.x, it.y) == (0.7, 0.5)
        assert session.history.undo_depth == depth + 1
        assert session.interaction == Interaction.IDLE
        assert session.viewport.translate.x() == 0

    def test_lost_mouse_up_recovers(self, session):
        lamp = add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        session.set_mode(Mode.EDIT)
        session.dispatch(PointerInput("down", 0, 50, 50))
        session.dispatch(PointerInput("move", 0, 80, 50))
        # release never delivered
        session.dispatch(PointerInput("down", 0, 10, 10))
        assert not session.drag.active
        assert session.model.find("lamp_1")[1].x == 0.5
        assert session.interaction == Interaction.PANNING

    def test_pinch_through_session(self, session):
        session.set_mode(Mode.EDIT)
        session.set_tool("lamp")
        session.dispatch(PointerInput("down", 1, 40, 50, "touch"))
        session.dispatch(PointerInput("down", 2, 60, 50, "touch"))
        session.dispatch(PointerInput("move", 1, 30, 50, "touch"))
        session.dispatch(PointerInput("move", 2, 70, 50, "touch"))
        assert session.interaction == Interaction.PINCHING
        assert session.viewport.scale == pytest.approx(2.0)

        session.dispatch(PointerInput("up", 2, 70, 50, "touch"))
        session.dispatch(PointerInput("up", 1, 30, 50, "touch"))
        assert session.interaction == Interaction.IDLE
        assert session.model.count() == 0

    def test_pointer_cancel_resets(self, session):
        session.dispatch(PointerInput("down", 1, 40, 50, "touch"))
        session.dispatch(PointerInput("cancel", 1, 40, 50, "touch"))
        assert session.interaction == Interaction.IDLE

    def test_wheel_zooms(self, session):
        assert session.dispatch(WheelInput(-120, 50, 50))
        assert session.viewport.scale == pytest.approx(1.1275, abs=1e-4)

    def test_wheel_ignored_while_drawing(self, session):
        session.set_mode(Mode.EDIT)
        session.start_drawing("strip")
        assert not session.dispatch(WheelInput(-120, 50, 50))
        assert session.viewport.scale == 1.0

    def test_unknown_pointer_kind(self, session):
        with pytest.raises(ValueError):
            session.dispatch(PointerInput("hover", 0, 1, 1))


class TestDrawingThroughSession:
    """Tests for drawing via dispatched input"""

    def test_clicks_add_points_and_enter_finishes(self, session):
        session.set_mode(Mode.EDIT)
        ent_id = session.start_drawing("strip")
        assert session.interaction == Interaction.DRAWING
        tap(session, 10, 10)
        tap(session, 50, 10)
        assert session.dispatch(KeyInput("Enter"))

        assert session.model.find(ent_id)[1].points == [(0.1, 0.1), (0.5, 0.1)]
        assert session.selected_id == ent_id
        assert session.interaction == Interaction.IDLE

    def test_second_finger_adds_no_point(self, session):
        session.set_mode(Mode.EDIT)
        ent_id = session.start_drawing("heating")
        session.dispatch(PointerInput("down", 1, 10, 10, "touch"))
        session.dispatch(PointerInput("down", 2, 50, 50, "touch"))
        assert len(session.model.find(ent_id)[1].points) == 1

    def test_start_needs_edit_mode(self, session):
        assert session.start_drawing("strip") is None

    def test_undo_past_start_ends_drawing(self, session):
        session.set_mode(Mode.EDIT)
        ent_id = session.start_drawing("strip")
        tap(session, 10, 10)
        session.undo()
        session.undo()
        assert session.model.find(ent_id) is None
        assert not session.drawing.active

    def test_backspace_shortens_selected(self, session):
        strip = add(session, Collection.STRIPS,
                    PolylineItem("strip_1", [(0.1, 0.1), (0.5, 0.1), (0.5, 0.5)]))
        session.set_mode(Mode.EDIT)
        session.select(strip.id)
        assert session.dispatch(KeyInput("Backspace"))
        assert session.model.find("strip_1")[1].points == [(0.1, 0.1), (0.5, 0.1)]


class TestHitTest:
    """Tests for entity hit testing"""

    def test_point_radius(self, session):
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        assert session.hit_test(QPointF(60, 60))[1].id == "lamp_1"
        assert session.hit_test(QPointF(70, 70)) is None

    def test_polyline_segment_distance(self, session):
        add(session, Collection.STRIPS, PolylineItem("strip_1", [(0.1, 0.8), (0.9, 0.8)]))
        assert session.hit_test(QPointF(50, 86))[1].id == "strip_1"
        assert session.hit_test(QPointF(50, 90)) is None

    def test_points_win_over_polylines(self, session):
        add(session, Collection.STRIPS, PolylineItem("strip_1", [(0.1, 0.8), (0.9, 0.8)]))
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.8))
        assert session.hit_test(QPointF(50, 80))[1].id == "lamp_1"

    def test_later_entity_on_top(self, session):
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        add(session, Collection.LAMPS, PointItem("lamp_2", 0.52, 0.5))
        assert session.hit_test(QPointF(51, 50))[1].id == "lamp_2"

    def test_follows_zoom(self, session):
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        session.viewport.scale = 2.0
        assert session.hit_test(QPointF(100, 100)) is not None
        assert session.hit_test(QPointF(50, 50)) is None


class TestEditing:
    """Tests for delete, undo and remote refresh"""

    def test_delete_selected(self, session):
        add(session, Collection.LAMPS, PointItem("lamp_1", 0.5, 0.5))
        session.set_mode(Mode.EDIT)
        session.select("lamp_1")
        assert session.dispatch(KeyInput("Delete"))
        assert session.model.count() == 0
        assert session.selected_id is None

        session.dispatch(KeyInput("z"))
        assert session.model.count() == 1
        session.dispatch(KeyInput("y"))
        assert session.model.count() == 0

    def test_delete_requires_selection(self, session):
        session.set_mode(Mode.EDIT)
        assert not session.delete_selected()

    def test_remote_refresh_suppressed_in_edit_mode(self, session):
        session.set_mode(Mode.EDIT)
        doc = {"lamps": [{"id": "lamp_9", "x": 0.1, "y": 0.1}]}
        assert not session.apply_remote_document(doc)
        assert session.model.count() == 0

    def test_remote_refresh_applied_in_view_mode(self, session):
        store = session.store
        writes = store.writes
        doc = {"lamps": [{"id": "lamp_9", "x": 0.1, "y": 0.1}]}
        assert session.apply_remote_document(doc)
        assert session.model.find("lamp_9") is not None
        assert store.writes == writes + 1
        assert store.read(STORAGE_KEY)["lamps"][0]["id"] == "lamp_9"

    def test_remote_refresh_rejects_non_object(self, session):
        assert not session.apply_remote_document(["lamps"])

    def test_loads_stored_layout(self):
        store = MemoryStore({STORAGE_KEY: {"lamps": [{"id": "lamp_1", "x": 0.2, "y": 0.2}]}})
        s = EditorSession(store)
        assert s.model.find("lamp_1") is not None
        assert s.history.undo_depth == 0

    def test_on_change_notified(self):
        calls = []
        s = EditorSession(MemoryStore(), on_change=lambda: calls.append(1))
        calls.clear()
        s.dispatch(WheelInput(-120, 10, 10))
        assert calls

    def test_close_detaches(self, session):
        session.set_mode(Mode.EDIT)
        session.start_drawing("strip")
        session.close()
        assert not session.drawing.active
        assert not session.dispatch(WheelInput(-120, 10, 10))


class TestAutoFitLatch:
    """Tests that any first gesture stops the one-time fit"""

    def test_drag_first_then_resize(self):
        s = EditorSession(MemoryStore())
        s.set_image_size(400, 400)
        s.set_container_rect(0, 0, 200, 200)
        assert s.viewport.scale == 0.5
        add(s, Collection.LAMPS, PointItem("lamp_1", 0.25, 0.25))
        s.set_mode(Mode.EDIT)

        drag(s, (50, 50), (90, 50))
        assert s.model.find("lamp_1")[1].x == pytest.approx(0.45)

        s.set_container_rect(0, 0, 300, 300)
        assert s.viewport.interacted
        assert s.viewport.scale == 0.5
        assert (s.viewport.translate.x(), s.viewport.translate.y()) == (0, 0)

    def test_drawing_click_first_then_resize(self, session):
        session.set_mode(Mode.EDIT)
        session.start_drawing("strip")
        tap(session, 20, 20)

        session.set_container_rect(0, 0, 300, 300)
        assert session.viewport.interacted
        assert (session.viewport.translate.x(), session.viewport.translate.y()) == (0, 0)
