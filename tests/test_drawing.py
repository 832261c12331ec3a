# Floorplan imports
from floorplan.models import Collection

# Third-party imports
import pytest
from PySide6.QtCore import QPointF


ORIGIN = QPointF(0, 0)


def points_of(model, entity_id):
    found = model.find(entity_id)
    return found[1].points if found else None


def click(drawing, x, y):
    return drawing.add_point(QPointF(x, y), ORIGIN)


class TestDrawingSession:
    """Tests for the polyline drawing state machine"""

    def test_strip_scenario(self, drawing, model, store):
        """Already axis-aligned step is kept as-is under snap90"""
        drawing.snap90 = True
        ent_id = drawing.start("strip")
        assert click(drawing, 10, 10)
        assert points_of(model, ent_id) == [(0.1, 0.1)]
        assert click(drawing, 50, 10)
        assert points_of(model, ent_id) == [(0.1, 0.1), (0.5, 0.1)]

        assert drawing.finish()
        assert not drawing.active
        stored = store.read_layout()["strips"][0]
        assert stored["points"] == [{"x": 0.1, "y": 0.1}, {"x": 0.5, "y": 0.1}]

    def test_heating_prefix(self, drawing, model):
        ent_id = drawing.start("heating")
        assert ent_id.startswith("heating_")
        assert model.find(ent_id)[0] == Collection.HEATING_PIPES

    def test_duplicate_point_discarded(self, drawing, model):
        ent_id = drawing.start("strip")
        click(drawing, 10, 10)
        assert not click(drawing, 10, 10)
        assert len(points_of(model, ent_id)) == 1

    def test_back_to_second_to_last_discarded(self, drawing, model):
        ent_id = drawing.start("strip")
        click(drawing, 10, 10)
        click(drawing, 50, 10)
        assert not click(drawing, 10, 10)
        assert len(points_of(model, ent_id)) == 2

    def test_snap90_zeroes_smaller_axis(self, drawing, model):
        drawing.snap90 = True
        ent_id = drawing.start("strip")
        click(drawing, 10, 10)
        click(drawing, 50, 20)
        click(drawing, 55, 60)
        assert points_of(model, ent_id) == [(0.1, 0.1), (0.5, 0.1), (0.5, 0.6)]

    def test_snap_collapse_is_discarded(self, drawing, model):
        """A step that snaps back onto the last point adds nothing"""
        drawing.snap90 = True
        ent_id = drawing.start("strip")
        click(drawing, 10, 10)
        assert not click(drawing, 10.001, 10)
        assert len(points_of(model, ent_id)) == 1

    def test_finish_with_one_point_deletes(self, drawing, model):
        ent_id = drawing.start("strip")
        click(drawing, 10, 10)
        assert not drawing.finish()
        assert model.find(ent_id) is None
        assert not drawing.active

    def test_cancel_always_deletes(self, drawing, model):
        ent_id = drawing.start("heating")
        click(drawing, 10, 10)
        click(drawing, 50, 10)
        click(drawing, 50, 50)
        drawing.cancel()
        assert model.find(ent_id) is None
        assert not drawing.active

    def test_each_point_is_undoable(self, drawing, model, history):
        ent_id = drawing.start("strip")
        click(drawing, 10, 10)
        click(drawing, 50, 10)
        assert history.undo_depth == 3

        history.undo()
        assert points_of(model, ent_id) == [(0.1, 0.1)]

    def test_start_rules(self, drawing):
        with pytest.raises(ValueError):
            drawing.start("lamp")
        assert drawing.start("strip") is not None
        assert drawing.start("heating") is None

    def test_add_point_when_idle(self, drawing):
        assert not click(drawing, 10, 10)

    def test_points_outside_image_are_clamped(self, drawing, model):
        ent_id = drawing.start("strip")
        click(drawing, -20, 140)
        assert points_of(model, ent_id) == [(0.0, 1.0)]


class TestShortenLast:
    """Tests for removing the last point of a finished polyline"""

    def test_pops_last_point(self, drawing, model):
        ent_id = drawing.start("strip")
        for x in (10, 50, 90):
            click(drawing, x, 10)
        drawing.finish()

        assert drawing.shorten_last(ent_id)
        assert points_of(model, ent_id) == [(0.1, 0.1), (0.5, 0.1)]

    def test_keeps_single_point(self, drawing, model):
        ent_id = drawing.start("strip")
        click(drawing, 10, 10)
        click(drawing, 50, 10)
        drawing.finish()
        drawing.shorten_last(ent_id)
        assert not drawing.shorten_last(ent_id)
        assert len(points_of(model, ent_id)) == 1

    def test_only_when_idle(self, drawing):
        ent_id = drawing.start("strip")
        click(drawing, 10, 10)
        click(drawing, 50, 10)
        assert not drawing.shorten_last(ent_id)
