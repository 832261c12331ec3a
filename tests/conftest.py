# Floorplan imports
from floorplan.drawing import DrawingSession
from floorplan.factory import ItemFactory
from floorplan.state import LayoutModel
from floorplan.storage import MemoryStore
from floorplan.undo import LayoutHistory
from floorplan.viewport import ViewportTransform

# Third-party imports
import pytest
from PySide6.QtCore import QSizeF


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def model():
    return LayoutModel()


@pytest.fixture
def history(model, store):
    """History with the initial load done, so commits are saved"""
    h = LayoutHistory(model, store)
    h.load_from_storage()
    return h


@pytest.fixture
def viewport():
    """Scale 1, no translation, 100 x 100 px image"""
    vp = ViewportTransform()
    vp.set_image_size(QSizeF(100, 100))
    return vp


@pytest.fixture
def factory(model, history, viewport):
    return ItemFactory(model, history, viewport)


@pytest.fixture
def drawing(model, history, viewport, factory):
    return DrawingSession(model, history, viewport, factory)
