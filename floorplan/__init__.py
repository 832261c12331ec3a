from .utils import *
from .models import Mode, Interaction, Collection, PointItem, PolylineItem, ALL_COLLECTIONS
from .mapper import (screen_to_world, world_to_screen, world_to_relative, relative_to_world,
                     screen_to_relative, relative_to_screen)
from .viewport import ViewportTransform, PinchBaseline
from .state import LayoutModel, empty_document
from .storage import MemoryStore, LayoutStore
from .undo import LayoutHistory
from .factory import ItemFactory, POINT_TOOLS, POLYLINE_TOOLS
from .drawing import DrawingSession
from .drag import DragController
from .session import EditorSession, PointerInput, WheelInput, KeyInput
from .sync import SyncResult, RemoteChannel, FileChannel, RemoteSync
# the widget layer (floorplan.canvas) is imported by the application only

__all__ = [
    "Mode", "Interaction", "Collection", "PointItem", "PolylineItem", "ALL_COLLECTIONS",
    "ViewportTransform", "PinchBaseline", "LayoutModel", "empty_document",
    "MemoryStore", "LayoutStore", "LayoutHistory", "ItemFactory", "POINT_TOOLS", "POLYLINE_TOOLS",
    "DrawingSession", "DragController", "EditorSession", "PointerInput", "WheelInput", "KeyInput",
    "SyncResult", "RemoteChannel", "FileChannel", "RemoteSync",
    "screen_to_world", "world_to_screen", "world_to_relative", "relative_to_world",
    "screen_to_relative", "relative_to_screen",
]
