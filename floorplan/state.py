from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from .models import (ALL_COLLECTIONS, DEFAULT_KIND, Collection, PointItem, PolylineItem,
                     is_polyline)
from .utils import round_rel

logger = logging.getLogger(__name__)

Item = Union[PointItem, PolylineItem]

_POINT_KEYS = {"id", "x", "y", "kind", "on", "label", "relayId"}
_LINE_KEYS = {"id", "points", "on", "label", "relayId"}


def _relay(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None

def item_to_dict(it: Item) -> Dict[str, Any]:
    if isinstance(it, PolylineItem):
        d: Dict[str, Any] = {"id": it.id, "points": [{"x": x, "y": y} for x, y in it.points], "on": it.on}
    else:
        d = {"id": it.id, "kind": it.kind, "x": it.x, "y": it.y, "on": it.on}
    if it.label:
        d["label"] = it.label
    if it.relay_id is not None:
        d["relayId"] = it.relay_id
    d.update(it.extra)
    return d

def item_from_dict(collection: str, d: Dict[str, Any]) -> Item:
    """Raises KeyError/TypeError/ValueError for entities that cannot be read."""
    if not isinstance(d, dict):
        raise TypeError(f"entity is {type(d).__name__}, not an object")
    ent_id = str(d["id"])
    if is_polyline(collection):
        keys = _LINE_KEYS
        pts = [(round_rel(float(p["x"])), round_rel(float(p["y"]))) for p in d.get("points") or []]
        item: Item = PolylineItem(ent_id, pts)
    else:
        keys = _POINT_KEYS
        item = PointItem(ent_id, round_rel(float(d["x"])), round_rel(float(d["y"])),
                         str(d.get("kind") or DEFAULT_KIND.get(collection, "lamp")))
    item.on = bool(d.get("on", False))
    item.label = str(d.get("label") or "")
    item.relay_id = _relay(d.get("relayId"))
    item.extra = {k: v for k, v in d.items() if k not in keys}
    return item


class LayoutModel:
    """The composite layout: one list of entities per collection name."""

    def __init__(self):
        self._collections: Dict[str, List[Item]] = {name: [] for name in ALL_COLLECTIONS}

    # setters used by history mutators
    def items(self, collection: str) -> List[Item]:
        return self._collections[collection]

    def set_items(self, collection: str, items: List[Item]):
        if collection not in self._collections:
            raise ValueError(f"unknown collection: {collection}")
        self._collections[collection] = list(items)

    def all_items(self):
        for name in ALL_COLLECTIONS:
            for it in self._collections[name]:
                yield name, it

    def find(self, entity_id: str) -> Optional[Tuple[str, Item]]:
        for name, it in self.all_items():
            if it.id == entity_id:
                return name, it
        return None

    def add(self, collection: str, item: Item):
        self.items(collection).append(item)

    def remove(self, entity_id: str) -> bool:
        found = self.find(entity_id)
        if not found:
            return False
        name, it = found
        self._collections[name] = [x for x in self._collections[name] if x is not it]
        return True

    def clear(self):
        for name in ALL_COLLECTIONS:
            self._collections[name] = []

    def count(self) -> int:
        return sum(len(v) for v in self._collections.values())

    # ---- document ----
    def to_document(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: [item_to_dict(it) for it in self._collections[name]] for name in ALL_COLLECTIONS}

    def replace_all(self, document: Any):
        fresh = LayoutModel.from_document(document)
        self._collections = fresh._collections

    @classmethod
    def from_document(cls, document: Any) -> "LayoutModel":
        model = cls()
        if not isinstance(document, dict):
            if document is not None:
                logger.warning("Layout document is %s, expected an object; using empty layout",
                               type(document).__name__)
            return model
        for name in ALL_COLLECTIONS:
            raw = document.get(name) or []
            if not isinstance(raw, list):
                logger.warning("Collection %s is not a list; ignored", name)
                continue
            for d in raw:
                try:
                    model._collections[name].append(item_from_dict(name, d))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Skipping malformed entity in %s: %s", name, e)
        return model

    def __repr__(self) -> str:
        counts = ", ".join(f"{n}={len(self._collections[n])}" for n in ALL_COLLECTIONS if self._collections[n])
        return f"LayoutModel({counts})"


def empty_document() -> Dict[str, List[Dict[str, Any]]]:
    return {name: [] for name in ALL_COLLECTIONS}

__all__ = ["LayoutModel", "Item", "item_to_dict", "item_from_dict", "empty_document", "Collection"]
