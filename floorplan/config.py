"""
Floorplan editor configuration
==============================

Paths and runtime settings. Every value can be overridden from the
environment so the editor can be pointed at another house without edits.
"""

from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Optional

# Root directory of the project
PROJECT_ROOT        = Path(__file__).parent.parent

# Local durable storage (the layout document lives in one JSON file)
DATA_DIR            = Path(os.getenv("FLOORPLAN_DATA_DIR", str(Path.home() / ".floorplan")))
LAYOUT_FILE         = DATA_DIR / "layout.json"

# Background floorplan image
BACKGROUND_PATH     = Path(os.getenv("FLOORPLAN_BACKGROUND", str(PROJECT_ROOT / "assets" / "pohjakuva.svg")))

# Shared layout file acting as the remote store; empty disables remote sync
_remote             = os.getenv("FLOORPLAN_REMOTE_PATH", "")
REMOTE_PATH: Optional[Path] = Path(_remote) if _remote else None

# Background refresh period from the remote store (ms); 0 disables it
REFRESH_MS          = int(os.getenv("FLOORPLAN_REFRESH_MS", "30000"))

THEME_PATH          = PROJECT_ROOT / "floorplan_theme.qss"

LOG_LEVEL           = os.getenv("FLOORPLAN_LOG_LEVEL", "INFO").upper()
LOG_FORMAT          = "%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format=LOG_FORMAT,
    )
