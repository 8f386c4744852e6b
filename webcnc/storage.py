"""Local file store for uploaded G-code design files."""

from __future__ import annotations

import logging
import time
from pathlib import Path

logger = logging.getLogger(__name__)

FILES_URL_PREFIX = "/api/designs/files"


class DesignStore:
    """Keeps uploaded G-code files under a single directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def save(self, design_id: int, data: bytes) -> str:
        """Store *data* for *design_id* and return the stored file name."""
        self.root.mkdir(parents=True, exist_ok=True)
        name = f"design_{design_id}_{int(time.time() * 1000)}.gcode"
        (self.root / name).write_bytes(data)
        logger.info("Stored G-code for design %s as %s (%d bytes)", design_id, name, len(data))
        return name

    def path_for(self, name: str) -> Path | None:
        """Resolve a stored file name, or None if it is unsafe or missing."""
        if not name or Path(name).name != name or name.startswith("."):
            return None
        path = self.root / name
        return path if path.is_file() else None

    @staticmethod
    def public_url(name: str) -> str:
        return f"{FILES_URL_PREFIX}/{name}"
