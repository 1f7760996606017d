"""File system storage for screenshots captured by browser sessions."""

import re
import time
from pathlib import Path
from typing import List, Optional

from .logging_config import get_logger

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class ArtifactStorage:
    """Manages file system operations for captured artifacts."""

    def __init__(self, base_path: Path):
        """
        Initialize artifact storage.

        Args:
            base_path: Directory where screenshots are written
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.logger = get_logger(__name__)

    def save_screenshot(self, image: bytes, filename: Optional[str] = None) -> Path:
        """
        Write PNG bytes to disk.

        Args:
            image: PNG image bytes
            filename: Target file name; ``screenshot-<millis>.png`` when omitted

        Returns:
            Path of the written file
        """
        if not filename:
            filename = f"screenshot-{int(time.time() * 1000)}.png"

        # Only keep the final path component so callers cannot escape base_path
        safe_name = _UNSAFE_CHARS.sub("_", Path(filename).name)
        if not safe_name.lower().endswith(".png"):
            safe_name += ".png"

        file_path = self.base_path / safe_name
        with open(file_path, "wb") as f:
            f.write(image)

        self.logger.debug(f"Saved screenshot: {file_path} ({len(image)} bytes)")
        return file_path

    def list_screenshots(self) -> List[Path]:
        """
        Get all stored screenshots.

        Returns:
            Screenshot paths, newest first
        """
        files = [p for p in self.base_path.glob("*.png") if p.is_file()]
        files.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return files
