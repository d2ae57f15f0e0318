"""
Filesystem collaborator for the compile orchestrator.
The desktop shell injects its own implementation; LocalFileSystem writes
straight to disk and is what tests and headless builds use.
"""

import asyncio
import shutil
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from pydantic import BaseModel

from modstudio.config.settings import settings

logger = logging.getLogger(__name__)


class WriteResult(BaseModel):
    success: bool
    error: Optional[str] = None


class FileSystem(ABC):
    """Async directory and file operations. Paths are '/'-separated strings."""

    @abstractmethod
    async def select_directory(self) -> Optional[str]:
        """Ask for an output directory. None when the user cancels."""

    @abstractmethod
    async def create_directory(self, path: str) -> None:
        """Create a directory and any missing parents. Existing directories are fine."""

    @abstractmethod
    async def delete_directory(self, path: str) -> None:
        """Recursively delete a directory. A missing directory is fine."""

    @abstractmethod
    async def write_file(self, path: str, content: str) -> WriteResult:
        ...


class LocalFileSystem(FileSystem):
    """Local disk. Blocking calls run in a worker thread."""

    def __init__(self, default_directory: Optional[str] = None):
        self.default_directory = default_directory or settings.default_output_dir

    async def select_directory(self) -> Optional[str]:
        return self.default_directory

    async def create_directory(self, path: str) -> None:
        await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)

    async def delete_directory(self, path: str) -> None:
        target = Path(path)
        if target.exists():
            logger.debug(f"[FS] Removing {path}")
            await asyncio.to_thread(shutil.rmtree, target)

    async def write_file(self, path: str, content: str) -> WriteResult:
        def _write():
            with open(path, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)

        try:
            await asyncio.to_thread(_write)
            return WriteResult(success=True)
        except OSError as e:
            logger.warning(f"[FS] Write failed for {path}: {e}")
            return WriteResult(success=False, error=str(e))
