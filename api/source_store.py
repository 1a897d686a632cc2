"""
On-disk source store for the livecode playground.

Each user owns one workspace directory under the configured root:

    <workspace_root>/<user_id>/
        main.ts     last raw source the user typed
        main.js     last artifact that compiled successfully (absent until then)

Writes go through a temporary file in the same directory followed by a
rename, so readers (resume requests, preview fetches) never see a partially
written file.
"""

import re
import uuid
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiofiles.os

from .shared.logger import get_logger

logger = get_logger(__name__)

_USER_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")


class InvalidWorkspaceId(ValueError):
    """Raised when a user id cannot be used as a workspace directory name."""


def is_valid_user_id(user_id: object) -> bool:
    return isinstance(user_id, str) and bool(_USER_ID_RE.match(user_id))


def _is_plain_file_name(file_name: str) -> bool:
    if not file_name or file_name.startswith("."):
        return False
    if "/" in file_name or "\\" in file_name or "\x00" in file_name:
        return False
    return Path(file_name).name == file_name


class SourceStore:
    """Owns the per-user workspace directories and the files inside them."""

    def __init__(
        self,
        root: Path,
        source_file_name: str = "main.ts",
        artifact_file_name: str = "main.js",
        assets_dir: Optional[Path] = None,
    ):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.source_file_name = source_file_name
        self.artifact_file_name = artifact_file_name
        self.assets_dir = Path(assets_dir) if assets_dir is not None else None

    def workspace_dir(self, user_id: str) -> Path:
        """Return the workspace directory for a user (not created).

        Raises:
            InvalidWorkspaceId: If the id is not a safe directory name
        """
        if not is_valid_user_id(user_id):
            raise InvalidWorkspaceId(f"Invalid workspace id: {user_id!r}")
        return self.root / user_id

    def source_path(self, user_id: str) -> Path:
        return self.workspace_dir(user_id) / self.source_file_name

    def artifact_path(self, user_id: str) -> Path:
        return self.workspace_dir(user_id) / self.artifact_file_name

    # ============= Raw source =============

    async def write_source(self, user_id: str, text: str) -> None:
        """Persist the raw source text for a user."""
        await self._atomic_write(self.source_path(user_id), text)

    async def read_source(self, user_id: str) -> Optional[str]:
        """Read back the raw source, or None if the user never sent an edit."""
        return await self._read(self.source_path(user_id))

    def has_source(self, user_id: str) -> bool:
        return self.source_path(user_id).is_file()

    # ============= Compiled artifact =============

    async def write_artifact(self, user_id: str, text: str) -> None:
        """Publish a compiled artifact for a user."""
        await self._atomic_write(self.artifact_path(user_id), text)

    async def read_artifact(self, user_id: str) -> Optional[str]:
        """Read the published artifact, or None if nothing compiled yet."""
        return await self._read(self.artifact_path(user_id))

    def has_artifact(self, user_id: str) -> bool:
        return self.artifact_path(user_id).is_file()

    # ============= Lookup =============

    def resolve_file(self, user_id: str, file_name: str) -> Optional[Path]:
        """
        Locate a file to serve for a user's preview frame.

        The user's workspace is searched first, then the shared preview
        assets directory.

        Args:
            user_id: Workspace owner
            file_name: Plain file name (no directories, no leading dot)

        Returns:
            Path of an existing file, or None
        """
        if not is_valid_user_id(user_id) or not _is_plain_file_name(file_name):
            return None

        candidates = [self.root / user_id / file_name]
        if self.assets_dir is not None:
            candidates.append(self.assets_dir / file_name)

        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def list_workspaces(self) -> List[str]:
        """List user ids that have a workspace directory."""
        if not self.root.exists():
            return []
        return sorted(
            entry.name
            for entry in self.root.iterdir()
            if entry.is_dir() and is_valid_user_id(entry.name)
        )

    # ============= Internals =============

    async def _read(self, path: Path) -> Optional[str]:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8", newline="") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def _atomic_write(self, path: Path, text: str) -> None:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        temp_path = path.parent / f".{path.name}.{uuid.uuid4().hex}.tmp"
        try:
            async with aiofiles.open(temp_path, "w", encoding="utf-8", newline="") as f:
                await f.write(text)
            await aiofiles.os.replace(temp_path, path)
        except BaseException:
            try:
                await aiofiles.os.remove(temp_path)
            except FileNotFoundError:
                pass
            raise
        logger.debug("Wrote %s (%d chars)", path, len(text))
