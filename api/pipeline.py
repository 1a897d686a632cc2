"""
Edit pipeline: persist, compile and publish user edits.

Every edit is stamped with a per-user generation number when it arrives.
Raw source is written in generation order; compiled artifacts are published
only when their generation is newer than the last published one, so a slow
compile of an older edit can never replace the artifact of a newer edit.
Different users never wait on each other.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .compiler import CompileError, Compiler
from .shared.logger import get_logger
from .source_store import SourceStore

logger = get_logger(__name__)


def join_lines(lines: Sequence[str]) -> str:
    return "\n".join(lines)


def split_lines(text: str) -> List[str]:
    """Split stored text back into editor lines; empty text has no lines."""
    if not text:
        return []
    return text.split("\n")


@dataclass
class EditOutcome:
    """Result of applying one edit."""

    user_id: str
    generation: int
    published: bool = False
    stale: bool = False
    artifact: Optional[str] = None
    error: Optional[CompileError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "generation": self.generation,
            "published": self.published,
            "stale": self.stale,
            "error": self.error.to_dict() if self.error else None,
        }


class EditPipeline:
    """
    Applies edits for all users.

    Owns the per-user generation counters and workspace locks; the store owns
    the files and the compiler owns the transformation.
    """

    def __init__(
        self,
        store: SourceStore,
        compiler: Compiler,
        max_concurrent_compiles: int = 4,
        default_source: str = "",
    ):
        """Initialize the pipeline.

        Args:
            store: Workspace file store
            compiler: Compiler adapter used for every edit
            max_concurrent_compiles: Maximum number of compiles in flight
            default_source: Text returned on resume for users with no edits
        """
        self.store = store
        self.compiler = compiler
        self.default_source = default_source

        self._issued: Dict[str, int] = {}
        self._source_written: Dict[str, int] = {}
        self._published: Dict[str, int] = {}
        self._last_errors: Dict[str, Optional[CompileError]] = {}
        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._compile_slots = asyncio.Semaphore(max_concurrent_compiles)

    def _next_generation(self, user_id: str) -> int:
        generation = self._issued.get(user_id, 0) + 1
        self._issued[user_id] = generation
        return generation

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    async def apply_edit(self, user_id: str, lines: Sequence[str]) -> EditOutcome:
        """
        Persist an edit's source, compile it and publish the artifact.

        Args:
            user_id: Workspace owner
            lines: Full source as an ordered sequence of lines

        Returns:
            EditOutcome describing what was published

        Raises:
            InvalidWorkspaceId: If ``user_id`` is not a valid workspace id
        """
        self.store.workspace_dir(user_id)
        generation = self._next_generation(user_id)
        text = join_lines(lines)
        lock = self._lock_for(user_id)

        async with lock:
            if generation > self._source_written.get(user_id, 0):
                await self.store.write_source(user_id, text)
                self._source_written[user_id] = generation

        try:
            async with self._compile_slots:
                artifact = await self.compiler.compile(text)
        except CompileError as e:
            self._last_errors[user_id] = e
            logger.warning(
                "Compile failed for %s (generation %d): %s", user_id, generation, e
            )
            return EditOutcome(user_id=user_id, generation=generation, error=e)

        async with lock:
            if generation <= self._published.get(user_id, 0):
                logger.debug(
                    "Discarding stale artifact for %s (generation %d <= %d)",
                    user_id,
                    generation,
                    self._published[user_id],
                )
                return EditOutcome(user_id=user_id, generation=generation, stale=True)

            await self.store.write_artifact(user_id, artifact)
            self._published[user_id] = generation
            self._last_errors[user_id] = None

        logger.info("Published artifact for %s (generation %d)", user_id, generation)
        return EditOutcome(
            user_id=user_id,
            generation=generation,
            published=True,
            artifact=artifact,
        )

    async def resume(self, user_id: str) -> List[str]:
        """
        Return the last raw source a user sent, as lines.

        Raises:
            InvalidWorkspaceId: If ``user_id`` is not a valid workspace id
        """
        text = await self.store.read_source(user_id)
        if text is None:
            text = self.default_source
        return split_lines(text)

    def status(self, user_id: str) -> Dict[str, Any]:
        """Describe a workspace's pipeline state."""
        last_error = self._last_errors.get(user_id)
        return {
            "user_id": user_id,
            "has_source": self.store.has_source(user_id),
            "has_artifact": self.store.has_artifact(user_id),
            "generation": self._issued.get(user_id, 0),
            "published_generation": self._published.get(user_id, 0),
            "last_error": last_error.to_dict() if last_error else None,
        }
