"""
API package for the livecode playground FastAPI backend.

This package provides:
- Runtime configuration (app_config.py)
- Session registry (sessions.py)
- Per-user workspace files (source_store.py)
- Compiler adapters (compiler.py)
- The edit -> compile -> publish pipeline (pipeline.py)
- Preview file serving (preview.py)
- Session, workspace and system routes (workspace.py, system.py)
"""

from .app_config import PlaygroundConfig
from .compiler import CompileError, CompileTimeout, Compiler, build_compiler
from .pipeline import EditOutcome, EditPipeline
from .sessions import Session, SessionRegistry
from .source_store import InvalidWorkspaceId, SourceStore

__all__ = [
    "PlaygroundConfig",
    "CompileError",
    "CompileTimeout",
    "Compiler",
    "build_compiler",
    "EditOutcome",
    "EditPipeline",
    "Session",
    "SessionRegistry",
    "InvalidWorkspaceId",
    "SourceStore",
]
