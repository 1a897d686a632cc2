"""
Runtime configuration for the livecode playground backend.

Every setting can be overridden through a ``LIVECODE_*`` environment variable.
The workspace root falls back to a platform-specific data directory:
   - Linux: ~/.local/share/livecode-playground/workspaces
   - macOS: ~/Library/Application Support/livecode-playground/workspaces
   - Windows: %LOCALAPPDATA%/livecode/livecode-playground/workspaces
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

import platformdirs

_APP_NAME = "livecode-playground"
_APP_AUTHOR = "livecode"

# Value of ``compiler`` that selects the in-process type stripper.
STRIP_COMPILER = "strip"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _default_workspace_root() -> Path:
    return Path(platformdirs.user_data_dir(_APP_NAME, _APP_AUTHOR)) / "workspaces"


@dataclass
class PlaygroundConfig:
    """Settings shared by the pipeline, the edit channel and the HTTP routes."""

    workspace_root: Path = field(default_factory=_default_workspace_root)
    preview_assets_dir: Optional[Path] = None
    compiler: str = STRIP_COMPILER
    compile_timeout: float = 10.0
    max_concurrent_compiles: int = 4
    source_file_name: str = "main.ts"
    artifact_file_name: str = "main.js"
    default_source: str = ""
    session_cookie_name: str = "livecode_session"
    cookie_secure: bool = False
    single_user_id: Optional[str] = None
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3200

    def __post_init__(self):
        self.workspace_root = Path(self.workspace_root)
        if self.preview_assets_dir is not None:
            self.preview_assets_dir = Path(self.preview_assets_dir)
        if self.compile_timeout <= 0:
            raise ValueError(f"compile_timeout must be positive, got {self.compile_timeout}")
        if self.max_concurrent_compiles < 1:
            raise ValueError(
                f"max_concurrent_compiles must be at least 1, got {self.max_concurrent_compiles}"
            )
        if self.source_file_name == self.artifact_file_name:
            raise ValueError("source and artifact file names must differ")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PlaygroundConfig":
        """Build a configuration from ``LIVECODE_*`` environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Raises:
            ValueError: If a numeric setting cannot be parsed
        """
        env = os.environ if environ is None else environ
        kwargs: Dict[str, object] = {}

        if env.get("LIVECODE_WORKSPACE_ROOT"):
            kwargs["workspace_root"] = Path(env["LIVECODE_WORKSPACE_ROOT"]).expanduser()
        if env.get("LIVECODE_PREVIEW_ASSETS"):
            kwargs["preview_assets_dir"] = Path(env["LIVECODE_PREVIEW_ASSETS"]).expanduser()
        if env.get("LIVECODE_COMPILER"):
            kwargs["compiler"] = env["LIVECODE_COMPILER"].strip()
        if env.get("LIVECODE_COMPILE_TIMEOUT"):
            kwargs["compile_timeout"] = _parse_number(
                env, "LIVECODE_COMPILE_TIMEOUT", float
            )
        if env.get("LIVECODE_MAX_COMPILES"):
            kwargs["max_concurrent_compiles"] = _parse_number(env, "LIVECODE_MAX_COMPILES", int)
        if env.get("LIVECODE_SOURCE_FILE"):
            kwargs["source_file_name"] = env["LIVECODE_SOURCE_FILE"]
        if env.get("LIVECODE_ARTIFACT_FILE"):
            kwargs["artifact_file_name"] = env["LIVECODE_ARTIFACT_FILE"]
        if "LIVECODE_DEFAULT_SOURCE" in env:
            kwargs["default_source"] = env["LIVECODE_DEFAULT_SOURCE"]
        if env.get("LIVECODE_SESSION_COOKIE"):
            kwargs["session_cookie_name"] = env["LIVECODE_SESSION_COOKIE"]
        if env.get("LIVECODE_COOKIE_SECURE"):
            kwargs["cookie_secure"] = env["LIVECODE_COOKIE_SECURE"].strip().lower() in _TRUE_VALUES
        if env.get("LIVECODE_SINGLE_USER"):
            kwargs["single_user_id"] = env["LIVECODE_SINGLE_USER"].strip()
        if env.get("LIVECODE_LOG_LEVEL"):
            kwargs["log_level"] = env["LIVECODE_LOG_LEVEL"]
        if env.get("LIVECODE_HOST"):
            kwargs["host"] = env["LIVECODE_HOST"]
        if env.get("LIVECODE_PORT"):
            kwargs["port"] = _parse_number(env, "LIVECODE_PORT", int)

        return cls(**kwargs)

    @property
    def uses_subprocess_compiler(self) -> bool:
        return self.compiler != STRIP_COMPILER


def _parse_number(env: Mapping[str, str], name: str, kind):
    raw = env[name]
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"{name} must be a {kind.__name__}, got {raw!r}") from None
