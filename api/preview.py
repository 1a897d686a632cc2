"""
Preview routes for the livecode playground.

The editor page embeds ``/preview/<user_id>/`` in a frame; the frame loads the
compiled artifact and any static assets from ``/preview/<user_id>/<file>``.
These routes only read from the source store.
"""

import mimetypes
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse

from .source_store import SourceStore

router = APIRouter(prefix="/preview", tags=["preview"])

_SCRIPT_SUFFIXES = {".js", ".mjs"}
_INDEX_FILE = "index.html"


def get_store(request: Request) -> SourceStore:
    return request.app.state.store


def _media_type(path: Path) -> str:
    if path.suffix.lower() in _SCRIPT_SUFFIXES:
        return "application/javascript"
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


def _serve(store: SourceStore, user_id: str, file_name: str) -> FileResponse:
    path = store.resolve_file(user_id, file_name)
    if path is None:
        raise HTTPException(status_code=404, detail=f"{file_name} not found for {user_id}")
    return FileResponse(
        str(path),
        media_type=_media_type(path),
        headers={"Cache-Control": "no-store"},
    )


@router.get("/{user_id}/")
async def preview_index(user_id: str, store: SourceStore = Depends(get_store)):
    """Serve the preview frame's HTML shell."""
    return _serve(store, user_id, _INDEX_FILE)


@router.get("/{user_id}/{file_name}")
async def preview_file(user_id: str, file_name: str, store: SourceStore = Depends(get_store)):
    """Serve a compiled artifact or static asset from a user's workspace."""
    return _serve(store, user_id, file_name)
