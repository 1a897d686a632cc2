"""
Session and workspace API routes for the livecode playground.
"""

from fastapi import APIRouter, HTTPException, Request

from .source_store import InvalidWorkspaceId

router = APIRouter()


@router.get("/session")
async def get_session(request: Request):
    """Return the caller's session token and the workspace id to edit.

    The editor page sends this ``user_id`` with its edit and resume messages.
    """
    config = request.app.state.config
    token = request.state.session_token
    return {
        "token": token,
        "user_id": config.single_user_id or token,
        "is_new": request.state.session_is_new,
    }


@router.get("/workspaces")
async def list_workspaces(request: Request):
    """List all workspaces present on disk."""
    workspaces = request.app.state.store.list_workspaces()
    return {"workspaces": workspaces, "total": len(workspaces)}


@router.get("/workspaces/{user_id}")
async def get_workspace_status(user_id: str, request: Request):
    """Get the compile/publish state of one workspace."""
    try:
        return request.app.state.pipeline.status(user_id)
    except InvalidWorkspaceId as e:
        raise HTTPException(status_code=404, detail=str(e))
