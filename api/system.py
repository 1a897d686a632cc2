"""
System API routes for the livecode playground.

This module provides FastAPI routes for health and connection statistics.
"""

import platform
import sys

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "livecode playground is running",
        "compiler": request.app.state.pipeline.compiler.name,
    }


@router.get("/system/info")
async def system_info():
    """Get interpreter and platform information."""
    return {
        "python": {
            "version": sys.version,
            "platform": sys.platform,
        },
        "system": {
            "os": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
        },
    }


@router.get("/ws/stats")
async def get_websocket_stats(request: Request):
    """Get edit channel connection statistics."""
    return {
        "total_connections": request.app.state.edit_channel.get_connection_count(),
        "sessions": len(request.app.state.sessions),
    }
