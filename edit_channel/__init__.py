"""
Edit channel for the livecode playground.

Carries editor contents from the browser to the compile pipeline and
reload signals back to the browser over a WebSocket connection.
"""

from .manager import ConnectionState, EditChannelManager, EditConnection
from .messages import (
    EditMessage,
    MalformedMessage,
    MessageKind,
    ReloadMessage,
    ResumeReply,
    ResumeRequest,
    UnknownMessage,
    parse_client_message,
)

__all__ = [
    "ConnectionState",
    "EditChannelManager",
    "EditConnection",
    "EditMessage",
    "MalformedMessage",
    "MessageKind",
    "ReloadMessage",
    "ResumeReply",
    "ResumeRequest",
    "UnknownMessage",
    "parse_client_message",
]
