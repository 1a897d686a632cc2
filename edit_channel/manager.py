"""
Edit channel connection manager for the livecode playground.

Each browser tab holds one WebSocket connection. The manager accepts it,
binds it to a session, and runs the per-connection protocol:

    connected --edit--> compiling --(published? reload)--> connected
    connected --resume--> (resume reply) --> connected
    connected --close--> closed

Messages from one connection are handled one at a time, in arrival order.
Workspaces outlive connections; closing a connection destroys nothing.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from http.cookies import SimpleCookie
from typing import Dict, List, Optional, Tuple

from fastapi import WebSocket

from api.pipeline import EditPipeline
from api.sessions import SessionRegistry
from api.shared.logger import get_logger
from api.source_store import InvalidWorkspaceId

from .messages import (
    EditMessage,
    MalformedMessage,
    MessageKind,
    ReloadMessage,
    ResumeReply,
    ResumeRequest,
    ServerMessage,
    parse_client_message,
)

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """Protocol state of one edit channel connection."""

    CONNECTED = "connected"
    COMPILING = "compiling"
    CLOSED = "closed"


@dataclass
class EditConnection:
    """An accepted WebSocket bound to a session."""

    websocket: WebSocket
    session_token: str
    state: ConnectionState = ConnectionState.CONNECTED
    connected_at: str = field(default_factory=lambda: datetime.now().isoformat())
    messages_handled: int = 0


class EditChannelManager:
    """
    Manages edit channel connections and dispatches their messages.
    """

    def __init__(
        self,
        pipeline: EditPipeline,
        sessions: SessionRegistry,
        cookie_name: str = "livecode_session",
        cookie_secure: bool = False,
        single_user_id: Optional[str] = None,
    ):
        """Initialize the edit channel manager.

        Args:
            pipeline: Pipeline that persists, compiles and publishes edits
            sessions: Registry resolving the session cookie
            cookie_name: Name of the session cookie
            cookie_secure: Whether to mark a newly issued cookie ``Secure``
            single_user_id: Route every message to this workspace when set
        """
        self.pipeline = pipeline
        self.sessions = sessions
        self.cookie_name = cookie_name
        self.cookie_secure = cookie_secure
        self.single_user_id = single_user_id

        self._connections: Dict[WebSocket, EditConnection] = {}
        self._lock = asyncio.Lock()

    # ============= Connection lifecycle =============

    def session_cookie_header(self, token: str) -> Tuple[bytes, bytes]:
        """Build the ``Set-Cookie`` header issuing a session token."""
        cookie: SimpleCookie = SimpleCookie()
        cookie[self.cookie_name] = token
        cookie[self.cookie_name]["path"] = "/"
        cookie[self.cookie_name]["httponly"] = True
        cookie[self.cookie_name]["samesite"] = "Strict"
        if self.cookie_secure:
            cookie[self.cookie_name]["secure"] = True
        return b"set-cookie", cookie.output(header="").strip().encode("latin-1")

    async def connect(self, websocket: WebSocket) -> EditConnection:
        """
        Accept a new WebSocket connection and bind it to a session.

        A missing or unknown session cookie creates a new session, and the
        accept response carries the cookie for it.
        """
        token, is_new = self.sessions.resolve(websocket.cookies.get(self.cookie_name))
        headers: List[Tuple[bytes, bytes]] = []
        if is_new:
            headers.append(self.session_cookie_header(token))
        await websocket.accept(headers=headers or None)

        connection = EditConnection(websocket=websocket, session_token=token)
        async with self._lock:
            self._connections[websocket] = connection

        logger.info("Edit channel connected (session %s)", token)
        return connection

    async def disconnect(self, connection: EditConnection) -> None:
        """Forget a connection. Persisted workspace state is left untouched."""
        connection.state = ConnectionState.CLOSED
        async with self._lock:
            self._connections.pop(connection.websocket, None)
        logger.info("Edit channel closed (session %s)", connection.session_token)

    def get_connection_count(self) -> int:
        """Get the total number of active connections."""
        return len(self._connections)

    async def send_to_connection(self, connection: EditConnection, message: ServerMessage) -> bool:
        """
        Send a message to a specific connection.

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            await connection.websocket.send_text(message.to_json())
            return True
        except Exception as e:
            logger.warning("Error sending to session %s: %s", connection.session_token, e)
            await self.disconnect(connection)
            return False

    # ============= Protocol =============

    def workspace_for(self, connection: EditConnection, requested: Optional[str]) -> str:
        """Pick the workspace a message applies to."""
        if self.single_user_id:
            return self.single_user_id
        return requested or connection.session_token

    async def handle_message(
        self,
        connection: EditConnection,
        message_text: str,
    ) -> Optional[ServerMessage]:
        """
        Handle an incoming edit channel frame.

        Args:
            connection: Source connection
            message_text: Raw frame text

        Returns:
            Message to send back, or None
        """
        connection.messages_handled += 1
        try:
            message = parse_client_message(message_text)
        except MalformedMessage as e:
            logger.warning("Dropping malformed message from session %s: %s", connection.session_token, e)
            return None

        try:
            if message.kind == MessageKind.EDIT:
                return await self._handle_edit(connection, message)
            if message.kind == MessageKind.RESUME:
                return await self._handle_resume(connection, message)
        except InvalidWorkspaceId as e:
            logger.warning("Dropping message from session %s: %s", connection.session_token, e)
            return None

        logger.debug("Ignoring unknown message from session %s", connection.session_token)
        return None

    async def _handle_edit(self, connection: EditConnection, message: EditMessage) -> Optional[ServerMessage]:
        user_id = self.workspace_for(connection, message.user)
        connection.state = ConnectionState.COMPILING
        try:
            outcome = await self.pipeline.apply_edit(user_id, message.source_lines)
        finally:
            if connection.state == ConnectionState.COMPILING:
                connection.state = ConnectionState.CONNECTED
        if outcome.published:
            return ReloadMessage()
        return None

    async def _handle_resume(self, connection: EditConnection, message: ResumeRequest) -> ServerMessage:
        user_id = self.workspace_for(connection, message.user_id)
        content = await self.pipeline.resume(user_id)
        return ResumeReply(content=content)
