"""
Wire messages exchanged over the edit channel.

Client -> server:
    {"user": "<id>", "sourceLines": ["line 1", "line 2"]}     edit
    {"resume": true, "userId": "<id>"}                        resume request

Server -> client:
    {"reload": true}                                          reload signal
    {"resume": true, "content": ["line 1", "line 2"]}         resume reply

Inbound payloads are told apart by which field they carry; anything else is
an unknown message and is ignored by the channel.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError


class MessageKind(str, Enum):
    """Kinds of edit channel messages."""

    EDIT = "edit"
    RESUME = "resume"
    RELOAD = "reload"
    UNKNOWN = "unknown"


class MalformedMessage(ValueError):
    """Raised when an inbound frame is not a usable message."""


class EditMessage(BaseModel):
    """The full editor contents after a change."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: ClassVar[MessageKind] = MessageKind.EDIT

    user: Optional[str] = Field(default=None, validation_alias=AliasChoices("user", "userId"))
    # Older editor builds send the lines as ``fileContents``.
    source_lines: List[str] = Field(
        validation_alias=AliasChoices("sourceLines", "fileContents"),
    )


class ResumeRequest(BaseModel):
    """Sent by a freshly connected client to get its last source back."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: ClassVar[MessageKind] = MessageKind.RESUME

    resume: bool = True
    user_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("userId", "user"))


@dataclass
class UnknownMessage:
    """Any JSON object that is neither an edit nor a resume request."""

    payload: Dict[str, Any] = field(default_factory=dict)
    kind: ClassVar[MessageKind] = MessageKind.UNKNOWN


ClientMessage = Union[EditMessage, ResumeRequest, UnknownMessage]


def parse_client_message(message_text: str) -> ClientMessage:
    """
    Parse one inbound text frame.

    Args:
        message_text: Raw frame text

    Returns:
        EditMessage, ResumeRequest or UnknownMessage

    Raises:
        MalformedMessage: On invalid JSON, a non-object payload, or a
            recognised message with missing or mistyped fields
    """
    try:
        payload = json.loads(message_text)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedMessage(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedMessage(f"Expected a JSON object, got {type(payload).__name__}")

    try:
        if "sourceLines" in payload or "fileContents" in payload:
            return EditMessage.model_validate(payload)
        if payload.get("resume") is True:
            return ResumeRequest.model_validate(payload)
    except ValidationError as e:
        raise MalformedMessage(f"Invalid message: {e.errors()[0].get('msg', e)}") from e

    return UnknownMessage(payload=payload)


@dataclass
class ReloadMessage:
    """Tells the client to refetch its preview."""

    kind: ClassVar[MessageKind] = MessageKind.RELOAD

    def to_dict(self) -> Dict[str, Any]:
        return {"reload": True}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class ResumeReply:
    """Carries the stored source back to a resuming client."""

    content: List[str] = field(default_factory=list)
    kind: ClassVar[MessageKind] = MessageKind.RESUME

    def to_dict(self) -> Dict[str, Any]:
        return {"resume": True, "content": list(self.content)}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


ServerMessage = Union[ReloadMessage, ResumeReply]
