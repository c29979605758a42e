"""Data models for the relay."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel


# ============================================================================
# Inbound Request Models
# ============================================================================

class ConversationTurn(BaseModel):
    """One message in a conversation."""
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Body of POST /api/chat: a turn sequence or a single prompt."""
    messages: Optional[List[ConversationTurn]] = None
    prompt: Optional[str] = None
    model: Optional[str] = None
    options: Optional[Dict[str, Any]] = None
    stream: bool = True


class EchoRequest(BaseModel):
    """Body of POST /api/echo."""
    prompt: str = ""
    messages: List[ConversationTurn] = []


# ============================================================================
# Upstream Request Shapes
# ============================================================================

@dataclass(frozen=True)
class ChatShape:
    """Turn-sequence request, sent to the upstream chat endpoint."""
    messages: List[Dict[str, str]]
    path: str = "/api/chat"

    def body(self) -> Dict[str, Any]:
        return {"messages": self.messages}


@dataclass(frozen=True)
class PromptShape:
    """Single free-text prompt, sent to the upstream generate endpoint."""
    prompt: str
    path: str = "/api/generate"

    def body(self) -> Dict[str, Any]:
        return {"prompt": self.prompt}


RequestShape = Union[ChatShape, PromptShape]


@dataclass
class UpstreamRequest:
    """Normalized request ready to send upstream."""
    shape: RequestShape
    model: str
    stream: bool
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.shape.path

    def payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self.model}
        payload.update(self.shape.body())
        payload["stream"] = self.stream
        payload["options"] = self.options
        return payload


# ============================================================================
# Upstream Chunk Parts
# ============================================================================

class ChunkKind(str, Enum):
    """Which field of an upstream chunk a piece of text came from."""
    GENERATE = "response"
    CHAT = "message.content"
    ERROR = "error"


@dataclass(frozen=True)
class ChunkPart:
    """A text field extracted from one decoded upstream chunk."""
    kind: ChunkKind
    text: str


# ============================================================================
# Client State Models
# ============================================================================

class ConversationState(str, Enum):
    """Client-side conversation state."""
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    STREAMING = "streaming"
    ERROR = "error"
