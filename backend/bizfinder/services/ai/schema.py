"""
Pydantic models for the conversation loop.

Content blocks and turns mirror the model API's message format (text,
tool_use and tool_result blocks), so a turn can be sent as-is. The loop
state is immutable: each iteration produces a new ConversationState.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


ContentBlock = Annotated[
    Union[TextBlock, ToolUseBlock, ToolResultBlock],
    Field(discriminator="type"),
]


class Turn(BaseModel):
    """One message of the conversation, from the user or the assistant."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: Union[str, List[ContentBlock]]

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ModelResponse(BaseModel):
    """
    One reply of the remote model.

    stop_reason is the model's own reason ("end_turn", "tool_use",
    "max_tokens", "stop_sequence"); content keeps the block order.
    """

    id: Optional[str] = None
    model: Optional[str] = None
    stop_reason: Optional[str] = None
    content: List[ContentBlock] = Field(default_factory=list)
    usage: Dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> List[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]


class SharedRecord(BaseModel):
    """The business the assistant explicitly surfaced to the user."""

    model_config = ConfigDict(frozen=True)

    id: str
    slug: str
    name: str


class StopReason(str, Enum):
    COMPLETED = "completed"
    ITERATION_LIMIT = "iteration_limit_reached"
    SEARCH_FALLBACK = "search_fallback_exhausted"
    CANCELLED = "cancelled"


class ConversationState(BaseModel):
    """Loop state threaded through iterations (never mutated in place)."""

    model_config = ConfigDict(frozen=True)

    turns: Tuple[Turn, ...] = ()
    iteration: int = 0
    reply_parts: Tuple[str, ...] = ()
    shared_record: Optional[SharedRecord] = None
    fallback_counter: int = 0
    fallback_grace_used: bool = False

    @property
    def reply_text(self) -> str:
        return "\n\n".join(p for p in self.reply_parts if p.strip()).strip()


class ChatResult(BaseModel):
    reply_text: str
    shared_record: Optional[SharedRecord] = None
    iterations: int = 0
    iteration_limit_reached: bool = False
    stop_reason: StopReason = StopReason.COMPLETED
    model_stop_reason: Optional[str] = None
    conversation_id: Optional[str] = None
