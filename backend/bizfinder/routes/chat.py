"""
Chat endpoint.

POST /chat
Body: {"message": "...", "history": [{"role": "user"|"assistant", "content": ...}]}
Returns the assistant reply plus the business it shared, if any.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bizfinder.core.errors import ChatValidationError
from bizfinder.core.logging import get_logger
from bizfinder.deps import get_orchestrator
from bizfinder.services.ai.orchestration import ChatOrchestrator
from bizfinder.services.ai.schema import ChatResult

logger = get_logger(__name__)
router = APIRouter()


class ChatRequest(BaseModel):
    message: Optional[str] = None
    history: List[Dict[str, Any]] = Field(default_factory=list)


class SharedRecordResponse(BaseModel):
    id: str
    slug: str
    name: str


class ChatResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    reply_text: str
    shared_record: Optional[SharedRecordResponse] = None
    iterations: int
    iteration_limit_reached: bool = False
    stop_reason: str
    conversation_id: Optional[str] = None

    @classmethod
    def from_result(cls, result: ChatResult) -> "ChatResponse":
        shared = result.shared_record
        return cls(
            reply_text=result.reply_text,
            shared_record=SharedRecordResponse(**shared.model_dump()) if shared else None,
            iterations=result.iterations,
            iteration_limit_reached=result.iteration_limit_reached,
            stop_reason=result.stop_reason.value,
            conversation_id=result.conversation_id,
        )


@router.post("", response_model=ChatResponse, response_model_by_alias=True)
async def chat(
    request: Request,
    body: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    """
    Run one conversation turn.

    Errors:
        400 ValidationError: missing message or malformed history
        503 BackendUnavailable: model service or record store unavailable
    """
    if not body.message or not body.message.strip():
        raise ChatValidationError("message is required")

    result = await orchestrator.run(
        body.message,
        body.history,
        should_stop=request.is_disconnected,
    )
    return ChatResponse.from_result(result)
