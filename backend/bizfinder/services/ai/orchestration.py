"""
Conversation orchestrator: the bounded tool-calling loop against the model.

Per iteration:
1. Send history + tool catalog + system instructions to the model
2. Accumulate the text of the reply
3. Stop on a natural stop reason or when no tools were requested
4. Otherwise dispatch every tool invocation concurrently, append the model
   turn and one user turn carrying all tool results, and loop

Termination policy:
- Hard cap on iterations; hitting it returns the accumulated text flagged
  as iteration_limit_reached
- Search fallback: search-type invocations in iterations without an
  explore_categories call accumulate in a counter; an exploration call
  resets it. Reaching the threshold grants one grace iteration, after which
  a counter still at the threshold ends the loop
- An optional should_stop callable is polled before each model call and
  before each tool dispatch

Tool failures never escape: they come back to the model as error results.
Model failures (BackendUnavailableError) are fatal for the request.
"""
import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from bizfinder.core.errors import ChatError, ChatValidationError
from bizfinder.core.logging import (
    generate_conversation_id,
    get_logger,
    set_conversation_id,
)
from bizfinder.core.metrics import record_chat_run, record_search_fallback_trip
from bizfinder.core.tracing import get_tracer
from bizfinder.services.tools.context import ToolContext
from bizfinder.services.tools.registry import ToolKind, ToolRegistry, ToolResult

from .llm_client import LLMClient
from .prompts import ITERATION_LIMIT_FALLBACK_REPLY, SYSTEM_PROMPT
from .schema import (
    ChatResult,
    ConversationState,
    ModelResponse,
    SharedRecord,
    StopReason,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
)

logger = get_logger(__name__)

NATURAL_STOP_REASONS = frozenset({"end_turn", "stop_sequence", "max_tokens"})
DEFAULT_MAX_ITERATIONS = 5
DEFAULT_SEARCH_FALLBACK_THRESHOLD = 4

StopCheck = Callable[[], Awaitable[bool]]


def parse_history(history: Optional[Iterable[Union[Turn, dict]]]) -> List[Turn]:
    """
    Validate caller-supplied prior turns.

    Raises:
        ChatValidationError: a turn is not {role: user|assistant, content: ...}
    """
    turns: List[Turn] = []
    for index, item in enumerate(history or []):
        if isinstance(item, Turn):
            turns.append(item)
            continue
        try:
            turns.append(Turn.model_validate(item))
        except ValidationError as e:
            raise ChatValidationError(
                f"Invalid history turn at position {index}",
                details={
                    "position": index,
                    "errors": [
                        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
                        for err in e.errors()
                    ],
                },
            ) from e
    return turns


class ChatOrchestrator:
    """Runs one conversation turn for one request. Holds no per-request state."""

    def __init__(
        self,
        llm: LLMClient,
        registry: ToolRegistry,
        tool_context: ToolContext,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        search_fallback_threshold: int = DEFAULT_SEARCH_FALLBACK_THRESHOLD,
        system_prompt: str = SYSTEM_PROMPT,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self.llm = llm
        self.registry = registry
        self.tool_context = tool_context
        self.max_iterations = max_iterations
        self.search_fallback_threshold = search_fallback_threshold
        self.system_prompt = system_prompt

    async def run(
        self,
        message: str,
        history: Optional[Sequence[Union[Turn, dict]]] = None,
        should_stop: Optional[StopCheck] = None,
    ) -> ChatResult:
        """
        Answer one user message.

        Raises:
            ChatValidationError: empty message or malformed history
            BackendUnavailableError: model service unavailable or timed out
        """
        if not message or not message.strip():
            raise ChatValidationError("message is required")
        prior_turns = parse_history(history)

        conversation_id = generate_conversation_id()
        set_conversation_id(conversation_id)
        state = ConversationState(turns=(*prior_turns, Turn(role="user", content=message)))

        logger.info(
            "chat_started",
            history_turns=len(prior_turns),
            message_length=len(message),
        )

        tracer = get_tracer()
        try:
            with tracer.start_as_current_span("chat.run") as span:
                span.set_attribute("chat.conversation_id", conversation_id)
                state, stop_reason, model_stop_reason = await self._loop(state, should_stop)
                span.set_attribute("chat.iterations", state.iteration)
                span.set_attribute("chat.stop_reason", stop_reason.value)
        except ChatError as e:
            record_chat_run(e.kind, state.iteration)
            logger.warning(
                "chat_failed",
                error=e.message,
                error_type=e.kind,
                iterations=state.iteration,
            )
            raise
        finally:
            set_conversation_id(None)

        reply_text = state.reply_text
        if not reply_text and stop_reason != StopReason.CANCELLED:
            reply_text = ITERATION_LIMIT_FALLBACK_REPLY

        record_chat_run(stop_reason.value, state.iteration)
        logger.info(
            "chat_completed",
            conversation_id=conversation_id,
            iterations=state.iteration,
            stop_reason=stop_reason.value,
            model_stop_reason=model_stop_reason,
            shared_record_id=state.shared_record.id if state.shared_record else None,
            reply_length=len(reply_text),
        )
        return ChatResult(
            reply_text=reply_text,
            shared_record=state.shared_record,
            iterations=state.iteration,
            iteration_limit_reached=stop_reason == StopReason.ITERATION_LIMIT,
            stop_reason=stop_reason,
            model_stop_reason=model_stop_reason,
            conversation_id=conversation_id,
        )

    async def _loop(self, state: ConversationState, should_stop: Optional[StopCheck]):
        tools = self.registry.definitions()
        model_stop_reason: Optional[str] = None

        while True:
            if state.iteration >= self.max_iterations:
                logger.warning("chat_iteration_limit_reached", iterations=state.iteration)
                return state, StopReason.ITERATION_LIMIT, model_stop_reason
            if await self._stop_requested(should_stop, "before_model_call"):
                return state, StopReason.CANCELLED, model_stop_reason

            response = await self.llm.converse(self.system_prompt, tools, state.turns)
            model_stop_reason = response.stop_reason
            state = self._record_response(state, response)

            tool_uses = response.tool_uses
            if not tool_uses or response.stop_reason in NATURAL_STOP_REASONS:
                return state, StopReason.COMPLETED, model_stop_reason
            if await self._stop_requested(should_stop, "before_tool_dispatch"):
                return state, StopReason.CANCELLED, model_stop_reason

            results = await self._dispatch_all(tool_uses)
            state = self._record_tool_results(state, response, results)
            state = self._update_fallback_counter(state, tool_uses)

            if state.fallback_counter >= self.search_fallback_threshold:
                if state.fallback_grace_used:
                    logger.warning(
                        "chat_search_fallback_exhausted",
                        fallback_counter=state.fallback_counter,
                        iterations=state.iteration,
                    )
                    return state, StopReason.SEARCH_FALLBACK, model_stop_reason
                record_search_fallback_trip()
                logger.info(
                    "chat_search_fallback_tripped",
                    fallback_counter=state.fallback_counter,
                    iterations=state.iteration,
                )
                state = state.model_copy(update={"fallback_grace_used": True})

    async def _stop_requested(self, should_stop: Optional[StopCheck], checkpoint: str) -> bool:
        if should_stop is None:
            return False
        if await should_stop():
            logger.info("chat_cancelled", checkpoint=checkpoint)
            return True
        return False

    async def _dispatch_all(self, tool_uses: Sequence[ToolUseBlock]) -> List[ToolResult]:
        """Run all invocations of one iteration concurrently; results keep invocation order."""
        return list(await asyncio.gather(*(
            self.registry.dispatch(use.id, use.name, use.input, self.tool_context)
            for use in tool_uses
        )))

    @staticmethod
    def _record_response(state: ConversationState, response: ModelResponse) -> ConversationState:
        text = response.text
        reply_parts = state.reply_parts + ((text,) if text.strip() else ())
        return state.model_copy(update={
            "iteration": state.iteration + 1,
            "reply_parts": reply_parts,
        })

    def _record_tool_results(
        self,
        state: ConversationState,
        response: ModelResponse,
        results: Sequence[ToolResult],
    ) -> ConversationState:
        shared_record = state.shared_record
        for result in results:
            if result.is_error or self.registry.kind_of(result.tool_name) != ToolKind.SHARE:
                continue
            shared = _shared_record_from(result.content)
            if shared is not None:
                shared_record = shared

        assistant_turn = Turn(role="assistant", content=list(response.content))
        results_turn = Turn(
            role="user",
            content=[
                ToolResultBlock(
                    tool_use_id=r.tool_use_id,
                    content=r.content_text(),
                    is_error=r.is_error,
                )
                for r in results
            ],
        )
        return state.model_copy(update={
            "turns": state.turns + (assistant_turn, results_turn),
            "shared_record": shared_record,
        })

    def _update_fallback_counter(
        self,
        state: ConversationState,
        tool_uses: Sequence[ToolUseBlock],
    ) -> ConversationState:
        kinds = [self.registry.kind_of(use.name) for use in tool_uses]
        if ToolKind.EXPLORE in kinds:
            if state.fallback_counter:
                logger.debug("chat_search_fallback_reset", previous=state.fallback_counter)
            return state.model_copy(update={"fallback_counter": 0, "fallback_grace_used": False})
        searches = sum(1 for kind in kinds if kind == ToolKind.SEARCH)
        return state.model_copy(update={"fallback_counter": state.fallback_counter + searches})


def _shared_record_from(content: Any) -> Optional[SharedRecord]:
    if not isinstance(content, dict) or not content.get("success"):
        return None
    data = content.get("data")
    if not isinstance(data, dict):
        return None
    try:
        return SharedRecord.model_validate(data)
    except ValidationError:
        logger.warning("shared_record_invalid", data=data)
        return None
