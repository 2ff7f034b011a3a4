"""
Unit tests for the conversation orchestrator.

A scripted DummyLLMClient replaces the model API; tools run for real against
the in-memory store. No HTTP calls are made.
"""
from typing import List, Optional

import pytest

from bizfinder.core.errors import BackendUnavailableError, ChatValidationError
from bizfinder.core.metrics import chat_search_fallback_trips_total
from bizfinder.services.ai.orchestration import ChatOrchestrator, parse_history
from bizfinder.services.ai.prompts import ITERATION_LIMIT_FALLBACK_REPLY
from bizfinder.services.ai.schema import (
    ConversationState,
    ModelResponse,
    SharedRecord,
    StopReason,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    Turn,
)
from bizfinder.services.store import InMemoryRecordStore
from bizfinder.services.store.samples import sample_businesses
from bizfinder.services.tools import ToolContext, build_default_registry

SHARE_MOMENTS = {"id": "biz-001", "slug": "moments-events", "name": "Moment's Events"}


class DummyLLMClient:
    """Returns scripted responses in order; the last one repeats."""

    def __init__(self, responses: List[ModelResponse], error: Optional[Exception] = None):
        self._responses = list(responses)
        self._error = error
        self.calls: List[List[Turn]] = []

    async def converse(self, system, tools, turns):
        self.calls.append(list(turns))
        if self._error is not None:
            raise self._error
        index = min(len(self.calls) - 1, len(self._responses) - 1)
        return self._responses[index]


def text(value: str) -> TextBlock:
    return TextBlock(text=value)


def tool(tool_id: str, name: str, /, **payload) -> ToolUseBlock:
    return ToolUseBlock(id=tool_id, name=name, input=payload)


def reply(stop_reason: str, *blocks) -> ModelResponse:
    return ModelResponse(stop_reason=stop_reason, content=list(blocks))


def searches(prefix: str, count: int = 2) -> List[ToolUseBlock]:
    return [tool(f"{prefix}_{i}", "smart_search", terms=["zzz"]) for i in range(count)]


def _orchestrator(llm, **kwargs) -> ChatOrchestrator:
    context = ToolContext(store=InMemoryRecordStore(sample_businesses()))
    return ChatOrchestrator(llm, build_default_registry(), context, **kwargs)


@pytest.mark.asyncio
async def test_natural_stop_returns_model_text():
    llm = DummyLLMClient([reply("end_turn", text("¡Hola! ¿En qué te ayudo?"))])

    result = await _orchestrator(llm).run("hola")

    assert result.reply_text == "¡Hola! ¿En qué te ayudo?"
    assert result.iterations == 1
    assert result.stop_reason == StopReason.COMPLETED
    assert result.model_stop_reason == "end_turn"
    assert result.shared_record is None
    assert result.conversation_id


@pytest.mark.asyncio
async def test_tool_round_trip_and_shared_record():
    llm = DummyLLMClient([
        reply(
            "tool_use",
            text("Busco opciones."),
            tool("t1", "search_by_category", tag="eventos"),
            tool("t2", "share_business_with_user", **SHARE_MOMENTS),
        ),
        reply("end_turn", text("Te recomiendo Moment's Events.")),
    ])

    result = await _orchestrator(llm).run("busco un lugar para hacer eventos")

    assert result.shared_record == SharedRecord(**SHARE_MOMENTS)
    assert result.reply_text == "Busco opciones.\n\nTe recomiendo Moment's Events."
    assert result.iterations == 2

    second_call = llm.calls[1]
    assert [t.role for t in second_call] == ["user", "assistant", "user"]
    results = second_call[2].content
    assert [b.tool_use_id for b in results] == ["t1", "t2"]
    assert all(isinstance(b, ToolResultBlock) and not b.is_error for b in results)
    assert "biz-001" in results[0].content


@pytest.mark.asyncio
async def test_iteration_limit():
    llm = DummyLLMClient([reply("tool_use", text("Revisando..."), tool("t", "list_businesses"))])

    result = await _orchestrator(llm, max_iterations=3).run("muéstrame negocios")

    assert result.iterations == 3
    assert len(llm.calls) == 3
    assert result.iteration_limit_reached is True
    assert result.stop_reason == StopReason.ITERATION_LIMIT
    assert result.reply_text == "\n\n".join(["Revisando..."] * 3)


@pytest.mark.asyncio
async def test_empty_reply_uses_fallback_text():
    llm = DummyLLMClient([reply("tool_use", tool("t", "list_businesses"))])

    result = await _orchestrator(llm, max_iterations=2).run("hola")

    assert result.reply_text == ITERATION_LIMIT_FALLBACK_REPLY
    assert result.iteration_limit_reached is True


@pytest.mark.asyncio
async def test_shared_record_persists_across_iterations():
    llm = DummyLLMClient([
        reply("tool_use", tool("t1", "share_business_with_user", **SHARE_MOMENTS)),
        reply("tool_use", tool("t2", "get_business_contact", id="biz-001")),
        reply("end_turn", text("Aquí está el contacto.")),
    ])

    result = await _orchestrator(llm).run("contacto de Moment's Events")

    assert result.shared_record.id == "biz-001"
    assert result.iterations == 3


SHARE_CLINIC = {"id": "biz-004", "slug": "clinica-dental-sonrisas", "name": "Clínica Dental Sonrisas"}
SHARE_TECHFIX = {"id": "biz-005", "slug": "techfix", "name": "TechFix"}


@pytest.mark.asyncio
async def test_last_share_across_iterations_wins():
    llm = DummyLLMClient([
        reply("tool_use", tool("t1", "share_business_with_user", **SHARE_MOMENTS)),
        reply("tool_use", tool("t2", "share_business_with_user", **SHARE_CLINIC)),
        reply("tool_use", tool("t3", "list_businesses")),
        reply("end_turn", text("Te comparto la clínica.")),
    ])

    result = await _orchestrator(llm).run("dentista")

    assert result.iterations == 4
    assert result.shared_record == SharedRecord(**SHARE_CLINIC)


@pytest.mark.asyncio
async def test_last_share_within_one_iteration_wins():
    llm = DummyLLMClient([
        reply(
            "tool_use",
            tool("t1", "share_business_with_user", **SHARE_CLINIC),
            tool("t2", "share_business_with_user", **SHARE_TECHFIX),
        ),
        reply("end_turn", text("Listo.")),
    ])

    result = await _orchestrator(llm).run("reparación de celulares")

    assert result.shared_record == SharedRecord(**SHARE_TECHFIX)


@pytest.mark.asyncio
async def test_failed_share_does_not_set_shared_record():
    llm = DummyLLMClient([
        reply("tool_use", tool("t1", "share_business_with_user", id="biz-001")),
        reply("end_turn", text("Listo.")),
    ])

    result = await _orchestrator(llm).run("comparte")

    assert result.shared_record is None
    assert llm.calls[1][2].content[0].is_error is True


@pytest.mark.asyncio
async def test_one_failing_invocation_does_not_affect_the_other():
    llm = DummyLLMClient([
        reply(
            "tool_use",
            tool("bad", "no_such_tool"),
            tool("good", "get_business_details", id="biz-004"),
        ),
        reply("end_turn", text("Listo.")),
    ])

    result = await _orchestrator(llm).run("detalles de la clínica")

    assert result.stop_reason == StopReason.COMPLETED
    bad, good = llm.calls[1][2].content
    assert (bad.tool_use_id, bad.is_error) == ("bad", True)
    assert "no_such_tool" in bad.content
    assert (good.tool_use_id, good.is_error) == ("good", False)
    assert "Clínica Dental Sonrisas" in good.content


@pytest.mark.asyncio
async def test_search_fallback_exhausted_after_grace_iteration():
    before = chat_search_fallback_trips_total._value.get()
    llm = DummyLLMClient([reply("tool_use", *searches("s"))])

    result = await _orchestrator(llm, max_iterations=10, search_fallback_threshold=4).run("zzz")

    # 2 searches per iteration: threshold reached at iteration 2, grace, stop at 3
    assert result.iterations == 3
    assert result.stop_reason == StopReason.SEARCH_FALLBACK
    assert result.iteration_limit_reached is False
    assert chat_search_fallback_trips_total._value.get() == before + 1


@pytest.mark.asyncio
async def test_explore_categories_resets_fallback_counter_and_grace():
    before = chat_search_fallback_trips_total._value.get()
    llm = DummyLLMClient([
        reply("tool_use", *searches("a")),
        reply("tool_use", *searches("b")),
        reply("tool_use", tool("e", "explore_categories")),
        reply("tool_use", *searches("c")),
        reply("tool_use", *searches("d")),
        reply("end_turn", text("Encontré estas categorías.")),
    ])

    result = await _orchestrator(llm, max_iterations=10, search_fallback_threshold=4).run("zzz")

    # without the reset the run would stop at iteration 3 (counter 4, grace spent);
    # without clearing grace it would stop at iteration 5
    assert result.stop_reason == StopReason.COMPLETED
    assert result.iterations == 6
    assert chat_search_fallback_trips_total._value.get() == before + 2


def test_update_fallback_counter():
    orchestrator = _orchestrator(DummyLLMClient([]))
    tripped = ConversationState(fallback_counter=5, fallback_grace_used=True)

    searched = orchestrator._update_fallback_counter(
        ConversationState(fallback_counter=1), [*searches("s"), tool("d", "get_business_details", id="biz-001")]
    )
    reset = orchestrator._update_fallback_counter(
        tripped, [tool("e", "explore_categories"), *searches("s")]
    )

    assert searched.fallback_counter == 3
    assert (reset.fallback_counter, reset.fallback_grace_used) == (0, False)


@pytest.mark.asyncio
async def test_cancelled_before_model_call():
    llm = DummyLLMClient([reply("end_turn", text("no"))])

    async def stop():
        return True

    result = await _orchestrator(llm).run("hola", should_stop=stop)

    assert result.stop_reason == StopReason.CANCELLED
    assert result.iterations == 0
    assert result.reply_text == ""
    assert llm.calls == []


@pytest.mark.asyncio
async def test_cancelled_before_tool_dispatch():
    llm = DummyLLMClient([reply("tool_use", text("Un momento."), tool("t", "list_businesses"))])
    checks = iter([False, True])

    async def stop():
        return next(checks)

    result = await _orchestrator(llm).run("hola", should_stop=stop)

    assert result.stop_reason == StopReason.CANCELLED
    assert result.iterations == 1
    assert result.reply_text == "Un momento."


@pytest.mark.asyncio
async def test_history_is_sent_before_the_new_message():
    llm = DummyLLMClient([reply("end_turn", text("ok"))])
    history = [
        {"role": "user", "content": "hola"},
        {"role": "assistant", "content": "¡Hola!"},
    ]

    await _orchestrator(llm).run("busco flores", history=history)

    sent = llm.calls[0]
    assert [(t.role, t.content) for t in sent] == [
        ("user", "hola"),
        ("assistant", "¡Hola!"),
        ("user", "busco flores"),
    ]


@pytest.mark.asyncio
async def test_empty_message_is_rejected():
    llm = DummyLLMClient([reply("end_turn", text("no"))])

    with pytest.raises(ChatValidationError):
        await _orchestrator(llm).run("   ")
    assert llm.calls == []


def test_invalid_history_is_rejected():
    with pytest.raises(ChatValidationError) as exc_info:
        parse_history([{"role": "system", "content": "x"}])
    assert exc_info.value.details["position"] == 0


@pytest.mark.asyncio
async def test_model_failure_propagates():
    llm = DummyLLMClient([], error=BackendUnavailableError("Model service timed out", backend="llm"))

    with pytest.raises(BackendUnavailableError):
        await _orchestrator(llm).run("hola")


def test_max_iterations_must_be_positive():
    with pytest.raises(ValueError):
        _orchestrator(DummyLLMClient([]), max_iterations=0)
