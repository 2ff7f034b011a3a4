"""
Tool registry: the fixed catalog of named, schema-typed operations the model may call.

dispatch() is the only entry point the conversation loop uses. It validates
the invocation payload against the tool's input model, serves cacheable
tools from the result cache, runs the handler, and always returns a
ToolResult. Unknown tools, invalid input and handler failures come back as
results with is_error=True; nothing raised by a tool escapes dispatch().
"""
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ValidationError

from bizfinder.core.errors import ChatError, ToolExecutionError, ToolNotFoundError
from bizfinder.core.logging import get_logger
from bizfinder.core.metrics import record_tool_invocation
from bizfinder.core.tracing import get_tracer

from . import handlers
from .context import ToolContext
from .schemas import (
    ExploreCategoriesInput,
    GetBusinessContactInput,
    GetBusinessDetailsInput,
    ListBusinessesInput,
    ListVerifiedBusinessesInput,
    SearchBusinessesInput,
    SearchByCategoryInput,
    SearchByLocationInput,
    ShareBusinessInput,
    SmartSearchInput,
    input_schema,
)

logger = get_logger(__name__)


class ToolKind(str, Enum):
    SEARCH = "search"
    EXPLORE = "explore"
    SHARE = "share"
    LOOKUP = "lookup"


Handler = Callable[[BaseModel, ToolContext], Awaitable[Any]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: Type[BaseModel]
    handler: Handler
    kind: ToolKind = ToolKind.LOOKUP
    cacheable: bool = True

    def definition(self) -> Dict[str, Any]:
        """Tool definition in the model API's format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": input_schema(self.input_model),
        }


class ToolResult(BaseModel):
    """Outcome of one tool invocation, keyed by the invocation id."""

    tool_use_id: str
    tool_name: str
    content: Any = None
    is_error: bool = False

    def content_text(self) -> str:
        return json.dumps(self.content, ensure_ascii=False, default=str)


def _result_count(result: Any) -> int:
    if result is None:
        return 0
    if isinstance(result, list):
        return len(result)
    return 1


def _validation_message(tool_name: str, error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "input"
        problems.append(f"{location}: {item.get('msg')}")
    return f"Invalid input for {tool_name}: " + "; ".join(problems)


class ToolRegistry:
    """Name-keyed catalog of tools."""

    def __init__(self, specs: Iterable[ToolSpec]):
        self._specs: Dict[str, ToolSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise ValueError(f"Duplicate tool name: {spec.name}")
            self._specs[spec.name] = spec

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def names(self) -> List[str]:
        return list(self._specs)

    def get(self, name: str) -> ToolSpec:
        spec = self._specs.get(name)
        if spec is None:
            raise ToolNotFoundError(name)
        return spec

    def kind_of(self, name: str) -> Optional[ToolKind]:
        spec = self._specs.get(name)
        return spec.kind if spec else None

    def definitions(self) -> List[Dict[str, Any]]:
        return [spec.definition() for spec in self._specs.values()]

    async def execute(self, name: str, payload: Optional[Dict[str, Any]], context: ToolContext) -> Any:
        """
        Validate and run one tool.

        Raises:
            ToolNotFoundError: unknown tool name
            ToolExecutionError: payload fails validation
            Any exception raised by the handler (e.g. BackendUnavailableError)
        """
        spec = self.get(name)
        try:
            params = spec.input_model.model_validate(payload or {})
        except ValidationError as e:
            raise ToolExecutionError(name, _validation_message(name, e)) from e

        cache_params = params.model_dump(mode="json")
        if spec.cacheable and context.cache is not None:
            cached = await context.cache.get(name, cache_params)
            if cached is not None:
                return cached

        result = await spec.handler(params, context)

        if spec.cacheable and context.cache is not None and result is not None:
            await context.cache.put(name, cache_params, result)
        return result

    async def dispatch(
        self,
        tool_use_id: str,
        name: str,
        payload: Optional[Dict[str, Any]],
        context: ToolContext,
    ) -> ToolResult:
        """Run one invocation and wrap the outcome; never raises."""
        tracer = get_tracer()
        start_time = time.time()
        with tracer.start_as_current_span(f"tool.{name}") as span:
            span.set_attribute("tool.name", name)
            try:
                result = await self.execute(name, payload, context)
            except ChatError as e:
                status = "not_found" if isinstance(e, ToolNotFoundError) else "error"
                return self._failure(tool_use_id, name, e, status, start_time, span)
            except Exception as e:
                logger.error(
                    "tool_dispatch_unexpected_error",
                    tool=name,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                return self._failure(tool_use_id, name, e, "error", start_time, span)

            duration = time.time() - start_time
            count = _result_count(result)
            span.set_attribute("tool.result_count", count)
            record_tool_invocation(name, "ok", duration, count)
            logger.info(
                "tool_dispatch_completed",
                tool=name,
                tool_use_id=tool_use_id,
                result_count=count,
                latency_ms=int(duration * 1000),
            )
            return ToolResult(tool_use_id=tool_use_id, tool_name=name, content=result)

    def _failure(
        self,
        tool_use_id: str,
        name: str,
        error: Exception,
        status: str,
        start_time: float,
        span: Any,
    ) -> ToolResult:
        duration = time.time() - start_time
        kind = getattr(error, "kind", "ToolExecutionError")
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        span.set_attribute("tool.error", kind)
        record_tool_invocation(name, status, duration)
        logger.warning(
            "tool_dispatch_failed",
            tool=name,
            tool_use_id=tool_use_id,
            error=message,
            error_type=kind,
            latency_ms=int(duration * 1000),
        )
        return ToolResult(
            tool_use_id=tool_use_id,
            tool_name=name,
            content={"error": message, "kind": kind},
            is_error=True,
        )


DEFAULT_TOOLS = (
    ToolSpec(
        name="search_businesses",
        description=(
            "Find a business by id, slug, name or free-text keywords. Use it when the "
            "user asks about a specific business. Returns at most 5 results, best first."
        ),
        input_model=SearchBusinessesInput,
        handler=handlers.search_businesses,
        kind=ToolKind.SEARCH,
    ),
    ToolSpec(
        name="smart_search",
        description=(
            "Search with several terms at once across name, description, tags and "
            "address. Prefer it over the other search tools for open-ended requests."
        ),
        input_model=SmartSearchInput,
        handler=handlers.smart_search,
        kind=ToolKind.SEARCH,
    ),
    ToolSpec(
        name="list_businesses",
        description="List businesses, most viewed first, optionally only verified or featured ones.",
        input_model=ListBusinessesInput,
        handler=handlers.list_businesses,
    ),
    ToolSpec(
        name="get_business_details",
        description=(
            "Get every detail of one business: contact, social links, hours, location, "
            "prices, stats, tags and images. Returns null when the id does not exist."
        ),
        input_model=GetBusinessDetailsInput,
        handler=handlers.get_business_details,
    ),
    ToolSpec(
        name="search_by_category",
        description=(
            "Find businesses whose tags contain a word, for themed requests such as "
            "'restaurantes', 'eventos' or 'flores'."
        ),
        input_model=SearchByCategoryInput,
        handler=handlers.search_by_category,
        kind=ToolKind.SEARCH,
    ),
    ToolSpec(
        name="get_business_contact",
        description=(
            "Get the contact information of one business: phone, WhatsApp, email, "
            "address, social links and hours. Returns null when the id does not exist."
        ),
        input_model=GetBusinessContactInput,
        handler=handlers.get_business_contact,
    ),
    ToolSpec(
        name="list_verified_businesses",
        description="List verified, trusted businesses, most viewed first.",
        input_model=ListVerifiedBusinessesInput,
        handler=handlers.list_verified_businesses,
    ),
    ToolSpec(
        name="search_by_location",
        description="Find businesses in a city or area, or on a given street address.",
        input_model=SearchByLocationInput,
        handler=handlers.search_by_location,
        kind=ToolKind.SEARCH,
    ),
    ToolSpec(
        name="explore_categories",
        description=(
            "List the categories (tags) that exist, with how many businesses each has. "
            "Use it when searches return nothing, then search again with a real category."
        ),
        input_model=ExploreCategoriesInput,
        handler=handlers.explore_categories,
        kind=ToolKind.EXPLORE,
    ),
    ToolSpec(
        name="share_business_with_user",
        description=(
            "ALWAYS call this when you present the details of ONE specific business to "
            "the user, so the app can show it. Requires id, slug and name."
        ),
        input_model=ShareBusinessInput,
        handler=handlers.share_business_with_user,
        kind=ToolKind.SHARE,
        cacheable=False,
    ),
)


def build_default_registry() -> ToolRegistry:
    return ToolRegistry(DEFAULT_TOOLS)
