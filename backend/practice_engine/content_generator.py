"""Content generator contract and the OpenAI Agents implementation."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from time import perf_counter
from typing import Any, List, Optional, Protocol, Type, TypeVar, Union

from agents import Agent, ModelSettings, Runner
from pydantic import BaseModel, Field, ValidationError

from .config import Settings, get_settings
from .errors import GenerationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class PendingOutcomePayload(BaseModel):
    result_id: int
    app_id: str
    app_name: Optional[str] = None
    client_session_id: str
    content: str


class EligibleAppPayload(BaseModel):
    id: str
    name: str
    description: str = ""
    content_shape: Optional[Any] = None


class GeneratorRequest(BaseModel):
    pending_outcomes: List[PendingOutcomePayload] = Field(default_factory=list)
    eligible_apps: List[EligibleAppPayload] = Field(default_factory=list)
    language_preference: str
    days: Optional[int] = Field(default=None, ge=1)


class ResultAnalysisEntry(BaseModel):
    result_id: Optional[Union[int, str]] = None
    is_correct: bool
    question_hash_content: Optional[Any] = None


class TheoryCard(BaseModel):
    title: str
    content: str


class GeneratedTask(BaseModel):
    app_id: str
    content: Any = None


class SessionResponse(BaseModel):
    result_analysis: List[ResultAnalysisEntry] = Field(default_factory=list)
    topic: str = ""
    text: str = ""
    theory: List[TheoryCard] = Field(default_factory=list)
    tasks: List[GeneratedTask]


class PlanDay(BaseModel):
    day: int = Field(ge=1)
    focus: Optional[str] = None
    tasks: List[GeneratedTask] = Field(default_factory=list)


class PlanResponse(BaseModel):
    result_analysis: List[ResultAnalysisEntry] = Field(default_factory=list)
    title: str = ""
    description: str = ""
    theory: List[TheoryCard] = Field(default_factory=list)
    days: List[PlanDay]


@dataclass(frozen=True)
class GeneratorReply:
    text: str
    model: Optional[str]
    latency_ms: float


class ContentGenerator(Protocol):
    """Anything that turns a prompt into raw response text."""

    async def complete(self, prompt: str) -> GeneratorReply:
        ...


_INSTRUCTIONS = (
    "You are an educational assistant for an adaptive practice platform. You analyse a learner's "
    "recent exercise results and create new, specific exercises for the available apps. Each task's "
    "content must follow the app's content shape exactly. Write all learner-facing text in the "
    "requested language and spelling convention. Respond with JSON only, without markdown fences."
)

_SESSION_GUIDANCE = (
    "Create a personalised practice session with 3 to 5 tasks. Choose the most appropriate apps. "
    "Provide a motivating topic, a short explanatory text, and theory cards explaining the rules "
    "the tasks rely on. For every analysed result, report whether it was answered correctly and, "
    "when the result refers to a concrete question, echo that question's content verbatim in "
    "question_hash_content."
)

_PLAN_GUIDANCE = (
    "Create a learning plan spanning exactly {days} day(s). Each day gets a focus and 3 to 5 tasks. "
    "Provide a title, a description, and theory cards explaining the rules the tasks rely on. For "
    "every analysed result, report whether it was answered correctly and, when the result refers "
    "to a concrete question, echo that question's content verbatim in question_hash_content."
)


def build_prompt(request: GeneratorRequest, response_model: Type[BaseModel]) -> str:
    schema = response_model.model_json_schema()
    guidance = _PLAN_GUIDANCE.format(days=request.days) if request.days else _SESSION_GUIDANCE
    return (
        f"{guidance}\n\n"
        "Respond strictly with JSON. Schema:\n"
        f"{json.dumps(schema, ensure_ascii=False, indent=2)}\n\n"
        "CONTEXT:\n"
        f"{json.dumps(request.model_dump(mode='json'), ensure_ascii=False, indent=2)}"
    )


_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")


def strip_markdown_fences(text: str) -> str:
    return _FENCE.sub("", text.strip()).strip()


def parse_response(text: Optional[str], response_model: Type[T]) -> T:
    """Validate generator output, raising :class:`GenerationError` on anything unusable."""
    if not isinstance(text, str) or not text.strip():
        raise GenerationError("Content generator returned an empty response.")
    cleaned = strip_markdown_fences(text)
    try:
        return response_model.model_validate_json(cleaned)
    except (ValidationError, json.JSONDecodeError, ValueError) as exc:
        raise GenerationError(f"Content generator returned an invalid payload: {exc}") from exc


async def invoke_generator(generator: ContentGenerator, prompt: str, *, timeout: float) -> GeneratorReply:
    try:
        return await asyncio.wait_for(generator.complete(prompt), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise GenerationError(f"Content generator timed out after {timeout:.0f}s.") from exc
    except GenerationError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise GenerationError(f"Content generator call failed: {exc}") from exc


_AGENT_CACHE: dict[str, Agent[None]] = {}


def _generator_agent(model: str) -> Agent[None]:
    if model not in _AGENT_CACHE:
        _AGENT_CACHE[model] = Agent[None](
            name="Practice Content Generator",
            instructions=_INSTRUCTIONS,
            model=model,
            tools=[],
            model_settings=ModelSettings(store=False),
        )
    return _AGENT_CACHE[model]


class AgentContentGenerator:
    """Generator backed by an OpenAI Agents SDK agent."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    @property
    def model(self) -> str:
        return self._settings.generator_model

    async def complete(self, prompt: str) -> GeneratorReply:
        if not self._settings.openai_api_key:
            raise GenerationError("OPENAI_API_KEY is not configured for the content generator.")
        agent = _generator_agent(self.model)
        started = perf_counter()
        result = await Runner.run(agent, prompt)
        latency_ms = round((perf_counter() - started) * 1000.0, 2)
        output = result.final_output
        if not isinstance(output, str):
            output = json.dumps(output, ensure_ascii=False, default=str)
        logger.info("Content generator responded in %.0fms using %s", latency_ms, self.model)
        return GeneratorReply(text=output, model=self.model, latency_ms=latency_ms)


_default_generator: Optional[ContentGenerator] = None


def get_content_generator() -> ContentGenerator:
    global _default_generator
    if _default_generator is None:
        _default_generator = AgentContentGenerator()
    return _default_generator


__all__ = [
    "AgentContentGenerator",
    "ContentGenerator",
    "EligibleAppPayload",
    "GeneratedTask",
    "GeneratorReply",
    "GeneratorRequest",
    "PendingOutcomePayload",
    "PlanDay",
    "PlanResponse",
    "ResultAnalysisEntry",
    "SessionResponse",
    "TheoryCard",
    "build_prompt",
    "get_content_generator",
    "invoke_generator",
    "parse_response",
    "strip_markdown_fences",
]
