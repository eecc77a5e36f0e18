"""Multi-model generation with fallback chain, deadline and JSON recovery.

The attempt sequence is an explicit state machine::

    Pending --Start--> TryingModel(0) --AttemptFailed--> TryingModel(1) ...
    TryingModel(i) --AttemptSucceeded--> Succeeded(i)
    TryingModel(last) --AttemptFailed--> ExhaustedFailed
    any non-terminal --DeadlineExpired--> TimedOut

``transition`` is pure; ``GenerationOrchestrator`` drives it with real model
calls and races the whole sequence against one deadline.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from pydantic import BaseModel, ValidationError

from channel_insights.config import GENERATION_TIMEOUT
from channel_insights.errors import (
    ExtractionError,
    GenerationExhaustedError,
    GenerationTimeoutError,
)
from channel_insights.services.llm import ModelVariant

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

FENCE_PATTERN = re.compile(r"```([a-zA-Z]*)[ \t]*\n?(.*?)```", re.DOTALL)


# --- States ---


@dataclass(frozen=True)
class Pending:
    pass


@dataclass(frozen=True)
class TryingModel:
    index: int


@dataclass(frozen=True)
class Succeeded:
    index: int


@dataclass(frozen=True)
class ExhaustedFailed:
    attempts: int


@dataclass(frozen=True)
class TimedOut:
    index: int | None


GenerationState = Pending | TryingModel | Succeeded | ExhaustedFailed | TimedOut
TERMINAL_STATES = (Succeeded, ExhaustedFailed, TimedOut)


# --- Events ---


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class AttemptFailed:
    reason: str


@dataclass(frozen=True)
class AttemptSucceeded:
    pass


@dataclass(frozen=True)
class DeadlineExpired:
    pass


GenerationEvent = Start | AttemptFailed | AttemptSucceeded | DeadlineExpired


def transition(state: GenerationState, event: GenerationEvent, model_count: int) -> GenerationState:
    if isinstance(state, TERMINAL_STATES):
        return state

    if isinstance(event, DeadlineExpired):
        return TimedOut(state.index if isinstance(state, TryingModel) else None)

    if isinstance(state, Pending) and isinstance(event, Start):
        return TryingModel(0) if model_count > 0 else ExhaustedFailed(attempts=0)

    if isinstance(state, TryingModel):
        if isinstance(event, AttemptSucceeded):
            return Succeeded(state.index)
        if isinstance(event, AttemptFailed):
            following = state.index + 1
            if following < model_count:
                return TryingModel(following)
            return ExhaustedFailed(attempts=following)

    raise ValueError(f"Event {event!r} is not valid in state {state!r}")


# --- Prompt shaping and JSON recovery ---


def build_prompt(instruction: str, shape: Any) -> str:
    template = json.dumps(shape, indent=2, ensure_ascii=False)
    return (
        f"{instruction.rstrip()}\n\n"
        "Respond ONLY with valid JSON in exactly this shape, with no text before or after it:\n"
        f"```json\n{template}\n```"
    )


def _scan_balanced(text: str, start: int) -> str | None:
    """Return the bracketed JSON value starting at ``start``, matched by depth."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _scan_for_json(text: str) -> Any:
    for start, char in enumerate(text):
        if char not in "{[":
            continue
        candidate = _scan_balanced(text, start)
        if candidate is None:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ExtractionError("No JSON object found in model response", text=text)


def extract_json(text: str) -> Any:
    """Recover a JSON value from free-form model output.

    Tries a ```json fenced block first, then the whole trimmed response when it
    starts with ``{`` or ``[``, then a depth-matched scan for the first
    balanced object.

    Raises:
        ExtractionError: If no parseable JSON value is present.
    """
    if not text or not text.strip():
        raise ExtractionError("Empty model response", text=text or "")

    fences = FENCE_PATTERN.findall(text)
    tagged = [body for lang, body in fences if lang.lower() == "json"]
    untagged = [body for lang, body in fences if lang.lower() != "json"]
    for body in tagged + untagged:
        candidate = body.strip()
        if candidate.startswith(("{", "[")):
            try:
                return json.loads(candidate)
            except json.JSONDecodeError:
                logger.debug("Fenced block is not valid JSON, trying other strategies")

    cleaned = text.strip()
    if cleaned.startswith(("{", "[")):
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError:
            pass

    return _scan_for_json(cleaned)


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}"


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    shape: Any
    models: tuple[ModelVariant, ...]
    timeout: float


class GenerationOrchestrator:
    def __init__(self, models: list[ModelVariant], timeout: float = GENERATION_TIMEOUT):
        self.models = list(models)
        self.timeout = timeout

    async def generate(
        self,
        prompt: str,
        shape: Any = None,
        models: list[ModelVariant] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Return the parsed JSON value of the first model that answers usably.

        Raises:
            GenerationExhaustedError: Every model failed (or none was given).
            GenerationTimeoutError: The deadline expired first.
        """
        request = self._request(prompt, shape, models, timeout)
        return await self._run(request, lambda data: data)

    async def generate_typed(
        self,
        prompt: str,
        schema: type[T],
        shape: Any = None,
        models: list[ModelVariant] | None = None,
        timeout: float | None = None,
    ) -> T:
        def parse(data: Any) -> T:
            try:
                return schema.model_validate(data)
            except ValidationError as exc:
                raise ExtractionError(
                    f"Response does not match {schema.__name__}: {exc.error_count()} errors"
                ) from exc

        request = self._request(prompt, shape, models, timeout)
        return await self._run(request, parse)

    def _request(
        self,
        prompt: str,
        shape: Any,
        models: list[ModelVariant] | None,
        timeout: float | None,
    ) -> GenerationRequest:
        return GenerationRequest(
            prompt=build_prompt(prompt, shape) if shape is not None else prompt,
            shape=shape,
            models=tuple(self.models if models is None else models),
            timeout=self.timeout if timeout is None else timeout,
        )

    async def _run(self, request: GenerationRequest, parse: Callable[[Any], Any]) -> Any:
        chain = request.models
        state = transition(Pending(), Start(), len(chain))
        failures: list[tuple[str, str]] = []
        last_text: str | None = None

        async def attempt_chain() -> Any:
            nonlocal state, last_text
            while isinstance(state, TryingModel):
                model = chain[state.index]
                text = None
                try:
                    text = await model.complete(request.prompt)
                    value = parse(extract_json(text))
                except Exception as exc:
                    if text is not None:
                        last_text = text
                    reason = _describe(exc)
                    failures.append((model.name, reason))
                    logger.warning("Model %s failed, trying next model: %s", model.name, reason)
                    state = transition(state, AttemptFailed(reason), len(chain))
                    continue

                state = transition(state, AttemptSucceeded(), len(chain))
                logger.info("Model %s produced a usable response", model.name)
                return value

            raise GenerationExhaustedError(
                f"All {len(chain)} models failed to generate a usable response"
                if chain else "No models configured for generation",
                failures=failures,
                last_text=last_text,
            )

        try:
            return await asyncio.wait_for(attempt_chain(), timeout=request.timeout)
        except asyncio.TimeoutError as exc:
            state = transition(state, DeadlineExpired(), len(chain))
            attempted = [name for name, _ in failures]
            if isinstance(state, TimedOut) and state.index is not None:
                attempted.append(chain[state.index].name)
            logger.warning(
                "Generation timed out after %.1fs (attempted: %s)", request.timeout, attempted
            )
            raise GenerationTimeoutError(request.timeout, attempted=attempted) from exc
