import asyncio

import pytest

from channel_insights.agents.orchestrator import (
    AttemptFailed,
    AttemptSucceeded,
    DeadlineExpired,
    ExhaustedFailed,
    GenerationOrchestrator,
    Pending,
    Start,
    Succeeded,
    TimedOut,
    TryingModel,
    build_prompt,
    extract_json,
    transition,
)
from channel_insights.errors import (
    ExtractionError,
    GenerationExhaustedError,
    GenerationTimeoutError,
    OperationTimeoutError,
)
from channel_insights.models.idea import IdeaBatchPayload
from channel_insights.services.llm import model_chain
from fakes import ScriptedBackend, fenced


def build(responses: dict, names: list[str] | None = None, timeout: float = 5, delay: float = 0.0):
    backend = ScriptedBackend(responses, delay=delay)
    models = model_chain(backend, names if names is not None else list(responses))
    return GenerationOrchestrator(models, timeout=timeout), backend


def test_first_failure_falls_through_to_second_model():
    orchestrator, backend = build({
        "model-a": RuntimeError("503 unavailable"),
        "model-b": fenced({"answer": 42}),
    })

    result = asyncio.run(orchestrator.generate("question"))

    assert result == {"answer": 42}
    assert backend.calls == ["model-a", "model-b"]


def test_chain_stops_at_first_success():
    orchestrator, backend = build({
        "model-a": RuntimeError("quota exceeded"),
        "model-b": fenced({"answer": "b"}),
        "model-c": fenced({"answer": "c"}),
    })

    result = asyncio.run(orchestrator.generate("question"))

    assert result == {"answer": "b"}
    assert backend.calls == ["model-a", "model-b"]


def test_success_stops_the_chain():
    orchestrator, backend = build({"model-a": '{"ok": true}', "model-b": '{"ok": false}'})

    assert asyncio.run(orchestrator.generate("question")) == {"ok": True}
    assert backend.calls == ["model-a"]


def test_unparseable_answer_moves_to_next_model():
    orchestrator, backend = build({
        "model-a": "Sure! Here are some thoughts without any JSON.",
        "model-b": '[1, 2, 3]',
    })

    assert asyncio.run(orchestrator.generate("question")) == [1, 2, 3]
    assert backend.calls == ["model-a", "model-b"]


def test_empty_model_list_fails_without_calls():
    orchestrator, backend = build({}, names=[])

    with pytest.raises(GenerationExhaustedError) as info:
        asyncio.run(orchestrator.generate("question"))

    assert backend.calls == []
    assert info.value.failures == []
    assert info.value.kind == "generation_exhausted"


def test_exhausted_error_lists_every_attempt_and_last_text():
    orchestrator, _ = build({
        "model-a": ValueError("Empty response from model-a"),
        "model-b": "just prose",
    })

    with pytest.raises(GenerationExhaustedError) as info:
        asyncio.run(orchestrator.generate("question"))

    assert [name for name, _ in info.value.failures] == ["model-a", "model-b"]
    assert "ExtractionError" in info.value.failures[1][1]
    assert info.value.last_text == "just prose"
    assert len(info.value.to_dict()["details"]["attempts"]) == 2


def test_deadline_expiry_is_a_timeout_not_exhaustion():
    orchestrator, backend = build({"slow": '{"late": true}'}, timeout=0.05, delay=1.0)

    with pytest.raises(GenerationTimeoutError) as info:
        asyncio.run(orchestrator.generate("question"))

    assert isinstance(info.value, OperationTimeoutError)
    assert not isinstance(info.value, GenerationExhaustedError)
    assert info.value.kind == "timeout"
    assert info.value.retryable
    assert info.value.attempted == ["slow"]
    assert backend.calls == ["slow"]


def test_per_call_overrides():
    orchestrator, backend = build({"model-a": '{"a": 1}', "model-b": '{"b": 2}'})
    only_b = [m for m in orchestrator.models if m.name == "model-b"]

    assert asyncio.run(orchestrator.generate("question", models=only_b)) == {"b": 2}
    assert backend.calls == ["model-b"]


def test_generate_typed_validates_against_schema():
    orchestrator, backend = build({
        "model-a": '{"ideas": "not a list of ideas"}',
        "model-b": fenced([{"title": "Async in depth", "tags": "python, asyncio"}]),
    })

    payload = asyncio.run(orchestrator.generate_typed("ideas please", IdeaBatchPayload))

    assert backend.calls == ["model-a", "model-b"]
    assert payload.ideas[0].title == "Async in depth"
    assert payload.ideas[0].tags == ["python", "asyncio"]


def test_shape_is_appended_to_prompt():
    captured = []

    def answer(prompt: str) -> str:
        captured.append(prompt)
        return '{"title": "x"}'

    orchestrator, _ = build({"model-a": answer})
    asyncio.run(orchestrator.generate("Give me a title.", {"title": "string"}))

    assert captured[0].startswith("Give me a title.")
    assert '"title": "string"' in captured[0]
    assert "Respond ONLY with valid JSON" in build_prompt("x", {})


def test_extract_json_from_fenced_block():
    text = 'Here it is:\n```json\n{"a": [1, 2], "b": "c"}\n```\nAnything else?'
    assert extract_json(text) == {"a": [1, 2], "b": "c"}


def test_extract_json_from_untagged_fence():
    assert extract_json('```\n{"a": 1}\n```') == {"a": 1}


def test_extract_json_from_bare_text():
    assert extract_json('  {"a": {"b": 1}}  ') == {"a": {"b": 1}}


def test_extract_json_scans_prose_for_balanced_object():
    text = 'The result {see below} is: {"msg": "brace } inside \\" string", "n": {"m": 1}} done'
    assert extract_json(text) == {"msg": 'brace } inside " string', "n": {"m": 1}}


def test_extract_json_rejects_text_without_json():
    with pytest.raises(ExtractionError):
        extract_json("no structured data here")
    with pytest.raises(ExtractionError):
        extract_json("   ")
    with pytest.raises(ExtractionError):
        extract_json('{"unterminated": ')


def test_transition_walks_the_chain():
    state = transition(Pending(), Start(), 2)
    assert state == TryingModel(0)

    state = transition(state, AttemptFailed("boom"), 2)
    assert state == TryingModel(1)

    assert transition(state, AttemptSucceeded(), 2) == Succeeded(1)
    assert transition(state, AttemptFailed("boom"), 2) == ExhaustedFailed(attempts=2)


def test_transition_edge_cases():
    assert transition(Pending(), Start(), 0) == ExhaustedFailed(attempts=0)
    assert transition(TryingModel(0), DeadlineExpired(), 3) == TimedOut(0)
    assert transition(Pending(), DeadlineExpired(), 3) == TimedOut(None)

    # terminal states never move
    assert transition(Succeeded(0), AttemptFailed("late"), 3) == Succeeded(0)
    assert transition(TimedOut(1), AttemptSucceeded(), 3) == TimedOut(1)

    with pytest.raises(ValueError):
        transition(Pending(), AttemptSucceeded(), 3)
