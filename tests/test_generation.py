import json

import pytest
from openai import OpenAIError

from routerag.domains import CLIENTS
from routerag.entities import ScoredEntity
from routerag.errors import GenerationError
from routerag.generation import InvalidOutput, StructuredGenerator, ValidOutput, parse_output
from routerag.prompting import PromptAssembler
from tests.fakes import FakeOpenAI

VALID = json.dumps({
    "answer": "Start in Berlin, then drive to Potsdam.",
    "confidence": 0.8,
    "relevantItems": [{"id": "c1", "relevance": 0.9}, {"id": "c2", "relevance": 0.7}],
})
BAD_CONFIDENCE = json.dumps({"answer": "x", "confidence": 1.5, "relevantItems": []})


@pytest.fixture
def request_(berlin):
    return PromptAssembler(CLIENTS).assemble("route to Berlin", [ScoredEntity(berlin, 0.9)])


def test_parse_valid():
    out = parse_output(VALID)
    assert isinstance(out, ValidOutput)
    assert out.result.confidence == 0.8
    assert [i.id for i in out.result.relevant_items] == ["c1", "c2"]


def test_parse_strips_code_fence():
    out = parse_output(f"```json\n{VALID}\n```")
    assert isinstance(out, ValidOutput)


@pytest.mark.parametrize(
    "payload",
    [
        {"answer": "x", "confidence": 1.5, "relevantItems": []},
        {"answer": "x", "confidence": -0.1, "relevantItems": []},
        {"answer": "x", "confidence": 0.5, "relevantItems": [{"id": "c1", "relevance": 2}]},
        {"answer": "x", "confidence": 0.5, "relevantItems": [{"id": 7, "relevance": 0.5}]},
        {"answer": "x", "confidence": 0.5, "relevantItems": [{"relevance": 0.5}]},
        {"answer": "x", "confidence": 0.5, "relevantItems": "c1"},
        {"answer": "x", "confidence": 0.5},
        {"answer": "x", "confidence": 0.5, "relevantItems": [], "extra": True},
        {"answer": "x", "confidence": "0.9", "relevantItems": []},
        {"answer": "x", "confidence": True, "relevantItems": []},
        {"answer": "x", "confidence": 0.5, "relevantItems": [{"id": "c1", "relevance": "0.7"}]},
        {"answer": "x", "confidence": 0.5, "relevantItems": [{"id": "c1", "relevance": False}]},
    ],
)
def test_parse_rejects_schema_violations(payload):
    out = parse_output(json.dumps(payload))
    assert isinstance(out, InvalidOutput)
    assert out.error


def test_parse_rejects_non_json():
    out = parse_output("Here is your route: Berlin -> Potsdam")
    assert isinstance(out, InvalidOutput)


def test_bounds_are_inclusive():
    out = parse_output(json.dumps({
        "answer": "x", "confidence": 0, "relevantItems": [{"id": "a", "relevance": 1}],
    }))
    assert isinstance(out, ValidOutput)


def test_generate_valid_first_try(request_):
    fake = FakeOpenAI(outputs=[VALID])
    result = StructuredGenerator(fake, "gpt-4o-mini").generate(request_)

    assert result.answer.startswith("Start in Berlin")
    assert len(fake.completions.calls) == 1
    call = fake.completions.calls[0]
    assert call["model"] == "gpt-4o-mini"
    assert call["response_format"] == {"type": "json_object"}


def test_invalid_confidence_triggers_one_repair(request_):
    fake = FakeOpenAI(outputs=[BAD_CONFIDENCE, VALID])
    result = StructuredGenerator(fake, "m").generate(request_)

    assert result.confidence == 0.8
    assert len(fake.completions.calls) == 2
    repair_prompt = fake.completions.calls[1]["messages"][-1]["content"]
    assert BAD_CONFIDENCE in repair_prompt
    assert "confidence" in repair_prompt


def test_still_invalid_after_repair_is_fatal(request_):
    fake = FakeOpenAI(outputs=[BAD_CONFIDENCE, BAD_CONFIDENCE, VALID])
    with pytest.raises(GenerationError):
        StructuredGenerator(fake, "m").generate(request_)
    assert len(fake.completions.calls) == 2


def test_provider_error_is_generation_error(request_):
    fake = FakeOpenAI(chat_error=OpenAIError("model overloaded"))
    with pytest.raises(GenerationError, match="model overloaded"):
        StructuredGenerator(fake, "m").generate(request_)
