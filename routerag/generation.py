"""Schema-validated answer generation using OpenAI chat completions.

Provides:
- ValidOutput / InvalidOutput: tagged outcome of parsing raw model text
- parse_output: strip code fences and validate against GenerationResult
- StructuredGenerator: one generation call plus at most one repair call

The repair step consumes an InvalidOutput: the invalid text and its validation
error are sent back to the model with the schema. A second invalid output raises
GenerationError; there are no further retries.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Union

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from routerag.errors import GenerationError
from routerag.prompting import GenerationRequest
from routerag.schemas import GenerationResult

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)

REPAIR_SYSTEM = (
    "You fix malformed structured output. You receive format instructions, a completion "
    "that violates them, and the validation error. Return only the corrected JSON object. "
    "Keep the original content wherever it is valid; do not add information."
)


@dataclass(frozen=True)
class ValidOutput:
    result: GenerationResult


@dataclass(frozen=True)
class InvalidOutput:
    raw: str
    error: str


ParseOutcome = Union[ValidOutput, InvalidOutput]


def _strip_fences(raw: str) -> str:
    m = _FENCE.match(raw)
    return m.group(1) if m else raw.strip()


def parse_output(raw: str) -> ParseOutcome:
    """Validate raw model text against the GenerationResult schema.

    Args:
        raw: Model output, optionally wrapped in a markdown code fence.

    Returns:
        ParseOutcome: ValidOutput with the parsed result, or InvalidOutput carrying
            the raw text and the validation error message.
    """
    try:
        return ValidOutput(GenerationResult.model_validate_json(_strip_fences(raw)))
    except ValidationError as e:
        return InvalidOutput(raw=raw, error=str(e))


class StructuredGenerator:
    """Invoke the chat model and enforce the output schema.

    Args:
        client: OpenAI client (anything exposing ``chat.completions.create``).
        model: Chat model name.
        temperature: Sampling temperature.
        max_tokens: Completion token cap.
    """

    def __init__(self, client: OpenAI, model: str, temperature: float = 0.1, max_tokens: int = 1200):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _complete(self, messages: List[Dict[str, str]]) -> str:
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.error("Chat completion failed: %s", e)
            raise GenerationError(f"generation provider error: {e}") from e
        return (resp.choices[0].message.content or "").strip()

    def repair(self, request: GenerationRequest, invalid: InvalidOutput) -> ParseOutcome:
        """Ask the model once to correct an invalid completion."""
        user = (
            f"Instructions:\n--------------\n{request.schema}\n--------------\n"
            f"Completion:\n--------------\n{invalid.raw}\n--------------\n\n"
            "Above, the Completion did not satisfy the constraints given in the Instructions.\n"
            f"Error:\n--------------\n{invalid.error}\n--------------\n\n"
            "Respond only with a JSON object that satisfies the Instructions."
        )
        raw = self._complete([
            {"role": "system", "content": REPAIR_SYSTEM},
            {"role": "user", "content": user},
        ])
        return parse_output(raw)

    def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate and validate a structured answer.

        Returns:
            GenerationResult: The validated result.

        Raises:
            GenerationError: If the provider fails or the output is still invalid after repair.
        """
        outcome = parse_output(self._complete(request.messages()))
        if isinstance(outcome, InvalidOutput):
            logger.warning("Model output failed validation, attempting repair: %s", outcome.error)
            outcome = self.repair(request, outcome)
        if isinstance(outcome, InvalidOutput):
            logger.error("Repaired output still invalid: %s", outcome.error)
            raise GenerationError(f"model output does not match the schema: {outcome.error}")
        return outcome.result
