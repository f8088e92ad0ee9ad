"""Prompt assembly for schema-constrained generation.

Provides:
- build_context: one line per retrieved entity with its non-null fields as ``field: value``
- schema_description: JSON Schema of GenerationResult with the domain's field descriptions
- format_instructions: the schema wrapped in output-format instructions
- PromptAssembler: renders the domain template into a GenerationRequest

Everything here is a pure transformation.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, List

from routerag.domains import DomainProfile
from routerag.entities import RetrievedContext


@dataclass(frozen=True)
class GenerationRequest:
    system: str
    context: str
    query: str
    schema: str

    def messages(self) -> List[Dict[str, str]]:
        return [{"role": "system", "content": self.system}]


def build_context(profile: DomainProfile, context: RetrievedContext) -> str:
    """Render retrieved entities as a flat, line-oriented block.

    Args:
        profile: Domain profile (provides the record label).
        context: Retrieved entities with similarity scores, best first.

    Returns:
        str: One ``<Label> Record: {field: value, ...}`` line per entity.
    """
    lines: List[str] = []
    for item in context:
        ent = item.entity
        pairs = [f"id: {ent.id}", f"similarity: {item.score:.4f}"]
        for name, value in ent.fields.items():
            if value is None or value == "":
                continue
            pairs.append(f"{name}: {value}")
        if ent.has_coordinates:
            pairs.append(f"latitude: {ent.latitude}")
            pairs.append(f"longitude: {ent.longitude}")
        lines.append(f"{profile.record_label} Record: {{{', '.join(pairs)}}}")
    return "\n".join(lines)


def schema_description(profile: DomainProfile) -> Dict[str, Any]:
    """JSON Schema for GenerationResult, described in the domain's terms."""
    return {
        "type": "object",
        "properties": {
            "answer": {"type": "string", "description": profile.answer_description},
            "confidence": {
                "type": "number",
                "minimum": 0,
                "maximum": 1,
                "description": profile.confidence_description,
            },
            "relevantItems": {
                "type": "array",
                "description": profile.items_description,
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string", "description": profile.item_id_description},
                        "relevance": {
                            "type": "number",
                            "minimum": 0,
                            "maximum": 1,
                            "description": profile.relevance_description,
                        },
                    },
                    "required": ["id", "relevance"],
                    "additionalProperties": False,
                },
            },
        },
        "required": ["answer", "confidence", "relevantItems"],
        "additionalProperties": False,
    }


def format_instructions(profile: DomainProfile) -> str:
    schema = json.dumps(schema_description(profile), indent=2)
    return (
        "Respond with a single JSON object that conforms to the JSON Schema below. "
        "Use exactly these fields, no others, and do not surround the object with prose.\n"
        f"```json\n{schema}\n```"
    )


class PromptAssembler:
    """Render retrieved context and the query into the domain's instruction template."""

    def __init__(self, profile: DomainProfile):
        self.profile = profile

    def assemble(self, query: str, context: RetrievedContext) -> GenerationRequest:
        ctx = build_context(self.profile, context)
        schema = format_instructions(self.profile)
        system = self.profile.system_template.format(context=ctx, query=query, format_instructions=schema)
        return GenerationRequest(system=system, context=ctx, query=query, schema=schema)
