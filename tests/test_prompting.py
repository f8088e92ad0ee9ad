import json

from routerag.domains import CLIENTS, INVOICES
from routerag.entities import EntityRecord, ScoredEntity
from routerag.prompting import PromptAssembler, build_context, schema_description
from routerag.schemas import GenerationResult


def test_context_one_line_per_entity_without_nulls(berlin, hamburg):
    ctx = build_context(CLIENTS, [ScoredEntity(berlin, 0.91), ScoredEntity(hamburg, 0.42)])
    lines = ctx.splitlines()

    assert len(lines) == 2
    assert lines[0].startswith("Client Record: {id: c1, similarity: 0.9100")
    assert "company_name: Spree Logistics GmbH" in lines[0]
    assert "latitude: 52.5219" in lines[0]
    assert "contact_name" not in lines[0]
    assert "latitude" not in lines[1]


def test_assembled_request_embeds_query_context_and_schema(berlin):
    req = PromptAssembler(CLIENTS).assemble("route to Berlin", [ScoredEntity(berlin, 0.9)])

    assert "route to Berlin" in req.system
    assert req.context in req.system
    assert req.schema in req.system
    assert "ONLY the provided context" in req.system
    assert req.messages() == [{"role": "system", "content": req.system}]


def test_query_with_braces_is_kept_literally():
    req = PromptAssembler(INVOICES).assemble("totals for {customer}", [])
    assert "totals for {customer}" in req.system


def test_schema_description_matches_generation_result():
    schema = schema_description(INVOICES)
    assert set(schema["required"]) == {"answer", "confidence", "relevantItems"}
    assert schema["properties"]["relevantItems"]["items"]["required"] == ["id", "relevance"]

    sample = {
        "answer": "ok",
        "confidence": 0.5,
        "relevantItems": [{"id": "inv-1", "relevance": 1.0}],
    }
    assert GenerationResult.model_validate_json(json.dumps(sample)).relevant_items[0].id == "inv-1"


def test_invoice_context_label():
    inv = EntityRecord(id="inv-1", fields={"invoice_number": "2024-001", "amount": "120.00", "status": "overdue"})
    line = build_context(INVOICES, [ScoredEntity(inv, 0.5)])
    assert line.startswith("Invoice Record: {id: inv-1")
    assert "status: overdue" in line
