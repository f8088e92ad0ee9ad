"""Domain profiles for the generic query pipeline.

A DomainProfile bundles everything that differs between use cases:
- the entity schema (ORM model, descriptive and address columns)
- the similarity query target (the model's table)
- the prompt template
- the output-schema field descriptions shown to the model

Two profiles ship: ``clients`` (route planning over client addresses) and
``invoices`` (accounting summaries). Only profiles with address columns are
routable; the pipeline skips geocoding and routing for the rest.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Type

from routerag.entities import EntityRecord
from routerag.models import Client, Invoice

CLIENT_ROUTING_TEMPLATE = """You are a Routing Expert and Travel Agent Specialist. Your job is to analyze the provided client records and plan the most efficient, quickest route to visit the clients the question asks for, in a logical order.

Key Guidelines:
- Use ONLY the provided context (client records) to identify and select relevant clients. Ignore any external knowledge base or assumptions about locations.
- Optimize the route for efficiency: group by city/region, then street order; avoid backtracking.
- If the question names several clients, map each to the most relevant record by name, ID, or details. If no exact match exists, select the most similar records.
- Start the answer with a short rationale for the chosen order, then list the stops with directions between them.
- List the used clients in visiting order in relevantItems, referencing each by its id.
- Return a single JSON object that strictly matches the schema below and nothing else.

Context:
{context}

Question:
{query}

{format_instructions}"""

INVOICE_SUMMARY_TEMPLATE = """You are an Accounting Assistant. Your job is to answer the question using the provided invoice records and produce a concise accounting summary.

Key Guidelines:
- Use ONLY the provided context (invoice records). Never rely on an external knowledge base or invent amounts, dates, or customers.
- Summarize totals per currency and status where relevant; mention overdue items explicitly.
- Start the answer with a short rationale explaining which invoices were used and why.
- List the used invoices in relevantItems, most relevant first, referencing each by its id.
- Return a single JSON object that strictly matches the schema below and nothing else.

Context:
{context}

Question:
{query}

{format_instructions}"""


@dataclass(frozen=True)
class DomainProfile:
    """Configuration for one instantiation of the generic pipeline."""
    name: str
    model: Type[Any]
    record_label: str
    descriptive_fields: Tuple[str, ...]
    system_template: str
    answer_description: str
    confidence_description: str
    items_description: str
    relevance_description: str
    address_fields: Tuple[str, ...] = ()
    label_field: Optional[str] = None
    item_id_description: str = "The id of a record from the context."
    refusal_message: str = "I don't know. No stored records matched the question."

    @property
    def table(self) -> str:
        return self.model.__tablename__

    @property
    def routable(self) -> bool:
        return bool(self.address_fields)

    def to_record(self, source: Any) -> EntityRecord:
        """Build an EntityRecord from an ORM row or a result-row mapping."""
        get = source.get if isinstance(source, Mapping) else lambda k, d=None: getattr(source, k, d)
        fields: Dict[str, Any] = {}
        for name in self.descriptive_fields:
            fields[name] = get(name, None)
        embedding = get("embedding", None)
        lat = get("latitude", None) if self.routable else None
        lon = get("longitude", None) if self.routable else None
        return EntityRecord(
            id=str(get("id")),
            fields=fields,
            latitude=float(lat) if lat is not None else None,
            longitude=float(lon) if lon is not None else None,
            embedding=tuple(float(x) for x in embedding) if embedding is not None else None,
        )

    def display_address(self, entity: EntityRecord) -> str:
        """Format "street, postal_code city, country", dropping empty parts."""
        vals = [str(entity.fields.get(f) or "").strip() for f in self.address_fields]
        if len(vals) != 4:
            return ", ".join(v for v in vals if v)
        street, postal, city, country = vals
        locality = f"{postal} {city}".strip()
        return ", ".join(p for p in (street, locality, country) if p)

    def label(self, entity: EntityRecord) -> Optional[str]:
        if not self.label_field:
            return None
        value = entity.fields.get(self.label_field)
        return str(value) if value is not None else None

    def embedding_text(self, fields: Mapping[str, Any]) -> str:
        """Text that gets embedded for a record: one ``field: value`` pair per non-null column."""
        return ", ".join(
            f"{name}: {fields[name]}"
            for name in self.descriptive_fields
            if fields.get(name) not in (None, "")
        )


CLIENTS = DomainProfile(
    name="clients",
    model=Client,
    record_label="Client",
    descriptive_fields=(
        "company_name",
        "contact_name",
        "address",
        "postal_code",
        "city",
        "country",
        "phone",
        "notes",
    ),
    address_fields=("address", "postal_code", "city", "country"),
    label_field="company_name",
    system_template=CLIENT_ROUTING_TEMPLATE,
    answer_description="Short rationale for the route followed by the ordered stops, directions between them and execution tips.",
    confidence_description="Confidence in the route (0 to 1), based on how well the records match the question and how feasible the order is.",
    items_description="Clients used in the route, in visiting order.",
    item_id_description="The id of a client record from the context.",
    relevance_description="How well the client matches the question and fits its position in the route (0 to 1).",
    refusal_message="I don't know. No stored client records matched the question, so no route could be planned.",
)

INVOICES = DomainProfile(
    name="invoices",
    model=Invoice,
    record_label="Invoice",
    descriptive_fields=(
        "invoice_number",
        "customer_name",
        "issue_date",
        "due_date",
        "amount",
        "currency",
        "status",
        "description",
    ),
    label_field="invoice_number",
    system_template=INVOICE_SUMMARY_TEMPLATE,
    answer_description="Short rationale followed by the accounting summary that answers the question.",
    confidence_description="Confidence in the summary (0 to 1), based on how completely the records cover the question.",
    items_description="Invoices used in the summary, most relevant first.",
    item_id_description="The id of an invoice record from the context.",
    relevance_description="How relevant the invoice is to the question (0 to 1).",
    refusal_message="I don't know. No stored invoice records matched the question.",
)

DOMAINS: Dict[str, DomainProfile] = {p.name: p for p in (CLIENTS, INVOICES)}


def get_domain(name: str) -> DomainProfile:
    """Look up a profile by name; raises KeyError for unknown domains."""
    return DOMAINS[name]
