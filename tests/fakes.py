"""In-memory stand-ins for the external collaborators used across the tests."""
from dataclasses import replace
from types import SimpleNamespace

from routerag.entities import EntityRecord
from routerag.retrieval import cosine_similarity


class FakeEmbeddings:
    def __init__(self, vectors=None, default=None, error=None):
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0, 0.0, 0.0]
        self.error = error
        self.calls = []

    def create(self, model, input, **kwargs):
        self.calls.append(list(input))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            data=[SimpleNamespace(embedding=list(self.vectors.get(t, self.default))) for t in input]
        )


class FakeCompletions:
    def __init__(self, outputs=(), error=None):
        self.outputs = list(outputs)
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        content = self.outputs.pop(0)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeOpenAI:
    """Exposes ``embeddings.create`` and ``chat.completions.create`` like the OpenAI client."""

    def __init__(self, embeddings=None, outputs=(), chat_error=None):
        self.embeddings = embeddings or FakeEmbeddings()
        self.completions = FakeCompletions(outputs, chat_error)
        self.chat = SimpleNamespace(completions=self.completions)


class FakeStore:
    def __init__(self, entities=(), fail_reads=None):
        self.entities = {e.id: e for e in entities}
        self.fail_reads = fail_reads
        self.writes = []
        self.rank_calls = 0
        self.scan_calls = 0

    def rank_by_similarity(self, query_vector, top_k):
        self.rank_calls += 1
        if self.fail_reads is not None:
            raise self.fail_reads
        scored = [
            (replace(e), cosine_similarity(query_vector, e.embedding))
            for e in self.entities.values()
            if e.embedding is not None and len(e.embedding) == len(query_vector)
        ]
        return sorted(scored, key=lambda p: p[1], reverse=True)[:top_k]

    def list_embedded(self):
        self.scan_calls += 1
        if self.fail_reads is not None:
            raise self.fail_reads
        return [replace(e) for e in self.entities.values() if e.embedding is not None]

    def get_many(self, ids):
        if self.fail_reads is not None:
            raise self.fail_reads
        return {i: replace(self.entities[i]) for i in ids if i in self.entities}

    def missing_coordinates(self):
        if self.fail_reads is not None:
            raise self.fail_reads
        return [replace(e) for e in self.entities.values() if not e.has_coordinates]

    def update_coordinates(self, entity_id, latitude, longitude):
        self.writes.append((entity_id, latitude, longitude))
        stored = self.entities[entity_id]
        stored.latitude, stored.longitude = latitude, longitude


class FakeClock:
    """Monotonic clock whose time only moves when ``sleep`` is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeGeocoder:
    """Maps addresses to (lat, lon), None, or an exception instance to raise."""

    def __init__(self, results=None, clock=None):
        self.results = results or {}
        self.clock = clock
        self.calls = []

    def geocode(self, address):
        self.calls.append((address, self.clock() if self.clock else None))
        outcome = self.results.get(address)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeRouter:
    def __init__(self, geometry=None, error=None):
        self.geometry = geometry
        self.error = error
        self.calls = []

    def route(self, coordinates):
        self.calls.append(list(coordinates))
        if self.error is not None:
            raise self.error
        return self.geometry


def client(id, company, address, postal, city, country, lat=None, lon=None, embedding=None):
    return EntityRecord(
        id=id,
        fields={
            "company_name": company,
            "contact_name": None,
            "address": address,
            "postal_code": postal,
            "city": city,
            "country": country,
            "phone": None,
            "notes": None,
        },
        latitude=lat,
        longitude=lon,
        embedding=tuple(embedding) if embedding is not None else None,
    )
