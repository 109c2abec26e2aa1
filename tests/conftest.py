"""
Shared pytest fixtures for the note sync tests.

Both remote backends are simulated in-process behind httpx.MockTransport:
FakeQdrant keeps points in memory and understands the filtered delete,
FakeEmbedder returns deterministic vectors. The debounce timer runs on a
virtual clock (FakeScheduler) so tests never sleep.
"""

import asyncio
import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from services.note_rag_sync.SyncService import SyncService
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.vault.NoteVault import NoteVault

VECTOR_SIZE = 4
COLLECTION = "notes"
THREE_PARAGRAPHS = "first paragraph\n\nsecond paragraph\n\nthird paragraph"


class FakeQdrant:
    """In-memory stand-in for the Qdrant REST API."""

    def __init__(self):
        self.points: dict[str, dict[str, Any]] = {}
        self.requests: list[tuple[str, str, Any]] = []
        self.exists = True
        self.fail_ops: set[str] = set()
        self.fail_upsert_on_call: int | None = None
        self._upsert_calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        prefix = f"/collections/{COLLECTION}"

        if request.method == "GET" and path == "/healthz":
            return httpx.Response(200, text="healthz check passed")
        if request.method == "GET" and path == f"{prefix}/exists":
            self.requests.append(("exists", path, body))
            return httpx.Response(200, json={"result": {"exists": self.exists}, "status": "ok"})
        if request.method == "PUT" and path == prefix:
            self.requests.append(("create", path, body))
            self.exists = True
            return httpx.Response(200, json={"result": True, "status": "ok"})
        if request.method == "PUT" and path == f"{prefix}/index":
            self.requests.append(("index", path, body))
            return httpx.Response(200, json={"result": {"status": "completed"}, "status": "ok"})
        if request.method == "POST" and path == f"{prefix}/points/delete":
            self.requests.append(("delete", path, body))
            if "delete" in self.fail_ops:
                return httpx.Response(500, text="delete exploded")
            doc_ids = {clause["match"]["value"] for clause in body["filter"]["should"]}
            self.points = {
                point_id: point for point_id, point in self.points.items()
                if point["payload"]["doc_id"] not in doc_ids
            }
            return httpx.Response(200, json={"result": {"status": "completed"}, "status": "ok"})
        if request.method == "PUT" and path == f"{prefix}/points":
            self.requests.append(("upsert", path, body))
            self._upsert_calls += 1
            if "upsert" in self.fail_ops or self._upsert_calls == self.fail_upsert_on_call:
                return httpx.Response(500, text="upsert exploded")
            for point in body["points"]:
                self.points[point["id"]] = point
            return httpx.Response(200, json={"result": {"status": "completed"}, "status": "ok"})
        return httpx.Response(404, text=f"unexpected {request.method} {path}")

    def calls(self, op: str) -> list[Any]:
        return [body for name, _, body in self.requests if name == op]

    def points_for(self, doc_id: str) -> list[dict[str, Any]]:
        points = [p for p in self.points.values() if p["payload"]["doc_id"] == doc_id]
        return sorted(points, key=lambda p: p["payload"]["chunk_index"])


def fake_vector(text: str) -> list[float]:
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [digest[i] / 255.0 for i in range(VECTOR_SIZE)]


class FakeEmbedder:
    """Deterministic stand-in for an OpenAI-compatible /embeddings endpoint.

    Set ``gate`` to an asyncio.Event to hold every request until it is set;
    ``started`` is set as soon as the first request arrives.
    """

    def __init__(self):
        self.batches: list[list[str]] = []
        self.fail = False
        self.gate: asyncio.Event | None = None
        self.started: asyncio.Event | None = None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/models"):
            return httpx.Response(200, json={"data": []})
        body = json.loads(request.content)
        self.batches.append(body["input"])
        if self.started is not None:
            self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            return httpx.Response(503, text="embedding provider overloaded")
        data = [
            {"object": "embedding", "index": i, "embedding": fake_vector(text)}
            for i, text in enumerate(body["input"])
        ]
        return httpx.Response(200, json={"object": "list", "data": data, "model": body["model"]})

    @property
    def texts(self) -> list[str]:
        return [text for batch in self.batches for text in batch]


class FakeTimer:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Virtual clock for the debounce timer."""

    def __init__(self):
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> int:
        """Move the clock forward and fire every timer that came due. Returns the number fired."""
        self.now += seconds
        due = [t for t in self.timers if not t.cancelled and t.due <= self.now]
        for timer in due:
            self.timers.remove(timer)
            timer.callback()
        return len(due)

    @property
    def active(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]


def write_note(vault_dir: Path, path: str, body: str, doc_id: str | None = None, **metadata: Any) -> str:
    """Write a markdown note with optional frontmatter and return its vault-relative path."""
    full_path = vault_dir / path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    if doc_id is not None:
        metadata = {"uuid": doc_id, **metadata}
    if metadata:
        lines = "\n".join(f"{key}: {value}" for key, value in metadata.items())
        full_path.write_text(f"---\n{lines}\n---\n{body}", encoding="utf-8")
    else:
        full_path.write_text(body, encoding="utf-8")
    return path


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    vault = tmp_path / "vault"
    vault.mkdir()
    return vault


@pytest.fixture
def env(monkeypatch, tmp_path, vault_dir):
    """Minimal environment for all clients and the sync service."""
    values = {
        "ROOT_DIR": str(tmp_path),
        "VAULT_ROOT_DIR": str(vault_dir),
        "APP_API_KEY": "secret",
        "RAG_ENGINE": "qdrant",
        "RAG_QDRANT_BASE_URL": "http://qdrant.test",
        "RAG_QDRANT_COLLECTION": COLLECTION,
        "RAG_BATCH_SIZE": "2",
        "EMBED_ENGINE": "openai",
        "EMBED_OPENAI_BASE_URL": "http://openai.test/v1",
        "EMBED_OPENAI_API_KEY": "sk-test",
        "EMBED_MODEL": "text-embedding-3-small",
        "EMBED_VECTOR_SIZE": str(VECTOR_SIZE),
        "EMBED_BATCH_SIZE": "3",
        "SYNC_ID_FIELD": "uuid",
        "SYNC_MAX_CHUNK_SIZE": "20",
        "SYNC_CHUNK_OVERLAP": "5",
        "SYNC_DEBOUNCE_MS": "1000",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    for key in ["RAG_QDRANT_API_KEY", "VAULT_IGNORE_DIRS"]:
        monkeypatch.delenv(key, raising=False)
    return values


@pytest.fixture
def helper_config(env) -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("note_sync.tests")))


@pytest.fixture
def qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def rag_client(helper_config, qdrant) -> RAGClientQdrant:
    client = RAGClientQdrant(helper_config=helper_config)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(qdrant.handler))
    return client


@pytest.fixture
def embed_client(helper_config, embedder) -> EmbedClientOpenai:
    client = EmbedClientOpenai(helper_config=helper_config)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(embedder.handler))
    return client


@pytest.fixture
def vault(helper_config) -> NoteVault:
    return NoteVault(helper_config=helper_config)


@pytest.fixture
def sync_service(helper_config, vault, rag_client, embed_client, scheduler) -> SyncService:
    return SyncService(
        helper_config=helper_config,
        vault=vault,
        rag_client=rag_client,
        embed_client=embed_client,
        scheduler=scheduler,
    )
