"""Shared test fixtures."""

import copy
import itertools
import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("JWT_SECRET", "test-secret-with-enough-length-for-hs256")
os.environ.setdefault("STREAM_RETRY_BASE_DELAY", "0.001")

import pytest
from fastapi.testclient import TestClient

from src.auth.jwt import create_access_token
from src.db import queries
from src.db.client import get_db
from src.db.transaction import register_rollback
from src.main import app
from src.streams import context as stream_context
from src.threads import routes as thread_routes
from src.threads import service as thread_service

_BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeStore:
    """In-memory stand-in for the Supabase tables behind src.db.queries."""

    def __init__(self):
        self.threads: dict[str, dict] = {}
        self.messages: dict[str, dict] = {}
        self.models: dict[str, dict] = {}
        self.settings: dict[str, dict] = {}
        self.usage: dict[str, dict] = {}
        self.customers: dict[str, dict] = {}
        self.calls: list[str] = []
        self.fail_on: set[str] = set()
        self._clock = itertools.count(1)

    def timestamp(self) -> str:
        return (_BASE_TIME + timedelta(seconds=next(self._clock))).isoformat()

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    # --- seeding helpers ---

    def add_user(self, user_id: str, credits_used: int = 0, subscription: dict | None = None) -> None:
        self.settings[user_id] = {"user_id": user_id, "custom_instructions": None, "temperature": None}
        self.usage[user_id] = {"user_id": user_id, "credits": credits_used, "search": 0, "research": 0}
        if subscription is not None:
            self.customers[user_id] = {"user_id": user_id, "subscription": subscription}

    def add_model(self, model_id: str = "llama-3.1-8b-instant", credits: int = 5, **extra) -> dict:
        model = {
            "id": model_id,
            "name": model_id,
            "provider": "groq",
            "credits": credits,
            "supports_images": False,
            "supports_documents": False,
            "is_enabled": True,
            **extra,
        }
        self.models[model_id] = model
        return model

    def add_thread(self, thread_id: str, user_id: str, status: str = "ready", stream_id: str | None = None) -> dict:
        now = self.timestamp()
        thread = {
            "id": thread_id, "user_id": user_id, "status": status, "stream_id": stream_id,
            "title": None, "created_at": now, "updated_at": now,
        }
        self.threads[thread_id] = thread
        return thread

    def add_message(self, thread_id: str, user_id: str, text: str, role: str = "user", message_id: str | None = None) -> dict:
        message_id = message_id or str(uuid.uuid4())
        now = self.timestamp()
        message = {
            "id": message_id, "thread_id": thread_id, "user_id": user_id, "role": role,
            "parts": [{"type": "text", "text": text}], "created_at": now, "updated_at": now,
        }
        self.messages[message_id] = message
        return message

    def history(self, thread_id: str) -> list[dict]:
        rows = [m for m in self.messages.values() if m["thread_id"] == thread_id]
        return sorted(rows, key=lambda m: m["created_at"])

    # --- query replacements ---

    def install(self, monkeypatch) -> None:
        store = self

        async def get_thread_by_id(db, thread_id):
            store._call("get_thread_by_id")
            return copy.deepcopy(store.threads.get(thread_id))

        async def get_message_by_id(db, message_id):
            store._call("get_message_by_id")
            return copy.deepcopy(store.messages.get(message_id))

        async def get_model_by_id(db, model_id):
            store._call("get_model_by_id")
            model = store.models.get(model_id)
            return copy.deepcopy(model) if model and model["is_enabled"] else None

        async def get_settings_by_user_id(db, user_id):
            store._call("get_settings_by_user_id")
            return copy.deepcopy(store.settings.get(user_id))

        async def get_usage_by_user_id(db, user_id):
            store._call("get_usage_by_user_id")
            return copy.deepcopy(store.usage.get(user_id))

        async def get_user_customer_by_user_id(db, user_id):
            store._call("get_user_customer_by_user_id")
            return copy.deepcopy(store.customers.get(user_id))

        async def get_thread_message_history(db, thread_id):
            store._call("get_thread_message_history")
            return copy.deepcopy(store.history(thread_id))

        async def list_models(db):
            store._call("list_models")
            return [copy.deepcopy(m) for m in store.models.values() if m["is_enabled"]]

        async def list_threads_by_user(db, user_id, page=1, per_page=20):
            store._call("list_threads_by_user")
            rows = [t for t in store.threads.values() if t["user_id"] == user_id]
            rows.sort(key=lambda t: t["updated_at"], reverse=True)
            offset = (page - 1) * per_page
            return copy.deepcopy(rows[offset:offset + per_page])

        async def create_thread(db, thread_id, user_id):
            store._call("create_thread")
            thread = store.add_thread(thread_id, user_id)

            async def undo():
                store.threads.pop(thread_id, None)

            register_rollback(db, f"delete thread {thread_id}", undo)
            return copy.deepcopy(thread)

        async def update_thread(db, thread_id, **fields):
            store._call("update_thread")
            thread = store.threads[thread_id]
            snapshot = {k: thread.get(k) for k in fields}
            for key, value in fields.items():
                thread[key] = value.isoformat() if isinstance(value, datetime) else value

            async def undo():
                store.threads[thread_id].update(snapshot)

            register_rollback(db, f"restore thread {thread_id}", undo)
            return copy.deepcopy(thread)

        async def update_thread_title(db, thread_id, title):
            store._call("update_thread_title")
            store.threads[thread_id]["title"] = title
            return copy.deepcopy(store.threads[thread_id])

        async def create_message(db, thread_id, user_id, message):
            store._call("create_message")
            row = store.add_message(thread_id, user_id, "", role=message["role"], message_id=message["id"])
            row["parts"] = copy.deepcopy(message["parts"])

            async def undo():
                store.messages.pop(message["id"], None)

            register_rollback(db, f"delete message {message['id']}", undo)
            return copy.deepcopy(row)

        async def update_message(db, message_id, message, updated_at=None):
            store._call("update_message")
            row = store.messages[message_id]
            snapshot = {"parts": row["parts"], "updated_at": row["updated_at"]}
            row["parts"] = copy.deepcopy(message["parts"])
            row["updated_at"] = store.timestamp()

            async def undo():
                store.messages[message_id].update(snapshot)

            register_rollback(db, f"restore message {message_id}", undo)
            return copy.deepcopy(row)

        async def delete_trailing_messages(db, thread_id, message_id, message_created_at):
            store._call("delete_trailing_messages")
            deleted = [
                m for m in store.messages.values()
                if m["thread_id"] == thread_id and m["created_at"] > message_created_at and m["id"] != message_id
            ]
            for m in deleted:
                del store.messages[m["id"]]

            async def undo():
                for m in deleted:
                    store.messages[m["id"]] = m

            register_rollback(db, "restore trailing messages", undo)
            return copy.deepcopy(deleted)

        async def increment_usage(db, user_id, kind, amount):
            store._call("increment_usage")
            store.usage[user_id][kind] += amount

        async def decrement_usage(db, user_id, kind, amount):
            store._call("decrement_usage")
            store.usage[user_id][kind] = max(store.usage[user_id][kind] - amount, 0)

        for name, fn in list(locals().items()):
            if callable(fn) and hasattr(queries, name):
                monkeypatch.setattr(queries, name, fn)


class FakeLLM:
    """Scripted LLM client."""

    inline_images = False

    def __init__(self, chunks=("Hello", " world"), title="Greeting the world", fail_stream=False, fail_generate=False):
        self.chunks = list(chunks)
        self.title = title
        self.fail_stream = fail_stream
        self.fail_generate = fail_generate
        self.generate_calls: list[dict] = []
        self.stream_calls: list[dict] = []

    async def generate(self, messages, model, *, system=None, temperature=None):
        self.generate_calls.append({"messages": messages, "model": model, "system": system, "temperature": temperature})
        if self.fail_generate:
            raise RuntimeError("title model unavailable")
        return {"content": self.title, "finish_reason": "stop", "input_tokens": 1, "output_tokens": 1}

    async def generate_stream(self, messages, model, *, system=None, temperature=None):
        self.stream_calls.append({"messages": messages, "model": model, "system": system, "temperature": temperature})
        if self.fail_stream:
            raise RuntimeError("model unavailable")
        for chunk in self.chunks:
            yield {"type": "delta", "content": chunk}
        yield {"type": "finish", "finish_reason": "stop", "usage": {"input_tokens": 3, "output_tokens": len(self.chunks)}}


@pytest.fixture(autouse=True)
def _isolate(monkeypatch):
    # Word count keeps tests off the network-fetched tiktoken encoding
    from src.llm import token_counter
    monkeypatch.setattr(token_counter, "count_tokens", lambda text: len(text.split()))
    monkeypatch.setattr(stream_context, "_stream_context", None)
    yield


@pytest.fixture
def store(monkeypatch):
    store = FakeStore()
    store.install(monkeypatch)
    return store


@pytest.fixture
def llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(thread_routes, "get_llm_client", lambda provider="groq": fake)
    monkeypatch.setattr(thread_service, "get_llm_client", lambda provider="groq": fake)
    return fake


@pytest.fixture
def client(store):
    app.dependency_overrides[get_db] = lambda: object()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user_id():
    return f"user_{uuid.uuid4().hex[:8]}"


def auth_header_for(user_id: str, is_anonymous: bool = False) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, f'{user_id}@example.com', is_anonymous)}"}


@pytest.fixture
def auth_header(user_id):
    return auth_header_for(user_id)


@pytest.fixture
def anon_auth_header(user_id):
    return auth_header_for(user_id, is_anonymous=True)


@pytest.fixture
def make_auth_header():
    return auth_header_for
