import threading

import pytest
from fastapi.testclient import TestClient

# Import the app directly; DO NOT start uvicorn
from backend import app as app_module
from backend.app import app, SESSION_COOKIE
from backend.llm import GeminiClient
from backend.schemas import Success, Failure
from backend.surface import SurfaceSessions


class StubClient:
    def __init__(self, result):
        self.result = result
        self.calls = []
        self.started = threading.Event()
        self.gate = None

    def generate(self, prompt, deep=False):
        self.calls.append((prompt, deep))
        self.started.set()
        if self.gate is not None and prompt.startswith("slow"):
            self.gate.wait(5)
        return self.result


@pytest.fixture
def stub(monkeypatch):
    client = StubClient(Success(text="4", model="gemini-2.5-flash"))
    monkeypatch.setattr(app_module, "sessions", SurfaceSessions(client_factory=lambda: client))
    return client


@pytest.fixture
def http():
    return TestClient(app)


def test_index_page(http):
    r = http.get("/")
    assert r.status_code == 200
    assert "Ask me anything..." in r.text


def test_health(http):
    assert http.get("/api/health").json()["ok"] is True


def test_models(http):
    models = {m["mode"]: m for m in http.get("/api/models").json()["models"]}
    assert models["fast"]["model"] == "gemini-2.5-flash"
    assert models["fast"]["thinking_budget"] is None
    assert models["deep"]["model"] == "gemini-2.5-pro"
    assert models["deep"]["thinking_budget"] == 32768
    assert models["deep"]["system_instruction"] is True


def test_initial_state(http, stub):
    j = http.get("/api/state").json()
    assert j["state"] == {"status": "idle"}
    assert j["mode"] == "fast"
    assert j["busy"] is False


def test_submit_fast(http, stub):
    r = http.post("/api/submit", json={"prompt": "2+2?"})
    assert r.status_code == 200
    j = r.json()
    assert j["state"] == {"status": "succeeded", "text": "4", "model": "gemini-2.5-flash"}
    assert j["busy"] is False
    assert stub.calls == [("2+2?", False)]


def test_submit_deep_sets_mode(http, stub):
    j = http.post("/api/submit", json={"prompt": "Explain recursion", "deep": True}).json()
    assert j["mode"] == "deep"
    assert stub.calls == [("Explain recursion", True)]


def test_mode_toggle_persists(http, stub):
    assert http.post("/api/mode", json={"deep": True}).json()["mode"] == "deep"
    http.post("/api/submit", json={"prompt": "q"})
    assert stub.calls == [("q", True)]


@pytest.mark.parametrize("prompt", ["", "   "])
def test_blank_prompt_rejected(http, stub, prompt):
    r = http.post("/api/submit", json={"prompt": prompt})
    assert r.status_code == 400
    assert stub.calls == []


def test_busy_session_rejects_only_its_own_submits(stub):
    stub.gate = threading.Event()
    alice, bob = TestClient(app), TestClient(app)
    alice.get("/api/state")
    settled = {}

    def first():
        settled["r"] = alice.post("/api/submit", json={"prompt": "slow one"})

    t = threading.Thread(target=first)
    t.start()
    try:
        assert stub.started.wait(5)
        same_session = TestClient(app, cookies={SESSION_COOKIE: alice.cookies[SESSION_COOKIE]})
        assert same_session.get("/api/state").json()["busy"] is True
        r = same_session.post("/api/submit", json={"prompt": "second"})
        assert r.status_code == 409
        assert bob.post("/api/submit", json={"prompt": "quick"}).status_code == 200
    finally:
        stub.gate.set()
        t.join(5)
    assert settled["r"].status_code == 200
    assert settled["r"].json()["state"]["status"] == "succeeded"
    assert stub.calls == [("slow one", False), ("quick", False)]


def test_sessions_are_isolated(stub):
    alice, bob = TestClient(app), TestClient(app)
    alice.post("/api/submit", json={"prompt": "my private question", "deep": True})
    j = bob.get("/api/state").json()
    assert j["prompt"] == ""
    assert j["mode"] == "fast"
    assert j["state"] == {"status": "idle"}
    assert alice.get("/api/state").json()["prompt"] == "my private question"
    assert alice.cookies[SESSION_COOKIE] != bob.cookies[SESSION_COOKIE]


def test_provider_failure_is_data(http, stub):
    stub.result = Failure(error="provider", message="An error occurred: quota exceeded")
    r = http.post("/api/submit", json={"prompt": "q"})
    assert r.status_code == 200
    assert r.json()["state"] == {"status": "failed", "error": "provider", "message": "An error occurred: quota exceeded"}


def test_missing_key_end_to_end(http, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)

    def no_network(*a, **kw):
        raise AssertionError("network call attempted")

    monkeypatch.setattr("backend.llm.requests.post", no_network)
    monkeypatch.setattr(app_module, "sessions", SurfaceSessions(client_factory=lambda: GeminiClient(None)))
    j = http.post("/api/submit", json={"prompt": "hello"}).json()
    assert j["state"]["status"] == "failed"
    assert j["state"]["error"] == "configuration"
