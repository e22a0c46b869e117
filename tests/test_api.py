import json

import pytest
from fastapi.testclient import TestClient

from config import MAX_MESSAGE_LENGTH, TRUNCATION_REASON
from scribe import main
from scribe.errors import AuthError, ModelMismatchError, UpstreamHTTPError
from tests.fakes import result


@pytest.fixture
def api(monkeypatch, make_service):
    """
    TestClient without the lifespan (no real HTTP client or corpus on disk);
    install(...) swaps in a WriterService driven by scripted results.
    """
    def install(*results, **kwargs):
        service, client, embedder = make_service(*results, **kwargs)
        monkeypatch.setattr(main, "writer_service", service)
        monkeypatch.setattr(main, "corpus_store", service.store)
        return client

    client = TestClient(main.app)
    client.install = install
    return client


def sse_frames(body):
    return [block[len("data: "):] for block in body.split("\n\n") if block.startswith("data: ")]


def test_health(api):
    api.install(result("x"))
    data = api.get("/health").json()
    assert data["ok"] is True
    assert data["writer_service"] is True


def test_config_has_no_secrets(api):
    api.install(result("x"))
    data = api.get("/config").json()
    assert "api_key" not in data
    assert set(data) >= {"model", "max_rounds", "token_cap", "api_key_configured", "corpus"}
    assert data["corpus"]["count"] == 2


def test_chat_requires_message(api):
    api.install(result("x"))
    for body in ({}, {"message": "   "}, {"messages": [{"role": "assistant", "content": "hi"}]}):
        response = api.post("/api/chat", json=body)
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing 'message'."


def test_chat_before_startup_is_503(api, monkeypatch):
    monkeypatch.setattr(main, "writer_service", None)
    assert api.post("/api/chat", json={"message": "hi"}).status_code == 503


def test_chat_success(api):
    api.install(result("Part one.", TRUNCATION_REASON), result("Part two."))
    response = api.post("/api/chat", json={"message": "Write about running", "tone": "witty"})
    assert response.status_code == 200
    data = response.json()
    assert data["reply"] == "Part one.\nPart two."
    assert data["warning"] is None
    assert data["rounds"] == 2
    assert [r["source_id"] for r in data["references"]] == ["marathon.md#0", "coffee.md#0"]


def test_chat_uses_last_user_message(api):
    client = api.install(result("ok"))
    api.post("/api/chat", json={"messages": [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "reply"},
        {"role": "user", "content": "second"},
    ]})
    assert client.calls[0][0][-1].content == "second"


@pytest.mark.parametrize("error, expected", [
    (AuthError("missing"), "⚠️ OPENAI_API_KEY is not configured on the server."),
    (UpstreamHTTPError(429, "Rate limit reached"), "⚠️ OpenAI request failed (429): Rate limit reached"),
])
def test_chat_failures_become_warnings(api, error, expected):
    api.install(error)
    response = api.post("/api/chat", json={"message": "hi"})
    assert response.status_code == 200
    assert response.json()["reply"] == ""
    assert response.json()["warning"] == expected


def test_chat_keeps_text_from_rounds_before_a_failure(api):
    api.install(result("Part one.", TRUNCATION_REASON), UpstreamHTTPError(500, "boom"))
    response = api.post("/api/chat", json={"message": "hi"})
    assert response.status_code == 200
    data = response.json()
    assert data["reply"] == "Part one."
    assert data["warning"] == "⚠️ OpenAI request failed (500): boom"
    assert data["incomplete_reason"] == TRUNCATION_REASON


def test_overlong_conversation_message_is_rejected(api):
    client = api.install(result("x"))
    body = {"messages": [{"role": "user", "content": "x" * (MAX_MESSAGE_LENGTH + 1)}]}
    for path in ("/api/chat", "/api/chat/stream"):
        assert api.post(path, json=body).status_code == 422
    assert client.calls == []


def test_overlong_message_field_is_rejected(api):
    api.install(result("x"))
    assert api.post("/api/chat", json={"message": "x" * (MAX_MESSAGE_LENGTH + 1)}).status_code == 422


def test_model_mismatch_names_the_model(api):
    api.install(ModelMismatchError("gpt-9", "not found"))
    warning = api.post("/api/chat", json={"message": "hi"}).json()["warning"]
    assert '"gpt-9"' in warning
    assert "OPENAI_MODEL=gpt-4o-mini" in warning


def test_empty_output_is_a_warning(api):
    api.install(result(""))
    data = api.post("/api/chat", json={"message": "hi"}).json()
    assert data["reply"] == ""
    assert data["warning"] == "⚠️ No content returned from the AI."


def test_stream_frames(api):
    api.install(result("Hello there."))
    response = api.post("/api/chat/stream", json={"message": "hi"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    frames = sse_frames(response.text)
    assert json.loads(frames[0]) == {"delta": "Hello there."}
    assert frames[-1] == "[DONE]"


def test_stream_failure_is_one_warning_then_done(api):
    api.install(AuthError("missing"))
    frames = sse_frames(api.post("/api/chat/stream", json={"message": "hi"}).text)
    assert frames == [json.dumps({"warning": "⚠️ OPENAI_API_KEY is not configured on the server."}, ensure_ascii=False), "[DONE]"]


def test_stream_requires_message(api):
    api.install(result("x"))
    assert api.post("/api/chat/stream", json={"message": ""}).status_code == 400


def test_reload_bumps_version(api):
    api.install(result("x"))
    before = main.corpus_store.snapshot().version
    data = api.post("/api/index/reload").json()
    assert data == {"version": before + 1, "count": 2}
