import asyncio

import pytest

from config import TRUNCATION_REASON
from scribe.errors import EMPTY_OUTPUT_WARNING, AuthError, UpstreamError, UpstreamHTTPError
from scribe.models import ChatMessage, ChatRequest
from scribe.services.prompt_builder import EXCERPTS_HEADER, TONES
from scribe.services.writer_service import resolve_user_text
from tests.fakes import FakeEmbedder, result


def compose(service, text="Write about running", **fields):
    return asyncio.run(service.compose(text, ChatRequest(message=text, **fields)))


def stream(service, text="Write about running", **fields):
    async def _run():
        return [p async for p in service.stream_compose(text, ChatRequest(message=text, **fields))]

    return asyncio.run(_run())


# -----------------------------------------------------------------------------
# resolve_user_text
# -----------------------------------------------------------------------------

def test_explicit_message_wins():
    request = ChatRequest(message="direct", messages=[ChatMessage(role="user", content="older")])
    assert resolve_user_text(request) == "direct"


def test_last_user_message_is_used():
    request = ChatRequest(messages=[
        ChatMessage(role="user", content="first"),
        ChatMessage(role="assistant", content="reply"),
        ChatMessage(role="user", content="second"),
        ChatMessage(role="assistant", content="another reply"),
    ])
    assert resolve_user_text(request) == "second"


def test_blank_input_resolves_to_none():
    assert resolve_user_text(ChatRequest(message="   ")) is None
    assert resolve_user_text(ChatRequest(messages=[ChatMessage(role="user", content=" ")])) is None
    assert resolve_user_text(ChatRequest()) is None


# -----------------------------------------------------------------------------
# compose
# -----------------------------------------------------------------------------

def test_compose_returns_reply_and_references(make_service):
    service, client, _ = make_service(result("My Marathon\n\nIt hurt."))
    draft = compose(service)
    assert draft.reply == "My Marathon\n\nIt hurt."
    assert draft.warning is None
    assert draft.rounds == 1
    assert [r.source_id for r in draft.references] == ["marathon.md#0", "coffee.md#0"]

    system_prompt = client.calls[0][0][0].content
    assert EXCERPTS_HEADER in system_prompt
    assert "[1] Marathon" in system_prompt


def test_formal_concise_with_empty_corpus(make_service):
    service, client, embedder = make_service(result("Done."), rows=[])
    compose(service, tone="formal", length="concise")
    prompt_text = "\n".join(m.content for m in client.calls[0][0])
    assert EXCERPTS_HEADER not in prompt_text
    assert TONES["formal"] in prompt_text
    assert embedder.calls == []


def test_references_can_be_turned_off(make_service):
    service, client, embedder = make_service(result("Done."))
    draft = compose(service, use_references=False)
    assert draft.references == []
    assert embedder.calls == []


def test_top_k_override(make_service):
    service, _, _ = make_service(result("Done."))
    assert len(compose(service, top_k=1).references) == 1


def test_retrieval_failure_drafts_without_excerpts(make_service):
    service, client, _ = make_service(result("Done."), embedder=FakeEmbedder(error=UpstreamError("down")))
    draft = compose(service)
    assert draft.reply == "Done."
    assert draft.references == []
    assert EXCERPTS_HEADER not in client.calls[0][0][0].content


def test_continuation_rounds_are_joined(make_service):
    service, _, _ = make_service(result("Part one.", TRUNCATION_REASON), result("Part two."))
    draft = compose(service)
    assert draft.reply == "Part one.\nPart two."
    assert draft.incomplete_reason is None
    assert draft.rounds == 2


def test_empty_output_warning(make_service):
    service, _, _ = make_service(result(""))
    draft = compose(service)
    assert draft.reply == ""
    assert draft.warning == EMPTY_OUTPUT_WARNING


def test_still_truncated_warning(make_service):
    service, _, _ = make_service(result("more", TRUNCATION_REASON), max_rounds=2)
    draft = compose(service)
    assert draft.reply == "more\nmore"
    assert draft.incomplete_reason == TRUNCATION_REASON
    assert "still truncated after 2" in draft.warning


def test_other_stop_reason_gets_its_own_warning(make_service):
    service, _, _ = make_service(result("Partial", "content_filter"))
    draft = compose(service)
    assert draft.reply == "Partial"
    assert draft.warning == "⚠️ Generation stopped early (content_filter)."


def test_completion_errors_propagate(make_service):
    service, _, _ = make_service(AuthError("no key"))
    with pytest.raises(AuthError):
        compose(service)


def test_style_guide_comes_from_snapshot(make_service, tmp_path):
    service, client, _ = make_service(result("Done."))
    (tmp_path / "style.md").write_text("Use short sentences.", encoding="utf-8")
    service.store.load()
    compose(service)
    assert "Voice and style guide:\nUse short sentences." in client.calls[0][0][0].content


def test_later_round_failure_keeps_earlier_text(make_service):
    service, client, _ = make_service(result("Part one.", TRUNCATION_REASON), UpstreamHTTPError(500, "boom"))
    draft = compose(service)
    assert len(client.calls) == 2
    assert draft.reply == "Part one."
    assert draft.warning == "⚠️ OpenAI request failed (500): boom"
    assert draft.incomplete_reason == TRUNCATION_REASON
    assert draft.rounds == 1
    assert [r.source_id for r in draft.references] == ["marathon.md#0", "coffee.md#0"]


# -----------------------------------------------------------------------------
# stream_compose
# -----------------------------------------------------------------------------

def test_stream_yields_round_deltas(make_service):
    service, _, _ = make_service(result("Part one.", TRUNCATION_REASON), result("Part two."))
    pieces = stream(service)
    assert [(p.kind, p.value) for p in pieces] == [("text", "Part one."), ("text", "\nPart two.")]


def test_stream_ends_with_warning_on_empty_output(make_service):
    service, _, _ = make_service(result(""))
    pieces = stream(service)
    assert [(p.kind, p.value) for p in pieces] == [("warning", EMPTY_OUTPUT_WARNING)]