import pytest

from conftest import FakeBackend
from processing import summarizer as summarizer_module
from processing.prompts import ACTION_ITEMS_SYSTEM_PROMPT, SUMMARY_SYSTEM_PROMPT
from processing.summarizer import (
    EMPTY_TRANSCRIPT_SUMMARY,
    LLMBackend,
    Summarizer,
    format_timestamp,
    format_transcript,
)
from session.models import TranscriptSegment


def _segment(text="hello", speaker="You", timestamp_ms=5_000, is_user=True):
    return TranscriptSegment(
        id=1, meeting_id=1, speaker=speaker, text=text,
        timestamp_ms=timestamp_ms, is_user=is_user,
    )


@pytest.mark.parametrize("timestamp_ms, expected", [
    (0, "00:00"),
    (5_999, "00:05"),
    (65_000, "01:05"),
    (3_600_000, "60:00"),
])
def test_format_timestamp(timestamp_ms, expected):
    assert format_timestamp(timestamp_ms) == expected


def test_format_transcript_keeps_order():
    transcript = [
        _segment("hola", timestamp_ms=1_000),
        _segment("which one?", speaker="Speaker 2", timestamp_ms=62_000, is_user=False),
    ]
    assert format_transcript(transcript) == "[00:01] You: hola\n[01:02] Speaker 2: which one?"


def test_empty_transcript_skips_backend():
    backend = FakeBackend()
    assert Summarizer(backend).summarize([]) == EMPTY_TRANSCRIPT_SUMMARY
    assert backend.prompts == []


def test_single_segment_calls_backend_once():
    backend = FakeBackend(response="summary")
    assert Summarizer(backend).summarize([_segment()]) == "summary"

    assert len(backend.prompts) == 1
    prompt = backend.prompts[0]
    assert "[00:05] You: hello" in prompt
    for section in ("Overview", "Key Discussion Points", "Decisions Made", "Action Items"):
        assert section in prompt


def test_backend_failure_propagates():
    backend = FakeBackend(error=RuntimeError("overloaded"))
    with pytest.raises(RuntimeError):
        Summarizer(backend).summarize([_segment()])


def test_long_transcript_is_chunked_and_consolidated(monkeypatch):
    monkeypatch.setattr(summarizer_module, "MAX_TRANSCRIPT_CHARS", 60)
    backend = FakeBackend(response="partial")
    transcript = [_segment(f"line number {i}", timestamp_ms=i * 1000) for i in range(6)]

    Summarizer(backend).summarize(transcript)

    assert len(backend.prompts) > 2
    assert "partial summaries" in backend.prompts[-1]
    assert "[00:00] You: line number 0" in backend.prompts[0]


def test_action_items_parsed():
    backend = FakeBackend(response='["Ana sends the report", "Review budget"]')
    items = Summarizer(backend).extract_action_items([_segment()])
    assert items == ["Ana sends the report", "Review budget"]
    assert "You: hello" in backend.prompts[0]


@pytest.mark.parametrize("response", [
    "Here are the items: none",
    '{"items": ["a"]}',
    '["ok", 3]',
])
def test_malformed_action_items_yield_empty_list(response):
    assert Summarizer(FakeBackend(response=response)).extract_action_items([_segment()]) == []


def test_action_items_backend_failure_yields_empty_list():
    backend = FakeBackend(error=RuntimeError("down"))
    assert Summarizer(backend).extract_action_items([_segment()]) == []


def test_action_items_empty_transcript():
    backend = FakeBackend()
    assert Summarizer(backend).extract_action_items([]) == []
    assert backend.prompts == []


def test_llm_backend_routes_to_anthropic_with_key(monkeypatch):
    backend = LLMBackend(provider="anthropic", api_key="sk-test")
    calls = []
    monkeypatch.setattr(backend, "_call_anthropic", lambda prompt, max_tokens, system: calls.append(prompt) or "ok")

    assert backend.complete("prompt") == "ok"
    assert calls == ["prompt"]


def test_llm_backend_falls_back_from_ollama_to_anthropic(monkeypatch):
    backend = LLMBackend(provider="ollama", api_key="sk-test")

    def broken_ollama(prompt, system):
        raise ConnectionError("ollama down")

    monkeypatch.setattr(backend, "_call_ollama", broken_ollama)
    monkeypatch.setattr(backend, "_call_anthropic", lambda prompt, max_tokens, system: "from anthropic")

    assert backend.complete("prompt") == "from anthropic"


def test_llm_backend_ollama_error_without_key_propagates(monkeypatch):
    backend = LLMBackend(provider="ollama")

    def broken_ollama(prompt, system):
        raise ConnectionError("ollama down")

    monkeypatch.setattr(backend, "_call_ollama", broken_ollama)

    with pytest.raises(ConnectionError):
        backend.complete("prompt")


def test_summary_and_action_items_use_their_own_system_prompts():
    backend = FakeBackend(response='["Send notes"]')
    summarizer = Summarizer(backend)

    summarizer.summarize([_segment()])
    summarizer.extract_action_items([_segment()])

    assert backend.systems == [SUMMARY_SYSTEM_PROMPT, ACTION_ITEMS_SYSTEM_PROMPT]


def test_ollama_request_carries_the_system_prompt(monkeypatch):
    payloads = []

    class Response:
        def raise_for_status(self):
            pass

        def json(self):
            return {"response": "[]"}

    def fake_post(url, json, timeout):
        payloads.append(json)
        return Response()

    monkeypatch.setattr(summarizer_module.requests, "post", fake_post)
    backend = LLMBackend(provider="ollama", ollama_model="llama3")

    backend.complete("items please", system=ACTION_ITEMS_SYSTEM_PROMPT)
    backend.complete("no system", system=None)

    assert payloads[0]["system"] == ACTION_ITEMS_SYSTEM_PROMPT
    assert "system" not in payloads[1]
