from urllib.parse import parse_qs, urlparse

import pytest

from processing.transcriber import DeepgramStream, parse_results
from session.errors import StreamConnectionError
from session.models import RecognitionEvent


def _results(transcript, is_final=True, words=None, confidence=0.93):
    return {
        "type": "Results",
        "is_final": is_final,
        "channel": {
            "alternatives": [
                {"transcript": transcript, "confidence": confidence, "words": words or []},
            ]
        },
    }


def test_final_result_with_speaker():
    message = _results(" Let's start. ", words=[{"word": "let's", "speaker": 1}, {"word": "start", "speaker": 0}])
    assert parse_results(message) == RecognitionEvent(
        text="Let's start.", is_final=True, diarization_index=1, confidence=0.93,
    )


def test_interim_result_without_diarization():
    event = parse_results(_results("let's", is_final=False, confidence=None))
    assert event.is_final is False
    assert event.diarization_index is None
    assert event.confidence is None


@pytest.mark.parametrize("message", [
    {"type": "Metadata", "request_id": "abc"},
    {"type": "UtteranceEnd", "last_word_end": 2.1},
    {"type": "Results", "channel": {"alternatives": []}},
])
def test_non_result_messages_are_ignored(message):
    assert parse_results(message) is None


def test_build_url_requests_diarization_and_interim_results():
    stream = DeepgramStream(api_key="key", model="nova-2", language="es", sample_rate=16000,
                            url="wss://example.test/v1/listen")
    parsed = urlparse(stream.build_url())
    params = parse_qs(parsed.query)

    assert parsed.netloc == "example.test"
    assert params["diarize"] == ["true"]
    assert params["interim_results"] == ["true"]
    assert params["language"] == ["es"]
    assert params["encoding"] == ["linear16"]
    assert params["sample_rate"] == ["16000"]


@pytest.mark.asyncio
async def test_send_before_connect_fails():
    stream = DeepgramStream(api_key="key")
    with pytest.raises(StreamConnectionError):
        await stream.send(b"\x00\x00")


@pytest.mark.asyncio
async def test_close_without_connect_is_safe():
    stream = DeepgramStream(api_key="key")
    await stream.close()
