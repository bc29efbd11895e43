from session.events import (
    EventBus,
    MeetingEnded,
    MeetingStarted,
    RecordingStarted,
    TranscriptSegmentReceived,
)
from session.models import TranscriptSegment


def test_handlers_receive_only_their_event_type():
    bus = EventBus()
    started, ended = [], []
    bus.subscribe(MeetingStarted, started.append)
    bus.subscribe(MeetingEnded, ended.append)

    bus.publish(MeetingStarted(app_name="Zoom"))

    assert started == [MeetingStarted(app_name="Zoom")]
    assert ended == []


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe(MeetingEnded, received.append)
    unsubscribe()
    unsubscribe()

    bus.publish(MeetingEnded())
    assert received == []


def test_failing_handler_does_not_block_others():
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("ui crashed")

    bus.subscribe(MeetingEnded, broken)
    bus.subscribe(MeetingEnded, received.append)
    bus.publish(MeetingEnded())

    assert received == [MeetingEnded()]


def test_messages():
    assert RecordingStarted(meeting_id=3, title="Sync").to_message() == {
        "type": "recording-started", "meeting_id": 3, "title": "Sync",
    }
    assert MeetingEnded().to_message() == {"type": "meeting-ended"}

    final = TranscriptSegment(id=7, meeting_id=3, speaker="You", text="hi", timestamp_ms=10, is_user=True)
    message = TranscriptSegmentReceived(segment=final).to_message()
    assert message["type"] == "transcript-segment"
    assert message["id"] == 7
    assert message["is_final"] is True
