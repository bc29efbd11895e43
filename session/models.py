import enum
import time
from dataclasses import asdict, dataclass


def wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


class RecordingState(str, enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"


@dataclass(frozen=True)
class RecognitionEvent:
    """Un resultado del proveedor de transcripcion (interino o final)."""

    text: str
    is_final: bool
    diarization_index: int | None = None
    confidence: float | None = None


@dataclass(frozen=True)
class TranscriptSegment:
    meeting_id: int | None
    speaker: str
    text: str
    timestamp_ms: int
    is_user: bool
    confidence: float = 1.0
    id: int | None = None

    @property
    def is_final(self) -> bool:
        # Solo los segmentos persistidos tienen identidad
        return self.id is not None

    @classmethod
    def from_row(cls, row: dict) -> "TranscriptSegment":
        return cls(
            id=row["id"],
            meeting_id=row["meeting_id"],
            speaker=row["speaker"],
            text=row["text"],
            timestamp_ms=row["timestamp_ms"],
            is_user=bool(row["is_user"]),
            confidence=row["confidence"],
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["is_final"] = self.is_final
        return data


@dataclass
class SessionState:
    active_meeting_id: int | None = None
    session_start_ms: int = 0
    last_audio_source_is_user: bool = False

    def clear(self):
        self.active_meeting_id = None
        self.session_start_ms = 0
        self.last_audio_source_is_user = False


@dataclass(frozen=True)
class RecordingStatus:
    is_recording: bool
    active_meeting_id: int | None

    def to_dict(self) -> dict:
        return asdict(self)
