"""Type definitions for recognition sessions.

Provides:
- SessionConfig / VadParameters / InterimResultsConfig: per-session settings
- ConfigUnit / AudioUnit: the outbound request sum type
- RecognitionEvent and its results: inbound messages
- Decision / SessionState / CloseReason: session-level outcomes
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AudioEncoding(Enum):
    """Audio encodings accepted by the recognition service."""

    LINEAR16 = 1
    MULAW = 3
    ALAW = 8
    RAW_OPUS = 11
    MPEG_AUDIO = 12


@dataclass(frozen=True)
class VadParameters:
    """Voice activity detection settings for the remote segmenter.

    Durations are in seconds and must be >= 0; probabilities lie in [0, 1].
    Zero leaves the service default in place.
    """

    min_speech_duration: float = 0.0
    max_speech_duration: float = 0.0
    silence_duration_threshold: float = 0.0
    silence_prob_threshold: float = 0.0
    aggressiveness: float = 0.0
    silence_max: float = 0.0
    silence_min: float = 0.0

    def __post_init__(self):
        for name in ("min_speech_duration", "max_speech_duration", "silence_duration_threshold", "silence_max", "silence_min"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if not 0.0 <= self.silence_prob_threshold <= 1.0:
            raise ValueError(f"silence_prob_threshold must be in [0, 1], got {self.silence_prob_threshold}")
        if self.aggressiveness < 0:
            raise ValueError(f"aggressiveness must be >= 0, got {self.aggressiveness}")


@dataclass(frozen=True)
class InterimResultsConfig:
    enabled: bool = False
    interval_seconds: float = 0.0


@dataclass(frozen=True)
class SessionConfig:
    """Recognition settings sent once at the start of a session."""

    encoding: AudioEncoding = AudioEncoding.LINEAR16
    sample_rate_hz: int = 16000
    language_code: str = "ru-RU"
    max_alternatives: int = 1
    automatic_punctuation: bool = True
    num_channels: int = 1
    denormalization: bool = False
    sentiment_analysis: bool = False
    gender_identification: bool = False
    vad: VadParameters = field(default_factory=VadParameters)
    single_utterance: bool = False
    interim_results: InterimResultsConfig = field(default_factory=InterimResultsConfig)
    profanity_filter: bool = False
    model: str = ""

    @classmethod
    def from_mapping(cls, settings: dict[str, Any]) -> "SessionConfig":
        """Build a config from the [session] section of the config file."""
        encoding = settings.get("encoding", AudioEncoding.LINEAR16)
        if isinstance(encoding, str):
            encoding = AudioEncoding[encoding.upper()]
        interim = settings.get("interim_results", {})
        return cls(
            encoding=encoding,
            sample_rate_hz=int(settings.get("sample_rate_hz", 16000)),
            language_code=str(settings.get("language_code", "ru-RU")),
            max_alternatives=int(settings.get("max_alternatives", 1)),
            automatic_punctuation=bool(settings.get("automatic_punctuation", True)),
            num_channels=int(settings.get("num_channels", 1)),
            denormalization=bool(settings.get("denormalization", False)),
            sentiment_analysis=bool(settings.get("sentiment_analysis", False)),
            gender_identification=bool(settings.get("gender_identification", False)),
            vad=VadParameters(**{k: float(v) for k, v in settings.get("vad", {}).items()}),
            single_utterance=bool(settings.get("single_utterance", False)),
            interim_results=InterimResultsConfig(
                enabled=bool(interim.get("enabled", False)),
                interval_seconds=float(interim.get("interval_seconds", 0.0)),
            ),
            profanity_filter=bool(settings.get("profanity_filter", False)),
            model=str(settings.get("model", "")),
        )


@dataclass(frozen=True)
class ConfigUnit:
    """Outbound unit carrying the session configuration."""

    config: SessionConfig


@dataclass(frozen=True)
class AudioUnit:
    """Outbound unit carrying an audio payload.

    ``synthetic`` marks warm-up silence and keep-alive filler.
    """

    payload: bytes
    synthetic: bool = False


RequestUnit = ConfigUnit | AudioUnit


@dataclass(frozen=True)
class Alternative:
    transcript: str
    confidence: float = 0.0


@dataclass(frozen=True)
class RecognitionResult:
    """Timing and hypotheses of one recognized segment (seconds from stream start)."""

    start_time: float | None = None
    end_time: float | None = None
    alternatives: tuple[Alternative, ...] = ()
    channel: int = 0

    @property
    def transcript(self) -> str:
        return self.alternatives[0].transcript if self.alternatives else ""


@dataclass(frozen=True)
class StreamingResult:
    is_final: bool = False
    recognition_result: RecognitionResult | None = None


@dataclass(frozen=True)
class RecognitionEvent:
    """One inbound message, carrying zero or more results."""

    results: tuple[StreamingResult, ...] = ()


class Decision(Enum):
    """Verdict of the consumer on one recognition event."""

    CONTINUE = "continue"
    IGNORE = "ignore"
    STOP_NO_INPUT_TIMEOUT = "stop_no_input_timeout"


class SessionState(Enum):
    """State of a recognition session."""

    IDLE = "idle"
    TOKEN_ISSUED = "token_issued"
    STREAM_OPEN = "stream_open"
    STREAMING = "streaming"
    CLOSED = "closed"
    FAILED = "failed"


class CloseReason(Enum):
    END_OF_INPUT = "end_of_input"
    NO_INPUT_TIMEOUT = "no_input_timeout"
    REMOTE_CLOSED = "remote_closed"


@dataclass
class SessionOutcome:
    """Result of a session that reached CLOSED."""

    state: SessionState
    close_reason: CloseReason
    transcript: list[str] = field(default_factory=list)
    events_received: int = 0
    units_sent: int = 0

    @property
    def text(self) -> str:
        return " ".join(part for part in self.transcript if part)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "state": self.state.value,
            "close_reason": self.close_reason.value,
            "transcript": list(self.transcript),
            "text": self.text,
            "events_received": self.events_received,
            "units_sent": self.units_sent,
        }
