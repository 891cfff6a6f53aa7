"""Streaming recognition session - Public API exports."""

from .consumer import NO_INPUT_THRESHOLD_SECONDS, NoInputPolicy, RecognitionConsumer
from .encoder import FrameEncoder
from .session import SessionOrchestrator
from .stream import PacingPolicy, SessionStream
from .transport import GrpcTransport, RecognitionTransport
from .types import (
    Alternative,
    AudioEncoding,
    AudioUnit,
    CloseReason,
    ConfigUnit,
    Decision,
    InterimResultsConfig,
    RecognitionEvent,
    RecognitionResult,
    RequestUnit,
    SessionConfig,
    SessionOutcome,
    SessionState,
    StreamingResult,
    VadParameters,
)

__all__ = [
    # Session
    "SessionOrchestrator",
    "SessionStream",
    "PacingPolicy",
    "RecognitionConsumer",
    "NoInputPolicy",
    "NO_INPUT_THRESHOLD_SECONDS",
    "FrameEncoder",
    # Transport
    "GrpcTransport",
    "RecognitionTransport",
    # Types
    "Alternative",
    "AudioEncoding",
    "AudioUnit",
    "CloseReason",
    "ConfigUnit",
    "Decision",
    "InterimResultsConfig",
    "RecognitionEvent",
    "RecognitionResult",
    "RequestUnit",
    "SessionConfig",
    "SessionOutcome",
    "SessionState",
    "StreamingResult",
    "VadParameters",
]
