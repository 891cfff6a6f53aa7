"""Request framing and the wire encoding boundary.

FrameEncoder wraps configuration and audio into request units. The module
functions translate those units to protobuf messages and protobuf responses
back into recognition events.
"""

from google.protobuf import duration_pb2

from . import protocol
from .types import (
    Alternative,
    AudioUnit,
    ConfigUnit,
    RecognitionEvent,
    RecognitionResult,
    RequestUnit,
    SessionConfig,
    StreamingResult,
)


class FrameEncoder:
    """Wrap session configuration and raw audio into request units.

    Stateless; empty audio chunks are valid and produce a zero-length unit.
    """

    def encode_config(self, config: SessionConfig) -> RequestUnit:
        return ConfigUnit(config)

    def encode_audio(self, chunk: bytes, synthetic: bool = False) -> RequestUnit:
        return AudioUnit(bytes(chunk), synthetic=synthetic)


def _config_to_wire(config: SessionConfig):
    vad = config.vad
    recognition = protocol.RecognitionConfig(
        encoding=config.encoding.value,
        sample_rate_hertz=config.sample_rate_hz,
        language_code=config.language_code,
        max_alternatives=config.max_alternatives,
        profanity_filter=config.profanity_filter,
        enable_automatic_punctuation=config.automatic_punctuation,
        model=config.model,
        num_channels=config.num_channels,
        vad_config=protocol.VoiceActivityDetectionConfig(
            min_speech_duration=vad.min_speech_duration,
            max_speech_duration=vad.max_speech_duration,
            silence_duration_threshold=vad.silence_duration_threshold,
            silence_prob_threshold=vad.silence_prob_threshold,
            aggressiveness=vad.aggressiveness,
            silence_max=vad.silence_max,
            silence_min=vad.silence_min,
        ),
        enable_denormalization=config.denormalization,
        enable_sentiment_analysis=config.sentiment_analysis,
        enable_gender_identification=config.gender_identification,
    )
    return protocol.StreamingRecognitionConfig(
        config=recognition,
        single_utterance=config.single_utterance,
        interim_results_config=protocol.InterimResultsConfig(
            enable_interim_results=config.interim_results.enabled,
            interval=config.interim_results.interval_seconds,
        ),
    )


def to_wire(unit: RequestUnit):
    """Convert a request unit to a StreamingRecognizeRequest message."""
    if isinstance(unit, ConfigUnit):
        return protocol.StreamingRecognizeRequest(streaming_config=_config_to_wire(unit.config))
    if isinstance(unit, AudioUnit):
        return protocol.StreamingRecognizeRequest(audio_content=unit.payload)
    raise TypeError(f"Unknown request unit: {type(unit).__name__}")


def serialize_request(unit: RequestUnit) -> bytes:
    return to_wire(unit).SerializeToString()


def _seconds(duration: duration_pb2.Duration) -> float:
    return duration.seconds + duration.nanos / 1e9


def event_from_wire(message) -> RecognitionEvent:
    """Convert a StreamingRecognizeResponse message to a RecognitionEvent."""
    results = []
    for item in message.results:
        recognition = None
        if item.HasField("recognition_result"):
            payload = item.recognition_result
            recognition = RecognitionResult(
                start_time=_seconds(payload.start_time) if payload.HasField("start_time") else None,
                end_time=_seconds(payload.end_time) if payload.HasField("end_time") else None,
                alternatives=tuple(
                    Alternative(transcript=alt.transcript, confidence=alt.confidence) for alt in payload.alternatives
                ),
                channel=payload.channel,
            )
        results.append(StreamingResult(is_final=item.is_final, recognition_result=recognition))
    return RecognitionEvent(results=tuple(results))


def deserialize_event(data: bytes) -> RecognitionEvent:
    return event_from_wire(protocol.StreamingRecognizeResponse.FromString(data))


__all__ = ["FrameEncoder", "to_wire", "serialize_request", "event_from_wire", "deserialize_event"]
