"""Wire schema of the streaming recognition RPC.

The ``tinkoff.cloud.stt.v1`` messages are described here as a
FileDescriptorProto and registered in the default descriptor pool at import
time, the same way generated ``_pb2`` modules do it, so no protoc step is
needed. Only the messages used by streaming recognition are declared.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf import duration_pb2  # noqa: F401  registers google/protobuf/duration.proto

PACKAGE = "tinkoff.cloud.stt.v1"
SERVICE = "SpeechToText"
STREAMING_RECOGNIZE_METHOD = f"/{PACKAGE}.{SERVICE}/StreamingRecognize"

_F = descriptor_pb2.FieldDescriptorProto


def _field(name: str, number: int, ftype: int, type_name: str | None = None, repeated: bool = False, oneof_index: int | None = None):
    field = _F(
        name=name,
        number=number,
        type=ftype,
        label=_F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL,
    )
    if type_name is not None:
        field.type_name = type_name if type_name.startswith(".") else f".{PACKAGE}.{type_name}"
    if oneof_index is not None:
        field.oneof_index = oneof_index
    return field


def _message(name: str, fields: list, oneofs: tuple[str, ...] = ()) -> descriptor_pb2.DescriptorProto:
    message = descriptor_pb2.DescriptorProto(name=name, field=fields)
    for oneof in oneofs:
        message.oneof_decl.add(name=oneof)
    return message


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="tinkoff/cloud/stt/v1/stt.proto",
        package=PACKAGE,
        syntax="proto3",
        dependency=["google/protobuf/duration.proto"],
    )

    encoding = file_proto.enum_type.add(name="AudioEncoding")
    for value_name, number in (
        ("ENCODING_UNSPECIFIED", 0),
        ("LINEAR16", 1),
        ("MULAW", 3),
        ("ALAW", 8),
        ("RAW_OPUS", 11),
        ("MPEG_AUDIO", 12),
    ):
        encoding.value.add(name=value_name, number=number)

    file_proto.message_type.extend(
        [
            _message(
                "VoiceActivityDetectionConfig",
                [
                    _field("min_speech_duration", 1, _F.TYPE_FLOAT),
                    _field("max_speech_duration", 2, _F.TYPE_FLOAT),
                    _field("silence_duration_threshold", 3, _F.TYPE_FLOAT),
                    _field("silence_prob_threshold", 4, _F.TYPE_FLOAT),
                    _field("aggressiveness", 5, _F.TYPE_FLOAT),
                    _field("silence_max", 6, _F.TYPE_FLOAT),
                    _field("silence_min", 7, _F.TYPE_FLOAT),
                ],
            ),
            _message(
                "RecognitionConfig",
                [
                    _field("encoding", 1, _F.TYPE_ENUM, "AudioEncoding"),
                    _field("sample_rate_hertz", 2, _F.TYPE_UINT32),
                    _field("language_code", 3, _F.TYPE_STRING),
                    _field("max_alternatives", 4, _F.TYPE_UINT32),
                    _field("profanity_filter", 5, _F.TYPE_BOOL),
                    _field("enable_automatic_punctuation", 8, _F.TYPE_BOOL),
                    _field("model", 10, _F.TYPE_STRING),
                    _field("num_channels", 11, _F.TYPE_UINT32),
                    _field("vad_config", 13, _F.TYPE_MESSAGE, "VoiceActivityDetectionConfig", oneof_index=0),
                    _field("enable_denormalization", 14, _F.TYPE_BOOL),
                    _field("enable_sentiment_analysis", 15, _F.TYPE_BOOL),
                    _field("enable_gender_identification", 16, _F.TYPE_BOOL),
                ],
                oneofs=("vad",),
            ),
            _message(
                "InterimResultsConfig",
                [
                    _field("enable_interim_results", 1, _F.TYPE_BOOL),
                    _field("interval", 2, _F.TYPE_FLOAT),
                ],
            ),
            _message(
                "StreamingRecognitionConfig",
                [
                    _field("config", 1, _F.TYPE_MESSAGE, "RecognitionConfig"),
                    _field("single_utterance", 2, _F.TYPE_BOOL),
                    _field("interim_results_config", 3, _F.TYPE_MESSAGE, "InterimResultsConfig"),
                ],
            ),
            _message(
                "StreamingRecognizeRequest",
                [
                    _field("streaming_config", 1, _F.TYPE_MESSAGE, "StreamingRecognitionConfig", oneof_index=0),
                    _field("audio_content", 2, _F.TYPE_BYTES, oneof_index=0),
                ],
                oneofs=("streaming_request",),
            ),
            _message(
                "SpeechRecognitionAlternative",
                [
                    _field("transcript", 1, _F.TYPE_STRING),
                    _field("confidence", 2, _F.TYPE_FLOAT),
                ],
            ),
            _message(
                "SpeechRecognitionResult",
                [
                    _field("alternatives", 1, _F.TYPE_MESSAGE, "SpeechRecognitionAlternative", repeated=True),
                    _field("channel", 2, _F.TYPE_INT32),
                    _field("start_time", 3, _F.TYPE_MESSAGE, ".google.protobuf.Duration"),
                    _field("end_time", 4, _F.TYPE_MESSAGE, ".google.protobuf.Duration"),
                ],
            ),
            _message(
                "StreamingRecognitionResult",
                [
                    _field("recognition_result", 1, _F.TYPE_MESSAGE, "SpeechRecognitionResult"),
                    _field("is_final", 2, _F.TYPE_BOOL),
                ],
            ),
            _message(
                "StreamingRecognizeResponse",
                [
                    _field("results", 1, _F.TYPE_MESSAGE, "StreamingRecognitionResult", repeated=True),
                ],
            ),
        ]
    )
    return file_proto


_pool = descriptor_pool.Default()
DESCRIPTOR = _pool.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


VoiceActivityDetectionConfig = _message_class("VoiceActivityDetectionConfig")
RecognitionConfig = _message_class("RecognitionConfig")
InterimResultsConfig = _message_class("InterimResultsConfig")
StreamingRecognitionConfig = _message_class("StreamingRecognitionConfig")
StreamingRecognizeRequest = _message_class("StreamingRecognizeRequest")
SpeechRecognitionAlternative = _message_class("SpeechRecognitionAlternative")
SpeechRecognitionResult = _message_class("SpeechRecognitionResult")
StreamingRecognitionResult = _message_class("StreamingRecognitionResult")
StreamingRecognizeResponse = _message_class("StreamingRecognizeResponse")

__all__ = [
    "STREAMING_RECOGNIZE_METHOD",
    "InterimResultsConfig",
    "RecognitionConfig",
    "SpeechRecognitionAlternative",
    "SpeechRecognitionResult",
    "StreamingRecognitionConfig",
    "StreamingRecognitionResult",
    "StreamingRecognizeRequest",
    "StreamingRecognizeResponse",
    "VoiceActivityDetectionConfig",
]
