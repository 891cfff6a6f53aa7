"""recog-stream - streaming speech recognition client with no-input detection."""

from importlib import import_module, metadata
from typing import TYPE_CHECKING


def _get_version() -> str:
    try:
        return metadata.version("recog-stream")
    except metadata.PackageNotFoundError:
        return "unknown"


__version__ = _get_version()

if TYPE_CHECKING:
    from .audio import BytesAudioSource, FileAudioSource, PipeAudioSource
    from .core.auth import Token, TokenIssuer
    from .core.config import ConfigLoader, Credentials, get_config
    from .core.exceptions import (
        ConnectError,
        RecognitionSessionError,
        SigningError,
        SourceReadError,
        TransportError,
    )
    from .transcription import (
        GrpcTransport,
        PacingPolicy,
        RecognitionConsumer,
        SessionConfig,
        SessionOrchestrator,
        SessionStream,
    )

_LAZY_EXPORTS = {
    "BytesAudioSource": (".audio", "BytesAudioSource"),
    "FileAudioSource": (".audio", "FileAudioSource"),
    "PipeAudioSource": (".audio", "PipeAudioSource"),
    "Token": (".core.auth", "Token"),
    "TokenIssuer": (".core.auth", "TokenIssuer"),
    "ConfigLoader": (".core.config", "ConfigLoader"),
    "Credentials": (".core.config", "Credentials"),
    "get_config": (".core.config", "get_config"),
    "ConnectError": (".core.exceptions", "ConnectError"),
    "RecognitionSessionError": (".core.exceptions", "RecognitionSessionError"),
    "SigningError": (".core.exceptions", "SigningError"),
    "SourceReadError": (".core.exceptions", "SourceReadError"),
    "TransportError": (".core.exceptions", "TransportError"),
    "GrpcTransport": (".transcription", "GrpcTransport"),
    "PacingPolicy": (".transcription", "PacingPolicy"),
    "RecognitionConsumer": (".transcription", "RecognitionConsumer"),
    "SessionConfig": (".transcription", "SessionConfig"),
    "SessionOrchestrator": (".transcription", "SessionOrchestrator"),
    "SessionStream": (".transcription", "SessionStream"),
}


def __getattr__(name):
    if name in {"audio", "core", "transcription"}:
        module = import_module(f".{name}", __name__)
        globals()[name] = module
        return module

    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = list(_LAZY_EXPORTS)
