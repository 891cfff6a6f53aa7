"""Exception hierarchy for recognition sessions.

Each fatal condition of a session has its own type so that a caller can
decide whether opening a fresh session is worth trying.
"""


class RecognitionSessionError(Exception):
    """Base exception for recognition session errors."""

    retryable = False


class SigningError(RecognitionSessionError):
    """The secret key could not be used to sign a token."""


class ConnectError(RecognitionSessionError):
    """The streaming session could not be established."""

    retryable = True

    def __init__(self, message: str, code: str | None = None):
        self.code = code
        super().__init__(message)


class SourceReadError(RecognitionSessionError):
    """The audio source failed while the session was streaming."""


class TransportError(RecognitionSessionError):
    """The RPC failed mid-stream.

    Attributes:
        code: Name of the RPC status code, when one is known
        partial_transcript: Final transcripts observed before the failure

    """

    retryable = True

    def __init__(self, message: str, code: str | None = None, partial_transcript: list[str] | None = None):
        self.code = code
        self.partial_transcript = list(partial_transcript or [])
        super().__init__(message)


__all__ = [
    "RecognitionSessionError",
    "SigningError",
    "ConnectError",
    "SourceReadError",
    "TransportError",
]
