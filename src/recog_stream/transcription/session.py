"""Session orchestration.

One SessionOrchestrator drives exactly one recognition session:

    IDLE -> TOKEN_ISSUED -> STREAM_OPEN -> STREAMING -> CLOSED
                   (any state) -> FAILED

The outbound half is a SessionStream consumed by the transport; the inbound
half is the transport's event iterator, fed to a RecognitionConsumer. The
two share nothing but the stream's bounded queue and its cancellation flag.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import aclosing

from ..audio.source import AudioSource
from ..core.auth import TokenIssuer
from ..core.config import ConfigLoader, Credentials, get_config
from ..core.exceptions import ConnectError, RecognitionSessionError, SigningError, SourceReadError, TransportError
from ..core.logging import setup_logging
from .consumer import NoInputPolicy, RecognitionConsumer
from .stream import PacingPolicy, SessionStream
from .transport import GrpcTransport, RecognitionTransport
from .types import (
    CloseReason,
    Decision,
    RecognitionEvent,
    RequestUnit,
    SessionConfig,
    SessionOutcome,
    SessionState,
)

logger = setup_logging(__name__)

AUTHORIZATION_HEADER = "authorization"


class SessionOrchestrator:
    """Run one authenticated streaming recognition session.

    Example::

        orchestrator = SessionOrchestrator.from_config()
        with FileAudioSource("call.wav") as source:
            outcome = await orchestrator.run(source)
        print(outcome.text)

    Errors are raised as the distinct RecognitionSessionError subclasses so a
    caller can decide whether a fresh session is worth trying; nothing is
    retried here.
    """

    def __init__(
        self,
        issuer: TokenIssuer,
        transport: RecognitionTransport,
        config: SessionConfig,
        pacing: PacingPolicy | None = None,
        consumer: RecognitionConsumer | None = None,
    ):
        self.issuer = issuer
        self.transport = transport
        self.config = config
        self.pacing = pacing or PacingPolicy()
        self.consumer = consumer or RecognitionConsumer()

        self._state = SessionState.IDLE
        self._transcript: list[str] = []
        self._events_received = 0
        self._outbound_finished = False
        self._source_error: SourceReadError | None = None

    @classmethod
    def from_config(
        cls,
        config: ConfigLoader | None = None,
        credentials: Credentials | None = None,
        transport: RecognitionTransport | None = None,
    ) -> "SessionOrchestrator":
        """Wire an orchestrator from loaded configuration.

        Defaults to the process-wide configuration and to credentials from
        TCS_APIKEY and TCS_SECRET.
        """
        config = config or get_config()
        credentials = credentials or Credentials.from_env()
        return cls(
            issuer=TokenIssuer.from_settings(credentials, config.token_settings),
            transport=transport or GrpcTransport(endpoint=config.endpoint_address, method=config.endpoint_method),
            config=SessionConfig.from_mapping(config.session_settings),
            pacing=PacingPolicy.from_mapping(config.pacing_settings),
            consumer=RecognitionConsumer(NoInputPolicy(**config.no_input_settings)),
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> list[str]:
        """Final transcripts observed so far."""
        return list(self._transcript)

    def _transition(self, state: SessionState) -> None:
        logger.info(f"Session state: {self._state.value} -> {state.value}")
        self._state = state

    def _fail(self, error: BaseException) -> None:
        logger.error(f"Session failed in state {self._state.value}: {type(error).__name__}: {error}")
        self._state = SessionState.FAILED

    async def run(self, source: AudioSource) -> SessionOutcome:
        """Stream source to the service until end of input, no-input timeout or remote close.

        Raises:
            SigningError: The token could not be signed
            ConnectError: The session could not be established
            SourceReadError: The audio source failed (after in-flight events drained)
            TransportError: The call failed mid-stream; carries the partial transcript

        """
        if self._state is not SessionState.IDLE:
            raise RuntimeError("SessionOrchestrator runs a single session; create a new one")

        try:
            token = self.issuer.issue()
        except SigningError as e:
            self._fail(e)
            raise
        self._transition(SessionState.TOKEN_ISSUED)

        stream = SessionStream(self.config, source, self.pacing)
        try:
            async with self.transport:
                events = self.transport.open(
                    self._outbound(stream),
                    metadata=[(AUTHORIZATION_HEADER, token.bearer)],
                )
                self._transition(SessionState.STREAM_OPEN)
                reason = await self._consume(events, stream)
        except TransportError as e:
            e.partial_transcript = list(self._transcript)
            self._fail(e)
            raise
        except RecognitionSessionError as e:
            self._fail(e)
            raise
        except asyncio.CancelledError as e:
            self._fail(e)
            raise
        except Exception as e:
            connecting = self._state is SessionState.TOKEN_ISSUED
            self._fail(e)
            if connecting:
                raise ConnectError(f"Failed to open recognition session: {e}") from e
            raise TransportError(
                f"Recognition session failed: {e}", partial_transcript=self._transcript
            ) from e
        finally:
            stream.cancel()

        if self._source_error is not None:
            self._fail(self._source_error)
            raise self._source_error

        self._transition(SessionState.CLOSED)
        outcome = SessionOutcome(
            state=self._state,
            close_reason=reason,
            transcript=list(self._transcript),
            events_received=self._events_received,
            units_sent=stream.units_emitted,
        )
        logger.info(
            f"Session closed ({reason.value}): {outcome.events_received} events, "
            f"{outcome.units_sent} units sent, {len(outcome.transcript)} final segments"
        )
        logger.debug(f"Session outcome: {outcome.to_dict()}")
        return outcome

    async def _outbound(self, stream: SessionStream) -> AsyncIterator[RequestUnit]:
        try:
            async with aclosing(stream.open()) as units:
                async for unit in units:
                    yield unit
        except SourceReadError as e:
            # Ends the outbound half; the inbound half keeps draining
            self._source_error = e
            return
        self._outbound_finished = not stream.cancelled

    async def _consume(self, events: AsyncIterator[RecognitionEvent], stream: SessionStream) -> CloseReason:
        self._transition(SessionState.STREAMING)
        try:
            async for event in events:
                self._events_received += 1
                finals = self.consumer.final_transcripts(event)
                if finals:
                    self._transcript.extend(finals)
                    logger.debug(f"Final result: {' '.join(finals)[:80]}")

                if self.consumer.on_event(event) is Decision.STOP_NO_INPUT_TIMEOUT:
                    stream.cancel()
                    self.transport.cancel()
                    return CloseReason.NO_INPUT_TIMEOUT
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        if self._outbound_finished:
            return CloseReason.END_OF_INPUT
        stream.cancel()
        return CloseReason.REMOTE_CLOSED


__all__ = ["AUTHORIZATION_HEADER", "SessionOrchestrator"]
