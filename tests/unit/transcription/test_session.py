"""Unit tests for the session orchestrator state machine."""

import asyncio
import base64

import pytest

from recog_stream.audio.source import BytesAudioSource
from recog_stream.core import config as config_module
from recog_stream.core.auth import TokenIssuer
from recog_stream.core.config import ConfigLoader, Credentials
from recog_stream.core.exceptions import ConnectError, SigningError, SourceReadError, TransportError
from recog_stream.transcription.session import SessionOrchestrator
from recog_stream.transcription.stream import PacingPolicy
from recog_stream.transcription.types import (
    Alternative,
    AudioUnit,
    CloseReason,
    ConfigUnit,
    RecognitionEvent,
    RecognitionResult,
    SessionConfig,
    SessionState,
    StreamingResult,
)

SECRET = b"0123456789abcdef0123456789abcdef"
FAST = PacingPolicy(chunk_size=16, chunk_interval=0.0)
KEEP_ALIVE = PacingPolicy(chunk_size=16, chunk_interval=0.0, keep_alive=True, keep_alive_interval=0.005)


def final(text: str, start: float = 0.0, end: float = 1.0) -> RecognitionEvent:
    return RecognitionEvent(
        results=(
            StreamingResult(
                is_final=True,
                recognition_result=RecognitionResult(
                    start_time=start, end_time=end, alternatives=(Alternative(transcript=text),)
                ),
            ),
        )
    )


def open_segment(start: float, end: float) -> RecognitionEvent:
    return RecognitionEvent(
        results=(StreamingResult(is_final=False, recognition_result=RecognitionResult(start_time=start, end_time=end)),)
    )


class FakeTransport:
    """Scripted stand-in for the gRPC transport.

    Drains the outbound iterator in a background task like grpc.aio does and
    yields the scripted events. With ``close_after_outbound`` the remote side
    closes only after the client half-closes.
    """

    def __init__(self, events=(), error=None, enter_error=None, close_after_outbound=True):
        self.events = list(events)
        self.error = error
        self.enter_error = enter_error
        self.close_after_outbound = close_after_outbound
        self.sent = []
        self.metadata = None
        self.entered = False
        self.exited = False
        self.cancelled = False
        self._sender: asyncio.Task | None = None

    async def __aenter__(self):
        self.entered = True
        if self.enter_error is not None:
            raise self.enter_error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited = True

    def open(self, requests, metadata):
        self.metadata = list(metadata)
        self._sender = asyncio.create_task(self._drain(requests))
        return self._receive()

    async def _drain(self, requests):
        async for unit in requests:
            self.sent.append(unit)

    async def _receive(self):
        try:
            for event in self.events:
                await asyncio.sleep(0)
                yield event
            if self.error is not None:
                raise self.error
            if self.close_after_outbound:
                await self._sender
        finally:
            if not self._sender.done():
                self._sender.cancel()
            await asyncio.gather(self._sender, return_exceptions=True)

    def cancel(self):
        self.cancelled = True


class FailingSource:
    def __init__(self):
        self.reads = 0

    def readinto(self, buffer):
        self.reads += 1
        if self.reads == 1:
            buffer[:2] = b"\x07\x07"
            return 2
        raise OSError("capture device lost")

    def close(self):
        pass


@pytest.fixture
def issuer():
    return TokenIssuer(Credentials(api_key_id="key-1", secret_key=SECRET))


@pytest.fixture
def config():
    return SessionConfig()


def make_orchestrator(issuer, transport, config, pacing=FAST):
    return SessionOrchestrator(issuer=issuer, transport=transport, config=config, pacing=pacing)


class TestSessionClose:
    """Test the three ways a session reaches CLOSED."""

    @pytest.mark.asyncio
    async def test_end_of_input(self, issuer, config):
        transport = FakeTransport(events=[final("привет мир")])
        orchestrator = make_orchestrator(issuer, transport, config)

        outcome = await orchestrator.run(BytesAudioSource(b"a" * 40))

        assert outcome.state is SessionState.CLOSED
        assert outcome.close_reason is CloseReason.END_OF_INPUT
        assert outcome.transcript == ["привет мир"]
        assert outcome.text == "привет мир"
        assert outcome.events_received == 1
        assert orchestrator.state is SessionState.CLOSED
        assert transport.exited

        assert transport.sent[0] == ConfigUnit(config)
        assert b"".join(unit.payload for unit in transport.sent[1:]) == b"a" * 40
        assert outcome.units_sent == len(transport.sent)

    @pytest.mark.asyncio
    async def test_no_input_timeout_cancels_outbound(self, issuer, config):
        """A long open segment stops the session while keep-alive is running."""
        transport = FakeTransport(events=[open_segment(0.0, 1.0), open_segment(0.0, 4.0)], close_after_outbound=False)
        orchestrator = make_orchestrator(issuer, transport, config, pacing=KEEP_ALIVE)

        outcome = await asyncio.wait_for(orchestrator.run(BytesAudioSource(b"b" * 16)), timeout=5.0)

        assert outcome.close_reason is CloseReason.NO_INPUT_TIMEOUT
        assert outcome.events_received == 2
        assert transport.cancelled
        assert transport.exited

    @pytest.mark.asyncio
    async def test_remote_close(self, issuer, config):
        transport = FakeTransport(events=[final("да")], close_after_outbound=False)
        orchestrator = make_orchestrator(issuer, transport, config, pacing=KEEP_ALIVE)

        outcome = await asyncio.wait_for(orchestrator.run(BytesAudioSource(b"c" * 16)), timeout=5.0)

        assert outcome.close_reason is CloseReason.REMOTE_CLOSED
        assert outcome.transcript == ["да"]
        assert transport.exited


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_bearer_token_in_metadata(self, issuer, config):
        transport = FakeTransport()
        await make_orchestrator(issuer, transport, config).run(BytesAudioSource(b""))

        assert len(transport.metadata) == 1
        key, value = transport.metadata[0]
        assert key == "authorization"
        assert value.startswith("Bearer ")
        assert issuer.verify(value.split(" ", 1)[1])["aud"] == "tinkoff.cloud.stt"

    @pytest.mark.asyncio
    async def test_signing_error(self, config):
        issuer = TokenIssuer(Credentials(api_key_id="key-1", secret_key=b""))
        transport = FakeTransport()
        orchestrator = make_orchestrator(issuer, transport, config)

        with pytest.raises(SigningError):
            await orchestrator.run(BytesAudioSource(b"x"))

        assert orchestrator.state is SessionState.FAILED
        assert not transport.entered


class TestFailures:
    """Test that each failure is distinguishable and releases the transport."""

    @pytest.mark.asyncio
    async def test_connect_error(self, issuer, config):
        transport = FakeTransport(enter_error=ConnectError("TLS handshake failed"))
        orchestrator = make_orchestrator(issuer, transport, config)

        with pytest.raises(ConnectError) as exc_info:
            await orchestrator.run(BytesAudioSource(b"x"))

        assert exc_info.value.retryable
        assert orchestrator.state is SessionState.FAILED

    @pytest.mark.asyncio
    async def test_unexpected_error_while_connecting(self, issuer, config):
        transport = FakeTransport(enter_error=OSError("network unreachable"))
        orchestrator = make_orchestrator(issuer, transport, config)

        with pytest.raises(ConnectError):
            await orchestrator.run(BytesAudioSource(b"x"))

    @pytest.mark.asyncio
    async def test_transport_error_keeps_partial_transcript(self, issuer, config):
        transport = FakeTransport(
            events=[final("первая фраза")],
            error=TransportError("token expired", code="UNAUTHENTICATED"),
        )
        orchestrator = make_orchestrator(issuer, transport, config, pacing=KEEP_ALIVE)

        with pytest.raises(TransportError) as exc_info:
            await asyncio.wait_for(orchestrator.run(BytesAudioSource(b"d" * 16)), timeout=5.0)

        assert exc_info.value.code == "UNAUTHENTICATED"
        assert exc_info.value.partial_transcript == ["первая фраза"]
        assert orchestrator.state is SessionState.FAILED
        assert transport.exited

    @pytest.mark.asyncio
    async def test_unexpected_error_while_streaming(self, issuer, config):
        transport = FakeTransport(events=[final("ok")], error=RuntimeError("stream reset"))
        orchestrator = make_orchestrator(issuer, transport, config, pacing=KEEP_ALIVE)

        with pytest.raises(TransportError) as exc_info:
            await asyncio.wait_for(orchestrator.run(BytesAudioSource(b"e" * 16)), timeout=5.0)

        assert exc_info.value.partial_transcript == ["ok"]
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_source_error_after_inbound_drains(self, issuer, config):
        """The outbound half ends on a source failure; in-flight events are still consumed."""
        transport = FakeTransport(events=[final("успели")])
        orchestrator = make_orchestrator(issuer, transport, config)

        with pytest.raises(SourceReadError):
            await asyncio.wait_for(orchestrator.run(FailingSource()), timeout=5.0)

        assert orchestrator.transcript == ["успели"]
        assert orchestrator.state is SessionState.FAILED
        assert transport.sent == [ConfigUnit(config), AudioUnit(b"\x07\x07")]
        assert transport.exited

    @pytest.mark.asyncio
    async def test_single_use(self, issuer, config):
        orchestrator = make_orchestrator(issuer, FakeTransport(), config)
        await orchestrator.run(BytesAudioSource(b""))

        with pytest.raises(RuntimeError):
            await orchestrator.run(BytesAudioSource(b""))


def test_from_config_wires_components(tmp_path):
    loader = ConfigLoader(tmp_path / "missing.toml")
    transport = FakeTransport()

    orchestrator = SessionOrchestrator.from_config(
        loader, Credentials(api_key_id="key-1", secret_key=SECRET), transport=transport
    )

    assert orchestrator.transport is transport
    assert orchestrator.issuer.audience == "tinkoff.cloud.stt"
    assert orchestrator.config.sample_rate_hz == 16000
    assert orchestrator.pacing.queue_size == 8
    assert orchestrator.consumer.policy.threshold_seconds == 3.0
    assert orchestrator.state is SessionState.IDLE


@pytest.mark.asyncio
async def test_outside_cancellation_fails_session(issuer, config):
    """A run abandoned by its caller still releases the transport and ends in FAILED."""
    transport = FakeTransport(events=[final("начало")])
    orchestrator = make_orchestrator(issuer, transport, config, pacing=KEEP_ALIVE)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(orchestrator.run(BytesAudioSource(b"f" * 16)), timeout=0.2)

    assert orchestrator.state is SessionState.FAILED
    assert orchestrator.transcript == ["начало"]
    assert transport.exited


@pytest.mark.asyncio
async def test_outcome_to_dict(issuer, config):
    transport = FakeTransport(events=[final("раз"), final("два", 1.0, 2.0)])
    outcome = await make_orchestrator(issuer, transport, config).run(BytesAudioSource(b"g" * 20))

    assert outcome.to_dict() == {
        "state": "closed",
        "close_reason": "end_of_input",
        "transcript": ["раз", "два"],
        "text": "раз два",
        "events_received": 2,
        "units_sent": 3,
    }


def test_from_config_defaults_to_process_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    config_path.write_text('[recog.token]\naudience = "stt.example.test"\n')
    monkeypatch.setenv("RECOG_CONFIG", str(config_path))
    monkeypatch.setenv("TCS_APIKEY", "key-2")
    monkeypatch.setenv("TCS_SECRET", base64.b64encode(SECRET).decode())
    monkeypatch.setattr(config_module, "_config", None)

    orchestrator = SessionOrchestrator.from_config(transport=FakeTransport())

    assert orchestrator.issuer.audience == "stt.example.test"
    assert orchestrator.issuer.credentials.api_key_id == "key-2"
    assert orchestrator.issuer.credentials.secret_key == SECRET
