"""Unit tests for the gRPC transport, with the channel mocked out."""

import asyncio
import ssl
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import grpc
import pytest

from recog_stream.core.exceptions import ConnectError, TransportError
from recog_stream.transcription.encoder import deserialize_event, serialize_request
from recog_stream.transcription.protocol import STREAMING_RECOGNIZE_METHOD
from recog_stream.transcription.transport import GrpcTransport, RecognitionTransport, system_root_certificates
from recog_stream.transcription.types import RecognitionEvent


def rpc_error(code: grpc.StatusCode, details: str = "") -> grpc.aio.AioRpcError:
    return grpc.aio.AioRpcError(code, grpc.aio.Metadata(), grpc.aio.Metadata(), details=details)


class FakeCall:
    """Stands in for a grpc.aio StreamStreamCall."""

    def __init__(self, events=(), error=None):
        self.events = list(events)
        self.error = error
        self.cancelled = False
        self.finished = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event
        if self.error is not None:
            raise self.error
        self.finished = True

    def done(self):
        return self.finished or self.cancelled

    def cancel(self):
        self.cancelled = True
        return True


@pytest.fixture
def channel(monkeypatch):
    channel = Mock()
    channel.close = AsyncMock()
    channel.channel_ready = AsyncMock()
    factory = Mock(return_value=channel)
    monkeypatch.setattr(grpc.aio, "secure_channel", factory)
    channel.factory = factory
    return channel


async def empty_requests():
    return
    yield


class TestConnection:
    """Test channel lifecycle."""

    def test_satisfies_protocol(self):
        assert isinstance(GrpcTransport(), RecognitionTransport)

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes(self, channel):
        credentials = Mock(name="credentials")
        transport = GrpcTransport("stt.example:443", channel_credentials=credentials)

        async with transport:
            channel.factory.assert_called_once_with("stt.example:443", credentials)

        channel.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_open_requires_connection(self):
        with pytest.raises(ConnectError):
            GrpcTransport().open(empty_requests(), metadata=[])

    @pytest.mark.asyncio
    async def test_connect_timeout(self, channel):
        async def never_ready():
            await asyncio.sleep(10)

        channel.channel_ready = never_ready
        transport = GrpcTransport(channel_credentials=Mock(), connect_timeout=0.01)

        with pytest.raises(ConnectError):
            await transport.connect()
        channel.close.assert_awaited_once()


class TestCall:
    """Test how the streaming call is started and consumed."""

    @pytest.mark.asyncio
    async def test_call_arguments(self, channel):
        event = RecognitionEvent()
        call = FakeCall(events=[event])
        multicallable = Mock(return_value=call)
        channel.stream_stream = Mock(return_value=multicallable)
        requests = empty_requests()

        async with GrpcTransport(channel_credentials=Mock()) as transport:
            events = transport.open(requests, metadata=[("authorization", "Bearer abc")])
            received = [item async for item in events]

        channel.stream_stream.assert_called_once_with(
            STREAMING_RECOGNIZE_METHOD,
            request_serializer=serialize_request,
            response_deserializer=deserialize_event,
        )
        multicallable.assert_called_once_with(requests, metadata=(("authorization", "Bearer abc"),))
        assert received == [event]

    @pytest.mark.asyncio
    async def test_cancel_in_flight_call(self, channel):
        call = FakeCall()
        channel.stream_stream = Mock(return_value=Mock(return_value=call))

        async with GrpcTransport(channel_credentials=Mock()) as transport:
            transport.open(empty_requests(), metadata=[])
            transport.cancel()

        assert call.cancelled

    @pytest.mark.asyncio
    async def test_mid_stream_failure(self, channel):
        call = FakeCall(events=[RecognitionEvent()], error=rpc_error(grpc.StatusCode.UNAVAILABLE, "reset"))
        channel.stream_stream = Mock(return_value=Mock(return_value=call))
        received = []

        async with GrpcTransport(channel_credentials=Mock()) as transport:
            with pytest.raises(TransportError) as exc_info:
                async for event in transport.open(empty_requests(), metadata=[]):
                    received.append(event)

        assert len(received) == 1
        assert exc_info.value.code == "UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_rejected_before_first_response(self, channel):
        call = FakeCall(error=rpc_error(grpc.StatusCode.UNAUTHENTICATED, "bad token"))
        channel.stream_stream = Mock(return_value=Mock(return_value=call))

        async with GrpcTransport(channel_credentials=Mock()) as transport:
            with pytest.raises(ConnectError) as exc_info:
                async for _ in transport.open(empty_requests(), metadata=[]):
                    pass

        assert exc_info.value.code == "UNAUTHENTICATED"


class TestTranslate:
    @pytest.mark.parametrize("code", [grpc.StatusCode.UNAVAILABLE, grpc.StatusCode.UNAUTHENTICATED])
    def test_connect_codes_before_any_event(self, code):
        error = GrpcTransport()._translate(rpc_error(code, "no route"), received=0)

        assert isinstance(error, ConnectError)
        assert error.code == code.name
        assert "no route" in str(error)

    def test_connect_codes_after_events(self):
        error = GrpcTransport()._translate(rpc_error(grpc.StatusCode.UNAVAILABLE), received=3)
        assert isinstance(error, TransportError)

    def test_other_codes(self):
        error = GrpcTransport()._translate(rpc_error(grpc.StatusCode.INVALID_ARGUMENT, "bad rate"), received=0)

        assert isinstance(error, TransportError)
        assert error.code == "INVALID_ARGUMENT"
        assert error.retryable


class TestTrustRoots:
    """Test that default credentials use the platform CA bundle."""

    def test_reads_system_bundle(self, tmp_path, monkeypatch):
        bundle = tmp_path / "ca-bundle.pem"
        bundle.write_bytes(b"-----BEGIN CERTIFICATE-----\nroots\n-----END CERTIFICATE-----\n")
        paths = SimpleNamespace(cafile=None, openssl_cafile=str(bundle))
        monkeypatch.setattr(ssl, "get_default_verify_paths", lambda: paths)

        assert system_root_certificates() == bundle.read_bytes()

    def test_missing_bundle_falls_back_to_grpc_roots(self, tmp_path, monkeypatch):
        paths = SimpleNamespace(cafile=None, openssl_cafile=str(tmp_path / "absent.pem"))
        monkeypatch.setattr(ssl, "get_default_verify_paths", lambda: paths)

        assert system_root_certificates() is None

    @pytest.mark.asyncio
    async def test_default_credentials_use_system_roots(self, channel, tmp_path, monkeypatch):
        bundle = tmp_path / "ca-bundle.pem"
        bundle.write_bytes(b"pem roots")
        monkeypatch.setattr(ssl, "get_default_verify_paths", lambda: SimpleNamespace(cafile=str(bundle), openssl_cafile=None))
        credentials = Mock(name="credentials")
        factory = Mock(return_value=credentials)
        monkeypatch.setattr(grpc, "ssl_channel_credentials", factory)

        async with GrpcTransport("stt.example:443"):
            pass

        factory.assert_called_once_with(root_certificates=b"pem roots")
        channel.factory.assert_called_once_with("stt.example:443", credentials)
