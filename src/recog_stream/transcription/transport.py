"""Bidirectional streaming RPC transport.

GrpcTransport owns one TLS channel to the recognition service and runs the
StreamingRecognize call: request units go out through the serializer in
``encoder``, responses come back already decoded to RecognitionEvents.
"""

import asyncio
import logging
import ssl
from collections.abc import AsyncIterator, Sequence
from typing import Protocol, runtime_checkable

import grpc

from ..core.exceptions import ConnectError, TransportError
from .encoder import deserialize_event, serialize_request
from .protocol import STREAMING_RECOGNIZE_METHOD
from .types import RecognitionEvent, RequestUnit

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "api.tinkoff.ai:443"

Metadata = Sequence[tuple[str, str]]

# Status codes that mean the session never got established
_CONNECT_CODES = {grpc.StatusCode.UNAVAILABLE, grpc.StatusCode.UNAUTHENTICATED}


def system_root_certificates() -> bytes | None:
    """PEM bundle of the platform trust store, or None when none is found.

    gRPC falls back to its own bundled roots on None.
    """
    paths = ssl.get_default_verify_paths()
    for cafile in (paths.cafile, paths.openssl_cafile):
        if not cafile:
            continue
        try:
            with open(cafile, "rb") as f:
                return f.read()
        except OSError:
            logger.debug(f"Cannot read CA bundle {cafile}")
    logger.debug("No system CA bundle found; using gRPC bundled roots")
    return None


@runtime_checkable
class RecognitionTransport(Protocol):
    """What the session orchestrator needs from a transport.

    ``open`` starts the call: the transport consumes ``requests`` on its own
    as the outbound half and the returned iterator is the inbound half.
    """

    async def __aenter__(self) -> "RecognitionTransport": ...

    async def __aexit__(self, exc_type, exc, tb) -> None: ...

    def open(self, requests: AsyncIterator[RequestUnit], metadata: Metadata) -> AsyncIterator[RecognitionEvent]: ...

    def cancel(self) -> None: ...


class GrpcTransport:
    """StreamingRecognize over a grpc.aio secure channel."""

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        method: str = STREAMING_RECOGNIZE_METHOD,
        channel_credentials: grpc.ChannelCredentials | None = None,
        connect_timeout: float | None = None,
    ):
        """Initialize the transport.

        Args:
            endpoint: host:port of the recognition service
            method: Full RPC method path
            channel_credentials: TLS credentials; None uses the platform trust
                store (see system_root_certificates)
            connect_timeout: Wait this long for the channel to become ready
                before starting the call; None starts the call right away

        """
        self.endpoint = endpoint
        self.method = method
        self.connect_timeout = connect_timeout
        self._channel_credentials = channel_credentials
        self._channel: grpc.aio.Channel | None = None
        self._call = None

    async def __aenter__(self) -> "GrpcTransport":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        """Create the channel, optionally waiting until it is ready.

        Raises:
            ConnectError: If the channel cannot be set up

        """
        if self._channel is not None:
            return
        credentials = self._channel_credentials or grpc.ssl_channel_credentials(
            root_certificates=system_root_certificates()
        )
        self._channel = grpc.aio.secure_channel(self.endpoint, credentials)
        logger.info(f"Opened channel to {self.endpoint}")

        if self.connect_timeout is None:
            return
        try:
            await asyncio.wait_for(self._channel.channel_ready(), timeout=self.connect_timeout)
        except TimeoutError as e:
            await self.close()
            raise ConnectError(f"Channel to {self.endpoint} not ready after {self.connect_timeout}s") from e

    async def close(self) -> None:
        if self._channel is None:
            return
        self.cancel()
        await self._channel.close()
        self._channel = None
        logger.info(f"Closed channel to {self.endpoint}")

    def open(self, requests: AsyncIterator[RequestUnit], metadata: Metadata) -> AsyncIterator[RecognitionEvent]:
        if self._channel is None:
            raise ConnectError("Transport is not connected")
        multicallable = self._channel.stream_stream(
            self.method,
            request_serializer=serialize_request,
            response_deserializer=deserialize_event,
        )
        try:
            self._call = multicallable(requests, metadata=tuple(metadata))
        except grpc.RpcError as e:
            raise ConnectError(f"Failed to start recognition call: {e}") from e
        return self._events(self._call)

    async def _events(self, call) -> AsyncIterator[RecognitionEvent]:
        received = 0
        try:
            async for event in call:
                received += 1
                yield event
        except grpc.aio.AioRpcError as e:
            raise self._translate(e, received) from e
        finally:
            self._call = None

    def cancel(self) -> None:
        """Cancel the in-flight call, if any."""
        if self._call is not None and not self._call.done():
            logger.debug("Cancelling recognition call")
            self._call.cancel()

    def _translate(self, error: grpc.aio.AioRpcError, received: int) -> Exception:
        code = error.code()
        details = error.details() or ""
        if received == 0 and code in _CONNECT_CODES:
            logger.error(f"Recognition session rejected: {code.name} {details}")
            return ConnectError(f"Could not establish session: {code.name} {details}".strip(), code=code.name)
        logger.error(f"Recognition call failed after {received} events: {code.name} {details}")
        return TransportError(f"Recognition call failed: {code.name} {details}".strip(), code=code.name)


__all__ = ["DEFAULT_ENDPOINT", "GrpcTransport", "RecognitionTransport"]
