"""Paced outbound request stream.

SessionStream bridges a pull-based AudioSource to the push-based transport:
a producer task reads and paces audio into a bounded queue, and ``open()``
drains that queue as an async iterator of request units.

Order of units:
    1. ConfigUnit, always first
    2. optional warm-up silence
    3. source audio, one unit per read, paced by ``chunk_interval``
    4. end of stream, or zero-filled filler until cancelled (keep-alive)
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass
from typing import Any

from ..audio.conversion import pcm_duration_seconds, silence
from ..audio.source import AudioSource
from ..core.exceptions import SourceReadError
from .encoder import FrameEncoder
from .types import AudioUnit, RequestUnit, SessionConfig

logger = logging.getLogger(__name__)

_END = object()
_CANCELLED = object()


@dataclass(frozen=True)
class _Failure:
    error: BaseException


@dataclass(frozen=True)
class PacingPolicy:
    """How fast and in what shape audio is emitted.

    Attributes:
        chunk_size: Bytes pulled from the source per unit
        chunk_interval: Delay after each real chunk (0 for live sources)
        warmup_chunks: Silence units sent before real audio (0 disables)
        warmup_interval: Delay after each warm-up unit
        warmup_chunk_size: Bytes per warm-up unit
        keep_alive: Keep emitting filler after the source is exhausted
        keep_alive_interval: Delay after each filler unit
        keep_alive_chunk_size: Bytes per filler unit
        queue_size: Capacity of the hand-off queue to the transport

    """

    chunk_size: int = 4096
    chunk_interval: float = 0.1
    warmup_chunks: int = 0
    warmup_interval: float = 0.1
    warmup_chunk_size: int = 3200
    keep_alive: bool = False
    keep_alive_interval: float = 0.01
    keep_alive_chunk_size: int = 320
    queue_size: int = 8

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.queue_size <= 0:
            raise ValueError(f"queue_size must be positive, got {self.queue_size}")
        if self.warmup_chunks < 0:
            raise ValueError(f"warmup_chunks must be >= 0, got {self.warmup_chunks}")
        for name in ("chunk_interval", "warmup_interval", "keep_alive_interval"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")

    @classmethod
    def from_mapping(cls, settings: dict[str, Any]) -> "PacingPolicy":
        """Build a policy from the [pacing] section of the config file."""
        known = cls.__dataclass_fields__
        return cls(**{key: value for key, value in settings.items() if key in known})

    @classmethod
    def for_file(cls, sample_rate: int = 16000, chunk_size: int = 4096, channels: int = 1) -> "PacingPolicy":
        """Replay a file at roughly real-time speed."""
        return cls(chunk_size=chunk_size, chunk_interval=pcm_duration_seconds(chunk_size, sample_rate, channels))

    @classmethod
    def for_live(cls, chunk_size: int = 4096) -> "PacingPolicy":
        """Live capture already arrives in real time."""
        return cls(chunk_size=chunk_size, chunk_interval=0.0)


class SessionStream:
    """Ordered, paced, cancellable producer of request units for one session.

    Example::

        stream = SessionStream(config, FileAudioSource("call.wav"), PacingPolicy.for_file())
        async for unit in stream.open():
            await send(unit)

    """

    def __init__(
        self,
        config: SessionConfig,
        source: AudioSource,
        pacing: PacingPolicy | None = None,
        encoder: FrameEncoder | None = None,
    ):
        self.config = config
        self.source = source
        self.pacing = pacing or PacingPolicy()
        self.encoder = encoder or FrameEncoder()

        self._cancel = asyncio.Event()
        self._producer: asyncio.Task | None = None

        self.units_emitted = 0
        self.audio_bytes = 0
        self.synthetic_units = 0

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Stop producing; observed within one pacing interval."""
        if not self._cancel.is_set():
            logger.debug("Session stream cancellation requested")
        self._cancel.set()

    async def open(self) -> AsyncIterator[RequestUnit]:
        """Yield request units in order until end of input or cancellation.

        Raises:
            SourceReadError: If the audio source fails; units queued before
                the failure are yielded first

        """
        if self._producer is not None:
            raise RuntimeError("Session stream can only be opened once")

        queue: asyncio.Queue = asyncio.Queue(maxsize=self.pacing.queue_size)
        self._producer = asyncio.create_task(self._produce(queue), name="session-stream-producer")
        try:
            while True:
                item = await self._until_cancelled(queue.get())
                if item is _CANCELLED or item is _END:
                    break
                if isinstance(item, _Failure):
                    raise item.error
                self.units_emitted += 1
                yield item
        finally:
            if not self._producer.done():
                self._producer.cancel()
            await asyncio.gather(self._producer, return_exceptions=True)
            logger.info(
                f"Session stream closed: {self.units_emitted} units, "
                f"{self.audio_bytes} audio bytes "
                f"({pcm_duration_seconds(self.audio_bytes, self.config.sample_rate_hz, self.config.num_channels):.2f}s), "
                f"{self.synthetic_units} synthetic"
            )

    async def _until_cancelled(self, awaitable: Awaitable) -> Any:
        """Await awaitable unless cancellation arrives first (returns _CANCELLED)."""
        task = asyncio.ensure_future(awaitable)
        if self._cancel.is_set():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            return _CANCELLED

        stopper = asyncio.ensure_future(self._cancel.wait())
        try:
            done, _ = await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (task, stopper):
                if not pending.done():
                    pending.cancel()
        if task in done:
            return task.result()
        await asyncio.gather(task, return_exceptions=True)
        return _CANCELLED

    async def _put(self, queue: asyncio.Queue, item: Any) -> bool:
        # Suspends while the queue is full; False once cancelled
        return await self._until_cancelled(queue.put(item)) is not _CANCELLED

    async def _pause(self, seconds: float) -> bool:
        if self._cancel.is_set():
            return False
        if seconds <= 0:
            return True
        try:
            await asyncio.wait_for(self._cancel.wait(), timeout=seconds)
        except TimeoutError:
            return True
        return False

    async def _read_chunk(self, buffer: bytearray) -> bytes:
        try:
            count = await asyncio.to_thread(self.source.readinto, buffer)
        except SourceReadError:
            raise
        except Exception as e:
            raise SourceReadError(f"Audio source read failed: {e}") from e
        return bytes(buffer[: count or 0])

    async def _emit_synthetic(self, queue: asyncio.Queue, payload: bytes) -> bool:
        if not await self._put(queue, self.encoder.encode_audio(payload, synthetic=True)):
            return False
        self.synthetic_units += 1
        return True

    async def _produce(self, queue: asyncio.Queue) -> None:
        pacing = self.pacing
        try:
            if not await self._put(queue, self.encoder.encode_config(self.config)):
                return

            if pacing.warmup_chunks:
                logger.debug(f"Sending {pacing.warmup_chunks} warm-up silence chunks")
                warmup = silence(pacing.warmup_chunk_size)
                for _ in range(pacing.warmup_chunks):
                    if not await self._emit_synthetic(queue, warmup):
                        return
                    if not await self._pause(pacing.warmup_interval):
                        return

            buffer = bytearray(pacing.chunk_size)
            while True:
                if self._cancel.is_set():
                    return
                chunk = await self._read_chunk(buffer)
                if not chunk:
                    break
                unit: AudioUnit = self.encoder.encode_audio(chunk)
                if not await self._put(queue, unit):
                    return
                self.audio_bytes += len(chunk)
                if not await self._pause(pacing.chunk_interval):
                    return

            logger.debug(f"Audio source exhausted after {self.audio_bytes} bytes")
            if pacing.keep_alive:
                logger.info("Keep-alive mode: sending filler until cancelled")
                filler = silence(pacing.keep_alive_chunk_size)
                while await self._emit_synthetic(queue, filler):
                    if not await self._pause(pacing.keep_alive_interval):
                        return
                return

            await self._put(queue, _END)
        except SourceReadError as e:
            logger.error(f"Audio source failed: {e}")
            await self._put(queue, _Failure(e))
        except Exception as e:
            logger.exception(f"Session stream producer failed: {e}")
            await self._put(queue, _Failure(e))


__all__ = ["PacingPolicy", "SessionStream"]
