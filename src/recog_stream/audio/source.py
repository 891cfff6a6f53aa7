"""Byte-producing audio origins.

Every source exposes ``readinto(buffer) -> int`` and returns 0 once it is
exhausted. Reads are blocking; the session stream runs them off the event
loop.
"""

import io
import logging
import subprocess
import wave
from pathlib import Path
from typing import Protocol, runtime_checkable

from ..core.exceptions import SourceReadError

logger = logging.getLogger(__name__)


@runtime_checkable
class AudioSource(Protocol):
    """Pull-based audio origin."""

    def readinto(self, buffer: bytearray | memoryview) -> int:
        """Fill buffer with up to len(buffer) bytes, returning the count (0 at end)."""
        ...

    def close(self) -> None:
        """Release the underlying resource."""
        ...


class _ClosingMixin:
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class BytesAudioSource(_ClosingMixin):
    """In-memory PCM payload, mostly useful for replay and tests."""

    def __init__(self, data: bytes):
        self._stream = io.BytesIO(data)

    def readinto(self, buffer: bytearray | memoryview) -> int:
        return self._stream.readinto(buffer)

    def close(self) -> None:
        self._stream.close()


class FileAudioSource(_ClosingMixin):
    """Audio file on disk.

    WAV files are read through ``wave`` so only the PCM frames are produced;
    any other file is streamed as raw bytes.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._wav: wave.Wave_read | None = None
        self._raw = None
        try:
            if self.path.suffix.lower() == ".wav":
                self._wav = wave.open(str(self.path), "rb")
                self.sample_rate = self._wav.getframerate()
                self.channels = self._wav.getnchannels()
                self._frame_size = self._wav.getsampwidth() * self.channels
            else:
                self._raw = open(self.path, "rb")
                self.sample_rate = None
                self.channels = None
                self._frame_size = 1
        except (OSError, wave.Error, EOFError) as e:
            raise SourceReadError(f"Cannot open audio file {self.path}: {e}") from e

        logger.debug(f"Opened audio file {self.path} (wav={self._wav is not None})")

    def readinto(self, buffer: bytearray | memoryview) -> int:
        if self._raw is not None:
            return self._raw.readinto(buffer)
        if self._wav is None:
            raise SourceReadError(f"Audio file {self.path} is closed")

        # A zero-frame read would look like end of input
        frames = len(buffer) // self._frame_size
        if frames == 0:
            raise SourceReadError(
                f"Read size {len(buffer)} is smaller than one frame ({self._frame_size} bytes) of {self.path}"
            )
        data = self._wav.readframes(frames)
        buffer[: len(data)] = data
        return len(data)

    def close(self) -> None:
        if self._wav is not None:
            self._wav.close()
            self._wav = None
        if self._raw is not None:
            self._raw.close()
            self._raw = None


class PipeAudioSource(_ClosingMixin):
    """Live capture through an external recorder writing raw PCM to stdout.

    Example::

        command = get_config().capture_command(sample_rate=16000, channels=1)
        with PipeAudioSource(command) as source:
            ...

    """

    def __init__(self, command: list[str]):
        self.command = command
        try:
            self._process = subprocess.Popen(command, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL)
        except OSError as e:
            raise SourceReadError(f"Cannot start recorder {command[0]!r}: {e}") from e
        logger.info(f"Started audio recorder: {' '.join(command)}")

    def readinto(self, buffer: bytearray | memoryview) -> int:
        stdout = self._process.stdout
        if stdout is None:
            return 0
        count = stdout.readinto1(buffer)
        if count == 0:
            returncode = self._process.poll()
            if returncode not in (None, 0):
                raise SourceReadError(f"Recorder exited with status {returncode}")
        return count

    def close(self) -> None:
        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=2.0)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
        if self._process.stdout is not None:
            self._process.stdout.close()
        logger.info("Audio recorder stopped")


__all__ = ["AudioSource", "BytesAudioSource", "FileAudioSource", "PipeAudioSource"]
