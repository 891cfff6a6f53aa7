"""Audio sources and PCM helpers.

Public surface is kept explicit to reduce accidental coupling to internals.
"""

from .conversion import pcm_duration_seconds, silence
from .source import AudioSource, BytesAudioSource, FileAudioSource, PipeAudioSource

__all__ = [
    "AudioSource",
    "BytesAudioSource",
    "FileAudioSource",
    "PipeAudioSource",
    "pcm_duration_seconds",
    "silence",
]
