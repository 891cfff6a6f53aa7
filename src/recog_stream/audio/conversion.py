"""Audio helpers for 16-bit PCM payloads."""

import numpy as np

BYTES_PER_SAMPLE = 2


def silence(num_bytes: int) -> bytes:
    """Zero-filled 16-bit PCM payload of exactly num_bytes."""
    if num_bytes < 0:
        raise ValueError(f"num_bytes must be >= 0, got {num_bytes}")
    samples = np.zeros((num_bytes + BYTES_PER_SAMPLE - 1) // BYTES_PER_SAMPLE, dtype=np.int16)
    return samples.tobytes()[:num_bytes]


def pcm_duration_seconds(num_bytes: int, sample_rate: int, channels: int = 1) -> float:
    """Duration of a 16-bit PCM payload in seconds."""
    if sample_rate <= 0 or channels <= 0:
        return 0.0
    return num_bytes / (sample_rate * channels * BYTES_PER_SAMPLE)
