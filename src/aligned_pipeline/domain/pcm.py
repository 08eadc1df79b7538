"""PCM helpers for microphone frames and WAV encoding."""

import io
import wave

import numpy as np


def downmix(frames: np.ndarray) -> np.ndarray:
    """Averages a (samples, channels) float block into a mono float32 array."""
    data = np.asarray(frames, dtype=np.float32)
    if data.ndim == 1:
        return data
    return data.mean(axis=1, dtype=np.float32)


def resample(mono: np.ndarray, source_rate_hz: int, target_rate_hz: int) -> np.ndarray:
    """Linear-interpolation resampler; good enough for speech recognition input."""
    if source_rate_hz == target_rate_hz or mono.size == 0:
        return mono
    target_length = int(round(mono.size * target_rate_hz / source_rate_hz))
    if target_length == 0:
        return np.zeros(0, dtype=np.float32)
    source_positions = np.arange(mono.size, dtype=np.float64)
    target_positions = np.linspace(0, mono.size - 1, target_length)
    return np.interp(target_positions, source_positions, mono).astype(np.float32)


def to_pcm16(mono: np.ndarray) -> bytes:
    """Clamps float samples to [-1, 1] and encodes them as little-endian int16."""
    clipped = np.clip(mono, -1.0, 1.0)
    return (clipped * 0x7FFF).astype("<i2").tobytes()


def encode_wav(pcm16: bytes, sample_rate_hz: int, channels: int = 1) -> bytes:
    """Wraps raw 16-bit PCM in a self-contained WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as out:
        out.setnchannels(channels)
        out.setsampwidth(2)
        out.setframerate(sample_rate_hz)
        out.writeframes(pcm16)
    return buffer.getvalue()
