from __future__ import annotations

import numpy as np

# dB window an AnalyserNode maps onto its 0..255 byte range.
ANALYSER_MIN_DB = -100.0
ANALYSER_MAX_DB = -30.0


def _first_channel(samples: np.ndarray, channels: int) -> np.ndarray:
    if channels <= 1:
        return samples
    usable = len(samples) - (len(samples) % channels)
    return samples[:usable].reshape(-1, channels)[:, 0]


def analyser_level(pcm16: bytes, channels: int = 1, fft_size: int = 256) -> float:
    """
    Average spectral energy of the most recent `fft_size` samples on a 0..255 scale.

    Mirrors a browser AnalyserNode's getByteFrequencyData() averaged over all bins:
    Blackman window, magnitude in dB, [-100, -30] dB mapped linearly to [0, 255].
    """
    if fft_size < 32 or fft_size & (fft_size - 1):
        raise ValueError("fft_size must be a power of two >= 32")
    if not pcm16:
        return 0.0

    samples = np.frombuffer(pcm16[: len(pcm16) - (len(pcm16) % 2)], dtype="<i2")
    samples = _first_channel(samples, channels)
    if samples.size == 0:
        return 0.0

    frame = samples[-fft_size:].astype(np.float64) / 32768.0
    if frame.size < fft_size:
        frame = np.pad(frame, (fft_size - frame.size, 0))

    spectrum = np.fft.rfft(frame * np.blackman(fft_size))[: fft_size // 2]
    magnitude = np.abs(spectrum) / fft_size
    with np.errstate(divide="ignore"):
        db = 20.0 * np.log10(magnitude)
    scaled = (db - ANALYSER_MIN_DB) * (255.0 / (ANALYSER_MAX_DB - ANALYSER_MIN_DB))
    return float(np.mean(np.clip(scaled, 0.0, 255.0)))
