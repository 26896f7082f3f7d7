from __future__ import annotations

import io
import math
import re
from datetime import datetime

import numpy as np
import soundfile as sf

from .models import SampleBuffer

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]+')


def encode_wav(channels: list[np.ndarray], sample_rate: int) -> bytes:
    """16-bit PCM WAV bytes for equal-length channel arrays."""
    frames = np.column_stack([np.asarray(c, dtype=np.float32) for c in channels])
    buf = io.BytesIO()
    sf.write(buf, np.clip(frames, -1.0, 1.0), sample_rate,
             format="WAV", subtype="PCM_16")
    return buf.getvalue()


def cut_to_wav(buffer: SampleBuffer, min_time: float, max_time: float) -> bytes:
    """Encode ``[min_time, max_time)`` of every channel as 16-bit WAV."""
    sr = buffer.sample_rate
    start = max(0, math.floor(min_time * sr))
    end = min(buffer.length, math.floor(max_time * sr))
    if end <= start:
        raise ValueError(f"empty cut range {min_time}-{max_time}s")
    return encode_wav([c[start:end] for c in buffer.channels], sr)


def default_cut_filename(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"cut_{now:%Y%m%d_%H%M%S}.wav"


def sanitize_filename(name: str, now: datetime | None = None) -> str:
    """Make *name* safe to write next to the source file.

    Reserved characters collapse to ``_``; an empty name gets a
    timestamped default and ``.wav`` is appended when missing.
    """
    cleaned = _INVALID_FILENAME_CHARS.sub("_", name.strip())
    if not cleaned or cleaned in (".", ".."):
        return default_cut_filename(now)
    if not cleaned.lower().endswith(".wav"):
        cleaned += ".wav"
    return cleaned
