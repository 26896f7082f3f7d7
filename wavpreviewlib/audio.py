from __future__ import annotations

import numpy as np


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def db_to_linear(db: float) -> float:
    return 10 ** (db / 20.0)


def linear_to_db(linear: float) -> float:
    if linear <= 0:
        return float(-np.inf)
    return float(20 * np.log10(linear))


def format_duration(samples: int, samplerate: int) -> str:
    if samplerate <= 0:
        return "00:00.000"
    seconds = samples / samplerate
    m = int(seconds // 60)
    s = int(seconds % 60)
    ms = int((seconds % 1) * 1000)
    return f"{m:02d}:{s:02d}.{ms:03d}"


def format_seconds(seconds: float) -> str:
    """``mm:ss.mmm`` for a position given in seconds."""
    return format_duration(int(round(max(0.0, seconds) * 1000)), 1000)


def format_file_size(n_bytes: int) -> str:
    size = float(n_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024.0 or unit == "GB":
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{n_bytes} B"


# ---------------------------------------------------------------------------
# Container descriptions
# ---------------------------------------------------------------------------

_SUBTYPE_MAP = {
    'PCM_S8': '8-bit',
    'PCM_U8': '8-bit unsigned',
    'PCM_16': '16-bit',
    'PCM_24': '24-bit',
    'PCM_32': '32-bit',
    'FLOAT': '32-bit Float',
    'DOUBLE': '64-bit Float',
    'ULAW': 'u-law',
    'ALAW': 'A-law',
}


def describe_subtype(subtype: str) -> str:
    return _SUBTYPE_MAP.get(subtype, subtype)
