from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field

import numpy as np
import soundfile as sf

from .audio import describe_subtype
from .models import AudioInfo, SampleBuffer

log = logging.getLogger(__name__)


class DecodeError(Exception):
    """The transferred bytes could not be decoded into PCM."""

    def __init__(self, message: str, code: int = -1):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class DecodeStatus:
    code: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.code == 0


@dataclass(frozen=True)
class DecodeResult:
    """Decoder output: ``(n_samples, n_channels)`` float32 frames."""
    frames: np.ndarray = field(repr=False)
    sample_rate: int
    status: DecodeStatus

    @property
    def num_channels(self) -> int:
        return self.frames.shape[1] if self.frames.ndim == 2 else 0

    def to_sample_buffer(self) -> SampleBuffer:
        if not self.status.ok:
            raise DecodeError(self.status.error, self.status.code)
        return SampleBuffer.from_interleaved(self.frames, self.sample_rate)


def decode(data: bytes) -> DecodeResult:
    """Decode a complete in-memory audio file.

    Never raises for bad input: failures come back as a non-zero
    :class:`DecodeStatus`.
    """
    try:
        frames, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
    except (sf.LibsndfileError, RuntimeError, TypeError, ValueError) as e:
        log.warning("decode failed: %s", e)
        return DecodeResult(
            np.zeros((0, 0), dtype=np.float32), 0, DecodeStatus(-1, str(e)),
        )
    if frames.shape[1] == 0 or sample_rate <= 0:
        return DecodeResult(frames, int(sample_rate),
                            DecodeStatus(-2, "file contains no audio channels"))
    return DecodeResult(frames, int(sample_rate), DecodeStatus())


def read_audio_info(data: bytes) -> AudioInfo:
    """Container facts for the info table.  Raises :class:`DecodeError`."""
    try:
        info = sf.info(io.BytesIO(data))
    except (sf.LibsndfileError, RuntimeError, TypeError, ValueError) as e:
        raise DecodeError(str(e)) from e
    return AudioInfo(
        format=info.format,
        encoding=describe_subtype(info.subtype),
        channels=info.channels,
        sample_rate=info.samplerate,
        frames=info.frames,
        file_size=len(data),
    )
