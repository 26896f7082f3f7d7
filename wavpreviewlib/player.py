"""Playback state machine with optional monitoring filters.

The actual audio device is injected as a *stream factory* with the
``sounddevice.OutputStream`` calling convention, so the service runs (and
is tested) without sound hardware.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Any, Callable

import numpy as np
from scipy import signal

from .audio import db_to_linear
from .events import EventBus, EventType, Subscription, SubscriptionGroup
from .models import SampleBuffer
from .settings import PlayerSettingsService

log = logging.getLogger(__name__)

# 2nd-order Butterworth (Q = 1/sqrt(2)).
FILTER_ORDER = 2

StreamFactory = Callable[..., Any]


def design_filters(settings: PlayerSettingsService, sample_rate: int) -> list[np.ndarray]:
    """Second-order sections for every enabled monitoring filter (HPF first)."""
    nyquist = sample_rate / 2
    sections = []
    if settings.enable_hpf:
        freq = min(settings.hpf_frequency, nyquist * 0.99)
        sections.append(signal.butter(FILTER_ORDER, freq, btype="highpass",
                                      fs=sample_rate, output="sos"))
    if settings.enable_lpf:
        freq = min(settings.lpf_frequency, nyquist * 0.99)
        sections.append(signal.butter(FILTER_ORDER, freq, btype="lowpass",
                                      fs=sample_rate, output="sos"))
    return sections


class PlayerService:
    """Play / pause / seek over one :class:`SampleBuffer`.

    Position is tracked by frames handed to the output stream; the audio
    thread advances it inside :meth:`render`, the owner thread reads it
    in :meth:`tick`.
    """

    def __init__(
        self,
        sample_buffer: SampleBuffer,
        settings: PlayerSettingsService,
        stream_factory: StreamFactory,
        event_bus: EventBus | None = None,
    ):
        self.sample_buffer = sample_buffer
        self.settings = settings
        self.event_bus = event_bus or EventBus()
        self._stream_factory = stream_factory
        self._stream = None
        self._lock = threading.Lock()
        self._frames = np.column_stack(sample_buffer.channels)
        self._position = 0
        self._is_playing = False
        self._volume = 1.0
        self._sections: list[np.ndarray] = []
        self._zi: list[np.ndarray] = []
        self._seekbar_value = 0.0

        self._subs = SubscriptionGroup()
        for event in (EventType.ENABLE_HPF, EventType.HPF_FREQUENCY,
                      EventType.ENABLE_LPF, EventType.LPF_FREQUENCY):
            self._subs.add(settings.subscribe(event, self._on_filter_changed))

    def subscribe(self, event_type: str, handler) -> Subscription:
        return self.event_bus.subscribe(event_type, handler)

    # -- state --------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def current_sec(self) -> float:
        with self._lock:
            return self._position / self.sample_buffer.sample_rate

    @property
    def seekbar_value(self) -> float:
        return self._seekbar_value

    @property
    def volume(self) -> float:
        """Linear gain, 0..1."""
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = min(1.0, max(0.0, float(value)))
        self.event_bus.emit(EventType.UPDATE_VOLUME, value=self._volume)

    def set_volume_percent(self, percent: float) -> None:
        self.volume = percent / 100.0

    def set_volume_db(self, db: float) -> None:
        self.volume = 0.0 if db <= -80.0 else db_to_linear(db)

    # -- transport ----------------------------------------------------------

    def play(self) -> None:
        if self._is_playing:
            return
        with self._lock:
            if self._position >= self.sample_buffer.length:
                self._position = 0
            self._sections = design_filters(self.settings, self.sample_buffer.sample_rate)
            n_ch = self.sample_buffer.num_channels
            self._zi = [np.zeros((sos.shape[0], 2, n_ch)) for sos in self._sections]

        self._stream = self._stream_factory(
            samplerate=self.sample_buffer.sample_rate,
            channels=self.sample_buffer.num_channels,
            dtype="float32",
            callback=self._callback,
        )
        self._stream.start()
        self._is_playing = True
        self.event_bus.emit(EventType.UPDATE_IS_PLAYING, value=True)

    def pause(self) -> None:
        if not self._is_playing:
            return
        stream, self._stream = self._stream, None
        self._is_playing = False
        if stream is not None:
            stream.stop()
            stream.close()
        self.event_bus.emit(EventType.UPDATE_IS_PLAYING, value=False)

    def toggle(self) -> None:
        if self._is_playing:
            self.pause()
        else:
            self.play()

    def tick(self) -> None:
        """Broadcast the playback position; stop and rewind at the end."""
        duration = self.sample_buffer.duration
        current = self.current_sec
        self._seekbar_value = 100.0 * current / duration if duration > 0 else 0.0
        self.event_bus.emit(EventType.UPDATE_SEEKBAR,
                            value=self._seekbar_value, pos=current)

        with self._lock:
            finished = self._position >= self.sample_buffer.length
        if finished and self._is_playing:
            self.pause()
            with self._lock:
                self._position = 0
            self._seekbar_value = 0.0

    def on_seekbar_input(self, value: float) -> None:
        """Seek to *value* percent of the duration.

        Playback resumes if it was running, or starts if seek-to-play is on.
        """
        resume = self._is_playing
        if resume:
            self.pause()

        value = min(100.0, max(0.0, float(value)))
        with self._lock:
            self._position = min(
                self.sample_buffer.length,
                math.floor(value * self.sample_buffer.length / 100.0),
            )
        self._seekbar_value = value
        self.event_bus.emit(EventType.UPDATE_SEEKBAR, value=value, pos=self.current_sec)

        if resume or self.settings.enable_seek_to_play:
            self.play()

    def _on_filter_changed(self, value: Any = None) -> None:
        if self._is_playing:
            log.debug("monitoring filter changed, restarting playback")
            self.pause()
            self.play()

    # -- audio thread -------------------------------------------------------

    def render(self, frames: int) -> np.ndarray:
        """Next *frames* of output, ``(frames, channels)`` float32.

        Past the end of the buffer the block is padded with silence.
        """
        with self._lock:
            start = self._position
            end = min(start + frames, self.sample_buffer.length)
            block = self._frames[start:end].astype(np.float64)
            self._position = end
            for i, sos in enumerate(self._sections):
                if len(block):
                    block, self._zi[i] = signal.sosfilt(sos, block, axis=0, zi=self._zi[i])

        out = np.zeros((frames, self.sample_buffer.num_channels), dtype=np.float32)
        out[:len(block)] = block * self._volume
        return out

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            log.debug("output stream status: %s", status)
        outdata[:] = self.render(frames)

    def dispose(self) -> None:
        self.pause()
        self._subs.dispose()
