"""Audio output through sounddevice and the transport bar."""

from __future__ import annotations

import sounddevice as sd

from PySide6.QtCore import QObject, Qt, QTimer, Signal, Slot
from PySide6.QtWidgets import QHBoxLayout, QLabel, QPushButton, QSlider, QWidget

from wavpreviewlib.audio import format_seconds, linear_to_db
from wavpreviewlib.events import EventType, SubscriptionGroup
from wavpreviewlib.player import PlayerService
from wavpreviewlib.pipeline import PreviewSession

from .log import dbg

# Seek slider resolution (steps per 100 %)
_SEEK_STEPS = 1000


def output_stream(**kwargs) -> sd.OutputStream:
    """Stream factory handed to :class:`PlayerService`."""
    return sd.OutputStream(**kwargs)


class PlaybackController(QObject):
    """Owns the session's player and ticks it while playing.

    Signals:
        position_changed(float): playback position in percent of duration.
        playing_changed(bool)
        error(str): the output device could not be opened.
    """

    position_changed = Signal(float)
    playing_changed = Signal(bool)
    error = Signal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.player: PlayerService | None = None
        self._subs = SubscriptionGroup()
        self._timer = QTimer(self)
        self._timer.setInterval(30)
        self._timer.timeout.connect(self._on_timer)

    def attach(self, session: PreviewSession) -> PlayerService:
        self.detach()
        self.player = session.attach_player(output_stream)
        self._subs.add(self.player.subscribe(EventType.UPDATE_IS_PLAYING, self._on_is_playing))
        self._subs.add(self.player.subscribe(
            EventType.UPDATE_SEEKBAR, lambda value, pos: self.position_changed.emit(value)))
        return self.player

    def detach(self):
        self._timer.stop()
        self._subs.dispose()
        self.player = None

    def _guard(self, fn, *args):
        if self.player is None:
            return
        try:
            fn(*args)
        except sd.PortAudioError as e:
            dbg(f"playback error: {e}")
            self.error.emit(f"Audio output failed: {e}")

    def toggle(self):
        if self.player is not None:
            self._guard(self.player.toggle)

    def seek(self, percent: float):
        if self.player is not None:
            self._guard(self.player.on_seekbar_input, percent)

    def _on_is_playing(self, value: bool):
        if value:
            self._timer.start()
        else:
            self._timer.stop()
        self.playing_changed.emit(value)

    @Slot()
    def _on_timer(self):
        if self.player is not None:
            self.player.tick()


class PlayerBar(QWidget):
    """Play button, seek slider, position label and volume slider."""

    def __init__(self, controller: PlaybackController, parent=None):
        super().__init__(parent)
        self._controller = controller
        self._duration = 0.0
        self._seeking = False

        self._play_btn = QPushButton("Play")
        self._play_btn.setFixedWidth(70)
        self._play_btn.clicked.connect(controller.toggle)

        self._seek = QSlider(Qt.Horizontal)
        self._seek.setRange(0, _SEEK_STEPS)
        self._seek.sliderPressed.connect(self._on_seek_pressed)
        self._seek.sliderReleased.connect(self._on_seek_released)

        self._time = QLabel("0:00.000 / 0:00.000")
        self._volume = QSlider(Qt.Horizontal)
        self._volume.setRange(0, 100)
        self._volume.setFixedWidth(110)
        self._volume.valueChanged.connect(self._on_volume)
        self._volume_label = QLabel()
        self._volume_label.setFixedWidth(64)

        layout = QHBoxLayout(self)
        layout.setContentsMargins(4, 2, 4, 2)
        layout.addWidget(self._play_btn)
        layout.addWidget(self._seek, 1)
        layout.addWidget(self._time)
        layout.addWidget(QLabel("Vol"))
        layout.addWidget(self._volume)
        layout.addWidget(self._volume_label)

        controller.playing_changed.connect(self._on_playing_changed)
        controller.position_changed.connect(self._on_position)
        self.setEnabled(False)

    def bind(self, player: PlayerService):
        self._duration = player.sample_buffer.duration
        self._volume.blockSignals(True)
        self._volume.setValue(round(player.volume * 100))
        self._volume.blockSignals(False)
        self._show_volume(player.volume)
        self._on_position(0.0)
        self.setEnabled(True)

    def unbind(self):
        self._on_playing_changed(False)
        self.setEnabled(False)

    def _on_seek_pressed(self):
        self._seeking = True

    def _on_seek_released(self):
        self._seeking = False
        self._controller.seek(100.0 * self._seek.value() / _SEEK_STEPS)

    def _on_position(self, percent: float):
        if not self._seeking:
            self._seek.blockSignals(True)
            self._seek.setValue(round(percent * _SEEK_STEPS / 100.0))
            self._seek.blockSignals(False)
        pos = percent * self._duration / 100.0
        self._time.setText(f"{format_seconds(pos)} / {format_seconds(self._duration)}")

    def _on_playing_changed(self, playing: bool):
        self._play_btn.setText("Pause" if playing else "Play")

    def _on_volume(self, value: int):
        player = self._controller.player
        if player is None:
            return
        player.set_volume_percent(value)
        self._show_volume(player.volume)

    def _show_volume(self, gain: float):
        player = self._controller.player
        if player is not None and player.settings.volume_unit_db:
            db = linear_to_db(gain)
            self._volume_label.setText("-inf dB" if db == float("-inf") else f"{db:.1f} dB")
        else:
            self._volume_label.setText(f"{gain * 100:.0f} %")
