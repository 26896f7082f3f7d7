import numpy as np
import pytest

from wavpreviewlib.events import EventType
from wavpreviewlib.models import SampleBuffer
from wavpreviewlib.player import PlayerService, design_filters
from wavpreviewlib.settings import PlayerSettingsService


@pytest.fixture
def ramp_buffer():
    return SampleBuffer((np.linspace(-1, 1, 1000, dtype=np.float32),), 1000)


def make_player(buffer, factory, **settings):
    ps = PlayerSettingsService(buffer.sample_rate)
    for key, value in settings.items():
        setattr(ps, key, value)
    return PlayerService(buffer, ps, factory), ps


def test_play_opens_stream_with_buffer_format(ramp_buffer, stream_factory):
    player, _ = make_player(ramp_buffer, stream_factory)
    states = []
    player.subscribe(EventType.UPDATE_IS_PLAYING, lambda value: states.append(value))
    player.play()
    stream = stream_factory.streams[-1]
    assert stream.started
    assert stream.kwargs["samplerate"] == 1000
    assert stream.kwargs["channels"] == 1
    assert stream.kwargs["dtype"] == "float32"
    player.pause()
    assert stream.closed
    assert states == [True, False]


def test_render_advances_and_pads(ramp_buffer, stream_factory):
    player, _ = make_player(ramp_buffer, stream_factory)
    block = player.render(600)
    assert block.shape == (600, 1)
    assert block[0, 0] == pytest.approx(-1.0)
    tail = player.render(600)
    assert np.all(tail[400:] == 0.0)
    assert player.current_sec == pytest.approx(1.0)


def test_volume_scales_output(ramp_buffer, stream_factory):
    player, _ = make_player(ramp_buffer, stream_factory)
    player.set_volume_percent(50)
    assert player.volume == 0.5
    assert player.render(1)[0, 0] == pytest.approx(-0.5)
    player.set_volume_db(-6.0206)
    assert player.volume == pytest.approx(0.5, abs=1e-4)
    player.set_volume_db(-100)
    assert player.volume == 0.0


def test_tick_stops_and_rewinds_at_end(ramp_buffer, stream_factory):
    player, _ = make_player(ramp_buffer, stream_factory)
    seek = []
    player.subscribe(EventType.UPDATE_SEEKBAR, lambda value, pos: seek.append((value, pos)))
    player.play()
    player.render(1000)
    player.tick()
    assert seek[-1] == (pytest.approx(100.0), pytest.approx(1.0))
    assert not player.is_playing
    assert player.current_sec == 0.0
    assert player.seekbar_value == 0.0


def test_seek_without_seek_to_play(ramp_buffer, stream_factory):
    player, _ = make_player(ramp_buffer, stream_factory, enable_seek_to_play=False)
    player.on_seekbar_input(25)
    assert player.current_sec == pytest.approx(0.25)
    assert not player.is_playing
    assert stream_factory.streams == []


def test_seek_to_play_starts_playback(ramp_buffer, stream_factory):
    player, _ = make_player(ramp_buffer, stream_factory)
    player.on_seekbar_input(150)
    assert player.seekbar_value == 100.0
    assert player.is_playing


def test_seek_while_playing_resumes(ramp_buffer, stream_factory):
    player, _ = make_player(ramp_buffer, stream_factory, enable_seek_to_play=False)
    player.play()
    player.on_seekbar_input(50)
    assert player.is_playing
    assert len(stream_factory.streams) == 2


def test_filter_change_restarts_playback(ramp_buffer, stream_factory):
    player, ps = make_player(ramp_buffer, stream_factory)
    player.play()
    ps.enable_hpf = True
    assert player.is_playing
    assert len(stream_factory.streams) == 2
    assert stream_factory.streams[0].closed


def test_filter_change_while_paused_does_nothing(ramp_buffer, stream_factory):
    player, ps = make_player(ramp_buffer, stream_factory)
    ps.enable_lpf = True
    assert stream_factory.streams == []


def test_design_filters():
    ps = PlayerSettingsService(44100)
    assert design_filters(ps, 44100) == []
    ps.enable_hpf = True
    ps.enable_lpf = True
    sections = design_filters(ps, 44100)
    assert len(sections) == 2
    assert all(s.shape == (1, 6) for s in sections)


def test_highpass_removes_dc(stream_factory):
    buf = SampleBuffer((np.full(4000, 0.5, dtype=np.float32),), 4000)
    player, _ = make_player(buf, stream_factory, enable_hpf=True, hpf_frequency=100)
    player.play()
    out = player.render(4000)
    assert abs(out[-100:, 0]).max() < 1e-3
    player.dispose()
    assert not player.is_playing
