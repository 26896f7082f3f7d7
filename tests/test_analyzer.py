import math

import pytest

from wavpreviewlib.analysis import AnalyzeService
from wavpreviewlib.analyzer import SPECTROGRAM_FRAMES_PER_TICK, Analyzer, compute_job
from wavpreviewlib.settings import AnalyzeSettingsService


@pytest.fixture
def parts(stereo_buffer, renderer):
    service = AnalyzeService(stereo_buffer)
    settings = AnalyzeSettingsService.from_default_setting(None, stereo_buffer)
    return service, settings, renderer


def test_inline_analysis_draws_in_order(parts):
    service, settings, renderer = parts
    analyzer = Analyzer(service, settings, renderer)
    service.analyze()
    analyzer.queue.run_pending()

    kinds = [c[0] for c in renderer.calls]
    assert kinds[0] == "begin"
    assert kinds[-1] == "finish"
    assert renderer.calls[0] == ("begin", 1, 2)

    drawn = [c for c in renderer.calls if c[0] == "spectrogram"]
    n_frames = drawn[0][3]
    assert len(drawn) == 2 * math.ceil(n_frames / SPECTROGRAM_FRAMES_PER_TICK)
    assert sum(c[4] for c in drawn if c[1] == 0) == n_frames
    assert {c[1] for c in renderer.calls if c[0] == "waveform"} == {0, 1}


def test_hidden_figures_are_skipped(parts):
    service, settings, renderer = parts
    settings.spectrogram_visible = False
    analyzer = Analyzer(service, settings, renderer)
    service.analyze()
    analyzer.queue.run_pending()
    assert not any(c[0] == "spectrogram" for c in renderer.calls)


def test_newer_generation_drops_queued_work(parts):
    service, settings, renderer = parts
    analyzer = Analyzer(service, settings, renderer)
    service.analyze()
    service.analyze()
    analyzer.queue.run_pending()
    begins = [c for c in renderer.calls if c[0] == "begin"]
    assert begins == [("begin", 2, 2)]


def test_submit_path_and_stale_result(parts):
    service, settings, renderer = parts
    jobs = []
    analyzer = Analyzer(service, settings, renderer, submit=jobs.append)
    service.analyze()
    service.analyze()
    assert [j.analyze_id for j in jobs] == [1, 2]
    assert analyzer.queue.run_pending() == 0

    assert not analyzer.commit(compute_job(service, jobs[0]))
    assert analyzer.commit(compute_job(service, jobs[1]))
    analyzer.queue.run_pending()
    assert renderer.calls[0] == ("begin", 2, 2)
    assert renderer.calls[-1] == ("finish", 2)


def test_job_snapshot_is_frozen(parts):
    service, settings, renderer = parts
    jobs = []
    Analyzer(service, settings, renderer, submit=jobs.append)
    service.analyze()
    settings.mel_filter_num = 80
    assert jobs[0].settings.mel_filter_num == 40


def test_dispose_stops_listening(parts):
    service, settings, renderer = parts
    analyzer = Analyzer(service, settings, renderer)
    analyzer.dispose()
    service.analyze()
    assert len(analyzer.queue) == 0
    assert settings.analyze_id == 0
