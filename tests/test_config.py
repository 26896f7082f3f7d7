import json

import pytest

from wavpreviewlib.config import (
    ANALYZE_DEFAULT_PARAMS,
    ConfigError,
    build_structured_defaults,
    load_preset,
    merge_configs,
    save_preset,
    validate_config,
    validate_param_values,
    validate_structured_config,
)


def test_defaults_are_valid():
    defaults = build_structured_defaults()
    assert set(defaults) == {"general", "transfer", "analyze_default", "player_default"}
    assert defaults["transfer"]["first_chunk_bytes"] == 500_000
    assert defaults["transfer"]["chunk_bytes"] == 3_000_000
    assert validate_structured_config(defaults) == []


def test_bool_is_not_an_int():
    errors = validate_param_values(ANALYZE_DEFAULT_PARAMS, {"mel_filter_num": True})
    assert len(errors) == 1
    assert "boolean" in errors[0].message


def test_range_and_choice_errors():
    errors = validate_param_values(ANALYZE_DEFAULT_PARAMS, {
        "mel_filter_num": 500,
        "window_size_index": 9,
        "spectrogram_amplitude_range": 0,
        "min_frequency": None,
    })
    assert {e.key for e in errors} == {
        "mel_filter_num", "window_size_index", "spectrogram_amplitude_range",
    }


def test_structured_errors_are_prefixed():
    cfg = build_structured_defaults()
    cfg["player_default"]["initial_volume"] = 300
    errors = validate_structured_config(cfg)
    assert [e.key for e in errors] == ["player_default.initial_volume"]
    with pytest.raises(ConfigError):
        validate_config(cfg)


def test_merge_is_section_wise():
    merged = merge_configs(build_structured_defaults(),
                           {"analyze_default": {"mel_filter_num": 64}})
    assert merged["analyze_default"]["mel_filter_num"] == 64
    assert merged["analyze_default"]["window_size_index"] == 2


def test_preset_round_trip(tmp_path):
    cfg = build_structured_defaults()
    cfg["general"]["auto_analyze"] = True
    cfg["player_default"]["enable_hpf"] = True
    path = str(tmp_path / "preset.json")
    save_preset(cfg, path, description="loud room")

    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    assert raw["_description"] == "loud room"
    assert raw["general"] == {"auto_analyze": True}
    assert "transfer" not in raw

    preset = load_preset(path)
    assert preset == {"general": {"auto_analyze": True},
                      "player_default": {"enable_hpf": True}}


def test_load_preset_errors(tmp_path):
    with pytest.raises(ConfigError):
        load_preset(str(tmp_path / "missing.json"))

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_preset(str(bad))

    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps({"analyze_default": {"mel_filter_num": 1}}), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_preset(str(invalid))
