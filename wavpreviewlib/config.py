from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any

PRESET_SCHEMA_VERSION = "1.0"


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass
class ConfigFieldError:
    """A single validation error for one configuration field.

    Attributes:
        key:     The config key that failed validation.
        value:   The offending value.
        message: Human-readable explanation of what is wrong.
    """
    key: str
    value: Any
    message: str


@dataclass(frozen=True)
class ParamSpec:
    """Declarative specification for a single configuration parameter.

    Describes type, default, valid range, allowed values and labels.  The
    settings services still correct out-of-range values at runtime; these
    specs drive preset validation and the settings forms.
    """
    key: str
    type: type | tuple              # expected Python type(s)
    default: Any
    label: str                       # short UI label
    description: str = ""            # longer tooltip / help text
    min: float | int | None = None   # inclusive lower bound (unless min_exclusive)
    max: float | int | None = None   # inclusive upper bound (unless max_exclusive)
    min_exclusive: bool = False
    max_exclusive: bool = False
    choices: list | None = None      # allowed values
    nullable: bool = False           # True if None is valid


# ---------------------------------------------------------------------------
# Parameter sections
# ---------------------------------------------------------------------------

# Range fields default to None, meaning "derive from the loaded audio"
# (0..sample_rate/2, 0..duration, buffer extremes).
ANALYZE_DEFAULT_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="waveform_visible", type=bool, default=True,
        label="Waveform visible",
    ),
    ParamSpec(
        key="waveform_vertical_scale", type=(int, float), default=1.0,
        min=0.2, max=2.0,
        label="Waveform vertical scale",
    ),
    ParamSpec(
        key="waveform_show_channel_label", type=bool, default=False,
        label="Waveform channel label",
    ),
    ParamSpec(
        key="spectrogram_visible", type=bool, default=True,
        label="Spectrogram visible",
    ),
    ParamSpec(
        key="spectrogram_vertical_scale", type=(int, float), default=1.0,
        min=0.2, max=2.0,
        label="Spectrogram vertical scale",
    ),
    ParamSpec(
        key="spectrogram_show_channel_label", type=bool, default=False,
        label="Spectrogram channel label",
    ),
    ParamSpec(
        key="round_waveform_axis", type=bool, default=True,
        label="Round waveform axis",
        description="Place amplitude axis ticks on nice numbers.",
    ),
    ParamSpec(
        key="round_time_axis", type=bool, default=True,
        label="Round time axis",
        description="Place time axis ticks on nice numbers.",
    ),
    ParamSpec(
        key="window_size_index", type=int, default=2, choices=list(range(8)),
        label="Window size",
        description="FFT window size is 2 ** (index + 8): 0 = 256 ... 7 = 32768.",
    ),
    ParamSpec(
        key="frequency_scale", type=int, default=0, choices=[0, 1, 2],
        label="Frequency scale",
        description="0 = linear, 1 = log, 2 = mel.",
    ),
    ParamSpec(
        key="mel_filter_num", type=int, default=40, min=20, max=200,
        label="Mel filter count",
    ),
    ParamSpec(
        key="min_frequency", type=(int, float), default=None, min=0,
        nullable=True, label="Min frequency (Hz)",
    ),
    ParamSpec(
        key="max_frequency", type=(int, float), default=None, min=0,
        nullable=True, label="Max frequency (Hz)",
    ),
    ParamSpec(
        key="min_time", type=(int, float), default=None, min=0,
        nullable=True, label="Min time (s)",
    ),
    ParamSpec(
        key="max_time", type=(int, float), default=None, min=0,
        nullable=True, label="Max time (s)",
    ),
    ParamSpec(
        key="min_amplitude", type=(int, float), default=None, min=-100, max=100,
        nullable=True, label="Min amplitude",
    ),
    ParamSpec(
        key="max_amplitude", type=(int, float), default=None, min=-100, max=100,
        nullable=True, label="Max amplitude",
    ),
    ParamSpec(
        key="spectrogram_amplitude_range", type=(int, float), default=-90,
        min=-1000, max=0, max_exclusive=True,
        label="Spectrogram dB range",
        description="Lower end of the colour ramp in dB relative to the peak.",
    ),
]

PLAYER_DEFAULT_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="volume_unit_db", type=bool, default=False,
        label="Volume in dB",
    ),
    ParamSpec(
        key="initial_volume_db", type=(int, float), default=0.0,
        min=-80.0, max=0.0,
        label="Initial volume (dB)",
    ),
    ParamSpec(
        key="initial_volume", type=(int, float), default=100,
        min=0, max=100,
        label="Initial volume (%)",
    ),
    ParamSpec(
        key="enable_spacekey_play", type=bool, default=True,
        label="Space key toggles playback",
    ),
    ParamSpec(
        key="enable_seek_to_play", type=bool, default=True,
        label="Seeking starts playback",
    ),
    ParamSpec(
        key="enable_hpf", type=bool, default=False,
        label="High-pass filter",
    ),
    ParamSpec(
        key="hpf_frequency", type=(int, float), default=100, min=10,
        label="High-pass frequency (Hz)",
    ),
    ParamSpec(
        key="enable_lpf", type=bool, default=False,
        label="Low-pass filter",
    ),
    ParamSpec(
        key="lpf_frequency", type=(int, float), default=10000, min=10,
        label="Low-pass frequency (Hz)",
    ),
    ParamSpec(
        key="match_filter_frequency_to_spectrogram", type=bool, default=False,
        label="Match filters to spectrogram",
        description="Follow the analysed frequency range with HPF / LPF.",
    ),
]

TRANSFER_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="first_chunk_bytes", type=int, default=500_000, min=1,
        label="First chunk size (bytes)",
        description="Small enough for the header to arrive quickly.",
    ),
    ParamSpec(
        key="chunk_bytes", type=int, default=3_000_000, min=1,
        label="Chunk size (bytes)",
    ),
    ParamSpec(
        key="request_timeout", type=(int, float), default=30.0,
        min=0.0, min_exclusive=True,
        label="Request timeout (s)",
    ),
]

GENERAL_PARAMS: list[ParamSpec] = [
    ParamSpec(
        key="auto_analyze", type=bool, default=False,
        label="Analyze on load",
    ),
    ParamSpec(
        key="auto_play", type=bool, default=False,
        label="Play on load",
    ),
]

CONFIG_SECTIONS: dict[str, list[ParamSpec]] = {
    "general": GENERAL_PARAMS,
    "transfer": TRANSFER_PARAMS,
    "analyze_default": ANALYZE_DEFAULT_PARAMS,
    "player_default": PLAYER_DEFAULT_PARAMS,
}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_param_values(
    params: list[ParamSpec],
    values: dict[str, Any],
) -> list[ConfigFieldError]:
    """Check the keys of *values* that *params* describes.

    Keys absent from *values* are fine; they take their default.
    """
    errors: list[ConfigFieldError] = []
    for spec in params:
        if spec.key in values:
            problem = _problem(spec, values[spec.key])
            if problem:
                errors.append(ConfigFieldError(spec.key, values[spec.key],
                                               f"{spec.label} {problem}."))
    return errors


def _problem(spec: ParamSpec, value: Any) -> str | None:
    """Why *value* is unacceptable for *spec*, or ``None``."""
    if value is None:
        return None if spec.nullable else "must not be empty"

    wanted = _type_label(spec.type)
    # bool is an int subclass; only accept it where bool is asked for
    if isinstance(value, bool) and spec.type is not bool:
        return f"must be {wanted}, got boolean"
    if not isinstance(value, spec.type):
        return f"must be {wanted}, got {type(value).__name__}"

    if spec.choices is not None:
        if value not in spec.choices:
            return "must be one of " + ", ".join(repr(c) for c in spec.choices)
        return None

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if spec.min is not None:
        if value < spec.min or (spec.min_exclusive and value == spec.min):
            return ("must be greater than" if spec.min_exclusive
                    else "must be at least") + f" {spec.min}"
    if spec.max is not None:
        if value > spec.max or (spec.max_exclusive and value == spec.max):
            return ("must be less than" if spec.max_exclusive
                    else "must be at most") + f" {spec.max}"
    return None


def _type_label(t) -> str:
    names = [x.__name__ for x in (t if isinstance(t, tuple) else (t,))]
    return " or ".join(names)


# ---------------------------------------------------------------------------
# Structured config
# ---------------------------------------------------------------------------

def build_structured_defaults() -> dict[str, Any]:
    """Build a structured config dict with all defaults, organized by section.

    Returns::

        {
            "general": { ... },
            "transfer": { ... },
            "analyze_default": { ... },
            "player_default": { ... },
        }
    """
    return {
        section: {p.key: p.default for p in params}
        for section, params in CONFIG_SECTIONS.items()
    }


def validate_structured_config(
    structured: dict[str, Any],
) -> list[ConfigFieldError]:
    """Validate a structured config dict section by section.

    Returns a flat list of :class:`ConfigFieldError` with the ``key``
    prefixed by the section, e.g. ``"analyze_default.mel_filter_num"``.
    Unknown sections are ignored.
    """
    errors: list[ConfigFieldError] = []
    for section, params in CONFIG_SECTIONS.items():
        values = structured.get(section, {})
        if not isinstance(values, dict):
            errors.append(ConfigFieldError(
                section, values, f"Section '{section}' must be an object.",
            ))
            continue
        for err in validate_param_values(params, values):
            errors.append(ConfigFieldError(
                f"{section}.{err.key}", err.value, err.message,
            ))
    return errors


def validate_config(structured: dict[str, Any]) -> None:
    """Raise :class:`ConfigError` listing every invalid field."""
    errors = validate_structured_config(structured)
    if errors:
        lines = [f"{e.key}: {e.message}" for e in errors]
        raise ConfigError(
            "Configuration has invalid values:\n  • " + "\n  • ".join(lines)
        )


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """
    Merge structured config dicts left-to-right.
    Later values override earlier ones; sections are merged key by key.
    """
    result: dict[str, Any] = {}
    for cfg in configs:
        for k, v in cfg.items():
            if isinstance(v, dict) and isinstance(result.get(k), dict):
                result[k] = {**result[k], **v}
            else:
                result[k] = v
    return result


def load_preset(path: str) -> dict[str, Any]:
    """
    Load a JSON preset file. Returns a partial structured config dict.
    Raises ConfigError if the file cannot be read, parsed or validated.
    """
    if not os.path.isfile(path):
        raise ConfigError(f"Preset file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in preset file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read preset file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Preset file must contain a JSON object, got {type(data).__name__}")

    # Metadata keys are informational only
    preset = {k: v for k, v in data.items() if k not in ("schema_version", "_description")}
    validate_config(preset)
    return preset


def save_preset(config: dict[str, Any], path: str, *, description: str | None = None) -> None:
    """
    Save a structured config dict as a JSON preset file.
    Only values that differ from the defaults are written.
    """
    preset: dict[str, Any] = {"schema_version": PRESET_SCHEMA_VERSION}
    if description:
        preset["_description"] = description

    defaults = build_structured_defaults()
    for section, values in config.items():
        if section not in defaults or not isinstance(values, dict):
            continue
        changed = {
            k: v for k, v in values.items()
            if k in defaults[section] and defaults[section][k] != v
        }
        if changed:
            preset[section] = changed

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(preset, f, indent=4, ensure_ascii=False)
