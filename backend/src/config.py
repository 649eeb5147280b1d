"""Scope settings — schema, defaults, validation and overrides.

Values come from (lowest to highest precedence): schema defaults, a JSON
settings file, ANYSCOPE_<KEY> environment variables, explicit overrides.
"""

import dataclasses
import json
import logging
import math
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_PREFIX = "ANYSCOPE_"

SETTINGS: dict = {
    "analysis_max_width": {
        "type": "int",
        "min": 16,
        "max": 4096,
        "default": 320,
        "label": "Analysis Width",
        "unit": "px",
        "description": "Frames wider than this are downscaled before analysis",
    },
    "interval_ms": {
        "type": "int",
        "min": 1,
        "max": 1000,
        "default": 66,
        "label": "Cycle Interval",
        "unit": "ms",
        "description": "Time between analysis cycles (~15 fps)",
    },
    "vector_sample_budget": {
        "type": "int",
        "min": 1,
        "max": 10_000_000,
        "default": 50_000,
        "label": "Vectorscope Samples",
        "unit": "",
        "description": "Approximate number of pixels sampled for the vectorscope",
    },
    "waveform_gain": {
        "type": "float",
        "min": 3.0,
        "max": 8.0,
        "default": 3.0,
        "label": "Waveform Gain",
        "unit": "x",
        "description": "Intensity boost applied to waveform traces",
    },
    "parade_gain": {
        "type": "float",
        "min": 3.0,
        "max": 8.0,
        "default": 3.0,
        "label": "Parade Gain",
        "unit": "x",
        "description": "Intensity boost applied to parade traces",
    },
    "vectorscope_gain": {
        "type": "float",
        "min": 5.0,
        "max": 10.0,
        "default": 5.0,
        "label": "Vectorscope Gain",
        "unit": "x",
        "description": "Intensity boost applied to vectorscope points",
    },
    "vectorscope_stamp_radius": {
        "type": "int",
        "min": 0,
        "max": 4,
        "default": 1,
        "label": "Vectorscope Stamp",
        "unit": "px",
        "description": "Points are stamped as (2r+1) squares; 0 plots single pixels",
    },
    "histogram_alpha": {
        "type": "float",
        "min": 0.6,
        "max": 0.7,
        "default": 0.6,
        "label": "Histogram Opacity",
        "unit": "",
        "description": "Opacity of each histogram bar series",
    },
    "waveform_size": {
        "type": "size",
        "min": 16,
        "max": 4096,
        "default": (512, 256),
        "label": "Waveform Size",
        "unit": "px",
        "description": "Waveform canvas (width, height)",
    },
    "parade_size": {
        "type": "size",
        "min": 16,
        "max": 4096,
        "default": (512, 256),
        "label": "Parade Size",
        "unit": "px",
        "description": "Parade canvas (width, height)",
    },
    "vectorscope_size": {
        "type": "int",
        "min": 64,
        "max": 4096,
        "default": 300,
        "label": "Vectorscope Size",
        "unit": "px",
        "description": "Vectorscope canvas diameter",
    },
    "histogram_size": {
        "type": "size",
        "min": 16,
        "max": 4096,
        "default": (512, 200),
        "label": "Histogram Size",
        "unit": "px",
        "description": "Histogram canvas (width, height)",
    },
    "show_waveform": {
        "type": "bool",
        "default": True,
        "label": "Waveform",
        "description": "Render the waveform scope",
    },
    "show_parade": {
        "type": "bool",
        "default": True,
        "label": "Parade",
        "description": "Render the RGB parade scope",
    },
    "show_vectorscope": {
        "type": "bool",
        "default": True,
        "label": "Vectorscope",
        "description": "Render the vectorscope",
    },
    "show_histogram": {
        "type": "bool",
        "default": True,
        "label": "Histogram",
        "description": "Render the histogram",
    },
}


@dataclass(frozen=True)
class ScopeSettings:
    analysis_max_width: int = 320
    interval_ms: int = 66
    vector_sample_budget: int = 50_000
    waveform_gain: float = 3.0
    parade_gain: float = 3.0
    vectorscope_gain: float = 5.0
    vectorscope_stamp_radius: int = 1
    histogram_alpha: float = 0.6
    waveform_size: tuple[int, int] = (512, 256)
    parade_size: tuple[int, int] = (512, 256)
    vectorscope_size: int = 300
    histogram_size: tuple[int, int] = (512, 200)
    show_waveform: bool = True
    show_parade: bool = True
    show_vectorscope: bool = True
    show_histogram: bool = True

    def visibility(self) -> dict[str, bool]:
        """Per-scope visibility flags keyed by scope id."""
        return {
            "waveform": self.show_waveform,
            "parade": self.show_parade,
            "vectorscope": self.show_vectorscope,
            "histogram": self.show_histogram,
        }

    def replace(self, **changes) -> "ScopeSettings":
        return load_settings({**dataclasses.asdict(self), **changes})


def _is_bad_number(value) -> bool:
    return isinstance(value, float) and (math.isnan(value) or math.isinf(value))


def _coerce(key: str, value):
    """Coerce one value to its schema type. Raises (TypeError, ValueError) when impossible."""
    spec = SETTINGS[key]
    kind = spec["type"]

    if kind == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes", "on"):
            return True
        if isinstance(value, str) and value.strip().lower() in ("0", "false", "no", "off"):
            return False
        raise TypeError(f"{key} must be a bool")

    if kind == "size":
        if isinstance(value, str):
            value = value.lower().replace("x", ",").split(",")
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise TypeError(f"{key} must be a (width, height) pair")
        w, h = (float(v) for v in value)
        if _is_bad_number(w) or _is_bad_number(h):
            raise ValueError(f"{key} must be finite")
        lo, hi = spec["min"], spec["max"]
        return (int(min(hi, max(lo, w))), int(min(hi, max(lo, h))))

    if isinstance(value, bool):
        raise TypeError(f"{key} must be a number")
    number = float(value)
    if _is_bad_number(number):
        raise ValueError(f"{key} must be finite")
    number = min(spec["max"], max(spec["min"], number))
    return int(number) if kind == "int" else number


def validate(overrides: dict) -> list[str]:
    """Validate a settings dict. Returns list of error strings (empty = valid)."""
    errors = []
    if not isinstance(overrides, dict):
        return [f"settings must be an object, got {type(overrides).__name__}"]

    for key, value in overrides.items():
        if key not in SETTINGS:
            errors.append(f"Unknown setting '{key}'")
            continue
        try:
            _coerce(key, value)
        except (TypeError, ValueError) as e:
            errors.append(str(e))
    return errors


def load_settings(overrides: dict | None = None) -> ScopeSettings:
    """Resolve overrides against the schema.

    Unknown keys are ignored, invalid values fall back to their default and
    numbers are clamped to the schema range.
    """
    values = {key: spec["default"] for key, spec in SETTINGS.items()}
    for key, value in (overrides or {}).items():
        if key not in SETTINGS:
            logger.warning("Ignoring unknown setting %s", key)
            continue
        try:
            values[key] = _coerce(key, value)
        except (TypeError, ValueError) as e:
            logger.warning("Invalid value for %s, using default: %s", key, e)
    return ScopeSettings(**values)


def read_settings_file(path: str | Path) -> dict:
    """Read a JSON settings file. Raises ValueError on invalid JSON or a non-object root."""
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Invalid settings: root must be an object")
    return data


def load_settings_file(path: str | Path) -> ScopeSettings:
    return load_settings(read_settings_file(path))


def env_overrides(environ: dict | None = None) -> dict:
    """Collect ANYSCOPE_<KEY> variables for known settings."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for key in SETTINGS:
        raw = environ.get(ENV_PREFIX + key.upper())
        if raw is not None:
            overrides[key] = raw
    return overrides


def settings_from_env(
    base: dict | None = None, environ: dict | None = None
) -> ScopeSettings:
    """Settings from `base` with environment overrides applied on top."""
    return load_settings({**(base or {}), **env_overrides(environ)})
