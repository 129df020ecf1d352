"""
Configuration loading for a conversion run.

The config file is optional. Anything missing or unusable falls back to
the SynthesisConfig defaults; problems are reported as warnings, never
raised to the caller.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ssmlcaster.models import AudioEncoding, ErrorKind, SynthesisConfig, VoiceGender

logger = logging.getLogger("ssmlcaster.config")

DEFAULT_CONFIG_FILENAME = "config.json"


class ConfigError(ValueError):
    """A config file or field could not be parsed."""


@dataclass
class LoadedConfig:
    """Config plus any problems found while loading it."""
    config: SynthesisConfig
    error_kind: Optional[ErrorKind] = None
    warnings: list[str] = field(default_factory=list)


def _parse_enum(enum_cls: type[Enum], raw: object) -> Enum:
    if not isinstance(raw, str):
        raise ConfigError(f"expected a string, got {type(raw).__name__}")
    try:
        return enum_cls(raw.strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"{raw!r} is not one of: {allowed}")


def _parse_str(raw: object) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError("expected a non-empty string")
    return raw.strip()


_FIELD_PARSERS = {
    "language_code": _parse_str,
    "voice_name": _parse_str,
    "ssml_gender": lambda raw: _parse_enum(VoiceGender, raw),
    "audio_encoding": lambda raw: _parse_enum(AudioEncoding, raw),
}


def config_from_dict(data: dict) -> LoadedConfig:
    """Build a config field by field, defaulting any field that fails to parse."""
    defaults = SynthesisConfig()
    values = {}
    warnings = []

    for key, parser in _FIELD_PARSERS.items():
        if key not in data:
            continue
        try:
            values[key] = parser(data[key])
        except ConfigError as e:
            default = getattr(defaults, key)
            shown = default.value if isinstance(default, Enum) else default
            msg = f"Config field {key!r} invalid ({e}); using default {shown!r}"
            logger.warning(f"CONFIG_FIELD_DEFAULT: {msg}")
            warnings.append(msg)

    unknown = sorted(set(data) - set(_FIELD_PARSERS))
    if unknown:
        logger.debug(f"CONFIG_UNKNOWN_KEYS: {unknown}")

    return LoadedConfig(
        config=SynthesisConfig(**values),
        error_kind=ErrorKind.CONFIG_PARSE_FAILURE if warnings else None,
        warnings=warnings,
    )


def load_config(path: Path) -> LoadedConfig:
    """
    Load the run configuration from a JSON file.

    Args:
        path: Config file location.

    Returns:
        LoadedConfig. A missing file yields defaults with no warning; an
        unreadable or unparsable file yields defaults with a
        CONFIG_PARSE_FAILURE warning.
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"CONFIG_DEFAULTS: no config at {path}")
        return LoadedConfig(config=SynthesisConfig())

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ConfigError(f"top-level JSON must be an object, got {type(data).__name__}")
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ConfigError) as e:
        msg = f"Could not parse config {path.name}: {e}; using defaults"
        logger.warning(f"CONFIG_PARSE_FAIL: {msg}")
        return LoadedConfig(
            config=SynthesisConfig(),
            error_kind=ErrorKind.CONFIG_PARSE_FAILURE,
            warnings=[msg],
        )

    return config_from_dict(data)
