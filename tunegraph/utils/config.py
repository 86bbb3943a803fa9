"""
Configuration management for the TuneGraph engine.

Loads and validates configuration from YAML files with environment
variable interpolation support.
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from tunegraph.utils.errors import ConfigurationError


class ConfigManager:
    """
    Manages engine configuration loaded from YAML files.

    Features:
    - YAML configuration loading
    - Environment variable interpolation (${VAR_NAME})
    - Nested key access with dot notation
    - Default value support
    - Configuration validation
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = config_dict or {}
        self._env_pattern = re.compile(r'\$\{([^}]+)\}')

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create ConfigManager from YAML file.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            )

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Top-level configuration must be a mapping",
                config_key=str(file_path)
            )

        manager = cls(config_dict)
        manager._interpolate_env_vars()
        return manager

    def _interpolate_env_vars(self) -> None:
        """Replace ${ENV_VAR} patterns with environment variable values."""
        self._config = self._interpolate_value(self._config)

    def _interpolate_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: self._interpolate_value(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._interpolate_value(item) for item in value]
        if isinstance(value, str):
            return self._interpolate_string(value)
        return value

    def _interpolate_string(self, s: str) -> str:
        def replace(match: re.Match) -> str:
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)  # Keep original if not found
            return value

        return self._env_pattern.sub(replace, s)

    def get(
        self,
        key: str,
        default: Any = None,
        required: bool = False
    ) -> Any:
        """
        Get configuration value using dot notation.

        Example:
            config.get("tempo.min_bpm", default=60)
            config.get("loudness.target_peak_db", required=True)
        """
        value: Any = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default

        return value

    def get_section(self, key: str) -> Dict[str, Any]:
        """Get an entire configuration section (empty dict if not found)."""
        value = self.get(key, default={})
        if not isinstance(value, dict):
            return {}
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation."""
        keys = key.split('.')
        current = self._config

        for k in keys[:-1]:
            if k not in current:
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self._config)

    def validate(self, schema: Dict[str, Any]) -> None:
        """
        Validate configuration against a schema.

        Schema format:
            {
                "tempo.min_bpm": {"type": (int, float), "required": True},
                "stretch.quality": {"type": str, "choices": ["fast", "standard", "high"]}
            }
        """
        for key, rules in schema.items():
            value = self.get(key)
            expected_type = rules.get("type")

            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}",
                        config_key=key
                    )
                continue

            if expected_type and not isinstance(value, expected_type):
                type_name = getattr(expected_type, "__name__", str(expected_type))
                raise ConfigurationError(
                    f"Invalid type for {key}: expected {type_name}, "
                    f"got {type(value).__name__}",
                    config_key=key
                )

            choices = rules.get("choices")
            if choices is not None and value not in choices:
                raise ConfigurationError(
                    f"Invalid value for {key}: {value!r} (choose from {choices})",
                    config_key=key
                )


CONFIG_SCHEMA: Dict[str, Dict[str, Any]] = {
    "pitch.min_hz": {"type": (int, float), "required": True},
    "pitch.max_hz": {"type": (int, float), "required": True},
    "pitch.threshold": {"type": (int, float)},
    "pitch.confidence_threshold": {"type": (int, float)},
    "tempo.min_bpm": {"type": (int, float), "required": True},
    "tempo.max_bpm": {"type": (int, float), "required": True},
    "tempo.min_duration": {"type": (int, float)},
    "stretch.quality": {"type": str, "choices": ["fast", "standard", "high"]},
    "pitch_shift.max_semitones": {"type": int},
    "spectral.n_fft": {"type": int},
    "performance.max_workers": {"type": int},
    "loudness.limiter_threshold": {"type": (int, float)},
    "loudness.target_peak_db": {"type": (int, float)},
    "logging.level": {"type": str},
    "logging.format": {"type": str, "choices": ["json", "text"]},
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file or return defaults.

    Values from the file are merged over the defaults, so a file only
    needs to carry the keys it changes.

    Args:
        config_path: Optional path to config file.
                    If None, tries "config/config.yaml"

    Returns:
        Dict[str, Any]: Configuration dictionary
    """
    if config_path is None:
        default_paths = [
            Path("config/config.yaml"),
            Path("config.yaml"),
            Path(__file__).parent.parent.parent / "config" / "config.yaml",
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path:
        manager = ConfigManager.from_file(Path(config_path))
        merged = ConfigManager(_merge(get_default_config(), manager.to_dict()))
        merged.validate(CONFIG_SCHEMA)
        return merged.to_dict()

    return get_default_config()


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "pitch": {
            "min_hz": 50.0,
            "max_hz": 2000.0,
            "threshold": 0.15,
            "window_ms": 100.0,
            "overlap": 0.0,
            "confidence_threshold": 0.5,
            "min_midi": 21,
            "max_midi": 127,
        },
        "tempo": {
            "min_bpm": 60.0,
            "max_bpm": 200.0,
            "min_duration": 2.0,
            "frame_ms": 10.0,
            "octave_high": 180.0,
            "octave_low": 70.0,
            "checkpoint_interval": 100,
        },
        "stretch": {
            "quality": "standard",
            "normalization": 0.7,
        },
        "pitch_shift": {
            "max_semitones": 12,
        },
        "spectral": {
            "n_fft": 2048,
        },
        "loudness": {
            "block_ms": 400.0,
            "limiter_threshold": 0.95,
            "target_peak_db": -1.0,
            "presets": {
                "game": -1.0,
                "video": -2.0,
                "broadcast": -1.0,
            },
        },
        "batch": {
            "manual_bpm_range": [40.0, 240.0],
            "extreme_ratio": 2.0,
        },
        "loader": {
            "target_sample_rate": None,
            "max_file_size": 524288000,
            "output_subtype": "PCM_16",
        },
        "performance": {
            "max_workers": 4,
        },
        "logging": {
            "level": "INFO",
            "format": "json",
        },
    }
