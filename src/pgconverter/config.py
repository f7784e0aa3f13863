"""
Configuration for pgconverter.

Defaults live in PgConverterConfig; a TOML file may override them, and CLI flags
override the file.
"""

import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

import toml


@dataclass
class PgConverterConfig:
    """Settings shared by the validation engine and the conversion pipeline."""

    # Validation
    delta_mass_threshold: float = 4.0
    delta_mass_checks: int = 100  # iterated as range(1, n)
    fragment_sample_size: int = 100
    strict_delta_mass_tolerance: bool = False

    # Reporting
    skip_serialization: bool = False
    serialization_suffix: str = ".ser"

    # Runtime
    max_workers: Optional[int] = None
    random_seed: Optional[int] = None
    verbose: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def updated(self, **overrides: Any) -> 'PgConverterConfig':
        """Copy of this config with the non-None overrides applied."""
        values = self.to_dict()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return PgConverterConfig(**values)


def load_toml_config(config_path: str) -> Dict[str, Any]:
    """
    Load a TOML configuration file and flatten sections.

    Args:
        config_path: Path to the TOML configuration file.

    Returns:
        Flattened dictionary of known configuration values.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        toml.TomlDecodeError: If the config file is invalid.
        KeyError: If the file sets an unknown key.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = toml.load(f)

    known = {f.name for f in fields(PgConverterConfig)}
    flat_config = {}
    for section_key, section_value in raw_config.items():
        items = section_value.items() if isinstance(section_value, dict) else [(section_key, section_value)]
        for key, value in items:
            if key not in known:
                raise KeyError(f"Unknown configuration key '{key}' in {config_path}")
            flat_config[key] = value

    return flat_config


def build_config(config_path: Optional[str] = None, **overrides: Any) -> PgConverterConfig:
    config = PgConverterConfig()
    if config_path:
        config = config.updated(**load_toml_config(config_path))
    return config.updated(**overrides)
