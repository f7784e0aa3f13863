"""
Tests for configuration defaults, TOML loading and overrides.
"""

import pytest
import toml

from pgconverter.config import PgConverterConfig, build_config, load_toml_config


class TestPgConverterConfig:

    def test_defaults(self):
        config = PgConverterConfig()
        assert config.delta_mass_threshold == 4.0
        assert config.delta_mass_checks == 100
        assert config.fragment_sample_size == 100
        assert not config.strict_delta_mass_tolerance
        assert not config.skip_serialization
        assert config.serialization_suffix == ".ser"
        assert config.random_seed is None

    def test_updated_ignores_none(self):
        config = PgConverterConfig().updated(delta_mass_threshold=None, random_seed=5)
        assert config.delta_mass_threshold == 4.0
        assert config.random_seed == 5


class TestLoadTomlConfig:
    """Tests for load_toml_config and build_config."""

    def test_sections_are_flattened(self, tmp_path):
        path = tmp_path / "pgconverter.toml"
        path.write_text(
            "verbose = true\n"
            "\n"
            "[validation]\n"
            "delta_mass_threshold = 2.5\n"
            "strict_delta_mass_tolerance = true\n"
            "\n"
            "[report]\n"
            "skip_serialization = true\n"
        )
        assert load_toml_config(str(path)) == {
            "verbose": True,
            "delta_mass_threshold": 2.5,
            "strict_delta_mass_tolerance": True,
            "skip_serialization": True,
        }

    def test_overrides_beat_file(self, tmp_path):
        path = tmp_path / "pgconverter.toml"
        path.write_text("[validation]\ndelta_mass_threshold = 2.5\nfragment_sample_size = 10\n")

        config = build_config(str(path), delta_mass_threshold=1.0, random_seed=None)

        assert config.delta_mass_threshold == 1.0
        assert config.fragment_sample_size == 10
        assert config.random_seed is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_toml_config(str(tmp_path / "absent.toml"))

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "pgconverter.toml"
        path.write_text("[validation]\nthreshold = 2.5\n")
        with pytest.raises(KeyError, match="threshold"):
            load_toml_config(str(path))

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "pgconverter.toml"
        path.write_text("[validation\n")
        with pytest.raises(toml.TomlDecodeError):
            load_toml_config(str(path))
