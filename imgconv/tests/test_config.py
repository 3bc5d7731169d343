"""Tests for ConverterConfig."""

import json

import pytest

from imgconv.config import ConverterConfig
from imgconv.errors import ConfigError
from imgconv.formats import Format


class TestDefaults:
    """Tests for default configuration."""

    def test_defaults(self):
        """Test default values."""
        config = ConverterConfig()

        assert config.engine == 'auto'
        assert config.target_format == Format.WEBP
        assert config.quality == 85
        assert config.max_filesize_bytes == 10 * 1024 * 1024
        assert config.max_pixels == 25_000_000
        assert config.batch_size == 15
        assert config.keep_originals is True
        assert config.advanced_previews is True
        assert config.validate() == []

    def test_quality_clamped(self):
        """Test quality is clamped into range."""
        assert ConverterConfig(quality=0).quality == 1
        assert ConverterConfig(quality=250).quality == 100
        assert ConverterConfig(thumbnail_quality=-5).thumbnail_quality == 1


class TestFromEnv:
    """Tests for environment loading."""

    def test_reads_prefixed_variables(self, monkeypatch):
        """Test IMGCONV_* variables override defaults."""
        monkeypatch.setenv('IMGCONV_ENGINE', 'ImageMagick')
        monkeypatch.setenv('IMGCONV_FORMAT', 'AVIF')
        monkeypatch.setenv('IMGCONV_QUALITY', '140')
        monkeypatch.setenv('IMGCONV_BATCH_SIZE', '5')
        monkeypatch.setenv('IMGCONV_SIZE_PROFILES', json.dumps([{'name': 'card', 'width': 320}]))

        config = ConverterConfig.from_env()

        assert config.engine == 'imagemagick'
        assert config.target_format == Format.AVIF
        assert config.quality == 100
        assert config.batch_size == 5
        assert [p.name for p in config.size_profiles] == ['card']

    def test_bad_integer(self, monkeypatch):
        """Test a non-integer value raises ConfigError."""
        monkeypatch.setenv('IMGCONV_MAX_PIXELS', 'lots')
        with pytest.raises(ConfigError, match='IMGCONV_MAX_PIXELS'):
            ConverterConfig.from_env()

    def test_on_off_settings(self, monkeypatch):
        """Test on/off variables are parsed."""
        monkeypatch.setenv('IMGCONV_KEEP_ORIGINALS', 'no')
        monkeypatch.setenv('IMGCONV_ADVANCED_PREVIEWS', 'True')

        config = ConverterConfig.from_env()

        assert config.keep_originals is False
        assert config.advanced_previews is True

    def test_bad_on_off_value(self, monkeypatch):
        """Test an unrecognised on/off value raises ConfigError."""
        monkeypatch.setenv('IMGCONV_KEEP_ORIGINALS', 'maybe')
        with pytest.raises(ConfigError, match='IMGCONV_KEEP_ORIGINALS'):
            ConverterConfig.from_env()

    def test_bad_profiles_json(self, monkeypatch):
        """Test malformed profile JSON raises ConfigError."""
        monkeypatch.setenv('IMGCONV_SIZE_PROFILES', '[{')
        with pytest.raises(ConfigError):
            ConverterConfig.from_env()


class TestFileLoading:
    """Tests for JSON file loading."""

    def test_load(self, tmp_path):
        """Test loading a JSON file."""
        path = tmp_path / 'imgconv.json'
        path.write_text(json.dumps({
            'format': 'avif',
            'quality': 60,
            'resource_limits': {'time_seconds': 10},
            'unknown_key': True,
        }))

        config = ConverterConfig.load(str(path))

        assert config.format == 'avif'
        assert config.quality == 60
        assert config.resource_limits.time_seconds == 10

    def test_missing_file(self, tmp_path):
        """Test a missing file raises ConfigError."""
        with pytest.raises(ConfigError, match='not found'):
            ConverterConfig.load(str(tmp_path / 'missing.json'))

    def test_invalid_json(self, tmp_path):
        """Test invalid JSON raises ConfigError."""
        path = tmp_path / 'bad.json'
        path.write_text('{not json')
        with pytest.raises(ConfigError):
            ConverterConfig.load(str(path))

    def test_not_an_object(self, tmp_path):
        """Test a JSON list is rejected."""
        path = tmp_path / 'list.json'
        path.write_text('[]')
        with pytest.raises(ConfigError):
            ConverterConfig.load(str(path))

    def test_to_dict_round_trip(self):
        """Test to_dict output loads back."""
        config = ConverterConfig(format='avif', quality=70, keep_originals=False)
        restored = ConverterConfig.from_dict(config.to_dict())

        assert restored.format == 'avif'
        assert restored.keep_originals is False
        assert restored.quality == 70
        assert [p.name for p in restored.size_profiles] == [p.name for p in config.size_profiles]


class TestValidate:
    """Tests for validate."""

    def test_collects_errors(self):
        """Test every problem is reported."""
        config = ConverterConfig(format='gif', max_pixels=0, batch_size=0, memory_limit_bytes=-1)
        errors = config.validate()

        assert len(errors) == 4
        assert any('gif' in e for e in errors)
