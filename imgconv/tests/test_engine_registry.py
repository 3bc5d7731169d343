"""Tests for EngineRegistry."""

import logging

import pytest

from imgconv.engine_registry import EngineRegistry, default_registry
from imgconv.formats import Format
from imgconv.imagemagick_engine import ImageMagickEngine
from imgconv.pillow_engine import PillowEngine


@pytest.fixture
def engines(make_engine):
    """Fixture providing pillow/imagemagick/extra fakes (only the first lacks AVIF)."""
    return {
        'pillow': make_engine('pillow', formats=[Format.WEBP]),
        'imagemagick': make_engine('imagemagick', formats=[Format.WEBP, Format.AVIF]),
        'extra': make_engine('extra', formats=[Format.WEBP, Format.AVIF]),
    }


class TestSelection:
    """Tests for engine selection."""

    def test_priority_order(self, engines):
        """Test the fixed priority beats registration order."""
        registry = EngineRegistry([engines['extra'], engines['imagemagick'], engines['pillow']])

        assert [e.name for e in registry.all_engines()] == ['pillow', 'imagemagick', 'extra']
        assert registry.best_engine_for(Format.WEBP).name == 'pillow'
        assert registry.best_engine_for(Format.AVIF).name == 'imagemagick'

    def test_unavailable_engines_skipped(self, engines):
        """Test unavailable engines are never chosen."""
        engines['pillow'].available = False
        engines['imagemagick'].available = False
        registry = EngineRegistry(engines.values())

        assert registry.best_engine_for(Format.WEBP).name == 'extra'

    def test_availability_is_live(self, engines):
        """Test availability is re-checked on every call."""
        registry = EngineRegistry(engines.values())
        assert registry.best_engine_for(Format.WEBP).name == 'pillow'

        engines['pillow'].available = False
        assert registry.best_engine_for(Format.WEBP).name == 'imagemagick'

    def test_no_engine(self, make_engine):
        """Test None when nothing supports the format."""
        registry = EngineRegistry([make_engine('pillow', formats=[Format.WEBP])])
        assert registry.best_engine_for(Format.AVIF) is None

    def test_register_replaces(self, make_engine):
        """Test registering a name again replaces the engine."""
        registry = EngineRegistry([make_engine('pillow', formats=[])])
        registry.register_engine(make_engine('pillow', formats=[Format.WEBP]))

        assert len(registry.all_engines()) == 1
        assert registry.best_engine_for(Format.WEBP) is not None

    def test_engines_supporting(self, engines):
        """Test listing engines per format."""
        registry = EngineRegistry(engines.values())
        assert registry.engines_supporting(Format.AVIF) == ['imagemagick', 'extra']


class TestPreference:
    """Tests for engine_from_preference."""

    def test_auto(self, engines):
        """Test 'auto' picks the best engine."""
        registry = EngineRegistry(engines.values())
        assert registry.engine_from_preference('auto', Format.WEBP).name == 'pillow'

    def test_named_engine(self, engines):
        """Test a capable named engine is used."""
        registry = EngineRegistry(engines.values())
        assert registry.engine_from_preference('extra', Format.WEBP).name == 'extra'

    def test_fallback_is_logged(self, engines, caplog):
        """Test an incapable named engine falls back with an engine_fallback event."""
        registry = EngineRegistry(engines.values())

        with caplog.at_level(logging.WARNING):
            engine = registry.engine_from_preference('pillow', Format.AVIF)

        assert engine.name == 'imagemagick'
        events = [r for r in caplog.records if getattr(r, 'event', None) == 'engine_fallback']
        assert len(events) == 1
        assert events[0].reason == 'format_unsupported'
        assert events[0].fallback_engine == 'imagemagick'

    def test_unknown_engine_falls_back(self, engines, caplog):
        """Test an unknown engine name falls back."""
        registry = EngineRegistry(engines.values())

        with caplog.at_level(logging.WARNING):
            engine = registry.engine_from_preference('vips', Format.WEBP)

        assert engine.name == 'pillow'
        assert caplog.records[-1].reason == 'unknown'


class TestValidate:
    """Tests for validate."""

    def test_valid(self, engines):
        """Test a supported pair is valid."""
        registry = EngineRegistry(engines.values())
        assert registry.validate('auto', 'webp').valid

    def test_avif_unsupported_everywhere(self, make_engine):
        """Test AVIF with no capable engine names the format."""
        registry = EngineRegistry([
            make_engine('pillow', formats=[Format.WEBP]),
            make_engine('imagemagick', formats=[Format.WEBP]),
        ])

        assert registry.best_engine_for(Format.AVIF) is None
        result = registry.validate('auto', Format.AVIF)
        assert result.valid is False
        assert 'AVIF' in result.message

    def test_named_engine_lacking_format(self, engines):
        """Test validate does not fall back."""
        registry = EngineRegistry(engines.values())
        result = registry.validate('pillow', 'avif')

        assert result.valid is False
        assert 'pillow' in result.message and 'AVIF' in result.message

    def test_unknown_engine(self, engines):
        """Test an unknown engine is reported."""
        result = EngineRegistry(engines.values()).validate('vips', 'webp')
        assert not result.valid
        assert 'vips' in result.message

    def test_unavailable_engine(self, engines):
        """Test an unavailable engine is reported."""
        engines['extra'].available = False
        result = EngineRegistry(engines.values()).validate('extra', 'webp')
        assert not result.valid
        assert 'not available' in result.message

    def test_invalid_format(self, engines):
        """Test an unknown format is invalid."""
        assert not EngineRegistry(engines.values()).validate('auto', 'gif').valid


class TestInputFormats:
    """Tests for input format queries."""

    def test_union(self, make_engine):
        """Test input formats are unioned across available engines."""
        registry = EngineRegistry([
            make_engine('a', input_mime_types=['image/jpeg']),
            make_engine('b', input_mime_types=['image/tiff']),
            make_engine('c', input_mime_types=['image/heic'], available=False),
        ])

        assert registry.union_of_input_formats() == {'image/jpeg', 'image/tiff'}
        assert registry.is_mime_type_supported('IMAGE/TIFF')
        assert not registry.is_mime_type_supported('image/heic')

    def test_fallback_when_nothing_available(self, make_engine):
        """Test JPEG/PNG are assumed when no engine can report."""
        registry = EngineRegistry([make_engine(available=False)])
        assert registry.union_of_input_formats() == {'image/jpeg', 'image/png'}

    def test_recomputed_each_call(self, make_engine):
        """Test the union reflects engine changes immediately."""
        engine = make_engine(input_mime_types=['image/jpeg'])
        registry = EngineRegistry([engine])
        assert 'image/gif' not in registry.union_of_input_formats()

        engine.input_mime_types.add('image/gif')
        assert 'image/gif' in registry.union_of_input_formats()


class TestGeometryEngine:
    """Tests for geometry_engine."""

    def test_geometry_engine(self, make_engine):
        """Test only engines supporting geometry qualify."""
        plain = make_engine('imagemagick')
        capable = make_engine('pillow')
        capable.supports_geometry = True
        registry = EngineRegistry([plain, capable])

        assert registry.geometry_engine() is capable
        capable.available = False
        assert registry.geometry_engine() is None


def test_default_registry():
    """Test the default registry holds Pillow then ImageMagick."""
    registry = default_registry()
    engines = registry.all_engines()

    assert isinstance(engines[0], PillowEngine)
    assert isinstance(engines[1], ImageMagickEngine)
