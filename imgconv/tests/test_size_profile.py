"""Tests for SizeProfile and profile loading."""

import pytest

from imgconv.size_profile import SizeProfile, DEFAULT_PROFILES, load_profiles


class TestSizeProfile:
    """Tests for SizeProfile dataclass."""

    def test_from_dict_sanitizes(self):
        """Test loose values are normalised."""
        profile = SizeProfile.from_dict({
            'name': ' Hero_Wide ',
            'width': '1200',
            'height': -40,
            'crop': 'yes',
            'format': 'AUTO',
        })

        assert profile.name == 'hero_wide'
        assert profile.width == 1200
        assert profile.height == 0
        assert profile.crop is True
        assert profile.format == 'inherit'

    @pytest.mark.parametrize('name', ['', 'a', 'has-dash', 'x' * 33, 'spa ce'])
    def test_invalid_names(self, name):
        """Test names outside [a-z0-9_]{2,32} are rejected."""
        with pytest.raises(ValueError):
            SizeProfile.from_dict({'name': name, 'width': 100})

    def test_invalid_format(self):
        """Test unknown output formats are rejected."""
        with pytest.raises(ValueError):
            SizeProfile.from_dict({'name': 'card', 'width': 100, 'format': 'tiff'})

    def test_noop(self):
        """Test 0x0 profiles are no-ops."""
        assert SizeProfile('empty').is_noop
        assert not SizeProfile('medium', 300).is_noop

    def test_suffix(self):
        """Test suffix follows the crop rule."""
        assert SizeProfile('thumbnail', 150, 150, True).suffix == '150x150-c'
        assert SizeProfile('medium', 300, 0, True).suffix == '300w'

    def test_output_extension(self):
        """Test output container selection."""
        assert SizeProfile('a1', 100).output_extension('.PNG') == 'png'
        assert SizeProfile('a1', 100, format='jpeg').output_extension('.png') == 'jpg'
        assert SizeProfile('a1', 100, format='webp').output_extension('.png') == 'webp'

    def test_describe(self):
        """Test human readable hints."""
        assert 'cropped' in SizeProfile('thumbnail', 150, 150, True).describe()
        assert SizeProfile('medium', 300).describe() == '300px wide, proportional height'
        assert 'AVIF' in SizeProfile('tall', 0, 400, format='avif').describe()


class TestLoadProfiles:
    """Tests for load_profiles."""

    def test_defaults(self):
        """Test the default profile set."""
        names = [p.name for p in DEFAULT_PROFILES]
        assert names == ['thumbnail', 'medium', 'medium_large', 'large', 'xl']
        assert DEFAULT_PROFILES[0].crop is True

    @pytest.mark.parametrize('rows', [None, [], 'thumbnail', {'name': 'x'}])
    def test_empty_or_malformed_uses_defaults(self, rows):
        """Test unusable input falls back to the defaults."""
        profiles = load_profiles(rows)
        assert [p.name for p in profiles] == [p.name for p in DEFAULT_PROFILES]

    def test_dedupe_last_wins(self):
        """Test duplicate names keep the last definition."""
        profiles = load_profiles([
            {'name': 'card', 'width': 100},
            {'name': 'banner', 'width': 1600, 'height': 400, 'crop': True},
            {'name': 'card', 'width': 250},
        ])

        assert [p.name for p in profiles] == ['card', 'banner']
        assert profiles[0].width == 250

    def test_invalid_rows_dropped(self, caplog):
        """Test invalid rows are dropped with a warning."""
        profiles = load_profiles([{'name': '!!', 'width': 10}, 'junk', {'name': 'ok_size', 'width': 10}])

        assert [p.name for p in profiles] == ['ok_size']
        assert 'Ignoring' in caplog.text

    def test_all_invalid_uses_defaults(self):
        """Test a list with nothing usable falls back to the defaults."""
        profiles = load_profiles([{'name': '!!'}])
        assert len(profiles) == len(DEFAULT_PROFILES)
