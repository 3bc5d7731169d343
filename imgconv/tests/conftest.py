"""
Pytest fixtures for imgconv tests.
"""

import os
from unittest.mock import MagicMock

import pytest
from PIL import Image

from imgconv.engine import Engine
from imgconv.errors import EncodeError
from imgconv.formats import Format


class FakeEngine(Engine):
    """Engine double that writes fixed bytes and records its calls."""

    def __init__(
        self,
        name='fake',
        formats=(Format.WEBP, Format.AVIF),
        available=True,
        payload=b'converted-bytes',
        dims=(100, 80),
        fail_on=(),
        input_mime_types=('image/jpeg', 'image/png', 'image/gif'),
    ):
        super().__init__()
        self.name = name
        self.formats = set(formats)
        self.available = available
        self.payload = payload
        self.dims = dims
        self.fail_on = set(fail_on)
        self.input_mime_types = set(input_mime_types)
        self.encode_calls = []

    def is_available(self):
        return self.available

    def output_formats(self):
        return set(self.formats)

    def input_formats(self):
        return set(self.input_mime_types)

    def version(self):
        return '1.0'

    def dimensions(self, path):
        return self.dims

    def encode(self, source_path, dest_path, fmt, quality, limits):
        self.encode_calls.append((source_path, dest_path, fmt, quality))
        if os.path.basename(source_path) in self.fail_on:
            raise EncodeError(f"cannot encode {os.path.basename(source_path)}")
        with open(dest_path, 'wb') as f:
            f.write(self.payload)


@pytest.fixture
def make_engine():
    """Fixture providing a FakeEngine factory."""
    return FakeEngine


@pytest.fixture
def unlimited_gauge():
    """Fixture providing a memory gauge that reports no ceiling."""
    gauge = MagicMock()
    gauge.headroom.return_value = None
    return gauge


@pytest.fixture
def make_image(tmp_path):
    """Fixture providing a factory that writes a test image and returns its path."""
    def _make(name='image.jpg', size=(400, 300), mode='RGB', color='red', fmt=None, directory=None):
        target_dir = directory or tmp_path
        os.makedirs(target_dir, exist_ok=True)
        path = os.path.join(str(target_dir), name)
        if mode == 'RGBA':
            color = (255, 0, 0, 128)
        img = Image.new(mode, size, color=color)
        img.save(path, format=fmt)
        return path
    return _make


@pytest.fixture
def jpeg_file(make_image):
    """Fixture providing a 400x300 JPEG."""
    return make_image('photo.jpg')


@pytest.fixture
def png_rgba_file(make_image):
    """Fixture providing a 200x100 PNG with transparency."""
    return make_image('logo.png', size=(200, 100), mode='RGBA')


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    import logging
    return logging.getLogger('test')
