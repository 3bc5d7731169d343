"""Tests for Attachment and MemoryAttachmentStore."""

import pytest

from imgconv.attachment_store import Attachment, MemoryAttachmentStore


class TestAttachment:
    """Tests for Attachment dataclass."""

    def test_from_dict_guesses_mime_type(self):
        """Test a missing MIME type is derived from the extension."""
        attachment = Attachment.from_dict({'id': '3', 'file': 'a/b.png'})

        assert attachment.id == 3
        assert attachment.mime_type == 'image/png'
        assert attachment.metadata == {}

    def test_round_trip(self):
        """Test to_dict output loads back."""
        attachment = Attachment(1, 'x.jpg', 'image/jpeg', {'width': 2}, {'k': 'v'})
        assert Attachment.from_dict(attachment.to_dict()) == attachment


class TestMemoryAttachmentStore:
    """Tests for the in-memory store."""

    def test_add_and_read(self):
        """Test adding assigns ascending ids."""
        store = MemoryAttachmentStore()
        first = store.add_attachment('/u/a.jpg')
        second = store.add_attachment('/u/b.svg', 'image/svg+xml', {'width': 5})

        assert (first, second) == (1, 2)
        assert list(store.iter_ids()) == [1, 2]
        assert store.get_file_path(1) == '/u/a.jpg'
        assert store.get_mime_type(1) == 'image/jpeg'
        assert store.get_mime_type(2) == 'image/svg+xml'
        assert store.get_metadata(2) == {'width': 5}
        assert len(store) == 2

    def test_unknown_id(self):
        """Test unknown ids raise KeyError."""
        store = MemoryAttachmentStore()
        assert not store.exists(9)
        with pytest.raises(KeyError):
            store.get_file_path(9)

    def test_meta(self):
        """Test meta set, get and delete."""
        store = MemoryAttachmentStore()
        attachment_id = store.add_attachment('/u/a.jpg')

        store.set_meta(attachment_id, 'key', {'n': 1})
        assert store.get_meta(attachment_id, 'key') == {'n': 1}

        store.delete_meta(attachment_id, 'key')
        assert store.get_meta(attachment_id, 'key', 'default') == 'default'

    def test_values_are_copied(self):
        """Test callers cannot mutate stored values in place."""
        store = MemoryAttachmentStore()
        attachment_id = store.add_attachment('/u/a.jpg', metadata={'sizes': {}})

        store.get_metadata(attachment_id)['sizes']['medium'] = {}
        assert store.get_metadata(attachment_id) == {'sizes': {}}

    def test_remove(self):
        """Test removal."""
        store = MemoryAttachmentStore()
        attachment_id = store.add_attachment('/u/a.jpg')
        store.remove_attachment(attachment_id)

        assert not store.exists(attachment_id)
        assert store.add_attachment('/u/b.jpg') == 2

    def test_paths_are_identity(self):
        """Test the memory store records paths unchanged."""
        store = MemoryAttachmentStore()
        assert store.relative_path('/u/a.webp') == '/u/a.webp'
        assert store.resolve_path('/u/a.webp') == '/u/a.webp'

    def test_set_file_path(self):
        """Test repointing sets the file and derives the MIME type."""
        store = MemoryAttachmentStore()
        attachment_id = store.add_attachment('/u/a.jpg')

        store.set_file_path(attachment_id, '/u/a.webp')
        assert store.get_file_path(attachment_id) == '/u/a.webp'
        assert store.get_mime_type(attachment_id) == 'image/webp'

        store.set_file_path(attachment_id, '/u/a.bin', 'image/avif')
        assert store.get_mime_type(attachment_id) == 'image/avif'
