"""
Library - JSON-file attachment store rooted at an upload directory.
"""

import copy
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from .attachment_store import Attachment, AttachmentStore
from .errors import AttachmentStoreError
from .formats import mime_from_ext


class Library(AttachmentStore):
    """
    Attachment store persisted as a single JSON file.

    File paths are stored relative to upload_root so a library can be
    moved together with its files.
    """

    def __init__(
        self,
        upload_root: str,
        created_at: Optional[str] = None,
        path: Optional[str] = None
    ):
        """
        Initialize library.

        Args:
            upload_root: Directory all attachment paths are relative to
            created_at: ISO timestamp (default: now)
            path: JSON file this library is saved to
        """
        self.upload_root = os.path.abspath(upload_root)
        self.created_at = created_at or datetime.now().isoformat()
        self.path = path
        self.attachments: Dict[int, Attachment] = {}
        self._files: Dict[str, int] = {}
        self._next_id = 1

    def _get(self, attachment_id: int) -> Attachment:
        try:
            return self.attachments[attachment_id]
        except KeyError:
            raise KeyError(f"Unknown attachment: {attachment_id}")

    def iter_ids(self) -> Iterator[int]:
        return iter(sorted(self.attachments))

    def iter_attachments(self) -> Iterator[Attachment]:
        for attachment_id in self.iter_ids():
            yield self.attachments[attachment_id]

    def exists(self, attachment_id: int) -> bool:
        return attachment_id in self.attachments

    def find_by_file(self, relative_file: str) -> Optional[int]:
        """Id of the attachment whose active or original file is relative_file."""
        return self._files.get(relative_file)

    def _index(self, attachment: Attachment) -> None:
        self._files[attachment.file] = attachment.id
        original = attachment.metadata.get('original_file')
        if original:
            self._files[original] = attachment.id

    def _unindex(self, attachment: Attachment) -> None:
        for name in (attachment.file, attachment.metadata.get('original_file')):
            if name and self._files.get(name) == attachment.id:
                del self._files[name]

    def get_file_path(self, attachment_id: int) -> str:
        return os.path.join(self.upload_root, self._get(attachment_id).file)

    def set_file_path(self, attachment_id: int, file_path: str, mime_type: Optional[str] = None) -> None:
        attachment = self._get(attachment_id)
        self._unindex(attachment)
        attachment.file = self._to_relative(file_path)
        attachment.mime_type = mime_type or mime_from_ext(attachment.file)
        self._index(attachment)

    def get_mime_type(self, attachment_id: int) -> str:
        return self._get(attachment_id).mime_type

    def get_metadata(self, attachment_id: int) -> dict:
        return copy.deepcopy(self._get(attachment_id).metadata)

    def set_metadata(self, attachment_id: int, metadata: dict) -> None:
        attachment = self._get(attachment_id)
        self._unindex(attachment)
        attachment.metadata = copy.deepcopy(metadata)
        self._index(attachment)

    def get_meta(self, attachment_id: int, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._get(attachment_id).meta.get(key, default))

    def set_meta(self, attachment_id: int, key: str, value: Any) -> None:
        self._get(attachment_id).meta[key] = copy.deepcopy(value)

    def delete_meta(self, attachment_id: int, key: str) -> None:
        self._get(attachment_id).meta.pop(key, None)

    def relative_path(self, path: str) -> str:
        return os.path.relpath(os.path.abspath(path), self.upload_root)

    def resolve_path(self, path: str) -> str:
        return os.path.join(self.upload_root, path)

    def _to_relative(self, file_path: str) -> str:
        if os.path.isabs(file_path):
            return self.relative_path(file_path)
        return os.path.normpath(file_path)

    def add_attachment(
        self,
        file_path: str,
        mime_type: Optional[str] = None,
        metadata: Optional[dict] = None
    ) -> int:
        """Register a file (absolute or relative to upload_root)."""
        relative = self._to_relative(file_path)

        attachment_id = self._next_id
        self._next_id += 1
        attachment = Attachment(
            id=attachment_id,
            file=relative,
            mime_type=mime_type or mime_from_ext(relative),
            metadata=copy.deepcopy(metadata or {}),
        )
        self.attachments[attachment_id] = attachment
        self._index(attachment)
        return attachment_id

    def remove_attachment(self, attachment_id: int) -> None:
        attachment = self.attachments.pop(attachment_id, None)
        if attachment:
            self._unindex(attachment)

    def flush(self) -> None:
        if self.path:
            self.save(self.path)

    @property
    def total_attachments(self) -> int:
        return len(self.attachments)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'created_at': self.created_at,
            'upload_root': self.upload_root,
            'next_id': self._next_id,
            'attachments': [a.to_dict() for a in self.iter_attachments()],
        }

    @classmethod
    def from_dict(cls, data: dict, path: Optional[str] = None) -> 'Library':
        """Create from dictionary."""
        library = cls(
            upload_root=data['upload_root'],
            created_at=data.get('created_at'),
            path=path,
        )
        for item in data.get('attachments', []):
            attachment = Attachment.from_dict(item)
            library.attachments[attachment.id] = attachment
            library._index(attachment)
        highest = max(library.attachments, default=0)
        library._next_id = max(int(data.get('next_id', 1)), highest + 1)
        return library

    def save(self, filepath: Optional[str] = None) -> None:
        """
        Save library to a JSON file, replacing it atomically.

        Raises:
            AttachmentStoreError: If the file cannot be written
        """
        target = filepath or self.path
        if not target:
            raise AttachmentStoreError("Library has no file path to save to")

        path = Path(target)
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise AttachmentStoreError(f"Cannot save library to {target}: {e}") from e
        self.path = str(path)

    @classmethod
    def load(cls, filepath: str) -> 'Library':
        """
        Load library from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            AttachmentStoreError: If the file is not a valid library
        """
        with open(filepath, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise AttachmentStoreError(f"Library {filepath} is not valid JSON: {e}") from e
        if not isinstance(data, dict) or 'upload_root' not in data:
            raise AttachmentStoreError(f"Library {filepath} is missing upload_root")
        return cls.from_dict(data, path=filepath)

    @classmethod
    def create_new(cls, upload_root: str, path: Optional[str] = None) -> 'Library':
        """Create a new empty library."""
        return cls(upload_root=upload_root, path=path)
