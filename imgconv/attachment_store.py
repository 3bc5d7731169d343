"""
AttachmentStore - Interface to the attachment catalogue, plus an in-memory store.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from .formats import mime_from_ext


@dataclass
class Attachment:
    """
    One catalogued file.

    Attributes:
        id: Positive integer identifier
        file: Path of the full-size file (store specific: absolute or relative)
        mime_type: MIME type of the full-size file
        metadata: Dimensions and derivative sizes
        meta: Free-form key/value entries (conversion record, errors, markers)
    """
    id: int
    file: str
    mime_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'file': self.file,
            'mime_type': self.mime_type,
            'metadata': self.metadata,
            'meta': self.meta,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Attachment':
        return cls(
            id=int(data['id']),
            file=data['file'],
            mime_type=data.get('mime_type') or mime_from_ext(data['file']),
            metadata=data.get('metadata') or {},
            meta=data.get('meta') or {},
        )


class AttachmentStore(ABC):
    """
    Catalogue of attachments consumed by the converter and batch processor.

    Unknown ids raise KeyError. A failure of the store itself (I/O,
    corruption) raises AttachmentStoreError.
    """

    @abstractmethod
    def iter_ids(self) -> Iterator[int]:
        """Yield every attachment id in ascending order."""

    @abstractmethod
    def exists(self, attachment_id: int) -> bool:
        pass

    @abstractmethod
    def get_file_path(self, attachment_id: int) -> str:
        """Absolute path of the full-size file."""

    @abstractmethod
    def set_file_path(self, attachment_id: int, file_path: str, mime_type: Optional[str] = None) -> None:
        """Point the attachment at a different active file."""

    @abstractmethod
    def get_mime_type(self, attachment_id: int) -> str:
        pass

    @abstractmethod
    def get_metadata(self, attachment_id: int) -> dict:
        pass

    @abstractmethod
    def set_metadata(self, attachment_id: int, metadata: dict) -> None:
        pass

    @abstractmethod
    def get_meta(self, attachment_id: int, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set_meta(self, attachment_id: int, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete_meta(self, attachment_id: int, key: str) -> None:
        pass

    @abstractmethod
    def add_attachment(
        self,
        file_path: str,
        mime_type: Optional[str] = None,
        metadata: Optional[dict] = None
    ) -> int:
        """Register a file and return its new id."""

    @abstractmethod
    def remove_attachment(self, attachment_id: int) -> None:
        pass

    def relative_path(self, path: str) -> str:
        """Path as it should be recorded in a conversion record."""
        return path

    def resolve_path(self, path: str) -> str:
        """Inverse of relative_path."""
        return path

    def flush(self) -> None:
        """Persist pending changes; stores that write through do nothing."""


class MemoryAttachmentStore(AttachmentStore):
    """Attachment store held entirely in memory; file paths are used as given."""

    def __init__(self):
        self._attachments: Dict[int, Attachment] = {}
        self._next_id = 1

    def _get(self, attachment_id: int) -> Attachment:
        try:
            return self._attachments[attachment_id]
        except KeyError:
            raise KeyError(f"Unknown attachment: {attachment_id}")

    def iter_ids(self) -> Iterator[int]:
        return iter(sorted(self._attachments))

    def exists(self, attachment_id: int) -> bool:
        return attachment_id in self._attachments

    def get_file_path(self, attachment_id: int) -> str:
        return self._get(attachment_id).file

    def set_file_path(self, attachment_id: int, file_path: str, mime_type: Optional[str] = None) -> None:
        attachment = self._get(attachment_id)
        attachment.file = file_path
        attachment.mime_type = mime_type or mime_from_ext(file_path)

    def get_mime_type(self, attachment_id: int) -> str:
        return self._get(attachment_id).mime_type

    def get_metadata(self, attachment_id: int) -> dict:
        return copy.deepcopy(self._get(attachment_id).metadata)

    def set_metadata(self, attachment_id: int, metadata: dict) -> None:
        self._get(attachment_id).metadata = copy.deepcopy(metadata)

    def get_meta(self, attachment_id: int, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._get(attachment_id).meta.get(key, default))

    def set_meta(self, attachment_id: int, key: str, value: Any) -> None:
        self._get(attachment_id).meta[key] = copy.deepcopy(value)

    def delete_meta(self, attachment_id: int, key: str) -> None:
        self._get(attachment_id).meta.pop(key, None)

    def add_attachment(
        self,
        file_path: str,
        mime_type: Optional[str] = None,
        metadata: Optional[dict] = None
    ) -> int:
        attachment_id = self._next_id
        self._next_id += 1
        self._attachments[attachment_id] = Attachment(
            id=attachment_id,
            file=file_path,
            mime_type=mime_type or mime_from_ext(file_path),
            metadata=copy.deepcopy(metadata or {}),
        )
        return attachment_id

    def remove_attachment(self, attachment_id: int) -> None:
        self._attachments.pop(attachment_id, None)

    def __len__(self) -> int:
        return len(self._attachments)
