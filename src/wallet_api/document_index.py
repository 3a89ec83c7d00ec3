"""
Per-user embedded document index.

``users.documents`` holds a denormalized descriptor per uploaded document.
Older records store a bare document id string instead of a descriptor
object; both shapes are normalized to ``DocumentDescriptor`` on load and
written back in their original shape unless a mutation upgraded them.

Every operation returns a new ``DocumentIndex``; ``to_stored()`` is the full
replacement sequence to write back.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from wallet_api.errors import NotFoundError

StoredDescriptor = Union[str, Dict[str, Any]]

# stored key -> attribute name
_FIELDS = {
    "docId": "doc_id",
    "docName": "doc_name",
    "docType": "doc_type",
    "docSize": "doc_size",
    "uploadedTime": "uploaded_time",
    "isDocShow": "is_doc_show",
}


@dataclass(frozen=True)
class DocumentDescriptor:
    doc_id: str
    doc_name: Optional[str] = None
    doc_type: Optional[str] = None
    doc_size: Optional[int] = None
    uploaded_time: Optional[str] = None
    is_doc_show: Optional[bool] = None
    is_legacy: bool = False
    # stored keys this model does not know about, kept for round-tripping
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_upload(
        cls,
        doc_id: str,
        doc_name: str,
        doc_type: str,
        doc_size: int,
        uploaded_time: str,
    ) -> "DocumentDescriptor":
        return cls(
            doc_id=doc_id,
            doc_name=doc_name,
            doc_type=doc_type,
            doc_size=doc_size,
            uploaded_time=uploaded_time,
            is_doc_show=True,
        )

    @classmethod
    def from_stored(cls, entry: StoredDescriptor) -> "DocumentDescriptor":
        if isinstance(entry, str):
            return cls(doc_id=entry, is_legacy=True)
        if isinstance(entry, dict) and entry.get("docId"):
            known = {attr: entry.get(key) for key, attr in _FIELDS.items()}
            extra = {k: v for k, v in entry.items() if k not in _FIELDS}
            return cls(**known, extra=extra)
        raise ValueError(f"Unrecognized document descriptor: {entry!r}")

    def to_stored(self) -> StoredDescriptor:
        if self.is_legacy:
            return self.doc_id
        stored: Dict[str, Any] = dict(self.extra)
        for key, attr in _FIELDS.items():
            value = getattr(self, attr)
            # upgraded legacy entries only know docId and isDocShow
            if value is not None:
                stored[key] = value
        return stored

    @property
    def visible(self) -> bool:
        """Legacy entries predate the visibility flag and are never visible."""
        return not self.is_legacy and self.is_doc_show is True

    def with_visibility(self, visible: bool) -> "DocumentDescriptor":
        return replace(self, is_doc_show=visible, is_legacy=False)


class DocumentIndex:
    """Immutable view over a user's embedded descriptor sequence."""

    def __init__(self, descriptors: Iterable[DocumentDescriptor] = ()):
        self._descriptors: List[DocumentDescriptor] = list(descriptors)

    @classmethod
    def load(cls, stored: Optional[Iterable[StoredDescriptor]]) -> "DocumentIndex":
        return cls(DocumentDescriptor.from_stored(entry) for entry in (stored or []))

    def to_stored(self) -> List[StoredDescriptor]:
        return [descriptor.to_stored() for descriptor in self._descriptors]

    def __iter__(self) -> Iterator[DocumentDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, doc_id: object) -> bool:
        return any(d.doc_id == doc_id for d in self._descriptors)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DocumentIndex):
            return NotImplemented
        return self._descriptors == other._descriptors

    def append(self, descriptor: DocumentDescriptor) -> "DocumentIndex":
        return DocumentIndex([*self._descriptors, descriptor])

    def remove(self, doc_id: str) -> "DocumentIndex":
        """Drop every entry, legacy or current, with this id. Absent ids are a no-op."""
        return DocumentIndex(d for d in self._descriptors if d.doc_id != doc_id)

    def set_visibility(self, doc_id: str, visible: bool) -> "DocumentIndex":
        if doc_id not in self:
            raise NotFoundError("Document not found in user documents")
        return DocumentIndex(
            d.with_visibility(visible) if d.doc_id == doc_id else d
            for d in self._descriptors
        )

    def visible_only(self) -> List[DocumentDescriptor]:
        return [d for d in self._descriptors if d.visible]
