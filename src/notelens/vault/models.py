"""Content collaborator types: document references and change events."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol


class DocumentKind(Enum):
    FILE = "file"
    FOLDER = "folder"


class ChangeKind(Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class DocumentRef:
    """A vault entry. ``key`` is the vault-relative POSIX path."""

    key: str
    path: Path
    kind: DocumentKind = DocumentKind.FILE


@dataclass(frozen=True, slots=True)
class DocumentEvent:
    change: ChangeKind
    ref: DocumentRef

    @property
    def key(self) -> str:
        return self.ref.key

    @property
    def is_document(self) -> bool:
        return self.ref.kind is DocumentKind.FILE


class DocumentSource(Protocol):
    """What the indexing pipeline needs from the host's content store."""

    def list(self) -> list[DocumentRef]: ...

    def read(self, key: str) -> str: ...
