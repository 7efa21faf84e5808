"""Vault access: note enumeration, reading and change events."""

from notelens.vault.models import (
    ChangeKind,
    DocumentEvent,
    DocumentKind,
    DocumentRef,
    DocumentSource,
)
from notelens.vault.store import VaultStore
from notelens.vault.watcher import VaultWatcher

__all__ = [
    "ChangeKind",
    "DocumentEvent",
    "DocumentKind",
    "DocumentRef",
    "DocumentSource",
    "VaultStore",
    "VaultWatcher",
]
