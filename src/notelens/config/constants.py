"""Configuration constants.

Values here are NOT user-configurable. For configurable values, see models.py.
"""

SEARCH_MAX_LIMIT = 100
"""Maximum results for a single search."""

SNAPSHOT_VERSION = 1
"""Version stamp written to the snapshot metadata."""

SNAPSHOT_MATRIX_FILE = "embeddings.npz"
SNAPSHOT_META_FILE = "meta.json"

STATE_DIR = ".notelens"
"""Per-vault directory for config and the index snapshot."""

MASKED_KEY = "<KEY_SAVED>"
"""Returned instead of the credential when a key is configured."""

DEFAULT_ENCODING = "cl100k_base"
"""Token encoding used when the embedding model is unknown to tiktoken."""

PRUNED_DIRS: frozenset[str] = frozenset({".git", ".obsidian", ".trash", STATE_DIR})
"""Vault directories never listed or watched."""
