"""notelens runtime: live updates and bulk reindex.

The service facade lives in ``notelens.daemon.service``; it is not
re-exported here because it depends on ``notelens.search``, which itself
uses the debouncer from this package.
"""

from notelens.daemon.coalescer import Debouncer, UpdateCoalescer
from notelens.daemon.reindex import (
    BulkReindexController,
    ReindexEstimate,
    ReindexProgress,
    ReindexReport,
    ReindexState,
)

__all__ = [
    "BulkReindexController",
    "Debouncer",
    "ReindexEstimate",
    "ReindexProgress",
    "ReindexReport",
    "ReindexState",
    "UpdateCoalescer",
]
