"""
Multi-actor collaboration on specs.

This package contains conflict detection and resolution (conflicts.py),
review requests (reviews.py), the git-backed and HTTP snapshot sources
(sync.py, http_source.py) and the store-backed reconciliation use-cases
(service.py, imported directly to keep this package free of storage imports).
"""

from manifold_cli.collaboration.conflicts import (
    MISSING,
    apply_resolutions,
    detect_conflicts,
    format_conflict,
    resolve_conflict,
    three_way_merge,
)
from manifold_cli.collaboration.models import (
    Conflict,
    ConflictStatus,
    ResolutionStrategy,
    Review,
    ReviewStatus,
    SyncMetadata,
    SyncStatus,
)
from manifold_cli.collaboration.sync import (
    GitSyncManager,
    RemoteSnapshot,
    SnapshotSource,
    SyncConfig,
)

__all__ = [
    # Conflicts
    "MISSING",
    "apply_resolutions",
    "detect_conflicts",
    "format_conflict",
    "resolve_conflict",
    "three_way_merge",
    # Models
    "Conflict",
    "ConflictStatus",
    "ResolutionStrategy",
    "Review",
    "ReviewStatus",
    "SyncMetadata",
    "SyncStatus",
    # Sync
    "GitSyncManager",
    "RemoteSnapshot",
    "SnapshotSource",
    "SyncConfig",
]
