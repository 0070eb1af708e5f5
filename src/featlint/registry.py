"""
featlint - Feature revision registry.

Records, per feature id, every revision seen during one analysis run.
The first revision recorded for an id is the baseline; any later comment
whose revision is not already recorded is a conflict.

A registry lives for exactly one run. The runner creates it and hands it
to the check; it is never reused or reset between runs.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Dict, FrozenSet, Set


class RevisionCheck(Enum):
    """Outcome of RevisionRegistry.check_and_register."""
    NO_CONFLICT = "no_conflict"
    CONFLICT = "conflict"

    @property
    def is_conflict(self) -> bool:
        return self is RevisionCheck.CONFLICT


class RevisionRegistry:
    """Thread-safe mapping of feature id -> set of revisions seen."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._revisions: Dict[str, Set[str]] = {}

    def check_and_register(self, feature_id: str, revision: str) -> RevisionCheck:
        """
        Check a revision against the ones recorded for feature_id, then record it.

        The check and the insert happen under one lock, so two concurrent
        calls with conflicting revisions yield exactly one CONFLICT.
        """
        with self._lock:
            seen = self._revisions.setdefault(feature_id, set())
            conflict = bool(seen) and revision not in seen
            seen.add(revision)
        return RevisionCheck.CONFLICT if conflict else RevisionCheck.NO_CONFLICT

    def revisions(self, feature_id: str) -> FrozenSet[str]:
        """Revisions recorded so far for feature_id (empty if unknown)."""
        with self._lock:
            return frozenset(self._revisions.get(feature_id, ()))

    def snapshot(self) -> Dict[str, FrozenSet[str]]:
        """Copy of the whole registry."""
        with self._lock:
            return {fid: frozenset(revs) for fid, revs in self._revisions.items()}

    def __contains__(self, feature_id: object) -> bool:
        with self._lock:
            return feature_id in self._revisions

    def __len__(self) -> int:
        with self._lock:
            return len(self._revisions)
