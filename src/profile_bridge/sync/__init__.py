"""Sync engine for Profile Bridge.

This module provides identity correlation, reference rewriting, the
bounded-concurrency runner and result aggregation shared by export and
restore runs.
"""

from profile_bridge.sync.identity import EntityRecord, IdentityMap, IdentityResolver
from profile_bridge.sync.result import FailureRecord, SyncAction, SyncOutcome, SyncReport, SyncResult
from profile_bridge.sync.rewriter import ReferenceRewriter, rewrite_references
from profile_bridge.sync.runner import BoundedTaskRunner, SyncJob

__all__ = [
    "BoundedTaskRunner",
    "EntityRecord",
    "FailureRecord",
    "IdentityMap",
    "IdentityResolver",
    "ReferenceRewriter",
    "SyncAction",
    "SyncJob",
    "SyncOutcome",
    "SyncReport",
    "SyncResult",
    "rewrite_references",
]
