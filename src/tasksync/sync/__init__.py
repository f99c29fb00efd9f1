"""Offline-first synchronization between the local replica and the remote store."""

from tasksync.sync.connector import SyncConnector
from tasksync.sync.local_replica import LocalReplica
from tasksync.sync.mutations import (
    MutationKind,
    MutationTransaction,
    QueuedMutation,
    SyncCredentials,
    UploadSummary,
)
from tasksync.sync.runner import SyncRunner, SyncState
from tasksync.sync.sanitizer import sanitize_record

__all__ = [
    "LocalReplica",
    "MutationKind",
    "MutationTransaction",
    "QueuedMutation",
    "SyncConnector",
    "SyncCredentials",
    "SyncRunner",
    "SyncState",
    "UploadSummary",
    "sanitize_record",
]
