"""Replication of history, forest and reminder state across a shared space."""

from study_forest.sync.replication import (
    HttpReplicationBridge,
    InMemoryReplicationBridge,
    ReplicationBridge,
)

__all__ = ["ReplicationBridge", "InMemoryReplicationBridge", "HttpReplicationBridge"]
