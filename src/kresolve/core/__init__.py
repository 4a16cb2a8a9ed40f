"""Core state and storage components."""

from kresolve.core.state import (
    ConnectionSecret,
    PublishedOutputs,
    TargetInstance,
    connection_secret_name,
)
from kresolve.core.store import FileOutputStore, InMemoryOutputStore, InstanceLookup, OutputStore

__all__ = [
    "ConnectionSecret",
    "FileOutputStore",
    "InMemoryOutputStore",
    "InstanceLookup",
    "OutputStore",
    "PublishedOutputs",
    "TargetInstance",
    "connection_secret_name",
]
