"""
The client module provides the interface to the cluster holding Plant objects
and the objects managed for them.

- Uses NamedResource as the key for all objects.
- Returns independent copies so callers never share mutable state.
- Notifies listeners about object and status changes.

The in-memory implementation backs the command line tool and the tests.
"""

from .client import Client, ClientEvent
from .in_memory import InMemoryClient
from .simulator import ReadinessSimulator

__all__ = [
    "Client",
    "ClientEvent",
    "InMemoryClient",
    "ReadinessSimulator",
]
