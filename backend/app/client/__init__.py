"""
Python client for the HomeManager API with a realtime-invalidated cache.
"""

from app.client.invalidation import INVALIDATION_TABLE, QueryCache, invalidation_targets
from app.client.sync import HomeManagerClient, RealtimeAuthError, RealtimeConnectionError

__all__ = [
    "INVALIDATION_TABLE",
    "QueryCache",
    "invalidation_targets",
    "HomeManagerClient",
    "RealtimeAuthError",
    "RealtimeConnectionError",
]
