"""Remote client package.

Provides the ``DirectusClient`` Protocol and the async HTTP implementation.

Usage:
    from directus_sync.adapters import DirectusClient, AsyncDirectusAdapter
"""

from directus_sync.adapters.base import DirectusClient
from directus_sync.adapters.http import AsyncDirectusAdapter, collection_endpoint

__all__ = [
    "DirectusClient",
    "AsyncDirectusAdapter",
    "collection_endpoint",
]
