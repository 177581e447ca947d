"""API client layer for orgpipe.

Async HTTP clients for the external data API queried once per entity.
"""

from orgpipe.clients.base import BaseAsyncClient
from orgpipe.clients.data_api import DataAPIClient

__all__ = [
    "BaseAsyncClient",
    "DataAPIClient",
]
