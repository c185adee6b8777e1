"""Client package: HTTP transport for the Mage AI API."""

from mageai_sync.client.transport import Transport
from mageai_sync.client.transport import build_api_url

__all__ = [
    "Transport",
    "build_api_url",
]
