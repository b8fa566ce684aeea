"""Remote storage backend clients."""

from gateway.backend.client import RemoteBackendClient
from gateway.backend.telegram import TelegramBackend

__all__ = [
    "RemoteBackendClient",
    "TelegramBackend",
]
