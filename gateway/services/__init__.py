"""Service layer for business logic."""

from gateway.services.chunked_uploader import ChunkedUploader
from gateway.services.download_gateway import DownloadGateway
from gateway.services.rate_limiter import SlidingWindowRateLimiter
from gateway.services.session_manager import AuthSessionManager
from gateway.services.upload_service import UploadService

__all__ = [
    "ChunkedUploader",
    "DownloadGateway",
    "SlidingWindowRateLimiter",
    "AuthSessionManager",
    "UploadService",
]
