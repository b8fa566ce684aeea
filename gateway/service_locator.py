"""Service locator for the gateway's long-lived components."""

from typing import Optional

from gateway.backend.client import RemoteBackendClient
from gateway.backend.updates import UpdateChannel
from gateway.exceptions import BackendUnavailableError
from gateway.services.download_gateway import DownloadGateway
from gateway.services.rate_limiter import SlidingWindowRateLimiter
from gateway.services.session_manager import AuthSessionManager
from gateway.services.upload_service import UploadService
from gateway.signing import SignedURLCodec

_backend: Optional[RemoteBackendClient] = None
_session_manager: Optional[AuthSessionManager] = None
_download_gateway: Optional[DownloadGateway] = None
_upload_service: Optional[UploadService] = None
_signer: Optional[SignedURLCodec] = None
_update_channel: Optional[UpdateChannel] = None
_download_limiter: Optional[SlidingWindowRateLimiter] = None


def set_backend(backend: Optional[RemoteBackendClient]):
    """Set global backend client instance"""
    global _backend
    _backend = backend


def get_backend() -> Optional[RemoteBackendClient]:
    """Get global backend client instance"""
    return _backend


def set_session_manager(manager: Optional[AuthSessionManager]):
    """Set global relay session manager instance"""
    global _session_manager
    _session_manager = manager


def get_session_manager() -> Optional[AuthSessionManager]:
    """Get global relay session manager instance"""
    return _session_manager


def set_download_gateway(gateway: Optional[DownloadGateway]):
    """Set global download gateway instance"""
    global _download_gateway
    _download_gateway = gateway


def get_download_gateway() -> Optional[DownloadGateway]:
    """Get global download gateway instance"""
    return _download_gateway


def set_upload_service(service: Optional[UploadService]):
    """Set global upload service instance"""
    global _upload_service
    _upload_service = service


def get_upload_service() -> Optional[UploadService]:
    """Get global upload service instance"""
    return _upload_service


def set_signer(signer: Optional[SignedURLCodec]):
    """Set global signed URL codec, None when signing is disabled"""
    global _signer
    _signer = signer


def get_signer() -> Optional[SignedURLCodec]:
    """Get global signed URL codec"""
    return _signer


def set_update_channel(channel: Optional[UpdateChannel]):
    """Set global backend update channel"""
    global _update_channel
    _update_channel = channel


def get_update_channel() -> Optional[UpdateChannel]:
    """Get global backend update channel"""
    return _update_channel


def set_download_limiter(limiter: Optional[SlidingWindowRateLimiter]):
    """Set global download rate limiter, None disables throttling"""
    global _download_limiter
    _download_limiter = limiter


def get_download_limiter() -> Optional[SlidingWindowRateLimiter]:
    """Get global download rate limiter"""
    return _download_limiter


def reset():
    """Clear every registered component"""
    set_backend(None)
    set_session_manager(None)
    set_download_gateway(None)
    set_upload_service(None)
    set_signer(None)
    set_update_channel(None)
    set_download_limiter(None)


def require_session_manager() -> AuthSessionManager:
    """FastAPI dependency for the relay session manager"""
    if _session_manager is None:
        raise BackendUnavailableError("Relay session manager is not initialized")
    return _session_manager


def require_download_gateway() -> DownloadGateway:
    """FastAPI dependency for the download gateway"""
    if _download_gateway is None:
        raise BackendUnavailableError("Download gateway is not initialized")
    return _download_gateway


def require_upload_service() -> UploadService:
    """FastAPI dependency for the upload service"""
    if _upload_service is None:
        raise BackendUnavailableError("Upload service is not initialized")
    return _upload_service
