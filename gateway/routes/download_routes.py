"""Public download API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse
from starlette.background import BackgroundTask

from common.logging_config import get_logger
from gateway import config
from gateway import service_locator
from gateway.auth import client_ip
from gateway.exceptions import FileRecordNotFoundError, SignatureInvalidError
from gateway.repositories.download_repository import DownloadRepository
from gateway.repositories.file_repository import FileRecord, FileRepository
from gateway.schemas.common import ErrorResponse, ManualRetrievalResponse
from gateway.schemas.files import FileInfoResponse
from gateway.service_locator import require_download_gateway
from gateway.services.download_gateway import (
    DownloadGateway,
    InlineStream,
    ManualRetrieval,
    Redirect,
)

logger = get_logger(__name__)


async def throttle_downloads(request: Request) -> None:
    """
    Count the request against the client's download rate limit.

    Raises:
        RateLimitedError: If the client has used up its window
    """
    limiter = service_locator.get_download_limiter()
    if limiter is not None:
        limiter.hit(client_ip(request) or "unknown")


router = APIRouter(
    prefix="/download",
    tags=["Download"],
    dependencies=[Depends(throttle_downloads)]
)


def _get_record(file_id: str) -> FileRecord:
    record = FileRepository.get_by_id(file_id)
    if record is None:
        raise FileRecordNotFoundError(f"File {file_id} not found", file_id=file_id)
    return record


def _log_download(request: Request, file_id: str) -> None:
    DownloadRepository.record_download(
        file_id=file_id,
        ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
    )


def _render(outcome, request: Request, file_id: Optional[str]):
    if isinstance(outcome, ManualRetrieval):
        body = ManualRetrievalResponse(**outcome.to_dict())
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump())

    if file_id is not None:
        _log_download(request, file_id)

    if isinstance(outcome, Redirect):
        return RedirectResponse(outcome.url, status_code=status.HTTP_302_FOUND)
    if isinstance(outcome, InlineStream):
        # closes the upstream response even if the body iterator never starts
        return StreamingResponse(
            outcome.iter_bytes(),
            media_type=outcome.media_type,
            headers=outcome.headers,
            background=BackgroundTask(outcome.response.aclose),
        )
    raise TypeError(f"Unknown download outcome: {type(outcome).__name__}")


@router.get(
    "/redirect/{subject_id}",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def signed_redirect(
    subject_id: str,
    request: Request,
    expires: Optional[str] = Query(None),
    signature: Optional[str] = Query(None),
    gateway: DownloadGateway = Depends(require_download_gateway)
):
    """
    Redirect to the backend retrieval URL of a file.

    Parameters:
        - subject_id: File id, or a backend-native file handle
        - expires: Link expiry in epoch milliseconds
        - signature: HMAC-SHA256 hex signature

    Backend-native handles are redirected without a signature: the handle
    already grants access on the backend side.

    Returns:
        - 302 to the backend retrieval URL
        - 200 with manual retrieval instructions if the backend lookup fails

    Raises:
        - 403: Missing, malformed, invalid or expired signature
        - 429: Too many download requests from this client
        - 404: File not found
    """
    if gateway.is_backend_handle(subject_id):
        logger.info("Direct-handle redirect requested")
        return _render(await gateway.direct_handle(subject_id), request, None)

    if expires is None or not signature:
        raise SignatureInvalidError("Missing download signature", file_id=subject_id)

    try:
        expires_at_ms = int(expires)
    except ValueError:
        raise SignatureInvalidError("Malformed download expiry", file_id=subject_id)

    bound_ip = client_ip(request) if config.BIND_CLIENT_IP else None
    gateway.authorize(subject_id, expires_at_ms, signature, bound_ip)

    record = _get_record(subject_id)
    outcome = await gateway.redirect(record.stored, record.file_id, record.file_name)
    return _render(outcome, request, record.file_id)


@router.get("/{file_id}/info", response_model=FileInfoResponse)
async def file_info(file_id: str):
    """
    Public information about a stored file.

    Raises:
        - 404: File not found
    """
    record = _get_record(file_id)
    return FileInfoResponse(
        file_id=record.file_id,
        file_name=record.file_name,
        mime_type=record.stored.mime_type,
        size_bytes=record.stored.size_bytes,
        download_count=DownloadRepository.count_for_file(file_id),
        uploaded_at=record.created_at,
    )


@router.get(
    "/{file_id}",
    responses={200: {"model": ManualRetrievalResponse}, 404: {"model": ErrorResponse}}
)
async def download_file(
    file_id: str,
    request: Request,
    gateway: DownloadGateway = Depends(require_download_gateway)
):
    """
    Download a file by file_id.

    Returns:
        - StreamingResponse for files up to the small-file threshold
        - 302 to the backend for larger files when the relay account is signed in
        - 200 with manual retrieval instructions otherwise

    Raises:
        - 404: File not found
    """
    record = _get_record(file_id)
    outcome = await gateway.download(record.stored, record.file_id, record.file_name)
    return _render(outcome, request, record.file_id)
