"""File upload and link API routes."""

import os
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from gateway import config
from gateway.auth import require_api_key
from gateway.exceptions import FileRecordNotFoundError
from gateway.repositories.file_repository import FileRepository
from gateway.schemas.files import SignedLinkResponse, UploadFileResponse
from gateway.service_locator import get_signer, require_upload_service
from gateway.services.upload_service import UploadService
from gateway.utils import guess_mime_type

router = APIRouter(prefix="/files", tags=["Files"], dependencies=[Depends(require_api_key)])


@router.post("", response_model=UploadFileResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    telegram_id: int = Form(...),
    caption: Optional[str] = Form(None),
    upload_service: UploadService = Depends(require_upload_service)
):
    """
    Store a file on the backend on behalf of a user.

    Parameters:
        - file: File to upload (multipart/form-data)
        - telegram_id: Uploading user; must have upload permission
        - caption: Optional message caption
        - X-API-Key header (required)

    Returns:
        - file_id, file_name, size_bytes, mime_type, storage_location
        - download_url: Public plain download URL

    Raises:
        - 400: Empty file
        - 403: User may not upload
        - 409: Large file while the relay account is not signed in
        - 413: File too large
        - 502: Backend rejected the upload or a part failed
        - 503: Backend unavailable
    """
    source = file.file
    source.seek(0, os.SEEK_END)
    size_bytes = source.tell()
    source.seek(0)

    if size_bytes == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty"
        )

    file_name = file.filename or "file"
    record = await upload_service.upload(
        source=source,
        size_bytes=size_bytes,
        file_name=file_name,
        mime_type=guess_mime_type(file_name, file.content_type),
        telegram_id=telegram_id,
        caption=caption,
    )

    return UploadFileResponse(
        file_id=record.file_id,
        file_name=record.file_name,
        size_bytes=record.stored.size_bytes,
        mime_type=record.stored.mime_type,
        storage_location=record.stored.storage_location,
        download_url=f"{config.PUBLIC_URL}/download/{record.file_id}",
    )


@router.post("/{file_id}/signed-link", response_model=SignedLinkResponse)
async def create_signed_link(
    file_id: str,
    client_ip: Optional[str] = Query(None),
    ttl_ms: Optional[int] = Query(None, gt=0)
):
    """
    Issue a time-limited signed redirect link for a file.

    Parameters:
        - client_ip: Address the link is bound to; required when client IP binding is on
        - ttl_ms: Link lifetime, defaults to RELAY_SIGNATURE_TTL_MS

    Raises:
        - 400: client_ip missing while binding is enabled
        - 404: File not found
        - 503: Signing secret not configured
    """
    signer = get_signer()
    if signer is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Signed links are disabled (RELAY_SIGNING_SECRET is not set)"
        )

    if FileRepository.get_by_id(file_id) is None:
        raise FileRecordNotFoundError(f"File {file_id} not found", file_id=file_id)

    if config.BIND_CLIENT_IP and not client_ip:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="client_ip is required while client IP binding is enabled"
        )

    url, token = signer.signed_redirect_url(
        config.PUBLIC_URL,
        file_id,
        ttl_ms or config.SIGNATURE_TTL,
        client_ip if config.BIND_CLIENT_IP else None,
    )
    return SignedLinkResponse(url=url, expires=token.expires_at_ms, signature=token.signature_hex)
