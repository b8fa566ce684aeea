"""Upload orchestration: permission check, small or chunked path, file record."""

from typing import BinaryIO, Optional

from common.logging_config import get_logger
from common.types import FileMetadata, StoredFile
from gateway.backend.client import RemoteBackendClient
from gateway.exceptions import (
    FileTooLargeError,
    PartUploadFailedError,
    SessionRevokedError,
    UploadNotPermittedError,
)
from gateway.repositories.file_repository import FileRecord, FileRepository
from gateway.repositories.user_repository import UserRepository
from gateway.services.chunked_uploader import ChunkedUploader
from gateway.services.session_manager import AuthSessionManager
from gateway.utils import generate_uuid

logger = get_logger(__name__)


class UploadService:
    """
    Stores a client file on the backend and records it.

    Files within ``direct_upload_limit`` go through the single-call path.
    Larger files need the relay account to be signed in and go through
    the ChunkedUploader. No record is written when the upload fails.
    """

    def __init__(
        self,
        backend: RemoteBackendClient,
        session_manager: AuthSessionManager,
        uploader: ChunkedUploader,
        destination: str,
        direct_upload_limit: int,
        max_file_size: int,
    ):
        self.backend = backend
        self.session_manager = session_manager
        self.uploader = uploader
        self.destination = destination
        self.direct_upload_limit = direct_upload_limit
        self.max_file_size = max_file_size

    async def upload(
        self,
        source: BinaryIO,
        size_bytes: int,
        file_name: str,
        mime_type: str,
        telegram_id: int,
        caption: Optional[str] = None,
    ) -> FileRecord:
        if not UserRepository.has_upload_permission(telegram_id):
            raise UploadNotPermittedError(
                "User is not allowed to upload files", telegram_id=telegram_id
            )
        if size_bytes <= 0:
            raise ValueError("Uploaded file is empty")
        if size_bytes > self.max_file_size:
            raise FileTooLargeError(
                f"File is {size_bytes} bytes, limit is {self.max_file_size}",
                size_bytes=size_bytes,
            )

        metadata = FileMetadata(file_name=file_name, mime_type=mime_type, caption=caption)

        if size_bytes <= self.direct_upload_limit:
            logger.info(f"Uploading {file_name} ({size_bytes} bytes) via single-call path")
            stored = await self.backend.upload_small_file(self.destination, source.read(), metadata)
        else:
            stored = await self._upload_chunked(source, size_bytes, metadata)

        return FileRepository.create_file_record(
            file_id=generate_uuid(),
            telegram_id=telegram_id,
            file_name=file_name,
            stored=stored,
        )

    async def _upload_chunked(self, source: BinaryIO, size_bytes: int, metadata: FileMetadata) -> StoredFile:
        self.session_manager.require_authorized()
        logger.info(f"Uploading {metadata.file_name} ({size_bytes} bytes) via chunked path")
        try:
            return await self.uploader.upload(source, size_bytes, self.destination, metadata)
        except (SessionRevokedError, PartUploadFailedError) as e:
            if isinstance(e, SessionRevokedError) or isinstance(e.__cause__, SessionRevokedError):
                await self.session_manager.invalidate("backend revoked the session during upload")
            raise
