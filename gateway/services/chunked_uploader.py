"""Part-by-part upload of large files to the backend."""

import asyncio
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Iterator, Optional, Tuple

from common.constants import (
    BIG_FILE_THRESHOLD_BYTES,
    MAX_FILE_PARTS,
    MAX_PART_SIZE_BYTES,
    MTPROTO_HANDLE_SCHEME,
    PART_SIZE_ALIGNMENT_BYTES,
    PART_SIZE_BYTES,
    UPLOAD_ID_BITS,
)
from common.logging_config import get_logger
from common.types import FileMetadata, StoredFile
from gateway.backend.client import (
    CompositeFileRequest,
    PartUploadRequest,
    RemoteBackendClient,
    retrieval_hint_for,
    storage_location_for,
)
from gateway.exceptions import (
    BackendRejectedError,
    CommitIncompleteError,
    FileTooLargeError,
    PartOrderError,
    PartUploadFailedError,
    UploadIdCollisionError,
)

logger = get_logger(__name__)


class UploadState(Enum):
    IDLE = "idle"
    PARTS_UPLOADING = "parts_uploading"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = (UploadState.DONE, UploadState.FAILED)


@dataclass
class UploadSession:
    """
    In-memory state of one chunked upload. Discarded after commit or abandon.
    """
    upload_id: int
    total_size: int
    part_size: int
    total_parts: int
    parts_acknowledged: int = 0
    state: UploadState = UploadState.IDLE

    @property
    def big(self) -> bool:
        return self.total_size > BIG_FILE_THRESHOLD_BYTES

    @property
    def is_complete(self) -> bool:
        return self.parts_acknowledged == self.total_parts

    def expected_part_length(self, part_index: int) -> int:
        if part_index < self.total_parts - 1:
            return self.part_size
        return self.total_size - self.part_size * (self.total_parts - 1)


def generate_upload_id() -> int:
    """
    Random positive upload id that fits a signed 32-bit field.
    """
    return secrets.randbits(UPLOAD_ID_BITS) or 1


def validate_part_size(part_size: int) -> None:
    if part_size <= 0 or part_size > MAX_PART_SIZE_BYTES:
        raise ValueError(f"Part size must be between 1 and {MAX_PART_SIZE_BYTES} bytes, got {part_size}")
    if part_size % PART_SIZE_ALIGNMENT_BYTES != 0 or MAX_PART_SIZE_BYTES % part_size != 0:
        raise ValueError(
            f"Part size must be a multiple of {PART_SIZE_ALIGNMENT_BYTES} that divides {MAX_PART_SIZE_BYTES}, got {part_size}"
        )


class ChunkedUploader:
    """
    Drives the part upload and composite-file registration sequence.

    State machine per session:
        IDLE -> PARTS_UPLOADING -> COMMITTING -> DONE, FAILED from any non-terminal state.

    Parts are sent strictly in order and never retried here; a failed part
    fails the whole session and the caller starts a new one.
    """

    def __init__(
        self,
        backend: RemoteBackendClient,
        part_size: int = PART_SIZE_BYTES,
        id_factory: Callable[[], int] = generate_upload_id,
    ):
        validate_part_size(part_size)
        self.backend = backend
        self.part_size = part_size
        self.id_factory = id_factory

    def begin_upload(self, total_size: int, part_size: Optional[int] = None) -> UploadSession:
        """
        Start a session for total_size bytes.

        Args:
            total_size: Size of the whole file in bytes
            part_size: Override of the uploader's part size

        Returns:
            UploadSession in IDLE state

        Raises:
            ValueError: If the size or part size is invalid
            FileTooLargeError: If the file needs more parts than the backend accepts
        """
        if total_size <= 0:
            raise ValueError(f"Upload size must be positive, got {total_size}")

        part_size = part_size or self.part_size
        validate_part_size(part_size)

        total_parts = -(-total_size // part_size)
        if total_parts > MAX_FILE_PARTS:
            raise FileTooLargeError(
                f"Upload of {total_size} bytes needs {total_parts} parts, the backend accepts at most {MAX_FILE_PARTS}",
                total_parts=total_parts,
            )

        session = UploadSession(
            upload_id=self.id_factory(),
            total_size=total_size,
            part_size=part_size,
            total_parts=total_parts,
        )

        logger.info(
            f"Upload session started [upload_id={session.upload_id}] "
            f"size={total_size} parts={total_parts} big={session.big}"
        )
        return session

    async def upload_part(self, session: UploadSession, part_index: int, data: bytes) -> None:
        """
        Send one part. Parts must arrive in order 0..total_parts-1.

        Raises:
            PartOrderError: If the session is terminal or the index is out of sequence
            UploadIdCollisionError: If the backend refused the upload id
            PartUploadFailedError: On any other backend failure
        """
        if session.state in TERMINAL_STATES or session.state == UploadState.COMMITTING:
            raise PartOrderError(
                f"Session is {session.state.value}, not accepting parts",
                upload_id=session.upload_id,
                part_index=part_index,
            )
        if part_index != session.parts_acknowledged:
            raise PartOrderError(
                f"Expected part {session.parts_acknowledged}, got {part_index}",
                upload_id=session.upload_id,
                part_index=part_index,
            )

        expected = session.expected_part_length(part_index)
        if len(data) != expected:
            raise ValueError(f"Part {part_index} must be {expected} bytes, got {len(data)}")

        session.state = UploadState.PARTS_UPLOADING
        request = PartUploadRequest(
            upload_id=session.upload_id,
            part_index=part_index,
            total_parts=session.total_parts,
            data=data,
            big=session.big,
        )

        try:
            await self.backend.upload_part(request)
        except UploadIdCollisionError as e:
            session.state = UploadState.FAILED
            logger.warning(f"Upload id collision [upload_id={session.upload_id}] part={part_index}")
            raise UploadIdCollisionError(
                str(e), upload_id=session.upload_id, part_index=part_index
            ) from e
        except Exception as e:
            session.state = UploadState.FAILED
            logger.error(
                f"Part upload failed [upload_id={session.upload_id}] part={part_index}/{session.total_parts}: {e}"
            )
            raise PartUploadFailedError(
                f"Part {part_index} failed: {e}",
                part_index=part_index,
                upload_id=session.upload_id,
            ) from e

        session.parts_acknowledged += 1
        logger.debug(f"Part {part_index + 1}/{session.total_parts} acknowledged [upload_id={session.upload_id}]")

    async def commit(self, session: UploadSession, destination: str, metadata: FileMetadata) -> StoredFile:
        """
        Register the uploaded parts as one file.

        Raises:
            PartOrderError: If the session already finished or failed
            CommitIncompleteError: If parts are missing
            BackendRejectedError: If the acknowledgement carries no document
        """
        if session.state in TERMINAL_STATES:
            raise PartOrderError(f"Session is {session.state.value}, cannot commit", upload_id=session.upload_id)
        if not session.is_complete:
            raise CommitIncompleteError(
                f"{session.parts_acknowledged} of {session.total_parts} parts acknowledged",
                upload_id=session.upload_id,
            )

        session.state = UploadState.COMMITTING
        request = CompositeFileRequest(
            upload_id=session.upload_id,
            total_parts=session.total_parts,
            file_name=metadata.file_name,
            mime_type=metadata.mime_type,
            destination=destination,
            caption=metadata.caption,
            big=session.big,
        )

        try:
            ack = await self.backend.register_composite_file(request)
        except Exception:
            session.state = UploadState.FAILED
            raise

        stored = next((m for m in ack.messages if m.document_id is not None), None)
        if stored is None:
            session.state = UploadState.FAILED
            raise BackendRejectedError(
                "Backend acknowledgement did not contain a document",
                upload_id=session.upload_id,
                destination=destination,
            )

        session.state = UploadState.DONE
        logger.info(
            f"Upload committed [upload_id={session.upload_id}] document={stored.document_id} message={stored.message_id}"
        )

        return StoredFile(
            external_file_handle=f"{MTPROTO_HANDLE_SCHEME}{stored.document_id}",
            size_bytes=stored.size_bytes or session.total_size,
            mime_type=stored.mime_type or metadata.mime_type,
            storage_location=storage_location_for(ack.destination, stored.message_id),
            retrieval_hint=retrieval_hint_for(ack.destination, stored.message_id),
        )

    def abandon(self, session: UploadSession) -> None:
        if session.state not in TERMINAL_STATES:
            session.state = UploadState.FAILED
            logger.info(
                f"Upload abandoned [upload_id={session.upload_id}] "
                f"after {session.parts_acknowledged}/{session.total_parts} parts"
            )

    def _iter_parts(self, source: BinaryIO, session: UploadSession) -> Iterator[Tuple[int, bytes]]:
        for part_index in range(session.total_parts):
            data = source.read(session.expected_part_length(part_index))
            if len(data) != session.expected_part_length(part_index):
                raise PartUploadFailedError(
                    f"Source ended before part {part_index}",
                    part_index=part_index,
                    upload_id=session.upload_id,
                )
            yield part_index, data

    async def _upload_once(
        self, source: BinaryIO, total_size: int, destination: str, metadata: FileMetadata
    ) -> StoredFile:
        session = self.begin_upload(total_size)
        try:
            for part_index, data in self._iter_parts(source, session):
                await self.upload_part(session, part_index, data)
            return await self.commit(session, destination, metadata)
        except (asyncio.CancelledError, Exception):
            self.abandon(session)
            raise

    async def upload(
        self, source: BinaryIO, total_size: int, destination: str, metadata: FileMetadata
    ) -> StoredFile:
        """
        Upload a whole stream and commit it.

        An upload-id collision restarts the upload once with a fresh id;
        a second collision fails the upload.

        Args:
            source: Seekable binary stream positioned at the start of the file
            total_size: Number of bytes to read from source
            destination: Channel the file is posted to
            metadata: File name, MIME type and caption

        Returns:
            StoredFile for the committed document
        """
        start = source.tell()
        try:
            return await self._upload_once(source, total_size, destination, metadata)
        except UploadIdCollisionError as first:
            logger.warning(f"Retrying upload of {metadata.file_name} with a new upload id")
            source.seek(start)
            try:
                return await self._upload_once(source, total_size, destination, metadata)
            except UploadIdCollisionError as second:
                raise PartUploadFailedError(
                    "Upload id collided twice",
                    part_index=second.context.get("part_index", -1),
                    upload_id=second.context.get("upload_id"),
                    previous_upload_id=first.context.get("upload_id"),
                ) from second
