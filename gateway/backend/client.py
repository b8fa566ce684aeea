"""Capability interface to the remote storage backend and its request/response types."""

from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple, runtime_checkable

from common.types import AuthorizedIdentity, FileMetadata, StoredFile


@dataclass(frozen=True)
class PartUploadRequest:
    """One positional part of a chunked upload."""
    upload_id: int
    part_index: int
    total_parts: int
    data: bytes
    big: bool = False


@dataclass(frozen=True)
class CompositeFileRequest:
    """Registers the uploaded parts as one file posted to a destination."""
    upload_id: int
    total_parts: int
    file_name: str
    mime_type: str
    destination: str
    caption: Optional[str] = None
    big: bool = False


@dataclass(frozen=True)
class StoredMessage:
    """A message the backend created in response to a composite-file call."""
    message_id: int
    document_id: Optional[int] = None
    size_bytes: Optional[int] = None
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class CompositeFileAck:
    """Backend acknowledgement of a composite-file call."""
    destination: str
    messages: Tuple[StoredMessage, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CodeDispatch:
    """Result of asking the backend to send a sign-in code."""
    phone_code_hash: str
    delivery: Optional[str] = None
    timeout: Optional[int] = None


@runtime_checkable
class RemoteBackendClient(Protocol):
    """
    Narrow view of the messaging backend used as blob storage.

    Implementations translate transport failures into BackendUnavailableError
    and refusals into BackendRejectedError (or a subclass).
    """

    async def upload_small_file(self, destination: str, data: bytes, metadata: FileMetadata) -> StoredFile:
        """Single-call upload for files within the direct-upload limit."""
        ...

    async def upload_part(self, request: PartUploadRequest) -> None:
        """Store one part of a chunked upload."""
        ...

    async def register_composite_file(self, request: CompositeFileRequest) -> CompositeFileAck:
        """Assemble previously stored parts into a file posted to a destination."""
        ...

    async def resolve_retrieval_url(self, handle: str) -> str:
        """Temporary URL the stored file can be fetched from."""
        ...

    async def send_code(self, phone_number: str) -> CodeDispatch:
        """Dispatch a sign-in code to the relay account's phone."""
        ...

    async def verify_code(self, phone_number: str, phone_code_hash: str, code: str) -> AuthorizedIdentity:
        """Complete sign-in with a dispatched code."""
        ...

    async def get_authorized_identity(self) -> Optional[AuthorizedIdentity]:
        """The signed-in relay account, or None."""
        ...

    async def close(self) -> None:
        ...


def storage_location_for(destination: str, message_id: int) -> str:
    """
    Human-readable location of a stored message.

    Args:
        destination: Channel id (e.g. "-1001234567890") or public username
        message_id: Message id inside the channel

    Returns:
        Location string such as "channel:-1001234567890/message:42"
    """
    return f"channel:{destination}/message:{message_id}"


def retrieval_hint_for(destination: str, message_id: int) -> Optional[str]:
    """
    Link that opens the stored message in a Telegram client, if one can be built.
    """
    if destination.startswith("@"):
        return f"https://t.me/{destination[1:]}/{message_id}"
    if destination.startswith("-100") and destination[4:].isdigit():
        return f"https://t.me/c/{destination[4:]}/{message_id}"
    return None
