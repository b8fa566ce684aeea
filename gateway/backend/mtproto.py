"""MTProto client (Telethon) for the relay account: sign-in, file parts and composite files."""

import asyncio
from contextlib import contextmanager
from typing import Iterator, List, Optional, Union

from telethon import TelegramClient, events
from telethon.errors import (
    FloodWaitError,
    RPCError,
    SessionPasswordNeededError,
    UnauthorizedError,
)
from telethon.tl.functions.messages import SendMediaRequest
from telethon.tl.functions.upload import SaveBigFilePartRequest, SaveFilePartRequest
from telethon.tl.types import (
    DocumentAttributeFilename,
    InputFile,
    InputFileBig,
    InputMediaUploadedDocument,
    MessageMediaDocument,
    UpdateNewChannelMessage,
    UpdateNewMessage,
)

from common.logging_config import get_logger, mask_phone
from common.types import AuthorizedIdentity
from gateway.backend.client import (
    CodeDispatch,
    CompositeFileAck,
    CompositeFileRequest,
    PartUploadRequest,
    StoredMessage,
)
from gateway.backend.updates import UpdateChannel
from gateway.exceptions import (
    BackendRejectedError,
    BackendUnavailableError,
    SessionRevokedError,
    TwoFactorUnsupportedError,
    UploadIdCollisionError,
)

logger = get_logger(__name__)

COLLISION_ERRORS = ("FILE_ID_INVALID",)


@contextmanager
def translate_backend_errors(operation: str, **context) -> Iterator[None]:
    """
    Map Telethon and transport errors raised inside the block to relay exceptions.
    """
    try:
        yield
    except SessionPasswordNeededError as e:
        raise TwoFactorUnsupportedError(
            "The relay account has two-step verification enabled", operation=operation, **context
        ) from e
    except UnauthorizedError as e:
        raise SessionRevokedError(
            f"Backend rejected the relay session: {e.message}", operation=operation, **context
        ) from e
    except FloodWaitError as e:
        raise BackendUnavailableError(
            f"Backend rate limit, retry after {e.seconds}s", operation=operation, **context
        ) from e
    except RPCError as e:
        if e.message in COLLISION_ERRORS:
            raise UploadIdCollisionError(
                f"Backend rejected upload id: {e.message}", operation=operation, **context
            ) from e
        raise BackendRejectedError(f"{operation} failed: {e.message}", operation=operation, **context) from e
    except (asyncio.TimeoutError, OSError) as e:
        raise BackendUnavailableError(
            f"{operation} failed: {type(e).__name__}", operation=operation, **context
        ) from e


def _peer_reference(destination: str) -> Union[int, str]:
    if destination.lstrip("-").isdigit():
        return int(destination)
    return destination


def extract_stored_messages(result) -> List[StoredMessage]:
    """
    Pull the messages carrying a document out of a sendMedia result.
    """
    stored = []
    for update in getattr(result, "updates", None) or []:
        if not isinstance(update, (UpdateNewChannelMessage, UpdateNewMessage)):
            continue
        message = update.message
        media = getattr(message, "media", None)
        document = media.document if isinstance(media, MessageMediaDocument) else None
        stored.append(
            StoredMessage(
                message_id=message.id,
                document_id=getattr(document, "id", None),
                size_bytes=getattr(document, "size", None),
                mime_type=getattr(document, "mime_type", None),
            )
        )
    return stored


class MTProtoClient:
    """
    Telethon wrapper for the single relay account.

    Every backend call is bounded by ``timeout`` seconds and runs inside
    translate_backend_errors, so callers only see relay exceptions.
    """

    def __init__(
        self,
        api_id: int,
        api_hash: str,
        session: str,
        timeout: float = 30.0,
        updates: Optional[UpdateChannel] = None,
        client: Optional[TelegramClient] = None,
    ):
        self._client = client or TelegramClient(session, api_id, api_hash)
        self._timeout = timeout
        self._updates = updates
        self._connect_lock = asyncio.Lock()
        if updates is not None:
            self._client.add_event_handler(self._on_raw_update, events.Raw)

    async def _on_raw_update(self, update) -> None:
        self._updates.publish_raw(update)

    async def _ensure_connected(self) -> None:
        async with self._connect_lock:
            if self._client.is_connected():
                return
            with translate_backend_errors("connect"):
                await asyncio.wait_for(self._client.connect(), self._timeout)
            logger.info("MTProto client connected")

    async def _call(self, operation: str, awaitable, **context):
        try:
            await self._ensure_connected()
        except BaseException:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise
        with translate_backend_errors(operation, **context):
            return await asyncio.wait_for(awaitable, self._timeout)

    async def send_code(self, phone_number: str) -> CodeDispatch:
        sent = await self._call("send_code", self._client.send_code_request(phone_number))
        logger.info(f"Sign-in code dispatched to {mask_phone(phone_number)} via {type(sent.type).__name__}")
        return CodeDispatch(
            phone_code_hash=sent.phone_code_hash,
            delivery=type(sent.type).__name__,
            timeout=sent.timeout,
        )

    async def verify_code(self, phone_number: str, phone_code_hash: str, code: str) -> AuthorizedIdentity:
        user = await self._call(
            "verify_code",
            self._client.sign_in(phone=phone_number, code=code, phone_code_hash=phone_code_hash),
        )
        return self._identity(user)

    async def get_authorized_identity(self) -> Optional[AuthorizedIdentity]:
        authorized = await self._call("is_user_authorized", self._client.is_user_authorized())
        if not authorized:
            return None
        me = await self._call("get_me", self._client.get_me())
        if me is None:
            return None
        return self._identity(me)

    @staticmethod
    def _identity(user) -> AuthorizedIdentity:
        return AuthorizedIdentity(
            user_id=user.id,
            first_name=getattr(user, "first_name", None),
            username=getattr(user, "username", None),
            phone=getattr(user, "phone", None),
        )

    async def upload_part(self, request: PartUploadRequest) -> None:
        if request.big:
            rpc = SaveBigFilePartRequest(
                file_id=request.upload_id,
                file_part=request.part_index,
                file_total_parts=request.total_parts,
                bytes=request.data,
            )
        else:
            rpc = SaveFilePartRequest(
                file_id=request.upload_id,
                file_part=request.part_index,
                bytes=request.data,
            )

        accepted = await self._call(
            "upload_part",
            self._client(rpc),
            upload_id=request.upload_id,
            part_index=request.part_index,
        )
        if not accepted:
            raise BackendRejectedError(
                "Backend did not acknowledge part",
                upload_id=request.upload_id,
                part_index=request.part_index,
            )

    async def register_composite_file(self, request: CompositeFileRequest) -> CompositeFileAck:
        if request.big:
            input_file = InputFileBig(id=request.upload_id, parts=request.total_parts, name=request.file_name)
        else:
            input_file = InputFile(
                id=request.upload_id,
                parts=request.total_parts,
                name=request.file_name,
                md5_checksum="",
            )

        media = InputMediaUploadedDocument(
            file=input_file,
            mime_type=request.mime_type,
            attributes=[DocumentAttributeFilename(file_name=request.file_name)],
        )

        peer = await self._call(
            "resolve_destination",
            self._client.get_input_entity(_peer_reference(request.destination)),
            destination=request.destination,
        )
        result = await self._call(
            "register_composite_file",
            self._client(SendMediaRequest(peer=peer, media=media, message=request.caption or "")),
            upload_id=request.upload_id,
        )

        if self._updates is not None:
            self._updates.publish_raw(result)

        return CompositeFileAck(
            destination=request.destination,
            messages=tuple(extract_stored_messages(result)),
        )

    async def close(self) -> None:
        if self._client.is_connected():
            await self._client.disconnect()
            logger.info("MTProto client disconnected")
