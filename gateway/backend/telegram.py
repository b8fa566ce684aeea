"""Telegram backend: Bot API for the small-file path, MTProto for parts and sign-in."""

from typing import Optional

from common.constants import MTPROTO_HANDLE_SCHEME
from common.logging_config import get_logger
from common.types import AuthorizedIdentity, FileMetadata, StoredFile
from gateway.backend.bot_api import BotApiClient
from gateway.backend.client import (
    CodeDispatch,
    CompositeFileAck,
    CompositeFileRequest,
    PartUploadRequest,
)
from gateway.backend.mtproto import MTProtoClient
from gateway.exceptions import BackendUnavailableError, RetrievalUnsupportedError

logger = get_logger(__name__)


class TelegramBackend:
    """
    RemoteBackendClient over both Telegram APIs.

    Either half may be missing from configuration; calls that need the
    missing half raise BackendUnavailableError.
    """

    def __init__(self, bot_api: Optional[BotApiClient], mtproto: Optional[MTProtoClient]):
        self._bot_api = bot_api
        self._mtproto = mtproto

    @property
    def has_mtproto(self) -> bool:
        return self._mtproto is not None

    def _require_bot_api(self) -> BotApiClient:
        if self._bot_api is None:
            raise BackendUnavailableError("Bot API is not configured (TELEGRAM_BOT_TOKEN)")
        return self._bot_api

    def _require_mtproto(self) -> MTProtoClient:
        if self._mtproto is None:
            raise BackendUnavailableError("MTProto is not configured (TELEGRAM_API_ID/TELEGRAM_API_HASH)")
        return self._mtproto

    async def upload_small_file(self, destination: str, data: bytes, metadata: FileMetadata) -> StoredFile:
        return await self._require_bot_api().upload_small_file(destination, data, metadata)

    async def upload_part(self, request: PartUploadRequest) -> None:
        await self._require_mtproto().upload_part(request)

    async def register_composite_file(self, request: CompositeFileRequest) -> CompositeFileAck:
        return await self._require_mtproto().register_composite_file(request)

    async def resolve_retrieval_url(self, handle: str) -> str:
        if handle.startswith(MTPROTO_HANDLE_SCHEME):
            raise RetrievalUnsupportedError("Documents uploaded in parts have no public retrieval URL", handle=handle)
        return await self._require_bot_api().resolve_retrieval_url(handle)

    async def send_code(self, phone_number: str) -> CodeDispatch:
        return await self._require_mtproto().send_code(phone_number)

    async def verify_code(self, phone_number: str, phone_code_hash: str, code: str) -> AuthorizedIdentity:
        return await self._require_mtproto().verify_code(phone_number, phone_code_hash, code)

    async def get_authorized_identity(self) -> Optional[AuthorizedIdentity]:
        if self._mtproto is None:
            return None
        return await self._mtproto.get_authorized_identity()

    async def close(self) -> None:
        if self._bot_api is not None:
            await self._bot_api.close()
        if self._mtproto is not None:
            await self._mtproto.close()
        logger.info("Telegram backend closed")
