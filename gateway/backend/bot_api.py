"""Telegram Bot HTTP API client: single-call uploads and file retrieval URLs."""

from typing import Any, Dict, Optional

import httpx

from common.constants import MTPROTO_HANDLE_SCHEME, TELEGRAM_API_URL
from common.logging_config import get_logger
from common.types import FileMetadata, StoredFile
from gateway.backend.client import retrieval_hint_for, storage_location_for
from gateway.exceptions import (
    BackendRejectedError,
    BackendUnavailableError,
    RetrievalUnsupportedError,
)

logger = get_logger(__name__)


class BotApiClient:
    """
    httpx client for the Bot API.

    Covers the small-file path: sendDocument for uploads within the
    direct-upload limit and getFile for retrieval URLs of files the Bot API
    can serve.
    """

    def __init__(
        self,
        bot_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        api_url: str = TELEGRAM_API_URL,
        timeout: float = 30.0,
    ):
        self._token = bot_token
        self._api_url = api_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def _method_url(self, method: str) -> str:
        return f"{self._api_url}/bot{self._token}/{method}"

    def file_url(self, file_path: str) -> str:
        return f"{self._api_url}/file/bot{self._token}/{file_path}"

    async def _call(self, method: str, **kwargs) -> Dict[str, Any]:
        """
        Invoke a Bot API method and return its ``result`` payload.

        Raises:
            BackendUnavailableError: On network errors, timeouts or 5xx responses
            BackendRejectedError: When the API answers ``ok: false``
        """
        try:
            response = await self._http.post(self._method_url(method), **kwargs)
        except httpx.TimeoutException as e:
            raise BackendUnavailableError(f"Bot API {method} timed out", method=method) from e
        except httpx.HTTPError as e:
            raise BackendUnavailableError(f"Bot API {method} failed: {type(e).__name__}", method=method) from e

        if response.status_code >= 500:
            raise BackendUnavailableError(
                f"Bot API {method} returned {response.status_code}",
                method=method,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise BackendRejectedError(f"Bot API {method} returned a non-JSON body", method=method) from e

        if not payload.get("ok"):
            description = payload.get("description", "unknown error")
            logger.warning(f"Bot API {method} rejected: {description} (error_code={payload.get('error_code')})")
            if "too big" in description.lower():
                raise RetrievalUnsupportedError(description, method=method)
            raise BackendRejectedError(description, method=method, error_code=payload.get("error_code"))

        return payload.get("result") or {}

    async def upload_small_file(self, destination: str, data: bytes, metadata: FileMetadata) -> StoredFile:
        """
        Upload a file with one sendDocument call.

        Returns:
            StoredFile whose handle is the Bot API file_id
        """
        form = {"chat_id": destination, "disable_content_type_detection": "true"}
        if metadata.caption:
            form["caption"] = metadata.caption

        result = await self._call(
            "sendDocument",
            data=form,
            files={"document": (metadata.file_name, data, metadata.mime_type)},
        )

        document = result.get("document")
        message_id = result.get("message_id")
        if not document or not document.get("file_id") or message_id is None:
            raise BackendRejectedError("sendDocument response did not contain a document", destination=destination)

        logger.info(f"Uploaded {metadata.file_name} via Bot API [message_id={message_id}]")

        return StoredFile(
            external_file_handle=document["file_id"],
            size_bytes=document.get("file_size", len(data)),
            mime_type=document.get("mime_type") or metadata.mime_type,
            storage_location=storage_location_for(destination, message_id),
            retrieval_hint=retrieval_hint_for(destination, message_id),
        )

    async def resolve_retrieval_url(self, handle: str) -> str:
        """
        Resolve a Bot API file_id to its temporary download URL via getFile.

        Raises:
            RetrievalUnsupportedError: For MTProto document handles or files over the getFile limit
        """
        if handle.startswith(MTPROTO_HANDLE_SCHEME):
            raise RetrievalUnsupportedError("Bot API cannot serve MTProto documents", handle=handle)

        result = await self._call("getFile", data={"file_id": handle})
        file_path = result.get("file_path")
        if not file_path:
            raise RetrievalUnsupportedError("getFile returned no file_path", handle=handle)
        return self.file_url(file_path)

    async def close(self) -> None:
        await self._http.aclose()
