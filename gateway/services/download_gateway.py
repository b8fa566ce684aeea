"""Download decisions: inline stream, CDN redirect or manual retrieval instructions."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import AsyncIterator, Callable, Dict, Optional, Union
from urllib.parse import quote

import httpx

from common.constants import BACKEND_HANDLE_PREFIXES, STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from common.types import StoredFile
from gateway.backend.client import RemoteBackendClient
from gateway.exceptions import RelayException, SignatureInvalidError
from gateway.signing import SignedURLCodec

logger = get_logger(__name__)


class DownloadDecision(Enum):
    STREAM = "stream"
    REDIRECT = "redirect"
    MANUAL = "manual"


@dataclass(frozen=True)
class Redirect:
    url: str


@dataclass
class InlineStream:
    """
    An open upstream response to be relayed to the client.

    Iteration closes the upstream connection when it ends or fails. A caller
    that may never iterate must close the response itself.
    """
    response: httpx.Response
    headers: Dict[str, str] = field(default_factory=dict)
    media_type: str = "application/octet-stream"

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for piece in self.response.aiter_bytes(STREAM_PIECE_SIZE_BYTES):
                yield piece
        finally:
            await self.response.aclose()


@dataclass(frozen=True)
class ManualRetrieval:
    """
    The file exists but cannot be relayed automatically.
    """
    file_id: str
    file_name: Optional[str]
    size_bytes: Optional[int]
    mime_type: Optional[str]
    storage_location: Optional[str]
    retrieval_hint: Optional[str]
    reason: str

    def to_dict(self) -> dict:
        return {"status": "manual_retrieval", **asdict(self)}


DownloadOutcome = Union[InlineStream, Redirect, ManualRetrieval]


def content_disposition(file_name: str, disposition: str = "attachment") -> str:
    """
    Content-Disposition value with an ASCII fallback and an RFC 5987 UTF-8 name.
    """
    fallback = file_name.encode("ascii", "replace").decode("ascii").replace('"', "'").replace("?", "_")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


class DownloadGateway:
    """
    Chooses and executes the download path for a stored file.

    Files up to ``small_file_threshold`` bytes are streamed through the
    relay. Larger files are redirected to the backend's retrieval URL when
    relay capability is available, otherwise the caller gets manual
    retrieval instructions. Any backend lookup failure downgrades to manual
    retrieval rather than an error.
    """

    def __init__(
        self,
        backend: RemoteBackendClient,
        codec: Optional[SignedURLCodec],
        small_file_threshold: int,
        http_client: Optional[httpx.AsyncClient] = None,
        relay_available: Callable[[], bool] = lambda: False,
    ):
        self.backend = backend
        self.codec = codec
        self.small_file_threshold = small_file_threshold
        self.http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(30.0, read=None))
        self.relay_available = relay_available

    @staticmethod
    def is_backend_handle(identifier: str) -> bool:
        return identifier.startswith(BACKEND_HANDLE_PREFIXES)

    def classify(self, stored: StoredFile) -> DownloadDecision:
        if stored.size_bytes <= self.small_file_threshold:
            return DownloadDecision.STREAM
        if self.relay_available():
            return DownloadDecision.REDIRECT
        return DownloadDecision.MANUAL

    @staticmethod
    def _manual(stored: StoredFile, file_id: str, file_name: Optional[str], reason: str) -> ManualRetrieval:
        return ManualRetrieval(
            file_id=file_id,
            file_name=file_name,
            size_bytes=stored.size_bytes,
            mime_type=stored.mime_type,
            storage_location=stored.storage_location,
            retrieval_hint=stored.retrieval_hint,
            reason=reason,
        )

    async def _resolve(self, handle: str, file_id: str) -> Optional[str]:
        try:
            return await self.backend.resolve_retrieval_url(handle)
        except RelayException as e:
            logger.warning(f"Retrieval URL lookup failed for {file_id}: {e} ({e.code})")
            return None

    async def download(self, stored: StoredFile, file_id: str, file_name: str) -> DownloadOutcome:
        """
        Plain download entry point.

        Returns:
            InlineStream, Redirect or ManualRetrieval
        """
        decision = self.classify(stored)
        logger.info(f"Download of {file_id} size={stored.size_bytes} decision={decision.value}")

        if decision == DownloadDecision.MANUAL:
            return self._manual(stored, file_id, file_name, "file exceeds the relay size limit")

        url = await self._resolve(stored.external_file_handle, file_id)
        if url is None:
            return self._manual(stored, file_id, file_name, "backend lookup failed")

        if decision == DownloadDecision.REDIRECT:
            return Redirect(url=url)

        stream = await self._open_stream(url, stored, file_name)
        if stream is None:
            return self._manual(stored, file_id, file_name, "backend stream unavailable")
        return stream

    async def _open_stream(self, url: str, stored: StoredFile, file_name: str) -> Optional[InlineStream]:
        request = self.http_client.build_request("GET", url)
        try:
            response = await self.http_client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.warning(f"Upstream stream failed to open: {type(e).__name__}")
            return None

        if response.status_code != 200:
            logger.warning(f"Upstream stream returned {response.status_code}")
            await response.aclose()
            return None

        headers = {
            "Content-Disposition": content_disposition(file_name),
            "Content-Length": response.headers.get("content-length", str(stored.size_bytes)),
            "Cache-Control": "private, max-age=0",
        }
        return InlineStream(response=response, headers=headers, media_type=stored.mime_type)

    def authorize(self, subject_id: str, expires_at_ms: int, signature_hex: str, client_ip: Optional[str] = None) -> None:
        """
        Validate a signed link before any backend call.

        Raises:
            SignatureExpiredError: If the link has expired
            SignatureInvalidError: If the signature does not match or signing is disabled
        """
        if self.codec is None:
            raise SignatureInvalidError("Signed links are disabled", file_id=subject_id)
        self.codec.check(subject_id, expires_at_ms, signature_hex, client_ip)

    async def redirect(self, stored: StoredFile, file_id: str, file_name: str) -> Union[Redirect, ManualRetrieval]:
        """
        Resolve and redirect without proxying, regardless of size.
        """
        url = await self._resolve(stored.external_file_handle, file_id)
        if url is None:
            return self._manual(stored, file_id, file_name, "backend lookup failed")
        return Redirect(url=url)

    async def direct_handle(self, handle: str) -> Union[Redirect, ManualRetrieval]:
        """
        Redirect for a backend-native file handle, without a signature.

        The handle is itself a backend capability: whoever holds it can
        already fetch the file from the backend.
        """
        url = await self._resolve(handle, handle)
        if url is None:
            return ManualRetrieval(
                file_id=handle,
                file_name=None,
                size_bytes=None,
                mime_type=None,
                storage_location=None,
                retrieval_hint=None,
                reason="backend lookup failed",
            )
        return Redirect(url=url)

    async def close(self) -> None:
        await self.http_client.aclose()
