"""HMAC-signed, time-limited download links."""

import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import quote, urlencode

from common.logging_config import get_logger
from gateway.exceptions import SignatureExpiredError, SignatureInvalidError

logger = get_logger(__name__)


def epoch_ms() -> int:
    """
    Current wall-clock time in milliseconds since the epoch.
    """
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SignedToken:
    """
    Self-contained download authorization. Never stored.
    """
    subject_id: str
    expires_at_ms: int
    signature_hex: str
    client_ip: Optional[str] = None


class SignedURLCodec:
    """
    Issues and verifies HMAC-SHA256 download tokens.

    The signed string is ``subject_id|expires_at_ms`` with ``|client_ip``
    appended when the link is bound to a client address.
    """

    def __init__(self, secret: str, clock: Callable[[], int] = epoch_ms):
        """
        Args:
            secret: HMAC key
            clock: Returns the current time in epoch milliseconds
        """
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self._key = secret.encode("utf-8")
        self._clock = clock

    @staticmethod
    def canonical_string(subject_id: str, expires_at_ms: int, client_ip: Optional[str] = None) -> str:
        parts = [subject_id, str(expires_at_ms)]
        if client_ip:
            parts.append(client_ip)
        return "|".join(parts)

    def _sign(self, subject_id: str, expires_at_ms: int, client_ip: Optional[str]) -> str:
        message = self.canonical_string(subject_id, expires_at_ms, client_ip).encode("utf-8")
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def issue(self, subject_id: str, ttl_ms: int, client_ip: Optional[str] = None) -> SignedToken:
        """
        Create a token for subject_id valid for ttl_ms milliseconds from now.

        Args:
            subject_id: Identifier the link grants access to (a file id)
            ttl_ms: Lifetime in milliseconds
            client_ip: Optional client address to bind the link to

        Returns:
            SignedToken with absolute expiry and hex signature
        """
        expires_at_ms = self._clock() + ttl_ms
        signature = self._sign(subject_id, expires_at_ms, client_ip)
        return SignedToken(
            subject_id=subject_id,
            expires_at_ms=expires_at_ms,
            signature_hex=signature,
            client_ip=client_ip,
        )

    def check(
        self,
        subject_id: str,
        expires_at_ms: int,
        signature_hex: str,
        client_ip: Optional[str] = None,
    ) -> None:
        """
        Validate a token, raising on failure.

        Raises:
            SignatureExpiredError: If the verifier's clock is past expires_at_ms
            SignatureInvalidError: If the signature is malformed or does not match
        """
        if self._clock() > expires_at_ms:
            logger.warning(f"Signed link expired for subject {subject_id}")
            raise SignatureExpiredError("Download link has expired", file_id=subject_id)

        try:
            bytes.fromhex(signature_hex)
            provided = signature_hex.encode("ascii")
        except (AttributeError, TypeError, ValueError):
            logger.warning(f"Malformed signature for subject {subject_id}")
            raise SignatureInvalidError("Invalid download signature", file_id=subject_id)

        expected = self._sign(subject_id, expires_at_ms, client_ip).encode("ascii")

        # compare_digest returns False on length mismatch
        if not hmac.compare_digest(provided, expected):
            logger.warning(f"Invalid signature for subject {subject_id}")
            raise SignatureInvalidError("Invalid download signature", file_id=subject_id)

    def verify(
        self,
        subject_id: str,
        expires_at_ms: int,
        signature_hex: str,
        client_ip: Optional[str] = None,
    ) -> bool:
        """
        Boolean form of check(). Never raises.
        """
        try:
            self.check(subject_id, expires_at_ms, signature_hex, client_ip)
        except SignatureInvalidError:
            return False
        return True

    def signed_redirect_url(
        self,
        base_url: str,
        subject_id: str,
        ttl_ms: int,
        client_ip: Optional[str] = None,
    ) -> tuple[str, SignedToken]:
        """
        Build the public signed redirect URL for subject_id.

        Returns:
            Tuple of (url, token)
        """
        token = self.issue(subject_id, ttl_ms, client_ip)
        query = urlencode({"expires": token.expires_at_ms, "signature": token.signature_hex})
        url = f"{base_url.rstrip('/')}/download/redirect/{quote(subject_id, safe='')}?{query}"
        return url, token
