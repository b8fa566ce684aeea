"""Phone-code sign-in state machine for the relay account."""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from common.logging_config import get_logger, mask_phone
from common.types import AuthorizedIdentity
from gateway.backend.client import RemoteBackendClient
from gateway.exceptions import (
    AuthRequiredError,
    AuthStateError,
    NoPendingCodeError,
    SessionRevokedError,
    TwoFactorUnsupportedError,
)

logger = get_logger(__name__)


class AuthState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    CODE_SENT = "code_sent"
    AUTHORIZED = "authorized"
    TWO_FACTOR_REQUIRED = "two_factor_required"


@dataclass
class AuthSession:
    state: AuthState = AuthState.UNAUTHENTICATED
    phone_code_hash: Optional[str] = None
    authorized_identity: Optional[AuthorizedIdentity] = None


class AuthSessionManager:
    """
    Owns the single relay-account session.

    Transitions:
        UNAUTHENTICATED -> CODE_SENT -> AUTHORIZED
        CODE_SENT -> TWO_FACTOR_REQUIRED (terminal until reset)
        any -> UNAUTHENTICATED on invalidate/reset

    Every transition runs under one asyncio.Lock so concurrent send/verify
    calls cannot mix up phone code hashes.
    """

    def __init__(self, backend: RemoteBackendClient, phone_number: str = ""):
        self.backend = backend
        self.phone_number = phone_number
        self._session = AuthSession()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> AuthState:
        return self._session.state

    @property
    def is_authorized(self) -> bool:
        return self._session.state == AuthState.AUTHORIZED

    def status(self) -> AuthSession:
        """
        Snapshot of the session. The phone code hash is not included.
        """
        return replace(self._session, phone_code_hash=None)

    async def check_existing(self) -> AuthSession:
        """
        Ask the backend whether the account is already signed in.
        """
        async with self._lock:
            identity = await self.backend.get_authorized_identity()
            if identity is not None:
                self._session = AuthSession(state=AuthState.AUTHORIZED, authorized_identity=identity)
                logger.info(f"Relay account already authorized [user_id={identity.user_id}]")
            else:
                logger.info("Relay account not authorized, sign-in required")
            return self.status()

    async def request_code(self, phone_number: Optional[str] = None) -> str:
        """
        Ask the backend to send a sign-in code.

        Allowed from UNAUTHENTICATED and CODE_SENT; a re-send replaces the
        stored phone code hash.

        Returns:
            The phone code hash
        """
        async with self._lock:
            if self._session.state not in (AuthState.UNAUTHENTICATED, AuthState.CODE_SENT):
                raise AuthStateError(
                    f"Cannot request a code while {self._session.state.value}",
                    state=self._session.state.value,
                )

            phone = phone_number or self.phone_number
            if not phone:
                raise AuthStateError("No phone number configured for the relay account")
            self.phone_number = phone

            dispatch = await self.backend.send_code(phone)
            self._session = AuthSession(state=AuthState.CODE_SENT, phone_code_hash=dispatch.phone_code_hash)
            logger.info(f"Sign-in code requested for {mask_phone(phone)}")
            return dispatch.phone_code_hash

    async def verify_code(self, code: str) -> AuthorizedIdentity:
        """
        Complete sign-in with the code the account received.

        Raises:
            NoPendingCodeError: If no code was requested
            AuthStateError: If the session is authorized or awaiting a second factor
            TwoFactorUnsupportedError: If the account has a cloud password
        """
        async with self._lock:
            state = self._session.state
            if state == AuthState.UNAUTHENTICATED:
                raise NoPendingCodeError("No sign-in code has been requested")
            if state != AuthState.CODE_SENT:
                raise AuthStateError(f"Cannot verify a code while {state.value}", state=state.value)

            try:
                identity = await self.backend.verify_code(
                    self.phone_number, self._session.phone_code_hash, code
                )
            except TwoFactorUnsupportedError:
                self._session = AuthSession(state=AuthState.TWO_FACTOR_REQUIRED)
                logger.error(
                    "Relay account requires two-step verification, which is not supported. "
                    "Disable the cloud password on the account and call /auth/reset."
                )
                raise
            except SessionRevokedError:
                self._session = AuthSession()
                logger.warning("Backend rejected the session during sign-in, state reset")
                raise

            self._session = AuthSession(state=AuthState.AUTHORIZED, authorized_identity=identity)
            logger.info(f"Relay account authorized [user_id={identity.user_id}]")
            return identity

    def require_authorized(self) -> AuthorizedIdentity:
        if self._session.state != AuthState.AUTHORIZED:
            raise AuthRequiredError(
                "Relay account is not signed in; large uploads are unavailable",
                state=self._session.state.value,
            )
        return self._session.authorized_identity

    async def invalidate(self, reason: str) -> None:
        async with self._lock:
            previous = self._session.state
            self._session = AuthSession()
            logger.warning(f"Relay session invalidated ({reason}), was {previous.value}")

    async def reset(self) -> AuthSession:
        await self.invalidate("reset requested")
        return self.status()
