"""Tests for the relay account sign-in state machine."""

import asyncio

import pytest

from common.types import AuthorizedIdentity
from gateway.backend.client import CodeDispatch
from gateway.exceptions import (
    AuthRequiredError,
    AuthStateError,
    BackendRejectedError,
    NoPendingCodeError,
    SessionRevokedError,
    TwoFactorUnsupportedError,
)
from gateway.services.session_manager import AuthSessionManager, AuthState


@pytest.fixture
def manager(fake_backend):
    return AuthSessionManager(fake_backend, phone_number="+15550001111")


@pytest.mark.asyncio
async def test_verify_without_code_request(manager):
    with pytest.raises(NoPendingCodeError):
        await manager.verify_code("12345")
    assert manager.state == AuthState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_code_flow_authorizes(manager, fake_backend):
    phone_code_hash = await manager.request_code()
    assert phone_code_hash == "hash-1"
    assert manager.state == AuthState.CODE_SENT

    identity = await manager.verify_code("12345")

    assert identity.user_id == 777
    assert manager.is_authorized
    assert manager.require_authorized() == identity
    assert fake_backend.codes_sent == ["+15550001111"]


@pytest.mark.asyncio
async def test_resend_replaces_hash(manager):
    await manager.request_code()
    second = await manager.request_code()

    assert second == "hash-2"
    assert manager._session.phone_code_hash == "hash-2"


@pytest.mark.asyncio
async def test_status_hides_phone_code_hash(manager):
    await manager.request_code()

    snapshot = manager.status()
    assert snapshot.state == AuthState.CODE_SENT
    assert snapshot.phone_code_hash is None


@pytest.mark.asyncio
async def test_two_factor_is_terminal_until_reset(manager, fake_backend):
    await manager.request_code()
    fake_backend.verify_error = TwoFactorUnsupportedError("password required")

    with pytest.raises(TwoFactorUnsupportedError):
        await manager.verify_code("12345")
    assert manager.state == AuthState.TWO_FACTOR_REQUIRED

    with pytest.raises(AuthStateError):
        await manager.request_code()
    with pytest.raises(AuthStateError):
        await manager.verify_code("12345")

    status = await manager.reset()
    assert status.state == AuthState.UNAUTHENTICATED

    fake_backend.verify_error = None
    await manager.request_code()
    await manager.verify_code("12345")
    assert manager.is_authorized


@pytest.mark.asyncio
async def test_rejected_code_keeps_pending_state(manager, fake_backend):
    await manager.request_code()
    fake_backend.verify_error = BackendRejectedError("PHONE_CODE_INVALID")

    with pytest.raises(BackendRejectedError):
        await manager.verify_code("00000")
    assert manager.state == AuthState.CODE_SENT


@pytest.mark.asyncio
async def test_revoked_during_sign_in_resets(manager, fake_backend):
    await manager.request_code()
    fake_backend.verify_error = SessionRevokedError("AUTH_KEY_UNREGISTERED")

    with pytest.raises(SessionRevokedError):
        await manager.verify_code("12345")
    assert manager.state == AuthState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_request_code_when_authorized_rejected(manager):
    await manager.request_code()
    await manager.verify_code("12345")

    with pytest.raises(AuthStateError):
        await manager.request_code()


@pytest.mark.asyncio
async def test_request_code_without_phone(fake_backend):
    manager = AuthSessionManager(fake_backend)

    with pytest.raises(AuthStateError):
        await manager.request_code()


def test_require_authorized_when_signed_out(manager):
    with pytest.raises(AuthRequiredError):
        manager.require_authorized()


@pytest.mark.asyncio
async def test_check_existing_picks_up_session(manager, fake_backend):
    fake_backend.identity = AuthorizedIdentity(user_id=5, username="already")

    status = await manager.check_existing()

    assert status.state == AuthState.AUTHORIZED
    assert status.authorized_identity.username == "already"


@pytest.mark.asyncio
async def test_invalidate(manager):
    await manager.request_code()
    await manager.verify_code("12345")

    await manager.invalidate("test")

    assert manager.state == AuthState.UNAUTHENTICATED
    with pytest.raises(AuthRequiredError):
        manager.require_authorized()


class SlowDispatch:
    """
    send_code/verify_code replacements that yield to the event loop.

    The first dispatch yields longest, so without serialization it would
    finish after the second one.
    """

    def __init__(self, backend):
        self.backend = backend
        self.started = []
        self.completed = []
        self.verified_with = []

    async def send_code(self, phone_number):
        number = len(self.started) + 1
        self.started.append(number)
        for _ in range(5 if number == 1 else 1):
            await asyncio.sleep(0)
        self.completed.append(number)
        return CodeDispatch(phone_code_hash=f"hash-{number}")

    async def verify_code(self, phone_number, phone_code_hash, code):
        await asyncio.sleep(0)
        self.verified_with.append(phone_code_hash)
        return AuthorizedIdentity(user_id=777, username="relaybot")


@pytest.fixture
def slow_dispatch(fake_backend, monkeypatch):
    dispatch = SlowDispatch(fake_backend)
    monkeypatch.setattr(fake_backend, "send_code", dispatch.send_code)
    monkeypatch.setattr(fake_backend, "verify_code", dispatch.verify_code)
    return dispatch


@pytest.mark.asyncio
async def test_concurrent_code_requests_run_one_at_a_time(manager, slow_dispatch):
    first, second = await asyncio.gather(manager.request_code(), manager.request_code())

    assert (first, second) == ("hash-1", "hash-2")
    assert slow_dispatch.completed == [1, 2]
    assert manager._session.phone_code_hash == "hash-2"


@pytest.mark.asyncio
async def test_verify_waits_for_inflight_code_request(manager, slow_dispatch):
    await manager.request_code()

    resent, identity = await asyncio.gather(manager.request_code(), manager.verify_code("12345"))

    assert resent == "hash-2"
    assert slow_dispatch.verified_with == ["hash-2"]
    assert identity.user_id == 777
    assert manager.is_authorized
