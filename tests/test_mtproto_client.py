"""Tests for the MTProto wrapper against a stand-in Telethon client."""

import asyncio
from types import SimpleNamespace

import pytest
from telethon.errors import (
    AuthKeyUnregisteredError,
    FloodWaitError,
    PhoneCodeInvalidError,
    RPCError,
    SessionPasswordNeededError,
)
from telethon.tl.functions.messages import SendMediaRequest
from telethon.tl.functions.upload import SaveBigFilePartRequest, SaveFilePartRequest
from telethon.tl.types import InputFile, InputFileBig, MessageMediaDocument, UpdateNewChannelMessage

from gateway.backend.client import CompositeFileRequest, PartUploadRequest
from gateway.backend.mtproto import MTProtoClient, extract_stored_messages, translate_backend_errors
from gateway.backend.telegram import TelegramBackend
from gateway.backend.updates import Batch, UpdateChannel
from gateway.exceptions import (
    BackendRejectedError,
    BackendUnavailableError,
    RetrievalUnsupportedError,
    SessionRevokedError,
    TwoFactorUnsupportedError,
    UploadIdCollisionError,
)


def send_media_result(document_id: int = 999):
    message = SimpleNamespace(
        id=42,
        media=MessageMediaDocument(document=SimpleNamespace(id=document_id, size=5000, mime_type="video/mp4")),
    )
    return SimpleNamespace(updates=[UpdateNewChannelMessage(message=message, pts=1, pts_count=1)])


class FakeTelethon:
    def __init__(self):
        self.connected = False
        self.requests = []
        self.sign_in_error = None
        self.rpc_result = True
        self.authorized = False
        self.peer = None

    def is_connected(self):
        return self.connected

    async def connect(self):
        self.connected = True

    async def disconnect(self):
        self.connected = False

    def add_event_handler(self, callback, event):
        self.handler = callback

    async def send_code_request(self, phone):
        return SimpleNamespace(phone_code_hash="hash-1", type=SimpleNamespace(), timeout=60)

    async def sign_in(self, phone, code, phone_code_hash):
        if self.sign_in_error is not None:
            raise self.sign_in_error
        self.authorized = True
        return SimpleNamespace(id=777, first_name="Relay", username="relaybot", phone="15550001111")

    async def is_user_authorized(self):
        return self.authorized

    async def get_me(self):
        return SimpleNamespace(id=777, first_name="Relay", username="relaybot", phone="15550001111")

    async def get_input_entity(self, peer):
        self.peer = peer
        return "input-peer"

    async def __call__(self, rpc):
        self.requests.append(rpc)
        if isinstance(rpc, SendMediaRequest):
            return send_media_result()
        return self.rpc_result


@pytest.fixture
def telethon():
    return FakeTelethon()


@pytest.fixture
def mtproto(telethon):
    return MTProtoClient(api_id=1, api_hash="hash", session="unused", client=telethon)


class TestErrorTranslation:

    def translate(self, error):
        with translate_backend_errors("op", part_index=3):
            raise error

    def test_password_needed(self):
        with pytest.raises(TwoFactorUnsupportedError):
            self.translate(SessionPasswordNeededError(request=None))

    def test_unauthorized(self):
        with pytest.raises(SessionRevokedError):
            self.translate(AuthKeyUnregisteredError(request=None))

    def test_flood_wait(self):
        with pytest.raises(BackendUnavailableError):
            self.translate(FloodWaitError(request=None, capture=30))

    def test_collision(self):
        with pytest.raises(UploadIdCollisionError) as exc_info:
            self.translate(RPCError(request=None, message="FILE_ID_INVALID", code=400))
        assert exc_info.value.context["part_index"] == 3

    def test_other_rpc_error(self):
        with pytest.raises(BackendRejectedError) as exc_info:
            self.translate(PhoneCodeInvalidError(request=None))
        assert not isinstance(exc_info.value, UploadIdCollisionError)

    def test_timeout(self):
        with pytest.raises(BackendUnavailableError):
            self.translate(asyncio.TimeoutError())

    def test_connection_error(self):
        with pytest.raises(BackendUnavailableError):
            self.translate(ConnectionResetError())


class TestSignIn:

    @pytest.mark.asyncio
    async def test_send_and_verify(self, mtproto, telethon):
        dispatch = await mtproto.send_code("+15550001111")
        identity = await mtproto.verify_code("+15550001111", dispatch.phone_code_hash, "12345")

        assert telethon.connected
        assert dispatch.phone_code_hash == "hash-1"
        assert identity.user_id == 777
        assert identity.username == "relaybot"

    @pytest.mark.asyncio
    async def test_two_factor(self, mtproto, telethon):
        telethon.sign_in_error = SessionPasswordNeededError(request=None)

        with pytest.raises(TwoFactorUnsupportedError):
            await mtproto.verify_code("+15550001111", "hash-1", "12345")

    @pytest.mark.asyncio
    async def test_authorized_identity(self, mtproto, telethon):
        assert await mtproto.get_authorized_identity() is None

        telethon.authorized = True
        identity = await mtproto.get_authorized_identity()
        assert identity.user_id == 777


class TestUploads:

    @pytest.mark.asyncio
    async def test_small_part_request(self, mtproto, telethon):
        await mtproto.upload_part(PartUploadRequest(upload_id=5, part_index=0, total_parts=2, data=b"abc"))

        rpc = telethon.requests[0]
        assert isinstance(rpc, SaveFilePartRequest)
        assert rpc.file_id == 5
        assert rpc.file_part == 0

    @pytest.mark.asyncio
    async def test_big_part_request(self, mtproto, telethon):
        await mtproto.upload_part(PartUploadRequest(upload_id=5, part_index=1, total_parts=30, data=b"abc", big=True))

        rpc = telethon.requests[0]
        assert isinstance(rpc, SaveBigFilePartRequest)
        assert rpc.file_total_parts == 30

    @pytest.mark.asyncio
    async def test_unacknowledged_part(self, mtproto, telethon):
        telethon.rpc_result = False

        with pytest.raises(BackendRejectedError):
            await mtproto.upload_part(PartUploadRequest(upload_id=5, part_index=0, total_parts=1, data=b"abc"))

    @pytest.mark.asyncio
    async def test_register_composite_file(self, telethon):
        updates = UpdateChannel()
        mtproto = MTProtoClient(api_id=1, api_hash="hash", session="unused", client=telethon, updates=updates)

        ack = await mtproto.register_composite_file(CompositeFileRequest(
            upload_id=5,
            total_parts=3,
            file_name="movie.mp4",
            mime_type="video/mp4",
            destination="-1001234567890",
            caption="weekly",
        ))

        assert telethon.peer == -1001234567890
        rpc = telethon.requests[0]
        assert isinstance(rpc.media.file, InputFile)
        assert rpc.message == "weekly"
        assert ack.messages[0].document_id == 999
        assert ack.messages[0].message_id == 42
        assert updates.pending() == 0

    @pytest.mark.asyncio
    async def test_register_big_file(self, mtproto, telethon):
        await mtproto.register_composite_file(CompositeFileRequest(
            upload_id=5,
            total_parts=30,
            file_name="movie.mp4",
            mime_type="video/mp4",
            destination="@relaychannel",
            big=True,
        ))

        assert telethon.peer == "@relaychannel"
        assert isinstance(telethon.requests[0].media.file, InputFileBig)


def test_extract_stored_messages():
    messages = extract_stored_messages(send_media_result(1234))

    assert len(messages) == 1
    assert messages[0].document_id == 1234
    assert messages[0].size_bytes == 5000


def test_extract_ignores_other_updates():
    assert extract_stored_messages(SimpleNamespace(updates=[object()])) == []
    assert extract_stored_messages(Batch()) == []


class TestTelegramBackend:

    @pytest.mark.asyncio
    async def test_missing_halves(self):
        backend = TelegramBackend(bot_api=None, mtproto=None)

        with pytest.raises(BackendUnavailableError):
            await backend.send_code("+15550001111")
        with pytest.raises(BackendUnavailableError):
            await backend.resolve_retrieval_url("BQACAgIAAxkBAAIB")
        assert await backend.get_authorized_identity() is None

    @pytest.mark.asyncio
    async def test_mtproto_documents_have_no_retrieval_url(self, mtproto):
        backend = TelegramBackend(bot_api=None, mtproto=mtproto)

        with pytest.raises(RetrievalUnsupportedError):
            await backend.resolve_retrieval_url("tg://document?id=1")
