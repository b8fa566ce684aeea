"""Shared pytest fixtures for all tests."""

import tempfile
from pathlib import Path
from typing import Generator, List, Optional

import pytest

from cli.config import Config
from common.types import AuthorizedIdentity, FileMetadata, StoredFile
from gateway.backend.client import (
    CodeDispatch,
    CompositeFileAck,
    CompositeFileRequest,
    PartUploadRequest,
    StoredMessage,
)
from gateway.database import init_database


class FakeBackend:
    """
    In-memory RemoteBackendClient recording every call.

    Individual tests swap the ``*_error`` attributes to make a call fail.
    """

    def __init__(self, destination: str = "-1001234567890"):
        self.destination = destination
        self.parts: List[PartUploadRequest] = []
        self.composites: List[CompositeFileRequest] = []
        self.small_uploads: List[bytes] = []
        self.codes_sent: List[str] = []
        self.identity: Optional[AuthorizedIdentity] = None
        self.urls = {}
        self.part_error: Optional[Exception] = None
        self.part_errors: List[Exception] = []
        self.verify_error: Optional[Exception] = None
        self.resolve_error: Optional[Exception] = None
        self.next_document_id = 5550001
        self.closed = False

    async def upload_small_file(self, destination: str, data: bytes, metadata: FileMetadata) -> StoredFile:
        self.small_uploads.append(data)
        return StoredFile(
            external_file_handle=f"BQACAgIAAxkB{len(self.small_uploads)}",
            size_bytes=len(data),
            mime_type=metadata.mime_type,
            storage_location=f"channel:{destination}/message:{len(self.small_uploads)}",
        )

    async def upload_part(self, request: PartUploadRequest) -> None:
        if self.part_errors:
            raise self.part_errors.pop(0)
        if self.part_error is not None:
            raise self.part_error
        self.parts.append(request)

    async def register_composite_file(self, request: CompositeFileRequest) -> CompositeFileAck:
        self.composites.append(request)
        size = sum(len(p.data) for p in self.parts if p.upload_id == request.upload_id)
        document_id = self.next_document_id
        self.next_document_id += 1
        return CompositeFileAck(
            destination=request.destination,
            messages=(StoredMessage(message_id=42, document_id=document_id, size_bytes=size, mime_type=request.mime_type),),
        )

    async def resolve_retrieval_url(self, handle: str) -> str:
        if self.resolve_error is not None:
            raise self.resolve_error
        return self.urls.get(handle, f"https://cdn.example.test/{handle}")

    async def send_code(self, phone_number: str) -> CodeDispatch:
        self.codes_sent.append(phone_number)
        return CodeDispatch(phone_code_hash=f"hash-{len(self.codes_sent)}")

    async def verify_code(self, phone_number: str, phone_code_hash: str, code: str) -> AuthorizedIdentity:
        if self.verify_error is not None:
            raise self.verify_error
        self.identity = AuthorizedIdentity(user_id=777, first_name="Relay", username="relaybot")
        return self.identity

    async def get_authorized_identity(self) -> Optional[AuthorizedIdentity]:
        return self.identity

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("gateway.database.DATABASE_PATH", str(db_path))
        monkeypatch.setattr("gateway.config.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .tgrelay directory
    """
    config_dir = tmp_path / '.tgrelay'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir, monkeypatch):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    monkeypatch.delenv('TGRELAY_API_KEY', raising=False)
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path
