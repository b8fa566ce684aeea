"""Tests for gateway API endpoints."""

from urllib.parse import urlparse

import httpx
import pytest
from fastapi.testclient import TestClient

from common.types import StoredFile
from gateway import service_locator
from gateway.exceptions import TwoFactorUnsupportedError
from gateway.main import app
from gateway.repositories.file_repository import FileRepository
from gateway.repositories.user_repository import UserRepository
from gateway.routes.download_routes import _render
from gateway.services.chunked_uploader import ChunkedUploader
from gateway.services.download_gateway import DownloadGateway, InlineStream
from gateway.services.rate_limiter import RateLimit, SlidingWindowRateLimiter
from gateway.services.session_manager import AuthSessionManager
from gateway.services.upload_service import UploadService
from gateway.signing import SignedURLCodec

API_KEY = "test-admin-key"
HEADERS = {"X-API-Key": API_KEY}
THRESHOLD = 1024


def upstream(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"relayed bytes")


@pytest.fixture
def client(fake_backend, test_db, monkeypatch):
    """
    TestClient with services wired to the in-memory backend.
    """
    monkeypatch.setattr("gateway.config.ADMIN_API_KEY", API_KEY)
    monkeypatch.setattr("gateway.config.BIND_CLIENT_IP", False)
    monkeypatch.setattr("gateway.config.PUBLIC_URL", "http://relay.test")

    signer = SignedURLCodec("endpoint-secret")
    manager = AuthSessionManager(fake_backend, phone_number="+15550001111")
    service_locator.set_backend(fake_backend)
    service_locator.set_signer(signer)
    service_locator.set_session_manager(manager)
    service_locator.set_download_gateway(DownloadGateway(
        backend=fake_backend,
        codec=signer,
        small_file_threshold=THRESHOLD,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
        relay_available=lambda: manager.is_authorized,
    ))
    service_locator.set_upload_service(UploadService(
        backend=fake_backend,
        session_manager=manager,
        uploader=ChunkedUploader(fake_backend, part_size=1024),
        destination="-1001234567890",
        direct_upload_limit=2048,
        max_file_size=16 * 1024,
    ))

    with TestClient(app) as test_client:
        yield test_client

    service_locator.reset()


def add_file(file_id: str, size_bytes: int) -> None:
    UserRepository.upsert_user(1001, can_upload=True)
    FileRepository.create_file_record(file_id, 1001, "report.pdf", StoredFile(
        external_file_handle="BQACAgIAAxkBAAIB",
        size_bytes=size_bytes,
        mime_type="application/pdf",
        storage_location="channel:-1001234567890/message:7",
        retrieval_hint="https://t.me/c/1234567890/7",
    ))


class TestHealth:

    def test_root(self, client):
        response = client.get('/')
        assert response.status_code == 200
        assert response.json()['status'] == 'running'

    def test_health_reports_relay_state(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json()['relay_authorized'] is False

    def test_request_id_echoed(self, client):
        response = client.get('/', headers={'X-Request-ID': 'abc-123'})
        assert response.headers['X-Request-ID'] == 'abc-123'


class TestAuthEndpoints:

    def test_api_key_required(self, client):
        response = client.get('/auth/status')
        assert response.status_code == 401
        assert response.json()['code'] == 'INVALID_API_KEY'

        response = client.get('/auth/status', headers={'X-API-Key': 'wrong'})
        assert response.status_code == 401

    def test_verify_without_pending_code(self, client):
        response = client.post('/auth/verify-code', json={'code': '12345'}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()['code'] == 'NO_PENDING_CODE'

    def test_sign_in_flow(self, client):
        response = client.post('/auth/send-code', headers=HEADERS)
        assert response.status_code == 200

        response = client.post('/auth/verify-code', json={'code': '12345'}, headers=HEADERS)
        assert response.status_code == 200
        assert response.json()['identity']['username'] == 'relaybot'

        status = client.get('/auth/status', headers=HEADERS).json()
        assert status['authorized'] is True
        assert status['state'] == 'authorized'

    def test_two_factor_then_reset(self, client, fake_backend):
        client.post('/auth/send-code', headers=HEADERS)
        fake_backend.verify_error = TwoFactorUnsupportedError("password required")

        response = client.post('/auth/verify-code', json={'code': '12345'}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()['code'] == 'TWO_FACTOR_UNSUPPORTED'

        response = client.post('/auth/send-code', headers=HEADERS)
        assert response.status_code == 409

        response = client.post('/auth/reset', headers=HEADERS)
        assert response.json()['state'] == 'unauthenticated'


class TestFileEndpoints:

    def test_upload_small_file(self, client, fake_backend):
        UserRepository.upsert_user(1001, can_upload=True)

        response = client.post(
            '/files',
            files={'file': ('notes.txt', b'hello relay', 'text/plain')},
            data={'telegram_id': '1001'},
            headers=HEADERS,
        )

        assert response.status_code == 201
        body = response.json()
        assert body['size_bytes'] == 11
        assert body['download_url'] == f"http://relay.test/download/{body['file_id']}"
        assert fake_backend.small_uploads == [b'hello relay']

    def test_upload_without_permission(self, client):
        response = client.post(
            '/files',
            files={'file': ('notes.txt', b'hello', 'text/plain')},
            data={'telegram_id': '42'},
            headers=HEADERS,
        )
        assert response.status_code == 403
        assert response.json()['code'] == 'UPLOAD_NOT_PERMITTED'

    def test_large_upload_needs_relay_session(self, client):
        UserRepository.upsert_user(1001, can_upload=True)

        response = client.post(
            '/files',
            files={'file': ('big.bin', b'x' * 4096, 'application/octet-stream')},
            data={'telegram_id': '1001'},
            headers=HEADERS,
        )
        assert response.status_code == 409
        assert response.json()['code'] == 'AUTH_REQUIRED'

    def test_upload_too_large(self, client):
        UserRepository.upsert_user(1001, can_upload=True)

        response = client.post(
            '/files',
            files={'file': ('huge.bin', b'x' * (16 * 1024 + 1), 'application/octet-stream')},
            data={'telegram_id': '1001'},
            headers=HEADERS,
        )
        assert response.status_code == 413

    def test_empty_upload(self, client):
        response = client.post(
            '/files',
            files={'file': ('empty.txt', b'', 'text/plain')},
            data={'telegram_id': '1001'},
            headers=HEADERS,
        )
        assert response.status_code == 400

    def test_signed_link_for_missing_file(self, client):
        response = client.post('/files/missing/signed-link', headers=HEADERS)
        assert response.status_code == 404
        assert response.json()['code'] == 'FILE_NOT_FOUND'


class TestDownloadEndpoints:

    def test_small_file_streams(self, client):
        add_file('f-small', 13)

        response = client.get('/download/f-small')

        assert response.status_code == 200
        assert response.content == b'relayed bytes'
        assert 'report.pdf' in response.headers['content-disposition']

    def test_large_file_manual_retrieval(self, client):
        add_file('f-large', THRESHOLD + 1)

        response = client.get('/download/f-large')

        assert response.status_code == 200
        body = response.json()
        assert body['status'] == 'manual_retrieval'
        assert body['storage_location'] == 'channel:-1001234567890/message:7'

    def test_missing_file(self, client):
        response = client.get('/download/nope')
        assert response.status_code == 404

    def test_info_counts_downloads(self, client):
        add_file('f-small', 13)
        client.get('/download/f-small')

        response = client.get('/download/f-small/info')

        assert response.status_code == 200
        assert response.json()['download_count'] == 1

    def test_signed_redirect(self, client):
        add_file('f-large', THRESHOLD + 1)
        link = client.post('/files/f-large/signed-link', headers=HEADERS).json()

        parsed = urlparse(link['url'])
        response = client.get(f"{parsed.path}?{parsed.query}", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers['location'] == 'https://cdn.example.test/BQACAgIAAxkBAAIB'

    def test_signed_redirect_tampered(self, client):
        add_file('f-large', THRESHOLD + 1)
        link = client.post('/files/f-large/signed-link', headers=HEADERS).json()

        response = client.get(
            '/download/redirect/f-large',
            params={'expires': link['expires'] + 1, 'signature': link['signature']},
            follow_redirects=False,
        )

        assert response.status_code == 403
        assert response.json()['code'] == 'SIGNATURE_INVALID'

    def test_signed_redirect_expired(self, client):
        add_file('f-large', THRESHOLD + 1)
        link = client.post('/files/f-large/signed-link', params={'ttl_ms': 1}, headers=HEADERS).json()

        response = client.get(
            '/download/redirect/f-large',
            params={'expires': link['expires'] - 10_000, 'signature': link['signature']},
            follow_redirects=False,
        )

        assert response.status_code == 403

    def test_signed_redirect_without_signature(self, client):
        add_file('f-large', THRESHOLD + 1)

        response = client.get('/download/redirect/f-large', follow_redirects=False)
        assert response.status_code == 403

    def test_backend_handle_bypasses_signature(self, client):
        response = client.get('/download/redirect/BQACAgIAAxkBAAIB', follow_redirects=False)

        assert response.status_code == 302
        assert response.headers['location'] == 'https://cdn.example.test/BQACAgIAAxkBAAIB'


    def test_signed_redirect_malformed_expiry(self, client):
        add_file('f-large', THRESHOLD + 1)
        link = client.post('/files/f-large/signed-link', headers=HEADERS).json()

        response = client.get(
            '/download/redirect/f-large',
            params={'expires': 'abc', 'signature': link['signature']},
            follow_redirects=False,
        )

        assert response.status_code == 403
        assert response.json()['code'] == 'SIGNATURE_INVALID'

class TestAdminEndpoints:

    def test_upsert_user(self, client):
        response = client.put('/admin/users/1001', json={'name': 'Ann', 'can_upload': True}, headers=HEADERS)

        assert response.status_code == 200
        assert response.json()['can_upload'] is True
        assert UserRepository.has_upload_permission(1001)


def bound_link(client, ip: str) -> dict:
    add_file('f-large', THRESHOLD + 1)
    return client.post(
        '/files/f-large/signed-link', params={'client_ip': ip}, headers=HEADERS
    ).json()


def follow(client, link: dict, headers=None):
    parsed = urlparse(link['url'])
    return client.get(f"{parsed.path}?{parsed.query}", headers=headers, follow_redirects=False)


class TestClientIPBinding:

    @pytest.fixture(autouse=True)
    def bind_client_ip(self, client, monkeypatch):
        monkeypatch.setattr("gateway.config.BIND_CLIENT_IP", True)

    def test_link_bound_to_requesting_address(self, client):
        link = bound_link(client, 'testclient')

        response = follow(client, link)

        assert response.status_code == 302

    def test_link_bound_to_other_address(self, client):
        link = bound_link(client, '203.0.113.7')

        response = follow(client, link)

        assert response.status_code == 403

    def test_forwarded_header_ignored_from_untrusted_peer(self, client):
        link = bound_link(client, '203.0.113.7')

        response = follow(client, link, headers={'X-Forwarded-For': '203.0.113.7'})

        assert response.status_code == 403
        assert response.json()['code'] == 'SIGNATURE_INVALID'

    def test_forwarded_header_honoured_from_trusted_proxy(self, client, monkeypatch):
        monkeypatch.setattr("gateway.config.TRUSTED_PROXIES", frozenset({'testclient'}))
        link = bound_link(client, '203.0.113.7')

        response = follow(client, link, headers={'X-Forwarded-For': '203.0.113.7'})

        assert response.status_code == 302

    def test_trusted_proxy_uses_hop_it_appended(self, client, monkeypatch):
        monkeypatch.setattr("gateway.config.TRUSTED_PROXIES", frozenset({'testclient'}))
        link = bound_link(client, '203.0.113.7')

        response = follow(client, link, headers={'X-Forwarded-For': '203.0.113.7, 198.51.100.9'})

        assert response.status_code == 403


class TestDownloadRateLimit:

    def test_too_many_requests(self, client):
        service_locator.set_download_limiter(SlidingWindowRateLimiter(RateLimit(limit=2, window_seconds=60)))

        assert client.get('/download/nope').status_code == 404
        assert client.get('/download/nope').status_code == 404
        response = client.get('/download/nope')

        assert response.status_code == 429
        assert response.json()['code'] == 'RATE_LIMITED'
        assert int(response.headers['retry-after']) >= 1

    def test_admin_routes_not_limited(self, client):
        service_locator.set_download_limiter(SlidingWindowRateLimiter(RateLimit(limit=1, window_seconds=60)))
        client.get('/download/nope')

        response = client.get('/auth/status', headers=HEADERS)

        assert response.status_code == 200


class RecordingStream(httpx.AsyncByteStream):

    def __init__(self):
        self.closed = False

    async def __aiter__(self):
        yield b"relayed bytes"

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_unread_stream_closed_by_background_task():
    stream = RecordingStream()
    outcome = InlineStream(response=httpx.Response(200, stream=stream))

    response = _render(outcome, request=None, file_id=None)
    await response.background()

    assert stream.closed
