"""Entry point for the relay gateway service."""

import asyncio
import time
import uuid
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging, mask_phone
from gateway import config
from gateway import service_locator
from gateway.backend.bot_api import BotApiClient
from gateway.backend.mtproto import MTProtoClient
from gateway.backend.telegram import TelegramBackend
from gateway.backend.updates import UpdateChannel
from gateway.database import init_database
from gateway.exceptions import (
    AuthRequiredError,
    AuthStateError,
    BackendRejectedError,
    BackendUnavailableError,
    CommitIncompleteError,
    FileRecordNotFoundError,
    FileTooLargeError,
    InvalidAPIKeyError,
    NoPendingCodeError,
    PartOrderError,
    PartUploadFailedError,
    RateLimitedError,
    RelayException,
    SessionRevokedError,
    SignatureInvalidError,
    TwoFactorUnsupportedError,
    UploadNotPermittedError,
)
from gateway.routes.admin_routes import router as admin_router
from gateway.routes.auth_routes import router as auth_router
from gateway.routes.download_routes import router as download_router
from gateway.routes.file_routes import router as file_router
from gateway.services.chunked_uploader import ChunkedUploader
from gateway.services.download_gateway import DownloadGateway
from gateway.services.rate_limiter import RateLimit, SlidingWindowRateLimiter
from gateway.services.session_manager import AuthSessionManager
from gateway.services.upload_service import UploadService
from gateway.signing import SignedURLCodec

logger = setup_logging('gateway')

app = FastAPI(
    title="Telegram Relay Gateway",
    description="Stores files on Telegram and serves them through signed, time-limited links",
    version="1.0.0"
)

update_task: Optional[asyncio.Task] = None

# Most specific classes first; the first isinstance match wins.
ERROR_STATUS = [
    (SignatureInvalidError, status.HTTP_403_FORBIDDEN),
    (NoPendingCodeError, status.HTTP_400_BAD_REQUEST),
    (TwoFactorUnsupportedError, status.HTTP_400_BAD_REQUEST),
    (AuthStateError, status.HTTP_409_CONFLICT),
    (AuthRequiredError, status.HTTP_409_CONFLICT),
    (SessionRevokedError, status.HTTP_409_CONFLICT),
    (PartUploadFailedError, status.HTTP_502_BAD_GATEWAY),
    (BackendRejectedError, status.HTTP_502_BAD_GATEWAY),
    (BackendUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PartOrderError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (CommitIncompleteError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (FileRecordNotFoundError, status.HTTP_404_NOT_FOUND),
    (UploadNotPermittedError, status.HTTP_403_FORBIDDEN),
    (FileTooLargeError, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE),
    (InvalidAPIKeyError, status.HTTP_401_UNAUTHORIZED),
    (RateLimitedError, status.HTTP_429_TOO_MANY_REQUESTS),
]


def status_for(exc: RelayException) -> int:
    for exc_class, status_code in ERROR_STATUS:
        if isinstance(exc, exc_class):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def build_services() -> None:
    """
    Wire the backend and services from configuration into the service locator.
    """
    updates = UpdateChannel()
    http_client = httpx.AsyncClient(timeout=config.BACKEND_TIMEOUT_SECONDS)

    bot_api = None
    if config.TELEGRAM_BOT_TOKEN:
        bot_api = BotApiClient(config.TELEGRAM_BOT_TOKEN, http_client=http_client)
    else:
        logger.warning("TELEGRAM_BOT_TOKEN not set, single-call uploads and streaming disabled")

    mtproto = None
    if config.TELEGRAM_API_ID and config.TELEGRAM_API_HASH:
        mtproto = MTProtoClient(
            api_id=config.TELEGRAM_API_ID,
            api_hash=config.TELEGRAM_API_HASH,
            session=config.TELEGRAM_SESSION,
            timeout=config.BACKEND_TIMEOUT_SECONDS,
            updates=updates,
        )
    else:
        logger.warning("TELEGRAM_API_ID/TELEGRAM_API_HASH not set, chunked uploads disabled")

    backend = TelegramBackend(bot_api=bot_api, mtproto=mtproto)

    signer = None
    if config.SIGNING_SECRET:
        signer = SignedURLCodec(config.SIGNING_SECRET)
    else:
        logger.warning("RELAY_SIGNING_SECRET not set, signed links disabled")

    session_manager = AuthSessionManager(backend, phone_number=config.TELEGRAM_PHONE_NUMBER)

    download_gateway = DownloadGateway(
        backend=backend,
        codec=signer,
        small_file_threshold=config.SMALL_FILE_THRESHOLD,
        http_client=httpx.AsyncClient(timeout=httpx.Timeout(config.BACKEND_TIMEOUT_SECONDS, read=None)),
        relay_available=lambda: session_manager.is_authorized,
    )

    upload_service = UploadService(
        backend=backend,
        session_manager=session_manager,
        uploader=ChunkedUploader(backend, part_size=config.PART_SIZE),
        destination=config.TELEGRAM_CHANNEL_ID,
        direct_upload_limit=config.DIRECT_UPLOAD_LIMIT,
        max_file_size=config.MAX_FILE_SIZE,
    )

    service_locator.set_backend(backend)
    service_locator.set_signer(signer)
    service_locator.set_update_channel(updates)
    service_locator.set_session_manager(session_manager)
    service_locator.set_download_gateway(download_gateway)
    service_locator.set_upload_service(upload_service)
    service_locator.set_download_limiter(SlidingWindowRateLimiter(
        RateLimit(limit=config.DOWNLOAD_RATE_LIMIT, window_seconds=config.DOWNLOAD_RATE_WINDOW_SECONDS)
    ))


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize database, services and the update consumer on application startup.
    """
    global update_task

    logger.info("Relay gateway starting up...")

    init_database()
    logger.info("Database initialized")

    if service_locator.get_session_manager() is None:
        build_services()
        logger.info(
            f"Services built [channel={config.TELEGRAM_CHANNEL_ID or 'unset'}] "
            f"[relay_phone={mask_phone(config.TELEGRAM_PHONE_NUMBER)}] [bind_client_ip={config.BIND_CLIENT_IP}]"
        )

    updates = service_locator.get_update_channel()
    if updates is not None:
        update_task = asyncio.create_task(updates.run())

    try:
        await service_locator.get_session_manager().check_existing()
    except RelayException as e:
        logger.warning(f"Could not check relay account session: {e} ({e.code})")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup resources on application shutdown.
    """
    global update_task

    logger.info("Relay gateway shutting down...")

    updates = service_locator.get_update_channel()
    if updates is not None:
        updates.stop()
    if update_task is not None:
        update_task.cancel()
        try:
            await update_task
        except asyncio.CancelledError:
            pass
        update_task = None
        logger.info("Update consumer stopped")

    download_gateway = service_locator.get_download_gateway()
    if download_gateway is not None:
        await download_gateway.close()

    backend = service_locator.get_backend()
    if backend is not None:
        await backend.close()
        logger.info("Backend closed")


@app.exception_handler(TwoFactorUnsupportedError)
async def two_factor_unsupported_handler(request: Request, exc: TwoFactorUnsupportedError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Relay account needs reconfiguration, two-step verification is enabled: {exc} "
        f"[request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "code": exc.code}
    )


@app.exception_handler(RelayException)
async def relay_exception_handler(request: Request, exc: RelayException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {exc} context={exc.context} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
    else:
        logger.warning(
            f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}"
        )
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.context.get("retry_after", 1))}
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code},
        headers=headers,
    )


app.include_router(download_router)
app.include_router(auth_router)
app.include_router(file_router)
app.include_router(admin_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Telegram Relay Gateway API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    session_manager = service_locator.get_session_manager()
    return {
        "status": "healthy",
        "service": "gateway",
        "relay_authorized": bool(session_manager and session_manager.is_authorized),
    }


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "gateway.main:app",
        host=config.RELAY_HOST,
        port=config.RELAY_PORT,
        # client addresses come from gateway.auth.client_ip and RELAY_TRUSTED_PROXIES
        proxy_headers=False,
    )


if __name__ == "__main__":
    main()
