"""Configuration settings for the relay gateway."""

import os
from common.constants import (
    DIRECT_UPLOAD_LIMIT_BYTES,
    MAX_FILE_SIZE_BYTES,
    PART_SIZE_BYTES,
    SIGNATURE_TTL_MS,
    SMALL_FILE_THRESHOLD_BYTES,
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


RELAY_HOST = os.environ.get("RELAY_HOST", "0.0.0.0")

RELAY_PORT = int(os.environ.get("RELAY_PORT", "8000"))

PUBLIC_URL = os.environ.get("RELAY_PUBLIC_URL", f"http://localhost:{RELAY_PORT}").rstrip("/")

ENVIRONMENT = os.environ.get("RELAY_ENVIRONMENT", "development")

IS_PRODUCTION = ENVIRONMENT == "production"

DATABASE_PATH = os.environ.get("RELAY_DATABASE_PATH", "/app/data/relay.db")

ADMIN_API_KEY = os.environ.get("RELAY_ADMIN_API_KEY", "")

SIGNING_SECRET = os.environ.get("RELAY_SIGNING_SECRET", "")

SIGNATURE_TTL = int(os.environ.get("RELAY_SIGNATURE_TTL_MS", str(SIGNATURE_TTL_MS)))

BIND_CLIENT_IP = _env_bool("RELAY_BIND_CLIENT_IP", IS_PRODUCTION)

# Peers allowed to set X-Forwarded-For; empty means the socket address is always used
TRUSTED_PROXIES = frozenset(
    ip.strip() for ip in os.environ.get("RELAY_TRUSTED_PROXIES", "").split(",") if ip.strip()
)

DOWNLOAD_RATE_LIMIT = int(os.environ.get("RELAY_DOWNLOAD_RATE_LIMIT", "50"))

DOWNLOAD_RATE_WINDOW_SECONDS = int(os.environ.get("RELAY_DOWNLOAD_RATE_WINDOW", "300"))

SMALL_FILE_THRESHOLD = int(os.environ.get("RELAY_SMALL_FILE_THRESHOLD", str(SMALL_FILE_THRESHOLD_BYTES)))

DIRECT_UPLOAD_LIMIT = int(os.environ.get("RELAY_DIRECT_UPLOAD_LIMIT", str(DIRECT_UPLOAD_LIMIT_BYTES)))

MAX_FILE_SIZE = int(os.environ.get("RELAY_MAX_FILE_SIZE", str(MAX_FILE_SIZE_BYTES)))

PART_SIZE = int(os.environ.get("RELAY_PART_SIZE", str(PART_SIZE_BYTES)))

BACKEND_TIMEOUT_SECONDS = float(os.environ.get("RELAY_BACKEND_TIMEOUT", "30"))

TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN", "")

TELEGRAM_CHANNEL_ID = os.environ.get("TELEGRAM_CHANNEL_ID", "")

TELEGRAM_API_ID = int(os.environ.get("TELEGRAM_API_ID", "0") or 0)

TELEGRAM_API_HASH = os.environ.get("TELEGRAM_API_HASH", "")

TELEGRAM_PHONE_NUMBER = os.environ.get("TELEGRAM_PHONE_NUMBER", "")

TELEGRAM_SESSION = os.environ.get("TELEGRAM_SESSION", "/app/data/relay-account")
