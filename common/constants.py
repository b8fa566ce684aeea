"""Project-wide constants (part sizes, thresholds, backend handle formats)."""

PART_SIZE_BYTES: int = 512 * 1024  # 512 KiB, the largest part the backend accepts
MAX_PART_SIZE_BYTES: int = 512 * 1024
PART_SIZE_ALIGNMENT_BYTES: int = 1024

BIG_FILE_THRESHOLD_BYTES: int = 10 * 1024 * 1024  # above this the backend wants big-file parts

SMALL_FILE_THRESHOLD_BYTES: int = 20 * 1024 * 1024  # Bot API getFile limit
DIRECT_UPLOAD_LIMIT_BYTES: int = 50 * 1000 * 1000  # Bot API sendDocument limit
MAX_FILE_PARTS: int = 4000  # backend limit on parts per file
MAX_FILE_SIZE_BYTES: int = MAX_FILE_PARTS * PART_SIZE_BYTES

SIGNATURE_TTL_MS: int = 15 * 60 * 1000

UPLOAD_ID_BITS: int = 31

# Prefixes of Bot API file_id values (document, video, photo, audio, voice, sticker, animation)
BACKEND_HANDLE_PREFIXES: tuple = ("BQAC", "BAAC", "AgAC", "CQAC", "AwAC", "CAAC", "CgAC", "DQAC")

MTPROTO_HANDLE_SCHEME: str = "tg://document?id="

TELEGRAM_API_URL: str = "https://api.telegram.org"

STREAM_PIECE_SIZE_BYTES: int = 64 * 1024
