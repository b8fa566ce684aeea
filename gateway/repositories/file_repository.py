"""File repository for database operations."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from common.types import StoredFile
from gateway.database import get_db_connection

logger = get_logger(__name__)


@dataclass
class FileRecord:
    file_id: str
    telegram_id: int
    file_name: str
    stored: StoredFile
    created_at: datetime


class FileRepository:
    @staticmethod
    def create_file_record(
        file_id: str,
        telegram_id: int,
        file_name: str,
        stored: StoredFile,
        created_at: Optional[datetime] = None,
    ) -> FileRecord:
        created_at = created_at or datetime.utcnow()

        with get_db_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    INSERT INTO files (file_id, telegram_id, file_name, mime_type, size_bytes,
                                       external_file_handle, storage_location, retrieval_hint, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (file_id, telegram_id, file_name, stored.mime_type, stored.size_bytes,
                     stored.external_file_handle, stored.storage_location, stored.retrieval_hint,
                     created_at.isoformat())
                )
                conn.commit()
                logger.info(f"File record created: {file_name} [file_id={file_id}] size={stored.size_bytes}")
            except Exception as e:
                logger.error(f"Failed to create file record {file_id}: {e}", exc_info=True)
                raise

        return FileRecord(
            file_id=file_id,
            telegram_id=telegram_id,
            file_name=file_name,
            stored=stored,
            created_at=created_at,
        )

    @staticmethod
    def get_by_id(file_id: str) -> Optional[FileRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """SELECT file_id, telegram_id, file_name, mime_type, size_bytes, external_file_handle,
                          storage_location, retrieval_hint, created_at
                   FROM files WHERE file_id = ?""",
                (file_id,)
            )
            row = cursor.fetchone()

            if row is None:
                return None

            return FileRecord(
                file_id=row["file_id"],
                telegram_id=row["telegram_id"],
                file_name=row["file_name"],
                stored=StoredFile(
                    external_file_handle=row["external_file_handle"],
                    size_bytes=row["size_bytes"],
                    mime_type=row["mime_type"],
                    storage_location=row["storage_location"],
                    retrieval_hint=row["retrieval_hint"],
                ),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
