"""Download log repository."""

import sqlite3
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from gateway.database import get_db_connection

logger = get_logger(__name__)


class DownloadRepository:
    @staticmethod
    def record_download(
        file_id: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
    ) -> bool:
        """
        Log a download. Failures are logged and never raised.

        Returns:
            True if the row was written
        """
        try:
            with get_db_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO downloads (file_id, ip, user_agent, referer, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (file_id, ip, user_agent, referer, datetime.utcnow().isoformat())
                )
                conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Failed to record download of {file_id}: {e}")
            return False

    @staticmethod
    def count_for_file(file_id: str) -> int:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS total FROM downloads WHERE file_id = ?", (file_id,))
            row = cursor.fetchone()
            return row["total"] if row else 0
