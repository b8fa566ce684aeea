"""User repository for database operations."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from common.logging_config import get_logger
from gateway.database import get_db_connection

logger = get_logger(__name__)


@dataclass
class User:
    telegram_id: int
    name: Optional[str]
    username: Optional[str]
    can_upload: bool
    is_admin: bool
    created_at: datetime


def _row_to_user(row) -> User:
    return User(
        telegram_id=row["telegram_id"],
        name=row["name"],
        username=row["username"],
        can_upload=bool(row["can_upload"]),
        is_admin=bool(row["is_admin"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class UserRepository:
    @staticmethod
    def find_user(telegram_id: int) -> Optional[User]:
        logger.debug(f"Fetching user [telegram_id={telegram_id}]")
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """SELECT telegram_id, name, username, can_upload, is_admin, created_at
                   FROM users WHERE telegram_id = ?""",
                (telegram_id,)
            )
            row = cursor.fetchone()

            if row is None:
                logger.debug(f"User not found [telegram_id={telegram_id}]")
                return None

            return _row_to_user(row)

    @staticmethod
    def upsert_user(
        telegram_id: int,
        name: Optional[str] = None,
        username: Optional[str] = None,
        can_upload: bool = False,
        is_admin: bool = False,
    ) -> User:
        """
        Create the user or overwrite its name and permissions.
        """
        created_at = datetime.utcnow()
        with get_db_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    INSERT INTO users (telegram_id, name, username, can_upload, is_admin, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(telegram_id) DO UPDATE SET
                        name = excluded.name,
                        username = excluded.username,
                        can_upload = excluded.can_upload,
                        is_admin = excluded.is_admin
                    """,
                    (telegram_id, name, username, int(can_upload), int(is_admin), created_at.isoformat())
                )
                conn.commit()
            except Exception as e:
                logger.error(f"Failed to upsert user {telegram_id}: {e}", exc_info=True)
                raise

            cursor.execute(
                """SELECT telegram_id, name, username, can_upload, is_admin, created_at
                   FROM users WHERE telegram_id = ?""",
                (telegram_id,)
            )
            user = _row_to_user(cursor.fetchone())

        logger.info(
            f"User saved [telegram_id={telegram_id}] can_upload={user.can_upload} is_admin={user.is_admin}"
        )
        return user

    @staticmethod
    def has_upload_permission(telegram_id: int) -> bool:
        user = UserRepository.find_user(telegram_id)
        if user is None:
            return False
        return user.can_upload or user.is_admin
