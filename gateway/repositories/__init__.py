"""Repository layer for data access."""

from gateway.repositories.user_repository import UserRepository
from gateway.repositories.file_repository import FileRepository
from gateway.repositories.download_repository import DownloadRepository

__all__ = [
    "UserRepository",
    "FileRepository",
    "DownloadRepository",
]
