"""Utility functions for CLI operations."""

import sys
from datetime import datetime

from cli.constants import GREEN, RESET


class ProgressFileWrapper:
    """File-like wrapper that reports upload progress on stdout as httpx reads it."""

    def __init__(self, file_path: str, file_size: int, filename: str):
        """
        Args:
            file_path: Path of the local file
            file_size: Total size of the file in bytes
            filename: Display name for the file
        """
        self.file_size = file_size
        self.filename = filename
        self._file = open(file_path, 'rb')
        self._sent = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._file.read(size if size > 0 else 65536)
        if chunk:
            self._sent += len(chunk)
            progress = (self._sent / self.file_size) * 100 if self.file_size else 100.0
            sys.stdout.write(
                f"\rUploading {self.filename}: {format_file_size(self._sent)} / "
                f"{format_file_size(self.file_size)} ({GREEN}{progress:.1f}%{RESET})"
            )
            sys.stdout.flush()
        return chunk

    def seek(self, offset: int, whence: int = 0) -> int:
        if offset == 0 and whence == 0:
            self._sent = 0
        return self._file.seek(offset, whence)

    def tell(self) -> int:
        return self._file.tell()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()
            sys.stdout.write('\n')
            sys.stdout.flush()

    def __enter__(self) -> 'ProgressFileWrapper':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_epoch_ms(epoch_ms: int) -> str:
    """
    Format an epoch-milliseconds timestamp as local time.
    """
    return datetime.fromtimestamp(epoch_ms / 1000).strftime('%Y-%m-%d %H:%M:%S')
