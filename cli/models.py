"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class StatusCommand:
    """Show relay account state."""

    command: Literal["status"] = "status"


@dataclass(frozen=True)
class SendCodeCommand:
    """Request a sign-in code."""

    command: Literal["send-code"] = "send-code"


@dataclass(frozen=True)
class VerifyCodeCommand:
    """Submit the received sign-in code."""

    code: str
    command: Literal["verify-code"] = "verify-code"


@dataclass(frozen=True)
class ResetCommand:
    """Reset the relay account session."""

    command: Literal["reset"] = "reset"


@dataclass(frozen=True)
class LinkCommand:
    """Create a signed download link."""

    file_id: str
    client_ip: str | None = None
    command: Literal["link"] = "link"


@dataclass(frozen=True)
class InfoCommand:
    """Show file information."""

    file_id: str
    command: Literal["info"] = "info"


@dataclass(frozen=True)
class UploadCommand:
    """Upload a local file for a user."""

    path: str
    telegram_id: int
    command: Literal["upload"] = "upload"


CommandRequest = (
    StatusCommand
    | SendCodeCommand
    | VerifyCodeCommand
    | ResetCommand
    | LinkCommand
    | InfoCommand
    | UploadCommand
)
