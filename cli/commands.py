"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.gateway_client import GatewayClient
from cli.models import (
    InfoCommand,
    LinkCommand,
    ResetCommand,
    SendCodeCommand,
    StatusCommand,
    UploadCommand,
    VerifyCodeCommand,
)

logger = get_logger(__name__)


_client: Optional[GatewayClient] = None


def get_client() -> GatewayClient:
    """
    Get or create global GatewayClient instance.

    Returns:
        GatewayClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new GatewayClient instance")
        config = Config(Path.home() / '.tgrelay' / 'config.json')
        _client = GatewayClient(config)
    return _client


def handle_status(cmd: StatusCommand, client: Optional[GatewayClient] = None) -> str:
    """
    Handle 'status' command.

    Args:
        cmd: StatusCommand
        client: Optional GatewayClient for dependency injection (testing)
    """
    if client is None:
        client = get_client()
    return client.status()


def handle_send_code(cmd: SendCodeCommand, client: Optional[GatewayClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.send_code()


def handle_verify_code(cmd: VerifyCodeCommand, client: Optional[GatewayClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.verify_code(cmd.code)


def handle_reset(cmd: ResetCommand, client: Optional[GatewayClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.reset()


def handle_link(cmd: LinkCommand, client: Optional[GatewayClient] = None) -> str:
    """
    Handle 'link' command.

    Args:
        cmd: LinkCommand with file_id and optional client_ip
        client: Optional GatewayClient for dependency injection (testing)

    Returns:
        Signed link or error message
    """
    logger.info(f"Executing link command: file_id={cmd.file_id}")
    if client is None:
        client = get_client()
    return client.create_link(cmd.file_id, cmd.client_ip)


def handle_info(cmd: InfoCommand, client: Optional[GatewayClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.file_info(cmd.file_id)


def handle_upload(cmd: UploadCommand, client: Optional[GatewayClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with path and telegram_id
        client: Optional GatewayClient for dependency injection (testing)

    Returns:
        Upload result or error message
    """
    logger.info(f"Executing upload command: path={cmd.path} telegram_id={cmd.telegram_id}")
    if client is None:
        client = get_client()
    result = client.upload(cmd.path, cmd.telegram_id)
    logger.debug("Upload command completed")
    return result
