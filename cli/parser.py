"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    InfoCommand,
    LinkCommand,
    ResetCommand,
    SendCodeCommand,
    StatusCommand,
    UploadCommand,
    VerifyCodeCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0].lower()
    args = tokens[1:]

    if command_name == "status":
        _expect_no_args(command_name, args)
        return StatusCommand()
    elif command_name == "send-code":
        _expect_no_args(command_name, args)
        return SendCodeCommand()
    elif command_name == "verify-code":
        return _parse_verify_code(args)
    elif command_name == "reset":
        _expect_no_args(command_name, args)
        return ResetCommand()
    elif command_name == "link":
        return _parse_link(args)
    elif command_name == "info":
        return _parse_info(args)
    elif command_name == "upload":
        return _parse_upload(args)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _expect_no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")


def _parse_verify_code(args: list[str]) -> VerifyCodeCommand:
    """Parse 'verify-code <code>' command."""
    if len(args) != 1:
        raise ParseError("verify-code requires exactly 1 argument: <code>")

    code = args[0]
    if not code.isdigit():
        raise ParseError("verify-code expects the numeric code sent to the relay account")
    return VerifyCodeCommand(code=code)


def _parse_link(args: list[str]) -> LinkCommand:
    """Parse 'link <file_id> [client_ip]' command."""
    if len(args) not in (1, 2):
        raise ParseError("link requires 1 or 2 arguments: <file_id> [client_ip]")

    return LinkCommand(file_id=args[0], client_ip=args[1] if len(args) == 2 else None)


def _parse_info(args: list[str]) -> InfoCommand:
    """Parse 'info <file_id>' command."""
    if len(args) != 1:
        raise ParseError("info requires exactly 1 argument: <file_id>")

    return InfoCommand(file_id=args[0])


def _parse_upload(args: list[str]) -> UploadCommand:
    """Parse 'upload <path> <telegram_id>' command."""
    if len(args) != 2:
        raise ParseError("upload requires exactly 2 arguments: <path> <telegram_id>")

    path, telegram_id = args
    try:
        return UploadCommand(path=path, telegram_id=int(telegram_id))
    except ValueError:
        raise ParseError(f"telegram_id must be a number, got '{telegram_id}'")
