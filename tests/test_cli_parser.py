"""Tests for CLI command parsing."""

import pytest

from cli.models import (
    InfoCommand,
    LinkCommand,
    ResetCommand,
    SendCodeCommand,
    StatusCommand,
    UploadCommand,
    VerifyCodeCommand,
)
from cli.parser import ParseError, parse_command


def test_parse_no_argument_commands():
    assert parse_command("status") == StatusCommand()
    assert parse_command("send-code") == SendCodeCommand()
    assert parse_command("RESET") == ResetCommand()


def test_no_argument_commands_reject_arguments():
    with pytest.raises(ParseError):
        parse_command("status now")


def test_parse_verify_code():
    assert parse_command("verify-code 12345") == VerifyCodeCommand(code="12345")


@pytest.mark.parametrize("line", ["verify-code", "verify-code abc", "verify-code 1 2"])
def test_parse_verify_code_invalid(line):
    with pytest.raises(ParseError):
        parse_command(line)


def test_parse_link():
    assert parse_command("link f1") == LinkCommand(file_id="f1")
    assert parse_command("link f1 10.0.0.1") == LinkCommand(file_id="f1", client_ip="10.0.0.1")

    with pytest.raises(ParseError):
        parse_command("link")


def test_parse_info():
    assert parse_command("info f1") == InfoCommand(file_id="f1")


def test_parse_upload_with_quoted_path():
    cmd = parse_command('upload "my report.pdf" 1001')
    assert cmd == UploadCommand(path="my report.pdf", telegram_id=1001)


def test_parse_upload_invalid_telegram_id():
    with pytest.raises(ParseError):
        parse_command("upload report.pdf someone")


def test_unknown_command():
    with pytest.raises(ParseError, match="Unknown command"):
        parse_command("delete f1")


def test_unbalanced_quotes():
    with pytest.raises(ParseError, match="Invalid syntax"):
        parse_command('upload "report.pdf 1001')


def test_empty_input():
    with pytest.raises(ParseError):
        parse_command("   ")
