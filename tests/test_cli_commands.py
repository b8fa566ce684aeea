"""Tests for CLI command handlers."""

from unittest.mock import Mock

from cli.commands import (
    handle_info,
    handle_link,
    handle_reset,
    handle_send_code,
    handle_status,
    handle_upload,
    handle_verify_code,
)
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
from cli.repl import dispatch_command


def test_handle_status():
    mock_client = Mock(spec=GatewayClient)
    mock_client.status.return_value = "Relay account: not signed in. Run: send-code"

    result = handle_status(StatusCommand(), client=mock_client)

    assert 'not signed in' in result
    mock_client.status.assert_called_once_with()


def test_handle_sign_in_commands():
    mock_client = Mock(spec=GatewayClient)
    mock_client.send_code.return_value = "Code sent"
    mock_client.verify_code.return_value = "Signed in"
    mock_client.reset.return_value = "Relay session reset"

    assert handle_send_code(SendCodeCommand(), client=mock_client) == "Code sent"
    assert handle_verify_code(VerifyCodeCommand(code='12345'), client=mock_client) == "Signed in"
    assert handle_reset(ResetCommand(), client=mock_client) == "Relay session reset"

    mock_client.verify_code.assert_called_once_with('12345')


def test_handle_link():
    mock_client = Mock(spec=GatewayClient)
    mock_client.create_link.return_value = "Signed link: ..."

    handle_link(LinkCommand(file_id='f1', client_ip='10.0.0.1'), client=mock_client)

    mock_client.create_link.assert_called_once_with('f1', '10.0.0.1')


def test_handle_info():
    mock_client = Mock(spec=GatewayClient)
    mock_client.file_info.return_value = "report.pdf"

    assert handle_info(InfoCommand(file_id='f1'), client=mock_client) == "report.pdf"


def test_handle_upload():
    mock_client = Mock(spec=GatewayClient)
    mock_client.upload.return_value = "Uploaded: report.pdf"

    result = handle_upload(UploadCommand(path='report.pdf', telegram_id=1001), client=mock_client)

    assert 'Uploaded' in result
    mock_client.upload.assert_called_once_with('report.pdf', 1001)


def test_dispatch_routes_to_handler(monkeypatch):
    mock_client = Mock(spec=GatewayClient)
    mock_client.file_info.return_value = "report.pdf"
    monkeypatch.setattr("cli.commands._client", mock_client)

    assert dispatch_command(InfoCommand(file_id='f1')) == "report.pdf"


def test_dispatch_unknown_type():
    assert dispatch_command(object()).startswith("Unknown command type")
