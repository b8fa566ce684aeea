"""Tests for log masking."""

import logging

from common.logging_config import SensitiveDataFilter, mask_phone


def filtered(message: str) -> str:
    record = logging.LogRecord("test", logging.INFO, __file__, 1, message, None, None)
    SensitiveDataFilter().filter(record)
    return record.msg


def test_masks_api_key():
    assert "s3cr3t" not in filtered("api_key=s3cr3t")


def test_masks_signature_in_query():
    message = filtered("GET /download/redirect/f1?expires=1&signature=abcdef0123")
    assert "abcdef0123" not in message
    assert "expires=1" in message


def test_masks_bot_token_in_url():
    message = filtered("POST https://api.telegram.org/bot123456:ABC-def_ghi/getFile")
    assert "ABC-def_ghi" not in message
    assert "/getFile" in message


def test_masks_phone_code_hash():
    assert "deadbeef" not in filtered("phone_code_hash=deadbeef")


def test_masks_phone_number():
    message = filtered("phone_number=+15550001111")
    assert "5550001111" not in message


def test_leaves_plain_messages():
    assert filtered("Upload committed [upload_id=5]") == "Upload committed [upload_id=5]"


def test_mask_phone():
    assert mask_phone("+15550001111") == "+155****11"
    assert mask_phone("") == "unset"
    assert mask_phone("12345") == "****"
