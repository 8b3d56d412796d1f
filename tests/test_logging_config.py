"""Tests for log masking and logger setup."""

import logging

from common.logging_config import SensitiveDataFilter, setup_logging, setup_package_logging


def _record(msg, args=()):
    return logging.LogRecord("relay", logging.INFO, __file__, 1, msg, args, None)


def test_masks_secrets_in_message():
    record = _record("session_token=abc123 private_key: 0xdeadbeef")
    SensitiveDataFilter().filter(record)

    assert "abc123" not in record.msg
    assert "0xdeadbeef" not in record.msg
    assert record.msg.count("***MASKED***") == 2


def test_masks_bearer_and_payment_header():
    record = _record("Authorization header Bearer tok.en.value, X-PAYMENT=signed-blob")
    SensitiveDataFilter().filter(record)

    assert "tok.en.value" not in record.msg
    assert "signed-blob" not in record.msg


def test_masks_string_args():
    record = _record("request %s", ("secret_key=s3cr3t",))
    SensitiveDataFilter().filter(record)

    assert record.args == ("secret_key=***MASKED***",)


def test_leaves_ordinary_messages_alone():
    record = _record("Submitting batch [batch=1/3, operations=100]")
    SensitiveDataFilter().filter(record)

    assert record.msg == "Submitting batch [batch=1/3, operations=100]"


def test_setup_logging_is_idempotent():
    logger = setup_logging("netstore-test-component", log_level="debug")
    again = setup_logging("netstore-test-component", log_level="debug")

    assert logger is again
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert not logger.propagate


def test_setup_package_logging_configures_each_package():
    setup_package_logging(("netstore-test-a", "netstore-test-b"), log_level="ERROR")

    for name in ("netstore-test-a", "netstore-test-b"):
        logger = logging.getLogger(name)
        assert logger.level == logging.ERROR
        assert any(isinstance(f, SensitiveDataFilter) for h in logger.handlers for f in h.filters)
