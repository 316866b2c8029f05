"""Unit tests for log redaction and the JSON formatter."""

import json
import logging

from infrastructure.logging_config import JSONFormatter, SensitiveDataFilter, redact


def _record(msg, *args, **extra) -> logging.LogRecord:
    record = logging.LogRecord("relay", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_redacts_tokens_in_urls():
    url = "https://graph.facebook.com/v20.0/123?fields=id&access_token=EAAB123secret"
    assert redact(url) == "https://graph.facebook.com/v20.0/123?fields=id&access_token=[REDACTED]"


def test_redacts_client_secret_and_exchange_token():
    text = "client_secret=abc&fb_exchange_token=xyz"
    redacted = redact(text)
    assert "abc" not in redacted
    assert "xyz" not in redacted


def test_filter_scrubs_message_and_args():
    record = _record("calling %s", "https://x/?access_token=tok123")

    assert SensitiveDataFilter().filter(record) is True
    assert "tok123" not in record.getMessage()


def test_json_formatter_promotes_extra_fields():
    record = _record("published", account_id="123", container_id="c1", unrelated="x")

    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "published"
    assert entry["level"] == "INFO"
    assert entry["account_id"] == "123"
    assert entry["container_id"] == "c1"
    assert "unrelated" not in entry
