"""
Tests for structured logging and the request logging middleware.
"""

import json
import logging
import os
import tempfile
import unittest
import uuid

from conftest import build_test_client
from repurposer.storage.memory import MemoryDatabase
from repurposer.utils.logging import (
    REDACTED,
    JSONFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    Timer,
    clear_request_context,
    redact_sensitive_data,
    set_request_context,
)


def make_record(msg, *args, level=logging.INFO):
    return logging.LogRecord("repurposer.test", level, __file__, 10, msg, args, None)


class TestRedaction(unittest.TestCase):
    def test_plain_message_unchanged(self):
        self.assertEqual(redact_sensitive_data("Repurpose completed"), "Repurpose completed")

    def test_provider_keys_redacted(self):
        for secret in ("sk-ant-api03-abcdef", "gsk_abcdef123", "sk-proj-abcdefghijklmnop"):
            result = redact_sensitive_data(f"calling provider with {secret}")
            self.assertNotIn(secret, result)
            self.assertIn(REDACTED, result)

    def test_bearer_token_redacted(self):
        self.assertNotIn("abc.def", redact_sensitive_data("Bearer abc.def"))

    def test_dsn_redacted(self):
        result = redact_sensitive_data("connect postgresql://user:pw@db:5432/app failed")
        self.assertNotIn("user:pw", result)

    def test_empty(self):
        self.assertEqual(redact_sensitive_data(""), "")


class TestFilters(unittest.TestCase):
    def setUp(self):
        clear_request_context()

    def tearDown(self):
        clear_request_context()

    def test_sensitive_filter_scrubs_args(self):
        record = make_record("key=%s count=%d", "sk-ant-secret-key", 3)
        SensitiveDataFilter().filter(record)
        self.assertEqual(record.args, (REDACTED, 3))

    def test_context_filter_defaults(self):
        record = make_record("hello")
        RequestContextFilter().filter(record)
        self.assertEqual(record.request_id, "-")
        self.assertEqual(record.account_id, "-")

    def test_context_filter_uses_request_context(self):
        set_request_context(request_id="req-1", account_id="acct-1")
        record = make_record("hello")
        RequestContextFilter().filter(record)
        self.assertEqual(record.request_id, "req-1")
        self.assertEqual(record.account_id, "acct-1")

    def test_stage_is_stamped(self):
        set_request_context(stage="generating")
        record = make_record("hello")
        RequestContextFilter().filter(record)
        self.assertEqual(record.stage, "generating")


class TestJSONFormatter(unittest.TestCase):
    def test_single_line_json(self):
        record = make_record("Repurpose completed")
        record.platforms = ["twitter"]
        RequestContextFilter().filter(record)

        data = json.loads(JSONFormatter("svc").format(record))

        self.assertEqual(data["message"], "Repurpose completed")
        self.assertEqual(data["service"], "svc")
        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["extra"], {"platforms": ["twitter"]})
        self.assertNotIn("source", data)

    def test_errors_carry_source(self):
        data = json.loads(JSONFormatter().format(make_record("boom", level=logging.ERROR)))
        self.assertEqual(data["source"]["line"], 10)


class TestTimer(unittest.TestCase):
    def test_records_elapsed(self):
        with self.assertLogs("repurposer.timer", level="DEBUG") as captured:
            with Timer("generation", logging.getLogger("repurposer.timer")) as timer:
                pass
        self.assertGreaterEqual(timer.elapsed_ms, 0)
        self.assertIn("generation completed", captured.output[0])


class TestRequestLoggingMiddleware(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.client, _, _ = build_test_client(
            MemoryDatabase(), os.path.join(self._tmp.name, "api_keys.json")
        )

    def tearDown(self):
        self._tmp.cleanup()

    def test_generated_request_id_is_uuid(self):
        response = self.client.get("/api/tiers")
        uuid.UUID(response.headers["X-Request-ID"])

    def test_unique_request_ids(self):
        first = self.client.get("/api/tiers").headers["X-Request-ID"]
        second = self.client.get("/api/tiers").headers["X-Request-ID"]
        self.assertNotEqual(first, second)

    def test_client_errors_logged_as_warning(self):
        with self.assertLogs("app.middleware.logging", level="WARNING") as captured:
            self.client.get("/api/does-not-exist")
        self.assertIn("404", captured.output[0])
        self.assertEqual(captured.records[0].error_code, "RESOURCE_NOT_FOUND")


if __name__ == "__main__":
    unittest.main()
