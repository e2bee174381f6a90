"""
Structured logging and audit masking.
"""

import logging
from unittest.mock import patch

from dataflow.util.logging import StructuredLogger, audit_event, logger, sanitize_payload


class TestSanitizePayload:

    def test_masks_sensitive_keys_recursively(self):
        payload = {
            "name": "warehouse",
            "password": "s3cret",
            "vault_config": {"vault_secret_id": "sid", "path": "kv/x"},
            "items": [{"api_token": "t"}],
        }
        assert sanitize_payload(payload) == {
            "name": "warehouse",
            "password": "[REDACTED]",
            "vault_config": {"vault_secret_id": "[REDACTED]", "path": "kv/x"},
            "items": [{"api_token": "[REDACTED]"}],
        }

    def test_reveal_and_custom_fields(self):
        assert sanitize_payload({"password": "p"}, reveal_sensitive=True) == {"password": "p"}
        assert sanitize_payload({"owner": "ana"}, sensitive_fields=["owner"]) == {"owner": "[REDACTED]"}

    def test_long_strings_truncated(self):
        assert sanitize_payload("x" * 150) == "x" * 100 + "..."


class TestStructuredLogger:

    def test_single_handler_per_name(self):
        first = StructuredLogger("dataflow.test_handlers")
        second = StructuredLogger("dataflow.test_handlers")
        assert first.logger is second.logger
        assert len(second.logger.handlers) == 1

    def test_failed_operations_log_at_error(self, caplog):
        log = StructuredLogger("dataflow.test_levels", level="DEBUG")
        with caplog.at_level(logging.DEBUG, logger="dataflow.test_levels"):
            log.log_entity_operation("update", "pipeline", 3, status="failed")
            log.log_request("GET", "/api/health", 200, 1.4)
        records = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert records[0][0] == logging.ERROR
        assert "entity.update" in records[0][1] and "'id': '3'" in records[0][1]
        assert records[1] == (logging.INFO, "[api] GET /api/health 200 1ms")

    def test_audit_event_masks_payload(self):
        with patch.object(logger, "log_operation") as log_operation:
            audit_event("gitlab.commit", {"branch": "main"}, {"password": "pw", "files": ["specs/a.yaml"]})
        operation, status, details = log_operation.call_args.args
        assert operation == "gitlab_commit"
        assert status == "audit"
        assert details == {"branch": "main", "payload": {"password": "[REDACTED]", "files": ["specs/a.yaml"]}}
