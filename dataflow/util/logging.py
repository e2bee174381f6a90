"""
Structured logging for entity, request, proxy and audit operations.
"""

import logging
from typing import Any, Dict, List

from ..core.config import LOG_LEVEL

SENSITIVE_FIELDS = [
    'password', 'api_token', 'airflow_password', 'connection_string',
    'secret', 'token', 'vault_role_id', 'vault_secret_id',
]


class StructuredLogger:
    """Structured logger for DataFlow operations."""

    def __init__(self, name: str = "dataflow", level: str = LOG_LEVEL):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level, logging.INFO))

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        else:
            self.logger.info(message)

    def log_entity_operation(self, operation: str, table: str, record_id: Any = None,
                             status: str = "success", details: Dict[str, Any] = None):
        """Log a create/update/delete against an entity table."""
        log_details = {"table": table}
        if record_id is not None:
            log_details["id"] = str(record_id)
        if details:
            log_details.update(details)

        self.log_operation(f"entity.{operation}", status, log_details)

    def log_request(self, method: str, path: str, status_code: int, duration_ms: float):
        """Log one handled HTTP request."""
        self.logger.info(f"[api] {method} {path} {status_code} {round(duration_ms)}ms")

    def log_proxy_call(self, service: str, method: str, path: str, status: str,
                       duration_ms: float, details: Dict[str, Any] = None):
        """Log an outbound call to Airflow or GitLab."""
        log_details = {"method": method, "path": path, "duration_ms": round(duration_ms, 2)}
        if details:
            log_details.update(sanitize_payload(details))

        self.log_operation(f"{service}.request", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def debug(self, message: str) -> None:
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None,
                sensitive_fields: List[str] = None):
    """General audit event logging with secrets masked."""
    log_details = identifiers.copy() if identifiers else {}

    if payload:
        log_details["payload"] = sanitize_payload(payload, sensitive_fields=sensitive_fields)

    logger.log_operation(event_type.replace(".", "_"), "audit", log_details)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Mask secrets and truncate long strings for log output."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
