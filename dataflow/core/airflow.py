"""
Client for the Airflow stable REST API (``/api/v1``).

Connections are ordinary ``connection`` entities with ``platform == 'airflow'``.
Every request carries a fixed timeout and hosts on private or loopback
networks are refused.
"""

import base64
import ipaddress
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import requests

from . import config
from .errors import AirflowConfigError, AirflowError, AirflowTimeout
from ..util.logging import logger

API_BASE_PATH = "/api/v1"

_STATUS_MESSAGES = {
    401: "Authentication failed (401): verify your username/password or API token are correct",
    403: "Access denied (403): the credentials are valid but lack permission. Check the user role in Airflow",
    404: "Airflow API endpoint not found (404): verify the URL includes the correct base path "
         "(e.g., https://airflow.example.com)",
}


def _is_restricted_host(hostname: str) -> bool:
    if not hostname or hostname.lower() == "localhost":
        return True
    try:
        address = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return (address.is_loopback or address.is_private or address.is_link_local
            or address.is_unspecified or address.is_reserved)


def validate_airflow_host(host: Any) -> str:
    """Return the origin of an Airflow URL, rejecting unusable or internal hosts."""
    if not host or not isinstance(host, str):
        raise AirflowConfigError("Airflow URL is required")
    try:
        parts = urlsplit(host.strip())
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        raise AirflowConfigError("Invalid Airflow URL format")

    if parts.scheme not in ("http", "https"):
        raise AirflowConfigError("Airflow URL must use http or https")
    if not hostname:
        raise AirflowConfigError("Invalid Airflow URL format")
    if _is_restricted_host(hostname):
        raise AirflowConfigError("Airflow URL points to a restricted network address")

    netloc = f"[{hostname}]" if ":" in hostname else hostname
    if port:
        netloc = f"{netloc}:{port}"
    return f"{parts.scheme}://{netloc}"


class AirflowClient:
    """Authenticated calls against one Airflow deployment."""

    def __init__(self, connection: Dict[str, Any], timeout: Optional[int] = None):
        self.base_url = validate_airflow_host(connection.get("host"))
        self.connection = connection
        self.timeout = timeout or config.AIRFLOW_TIMEOUT_SEC

    def _auth_headers(self) -> Dict[str, str]:
        conn = self.connection
        user = conn.get("airflow_username") or conn.get("username")
        password = conn.get("airflow_password") or conn.get("password")
        token = conn.get("api_token") or conn.get("password") or conn.get("username")

        if conn.get("auth_method") == "basic" and user and password:
            credentials = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
            return {"Authorization": f"Basic {credentials}"}
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    def request(self, path: str, method: str = "GET", body: Any = None,
                accept: str = "application/json") -> requests.Response:
        url = f"{self.base_url}{API_BASE_PATH}{path}"
        headers = {"Accept": accept, "Content-Type": "application/json"}
        headers.update(self._auth_headers())

        start = time.monotonic()
        try:
            resp = requests.request(method, url, headers=headers, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.log_proxy_call("airflow", method, path, "failed", (time.monotonic() - start) * 1000)
            raise AirflowTimeout(
                f"Connection timed out after {self.timeout} seconds: the Airflow server may be "
                f"unreachable or behind a firewall."
            )
        except requests.exceptions.SSLError:
            raise AirflowError(
                "SSL certificate error: the Airflow server has an untrusted certificate. "
                "Try using http:// instead of https://, or ensure the certificate is valid."
            )
        except requests.exceptions.ConnectionError:
            raise AirflowError(
                "Connection refused: the Airflow server is not reachable at this URL. "
                "Check that the host and port are correct and the server is running."
            )

        duration_ms = (time.monotonic() - start) * 1000
        status = "success" if resp.ok else "failed"
        logger.log_proxy_call("airflow", method, path, status, duration_ms,
                              {"status_code": resp.status_code})

        if not resp.ok:
            message = _STATUS_MESSAGES.get(resp.status_code)
            if message is None:
                message = f"Airflow API returned {resp.status_code}: {resp.text[:200]}"
            raise AirflowError(message)
        return resp

    def get_json(self, path: str, method: str = "GET", body: Any = None) -> Any:
        return self.request(path, method=method, body=body).json()

    def get_text(self, path: str) -> str:
        return self.request(path, accept="text/plain").text

    def health(self) -> Any:
        return self.get_json("/health")
