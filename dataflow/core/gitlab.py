"""
Git deployment of pipeline specs through the GitLab REST API (v4).

Users authenticate with their directory (LDAP) credentials, exchanged for a
short-lived OAuth token with the password grant; files are then committed in
a single commit on the requested branch.
"""

import re
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from . import config
from .errors import GitLabError, InvalidDeployRequest
from ..util.logging import audit_event, logger

ALLOWED_PATH_PREFIX = "specs/"
DEFAULT_COMMIT_MESSAGE = "DataFlow pipeline deployment"
MAX_COMMIT_MESSAGE_LENGTH = 500

_BRANCH_DISALLOWED = re.compile(r"[^a-zA-Z0-9_\-/.]")


def get_gitlab_config() -> Dict[str, Any]:
    """Public view of the deployment target (no secrets)."""
    return {
        "configured": bool(config.GITLAB_URL and config.GITLAB_PROJECT_ID),
        "url": config.GITLAB_URL or None,
        "project": config.GITLAB_PROJECT_ID or None,
        "default_branch": config.GITLAB_DEFAULT_BRANCH,
    }


def _json_body(resp: requests.Response) -> Dict[str, Any]:
    """Decoded JSON object of a GitLab answer; anything else is a GitLabError."""
    try:
        body = resp.json()
    except ValueError:
        raise GitLabError(f"GitLab returned a non-JSON response ({resp.status_code})")
    if not isinstance(body, dict):
        raise GitLabError(f"GitLab returned an unexpected response ({resp.status_code})")
    return body


class GitLabClient:
    """Commits files to the configured project on behalf of one user."""

    def __init__(self, username: str, password: str, timeout: int = None):
        if not config.GITLAB_URL or not config.GITLAB_PROJECT_ID:
            raise GitLabError("GitLab is not configured (set GITLAB_URL and GITLAB_PROJECT_ID)")
        self.base_url = config.GITLAB_URL.rstrip("/")
        self.project = quote(str(config.GITLAB_PROJECT_ID), safe="")
        self.username = username
        self.password = password
        self.timeout = timeout or config.GITLAB_TIMEOUT_SEC
        self._token = None

    def _call(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        start = time.monotonic()
        try:
            resp = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            raise GitLabError(f"GitLab request timed out after {self.timeout} seconds")
        except requests.exceptions.ConnectionError as e:
            raise GitLabError(f"GitLab is not reachable: {e}")

        logger.log_proxy_call("gitlab", method, path, "success" if resp.ok else "failed",
                              (time.monotonic() - start) * 1000, {"status_code": resp.status_code})
        return resp

    def _authorized(self, method: str, path: str, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self.token()}"
        return self._call(method, path, headers=headers, **kwargs)

    def token(self) -> str:
        if self._token is None:
            resp = self._call("POST", "/oauth/token", data={
                "grant_type": "password",
                "username": self.username,
                "password": self.password,
            })
            if resp.status_code in (400, 401):
                raise GitLabError("GitLab authentication failed: check your LDAP username and password")
            if not resp.ok:
                raise GitLabError(f"GitLab token request returned {resp.status_code}")
            token = _json_body(resp).get("access_token")
            if not token:
                raise GitLabError("GitLab token response did not include an access token")
            self._token = token
        return self._token

    def check_status(self) -> Dict[str, Any]:
        """Verify the credentials and access to the target project."""
        user = self._authorized("GET", "/api/v4/user")
        if not user.ok:
            raise GitLabError(f"GitLab user lookup returned {user.status_code}")
        project = self._authorized("GET", f"/api/v4/projects/{self.project}")
        if not project.ok:
            raise GitLabError(f"No access to GitLab project {config.GITLAB_PROJECT_ID}")

        project_data = _json_body(project)
        return {
            "connected": True,
            "username": _json_body(user).get("username"),
            "project": project_data.get("path_with_namespace", config.GITLAB_PROJECT_ID),
        }

    def _branch_exists(self, branch: str) -> bool:
        resp = self._authorized("GET", f"/api/v4/projects/{self.project}/repository/branches/"
                                       f"{quote(branch, safe='')}")
        return resp.ok

    def _file_exists(self, path: str, branch: str) -> bool:
        resp = self._authorized("HEAD", f"/api/v4/projects/{self.project}/repository/files/"
                                        f"{quote(path, safe='')}", params={"ref": branch})
        return resp.ok

    def commit_files(self, branch: str, files: List[Dict[str, Any]], message: str) -> Dict[str, Any]:
        """Create or update ``files`` (dicts with path/content) in one commit."""
        body: Dict[str, Any] = {"branch": branch, "commit_message": message, "actions": []}

        if self._branch_exists(branch):
            ref = branch
        else:
            ref = config.GITLAB_DEFAULT_BRANCH
            body["start_branch"] = ref

        for f in files:
            action = "update" if self._file_exists(f["path"], ref) else "create"
            body["actions"].append({
                "action": action,
                "file_path": f["path"],
                "content": f.get("content", ""),
            })

        resp = self._authorized("POST", f"/api/v4/projects/{self.project}/repository/commits", json=body)
        if not resp.ok:
            raise GitLabError(f"GitLab commit failed ({resp.status_code}): {resp.text[:200]}")

        commit = _json_body(resp)
        audit_event(
            event_type="gitlab.commit",
            identifiers={"branch": branch, "commit_id": commit.get("id")},
            payload={"files": [f["path"] for f in files], "username": self.username}
        )
        return {
            "commit_id": commit.get("id"),
            "short_id": commit.get("short_id"),
            "web_url": commit.get("web_url"),
            "branch": branch,
            "files_committed": len(files),
        }


def sanitize_branch(branch: Optional[str]) -> str:
    return _BRANCH_DISALLOWED.sub("_", branch or config.GITLAB_DEFAULT_BRANCH)


def commit_message(message: Optional[str]) -> str:
    return (message or DEFAULT_COMMIT_MESSAGE)[:MAX_COMMIT_MESSAGE_LENGTH]


def validate_spec_files(files: Any) -> List[Dict[str, Any]]:
    """Files must be a non-empty list of specs/ paths without traversal."""
    if not files or not isinstance(files, list):
        raise InvalidDeployRequest("Missing required field: files")
    for f in files:
        path = f.get("path") if isinstance(f, dict) else None
        if not isinstance(path, str) or not path.startswith(ALLOWED_PATH_PREFIX):
            raise InvalidDeployRequest(f'File path must start with "{ALLOWED_PATH_PREFIX}": {path}')
        if ".." in path:
            raise InvalidDeployRequest("Path traversal not allowed")
    return files
