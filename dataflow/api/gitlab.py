"""
Git deployment routes: commit generated pipeline specs to GitLab with the
caller's directory credentials.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from .schemas import GitCommitRequest, GitCredentials
from ..core.errors import DataFlowError
from ..core.gitlab import (
    GitLabClient,
    commit_message,
    get_gitlab_config,
    sanitize_branch,
    validate_spec_files,
)
from ..util.logging import logger

router = APIRouter()


@router.get("/config")
def gitlab_config():
    return get_gitlab_config()


@router.post("/status")
def gitlab_status(req: GitCredentials):
    if not req.username or not req.password:
        return JSONResponse(status_code=400,
                            content={"connected": False, "error": "Username and password required"})
    try:
        return GitLabClient(req.username, req.password).check_status()
    except DataFlowError as e:
        return {"connected": False, "error": e.message}


@router.post("/commit")
def gitlab_commit(req: GitCommitRequest):
    """Commit ``specs/`` files to the requested branch in a single commit."""
    if not req.username or not req.password:
        return JSONResponse(status_code=400, content={"success": False, "error": "LDAP credentials required"})

    try:
        files = validate_spec_files(req.files)
        result = GitLabClient(req.username, req.password).commit_files(
            branch=sanitize_branch(req.branch),
            files=files,
            message=commit_message(req.commitMessage),
        )
    except DataFlowError as e:
        if e.status_code >= 500:
            logger.error(f"GitLab commit error: {e.message}")
        return JSONResponse(status_code=e.status_code, content={"success": False, "error": e.message})

    return {"success": True, **result}
