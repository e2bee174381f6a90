"""
Request bodies for the DataFlow REST API.

Entity documents themselves are free-form dicts; only the envelopes around
them (filter, batch, search) and the proxy/deploy payloads are modelled.
"""

from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional, List, Dict, Any


class FilterRequest(BaseModel):
    # query is validated by the filter parser so malformed documents map to 400
    query: Any = None
    sort: Optional[str] = None
    limit: Any = None
    skip: Any = None


class BatchCreateRequest(BaseModel):
    items: Optional[List[Dict[str, Any]]] = None


class SearchRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    searchTerm: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None
    limit: Any = None


class PurgeLogsRequest(BaseModel):
    days: Any = None


class AirflowConnectionRequest(BaseModel):
    name: Optional[str] = None
    host: Optional[str] = None
    auth_method: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    api_token: Optional[str] = None

    @field_validator('auth_method')
    @classmethod
    def auth_method_must_be_valid(cls, v):
        valid_methods = ['basic', 'bearer']
        if v is not None and v not in valid_methods:
            raise ValueError(f'auth_method must be one of: {valid_methods}')
        return v


class TriggerDagRunRequest(BaseModel):
    conf: Optional[Dict[str, Any]] = None


class PauseDagRequest(BaseModel):
    is_paused: bool


class GitCredentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class GitCommitRequest(GitCredentials):
    branch: Optional[str] = None
    files: Any = None
    commitMessage: Optional[str] = None
