"""
Airflow proxy routes.

Airflow deployments are stored as ``connection`` entities with
``platform == 'airflow'``. Listing and creating them never returns the
stored credentials; every DAG route resolves the connection server-side and
forwards to the Airflow stable REST API.
"""

import time
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse

from .deps import get_store
from .schemas import AirflowConnectionRequest, PauseDagRequest, TriggerDagRunRequest
from ..core import dao
from ..core.airflow import AirflowClient, validate_airflow_host
from ..core.db import EntityStore
from ..core.errors import AirflowConfigError, DataFlowError, MissingTable, RecordNotFound
from ..core.identifiers import entity_name_to_table
from ..core.query import parse_int, parse_skip

router = APIRouter()

CONNECTION_ENTITY = "Connection"
AIRFLOW_PLATFORM = "airflow"
HIDDEN_FIELDS = ("password", "api_token", "airflow_password")

DEFAULT_DAG_LIMIT = 100
MAX_DAG_LIMIT = 500
DEFAULT_RUN_LIMIT = 10
MAX_RUN_LIMIT = 50


def _strip_secrets(record: Dict[str, Any]) -> Dict[str, Any]:
    for field in HIDDEN_FIELDS:
        record.pop(field, None)
    return record


def _bounded(value: Optional[str], default: int, maximum: int) -> int:
    return max(1, min(parse_int(value) or default, maximum))


def _stored_connection(store: EntityStore, connection_id: str) -> Dict[str, Any]:
    """Unredacted document of a stored connection."""
    row = dao.get_raw_record(store, entity_name_to_table(CONNECTION_ENTITY), connection_id)
    if row is None:
        raise RecordNotFound("Connection not found")
    return row.data


def _client_for(store: EntityStore, connection_id: str) -> AirflowClient:
    return AirflowClient(_stored_connection(store, connection_id))


def _q(segment: str) -> str:
    return quote(segment, safe="")


def _check_health(client_factory) -> Dict[str, Any]:
    start = time.monotonic()
    try:
        details = client_factory().health()
    except DataFlowError as e:
        return {"success": False, "error": e.message,
                "latency_ms": round((time.monotonic() - start) * 1000)}
    return {"success": True, "latency_ms": round((time.monotonic() - start) * 1000),
            "details": details}


@router.get("/connections")
def list_airflow_connections(store: EntityStore = Depends(get_store)):
    try:
        records = dao.filter_records(store, CONNECTION_ENTITY, {"platform": AIRFLOW_PLATFORM})
    except MissingTable:
        return []
    return [_strip_secrets(r) for r in records]


@router.post("/connections", status_code=201)
def create_airflow_connection(req: AirflowConnectionRequest, store: EntityStore = Depends(get_store)):
    if not (req.name or "").strip() or not (req.host or "").strip():
        raise AirflowConfigError("Name and Airflow URL are required")

    data = {
        "name": req.name,
        "host": validate_airflow_host(req.host),
        "platform": AIRFLOW_PLATFORM,
        "connection_type": "orchestrator",
        "auth_method": req.auth_method or "bearer",
        "username": req.username,
        "password": req.password,
        "api_token": req.api_token,
        "status": "active",
    }
    return _strip_secrets(dao.create_record(store, CONNECTION_ENTITY, data))


@router.delete("/connections/{connection_id}")
def delete_airflow_connection(connection_id: str, store: EntityStore = Depends(get_store)):
    dao.delete_record(store, CONNECTION_ENTITY, connection_id)
    return {"success": True}


@router.post("/connections/test")
def test_airflow_credentials(req: AirflowConnectionRequest):
    """Check an Airflow deployment with credentials that are not stored yet."""
    if not (req.host or "").strip():
        return JSONResponse(status_code=400, content={"success": False, "error": "Airflow URL is required"})
    connection = req.model_dump(exclude={"name"})
    return _check_health(lambda: AirflowClient(connection))


@router.post("/connections/{connection_id}/test")
def test_airflow_connection(connection_id: str, store: EntityStore = Depends(get_store)):
    connection = _stored_connection(store, connection_id)
    return _check_health(lambda: AirflowClient(connection))


@router.get("/{connection_id}/dags")
def list_dags(connection_id: str, limit: Optional[str] = None, offset: Optional[str] = None,
              only_active: Optional[str] = None, search: Optional[str] = None,
              store: EntityStore = Depends(get_store)):
    client = _client_for(store, connection_id)

    params = {
        "limit": _bounded(limit, DEFAULT_DAG_LIMIT, MAX_DAG_LIMIT),
        "offset": parse_skip(offset),
        "order_by": "-last_parsed_time",
    }
    if only_active == "true":
        params["only_active"] = "true"
    if search:
        params["dag_id_pattern"] = search

    data = client.get_json(f"/dags?{urlencode(params)}")
    dags = []
    for d in data.get("dags") or []:
        schedule = d.get("schedule_interval")
        if isinstance(schedule, dict):
            schedule = schedule.get("value")
        dags.append({
            "dag_id": d.get("dag_id"),
            "description": d.get("description"),
            "file_token": d.get("file_token"),
            "is_paused": d.get("is_paused"),
            "is_active": d.get("is_active"),
            "owners": d.get("owners"),
            "schedule_interval": schedule or d.get("timetable_description"),
            "tags": [t.get("name") if isinstance(t, dict) else t for t in d.get("tags") or []],
            "last_parsed_time": d.get("last_parsed_time"),
            "next_dagrun": d.get("next_dagrun"),
            "has_task_concurrency_limits": d.get("has_task_concurrency_limits"),
        })
    return {"dags": dags, "total_entries": data.get("total_entries") or 0}


@router.get("/{connection_id}/dags/{dag_id}")
def get_dag(connection_id: str, dag_id: str, store: EntityStore = Depends(get_store)):
    return _client_for(store, connection_id).get_json(f"/dags/{_q(dag_id)}")


@router.patch("/{connection_id}/dags/{dag_id}")
def pause_dag(connection_id: str, dag_id: str, req: PauseDagRequest,
              store: EntityStore = Depends(get_store)):
    client = _client_for(store, connection_id)
    data = client.get_json(f"/dags/{_q(dag_id)}?update_mask=is_paused", method="PATCH",
                           body={"is_paused": req.is_paused})
    return {"dag_id": data.get("dag_id"), "is_paused": data.get("is_paused")}


@router.get("/{connection_id}/dags/{dag_id}/dagRuns")
def list_dag_runs(connection_id: str, dag_id: str, limit: Optional[str] = None,
                  offset: Optional[str] = None, store: EntityStore = Depends(get_store)):
    client = _client_for(store, connection_id)
    params = {
        "limit": _bounded(limit, DEFAULT_RUN_LIMIT, MAX_RUN_LIMIT),
        "offset": parse_skip(offset),
        "order_by": "-execution_date",
    }
    data = client.get_json(f"/dags/{_q(dag_id)}/dagRuns?{urlencode(params)}")
    fields = ("dag_run_id", "dag_id", "state", "execution_date", "start_date",
              "end_date", "external_trigger", "conf")
    return {
        "dag_runs": [{f: r.get(f) for f in fields} for r in data.get("dag_runs") or []],
        "total_entries": data.get("total_entries") or 0,
    }


@router.post("/{connection_id}/dags/{dag_id}/dagRuns")
def trigger_dag_run(connection_id: str, dag_id: str, req: Optional[TriggerDagRunRequest] = None,
                    store: EntityStore = Depends(get_store)):
    client = _client_for(store, connection_id)
    conf = (req.conf if req else None) or {}
    data = client.get_json(f"/dags/{_q(dag_id)}/dagRuns", method="POST", body={"conf": conf})
    return {
        "dag_run_id": data.get("dag_run_id"),
        "state": data.get("state"),
        "execution_date": data.get("execution_date"),
    }


@router.get("/{connection_id}/dags/{dag_id}/tasks")
def list_tasks(connection_id: str, dag_id: str, store: EntityStore = Depends(get_store)):
    data = _client_for(store, connection_id).get_json(f"/dags/{_q(dag_id)}/tasks")
    fields = ("task_id", "operator_name", "downstream_task_ids", "pool", "retries")
    return {"tasks": [{f: t.get(f) for f in fields} for t in data.get("tasks") or []]}


@router.get("/{connection_id}/dags/{dag_id}/dagRuns/{run_id}/taskInstances")
def list_task_instances(connection_id: str, dag_id: str, run_id: str,
                        store: EntityStore = Depends(get_store)):
    client = _client_for(store, connection_id)
    data = client.get_json(f"/dags/{_q(dag_id)}/dagRuns/{_q(run_id)}/taskInstances")
    fields = ("task_id", "state", "start_date", "end_date", "duration", "try_number", "operator")
    return {
        "task_instances": [{f: ti.get(f) for f in fields} for ti in data.get("task_instances") or []],
    }


@router.get("/{connection_id}/dags/{dag_id}/dagRuns/{run_id}/taskInstances/{task_id}/logs/{try_number}")
def get_task_log(connection_id: str, dag_id: str, run_id: str, task_id: str, try_number: int,
                 store: EntityStore = Depends(get_store)):
    client = _client_for(store, connection_id)
    text = client.get_text(
        f"/dags/{_q(dag_id)}/dagRuns/{_q(run_id)}/taskInstances/{_q(task_id)}/logs/{try_number}"
    )
    return PlainTextResponse(text)
