"""
Shaping stored rows into API records, and the reverse for update payloads.

Connection records carry credentials. On read their secrets are replaced by
REDACTION_MARKER; on write the marker means "unchanged" and never reaches the
store.
"""

from typing import Any, Dict, Optional

from .schema import EntityRow

REDACTION_MARKER = "••••••••"

CREDENTIAL_TABLE = "connection"
SECRET_FIELDS = ("password", "api_token", "connection_string")
VAULT_CONFIG_FIELD = "vault_config"
VAULT_SECRET_FIELDS = ("vault_role_id", "vault_secret_id")

SYSTEM_FIELDS = ("id", "created_date", "updated_date", "created_by")


def _redact_secrets(record: Dict[str, Any]) -> None:
    for field in SECRET_FIELDS:
        if record.get(field):
            record[field] = REDACTION_MARKER

    vault = record.get(VAULT_CONFIG_FIELD)
    if isinstance(vault, dict):
        vault = dict(vault)
        for field in VAULT_SECRET_FIELDS:
            if vault.get(field):
                vault[field] = REDACTION_MARKER
        record[VAULT_CONFIG_FIELD] = vault


def format_record(row: EntityRow, table: str, include_created_by: bool = True) -> Dict[str, Any]:
    """Flatten a row into {id, **data, created_date, updated_date[, created_by]}."""
    record = {"id": str(row.id)}
    record.update(row.data)
    record["created_date"] = row.created_date
    record["updated_date"] = row.updated_date
    if include_created_by:
        record["created_by"] = row.created_by

    if table == CREDENTIAL_TABLE:
        _redact_secrets(record)
    return record


def prepare_update(table: str, payload: Dict[str, Any],
                   stored_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the document patch for a shallow-merge update.

    System fields are dropped. For connections, secrets still equal to the
    redaction marker are dropped too; inside ``vault_config`` (which the merge
    replaces wholesale) the stored sub-secret is carried over instead.
    """
    data = {k: v for k, v in payload.items() if k not in SYSTEM_FIELDS}
    if table != CREDENTIAL_TABLE:
        return data

    for field in SECRET_FIELDS:
        if data.get(field) == REDACTION_MARKER:
            del data[field]

    vault = data.get(VAULT_CONFIG_FIELD)
    if isinstance(vault, dict):
        vault = dict(vault)
        stored_vault = (stored_data or {}).get(VAULT_CONFIG_FIELD)
        if not isinstance(stored_vault, dict):
            stored_vault = {}
        for field in VAULT_SECRET_FIELDS:
            if vault.get(field) != REDACTION_MARKER:
                continue
            if field in stored_vault:
                vault[field] = stored_vault[field]
            else:
                del vault[field]
        data[VAULT_CONFIG_FIELD] = vault

    return data
