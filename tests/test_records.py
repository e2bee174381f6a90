"""
Record shaping and secret redaction.
"""

from dataflow.core.records import REDACTION_MARKER, format_record, prepare_update
from dataflow.core.schema import EntityRow


def _row(data, row_id=7):
    return EntityRow(id=row_id, data=data, created_date="2024-01-01T00:00:00.000000+00:00",
                     updated_date="2024-01-02T00:00:00.000000+00:00", created_by="user@local")


class TestFormatRecord:

    def test_flattens_document(self):
        record = format_record(_row({"name": "Nightly Load", "status": "active"}), "pipeline")
        assert record == {
            "id": "7",
            "name": "Nightly Load",
            "status": "active",
            "created_date": "2024-01-01T00:00:00.000000+00:00",
            "updated_date": "2024-01-02T00:00:00.000000+00:00",
            "created_by": "user@local",
        }

    def test_created_by_optional(self):
        record = format_record(_row({}), "pipeline", include_created_by=False)
        assert "created_by" not in record

    def test_connection_secrets_redacted(self):
        record = format_record(_row({
            "name": "warehouse",
            "password": "s3cret",
            "api_token": "tok",
            "connection_string": "postgres://u:p@h/db",
            "vault_config": {"vault_role_id": "role", "vault_secret_id": "sid", "path": "kv/x"},
        }), "connection")
        assert record["password"] == REDACTION_MARKER
        assert record["api_token"] == REDACTION_MARKER
        assert record["connection_string"] == REDACTION_MARKER
        assert record["vault_config"] == {
            "vault_role_id": REDACTION_MARKER,
            "vault_secret_id": REDACTION_MARKER,
            "path": "kv/x",
        }

    def test_empty_secrets_stay_empty(self):
        record = format_record(_row({"password": "", "vault_config": {"vault_role_id": ""}}), "connection")
        assert record["password"] == ""
        assert "api_token" not in record
        assert record["vault_config"] == {"vault_role_id": ""}

    def test_other_kinds_not_redacted(self):
        record = format_record(_row({"password": "visible"}), "pipeline")
        assert record["password"] == "visible"

    def test_stored_row_untouched(self):
        row = _row({"vault_config": {"vault_secret_id": "sid"}})
        format_record(row, "connection")
        assert row.data["vault_config"]["vault_secret_id"] == "sid"


class TestPrepareUpdate:

    def test_system_fields_dropped(self):
        patch_doc = prepare_update("pipeline", {
            "id": "99", "created_date": "x", "updated_date": "y", "created_by": "z", "status": "paused",
        })
        assert patch_doc == {"status": "paused"}

    def test_marker_means_unchanged(self):
        patch_doc = prepare_update("connection", {"password": REDACTION_MARKER, "name": "n"})
        assert patch_doc == {"name": "n"}

    def test_new_secret_kept(self):
        patch_doc = prepare_update("connection", {"password": "new-secret"})
        assert patch_doc == {"password": "new-secret"}

    def test_vault_secrets_carried_over(self):
        stored = {"vault_config": {"vault_role_id": "role", "vault_secret_id": "sid", "path": "old"}}
        patch_doc = prepare_update("connection", {
            "vault_config": {"vault_role_id": REDACTION_MARKER, "vault_secret_id": "new", "path": "new"},
        }, stored)
        assert patch_doc["vault_config"] == {"vault_role_id": "role", "vault_secret_id": "new", "path": "new"}

    def test_marker_only_honoured_for_connections(self):
        patch_doc = prepare_update("pipeline", {"password": REDACTION_MARKER})
        assert patch_doc == {"password": REDACTION_MARKER}
