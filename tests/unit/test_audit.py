"""Unit tests for the audit log."""

import json

from pgvp.core.audit import (
    AuditEvent,
    AuditEventType,
    AuditLogger,
    AuditResult,
)


def _read_events(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestAuditEvent:
    """Tests for AuditEvent serialization."""

    def test_sensitive_parameters_redacted(self):
        event = AuditEvent(
            event_type=AuditEventType.USER_CREATE,
            result=AuditResult.SUCCESS,
            parameters={
                "password": "hunter2",
                "app_dsn": "postgresql://u:p@h:5432/db",
                "app_user": "webui_user",
                "nested": {"db_password": "x"},
            },
        )

        params = event.to_dict()["parameters"]

        assert params["password"] == "***REDACTED***"
        assert params["app_dsn"] == "***REDACTED***"
        assert params["app_user"] == "webui_user"
        assert params["nested"]["db_password"] == "***REDACTED***"

    def test_json_fields(self):
        event = AuditEvent(
            event_type=AuditEventType.SERVICE_STOP,
            result=AuditResult.DRY_RUN,
            target_type="service",
            target_name="postgresql-16",
        )

        data = json.loads(event.to_json())

        assert data["event_type"] == "service.stop"
        assert data["result"] == "dry_run"
        assert data["target"] == {"type": "service", "name": "postgresql-16"}


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_session_events_share_id(self, tmp_path):
        log_path = tmp_path / "audit" / "audit.log"
        logger = AuditLogger(log_path=log_path)

        logger.log_session_start("provision", {"dry_run": False})
        logger.log_success(AuditEventType.CONFIG_WRITE, "directory", "/var/lib/pgsql/16/data")
        logger.log_session_end(0)

        events = _read_events(log_path)
        assert [e["event_type"] for e in events] == [
            "session.start", "config.write", "session.end",
        ]
        assert len({e["session_id"] for e in events}) == 1

    def test_failed_session_end(self, tmp_path):
        log_path = tmp_path / "audit.log"
        logger = AuditLogger(log_path=log_path)

        logger.log_session_end(13)

        event = _read_events(log_path)[0]
        assert event["result"] == "failure"
        assert event["parameters"]["exit_code"] == 13

    def test_disabled_writes_nothing(self, tmp_path):
        log_path = tmp_path / "audit.log"
        logger = AuditLogger(log_path=log_path, enabled=False)

        logger.log_session_start("provision", {})

        assert not log_path.exists()

    def test_rotation(self, tmp_path):
        log_path = tmp_path / "audit.log"
        logger = AuditLogger(log_path=log_path, max_size_mb=0, backup_count=2)

        logger.log_session_start("provision", {})
        logger.log_session_start("provision", {})

        assert log_path.with_suffix(".1").exists()
        assert log_path.exists()
