"""
Tests for the append-only audit trail recorder.
"""

import re
import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import update
from structlog.testing import capture_logs

from compliance_engine.audit.recorder import (
    AuditRecorder,
    diff_fields,
    get_document_history,
    get_record_history,
    verify_event,
)
from compliance_engine.models.enums import AuditAction, RiskLevel
from compliance_engine.models.tables import AuditEvent, AuditImmutableError, Document


recorder = AuditRecorder()


class TestRecord:

    async def test_writes_event_with_actor(self, session, actor):
        record_id = uuid.uuid4()
        event = await recorder.record(
            session,
            table_name="risk_assessments",
            record_id=record_id,
            action_type=AuditAction.CREATE,
            actor=actor,
            new_values={"risk_score": 55},
            risk_level=RiskLevel.MEDIUM,
            compliance_tags=["SOX"],
        )
        assert event is not None
        assert event.event_seq is not None
        assert event.record_id == str(record_id)
        assert event.user_id == "auditor-1"
        assert event.ip_address == "10.0.0.5"
        assert event.session_id == "sess-1"
        assert event.action_type == "CREATE"
        assert event.risk_level == "MEDIUM"
        assert event.compliance_tags == ["SOX"]
        assert re.fullmatch(r"req_\d+_[0-9a-f]{9}", event.request_id)
        assert len(event.integrity_hash) == 64

    async def test_system_actor_by_default(self, session):
        event = await recorder.record(
            session, table_name="documents", record_id="d-1", action_type=AuditAction.CREATE,
        )
        assert event.user_id == "system"

    async def test_changed_fields_computed(self, session, actor):
        event = await recorder.record(
            session,
            table_name="risk_assessments",
            record_id="a-1",
            action_type=AuditAction.UPDATE,
            actor=actor,
            old_values={"status": "PENDING", "notes": None, "score": 55},
            new_values={"status": "REVIEWED", "notes": "ok", "score": 55},
        )
        assert event.changed_fields == ["notes", "status"]

    async def test_values_made_json_safe(self, session, actor):
        record_id = uuid.uuid4()
        event = await recorder.record(
            session,
            table_name="documents",
            record_id=record_id,
            action_type=AuditAction.CREATE,
            actor=actor,
            new_values={"document_id": record_id},
        )
        assert event.new_values == {"document_id": str(record_id)}

    async def test_failed_write_returns_none(self, actor):
        session = MagicMock()
        session.begin_nested.side_effect = RuntimeError("database unavailable")

        with capture_logs() as logs:
            event = await recorder.record(
                session,
                table_name="workflow_steps",
                record_id="s-1",
                action_type=AuditAction.UPDATE,
                actor=actor,
            )
        assert event is None
        session.add.assert_not_called()
        failure = next(entry for entry in logs if entry["event"] == "audit_write_failed")
        assert failure["action_type"] == "UPDATE"

    async def test_constraint_failure_keeps_primary_row(self, session, session_factory, actor):
        document = Document(raw_text="Invoice", tags=[], file_size=10)
        session.add(document)
        await session.flush()

        # table_name is NOT NULL, so the insert fails inside the savepoint
        event = await recorder.record(
            session,
            table_name=None,
            record_id=document.document_id,
            action_type=AuditAction.CREATE,
            actor=actor,
        )
        assert event is None
        await session.commit()

        async with session_factory() as fresh:
            assert await fresh.get(Document, document.document_id) is not None

    async def test_invalid_action_returns_none(self, session, actor):
        event = await recorder.record(
            session, table_name="documents", record_id="d-1", action_type="ERASE", actor=actor,
        )
        assert event is None


class TestImmutability:

    async def test_update_refused(self, session, actor):
        event = await recorder.record(
            session, table_name="documents", record_id="d-1", action_type=AuditAction.CREATE, actor=actor,
        )
        event.risk_level = "CRITICAL"
        with pytest.raises(AuditImmutableError):
            await session.flush()

    async def test_delete_refused(self, session, actor):
        event = await recorder.record(
            session, table_name="documents", record_id="d-1", action_type=AuditAction.CREATE, actor=actor,
        )
        await session.delete(event)
        with pytest.raises(AuditImmutableError):
            await session.flush()

    async def test_verify_detects_tampering(self, session, actor):
        event = await recorder.record(
            session,
            table_name="risk_assessments",
            record_id="a-1",
            action_type=AuditAction.APPROVE,
            actor=actor,
            new_values={"status": "APPROVED"},
        )
        assert verify_event(event)
        event.new_values = {"status": "FLAGGED"}
        assert not verify_event(event)

    async def test_verify_after_reload(self, session, session_factory, actor):
        event = await recorder.record(
            session, table_name="documents", record_id="d-1", action_type=AuditAction.CREATE, actor=actor,
        )
        await session.commit()

        async with session_factory() as fresh:
            stored = await fresh.get(AuditEvent, event.event_seq)
            assert verify_event(stored)

    async def test_verify_detects_bulk_rewrite(self, session, session_factory, actor):
        event = await recorder.record(
            session, table_name="documents", record_id="d-1", action_type=AuditAction.CREATE, actor=actor,
        )
        await session.commit()

        # Statement-level updates bypass the ORM guards
        await session.execute(
            update(AuditEvent)
            .where(AuditEvent.event_seq == event.event_seq)
            .values(created_at=datetime(1999, 1, 1, tzinfo=timezone.utc), ip_address="6.6.6.6")
        )
        await session.commit()

        async with session_factory() as fresh:
            stored = await fresh.get(AuditEvent, event.event_seq)
            assert stored.ip_address == "6.6.6.6"
            assert not verify_event(stored)

    async def test_hash_covers_created_at(self, session, actor):
        event = await recorder.record(
            session, table_name="documents", record_id="d-1", action_type=AuditAction.CREATE, actor=actor,
        )
        event.created_at = datetime(1999, 1, 1, tzinfo=timezone.utc)
        assert not verify_event(event)


class TestDiffFields:

    def test_requires_both_sides(self):
        assert diff_fields(None, {"a": 1}) == []
        assert diff_fields({"a": 1}, None) == []

    def test_added_and_removed_keys(self):
        assert diff_fields({"a": 1}, {"b": 2}) == ["a", "b"]


class TestHistory:

    async def test_newest_first(self, session, actor):
        for status in ("PENDING", "REVIEWED", "APPROVED"):
            await recorder.record(
                session,
                table_name="risk_assessments",
                record_id="a-1",
                action_type=AuditAction.UPDATE,
                actor=actor,
                new_values={"status": status},
            )
        await recorder.record(
            session, table_name="risk_assessments", record_id="a-2",
            action_type=AuditAction.CREATE, actor=actor,
        )

        events = await get_record_history(session, "a-1")
        assert [e.new_values["status"] for e in events] == ["APPROVED", "REVIEWED", "PENDING"]

    async def test_limit_and_offset(self, session, actor):
        for i in range(5):
            await recorder.record(
                session,
                table_name="documents",
                record_id="d-1",
                action_type=AuditAction.VIEW,
                actor=actor,
                new_values={"n": i},
            )
        page = await get_record_history(session, "d-1", limit=2, offset=1)
        assert [e.new_values["n"] for e in page] == [3, 2]

    async def test_append_only_count(self, session, actor):
        for _ in range(3):
            await recorder.record(
                session, table_name="documents", record_id="d-9",
                action_type=AuditAction.DOWNLOAD, actor=actor,
            )
        assert len(await get_record_history(session, "d-9")) == 3

    async def test_document_history(self, session, actor):
        document_id = uuid.uuid4()
        await recorder.record(
            session, table_name="documents", record_id=document_id,
            action_type=AuditAction.CREATE, actor=actor, document_id=document_id,
        )
        await recorder.record(
            session, table_name="risk_assessments", record_id="a-1",
            action_type=AuditAction.CREATE, actor=actor, document_id=document_id,
        )
        await recorder.record(
            session, table_name="risk_assessments", record_id="a-x",
            action_type=AuditAction.CREATE, actor=actor,
        )
        events = await get_document_history(session, document_id)
        assert [e.table_name for e in events] == ["risk_assessments", "documents"]
