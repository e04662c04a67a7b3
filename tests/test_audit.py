"""Tests for audit logging functionality."""
import json
from datetime import datetime

import pytest
from pydantic import ValidationError

from data_query_engine.audit import CORRELATION_ID_MAX_CHARS, JsonlAuditSink, hash_data, read_audit_records
from data_query_engine.backends.memory import InMemoryBackend
from data_query_engine.dispatcher import QueryEngine
from data_query_engine.errors import NotReadOnlyError
from data_query_engine.schemas_audit import AuditRecordSchema


class TestAuditHashing:

    def test_hash_data_returns_sha256(self):
        result = hash_data("SELECT * FROM users")
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)

    def test_hash_data_different_order_same_hash(self):
        assert hash_data({"a": 1, "b": 2}) == hash_data({"b": 2, "a": 1})

    def test_hash_data_different_values_different_hash(self):
        assert hash_data("SELECT * FROM users") != hash_data("SELECT * FROM products")


class TestJsonlAuditSink:

    def test_appends_one_line_per_record(self, tmp_path):
        path = tmp_path / "logs" / "audit.log"
        sink = JsonlAuditSink(path)
        sink.record(correlation_id="c1", query="SELECT 1", success=True, row_count=1, path="generic", duration_ms=3)
        sink.record(correlation_id="c2", query="DROP TABLE x", success=False, error_kind="NotReadOnly")

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["correlation_id"] == "c1"
        assert first["query_hash"] == hash_data("SELECT 1")
        assert json.loads(lines[1])["error_kind"] == "NotReadOnly"

    def test_query_truncated_hash_of_full_text(self, tmp_path):
        sink = JsonlAuditSink(tmp_path / "audit.log", query_max_chars=10)
        query = "SELECT * FROM users WHERE city = 'Chicago'"
        sink.record(correlation_id="c1", query=query, success=True)

        [record] = read_audit_records(sink.path)
        assert record.query == query[:10]
        assert record.query_hash == hash_data(query)

    def test_negative_duration_clamped(self, tmp_path):
        sink = JsonlAuditSink(tmp_path / "audit.log")
        sink.record(correlation_id="c1", query="SELECT 1", success=True, duration_ms=-5)
        assert read_audit_records(sink.path)[0].duration_ms == 0

    def test_long_correlation_id_truncated(self, tmp_path):
        sink = JsonlAuditSink(tmp_path / "audit.log")
        sink.record(correlation_id="x" * 200, query="SELECT 1", success=True)
        [record] = read_audit_records(sink.path)
        assert record.correlation_id == "x" * CORRELATION_ID_MAX_CHARS

    def test_engine_writes_records(self, tmp_path, tables):
        sink = JsonlAuditSink(tmp_path / "audit.log")
        engine = QueryEngine(InMemoryBackend(tables=tables), audit_sink=sink)

        engine.execute("SELECT COUNT(*) FROM users", correlation_id="trace-ok")
        with pytest.raises(NotReadOnlyError):
            engine.execute("DELETE FROM users", correlation_id="trace-bad")

        ok = read_audit_records(sink.path, correlation_id="trace-ok")
        bad = read_audit_records(sink.path, correlation_id="trace-bad")
        assert ok[0].success and ok[0].path == "fallback" and ok[0].row_count == 1
        assert not bad[0].success and bad[0].error_kind == "NotReadOnly"


class TestReadAuditRecords:

    def test_missing_file(self, tmp_path):
        assert read_audit_records(tmp_path / "nope.log") == []

    def test_newest_first_with_limit(self, tmp_path):
        sink = JsonlAuditSink(tmp_path / "audit.log")
        for i in range(5):
            sink.record(correlation_id=f"c{i}", query=f"SELECT {i}", success=True)

        records = read_audit_records(sink.path, limit=2)
        assert [r.correlation_id for r in records] == ["c4", "c3"]


class TestAuditRecordSchema:

    def test_rejects_bad_hash(self):
        with pytest.raises(ValidationError):
            AuditRecordSchema(
                ts=datetime.now(),
                correlation_id="c1",
                query="SELECT 1",
                query_hash="short",
                success=True,
                duration_ms=1,
            )

    def test_rejects_unknown_path(self):
        with pytest.raises(ValidationError):
            AuditRecordSchema(
                ts=datetime.now(),
                correlation_id="c1",
                query="SELECT 1",
                query_hash="a" * 64,
                success=True,
                path="sideways",
                duration_ms=1,
            )
