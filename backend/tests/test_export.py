"""
エクスポートのテスト（JSON / CSV / XML / PDF）
"""
import csv
import io
import json
import xml.etree.ElementTree as ET

import pytest

from app.core.security.audit.exceptions import UnsupportedExportFormatError
from app.core.security.audit.export import EXPORT_COLUMNS, ExportEngine, resolve_format
from app.core.security.audit.models import AuditEventType, AuditExportOptions, AuditQuery, ExportFormat


@pytest.fixture
def logs(service, clock, make_event):
    service.log_event(
        make_event(AuditEventType.DATA_ACCESS, user_id="alice", resource='/api/reports/"q1", 2024'),
        "10.0.0.1",
        "pytest",
    )
    clock.advance(minutes=1)
    service.log_event(
        make_event(AuditEventType.DATA_DELETION, user_id=None, session_id=None, success=False,
                   metadata={"reason": "cleanup"}),
        "10.0.0.2",
        "pytest",
    )
    return service.query_logs()


class TestResolveFormat:
    """形式名の解決"""

    @pytest.mark.parametrize("value", ["json", "CSV", ExportFormat.XML, "pdf"])
    def test_supported(self, value):
        assert resolve_format(value) in ExportFormat

    def test_unsupported(self):
        with pytest.raises(UnsupportedExportFormatError) as exc_info:
            resolve_format("yaml")

        assert str(exc_info.value) == "Unsupported export format: yaml"
        assert exc_info.value.export_format == "yaml"


class TestCsvExport:
    """CSV形式"""

    def test_empty_export_is_empty_string(self):
        assert ExportEngine().to_csv([]) == ""

    def test_header_and_rows(self, logs):
        content = ExportEngine().to_csv(logs)
        lines = content.split("\n")

        assert lines[0] == ",".join(EXPORT_COLUMNS)
        assert len(lines) == 3
        assert not content.endswith("\n")
        assert all(line.startswith('"') for line in lines[1:])

    def test_fields_are_quoted_and_escaped(self, logs):
        rows = list(csv.DictReader(io.StringIO(ExportEngine().to_csv(logs))))

        newest, oldest = rows
        assert oldest["resource"] == '/api/reports/"q1", 2024'
        assert oldest["userId"] == "alice"
        assert oldest["success"] == "true"
        assert newest["userId"] == ""
        assert newest["sessionId"] == ""
        assert newest["success"] == "false"
        assert newest["severity"] == "high"
        assert newest["eventType"] == "data-deletion"

    def test_include_metadata_column(self, logs):
        rows = list(csv.DictReader(io.StringIO(ExportEngine().to_csv(logs, include_metadata=True))))

        assert json.loads(rows[0]["metadata"])["reason"] == "cleanup"


class TestJsonExport:
    """JSON形式"""

    def test_camel_case_without_metadata(self, logs):
        data = json.loads(ExportEngine().to_json(logs))

        assert len(data) == 2
        assert data[0]["eventType"] == "data-deletion"
        assert data[0]["ipAddress"] == "10.0.0.2"
        assert data[1]["userId"] == "alice"
        assert all("metadata" not in entry for entry in data)

    def test_with_metadata(self, logs):
        data = json.loads(ExportEngine().to_json(logs, include_metadata=True))

        assert data[0]["metadata"]["reason"] == "cleanup"
        assert data[0]["metadata"]["source"] == "audit-service"

    def test_empty(self):
        assert json.loads(ExportEngine().to_json([])) == []


class TestXmlExport:
    """XML形式"""

    def test_structure(self, logs):
        content = ExportEngine().to_xml(logs)

        assert content.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        root = ET.fromstring(content.split("\n", 1)[1])
        assert root.tag == "audit-logs"
        entries = root.findall("log")
        assert len(entries) == 2
        assert entries[1].findtext("resource") == '/api/reports/"q1", 2024'
        assert entries[1].findtext("ipAddress") == "10.0.0.1"
        assert entries[0].find("metadata") is None

    def test_with_metadata(self, logs):
        root = ET.fromstring(ExportEngine().to_xml(logs, include_metadata=True).split("\n", 1)[1])

        assert json.loads(root.find("log").findtext("metadata"))["reason"] == "cleanup"

    def test_empty(self):
        root = ET.fromstring(ExportEngine().to_xml([]).split("\n", 1)[1])

        assert root.tag == "audit-logs"
        assert list(root) == []


class TestPdfExport:
    """PDF形式（テキスト要約）"""

    def test_summary(self, logs):
        content = ExportEngine().render(logs, "pdf")

        assert "PDF content for 2 audit logs" in content
        assert "data-deletion" in content

    def test_custom_renderer(self, logs):
        class StubRenderer:
            def render(self, logs, include_metadata):
                return f"{len(logs)} pages"

        assert ExportEngine(StubRenderer()).render(logs, ExportFormat.PDF) == "2 pages"


class TestServiceExport:
    """サービス経由のエクスポート"""

    def test_uses_query(self, service, logs):
        content = service.export_logs(
            AuditExportOptions(format="csv", query=AuditQuery(user_id="alice"))
        )

        assert content.count("\n") == 1
        assert "alice" in content

    def test_no_matches_gives_empty_csv(self, service, logs):
        options = AuditExportOptions(format="csv", query=AuditQuery(user_id="nobody"))

        assert service.export_logs(options) == ""

    def test_unknown_format(self, service, logs):
        with pytest.raises(UnsupportedExportFormatError):
            service.export_logs(AuditExportOptions(format="unknown-format"))

    def test_unknown_format_is_value_error(self, service):
        with pytest.raises(ValueError):
            service.export_logs(AuditExportOptions(format="yaml"))

    def test_filename(self, service, clock, logs):
        _, filename = service.export_logs_with_filename(AuditExportOptions(format="xml"))
        expected_millis = int(clock.now().timestamp() * 1000)

        assert filename == f"audit_export_{expected_millis}.xml"

    def test_custom_filename(self, service, logs):
        _, filename = service.export_logs_with_filename(
            AuditExportOptions(format="JSON", filename="weekly")
        )

        assert filename == "weekly.json"
