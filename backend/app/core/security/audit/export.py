"""
監査ログのエクスポート
JSON / CSV / XML / PDF（テキスト要約） 形式で出力する
"""
import csv
import io
import json
import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any, Dict, List

from .exceptions import UnsupportedExportFormatError
from .models import AuditLog, ExportFormat

# ロガーの設定
logger = logging.getLogger(__name__)

# CSV / XML の列（この順で出力）
EXPORT_COLUMNS = [
    "id",
    "timestamp",
    "eventType",
    "userId",
    "sessionId",
    "ipAddress",
    "action",
    "resource",
    "success",
    "severity",
]

MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
    ExportFormat.XML: "application/xml",
    ExportFormat.PDF: "text/plain",
}


def resolve_format(value: str) -> ExportFormat:
    """文字列をエクスポート形式に変換（未対応なら UnsupportedExportFormatError）"""
    try:
        return ExportFormat(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise UnsupportedExportFormatError(str(value)) from None


def _flat_row(log: AuditLog) -> Dict[str, str]:
    return {
        "id": log.id,
        "timestamp": log.timestamp.isoformat(),
        "eventType": log.event_type.value,
        "userId": log.user_id or "",
        "sessionId": log.session_id or "",
        "ipAddress": log.ip_address,
        "action": log.action,
        "resource": log.resource,
        "success": "true" if log.success else "false",
        "severity": log.severity.value,
    }


def _metadata_json(log: AuditLog) -> str:
    return json.dumps(log.metadata, ensure_ascii=False, default=str)


class PdfRenderer(ABC):
    """PDF出力のレンダラ"""

    @abstractmethod
    def render(self, logs: List[AuditLog], include_metadata: bool) -> str:
        ...


class TextSummaryPdfRenderer(PdfRenderer):
    """PDFの代わりにテキストの要約を返すレンダラ

    本番用のPDF生成ではない。実際の帳票が必要な場合は PdfRenderer を実装して差し替える。
    """

    def render(self, logs: List[AuditLog], include_metadata: bool) -> str:
        lines = [
            "AUDIT LOG REPORT",
            f"PDF content for {len(logs)} audit logs",
        ]
        if logs:
            severity_counts = Counter(log.severity.value for log in logs)
            lines.append(
                "Severity: " + ", ".join(f"{name}={count}" for name, count in sorted(severity_counts.items()))
            )
            lines.append("")
            for log in logs:
                row = _flat_row(log)
                line = (
                    f"{row['timestamp']} [{row['severity'].upper()}] {row['eventType']} "
                    f"{row['action']} on {row['resource']} by {row['userId'] or 'anonymous'} "
                    f"success={row['success']}"
                )
                if include_metadata:
                    line += f" metadata={_metadata_json(log)}"
                lines.append(line)
        return "\n".join(lines)


class ExportEngine:
    """検索結果を指定形式の文字列に変換"""

    def __init__(self, pdf_renderer: PdfRenderer = None):
        self.pdf_renderer = pdf_renderer or TextSummaryPdfRenderer()

    def render(self, logs: List[AuditLog], export_format: str, include_metadata: bool = False) -> str:
        fmt = resolve_format(export_format)

        if fmt == ExportFormat.JSON:
            return self.to_json(logs, include_metadata)
        elif fmt == ExportFormat.CSV:
            return self.to_csv(logs, include_metadata)
        elif fmt == ExportFormat.XML:
            return self.to_xml(logs, include_metadata)
        else:
            return self.pdf_renderer.render(logs, include_metadata)

    def to_json(self, logs: List[AuditLog], include_metadata: bool = False) -> str:
        exclude = None if include_metadata else {"metadata"}
        data: List[Dict[str, Any]] = [
            log.model_dump(mode="json", by_alias=True, exclude=exclude)
            for log in logs
        ]
        return json.dumps(data, indent=2, ensure_ascii=False)

    def to_csv(self, logs: List[AuditLog], include_metadata: bool = False) -> str:
        if not logs:
            return ""

        headers = list(EXPORT_COLUMNS)
        if include_metadata:
            headers.append("metadata")

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        # ヘッダー行は引用符なし
        buffer.write(",".join(headers) + "\n")
        for log in logs:
            row = _flat_row(log)
            values = [row[column] for column in EXPORT_COLUMNS]
            if include_metadata:
                values.append(_metadata_json(log))
            writer.writerow(values)

        return buffer.getvalue()[:-1]

    def to_xml(self, logs: List[AuditLog], include_metadata: bool = False) -> str:
        root = ET.Element("audit-logs")
        for log in logs:
            element = ET.SubElement(root, "log")
            for column, value in _flat_row(log).items():
                ET.SubElement(element, column).text = value
            if include_metadata and log.metadata:
                ET.SubElement(element, "metadata").text = _metadata_json(log)

        ET.indent(root, space="  ")
        body = ET.tostring(root, encoding="unicode")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + body
