"""
監査ログモジュール
セキュリティイベントの記録・閾値アラート・検索・エクスポート
"""

from .config import AuditConfig
from .exceptions import AuditError, AuditLogNotFoundError, UnsupportedExportFormatError
from .models import (
    AlertAction,
    AlertThreshold,
    AuditEventType,
    AuditExportOptions,
    AuditLog,
    AuditQuery,
    AuditSettings,
    AuditSettingsUpdate,
    AuditStatistics,
    ExportFormat,
    LogEvent,
    SecurityAlert,
    Severity,
)
from .service import AuditLogService, build_audit_service
from .store import AuditStore, InMemoryAuditStore

__all__ = [
    "AlertAction",
    "AlertThreshold",
    "AuditConfig",
    "AuditError",
    "AuditEventType",
    "AuditExportOptions",
    "AuditLog",
    "AuditLogNotFoundError",
    "AuditLogService",
    "AuditQuery",
    "AuditSettings",
    "AuditSettingsUpdate",
    "AuditStatistics",
    "AuditStore",
    "ExportFormat",
    "InMemoryAuditStore",
    "LogEvent",
    "SecurityAlert",
    "Severity",
    "UnsupportedExportFormatError",
    "build_audit_service",
]
