"""
重要度の判定
"""
from .models import AuditEventType, Severity

# 失敗時の重要度
_FAILURE_SEVERITY = {
    AuditEventType.SECURITY_EVENT: Severity.CRITICAL,
    AuditEventType.COMPLIANCE_VIOLATION: Severity.CRITICAL,
    AuditEventType.DATA_DELETION: Severity.HIGH,
    AuditEventType.SYSTEM_CONFIG_CHANGE: Severity.HIGH,
    AuditEventType.DATA_MODIFICATION: Severity.MEDIUM,
    AuditEventType.DATA_ACCESS: Severity.MEDIUM,
}

# 成功時の重要度
_SUCCESS_SEVERITY = {
    AuditEventType.COMPLIANCE_VIOLATION: Severity.HIGH,
    AuditEventType.SECURITY_EVENT: Severity.MEDIUM,
    AuditEventType.DATA_DELETION: Severity.MEDIUM,
    AuditEventType.SYSTEM_CONFIG_CHANGE: Severity.MEDIUM,
}


def classify_severity(event_type: AuditEventType, success: bool) -> Severity:
    """イベントタイプと成否から監査ログの重要度を判定（表にないものはLOW）"""
    table = _SUCCESS_SEVERITY if success else _FAILURE_SEVERITY
    return table.get(AuditEventType(event_type), Severity.LOW)


def alert_severity(event_count: int) -> Severity:
    """閾値を超えたイベント数からアラートの重要度を判定"""
    if event_count > 50:
        return Severity.CRITICAL
    elif event_count > 20:
        return Severity.HIGH
    elif event_count > 10:
        return Severity.MEDIUM
    else:
        return Severity.LOW
