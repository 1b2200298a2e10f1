"""
監査ログの例外定義
"""


class AuditError(Exception):
    """監査ログ関連の基底例外"""


class UnsupportedExportFormatError(AuditError, ValueError):
    """未対応のエクスポート形式が指定された"""

    def __init__(self, export_format: str):
        self.export_format = export_format
        super().__init__(f"Unsupported export format: {export_format}")


class AuditLogNotFoundError(AuditError, LookupError):
    """指定IDの監査ログが存在しない"""

    def __init__(self, log_id: str):
        self.log_id = log_id
        super().__init__(f"Audit log not found: {log_id}")
