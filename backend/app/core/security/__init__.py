"""
セキュリティモジュール
"""

# 監査ログ関連の機能をエクスポート
from .audit import AuditLogService, AuditEventType, build_audit_service

# 暗号化関連の機能をエクスポート
from .encryption import EncryptionProvider, FernetEncryptionProvider, RedactionMarkerProvider

__all__ = [
    "AuditLogService",
    "AuditEventType",
    "build_audit_service",
    "EncryptionProvider",
    "FernetEncryptionProvider",
    "RedactionMarkerProvider",
]
