"""
暗号化モジュール
監査ログの機密値を秘匿するプロバイダを提供
"""

from .service import (
    REDACTION_MARKER,
    EncryptionProvider,
    FernetEncryptionProvider,
    RedactionMarkerProvider,
    is_sensitive_value,
)

__all__ = [
    "REDACTION_MARKER",
    "EncryptionProvider",
    "FernetEncryptionProvider",
    "RedactionMarkerProvider",
    "is_sensitive_value",
]
