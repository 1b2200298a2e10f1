"""
監査ログの設定
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import AlertAction, AlertThreshold, AuditEventType, AuditSettings, ExportFormat

# 初期状態で記録するイベント
DEFAULT_ENABLED_EVENTS = [
    AuditEventType.USER_LOGIN,
    AuditEventType.USER_LOGOUT,
    AuditEventType.DATA_ACCESS,
    AuditEventType.DATA_MODIFICATION,
    AuditEventType.DATA_DELETION,
    AuditEventType.SYSTEM_CONFIG_CHANGE,
    AuditEventType.SECURITY_EVENT,
    AuditEventType.COMPLIANCE_VIOLATION,
]

# 初期状態のアラート閾値
DEFAULT_ALERT_THRESHOLDS = [
    # 5分以内に5回のログイン
    AlertThreshold(
        event_type=AuditEventType.USER_LOGIN,
        count=5,
        time_window_minutes=5,
        action=AlertAction.EMAIL_NOTIFICATION,
    ),
    # セキュリティイベントは1件で即時エスカレーション
    AlertThreshold(
        event_type=AuditEventType.SECURITY_EVENT,
        count=1,
        time_window_minutes=1,
        action=AlertAction.ESCALATE_TO_ADMIN,
    ),
    # 1時間以内に10件の削除
    AlertThreshold(
        event_type=AuditEventType.DATA_DELETION,
        count=10,
        time_window_minutes=60,
        action=AlertAction.SLACK_NOTIFICATION,
    ),
]


class AuditConfig(BaseSettings):
    """監査ログの設定（環境変数 AUDIT_* で上書き可能）"""

    # 監査ログの有効化
    ENABLED: bool = True

    # 保持期間（日数）7年
    RETENTION_DAYS: int = 2555

    # 変更前後の値の秘匿
    ENCRYPT_LOGS: bool = True
    ENCRYPTION_MODE: str = "marker"  # marker, fernet
    ENCRYPTION_KEY: Optional[str] = None

    # リアルタイムアラート
    REALTIME_MONITORING: bool = True
    ALERTING_ENABLED: bool = True
    ALERT_WEBHOOK_URL: Optional[str] = None
    ALERT_WEBHOOK_TIMEOUT_SECONDS: float = 5.0

    # 保持期間スイーパーの実行間隔（秒）
    SWEEP_INTERVAL_SECONDS: int = 24 * 60 * 60

    model_config = SettingsConfigDict(
        env_prefix="AUDIT_",
        env_file=".env",
        extra="ignore",
    )

    def to_audit_settings(self) -> AuditSettings:
        """起動時の AuditSettings を作成"""
        return AuditSettings(
            enabled_events=list(DEFAULT_ENABLED_EVENTS),
            retention_period=self.RETENTION_DAYS,
            encrypt_logs=self.ENCRYPT_LOGS,
            real_time_monitoring=self.REALTIME_MONITORING,
            alerting_enabled=self.ALERTING_ENABLED,
            alert_thresholds=list(DEFAULT_ALERT_THRESHOLDS),
            export_formats=list(ExportFormat),
        )
