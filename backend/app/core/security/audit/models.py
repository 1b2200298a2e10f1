"""
監査ログのデータモデル
監査イベント・アラート・設定の型定義
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
)
from pydantic.alias_generators import to_camel


class AuditEventType(str, Enum):
    """監査イベントのタイプ"""
    USER_LOGIN = "user-login"
    USER_LOGOUT = "user-logout"
    DATA_ACCESS = "data-access"
    DATA_MODIFICATION = "data-modification"
    DATA_DELETION = "data-deletion"
    DATA_EXPORT = "data-export"
    SYSTEM_CONFIG_CHANGE = "system-config-change"
    SECURITY_EVENT = "security-event"
    COMPLIANCE_VIOLATION = "compliance-violation"
    MODERATION_ACTION = "moderation-action"


class Severity(str, Enum):
    """重要度（LOW < MEDIUM < HIGH < CRITICAL）"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertAction(str, Enum):
    """アラート発火時のアクション"""
    EMAIL_NOTIFICATION = "email-notification"
    SMS_NOTIFICATION = "sms-notification"
    SLACK_NOTIFICATION = "slack-notification"
    WEBHOOK = "webhook"
    BLOCK_USER = "block-user"
    ESCALATE_TO_ADMIN = "escalate-to-admin"


class ExportFormat(str, Enum):
    """エクスポート形式"""
    JSON = "json"
    CSV = "csv"
    XML = "xml"
    PDF = "pdf"


# メタデータに格納できる値（文字列・数値・真偽値・null・ネストしたマッピング）
MetadataValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, Dict[str, Any], None]
Metadata = Dict[str, MetadataValue]

_METADATA_SCALARS = (bool, int, float, str, type(None))


def _check_metadata(metadata: Optional[Dict[str, Any]], path: str = "metadata") -> None:
    """ネストしたマッピングの中身も許可された型だけで構成されているか検証"""
    if metadata is None:
        return
    for key, value in metadata.items():
        if not isinstance(key, str):
            raise ValueError(f"{path}: keys must be strings")
        if isinstance(value, dict):
            _check_metadata(value, f"{path}.{key}")
        elif not isinstance(value, _METADATA_SCALARS):
            raise ValueError(f"{path}.{key}: unsupported metadata value type {type(value).__name__}")


class _CamelModel(BaseModel):
    """APIやエクスポートではcamelCaseで入出力する共通基底"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )


class LogEvent(_CamelModel):
    """HTTP層などから渡される記録対象のイベント"""

    event_type: AuditEventType = Field(description="イベントタイプ")
    user_id: Optional[str] = Field(default=None, description="操作ユーザーID")
    session_id: Optional[str] = Field(default=None, description="セッションID")
    action: str = Field(description="実行されたアクション")
    resource: str = Field(description="操作対象のリソース")
    old_value: Optional[Any] = Field(default=None, description="変更前の値")
    new_value: Optional[Any] = Field(default=None, description="変更後の値")
    success: bool = Field(description="成功/失敗")
    error_message: Optional[str] = Field(default=None, description="失敗時のエラーメッセージ")
    metadata: Optional[Metadata] = Field(default=None, description="追加の詳細情報")

    @field_validator("metadata")
    @classmethod
    def _closed_metadata(cls, value: Optional[Metadata]) -> Optional[Metadata]:
        _check_metadata(value)
        return value


class AuditLog(_CamelModel):
    """監査ログ（作成後は不変）"""
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    event_type: AuditEventType
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    ip_address: str
    user_agent: str
    action: str
    resource: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    success: bool
    error_message: Optional[str] = None
    severity: Severity
    metadata: Metadata = Field(default_factory=dict)

    @field_validator("metadata")
    @classmethod
    def _closed_metadata(cls, value: Metadata) -> Metadata:
        _check_metadata(value)
        return value

    def __repr__(self):
        return f"<AuditLog(id={self.id}, event_type={self.event_type.value}, user_id={self.user_id})>"


class AlertThreshold(_CamelModel):
    """「time_window_minutes 分以内に同一ユーザーの event_type が count 件以上」で action を実行するルール"""
    model_config = ConfigDict(frozen=True)

    event_type: AuditEventType
    count: int = Field(ge=1, description="発火に必要なイベント数")
    time_window_minutes: int = Field(ge=1, description="集計する時間枠（分）")
    action: AlertAction


class SecurityAlert(_CamelModel):
    """閾値超過で生成されるセキュリティアラート"""
    model_config = ConfigDict(frozen=True)

    id: str
    triggered_at: datetime
    threshold: AlertThreshold
    event_count: int
    time_window: int
    affected_user: Optional[str] = None
    description: str
    severity: Severity
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None


class AuditSettings(_CamelModel):
    """プロセス全体の監査設定（更新時は丸ごと差し替える）"""
    model_config = ConfigDict(frozen=True)

    enabled_events: List[AuditEventType]
    retention_period: int = Field(ge=1, description="保持期間（日数）")
    encrypt_logs: bool = True
    real_time_monitoring: bool = True
    alerting_enabled: bool = True
    alert_thresholds: List[AlertThreshold] = Field(default_factory=list)
    export_formats: List[ExportFormat] = Field(default_factory=lambda: list(ExportFormat))


class AuditSettingsUpdate(_CamelModel):
    """設定の部分更新（指定された項目のみ差し替え）"""

    enabled_events: Optional[List[AuditEventType]] = None
    retention_period: Optional[int] = Field(default=None, ge=1)
    encrypt_logs: Optional[bool] = None
    real_time_monitoring: Optional[bool] = None
    alerting_enabled: Optional[bool] = None
    alert_thresholds: Optional[List[AlertThreshold]] = None
    export_formats: Optional[List[ExportFormat]] = None


class AuditQuery(_CamelModel):
    """監査ログの検索条件（指定された条件はすべてAND）"""

    event_types: Optional[List[AuditEventType]] = None
    user_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    success: Optional[bool] = None
    severity: Optional[Severity] = None
    resource: Optional[str] = None
    limit: int = Field(default=100, ge=0)
    offset: int = Field(default=0, ge=0)

    @field_validator("date_from", "date_to")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # タイムゾーンなしの日時はUTCとみなす
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class AuditExportOptions(_CamelModel):
    """エクスポートの指定（format は未対応値もそのまま受け取り、エクスポート時に検証する）"""

    format: str
    query: AuditQuery = Field(default_factory=AuditQuery)
    filename: Optional[str] = None
    include_metadata: bool = False


class DateRange(BaseModel):
    """統計の対象期間"""
    model_config = ConfigDict(populate_by_name=True)

    date_from: datetime = Field(alias="from")
    date_to: datetime = Field(alias="to")


class UserActivity(_CamelModel):
    user_id: str
    count: int


class AuditStatistics(_CamelModel):
    """監査ログの統計情報"""

    total_logs: int
    date_range: DateRange
    event_type_stats: Dict[str, int]
    success_rate: float
    success_count: int
    failure_count: int
    severity_stats: Dict[str, int]
    top_users: List[UserActivity]
    alert_count: int
    unacknowledged_alerts: int
