"""
監査ログサービスクラス
セキュリティイベントの記録・閾値アラート・検索・エクスポートを統合
"""
import logging
import re
import threading
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import sessionmaker

from app.core.security.encryption import (
    EncryptionProvider,
    FernetEncryptionProvider,
    RedactionMarkerProvider,
)

from .alerts import AlertEngine
from .clock import SystemClock
from .config import AuditConfig
from .db_store import SqlAlchemyAuditStore
from .export import ExportEngine, PdfRenderer, resolve_format
from .models import (
    AlertAction,
    AuditExportOptions,
    AuditLog,
    AuditQuery,
    AuditSettings,
    AuditSettingsUpdate,
    AuditStatistics,
    DateRange,
    LogEvent,
    SecurityAlert,
    UserActivity,
)
from .notifications import AlertActionDispatcher, WebhookAlertHandler
from .query import QueryEngine
from .retention import RetentionSweeper
from .severity import classify_severity
from .store import AuditStore, InMemoryAuditStore

# ロガーの設定
logger = logging.getLogger(__name__)

_IPV4_PATTERN = re.compile(r"([0-9]{1,3}\.){3}[0-9]{1,3}")
USER_AGENT_MAX_LENGTH = 200
UNKNOWN = "unknown"

METADATA_SOURCE = "audit-service"
METADATA_VERSION = "1.0"


def sanitize_ip_address(ip_address: Optional[str]) -> str:
    """ドット区切りのIPv4表記でなければ "unknown" に置き換える"""
    if ip_address and _IPV4_PATTERN.fullmatch(ip_address):
        return ip_address
    return UNKNOWN


def sanitize_user_agent(user_agent: Optional[str]) -> str:
    """200文字に切り詰める（空なら "unknown"）"""
    if not user_agent:
        return UNKNOWN
    return user_agent[:USER_AGENT_MAX_LENGTH]


class AuditLogService:
    """監査ログのビジネスロジックを提供

    プロセス起動時に1つだけ作成し、依存性注入で各ルーターに渡す。
    """

    def __init__(
        self,
        store: Optional[AuditStore] = None,
        config: Optional[AuditConfig] = None,
        settings: Optional[AuditSettings] = None,
        clock: Optional[SystemClock] = None,
        encryption: Optional[EncryptionProvider] = None,
        dispatcher: Optional[AlertActionDispatcher] = None,
        pdf_renderer: Optional[PdfRenderer] = None,
    ):
        self.config = config or AuditConfig()
        self.store = store or InMemoryAuditStore()
        self.clock = clock or SystemClock()
        self.encryption = encryption or RedactionMarkerProvider()

        self._settings_lock = threading.Lock()
        self._settings = settings or self.config.to_audit_settings()

        self.alert_engine = AlertEngine(self.store, clock=self.clock, dispatcher=dispatcher)
        self.query_engine = QueryEngine(self.store)
        self.export_engine = ExportEngine(pdf_renderer)
        self.sweeper = RetentionSweeper(
            self.store,
            retention_days=lambda: self._settings.retention_period,
            clock=self.clock,
            interval_seconds=self.config.SWEEP_INTERVAL_SECONDS,
        )

    # ------------------------------
    # ライフサイクル
    # ------------------------------
    def start(self) -> None:
        """保持期間スイーパーを開始"""
        self.sweeper.start()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """スイーパーを停止し、通知先の接続を閉じる"""
        self.sweeper.stop(timeout)
        self.alert_engine.dispatcher.close()

    # ------------------------------
    # 記録
    # ------------------------------
    def log_event(
        self,
        event: LogEvent,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> Optional[AuditLog]:
        """監査イベントを記録

        記録対象外のイベントは何もせず None を返す（エラーではない）。
        """
        if not self.config.ENABLED:
            return None

        settings = self._settings
        if event.event_type not in settings.enabled_events:
            logger.debug(f"記録対象外のイベントをスキップ: {event.event_type.value}")
            return None

        old_value = event.old_value
        new_value = event.new_value
        if settings.encrypt_logs:
            old_value = self.encryption.protect(old_value)
            new_value = self.encryption.protect(new_value)

        audit_log = AuditLog(
            id=self.clock.new_id("audit"),
            timestamp=self.clock.now(),
            event_type=event.event_type,
            user_id=event.user_id,
            session_id=event.session_id,
            ip_address=sanitize_ip_address(ip_address),
            user_agent=sanitize_user_agent(user_agent),
            action=event.action,
            resource=event.resource,
            old_value=old_value,
            new_value=new_value,
            success=event.success,
            error_message=event.error_message,
            severity=classify_severity(event.event_type, event.success),
            metadata={
                **(event.metadata or {}),
                "source": METADATA_SOURCE,
                "version": METADATA_VERSION,
            },
        )

        self.store.append(audit_log)

        if settings.real_time_monitoring and settings.alerting_enabled:
            self.alert_engine.evaluate(audit_log, settings.alert_thresholds)

        logger.info(
            f"Audit Log: {audit_log.event_type.value} - {audit_log.action} "
            f"by {audit_log.user_id or 'anonymous'}"
        )
        return audit_log

    # ------------------------------
    # 参照
    # ------------------------------
    def get_log(self, log_id: str) -> AuditLog:
        """特定の監査ログをIDで取得"""
        return self.store.get(log_id)

    def query_logs(self, query: Optional[AuditQuery] = None) -> List[AuditLog]:
        """条件に合う監査ログを新しい順に取得"""
        return self.query_engine.search(query or AuditQuery())

    def export_logs(self, options: AuditExportOptions) -> str:
        """検索結果を指定形式で出力"""
        payload, _ = self.export_logs_with_filename(options)
        return payload

    def export_logs_with_filename(self, options: AuditExportOptions) -> Tuple[str, str]:
        """エクスポート内容と拡張子付きのファイル名を返す"""
        logs = self.query_engine.search(options.query)
        export_format = resolve_format(options.format)
        filename = options.filename or f"audit_export_{int(self.clock.now().timestamp() * 1000)}"

        payload = self.export_engine.render(logs, export_format, options.include_metadata)
        logger.info(f"{len(logs)}件の監査ログを{export_format.value.upper()}形式でエクスポート: {filename}.{export_format.value}")
        return payload, f"{filename}.{export_format.value}"

    # ------------------------------
    # アラート
    # ------------------------------
    def get_security_alerts(self, acknowledged: Optional[bool] = None) -> List[SecurityAlert]:
        """セキュリティアラートを取得（発火時刻の新しい順）"""
        return self.alert_engine.get_alerts(acknowledged)

    def acknowledge_alert(self, alert_id: str, acknowledged_by: str) -> bool:
        """アラートを確認済みにする"""
        return self.alert_engine.acknowledge(alert_id, acknowledged_by)

    # ------------------------------
    # 統計
    # ------------------------------
    def get_audit_statistics(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> AuditStatistics:
        """期間内の監査ログの統計情報"""
        query = AuditQuery(date_from=date_from, date_to=date_to)
        logs = self.query_engine.search(query, paginate=False)
        now = self.clock.now()

        success_count = sum(1 for log in logs if log.success)
        failure_count = len(logs) - success_count
        success_rate = (success_count / len(logs)) * 100 if logs else 0.0

        user_counts = Counter(log.user_id for log in logs if log.user_id)

        return AuditStatistics(
            total_logs=len(logs),
            date_range=DateRange(
                date_from=query.date_from or (logs[-1].timestamp if logs else now),
                date_to=query.date_to or (logs[0].timestamp if logs else now),
            ),
            event_type_stats=dict(Counter(log.event_type.value for log in logs)),
            success_rate=round(success_rate, 2),
            success_count=success_count,
            failure_count=failure_count,
            severity_stats=dict(Counter(log.severity.value for log in logs)),
            top_users=[
                UserActivity(user_id=user_id, count=count)
                for user_id, count in user_counts.most_common(10)
            ],
            alert_count=self.alert_engine.count(),
            unacknowledged_alerts=self.alert_engine.count_unacknowledged(),
        )

    # ------------------------------
    # 設定
    # ------------------------------
    def update_settings(self, partial: Union[AuditSettingsUpdate, Dict[str, Any]]) -> None:
        """指定された項目だけを差し替えた新しい設定に置き換える"""
        if not isinstance(partial, AuditSettingsUpdate):
            partial = AuditSettingsUpdate.model_validate(partial)
        changes = partial.model_dump(exclude_unset=True, exclude_none=True)

        with self._settings_lock:
            merged = {**self._settings.model_dump(), **changes}
            self._settings = AuditSettings.model_validate(merged)

        logger.info(f"監査設定を更新しました: {sorted(changes)}")

    def get_settings(self) -> AuditSettings:
        """現在の設定のコピー"""
        return self._settings.model_copy(deep=True)


def build_audit_service(
    config: Optional[AuditConfig] = None,
    session_factory: Optional[sessionmaker] = None,
) -> AuditLogService:
    """設定から監査ログサービスを組み立てる（DBがなければインメモリ）"""
    config = config or AuditConfig()

    if session_factory is not None:
        store: AuditStore = SqlAlchemyAuditStore(session_factory)
    else:
        store = InMemoryAuditStore()

    if config.ENCRYPTION_MODE.lower() == "fernet":
        encryption: EncryptionProvider = FernetEncryptionProvider(config.ENCRYPTION_KEY)
    else:
        encryption = RedactionMarkerProvider()

    dispatcher = AlertActionDispatcher()
    if config.ALERT_WEBHOOK_URL:
        dispatcher.register(
            AlertAction.WEBHOOK,
            WebhookAlertHandler(config.ALERT_WEBHOOK_URL, config.ALERT_WEBHOOK_TIMEOUT_SECONDS),
        )

    logger.info(
        f"監査ログサービスを作成: store={type(store).__name__}, "
        f"encryption={type(encryption).__name__}, enabled={config.ENABLED}"
    )
    return AuditLogService(
        store=store,
        config=config,
        encryption=encryption,
        dispatcher=dispatcher,
    )
