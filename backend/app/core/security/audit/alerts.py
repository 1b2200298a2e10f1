"""
アラートエンジン
時間枠内のイベント数を閾値と比較し、セキュリティアラートを発火・管理する
"""
import logging
import threading
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from .clock import SystemClock
from .models import AlertThreshold, AuditLog, SecurityAlert
from .notifications import AlertActionDispatcher
from .severity import alert_severity
from .store import AuditStore

# ロガーの設定
logger = logging.getLogger(__name__)


class AlertEngine:
    """閾値判定とアラートのライフサイクル（発火・通知・確認）を管理"""

    def __init__(
        self,
        store: AuditStore,
        clock: Optional[SystemClock] = None,
        dispatcher: Optional[AlertActionDispatcher] = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.dispatcher = dispatcher or AlertActionDispatcher()
        self._lock = threading.Lock()
        self._alerts: Dict[str, SecurityAlert] = {}

    def evaluate(self, log: AuditLog, thresholds: Iterable[AlertThreshold]) -> List[SecurityAlert]:
        """保存済みのログに対して、該当する閾値ルールをすべて評価"""
        triggered = []
        for threshold in thresholds:
            if threshold.event_type != log.event_type:
                continue

            now = self.clock.now()
            window_start = now - timedelta(minutes=threshold.time_window_minutes)
            event_count = self.store.count_in_window(
                log.event_type, log.user_id, window_start, now
            )
            logger.debug(
                f"閾値チェック: {threshold.event_type.value} user={log.user_id} "
                f"count={event_count}/{threshold.count} window={threshold.time_window_minutes}分"
            )

            if event_count >= threshold.count:
                triggered.append(self._trigger(threshold, event_count, log.user_id))
        return triggered

    def _trigger(self, threshold: AlertThreshold, event_count: int, user_id: Optional[str]) -> SecurityAlert:
        alert = SecurityAlert(
            id=self.clock.new_id("alert"),
            triggered_at=self.clock.now(),
            threshold=threshold,
            event_count=event_count,
            time_window=threshold.time_window_minutes,
            affected_user=user_id,
            description=(
                f"{threshold.event_type.value} threshold exceeded: "
                f"{event_count} events in {threshold.time_window_minutes} minutes"
            ),
            severity=alert_severity(event_count),
        )

        with self._lock:
            self._alerts[alert.id] = alert

        logger.warning(f"SECURITY ALERT: {alert.description} (user={user_id or 'anonymous'}, severity={alert.severity.value})")
        self.dispatcher.dispatch(alert)
        return alert

    def get_alerts(self, acknowledged: Optional[bool] = None) -> List[SecurityAlert]:
        """アラート一覧（発火時刻の新しい順）"""
        with self._lock:
            alerts = list(self._alerts.values())

        if acknowledged is not None:
            alerts = [alert for alert in alerts if alert.acknowledged == acknowledged]

        return sorted(alerts, key=lambda alert: alert.triggered_at, reverse=True)

    def acknowledge(self, alert_id: str, acknowledged_by: str) -> bool:
        """アラートを確認済みにする（未知のIDは False、再確認は上書き）"""
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                return False
            self._alerts[alert_id] = alert.model_copy(
                update={
                    "acknowledged": True,
                    "acknowledged_by": acknowledged_by,
                    "acknowledged_at": self.clock.now(),
                }
            )

        logger.info(f"セキュリティアラートを確認済みに変更: {alert_id} by {acknowledged_by}")
        return True

    def count(self) -> int:
        with self._lock:
            return len(self._alerts)

    def count_unacknowledged(self) -> int:
        with self._lock:
            return sum(1 for alert in self._alerts.values() if not alert.acknowledged)
