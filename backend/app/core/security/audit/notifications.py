"""
アラートアクションの実行
メール・チャット・Webhookなどの通知先は外部連携として差し替え可能
"""
import logging
import threading
from typing import Callable, Dict, Optional, Set

import httpx

from .models import AlertAction, SecurityAlert

# ロガーの設定
logger = logging.getLogger(__name__)

AlertHandler = Callable[[SecurityAlert], None]


class WebhookAlertHandler:
    """アラートをJSONでWebhookにPOSTする"""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def __call__(self, alert: SecurityAlert) -> None:
        response = self._client.post(
            self.url,
            json={
                "type": "security_alert",
                "alert": alert.model_dump(mode="json", by_alias=True),
            },
        )
        response.raise_for_status()
        logger.info(f"Webhook通知を送信: alert={alert.id}, status={response.status_code}")

    def close(self) -> None:
        self._client.close()


class AlertActionDispatcher:
    """アラートのアクションごとにハンドラを呼び出す

    重複排除はしないため、同じアラートで何度呼ばれても問題ないハンドラを登録すること。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._blocked_users: Set[str] = set()
        self._handlers: Dict[AlertAction, AlertHandler] = {
            AlertAction.EMAIL_NOTIFICATION: self._log_notification("メール通知"),
            AlertAction.SMS_NOTIFICATION: self._log_notification("SMS通知"),
            AlertAction.SLACK_NOTIFICATION: self._log_notification("Slack通知"),
            AlertAction.WEBHOOK: self._log_notification("Webhook通知"),
            AlertAction.BLOCK_USER: self._block_user,
            AlertAction.ESCALATE_TO_ADMIN: self._log_notification("管理者へのエスカレーション"),
        }

    def register(self, action: AlertAction, handler: AlertHandler) -> None:
        """アクションのハンドラを差し替える"""
        with self._lock:
            self._handlers[AlertAction(action)] = handler

    def dispatch(self, alert: SecurityAlert) -> bool:
        """アラートのアクションを実行（失敗しても監査処理は止めない）"""
        action = alert.threshold.action
        with self._lock:
            handler = self._handlers.get(action)

        if handler is None:
            logger.warning(f"未登録のアラートアクション: {action}")
            return False

        try:
            handler(alert)
            return True
        except Exception:
            logger.exception(f"アラートアクションの実行に失敗: action={action.value}, alert={alert.id}")
            return False

    def close(self) -> None:
        """外部接続を持つハンドラを閉じる"""
        with self._lock:
            handlers = list(self._handlers.values())
        for handler in handlers:
            close = getattr(handler, "close", None)
            if callable(close):
                close()

    def blocked_users(self) -> Set[str]:
        """ブロック済みユーザーの一覧（コピー）"""
        with self._lock:
            return set(self._blocked_users)

    def _block_user(self, alert: SecurityAlert) -> None:
        if not alert.affected_user:
            logger.warning(f"ブロック対象のユーザーが特定できません: alert={alert.id}")
            return
        with self._lock:
            self._blocked_users.add(alert.affected_user)
        logger.warning(f"ユーザーをブロック: {alert.affected_user} (alert={alert.id})")

    @staticmethod
    def _log_notification(channel: str) -> AlertHandler:
        def handler(alert: SecurityAlert) -> None:
            logger.info(f"{channel}を送信: alert={alert.id}, {alert.description}")
        return handler
