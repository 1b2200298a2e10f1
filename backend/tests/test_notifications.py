"""
アラートアクションと暗号化プロバイダのテスト
"""
import json

import httpx
import pytest
from cryptography.fernet import Fernet, InvalidToken

from app.core.security.audit.models import AlertAction, AlertThreshold, AuditEventType, SecurityAlert, Severity
from app.core.security.audit.notifications import AlertActionDispatcher, WebhookAlertHandler
from app.core.security.encryption import (
    REDACTION_MARKER,
    FernetEncryptionProvider,
    RedactionMarkerProvider,
    is_sensitive_value,
)


def make_alert(action=AlertAction.WEBHOOK, affected_user="user_123", alert_id="alert_000001"):
    return SecurityAlert(
        id=alert_id,
        triggered_at="2024-03-01T09:00:00Z",
        threshold=AlertThreshold(
            event_type=AuditEventType.USER_LOGIN,
            count=5,
            time_window_minutes=5,
            action=action,
        ),
        event_count=5,
        time_window=5,
        affected_user=affected_user,
        description="user-login threshold exceeded: 5 events in 5 minutes",
        severity=Severity.LOW,
    )


class TestAlertActionDispatcher:
    """アクションごとのハンドラ呼び出し"""

    @pytest.mark.parametrize("action", list(AlertAction))
    def test_default_handlers(self, action):
        assert AlertActionDispatcher().dispatch(make_alert(action)) is True

    def test_block_user_is_idempotent(self):
        dispatcher = AlertActionDispatcher()

        dispatcher.dispatch(make_alert(AlertAction.BLOCK_USER, alert_id="alert_1"))
        dispatcher.dispatch(make_alert(AlertAction.BLOCK_USER, alert_id="alert_2"))

        assert dispatcher.blocked_users() == {"user_123"}

    def test_block_anonymous_user_is_skipped(self):
        dispatcher = AlertActionDispatcher()

        dispatcher.dispatch(make_alert(AlertAction.BLOCK_USER, affected_user=None))

        assert dispatcher.blocked_users() == set()

    def test_registered_handler(self):
        received = []
        dispatcher = AlertActionDispatcher()
        dispatcher.register(AlertAction.SLACK_NOTIFICATION, received.append)

        alert = make_alert(AlertAction.SLACK_NOTIFICATION)
        dispatcher.dispatch(alert)

        assert received == [alert]

    def test_handler_failure_is_contained(self, caplog):
        def broken(alert):
            raise RuntimeError("smtp down")

        dispatcher = AlertActionDispatcher()
        dispatcher.register(AlertAction.EMAIL_NOTIFICATION, broken)

        assert dispatcher.dispatch(make_alert(AlertAction.EMAIL_NOTIFICATION)) is False
        assert "smtp down" in caplog.text

    def test_failed_handler_does_not_block_logging(self, threshold_service, store, make_event):
        def broken(alert):
            raise RuntimeError("smtp down")

        threshold_service.alert_engine.dispatcher.register(AlertAction.EMAIL_NOTIFICATION, broken)
        for _ in range(5):
            threshold_service.log_event(make_event(), "10.0.0.1", "pytest")

        assert len(store) == 5
        assert len(threshold_service.get_security_alerts()) == 1


class TestWebhookAlertHandler:
    """Webhook通知"""

    def test_posts_alert(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        webhook = WebhookAlertHandler("https://hooks.example.test/audit", client=client)

        webhook(make_alert())

        assert len(requests) == 1
        body = json.loads(requests[0].content)
        assert requests[0].method == "POST"
        assert str(requests[0].url) == "https://hooks.example.test/audit"
        assert body["type"] == "security_alert"
        assert body["alert"]["id"] == "alert_000001"
        assert body["alert"]["affectedUser"] == "user_123"
        assert body["alert"]["threshold"]["action"] == "webhook"

    def test_error_status_raises(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        webhook = WebhookAlertHandler("https://hooks.example.test/audit", client=client)

        with pytest.raises(httpx.HTTPStatusError):
            webhook(make_alert())

    def test_dispatcher_reports_webhook_failure(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        dispatcher = AlertActionDispatcher()
        dispatcher.register(AlertAction.WEBHOOK, WebhookAlertHandler("https://hooks.example.test/audit", client=client))

        assert dispatcher.dispatch(make_alert()) is False

    def test_close_closes_client(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        dispatcher = AlertActionDispatcher()
        dispatcher.register(AlertAction.WEBHOOK, WebhookAlertHandler("https://hooks.example.test/audit", client=client))

        dispatcher.close()

        assert client.is_closed


class TestEncryptionProviders:
    """変更前後の値の秘匿"""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("secret", True),
            ({"ssn": "123-45-6789"}, True),
            ([1, 2], True),
            ("", False),
            (None, False),
            (42, False),
            (True, False),
        ],
    )
    def test_is_sensitive_value(self, value, expected):
        assert is_sensitive_value(value) is expected

    def test_marker(self):
        provider = RedactionMarkerProvider()

        assert provider.protect({"ssn": "123-45-6789"}) == REDACTION_MARKER
        assert provider.protect(42) == 42

    def test_fernet_round_trip_with_configured_key(self):
        key = Fernet.generate_key().decode()
        provider = FernetEncryptionProvider(key)

        token = provider.protect({"email": "a@example.com"})

        assert token != REDACTION_MARKER
        assert FernetEncryptionProvider(key).decrypt(token) == {"email": "a@example.com"}

    def test_fernet_leaves_non_sensitive_values(self):
        assert FernetEncryptionProvider().protect(None) is None

    def test_fernet_wrong_key(self):
        token = FernetEncryptionProvider().protect("secret")

        with pytest.raises(InvalidToken):
            FernetEncryptionProvider().decrypt(token)
