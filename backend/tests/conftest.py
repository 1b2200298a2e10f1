"""
監査ログのテスト共通フィクスチャ
"""
from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from app.core.security.audit.clock import SystemClock
from app.core.security.audit.config import AuditConfig
from app.core.security.audit.models import (
    AlertAction,
    AlertThreshold,
    AuditEventType,
    AuditSettings,
    LogEvent,
)
from app.core.security.audit.service import AuditLogService
from app.core.security.audit.store import InMemoryAuditStore

START = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class FrozenClock(SystemClock):
    """テスト用の固定時計（advance で時刻を進める）"""

    def __init__(self, start: datetime = START):
        self.current = start
        self._counter = itertools.count(1)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def new_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._counter):06d}"


def build_event(event_type: AuditEventType = AuditEventType.USER_LOGIN, **overrides) -> LogEvent:
    values = {
        "event_type": event_type,
        "user_id": "user_123",
        "session_id": "sess_abc",
        "action": "login",
        "resource": "/api/auth/login",
        "success": True,
    }
    values.update(overrides)
    return LogEvent(**values)


@pytest.fixture
def make_event():
    """LogEvent を作るファクトリ（指定した項目だけ上書き）"""
    return build_event


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def audit_config() -> AuditConfig:
    # 環境変数や .env に左右されないよう明示的に指定
    return AuditConfig(
        ENABLED=True,
        RETENTION_DAYS=2555,
        ENCRYPT_LOGS=True,
        REALTIME_MONITORING=True,
        ALERTING_ENABLED=True,
        ALERT_WEBHOOK_URL=None,
        _env_file=None,
    )


@pytest.fixture
def service(store, clock, audit_config) -> AuditLogService:
    """初期設定のままの監査ログサービス"""
    return AuditLogService(store=store, config=audit_config, clock=clock)


@pytest.fixture
def login_threshold() -> AlertThreshold:
    return AlertThreshold(
        event_type=AuditEventType.USER_LOGIN,
        count=5,
        time_window_minutes=5,
        action=AlertAction.EMAIL_NOTIFICATION,
    )


@pytest.fixture
def threshold_service(store, clock, audit_config, login_threshold) -> AuditLogService:
    """ログイン閾値（5分以内に5回）だけを持つサービス"""
    settings = AuditSettings(
        enabled_events=list(AuditEventType),
        retention_period=30,
        alert_thresholds=[login_threshold],
    )
    return AuditLogService(store=store, config=audit_config, settings=settings, clock=clock)
