"""
監査ログの永続ストア（SQLAlchemy）
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text, func
from sqlalchemy.orm import Session, sessionmaker

from app.db.base_class import Base

from .exceptions import AuditLogNotFoundError
from .models import AuditEventType, AuditLog
from .store import AuditStore

# ロガーの設定
logger = logging.getLogger(__name__)


class AuditLogRecord(Base):
    """監査ログテーブル"""
    __tablename__ = "audit_logs"

    id = Column(String(64), primary_key=True)
    timestamp = Column(DateTime, nullable=False, index=True)  # UTC（タイムゾーンなしで保存）
    event_type = Column(String(50), nullable=False)
    user_id = Column(String(255), nullable=True)  # 匿名アクセスの場合もある
    session_id = Column(String(255), nullable=True)
    ip_address = Column(String(45), nullable=False)
    user_agent = Column(String(200), nullable=False)
    action = Column(Text, nullable=False)
    resource = Column(Text, nullable=False)
    old_value = Column(JSON(none_as_null=True), nullable=True)
    new_value = Column(JSON(none_as_null=True), nullable=True)
    success = Column(Boolean, nullable=False)
    error_message = Column(Text, nullable=True)
    severity = Column(String(20), nullable=False)
    details = Column("metadata", JSON, nullable=False, default=dict)

    __table_args__ = (
        Index("idx_audit_logs_event_user_ts", "event_type", "user_id", "timestamp"),
    )

    def __repr__(self):
        return f"<AuditLogRecord(id={self.id}, event_type={self.event_type}, user_id={self.user_id})>"


def _to_db_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_record(log: AuditLog) -> AuditLogRecord:
    return AuditLogRecord(
        id=log.id,
        timestamp=_to_db_time(log.timestamp),
        event_type=log.event_type.value,
        user_id=log.user_id,
        session_id=log.session_id,
        ip_address=log.ip_address,
        user_agent=log.user_agent,
        action=log.action,
        resource=log.resource,
        old_value=log.old_value,
        new_value=log.new_value,
        success=log.success,
        error_message=log.error_message,
        severity=log.severity.value,
        details=dict(log.metadata),
    )


def _to_log(record: AuditLogRecord) -> AuditLog:
    return AuditLog(
        id=record.id,
        timestamp=_from_db_time(record.timestamp),
        event_type=record.event_type,
        user_id=record.user_id,
        session_id=record.session_id,
        ip_address=record.ip_address,
        user_agent=record.user_agent,
        action=record.action,
        resource=record.resource,
        old_value=record.old_value,
        new_value=record.new_value,
        success=record.success,
        error_message=record.error_message,
        severity=record.severity,
        metadata=record.details or {},
    )


class SqlAlchemyAuditStore(AuditStore):
    """SQLAlchemyで監査ログを永続化するストア（操作ごとにセッションを開閉）"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def append(self, log: AuditLog) -> str:
        db = self._session()
        try:
            db.add(_to_record(log))
            db.commit()
            return log.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get(self, log_id: str) -> AuditLog:
        db = self._session()
        try:
            record = db.query(AuditLogRecord)\
                .filter(AuditLogRecord.id == log_id)\
                .first()
            if record is None:
                raise AuditLogNotFoundError(log_id)
            return _to_log(record)
        finally:
            db.close()

    def scan(self) -> List[AuditLog]:
        db = self._session()
        try:
            records = db.query(AuditLogRecord)\
                .order_by(AuditLogRecord.timestamp.asc())\
                .all()
            return [_to_log(record) for record in records]
        finally:
            db.close()

    def delete(self, log_ids: Iterable[str]) -> int:
        ids = list(log_ids)
        if not ids:
            return 0
        db = self._session()
        try:
            removed = db.query(AuditLogRecord)\
                .filter(AuditLogRecord.id.in_(ids))\
                .delete(synchronize_session=False)
            db.commit()
            return removed
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete_older_than(self, cutoff: datetime) -> int:
        db = self._session()
        try:
            removed = db.query(AuditLogRecord)\
                .filter(AuditLogRecord.timestamp < _to_db_time(cutoff))\
                .delete(synchronize_session=False)
            db.commit()
            logger.debug(f"保持期間切れの監査ログを削除: {removed}件")
            return removed
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def count_in_window(
        self,
        event_type: AuditEventType,
        user_id: Optional[str],
        since: datetime,
        until: datetime,
    ) -> int:
        db = self._session()
        try:
            return db.query(func.count(AuditLogRecord.id))\
                .filter(
                    AuditLogRecord.event_type == AuditEventType(event_type).value,
                    AuditLogRecord.user_id == user_id,
                    AuditLogRecord.timestamp >= _to_db_time(since),
                    AuditLogRecord.timestamp <= _to_db_time(until),
                )\
                .scalar()
        finally:
            db.close()

    def __len__(self) -> int:
        db = self._session()
        try:
            return db.query(func.count(AuditLogRecord.id)).scalar()
        finally:
            db.close()
