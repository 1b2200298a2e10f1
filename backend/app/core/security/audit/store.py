"""
監査ログの保存先
永続ストアに差し替えられるよう、インターフェースとインメモリ実装を分離
"""
import threading
from abc import ABC, abstractmethod
from bisect import bisect_left, bisect_right, insort
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .exceptions import AuditLogNotFoundError
from .models import AuditEventType, AuditLog


class AuditStore(ABC):
    """監査ログストアのインターフェース"""

    @abstractmethod
    def append(self, log: AuditLog) -> str:
        """監査ログを追加し、そのIDを返す"""

    @abstractmethod
    def get(self, log_id: str) -> AuditLog:
        """IDで取得（存在しなければ AuditLogNotFoundError）"""

    @abstractmethod
    def scan(self) -> List[AuditLog]:
        """全件のスナップショットを返す"""

    @abstractmethod
    def delete(self, log_ids: Iterable[str]) -> int:
        """指定IDを削除し、削除件数を返す"""

    def delete_older_than(self, cutoff: datetime) -> int:
        """cutoff より古いログを削除"""
        return self.delete([log.id for log in self.scan() if log.timestamp < cutoff])

    def count_in_window(
        self,
        event_type: AuditEventType,
        user_id: Optional[str],
        since: datetime,
        until: datetime,
    ) -> int:
        """同一イベントタイプ・同一ユーザーで since <= timestamp <= until の件数"""
        return sum(
            1
            for log in self.scan()
            if log.event_type == event_type
            and log.user_id == user_id
            and since <= log.timestamp <= until
        )

    def __len__(self) -> int:
        return len(self.scan())


class InMemoryAuditStore(AuditStore):
    """ロックで保護したインメモリストア

    閾値判定で全件を走査しないよう、(event_type, user_id) ごとに
    タイムスタンプの昇順リストを索引として持つ。
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._logs: Dict[str, AuditLog] = {}
        self._window_index: Dict[Tuple[AuditEventType, Optional[str]], List[datetime]] = defaultdict(list)

    def append(self, log: AuditLog) -> str:
        with self._lock:
            if log.id in self._logs:
                raise ValueError(f"duplicate audit log id: {log.id}")
            # 呼び出し元と共有しないよう、保存用のコピーを持つ
            self._logs[log.id] = log.model_copy(deep=True)
            insort(self._window_index[(log.event_type, log.user_id)], log.timestamp)
        return log.id

    def get(self, log_id: str) -> AuditLog:
        with self._lock:
            log = self._logs.get(log_id)
        if log is None:
            raise AuditLogNotFoundError(log_id)
        return log.model_copy(deep=True)

    def scan(self) -> List[AuditLog]:
        with self._lock:
            return [log.model_copy(deep=True) for log in self._logs.values()]

    def delete(self, log_ids: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for log_id in log_ids:
                log = self._logs.pop(log_id, None)
                if log is None:
                    continue
                self._unindex(log)
                removed += 1
        return removed

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            expired = [log_id for log_id, log in self._logs.items() if log.timestamp < cutoff]
            return self.delete(expired)

    def count_in_window(
        self,
        event_type: AuditEventType,
        user_id: Optional[str],
        since: datetime,
        until: datetime,
    ) -> int:
        with self._lock:
            timestamps = self._window_index.get((event_type, user_id))
            if not timestamps:
                return 0
            return bisect_right(timestamps, until) - bisect_left(timestamps, since)

    def __len__(self) -> int:
        with self._lock:
            return len(self._logs)

    def _unindex(self, log: AuditLog) -> None:
        key = (log.event_type, log.user_id)
        timestamps = self._window_index.get(key)
        if not timestamps:
            return
        position = bisect_left(timestamps, log.timestamp)
        if position < len(timestamps) and timestamps[position] == log.timestamp:
            timestamps.pop(position)
        if not timestamps:
            del self._window_index[key]
