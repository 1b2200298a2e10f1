"""
監査ログの検索（フィルタ・並び替え・ページング）
"""
from typing import List

from .models import AuditLog, AuditQuery
from .store import AuditStore


def matches(log: AuditLog, query: AuditQuery) -> bool:
    """指定された条件をすべて満たすか"""
    if query.event_types and log.event_type not in query.event_types:
        return False
    if query.user_id and log.user_id != query.user_id:
        return False
    if query.date_from is not None and log.timestamp < query.date_from:
        return False
    if query.date_to is not None and log.timestamp > query.date_to:
        return False
    if query.success is not None and log.success != query.success:
        return False
    if query.severity is not None and log.severity != query.severity:
        return False
    if query.resource and query.resource.lower() not in log.resource.lower():
        return False
    return True


class QueryEngine:
    """ストアを走査して条件に合うログを新しい順に返す"""

    def __init__(self, store: AuditStore):
        self.store = store

    def search(self, query: AuditQuery, paginate: bool = True) -> List[AuditLog]:
        logs = [log for log in self.store.scan() if matches(log, query)]
        logs.sort(key=lambda log: log.timestamp, reverse=True)

        if not paginate:
            return logs
        return logs[query.offset:query.offset + query.limit]
