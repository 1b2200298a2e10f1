import re
from datetime import datetime
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel

from app.core.dependencies import get_audit_service, get_client_ip
from app.core.security.audit.exceptions import AuditLogNotFoundError, UnsupportedExportFormatError
from app.core.security.audit.export import MEDIA_TYPES
from app.core.security.audit.models import (
    AuditEventType,
    AuditExportOptions,
    AuditQuery,
    AuditSettingsUpdate,
    ExportFormat,
    LogEvent,
    Severity,
)
from app.core.security.audit.service import AuditLogService

router = APIRouter(prefix="/audit-logs", tags=["AuditLogs"])

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def content_disposition(filename: str) -> str:
    """ヘッダーを壊さないよう、ASCIIの安全な名前と RFC 5987 形式の元の名前を並べる"""
    safe_name = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    if safe_name == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{safe_name}\"; filename*=UTF-8''{quote(filename, safe='')}"


class LogEventResponse(BaseModel):
    recorded: bool
    log: Optional[dict] = None


class AcknowledgeRequest(BaseModel):
    acknowledged_by: str


@router.post("/events", response_model=LogEventResponse)
def record_event(
    event: LogEvent,
    request: Request,
    audit_service: AuditLogService = Depends(get_audit_service),
):
    """監査イベントを記録（記録対象外なら recorded=false）"""
    audit_log = audit_service.log_event(
        event,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    if audit_log is None:
        return {"recorded": False, "log": None}
    return {"recorded": True, "log": audit_log.model_dump(mode="json", by_alias=True)}


@router.get("/", response_model=List[dict])
def get_audit_logs(
    audit_service: AuditLogService = Depends(get_audit_service),
    event_type: Optional[List[AuditEventType]] = Query(None, description="イベントタイプでフィルタ"),
    user_id: Optional[str] = Query(None, description="ユーザーIDでフィルタ"),
    date_from: Optional[datetime] = Query(None, description="この日時以降"),
    date_to: Optional[datetime] = Query(None, description="この日時以前"),
    success: Optional[bool] = Query(None, description="成功/失敗でフィルタ"),
    severity: Optional[Severity] = Query(None, description="重要度でフィルタ"),
    resource: Optional[str] = Query(None, description="リソースの部分一致"),
    limit: int = Query(100, ge=1, le=1000, description="取得件数"),
    offset: int = Query(0, ge=0, description="オフセット"),
):
    """監査ログの一覧を取得（フィルタリング対応）"""
    logs = audit_service.query_logs(
        AuditQuery(
            event_types=event_type,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            success=success,
            severity=severity,
            resource=resource,
            limit=limit,
            offset=offset,
        )
    )
    return [log.model_dump(mode="json", by_alias=True) for log in logs]


@router.get("/statistics", response_model=dict)
def get_audit_statistics(
    audit_service: AuditLogService = Depends(get_audit_service),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
):
    """監査ログの統計情報を取得"""
    statistics = audit_service.get_audit_statistics(date_from, date_to)
    return statistics.model_dump(mode="json", by_alias=True)


@router.post("/export")
def export_audit_logs(
    options: AuditExportOptions,
    audit_service: AuditLogService = Depends(get_audit_service),
):
    """監査ログをエクスポート"""
    try:
        payload, filename = audit_service.export_logs_with_filename(options)
    except UnsupportedExportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    export_format = ExportFormat(filename.rsplit(".", 1)[-1])
    return Response(
        content=payload,
        media_type=MEDIA_TYPES[export_format],
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.get("/alerts", response_model=List[dict])
def get_security_alerts(
    acknowledged: Optional[bool] = Query(None, description="確認済み/未確認でフィルタ"),
    audit_service: AuditLogService = Depends(get_audit_service),
):
    """セキュリティアラートを取得"""
    alerts = audit_service.get_security_alerts(acknowledged)
    return [alert.model_dump(mode="json", by_alias=True) for alert in alerts]


@router.post("/alerts/{alert_id}/acknowledge", response_model=dict)
def acknowledge_security_alert(
    alert_id: str,
    body: AcknowledgeRequest,
    audit_service: AuditLogService = Depends(get_audit_service),
):
    """セキュリティアラートを確認済みにする"""
    if not audit_service.acknowledge_alert(alert_id, body.acknowledged_by):
        raise HTTPException(status_code=404, detail="アラートが見つかりません")
    return {"acknowledged": True, "alert_id": alert_id}


@router.get("/settings", response_model=dict)
def get_audit_settings(audit_service: AuditLogService = Depends(get_audit_service)):
    """監査設定を取得"""
    return audit_service.get_settings().model_dump(mode="json", by_alias=True)


@router.patch("/settings", response_model=dict)
def update_audit_settings(
    update: AuditSettingsUpdate,
    audit_service: AuditLogService = Depends(get_audit_service),
):
    """監査設定を部分更新"""
    audit_service.update_settings(update)
    return audit_service.get_settings().model_dump(mode="json", by_alias=True)


@router.get("/{log_id}", response_model=dict)
def get_audit_log(
    log_id: str,
    audit_service: AuditLogService = Depends(get_audit_service),
):
    """特定の監査ログを取得"""
    try:
        log = audit_service.get_log(log_id)
    except AuditLogNotFoundError:
        raise HTTPException(status_code=404, detail="監査ログが見つかりません")
    return log.model_dump(mode="json", by_alias=True)
