# app/core/dependencies.py
""" ルーターに共有サービスを渡すための依存関数を提供 """

from fastapi import HTTPException, Request, status

from app.core.security.audit.service import AuditLogService


""" 監査ログサービスを取得する関数 """
def get_audit_service(request: Request) -> AuditLogService:
    service = getattr(request.app.state, "audit_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="監査ログサービスが初期化されていません",
        )
    return service


""" クライアントのIPアドレスを取得する関数 """
def get_client_ip(request: Request) -> str:
    # カスタムヘッダーから取得（テスト用）
    custom_ip = request.headers.get("x-client-ip")
    if custom_ip:
        return custom_ip.strip()

    # プロキシ経由の場合の対応
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    # クライアントの直接IP
    if request.client and request.client.host:
        return request.client.host

    return "unknown"
