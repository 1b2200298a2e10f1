from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from app.core.config import get_settings
from app.core.security.audit.config import AuditConfig
from app.core.security.audit.router import router as audit_router
from app.core.security.audit.service import AuditLogService, build_audit_service
from app.db.session import build_engine, build_session_factory

# ロガーの設定
logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_audit_service() -> AuditLogService:
    """設定に応じて監査ログサービスを作成"""
    settings = get_settings()
    session_factory = None
    if settings.use_database:
        engine = build_engine(settings.database_url, echo=settings.database_echo)
        session_factory = build_session_factory(engine)
    return build_audit_service(AuditConfig(), session_factory)


def create_app(audit_service: AuditLogService = None) -> FastAPI:
    """FastAPIアプリを作成（テストでは作成済みのサービスを渡せる）"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service = audit_service or create_audit_service()
        app.state.audit_service = service
        service.start()
        logger.info("✅ 監査ログサービスを開始しました")
        try:
            yield
        finally:
            service.shutdown()
            logger.info("監査ログサービスを停止しました")

    settings = get_settings()
    app = FastAPI(title=settings.app_title, lifespan=lifespan)

    # 監査ログAPI
    app.include_router(audit_router, prefix="/api")

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    return app


configure_logging(get_settings().log_level)
logger.info(f"環境: {get_settings().environment}")

app = create_app()
