import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.db.base_class import Base

# ロガーの設定
logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """DB URLからエンジンを作成"""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # 複数スレッドから同じ接続プールを使うため
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
        echo=echo,
    )
    logger.info(f"データベースエンジンを作成: dialect={engine.dialect.name}")
    return engine


def build_session_factory(engine: Engine, create_tables: bool = True) -> sessionmaker:
    """セッションファクトリを作成（必要に応じてテーブルも作成）"""
    if create_tables:
        Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
