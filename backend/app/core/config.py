from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv
import logging
from pathlib import Path

# ロガーの設定
logger = logging.getLogger(__name__)

load_dotenv()

# このファイルは `backend/app/core/config.py` 配下にあるため、
# backend ディレクトリは2つ上の親ディレクトリ
BASE_DIR = Path(__file__).resolve().parent.parent

# .envファイルの絶対パスを明示的に設定
ENV_FILE_PATH = BASE_DIR.parent / ".env"


class Settings(BaseSettings):
    app_title: str = Field(default="Audit Log API", alias="APP_TITLE")

    # ログ
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database（未設定の場合はインメモリストアを使用）
    database_url: str = Field(default="", alias="DATABASE_URL")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # 環境設定
    environment: str = Field(default="development", alias="ENVIRONMENT")

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE_PATH),
        extra="ignore",  # 未定義の環境変数は無視
        env_parse_none_str=None,
    )

    @property
    def use_database(self) -> bool:
        """永続ストアを使うかどうか"""
        return bool(self.database_url)

    @property
    def is_production(self) -> bool:
        """本番環境かどうかを判定"""
        return self.environment.lower() in ["production", "prod"]

    @property
    def is_development(self) -> bool:
        """開発環境かどうかを判定"""
        return self.environment.lower() in ["development", "dev"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
