"""
データ暗号化サービス
監査ログに保存する変更前後の値（old_value / new_value）を秘匿する
"""
import base64
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

# ロガーの設定
logger = logging.getLogger(__name__)

# 暗号化済みを示すマーカー
REDACTION_MARKER = "[ENCRYPTED]"


def is_sensitive_value(data: Any) -> bool:
    """秘匿対象か（空でない文字列・辞書・リスト）"""
    if isinstance(data, str):
        return len(data) > 0
    if isinstance(data, (dict, list, tuple)):
        return True
    return False


class EncryptionProvider(ABC):
    """監査ログの値を秘匿するプロバイダ"""

    @abstractmethod
    def protect(self, data: Any) -> Any:
        """平文を保存用の不透明な値に置き換える（対象外の値はそのまま返す）"""


class RedactionMarkerProvider(EncryptionProvider):
    """値をマーカーに置き換えるだけのプロバイダ

    本番用の暗号化ではない。復号はできず、元の値は失われる。
    """

    def __init__(self, marker: str = REDACTION_MARKER):
        self.marker = marker

    def protect(self, data: Any) -> Any:
        if is_sensitive_value(data):
            return self.marker
        return data


class FernetEncryptionProvider(EncryptionProvider):
    """Fernetで値を暗号化するプロバイダ（権限のあるツールから decrypt で復元できる）"""

    def __init__(self, key: Optional[str] = None):
        self.key = self._load_key(key)
        self.cipher_suite = Fernet(self.key)
        logger.info("Fernet暗号化プロバイダが有効化されました")

    def _load_key(self, key: Optional[str]) -> bytes:
        """設定されたキーを使う。なければ新しく生成"""
        if key:
            # 44文字のFernetキーはそのまま使う（再デコードしない）
            if len(key) == 44:
                return key.encode()
            return base64.urlsafe_b64encode(base64.urlsafe_b64decode(key))

        logger.warning("暗号化キーが設定されていないため、新しいキーを生成しました（再起動後は復号できません）")
        return Fernet.generate_key()

    def protect(self, data: Any) -> Any:
        if not is_sensitive_value(data):
            return data
        payload = json.dumps(data, ensure_ascii=False, sort_keys=True)
        return self.cipher_suite.encrypt(payload.encode()).decode()

    def decrypt(self, encrypted_data: str) -> Any:
        """protect で暗号化した値を復元"""
        try:
            payload = self.cipher_suite.decrypt(encrypted_data.encode()).decode()
        except InvalidToken:
            logger.warning("復号化に失敗しました（キーが異なるか、暗号化されていない値です）")
            raise
        return json.loads(payload)
