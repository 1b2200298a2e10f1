"""
時刻とIDの供給
テストでは固定時計に差し替える
"""
import secrets
import string
from datetime import datetime, timezone

_ID_ALPHABET = string.digits + string.ascii_lowercase


class SystemClock:
    """UTCの現在時刻と一意なIDを返す"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def new_id(self, prefix: str) -> str:
        """`<prefix>_<エポックミリ秒>_<base36の9文字>` 形式のIDを生成"""
        millis = int(self.now().timestamp() * 1000)
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
        return f"{prefix}_{millis}_{suffix}"
