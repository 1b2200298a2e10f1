"""
保持期間を過ぎた監査ログの定期削除
"""
import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

from .clock import SystemClock
from .store import AuditStore

# ロガーの設定
logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 24 * 60 * 60  # 1日ごと


class RetentionSweeper:
    """一定間隔で保持期間切れのログを削除するバックグラウンドタスク"""

    def __init__(
        self,
        store: AuditStore,
        retention_days: Callable[[], int],
        clock: Optional[SystemClock] = None,
        interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ):
        self.store = store
        # 設定の更新を反映するため、実行のたびに保持日数を取得する
        self._retention_days = retention_days
        self.clock = clock or SystemClock()
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lifecycle_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sweep_once(self) -> int:
        """保持期間切れのログを削除し、削除件数を返す"""
        cutoff = self.clock.now() - timedelta(days=self._retention_days())
        removed = self.store.delete_older_than(cutoff)
        if removed > 0:
            logger.info(f"古い監査ログを削除しました: {removed}件 (cutoff={cutoff.isoformat()})")
        return removed

    def start(self) -> None:
        with self._lifecycle_lock:
            if self.is_running:
                return
            # 停止イベントはスレッドごとに新しく作る
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name="audit-retention-sweeper",
                daemon=True,
            )
            self._thread.start()
        logger.info(f"保持期間スイーパーを開始: interval={self.interval_seconds}秒")

    def stop(self, timeout: Optional[float] = None) -> None:
        """タイマーを止め、実行中の削除が終わるまで待つ"""
        with self._lifecycle_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            thread.join(timeout)
            self._thread = None
        if thread.is_alive():
            logger.warning("保持期間スイーパーの停止待ちがタイムアウトしました（実行中の削除の完了後に終了します）")
        else:
            logger.info("保持期間スイーパーを停止しました")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval_seconds):
            try:
                self.sweep_once()
            except Exception:
                logger.exception("保持期間スイーパーでエラーが発生しました")
