"""
截止時間與取消訊號

每個引擎操作都接受 deadline=，@transactional 會在執行前與 commit 前檢查。
"""
import threading
import time
from typing import Optional

from core.exceptions import DeadlineExceeded, OperationCancelled


class Deadline:
    """
    呼叫端提供的截止時間 / 取消訊號

    範例：
        deadline = Deadline(timeout=2.0)
        RoomManager.join(store, code, "alice", deadline=deadline)

        # 另一個執行緒
        deadline.cancel()

    參數：
        timeout: 從現在起算的秒數，None 表示不限時
        cancel_event: 可與其他元件共用的 threading.Event
    """

    def __init__(self, timeout: Optional[float] = None,
                 cancel_event: Optional[threading.Event] = None):
        self._expires_at = None if timeout is None else time.monotonic() + timeout
        self._cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def check(self) -> None:
        if self.cancelled:
            raise OperationCancelled("Operation cancelled by caller")
        if self.expired:
            raise DeadlineExceeded("Deadline exceeded before commit")
