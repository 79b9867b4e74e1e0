"""
请求追踪器 - 维护进行中的请求及其取消标记

并发约定：
- begin / cancel / end 可以在任意线程调用，由同一把锁线性化
- 锁只保护字典的增删改，不包住任何 I/O 或监听器回调
- cancel() 即使 id 未知也会发出取消通知（对外可观察的契约）
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from aiunify.core.exceptions import AIOperationCancelled
from aiunify.core.logger import logger


class CancellationToken:
    """协作式取消令牌：只能从未取消变为已取消，不可回退"""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self, request_id: str | None = None) -> None:
        """在检查点调用，已取消时抛出 AIOperationCancelled"""
        if self._event.is_set():
            raise AIOperationCancelled(request_id=request_id)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


@dataclass
class RequestHandle:
    """单个请求的句柄"""

    id: str
    token: CancellationToken = field(default_factory=CancellationToken)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled


CancelListener = Callable[[str], None]


class RequestTracker:
    """线程安全的进行中请求登记表"""

    def __init__(self, on_cancel: CancelListener | None = None) -> None:
        self._lock = threading.Lock()
        self._active: dict[str, RequestHandle] = {}
        self.on_cancel = on_cancel

    def begin_request(self) -> tuple[str, RequestHandle]:
        """分配新的请求 id 并登记，返回 (id, handle)"""
        while True:
            request_id = uuid.uuid4().hex
            handle = RequestHandle(id=request_id)
            with self._lock:
                # uuid4 碰撞几乎不可能，但活跃 id 绝不能重复
                if request_id not in self._active:
                    self._active[request_id] = handle
                    break

        logger.debug("请求开始: {}", request_id)
        return request_id, handle

    def cancel(self, request_id: str) -> None:
        """标记取消并发出通知（未知 id 同样通知）"""
        with self._lock:
            handle = self._active.get(request_id)
            if handle is not None:
                handle.token.cancel()

        if handle is None:
            logger.debug("取消未知或已结束的请求: {}", request_id)
        self._notify_cancel(request_id)

    def cancel_all(self) -> None:
        """取消所有活跃请求，逐个通知"""
        with self._lock:
            handles = list(self._active.values())
            for handle in handles:
                handle.token.cancel()

        if handles:
            logger.info("批量取消 {} 个请求", len(handles))
        for handle in handles:
            self._notify_cancel(handle.id)

    def end_request(self, request_id: str) -> None:
        """移除请求登记，幂等"""
        with self._lock:
            removed = self._active.pop(request_id, None)

        if removed is not None:
            logger.debug("请求结束: {}", request_id)

    def get(self, request_id: str) -> RequestHandle | None:
        with self._lock:
            return self._active.get(request_id)

    def active_ids(self) -> list[str]:
        with self._lock:
            return list(self._active)

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    @property
    def is_running(self) -> bool:
        return self.active_count > 0

    def _notify_cancel(self, request_id: str) -> None:
        listener = self.on_cancel
        if listener is None:
            logger.info("请求已取消: {}", request_id)
            return
        try:
            listener(request_id)
        except Exception as e:
            # 单个通知失败不影响其余请求的取消
            logger.exception("[{}] 取消通知失败: {}", request_id, e)


__all__ = ["CancellationToken", "RequestHandle", "RequestTracker", "CancelListener"]
