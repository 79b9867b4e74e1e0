"""
请求调度器

每个请求在独立的 asyncio.Task 上执行 work(token)：

1. 执行前在 transport.on_receive_data 上安装中止钩子（链式调用原钩子），
   handle 被取消后，传输在下一个数据块边界中止
2. work 结束（成功或异常）后依次：恢复原钩子 -> tracker.end_request -> 关闭 transport
3. 失败策略：
   - 未取消: 异常经 ErrorClassifier 分类后通过 EventInvoker 投递到错误通道
   - 已取消: 成功结果与异常都被静默丢弃，调用方唯一的信号是取消通知
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from aiunify.core.error_utils import extract_error_message
from aiunify.core.logger import logger
from aiunify.services.orchestration.error_classifier import ClassifiedError, ErrorClassifier
from aiunify.services.orchestration.event_invoker import EventInvoker
from aiunify.services.tracking import CancellationToken, RequestHandle, RequestTracker

Work = Callable[[CancellationToken], Awaitable[Any]]
ErrorSink = Callable[[str], None]


class _HookedTransport(Protocol):
    on_receive_data: Callable[[int | None, int], bool] | None

    async def aclose(self) -> None: ...


class Dispatcher:
    """调度器：一个请求一个 worker task，无优先级、无批处理"""

    def __init__(
        self,
        tracker: RequestTracker,
        invoker: EventInvoker | None = None,
        classifier: ErrorClassifier | None = None,
        *,
        error_sink: ErrorSink | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._tracker = tracker
        self._invoker = invoker or EventInvoker()
        self._classifier = classifier or ErrorClassifier()
        # 请求未绑定回调时使用的驱动级错误事件
        self.error_sink = error_sink
        self._loop = loop
        self._tasks: set[asyncio.Future[Any]] = set()
        # 跨线程调度的请求，完成回调在事件循环线程上执行
        self._futures: set[concurrent.futures.Future[Any]] = set()
        self._futures_lock = threading.Lock()

    @property
    def tracker(self) -> RequestTracker:
        return self._tracker

    @property
    def invoker(self) -> EventInvoker:
        return self._invoker

    @property
    def pending(self) -> int:
        with self._futures_lock:
            futures = list(self._futures)
        return sum(1 for task in self._tasks if not task.done()) + sum(1 for f in futures if not f.done())

    def run(
        self,
        handle: RequestHandle,
        transport: _HookedTransport,
        work: Work,
        *,
        on_error: ErrorSink | None = None,
    ) -> asyncio.Task[None] | concurrent.futures.Future[None]:
        """
        调度 work 在独立任务上执行

        Args:
            handle: tracker.begin_request() 返回的句柄
            transport: 本请求独占的传输对象，结束后由调度器关闭
            work: 接收取消令牌的协程函数，负责完整的 HTTP 交换与结果投递
            on_error: 本请求的错误回调（通常是 callback.on_error）

        Returns:
            在事件循环内调用时返回 asyncio.Task；在其他线程调用时返回 concurrent Future
        """
        coro = self._execute(handle, transport, work, on_error)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            if self._loop is None:
                coro.close()
                raise RuntimeError("Dispatcher.run() requires a running event loop or an injected loop")
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
            with self._futures_lock:
                self._futures.add(future)
            future.add_done_callback(self._forget_future)
            logger.debug("[{}] 已跨线程调度", handle.id)
            return future

        task = loop.create_task(coro, name=f"aiunify-request-{handle.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("[{}] 已调度", handle.id)
        return task

    async def join(self) -> None:
        """等待当前所有 worker task 结束，包括从其他线程调度的请求"""
        while True:
            with self._futures_lock:
                futures = [f for f in self._futures if not f.done()]
            waiting = [*self._tasks, *(asyncio.wrap_future(f) for f in futures)]
            if not waiting:
                return
            await asyncio.gather(*waiting, return_exceptions=True)

    def _forget_future(self, future: concurrent.futures.Future[Any]) -> None:
        with self._futures_lock:
            self._futures.discard(future)

    async def _execute(
        self,
        handle: RequestHandle,
        transport: _HookedTransport,
        work: Work,
        on_error: ErrorSink | None,
    ) -> None:
        previous = transport.on_receive_data

        def abort_hook(content_length: int | None, read_count: int) -> bool:
            abort = False
            if previous is not None:
                abort = bool(previous(content_length, read_count))
            return abort or handle.cancelled

        transport.on_receive_data = abort_hook
        try:
            try:
                await work(handle.token)
            except Exception as e:
                if handle.cancelled:
                    logger.debug("[{}] 已取消，丢弃异常: {}", handle.id, e.__class__.__name__)
                    return
                await self._route_failure(handle, e, on_error)
                return

            if handle.cancelled:
                logger.debug("[{}] 已取消，丢弃结果", handle.id)
        finally:
            transport.on_receive_data = previous
            self._tracker.end_request(handle.id)
            try:
                await transport.aclose()
            except Exception as e:
                logger.warning("[{}] 关闭传输失败: {}", handle.id, e)

    async def _route_failure(
        self,
        handle: RequestHandle,
        error: Exception,
        on_error: ErrorSink | None,
    ) -> None:
        classified: ClassifiedError = self._classifier.classify_exception(error)
        logger.warning(
            "[{}] 请求失败: kind={}, {}",
            handle.id,
            classified.kind.value,
            extract_error_message(error),
        )

        sink = on_error or self.error_sink
        if sink is None:
            logger.error("[{}] 无错误回调可投递: {}", handle.id, classified.message)
            return

        message = classified.message
        try:
            await self._invoker.invoke(lambda: sink(message))
        except Exception as e:
            # 错误回调自身失败，不再重复投递
            logger.exception("[{}] 错误回调执行失败: {}", handle.id, e)


__all__ = ["Dispatcher", "Work", "ErrorSink"]
