import threading

import pytest

from aiunify.core.exceptions import AIOperationCancelled
from aiunify.services.tracking import CancellationToken, RequestTracker


class TestCancellationToken:
    """测试取消令牌"""

    def test_token_is_monotonic(self) -> None:
        token = CancellationToken()
        assert token.cancelled is False

        token.cancel()
        token.cancel()
        assert token.cancelled is True

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.raise_if_cancelled("r1")

        token.cancel()
        with pytest.raises(AIOperationCancelled) as exc_info:
            token.raise_if_cancelled("r1")
        assert exc_info.value.request_id == "r1"
        assert exc_info.value.message == "Operation cancelled."


class TestRequestTracker:
    """测试请求追踪器"""

    def test_ids_are_unique(self) -> None:
        tracker = RequestTracker()
        ids = {tracker.begin_request()[0] for _ in range(1000)}

        assert len(ids) == 1000
        assert tracker.active_count == 1000

    def test_ids_are_unique_across_threads(self) -> None:
        tracker = RequestTracker()
        collected: list[str] = []
        lock = threading.Lock()

        def worker() -> None:
            local = [tracker.begin_request()[0] for _ in range(200)]
            with lock:
                collected.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(collected) == 1600
        assert len(set(collected)) == 1600

    def test_cancel_marks_handle_and_notifies(self) -> None:
        notified: list[str] = []
        tracker = RequestTracker(on_cancel=notified.append)
        request_id, handle = tracker.begin_request()

        tracker.cancel(request_id)

        assert handle.cancelled is True
        assert notified == [request_id]
        # 取消不会移除登记，由请求结束时移除
        assert tracker.is_running is True

    def test_cancel_unknown_id_still_notifies(self) -> None:
        notified: list[str] = []
        tracker = RequestTracker(on_cancel=notified.append)

        tracker.cancel("does-not-exist")

        assert notified == ["does-not-exist"]
        assert tracker.active_count == 0

    def test_cancel_all(self) -> None:
        notified: list[str] = []
        tracker = RequestTracker(on_cancel=notified.append)
        handles = [tracker.begin_request()[1] for _ in range(3)]

        tracker.cancel_all()

        assert all(handle.cancelled for handle in handles)
        assert sorted(notified) == sorted(handle.id for handle in handles)

    def test_end_request_is_idempotent(self) -> None:
        tracker = RequestTracker()
        request_id, _ = tracker.begin_request()

        tracker.end_request(request_id)
        tracker.end_request(request_id)

        assert tracker.get(request_id) is None
        assert tracker.is_running is False
        assert tracker.active_ids() == []

    def test_cancel_without_listener_does_not_fail(self) -> None:
        tracker = RequestTracker()
        request_id, handle = tracker.begin_request()

        tracker.cancel(request_id)

        assert handle.cancelled is True

    def test_failing_listener_does_not_stop_cancel_all(self) -> None:
        notified: list[str] = []

        def listener(request_id: str) -> None:
            notified.append(request_id)
            raise RuntimeError("listener gone")

        tracker = RequestTracker(on_cancel=listener)
        handles = [tracker.begin_request()[1] for _ in range(3)]

        tracker.cancel_all()

        assert all(handle.cancelled for handle in handles)
        assert sorted(notified) == sorted(handle.id for handle in handles)
