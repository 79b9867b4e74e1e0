"""
回调接口

每种操作一个回调类，所有钩子都有安全的空实现，调用方只需覆盖关心的方法。
回调在哪个线程上执行由 RequestEngine 注入的执行器决定。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO

from aiunify.core.enums import ImageDecodeMode

if TYPE_CHECKING:
    from aiunify.models.results import ImageResult


class ChatCallback:
    """对话回调"""

    def before_request(self) -> None:
        """请求构建之前（调用方线程）"""

    def after_request(self) -> None:
        """请求已调度"""

    def before_response(self) -> None:
        """发送请求之前（worker 任务）"""

    def after_response(self) -> None:
        """收到响应之后、处理之前"""

    def on_response(self, text: str) -> None:
        """终态成功：完整回复文本（流式时为累计文本）"""

    def on_full_response(self, json_text: str) -> None:
        """原始响应 JSON"""

    def on_partial(self, text: str) -> None:
        """流式增量文本"""

    def on_error(self, message: str) -> None:
        """终态失败"""


class ImageCallback:
    """图像生成回调"""

    decode_mode: ImageDecodeMode = ImageDecodeMode.AUTO

    def on_success(self, images: list[ImageResult], json_text: str) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


class JSONCallback:
    """结构化 JSON 请求回调"""

    def on_success(self, json_text: str) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass

    def populate_dataset(self, obj: Any) -> bool:
        """
        接收解析后的响应对象

        返回 False 时驱动投递错误而不是成功；默认接受。
        """
        return True


class StreamCallback:
    """文件/流处理回调"""

    def on_success(self, stream: BinaryIO) -> None:
        pass

    def on_partial(self, chunk: bytes) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


class DriverEvents:
    """驱动级事件，请求未绑定回调时使用"""

    def on_error(self, message: str) -> None:
        pass

    def on_cancelled(self, request_id: str) -> None:
        pass

    def on_chat_success(self, text: str, json_text: str) -> None:
        pass

    def on_partial(self, text: str) -> None:
        pass

    def on_models_loaded(self, models: list[str]) -> None:
        pass

    def on_moderation(self, results: list[dict[str, Any]]) -> None:
        pass


__all__ = [
    "ChatCallback",
    "ImageCallback",
    "JSONCallback",
    "StreamCallback",
    "DriverEvents",
]
