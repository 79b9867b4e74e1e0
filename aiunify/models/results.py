"""
操作结果类型
"""

from __future__ import annotations

import base64
import binascii
import io
from dataclasses import dataclass

from aiunify.core.enums import Capability, ProviderKind
from aiunify.core.exceptions import AIValidationError
from aiunify.utils.image_mime import detect_image_mime


@dataclass
class ImageResult:
    """
    归一化的图像生成结果

    不同供应商返回的字段不同：有的给 base64，有的给 URL。
    """

    data: str | None = None  # base64
    url: str | None = None
    mime_type: str | None = None
    revised_prompt: str | None = None

    def decode(self) -> bytes:
        """解码 base64 数据，只有 URL 时抛出 AIValidationError"""
        if not self.data:
            raise AIValidationError("Image result has no inline data.")
        try:
            return base64.b64decode(self.data, validate=False)
        except (binascii.Error, ValueError) as e:
            raise AIValidationError(f"Invalid base64 image data: {e}") from e

    def stream(self) -> io.BytesIO:
        return io.BytesIO(self.decode())

    def sniff_mime_type(self) -> str:
        """声明的 MIME 优先，否则按文件头嗅探"""
        if self.mime_type:
            return self.mime_type
        return detect_image_mime(self.decode())


@dataclass(frozen=True)
class NotSupported:
    """供应商未实现的操作返回此结果（布尔值为 False）"""

    operation: Capability
    provider: ProviderKind
    message: str

    def __bool__(self) -> bool:
        return False


__all__ = ["ImageResult", "NotSupported"]
