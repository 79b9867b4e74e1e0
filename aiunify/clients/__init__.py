"""
HTTP 客户端
"""

from .http_client import (
    ClientCustomizer,
    HttpClientConfig,
    ReceiveDataHook,
    StreamingResponse,
    Transport,
    TransportResponse,
)

__all__ = [
    "ClientCustomizer",
    "HttpClientConfig",
    "ReceiveDataHook",
    "StreamingResponse",
    "Transport",
    "TransportResponse",
]
