"""
请求追踪模块
"""

from .request_tracker import CancellationToken, CancelListener, RequestHandle, RequestTracker

__all__ = ["CancellationToken", "CancelListener", "RequestHandle", "RequestTracker"]
