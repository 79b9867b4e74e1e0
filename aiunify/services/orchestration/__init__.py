"""
Orchestration 模块

提供请求编排相关的组件：
- ErrorClassifier: 错误分类器，负责错误分类（纯逻辑，无副作用）
- EventInvoker: 事件投递器，按注入的执行器决定回调线程
- Dispatcher: 请求调度器，负责执行单个请求并串联取消/错误/投递
"""

from .dispatcher import Dispatcher, ErrorSink, Work
from .error_classifier import ClassifiedError, ErrorClassifier
from .event_invoker import AffinityExecutor, EventExecutor, EventInvoker, InlineExecutor

__all__ = [
    "Dispatcher",
    "ErrorSink",
    "Work",
    "ClassifiedError",
    "ErrorClassifier",
    "EventInvoker",
    "EventExecutor",
    "InlineExecutor",
    "AffinityExecutor",
]
