"""
供应商驱动
"""

from .base import ChatExchange, DriverWork, ProviderDriver, StreamingChatDriver
from .claude import ClaudeDriver
from .engine import RequestEngine
from .gemini import GeminiDriver
from .ollama import OllamaDriver
from .openai import OpenAIDriver
from .registry import DriverFactory, DriverInfo, DriverRegistry, default_registry

__all__ = [
    "ChatExchange",
    "DriverWork",
    "ProviderDriver",
    "StreamingChatDriver",
    "RequestEngine",
    "ClaudeDriver",
    "GeminiDriver",
    "OllamaDriver",
    "OpenAIDriver",
    "DriverFactory",
    "DriverInfo",
    "DriverRegistry",
    "default_registry",
]
