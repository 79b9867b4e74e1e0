"""
Provider 请求构建工具
"""

from .transport import build_auth_headers, build_url, is_successful_response, redact_url_for_log

__all__ = ["build_auth_headers", "build_url", "is_successful_response", "redact_url_for_log"]
