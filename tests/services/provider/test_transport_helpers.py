from types import SimpleNamespace

import pytest

from aiunify.core.enums import ProviderKind
from aiunify.services.provider.transport import (
    build_auth_headers,
    build_url,
    is_successful_response,
    redact_url_for_log,
)


class TestBuildUrl:
    """测试 URL 拼接"""

    @pytest.mark.parametrize(
        ("base", "segments", "expected"),
        [
            ("https://api.openai.com/v1/", ("/chat/completions",), "https://api.openai.com/v1/chat/completions"),
            ("https://api.openai.com/v1", ("chat/completions/",), "https://api.openai.com/v1/chat/completions"),
            ("http://localhost:11434/api", ("", "tags"), "http://localhost:11434/api/tags"),
            (
                "https://generativelanguage.googleapis.com/v1beta/models",
                ("gemini-2.0-flash:generateContent", "?key=abc"),
                "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent?key=abc",
            ),
            ("https://x.test/models", ("?key=abc",), "https://x.test/models?key=abc"),
            ("", ("segment",), "segment"),
        ],
    )
    def test_join(self, base: str, segments: tuple, expected: str) -> None:
        assert build_url(base, *segments) == expected


class TestRedactUrl:
    """测试日志脱敏"""

    def test_key_is_redacted(self) -> None:
        assert redact_url_for_log("https://x.test/m:generate?key=secret&alt=sse") == "https://x.test/m:generate?key=***&alt=sse"

    def test_other_sensitive_params(self) -> None:
        assert redact_url_for_log("https://x.test/?a=1&API_KEY=s&token=t") == "https://x.test/?a=1&API_KEY=***&token=***"

    def test_plain_url_unchanged(self) -> None:
        assert redact_url_for_log("https://api.openai.com/v1/models") == "https://api.openai.com/v1/models"


class TestIsSuccessfulResponse:
    """测试成功判定"""

    def test_requires_2xx_and_body(self) -> None:
        assert is_successful_response(SimpleNamespace(status_code=200, content=b"{}")) is True
        assert is_successful_response(SimpleNamespace(status_code=204, content=b"")) is False
        assert is_successful_response(SimpleNamespace(status_code=500, content=b"{}")) is False
        assert is_successful_response(None) is False


class TestAuthHeaders:
    """测试认证 Header"""

    def test_openai_bearer(self) -> None:
        assert build_auth_headers(ProviderKind.OPENAI, "sk-1") == {"Authorization": "Bearer sk-1"}

    def test_claude_headers(self) -> None:
        headers = build_auth_headers(ProviderKind.CLAUDE, "k", anthropic_version="2023-06-01")
        assert headers == {"x-api-key": "k", "anthropic-version": "2023-06-01"}

    @pytest.mark.parametrize("kind", [ProviderKind.GEMINI, ProviderKind.OLLAMA])
    def test_query_or_no_auth(self, kind: ProviderKind) -> None:
        assert build_auth_headers(kind, "k") == {}
