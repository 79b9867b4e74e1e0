"""
测试公共配置

必须在导入 aiunify 之前关闭文件日志，避免测试在仓库中写入 logs/。
"""

import os

os.environ.setdefault("LOG_DISABLE_FILE", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import Callable  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from aiunify.clients.http_client import HttpClientConfig  # noqa: E402
from aiunify.drivers.engine import RequestEngine  # noqa: E402

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_engine() -> Callable[[Handler], RequestEngine]:
    """以 httpx.MockTransport 构建引擎，回调在调用线程上执行"""

    def factory(handler: Handler) -> RequestEngine:
        return RequestEngine(http_config=HttpClientConfig(transport=httpx.MockTransport(handler)))

    return factory
