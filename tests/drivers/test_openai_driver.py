"""
OpenAIDriver 测试

覆盖对话（普通/流式）、图像、结构化 JSON、文件流、内容审核与模型列表。
"""

import base64
import json
from pathlib import Path

import httpx
import pytest

from aiunify.core.enums import Capability, ImageDecodeMode, ProviderKind
from aiunify.core.exceptions import AIAuthError, AIValidationError
from aiunify.drivers import OpenAIDriver
from aiunify.models import OpenAIParams
from aiunify.models.openai import OpenAIImageRequest
from aiunify.services.normalization import DatasetBuilder, DatasetJSONCallback

PNG_HEADER = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


async def chunked(*chunks: bytes):
    for chunk in chunks:
        yield chunk


def make_driver(make_engine, handler, **params) -> OpenAIDriver:
    params.setdefault("api_key", "sk-test")
    return OpenAIDriver(OpenAIParams(**params), engine=make_engine(handler))


class TestOpenAIChat:
    """测试对话"""

    @pytest.mark.asyncio
    async def test_chat_success(self, make_engine, chat_callback, driver_events) -> None:
        captured: dict = {}
        reply = {"id": "chatcmpl-1", "choices": [{"index": 0, "message": {"role": "assistant", "content": "Hello there"}}]}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=reply)

        driver = make_driver(make_engine, handler)
        driver.events = driver_events

        request_id = driver.chat("Hi", chat_callback)
        await driver.engine.join()

        assert isinstance(request_id, str)
        assert captured["url"] == "https://api.openai.com/v1/chat/completions"
        assert captured["auth"] == "Bearer sk-test"
        assert captured["body"] == {
            "model": "gpt-5",
            "messages": [{"role": "user", "content": "Hi"}],
            "max_tokens": 1024,
        }
        assert chat_callback.calls == [
            "before_request",
            "after_request",
            "before_response",
            "after_response",
            "on_full_response",
            "on_response",
        ]
        assert chat_callback.responses == ["Hello there"]
        assert json.loads(chat_callback.full_responses[0]) == reply
        assert driver_events.chat_successes[0][0] == "Hello there"
        assert driver.is_running is False

    @pytest.mark.asyncio
    async def test_max_completion_tokens_and_sampling(self, make_engine, chat_callback) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        driver = make_driver(
            make_engine,
            handler,
            use_max_completion_tokens=True,
            max_tokens=256,
            temperature=0.2,
            reasoning_effort="low",
        )
        driver.chat("Hi", chat_callback)
        await driver.engine.join()

        body = captured["body"]
        assert body["max_completion_tokens"] == 256
        assert "max_tokens" not in body
        assert body["temperature"] == 0.2
        assert body["reasoning_effort"] == "low"

    @pytest.mark.asyncio
    async def test_rate_limit_goes_to_on_error(self, make_engine, chat_callback) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                429,
                json={"error": {"message": "Rate limit reached", "type": "requests"}},
                headers={"Retry-After": "5"},
            )

        driver = make_driver(make_engine, handler)
        driver.chat("Hi", chat_callback)
        await driver.engine.join()

        assert chat_callback.errors == ["Rate limit reached"]
        assert chat_callback.responses == []
        assert chat_callback.calls[-1] == "on_error"

    @pytest.mark.asyncio
    async def test_empty_content_is_an_error(self, make_engine, chat_callback) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": [{"message": {"content": None}}]})

        driver = make_driver(make_engine, handler)
        driver.chat("Hi", chat_callback)
        await driver.engine.join()

        assert chat_callback.errors == ["No valid message content in response."]

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, make_engine, chat_callback) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>proxy error</html>")

        driver = make_driver(make_engine, handler)
        driver.chat("Hi", chat_callback)
        await driver.engine.join()

        assert len(chat_callback.errors) == 1
        assert chat_callback.errors[0].startswith("Invalid JSON Error: ")

    @pytest.mark.asyncio
    async def test_streamed_chat(self, make_engine, chat_callback, driver_events) -> None:
        captured: dict = {}
        sse = (
            b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
            b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n'
            b'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n'
            b'data: {"choices":[],"usage":{"total_tokens":3}}\n\n'
            b"data: [DONE]\n\n"
        )

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            captured["accept"] = request.headers["accept"]
            return httpx.Response(200, content=chunked(sse[:40], sse[40:]), headers={"Content-Type": "text/event-stream"})

        driver = make_driver(make_engine, handler, stream=True)
        driver.events = driver_events
        driver.chat("Hi", chat_callback)
        await driver.engine.join()

        assert captured["body"]["stream"] is True
        assert captured["accept"] == "text/event-stream"
        assert chat_callback.partials == ["Hel", "lo"]
        assert chat_callback.responses == ["Hello"]
        assert driver_events.partials == ["Hel", "lo"]
        assert driver_events.chat_successes == [("Hello", "")]

    @pytest.mark.asyncio
    async def test_streamed_chat_http_error(self, make_engine, chat_callback) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})

        driver = make_driver(make_engine, handler, stream=True)
        driver.chat("Hi", chat_callback)
        await driver.engine.join()

        assert chat_callback.errors == ["Incorrect API key provided"]
        assert chat_callback.partials == []


class TestOpenAIImage:
    """测试图像生成"""

    @pytest.mark.asyncio
    async def test_generate_image(self, make_engine, image_callback) -> None:
        captured: dict = {}
        encoded = base64.b64encode(PNG_HEADER).decode()

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"created": 1, "data": [{"b64_json": encoded, "revised_prompt": "a red fox"}]})

        driver = make_driver(make_engine, handler)
        request = OpenAIImageRequest(prompt="fox", model="dall-e-3", size="1024x1024")

        driver.generate_image(request, image_callback)
        await driver.engine.join()

        assert captured["url"] == "https://api.openai.com/v1/images/generations"
        assert captured["body"] == {"prompt": "fox", "model": "dall-e-3", "size": "1024x1024"}
        assert len(image_callback.images) == 1
        image = image_callback.images[0]
        assert image.decode() == PNG_HEADER
        assert image.sniff_mime_type() == "image/png"
        assert image.revised_prompt == "a red fox"
        assert image_callback.errors == []

    @pytest.mark.asyncio
    async def test_url_results(self, make_engine, image_callback) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"url": "https://img.test/1.png"}]})

        driver = make_driver(make_engine, handler)
        driver.generate_image(OpenAIImageRequest(prompt="fox"), image_callback)
        await driver.engine.join()

        assert image_callback.images[0].url == "https://img.test/1.png"
        assert image_callback.images[0].data is None

    @pytest.mark.asyncio
    async def test_decode_mode_none(self, make_engine, image_callback) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"url": "https://img.test/1.png"}]})

        image_callback.decode_mode = ImageDecodeMode.NONE
        driver = make_driver(make_engine, handler)
        driver.generate_image(OpenAIImageRequest(prompt="fox"), image_callback)
        await driver.engine.join()

        assert image_callback.images == []
        assert image_callback.errors == ["Decode mode not supported."]

    def test_missing_request(self, make_engine, image_callback) -> None:
        driver = make_driver(make_engine, lambda request: httpx.Response(500))

        assert driver.generate_image(None, image_callback) is None
        assert image_callback.errors == ["Request Object is not assigned."]


class TestOpenAIJSON:
    """测试结构化 JSON"""

    @pytest.mark.asyncio
    async def test_execute_json_with_string_params(self, make_engine, json_callback) -> None:
        captured: dict = {}
        reply = {"choices": [{"message": {"content": '[{"a": 1}]'}}]}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = request.content
            captured["content_type"] = request.headers["content-type"]
            return httpx.Response(200, json=reply)

        payload = '{"model":"gpt-5","messages":[{"role":"user","content":"list"}]}'
        driver = make_driver(make_engine, handler)
        driver.execute_json("chat/completions", payload, json_callback)
        await driver.engine.join()

        assert captured["url"] == "https://api.openai.com/v1/chat/completions"
        assert captured["body"] == payload.encode()
        assert captured["content_type"] == "application/json"
        assert json_callback.objects == [reply]
        assert json.loads(json_callback.successes[0]) == reply

    @pytest.mark.asyncio
    async def test_rejected_dataset(self, make_engine, json_callback) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": True})

        json_callback.accept = False
        driver = make_driver(make_engine, handler)
        driver.execute_json("responses", {"input": "x"}, json_callback)
        await driver.engine.join()

        assert json_callback.successes == []
        assert json_callback.errors == ["Request failed."]

    @pytest.mark.asyncio
    async def test_dataset_import(self, make_engine) -> None:
        class CapturingCallback(DatasetJSONCallback):
            def __init__(self, *args, **kwargs) -> None:
                super().__init__(*args, **kwargs)
                self.successes: list[str] = []
                self.errors: list[str] = []

            def on_success(self, json_text: str) -> None:
                self.successes.append(json_text)

            def on_error(self, message: str) -> None:
                self.errors.append(message)

        def handler(request: httpx.Request) -> httpx.Response:
            content = '```json\n[{"name": "a", "n": 1}, {"name": "b", "n": 2}]\n```'
            return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

        dataset = DatasetBuilder()
        callback = CapturingCallback(dataset, ProviderKind.OPENAI)
        missing = CapturingCallback()
        driver = make_driver(make_engine, handler)

        driver.execute_json("chat/completions", {"model": "gpt-5"}, callback)
        driver.execute_json("chat/completions", {"model": "gpt-5"}, missing)
        await driver.engine.join()

        assert dataset.columns == ["name", "n"]
        assert len(dataset) == 2
        assert len(callback.successes) == 1
        assert missing.errors == ["Event handler failed: AIConfigError: PopulateDataSet: DataSet is not assigned."]

    def test_missing_endpoint(self, make_engine, json_callback) -> None:
        driver = make_driver(make_engine, lambda request: httpx.Response(500))

        assert driver.execute_json("  ", {"a": 1}, json_callback) is None
        assert json_callback.errors == ["No endpoint is assigned."]


class TestOpenAIStream:
    """测试文件流处理"""

    @pytest.mark.asyncio
    async def test_multipart_upload(self, make_engine, stream_callback, tmp_path: Path) -> None:
        captured: dict = {}
        audio = tmp_path / "speech.wav"
        audio.write_bytes(b"RIFF0000WAVE")

        def handler(request: httpx.Request) -> httpx.Response:
            captured["content_type"] = request.headers["content-type"]
            captured["body"] = request.content
            captured["url"] = str(request.url)
            return httpx.Response(200, content=chunked(b"hel", b"lo"))

        driver = make_driver(make_engine, handler, model="whisper-1")
        driver.process_stream(
            "audio/transcriptions",
            {"response_format": "text", "temperature": 0},
            stream_callback,
            input_file=audio,
        )
        await driver.engine.join()

        assert captured["url"] == "https://api.openai.com/v1/audio/transcriptions"
        assert captured["content_type"].startswith("multipart/form-data")
        assert b'name="model"' in captured["body"]
        assert b"whisper-1" in captured["body"]
        assert b'filename="speech.wav"' in captured["body"]
        assert b"RIFF0000WAVE" in captured["body"]
        assert b'name="response_format"' in captured["body"]
        assert stream_callback.chunks == [b"hel", b"lo"]
        assert stream_callback.bodies == [b"hello"]

    @pytest.mark.asyncio
    async def test_json_body_without_file(self, make_engine, stream_callback) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"ID3audio")

        driver = make_driver(make_engine, handler)
        driver.process_stream("audio/speech", {"model": "tts-1", "input": "hi", "voice": "alloy"}, stream_callback)
        await driver.engine.join()

        assert captured["body"] == {"model": "tts-1", "input": "hi", "voice": "alloy"}
        assert stream_callback.bodies == [b"ID3audio"]

    @pytest.mark.asyncio
    async def test_stream_http_error(self, make_engine, stream_callback) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "Unsupported voice"}})

        driver = make_driver(make_engine, handler)
        driver.process_stream("audio/speech", {"voice": "x"}, stream_callback)
        await driver.engine.join()

        assert stream_callback.errors == ["Unsupported voice"]
        assert stream_callback.bodies == []

    def test_missing_input_file(self, make_engine, stream_callback, tmp_path: Path) -> None:
        missing = tmp_path / "nope.wav"
        driver = make_driver(make_engine, lambda request: httpx.Response(500))

        assert driver.process_stream("audio/transcriptions", {}, stream_callback, input_file=missing) is None
        assert stream_callback.errors == [f"Input file not found: {missing}"]


class TestOpenAIModeration:
    """测试内容审核"""

    @pytest.mark.asyncio
    async def test_moderate(self, make_engine, driver_events) -> None:
        captured: dict = {}
        result = {"flagged": True, "categories": {"violence": True}, "category_scores": {"violence": 0.91}}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers.get("authorization")
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "modr-1", "model": "omni-moderation-latest", "results": [result]})

        driver = make_driver(make_engine, handler)
        driver.events = driver_events
        moderated: list = []
        driver_events.on_moderation = moderated.append

        results = await driver.moderate("I will hurt you")

        assert captured == {
            "url": "https://api.openai.com/v1/moderations",
            "auth": "Bearer sk-test",
            "body": {"input": "I will hurt you", "model": "omni-moderation-latest"},
        }
        assert results == [result]
        assert moderated == [[result]]

    @pytest.mark.asyncio
    async def test_moderate_batch_with_explicit_model(self, make_engine) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"results": [{"flagged": False}, {"flagged": False}]})

        driver = make_driver(make_engine, handler)

        results = await driver.moderate(["hello", "goodbye"], model="text-moderation-stable")

        assert captured["body"] == {"input": ["hello", "goodbye"], "model": "text-moderation-stable"}
        assert [item["flagged"] for item in results] == [False, False]

    @pytest.mark.asyncio
    async def test_moderate_http_error(self, make_engine) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})

        with pytest.raises(AIAuthError, match="Incorrect API key provided"):
            await make_driver(make_engine, handler).moderate("hello")

    @pytest.mark.asyncio
    async def test_moderate_empty_input(self, make_engine) -> None:
        driver = make_driver(make_engine, lambda request: httpx.Response(500))

        with pytest.raises(AIValidationError, match="Input is empty."):
            await driver.moderate(["", "  "])


class TestOpenAIModels:
    """测试模型列表与连接测试"""

    @pytest.mark.asyncio
    async def test_list_models(self, make_engine, driver_events) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["url"] = str(request.url)
            return httpx.Response(200, json={"object": "list", "data": [{"id": "gpt-5"}, {"id": "gpt-4o"}]})

        driver = make_driver(make_engine, handler)
        driver.events = driver_events

        models = await driver.list_models()

        assert captured == {"method": "GET", "url": "https://api.openai.com/v1/models"}
        assert models == ["gpt-5", "gpt-4o"]
        assert driver_events.models == [["gpt-5", "gpt-4o"]]

    @pytest.mark.asyncio
    async def test_connection_ok(self, make_engine) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"id": "a"}, {"id": "b"}]})

        assert await make_driver(make_engine, handler).test_connection() == (True, "2 models found.")

    @pytest.mark.asyncio
    async def test_connection_auth_failure(self, make_engine) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})

        assert await make_driver(make_engine, handler).test_connection() == (False, "Incorrect API key provided")

    @pytest.mark.asyncio
    async def test_connection_empty_list(self, make_engine) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": []})

        assert await make_driver(make_engine, handler).test_connection() == (
            False,
            "Failed to connect to the AI provider.",
        )

    @pytest.mark.asyncio
    async def test_connection_without_key(self, make_engine) -> None:
        driver = make_driver(make_engine, lambda request: httpx.Response(500), api_key="")

        ok, message = await driver.test_connection()

        assert ok is False
        assert message == "APIKey parameter is missing. Please set it in the driver parameters."


def test_capabilities() -> None:
    driver = OpenAIDriver(OpenAIParams(api_key="k"))
    try:
        assert all(driver.supports(capability) for capability in Capability)
        assert driver.kind == ProviderKind.OPENAI
    finally:
        driver.close()
