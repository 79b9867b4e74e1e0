"""
驱动测试使用的记录型回调
"""

import threading
from typing import Any

import pytest

from aiunify.models.callbacks import (
    ChatCallback,
    DriverEvents,
    ImageCallback,
    JSONCallback,
    StreamCallback,
)


class RecordingChatCallback(ChatCallback):
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.responses: list[str] = []
        self.full_responses: list[str] = []
        self.partials: list[str] = []
        self.errors: list[str] = []
        self.threads: list[int] = []

    def before_request(self) -> None:
        self.calls.append("before_request")

    def after_request(self) -> None:
        self.calls.append("after_request")

    def before_response(self) -> None:
        self.calls.append("before_response")

    def after_response(self) -> None:
        self.calls.append("after_response")

    def on_full_response(self, json_text: str) -> None:
        self.calls.append("on_full_response")
        self.full_responses.append(json_text)

    def on_response(self, text: str) -> None:
        self.calls.append("on_response")
        self.responses.append(text)
        self.threads.append(threading.get_ident())

    def on_partial(self, text: str) -> None:
        self.partials.append(text)

    def on_error(self, message: str) -> None:
        self.calls.append("on_error")
        self.errors.append(message)


class RecordingEvents(DriverEvents):
    def __init__(self) -> None:
        self.errors: list[str] = []
        self.cancelled: list[str] = []
        self.chat_successes: list[tuple[str, str]] = []
        self.partials: list[str] = []
        self.models: list[list[str]] = []

    def on_error(self, message: str) -> None:
        self.errors.append(message)

    def on_cancelled(self, request_id: str) -> None:
        self.cancelled.append(request_id)

    def on_chat_success(self, text: str, json_text: str) -> None:
        self.chat_successes.append((text, json_text))

    def on_partial(self, text: str) -> None:
        self.partials.append(text)

    def on_models_loaded(self, models: list[str]) -> None:
        self.models.append(models)


class RecordingImageCallback(ImageCallback):
    def __init__(self) -> None:
        self.images: list[Any] = []
        self.json_texts: list[str] = []
        self.errors: list[str] = []

    def on_success(self, images, json_text: str) -> None:
        self.images.extend(images)
        self.json_texts.append(json_text)

    def on_error(self, message: str) -> None:
        self.errors.append(message)


class RecordingJSONCallback(JSONCallback):
    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.objects: list[Any] = []
        self.successes: list[str] = []
        self.errors: list[str] = []

    def populate_dataset(self, obj: Any) -> bool:
        self.objects.append(obj)
        return self.accept

    def on_success(self, json_text: str) -> None:
        self.successes.append(json_text)

    def on_error(self, message: str) -> None:
        self.errors.append(message)


class RecordingStreamCallback(StreamCallback):
    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self.bodies: list[bytes] = []
        self.errors: list[str] = []

    def on_partial(self, chunk: bytes) -> None:
        self.chunks.append(chunk)

    def on_success(self, stream) -> None:
        self.bodies.append(stream.read())

    def on_error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def chat_callback() -> RecordingChatCallback:
    return RecordingChatCallback()


@pytest.fixture
def driver_events() -> RecordingEvents:
    return RecordingEvents()


@pytest.fixture
def image_callback() -> RecordingImageCallback:
    return RecordingImageCallback()


@pytest.fixture
def json_callback() -> RecordingJSONCallback:
    return RecordingJSONCallback()


@pytest.fixture
def stream_callback() -> RecordingStreamCallback:
    return RecordingStreamCallback()
