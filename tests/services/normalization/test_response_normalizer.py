"""
ResponseNormalizer 测试

- 各供应商信封路径
- 原始值数组包装
- 通用深度查找与单行降级
- 输入不被修改
"""

import copy
import json

from aiunify.core.enums import ProviderKind
from aiunify.services.normalization import ResponseNormalizer


def openai_response(content: str) -> dict:
    return {"id": "chatcmpl-1", "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


class TestProviderPaths:
    """测试供应商信封路径"""

    def test_openai_fenced_array(self) -> None:
        root = openai_response('```json\n[{"a":1}]\n```')

        result = ResponseNormalizer().extract(root, ProviderKind.OPENAI)

        assert result.array == [{"a": 1}]
        assert result.inner_root == [{"a": 1}]
        assert result.owns_array is False

    def test_openai_responses_api_output(self) -> None:
        root = {"output": [{"type": "message", "content": [{"type": "output_text", "text": '{"rows": [{"x": 1}]}'}]}]}

        result = ResponseNormalizer().extract(root, ProviderKind.OPENAI)

        assert result.rows == [{"x": 1}]
        assert result.inner_root == {"rows": [{"x": 1}]}
        assert result.array is result.inner_root["rows"]

    def test_claude_content_text(self) -> None:
        root = {"content": [{"type": "text", "text": 'Here you go: {"people": [{"name": "Ann"}]}'}]}

        result = ResponseNormalizer().extract(root, ProviderKind.CLAUDE)

        assert result.array == [{"name": "Ann"}]

    def test_claude_input_json_value(self) -> None:
        root = {"content": [{"type": "tool_use", "input_json": {"items": [{"k": 1}]}}]}

        result = ResponseNormalizer().extract(root, ProviderKind.CLAUDE)

        assert result.array == [{"k": 1}]
        assert result.inner_root is None
        assert result.array is root["content"][0]["input_json"]["items"]

    def test_claude_legacy_message_content(self) -> None:
        root = {"message": {"content": [{"type": "text", "text": '[{"id": 7}]'}]}}

        result = ResponseNormalizer().extract(root, ProviderKind.CLAUDE)

        assert result.array == [{"id": 7}]

    def test_gemini_parts(self) -> None:
        root = {"candidates": [{"content": {"role": "model", "parts": [{"text": '[{"city": "Oslo"}]'}]}}]}

        result = ResponseNormalizer().extract(root, ProviderKind.GEMINI)

        assert result.array == [{"city": "Oslo"}]

    def test_ollama_response_then_message(self) -> None:
        normalizer = ResponseNormalizer()

        generate = normalizer.extract({"response": '[{"a": 1}]', "done": True}, ProviderKind.OLLAMA)
        chat = normalizer.extract({"message": {"role": "assistant", "content": '[{"b": 2}]'}}, ProviderKind.OLLAMA)

        assert generate.array == [{"a": 1}]
        assert chat.array == [{"b": 2}]

    def test_first_candidate_that_yields_wins(self) -> None:
        root = {
            "candidates": [
                {"content": {"parts": [{"text": "no json in this one"}, {"text": '[{"second": true}]'}]}},
            ]
        }

        result = ResponseNormalizer().extract(root, ProviderKind.GEMINI)

        assert result.array == [{"second": True}]


class TestWrapping:
    """测试原始值包装"""

    def test_primitive_array_wrapped_under_value(self) -> None:
        result = ResponseNormalizer().extract(openai_response("[1, 2, 3]"), ProviderKind.OPENAI)

        assert result.array == [{"value": 1}, {"value": 2}, {"value": 3}]
        assert result.owns_array is True

    def test_custom_wrap_key(self) -> None:
        result = ResponseNormalizer(wrap_key="item").extract(openai_response('["x"]'), ProviderKind.OPENAI)
        assert result.array == [{"item": "x"}]

    def test_first_list_property_wrapped_under_its_name(self) -> None:
        result = ResponseNormalizer().extract(openai_response('{"tags": ["red", "blue"]}'), ProviderKind.OPENAI)

        assert result.array == [{"tags": "red"}, {"tags": "blue"}]
        assert result.owns_array is True


class TestGenericFallback:
    """测试通用查找与降级"""

    def test_deep_find_without_provider(self) -> None:
        root = {"result": {"first": [{"a": 1}], "second": [{"b": 2}]}}

        result = ResponseNormalizer().extract(root)

        assert result.array == [{"a": 1}]
        assert result.owns_array is False
        assert result.inner_root is None

    def test_object_root_becomes_single_row(self) -> None:
        root = {"status": "ok", "count": 3}

        result = ResponseNormalizer().extract(root)

        assert result.array == [{"status": "ok", "count": 3}]
        assert result.array[0] is not root
        assert result.owns_array is True

    def test_primitive_root_is_wrapped(self) -> None:
        assert ResponseNormalizer().extract("plain").array == [{"value": "plain"}]

    def test_input_is_not_mutated(self) -> None:
        roots = [
            openai_response("[1, 2]"),
            openai_response('{"tags": ["a"]}'),
            {"status": "ok", "nested": {"x": [1]}},
            {"data": [{"id": 1}]},
        ]
        for root in roots:
            snapshot = copy.deepcopy(root)
            ResponseNormalizer().extract(root, ProviderKind.OPENAI)
            assert root == snapshot

    def test_owned_rows_are_independent(self) -> None:
        root = {"nested": {"x": 1}}
        result = ResponseNormalizer().extract(root)

        result.array[0]["nested"]["x"] = 2

        assert root["nested"]["x"] == 1

    def test_round_trip_of_serialized_rows(self) -> None:
        rows = [{"a": 1, "b": "two"}, {"a": 3, "b": "four"}]
        result = ResponseNormalizer().extract(openai_response(json.dumps(rows)), ProviderKind.OPENAI)
        assert result.array == rows
