from types import SimpleNamespace

from enrichment.llm import AnthropicClient, AnthropicInferer, parse_json_response


class FakeMessages:
    def __init__(self, text):
        self.text = text
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


def _client(text):
    messages = FakeMessages(text)
    return AnthropicClient("key", "test-model", client=SimpleNamespace(messages=messages)), messages


def test_parse_json_response_strips_fences():
    assert parse_json_response('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_response('{"a": 1}') == {"a": 1}
    assert parse_json_response("no json here") is None


def test_inferer_builds_prompt_and_parses_reply():
    client, messages = _client('{"country": "Kenya", "acidity": 5}')
    data = AnthropicInferer(client, max_description_chars=10).infer(
        "Kenya Nyeri SL28 washed", "26.00 CAD (340g)"
    )
    assert data == {"country": "Kenya", "acidity": 5}
    assert messages.kwargs["model"] == "test-model"
    prompt = messages.kwargs["messages"][0]["content"]
    assert "Price: 26.00 CAD (340g)" in prompt
    assert "Description: Kenya Nyer\n" in prompt


def test_inferer_returns_none_for_non_object_reply():
    client, _ = _client('["not", "an", "object"]')
    assert AnthropicInferer(client).infer("desc", "") is None


def test_sdk_does_not_retry_on_its_own():
    client = AnthropicClient("sk-test", "test-model")
    assert client.client.max_retries == 0
