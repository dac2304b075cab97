"""Tests for the Bedrock Messages client.

``httpx.AsyncClient`` is patched; no request leaves the process.
"""

from collections.abc import Generator
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from anthropic.types import Message, MessageParam, TextBlock, ToolParam, ToolUseBlock

from cro_audit.services.cro.bedrock_client import ANTHROPIC_VERSION, BedrockClient
from cro_audit.services.cro.errors import MissingCredentialError, ProviderError
from tests.conftest import TEST_MODEL_ID

TOOLS: list[ToolParam] = [
    {
        "name": "get_survey_stats",
        "description": "Survey stats",
        "input_schema": {"type": "object", "properties": {}, "required": []},
    }
]
MESSAGES: list[MessageParam] = [
    {"role": "user", "content": [{"type": "text", "text": "Audit the store."}]}
]


def _message_body(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "model": TEST_MODEL_ID,
        "content": [],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 1, "output_tokens": 1},
    }
    body.update(overrides)
    return body


@pytest.fixture
def http_client() -> Generator[MagicMock, None, None]:
    """Patch httpx.AsyncClient and yield the client used inside ``async with``."""
    with patch("cro_audit.services.cro.bedrock_client.httpx.AsyncClient") as mock_class:
        mock_client = MagicMock()
        mock_client.post = AsyncMock()
        mock_class.return_value.__aenter__.return_value = mock_client
        mock_class.return_value.__aexit__.return_value = False
        mock_client.constructor = mock_class
        yield mock_client


def _client() -> BedrockClient:
    return BedrockClient(bearer_token="secret", region="eu-west-1", model_id=TEST_MODEL_ID)


async def _call(client: BedrockClient) -> Message:
    return await client.create_message(
        system="You are a CRO analyst.", messages=MESSAGES, tools=TOOLS, max_tokens=512
    )


class TestInvokeUrl:
    """Tests for endpoint construction."""

    def test_model_id_is_url_encoded(self) -> None:
        """The model id is encoded as a single path segment."""
        client = BedrockClient(bearer_token="x", model_id="arn:aws:bedrock:model/abc")

        assert client.invoke_url == (
            "https://bedrock-runtime.us-east-1.amazonaws.com/model/"
            "arn%3Aaws%3Abedrock%3Amodel%2Fabc/invoke"
        )

    def test_region_in_host(self) -> None:
        """The region selects the runtime host."""
        assert _client().invoke_url.startswith("https://bedrock-runtime.eu-west-1.amazonaws.com/")


class TestCreateMessage:
    """Tests for a single model call."""

    async def test_success(self, http_client: MagicMock) -> None:
        """A 2xx response is parsed into text and tool-use blocks."""
        http_client.post.return_value = httpx.Response(
            200,
            json=_message_body(
                content=[
                    {"type": "text", "text": "Checking the funnel."},
                    {"type": "tool_use", "id": "tu_1", "name": "get_survey_stats", "input": {}},
                ],
                stop_reason="tool_use",
                usage={"input_tokens": 42, "output_tokens": 7},
            ),
        )

        response = await _call(_client())

        assert isinstance(response, Message)
        assert isinstance(response.content[0], TextBlock)
        assert isinstance(response.content[1], ToolUseBlock)
        assert response.content[1].id == "tu_1"
        assert response.stop_reason == "tool_use"
        assert response.usage.input_tokens == 42
        assert response.usage.output_tokens == 7

    async def test_request_shape(self, http_client: MagicMock) -> None:
        """The bearer token, version, system prompt, tools and messages are sent."""
        http_client.post.return_value = httpx.Response(200, json=_message_body())
        client = _client()

        await _call(client)

        headers = http_client.constructor.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer secret"
        assert headers["Content-Type"] == "application/json"
        assert http_client.constructor.call_args.kwargs["timeout"] == 300.0

        url = http_client.post.await_args.args[0]
        body = http_client.post.await_args.kwargs["json"]
        assert url == client.invoke_url
        assert body["anthropic_version"] == ANTHROPIC_VERSION
        assert body["max_tokens"] == 512
        assert body["system"] == "You are a CRO analyst."
        assert body["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "Audit the store."}]}
        ]
        assert body["tools"][0]["name"] == "get_survey_stats"

    async def test_assistant_blocks_serialized(self, http_client: MagicMock) -> None:
        """Content blocks from a previous response are sent back as plain JSON."""
        http_client.post.return_value = httpx.Response(200, json=_message_body())
        previous = ToolUseBlock(
            id="tu_1", name="get_funnel_overview", input={"start_date": "20250101"}, type="tool_use"
        )
        messages: list[MessageParam] = [*MESSAGES, {"role": "assistant", "content": [previous]}]

        await _client().create_message(
            system="You are a CRO analyst.", messages=messages, tools=TOOLS, max_tokens=512
        )

        body = http_client.post.await_args.kwargs["json"]
        [block] = body["messages"][1]["content"]
        assert block["type"] == "tool_use"
        assert block["id"] == "tu_1"
        assert block["name"] == "get_funnel_overview"
        assert block["input"] == {"start_date": "20250101"}

    async def test_missing_stop_reason(self, http_client: MagicMock) -> None:
        """An absent stop reason is left unset."""
        body = _message_body()
        del body["stop_reason"]
        http_client.post.return_value = httpx.Response(200, json=body)

        response = await _call(_client())

        assert response.stop_reason is None

    async def test_missing_usage(self, http_client: MagicMock) -> None:
        """A response without token usage is rejected."""
        body = _message_body()
        del body["usage"]
        http_client.post.return_value = httpx.Response(200, json=body)

        with pytest.raises(ProviderError, match="Failed to parse Bedrock response"):
            await _call(_client())

    async def test_missing_credential(self, http_client: MagicMock) -> None:
        """No request is made without a bearer token."""
        with pytest.raises(MissingCredentialError):
            await _call(BedrockClient(bearer_token=""))

        http_client.post.assert_not_called()

    async def test_error_status(self, http_client: MagicMock) -> None:
        """A non-2xx status carries the status and body."""
        http_client.post.return_value = httpx.Response(403, text="Access denied")

        with pytest.raises(ProviderError) as exc_info:
            await _call(_client())

        assert exc_info.value.status_code == 403
        assert exc_info.value.body == "Access denied"
        assert exc_info.value.message == "Bedrock API returned 403: Access denied"

    async def test_transport_error(self, http_client: MagicMock) -> None:
        """Network failures become provider errors."""
        http_client.post.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(ProviderError, match="Failed to call Bedrock API"):
            await _call(_client())

    async def test_body_not_json(self, http_client: MagicMock) -> None:
        """A 2xx body that is not JSON is rejected."""
        http_client.post.return_value = httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(ProviderError, match="Failed to parse Bedrock response"):
            await _call(_client())

    async def test_unknown_block_type(self, http_client: MagicMock) -> None:
        """Unexpected content blocks are rejected."""
        http_client.post.return_value = httpx.Response(
            200, json=_message_body(content=[{"type": "image", "source": {}}])
        )

        with pytest.raises(ProviderError, match="Failed to parse Bedrock response"):
            await _call(_client())
