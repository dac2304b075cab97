"""Anthropic Messages API client for models hosted on AWS Bedrock.

Request and response bodies use the ``anthropic`` SDK types; the HTTP call
itself goes to the Bedrock ``invoke`` endpoint with a bearer token.
"""

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx
from anthropic.types import Message, MessageParam, ToolParam
from pydantic import ValidationError
from pydantic_core import to_jsonable_python

from cro_audit.core.config import settings
from cro_audit.services.cro.errors import MissingCredentialError, ProviderError

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"


class BedrockClient:
    """Calls the Bedrock ``invoke`` endpoint with a bearer token.

    Every call is a single HTTP request; there is no retry.
    """

    def __init__(
        self,
        bearer_token: str,
        region: str = "us-east-1",
        model_id: str = "anthropic.claude-sonnet-4-20250514-v1:0",
        timeout: float = 300.0,
    ) -> None:
        self.bearer_token = bearer_token
        self.region = region
        self.model_id = model_id
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "BedrockClient":
        """Create a client from application settings."""
        return cls(
            bearer_token=settings.aws_bearer_token_bedrock,
            region=settings.bedrock_region,
            model_id=settings.bedrock_model_id,
            timeout=settings.bedrock_timeout_seconds,
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.bearer_token)

    @property
    def invoke_url(self) -> str:
        model = quote(self.model_id, safe="")
        return f"https://bedrock-runtime.{self.region}.amazonaws.com/model/{model}/invoke"

    async def create_message(
        self,
        system: str,
        messages: Sequence[MessageParam],
        tools: Sequence[ToolParam],
        max_tokens: int,
    ) -> Message:
        """Send the conversation to the model and return its next turn.

        Assistant turns may carry the SDK content block models returned by a
        previous call; they are serialized as JSON here.

        Raises:
            MissingCredentialError: If no bearer token is configured
            ProviderError: On transport failure, non-2xx status or malformed body
        """
        if not self.has_credentials:
            raise MissingCredentialError()

        body: dict[str, Any] = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": max_tokens,
            "system": system,
            "messages": list(messages),
            "tools": list(tools),
        }
        headers = {
            "Authorization": f"Bearer {self.bearer_token}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(headers=headers, timeout=self.timeout) as client:
                response = await client.post(
                    self.invoke_url, json=to_jsonable_python(body, exclude_none=True)
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"Failed to call Bedrock API: {e}") from e

        if not response.is_success:
            raise ProviderError(
                f"Bedrock API returned {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return Message.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ProviderError(
                f"Failed to parse Bedrock response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e
