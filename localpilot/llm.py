"""Chat-completions client for OpenAI-compatible endpoints over httpx."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

import httpx

from localpilot.config import AgentConfig
from localpilot.schemas import ChatMessage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"

# Default model
DEFAULT_MODEL = "gpt-4o-mini"

# Timeouts
REQUEST_TIMEOUT = 120.0  # seconds


class MissingCredentialError(Exception):
    """Raised when no API key is configured."""

    pass


class LLMRequestError(Exception):
    """Raised when the model endpoint cannot be reached or returns an error."""

    pass


@dataclass
class ChatCompletion:
    """Assistant text plus the raw usage counters of one call."""

    content: str
    usage: dict[str, Any] | None = None


def resolve_model(config: AgentConfig) -> str:
    return config.model or DEFAULT_MODEL


class ChatClient:
    """Minimal async client for ``/chat/completions`` and ``/models``."""

    def __init__(
        self,
        config: AgentConfig,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            config: Agent configuration supplying key, base URL and organization
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)

        Raises:
            MissingCredentialError: If config has no API key
        """
        if not config.api_key:
            raise MissingCredentialError(
                "Missing API key. Set OPENAI_API_KEY or add apiKey to the config file."
            )
        self.base_url = (config.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._headers = {"Authorization": f"Bearer {config.api_key}"}
        if config.organization:
            self._headers["OpenAI-Organization"] = config.organization

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()

        except httpx.ConnectError as e:
            logger.error(f"Failed to connect to {self.base_url}: {e}")
            raise LLMRequestError(f"Model endpoint unavailable: {self.base_url}") from e

        except httpx.TimeoutException as e:
            logger.error(f"Request to {path} timed out after {self.timeout}s")
            raise LLMRequestError(f"Model request timed out after {self.timeout} seconds") from e

        except httpx.HTTPStatusError as e:
            logger.error(f"Model endpoint HTTP error: {e}")
            raise LLMRequestError(
                f"Model endpoint returned {e.response.status_code}: {e.response.text}"
            ) from e

        except httpx.TransportError as e:
            logger.error(f"Transport error talking to {self.base_url}: {e}")
            raise LLMRequestError(f"Model request failed: {e}") from e

        except ValueError as e:
            logger.error(f"Model endpoint returned a non-JSON body for {path}: {e}")
            raise LLMRequestError(f"Model endpoint returned invalid JSON: {e}") from e

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        temperature: float = 0.0,
        json_mode: bool = False,
    ) -> ChatCompletion:
        """Send one chat-completion request.

        Args:
            messages: Ordered conversation, system prompt first
            model: Model identifier
            temperature: Sampling temperature
            json_mode: Ask the endpoint for a JSON object response

        Returns:
            ChatCompletion with the assistant text and raw usage counters
        """
        payload: dict[str, Any] = {
            "model": model,
            "messages": [m.model_dump() for m in messages],
            "temperature": temperature,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        logger.info(f"Requesting completion from {model} ({len(messages)} messages)")
        data = await self._request("POST", "/chat/completions", json=payload)

        choices = data.get("choices") or []
        message = choices[0].get("message", {}) if choices else {}
        return ChatCompletion(
            content=message.get("content") or "",
            usage=data.get("usage"),
        )

    async def list_models(self) -> list[str]:
        """List model ids available to the configured credential."""
        data = await self._request("GET", "/models")
        return sorted(item["id"] for item in data.get("data", []) if item.get("id"))
