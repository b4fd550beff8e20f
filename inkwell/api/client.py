"""Text-generation client for the configured AI engines."""
import re
from typing import Any, Dict, List, Optional

import aiohttp

from ..config.constants import AI_CONNECT_TIMEOUT, AI_READ_TIMEOUT
from ..config.settings import AISettings
from ..errors import AIError
from ..models.results import OperationResult
from ..utils.logging import get_logger
from .auth import validate_engine

THINK_PATTERN = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)

# Engines with their own wire format; every other engine speaks the chat-completions API
OLLAMA = "ollama"
LLAMACPP = "llamacpp"


def strip_think_tags(content: str) -> str:
    """Remove <think>...</think> reasoning blocks from a model response."""
    return THINK_PATTERN.sub('', content or '').strip()


class AIClient:
    """Dispatches generation requests to openai, ollama, llamacpp or custom engines."""

    def __init__(self, settings: AISettings):
        """
        Initialize AI client.

        Args:
            settings: The ``ai`` section of the application settings
        """
        self.settings = settings
        self.logger = get_logger("ai")
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def ensure_session(self):
        """Ensure the aiohttp session exists."""
        if not self._session:
            # No total limit; local models can take minutes for long outputs
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=None,
                    connect=AI_CONNECT_TIMEOUT,
                    sock_read=AI_READ_TIMEOUT
                )
            )

    async def close(self):
        """Close the client session."""
        if self._session:
            await self._session.close()
            self._session = None

    def build_messages(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        context: Optional[str] = None
    ) -> List[Dict[str, str]]:
        """Build the chat message list sent to chat-style engines."""
        content = f"{prompt}\n\nText to process:\n{context}" if context else prompt
        return [
            {"role": "system", "content": system_prompt or self.settings.system_prompt},
            {"role": "user", "content": content},
        ]

    async def generate(
        self,
        prompt: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        context: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> str:
        """
        Generate text with one of the configured engines.

        Args:
            prompt: User instruction
            provider: Engine name (defaults to the selected engine)
            model: Model override (defaults to the engine's model)
            system_prompt: System prompt override
            context: Existing text the instruction applies to
            temperature: Sampling temperature (defaults to settings)
            max_tokens: Maximum tokens to generate (defaults to settings)

        Returns:
            Generated text with reasoning blocks removed

        Raises:
            AIError: On unknown engines, transport failures or bad responses
        """
        provider = provider or self.settings.selected_engine
        engine = self.settings.engines.get(provider)
        if engine is None:
            raise AIError(f"Unknown AI engine: {provider}")

        base_url = validate_engine(provider, engine)
        model = model or engine.model
        temperature = self.settings.temperature if temperature is None else temperature
        max_tokens = self.settings.max_tokens if max_tokens is None else max_tokens
        messages = self.build_messages(prompt, system_prompt, context)

        self.logger.info(f"Generating with {provider} ({model or 'default model'})")

        if provider == OLLAMA:
            data = await self._post_json(
                f"{base_url}/api/chat",
                {
                    "model": model,
                    "messages": messages,
                    "stream": False,
                    "options": {"temperature": temperature, "num_predict": max_tokens},
                }
            )
            content = _dig(data, "message", "content")
        elif provider == LLAMACPP:
            prompt_text = "\n\n".join(message["content"] for message in messages)
            data = await self._post_json(
                f"{base_url}/completion",
                {"prompt": prompt_text, "temperature": temperature, "n_predict": max_tokens}
            )
            content = _dig(data, "content")
        else:
            data = await self._post_json(
                f"{base_url}/chat/completions",
                {
                    "model": model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                headers={"Authorization": f"Bearer {engine.api_key}"} if engine.api_key else None
            )
            content = _dig(data, "choices", 0, "message", "content")

        if not isinstance(content, str):
            raise AIError(f"The '{provider}' engine returned no text")

        return strip_think_tags(content)

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """POST a JSON payload and decode the JSON response."""
        await self.ensure_session()
        try:
            async with self._session.post(url, json=payload, headers=headers) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise AIError(f"HTTP {response.status} from {url}: {body[:200]}")
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise AIError(f"Invalid JSON from {url}: {e}") from e
        except aiohttp.ClientError as e:
            self.logger.warning(f"Request to {url} failed: {e}")
            raise AIError(f"Request to {url} failed: {e}") from e

    async def test_connection(self, provider: Optional[str] = None) -> OperationResult:
        """Send a tiny prompt to an engine and report whether it answered."""
        provider = provider or self.settings.selected_engine
        try:
            reply = await self.generate("Reply with: OK", provider=provider, max_tokens=10)
        except AIError as e:
            return OperationResult.fail(str(e), e.kind)
        return OperationResult.ok({"provider": provider, "response": reply})


def _dig(data: Any, *keys) -> Any:
    """Walk nested dicts/lists, returning None when a step is missing."""
    for key in keys:
        try:
            data = data[key]
        except (KeyError, IndexError, TypeError):
            return None
    return data
