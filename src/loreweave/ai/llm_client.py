"""LLM client for OpenAI-compatible endpoints (Ollama, vLLM, etc.).

Only used to refine relationship types the deterministic rules leave
ambiguous, so it exposes a single short chat completion.
"""

import asyncio
import logging
import re
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from loreweave.config import settings

logger = logging.getLogger(__name__)

THINKING_PATTERN = re.compile(r"<think(?:ing)?>[\s\S]*?</think(?:ing)?>", re.DOTALL)


def strip_thinking_tags(text: str) -> str:
    """Remove complete <think>...</think> blocks from model output."""
    return THINKING_PATTERN.sub("", text).strip()


class LLMClient:
    """Async-wrapped client for OpenAI-compatible LLM APIs using requests."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        max_concurrent: int | None = None,
    ) -> None:
        self.base_url = (base_url or settings.llm_base_url).rstrip("/")
        self.model = model or settings.llm_model
        self.api_key = api_key or settings.llm_api_key
        self.timeout = timeout or settings.llm_timeout
        self.max_concurrent = max_concurrent or settings.llm_max_concurrent

        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._session: requests.Session | None = None

    def _get_session(self) -> requests.Session:
        """Get or create requests session with connection pooling."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            })
            adapter = HTTPAdapter(
                pool_connections=self.max_concurrent,
                pool_maxsize=self.max_concurrent * 2,
                max_retries=Retry(total=2, backoff_factor=0.5),
            )
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def _sync_chat(
        self,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int,
        **kwargs: Any,
    ) -> str:
        """Synchronous chat request (runs in thread)."""
        session = self._get_session()

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }

        response = session.post(
            f"{self.base_url}/chat/completions",
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()

        choices = data.get("choices", [])
        if not choices:
            logger.error(f"LLM returned empty choices: {data}")
            raise ValueError("LLM returned empty choices")

        message = choices[0].get("message", {})
        content = message.get("content")
        if content is None:
            content = choices[0].get("text")
        if content is None:
            raise ValueError(f"LLM returned None content: {data}")

        return strip_thinking_tags(content)

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 64,
        **kwargs: Any,
    ) -> str:
        """Generate a completion from the LLM."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        async with self._semaphore:
            try:
                # Run sync request in thread pool to not block event loop
                return await asyncio.to_thread(
                    self._sync_chat, messages, temperature, max_tokens, **kwargs
                )
            except requests.HTTPError as e:
                logger.error(f"LLM API error: {e.response.status_code} - {e.response.text}")
                raise
            except requests.RequestException as e:
                logger.error(f"LLM request failed: {e}")
                raise


# Global client instance
_llm_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    """Get or create the global LLM client."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client


async def close_llm_client() -> None:
    """Close the global LLM client."""
    global _llm_client
    if _llm_client is not None:
        await _llm_client.close()
        _llm_client = None
