"""OpenRouter text generation backend with streaming, cost tracking and readiness checks."""

import base64
import os
import time
from typing import AsyncIterator, Optional, Protocol, runtime_checkable
from openai import AsyncOpenAI
from src.utils.metrics import llm_tokens_counter, llm_cost_counter, llm_api_latency
from src.utils.errors import LLMError, BackendNotReadyError
from src.utils.logging import get_logger

logger = get_logger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# Pricing per 1M tokens (input tokens, simplified)
MODEL_PRICING = {
    "anthropic/claude-haiku-4.5": 0.80 / 1_000_000,
    "anthropic/claude-sonnet-4.5": 3.0 / 1_000_000,
    "openai/gpt-4o-mini": 0.15 / 1_000_000,
    "google/gemma-3-4b-it": 0.02 / 1_000_000,
}


@runtime_checkable
class TextGenerator(Protocol):
    """Narrow inference capability consumed by the LLM tier"""

    async def ensure_ready(self) -> bool:
        ...

    def generate(self, prompt: str, image: Optional[bytes] = None) -> AsyncIterator[str]:
        """Stream text chunks; exhausting the iterator is the completion signal"""
        ...


def calculate_cost(tokens: int, model: str) -> float:
    """
    Calculate cost based on token usage and model pricing.

    Args:
        tokens: Number of tokens used
        model: Model name

    Returns:
        Cost in USD
    """
    price_per_token = MODEL_PRICING.get(model, 0.15 / 1_000_000)
    return tokens * price_per_token


class OpenRouterTextGenerator:
    """TextGenerator backed by any OpenAI-compatible chat completions endpoint"""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 512,
    ):
        self.model = model or os.getenv("DEFAULT_LLM_MODEL", "anthropic/claude-haiku-4.5")
        self.api_key = api_key
        self.base_url = base_url or OPENROUTER_BASE_URL
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = None

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the async client (lazy initialization)"""
        if self._client is None:
            api_key = self.api_key or os.getenv("OPENROUTER_API_KEY")
            if not api_key:
                raise LLMError("OPENROUTER_API_KEY environment variable is not set")
            self._client = AsyncOpenAI(api_key=api_key, base_url=self.base_url)
        return self._client

    async def ensure_ready(self) -> bool:
        """
        Check that the backend answers and serves the configured model.

        Raises:
            BackendNotReadyError: If the client cannot be created or the endpoint is unreachable
        """
        try:
            models = await self._get_client().models.list()
        except Exception as e:
            raise BackendNotReadyError(f"LLM backend not reachable: {e}")

        available = {m.id for m in getattr(models, "data", [])}
        if available and self.model not in available:
            raise BackendNotReadyError(f"Model {self.model} not served by {self.base_url}")

        logger.info("LLM backend ready", model=self.model, base_url=self.base_url)
        return True

    async def generate(self, prompt: str, image: Optional[bytes] = None) -> AsyncIterator[str]:
        """
        Stream a completion for a single user prompt.

        Args:
            prompt: User prompt
            image: Optional JPEG payload attached to the prompt

        Yields:
            Text deltas as they arrive

        Raises:
            LLMError: If the API call fails
        """
        content = prompt
        if image is not None:
            encoded = base64.b64encode(image).decode("ascii")
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}},
            ]

        start_time = time.time()
        tokens = 0
        try:
            stream = await self._get_client().chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stream=True,
                stream_options={"include_usage": True},
            )
            async for chunk in stream:
                if getattr(chunk, "usage", None):
                    tokens = chunk.usage.total_tokens
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except LLMError:
            raise
        except Exception as e:
            logger.error(f"LLM API error: {e}", model=self.model)
            raise LLMError(f"LLM generation failed: {e}")

        latency = time.time() - start_time
        cost = calculate_cost(tokens, self.model)
        llm_tokens_counter.labels(model_name=self.model).inc(tokens)
        llm_cost_counter.labels(model_name=self.model).inc(cost)
        llm_api_latency.labels(model_name=self.model).observe(latency)

        logger.debug(
            "LLM generation complete",
            model=self.model,
            tokens=tokens,
            cost=cost,
            latency=latency
        )


def build_generator_from_config(llm_config: dict) -> Optional[OpenRouterTextGenerator]:
    """Create the configured generator, or None when no API key is available"""
    if not os.getenv("OPENROUTER_API_KEY"):
        logger.info("OPENROUTER_API_KEY not set, LLM tier disabled")
        return None

    return OpenRouterTextGenerator(
        model=os.getenv("DEFAULT_LLM_MODEL") or llm_config.get("model"),
        base_url=llm_config.get("base_url"),
        temperature=llm_config.get("temperature", 0.1),
        max_tokens=llm_config.get("max_tokens", 512),
    )
