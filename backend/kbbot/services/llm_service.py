"""LLM service for DeepSeek API integration."""
import os
import time
from typing import Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from kbbot.exceptions import CompletionError
from kbbot.utils.logger import logger


class LLMService:
    """Service for interacting with DeepSeek API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = "https://api.deepseek.com/v1/chat/completions",
        model: str = "deepseek-chat",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout: float = 30.0,
    ):
        """
        Initialize LLM service.

        Args:
            api_key: DeepSeek API key (from env if not provided)
            api_url: DeepSeek API endpoint URL
            model: Model name to use
            max_tokens: Maximum tokens in a completion
            temperature: Sampling temperature
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or os.getenv("DEEPSEEK_API_KEY")
        if not self.api_key:
            raise ValueError("DEEPSEEK_API_KEY environment variable is required")

        self.api_url = api_url
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

        # OpenAI SDK expects the base URL without /v1/chat/completions
        if "/v1" in api_url:
            base_url = api_url.split("/v1")[0]
        else:
            base_url = api_url.rstrip("/")

        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(timeout=timeout),
            max_retries=0,
        )

    async def complete(self, prompt: str) -> str:
        """
        Send a single-message chat completion.

        Args:
            prompt: Full prompt text

        Returns:
            Completion text

        Raises:
            CompletionError: On any transport or API failure
        """
        start_time = time.time()

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            answer = response.choices[0].message.content
        except (OpenAIError, httpx.HTTPError, IndexError, AttributeError) as e:
            logger.error(f"Error calling DeepSeek API: {str(e)}", exc_info=True)
            raise CompletionError(f"Failed to generate answer: {str(e)}") from e

        if not answer:
            raise CompletionError("DeepSeek API returned an empty answer")

        token_usage = None
        if response.usage is not None:
            token_usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.info(
            "LLM response generated",
            extra={
                "token_usage": token_usage,
                "response_time_ms": (time.time() - start_time) * 1000,
                "answer_length": len(answer),
            },
        )
        return answer

    async def close(self):
        """Close HTTP client."""
        await self.client.close()
