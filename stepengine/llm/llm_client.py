# /stepengine/llm/llm_client.py
import logging
import threading
import time
from typing import Any, Dict, Optional, Type, Union

from .clients.gemini_client import GeminiClient
from .clients.openai_client import OpenAIClient

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Handles interactions with LLM APIs (Google Gemini or any LLM reachable through the
    OpenAI SDK) with rate limiting. Only structured JSON generation is needed
    for selector suggestions.
    """

    # Gemini free tier is 15 RPM (4s); OpenAI-compatible limits depend on the tier
    MIN_REQUEST_INTERVAL_SECONDS = 3.0

    def __init__(self, provider: str):
        """
        Initializes the LLM client for the specified provider.

        Args:
            provider: The LLM provider to use ('gemini' or 'openai').
        """
        self.provider = provider.lower()
        self.client = None

        if self.provider == 'gemini':
            self.client = GeminiClient()
        elif self.provider == 'openai':
            self.client = OpenAIClient()
        else:
            raise ValueError(f"Unsupported provider: {provider}. Choose 'gemini' or 'openai'.")

        self._last_request_time = 0.0
        self._lock = threading.Lock()
        logger.info(f"LLMClient initialized for provider '{self.provider}' with {self.MIN_REQUEST_INTERVAL_SECONDS}s request interval.")

    def _wait_for_rate_limit(self):
        """Waits if necessary to maintain the minimum request interval."""
        with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            wait_time = self.MIN_REQUEST_INTERVAL_SECONDS - elapsed

            if wait_time > 0:
                logger.debug(f"Rate limiting: Waiting for {wait_time:.2f} seconds...")
                time.sleep(wait_time)

            self._last_request_time = time.monotonic()

    def generate_json(self, Schema_Class: Type, prompt: str,
                      timeout_s: Optional[float] = None) -> Union[Dict[str, Any], Any, str]:
        """
        Generates structured output for a pydantic schema, respecting rate limits.

        Returns:
            The parsed model (or dict) on success, or a string starting with "Error:".
        """
        self._wait_for_rate_limit()
        return self.client.generate_json(Schema_Class, prompt, timeout_s=timeout_s)
