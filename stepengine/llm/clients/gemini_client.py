# /stepengine/llm/clients/gemini_client.py
import logging
from typing import Any, Dict, Optional, Type, Union

from google import genai

from ...utils.utils import load_api_key, load_llm_model

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = 'gemini-2.0-flash'


class GeminiClient:
    def __init__(self):
        self.client = None
        gemini_api_key = load_api_key()
        try:
            self.model_name = load_llm_model()
        except ValueError:
            self.model_name = DEFAULT_GEMINI_MODEL
        try:
            self.client = genai.Client(api_key=gemini_api_key)
            logger.info(f"Google Gemini Client initialized with model {self.model_name}.")
        except Exception as e:
            logger.error(f"Failed to initialize Google Gemini Client: {e}", exc_info=True)
            raise RuntimeError(f"Gemini client initialization failed: {e}")

    def generate_json(self, Schema_Class: Type, prompt: str,
                      timeout_s: Optional[float] = None) -> Union[Dict[str, Any], Any, str]:
        """generates json based on prompt and a defined schema"""
        config = {
            'response_mime_type': 'application/json',
            'response_schema': Schema_Class
        }
        if timeout_s is not None:
            # HttpOptions.timeout is in milliseconds
            config['http_options'] = {'timeout': max(int(timeout_s * 1000), 1)}
        try:
            log_prompt = prompt[:200] + ('...' if len(prompt) > 200 else '')
            logger.debug(f"Sending JSON prompt (truncated): {log_prompt}")
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=config
            )
            logger.debug("Received json response from LLM")
            if getattr(response, 'parsed', None) is not None:
                return response.parsed
            if response.prompt_feedback and response.prompt_feedback.block_reason:
                block_message = f"Error: JSON generation blocked due to {response.prompt_feedback.block_reason}"
                logger.warning(block_message)
                return block_message
            logger.warning(f"JSON generation returned nothing parseable. Response: {response}")
            return "Error: Empty or unexpected response from JSON LLM."
        except Exception as e:
            logger.error(f"Error during Gemini JSON generation: {e}", exc_info=True)
            return f"Error: Failed to communicate with Gemini JSON API - {type(e).__name__}: {e}"
