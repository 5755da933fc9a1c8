# /stepengine/llm/clients/openai_client.py
import json
import logging
from typing import Any, Dict, Optional, Type, Union

import openai
from openai import OpenAI
from pydantic import BaseModel

from ...utils.utils import load_api_key, load_base_url, load_llm_model

logger = logging.getLogger(__name__)


class OpenAIClient:
    """Any chat-completions endpoint reachable through the OpenAI SDK (OpenAI, OpenRouter, local servers)."""

    def __init__(self):
        self.client = None
        self.LLM_api_key = load_api_key()
        self.LLM_model_name = load_llm_model()
        self.LLM_base_url = load_base_url()
        try:
            self.client = OpenAI(api_key=self.LLM_api_key, base_url=self.LLM_base_url)
            logger.info(f"OpenAI Client initialized for {self.LLM_base_url or 'api.openai.com'} and model {self.LLM_model_name}.")
        except Exception as e:
            logger.error(f"Failed to initialize OpenAI Client: {e}", exc_info=True)
            raise RuntimeError(f"LLM client initialization failed: {e}")

    def generate_json(self, Schema_Class: Type[BaseModel], prompt: str,
                      timeout_s: Optional[float] = None) -> Union[Dict[str, Any], BaseModel, str]:
        if not issubclass(Schema_Class, BaseModel):
            logger.error("[LLM] Schema_Class must be a Pydantic BaseModel for JSON generation.")
            return "Error: [LLM] Invalid schema type provided."

        tool_def = openai.pydantic_function_tool(Schema_Class)
        tool_name = tool_def['function']['name']
        system_message = {"role": "system", "content": f"You are a helpful assistant. Use the provided '{Schema_Class.__name__}' tool to structure your response based on the user's request."}
        try:
            log_prompt = prompt[:200] + ('...' if len(prompt) > 200 else '')
            logger.debug(f"[LLM] Sending JSON prompt (truncated): {log_prompt} with schema {Schema_Class.__name__}")
            response = self.client.chat.completions.create(
                model=self.LLM_model_name,
                messages=[system_message, {"role": "user", "content": prompt}],
                tools=[tool_def],
                tool_choice={"type": "function", "function": {"name": tool_name}},
                max_tokens=2048,
                **({"timeout": timeout_s} if timeout_s is not None else {}),
            )
        except openai.APIError as e:
            logger.error(f"[LLM] OpenAI API returned an API Error during JSON generation: {e}", exc_info=True)
            return f"Error: [LLM] API Error (JSON) - {type(e).__name__}: {e}"

        if not response.choices:
            logger.warning("[LLM] JSON generation returned no choices.")
            return "Error: [LLM] No choices returned from LLM for JSON request."

        message = response.choices[0].message
        finish_reason = response.choices[0].finish_reason
        if not message.tool_calls:
            if finish_reason == 'content_filter':
                return "Error: [LLM] Content generation blocked due to content filter."
            logger.warning(f"[LLM] Model did not use the requested JSON tool {Schema_Class.__name__}. Finish reason: {finish_reason}.")
            return f"Error: [LLM] Model did not use the JSON tool. Finish Reason: {finish_reason}."

        tool_call = message.tool_calls[0]
        if tool_call.function.name != tool_name:
            logger.warning(f"[LLM] Expected tool call {tool_name} but got '{tool_call.function.name}'.")
            return "Error: [LLM] Unexpected tool call name received."
        arguments = tool_call.function.arguments
        try:
            return Schema_Class.model_validate(json.loads(arguments))
        except json.JSONDecodeError as json_err:
            logger.error(f"[LLM] Failed to parse JSON arguments from tool call: {json_err}. Arguments: '{arguments}'")
            return f"Error: [LLM] Failed to parse JSON arguments - {json_err}"
        except ValueError as val_err:
            logger.error(f"[LLM] JSON arguments failed validation for schema {Schema_Class.__name__}: {val_err}")
            return f"Error: [LLM] JSON arguments failed validation - {val_err}"
