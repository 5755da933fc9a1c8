# /stepengine/utils/utils.py
import os
from typing import Optional

from dotenv import load_dotenv

DEFAULT_CAPTURE_TIMEOUT_S = 60.0


def load_api_key():
    """Loads the llm API key from .env file."""
    load_dotenv()
    api_key = os.getenv("LLM_API_KEY")
    if not api_key:
        raise ValueError("LLM_API_KEY not found in .env file or environment variables.")
    return api_key

def load_base_url() -> Optional[str]:
    """Loads the optional OpenAI-compatible base url from .env file."""
    load_dotenv()
    return os.getenv("LLM_BASE_URL") or None

def load_llm_model():
    """Loads the llm model from .env file."""
    load_dotenv()
    llm_model = os.getenv("LLM_MODEL")
    if not llm_model:
        raise ValueError("LLM_MODEL not found in .env file or environment variables.")
    return llm_model

def load_suggestion_api_url():
    """Loads the base url of the selector suggestion service (e.g. https://host/api)."""
    load_dotenv()
    api_url = os.getenv("STEPENGINE_API_URL")
    if not api_url:
        raise ValueError("STEPENGINE_API_URL not found in .env file or environment variables.")
    return api_url.rstrip("/")

def load_suggestion_api_token() -> Optional[str]:
    load_dotenv()
    return os.getenv("STEPENGINE_API_TOKEN") or None

def is_non_interactive_runner() -> bool:
    """True when running under an unattended runner, which disables AI assistance."""
    load_dotenv()
    return os.getenv("RUNNER_NON_INTERACTIVE") == "1"

def load_capture_timeout() -> float:
    """Seconds to wait for an operator click during interactive capture."""
    load_dotenv()
    raw = os.getenv("STEPENGINE_CAPTURE_TIMEOUT_S")
    if not raw:
        return DEFAULT_CAPTURE_TIMEOUT_S
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"STEPENGINE_CAPTURE_TIMEOUT_S must be a number, got '{raw}'.")

def load_quirks_file() -> Optional[str]:
    """Optional JSON file with additional site quirks."""
    load_dotenv()
    return os.getenv("STEPENGINE_QUIRKS_FILE") or None
