"""
LLM client for brand audits using the Groq chat-completion API.
"""
import os
import json
import logging
import time
from typing import Dict, List, Optional
import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.groq.com/openai/v1/chat/completions"
DEFAULT_MODEL = "llama-3.1-8b-instant"
DEFAULT_MAX_TOKENS = 1000

GENERIC_ERROR_MESSAGE = "Something went wrong. Check your API key and try again."


class CompletionError(RuntimeError):
    """Raised when the completion endpoint fails or cannot be reached."""
    pass


class ResponseParseError(ValueError):
    """Raised when the model reply is not a JSON object."""
    pass


def _get_timeout() -> Optional[float]:
    """Read GROQ_TIMEOUT; None keeps the transport default."""
    value = os.getenv('GROQ_TIMEOUT')
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid GROQ_TIMEOUT value: {value!r}")
        return None


def _error_message(response: requests.Response) -> str:
    """
    Extract a human-readable message from a non-2xx response.

    Uses error.message from the JSON error envelope when present,
    otherwise falls back to the status code.
    """
    try:
        error_data = response.json()
    except ValueError:
        error_data = None

    if isinstance(error_data, dict):
        error = error_data.get('error')
        if isinstance(error, dict):
            message = error.get('message')
            if isinstance(message, str) and message:
                return message

    return f"API error {response.status_code}"


def call_completion(messages: List[Dict[str, str]], api_key: str) -> str:
    """
    Send one chat-completion request and return the reply text.

    Args:
        messages: Conversation built by request_builder.build_messages.
        api_key: Bearer token for the completion endpoint.

    Returns:
        choices[0].message.content, or an empty string if absent.

    Raises:
        CompletionError: On a non-2xx response or a transport failure.
    """
    url = os.getenv('GROQ_API_URL') or DEFAULT_API_URL
    model = os.getenv('GROQ_MODEL') or DEFAULT_MODEL
    max_tokens = int(os.getenv('GROQ_MAX_TOKENS') or DEFAULT_MAX_TOKENS)

    headers = {
        'Content-Type': 'application/json',
        'Authorization': f'Bearer {api_key}'
    }
    payload = {
        'model': model,
        'max_tokens': max_tokens,
        'messages': messages
    }

    start_time = time.time()
    try:
        response = requests.post(url, headers=headers, json=payload, timeout=_get_timeout())
    except requests.exceptions.RequestException as e:
        logger.error(f"Completion request failed: {type(e).__name__}")
        raise CompletionError(str(e) or GENERIC_ERROR_MESSAGE) from e

    duration = time.time() - start_time
    logger.info(f"Completion response: status={response.status_code}, model={model}, duration={duration:.2f}s")

    if not response.ok:
        message = _error_message(response)
        logger.error(f"Completion endpoint returned {response.status_code}: {message}")
        raise CompletionError(message)

    try:
        data = response.json()
    except ValueError:
        logger.error("Completion endpoint returned a non-JSON success body")
        return ""

    try:
        content = data['choices'][0]['message']['content']
    except (KeyError, IndexError, TypeError):
        return ""

    return content or ""


def strip_code_fences(raw: str) -> str:
    """Remove ```json and ``` markers anywhere in the text and trim it."""
    return (raw or "").replace("```json", "").replace("```", "").strip()


def parse_audit_response(raw: str) -> dict:
    """
    Parse the model reply into an audit result.

    The object is returned verbatim; field values are not checked
    against their expected enumerations.

    Raises:
        ResponseParseError: If the stripped text is not a JSON object.
    """
    clean = strip_code_fences(raw)
    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse audit response ({len(clean)} chars): {e.msg}")
        raise ResponseParseError("Invalid JSON response from LLM") from e

    if not isinstance(data, dict):
        logger.error(f"Audit response is JSON but not an object: {type(data).__name__}")
        raise ResponseParseError("Audit response must be a JSON object")

    return data
