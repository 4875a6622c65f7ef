import json
import logging
import time
from typing import Any, Dict, List, Optional

import requests
from requests import RequestException

from .config import ArenaConfig

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 8192


def _read_body(response: requests.Response, deadline: float) -> bytes:
    """Read the streamed body, giving up once ``deadline`` has passed.

    The ``timeout`` given to requests bounds each socket read, not the whole
    download, so a slowly trickling body needs its own overall limit.
    """

    chunks = []
    for chunk in response.iter_content(READ_CHUNK_SIZE):
        if time.monotonic() > deadline:
            raise requests.Timeout("Language model response exceeded the overall deadline.")
        chunks.append(chunk)
    return b"".join(chunks)


def call_llm(
    messages: List[Dict[str, str]],
    *,
    config: Optional[ArenaConfig] = None,
    model: Optional[str] = None,
    response_format: Optional[Dict[str, Any]] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """
    Send a chat completion request to the configured language model provider.

    Returns a dictionary with keys:
    - success: whether the call succeeded.
    - content: the message content returned by the model when successful.
    - response: the raw response payload when successful.
    - error: a human-readable message when unsuccessful.
    """

    config = config or ArenaConfig.from_settings()

    if not (config.judge_base_url and config.judge_api_key):
        return {"success": False, "error": "LLM connection is not configured."}

    try:
        url = f"{config.judge_base_url.rstrip('/')}/chat/completions"
        request_payload = {
            "model": model or config.judge_model,
            "messages": messages,
            "stream": False,
        }
        if response_format:
            request_payload["response_format"] = response_format
        if temperature is not None:
            request_payload["temperature"] = temperature
        if max_tokens is not None:
            request_payload["max_tokens"] = max_tokens
        request_payload.update(kwargs)

        headers = {
            "Authorization": f"Bearer {config.judge_api_key}",
            "Content-Type": "application/json",
        }
        deadline = time.monotonic() + config.judge_timeout
        response = requests.post(
            url,
            headers=headers,
            json=request_payload,
            timeout=config.judge_timeout,
            stream=True,
        )
        try:
            response.raise_for_status()
            body = _read_body(response, deadline)
        finally:
            response.close()

        response_data = json.loads(body)
        choices = response_data.get("choices")
        if not choices:
            raise KeyError("Missing 'choices' in response.")
        message = choices[0].get("message") or {}
        content = message.get("content")
        if content is None:
            raise KeyError("Missing 'content' in response message.")
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        if not content.strip():
            raise KeyError("Empty 'content' in response message.")

        return {"success": True, "response": response_data, "content": content}
    except RequestException as exc:
        logger.warning("HTTP error when reaching language model service: %s", exc)
        return {
            "success": False,
            "error": f"Failed to reach language model service ({exc}).",
        }
    except ValueError as exc:
        logger.warning("Failed to decode language model response JSON: %s", exc)
        return {
            "success": False,
            "error": f"Invalid response from language model service ({exc}).",
        }
    except (KeyError, AttributeError, TypeError) as exc:
        logger.warning("Unexpected language model response shape: %s", exc)
        return {
            "success": False,
            "error": f"Unexpected language model service response ({exc}).",
        }
