"""
LLM inference service.

Talks to an OpenAI-compatible chat-completions endpoint in JSON mode.

Usage:
    result_dict = await chat_json(system_prompt, user_prompt)
"""
from __future__ import annotations

import json
import logging
import re

import httpx

from satprep.config import settings

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class LLMUnavailableError(Exception):
    """Raised when no LLM provider is configured."""


class LLMResponseError(Exception):
    """Raised when the model answers with something we cannot use."""


def parse_json_content(content: str) -> dict:
    """
    Parse a model reply as a JSON object.

    Models occasionally wrap the object in prose or markdown fences; in that
    case the outermost {...} block is tried before giving up.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        match = _JSON_BLOCK.search(content)
        if not match:
            raise LLMResponseError("Failed to parse JSON response from model.") from None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise LLMResponseError("Failed to parse JSON response from model.") from e
    if not isinstance(data, dict):
        raise LLMResponseError("Model response is not a JSON object.")
    return data


async def _post_chat(payload: dict, timeout: float) -> str:
    headers = {"Authorization": f"Bearer {settings.openai_api_key}"}
    url = settings.openai_base_url.rstrip("/") + "/chat/completions"
    async with httpx.AsyncClient() as client:
        res = await client.post(url, json=payload, headers=headers, timeout=timeout)
        res.raise_for_status()
        try:
            content = res.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMResponseError("Malformed completion envelope from model provider.") from e
    if content is not None and not isinstance(content, str):
        raise LLMResponseError("Model reply content is not text.")
    return content or "{}"


async def chat_json(
    system_prompt: str,
    user_prompt: str,
    max_tokens: int = 2048,
) -> dict:
    """
    Send a chat request to the LLM expecting JSON output.

    Timeouts are retried up to settings.llm_retry_attempts times in total.
    Raises LLMUnavailableError if no API key is configured.
    Raises LLMResponseError if the provider envelope is malformed or the
    reply is not a JSON object.
    httpx errors other than timeouts propagate to the caller.
    """
    if not settings.openai_api_key:
        raise LLMUnavailableError("No LLM configured: SATPREP_OPENAI_API_KEY is not set.")

    payload = {
        "model": settings.openai_model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "response_format": {"type": "json_object"},
        "max_tokens": max_tokens,
    }

    attempts = max(1, settings.llm_retry_attempts)
    for attempt in range(1, attempts + 1):
        try:
            content = await _post_chat(payload, settings.llm_timeout_seconds)
            break
        except httpx.TimeoutException:
            if attempt == attempts:
                raise
            logger.warning("LLM request timed out (attempt %d/%d), retrying", attempt, attempts)

    return parse_json_content(content)
