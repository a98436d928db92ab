"""
LLM access: chat invocation and JSON extraction from model output.
"""

import json
import logging
import re
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from config import LLM_MODEL

LOGGER = logging.getLogger("pdfquiz.llm")


def _strip_code_fences(raw: str) -> str:
    """Remove markdown code fences and surrounding whitespace from LLM output."""
    text = raw.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```\s*$", "", text)
    return text.strip()


def _extract_json_object(raw: str) -> dict[str, Any]:
    """
    Parse a JSON object out of LLM output.

    Tries the raw text, then the text without code fences, then the first
    ``{`` to the last ``}``. Returns {} when nothing parses to an object.
    """
    if not raw:
        return {}
    for candidate in (raw, _strip_code_fences(raw)):
        try:
            obj = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        return obj if isinstance(obj, dict) else {}
    match = re.search(r"\{[\s\S]*\}", raw)
    if match:
        try:
            obj = json.loads(match.group(0))
        except json.JSONDecodeError:
            return {}
        return obj if isinstance(obj, dict) else {}
    return {}


def _call_llm(system_prompt: str, user_message: str, api_key: str, temperature: float = 0.3) -> str:
    """
    Invoke the chat model with a system and a user message.

    Returns:
        Assistant response content.

    Raises:
        ValueError: If API key is missing, invalid, or quota insufficient.
    """
    if not (api_key and api_key.strip()):
        raise ValueError("Please provide a valid API key.")
    try:
        llm = ChatOpenAI(
            model=LLM_MODEL,
            api_key=api_key.strip(),
            temperature=temperature,
        )
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_message)]
        response = llm.invoke(messages)
        return response.content if response.content else ""
    except Exception as e:
        LOGGER.warning("LLM call failed: %s", e)
        err_msg = str(e).lower()
        if "invalid" in err_msg or "authentication" in err_msg or "incorrect api key" in err_msg:
            raise ValueError("Invalid API key. Please check it and try again.") from e
        if "insufficient_quota" in err_msg or "quota" in err_msg or "rate limit" in err_msg:
            raise ValueError("API quota exhausted or too many requests. Please try again later.") from e
        raise ValueError(f"Error calling the API: {e!s}") from e


class LLMProcessor:
    """Thin wrapper over the chat model returning text or parsed JSON."""

    def invoke(self, system_prompt: str, user_message: str, api_key: str, temperature: float = 0.3) -> str:
        """
        Invoke the LLM with custom system and user messages.

        Returns:
            Assistant response text.
        """
        return _call_llm(system_prompt, user_message, api_key, temperature)

    def invoke_json(
        self, system_prompt: str, user_message: str, api_key: str, temperature: float = 0.3
    ) -> dict[str, Any]:
        """Invoke the LLM and parse its reply as a JSON object ({} if unparseable)."""
        return _extract_json_object(self.invoke(system_prompt, user_message, api_key, temperature))
