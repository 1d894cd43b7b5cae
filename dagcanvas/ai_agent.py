import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from openai import OpenAI

from dagcanvas.agent_protocol import AGENT_INSTRUCTIONS
from dagcanvas.config import AgentSettings, get_api_key, get_base_url
from dagcanvas.utils import clamp_number

logger = logging.getLogger(__name__)

HISTORY_TURNS = 14
TEMPERATURE_RANGE = (0.0, 1.2)
VALID_ROLES = ("system", "user", "assistant")


def build_messages(settings: AgentSettings, graph_context: Dict[str, Any],
                   history: Sequence[Dict[str, str]], question: str) -> List[Dict[str, str]]:
    """
    Assemble the chat transcript for one agent round-trip:
    persona + command grammar, the current canvas, recent turns, the question.
    """
    recent = [
        {"role": m["role"], "content": m["content"]}
        for m in list(history)[-HISTORY_TURNS:]
    ]
    return [
        {"role": "system", "content": f"{settings.system_prompt}\n\n{AGENT_INSTRUCTIONS}"},
        {"role": "system", "content": f"Current DAG canvas:\n{json.dumps(graph_context)}"},
        *recent,
        {"role": "user", "content": question},
    ]


def build_request(settings: AgentSettings, messages: List[Dict[str, str]]) -> Dict[str, Any]:
    return {
        "model": settings.model,
        "temperature": clamp_number(settings.temperature, *TEMPERATURE_RANGE),
        "messages": messages,
        "tools": {"web_scrape": settings.web_scrape_enabled},
    }


class AIAgent:
    """Chat-completions transport against an OpenAI-compatible endpoint."""

    def __init__(self, client: Optional[OpenAI] = None):
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=get_api_key(), base_url=get_base_url())
        return self._client

    @staticmethod
    def _clean_messages(messages: Any) -> List[Dict[str, str]]:
        """Keep only well-formed messages with a known role and non-blank content."""
        if not isinstance(messages, list):
            return []
        cleaned = []
        for m in messages:
            if not isinstance(m, dict):
                continue
            role, content = m.get("role"), m.get("content")
            if role in VALID_ROLES and isinstance(content, str) and content.strip():
                cleaned.append({"role": role, "content": content})
        return cleaned

    def send(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Blocking round-trip.

        Returns {"ok": True, "message": {"role": "assistant", "content": ...}}
        or {"ok": False, "error": ...}. Never raises.
        """
        messages = self._clean_messages(request.get("messages"))
        if not messages:
            return {"ok": False, "error": "No valid messages provided."}

        tools = request.get("tools") or {}
        if any(tools.values()):
            logger.info(f"[Agent] Tool flags requested but no tool providers are available: {tools}")

        model = request.get("model") or "grok-3"
        temperature = request.get("temperature")
        if not isinstance(temperature, (int, float)) or isinstance(temperature, bool):
            temperature = 0.3

        try:
            logger.info(f"[Agent] Sending {len(messages)} message(s) to {model}...")
            response = self.client.chat.completions.create(
                model=model,
                temperature=temperature,
                messages=messages,
            )
        except Exception as e:
            error_msg = f"{type(e).__name__}: {e}"
            logger.error(f"[Agent] Request failed: {error_msg}")
            return {"ok": False, "error": error_msg}

        if not response.choices:
            return {"ok": False, "error": "Unexpected response format (missing content)."}
        content = response.choices[0].message.content
        if not isinstance(content, str):
            return {"ok": False, "error": "Unexpected response format (missing content)."}

        logger.info(f"[Agent] Received response: {content[:200]}..." if len(content) > 200
                    else f"[Agent] Received response: {content}")
        return {"ok": True, "message": {"role": "assistant", "content": content}}
