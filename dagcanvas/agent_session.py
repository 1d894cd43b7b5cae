"""
Agent conversation session for one canvas.

Keeps the chat history, serializes requests (one in flight at a time) and
lets the user abandon an in-flight request. The blocking transport call runs
through an injectable io_bound runner: NiceGUI's run.io_bound in the app,
asyncio.to_thread by default.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from dagcanvas.ai_agent import AIAgent, build_messages, build_request
from dagcanvas.canvas_engine import AgentOutcome, CanvasEngine
from dagcanvas.config import AgentSettings

logger = logging.getLogger(__name__)

MAX_HISTORY = 40
EMPTY_REPLY = "…"

IoBound = Callable[..., Awaitable[Any]]


class AgentSession:
    def __init__(self, engine: CanvasEngine, agent: AIAgent, settings: Optional[AgentSettings] = None,
                 io_bound: IoBound = asyncio.to_thread):
        self.engine = engine
        self.agent = agent
        self.settings = settings or AgentSettings()
        self.io_bound = io_bound
        self.history: List[Dict[str, str]] = []
        self.busy = False
        self._cancel_event: Optional[asyncio.Event] = None

    def clear(self) -> None:
        self.history = []

    def cancel(self) -> bool:
        """Abandon the in-flight request. Its reply, if it ever arrives, is discarded."""
        if not self.busy or self._cancel_event is None:
            return False
        self._cancel_event.set()
        return True

    def _append(self, role: str, content: str) -> None:
        self.history.append({"role": role, "content": content})
        self.history = self.history[-MAX_HISTORY:]

    async def ask(self, question: str) -> AgentOutcome:
        question = (question or "").strip()
        if not question or self.busy:
            return AgentOutcome(refused=True)

        prior = list(self.history)
        self._append("user", question)
        request = build_request(
            self.settings,
            build_messages(self.settings, self.engine.graph_context(), prior, question),
        )

        self.busy = True
        self._cancel_event = asyncio.Event()
        call = asyncio.ensure_future(self.io_bound(self.agent.send, request))
        cancelled = asyncio.ensure_future(self._cancel_event.wait())
        try:
            await asyncio.wait({call, cancelled}, return_when=asyncio.FIRST_COMPLETED)
            if not call.done():
                logger.info("[Agent] Request cancelled; reply will be discarded")
                call.add_done_callback(_discard_result)
                return AgentOutcome(cancelled=True)
            response = call.result()
        except Exception as e:
            logger.error(f"[Agent] Request failed: {e}")
            return AgentOutcome(error=str(e) or "Ask agent failed.")
        finally:
            cancelled.cancel()
            self.busy = False
            self._cancel_event = None

        if not response.get("ok"):
            return AgentOutcome(error=response.get("error") or "Ask agent failed.")

        content = response["message"].get("content") or ""
        outcome = self.engine.apply_agent_reply(content)
        self._append("assistant", outcome.visible_text or EMPTY_REPLY)
        return outcome


def _discard_result(future: "asyncio.Future") -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.debug(f"[Agent] Discarded failed reply: {future.exception()}")
