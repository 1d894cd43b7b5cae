import asyncio
import json
import threading
from unittest.mock import MagicMock

import pytest

from dagcanvas.agent_protocol import AGENT_INSTRUCTIONS
from dagcanvas.agent_session import MAX_HISTORY, AgentSession
from dagcanvas.ai_agent import AIAgent, build_messages, build_request
from dagcanvas.canvas_engine import CanvasEngine
from dagcanvas.config import AgentSettings
from dagcanvas.graph import seed_graph
from dagcanvas.storage import MemoryStore


def _completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def _agent_replying(content):
    client = MagicMock()
    client.chat.completions.create.return_value = _completion(content)
    return AIAgent(client=client), client


def run(coro):
    return asyncio.run(coro)


class TestBuildMessages:
    def test_layout(self):
        settings = AgentSettings(system_prompt="Be brief.")
        history = [{"role": "user" if i % 2 == 0 else "assistant", "content": f"m{i}"} for i in range(20)]
        messages = build_messages(settings, {"nodes": [], "edges": []}, history, "What next?")

        assert messages[0] == {"role": "system", "content": f"Be brief.\n\n{AGENT_INSTRUCTIONS}"}
        assert messages[1]["role"] == "system"
        assert messages[1]["content"].startswith("Current DAG canvas:\n")
        assert json.loads(messages[1]["content"].split("\n", 1)[1]) == {"nodes": [], "edges": []}
        assert [m["content"] for m in messages[2:-1]] == [f"m{i}" for i in range(6, 20)]
        assert messages[-1] == {"role": "user", "content": "What next?"}

    def test_temperature_is_clamped(self):
        assert build_request(AgentSettings(temperature=3.0), [])["temperature"] == 1.2
        assert build_request(AgentSettings(temperature=-1), [])["temperature"] == 0
        assert build_request(AgentSettings(), [])["model"] == "grok-3"


class TestAIAgent:
    def test_send_success(self):
        agent, client = _agent_replying("hello")
        result = agent.send({"model": "grok-3", "temperature": 0.3,
                             "messages": [{"role": "user", "content": "hi"}]})
        assert result == {"ok": True, "message": {"role": "assistant", "content": "hello"}}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "grok-3"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    def test_send_filters_invalid_messages(self):
        agent, client = _agent_replying("ok")
        agent.send({"messages": [
            {"role": "tool", "content": "x"},
            {"role": "user", "content": "   "},
            "junk",
            {"role": "user", "content": "real"},
        ]})
        assert client.chat.completions.create.call_args.kwargs["messages"] == [{"role": "user", "content": "real"}]

    def test_send_without_messages(self):
        agent, client = _agent_replying("never")
        assert agent.send({"messages": []}) == {"ok": False, "error": "No valid messages provided."}
        client.chat.completions.create.assert_not_called()

    def test_transport_error_becomes_result(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError("boom")
        result = AIAgent(client=client).send({"messages": [{"role": "user", "content": "hi"}]})
        assert result["ok"] is False
        assert "boom" in result["error"]

    def test_missing_content(self):
        agent, _ = _agent_replying(None)
        assert agent.send({"messages": [{"role": "user", "content": "hi"}]})["ok"] is False


class TestAgentSession:
    @pytest.fixture
    def engine(self):
        return CanvasEngine(MemoryStore(), 1200, 800)

    def test_ask_applies_reply_and_records_history(self, engine):
        reply = 'Added it.<canvas_actions>{"actions": [{"type": "add_node", "id": "x"}]}</canvas_actions>'
        agent, _ = _agent_replying(reply)
        session = AgentSession(engine, agent)

        outcome = run(session.ask("add a node"))

        assert outcome.changed
        assert engine.graph.has_node("x")
        assert session.history == [
            {"role": "user", "content": "add a node"},
            {"role": "assistant", "content": "Added it."},
        ]
        assert not session.busy

    def test_prior_turns_are_sent(self, engine):
        agent, client = _agent_replying("fine")
        session = AgentSession(engine, agent)
        run(session.ask("first"))
        run(session.ask("second"))
        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert [m["content"] for m in messages[2:]] == ["first", "fine", "second"]

    def test_empty_reply_gets_placeholder(self, engine):
        agent, _ = _agent_replying('<canvas_actions>[]</canvas_actions>')
        session = AgentSession(engine, agent)
        run(session.ask("hi"))
        assert session.history[-1] == {"role": "assistant", "content": "…"}

    def test_transport_failure_is_reported(self, engine):
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError("offline")
        session = AgentSession(engine, AIAgent(client=client))
        outcome = run(session.ask("hi"))
        assert "offline" in outcome.error
        assert engine.graph == seed_graph()
        assert not session.busy

    def test_blank_question_is_refused(self, engine):
        agent, client = _agent_replying("x")
        assert run(AgentSession(engine, agent).ask("  ")).refused
        client.chat.completions.create.assert_not_called()

    def test_history_is_bounded(self, engine):
        agent, _ = _agent_replying("ok")
        session = AgentSession(engine, agent)
        for i in range(MAX_HISTORY):
            run(session.ask(f"q{i}"))
        assert len(session.history) == MAX_HISTORY
        session.clear()
        assert session.history == []

    def test_cancel_discards_reply(self, engine):
        release = threading.Event()
        client = MagicMock()

        def slow_create(**kwargs):
            release.wait(5)
            return _completion('<canvas_actions>[{"type": "delete_node", "id": "vision"}]</canvas_actions>')

        client.chat.completions.create.side_effect = slow_create
        session = AgentSession(engine, AIAgent(client=client))

        async def scenario():
            task = asyncio.ensure_future(session.ask("delete vision"))
            await asyncio.sleep(0.05)
            assert session.busy
            second = await session.ask("again")
            assert second.refused
            assert session.cancel()
            outcome = await task
            release.set()
            return outcome

        outcome = run(scenario())
        assert outcome.cancelled
        assert engine.graph.has_node("vision")
        assert not session.busy
        assert not session.cancel()
