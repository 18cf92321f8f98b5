"""
Tests for AgentUnit: history loading, tool round, failure rollback and persistence.
"""

import json

import pytest

from conftest import FakeKnowledge, FakeLLM, InMemoryConversationStore
from src.agents.agent_base import FALLBACK_RESPONSE, AgentUnit
from src.agents.tools import AgentTool, build_tax_tools
from src.models.agent import AgentConfig, AgentType
from src.models.conversation import Message
from src.services.llm_service import LLMReply, ToolCall

SYSTEM_PROMPT = "You are the Tax Calculator agent."


def make_config(**overrides) -> AgentConfig:
    values = {
        "model": "test-model",
        "temperature": 0.1,
        "max_tokens": 500,
        "system_prompt": SYSTEM_PROMPT,
        "use_knowledge_base": False,
    }
    values.update(overrides)
    return AgentConfig(**values)


async def make_agent(llm, store=None, knowledge=None, **overrides) -> AgentUnit:
    return await AgentUnit.create(
        make_config(**overrides),
        llm=llm,
        store=store,
        knowledge=knowledge,
        agent_type=AgentType.TAX,
        name="Tax Calculator",
    )


class TestConstruction:
    async def test_new_agent_starts_with_single_system_message(self, fake_llm, store):
        agent = await make_agent(fake_llm, store)

        assert len(agent.messages) == 1
        assert agent.messages[0].role == "system"
        assert agent.messages[0].content == SYSTEM_PROMPT
        assert agent.conversation_id is None

    async def test_round_trip_reload_keeps_system_message_then_turns_in_order(self, fake_llm, store):
        m1 = Message(role="user", content="What is the FICA rate?")
        m2 = Message(role="assistant", content="7.65% combined.")
        conversation_id = await store.create(owner_id="user-1", messages=[m1, m2])

        agent = await make_agent(fake_llm, store, conversation_id=conversation_id)

        assert [m.role for m in agent.messages] == ["system", "user", "assistant"]
        assert agent.messages[0].content == SYSTEM_PROMPT
        assert agent.messages[1:] == [m1, m2]
        assert agent.conversation_id == conversation_id

    async def test_missing_conversation_starts_fresh_and_drops_id(self, fake_llm, store):
        agent = await make_agent(fake_llm, store, conversation_id="does-not-exist")

        assert len(agent.messages) == 1
        assert agent.conversation_id is None

    async def test_unreachable_store_starts_fresh_without_raising(self, fake_llm, store):
        store.fail_load = True

        agent = await make_agent(fake_llm, store, conversation_id="conv-9")

        assert len(agent.messages) == 1
        assert agent.conversation_id is None

    async def test_memory_disabled_does_not_load(self, fake_llm, store):
        await make_agent(fake_llm, store, conversation_id="conv-1", memory=False)

        assert store.load_calls == []

    async def test_seeded_history_skips_store(self, fake_llm, store):
        history = [Message(role="user", content="hi"), Message(role="assistant", content="hello")]

        agent = await AgentUnit.create(make_config(memory=False), llm=fake_llm, store=store, history=history)

        assert [m.content for m in agent.messages[1:]] == ["hi", "hello"]
        assert store.load_calls == []


class TestAnswer:
    async def test_answer_appends_turn_and_creates_conversation(self, store):
        llm = FakeLLM(chat_replies=["The FICA rate is 7.65%."])
        agent = await make_agent(llm, store, user_id="user-1", company_id="acme")

        text = await agent.answer("What is the FICA rate?")

        assert text == "The FICA rate is 7.65%."
        assert [m.role for m in agent.messages] == ["system", "user", "assistant"]
        assert agent.conversation_id in store.records

        record = store.records[agent.conversation_id]
        assert [m.role for m in record["messages"]] == ["user", "assistant"]
        assert record["owner_id"] == "user-1"
        assert record["company_id"] == "acme"
        assert record["agent_type"] == "tax"
        assert record["metadata"]["model"] == "test-model"

    async def test_second_turn_updates_existing_conversation(self, store):
        llm = FakeLLM(chat_replies=["first", "second"])
        agent = await make_agent(llm, store)

        await agent.answer("one")
        conversation_id = agent.conversation_id
        await agent.answer("two")

        assert agent.conversation_id == conversation_id
        assert len(store.records) == 1
        assert [m.content for m in store.records[conversation_id]["messages"]] == ["one", "first", "two", "second"]

    async def test_model_sees_history_without_system_message(self, store):
        llm = FakeLLM(chat_replies=["ok"])
        agent = await make_agent(llm, store)

        await agent.answer("hello")

        call = llm.chat_calls[0]
        assert call["system_prompt"] == SYSTEM_PROMPT
        assert [m.role for m in call["messages"]] == ["user"]

    async def test_model_failure_returns_fallback_and_rolls_back(self, store):
        llm = FakeLLM(chat_replies=[TimeoutError("model timed out")])
        agent = await make_agent(llm, store)

        answer = await agent.respond("What is the FICA rate?")

        assert answer.text == FALLBACK_RESPONSE
        assert answer.succeeded is False
        assert "timed out" in answer.error
        assert len(agent.messages) == 1
        assert store.records == {}

    async def test_answer_never_raises(self, store):
        llm = FakeLLM(chat_replies=[RuntimeError("boom")])
        agent = await make_agent(llm, store)

        assert await agent.answer("anything") == FALLBACK_RESPONSE

    async def test_save_failure_does_not_affect_answer(self, store):
        store.fail_save = True
        llm = FakeLLM(chat_replies=["still answered"])
        agent = await make_agent(llm, store)

        answer = await agent.respond("question")

        assert answer.succeeded is True
        assert answer.text == "still answered"
        assert agent.conversation_id is None

    async def test_memory_disabled_does_not_persist(self, store):
        llm = FakeLLM(chat_replies=["answer"])
        agent = await make_agent(llm, store, memory=False)

        await agent.answer("question")

        assert store.records == {}


class TestTools:
    async def test_tool_call_runs_tool_and_returns_follow_up_text(self, store):
        llm = FakeLLM(chat_replies=[
            LLMReply(tool_calls=[ToolCall(name="get_tax_rates", arguments={"state": "CA"})]),
            "California has a progressive income tax.",
        ])
        agent = await make_agent(llm, store, tools=build_tax_tools())

        text = await agent.answer("What are California's tax rates?")

        assert text == "California has a progressive income tax."
        assert [m.role for m in agent.messages] == ["system", "user", "assistant", "tool", "assistant"]

        tool_call_message = agent.messages[2]
        assert tool_call_message.tool_call.name == "get_tax_rates"
        assert tool_call_message.tool_call.arguments == {"state": "CA"}

        tool_message = agent.messages[3]
        assert tool_message.name == "get_tax_rates"
        assert json.loads(tool_message.content)["state"] == "CA"

        assert llm.chat_calls[0]["tools"] is not None
        assert llm.chat_calls[1]["tools"] is None
        assert [m.role for m in llm.chat_calls[1]["messages"]] == ["user", "assistant", "tool"]

    async def test_unknown_tool_is_reported_to_model(self, store):
        llm = FakeLLM(chat_replies=[
            LLMReply(tool_calls=[ToolCall(name="lookup_w4", arguments={})]),
            "I could not look that up.",
        ])
        agent = await make_agent(llm, store, tools=build_tax_tools())

        text = await agent.answer("Look up my W-4")

        assert text == "I could not look that up."
        assert json.loads(agent.messages[3].content) == {"error": "Tool not found"}

    async def test_tool_failure_fails_the_turn(self, store):
        def broken(**kwargs):
            raise RuntimeError("calculator offline")

        tool = AgentTool(name="broken", description="Always fails", handler=broken)
        llm = FakeLLM(chat_replies=[LLMReply(tool_calls=[ToolCall(name="broken", arguments={})])])
        agent = await make_agent(llm, store, tools=[tool])

        answer = await agent.respond("Calculate")

        assert answer.succeeded is False
        assert answer.text == FALLBACK_RESPONSE
        assert len(agent.messages) == 1
        assert store.records == {}

    async def test_repeated_tool_request_without_answer_fails_the_turn(self, store):
        call = ToolCall(name="get_tax_rates", arguments={"state": "CA"})
        llm = FakeLLM(chat_replies=[LLMReply(tool_calls=[call]), LLMReply(tool_calls=[call])])
        agent = await make_agent(llm, store, tools=build_tax_tools())

        answer = await agent.respond("What are California's tax rates?")

        assert answer.succeeded is False
        assert answer.text == FALLBACK_RESPONSE
        assert "no answer" in answer.error
        assert len(agent.messages) == 1
        assert store.records == {}

    async def test_async_tool_handler_is_awaited(self, store):
        async def lookup(state):
            return {"state": state, "rate": 0.0}

        tool = AgentTool(name="lookup", description="Async lookup", handler=lookup)
        llm = FakeLLM(chat_replies=[
            LLMReply(tool_calls=[ToolCall(name="lookup", arguments={"state": "TX"})]),
            "Texas has no income tax.",
        ])
        agent = await make_agent(llm, store, tools=[tool])

        await agent.answer("Texas?")

        assert json.loads(agent.messages[3].content) == {"state": "TX", "rate": 0.0}


class TestKnowledgeContext:
    async def test_context_is_added_to_system_instruction_only(self, store):
        knowledge = FakeKnowledge(snippets=["Form 941 is due quarterly."])
        llm = FakeLLM(chat_replies=["answer"])
        agent = await make_agent(llm, store, knowledge=knowledge, use_knowledge_base=True)

        await agent.answer("When is Form 941 due?")

        assert knowledge.queries == ["When is Form 941 due?"]
        assert "Form 941 is due quarterly." in llm.chat_calls[0]["system_prompt"]
        assert agent.messages[0].content == SYSTEM_PROMPT
        assert sum(1 for m in agent.messages if m.role == "system") == 1

    async def test_retrieval_failure_is_not_fatal(self, store):
        knowledge = FakeKnowledge(error=ConnectionError("vector index down"))
        llm = FakeLLM(chat_replies=["answer without context"])
        agent = await make_agent(llm, store, knowledge=knowledge, use_knowledge_base=True)

        answer = await agent.respond("question")

        assert answer.succeeded is True
        assert answer.text == "answer without context"
        assert llm.chat_calls[0]["system_prompt"] == SYSTEM_PROMPT


class TestReset:
    async def test_reset_truncates_history_and_drops_id(self, store):
        llm = FakeLLM(chat_replies=["first answer"])
        agent = await make_agent(llm, store)
        await agent.answer("first question")

        agent.reset()

        assert len(agent.messages) == 1
        assert agent.messages[0].role == "system"
        assert agent.conversation_id is None

    async def test_turn_after_reset_persists_only_new_turn(self, store):
        llm = FakeLLM(chat_replies=["first answer", "second answer"])
        agent = await make_agent(llm, store)
        await agent.answer("first question")
        first_id = agent.conversation_id

        agent.reset()
        await agent.answer("second question")

        assert agent.conversation_id != first_id
        assert [m.role for m in agent.messages] == ["system", "user", "assistant"]

        stored = store.records[agent.conversation_id]["messages"]
        assert [m.content for m in stored] == ["second question", "second answer"]
        assert [m.content for m in store.records[first_id]["messages"]] == ["first question", "first answer"]

    async def test_reset_is_idempotent(self, fake_llm, store):
        agent = await make_agent(fake_llm, store)

        agent.reset()
        agent.reset()

        assert len(agent.messages) == 1


@pytest.mark.parametrize("store_factory", [lambda: None, InMemoryConversationStore])
async def test_agent_without_store_still_answers(store_factory):
    llm = FakeLLM(chat_replies=["works"])
    agent = await make_agent(llm, store_factory())

    assert await agent.answer("question") == "works"
