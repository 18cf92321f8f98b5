"""
Tests for AgentOrchestrator: routing, fan-out, failure isolation and conversation continuity.
"""

import pytest

from conftest import FakeLLM, relevance_reply, reply_by_agent
from src.agents.agent_base import FALLBACK_RESPONSE
from src.agents.agent_registry import AgentRegistry
from src.agents.orchestrator.orchestrator import FAILED_AGENT_STUB, FORCED_REASON
from src.agents.response_aggregator import DEGRADED_RESPONSE
from src.models.agent import AgentType
from src.models.conversation import Message


class TestSingleAgent:
    async def test_fica_question_routes_to_tax_agent(self, make_orchestrator, store):
        llm = FakeLLM(
            json_reply=relevance_reply(tax=9, compliance=3, reasoning=5),
            chat_replies=["Employer FICA is 7.65% of wages."],
        )
        orchestrator = make_orchestrator(llm)

        result = await orchestrator.process_query("What is the employer FICA rate?", user_id="user-1")

        assert result.final_text == "Employer FICA is 7.65% of wages."
        assert result.conversation_id in store.records
        assert len(result.contributions) == 1
        assert result.primary.agent_type == AgentType.TAX
        assert result.primary.confidence == pytest.approx(0.9)
        assert result.degraded is False
        assert "Tax Calculator" in llm.chat_calls[0]["system_prompt"]

    async def test_single_agent_persists_its_turn(self, make_orchestrator, store):
        llm = FakeLLM(json_reply=relevance_reply(tax=9), chat_replies=["answer"])

        result = await make_orchestrator(llm).process_query("question")

        stored = store.records[result.conversation_id]
        assert [m.role for m in stored["messages"]] == ["user", "assistant"]
        assert stored["agent_type"] == "tax"

    async def test_forced_agent_skips_analysis(self, make_orchestrator):
        llm = FakeLLM(json_reply=relevance_reply(tax=10), chat_replies=["File Form 941 quarterly."])

        result = await make_orchestrator(llm).process_query(
            "When is Form 941 due?", agent_type=AgentType.COMPLIANCE
        )

        assert llm.json_calls == []
        assert result.final_text == "File Form 941 quarterly."
        assert result.primary.agent_type == AgentType.COMPLIANCE
        assert result.primary.confidence is None
        assert result.plan.chosen_agents == [AgentType.COMPLIANCE]
        assert result.plan.per_agent[AgentType.COMPLIANCE].reason == FORCED_REASON

    async def test_forced_agent_failure_is_degraded(self, make_orchestrator, store):
        llm = FakeLLM(chat_replies=[ConnectionError("model down")])

        result = await make_orchestrator(llm).process_query("question", agent_type=AgentType.TAX)

        assert result.degraded is True
        assert result.final_text == DEGRADED_RESPONSE
        assert result.primary.error is not None
        assert result.primary.raw_response == FALLBACK_RESPONSE
        assert store.records == {}

    async def test_reasoning_contribution_carries_steps(self, make_orchestrator):
        llm = FakeLLM(chat_replies=[
            "Step 1: Gross pay is $1,000.\n"
            "Step 2: Withhold 7.65% for FICA.\n"
            "Therefore net pay before income tax is $923.50."
        ])

        result = await make_orchestrator(llm).process_query("Walk me through it", agent_type=AgentType.REASONING)

        steps = result.primary.reasoning_steps
        assert [s.step for s in steps] == ["Step 1", "Step 2"]
        assert steps[1].conclusion == "Therefore net pay before income tax is $923.50."

    async def test_non_reasoning_agents_have_no_steps(self, make_orchestrator):
        llm = FakeLLM(chat_replies=["Step 1: do this."])

        result = await make_orchestrator(llm).process_query("q", agent_type=AgentType.TAX)

        assert result.primary.reasoning_steps == []


class TestFanOut:
    async def test_multiple_agents_are_synthesized_and_ordered(self, make_orchestrator, store):
        llm = FakeLLM(
            json_reply=relevance_reply(tax=8, compliance=9),
            chat_handler=reply_by_agent({
                "Tax Calculator": "Tax answer",
                "Compliance Advisor": "Compliance answer",
            }),
        )

        result = await make_orchestrator(llm).process_query("How do I handle a new hire in CA?", user_id="user-1")

        assert result.final_text == "Synthesized answer"
        assert [c.agent_type for c in result.contributions] == [AgentType.COMPLIANCE, AgentType.TAX]
        assert [c.raw_response for c in result.contributions] == ["Compliance answer", "Tax answer"]
        assert len(llm.text_calls) == 1

        stored = store.records[result.conversation_id]
        assert [(m.role, m.content) for m in stored["messages"]] == [
            ("user", "How do I handle a new hire in CA?"),
            ("assistant", "Synthesized answer"),
        ]
        assert stored["agent_type"] == "orchestrator"
        assert stored["metadata"]["agents"] == ["compliance", "tax"]
        assert stored["owner_id"] == "user-1"

    async def test_fan_out_agents_do_not_persist_individually(self, make_orchestrator, store):
        llm = FakeLLM(json_reply=relevance_reply(tax=8, data=8))

        await make_orchestrator(llm).process_query("question")

        assert len(store.records) == 1

    async def test_partial_failure_is_isolated(self, make_orchestrator):
        llm = FakeLLM(
            json_reply=relevance_reply(tax=9, compliance=8),
            chat_handler=reply_by_agent({
                "Tax Calculator": "Tax answer",
                "Compliance Advisor": TimeoutError("compliance timed out"),
            }),
        )

        result = await make_orchestrator(llm).process_query("question")

        assert result.degraded is False
        assert result.final_text == "Tax answer"
        assert len(result.contributions) == 2

        failed = next(c for c in result.contributions if c.agent_type == AgentType.COMPLIANCE)
        assert failed.confidence == 0.0
        assert "timed out" in failed.error
        assert result.contributions[0].agent_type == AgentType.TAX

    async def test_agent_raising_during_build_becomes_failed_contribution(self, make_orchestrator, registry):
        llm = FakeLLM(json_reply=relevance_reply(tax=9, data=8), chat_replies=["Tax answer"])
        del registry.specs[AgentType.DATA]

        result = await make_orchestrator(llm, registry=registry).process_query("question")

        failed = next(c for c in result.contributions if c.agent_type == AgentType.DATA)
        assert failed.raw_response == FAILED_AGENT_STUB
        assert failed.confidence == 0.0
        assert "Unknown agent type" in failed.error
        assert result.final_text == "Tax answer"

    async def test_total_fan_out_outage_is_degraded_and_not_persisted(self, make_orchestrator, store):
        def failing(system_prompt, messages):
            return ConnectionError("model down")

        llm = FakeLLM(json_reply=relevance_reply(tax=9, compliance=8, data=7), chat_handler=failing)

        result = await make_orchestrator(llm).process_query("question")

        assert result.degraded is True
        assert result.final_text == DEGRADED_RESPONSE
        assert len(result.contributions) == 3
        assert all(c.failed for c in result.contributions)
        assert store.records == {}

    async def test_every_agent_sees_the_same_history(self, make_orchestrator, store):
        conversation_id = store.seed([
            Message(role="user", content="I run payroll in Texas."),
            Message(role="assistant", content="Noted."),
        ])
        llm = FakeLLM(json_reply=relevance_reply(tax=9, compliance=9))

        await make_orchestrator(llm).process_query("What do I owe?", conversation_id=conversation_id)

        assert len(llm.chat_calls) == 2
        for call in llm.chat_calls:
            assert [m.content for m in call["messages"]] == ["I run payroll in Texas.", "Noted.", "What do I owe?"]
        assert store.load_calls == [conversation_id]


class TestConversationContinuity:
    async def test_continuing_conversation_loads_history_and_updates(self, make_orchestrator, store):
        conversation_id = store.seed([
            Message(role="user", content="What is the FICA rate?"),
            Message(role="assistant", content="7.65%."),
        ])
        llm = FakeLLM(json_reply=relevance_reply(tax=9), chat_replies=["Yes, for employers too."])

        result = await make_orchestrator(llm).process_query("Is that for employers too?", conversation_id=conversation_id)

        assert result.conversation_id == conversation_id
        assert [m.content for m in llm.chat_calls[0]["messages"]] == [
            "What is the FICA rate?", "7.65%.", "Is that for employers too?",
        ]
        assert len(store.records[conversation_id]["messages"]) == 4

    async def test_fan_out_continuation_appends_to_existing_record(self, make_orchestrator, store):
        conversation_id = store.seed([Message(role="user", content="hi"), Message(role="assistant", content="hello")])
        llm = FakeLLM(json_reply=relevance_reply(tax=9, research=9))

        result = await make_orchestrator(llm).process_query("next", conversation_id=conversation_id)

        assert result.conversation_id == conversation_id
        assert [m.content for m in store.records[conversation_id]["messages"]] == [
            "hi", "hello", "next", "Synthesized answer",
        ]

    async def test_unknown_conversation_id_gets_a_new_one(self, make_orchestrator, store):
        llm = FakeLLM(json_reply=relevance_reply(tax=9), chat_replies=["answer"])

        result = await make_orchestrator(llm).process_query("question", conversation_id="missing-42")

        assert result.conversation_id is not None
        assert result.conversation_id != "missing-42"
        assert result.conversation_id in store.records

    async def test_blank_conversation_id_is_treated_as_new(self, make_orchestrator, store):
        llm = FakeLLM(json_reply=relevance_reply(tax=9), chat_replies=["answer"])

        await make_orchestrator(llm).process_query("question", conversation_id="   ")

        assert store.load_calls == []


class TestResilience:
    async def test_total_outage_falls_back_to_reasoning_and_degrades(self, make_orchestrator):
        llm = FakeLLM(json_reply=None, chat_replies=[ConnectionError("model down")])

        result = await make_orchestrator(llm).process_query("anything")

        assert result.plan.fallback is True
        assert result.plan.chosen_agents == [AgentType.REASONING]
        assert result.degraded is True
        assert result.final_text == DEGRADED_RESPONSE
        assert len(result.contributions) == 1

    async def test_analysis_failure_still_answers_with_default_agent(self, make_orchestrator):
        llm = FakeLLM(json_reply=ValueError("bad json"), chat_replies=["Reasoned answer"])

        result = await make_orchestrator(llm).process_query("anything")

        assert result.final_text == "Reasoned answer"
        assert result.primary.agent_type == AgentType.REASONING
        assert result.primary.confidence == 1.0

    async def test_empty_registry_never_raises(self, make_orchestrator):
        llm = FakeLLM(json_reply=relevance_reply(tax=9))

        result = await make_orchestrator(llm, registry=AgentRegistry(specs={})).process_query("question")

        assert result.degraded is True
        assert result.final_text == DEGRADED_RESPONSE
        assert len(result.contributions) == 1
        assert result.primary.agent_type == AgentType.TAX
        assert result.primary.confidence == 0.0
        assert "Unknown agent type" in result.primary.error
        assert result.plan.fallback is False
        assert result.plan.chosen_agents == [AgentType.TAX]

    async def test_forced_agent_missing_from_registry_keeps_its_contribution(self, make_orchestrator, registry):
        del registry.specs[AgentType.COMPLIANCE]
        llm = FakeLLM()

        result = await make_orchestrator(llm, registry=registry).process_query(
            "question", agent_type=AgentType.COMPLIANCE, conversation_id="conv-7"
        )

        assert len(result.contributions) == 1
        assert result.primary.agent_type == AgentType.COMPLIANCE
        assert result.primary.raw_response == FAILED_AGENT_STUB
        assert result.primary.confidence == 0.0
        assert result.plan.chosen_agents == [AgentType.COMPLIANCE]
        assert result.plan.fallback is False
        assert result.degraded is True
        assert result.conversation_id == "conv-7"
        assert llm.chat_calls == []

    async def test_routed_agent_missing_from_registry_keeps_the_plan(self, make_orchestrator, registry):
        del registry.specs[AgentType.TAX]
        llm = FakeLLM(json_reply=relevance_reply(tax=9, compliance=3))

        result = await make_orchestrator(llm, registry=registry).process_query("question")

        assert [c.agent_type for c in result.contributions] == [AgentType.TAX]
        assert result.primary.failed
        assert result.plan.score_for(AgentType.TAX) == pytest.approx(0.9)
        assert result.plan.fallback is False

    async def test_store_save_failure_still_answers(self, make_orchestrator, store):
        store.fail_save = True
        llm = FakeLLM(json_reply=relevance_reply(tax=9, compliance=9))

        result = await make_orchestrator(llm).process_query("question")

        assert result.final_text == "Synthesized answer"
        assert result.conversation_id is None

    def test_list_agents_in_catalog_order(self, make_orchestrator, fake_llm):
        agents = make_orchestrator(fake_llm).list_agents()

        assert [a.type for a in agents] == [
            AgentType.TAX, AgentType.COMPLIANCE, AgentType.RESEARCH, AgentType.DATA, AgentType.REASONING,
        ]
