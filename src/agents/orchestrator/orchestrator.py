"""
Agent Orchestrator - Top-level query coordinator

Single entry point for user queries. Resolves the conversation, plans which
agents answer, dispatches them (directly or concurrently) and aggregates
their answers into one response.
"""

import asyncio
import logging
from typing import Any, List, Optional, Tuple

from src.agents.agent_base import AgentAnswer, AgentUnit
from src.agents.agent_registry import AgentRegistry
from src.agents.relevance_analyzer import RelevanceAnalyzer
from src.agents.response_aggregator import DEGRADED_RESPONSE, ResponseAggregator
from src.config.settings import Settings, get_settings
from src.models.agent import AgentDescriptor, AgentType, get_descriptor
from src.models.conversation import ConversationRef, Message, resolve_conversation
from src.models.orchestration import (
    AgentContribution,
    AgentRelevance,
    AggregatedResponse,
    RelevancePlan,
)
from src.services.llm_service import LLMService
from src.utils.reasoning_steps import parse_reasoning_steps
from src.workers.db_worker.conversation_repo import ConversationRepository
from src.workers.knowledge_worker.knowledge_client import KnowledgeClient

logger = logging.getLogger(__name__)

FORCED_REASON = "selected by caller"
FAILED_AGENT_STUB = "This agent could not provide an answer."


class AgentOrchestrator:
    """
    Top-level orchestrator for agent coordination

    Agent Units are built fresh for every call; the orchestrator itself keeps
    no per-conversation state between calls.

    Example:
        orchestrator = AgentOrchestrator.from_settings()
        result = await orchestrator.process_query("What is the FICA rate?")
        print(result.final_text, result.conversation_id)
    """

    def __init__(
        self,
        llm: Optional[LLMService],
        store: Optional[Any] = None,
        knowledge: Optional[Any] = None,
        registry: Optional[AgentRegistry] = None,
        analyzer: Optional[RelevanceAnalyzer] = None,
        aggregator: Optional[ResponseAggregator] = None,
    ):
        """
        Initialize orchestrator

        Args:
            llm: Model client handle shared by agents, analysis and synthesis
            store: Conversation store (load/create/update)
            knowledge: Knowledge retrieval collaborator
            registry: Agent registry (built-in agents if not provided)
            analyzer: Relevance analyzer (default policy if not provided)
            aggregator: Response aggregator (default if not provided)
        """
        self.llm = llm
        self.store = store
        self.knowledge = knowledge
        self.registry = registry or AgentRegistry()
        self.analyzer = analyzer or RelevanceAnalyzer(llm)
        self.aggregator = aggregator or ResponseAggregator(llm)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "AgentOrchestrator":
        """
        Wire the production collaborators from settings

        Returns:
            Orchestrator backed by Gemini, MongoDB conversations and the knowledge base
        """
        settings = settings or get_settings()
        llm = LLMService()

        store = ConversationRepository(collection_name=settings.conversations_collection)
        knowledge = KnowledgeClient(llm=llm) if settings.enable_knowledge_base else None

        logger.info(
            f"🎭 Orchestrator configured (model={settings.google_model}, cutoff={settings.relevance_cutoff}, "
            f"max_fanout={settings.max_fanout}, knowledge_base={settings.enable_knowledge_base})"
        )

        return cls(
            llm=llm,
            store=store,
            knowledge=knowledge,
            registry=AgentRegistry.from_settings(settings),
            analyzer=RelevanceAnalyzer.from_settings(llm, settings),
            aggregator=ResponseAggregator.from_settings(llm, settings),
        )

    def list_agents(self) -> List[AgentDescriptor]:
        """Static agent catalog"""
        return self.registry.list_agents()

    async def process_query(
        self,
        query: str,
        conversation_id: Optional[str] = None,
        agent_type: Optional[AgentType] = None,
        user_id: Optional[str] = None,
        company_id: Optional[str] = None,
    ) -> AggregatedResponse:
        """
        Answer a user query

        Never raises; every internal failure is converted to a failed
        contribution, a fallback plan or a degraded response.

        Args:
            query: User query text (validated by the caller)
            conversation_id: Conversation to continue, if any
            agent_type: Force a specific agent and skip relevance analysis
            user_id: Conversation owner
            company_id: Owner's company

        Returns:
            AggregatedResponse with the final text, contributions and conversation id
        """
        conversation = resolve_conversation(conversation_id)
        logger.info(
            f"Processing query (conversation={conversation.kind}, forced_agent="
            f"{agent_type.value if agent_type else None})"
        )

        try:
            if agent_type is not None:
                return await self._run_forced(query, conversation, agent_type, user_id, company_id)

            plan = await self.analyzer.analyze(query)

            if len(plan.chosen_agents) == 1:
                return await self._run_single(query, conversation, plan, user_id, company_id)

            return await self._run_fan_out(query, conversation, plan, user_id, company_id)

        except Exception as e:
            logger.error(f"Unexpected orchestration failure: {e}", exc_info=True)
            return AggregatedResponse(
                final_text=DEGRADED_RESPONSE,
                contributions=[],
                conversation_id=conversation.conversation_id,
                plan=self.analyzer.fallback_plan(),
                degraded=True,
            )

    async def _run_forced(
        self,
        query: str,
        conversation: ConversationRef,
        agent_type: AgentType,
        user_id: Optional[str],
        company_id: Optional[str],
    ) -> AggregatedResponse:
        """Call one caller-chosen agent; relevance analysis and synthesis are skipped"""
        plan = RelevancePlan(
            per_agent={agent_type: AgentRelevance(score=1.0, reason=FORCED_REASON)},
            analysis_narrative=f"Agent {agent_type.value} selected by caller.",
            chosen_agents=[agent_type],
        )

        contribution, conversation_id = await self._ask_directly(
            agent_type, query, conversation, user_id, company_id, confidence=None
        )

        return await self.aggregator.aggregate(query, [contribution], plan, conversation_id)

    async def _run_single(
        self,
        query: str,
        conversation: ConversationRef,
        plan: RelevancePlan,
        user_id: Optional[str],
        company_id: Optional[str],
    ) -> AggregatedResponse:
        """Sequential path: the chosen agent loads and persists the conversation itself"""
        agent_type = plan.chosen_agents[0]

        contribution, conversation_id = await self._ask_directly(
            agent_type, query, conversation, user_id, company_id, confidence=plan.score_for(agent_type)
        )

        return await self.aggregator.aggregate(query, [contribution], plan, conversation_id)

    async def _run_fan_out(
        self,
        query: str,
        conversation: ConversationRef,
        plan: RelevancePlan,
        user_id: Optional[str],
        company_id: Optional[str],
    ) -> AggregatedResponse:
        """
        Concurrent path

        History is loaded once and every agent answers from its own copy with
        memory disabled. After aggregation the user turn and the final answer
        are appended to the conversation here.
        """
        conversation_id, history = await self._load_history(conversation)

        results = await asyncio.gather(
            *[self._ask_agent(agent_type, query, history, user_id, company_id) for agent_type in plan.chosen_agents],
            return_exceptions=True,
        )

        contributions: List[AgentContribution] = []
        for agent_type, result in zip(plan.chosen_agents, results):
            confidence = plan.score_for(agent_type)
            if isinstance(result, BaseException):
                logger.error(f"Agent {agent_type.value} failed during fan-out: {result}", exc_info=result)
                contributions.append(self._failed_contribution(agent_type, result))
            else:
                contributions.append(self._to_contribution(agent_type, result, confidence=confidence))

        failed = sum(1 for c in contributions if c.failed)
        logger.info(f"Fan-out finished: {len(contributions) - failed} succeeded, {failed} failed")

        response = await self.aggregator.aggregate(query, contributions, plan, conversation_id)

        if not response.degraded:
            response.conversation_id = await self._append_turn(
                conversation_id, history, query, response.final_text, plan, user_id, company_id
            )

        return response

    async def _build_agent(
        self,
        agent_type: AgentType,
        conversation: ConversationRef,
        user_id: Optional[str],
        company_id: Optional[str],
        memory: bool = True,
        history: Optional[List[Message]] = None,
    ) -> AgentUnit:
        return await self.registry.build(
            agent_type,
            llm=self.llm,
            store=self.store,
            knowledge=self.knowledge,
            conversation_id=conversation.conversation_id,
            user_id=user_id,
            company_id=company_id,
            memory=memory,
            history=history,
        )

    async def _ask_directly(
        self,
        agent_type: AgentType,
        query: str,
        conversation: ConversationRef,
        user_id: Optional[str],
        company_id: Optional[str],
        confidence: Optional[float],
    ) -> Tuple[AgentContribution, Optional[str]]:
        """
        Sequential path: the agent loads and persists the conversation itself

        Returns:
            (contribution, conversation id). An agent that cannot be built
            yields a failed contribution and the caller's conversation id.
        """
        try:
            agent = await self._build_agent(agent_type, conversation, user_id, company_id)
        except Exception as e:
            logger.error(f"Could not build {agent_type.value} agent: {e}", exc_info=True)
            return self._failed_contribution(agent_type, e), conversation.conversation_id

        answer = await agent.respond(query)
        return self._to_contribution(agent_type, answer, confidence=confidence), agent.conversation_id

    async def _ask_agent(
        self,
        agent_type: AgentType,
        query: str,
        history: List[Message],
        user_id: Optional[str],
        company_id: Optional[str],
    ) -> AgentAnswer:
        """Build a memory-less agent over a copy of the shared history and ask it"""
        agent = await self.registry.build(
            agent_type,
            llm=self.llm,
            store=None,
            knowledge=self.knowledge,
            user_id=user_id,
            company_id=company_id,
            memory=False,
            history=[m.model_copy() for m in history],
        )
        return await agent.respond(query)

    @staticmethod
    def _failed_contribution(agent_type: AgentType, error: BaseException) -> AgentContribution:
        return AgentContribution(
            agent_type=agent_type,
            agent_name=get_descriptor(agent_type).display_name,
            raw_response=FAILED_AGENT_STUB,
            confidence=0.0,
            error=str(error) or type(error).__name__,
        )

    def _to_contribution(
        self,
        agent_type: AgentType,
        answer: AgentAnswer,
        confidence: Optional[float],
    ) -> AgentContribution:
        if not answer.succeeded:
            return AgentContribution(
                agent_type=agent_type,
                agent_name=get_descriptor(agent_type).display_name,
                raw_response=answer.text,
                confidence=0.0,
                error=answer.error or "agent failed",
            )

        steps = parse_reasoning_steps(answer.text) if agent_type == AgentType.REASONING else []

        return AgentContribution(
            agent_type=agent_type,
            agent_name=get_descriptor(agent_type).display_name,
            raw_response=answer.text,
            confidence=confidence,
            reasoning_steps=steps,
        )

    async def _load_history(self, conversation: ConversationRef) -> Tuple[Optional[str], List[Message]]:
        """
        Load a continuing conversation's log

        Returns:
            (conversation id, messages). The id is dropped when the
            conversation cannot be loaded so a new one gets created.
        """
        conversation_id = conversation.conversation_id
        if conversation_id is None:
            return None, []

        if self.store is None:
            logger.warning("No conversation store configured, starting fresh")
            return None, []

        try:
            stored = await self.store.load(conversation_id)
        except Exception as e:
            logger.error(f"Failed to load conversation {conversation_id}: {e}", exc_info=True)
            return None, []

        if stored is None:
            logger.warning(f"Conversation {conversation_id} not found, starting fresh")
            return None, []

        return conversation_id, [m for m in stored if m.role != "system"]

    async def _append_turn(
        self,
        conversation_id: Optional[str],
        history: List[Message],
        query: str,
        final_text: str,
        plan: RelevancePlan,
        user_id: Optional[str],
        company_id: Optional[str],
    ) -> Optional[str]:
        """
        Persist the user turn and aggregated answer of a fan-out

        Returns:
            Conversation id (newly minted when the conversation was new);
            unchanged when saving fails
        """
        if self.store is None:
            return conversation_id

        messages = history + [
            Message(role="user", content=query),
            Message(role="assistant", content=final_text),
        ]

        try:
            if conversation_id is None:
                conversation_id = await self.store.create(
                    owner_id=user_id,
                    messages=messages,
                    metadata={"agents": [t.value for t in plan.chosen_agents]},
                    company_id=company_id,
                    agent_type="orchestrator",
                )
                logger.info(f"Created conversation {conversation_id} for multi-agent answer")
            else:
                await self.store.update(conversation_id, messages)
        except Exception as e:
            logger.error(f"Failed to save multi-agent conversation: {e}", exc_info=True)

        return conversation_id
