"""
Relevance Analyzer - Decides which agents should answer a query

Asks the model to score every catalog agent 0-10, normalises the scores
and turns them into a routing plan. Any failure yields a fallback plan
that routes to the default agent, so routing never blocks a query.
"""

import logging
from typing import Any, Dict, List, Optional

from src.agents import prompts
from src.config.settings import Settings
from src.models.agent import AGENT_CATALOG, AgentType
from src.models.orchestration import AgentRelevance, RelevancePlan
from src.services.llm_service import LLMService

logger = logging.getLogger(__name__)

FALLBACK_REASON = "fallback: analysis unavailable"
NOT_SCORED_REASON = "not scored"


class RelevanceAnalyzer:
    """
    Produces a RelevancePlan for each query

    Example:
        analyzer = RelevanceAnalyzer(llm)
        plan = await analyzer.analyze("How do I calculate FICA for $5,000?")
        plan.chosen_agents  # [AgentType.TAX]
    """

    def __init__(
        self,
        llm: Optional[LLMService],
        cutoff: float = 0.7,
        max_fanout: int = 3,
        default_agent: AgentType = AgentType.REASONING,
        temperature: float = 0.1,
    ):
        """
        Initialize analyzer

        Args:
            llm: Model client handle (None always produces the fallback plan)
            cutoff: Minimum normalised score for an agent to be chosen
            max_fanout: Maximum number of chosen agents
            default_agent: Agent used when nothing scores or analysis fails
            temperature: Temperature for the analysis call
        """
        self.llm = llm
        self.cutoff = cutoff
        self.max_fanout = max(1, max_fanout)
        self.default_agent = default_agent
        self.temperature = temperature

    @classmethod
    def from_settings(cls, llm: Optional[LLMService], settings: Settings) -> "RelevanceAnalyzer":
        return cls(
            llm,
            cutoff=settings.relevance_cutoff,
            max_fanout=settings.max_fanout,
            default_agent=AgentType(settings.default_agent),
            temperature=settings.analysis_temperature,
        )

    def build_prompt(self, query: str) -> str:
        """Analysis prompt listing every catalog agent"""
        agent_list = "\n".join(
            f"{i}. {d.display_name} ({d.type.value}): {d.capability_description}"
            for i, d in enumerate(AGENT_CATALOG, start=1)
        )
        relevance_shape = ",\n".join(
            f'    "{d.type.value}": {{"score": [0-10], "reason": "explanation"}}'
            for d in AGENT_CATALOG
        )
        return prompts.ANALYSIS_PROMPT_TEMPLATE.format(
            query=query,
            agent_list=agent_list,
            relevance_shape=relevance_shape,
        )

    async def analyze(self, query: str) -> RelevancePlan:
        """
        Score all agents for a query and choose which to invoke

        Never raises. Model errors, timeouts and malformed replies produce
        the fallback plan.

        Args:
            query: User query text

        Returns:
            RelevancePlan with at least one chosen agent
        """
        if self.llm is None:
            logger.warning("No LLM available for relevance analysis, using fallback plan")
            return self.fallback_plan()

        try:
            data = await self.llm.generate_json(
                prompt=self.build_prompt(query),
                system_prompt=prompts.ANALYSIS_SYSTEM_PROMPT,
                temperature=self.temperature,
            )
            plan = self.plan_from_response(data)
        except Exception as e:
            logger.error(f"Relevance analysis failed, using fallback plan: {e}", exc_info=True)
            return self.fallback_plan()

        scores = {t.value: r.score for t, r in plan.per_agent.items()}
        logger.info(f"Relevance plan: chosen={[t.value for t in plan.chosen_agents]}, scores={scores}")
        return plan

    def plan_from_response(self, data: Dict[str, Any]) -> RelevancePlan:
        """
        Build a plan from the parsed analysis reply

        Args:
            data: JSON object with "analysis", "agent_relevance" and "plan"

        Returns:
            RelevancePlan

        Raises:
            ValueError: If the reply has no usable agent_relevance object
        """
        relevance = data.get("agent_relevance")
        if not isinstance(relevance, dict):
            raise ValueError("Analysis reply is missing agent_relevance")

        normalized = {str(key).strip().lower(): value for key, value in relevance.items()}

        per_agent: Dict[AgentType, AgentRelevance] = {}
        for descriptor in AGENT_CATALOG:
            entry = normalized.get(descriptor.type.value)
            per_agent[descriptor.type] = self._parse_entry(entry)

        return RelevancePlan(
            per_agent=per_agent,
            analysis_narrative=str(data.get("analysis") or ""),
            plan_narrative=str(data.get("plan") or ""),
            chosen_agents=self.select_agents(per_agent),
        )

    @staticmethod
    def _parse_entry(entry: Any) -> AgentRelevance:
        if not isinstance(entry, dict):
            return AgentRelevance(score=0.0, reason=NOT_SCORED_REASON)

        raw_score = entry.get("score")
        if isinstance(raw_score, list) and raw_score:
            raw_score = raw_score[0]

        try:
            score = float(raw_score) / 10.0
        except (TypeError, ValueError):
            return AgentRelevance(score=0.0, reason=NOT_SCORED_REASON)

        return AgentRelevance(score=score, reason=str(entry.get("reason") or ""))

    def select_agents(self, per_agent: Dict[AgentType, AgentRelevance]) -> List[AgentType]:
        """
        Choose agents from normalised scores

        Agents at or above the cutoff are chosen. If none qualify the single
        top-scoring agent is used, and if every score is zero the default
        agent. Ordered by score descending, ties in catalog order, capped at
        max_fanout.
        """
        def score(agent_type: AgentType) -> float:
            entry = per_agent.get(agent_type)
            return entry.score if entry else 0.0

        ranked = sorted(per_agent, key=lambda t: (-score(t), t.catalog_index))

        chosen = [t for t in ranked if score(t) >= self.cutoff]
        if not chosen:
            chosen = [t for t in ranked if score(t) > 0][:1]
        if not chosen:
            chosen = [self.default_agent]

        return chosen[:self.max_fanout]

    def fallback_plan(self) -> RelevancePlan:
        """Plan routing everything to the default agent"""
        per_agent = {
            descriptor.type: AgentRelevance(
                score=1.0 if descriptor.type == self.default_agent else 0.0,
                reason=FALLBACK_REASON,
            )
            for descriptor in AGENT_CATALOG
        }
        return RelevancePlan(
            per_agent=per_agent,
            analysis_narrative="Query analysis was unavailable; routing to the default agent.",
            plan_narrative=f"Answer with the {self.default_agent.value} agent.",
            chosen_agents=[self.default_agent],
            fallback=True,
        )
