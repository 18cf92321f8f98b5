"""
Response Aggregator - Merges agent contributions into one answer

Orders contributions by confidence, passes a single successful answer
through unchanged and synthesizes multiple answers with the model,
falling back to a deterministic concatenation.
"""

import logging
from typing import List, Optional

from src.agents import prompts
from src.config.settings import Settings
from src.models.orchestration import AgentContribution, AggregatedResponse, RelevancePlan
from src.services.llm_service import LLMService

logger = logging.getLogger(__name__)

DEGRADED_RESPONSE = "I'm sorry, I could not complete your request right now. Please try again."


def order_contributions(contributions: List[AgentContribution]) -> List[AgentContribution]:
    """Confidence descending (missing confidence counts as 0), ties in catalog order"""
    return sorted(
        contributions,
        key=lambda c: (-(c.confidence or 0.0), c.agent_type.catalog_index),
    )


def concatenate(contributions: List[AgentContribution]) -> str:
    """Deterministic merge: one attributed section per contribution"""
    sections = []
    for contribution in contributions:
        if contribution.confidence is None:
            header = f"**{contribution.agent_name}**:"
        else:
            header = f"**{contribution.agent_name}** (confidence {contribution.confidence:.2f}):"
        sections.append(f"{header}\n{contribution.raw_response}")
    return "\n\n".join(sections)


class ResponseAggregator:
    """Builds the AggregatedResponse for a turn"""

    def __init__(self, llm: Optional[LLMService] = None, temperature: float = 0.2, max_tokens: int = 2000):
        """
        Initialize aggregator

        Args:
            llm: Model client handle for synthesis (None always concatenates)
            temperature: Temperature for the synthesis call
            max_tokens: Maximum tokens for the synthesized answer
        """
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_settings(cls, llm: Optional[LLMService], settings: Settings) -> "ResponseAggregator":
        return cls(
            llm,
            temperature=settings.synthesis_temperature,
            max_tokens=settings.llm_max_response_tokens,
        )

    async def aggregate(
        self,
        query: str,
        contributions: List[AgentContribution],
        plan: RelevancePlan,
        conversation_id: Optional[str] = None,
    ) -> AggregatedResponse:
        """
        Merge contributions into the final answer

        Args:
            query: Original user query
            contributions: One contribution per invoked agent
            plan: Routing plan used for the turn
            conversation_id: Conversation the turn belongs to

        Returns:
            AggregatedResponse listing every contribution in display order
        """
        ordered = order_contributions(contributions)
        succeeded = [c for c in ordered if not c.failed]

        degraded = False
        if not succeeded:
            logger.warning(f"All {len(ordered)} agent contributions failed, returning degraded response")
            final_text = DEGRADED_RESPONSE
            degraded = True
        elif len(succeeded) == 1:
            final_text = succeeded[0].raw_response
        else:
            final_text = await self.synthesize(query, succeeded)

        return AggregatedResponse(
            final_text=final_text,
            contributions=ordered,
            conversation_id=conversation_id,
            plan=plan,
            degraded=degraded,
        )

    async def synthesize(self, query: str, contributions: List[AgentContribution]) -> str:
        """
        Merge several successful answers with the model

        Falls back to concatenation when no model is available or the call fails.
        """
        if self.llm is None:
            return concatenate(contributions)

        responses = "\n".join(
            f"--- {c.agent_name} ---\n{c.raw_response}\n" for c in contributions
        )

        try:
            return await self.llm.generate_text(
                prompt=prompts.SYNTHESIS_PROMPT_TEMPLATE.format(query=query, responses=responses),
                system_prompt=prompts.SYNTHESIS_SYSTEM_PROMPT,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.warning(f"Synthesis failed, concatenating {len(contributions)} responses: {e}")
            return concatenate(contributions)
