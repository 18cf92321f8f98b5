"""
Orchestration data models

Routing plans, per-agent contributions and the aggregated answer
returned to callers
"""

import math
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from src.models.agent import AgentType


def clamp_unit(value: float) -> float:
    """Clamp a score into [0, 1]; NaN counts as 0"""
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


class AgentRelevance(BaseModel):
    """Relevance of one agent for a query"""

    score: float = Field(0.0, description="Normalised relevance 0..1")
    reason: str = Field("", description="One-line justification")

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, value: float) -> float:
        return clamp_unit(value)


class RelevancePlan(BaseModel):
    """
    Routing decision for one query

    Produced fresh per query and never persisted
    """

    per_agent: Dict[AgentType, AgentRelevance] = Field(default_factory=dict)
    analysis_narrative: str = ""
    plan_narrative: str = ""
    chosen_agents: List[AgentType] = Field(..., min_length=1)
    fallback: bool = Field(False, description="True when analysis was unavailable")

    def score_for(self, agent_type: AgentType) -> float:
        relevance = self.per_agent.get(agent_type)
        return relevance.score if relevance else 0.0


class ReasoningStep(BaseModel):
    """One segment of step-by-step model output"""

    step: str
    reasoning: str
    conclusion: str


class AgentContribution(BaseModel):
    """One agent's answer for a turn"""

    agent_type: AgentType
    agent_name: str
    raw_response: str
    confidence: Optional[float] = Field(None, description="Relevance confidence 0..1; None when forced by the caller")
    error: Optional[str] = Field(None, description="Failure description when the agent could not answer")
    reasoning_steps: List[ReasoningStep] = Field(default_factory=list)

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        return clamp_unit(value)

    @property
    def failed(self) -> bool:
        return self.error is not None


class AggregatedResponse(BaseModel):
    """Final answer for a turn plus provenance"""

    final_text: str
    contributions: List[AgentContribution] = Field(default_factory=list)
    conversation_id: Optional[str] = None
    plan: RelevancePlan
    degraded: bool = Field(False, description="True when every contribution failed")

    @property
    def primary(self) -> Optional[AgentContribution]:
        return self.contributions[0] if self.contributions else None
