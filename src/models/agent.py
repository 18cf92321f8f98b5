"""
Agent catalog data model

Static description of the specialized agents and the per-instance
configuration an Agent Unit is built from
"""

from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class AgentType(str, Enum):
    """
    Closed set of agent roles

    Declaration order is the catalog order: domain specialists first,
    general reasoning last. Ties in routing and display fall back to it.
    """
    TAX = "tax"
    COMPLIANCE = "compliance"
    RESEARCH = "research"
    DATA = "data"
    REASONING = "reasoning"

    @property
    def catalog_index(self) -> int:
        return list(AgentType).index(self)


class AgentDescriptor(BaseModel):
    """Public description of one agent (immutable)"""

    model_config = ConfigDict(frozen=True)

    type: AgentType = Field(..., description="Agent type tag")
    display_name: str = Field(..., description="Human readable agent name")
    capability_description: str = Field(..., description="What the agent is good at")


AGENT_CATALOG: Tuple[AgentDescriptor, ...] = (
    AgentDescriptor(
        type=AgentType.TAX,
        display_name="Tax Calculator",
        capability_description="Calculates payroll taxes and explains federal, state and FICA tax rules",
    ),
    AgentDescriptor(
        type=AgentType.COMPLIANCE,
        display_name="Compliance Advisor",
        capability_description="Monitors payroll regulatory compliance, filing deadlines and penalties",
    ),
    AgentDescriptor(
        type=AgentType.RESEARCH,
        display_name="Research Specialist",
        capability_description="Researches payroll and tax topics using current information",
    ),
    AgentDescriptor(
        type=AgentType.DATA,
        display_name="Data Analyst",
        capability_description="Analyzes payroll data for trends, insights and forecasting",
    ),
    AgentDescriptor(
        type=AgentType.REASONING,
        display_name="Reasoning Engine",
        capability_description="Handles complex multi-step reasoning for general payroll questions",
    ),
)


def get_descriptor(agent_type: AgentType) -> AgentDescriptor:
    """Look up the catalog entry for an agent type"""
    for descriptor in AGENT_CATALOG:
        if descriptor.type == agent_type:
            return descriptor
    raise ValueError(f"Unknown agent type: {agent_type}")


class AgentConfig(BaseModel):
    """Configuration for constructing one Agent Unit"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: str = Field(default="gemini-2.5-flash", description="LLM model to use")
    temperature: float = Field(default=0.2, description="Temperature for LLM (0.0-1.0)")
    max_tokens: int = Field(default=2000, description="Maximum tokens in response")
    system_prompt: str = Field(default="You are a helpful assistant.", description="Fixed system prompt")
    tools: List[Any] = Field(default_factory=list, description="AgentTool instances the model may invoke")
    memory: bool = Field(default=True, description="Load and persist conversation history")
    use_knowledge_base: bool = Field(default=True, description="Enrich prompts with retrieved context")

    conversation_id: Optional[str] = Field(None, description="Existing conversation to continue")
    user_id: Optional[str] = Field(None, description="Owner of the conversation")
    company_id: Optional[str] = Field(None, description="Company the owner belongs to")
