"""Data models for agents, conversations and orchestration"""

from src.models.agent import AGENT_CATALOG, AgentConfig, AgentDescriptor, AgentType, get_descriptor
from src.models.conversation import (
    ContinuingConversation,
    ConversationRecord,
    ConversationRef,
    Message,
    NewConversation,
    ToolInvocation,
    resolve_conversation,
)
from src.models.orchestration import (
    AgentContribution,
    AgentRelevance,
    AggregatedResponse,
    ReasoningStep,
    RelevancePlan,
)

__all__ = [
    "AGENT_CATALOG",
    "AgentConfig",
    "AgentDescriptor",
    "AgentType",
    "get_descriptor",
    "ContinuingConversation",
    "ConversationRecord",
    "ConversationRef",
    "Message",
    "NewConversation",
    "ToolInvocation",
    "resolve_conversation",
    "AgentContribution",
    "AgentRelevance",
    "AggregatedResponse",
    "ReasoningStep",
    "RelevancePlan",
]
