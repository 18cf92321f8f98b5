"""
Agents module for multi-agent payroll query orchestration

Provides the agent-based architecture for answering payroll questions:
- Agent Orchestrator: Single entry point, planning and dispatch
- Relevance Analyzer / Response Aggregator: Routing and merging
- Shared Infrastructure: AgentRegistry, AgentUnit, tools
"""

from src.agents.agent_base import AgentAnswer, AgentUnit
from src.agents.agent_registry import AgentRegistry, AgentSpec
from src.agents.relevance_analyzer import RelevanceAnalyzer
from src.agents.response_aggregator import ResponseAggregator
from src.agents.orchestrator.orchestrator import AgentOrchestrator

__all__ = [
    "AgentOrchestrator",
    "RelevanceAnalyzer",
    "ResponseAggregator",
    "AgentRegistry",
    "AgentSpec",
    "AgentUnit",
    "AgentAnswer",
]
