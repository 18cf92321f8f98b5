"""
Orchestrator module - Top-level query coordinator

Plans, dispatches and aggregates the specialized agents
"""

from src.agents.orchestrator.orchestrator import AgentOrchestrator

__all__ = [
    "AgentOrchestrator",
]
