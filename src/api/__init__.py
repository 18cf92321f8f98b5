"""
API module for the payroll agent service

Provides REST endpoints for the UI
"""

from src.api.server import create_app, get_orchestrator, set_orchestrator

__all__ = [
    "create_app",
    "get_orchestrator",
    "set_orchestrator",
]
