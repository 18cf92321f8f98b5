"""Knowledge Worker - Payroll knowledge retrieval"""

from src.workers.knowledge_worker.knowledge_client import KnowledgeClient

__all__ = ["KnowledgeClient"]
