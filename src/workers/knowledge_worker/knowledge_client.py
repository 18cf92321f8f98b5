"""
Knowledge Worker - Retrieves payroll knowledge snippets from an embedded MongoDB collection

Agents call ``search()`` to enrich their prompts with context. Retrieval is
best-effort: any failure yields no snippets.

Uses MongoDB's vector search to find relevant knowledge based on query.
"""

import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from src.config.settings import get_settings
from src.services.llm_service import LLMService
from src.workers.db_worker.mongo_client import MongoDBClient

logger = logging.getLogger(__name__)


class KnowledgeClient:
    """
    Client for retrieving knowledge base documents

    Documents hold ``content`` text, an optional ``title`` and an
    ``embedding`` vector produced with the configured embedding model.
    """

    def __init__(self, llm: Optional[LLMService] = None, db: Optional[AsyncIOMotorDatabase] = None):
        """
        Initialize knowledge client

        Args:
            llm: Model client used for query embeddings (built from settings if not provided)
            db: Optional database instance. If not provided, uses MongoDBClient.get_database()
        """
        self.settings = get_settings()
        self.collection_name = self.settings.knowledge_collection
        self.llm = llm if llm is not None else LLMService()
        self._db = db

    @property
    def collection(self):
        db = self._db if self._db is not None else MongoDBClient.get_database()
        return db[self.collection_name]

    async def vector_search(
        self,
        query: str,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """
        Perform vector similarity search using MongoDB Atlas Vector Search

        Args:
            query: Natural language query (e.g., "When is Form 941 due?")
            limit: Maximum number of results (defaults to KNOWLEDGE_MATCH_COUNT)
            min_score: Minimum similarity score 0-1 (defaults to KNOWLEDGE_MIN_SCORE)

        Returns:
            Matching documents with ``title``, ``content`` and ``score``

        Raises:
            Exception: If embedding or the aggregation fails
        """
        limit = limit or self.settings.knowledge_match_count
        min_score = self.settings.knowledge_min_score if min_score is None else min_score

        query_embedding = await self.llm.embed(query)

        pipeline = [
            {
                "$vectorSearch": {
                    "index": self.settings.knowledge_vector_index_name,
                    "path": "embedding",
                    "queryVector": query_embedding,
                    "numCandidates": limit * 10,  # Oversample for better results
                    "limit": limit,
                }
            },
            {
                "$project": {
                    "_id": 0,
                    "title": 1,
                    "content": 1,
                    "score": {"$meta": "vectorSearchScore"},
                }
            },
            {"$match": {"score": {"$gte": min_score}}},
        ]

        results = []
        async for doc in self.collection.aggregate(pipeline):
            results.append(doc)

        logger.info(f"Vector search for '{query[:80]}' returned {len(results)} results")
        return results

    async def search(self, query: str) -> List[str]:
        """
        Knowledge snippets relevant to a query

        Args:
            query: User query text

        Returns:
            Zero or more text snippets; empty on any failure
        """
        try:
            results = await self.vector_search(query)
        except Exception as e:
            logger.error(f"Error in knowledge search: {e}", exc_info=True)
            return []

        return [doc["content"] for doc in results if doc.get("content")]
