"""
Conversation Repository - Persistence for agent conversations

Implements the conversation store used by agents and the orchestrator:
load / create / update of ordered message logs in MongoDB
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from src.models.conversation import ConversationRecord, Message
from src.workers.db_worker.mongo_client import MongoDBClient

logger = logging.getLogger(__name__)


class ConversationRepository:
    """
    Repository for conversation database operations

    Stored message logs never include the agent's system message.
    I/O errors propagate; callers decide how to degrade.
    """

    COLLECTION_NAME = "ai_conversations"

    def __init__(self, db: Optional[AsyncIOMotorDatabase] = None, collection_name: Optional[str] = None):
        """
        Initialize conversation repository

        Args:
            db: Optional database instance. If not provided, uses MongoDBClient.get_database()
            collection_name: Collection override (defaults to COLLECTION_NAME)
        """
        self.db = db if db is not None else MongoDBClient.get_database()
        self.collection = self.db[collection_name or self.COLLECTION_NAME]

    async def ensure_indexes(self) -> None:
        """
        Create indexes for efficient querying

        Indexes:
        - owner_id + updated_at: a user's most recent conversations
        - company_id: company-wide queries
        """
        await self.collection.create_index([("owner_id", 1), ("updated_at", DESCENDING)])
        await self.collection.create_index("company_id")

    @staticmethod
    def _object_id(conversation_id: str) -> Optional[ObjectId]:
        try:
            return ObjectId(conversation_id)
        except (InvalidId, TypeError):
            return None

    async def load(self, conversation_id: str) -> Optional[List[Message]]:
        """
        Load the ordered message log of a conversation

        Args:
            conversation_id: MongoDB document ID

        Returns:
            Messages in stored order, or None if not found (or the id is malformed)
        """
        record = await self.find_by_id(conversation_id)
        if record is None:
            return None
        return record.messages

    async def find_by_id(self, conversation_id: str) -> Optional[ConversationRecord]:
        """
        Find conversation by MongoDB ID

        Args:
            conversation_id: MongoDB document ID

        Returns:
            ConversationRecord if found, None otherwise
        """
        object_id = self._object_id(conversation_id)
        if object_id is None:
            logger.warning(f"Invalid conversation id: {conversation_id}")
            return None

        doc = await self.collection.find_one({"_id": object_id})
        if not doc:
            return None

        doc["_id"] = str(doc["_id"])
        return ConversationRecord(**doc)

    async def create(
        self,
        owner_id: Optional[str],
        messages: List[Message],
        metadata: Optional[Dict[str, Any]] = None,
        company_id: Optional[str] = None,
        agent_type: Optional[str] = None,
    ) -> str:
        """
        Create a new conversation

        Args:
            owner_id: User that owns the conversation (None for anonymous)
            messages: Initial message log (without system message)
            metadata: Model configuration and other details
            company_id: Owner's company
            agent_type: Agent (or "orchestrator") that created the record

        Returns:
            New conversation id
        """
        now = datetime.utcnow()
        record = ConversationRecord(
            owner_id=owner_id,
            company_id=company_id,
            agent_type=agent_type,
            messages=messages,
            metadata=metadata or {},
            created_at=now,
            updated_at=now,
        )

        doc = record.model_dump(exclude={"id"})
        result = await self.collection.insert_one(doc)

        conversation_id = str(result.inserted_id)
        logger.info(f"Created conversation {conversation_id} ({len(messages)} messages, owner={owner_id})")
        return conversation_id

    async def update(self, conversation_id: str, messages: List[Message]) -> bool:
        """
        Replace the message log of a conversation

        Args:
            conversation_id: MongoDB document ID
            messages: Full message log (without system message)

        Returns:
            True if a conversation was updated, False if not found
        """
        object_id = self._object_id(conversation_id)
        if object_id is None:
            logger.warning(f"Cannot update conversation with invalid id: {conversation_id}")
            return False

        result = await self.collection.update_one(
            {"_id": object_id},
            {
                "$set": {
                    "messages": [m.model_dump() for m in messages],
                    "updated_at": datetime.utcnow(),
                }
            },
        )
        return result.matched_count > 0

