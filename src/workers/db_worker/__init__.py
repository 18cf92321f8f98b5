"""
DB Worker module for MongoDB Atlas operations

Provides the database client and the conversation store
"""

from .mongo_client import MongoDBClient
from .conversation_repo import ConversationRepository

__all__ = [
    "MongoDBClient",
    "ConversationRepository",
]
