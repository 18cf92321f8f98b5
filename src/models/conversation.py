"""
Conversation data model for agent conversations

Represents the ordered message log of a conversation stored in MongoDB
"""

from datetime import datetime as dt
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ToolInvocation(BaseModel):
    """A tool call requested by the model"""

    name: str = Field(..., description="Tool name")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Arguments chosen by the model")


class Message(BaseModel):
    """One entry of a conversation log"""

    role: Literal["system", "user", "assistant", "tool"]
    content: str = ""
    name: Optional[str] = Field(None, description="Tool name for tool results")
    tool_call: Optional[ToolInvocation] = Field(None, description="Tool invocation requested by the assistant")


class ConversationRecord(BaseModel):
    """Persisted conversation (message log excludes the system message)"""

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={dt: lambda v: v.isoformat()}
    )

    # MongoDB will generate this
    id: Optional[str] = Field(None, alias="_id", description="MongoDB document ID")

    owner_id: Optional[str] = Field(None, description="User that owns the conversation")
    company_id: Optional[str] = Field(None, description="Company of the owner")
    agent_type: Optional[str] = Field(None, description="Agent (or orchestrator) that created it")
    messages: List[Message] = Field(default_factory=list, description="Ordered message log")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Model configuration etc.")

    created_at: Optional[dt] = Field(None, description="Record creation timestamp")
    updated_at: Optional[dt] = Field(None, description="Record update timestamp")


class NewConversation(BaseModel):
    """Caller did not supply a conversation id; one is minted on first save"""

    kind: Literal["new"] = "new"

    @property
    def conversation_id(self) -> None:
        return None


class ContinuingConversation(BaseModel):
    """Caller continues an existing conversation"""

    kind: Literal["continuing"] = "continuing"
    conversation_id: str


ConversationRef = Union[NewConversation, ContinuingConversation]


def resolve_conversation(conversation_id: Optional[str]) -> ConversationRef:
    """
    Decide once whether a call starts or continues a conversation

    Args:
        conversation_id: Id supplied by the caller, if any

    Returns:
        NewConversation when the id is missing or blank, else ContinuingConversation
    """
    if conversation_id and conversation_id.strip():
        return ContinuingConversation(conversation_id=conversation_id.strip())
    return NewConversation()
