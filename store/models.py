from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ConversationStatus = Literal["active", "closed", "escalated"]
TurnRole = Literal["user", "assistant", "system", "human_agent"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(BaseModel):
    id: str
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    status: ConversationStatus = "active"
    page_url: Optional[str] = None
    message_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_message_at: Optional[datetime] = None


class TurnMetadata(BaseModel):
    model: Optional[str] = None
    tokens_input: Optional[int] = None
    tokens_output: Optional[int] = None
    latency_ms: Optional[int] = None
    tools_used: Optional[list[str]] = None


class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    conversation_id: str
    role: TurnRole
    content: str
    metadata: TurnMetadata = Field(default_factory=TurnMetadata)
    created_at: datetime = Field(default_factory=utcnow)


class KnowledgeDocument(BaseModel):
    id: str
    title: str
    content: str
    category: str = "general"
    enabled: bool = True
    priority: int = 0


class ReturnRequest(BaseModel):
    id: str
    order_id: str
    line_item_ids: list[str]
    reason: str
    status: Literal["pending", "approved", "rejected", "completed"] = "pending"
    conversation_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class PresetAction(BaseModel):
    id: str
    label: str
    icon: str = ""
    prompt: str
