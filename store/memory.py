import logging
import uuid
from typing import Any, Iterable, Optional

from store.models import (
    Conversation,
    ConversationStatus,
    ConversationTurn,
    KnowledgeDocument,
    ReturnRequest,
    TurnMetadata,
    TurnRole,
    utcnow,
)

logger = logging.getLogger(__name__)


class InMemoryStore:
    """
    Process-local implementation of every store interface.
    In production, back these with a database.
    """

    def __init__(
        self,
        knowledge: Optional[list[KnowledgeDocument]] = None,
        ai_config: Optional[dict[str, str]] = None,
    ):
        self.conversations: dict[str, Conversation] = {}
        self.turns: dict[str, list[ConversationTurn]] = {}
        self.knowledge: list[KnowledgeDocument] = list(knowledge or [])
        self.return_requests: list[ReturnRequest] = []
        self.ai_config: dict[str, str] = dict(ai_config or {})

    # Conversations

    async def create_conversation(
        self,
        customer_email: Optional[str] = None,
        customer_name: Optional[str] = None,
        page_url: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Conversation:
        conversation = Conversation(
            id=str(uuid.uuid4()),
            customer_email=customer_email,
            customer_name=customer_name,
            page_url=page_url,
            metadata=metadata or {},
        )
        self.conversations[conversation.id] = conversation
        self.turns[conversation.id] = []
        logger.info(f"Created conversation {conversation.id}")
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self.conversations.get(conversation_id)

    async def find_active_conversation(self, session_id: str) -> Optional[Conversation]:
        matches = [
            c for c in self.conversations.values()
            if c.status == "active" and c.metadata.get("sessionId") == session_id
        ]
        if not matches:
            return None
        return max(matches, key=lambda c: c.created_at)

    async def append_turn(
        self,
        conversation_id: str,
        role: TurnRole,
        content: str,
        metadata: Optional[TurnMetadata] = None,
    ) -> ConversationTurn:
        conversation = self._require(conversation_id)
        turn = ConversationTurn(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            role=role,
            content=content,
            metadata=metadata or TurnMetadata(),
        )
        self.turns.setdefault(conversation_id, []).append(turn)
        now = utcnow()
        self.conversations[conversation_id] = conversation.model_copy(update={
            "message_count": len(self.turns[conversation_id]),
            "last_message_at": now,
            "updated_at": now,
        })
        return turn

    async def list_turns(self, conversation_id: str) -> list[ConversationTurn]:
        return list(self.turns.get(conversation_id, []))

    async def update_status(self, conversation_id: str, status: ConversationStatus) -> Conversation:
        conversation = self._require(conversation_id)
        updated = conversation.model_copy(update={"status": status, "updated_at": utcnow()})
        self.conversations[conversation_id] = updated
        logger.info(f"Conversation {conversation_id} status -> {status}")
        return updated

    async def update_metadata(self, conversation_id: str, updates: dict[str, Any]) -> Conversation:
        conversation = self._require(conversation_id)
        updated = conversation.model_copy(update={
            "metadata": {**conversation.metadata, **updates},
            "updated_at": utcnow(),
        })
        self.conversations[conversation_id] = updated
        return updated

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation {conversation_id}")
        return conversation

    # Knowledge

    async def search(self, terms: list[str], limit: int) -> list[KnowledgeDocument]:
        def matches(doc: KnowledgeDocument) -> bool:
            title = doc.title.lower()
            content = doc.content.lower()
            return any(term in title or term in content for term in terms)

        hits = [doc for doc in self.knowledge if doc.enabled and matches(doc)]
        hits.sort(key=lambda d: d.priority, reverse=True)
        return hits[:limit]

    async def top_priority(self, limit: int) -> list[KnowledgeDocument]:
        docs = [doc for doc in self.knowledge if doc.enabled]
        docs.sort(key=lambda d: d.priority, reverse=True)
        return docs[:limit]

    # Return requests

    async def create_return_request(
        self,
        order_id: str,
        line_item_ids: list[str],
        reason: str,
        conversation_id: Optional[str] = None,
    ) -> ReturnRequest:
        request = ReturnRequest(
            id=uuid.uuid4().hex,
            order_id=order_id,
            line_item_ids=line_item_ids,
            reason=reason,
            conversation_id=conversation_id,
        )
        self.return_requests.append(request)
        return request

    # AI config

    async def get_config_values(self, keys: Iterable[str]) -> dict[str, str]:
        return {key: self.ai_config[key] for key in keys if key in self.ai_config}
