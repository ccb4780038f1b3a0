from typing import Any, Iterable, Optional, Protocol

from store.models import (
    Conversation,
    ConversationStatus,
    ConversationTurn,
    KnowledgeDocument,
    ReturnRequest,
    TurnMetadata,
    TurnRole,
)


class ConversationStore(Protocol):
    async def create_conversation(
        self,
        customer_email: Optional[str] = None,
        customer_name: Optional[str] = None,
        page_url: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Conversation: ...

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]: ...

    async def find_active_conversation(self, session_id: str) -> Optional[Conversation]: ...

    async def append_turn(
        self,
        conversation_id: str,
        role: TurnRole,
        content: str,
        metadata: Optional[TurnMetadata] = None,
    ) -> ConversationTurn: ...

    async def list_turns(self, conversation_id: str) -> list[ConversationTurn]: ...

    async def update_status(self, conversation_id: str, status: ConversationStatus) -> Conversation: ...

    async def update_metadata(self, conversation_id: str, updates: dict[str, Any]) -> Conversation: ...


class KnowledgeStore(Protocol):
    async def search(self, terms: list[str], limit: int) -> list[KnowledgeDocument]: ...

    async def top_priority(self, limit: int) -> list[KnowledgeDocument]: ...


class ReturnRequestStore(Protocol):
    async def create_return_request(
        self,
        order_id: str,
        line_item_ids: list[str],
        reason: str,
        conversation_id: Optional[str] = None,
    ) -> ReturnRequest: ...


class AiConfigStore(Protocol):
    async def get_config_values(self, keys: Iterable[str]) -> dict[str, str]: ...
