import logging
import uuid
from typing import Optional

from agent.knowledge import KnowledgeAugmenter
from agent.orchestrator import Orchestrator
from core.errors import ConversationNotFound, RateLimitExceeded, ValidationFailed
from core.rate_limit import AdmissionController
from llm.prompts import build_system_prompt
from schemas.chat import ChatHistoryMessage, ChatResponse, SessionResponse
from services.ai_config import AiConfigCache
from store.base import ConversationStore
from store.models import TurnMetadata
from tools.models import ToolContext

logger = logging.getLogger(__name__)


class ChatService:
    """
    Entry point for widget traffic: validates and rate-limits a message,
    runs the tool loop over the stored history and persists both turns.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        admission: AdmissionController,
        orchestrator: Orchestrator,
        augmenter: KnowledgeAugmenter,
        ai_config: AiConfigCache,
        max_message_length: int = 5000,
    ):
        self.conversations = conversations
        self.admission = admission
        self.orchestrator = orchestrator
        self.augmenter = augmenter
        self.ai_config = ai_config
        self.max_message_length = max_message_length

    async def start_session(
        self,
        session_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        customer_name: Optional[str] = None,
        page_url: Optional[str] = None,
    ) -> SessionResponse:
        config = await self.ai_config.get()

        if session_id:
            existing = await self.conversations.find_active_conversation(session_id)
            if existing is not None:
                turns = await self.conversations.list_turns(existing.id)
                logger.info(f"Resuming conversation {existing.id} for session {session_id}")
                return SessionResponse(
                    sessionId=session_id,
                    conversationId=existing.id,
                    greeting=config.greeting,
                    presetActions=config.preset_actions,
                    messages=[
                        ChatHistoryMessage(
                            role=turn.role,
                            content=turn.content,
                            timestamp=int(turn.created_at.timestamp() * 1000),
                        )
                        for turn in turns
                        if turn.role in ("user", "assistant")
                    ],
                )

        new_session_id = session_id or str(uuid.uuid4())
        conversation = await self.conversations.create_conversation(
            customer_email=customer_email,
            customer_name=customer_name,
            page_url=page_url,
            metadata={"sessionId": new_session_id},
        )
        await self.conversations.append_turn(conversation.id, "assistant", config.greeting)

        return SessionResponse(
            sessionId=new_session_id,
            conversationId=conversation.id,
            greeting=config.greeting,
            presetActions=config.preset_actions,
        )

    async def handle_message(
        self,
        session_key: Optional[str],
        conversation_id: Optional[str],
        message: Optional[str] = None,
        preset_action_id: Optional[str] = None,
    ) -> ChatResponse:
        if not conversation_id:
            raise ValidationFailed("conversationId is required")
        if not message and not preset_action_id:
            raise ValidationFailed("Either message or presetActionId is required")

        limit_key = session_key or conversation_id
        if not self.admission.allow(limit_key):
            logger.warning(f"Rate limit exceeded for {limit_key}")
            raise RateLimitExceeded()

        if message and len(message) > self.max_message_length:
            raise ValidationFailed(
                f"Message is too long. Please keep it under {self.max_message_length} characters."
            )

        conversation = await self.conversations.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)

        config = await self.ai_config.get()
        text = message or ""
        if preset_action_id:
            preset = config.find_preset(preset_action_id)
            if preset is not None:
                text = preset.prompt
        if not text:
            raise ValidationFailed("Could not resolve message text")

        context = ToolContext(
            conversation_id=conversation.id,
            customer_email=conversation.customer_email,
            page_url=conversation.page_url,
            cart_id=conversation.metadata.get("cartId"),
        )

        knowledge = await self.augmenter.augment(text)
        system_prompt = build_system_prompt(config.system_prompt, config.brand_voice, knowledge, context)

        history = await self.conversations.list_turns(conversation.id)
        await self.conversations.append_turn(conversation.id, "user", text)

        outcome = await self.orchestrator.run(system_prompt, history, text, context, status=conversation.status)

        cart = outcome.artifacts.cart
        if cart is not None and cart.cartId and cart.cartId != context.cart_id:
            await self.conversations.update_metadata(conversation.id, {"cartId": cart.cartId})

        await self.conversations.append_turn(
            conversation.id,
            "assistant",
            outcome.response,
            TurnMetadata(
                model=outcome.model,
                tokens_input=outcome.usage.input_tokens,
                tokens_output=outcome.usage.output_tokens,
                latency_ms=outcome.usage.latency_ms,
                tools_used=outcome.tools_used,
            ),
        )
        logger.info(
            f"Conversation {conversation.id}: {outcome.usage.reasoning_calls} reasoning calls, "
            f"tools={outcome.tools_used}, tokens={outcome.usage.input_tokens}/{outcome.usage.output_tokens}, "
            f"latency={outcome.usage.latency_ms}ms"
        )

        return ChatResponse(
            response=outcome.response,
            navigationButtons=outcome.artifacts.navigation_buttons,
            productCards=outcome.artifacts.product_cards,
            cartData=outcome.artifacts.cart,
            toolsUsed=outcome.tools_used,
            conversationStatus=outcome.conversation_status,
        )
