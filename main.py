from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from api.main import app_router
from core.logging import setup_logging
import logging

from agent.knowledge import KnowledgeAugmenter
from agent.orchestrator import Orchestrator
from commerce.admin import AdminClient
from commerce.auth import CredentialCache
from core.config import Settings, load_settings
from core.rate_limit import AdmissionController
from llm.factory import get_llm_client
from mcp_integration.client import MCPClient
from services.ai_config import AiConfigCache
from services.chat import ChatService
from store.memory import InMemoryStore
from tools.dispatcher import ToolDispatcher

settings = load_settings()


def build_chat_service(settings: Settings, store: InMemoryStore, storefront: MCPClient, admin: AdminClient) -> ChatService:
    augmenter = KnowledgeAugmenter(store, limit=settings.knowledge_limit)
    dispatcher = ToolDispatcher(
        storefront=storefront,
        admin=admin,
        knowledge=augmenter,
        conversations=store,
        returns=store,
    )
    orchestrator = Orchestrator(get_llm_client(settings), dispatcher, max_iterations=settings.max_iterations)
    return ChatService(
        conversations=store,
        admission=AdmissionController(settings.rate_limit_max, settings.rate_limit_window_sec),
        orchestrator=orchestrator,
        augmenter=augmenter,
        ai_config=AiConfigCache(store, ttl_sec=settings.ai_config_ttl_sec),
        max_message_length=settings.max_message_length,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)
    logger.info("Application startup: Logging initialized")

    missing = settings.missing()
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    storefront = MCPClient(settings.mcp_server_url)
    try:
        await storefront.connect()
    except Exception as e:
        # Tool calls reconnect lazily
        logger.error(f"Failed to connect to storefront MCP: {e}")

    credentials = CredentialCache(
        settings.token_url,
        settings.shopify_client_id,
        settings.shopify_client_secret,
        margin_sec=settings.token_refresh_margin_sec,
        attempts=settings.token_refresh_attempts,
        backoff_sec=settings.token_refresh_backoff_sec,
    )
    admin = AdminClient(settings.admin_graphql_url, credentials)

    app.state.chat_service = build_chat_service(settings, InMemoryStore(), storefront, admin)

    yield

    await storefront.disconnect()
    await admin.aclose()
    await credentials.aclose()

    logger.info("Application shutdown")

app = FastAPI(title="Storefront Support Agent", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(app_router)
