import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load env vars
load_dotenv()

REQUIRED_VARS = (
    "SHOPIFY_SHOP",
    "SHOPIFY_CLIENT_ID",
    "SHOPIFY_CLIENT_SECRET",
    "OPENAI_API_KEY",
)


@dataclass
class Settings:
    shopify_shop: str
    shopify_client_id: str
    shopify_client_secret: str
    shopify_api_version: str
    mcp_server_url: str
    openai_api_key: str
    llm_model: str
    llm_max_tokens: int
    llm_temperature: float
    max_iterations: int
    rate_limit_max: int
    rate_limit_window_sec: float
    max_message_length: int
    token_refresh_margin_sec: float
    token_refresh_attempts: int
    token_refresh_backoff_sec: float
    knowledge_limit: int
    ai_config_ttl_sec: float
    cors_origin: str
    log_level: str

    @property
    def shop_base_url(self) -> str:
        return f"https://{self.shopify_shop}.myshopify.com"

    @property
    def token_url(self) -> str:
        return f"{self.shop_base_url}/admin/oauth/access_token"

    @property
    def admin_graphql_url(self) -> str:
        return f"{self.shop_base_url}/admin/api/{self.shopify_api_version}/graphql.json"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]

    def missing(self) -> list[str]:
        """Names of required environment variables that are not set."""
        values = {
            "SHOPIFY_SHOP": self.shopify_shop,
            "SHOPIFY_CLIENT_ID": self.shopify_client_id,
            "SHOPIFY_CLIENT_SECRET": self.shopify_client_secret,
            "OPENAI_API_KEY": self.openai_api_key,
        }
        return [name for name in REQUIRED_VARS if not values[name]]


def load_settings() -> Settings:
    shop = os.getenv("SHOPIFY_SHOP", "").strip()
    return Settings(
        shopify_shop=shop,
        shopify_client_id=os.getenv("SHOPIFY_CLIENT_ID", ""),
        shopify_client_secret=os.getenv("SHOPIFY_CLIENT_SECRET", ""),
        shopify_api_version=os.getenv("SHOPIFY_API_VERSION", "2025-01"),
        mcp_server_url=os.getenv("MCP_SERVER_URL", f"https://{shop or 'localhost'}.myshopify.com/api/mcp"),
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
        llm_max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4096")),
        llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
        max_iterations=int(os.getenv("AGENT_MAX_ITERATIONS", "10")),
        rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", "20")),
        rate_limit_window_sec=float(os.getenv("RATE_LIMIT_WINDOW_SEC", "60")),
        max_message_length=int(os.getenv("MAX_MESSAGE_LENGTH", "5000")),
        token_refresh_margin_sec=float(os.getenv("TOKEN_REFRESH_MARGIN_SEC", "60")),
        token_refresh_attempts=int(os.getenv("TOKEN_REFRESH_ATTEMPTS", "3")),
        token_refresh_backoff_sec=float(os.getenv("TOKEN_REFRESH_BACKOFF_SEC", "0.5")),
        knowledge_limit=int(os.getenv("KNOWLEDGE_LIMIT", "5")),
        ai_config_ttl_sec=float(os.getenv("AI_CONFIG_TTL_SEC", "300")),
        cors_origin=os.getenv("CORS_ORIGIN", "*"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
