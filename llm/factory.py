from .base import BaseLLMClient
from .openai_client import OpenAIClient
from core.config import Settings


def get_llm_client(settings: Settings) -> BaseLLMClient:
    """
    Factory function to get the reasoning model client.
    For now, it defaults to OpenAIClient.
    """
    return OpenAIClient(
        api_key=settings.openai_api_key,
        model=settings.llm_model,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )
