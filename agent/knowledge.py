import logging
import re

from store.base import KnowledgeStore
from store.models import KnowledgeDocument

logger = logging.getLogger(__name__)

MAX_TERMS = 5


def search_terms(query: str) -> list[str]:
    """Alphanumeric words of two or more characters, at most five of them."""
    cleaned = re.sub(r"[^a-z0-9\s]", " ", query.lower())
    return [term for term in cleaned.split() if len(term) >= 2][:MAX_TERMS]


class KnowledgeAugmenter:
    def __init__(self, store: KnowledgeStore, limit: int = 5):
        self.store = store
        self.limit = limit

    async def search(self, query: str) -> list[KnowledgeDocument]:
        """Keyword search used by the knowledge tool; falls back to the top-priority documents."""
        terms = search_terms(query)
        if not terms:
            return await self.store.top_priority(self.limit)
        try:
            return await self.store.search(terms, self.limit)
        except Exception as e:
            logger.error(f"Knowledge search failed, falling back to top priority documents: {e}")
            return await self.store.top_priority(self.limit)

    async def augment(self, query: str) -> str:
        """Background text for the system prompt. Advisory only: any failure yields ''."""
        terms = search_terms(query)
        if not terms:
            return ""
        try:
            docs = await self.store.search(terms, self.limit)
        except Exception as e:
            logger.warning(f"Knowledge augmentation skipped: {e}")
            return ""

        if not docs:
            return ""
        return "\n\n## Relevant Knowledge Base Information\n" + "\n\n".join(
            f"### {doc.title}\n{doc.content}" for doc in docs
        )
