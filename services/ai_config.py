import json
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from pydantic import ValidationError

from llm.prompts import SYSTEM_PROMPT
from store.base import AiConfigStore
from store.models import PresetAction

logger = logging.getLogger(__name__)

DEFAULT_GREETING = "Hi there! How can I help you today?"
CONFIG_KEYS = ("system_prompt", "brand_voice", "greeting", "preset_actions")


@dataclass
class AiConfig:
    system_prompt: str = SYSTEM_PROMPT
    brand_voice: str = ""
    greeting: str = DEFAULT_GREETING
    preset_actions: list[PresetAction] = field(default_factory=list)

    def find_preset(self, preset_id: str) -> Optional[PresetAction]:
        return next((p for p in self.preset_actions if p.id == preset_id), None)


def parse_preset_actions(raw: Optional[str]) -> list[PresetAction]:
    if not raw:
        return []
    try:
        return [PresetAction.model_validate(item) for item in json.loads(raw)]
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Ignoring malformed preset_actions config: {e}")
        return []


class AiConfigCache:
    """Caches the admin-editable AI configuration for a short TTL."""

    def __init__(self, store: AiConfigStore, ttl_sec: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.store = store
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._config: Optional[AiConfig] = None
        self._expires_at = 0.0

    async def get(self) -> AiConfig:
        if self._config is not None and self._clock() < self._expires_at:
            return self._config

        values = await self.store.get_config_values(CONFIG_KEYS)
        self._config = AiConfig(
            system_prompt=values.get("system_prompt") or SYSTEM_PROMPT,
            brand_voice=values.get("brand_voice") or "",
            greeting=values.get("greeting") or DEFAULT_GREETING,
            preset_actions=parse_preset_actions(values.get("preset_actions")),
        )
        self._expires_at = self._clock() + self.ttl_sec
        return self._config

    def invalidate(self):
        self._config = None
