import asyncio

from llm.prompts import SYSTEM_PROMPT, build_system_prompt
from services.ai_config import DEFAULT_GREETING, AiConfigCache, parse_preset_actions
from store.memory import InMemoryStore
from tools.models import ToolContext


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_defaults_when_nothing_is_configured():
    config = asyncio.run(AiConfigCache(InMemoryStore()).get())

    assert config.system_prompt == SYSTEM_PROMPT
    assert config.greeting == DEFAULT_GREETING
    assert config.preset_actions == []


def test_config_is_cached_for_the_ttl():
    store = InMemoryStore(ai_config={"greeting": "Hello!"})
    clock = FakeClock()
    cache = AiConfigCache(store, ttl_sec=300, clock=clock)

    assert asyncio.run(cache.get()).greeting == "Hello!"
    store.ai_config["greeting"] = "Howdy!"
    clock.now = 299
    assert asyncio.run(cache.get()).greeting == "Hello!"
    clock.now = 300
    assert asyncio.run(cache.get()).greeting == "Howdy!"


def test_invalidate_forces_reload():
    store = InMemoryStore(ai_config={"brand_voice": "Formal"})
    cache = AiConfigCache(store)
    asyncio.run(cache.get())
    store.ai_config["brand_voice"] = "Playful"

    cache.invalidate()

    assert asyncio.run(cache.get()).brand_voice == "Playful"


def test_malformed_presets_are_ignored():
    assert parse_preset_actions("not json") == []
    assert parse_preset_actions('[{"id": "x"}]') == []
    assert [p.label for p in parse_preset_actions('[{"id": "a", "label": "Returns", "prompt": "I want to return"}]')] == ["Returns"]


def test_system_prompt_sections():
    prompt = build_system_prompt(
        "Base.",
        brand_voice="Warm.",
        knowledge="\n\n## Relevant Knowledge Base Information\n### FAQ\nAnswer",
        context=ToolContext(conversation_id="c1", page_url="/products/lamp", cart_id="cart-1"),
    )

    assert prompt.startswith("Base.\n\n## Brand Voice\nWarm.")
    assert prompt.index("Relevant Knowledge Base") < prompt.index("## Session Context")
    assert "Customer is currently on: /products/lamp" in prompt
    assert "Customer cart ID: cart-1" in prompt
    assert "Customer email" not in prompt
    assert build_system_prompt("Base.", context=ToolContext(conversation_id="c1")) == "Base."
