import asyncio
import json

import pytest

from agent.orchestrator import FALLBACK_RESPONSE, Orchestrator
from core.errors import ReasoningUnavailable
from llm.base import ReasoningResponse, StopReason, ToolCall
from store.memory import InMemoryStore
from tests.helpers import AlwaysToolLLM, FakeStorefront, ScriptedLLM, final, make_dispatcher, tool_use
from tools.models import ToolContext


def _run(orchestrator: Orchestrator, utterance: str = "hello", history=(), context=None, status="active"):
    context = context or ToolContext(conversation_id="c1")
    return asyncio.run(orchestrator.run("system prompt", list(history), utterance, context, status=status))


def test_plain_answer_takes_one_call():
    llm = ScriptedLLM([final("Hi! How can I help?", input_tokens=12, output_tokens=7)])
    outcome = _run(Orchestrator(llm, make_dispatcher()))

    assert outcome.response == "Hi! How can I help?"
    assert outcome.tools_used == []
    assert outcome.usage.reasoning_calls == 1
    assert (outcome.usage.input_tokens, outcome.usage.output_tokens) == (12, 7)
    assert outcome.model == "fake-model"
    assert llm.calls[0]["messages"] == [{"role": "user", "content": "hello"}]
    assert len(llm.calls[0]["tools"]) == 12


def test_order_status_question_runs_lookup_then_answers():
    def answer(messages):
        results = messages[-1]
        assert results["role"] == "tool_results"
        (entry,) = results["content"]
        assert entry["tool_call_id"] == "call_1"
        payload = json.loads(entry["content"])
        tracking = payload["data"]["order"]["tracking"][0]["number"]
        return final(f"Your order #1001 has shipped. Tracking number: {tracking}.")

    llm = ScriptedLLM([
        tool_use(("call_1", "lookup_order", {"order_number": "1001", "email": "a@b.com"})),
        answer,
    ])
    outcome = _run(Orchestrator(llm, make_dispatcher()), "Where is my order #1001? My email is a@b.com")

    assert outcome.tools_used == ["lookup_order"]
    assert "1Z999AA10123456784" in outcome.response
    assert outcome.usage.reasoning_calls == 2
    assert outcome.artifacts.navigation_buttons == []
    assert outcome.artifacts.product_cards == []


def test_loop_is_bounded_by_max_iterations():
    llm = AlwaysToolLLM()
    outcome = _run(Orchestrator(llm, make_dispatcher(), max_iterations=10))

    assert llm.calls == 10
    assert outcome.usage.reasoning_calls == 10
    assert outcome.response == "step 10"
    assert outcome.tools_used == ["navigate_customer"]
    assert len(outcome.artifacts.navigation_buttons) == 10


def test_bounded_loop_without_text_falls_back():
    llm = ScriptedLLM([tool_use(("c1", "navigate_customer", {"url": "/", "label": "Home"}))])
    outcome = _run(Orchestrator(llm, make_dispatcher(), max_iterations=1))

    assert outcome.response == FALLBACK_RESPONSE


def test_every_call_in_a_batch_is_answered_in_order():
    captured = {}

    def answer(messages):
        captured["assistant"] = messages[-2]
        captured["results"] = messages[-1]["content"]
        return final("done")

    llm = ScriptedLLM([
        tool_use(
            ("a", "navigate_customer", {"url": "/sale", "label": "Sale"}),
            ("b", "no_such_tool", {}),
            ("c", "search_products", {"query": "lamp"}),
        ),
        answer,
    ])
    outcome = _run(Orchestrator(llm, make_dispatcher()))

    assert [c["id"] for c in captured["assistant"]["tool_calls"]] == ["a", "b", "c"]
    assert [r["tool_call_id"] for r in captured["results"]] == ["a", "b", "c"]
    failed = json.loads(captured["results"][1]["content"])
    assert failed == {"success": False, "error": "Unknown tool: no_such_tool"}
    assert outcome.tools_used == ["navigate_customer", "no_such_tool", "search_products"]


def test_tools_used_is_deduplicated_in_first_use_order():
    llm = ScriptedLLM([
        tool_use(("1", "search_products", {"query": "lamp"})),
        tool_use(("2", "navigate_customer", {"url": "/", "label": "Home"}), ("3", "search_products", {"query": "bulb"})),
        final("ok"),
    ])
    outcome = _run(Orchestrator(llm, make_dispatcher()))

    assert outcome.tools_used == ["search_products", "navigate_customer"]


def test_token_usage_sums_across_calls():
    llm = ScriptedLLM([
        tool_use(("1", "navigate_customer", {"url": "/", "label": "Home"}), input_tokens=100, output_tokens=20),
        final("ok", input_tokens=150, output_tokens=30),
    ])
    outcome = _run(Orchestrator(llm, make_dispatcher()))

    assert (outcome.usage.input_tokens, outcome.usage.output_tokens) == (250, 50)


def test_max_tokens_ends_the_turn_with_partial_text():
    llm = ScriptedLLM([ReasoningResponse(text="Here is a partial ans", stop_reason=StopReason.MAX_TOKENS)])
    outcome = _run(Orchestrator(llm, make_dispatcher()))

    assert outcome.response == "Here is a partial ans"
    assert outcome.usage.reasoning_calls == 1


def test_other_stop_reason_with_empty_text_uses_fallback():
    llm = ScriptedLLM([ReasoningResponse(text="", stop_reason=StopReason.OTHER)])
    outcome = _run(Orchestrator(llm, make_dispatcher()))

    assert outcome.response == FALLBACK_RESPONSE


def test_reasoning_failure_propagates():
    llm = ScriptedLLM([ReasoningUnavailable("upstream 500")])

    with pytest.raises(ReasoningUnavailable):
        _run(Orchestrator(llm, make_dispatcher()))


def test_undecodable_arguments_become_a_failed_result():
    captured = {}

    def answer(messages):
        captured["results"] = messages[-1]["content"]
        return final("Could you repeat that?")

    bad_call = ToolCall(id="x", name="search_products", arguments_error="arguments are not valid JSON")
    llm = ScriptedLLM([ReasoningResponse(text="", stop_reason=StopReason.TOOL_USE, tool_calls=[bad_call]), answer])
    storefront = FakeStorefront()
    _run(Orchestrator(llm, make_dispatcher(storefront=storefront)))

    payload = json.loads(captured["results"][0]["content"])
    assert payload["success"] is False
    assert payload["error"].startswith("Invalid arguments for search_products")
    assert storefront.calls == []


def test_artifacts_do_not_leak_between_turns():
    catalog = {"products": [{"product_id": "p1", "title": "Lamp"}]}
    llm = ScriptedLLM([
        tool_use(("1", "search_products", {"query": "lamp"})),
        final("Here are some lamps"),
        final("You're welcome"),
    ])
    orchestrator = Orchestrator(llm, make_dispatcher(storefront=FakeStorefront(catalog=catalog)))

    first = _run(orchestrator)
    second = _run(orchestrator)

    assert [c.id for c in first.artifacts.product_cards] == ["p1"]
    assert second.artifacts.product_cards == []
    assert second.tools_used == []


def test_escalation_changes_outcome_status():
    store = InMemoryStore()
    conversation = asyncio.run(store.create_conversation())
    llm = ScriptedLLM([
        tool_use(("1", "escalate_to_human", {"reason": "Customer asked for a person", "priority": "high"})),
        final("I've passed this to our team."),
    ])
    outcome = _run(
        Orchestrator(llm, make_dispatcher(store=store)),
        context=ToolContext(conversation_id=conversation.id),
    )

    assert outcome.conversation_status == "escalated"
    assert store.conversations[conversation.id].status == "escalated"


def test_status_is_passed_through_without_escalation():
    llm = ScriptedLLM([final("ok")])
    outcome = _run(Orchestrator(llm, make_dispatcher()), status="closed")

    assert outcome.conversation_status == "closed"


def test_history_is_replayed_before_the_utterance():
    store = InMemoryStore()
    conversation = asyncio.run(store.create_conversation())
    asyncio.run(store.append_turn(conversation.id, "assistant", "Hi there!"))
    asyncio.run(store.append_turn(conversation.id, "user", "I need a lamp"))
    asyncio.run(store.append_turn(conversation.id, "system", "internal note"))
    history = asyncio.run(store.list_turns(conversation.id))

    llm = ScriptedLLM([final("ok")])
    _run(Orchestrator(llm, make_dispatcher()), "a red one", history=history)

    assert llm.calls[0]["messages"] == [
        {"role": "assistant", "content": "Hi there!"},
        {"role": "user", "content": "I need a lamp"},
        {"role": "user", "content": "a red one"},
    ]


class CartSequenceStorefront(FakeStorefront):
    """Each cart call returns the next snapshot in line."""

    def __init__(self, *carts):
        super().__init__()
        self.carts = list(carts)

    async def update_cart(self, **kwargs):
        await self._record("update_cart", **kwargs)
        return self.carts.pop(0)

    async def get_cart(self, cart_id):
        await self._record("get_cart", cart_id=cart_id)
        return self.carts.pop(0)


def test_last_cart_snapshot_of_the_turn_wins():
    storefront = CartSequenceStorefront(
        {"id": "cart-1", "cost": {"total_amount": {"amount": "10.00", "currency": "USD"}}, "lines": []},
        {"id": "cart-1", "cost": {"total_amount": {"amount": "25.00", "currency": "USD"}}, "lines": []},
    )
    llm = ScriptedLLM([
        tool_use(
            ("1", "manage_cart", {"cart_id": "cart-1", "add_items": [{"product_variant_id": "v1", "quantity": 1}]}),
            ("2", "get_cart", {"cart_id": "cart-1"}),
        ),
        final("Your cart total is 25.00."),
    ])
    outcome = _run(Orchestrator(llm, make_dispatcher(storefront=storefront)))

    assert outcome.artifacts.cart.totalAmount == "25.00"
    assert outcome.tools_used == ["manage_cart", "get_cart"]


def test_failed_cart_call_keeps_the_earlier_snapshot():
    storefront = CartSequenceStorefront(
        {"id": "cart-1", "cost": {"total_amount": {"amount": "10.00", "currency": "USD"}}, "lines": []},
    )
    llm = ScriptedLLM([
        tool_use(("1", "manage_cart", {"add_items": [{"product_variant_id": "v1", "quantity": 1}]})),
        # No cart id in the arguments or the context, so this call fails
        tool_use(("2", "get_cart", {})),
        final("Added to your cart."),
    ])
    outcome = _run(Orchestrator(llm, make_dispatcher(storefront=storefront)))

    assert outcome.artifacts.cart.cartId == "cart-1"
    assert outcome.artifacts.cart.totalAmount == "10.00"
    assert [name for name, _ in storefront.calls] == ["update_cart"]
