import copy
from typing import Any, Callable, Optional, Union

from agent.knowledge import KnowledgeAugmenter
from commerce.models import (
    CancelOrderOutcome,
    OrderLookup,
    OrderLookupStatus,
    OrderSummary,
    ReturnEligibility,
    TrackingInfo,
)
from llm.base import BaseLLMClient, ReasoningResponse, StopReason, ToolCall
from store.memory import InMemoryStore
from tools.dispatcher import ToolDispatcher


def final(text: str, input_tokens: int = 10, output_tokens: int = 5) -> ReasoningResponse:
    return ReasoningResponse(text=text, stop_reason=StopReason.END_TURN, input_tokens=input_tokens, output_tokens=output_tokens)


def tool_use(*calls: tuple, text: str = "", input_tokens: int = 10, output_tokens: int = 5) -> ReasoningResponse:
    """tool_use(("call_1", "lookup_order", {...}), ...)"""
    return ReasoningResponse(
        text=text,
        stop_reason=StopReason.TOOL_USE,
        tool_calls=[ToolCall(id=call_id, name=name, arguments=args) for call_id, name, args in calls],
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )


class FakeLLM(BaseLLMClient):
    """Shared tool-exchange format for the scripted models: one results message per round trip."""

    model = "fake-model"

    def tool_exchange_messages(self, response, results):
        assistant = {
            "role": "assistant",
            "content": response.text or None,
            "tool_calls": [
                {"id": call.id, "name": call.name, "arguments": call.arguments}
                for call in response.tool_calls
            ],
        }
        tool_results = {
            "role": "tool_results",
            "content": [
                {"tool_call_id": call.id, "name": call.name, "content": result.to_model_content()}
                for call, result in results
            ],
        }
        return [assistant, tool_results]


class ScriptedLLM(FakeLLM):
    """Returns queued responses in order; a callable entry is invoked with the messages."""

    def __init__(self, responses: list[Union[ReasoningResponse, Callable[[list[dict]], ReasoningResponse], Exception]]):
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def complete(self, system, messages, tools):
        self.calls.append({"system": system, "messages": copy.deepcopy(messages), "tools": [t.name.value for t in tools]})
        if not self.responses:
            raise AssertionError("ScriptedLLM ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(messages)
        return response


class AlwaysToolLLM(FakeLLM):
    def __init__(self, tool_name: str = "navigate_customer", args: Optional[dict] = None):
        self.tool_name = tool_name
        self.args = args if args is not None else {"url": "/collections/all", "label": "Shop all"}
        self.calls = 0

    async def complete(self, system, messages, tools):
        self.calls += 1
        return tool_use((f"call_{self.calls}", self.tool_name, dict(self.args)), text=f"step {self.calls}")


class FakeStorefront:
    def __init__(self, catalog: Any = None, cart: Any = None, policies: str = "Returns accepted within 30 days.", details: Any = None):
        self.catalog = catalog if catalog is not None else {"products": []}
        self.cart = cart if cart is not None else {}
        self.policies = policies
        self.details = details if details is not None else {"id": "gid://shopify/Product/1", "title": "Lamp"}
        self.calls: list[tuple[str, dict]] = []
        self.fail_with: Optional[Exception] = None

    async def _record(self, name: str, **kwargs):
        self.calls.append((name, kwargs))
        if self.fail_with is not None:
            raise self.fail_with

    async def search_products(self, query, context=""):
        await self._record("search_products", query=query, context=context)
        return self.catalog

    async def get_product_details(self, product_id):
        await self._record("get_product_details", product_id=product_id)
        return self.details

    async def search_policies(self, query, context=""):
        await self._record("search_policies", query=query, context=context)
        return self.policies

    async def update_cart(self, **kwargs):
        await self._record("update_cart", **kwargs)
        return self.cart

    async def get_cart(self, cart_id):
        await self._record("get_cart", cart_id=cart_id)
        return self.cart


def found_order(tracking_number: str = "1Z999AA10123456784") -> OrderLookup:
    return OrderLookup(
        status=OrderLookupStatus.FOUND,
        customerEmail="a@b.com",
        order=OrderSummary(
            id="gid://shopify/Order/1001",
            name="#1001",
            financialStatus="PAID",
            fulfillmentStatus="FULFILLED",
            tracking=[TrackingInfo(number=tracking_number, url="https://track.example/1Z")],
            createdAt="2026-10-01T10:00:00Z",
        ),
    )


class FakeAdmin:
    def __init__(self, lookup: Optional[OrderLookup] = None):
        self.lookup = lookup or found_order()
        self.calls: list[tuple[str, tuple]] = []
        self.metafields: Any = {"Delivery Time": "3-5 days"}

    async def lookup_order(self, order_number, email=None, phone=None):
        self.calls.append(("lookup_order", (order_number, email, phone)))
        return self.lookup

    async def check_return_eligibility(self, order_id):
        self.calls.append(("check_return_eligibility", (order_id,)))
        return ReturnEligibility()

    async def cancel_order(self, order_id, order_name):
        self.calls.append(("cancel_order", (order_id, order_name)))
        return CancelOrderOutcome(success=True, message=f"Order {order_name} has been cancelled.")

    async def get_product_metafields(self, product_id):
        self.calls.append(("get_product_metafields", (product_id,)))
        if isinstance(self.metafields, Exception):
            raise self.metafields
        return self.metafields


def make_dispatcher(
    store: Optional[InMemoryStore] = None,
    storefront: Optional[FakeStorefront] = None,
    admin: Optional[FakeAdmin] = None,
) -> ToolDispatcher:
    store = store or InMemoryStore()
    return ToolDispatcher(
        storefront=storefront or FakeStorefront(),
        admin=admin or FakeAdmin(),
        knowledge=KnowledgeAugmenter(store),
        conversations=store,
        returns=store,
    )
