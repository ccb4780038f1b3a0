import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from agent.knowledge import KnowledgeAugmenter
from commerce.admin import AdminClient
from commerce.models import ReturnSubmission
from mcp_integration.client import MCPClient
from schemas.chat import NavigationButton
from store.base import ConversationStore, ReturnRequestStore
from tools.artifacts import cart_from_payload, product_cards_from_payload
from tools.definitions import TOOL_SPECS
from tools.models import (
    AnswerStorePolicyArgs,
    CancelOrderArgs,
    CheckReturnEligibilityArgs,
    EscalateToHumanArgs,
    GetCartArgs,
    GetProductDetailsArgs,
    InitiateReturnArgs,
    LookupOrderArgs,
    ManageCartArgs,
    NavigateCustomerArgs,
    ResultKind,
    SearchKnowledgeBaseArgs,
    SearchProductsArgs,
    ToolArgs,
    ToolContext,
    ToolName,
    ToolResult,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any, ToolContext], Awaitable[ToolResult]]


def _soft_extract(tool: str, parse: Callable[[Any], Any], payload: Any, default: Any) -> Any:
    """UI artifacts are best effort: an odd payload shape must not fail a call that already succeeded."""
    try:
        return parse(payload)
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Could not build UI artifacts from {tool} result: {e}")
        return default


def _format_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in e['loc']) or 'arguments'}: {e['msg']}" for e in error.errors()
    )


class ToolDispatcher:
    """
    Executes one tool call and returns a ToolResult. Never raises: unknown
    tools, invalid arguments and failing calls all come back as
    success=False so the model can recover conversationally.
    """

    def __init__(
        self,
        storefront: MCPClient,
        admin: AdminClient,
        knowledge: KnowledgeAugmenter,
        conversations: ConversationStore,
        returns: ReturnRequestStore,
    ):
        self.storefront = storefront
        self.admin = admin
        self.knowledge = knowledge
        self.conversations = conversations
        self.returns = returns
        self._handlers: dict[str, Handler] = {
            ToolName.SEARCH_PRODUCTS.value: self._search_products,
            ToolName.GET_PRODUCT_DETAILS.value: self._get_product_details,
            ToolName.ANSWER_STORE_POLICY.value: self._answer_store_policy,
            ToolName.LOOKUP_ORDER.value: self._lookup_order,
            ToolName.CHECK_RETURN_ELIGIBILITY.value: self._check_return_eligibility,
            ToolName.INITIATE_RETURN.value: self._initiate_return,
            ToolName.SEARCH_KNOWLEDGE_BASE.value: self._search_knowledge_base,
            ToolName.MANAGE_CART.value: self._manage_cart,
            ToolName.GET_CART.value: self._get_cart,
            ToolName.NAVIGATE_CUSTOMER.value: self._navigate_customer,
            ToolName.CANCEL_ORDER.value: self._cancel_order,
            ToolName.ESCALATE_TO_HUMAN.value: self._escalate_to_human,
        }

    async def execute(self, name: str, args: Optional[dict], context: ToolContext) -> ToolResult:
        handler = self._handlers.get(name)
        spec = TOOL_SPECS.get(name)
        if handler is None or spec is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return ToolResult.failure(f"Unknown tool: {name}")

        try:
            parsed: ToolArgs = spec.args_model.model_validate(args or {})
        except ValidationError as e:
            return ToolResult.failure(f"Invalid arguments for {name}: {_format_validation_error(e)}")

        start_time = time.perf_counter()
        try:
            result = await handler(parsed, context)
        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.error(f"Tool '{name}' failed after {duration:.3f}s: {e}")
            return ToolResult.failure(f"{name} failed: {e}")

        duration = time.perf_counter() - start_time
        logger.info(f"Tool '{name}' executed in {duration:.3f}s (success={result.success})")
        return result

    async def _search_products(self, args: SearchProductsArgs, context: ToolContext) -> ToolResult:
        data = await self.storefront.search_products(args.query, args.context)
        return ToolResult(
            success=True,
            data=data,
            kind=ResultKind.PRODUCT_LIST,
            products=_soft_extract(ToolName.SEARCH_PRODUCTS.value, product_cards_from_payload, data, []),
        )

    async def _get_product_details(self, args: GetProductDetailsArgs, context: ToolContext) -> ToolResult:
        details, metafields = await asyncio.gather(
            self.storefront.get_product_details(args.product_id),
            self._product_metafields(args.product_id),
        )
        data = dict(details) if isinstance(details, dict) else {"details": details}
        data["metafields"] = metafields
        logger.info(f"get_product_details: product={args.product_id}, metafields={len(metafields or {})}")
        return ToolResult(success=True, data=data)

    async def _product_metafields(self, product_id: str) -> Optional[dict]:
        try:
            return await self.admin.get_product_metafields(product_id)
        except Exception as e:
            logger.warning(f"Failed to fetch metafields for {product_id}: {e}")
            return None

    async def _answer_store_policy(self, args: AnswerStorePolicyArgs, context: ToolContext) -> ToolResult:
        data = await self.storefront.search_policies(args.query, args.context)
        return ToolResult(success=True, data=data)

    async def _lookup_order(self, args: LookupOrderArgs, context: ToolContext) -> ToolResult:
        lookup = await self.admin.lookup_order(args.order_number, args.email, args.phone)
        return ToolResult(success=True, data=lookup.model_dump(mode="json", exclude_none=True))

    async def _check_return_eligibility(self, args: CheckReturnEligibilityArgs, context: ToolContext) -> ToolResult:
        eligibility = await self.admin.check_return_eligibility(args.order_id)
        return ToolResult(success=True, data=eligibility.model_dump(mode="json"))

    async def _initiate_return(self, args: InitiateReturnArgs, context: ToolContext) -> ToolResult:
        request = await self.returns.create_return_request(
            args.order_id, args.line_item_ids, args.reason, context.conversation_id,
        )
        submission = ReturnSubmission(
            success=True,
            referenceNumber=request.id[:8].upper(),
            message=(
                "Your return request has been submitted and will be reviewed by our team. "
                "You will receive an email with further instructions."
            ),
        )
        return ToolResult(success=True, data=submission.model_dump(mode="json"))

    async def _search_knowledge_base(self, args: SearchKnowledgeBaseArgs, context: ToolContext) -> ToolResult:
        docs = await self.knowledge.search(args.query)
        return ToolResult(
            success=True,
            data=[{"title": d.title, "content": d.content, "category": d.category} for d in docs],
        )

    async def _manage_cart(self, args: ManageCartArgs, context: ToolContext) -> ToolResult:
        data = await self.storefront.update_cart(
            cart_id=args.cart_id,
            add_items=[item.model_dump() for item in args.add_items] if args.add_items else None,
            update_items=[item.model_dump() for item in args.update_items] if args.update_items else None,
            remove_line_ids=args.remove_line_ids,
            discount_codes=args.discount_codes,
        )
        cart = _soft_extract(ToolName.MANAGE_CART.value, cart_from_payload, data, None)
        return ToolResult(success=True, data=data, kind=ResultKind.CART, cart=cart)

    async def _get_cart(self, args: GetCartArgs, context: ToolContext) -> ToolResult:
        cart_id = args.cart_id or context.cart_id
        if not cart_id:
            return ToolResult.failure("get_cart failed: no cart_id given and the customer has no known cart")
        data = await self.storefront.get_cart(cart_id)
        cart = _soft_extract(ToolName.GET_CART.value, cart_from_payload, data, None)
        return ToolResult(success=True, data=data, kind=ResultKind.CART, cart=cart)

    async def _navigate_customer(self, args: NavigateCustomerArgs, context: ToolContext) -> ToolResult:
        return ToolResult(
            success=True,
            data={"type": "navigation", "url": args.url, "label": args.label},
            kind=ResultKind.NAVIGATION,
            navigation=NavigationButton(url=args.url, label=args.label),
        )

    async def _cancel_order(self, args: CancelOrderArgs, context: ToolContext) -> ToolResult:
        outcome = await self.admin.cancel_order(args.order_id, args.order_name)
        return ToolResult(success=True, data=outcome.model_dump(mode="json"))

    async def _escalate_to_human(self, args: EscalateToHumanArgs, context: ToolContext) -> ToolResult:
        await self.conversations.update_status(context.conversation_id, "escalated")
        return ToolResult(
            success=True,
            data={
                "type": "escalation",
                "reason": args.reason,
                "priority": args.priority,
                "message": "Conversation has been escalated to a human agent.",
            },
            kind=ResultKind.ESCALATION,
        )
