from dataclasses import dataclass
from typing import Any

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
    SearchKnowledgeBaseArgs,
    SearchProductsArgs,
    ToolArgs,
    ToolName,
)


@dataclass(frozen=True)
class ToolSpec:
    name: ToolName
    description: str
    args_model: type[ToolArgs]

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.args_model.model_json_schema()


TOOL_SPECS: dict[str, ToolSpec] = {spec.name.value: spec for spec in [
    ToolSpec(
        ToolName.SEARCH_PRODUCTS,
        "Search the store product catalog using natural language. Use when the customer asks about products, "
        "availability, pricing, or wants recommendations. Returns product titles, prices, images, and availability.",
        SearchProductsArgs,
    ),
    ToolSpec(
        ToolName.GET_PRODUCT_DETAILS,
        "Get detailed information about a specific product including variants, images, pricing, availability, "
        "and metafields (delivery time, measurements, reviews). Use after a product search when the customer "
        "wants more details.",
        GetProductDetailsArgs,
    ),
    ToolSpec(
        ToolName.ANSWER_STORE_POLICY,
        "Answer questions about store policies including shipping, returns, refunds, hours, contact info, and FAQs.",
        AnswerStorePolicyArgs,
    ),
    ToolSpec(
        ToolName.LOOKUP_ORDER,
        "Look up a customer order by order number. REQUIRES the order number AND the customer email or phone "
        "number for identity verification. Ask the customer for both before calling this tool.",
        LookupOrderArgs,
    ),
    ToolSpec(
        ToolName.CHECK_RETURN_ELIGIBILITY,
        "Check which items from a verified order are eligible for return. Returns each item with its "
        "eligibility status and reason.",
        CheckReturnEligibilityArgs,
    ),
    ToolSpec(
        ToolName.INITIATE_RETURN,
        "Submit a return request for specific line items after the customer confirms which items to return and "
        "provides a reason. Creates a return request for manual review.",
        InitiateReturnArgs,
    ),
    ToolSpec(
        ToolName.SEARCH_KNOWLEDGE_BASE,
        "Search the internal knowledge base for brand-specific information: guides, sizing, care instructions "
        "and other specialized knowledge.",
        SearchKnowledgeBaseArgs,
    ),
    ToolSpec(
        ToolName.MANAGE_CART,
        "Create a new cart, add items, remove items, update quantities, or apply discount codes. "
        "Omit cart_id to create a new cart.",
        ManageCartArgs,
    ),
    ToolSpec(
        ToolName.GET_CART,
        "Get the current contents of a customer cart including items, totals, and checkout URL.",
        GetCartArgs,
    ),
    ToolSpec(
        ToolName.NAVIGATE_CUSTOMER,
        "Suggest a page for the customer to visit by generating a clickable button in the chat.",
        NavigateCustomerArgs,
    ),
    ToolSpec(
        ToolName.CANCEL_ORDER,
        "Cancel an unfulfilled order. ONLY use after identity is verified via lookup_order, the order is "
        "UNFULFILLED, and the customer explicitly confirmed the cancellation.",
        CancelOrderArgs,
    ),
    ToolSpec(
        ToolName.ESCALATE_TO_HUMAN,
        "Mark the conversation as needing human attention. The customer should be directed to email support.",
        EscalateToHumanArgs,
    ),
]}
