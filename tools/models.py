from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.chat import CartData, NavigationButton, ProductCard


class ToolName(str, Enum):
    SEARCH_PRODUCTS = "search_products"
    GET_PRODUCT_DETAILS = "get_product_details"
    ANSWER_STORE_POLICY = "answer_store_policy"
    LOOKUP_ORDER = "lookup_order"
    CHECK_RETURN_ELIGIBILITY = "check_return_eligibility"
    INITIATE_RETURN = "initiate_return"
    SEARCH_KNOWLEDGE_BASE = "search_knowledge_base"
    MANAGE_CART = "manage_cart"
    GET_CART = "get_cart"
    NAVIGATE_CUSTOMER = "navigate_customer"
    CANCEL_ORDER = "cancel_order"
    ESCALATE_TO_HUMAN = "escalate_to_human"


class ResultKind(str, Enum):
    PLAIN = "plain"
    NAVIGATION = "navigation"
    ESCALATION = "escalation"
    PRODUCT_LIST = "product_list"
    CART = "cart"


@dataclass
class ToolContext:
    conversation_id: str
    customer_email: Optional[str] = None
    page_url: Optional[str] = None
    cart_id: Optional[str] = None


# Tool arguments, one model per tool

class ToolArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SearchProductsArgs(ToolArgs):
    query: str = Field(..., description='Natural language search query (e.g., "red sneakers", "summer dresses under $50")')
    context: str = Field("", description='Conversation context to help improve search relevance (e.g., "Customer is looking for running shoes")')


class GetProductDetailsArgs(ToolArgs):
    product_id: str = Field(..., description='The product ID (GID format, e.g., "gid://shopify/Product/123456789")')


class AnswerStorePolicyArgs(ToolArgs):
    query: str = Field(..., description='The policy question (e.g., "What is the return policy?")')
    context: str = Field("", description="Conversation context for better answers")


class LookupOrderArgs(ToolArgs):
    order_number: str = Field(..., description='The order number (e.g., "1001" or "#1001")')
    email: Optional[str] = Field(None, description="Customer email address for identity verification")
    phone: Optional[str] = Field(None, description="Customer phone number for identity verification")


class CheckReturnEligibilityArgs(ToolArgs):
    order_id: str = Field(..., description="The order GID from a previous lookup_order result")


class InitiateReturnArgs(ToolArgs):
    order_id: str = Field(..., description="The order GID")
    line_item_ids: list[str] = Field(..., min_length=1, description="Line item IDs to return")
    reason: str = Field(..., description="Customer reason for the return")


class SearchKnowledgeBaseArgs(ToolArgs):
    query: str = Field(..., description="Search query for the knowledge base")


class CartAddItem(BaseModel):
    product_variant_id: str = Field(..., description='Product variant GID (e.g., "gid://shopify/ProductVariant/123")')
    quantity: int = Field(..., ge=1, description="Quantity to add")


class CartUpdateItem(BaseModel):
    id: str = Field(..., description="Cart line ID")
    quantity: int = Field(..., ge=0, description="New quantity")


class ManageCartArgs(ToolArgs):
    cart_id: Optional[str] = Field(None, description="Existing cart ID. Omit to create a new cart.")
    add_items: Optional[list[CartAddItem]] = Field(None, description="Items to add to cart")
    update_items: Optional[list[CartUpdateItem]] = Field(None, description="Cart lines to update")
    remove_line_ids: Optional[list[str]] = Field(None, description="Cart line IDs to remove")
    discount_codes: Optional[list[str]] = Field(None, description="Discount codes to apply")


class GetCartArgs(ToolArgs):
    cart_id: Optional[str] = Field(None, description="The cart ID to retrieve. Defaults to the customer's current cart.")


class NavigateCustomerArgs(ToolArgs):
    url: str = Field(..., description='The URL or relative path (e.g., "/collections/sale")')
    label: str = Field(..., description='Button text (e.g., "View Sale Collection")')


class CancelOrderArgs(ToolArgs):
    order_id: str = Field(..., description="The order GID from a previous lookup_order result")
    order_name: str = Field(..., description='The order display number (e.g., "#1042")')


class EscalateToHumanArgs(ToolArgs):
    reason: str = Field(..., description="Why the conversation is being escalated")
    priority: str = Field("medium", description="low, medium or high")


class ToolResult(BaseModel):
    """
    Envelope returned for every tool call. Only success/data/error are sent
    back to the model; the kind and typed artifacts feed the UI.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    kind: ResultKind = Field(ResultKind.PLAIN, exclude=True)
    navigation: Optional[NavigationButton] = Field(None, exclude=True)
    products: list[ProductCard] = Field(default_factory=list, exclude=True)
    cart: Optional[CartData] = Field(None, exclude=True)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def to_model_content(self) -> str:
        return self.model_dump_json(exclude_none=True)
