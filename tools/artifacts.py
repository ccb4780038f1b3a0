from dataclasses import dataclass, field
from typing import Any, Optional

from schemas.chat import CartData, CartLineItem, NavigationButton, ProductCard
from tools.models import ResultKind, ToolResult

DESCRIPTION_LIMIT = 200


def _first(record: dict, *keys: str, default: Any = "") -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return default


def _amount(value: Any) -> tuple[str, str]:
    """Read an amount that is either a plain value or a {amount, currency(Code)} money object."""
    if isinstance(value, dict):
        return str(value.get("amount", "")), str(_first(value, "currency", "currencyCode", "currency_code"))
    if value is None:
        return "", ""
    return str(value), ""


def product_cards_from_payload(payload: Any) -> list[ProductCard]:
    """Map the product records of a catalog search payload one-to-one into cards."""
    if not isinstance(payload, dict):
        return []
    products = payload.get("products")
    if not isinstance(products, list):
        return []

    cards = []
    for record in products:
        if not isinstance(record, dict):
            continue
        price_range = record.get("price_range") if isinstance(record.get("price_range"), dict) else {}
        available = record.get("available")
        cards.append(ProductCard(
            id=str(_first(record, "product_id", "id")),
            title=str(record.get("title") or ""),
            description=str(record.get("description") or "")[:DESCRIPTION_LIMIT],
            price=str(price_range.get("min") or record.get("price") or ""),
            currency=str(price_range.get("currency") or record.get("currency") or "USD"),
            imageUrl=str(_first(record, "image_url", "imageUrl")),
            productUrl=str(_first(record, "url", "productUrl")),
            available=True if available is None else bool(available),
        ))
    return cards


def cart_from_payload(payload: Any) -> Optional[CartData]:
    """Build the cart snapshot from a cart tool payload, optionally wrapped in a `cart` key."""
    if not isinstance(payload, dict):
        return None
    cart = payload.get("cart") if isinstance(payload.get("cart"), dict) else payload

    cost = cart.get("cost") if isinstance(cart.get("cost"), dict) else {}
    total, currency = _amount(_first(cost, "total_amount", "totalAmount", default=None))
    if not total:
        total, currency = _amount(cart.get("totalAmount"))
    currency = currency or str(cart.get("currency") or "")

    lines = _first(cart, "lines", "lineItems", "line_items", default=[])
    if isinstance(lines, dict):
        lines = [edge.get("node", edge) for edge in lines.get("edges", [])]

    line_items = []
    for line in lines if isinstance(lines, list) else []:
        if not isinstance(line, dict):
            continue
        merchandise = line.get("merchandise") if isinstance(line.get("merchandise"), dict) else {}
        product = merchandise.get("product") if isinstance(merchandise.get("product"), dict) else {}
        line_cost = line.get("cost") if isinstance(line.get("cost"), dict) else {}
        price, _ = _amount(_first(line_cost, "total_amount", "totalAmount", default=None))
        line_items.append(CartLineItem(
            id=str(line.get("id") or ""),
            title=str(line.get("title") or product.get("title") or merchandise.get("title") or ""),
            quantity=int(line.get("quantity") or 0),
            price=price or str(line.get("price") or ""),
        ))

    return CartData(
        cartId=str(_first(cart, "id", "cartId", "cart_id")),
        checkoutUrl=str(_first(cart, "checkout_url", "checkoutUrl")),
        totalAmount=total,
        currency=currency,
        lineItems=line_items,
    )


@dataclass
class ArtifactSet:
    """Structured, non-text output of a single user turn."""

    navigation_buttons: list[NavigationButton] = field(default_factory=list)
    product_cards: list[ProductCard] = field(default_factory=list)
    cart: Optional[CartData] = None
    escalated: bool = False
    tools_used: list[str] = field(default_factory=list)

    def record_tool(self, name: str):
        if name not in self.tools_used:
            self.tools_used.append(name)

    def absorb(self, result: ToolResult):
        if not result.success:
            return
        if result.kind is ResultKind.NAVIGATION and result.navigation is not None:
            self.navigation_buttons.append(result.navigation)
        elif result.kind is ResultKind.ESCALATION:
            self.escalated = True
        elif result.kind is ResultKind.PRODUCT_LIST:
            self.product_cards.extend(result.products)
        elif result.kind is ResultKind.CART and result.cart is not None:
            self.cart = result.cart
