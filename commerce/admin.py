import json
import logging
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx

from commerce.auth import CredentialCache
from commerce.models import (
    CancelOrderOutcome,
    OrderLineItem,
    OrderLookup,
    OrderLookupStatus,
    OrderSummary,
    ReturnEligibility,
    ReturnEligibilityItem,
    TrackingInfo,
)
from core.errors import CommerceAPIError

logger = logging.getLogger(__name__)

RETURN_WINDOW_DAYS = 30

ORDER_LOOKUP_QUERY = """
query OrderLookup($queryStr: String!) {
  orders(first: 1, query: $queryStr) {
    edges {
      node {
        id
        name
        email
        phone
        createdAt
        displayFinancialStatus
        displayFulfillmentStatus
        fulfillments {
          trackingInfo { number url }
          estimatedDeliveryAt
        }
        lineItems(first: 20) {
          edges {
            node {
              id
              title
              quantity
              originalUnitPriceSet { shopMoney { amount } }
              image { url }
            }
          }
        }
        shippingAddress { city country }
      }
    }
  }
}
"""

RETURN_ELIGIBILITY_QUERY = """
query OrderReturnEligibility($id: ID!) {
  order(id: $id) {
    displayFulfillmentStatus
    createdAt
    fulfillments { createdAt status }
    lineItems(first: 20) {
      edges { node { id title quantity refundableQuantity } }
    }
  }
}
"""

ORDER_CANCEL_MUTATION = """
mutation OrderCancel($orderId: ID!, $reason: OrderCancelReason!, $refund: Boolean!, $restock: Boolean!) {
  orderCancel(orderId: $orderId, reason: $reason, refund: $refund, restock: $restock) {
    orderCancelUserErrors { field message }
  }
}
"""

PRODUCT_METAFIELDS_QUERY = """
query ProductMetafields($id: ID!) {
  product(id: $id) {
    metafields(first: 30) {
      edges { node { namespace key value type } }
    }
  }
}
"""

# Not useful in customer-facing answers
SKIPPED_METAFIELDS = {
    "loox.reviews",
    "mm-google-shopping.google_product_category",
    "mc-facebook.google_product_category",
    "umbrella.extended_warranty_id",
    "shopify.color-pattern",
}
SKIPPED_METAFIELD_TYPES = {"file_reference", "list.metaobject_reference"}


def normalize_order_number(order_number: str) -> str:
    cleaned = re.sub(r"^[#\s]+", "", order_number).lstrip("0")
    return cleaned or order_number


def normalize_phone(phone: str) -> str:
    return re.sub(r"[\s\-()+]", "", phone)


def humanize_key(key: str) -> str:
    return " ".join(word.capitalize() for word in key.replace("_", " ").split())


def extract_plain_text(rich_text_json: str) -> str:
    """Flatten a rich_text_field JSON document into plain text."""
    try:
        root = json.loads(rich_text_json)
    except (TypeError, ValueError):
        return rich_text_json

    texts: list[str] = []

    def walk(node: Any):
        if not isinstance(node, dict):
            return
        if node.get("value"):
            texts.append(str(node["value"]))
        for child in node.get("children") or []:
            walk(child)

    walk(root)
    return " ".join(" ".join(texts).split())


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class AdminClient:
    """GraphQL client for the commerce admin API, authenticated via the credential cache."""

    def __init__(
        self,
        graphql_url: str,
        credentials: CredentialCache,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.graphql_url = graphql_url
        self.credentials = credentials
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=15.0)
        self._clock = clock

    async def graphql(self, query: str, variables: Optional[dict] = None) -> dict:
        token = await self.credentials.get_token()
        try:
            response = await self._http.post(
                self.graphql_url,
                json={"query": query, "variables": variables or {}},
                headers={"X-Shopify-Access-Token": token},
            )
        except httpx.HTTPError as e:
            raise CommerceAPIError(f"Admin API request failed: {e}") from e

        if response.status_code >= 300:
            raise CommerceAPIError(f"Admin API error ({response.status_code}): {response.text}")

        body = response.json()
        errors = body.get("errors") or []
        if errors:
            messages = "; ".join(str(e.get("message")) for e in errors)
            raise CommerceAPIError(f"GraphQL error: {messages}")
        if not body.get("data"):
            raise CommerceAPIError("GraphQL returned no data")
        return body["data"]

    async def lookup_order(self, order_number: str, email: Optional[str] = None, phone: Optional[str] = None) -> OrderLookup:
        if not email and not phone:
            return OrderLookup(
                status=OrderLookupStatus.IDENTITY_REQUIRED,
                message="Please provide your email address or phone number to verify your identity.",
            )

        clean_number = normalize_order_number(order_number)
        data = await self.graphql(ORDER_LOOKUP_QUERY, {"queryStr": f"name:#{clean_number}"})
        edges = data["orders"]["edges"]
        if not edges:
            logger.warning(f"Order not found for query 'name:#{clean_number}'")
            return OrderLookup(
                status=OrderLookupStatus.NOT_FOUND,
                message="Order not found. Please double-check your order number.",
            )

        node = edges[0]["node"]
        verified = False
        if email and node.get("email") and email.lower() == node["email"].lower():
            verified = True
        if phone and node.get("phone") and normalize_phone(phone) == normalize_phone(node["phone"]):
            verified = True

        if not verified:
            return OrderLookup(
                status=OrderLookupStatus.VERIFICATION_FAILED,
                message=(
                    "The order was found but the provided email or phone does not match. "
                    "Ask the customer to double-check the email address they used when placing this order."
                ),
            )

        tracking = []
        estimated_delivery = None
        for fulfillment in node.get("fulfillments") or []:
            for info in fulfillment.get("trackingInfo") or []:
                tracking.append(TrackingInfo(number=info["number"], url=info.get("url")))
            if fulfillment.get("estimatedDeliveryAt"):
                estimated_delivery = fulfillment["estimatedDeliveryAt"]

        line_items = []
        for edge in node["lineItems"]["edges"]:
            item = edge["node"]
            line_items.append(OrderLineItem(
                id=item["id"],
                title=item["title"],
                quantity=item["quantity"],
                price=item["originalUnitPriceSet"]["shopMoney"]["amount"],
                imageUrl=(item.get("image") or {}).get("url"),
            ))

        address = node.get("shippingAddress") or {}
        return OrderLookup(
            status=OrderLookupStatus.FOUND,
            customerEmail=node.get("email"),
            customerPhone=node.get("phone"),
            order=OrderSummary(
                id=node["id"],
                name=node["name"],
                financialStatus=node["displayFinancialStatus"],
                fulfillmentStatus=node["displayFulfillmentStatus"],
                tracking=tracking,
                estimatedDelivery=estimated_delivery,
                lineItems=line_items,
                shippingCity=address.get("city"),
                shippingCountry=address.get("country"),
                createdAt=node["createdAt"],
            ),
        )

    async def check_return_eligibility(self, order_id: str) -> ReturnEligibility:
        data = await self.graphql(RETURN_ELIGIBILITY_QUERY, {"id": order_id})
        order = data.get("order")
        if not order:
            return ReturnEligibility()

        successful = [f for f in order.get("fulfillments") or [] if f.get("status") == "SUCCESS"]
        fulfilled_at = None
        if successful:
            fulfilled_at = max(_parse_timestamp(f["createdAt"]) for f in successful)

        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        items = []
        for edge in order["lineItems"]["edges"]:
            item = edge["node"]
            if order["displayFulfillmentStatus"] == "UNFULFILLED":
                eligible, reason = False, "Item has not been shipped yet"
            elif item["refundableQuantity"] <= 0:
                eligible, reason = False, "Item has already been returned or refunded"
            elif fulfilled_at and now - fulfilled_at > timedelta(days=RETURN_WINDOW_DAYS):
                eligible, reason = False, f"Return window of {RETURN_WINDOW_DAYS} days has passed"
            else:
                eligible, reason = True, "Eligible for return"
            items.append(ReturnEligibilityItem(lineItemId=item["id"], title=item["title"], eligible=eligible, reason=reason))

        return ReturnEligibility(items=items)

    async def cancel_order(self, order_id: str, order_name: str) -> CancelOrderOutcome:
        data = await self.graphql(ORDER_CANCEL_MUTATION, {
            "orderId": order_id,
            "reason": "CUSTOMER",
            "refund": True,
            "restock": True,
        })
        errors = data["orderCancel"]["orderCancelUserErrors"]
        if errors:
            messages = "; ".join(e["message"] for e in errors)
            logger.error(f"cancel_order errors for {order_name}: {messages}")
            return CancelOrderOutcome(success=False, message=f"Could not cancel order {order_name}: {messages}")

        return CancelOrderOutcome(
            success=True,
            message=(
                f"Order {order_name} has been cancelled. A refund will be issued to the "
                "original payment method within 5-10 business days."
            ),
        )

    async def get_product_metafields(self, product_id: str) -> dict[str, Any]:
        data = await self.graphql(PRODUCT_METAFIELDS_QUERY, {"id": product_id})
        product = data.get("product")
        if not product:
            return {}

        result: dict[str, Any] = {}
        for edge in product["metafields"]["edges"]:
            node = edge["node"]
            if f"{node['namespace']}.{node['key']}" in SKIPPED_METAFIELDS:
                continue
            if node["type"] in SKIPPED_METAFIELD_TYPES:
                continue

            label = humanize_key(node["key"])
            value = node["value"]
            if node["type"] == "rich_text_field":
                result[label] = extract_plain_text(value)
            elif node["type"] == "number_integer":
                result[label] = int(value)
            elif node["type"] == "number_decimal":
                result[label] = float(value)
            elif node["type"] == "rating":
                try:
                    result[label] = float(json.loads(value)["value"])
                except (ValueError, KeyError, TypeError):
                    result[label] = value
            else:
                result[label] = value
        return result

    async def aclose(self):
        if self._owns_client:
            await self._http.aclose()
