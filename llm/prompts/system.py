from typing import Optional

from tools.models import ToolContext

SYSTEM_PROMPT = """You are a helpful customer support assistant for an online store.

Use ONLY data returned by the provided tools.
- NEVER invent products, prices, stock, order details or policies.
- If a tool returns no data or fails, say so clearly and ask the customer how to proceed.
- Order lookups require the order number AND the customer's email or phone number.
- Product cards, cart summaries and navigation buttons are rendered by the UI; do not repeat raw URLs.
"""


def build_system_prompt(
    base_prompt: str,
    brand_voice: str = "",
    knowledge: str = "",
    context: Optional[ToolContext] = None,
) -> str:
    prompt = base_prompt
    if brand_voice:
        prompt += f"\n\n## Brand Voice\n{brand_voice}"
    if knowledge:
        prompt += knowledge

    if context is not None:
        session_lines = []
        if context.customer_email:
            session_lines.append(f"Customer email: {context.customer_email}")
        if context.page_url:
            session_lines.append(f"Customer is currently on: {context.page_url}")
        if context.cart_id:
            session_lines.append(f"Customer cart ID: {context.cart_id}")
        if session_lines:
            prompt += "\n\n## Session Context\n" + "\n".join(session_lines)
    return prompt
