from mcp.client.streamable_http import streamablehttp_client
from mcp.client.session import ClientSession
from contextlib import AsyncExitStack
import asyncio
import json
import logging
import time
from typing import Any, Optional

logger = logging.getLogger(__name__)

CONNECTION_ERROR_MARKERS = ("connection", "broken pipe", "closed")


def parse_tool_content(result: Any) -> Any:
    """Join the text blocks of an MCP tool result and decode them as JSON when possible."""
    texts = []
    for content in getattr(result, "content", None) or []:
        if getattr(content, "type", "text") != "text":
            continue
        if hasattr(content, "text"):
            texts.append(content.text)
        elif isinstance(content, dict) and "text" in content:
            texts.append(content["text"])

    text = "\n".join(texts)
    if not text:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def tool_reported_error(result: Any) -> bool:
    """Error flag of a tool result: `is_error` on mcp 2.x, `isError` before."""
    flag = getattr(result, "is_error", None)
    if flag is None:
        flag = getattr(result, "isError", False)
    return bool(flag)


class StorefrontError(RuntimeError):
    """The storefront MCP server reported a tool error."""


class MCPClient:
    """
    Manages the connection to the storefront MCP server over streamable HTTP
    (JSON-RPC POSTs to the shop's /api/mcp endpoint) and exposes
    the catalog, policy and cart tools the agent needs.
    """
    def __init__(self, server_url: str):
        self.server_url = server_url
        self.session: ClientSession | None = None
        self._exit_stack: AsyncExitStack | None = None
        self._lock = asyncio.Lock()

    async def connect(self):
        """Establish connection to the MCP server."""
        try:
            self._exit_stack = AsyncExitStack()

            # Yields (read, write) plus a session-id getter on some releases
            streams = await self._exit_stack.enter_async_context(
                streamablehttp_client(self.server_url)
            )
            read_stream, write_stream = streams[0], streams[1]
            self.session = await self._exit_stack.enter_async_context(
                ClientSession(read_stream, write_stream)
            )

            await self.session.initialize()
            logger.info(f"Connected to MCP server at {self.server_url}")

        except Exception as e:
            logger.error(f"Failed to connect to MCP server: {e}")
            await self.disconnect()
            raise

    async def disconnect(self):
        """Close the connection."""
        if self._exit_stack:
            await self._exit_stack.aclose()
            self._exit_stack = None
        self.session = None
        logger.info("Disconnected from MCP server")

    async def ensure_connected(self):
        """Ensure the MCP client is connected, reconnecting if necessary."""
        if self.session:
            return

        async with self._lock:
            # Check again after acquiring lock
            if self.session:
                return

            logger.warning("MCP Client not connected. Attempting to reconnect...")
            await self.connect()

    async def call_tool(self, name: str, arguments: dict, retry_on_disconnect: bool = True) -> Any:
        """
        Call a tool on the MCP server and return its decoded payload.

        A lost connection is retried once, unless the call changes state on
        the server (retry_on_disconnect=False).
        """
        await self.ensure_connected()

        start_time = time.perf_counter()
        logger.info(f"Calling MCP tool '{name}' with args: {arguments}")

        try:
            result = await self.session.call_tool(name, arguments)
        except Exception as e:
            error_msg = str(e).lower()
            if not retry_on_disconnect or not any(marker in error_msg for marker in CONNECTION_ERROR_MARKERS):
                duration = time.perf_counter() - start_time
                logger.error(f"MCP tool '{name}' failed after {duration:.3f}s: {e}")
                raise

            logger.warning(f"Connection lost during tool call '{name}'. Reconnecting and retrying...")
            await self.disconnect()
            await self.ensure_connected()
            result = await self.session.call_tool(name, arguments)

        duration = time.perf_counter() - start_time
        logger.info(f"MCP tool '{name}' executed in {duration:.3f}s")

        payload = parse_tool_content(result)
        if tool_reported_error(result):
            raise StorefrontError(payload if isinstance(payload, str) else json.dumps(payload))
        return payload

    async def search_products(self, query: str, context: str = "", limit: Optional[int] = None) -> Any:
        args: dict[str, Any] = {"query": query, "context": context}
        if limit:
            args["limit"] = limit
        return await self.call_tool("search_shop_catalog", args)

    async def get_product_details(self, product_id: str) -> Any:
        return await self.call_tool("get_product_details", {"product_id": product_id})

    async def search_policies(self, query: str, context: str = "") -> str:
        result = await self.call_tool("search_shop_policies_and_faqs", {"query": query, "context": context})
        return result if isinstance(result, str) else json.dumps(result)

    async def update_cart(
        self,
        cart_id: Optional[str] = None,
        add_items: Optional[list[dict]] = None,
        update_items: Optional[list[dict]] = None,
        remove_line_ids: Optional[list[str]] = None,
        discount_codes: Optional[list[str]] = None,
    ) -> Any:
        args = {
            "cart_id": cart_id,
            "add_items": add_items,
            "update_items": update_items,
            "remove_line_ids": remove_line_ids,
            "discount_codes": discount_codes,
        }
        # Filter None values
        args = {k: v for k, v in args.items() if v}
        return await self.call_tool("update_cart", args, retry_on_disconnect=False)

    async def get_cart(self, cart_id: str) -> Any:
        return await self.call_tool("get_cart", {"cart_id": cart_id})
