from .base import BaseLLMClient, ReasoningResponse, StopReason, ToolCall
from openai import AsyncOpenAI, OpenAIError
import logging
import json

from core.errors import ReasoningUnavailable
from tools.definitions import ToolSpec
from tools.models import ToolResult

logger = logging.getLogger(__name__)

FINISH_REASONS = {
    "stop": StopReason.END_TURN,
    "length": StopReason.MAX_TOKENS,
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
}


def to_openai_tools(tools: list[ToolSpec]) -> list[dict]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name.value,
                "description": tool.description,
                "parameters": tool.input_schema,
            },
        }
        for tool in tools
    ]


class OpenAIClient(BaseLLMClient):
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", max_tokens: int = 4096, temperature: float = 0.7):
        if not api_key:
            logger.error("OPENAI_API_KEY is missing from environment variables")
            raise ValueError("OPENAI_API_KEY is not set in environment variables.")

        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        logger.info(f"Initializing OpenAIClient with model: {self.model}")
        self.client = AsyncOpenAI(api_key=api_key)

    async def complete(self, system: str, messages: list[dict], tools: list[ToolSpec]) -> ReasoningResponse:
        request_messages = [{"role": "system", "content": system}, *messages]
        logger.info(f"Sending request to OpenAI with {len(tools)} tools and {len(messages)} messages")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=request_messages,
                tools=to_openai_tools(tools) if tools else None,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except OpenAIError as e:
            logger.error(f"Error calling OpenAI API: {e}")
            raise ReasoningUnavailable(str(e)) from e

        choice = response.choices[0]
        message = choice.message
        tool_calls = [self._parse_tool_call(call) for call in message.tool_calls or []]

        stop_reason = FINISH_REASONS.get(choice.finish_reason, StopReason.OTHER)
        # Some providers report "stop" even when tool calls are present
        if tool_calls and stop_reason is StopReason.END_TURN:
            stop_reason = StopReason.TOOL_USE

        usage = response.usage
        return ReasoningResponse(
            text=message.content or "",
            stop_reason=stop_reason,
            tool_calls=tool_calls,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    @staticmethod
    def _parse_tool_call(call) -> ToolCall:
        raw = call.function.arguments or "{}"
        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Could not decode arguments for tool {call.function.name}: {e}")
            return ToolCall(id=call.id, name=call.function.name, arguments_error=f"arguments are not valid JSON: {e}")
        if not isinstance(arguments, dict):
            return ToolCall(id=call.id, name=call.function.name, arguments_error="arguments must be a JSON object")
        return ToolCall(id=call.id, name=call.function.name, arguments=arguments)

    def tool_exchange_messages(
        self, response: ReasoningResponse, results: list[tuple[ToolCall, ToolResult]]
    ) -> list[dict]:
        messages: list[dict] = [{
            "role": "assistant",
            "content": response.text or None,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in response.tool_calls
            ],
        }]
        for call, result in results:
            messages.append({
                "tool_call_id": call.id,
                "role": "tool",
                "content": result.to_model_content(),
            })
        return messages
