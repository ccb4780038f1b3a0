from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from tools.definitions import ToolSpec
from tools.models import ToolResult


class StopReason(str, Enum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    TOOL_USE = "tool_use"
    OTHER = "other"


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    # Set when the model's arguments could not be decoded
    arguments_error: Optional[str] = None


@dataclass
class ReasoningResponse:
    text: str
    stop_reason: StopReason
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0


class BaseLLMClient(ABC):
    model: str = ""

    @abstractmethod
    async def complete(self, system: str, messages: list[dict], tools: list[ToolSpec]) -> ReasoningResponse:
        """
        Run one reasoning step over the working history.
        Raises ReasoningUnavailable when the remote call fails.
        """
        raise NotImplementedError

    @abstractmethod
    def tool_exchange_messages(
        self, response: ReasoningResponse, results: list[tuple[ToolCall, ToolResult]]
    ) -> list[dict]:
        """
        Messages to append after a tool round trip, in the provider's format:
        the assistant turn that requested the tools, then the results, each
        paired with its call id.
        """
        raise NotImplementedError
