import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence

from llm.base import BaseLLMClient, ReasoningResponse, StopReason, ToolCall
from store.models import ConversationTurn
from tools.artifacts import ArtifactSet
from tools.definitions import TOOL_SPECS, ToolSpec
from tools.dispatcher import ToolDispatcher
from tools.models import ToolContext, ToolResult

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "I'm sorry, I wasn't able to generate a response. Please try again."


class LoopState(str, Enum):
    REASONING = "reasoning"
    AWAITING_TOOL_RESULTS = "awaiting-tool-results"
    DONE = "done"


@dataclass
class TurnUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    reasoning_calls: int = 0

    def add(self, response: ReasoningResponse):
        self.input_tokens += response.input_tokens
        self.output_tokens += response.output_tokens
        self.reasoning_calls += 1


@dataclass
class TurnOutcome:
    response: str
    artifacts: ArtifactSet
    conversation_status: str
    model: str
    usage: TurnUsage = field(default_factory=TurnUsage)

    @property
    def tools_used(self) -> list[str]:
        return self.artifacts.tools_used


class Orchestrator:
    """
    Drives the reasoning model through tool calls until it produces a final
    answer, collecting the UI artifacts produced along the way.

    reasoning -> (tool_use) -> awaiting-tool-results -> reasoning ... -> done
    """

    def __init__(
        self,
        llm: BaseLLMClient,
        dispatcher: ToolDispatcher,
        max_iterations: int = 10,
        tools: Optional[Sequence[ToolSpec]] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.llm = llm
        self.dispatcher = dispatcher
        self.max_iterations = max(1, max_iterations)
        self.tools = list(tools) if tools is not None else list(TOOL_SPECS.values())
        self._clock = clock

    async def run(
        self,
        system_prompt: str,
        history: Sequence[ConversationTurn],
        utterance: str,
        context: ToolContext,
        status: str = "active",
    ) -> TurnOutcome:
        start_time = self._clock()
        messages = [
            {"role": turn.role, "content": turn.content}
            for turn in history
            if turn.role in ("user", "assistant")
        ]
        messages.append({"role": "user", "content": utterance})

        # Fresh for every turn so nothing leaks from earlier turns
        artifacts = ArtifactSet()
        usage = TurnUsage()
        state = LoopState.REASONING
        response: Optional[ReasoningResponse] = None

        while state is not LoopState.DONE:
            if state is LoopState.REASONING:
                response = await self.llm.complete(system_prompt, messages, self.tools)
                usage.add(response)
                logger.info(
                    f"Reasoning call {usage.reasoning_calls}: stop_reason={response.stop_reason.value}, "
                    f"tool_calls={len(response.tool_calls)}"
                )
                if response.stop_reason is StopReason.TOOL_USE and response.tool_calls:
                    state = LoopState.AWAITING_TOOL_RESULTS
                else:
                    state = LoopState.DONE

            elif state is LoopState.AWAITING_TOOL_RESULTS:
                results = []
                for call in response.tool_calls:
                    artifacts.record_tool(call.name)
                    result = await self._execute(call, context)
                    artifacts.absorb(result)
                    results.append((call, result))
                messages.extend(self.llm.tool_exchange_messages(response, results))

                if usage.reasoning_calls >= self.max_iterations:
                    logger.warning(f"Tool loop stopped after {usage.reasoning_calls} reasoning calls")
                    state = LoopState.DONE
                else:
                    state = LoopState.REASONING

        usage.latency_ms = int((self._clock() - start_time) * 1000)

        # On hitting the iteration bound this is the last tool-requesting response
        text = response.text if response is not None else ""

        return TurnOutcome(
            response=text or FALLBACK_RESPONSE,
            artifacts=artifacts,
            conversation_status="escalated" if artifacts.escalated else status,
            model=self.llm.model,
            usage=usage,
        )

    async def _execute(self, call: ToolCall, context: ToolContext) -> ToolResult:
        if call.arguments_error:
            return ToolResult.failure(f"Invalid arguments for {call.name}: {call.arguments_error}")
        logger.info(f"Executing tool: {call.name}")
        return await self.dispatcher.execute(call.name, call.arguments, context)
