"""Agentic CRO audit: a multi-turn tool-calling conversation with the model.

Each turn sends the whole conversation to Bedrock. Tool calls requested by
the model are executed concurrently and answered in one user message; the
run ends when the model stops asking for tools, and its last text is parsed
into the report.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from typing import TypeVar
from uuid import UUID

from anthropic.types import MessageParam, TextBlock, ToolResultBlockParam, ToolUseBlock

from cro_audit.schemas.cro_report import CroReport
from cro_audit.services.cro.bedrock_client import BedrockClient
from cro_audit.services.cro.errors import AgentCancelledError, MissingCredentialError
from cro_audit.services.cro.prompts import SYSTEM_PROMPT, build_initial_message
from cro_audit.services.cro.report_parser import build_report, parse_report
from cro_audit.services.cro.tools import ToolContext, dispatch
from cro_audit.services.funnel_service import FunnelService

T = TypeVar("T")

logger = logging.getLogger(__name__)

MAX_AGENT_TURNS = 25
AGENT_MAX_TOKENS = 8192
MAX_PARALLEL_TOOLS = 4

END_TURN = "end_turn"


@dataclass(frozen=True)
class AgentRunState:
    """Counters and conversation of one agent run.

    Every turn returns a new state; nothing here is shared between runs.
    """

    turn: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    tool_calls_count: int = 0
    messages: tuple[MessageParam, ...] = ()
    final_text: str = ""
    stop_reason: str | None = None
    finished: bool = False


class CroAgentService:
    """Generates CRO audit reports with a tool-using model."""

    def __init__(
        self,
        client: BedrockClient | None = None,
        max_turns: int = MAX_AGENT_TURNS,
        max_parallel_tools: int = MAX_PARALLEL_TOOLS,
    ) -> None:
        self.client = client or BedrockClient.from_settings()
        self.max_turns = max_turns
        self.max_parallel_tools = max_parallel_tools

    async def generate_report(
        self,
        project_id: UUID,
        connector_id: UUID,
        context: ToolContext,
        cancel_event: asyncio.Event | None = None,
        today: date | None = None,
    ) -> CroReport:
        """Run the agent and return the finished report.

        Args:
            project_id: Project being audited
            connector_id: GA4 connector whose data the tools query
            context: Tool scope for this run
            cancel_event: Set by the caller to stop the run; an in-flight
                model call or tool batch is abandoned as soon as it is set
            today: Run date used for the default overview range

        Returns:
            The immutable report

        Raises:
            MissingCredentialError: No Bedrock bearer token is configured
            DatasetNotFoundError: No GA4 data was pulled for the connector
            ProviderError: A Bedrock call failed
            ReportParseError: The final answer held no valid report
            AgentCancelledError: ``cancel_event`` was set
        """
        if not self.client.has_credentials:
            raise MissingCredentialError()

        async with context.session_factory() as db:
            await FunnelService(db).ensure_event_data(project_id, connector_id)

        started = time.monotonic()
        run_date = today or datetime.now(UTC).date()
        initial: MessageParam = {
            "role": "user",
            "content": [{"type": "text", "text": build_initial_message(run_date)}],
        }
        state = AgentRunState(messages=(initial,))

        logger.info(
            "Starting CRO agent for project %s, connector %s (model=%s)",
            project_id,
            connector_id,
            self.client.model_id,
        )

        while not state.finished and state.turn < self.max_turns:
            state = await self.run_turn(state, context, cancel_event)

        if not state.finished:
            logger.warning("CRO agent reached the %d turn limit", self.max_turns)

        _raise_if_cancelled(cancel_event)

        logger.debug("CRO agent final text: %s", state.final_text)
        fields = parse_report(state.final_text)
        duration_ms = int((time.monotonic() - started) * 1000)

        report = build_report(
            fields,
            project_id=project_id,
            connector_id=connector_id,
            model_used=self.client.model_id,
            input_tokens=state.input_tokens,
            output_tokens=state.output_tokens,
            tool_calls_count=state.tool_calls_count,
            duration_ms=duration_ms,
        )

        logger.info(
            "CRO report generated: turns=%d, tool_calls=%d, input_tokens=%d, "
            "output_tokens=%d, duration_ms=%d",
            state.turn,
            state.tool_calls_count,
            state.input_tokens,
            state.output_tokens,
            duration_ms,
        )
        return report

    async def run_turn(
        self,
        state: AgentRunState,
        context: ToolContext,
        cancel_event: asyncio.Event | None = None,
    ) -> AgentRunState:
        """Run one model call and answer its tool requests."""
        _raise_if_cancelled(cancel_event)

        turn = state.turn + 1
        logger.info("CRO agent turn %d/%d", turn, self.max_turns)

        response = await _until_cancelled(
            self.client.create_message(
                system=SYSTEM_PROMPT,
                messages=list(state.messages),
                tools=context.definitions,
                max_tokens=AGENT_MAX_TOKENS,
            ),
            cancel_event,
        )

        final_text = state.final_text
        tool_uses: list[ToolUseBlock] = []
        for block in response.content:
            if isinstance(block, TextBlock):
                final_text = block.text
            elif isinstance(block, ToolUseBlock):
                tool_uses.append(block)

        stop_reason = response.stop_reason or END_TURN
        assistant: MessageParam = {"role": "assistant", "content": response.content}
        messages = (*state.messages, assistant)
        state = replace(
            state,
            turn=turn,
            input_tokens=state.input_tokens + response.usage.input_tokens,
            output_tokens=state.output_tokens + response.usage.output_tokens,
            tool_calls_count=state.tool_calls_count + len(tool_uses),
            messages=messages,
            final_text=final_text,
            stop_reason=stop_reason,
        )

        if stop_reason == END_TURN or not tool_uses:
            logger.info("CRO agent finished at turn %d (stop_reason=%s)", turn, stop_reason)
            return replace(state, finished=True)

        _raise_if_cancelled(cancel_event)
        results = await _until_cancelled(self._execute_tools(tool_uses, context), cancel_event)

        tool_results: list[ToolResultBlockParam] = [
            {"type": "tool_result", "tool_use_id": call.id, "content": results[call.id]}
            for call in tool_uses
        ]
        tool_message: MessageParam = {"role": "user", "content": tool_results}
        return replace(state, messages=(*messages, tool_message))

    async def _execute_tools(
        self,
        tool_uses: list[ToolUseBlock],
        context: ToolContext,
    ) -> dict[str, str]:
        """Execute tool calls concurrently; results are keyed by tool_use id."""
        semaphore = asyncio.Semaphore(self.max_parallel_tools)

        async def run_one(call: ToolUseBlock) -> tuple[str, str]:
            tool_input = call.input if isinstance(call.input, dict) else {}
            async with semaphore:
                logger.info("Executing tool %s (%s)", call.name, call.id)
                result = await dispatch(call.name, tool_input, context)
            logger.info("Tool %s returned %d chars", call.name, len(result))
            return call.id, result

        pairs = await asyncio.gather(*(run_one(call) for call in tool_uses))
        return dict(pairs)


def _raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise AgentCancelledError()


async def _until_cancelled(awaitable: Awaitable[T], cancel_event: asyncio.Event | None) -> T:
    """Await ``awaitable`` unless ``cancel_event`` is set first.

    The pending work is cancelled and ``AgentCancelledError`` raised as soon
    as the event is set, even if the work finished in the same loop step.
    """
    if cancel_event is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        waiter.cancel()
        raise
    waiter.cancel()

    if cancel_event.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise AgentCancelledError()

    return task.result()
