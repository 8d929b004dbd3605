"""Aggregation of streamed model output into content chunks and tool calls."""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from domain.entities import StreamDelta, ToolCall, ToolCallFragment


@dataclass
class _PartialToolCall:
    id: str = ""
    name: str = ""
    arguments: list[str] = field(default_factory=list)


class ToolCallAccumulator:
    """Collects tool-call fragments of a single model call, keyed by index.

    The first non-empty id and name seen for an index win; argument chunks are
    concatenated in arrival order and never parsed here.
    """

    def __init__(self) -> None:
        self._calls: dict[int, _PartialToolCall] = {}

    def add(self, fragment: ToolCallFragment) -> None:
        partial = self._calls.setdefault(fragment.index, _PartialToolCall())
        if fragment.id and not partial.id:
            partial.id = fragment.id
        if fragment.name and not partial.name:
            partial.name = fragment.name
        if fragment.arguments:
            partial.arguments.append(fragment.arguments)

    def finalize(self) -> list[ToolCall]:
        """Materialize accumulated calls in index order.

        Calls whose name never arrived are dropped.
        """
        return [
            ToolCall(
                id=partial.id,
                name=partial.name,
                arguments="".join(partial.arguments),
            )
            for _, partial in sorted(self._calls.items())
            if partial.name
        ]


async def aggregate_stream(
    deltas: AsyncIterator[StreamDelta],
    accumulator: ToolCallAccumulator,
) -> AsyncIterator[str]:
    """Pass content through as it arrives and feed tool-call fragments to the accumulator.

    Args:
        deltas: Streamed model output
        accumulator: Accumulator owned by this model call

    Yields:
        str: Content chunks, unmodified and in arrival order
    """
    async for delta in deltas:
        if delta.content:
            yield delta.content
        if delta.tool_call is not None:
            accumulator.add(delta.tool_call)
