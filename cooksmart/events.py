"""Server-sent event protocol between the relay and its clients.

One JSON object per event, sent on a single ``data:`` line:

    {"action": "start"}
    {"action": "chunk", "chunk": "<fragment>"}
    {"action": "close"}
    {"action": "error", "message": "<reason>"}

``close`` and ``error`` are terminal, nothing follows either of them.
"""

from enum import Enum
import json
from typing import Any, AsyncIterable, AsyncIterator, Self


class Action(Enum):
    start = "start"
    chunk = "chunk"
    close = "close"
    error = "error"


TERMINAL_ACTIONS = frozenset({Action.close, Action.error})


class StreamEvent:
    def __init__(
        self,
        action: Action,
        *,
        chunk: str | None = None,
        message: str | None = None,
    ) -> None:
        if action is Action.chunk and chunk is None:
            raise ValueError("A chunk event needs a chunk.")
        self.action = action
        self.chunk = chunk
        self.message = message

    @classmethod
    def start(cls) -> Self:
        return cls(Action.start)

    @classmethod
    def from_chunk(cls, chunk: str) -> Self:
        return cls(Action.chunk, chunk=chunk)

    @classmethod
    def close(cls) -> Self:
        return cls(Action.close)

    @classmethod
    def error(cls, message: str) -> Self:
        return cls(Action.error, message=message)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        try:
            action = Action(data["action"])
        except (KeyError, ValueError) as e:
            raise ValueError(f"Unknown stream event: {data}") from e
        return cls(action, chunk=data.get("chunk"), message=data.get("message"))

    @property
    def is_terminal(self) -> bool:
        return self.action in TERMINAL_ACTIONS

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StreamEvent):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"<StreamEvent({self.to_dict()})>"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"action": self.action.value}
        if self.action is Action.chunk:
            data["chunk"] = self.chunk
        if self.action is Action.error:
            data["message"] = self.message or ""
        return data

    def to_sse(self) -> str:
        # json.dumps escapes newlines so a chunk never spans two data lines.
        return f"data: {json.dumps(self.to_dict())}\n\n"


async def decode_sse(lines: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
    """Turn raw event-stream lines into StreamEvents.

    Multiple ``data:`` lines in one event are joined with newlines, as browsers
    do. Comments, ``event:``, ``id:`` and ``retry:`` fields are ignored.
    """
    data: list[str] = []
    async for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            if data:
                yield StreamEvent.from_dict(json.loads("\n".join(data)))
                data = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            data.append(value[1:] if value.startswith(" ") else value)
    if data:
        yield StreamEvent.from_dict(json.loads("\n".join(data)))
