"""Tagged events emitted by incremental aggregation, and the sinks that take them."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, ClassVar, Protocol

from .records import TransactionRecord


@dataclass(frozen=True)
class PageInfo:
    page: int
    page_size: int
    records_in_page: int
    total_so_far: int


@dataclass(frozen=True)
class StreamEvent:
    kind: ClassVar[str] = "event"
    terminal: ClassVar[bool] = False

    def payload(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, **self.payload()}


@dataclass(frozen=True)
class InitialEvent(StreamEvent):
    kind: ClassVar[str] = "initial"

    context: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        return {"context": self.context}


@dataclass(frozen=True)
class BatchEvent(StreamEvent):
    kind: ClassVar[str] = "batch"

    records: tuple[TransactionRecord, ...] = ()
    page_info: PageInfo | None = None
    owner: str | None = None
    eth_price: Decimal | None = None

    def payload(self) -> dict[str, Any]:
        info = self.page_info
        return {
            "transactions": [
                record.to_dict(self.eth_price, self.owner) for record in self.records
            ],
            "page": None if info is None else info.page,
            "total_so_far": None if info is None else info.total_so_far,
        }


@dataclass(frozen=True)
class WarningEvent(StreamEvent):
    kind: ClassVar[str] = "warning"

    message: str = ""

    def payload(self) -> dict[str, Any]:
        return {"message": self.message}


@dataclass(frozen=True)
class CompleteEvent(StreamEvent):
    kind: ClassVar[str] = "complete"
    terminal: ClassVar[bool] = True

    summary: dict[str, Any] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        return {"summary": self.summary}


@dataclass(frozen=True)
class ErrorEvent(StreamEvent):
    kind: ClassVar[str] = "error"
    terminal: ClassVar[bool] = True

    message: str = ""

    def payload(self) -> dict[str, Any]:
        return {"message": self.message}


class EventSink(Protocol):
    """Consumer of stream events. ``is_open`` turns False on disconnect."""

    @property
    def is_open(self) -> bool: ...

    async def send(self, event: StreamEvent) -> None: ...


class QueueSink:
    """Sink backed by an :class:`asyncio.Queue`, read by one consumer task.

    ``None`` is put on the queue after a terminal event so the reader's
    ``async for`` loop ends. Calling :meth:`close` from the reader side
    marks the client as gone; the producer stops at its next liveness check.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    async def send(self, event: StreamEvent) -> None:
        if not self._open:
            return
        await self._queue.put(event)
        if event.terminal:
            self._open = False
            await self._queue.put(None)

    def close(self) -> None:
        """Mark the consumer as disconnected."""
        if self._open:
            self._open = False
            self._queue.put_nowait(None)

    def __aiter__(self) -> "QueueSink":
        return self

    async def __anext__(self) -> StreamEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event
