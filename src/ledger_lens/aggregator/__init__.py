from __future__ import annotations

from .aggregator import (
    AggregationLimits,
    AggregationResult,
    TransactionAggregator,
    TransactionSource,
)
from .events import (
    BatchEvent,
    CompleteEvent,
    ErrorEvent,
    EventSink,
    InitialEvent,
    PageInfo,
    QueueSink,
    StreamEvent,
    WarningEvent,
)
from .records import TransactionRecord, normalize_transaction

__all__ = [
    "AggregationLimits",
    "AggregationResult",
    "BatchEvent",
    "CompleteEvent",
    "ErrorEvent",
    "EventSink",
    "InitialEvent",
    "PageInfo",
    "QueueSink",
    "StreamEvent",
    "TransactionAggregator",
    "TransactionRecord",
    "TransactionSource",
    "WarningEvent",
    "normalize_transaction",
]
