"""Sequence execution: steps, event collectors and the unified event log."""

from .collectors import ConsoleCollector, NavigationCollector, NetworkCollector, attached, compile_filter
from .events import ConsoleEvent, EventLog, NavigationEvent, NetworkEvent, StepEvent, StepResult
from .executor import (
    ActionStep,
    AssertStep,
    QueryStep,
    SequenceExecutor,
    SequenceOptions,
    SequenceResult,
    parse_step,
    run_sequence,
)

__all__ = [
    "ActionStep",
    "AssertStep",
    "ConsoleCollector",
    "ConsoleEvent",
    "EventLog",
    "NavigationCollector",
    "NavigationEvent",
    "NetworkCollector",
    "NetworkEvent",
    "QueryStep",
    "SequenceExecutor",
    "SequenceOptions",
    "SequenceResult",
    "StepEvent",
    "StepResult",
    "attached",
    "compile_filter",
    "parse_step",
    "run_sequence",
]
