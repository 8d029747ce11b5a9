"""
World event subsystem.

Four event shapes (fixed date, interval, chain, conditional), the duration
and condition mini-languages they use, the chain state machine, GM overrides,
and the evaluator that combines them for a given day.
"""

from campaign_calendar.events.event_models import (
    EventType,
    EventSource,
    InvalidEventDefinitionError,
    FixedDateTrigger,
    IntervalTrigger,
    ChainEventState,
    ChainTrigger,
    ConditionalTrigger,
    EventDefinition,
    EventContext,
    ActiveEvent,
    event_from_dict,
    load_event_definitions,
)
from campaign_calendar.events.duration_parser import (
    DurationParser,
    DurationParseError,
    units_from_calendar,
)
from campaign_calendar.events.condition_parser import (
    ConditionResult,
    EventSnapshot,
    evaluate_condition,
    extract_event_references,
    validate_condition,
)
from campaign_calendar.events.chain_state_machine import (
    ChainCheckpointError,
    ChainStateMachine,
    ChainStateVector,
    ChainTransition,
)
from campaign_calendar.events.overrides import GMOverride, OverrideLayer, OverrideType
from campaign_calendar.events.event_evaluator import (
    EvaluationResult,
    EventEvaluator,
    build_registry,
)

__all__ = [
    "EventType",
    "EventSource",
    "InvalidEventDefinitionError",
    "FixedDateTrigger",
    "IntervalTrigger",
    "ChainEventState",
    "ChainTrigger",
    "ConditionalTrigger",
    "EventDefinition",
    "EventContext",
    "ActiveEvent",
    "event_from_dict",
    "load_event_definitions",
    "DurationParser",
    "DurationParseError",
    "units_from_calendar",
    "ConditionResult",
    "EventSnapshot",
    "evaluate_condition",
    "extract_event_references",
    "validate_condition",
    "ChainCheckpointError",
    "ChainStateMachine",
    "ChainStateVector",
    "ChainTransition",
    "GMOverride",
    "OverrideLayer",
    "OverrideType",
    "EvaluationResult",
    "EventEvaluator",
    "build_registry",
]
