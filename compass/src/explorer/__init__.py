"""Exploration data model and element analysis.

The orchestrator, strategies and MCP bridge live in their own modules and are
imported from there, e.g. ``compass.src.explorer.orchestrator``.
"""

from compass.src.explorer.models import (
    ActionKind,
    ActionProposal,
    CapturedState,
    ElementDescriptor,
    ExecutionOutcome,
    ExplorationConfig,
    ExplorationStrategy,
    FormDescriptor,
    FrontierEntry,
    RewardComponents,
    SessionContext,
    SessionStatus,
    StepResult,
)
from compass.src.explorer.elements import ElementCategory, PageType, analyze_page_elements, detect_page_type

__all__ = [
    "ActionKind",
    "ActionProposal",
    "CapturedState",
    "ElementCategory",
    "ElementDescriptor",
    "ExecutionOutcome",
    "ExplorationConfig",
    "ExplorationStrategy",
    "FormDescriptor",
    "FrontierEntry",
    "PageType",
    "RewardComponents",
    "SessionContext",
    "SessionStatus",
    "StepResult",
    "analyze_page_elements",
    "detect_page_type",
]
