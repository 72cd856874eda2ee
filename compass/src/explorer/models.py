"""
Exploration Data Models

Captured page states, proposed actions, rewards and archive entries exchanged
between the decision engine and its collaborators.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from compass.src.utils.urls import domain_of

MAX_ELEMENTS = 200


class ActionKind(str, Enum):
    """Interaction kinds the engine can propose."""

    CLICK = "click"
    TYPE = "type"
    HOVER = "hover"
    SCROLL = "scroll"
    NAVIGATE = "navigate"
    BACK = "back"


class ExplorationStrategy(str, Enum):
    RANDOM = "random"
    CURIOSITY_DRIVEN = "curiosity_driven"
    TASK_ORIENTED = "task_oriented"
    COVERAGE_MAXIMIZING = "coverage_maximizing"


class SessionStatus(str, Enum):
    INITIALIZED = "initialized"
    STEPPING = "stepping"
    ENDED = "ended"


class Coordinates(BaseModel):
    x: float
    y: float


class ElementDescriptor(BaseModel):
    """A single interactive (or otherwise notable) element on the page."""

    element_id: str = Field(default="", description="DOM id attribute")
    tag: str = Field(default="", description="Lower-case HTML tag")
    role: Optional[str] = None
    type: Optional[str] = None
    text: str = Field(default="", description="Short visible text")
    href: Optional[str] = None
    selector: str = Field(default="", description="CSS selector usable by the executor")

    name: Optional[str] = None
    placeholder: Optional[str] = None
    aria_label: Optional[str] = None
    class_name: str = ""
    attributes: Dict[str, str] = Field(default_factory=dict)

    is_visible: bool = True
    disabled: bool = False
    is_clickable: bool = False
    is_inputable: bool = False
    center: Optional[Coordinates] = None

    @field_validator("tag")
    @classmethod
    def _lower_tag(cls, value: str) -> str:
        return (value or "").lower()


class FormDescriptor(BaseModel):
    form_id: str = ""
    action: Optional[str] = None
    method: str = "get"
    inputs: List[ElementDescriptor] = Field(default_factory=list)
    submit: Optional[ElementDescriptor] = None


class Landmark(BaseModel):
    role: str
    name: str = ""


class Heading(BaseModel):
    level: int
    text: str = ""


class CapturedState(BaseModel):
    """
    Snapshot of one page, produced once per step by the capture collaborator.

    Immutable after construction. Element lists longer than ``MAX_ELEMENTS``
    are truncated in document order.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    domain: str = ""
    title: str = ""
    summary: str = Field(default="", description="Short page text / pruned markup")
    elements: List[ElementDescriptor] = Field(default_factory=list)
    forms: List[FormDescriptor] = Field(default_factory=list)
    landmarks: List[Landmark] = Field(default_factory=list)
    headings: List[Heading] = Field(default_factory=list)
    captured_at: float = Field(default_factory=time.time)

    @model_validator(mode="before")
    @classmethod
    def _fill_domain(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("domain") and data.get("url"):
            data = dict(data)
            data["domain"] = domain_of(data["url"])
        return data

    @field_validator("elements")
    @classmethod
    def _cap_elements(cls, value: List[ElementDescriptor]) -> List[ElementDescriptor]:
        return list(value[:MAX_ELEMENTS])

    @property
    def links(self) -> List[ElementDescriptor]:
        return [e for e in self.elements if e.tag == "a" and e.href]

    @property
    def anchors(self) -> List[ElementDescriptor]:
        return [e for e in self.elements if e.tag == "a"]

    @property
    def inputs(self) -> List[ElementDescriptor]:
        return [e for e in self.elements if e.tag in ("input", "textarea")]


class ActionProposal(BaseModel):
    """An interaction chosen by a policy; ``success`` is settled after execution."""

    kind: ActionKind
    target: Optional[ElementDescriptor] = None
    coordinates: Optional[Coordinates] = None
    value: Optional[str] = None
    modifiers: List[str] = Field(default_factory=list)
    source: str = Field(default="", description="Option or strategy that proposed the action")

    success: bool = True
    error_message: Optional[str] = None
    timestamp: float = Field(default_factory=time.time)


class ExecutionOutcome(BaseModel):
    success: bool
    error_message: Optional[str] = None


class RewardComponents(BaseModel):
    novelty: float = 0.0
    coverage: float = 0.0
    diversity: float = 0.0
    information_gain: float = 0.0
    efficiency: float = 0.0
    error_penalty: float = 0.0
    inefficiency_penalty: float = 0.0

    # Reserved, always 0 for now
    task_progress: float = 0.0
    goal_completion: float = 0.0

    total: float = 0.0


class FrontierEntry(BaseModel):
    url: str
    domain: str
    fingerprint: str
    novelty_score: float
    depth: int
    discovered_at: float
    visits: int = 0


class ExplorationConfig(BaseModel):
    """Per-session settings."""

    strategy: ExplorationStrategy = Field(default=ExplorationStrategy.CURIOSITY_DRIVEN)

    max_duration_seconds: float = Field(default=600.0, gt=0, description="Wall-clock ceiling")
    max_actions: int = Field(default=100, ge=1, description="Action ceiling")
    max_pages: int = Field(default=50, ge=1, description="Distinct page ceiling")
    max_failures: int = Field(default=20, ge=1, description="Failed action ceiling")

    option_weights: Dict[str, float] = Field(
        default_factory=dict, description="Per-option score multiplier (option name -> weight)"
    )

    allowed_domains: List[str] = Field(default_factory=list, description="Empty means permissive")
    stay_within_domain: bool = False

    seed: Optional[int] = Field(default=None, description="Seed for the session's random source")
    log_file: Optional[str] = Field(default=None, description="JSON step log written on session end")


class SessionContext(BaseModel):
    """What the capture collaborator needs to know about the calling session."""

    session_id: str
    start_url: str
    current_url: str = ""
    step_index: int = 0
    navigate_to: Optional[str] = None


class StepResult(BaseModel):
    action: ActionProposal
    new_state: CapturedState
    reward: RewardComponents
    done: bool
