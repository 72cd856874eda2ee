"""Per-session state owned by the orchestrator."""
from __future__ import annotations

import random
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from compass.src.explorer.elements import element_key
from compass.src.explorer.logger import ExplorationLogger
from compass.src.explorer.models import (
    ActionKind,
    ActionProposal,
    CapturedState,
    ElementDescriptor,
    ExplorationConfig,
    RewardComponents,
    SessionStatus,
)
from compass.src.utils.urls import normalize_url

# Interactions that mark an element as already handled on its page
RECORDED_KINDS = (ActionKind.CLICK, ActionKind.TYPE)


@dataclass
class ExplorationSession:
    """
    One exploration run.

    ``states[0]`` is the initial capture and ``states[i + 1]`` the state after
    ``actions[i]``, so the page an action was taken on is ``states[i]``.
    """

    session_id: str
    start_url: str
    config: ExplorationConfig
    rng: random.Random
    logger: ExplorationLogger
    started_at: float = field(default_factory=time.time)
    ended_at: Optional[float] = None
    end_reason: Optional[str] = None
    status: SessionStatus = SessionStatus.INITIALIZED

    states: List[CapturedState] = field(default_factory=list)
    actions: List[ActionProposal] = field(default_factory=list)
    rewards: List[RewardComponents] = field(default_factory=list)
    novelty_scores: List[float] = field(default_factory=list)

    visited_urls: Set[str] = field(default_factory=set)
    clicked: Dict[str, Set[str]] = field(default_factory=dict)
    pending_backtrack: Optional[str] = None
    failed_actions: int = 0

    @property
    def current_state(self) -> CapturedState:
        return self.states[-1]

    @property
    def current_url(self) -> str:
        return self.states[-1].url if self.states else self.start_url

    @property
    def domain(self) -> str:
        return self.states[0].domain if self.states else ""

    @property
    def pages_explored(self) -> int:
        return len(self.visited_urls)

    @property
    def successful_actions(self) -> int:
        return sum(1 for a in self.actions if a.success)

    @property
    def total_reward(self) -> float:
        return sum(r.total for r in self.rewards)

    def record_state(self, state: CapturedState, novelty: float) -> None:
        self.states.append(state)
        self.novelty_scores.append(novelty)
        self.visited_urls.add(normalize_url(state.url))

    def record_step(
        self,
        action: ActionProposal,
        page_url: str,
        new_state: CapturedState,
        reward: RewardComponents,
        novelty: float,
    ) -> None:
        self.actions.append(action)
        self.rewards.append(reward)
        if not action.success:
            self.failed_actions += 1
        elif action.target is not None and action.kind in RECORDED_KINDS:
            self.record_click(page_url, action.target)
        self.record_state(new_state, novelty)

    def record_click(self, page_url: str, element: ElementDescriptor) -> None:
        self.clicked.setdefault(normalize_url(page_url), set()).add(element_key(element))

    def was_clicked(self, page_url: str, element: ElementDescriptor) -> bool:
        return element_key(element) in self.clicked.get(normalize_url(page_url), set())

    def clicked_on_page(self, page_url: str) -> Set[str]:
        return set(self.clicked.get(normalize_url(page_url), set()))

    def recent_urls(self, n: int, normalized: bool = True) -> List[str]:
        urls = [s.url for s in self.states[-n:]]
        return [normalize_url(u) for u in urls] if normalized else urls

    def actions_on_page(self, page_url: str) -> List[ActionProposal]:
        """Actions taken while ``page_url`` (normalized) was the current page, oldest first."""
        key = normalize_url(page_url)
        return [a for a, s in zip(self.actions, self.states) if normalize_url(s.url) == key]

    def page_visits(self, page_url: str) -> int:
        key = normalize_url(page_url)
        return sum(1 for s in self.states if normalize_url(s.url) == key)

    def action_kind_counts(self) -> Dict[str, int]:
        return dict(Counter(a.kind.value for a in self.actions))

    def elapsed(self, now: Optional[float] = None) -> float:
        end = self.ended_at if self.ended_at is not None else (now if now is not None else time.time())
        return max(0.0, end - self.started_at)
