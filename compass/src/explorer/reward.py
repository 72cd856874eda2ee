"""
Reward Calculation

Shaped per-step reward for exploration. Early in a session novelty and
diversity dominate; as actions accumulate the weight shifts to efficiency.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from compass.src.explorer.elements import element_key
from compass.src.explorer.models import ActionKind, ActionProposal, CapturedState, RewardComponents
from compass.src.utils.urls import normalize_url

PROGRESS_HORIZON = 30
COVERAGE_WEIGHT = 0.2
INFORMATION_GAIN_WEIGHT = 0.1


@dataclass(frozen=True)
class PhaseWeights:
    novelty: float
    diversity: float
    efficiency: float


def progress(actions_taken: int, horizon: int = PROGRESS_HORIZON) -> float:
    return min(actions_taken / horizon, 1.0)


def phase_weights(actions_taken: int, horizon: int = PROGRESS_HORIZON) -> PhaseWeights:
    p = progress(actions_taken, horizon)
    return PhaseWeights(
        novelty=0.4 * (1 - p) + 0.2 * p,
        diversity=0.3 * (1 - p) + 0.1 * p,
        efficiency=0.05 * (1 - p) + 0.2 * p,
    )


def combine(components: RewardComponents, weights: PhaseWeights) -> float:
    """Weighted total; task_progress and goal_completion are reserved and stay 0."""
    return (
        weights.novelty * components.novelty
        + COVERAGE_WEIGHT * components.coverage
        + weights.diversity * components.diversity
        + INFORMATION_GAIN_WEIGHT * components.information_gain
        + weights.efficiency * components.efficiency
        + components.error_penalty
        + components.inefficiency_penalty
    )


def is_repetitive(kinds: Sequence[ActionKind]) -> bool:
    """Three identical kinds in a row, or an A-B-A-B alternation at the tail."""
    if len(kinds) >= 3 and kinds[-1] == kinds[-2] == kinds[-3]:
        return True
    if len(kinds) >= 4:
        a, b, c, d = kinds[-4:]
        if a == c and b == d:
            return True
    return False


def _target_identity(action: ActionProposal) -> Optional[str]:
    return element_key(action.target) if action.target is not None else None


class RewardCalculator:
    """
    Computes ``RewardComponents`` for one transition.

    ``prior_states`` and ``prior_actions`` are the session history before this
    step (``prior_states`` includes ``previous_state``). The action being
    scored counts towards ``actions_taken``.
    """

    def __init__(self, horizon: int = PROGRESS_HORIZON):
        if horizon <= 0:
            raise ValueError("horizon must be positive")
        self.horizon = horizon

    def calculate(
        self,
        previous_state: CapturedState,
        action: ActionProposal,
        new_state: CapturedState,
        prior_states: Sequence[CapturedState],
        prior_actions: Sequence[ActionProposal],
    ) -> RewardComponents:
        actions_taken = len(prior_actions) + 1
        pages = {normalize_url(s.url) for s in prior_states}
        pages.add(normalize_url(new_state.url))

        components = RewardComponents(
            novelty=self.novelty(previous_state, new_state, prior_states),
            coverage=math.log(1 + len(pages)) * 0.1,
            diversity=self.diversity(action, prior_actions, actions_taken),
            information_gain=self.information_gain(previous_state, new_state),
            efficiency=min((len(pages) / actions_taken) * 0.1, 0.2),
            error_penalty=0.0 if action.success else -1.0,
            inefficiency_penalty=self.inefficiency(action, prior_actions),
        )
        components.total = combine(components, phase_weights(actions_taken, self.horizon))
        return components

    @staticmethod
    def novelty(
        previous_state: CapturedState,
        new_state: CapturedState,
        prior_states: Sequence[CapturedState],
    ) -> float:
        new_url = new_state.url
        seen = {s.url for s in prior_states}
        if new_url != previous_state.url and new_url not in seen:
            return 1.0

        previous_selectors = {e.selector for e in previous_state.elements}
        fresh = sum(1 for e in new_state.elements if e.selector not in previous_selectors)
        return min(0.1 * fresh, 0.5)

    def diversity(
        self,
        action: ActionProposal,
        prior_actions: Sequence[ActionProposal],
        actions_taken: int,
    ) -> float:
        kinds_so_far = {a.kind for a in prior_actions}
        kinds_so_far.add(action.kind)
        reward = min(0.05 * len(kinds_so_far), 0.3)

        recent = [a.kind for a in prior_actions[-5:]]
        if action.kind not in recent:
            reward += 0.2

        tail: List[ActionKind] = [a.kind for a in prior_actions[-4:]] + [action.kind]
        if is_repetitive(tail):
            reward -= 0.15

        reward += (1 - progress(actions_taken, self.horizon)) * 0.1
        return max(reward, -0.2)

    @staticmethod
    def information_gain(previous_state: CapturedState, new_state: CapturedState) -> float:
        growth = len(new_state.elements) - len(previous_state.elements)
        if growth > 0:
            return min(0.01 * growth, 0.5)
        return 0.0

    @staticmethod
    def inefficiency(action: ActionProposal, prior_actions: Sequence[ActionProposal]) -> float:
        identity = _target_identity(action)
        repeats = sum(
            1
            for a in prior_actions[-5:]
            if a.kind == action.kind and _target_identity(a) == identity
        )
        return -min(0.1 * repeats, 0.5)


def compute_returns(rewards: Sequence[float], gamma: float = 0.99) -> List[float]:
    """Discounted returns ``G_t = r_t + gamma * G_{t+1}``."""
    if not 0.0 <= gamma <= 1.0:
        raise ValueError("gamma must be within [0, 1]")
    returns = [0.0] * len(rewards)
    running = 0.0
    for i in range(len(rewards) - 1, -1, -1):
        running = rewards[i] + gamma * running
        returns[i] = running
    return returns
