"""
Option Scheduler

Epsilon-greedy choice over the applicable options. The greedy branch blends
each option's own utility with the count-based novelty of the current state.
"""
from __future__ import annotations

import random
from typing import Dict, List, Optional, Sequence, Tuple

from compass.src.explorer.models import ActionProposal, CapturedState
from compass.src.rl.novelty import NoveltyModel
from compass.src.rl.options import DEFAULT_OPTIONS, OptionContext, OptionPolicy
from compass.src.utils.config import CONFIG, SchedulerConfig


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


class OptionScheduler:
    def __init__(
        self,
        novelty: NoveltyModel,
        options: Sequence[OptionPolicy] = DEFAULT_OPTIONS,
        config: SchedulerConfig | None = None,
        epsilon: Optional[float] = None,
    ):
        cfg = config or CONFIG.scheduler
        eps = cfg.epsilon if epsilon is None else epsilon
        if not 0.0 <= eps <= 1.0:
            raise ValueError("epsilon must be within [0, 1]")

        self.novelty = novelty
        self.options: Tuple[OptionPolicy, ...] = tuple(options)
        self.epsilon = eps
        self.option_weight = cfg.option_weight
        self.novelty_weight = cfg.novelty_weight

    def applicable(self, state: CapturedState) -> List[OptionPolicy]:
        return [opt for opt in self.options if opt.is_applicable(state)]

    def blended_scores(
        self,
        state: CapturedState,
        ctx: OptionContext,
        option_weights: Optional[Dict[str, float]] = None,
    ) -> List[Tuple[OptionPolicy, float]]:
        """``(option, blended score)`` for every applicable option, in fixed option order."""
        weights = option_weights or {}
        intrinsic = self.novelty.count_reward(state)
        scored = []
        for opt in self.applicable(state):
            ext = clamp01(opt.score(state, ctx) * weights.get(opt.name, 1.0))
            scored.append((opt, self.option_weight * ext + self.novelty_weight * intrinsic))
        return scored

    def propose(
        self,
        state: CapturedState,
        ctx: OptionContext,
        option_weights: Optional[Dict[str, float]] = None,
        epsilon: Optional[float] = None,
    ) -> Optional[ActionProposal]:
        rng = ctx.rng or random.Random()
        eps = self.epsilon if epsilon is None else epsilon

        if eps > 0 and rng.random() < eps:
            candidates = self.applicable(state)
            if candidates:
                proposal = candidates[rng.randrange(len(candidates))].propose(state, ctx)
                if proposal is not None:
                    return proposal

        # Stable sort keeps the fixed option order on ties
        ranked = sorted(self.blended_scores(state, ctx, option_weights), key=lambda pair: pair[1], reverse=True)
        for opt, _ in ranked:
            proposal = opt.propose(state, ctx)
            if proposal is not None:
                return proposal
        return None
