"""
Exploration Strategies

Top-level policies that turn the current captured state into one action
proposal. All of them share the same shape: try the option scheduler first,
then fall back to scoring individual page elements.

- curiosity_driven: loop/low-novelty backtracking, options, curiosity heuristic
- random: fully random option choice, then a random pick among the best elements
- task_oriented: options weighted by inferred page type, then goal-relevance scoring
- coverage_maximizing: options favouring new URLs, then reachability scoring
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from compass.src.explorer.elements import (
    ElementAction,
    ElementCategory,
    PageType,
    analyze_page_elements,
    detect_page_type,
    element_key,
)
from compass.src.explorer.models import ActionKind, ActionProposal, CapturedState, ExplorationStrategy
from compass.src.explorer.session import ExplorationSession
from compass.src.rl.frontier import FrontierManager
from compass.src.rl.novelty import NoveltyModel
from compass.src.rl.option_scheduler import OptionScheduler
from compass.src.rl.options import OptionContext
from compass.src.utils.urls import normalize_url, resolve_url

LOOP_WINDOW = 8
LOOP_MIN_HISTORY = 6
LOOP_MAX_DISTINCT = 2

STUCK_FAILURES = 3
STUCK_FAILED_KINDS = 3
STUCK_PAGE_VISITS = 2

NAVIGATION_CATEGORIES = (ElementCategory.NAVIGATION, ElementCategory.LINK)


@dataclass
class StrategyContext:
    """Services and session state a strategy may consult for one decision."""

    session: ExplorationSession
    novelty: NoveltyModel
    frontier: FrontierManager
    scheduler: OptionScheduler
    low_threshold: float = 0.4
    log: Callable[[str], None] = field(default=lambda message: None)

    @property
    def rng(self):
        return self.session.rng

    def option_context(self, state: CapturedState) -> OptionContext:
        return OptionContext(
            recent_urls=self.session.recent_urls(10, normalized=False),
            visited_urls=set(self.session.visited_urls),
            clicked_selectors_on_page=self.session.clicked_on_page(state.url),
            rng=self.session.rng,
        )


@dataclass
class PageHistory:
    """What the session has already done on the current page."""

    failed_kinds: set
    consecutive_failures: int
    interaction_counts: Dict[str, int]
    visits: int

    @property
    def stuck(self) -> bool:
        return (
            self.consecutive_failures >= STUCK_FAILURES
            or len(self.failed_kinds) >= STUCK_FAILED_KINDS
            or self.visits > STUCK_PAGE_VISITS
        )


def page_history(session: ExplorationSession, url: str) -> PageHistory:
    actions = session.actions_on_page(url)
    failed_kinds = {a.kind for a in actions if not a.success}

    consecutive = 0
    for action in reversed(actions):
        if action.success:
            break
        consecutive += 1

    counts: Dict[str, int] = {}
    for action in actions:
        if action.target is not None:
            key = element_key(action.target)
            counts[key] = counts.get(key, 0) + 1

    return PageHistory(
        failed_kinds=failed_kinds,
        consecutive_failures=consecutive,
        interaction_counts=counts,
        visits=session.page_visits(url),
    )


def element_proposal(choice: ElementAction, source: str) -> ActionProposal:
    return ActionProposal(
        kind=choice.kind,
        target=choice.element,
        coordinates=choice.element.center,
        value=choice.value,
        source=source,
    )


def scroll_proposal(source: str) -> ActionProposal:
    return ActionProposal(kind=ActionKind.SCROLL, value="down", source=source)


class ExplorationPolicy:
    """Base class; subclasses fill in ``option_weights`` and ``fallback``."""

    name: ExplorationStrategy

    def select(self, state: CapturedState, ctx: StrategyContext) -> ActionProposal:
        proposal = ctx.scheduler.propose(
            state,
            ctx.option_context(state),
            option_weights=self.option_weights(state, ctx),
            epsilon=self.epsilon(ctx),
        )
        if proposal is not None:
            return proposal
        return self.fallback(state, ctx)

    def option_weights(self, state: CapturedState, ctx: StrategyContext) -> Dict[str, float]:
        return dict(ctx.session.config.option_weights)

    def epsilon(self, ctx: StrategyContext) -> Optional[float]:
        return None

    def fallback(self, state: CapturedState, ctx: StrategyContext) -> ActionProposal:
        raise NotImplementedError


class CuriosityDrivenStrategy(ExplorationPolicy):
    name = ExplorationStrategy.CURIOSITY_DRIVEN

    def select(self, state: CapturedState, ctx: StrategyContext) -> ActionProposal:
        backtrack = self.loop_backtrack(state, ctx)
        if backtrack is not None:
            return backtrack
        return super().select(state, ctx)

    def loop_reason(self, state: CapturedState, ctx: StrategyContext) -> Optional[str]:
        recent = ctx.session.recent_urls(LOOP_WINDOW)
        if len(recent) >= LOOP_MIN_HISTORY and len(set(recent)) <= LOOP_MAX_DISTINCT:
            return "ping_pong"
        if ctx.novelty.score(state, train=False) < ctx.low_threshold:
            return "low_novelty"
        return None

    def loop_backtrack(self, state: CapturedState, ctx: StrategyContext) -> Optional[ActionProposal]:
        reason = self.loop_reason(state, ctx)
        if reason is None:
            return None
        target = ctx.frontier.next_candidate(state.url, ctx.session.visited_urls, domain=state.domain)
        if not target or normalize_url(target) == normalize_url(state.url):
            return None
        ctx.log(f"Backtracking to {target} ({reason})")
        return ActionProposal(kind=ActionKind.NAVIGATE, value=target, source=f"frontier:{reason}")

    def fallback(self, state: CapturedState, ctx: StrategyContext) -> ActionProposal:
        history = page_history(ctx.session, state.url)
        candidates = analyze_page_elements(state.elements, ctx.rng)

        if history.stuck:
            escape = [c for c in candidates if c.category in NAVIGATION_CATEGORIES]
            if escape:
                choice = escape[ctx.rng.randrange(min(3, len(escape)))]
                ctx.log("Stuck on page, heading for a navigation element")
                return element_proposal(choice, "curiosity:escape")

        on_login_page = detect_page_type(state) is PageType.LOGIN
        scored: List[Tuple[float, int, ElementAction]] = []
        for candidate in candidates:
            score, interactions = self.curiosity_score(candidate, state, ctx, history, on_login_page)
            if interactions < 2 and score > -10:
                scored.append((score, interactions, candidate))

        if not scored:
            if history.consecutive_failures > 2:
                return ActionProposal(kind=ActionKind.BACK, source="curiosity:recover")
            return scroll_proposal("curiosity:recover")

        scored.sort(key=lambda item: item[0], reverse=True)
        if ctx.rng.random() < 0.7:
            choice = scored[0][2]
        else:
            choice = scored[ctx.rng.randrange(min(5, len(scored)))][2]
        return element_proposal(choice, "curiosity:heuristic")

    @staticmethod
    def curiosity_score(
        candidate: ElementAction,
        state: CapturedState,
        ctx: StrategyContext,
        history: PageHistory,
        on_login_page: bool,
    ) -> Tuple[float, int]:
        interactions = history.interaction_counts.get(element_key(candidate.element), 0)
        score = float(candidate.priority)

        if ctx.session.was_clicked(state.url, candidate.element):
            score -= 100
        if candidate.kind in history.failed_kinds:
            score -= 20
        score -= 15 * interactions
        if history.consecutive_failures > 0 and candidate.category in NAVIGATION_CATEGORIES:
            score += 10
        if candidate.category is ElementCategory.SEARCH:
            score += 5
        if candidate.category in (ElementCategory.MEDIA, ElementCategory.SOCIAL):
            score -= 2
        if on_login_page:
            if candidate.kind is ActionKind.TYPE and ActionKind.TYPE in history.failed_kinds:
                score -= 30
            if candidate.category in NAVIGATION_CATEGORIES:
                score += 8

        score += ctx.rng.random() * 1.5
        return score, interactions


class RandomStrategy(ExplorationPolicy):
    name = ExplorationStrategy.RANDOM

    def epsilon(self, ctx: StrategyContext) -> Optional[float]:
        return 1.0

    def fallback(self, state: CapturedState, ctx: StrategyContext) -> ActionProposal:
        candidates = analyze_page_elements(state.elements, ctx.rng)
        recent = ctx.session.actions[-5:]
        recent_targets = {element_key(a.target) for a in recent if a.target is not None}
        recent_kinds = {a.kind for a in ctx.session.actions[-3:]}

        available = [c for c in candidates if element_key(c.element) not in recent_targets]
        diverse = [c for c in available if c.kind not in recent_kinds]
        pool = diverse or available
        if not pool:
            return scroll_proposal("random:fallback")

        explore_rate = max(0.1, 0.5 - len(ctx.session.actions) * 0.02)
        top = pool[:5]
        choice = top[ctx.rng.randrange(len(top))] if ctx.rng.random() < explore_rate else top[0]
        return element_proposal(choice, "random:heuristic")


TASK_OPTION_WEIGHTS: Dict[PageType, Dict[str, float]] = {
    PageType.LOGIN: {"login": 1.25, "form_fill": 1.1},
    PageType.REGISTRATION: {"form_fill": 1.3},
    PageType.FORM_PAGE: {"form_fill": 1.3},
    PageType.CONTACT: {"form_fill": 1.3},
    PageType.HOMEPAGE: {"search": 1.5, "navigation": 1.2},
    PageType.SEARCH_RESULTS: {"navigation": 1.3, "filter_sort": 1.5},
    PageType.PRODUCT_LISTING: {"filter_sort": 1.8, "pagination": 1.8},
}


class TaskOrientedStrategy(ExplorationPolicy):
    name = ExplorationStrategy.TASK_ORIENTED

    def option_weights(self, state: CapturedState, ctx: StrategyContext) -> Dict[str, float]:
        weights = dict(TASK_OPTION_WEIGHTS.get(detect_page_type(state), {}))
        for name, weight in ctx.session.config.option_weights.items():
            weights[name] = weights.get(name, 1.0) * weight
        return weights

    def fallback(self, state: CapturedState, ctx: StrategyContext) -> ActionProposal:
        page_type = detect_page_type(state)
        candidates = analyze_page_elements(state.elements, ctx.rng)
        if not candidates:
            return scroll_proposal("task:fallback")

        ranked = sorted(candidates, key=lambda c: self.task_score(c, page_type), reverse=True)
        return element_proposal(ranked[0], "task:heuristic")

    @staticmethod
    def task_score(candidate: ElementAction, page_type: PageType) -> float:
        score = float(candidate.priority)
        category = candidate.category
        text = (candidate.element.text or "").lower()
        cls = (candidate.element.class_name or "").lower()

        if page_type is PageType.HOMEPAGE:
            if category is ElementCategory.SEARCH:
                score += 8
            elif category is ElementCategory.NAVIGATION:
                score += 6
        elif page_type is PageType.LOGIN:
            if category is ElementCategory.FORM_INPUT:
                score += 10
            elif category is ElementCategory.BUTTON and "login" in text:
                score += 8
        elif page_type is PageType.SEARCH_RESULTS:
            if category is ElementCategory.LINK and len(text) > 10:
                score += 7
            elif category is ElementCategory.SEARCH:
                score += 5
        elif page_type is PageType.PRODUCT_LISTING:
            if category is ElementCategory.LINK and "product" in cls:
                score += 8
            elif category is ElementCategory.DROPDOWN:
                score += 6
        elif page_type is PageType.PRODUCT_DETAIL:
            if "cart" in text or "buy" in text:
                score += 10
            elif category is ElementCategory.DROPDOWN:
                score += 5
        elif page_type in (PageType.FORM_PAGE, PageType.CONTACT):
            if category is ElementCategory.FORM_INPUT:
                score += 8
            elif category is ElementCategory.BUTTON and ("submit" in text or "send" in text):
                score += 9

        if category is ElementCategory.BUTTON:
            if "search" in text or "find" in text:
                score += 4
            elif "next" in text or "continue" in text:
                score += 3
        if category in (ElementCategory.MEDIA, ElementCategory.TEXT_CONTENT):
            score -= 2
        return score


COVERAGE_OPTION_WEIGHTS = {"navigation": 1.4, "pagination": 1.5, "open_new_tab": 1.3, "scroll": 0.5}


class CoverageMaximizingStrategy(ExplorationPolicy):
    name = ExplorationStrategy.COVERAGE_MAXIMIZING

    def option_weights(self, state: CapturedState, ctx: StrategyContext) -> Dict[str, float]:
        weights = dict(COVERAGE_OPTION_WEIGHTS)
        for name, weight in ctx.session.config.option_weights.items():
            weights[name] = weights.get(name, 1.0) * weight
        return weights

    def fallback(self, state: CapturedState, ctx: StrategyContext) -> ActionProposal:
        page_type = detect_page_type(state)
        candidates = analyze_page_elements(state.elements, ctx.rng)
        if not candidates:
            return scroll_proposal("coverage:fallback")

        visited = ctx.session.visited_urls
        ranked = sorted(candidates, key=lambda c: self.coverage_score(c, page_type, visited, state.url), reverse=True)
        top = ranked[:3]
        return element_proposal(top[ctx.rng.randrange(len(top))], "coverage:heuristic")

    @staticmethod
    def coverage_score(candidate: ElementAction, page_type: PageType, visited: set, page_url: str = "") -> float:
        score = float(candidate.priority)
        category = candidate.category
        text = (candidate.element.text or "").lower()

        if category is ElementCategory.NAVIGATION:
            score += 8
            if page_type is PageType.HOMEPAGE:
                score += 3
        elif category is ElementCategory.LINK:
            href = candidate.element.href or ""
            score += 6 if href and resolve_url(page_url, href) not in visited else -2
        elif category is ElementCategory.SEARCH:
            score += 7
        elif category is ElementCategory.BUTTON and any(w in text for w in ("more", "view", "show", "load")):
            score += 4

        if category in (ElementCategory.MEDIA, ElementCategory.SOCIAL):
            score -= 3
        if page_type is PageType.PRODUCT_LISTING and ("next" in text or "page" in text):
            score += 5
        return score


STRATEGIES: Dict[ExplorationStrategy, ExplorationPolicy] = {
    ExplorationStrategy.CURIOSITY_DRIVEN: CuriosityDrivenStrategy(),
    ExplorationStrategy.RANDOM: RandomStrategy(),
    ExplorationStrategy.TASK_ORIENTED: TaskOrientedStrategy(),
    ExplorationStrategy.COVERAGE_MAXIMIZING: CoverageMaximizingStrategy(),
}


def get_strategy(name: ExplorationStrategy | str) -> ExplorationPolicy:
    return STRATEGIES[ExplorationStrategy(name)]
