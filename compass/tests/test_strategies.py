import random

import pytest

from compass.src.explorer.elements import ElementAction, ElementCategory, PageType
from compass.src.explorer.logger import ExplorationLogger
from compass.src.explorer.models import ActionKind, ActionProposal, ExplorationConfig, RewardComponents
from compass.src.explorer.session import ExplorationSession
from compass.src.explorer.strategies import (
    CoverageMaximizingStrategy,
    CuriosityDrivenStrategy,
    RandomStrategy,
    StrategyContext,
    TaskOrientedStrategy,
    get_strategy,
    page_history,
)
from compass.src.rl.frontier import FrontierManager
from compass.src.rl.novelty import NoveltyModel
from compass.src.rl.option_scheduler import OptionScheduler
from compass.src.rl.options import DEFAULT_OPTIONS, OPTION_NAMES
from compass.src.utils.config import RNDConfig
from factories import element, link, state

A = "https://site.test/a"
B = "https://site.test/b"
C = "https://site.test/c"


def _page(url, *elements):
    return state(url, list(elements) or [element("h1", url)], summary=url)


def _session(urls, option_weights=None):
    session = ExplorationSession(
        session_id="s",
        start_url=urls[0],
        config=ExplorationConfig(seed=0, option_weights=option_weights or {}),
        rng=random.Random(0),
        logger=ExplorationLogger("s"),
    )
    session.record_state(_page(urls[0]), 1.0)
    for url in urls[1:]:
        session.record_step(
            ActionProposal(kind=ActionKind.NAVIGATE, value=url), session.current_url, _page(url), RewardComponents(), 1.0
        )
    return session


@pytest.fixture
def novelty(novelty_config):
    return NoveltyModel(novelty_config, RNDConfig(enabled=False, in_dim=32, out_dim=8))


@pytest.fixture
def frontier(frontier_config, novelty, clock):
    return FrontierManager(frontier_config, fingerprinter=novelty.fingerprinter, clock=clock)


def _ctx(session, novelty, frontier, options=(), epsilon=0.0):
    return StrategyContext(
        session=session,
        novelty=novelty,
        frontier=frontier,
        scheduler=OptionScheduler(novelty, options=options, epsilon=epsilon),
        low_threshold=0.4,
    )


class TestCuriosityBacktracking:
    def test_ping_pong_navigates_to_frontier(self, novelty, frontier):
        session = _session([A, B] * 4)
        frontier.consider(_page(C), 0.8, 1)

        proposal = CuriosityDrivenStrategy().select(session.current_state, _ctx(session, novelty, frontier))

        assert proposal.kind is ActionKind.NAVIGATE
        assert proposal.value == C
        assert proposal.source == "frontier:ping_pong"

    def test_low_novelty_navigates_to_frontier(self, novelty, frontier):
        session = _session([A])
        for _ in range(5):
            novelty.observe(session.current_state)
        frontier.consider(_page(C), 0.8, 1)

        proposal = CuriosityDrivenStrategy().select(session.current_state, _ctx(session, novelty, frontier))
        assert proposal.source == "frontier:low_novelty"

    def test_off_domain_entries_are_ignored(self, novelty, frontier):
        session = _session([A, B] * 4)
        frontier.consider(_page("https://elsewhere.test/x"), 1.0, 1)

        proposal = CuriosityDrivenStrategy().select(session.current_state, _ctx(session, novelty, frontier))
        assert not proposal.source.startswith("frontier:")

    def test_fresh_page_skips_backtracking(self, novelty, frontier):
        session = _session([A])
        frontier.consider(_page(C), 0.8, 1)
        ctx = _ctx(session, novelty, frontier)
        assert CuriosityDrivenStrategy().loop_reason(session.current_state, ctx) is None


class TestCuriosityHeuristic:
    def test_picks_an_element_when_no_option_applies(self, novelty, frontier):
        session = _session([A])
        page = _page(A, link(B, "Bee"), element("button", "Go"))
        session.states[-1] = page

        proposal = CuriosityDrivenStrategy().select(page, _ctx(session, novelty, frontier))
        assert proposal.source == "curiosity:heuristic"
        assert proposal.target is not None

    def test_already_clicked_elements_are_filtered(self, novelty, frontier):
        session = _session([A])
        target = link(B, "Bee")
        session.record_click(A, target)
        page = _page(A, target)

        proposal = CuriosityDrivenStrategy().fallback(page, _ctx(session, novelty, frontier))
        assert proposal.kind is ActionKind.SCROLL
        assert proposal.source == "curiosity:recover"

    def test_repeated_failures_go_back(self, novelty, frontier):
        session = _session([A])
        target = element("button", "Go")
        for _ in range(3):
            session.record_step(
                ActionProposal(kind=ActionKind.CLICK, target=target, success=False),
                A,
                _page(A, target),
                RewardComponents(),
                0.1,
            )
        page = _page(A, target)

        assert page_history(session, A).consecutive_failures == 3
        proposal = CuriosityDrivenStrategy().fallback(page, _ctx(session, novelty, frontier))
        assert proposal.kind is ActionKind.BACK

    def test_stuck_page_escapes_via_navigation(self, novelty, frontier):
        session = _session([A, A, A])
        page = _page(A, element("button", "Go"), link(B, "Bee"))
        proposal = CuriosityDrivenStrategy().fallback(page, _ctx(session, novelty, frontier))
        assert proposal.source == "curiosity:escape"
        assert proposal.target.href == B

    def test_scheduler_proposal_wins_over_heuristic(self, novelty, frontier):
        session = _session([A])
        page = _page(A, link(B, "Bee"))
        ctx = _ctx(session, novelty, frontier, options=DEFAULT_OPTIONS)
        proposal = CuriosityDrivenStrategy().select(page, ctx)
        assert proposal.source in OPTION_NAMES


def test_random_strategy_uses_full_exploration(novelty, frontier):
    session = _session([A])
    page = _page(A, link(B, "Bee"), element("input", type="search"))
    ctx = _ctx(session, novelty, frontier, options=DEFAULT_OPTIONS, epsilon=0.0)
    assert RandomStrategy().epsilon(ctx) == 1.0
    assert RandomStrategy().select(page, ctx).source in OPTION_NAMES


def test_random_fallback_avoids_recent_targets(novelty, frontier):
    session = _session([A])
    recent = link(B, "Bee")
    session.record_step(ActionProposal(kind=ActionKind.CLICK, target=recent), A, _page(A), RewardComponents(), 0.5)
    page = _page(A, recent, link(C, "See"))

    proposal = RandomStrategy().fallback(page, _ctx(session, novelty, frontier))
    assert proposal.target.href == C


def test_task_oriented_weights_follow_page_type(novelty, frontier):
    session = _session(["https://site.test/login"], option_weights={"login": 2.0})
    page = state("https://site.test/login", [element("input", type="email"), element("input", type="password")])
    weights = TaskOrientedStrategy().option_weights(page, _ctx(session, novelty, frontier))
    assert weights["login"] == pytest.approx(2.5)
    assert weights["form_fill"] == pytest.approx(1.1)


def test_task_score_prefers_inputs_on_login_pages():
    field = ElementAction(element("input", type="email"), ElementCategory.FORM_INPUT, 5, ActionKind.TYPE)
    nav = ElementAction(link(B), ElementCategory.LINK, 6, ActionKind.CLICK)
    assert TaskOrientedStrategy.task_score(field, PageType.LOGIN) > TaskOrientedStrategy.task_score(nav, PageType.LOGIN)


def test_coverage_prefers_unvisited_links():
    fresh = ElementAction(link(C), ElementCategory.LINK, 6, ActionKind.CLICK)
    seen = ElementAction(link(B), ElementCategory.LINK, 6, ActionKind.CLICK)
    visited = {B}
    assert CoverageMaximizingStrategy.coverage_score(fresh, PageType.UNKNOWN, visited) > (
        CoverageMaximizingStrategy.coverage_score(seen, PageType.UNKNOWN, visited)
    )


def test_coverage_resolves_relative_links_against_page():
    seen = ElementAction(link("/b"), ElementCategory.LINK, 6, ActionKind.CLICK)
    fresh = ElementAction(link("/c"), ElementCategory.LINK, 6, ActionKind.CLICK)
    visited = {B}
    assert CoverageMaximizingStrategy.coverage_score(seen, PageType.UNKNOWN, visited, A) == pytest.approx(4.0)
    assert CoverageMaximizingStrategy.coverage_score(fresh, PageType.UNKNOWN, visited, A) == pytest.approx(12.0)


def test_coverage_fallback_without_elements_scrolls(novelty, frontier):
    session = _session([A])
    proposal = CoverageMaximizingStrategy().fallback(state(A), _ctx(session, novelty, frontier))
    assert proposal.kind is ActionKind.SCROLL


@pytest.mark.parametrize(
    "name, cls",
    [
        ("curiosity_driven", CuriosityDrivenStrategy),
        ("random", RandomStrategy),
        ("task_oriented", TaskOrientedStrategy),
        ("coverage_maximizing", CoverageMaximizingStrategy),
    ],
)
def test_get_strategy(name, cls):
    assert isinstance(get_strategy(name), cls)


def test_unknown_strategy_rejected():
    with pytest.raises(ValueError):
        get_strategy("greedy")
