import random

import pytest

from compass.src.explorer.models import ActionKind
from compass.src.rl.novelty import NoveltyModel
from compass.src.rl.option_scheduler import OptionScheduler, clamp01
from compass.src.rl.options import OPTION_NAMES, OptionContext
from factories import element, link, state


@pytest.fixture
def novelty(novelty_config, rnd_config):
    return NoveltyModel(novelty_config, rnd_config, seed=0)


def _login_page():
    return state(
        "https://x.com/login",
        [
            link("https://x.com/a"),
            element("input", type="email", name="email"),
            element("input", type="password", name="password"),
        ],
    )


def test_clamp01():
    assert clamp01(-1) == 0.0
    assert clamp01(0.5) == 0.5
    assert clamp01(3) == 1.0


def test_invalid_epsilon_rejected(novelty):
    with pytest.raises(ValueError):
        OptionScheduler(novelty, epsilon=1.5)
    with pytest.raises(ValueError):
        OptionScheduler(novelty, epsilon=-0.1)


def test_greedy_picks_highest_blended_option(novelty):
    scheduler = OptionScheduler(novelty, epsilon=0.0)
    page = _login_page()
    ctx = OptionContext(rng=random.Random(0))

    scores = dict((opt.name, score) for opt, score in scheduler.blended_scores(page, ctx))
    assert max(scores, key=scores.get) == "navigation"

    proposal = scheduler.propose(page, ctx)
    assert proposal.source == "navigation"


def test_option_weights_reorder_the_ranking(novelty):
    scheduler = OptionScheduler(novelty, epsilon=0.0)
    proposal = scheduler.propose(_login_page(), OptionContext(rng=random.Random(0)), option_weights={"navigation": 0.5})
    assert proposal.source == "login"
    assert proposal.kind is ActionKind.TYPE


def test_blend_includes_count_novelty(novelty):
    scheduler = OptionScheduler(novelty, epsilon=0.0)
    page = state("https://x.com/")
    ctx = OptionContext(rng=random.Random(0))
    (scroll, score), = scheduler.blended_scores(page, ctx)
    assert scroll.name == "scroll"
    assert score == pytest.approx(0.7 * 0.2 + 0.3 * 1.0)

    novelty.observe(page)
    (_, after), = scheduler.blended_scores(page, ctx)
    assert after < score


def test_falls_through_when_best_option_has_nothing_to_offer(novelty):
    scheduler = OptionScheduler(novelty, epsilon=0.0)
    page = state("https://x.com/", [link("#top")])
    proposal = scheduler.propose(page, OptionContext(rng=random.Random(0)))
    assert proposal.source == "open_new_tab"


def test_full_exploration_still_returns_applicable_option(novelty):
    scheduler = OptionScheduler(novelty, epsilon=1.0)
    page = _login_page()
    applicable = {opt.name for opt in scheduler.applicable(page)}
    for seed in range(20):
        proposal = scheduler.propose(page, OptionContext(rng=random.Random(seed)))
        assert proposal.source in applicable
        assert proposal.source in OPTION_NAMES


def test_no_options_yields_none(novelty):
    scheduler = OptionScheduler(novelty, options=(), epsilon=0.0)
    assert scheduler.propose(state("https://x.com/"), OptionContext()) is None
