import random

import pytest

from compass.src.explorer.elements import element_key
from compass.src.explorer.models import ActionKind, FormDescriptor
from compass.src.rl.options import (
    DEFAULT_OPTIONS,
    OPTION_NAMES,
    FilterSortOption,
    FormFillOption,
    LoginOption,
    NavigationOption,
    OpenInNewTabOption,
    OptionContext,
    PaginationOption,
    ScrollOption,
    SearchOption,
    guess_value_for_input,
    infer_query,
)
from factories import element, link, state


def _ctx(visited=(), clicked=(), seed=0):
    return OptionContext(visited_urls=set(visited), clicked_selectors_on_page=set(clicked), rng=random.Random(seed))


def test_option_order_is_fixed():
    assert OPTION_NAMES == (
        "navigation",
        "form_fill",
        "search",
        "pagination",
        "scroll",
        "login",
        "open_new_tab",
        "filter_sort",
    )
    assert len(DEFAULT_OPTIONS) == 8


class TestNavigation:
    def test_only_unvisited_links_are_proposed(self):
        page = state(
            "https://example.com/",
            [link("https://example.com/a"), link("https://example.com/b"), link("https://example.com/c")],
        )
        option = NavigationOption()
        targets = set()
        for seed in range(40):
            proposal = option.propose(page, _ctx(visited={"https://example.com/b"}, seed=seed))
            assert proposal.kind is ActionKind.CLICK
            assert proposal.source == "navigation"
            targets.add(proposal.target.href)

        assert targets == {"https://example.com/a", "https://example.com/c"}

    def test_score_is_fresh_fraction(self):
        page = state("https://example.com/", [link("https://example.com/a"), link("https://example.com/b")])
        assert NavigationOption().score(page, _ctx(visited={"https://example.com/a"})) == pytest.approx(0.5)

    def test_visited_match_ignores_query(self):
        page = state("https://example.com/", [link("https://example.com/a?ref=1"), link("https://example.com/b")])
        proposal = NavigationOption().propose(page, _ctx(visited={"https://example.com/a"}))
        assert proposal.target.href == "https://example.com/b"

    def test_all_visited_falls_back_to_any_link(self):
        page = state("https://example.com/", [link("https://example.com/a")])
        proposal = NavigationOption().propose(page, _ctx(visited={"https://example.com/a"}))
        assert proposal.target.href == "https://example.com/a"

    def test_relative_links_resolve_against_page(self):
        page = state("https://x.com/", [link("/a"), link("/b"), link("/c")])
        option = NavigationOption()
        targets = {option.propose(page, _ctx(visited={"https://x.com/a"}, seed=seed)).target.href for seed in range(40)}
        assert targets == {"/b", "/c"}
        assert option.score(page, _ctx(visited={"https://x.com/a"})) == pytest.approx(2 / 3)

    def test_score_ignores_fragment_links(self):
        page = state("https://x.com/", [link("#top"), link("https://x.com/a")])
        assert NavigationOption().score(page, _ctx()) == pytest.approx(1.0)
        assert NavigationOption().score(page, _ctx(visited={"https://x.com/a"})) == 0.0

    def test_fragment_links_are_skipped(self):
        page = state("https://example.com/", [link("#top")])
        option = NavigationOption()
        assert option.is_applicable(page)
        assert option.propose(page, _ctx()) is None


class TestSearch:
    def test_applicable_by_type_or_placeholder(self):
        option = SearchOption()
        assert option.is_applicable(state("https://x.com/", [element("input", type="search")]))
        assert option.is_applicable(state("https://x.com/", [element("input", placeholder="Find products")]))
        assert not option.is_applicable(state("https://x.com/", [element("input", type="email")]))

    def test_docs_title_queries_api(self):
        page = state("https://x.com/guide", [element("input", type="search")], title="API Docs")
        proposal = SearchOption().propose(page, _ctx())
        assert proposal.kind is ActionKind.TYPE
        assert proposal.value == "api"

    def test_query_falls_back_to_path_then_default(self):
        assert infer_query(state("https://x.com/shoes/red")) == "shoes"
        page = state("https://x.com/", [element("input", type="search")])
        assert SearchOption().propose(page, _ctx()).value == "test"


class TestFormFill:
    def test_prefers_text_like_inputs(self):
        form = FormDescriptor(inputs=[element("input", type="checkbox"), element("input", type="email")])
        proposal = FormFillOption().propose(state("https://x.com/", forms=[form]), _ctx())
        assert proposal.kind is ActionKind.TYPE
        assert proposal.target.type == "email"
        assert proposal.value == "test@example.com"

    def test_submit_only_form_clicks_submit(self):
        form = FormDescriptor(submit=element("button", "Send"))
        proposal = FormFillOption().propose(state("https://x.com/", forms=[form]), _ctx())
        assert proposal.kind is ActionKind.CLICK
        assert proposal.target.text == "Send"

    def test_empty_form_proposes_nothing(self):
        assert FormFillOption().propose(state("https://x.com/", forms=[FormDescriptor()]), _ctx()) is None

    def test_name_fields_get_a_name(self):
        assert guess_value_for_input(element("input", name="full_name")) == "Test User"
        assert guess_value_for_input(element("input")) == "test"


class TestLogin:
    def _page(self):
        return state(
            "https://x.com/login",
            [element("input", type="email", name="email"), element("input", type="password", name="pw")],
        )

    def test_email_first(self):
        proposal = LoginOption().propose(self._page(), _ctx())
        assert proposal.target.type == "email"
        assert proposal.value == "test@example.com"

    def test_password_once_email_was_filled(self):
        page = self._page()
        email = page.inputs[0]
        proposal = LoginOption().propose(page, _ctx(clicked={element_key(email)}))
        assert proposal.target.type == "password"
        assert proposal.value == "Password123!"

    def test_needs_both_fields(self):
        page = state("https://x.com/login", [element("input", type="email")])
        assert not LoginOption().is_applicable(page)


def test_pagination_matches_next_links():
    page = state("https://x.com/list", [element("a", "Read the docs"), element("a", "Next »")])
    option = PaginationOption()
    assert option.is_applicable(page)
    assert option.propose(page, _ctx()).target.text == "Next »"


def test_filter_sort_matches_controls():
    page = state("https://x.com/list", [element("button", "Sort by price")])
    proposal = FilterSortOption().propose(page, _ctx())
    assert proposal.kind is ActionKind.CLICK
    assert proposal.source == "filter_sort"


def test_scroll_always_applies():
    proposal = ScrollOption().propose(state("https://x.com/"), _ctx())
    assert ScrollOption().is_applicable(state("https://x.com/"))
    assert proposal.kind is ActionKind.SCROLL
    assert proposal.value == "down"


def test_open_in_new_tab_uses_modifier():
    page = state("https://x.com/", [link("https://x.com/a")])
    proposal = OpenInNewTabOption().propose(page, _ctx())
    assert proposal.modifiers == ["ctrl"]
    assert proposal.target.href == "https://x.com/a"


def test_open_in_new_tab_skips_visited_relative_links():
    page = state("https://x.com/docs/", [link("intro"), link("/about")])
    for seed in range(20):
        proposal = OpenInNewTabOption().propose(page, _ctx(visited={"https://x.com/docs/intro"}, seed=seed))
        assert proposal.target.href == "/about"
