"""
Action Options

Each option is a small self-contained policy: an applicability test, a
heuristic utility in [0, 1] and a concrete proposal. The set is closed; the
scheduler walks ``DEFAULT_OPTIONS`` in its fixed order.
"""
from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple
from urllib.parse import urlsplit

from compass.src.explorer.elements import element_key
from compass.src.explorer.models import ActionKind, ActionProposal, CapturedState, ElementDescriptor
from compass.src.utils.urls import resolve_url

PAGINATION_PATTERN = re.compile(r"next|more|older|→|»", re.IGNORECASE)
FILTER_SORT_PATTERN = re.compile(r"filter|sort|refine", re.IGNORECASE)
SEARCH_HINT_PATTERN = re.compile(r"search|find", re.IGNORECASE)
EMAIL_HINT_PATTERN = re.compile(r"email|user", re.IGNORECASE)
PASSWORD_TYPE_PATTERN = re.compile(r"password", re.IGNORECASE)
PASSWORD_NAME_PATTERN = re.compile(r"pass", re.IGNORECASE)

LOGIN_EMAIL = "test@example.com"
LOGIN_PASSWORD = "Password123!"


@dataclass
class OptionContext:
    """Per-step view of the session handed to every option."""

    recent_urls: List[str] = field(default_factory=list)
    visited_urls: Set[str] = field(default_factory=set)
    clicked_selectors_on_page: Set[str] = field(default_factory=set)
    rng: random.Random = field(default_factory=random.Random)

    def is_visited(self, url: Optional[str], page_url: str = "") -> bool:
        """Relative hrefs are resolved against ``page_url`` before the lookup."""
        return bool(url) and resolve_url(page_url, url) in self.visited_urls


def _pick(items: Sequence, rng: random.Random):
    if not items:
        return None
    return items[rng.randrange(len(items))]


def _clickable_link(link: ElementDescriptor) -> bool:
    return bool(link.href) and not link.href.startswith("#")


def _proposal(kind: ActionKind, source: str, target: Optional[ElementDescriptor] = None, **kwargs) -> ActionProposal:
    coordinates = target.center if target is not None else None
    return ActionProposal(kind=kind, target=target, coordinates=coordinates, source=source, **kwargs)


class OptionPolicy:
    """Base class for the built-in options."""

    name = "option"

    def is_applicable(self, state: CapturedState) -> bool:
        raise NotImplementedError

    def score(self, state: CapturedState, ctx: OptionContext) -> float:
        raise NotImplementedError

    def propose(self, state: CapturedState, ctx: OptionContext) -> Optional[ActionProposal]:
        raise NotImplementedError


class NavigationOption(OptionPolicy):
    name = "navigation"

    def is_applicable(self, state: CapturedState) -> bool:
        return len(state.links) > 0

    def score(self, state: CapturedState, ctx: OptionContext) -> float:
        links = [l for l in state.links if _clickable_link(l)]
        fresh = [l for l in links if not ctx.is_visited(l.href, state.url)]
        return min(1.0, len(fresh) / max(len(links), 1))

    def propose(self, state: CapturedState, ctx: OptionContext) -> Optional[ActionProposal]:
        links = [l for l in state.links if _clickable_link(l)]
        fresh = [l for l in links if not ctx.is_visited(l.href, state.url)]
        choice = _pick(fresh or links, ctx.rng)
        if choice is None:
            return None
        return _proposal(ActionKind.CLICK, self.name, choice)


class SearchOption(OptionPolicy):
    name = "search"

    @staticmethod
    def _search_inputs(state: CapturedState) -> List[ElementDescriptor]:
        return [
            i
            for i in state.inputs
            if "search" in (i.type or "text").lower() or SEARCH_HINT_PATTERN.search(i.placeholder or "")
        ]

    def is_applicable(self, state: CapturedState) -> bool:
        return bool(self._search_inputs(state))

    def score(self, state: CapturedState, ctx: OptionContext) -> float:
        return 0.6

    def propose(self, state: CapturedState, ctx: OptionContext) -> Optional[ActionProposal]:
        target = _pick(self._search_inputs(state), ctx.rng)
        if target is None:
            return None
        return _proposal(ActionKind.TYPE, self.name, target, value=infer_query(state) or "test")


class FormFillOption(OptionPolicy):
    name = "form_fill"

    def is_applicable(self, state: CapturedState) -> bool:
        return len(state.forms) > 0

    def score(self, state: CapturedState, ctx: OptionContext) -> float:
        return 0.7

    def propose(self, state: CapturedState, ctx: OptionContext) -> Optional[ActionProposal]:
        form = _pick(state.forms, ctx.rng)
        if form is None:
            return None

        inputs = form.inputs
        target = next(
            (i for i in inputs if (i.type or "text").lower() in ("text", "email", "search")),
            inputs[0] if inputs else None,
        )
        if target is not None:
            return _proposal(ActionKind.TYPE, self.name, target, value=guess_value_for_input(target))
        if form.submit is not None:
            return _proposal(ActionKind.CLICK, self.name, form.submit)
        return None


class PaginationOption(OptionPolicy):
    name = "pagination"

    @staticmethod
    def _candidate(state: CapturedState) -> Optional[ElementDescriptor]:
        return next((e for e in state.elements if PAGINATION_PATTERN.search(e.text or "")), None)

    def is_applicable(self, state: CapturedState) -> bool:
        return self._candidate(state) is not None

    def score(self, state: CapturedState, ctx: OptionContext) -> float:
        return 0.4

    def propose(self, state: CapturedState, ctx: OptionContext) -> Optional[ActionProposal]:
        candidate = self._candidate(state)
        if candidate is None:
            return None
        return _proposal(ActionKind.CLICK, self.name, candidate)


class ScrollOption(OptionPolicy):
    name = "scroll"

    def is_applicable(self, state: CapturedState) -> bool:
        return True

    def score(self, state: CapturedState, ctx: OptionContext) -> float:
        return 0.2

    def propose(self, state: CapturedState, ctx: OptionContext) -> Optional[ActionProposal]:
        return _proposal(ActionKind.SCROLL, self.name, value="down")


class LoginOption(OptionPolicy):
    name = "login"

    @staticmethod
    def _fields(state: CapturedState) -> Tuple[Optional[ElementDescriptor], Optional[ElementDescriptor]]:
        email = None
        password = None
        for i in state.inputs:
            if email is None and (EMAIL_HINT_PATTERN.search(i.type or "") or EMAIL_HINT_PATTERN.search(i.name or "")):
                email = i
            if password is None and (
                PASSWORD_TYPE_PATTERN.search(i.type or "") or PASSWORD_NAME_PATTERN.search(i.name or "")
            ):
                password = i
        return email, password

    def is_applicable(self, state: CapturedState) -> bool:
        email, password = self._fields(state)
        return email is not None and password is not None

    def score(self, state: CapturedState, ctx: OptionContext) -> float:
        return 0.8

    def propose(self, state: CapturedState, ctx: OptionContext) -> Optional[ActionProposal]:
        email, password = self._fields(state)
        # Fill the email first, move on to the password once it has been touched
        if email is not None and element_key(email) not in ctx.clicked_selectors_on_page:
            return _proposal(ActionKind.TYPE, self.name, email, value=LOGIN_EMAIL)
        if password is not None:
            return _proposal(ActionKind.TYPE, self.name, password, value=LOGIN_PASSWORD)
        if email is not None:
            return _proposal(ActionKind.TYPE, self.name, email, value=LOGIN_EMAIL)
        return None


class OpenInNewTabOption(OptionPolicy):
    name = "open_new_tab"

    def is_applicable(self, state: CapturedState) -> bool:
        return len(state.anchors) > 0

    def score(self, state: CapturedState, ctx: OptionContext) -> float:
        return 0.35

    def propose(self, state: CapturedState, ctx: OptionContext) -> Optional[ActionProposal]:
        anchors = state.anchors
        unseen = [a for a in anchors if a.href and not ctx.is_visited(a.href, state.url)]
        target = _pick(unseen or anchors, ctx.rng)
        if target is None:
            return None
        return _proposal(ActionKind.CLICK, self.name, target, modifiers=["ctrl"])


class FilterSortOption(OptionPolicy):
    name = "filter_sort"

    @staticmethod
    def _candidate(state: CapturedState) -> Optional[ElementDescriptor]:
        return next((e for e in state.elements if FILTER_SORT_PATTERN.search(e.text or "")), None)

    def is_applicable(self, state: CapturedState) -> bool:
        return self._candidate(state) is not None

    def score(self, state: CapturedState, ctx: OptionContext) -> float:
        return 0.45

    def propose(self, state: CapturedState, ctx: OptionContext) -> Optional[ActionProposal]:
        candidate = self._candidate(state)
        if candidate is None:
            return None
        return _proposal(ActionKind.CLICK, self.name, candidate)


DEFAULT_OPTIONS: Tuple[OptionPolicy, ...] = (
    NavigationOption(),
    FormFillOption(),
    SearchOption(),
    PaginationOption(),
    ScrollOption(),
    LoginOption(),
    OpenInNewTabOption(),
    FilterSortOption(),
)

OPTION_NAMES = tuple(option.name for option in DEFAULT_OPTIONS)


def guess_value_for_input(element: ElementDescriptor) -> str:
    el_type = (element.type or "text").lower()
    if el_type == "email":
        return "test@example.com"
    if "name" in (element.name or "").lower():
        return "Test User"
    return "test"


def infer_query(state: CapturedState) -> Optional[str]:
    """Search query guessed from the page: ``api`` for docs pages, else the first path segment."""
    if re.search(r"docs|api", state.title or "", re.IGNORECASE):
        return "api"
    try:
        path = urlsplit(state.url).path
    except ValueError:
        return None
    segments = [s for s in path.split("/") if s]
    return segments[0] if segments else None
