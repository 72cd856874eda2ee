"""Builders for captured states and a controllable clock."""
from typing import List, Optional

from compass.src.explorer.models import CapturedState, ElementDescriptor, FormDescriptor


def link(href: str, text: str = "", selector: Optional[str] = None) -> ElementDescriptor:
    return ElementDescriptor(tag="a", href=href, text=text or href, selector=selector or f"a[href='{href}']")


def element(tag: str, text: str = "", selector: str = "", **kwargs) -> ElementDescriptor:
    return ElementDescriptor(tag=tag, text=text, selector=selector or f"{tag}:{text}", **kwargs)


def state(
    url: str,
    elements: Optional[List[ElementDescriptor]] = None,
    title: str = "",
    summary: str = "",
    forms: Optional[List[FormDescriptor]] = None,
) -> CapturedState:
    return CapturedState(url=url, title=title, summary=summary, elements=elements or [], forms=forms or [])


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
