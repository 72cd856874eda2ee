"""
Element Analysis

Buckets page elements into interaction categories with a base priority, infers
what kind of page is being looked at, and makes up plausible input values.
The strategies score on top of these base priorities.
"""
from __future__ import annotations

import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from compass.src.explorer.models import ActionKind, CapturedState, ElementDescriptor
from compass.src.utils.config import DEFAULT_DESTRUCTIVE_KEYWORDS


class ElementCategory(str, Enum):
    NAVIGATION = "navigation"
    SEARCH = "search"
    FORM_INPUT = "form_input"
    DROPDOWN = "dropdown"
    CHECKBOX_RADIO = "checkbox_radio"
    BUTTON = "button"
    LINK = "link"
    SOCIAL = "social"
    MEDIA = "media"
    MODAL_POPUP = "modal_popup"
    INTERACTIVE = "interactive"
    TEXT_CONTENT = "text_content"


BASE_PRIORITY = {
    ElementCategory.SEARCH: 10,
    ElementCategory.NAVIGATION: 8,
    ElementCategory.BUTTON: 7,
    ElementCategory.LINK: 6,
    ElementCategory.FORM_INPUT: 5,
    ElementCategory.DROPDOWN: 4,
    ElementCategory.CHECKBOX_RADIO: 3,
    ElementCategory.MODAL_POPUP: 2,
    ElementCategory.INTERACTIVE: 2,
    ElementCategory.MEDIA: 1,
    ElementCategory.SOCIAL: 1,
    ElementCategory.TEXT_CONTENT: 0,
}

RECOMMENDED_KIND = {
    ElementCategory.SEARCH: ActionKind.TYPE,
    ElementCategory.FORM_INPUT: ActionKind.TYPE,
    ElementCategory.MEDIA: ActionKind.HOVER,
    ElementCategory.SOCIAL: ActionKind.HOVER,
    ElementCategory.TEXT_CONTENT: ActionKind.SCROLL,
}

SOCIAL_HOSTS = ("facebook", "twitter", "instagram", "linkedin", "youtube")
MEDIA_TAGS = ("img", "video", "audio", "iframe", "embed")
TEXT_TAGS = ("p", "div", "span", "h1", "h2", "h3")

# Broader than the safety list: buttons that merely look risky are deprioritized
RISKY_BUTTON_WORDS = (
    "delete", "remove", "cancel", "close", "logout", "signout",
    "deactivate", "unsubscribe", "clear", "reset", "discard",
)

SEARCH_QUERIES = (
    "travel destinations",
    "best restaurants",
    "tourist attractions",
    "hotels near me",
    "things to do",
    "local events",
    "weather forecast",
    "flight deals",
    "vacation packages",
    "city guides",
)


@dataclass
class ElementAction:
    element: ElementDescriptor
    category: ElementCategory
    priority: int
    kind: ActionKind
    value: Optional[str] = None


def element_key(element: ElementDescriptor) -> str:
    """Identity used by the clicked-element index."""
    return "|".join(
        [
            element.tag or "unknown",
            element.selector or "",
            (element.text or "")[:50],
            element.element_id or "",
            element.href or element.attributes.get("href", "") or "",
        ]
    )


def _href(element: ElementDescriptor) -> str:
    return element.href or element.attributes.get("href", "") or ""


def categorize(element: ElementDescriptor) -> Optional[ElementCategory]:
    tag = element.tag
    el_type = (element.type or "").lower()
    role = (element.role or "").lower()
    cls = (element.class_name or "").lower()
    el_id = (element.element_id or "").lower()
    placeholder = (element.placeholder or "").lower()
    href = _href(element)

    if tag == "nav" or role == "navigation" or "nav" in cls or "menu" in cls:
        return ElementCategory.NAVIGATION

    if el_type in ("search", "text") and ("search" in el_id or "search" in cls or "search" in placeholder):
        return ElementCategory.SEARCH

    if tag in ("input", "textarea"):
        if el_type in ("checkbox", "radio"):
            return ElementCategory.CHECKBOX_RADIO
        return ElementCategory.FORM_INPUT

    if tag == "select" or role == "combobox" or "dropdown" in cls or "select" in cls:
        return ElementCategory.DROPDOWN

    if tag == "button" or el_type in ("button", "submit") or role == "button" or "btn" in cls:
        return ElementCategory.BUTTON

    if tag == "a" and href:
        if any(host in href for host in SOCIAL_HOSTS):
            return ElementCategory.SOCIAL
        return ElementCategory.LINK

    if tag in MEDIA_TAGS:
        return ElementCategory.MEDIA

    if (
        "modal" in cls
        or "popup" in cls
        or "dialog" in cls
        or element.attributes.get("data-toggle") == "modal"
    ):
        return ElementCategory.MODAL_POPUP

    if element.is_clickable and not element.is_inputable:
        return ElementCategory.INTERACTIVE

    if tag in TEXT_TAGS:
        return ElementCategory.TEXT_CONTENT

    return None


def is_destructive_text(text: Optional[str], keywords: Iterable[str] = DEFAULT_DESTRUCTIVE_KEYWORDS) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


def analyze_page_elements(
    elements: Iterable[ElementDescriptor],
    rng: Optional[random.Random] = None,
) -> List[ElementAction]:
    """Categorized, visible, enabled elements sorted by descending base priority."""
    rng = rng or random.Random()
    actions: List[ElementAction] = []

    for element in elements:
        if not element.is_visible or element.disabled:
            continue
        category = categorize(element)
        if category is None:
            continue

        priority = BASE_PRIORITY[category]
        if category is ElementCategory.BUTTON and is_destructive_text(element.text, RISKY_BUTTON_WORDS):
            priority = 0
        if category is ElementCategory.LINK and element.attributes.get("target") == "_blank":
            priority = 3

        value = None
        if category is ElementCategory.SEARCH:
            value = rng.choice(SEARCH_QUERIES)
        elif category is ElementCategory.FORM_INPUT:
            value = generate_input_value(element, rng)

        actions.append(
            ElementAction(
                element=element,
                category=category,
                priority=priority,
                kind=RECOMMENDED_KIND.get(category, ActionKind.CLICK),
                value=value,
            )
        )

    actions.sort(key=lambda a: a.priority, reverse=True)
    return actions


def generate_input_value(element: ElementDescriptor, rng: Optional[random.Random] = None) -> str:
    """Plausible value for a form field based on its type, name and placeholder."""
    rng = rng or random.Random()
    el_type = (element.type or "").lower()
    name = (element.name or "").lower()
    placeholder = (element.placeholder or "").lower()
    el_id = (element.element_id or "").lower()

    if el_type == "email" or "email" in name or "email" in placeholder:
        return f"test{rng.randint(0, 999)}@example.com"

    if "name" in name or "name" in placeholder or "name" in el_id:
        if "first" in name or "first" in placeholder:
            return "John"
        if "last" in name or "last" in placeholder:
            return "Doe"
        return "John Doe"

    if el_type == "tel" or "phone" in name or "phone" in placeholder:
        return f"555-123-{rng.randint(1000, 9999)}"

    if el_type == "date":
        return f"2025-01-{rng.randint(1, 28):02d}"

    if el_type == "number":
        try:
            low = int(element.attributes.get("min", 1))
            high = int(element.attributes.get("max", 100))
        except ValueError:
            low, high = 1, 100
        if high < low:
            low, high = high, low
        return str(rng.randint(low, high))

    if el_type == "password":
        return "TestPass123!"

    if el_type == "url" or "url" in name or "url" in placeholder:
        return "https://example.com"

    return f"Test input {rng.randint(0, 99)}"


# ---------------------------------------------------------------------------
# Page type inference
# ---------------------------------------------------------------------------


class PageType(str, Enum):
    HOMEPAGE = "homepage"
    LOGIN = "login"
    REGISTRATION = "registration"
    SEARCH_RESULTS = "search_results"
    PRODUCT_LISTING = "product_listing"
    PRODUCT_DETAIL = "product_detail"
    SHOPPING_CART = "shopping_cart"
    CHECKOUT = "checkout"
    BLOG_ARTICLE = "blog_article"
    DASHBOARD = "dashboard"
    FORM_PAGE = "form_page"
    GALLERY = "gallery"
    CONTACT = "contact"
    ABOUT = "about"
    ERROR_PAGE = "error_page"
    UNKNOWN = "unknown"


@dataclass
class PageFeatures:
    has_search_box: bool = False
    has_login_form: bool = False
    has_registration_form: bool = False
    has_navigation: bool = False
    has_products: bool = False
    has_article_content: bool = False
    has_media_gallery: bool = False
    has_checkout_flow: bool = False
    has_dashboard: bool = False
    has_data_tables: bool = False
    form_count: int = 0
    link_count: int = 0
    image_count: int = 0
    button_count: int = 0
    input_count: int = 0


_SEARCH_PARAMS = re.compile(r"[?&](search|q)=")


def extract_page_features(state: CapturedState) -> PageFeatures:
    features = PageFeatures()
    form_ids = set()

    for el in state.elements:
        tag = el.tag
        el_type = (el.type or "").lower()
        text = (el.text or "").lower()
        cls = (el.class_name or "").lower()
        el_id = (el.element_id or "").lower()
        placeholder = (el.placeholder or "").lower()

        if tag == "a":
            features.link_count += 1
        if tag == "img":
            features.image_count += 1
        if tag == "button" or el_type in ("button", "submit"):
            features.button_count += 1
        if tag in ("input", "textarea"):
            features.input_count += 1
        if tag == "form":
            form_ids.add(el.element_id or el.class_name or "form")

        if el_type in ("search", "text") and ("search" in el_id or "search" in cls or "search" in placeholder):
            features.has_search_box = True
        if el_type in ("password", "email") and (
            "login" in text or "sign in" in text or "login" in cls or "login" in el_id
        ):
            features.has_login_form = True
        if any(w in text for w in ("register", "sign up", "create account")) and tag in ("button", "a", "form"):
            features.has_registration_form = True
        if tag == "nav" or "nav" in cls or "menu" in cls or (el.role or "") == "navigation":
            features.has_navigation = True
        if any(w in cls for w in ("product", "item", "card")) or "product" in el_id:
            features.has_products = True
        if tag == "article" or any(w in cls for w in ("article", "post", "content")):
            features.has_article_content = True
        if any(w in cls for w in ("gallery", "carousel", "slider")):
            features.has_media_gallery = True
        if any(w in text for w in ("checkout", "payment", "shipping")) or "checkout" in cls:
            features.has_checkout_flow = True
        if any(w in cls for w in ("dashboard", "chart", "metric", "widget")):
            features.has_dashboard = True
        if tag == "table" or "table" in cls or "grid" in cls:
            features.has_data_tables = True

    features.form_count = max(len(form_ids), len(state.forms))
    features.has_navigation = features.has_navigation or any(lm.role == "navigation" for lm in state.landmarks)
    return features


def detect_page_type(state: CapturedState, features: Optional[PageFeatures] = None) -> PageType:
    """Best-effort page classification from URL patterns, title and element features."""
    features = features or extract_page_features(state)
    url = state.url
    url_lower = url.lower()
    title = (state.title or "").lower()
    text = (state.summary or "").lower()

    path = re.sub(r"^[a-z]+://[^/]+", "", url_lower).split("?")[0].split("#")[0]
    is_homepage = path in ("", "/")
    has_auth_path = any(w in url_lower for w in ("login", "signin", "register", "signup"))
    has_product_path = any(w in url_lower for w in ("product", "item", "shop", "store"))
    has_checkout_path = any(w in url_lower for w in ("checkout", "cart", "payment", "order"))
    has_blog_path = any(w in url_lower for w in ("blog", "article", "post", "news"))
    has_search_params = bool(_SEARCH_PARAMS.search(url))

    if "404" in title or "error" in title or "page not found" in text:
        return PageType.ERROR_PAGE
    if is_homepage and features.has_navigation:
        return PageType.HOMEPAGE
    if features.has_login_form or (has_auth_path and features.input_count >= 2):
        return PageType.LOGIN
    if features.has_registration_form or (has_auth_path and features.input_count >= 4):
        return PageType.REGISTRATION
    if has_search_params or (features.has_search_box and features.has_products):
        return PageType.SEARCH_RESULTS
    if features.has_products and features.link_count > 10:
        return PageType.PRODUCT_LISTING
    if has_product_path and features.image_count > 0 and features.button_count > 0:
        return PageType.PRODUCT_DETAIL
    if has_checkout_path and features.has_data_tables:
        return PageType.SHOPPING_CART
    if features.has_checkout_flow or (has_checkout_path and features.form_count > 0):
        return PageType.CHECKOUT
    if features.has_article_content or has_blog_path:
        return PageType.BLOG_ARTICLE
    if features.has_dashboard or (features.has_data_tables and features.link_count > 5):
        return PageType.DASHBOARD
    if features.form_count > 0 and features.input_count > 3:
        return PageType.FORM_PAGE
    if features.has_media_gallery or features.image_count > 10:
        return PageType.GALLERY
    if "contact" in title or "contact" in url_lower:
        return PageType.CONTACT
    if "about" in title or "about" in url_lower:
        return PageType.ABOUT
    return PageType.UNKNOWN
