import pytest

from compass.src.explorer.models import ActionKind, ActionProposal
from compass.src.explorer.safety import (
    AllowListDomainPolicy,
    PermissiveDomainPolicy,
    SafetyValidator,
    domain_policy_for,
)
from compass.src.utils.config import SafetyConfig
from factories import element, link, state

PAGE = state("https://example.com/")


def test_destructive_target_blocked_regardless_of_policy(clock):
    validator = SafetyValidator(SafetyConfig(max_actions_per_minute=1000), clock=clock)
    for text in ["Delete", "remove item", "Close Account", "UNSUBSCRIBE"]:
        action = ActionProposal(kind=ActionKind.CLICK, target=element("button", text))
        verdict = validator.validate(action, PAGE)
        assert not verdict.allowed
        assert verdict.reason == "destructive target"


def test_harmless_click_allowed(clock):
    validator = SafetyValidator(SafetyConfig(), clock=clock)
    verdict = validator.validate(ActionProposal(kind=ActionKind.CLICK, target=element("button", "Save")), PAGE)
    assert verdict.allowed
    assert verdict.reason is None


def test_rate_limit_uses_sliding_window(clock):
    validator = SafetyValidator(SafetyConfig(max_actions_per_minute=3), clock=clock)
    action = ActionProposal(kind=ActionKind.SCROLL)

    recent = [clock.now - 1] * 4
    verdict = validator.validate(action, PAGE, recent)
    assert verdict.reason == "rate limit exceeded"

    clock.advance(61)
    assert validator.validate(action, PAGE, recent).allowed


def test_rate_limit_allows_exactly_the_cap(clock):
    validator = SafetyValidator(SafetyConfig(max_actions_per_minute=3), clock=clock)
    assert validator.validate(ActionProposal(kind=ActionKind.SCROLL), PAGE, [clock.now] * 3).allowed


def test_invalid_rate_rejected():
    with pytest.raises(ValueError):
        SafetyValidator(SafetyConfig(max_actions_per_minute=0))


class TestAllowList:
    def test_navigation_restricted(self):
        policy = AllowListDomainPolicy(["example.com"])
        assert policy.allows(ActionProposal(kind=ActionKind.NAVIGATE, value="https://docs.example.com/x"), PAGE)
        assert not policy.allows(ActionProposal(kind=ActionKind.NAVIGATE, value="https://evil.org/"), PAGE)

    def test_link_clicks_restricted(self):
        policy = AllowListDomainPolicy(["example.com"])
        assert not policy.allows(ActionProposal(kind=ActionKind.CLICK, target=link("https://other.net/")), PAGE)
        assert policy.allows(ActionProposal(kind=ActionKind.CLICK, target=link("/relative")), PAGE)
        assert policy.allows(ActionProposal(kind=ActionKind.CLICK, target=element("button", "Go")), PAGE)

    def test_validator_reports_domain(self, clock):
        validator = SafetyValidator(SafetyConfig(), AllowListDomainPolicy(["example.com"]), clock=clock)
        verdict = validator.validate(ActionProposal(kind=ActionKind.NAVIGATE, value="https://evil.org/"), PAGE)
        assert verdict.reason == "domain restricted"


def test_domain_policy_for():
    assert isinstance(domain_policy_for([], False, "https://example.com/"), PermissiveDomainPolicy)
    policy = domain_policy_for([], True, "https://example.com/start")
    assert isinstance(policy, AllowListDomainPolicy)
    assert policy.allowed == {"example.com"}
