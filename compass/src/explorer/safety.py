"""Pre-execution safety checks for proposed actions."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol, Sequence

from compass.src.explorer.elements import is_destructive_text
from compass.src.explorer.models import ActionKind, ActionProposal, CapturedState
from compass.src.utils.config import CONFIG, SafetyConfig
from compass.src.utils.urls import domain_of

RATE_WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class SafetyVerdict:
    allowed: bool
    reason: Optional[str] = None


class DomainPolicy(Protocol):
    def allows(self, action: ActionProposal, state: CapturedState) -> bool:
        ...


class PermissiveDomainPolicy:
    def allows(self, action: ActionProposal, state: CapturedState) -> bool:
        return True


class AllowListDomainPolicy:
    """
    Restricts explicit navigations (navigate actions and link clicks with an
    absolute href) to an allow-list of hosts. Subdomains of an allowed host
    are accepted.
    """

    def __init__(self, allowed_domains: Iterable[str]):
        self.allowed = {d.lower().lstrip(".") for d in allowed_domains if d}

    def _host_allowed(self, host: str) -> bool:
        host = host.lower()
        return any(host == d or host.endswith("." + d) for d in self.allowed)

    def allows(self, action: ActionProposal, state: CapturedState) -> bool:
        if not self.allowed:
            return True
        if action.kind is ActionKind.NAVIGATE:
            url = action.value or ""
        elif action.target is not None and action.target.href:
            url = action.target.href
        else:
            return True
        host = domain_of(url)
        # Relative links stay on the current host
        return not host or self._host_allowed(host)


def domain_policy_for(allowed_domains: Sequence[str], stay_within_domain: bool, start_url: str) -> DomainPolicy:
    domains = list(allowed_domains)
    if stay_within_domain:
        start_host = domain_of(start_url)
        if start_host:
            domains.append(start_host)
    if not domains:
        return PermissiveDomainPolicy()
    return AllowListDomainPolicy(domains)


class SafetyValidator:
    def __init__(
        self,
        config: SafetyConfig | None = None,
        domain_policy: DomainPolicy | None = None,
        clock: Callable[[], float] = time.time,
    ):
        cfg = config or CONFIG.safety
        if cfg.max_actions_per_minute <= 0:
            raise ValueError("max_actions_per_minute must be positive")
        self.max_actions_per_minute = cfg.max_actions_per_minute
        self.keywords = tuple(k.lower() for k in cfg.destructive_keywords)
        self.domain_policy = domain_policy or PermissiveDomainPolicy()
        self._clock = clock

    def validate(
        self,
        action: ActionProposal,
        state: CapturedState,
        recent_timestamps: Sequence[float] = (),
    ) -> SafetyVerdict:
        if self.is_destructive(action):
            return SafetyVerdict(False, "destructive target")
        if self.exceeds_rate_limit(recent_timestamps):
            return SafetyVerdict(False, "rate limit exceeded")
        if not self.domain_policy.allows(action, state):
            return SafetyVerdict(False, "domain restricted")
        return SafetyVerdict(True)

    def is_destructive(self, action: ActionProposal) -> bool:
        if action.target is None:
            return False
        return is_destructive_text(action.target.text, self.keywords)

    def exceeds_rate_limit(self, timestamps: Sequence[float]) -> bool:
        now = self._clock()
        in_window = sum(1 for t in timestamps if now - t < RATE_WINDOW_SECONDS)
        return in_window > self.max_actions_per_minute
