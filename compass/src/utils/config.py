"""Configuration helpers for the exploration engine."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Tuple


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


DEFAULT_DESTRUCTIVE_KEYWORDS: Tuple[str, ...] = (
    "delete",
    "remove",
    "cancel",
    "unsubscribe",
    "close account",
    "deactivate",
    "terminate",
)


@dataclass(slots=True)
class NoveltyConfig:
    """Count-based novelty and the learned/count blend."""

    blend: float = field(default_factory=lambda: _env_float("COMPASS_NOVELTY_BLEND", 0.3))
    low_threshold: float = field(default_factory=lambda: _env_float("COMPASS_NOVELTY_LOW_THRESHOLD", 0.4))
    saturation: float = field(default_factory=lambda: _env_float("COMPASS_RND_SATURATION", 0.25))
    fingerprint_bits: int = field(default_factory=lambda: _env_int("COMPASS_FINGERPRINT_BITS", 64))
    namespace: str = field(default_factory=lambda: os.getenv("COMPASS_NOVELTY_NAMESPACE", "global"))


@dataclass(slots=True)
class RNDConfig:
    """Random network distillation settings."""

    enabled: bool = field(default_factory=lambda: _env_bool("COMPASS_RND_ENABLED", True))
    in_dim: int = field(default_factory=lambda: _env_int("COMPASS_RND_IN_DIM", 256))
    out_dim: int = field(default_factory=lambda: _env_int("COMPASS_RND_OUT_DIM", 64))
    lr: float = field(default_factory=lambda: _env_float("COMPASS_RND_LR", 0.001))
    target_scale: float = 0.1
    predictor_scale: float = 0.01


@dataclass(slots=True)
class SchedulerConfig:
    epsilon: float = field(default_factory=lambda: _env_float("COMPASS_EPSILON", 0.15))
    option_weight: float = 0.7
    novelty_weight: float = 0.3


@dataclass(slots=True)
class FrontierConfig:
    max_entries: int = field(default_factory=lambda: _env_int("COMPASS_FRONTIER_MAX_ENTRIES", 5000))


@dataclass(slots=True)
class SafetyConfig:
    max_actions_per_minute: int = field(default_factory=lambda: _env_int("COMPASS_MAX_ACTIONS_PER_MINUTE", 30))
    destructive_keywords: Tuple[str, ...] = DEFAULT_DESTRUCTIVE_KEYWORDS


@dataclass(slots=True)
class MCPConfig:
    """Connection details for the Playwright MCP host."""

    host_url: str = field(default_factory=lambda: os.getenv("MCP_HOST_URL", "http://localhost:8001"))
    request_timeout: int = field(default_factory=lambda: _env_int("MCP_TIMEOUT", 45))


@dataclass(slots=True)
class AppConfig:
    """Aggregated configuration for the exploration engine."""

    novelty: NoveltyConfig = field(default_factory=NoveltyConfig)
    rnd: RNDConfig = field(default_factory=RNDConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    frontier: FrontierConfig = field(default_factory=FrontierConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    mcp: MCPConfig = field(default_factory=MCPConfig)


CONFIG = AppConfig()
