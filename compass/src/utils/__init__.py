"""Utility exports for the exploration engine."""
from compass.src.utils.config import (
    CONFIG,
    AppConfig,
    FrontierConfig,
    MCPConfig,
    NoveltyConfig,
    RNDConfig,
    SafetyConfig,
    SchedulerConfig,
)
from compass.src.utils.urls import domain_of, normalize_url

__all__ = [
    "CONFIG",
    "AppConfig",
    "FrontierConfig",
    "MCPConfig",
    "NoveltyConfig",
    "RNDConfig",
    "SafetyConfig",
    "SchedulerConfig",
    "domain_of",
    "normalize_url",
]
