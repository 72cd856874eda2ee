"""Compass package root exposing the exploration engine entry points."""

from compass.src.explorer.mcp_bridge import McpHostBridge
from compass.src.explorer.models import ExplorationConfig, ExplorationStrategy
from compass.src.explorer.orchestrator import ExplorationOrchestrator
from compass.src.rl.frontier import FrontierManager
from compass.src.rl.novelty import NoveltyModel

__all__ = [
    "ExplorationConfig",
    "ExplorationOrchestrator",
    "ExplorationStrategy",
    "FrontierManager",
    "McpHostBridge",
    "NoveltyModel",
]
