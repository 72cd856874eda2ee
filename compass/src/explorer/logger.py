"""
Exploration Step Logger

Machine-readable record of one session: every step, block and backtrack,
written out as JSON when the session ends.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from compass.src.explorer.models import ActionProposal, RewardComponents


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ExplorationLogger:
    """Collects session events and persists them to a JSON file."""

    def __init__(self, session_id: str, log_file: Optional[str] = None):
        self.session_id = session_id
        self.log_file = Path(log_file) if log_file else None
        self.entries: List[Dict[str, Any]] = []

    def _append(self, event: str, **payload: Any) -> Dict[str, Any]:
        entry = {"timestamp": _utc_now(), "event": event, "session_id": self.session_id}
        entry.update(payload)
        self.entries.append(entry)
        return entry

    def log_session_started(self, start_url: str, strategy: str) -> None:
        self._append("session_started", start_url=start_url, strategy=strategy)

    def log_step(self, step_index: int, action: ActionProposal, url: str, reward: RewardComponents) -> None:
        self._append(
            "step",
            step=step_index,
            action=action.kind.value,
            source=action.source,
            target=action.target.selector if action.target else None,
            value=action.value,
            success=action.success,
            error=action.error_message,
            url=url,
            reward=round(reward.total, 4),
        )

    def log_blocked(self, step_index: int, action: ActionProposal, reason: str) -> None:
        self._append(
            "blocked",
            step=step_index,
            action=action.kind.value,
            target=action.target.text if action.target else None,
            reason=reason,
        )

    def log_backtrack(self, from_url: str, to_url: str, reason: str) -> None:
        self._append("backtrack", from_url=from_url, to_url=to_url, reason=reason)

    def log_session_ended(self, reason: str, stats: Dict[str, Any]) -> None:
        self._append("session_ended", reason=reason, stats=stats)

    def get_entries(self, event: Optional[str] = None) -> List[Dict[str, Any]]:
        if event is None:
            return list(self.entries)
        return [e for e in self.entries if e["event"] == event]

    def get_summary(self) -> Dict[str, Any]:
        steps = self.get_entries("step")
        rewards = [e["reward"] for e in steps]
        return {
            "session_id": self.session_id,
            "total_entries": len(self.entries),
            "steps": len(steps),
            "blocked": len(self.get_entries("blocked")),
            "backtracks": len(self.get_entries("backtrack")),
            "successes": sum(1 for e in steps if e["success"]),
            "failures": sum(1 for e in steps if not e["success"]),
            "average_reward": round(sum(rewards) / len(rewards), 4) if rewards else 0.0,
        }

    def save(self, path: Optional[str] = None) -> Optional[Path]:
        """Write summary + entries to ``path`` (or the configured file). Returns the path written."""
        target = Path(path) if path else self.log_file
        if target is None:
            return None
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            json.dump(
                {"summary": self.get_summary(), "entries": self.entries},
                f,
                indent=2,
                ensure_ascii=False,
            )
        return target

    def clear(self) -> None:
        self.entries = []
