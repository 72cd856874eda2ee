"""
Frontier Archive

Go-Explore style archive of discovered states. The first sighting of a
``(domain, fingerprint)`` pair is kept as-is; later sightings only bump the
visit counter. ``next_candidate`` picks a promising, under-visited state to
return to when exploration stalls.
"""
from __future__ import annotations

import math
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from compass.src.explorer.models import CapturedState, FrontierEntry
from compass.src.rl.fingerprint import StateFingerprinter
from compass.src.utils.config import CONFIG, FrontierConfig
from compass.src.utils.urls import normalize_url

NOVELTY_WEIGHT = 0.6
RECENCY_WEIGHT = 0.2
UNDER_VISITED_WEIGHT = 0.2
RECENCY_HALF_SCALE = 60.0


def recency(age_seconds: float) -> float:
    """Logistic decay: ~1 for fresh entries, 0.5 at one minute, ~0 after a few."""
    exponent = (age_seconds - RECENCY_HALF_SCALE) / RECENCY_HALF_SCALE
    if exponent > 50:
        return 0.0
    return 1.0 / (1.0 + math.exp(exponent))


def entry_score(entry: FrontierEntry, now: float) -> float:
    return (
        NOVELTY_WEIGHT * entry.novelty_score
        + RECENCY_WEIGHT * recency(now - entry.discovered_at)
        + UNDER_VISITED_WEIGHT * (1.0 / (1 + entry.visits))
    )


class FrontierManager:
    def __init__(
        self,
        config: FrontierConfig | None = None,
        fingerprinter: StateFingerprinter | None = None,
        clock: Callable[[], float] = time.time,
    ):
        cfg = config or CONFIG.frontier
        if cfg.max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = cfg.max_entries
        self.fingerprinter = fingerprinter or StateFingerprinter(CONFIG.novelty.fingerprint_bits)
        self._clock = clock
        self._entries: Dict[Tuple[str, str], FrontierEntry] = {}
        self._lock = threading.Lock()

    def consider(self, state: CapturedState, novelty_score: float, depth: int) -> bool:
        """Archive ``state`` if its ``(domain, fingerprint)`` is new. Returns True on insert."""
        fp = self.fingerprinter.encode(state)
        key = (state.domain, fp)
        with self._lock:
            if key in self._entries:
                return False
            now = self._clock()
            if len(self._entries) >= self.max_entries:
                self._evict_weakest(now)
            self._entries[key] = FrontierEntry(
                url=state.url,
                domain=state.domain,
                fingerprint=fp,
                novelty_score=novelty_score,
                depth=depth,
                discovered_at=now,
            )
            return True

    def mark_visited(self, state_or_url: Union[CapturedState, str]) -> bool:
        """
        Bump the visit counter of the matching entry.

        A captured state is matched by ``(domain, fingerprint)``; a bare URL
        falls back to the first entry whose stored URL is equal.
        """
        with self._lock:
            if isinstance(state_or_url, CapturedState):
                key = (state_or_url.domain, self.fingerprinter.encode(state_or_url))
                entry = self._entries.get(key)
                if entry is None:
                    return False
                entry.visits += 1
                return True

            for entry in self._entries.values():
                if entry.url == state_or_url:
                    entry.visits += 1
                    return True
            return False

    def next_candidate(
        self,
        current_url: str,
        visited_urls: Iterable[str],
        domain: Optional[str] = None,
    ) -> Optional[str]:
        """Best-scoring archived URL other than ``current_url`` and not yet visited."""
        visited = set(visited_urls)
        current = normalize_url(current_url)
        now = self._clock()

        best_url: Optional[str] = None
        best_score = -math.inf
        with self._lock:
            for entry in self._entries.values():
                normalized = normalize_url(entry.url)
                if normalized == current or normalized in visited or entry.url in visited:
                    continue
                if domain and entry.domain != domain:
                    continue
                score = entry_score(entry, now)
                if score > best_score:
                    best_score = score
                    best_url = entry.url
        return best_url

    def snapshot(self, domain: Optional[str] = None) -> List[FrontierEntry]:
        with self._lock:
            entries = [e.model_copy() for e in self._entries.values()]
        if domain:
            entries = [e for e in entries if e.domain == domain]
        return entries

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_weakest(self, now: float) -> None:
        weakest = min(self._entries.items(), key=lambda kv: entry_score(kv[1], now))
        del self._entries[weakest[0]]
