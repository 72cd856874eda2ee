"""
Novelty Estimation

Two signals, blended:

- count-based: ``1 / sqrt(1 + visits(fingerprint))`` per namespace
- random network distillation: prediction error of an online-trained
  predictor against a frozen random target, squashed into [0, 1]

The model is process-wide and shared by all sessions, so every mutation
happens under a lock.
"""
from __future__ import annotations

import math
import threading
from typing import Dict, Optional

import numpy as np

from compass.src.explorer.models import CapturedState
from compass.src.rl.features import FeatureVectorizer
from compass.src.rl.fingerprint import StateFingerprinter
from compass.src.utils.config import CONFIG, NoveltyConfig, RNDConfig


class CountNovelty:
    """Visit counts keyed by ``namespace:fingerprint``."""

    def __init__(self, fingerprinter: StateFingerprinter, namespace: str = "global"):
        self.fingerprinter = fingerprinter
        self.namespace = namespace
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def key(self, state: CapturedState, namespace: Optional[str] = None) -> str:
        return f"{namespace or self.namespace}:{self.fingerprinter.encode(state)}"

    def count(self, state: CapturedState, namespace: Optional[str] = None) -> int:
        key = self.key(state, namespace)
        with self._lock:
            return self._counts.get(key, 0)

    def reward(self, state: CapturedState, namespace: Optional[str] = None) -> float:
        return 1.0 / math.sqrt(1 + self.count(state, namespace))

    def observe(self, state: CapturedState, namespace: Optional[str] = None) -> int:
        key = self.key(state, namespace)
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            return self._counts[key]

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)


class RandomNetworkDistillation:
    """
    Minimal RND: two ``out_dim x in_dim`` linear+ReLU projections.

    The target weights are drawn once and frozen; the predictor is nudged by
    one SGD step on every trained call.
    """

    def __init__(
        self,
        in_dim: int = 256,
        out_dim: int = 64,
        lr: float = 0.001,
        enabled: bool = True,
        target_scale: float = 0.1,
        predictor_scale: float = 0.01,
        seed: Optional[int] = None,
    ):
        if in_dim <= 0 or out_dim <= 0:
            raise ValueError("in_dim and out_dim must be positive")
        if lr < 0:
            raise ValueError("lr must be non-negative")

        self.in_dim = in_dim
        self.out_dim = out_dim
        self.lr = lr
        self.enabled = enabled

        rng = np.random.default_rng(seed)
        self.target_w = rng.uniform(-target_scale, target_scale, size=(out_dim, in_dim))
        self.pred_w = rng.uniform(-predictor_scale, predictor_scale, size=(out_dim, in_dim))
        self._lock = threading.Lock()

    @staticmethod
    def _forward(weights: np.ndarray, x: np.ndarray) -> np.ndarray:
        return np.maximum(weights @ x, 0.0)

    def error(self, x: np.ndarray, train: bool = True) -> float:
        """Mean squared prediction error for ``x``; 0 when disabled."""
        if not self.enabled:
            return 0.0
        if x.shape != (self.in_dim,):
            raise ValueError(f"expected feature vector of shape ({self.in_dim},), got {x.shape}")

        with self._lock:
            t = self._forward(self.target_w, x)
            p = self._forward(self.pred_w, x)
            diff = p - t
            mse = float(np.mean(diff * diff))

            if train:
                grad = (2.0 / self.out_dim) * diff * (p > 0)
                self.pred_w -= self.lr * np.outer(grad, x)

        return mse


def saturate(mse: float, c: float = 0.25) -> float:
    """Map a raw error into [0, 1] with ``mse / (c + mse)``."""
    if mse <= 0:
        return 0.0
    return max(0.0, min(1.0, mse / (c + mse)))


class NoveltyModel:
    """Blended count-based + learned novelty over captured states."""

    def __init__(
        self,
        novelty_config: NoveltyConfig | None = None,
        rnd_config: RNDConfig | None = None,
        seed: Optional[int] = None,
    ):
        cfg = novelty_config or CONFIG.novelty
        rnd_cfg = rnd_config or CONFIG.rnd
        if not 0.0 <= cfg.blend <= 1.0:
            raise ValueError("novelty blend must be within [0, 1]")
        if cfg.saturation <= 0:
            raise ValueError("saturation constant must be positive")

        self.blend = cfg.blend
        self.saturation = cfg.saturation
        self.fingerprinter = StateFingerprinter(cfg.fingerprint_bits)
        self.vectorizer = FeatureVectorizer(rnd_cfg.in_dim)
        self.counts = CountNovelty(self.fingerprinter, namespace=cfg.namespace)
        self.rnd = RandomNetworkDistillation(
            in_dim=rnd_cfg.in_dim,
            out_dim=rnd_cfg.out_dim,
            lr=rnd_cfg.lr,
            enabled=rnd_cfg.enabled,
            target_scale=rnd_cfg.target_scale,
            predictor_scale=rnd_cfg.predictor_scale,
            seed=seed,
        )

    def fingerprint(self, state: CapturedState) -> str:
        return self.fingerprinter.encode(state)

    def count_reward(self, state: CapturedState, namespace: Optional[str] = None) -> float:
        return self.counts.reward(state, namespace)

    def learned_reward(self, state: CapturedState, train: bool = True) -> float:
        if not self.rnd.enabled:
            return 0.0
        return saturate(self.rnd.error(self.vectorizer.extract(state), train=train), self.saturation)

    def score(self, state: CapturedState, train: bool = True, namespace: Optional[str] = None) -> float:
        """``(1 - b) * count + b * learned``."""
        count = self.count_reward(state, namespace)
        learned = self.learned_reward(state, train=train)
        return (1.0 - self.blend) * count + self.blend * learned

    def observe(self, state: CapturedState, namespace: Optional[str] = None) -> int:
        return self.counts.observe(state, namespace)
