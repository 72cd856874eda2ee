"""Hashed feature vectors for the learned novelty model."""
from __future__ import annotations

from typing import Dict, Optional

import numpy as np

from compass.src.explorer.models import CapturedState
from compass.src.rl.fingerprint import state_tokens

DEFAULT_CATEGORY_WEIGHTS: Dict[str, float] = {
    "host": 2.0,
    "path": 1.0,
    "title": 2.0,
    "tag": 1.0,
    "role": 1.0,
    "type": 1.0,
    "text": 0.5,
    "landmark": 1.0,
    "heading": 0.5,
}


def djb2(text: str) -> int:
    """djb2 over the string, wrapped to signed 32-bit and folded to non-negative."""
    h = 5381
    for ch in text:
        h = (h * 33 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class FeatureVectorizer:
    """
    Hashing-trick vectorizer.

    Each ``(category, token)`` pair from the shared tokenizer lands at
    ``djb2(category:token) mod dim`` with a per-category weight. Categories
    missing from the weight table are ignored. The result is L2-normalized
    unless it is all zeros.
    """

    def __init__(self, dim: int = 256, category_weights: Optional[Dict[str, float]] = None):
        if dim <= 0:
            raise ValueError("dim must be positive")
        self.dim = dim
        self.category_weights = dict(category_weights or DEFAULT_CATEGORY_WEIGHTS)

    def extract(self, state: CapturedState) -> np.ndarray:
        vec = np.zeros(self.dim, dtype=np.float64)
        for category, token in state_tokens(state):
            weight = self.category_weights.get(category)
            if not weight:
                continue
            vec[djb2(f"{category}:{token}") % self.dim] += weight

        norm = float(np.linalg.norm(vec))
        if norm > 0:
            vec /= norm
        return vec
