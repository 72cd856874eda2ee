"""
State Fingerprinting

SimHash-style similarity hash over page-state tokens. Near-identical captures
collapse onto the same fingerprint with high probability, which is what loop
detection and the frontier archive key on. Not a security primitive.
"""
from __future__ import annotations

import re
from typing import List, Tuple
from urllib.parse import urlsplit

from compass.src.explorer.models import MAX_ELEMENTS, CapturedState

FNV_OFFSET = 0x811C9DC5
FNV_PRIME = 0x01000193

ELEMENT_TEXT_CHARS = 24
SUMMARY_CHARS = 4096
TITLE_CHARS = 64

_WHITESPACE = re.compile(r"\s+")
_QUERY_SEPARATORS = re.compile(r"[?&=]")

# Title is only consumed by the vectorizer
FINGERPRINT_CATEGORIES = frozenset(
    {"host", "path", "query", "tag", "role", "type", "text", "summary", "landmark", "heading"}
)


def fnv1a_32(text: str) -> int:
    h = FNV_OFFSET
    for byte in text.encode("utf-8", "surrogatepass"):
        h ^= byte
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h


def state_tokens(state: CapturedState) -> List[Tuple[str, str]]:
    """
    Tokenize a captured state into ``(category, token)`` pairs.

    Categories: host, path, query, title, tag, role, type, text, summary,
    landmark, heading. Both the fingerprinter and the feature vectorizer
    draw from this token universe.
    """
    tokens: List[Tuple[str, str]] = []

    try:
        parts = urlsplit(state.url)
        if parts.hostname:
            tokens.append(("host", parts.hostname))
        for segment in parts.path.split("/"):
            if segment:
                tokens.append(("path", segment))
        if parts.query:
            tokens.append(("query", _QUERY_SEPARATORS.sub(":", "?" + parts.query)[:128]))
    except ValueError:
        pass

    if state.title:
        tokens.append(("title", state.title[:TITLE_CHARS]))

    for el in state.elements[:MAX_ELEMENTS]:
        tokens.append(("tag", f"t:{el.tag}"))
        if el.role:
            tokens.append(("role", f"r:{el.role}"))
        if el.type:
            tokens.append(("type", f"ty:{el.type}"))
        if el.text:
            tokens.append(("text", f"tx:{el.text[:ELEMENT_TEXT_CHARS]}"))

    summary = _WHITESPACE.sub(" ", state.summary or "").strip()[:SUMMARY_CHARS]
    if summary:
        tokens.append(("summary", summary))

    for landmark in state.landmarks:
        tokens.append(("landmark", f"lm:{landmark.role}"))
    for heading in state.headings:
        tokens.append(("heading", f"h{heading.level}"))

    return tokens


class StateFingerprinter:
    """Fixed-width similarity hash of a captured state, hex encoded."""

    def __init__(self, bits: int = 64):
        if bits <= 0:
            raise ValueError("bits must be positive")
        self.bits = bits

    def encode(self, state: CapturedState) -> str:
        tokens = [tok for category, tok in state_tokens(state) if category in FINGERPRINT_CATEGORIES]
        return self.simhash(tokens)

    def simhash(self, tokens: List[str]) -> str:
        votes = [0] * self.bits
        for token in tokens:
            h = fnv1a_32(token)
            for i in range(self.bits):
                votes[i] += 1 if (h >> (i % 32)) & 1 else -1

        out = 0
        for i, vote in enumerate(votes):
            if vote >= 0:
                out |= 1 << i

        hex_len = (self.bits + 3) // 4
        return format(out, "x").zfill(hex_len)


def hamming_distance(a: str, b: str) -> int:
    """Bit distance between two fingerprints of equal width."""
    return bin(int(a, 16) ^ int(b, 16)).count("1")
