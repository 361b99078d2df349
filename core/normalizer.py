"""
normalizer.py
--------------
Description normalization. Reduces a free-text transaction description to
the grouping key used by the detector.

The key is deliberately lossy: descriptors for the same biller that differ
only by reference numbers, processor prefixes or punctuation collapse to one
key. Unrelated small merchants sharing only generic words may merge too.

The noise vocabulary comes from config.yaml.
"""

import re
from typing import Iterable

from config.config_loader import get_noise_tokens


_NON_ALPHA = re.compile(r"[^a-z\s]")
_WHITESPACE = re.compile(r"\s+")


class DescriptionNormalizer:
    """
    Lowercases, strips noise words and non-letters, collapses whitespace.

    Usage:
        normalizer = DescriptionNormalizer()
        key = normalizer.normalize("NETFLIX.COM RECURRING PAYMENT 8821")  # "netflix com"
    """

    def __init__(self, noise_tokens: Iterable[str] | None = None):
        if noise_tokens is None:
            noise_tokens = get_noise_tokens()
        tokens = [re.escape(t.lower()) for t in noise_tokens if t]
        # Word boundaries follow ASCII word characters, so "card123" keeps "card".
        self._noise = re.compile(r"\b(" + "|".join(tokens) + r")\b", re.ASCII) if tokens else None

    def normalize(self, description: str | None) -> str:
        """Returns the grouping key. Empty string means "not groupable"."""
        if not description:
            return ""
        text = str(description).lower()
        if self._noise is not None:
            text = self._noise.sub("", text)
        text = _NON_ALPHA.sub(" ", text)
        return _WHITESPACE.sub(" ", text).strip()

    def __call__(self, description: str | None) -> str:
        return self.normalize(description)


_DEFAULT: tuple[tuple[str, ...], DescriptionNormalizer] | None = None


def default_normalizer() -> DescriptionNormalizer:
    """Shared normalizer for the configured noise vocabulary, rebuilt only when the vocabulary changes."""
    global _DEFAULT
    tokens = tuple(get_noise_tokens())
    if _DEFAULT is None or _DEFAULT[0] != tokens:
        _DEFAULT = (tokens, DescriptionNormalizer(tokens))
    return _DEFAULT[1]


def normalize(description: str | None) -> str:
    """Normalize with the configured noise vocabulary."""
    return default_normalizer().normalize(description)


def title_case(key: str) -> str:
    """Capitalizes the first letter of each whitespace-delimited token."""
    return " ".join(word[:1].upper() + word[1:] for word in key.split())
