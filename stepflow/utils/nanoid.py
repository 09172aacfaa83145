"""Tiny, URL-safe, collision resistant identifiers (NanoID)."""

from __future__ import annotations

import random
import secrets
from typing import Optional

DEFAULT_ALPHABET = "_-0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
# 21 symbols over a 64 symbol alphabet gives ~126 bits of entropy.
DEFAULT_SIZE = 21


class NanoIDGenerator:
    """Generate fixed-length identifiers over a configurable alphabet.

    Args:
        alphabet: Symbols to draw from. Must be non-empty and at most 256 long.
        size: Length of generated identifiers.
        rng: Source of randomness. Defaults to ``secrets.SystemRandom``; pass a
            seeded ``random.Random`` for reproducible output in tests.
    """

    def __init__(
        self,
        alphabet: str = DEFAULT_ALPHABET,
        size: int = DEFAULT_SIZE,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not alphabet:
            raise ValueError("Alphabet must not be empty")
        if len(alphabet) > 256:
            raise ValueError(f"Alphabet size must be <= 256, got: {len(alphabet)}")
        if size <= 0:
            raise ValueError(f"Size must be positive, got: {size}")
        self.alphabet = alphabet
        self.size = size
        self._alphabet_set = frozenset(alphabet)
        self._rng = rng or secrets.SystemRandom()

    def generate(self) -> str:
        """Return a new identifier of ``size`` characters."""
        return "".join(self._rng.choice(self.alphabet) for _ in range(self.size))

    def is_valid(self, candidate: str, min_size: int = 1, max_size: int = 100) -> bool:
        """Check length bounds and alphabet membership without generating."""
        if not min_size <= len(candidate) <= max_size:
            return False
        return all(ch in self._alphabet_set for ch in candidate)


_default_generator = NanoIDGenerator()


def generate(size: Optional[int] = None, alphabet: Optional[str] = None) -> str:
    """Generate an identifier with the process-wide default generator."""

    if size is None and alphabet is None:
        return _default_generator.generate()
    return NanoIDGenerator(
        alphabet=DEFAULT_ALPHABET if alphabet is None else alphabet,
        size=DEFAULT_SIZE if size is None else size,
    ).generate()


def is_valid(
    candidate: str,
    alphabet: str = DEFAULT_ALPHABET,
    min_size: int = 1,
    max_size: int = 100,
) -> bool:
    return NanoIDGenerator(alphabet=alphabet).is_valid(candidate, min_size, max_size)
