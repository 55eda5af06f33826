"""
Seedable source of randomness shared by instantiation runs.

A single default instance, ``RNG``, serves as the process-wide source; every
consumer also accepts its own ``Randomness`` so runs can be isolated and
replayed. Draws are serialized with a lock so concurrent callers never corrupt
the generator state.
"""

import logging
import random
import threading
import time
from typing import Optional, Sequence, TypeVar

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Randomness:
    """A seedable random generator with serialized access."""

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random()
        self._lock = threading.Lock()
        self._seed: int = 0
        self.seed(seed)

    def seed(self, seed: Optional[int] = None) -> None:
        """Reseed the generator; without a seed, one is derived from the clock."""
        if seed is None:
            seed = time.time_ns()
        with self._lock:
            self._seed = seed
            self._random.seed(seed)
        _LOGGER.debug("Random seed set to %d", seed)

    @property
    def current_seed(self) -> int:
        """The seed the generator was last initialized with."""
        return self._seed

    def choice(self, sequence: Sequence[T]) -> T:
        """Pick one element of a non-empty sequence uniformly at random."""
        if not sequence:
            raise IndexError("Cannot choose from an empty sequence")
        with self._lock:
            return self._random.choice(sequence)


RNG = Randomness()