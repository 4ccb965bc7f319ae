"""
core/transform.py -- The password forging pipeline.

    substitute -> add fillers -> Fisher-Yates shuffle

No side effects beyond consuming randomness. Designed to be called by the
CLI (main.py), the REST API (api/routes/v1/transform.py) and the web UI.

The random source is injected so tests can pass random.Random(seed) and get a
reproducible permutation; production uses secrets.SystemRandom().
"""

from __future__ import annotations

import logging
import random
import secrets
from collections.abc import Callable
from functools import partial
from typing import Optional

from core.config import Settings
from core.remote import fetch_conversion
from core.tables import SubstitutionTable, load_table

logger = logging.getLogger("passwordforge.transform")

# Characters eligible as random padding. Any already present in the
# substituted string are excluded before drawing.
FILLER_POOL = "!@#$%^&*()_+-=[]{}|;:',.<>?/~`"
MIN_FILLERS = 3
MAX_FILLERS = 5


def filler_count(available: int) -> int:
    """Target number of fillers for a pool of the given size."""
    return max(MIN_FILLERS, min(MAX_FILLERS, available))


def pick_fillers(present: set[str], rng: random.Random, pool: str = FILLER_POOL) -> list[str]:
    """Draw fillers from pool without replacement, skipping characters in present.

    Each draw picks a uniformly random index in what is left and removes it.
    Stops early when the pool runs dry, so the result never exceeds the
    number of characters actually available.
    """
    available = [ch for ch in pool if ch not in present]
    chosen: list[str] = []
    for _ in range(filler_count(len(available))):
        if not available:
            break
        chosen.append(available.pop(rng.randrange(len(available))))
    return chosen


def shuffle_in_place(chars: list[str], rng: random.Random) -> None:
    """Fisher-Yates: walk from the last index down to 1, swap with j in [0, i]."""
    for i in range(len(chars) - 1, 0, -1):
        j = rng.randrange(i + 1)
        chars[i], chars[j] = chars[j], chars[i]


class TransformEngine:
    """Turns a phrase into a forged password.

    Args:
        table:      Substitution table for the local conversion step.
        rng:        random.Random-compatible source. Defaults to SystemRandom.
        converter:  Optional replacement for the substitution step, e.g. the
                    remote backend. Its exceptions propagate to the caller.
        pool:       Filler character pool.
    """

    def __init__(
        self,
        table: SubstitutionTable,
        rng: Optional[random.Random] = None,
        converter: Optional[Callable[[str], str]] = None,
        pool: str = FILLER_POOL,
    ) -> None:
        self.table = table
        self.rng = rng or secrets.SystemRandom()
        self.converter = converter
        self.pool = pool

    def substitute(self, text: str) -> str:
        if self.converter is not None:
            return self.converter(text)
        return self.table.apply(text)

    def transform(self, text: str) -> str:
        if not text:
            return ""
        substituted = self.substitute(text)
        fillers = pick_fillers(set(substituted), self.rng, self.pool)
        chars = list(substituted) + fillers
        shuffle_in_place(chars, self.rng)
        return "".join(chars)

    __call__ = transform


def build_engine(settings: Settings, rng: Optional[random.Random] = None) -> TransformEngine:
    """Construct the engine described by settings (table + backend)."""
    table = load_table(settings.substitution_table)
    converter = None
    if settings.transform_backend == "remote":
        converter = partial(
            fetch_conversion,
            url=settings.transform_remote_url,
            timeout=settings.transform_timeout,
        )
    logger.info(
        "Transform engine ready (table=%s, entries=%d, backend=%s)",
        table.name,
        len(table),
        settings.transform_backend,
    )
    return TransformEngine(table, rng=rng, converter=converter)
