from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Mapping

logger = logging.getLogger("targetfinder.config")

FINDER_ATTRIBUTES = (
    "data-for",
    "data-id",
    "data-testid",
    "data-test-id",
    "for",
    "id",
    "name",
    "placeholder",
    "role",
)

# Looser levels accept weaker degraded matches.
PRECISION_SCALE: dict[str, int] = {
    "looser": 1,
    "loose": 3,
    "loosest": 5,
    "strict": 7,
    "stricter": 8,
    "strictest": 10,
}

DEFAULT_PRECISION = "strict"
STRICTEST_THRESHOLD = 10

_ENV_KEYS = {
    "seed_min_length": "TARGETFINDER_SEED_MIN_LENGTH",
    "optimized_min_length": "TARGETFINDER_OPTIMIZED_MIN_LENGTH",
    "threshold": "TARGETFINDER_THRESHOLD",
    "max_number_of_tries": "TARGETFINDER_MAX_TRIES",
}


@dataclass(frozen=True, slots=True)
class SelectorEffort:
    seed_min_length: int = 1
    optimized_min_length: int = 2
    threshold: int = 1000
    max_number_of_tries: int = 10_000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SelectorEffort:
        env = os.environ if environ is None else environ
        values: dict[str, int] = {}
        for item in fields(cls):
            raw = str(env.get(_ENV_KEYS[item.name], "")).strip()
            if not raw:
                continue
            if not raw.isdigit() or int(raw) <= 0:
                logger.warning("Ignoring %s=%r, expected a positive integer.", _ENV_KEYS[item.name], raw)
                continue
            values[item.name] = int(raw)
        return cls(**values)


def precision_threshold(level: str | int | None) -> int:
    if isinstance(level, int):
        return max(1, min(STRICTEST_THRESHOLD, level))
    key = str(level or "").strip().lower()
    if not key:
        return PRECISION_SCALE[DEFAULT_PRECISION]
    if key in PRECISION_SCALE:
        return PRECISION_SCALE[key]
    logger.debug("Unknown precision level %r, using the strictest threshold.", level)
    return STRICTEST_THRESHOLD
