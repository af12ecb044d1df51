"""Tunable ranking weights and a hot-swappable snapshot provider.

The scorer and ranker never read a module global: they are handed a
RankingConfigProvider and call ``get()`` once per ranking pass, so a reload
between requests is picked up without a restart and tests can pin an exact
configuration.
"""

import logging
import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TIE_EPSILON = 2.5
DEFAULT_POPULARITY_SCALE = 0.8


def _default_platform_weights() -> dict[str, float]:
    return {"local": 1.2, "spotify": 1.1, "apple_music": 1.0, "tidal": 0.9}


def _default_popularity_weights() -> dict[str, float]:
    # Apple Music exposes no comparable popularity scale
    return {"spotify": 1.0, "tidal": 0.8, "apple_music": 0.0}


class RankingConfig(BaseModel):
    """Immutable snapshot of ranking tunables."""

    model_config = {"frozen": True}

    # Scales raw popularity (0-100): 0.8 means popularity contributes up to 80 points
    ranker_popularity_scale: float = DEFAULT_POPULARITY_SCALE
    # Platform preference multipliers (also a tie-break for flat results)
    platform_weights: dict[str, float] = Field(default_factory=_default_platform_weights)
    # Scores closer than this are ties, resolved by popularity then lexicographically
    tie_epsilon: float = DEFAULT_TIE_EPSILON
    # Weights for aggregating popularity across platforms for one ISRC
    popularity_platform_weights: dict[str, float] = Field(
        default_factory=_default_popularity_weights
    )

    def platform_weight(self, platform: str) -> float:
        return self.platform_weights.get(platform, 1.0)

    def effective_epsilon(self) -> float:
        return self.tie_epsilon if self.tie_epsilon > 0 else DEFAULT_TIE_EPSILON

    def effective_popularity_scale(self) -> float:
        if self.ranker_popularity_scale > 0:
            return self.ranker_popularity_scale
        return DEFAULT_POPULARITY_SCALE


def merge_ranking_config(base: RankingConfig, overrides: dict[str, Any]) -> RankingConfig:
    """Overlay partial overrides on a base config.

    Non-positive scalars are ignored; weight maps merge key by key so a file
    that only mentions one platform keeps the defaults for the others.
    """
    data = base.model_dump()
    for key in ("ranker_popularity_scale", "tie_epsilon"):
        value = overrides.get(key)
        if isinstance(value, int | float) and value > 0:
            data[key] = float(value)
    for key in ("platform_weights", "popularity_platform_weights"):
        value = overrides.get(key)
        if isinstance(value, dict):
            data[key] = {**data[key], **{str(k): float(v) for k, v in value.items()}}
    return RankingConfig.model_validate(data)


def load_ranking_config(path: str | Path) -> RankingConfig | None:
    """Load overrides from a TOML file merged over defaults.

    Returns None when the file is missing or cannot be parsed.
    """
    path = Path(path)
    try:
        with path.open("rb") as fh:
            overrides = tomllib.load(fh)
    except FileNotFoundError:
        return None
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Could not read ranking config %s: %s", path, e)
        return None

    try:
        return merge_ranking_config(RankingConfig(), overrides)
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning("Invalid ranking config %s: %s", path, e)
        return None


class RankingConfigProvider:
    """Holds the current RankingConfig and swaps it atomically."""

    def __init__(self, config: RankingConfig | None = None) -> None:
        self._config = config or RankingConfig()
        self._lock = threading.Lock()

    def get(self) -> RankingConfig:
        with self._lock:
            return self._config

    def swap(self, config: RankingConfig) -> RankingConfig:
        """Replace the snapshot, returning the previous one."""
        with self._lock:
            previous, self._config = self._config, config
        return previous

    def reload(self, path: str | Path) -> bool:
        """Reload from a TOML file; keeps the current snapshot on failure."""
        config = load_ranking_config(path)
        if config is None:
            return False
        self.swap(config)
        logger.info("Ranking config reloaded from %s", path)
        return True
