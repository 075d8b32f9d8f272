"""Configuration loading for FlakeForge."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from flakeforge._internal.errors import ConfigError


def default_parallelism() -> int:
    """Return the number of available processing units (at least 1)."""
    return os.cpu_count() or 1


@dataclass(frozen=True)
class FlakeForgeConfig:
    """Global FlakeForge configuration.

    Attributes:
        parallelism: Number of worker lanes when ``-p`` is not given.
        tick_interval: Seconds between progress refreshes.
    """

    parallelism: int = field(default_factory=default_parallelism)
    tick_interval: float = 1.0


def load_config() -> FlakeForgeConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        FLAKEFORGE_PARALLELISM: Default worker count (default: CPU count).
        FLAKEFORGE_TICK_INTERVAL: Progress refresh interval in seconds
            (default: 1.0).

    Returns:
        Populated FlakeForgeConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    parallelism_str = os.environ.get("FLAKEFORGE_PARALLELISM")
    tick_str = os.environ.get("FLAKEFORGE_TICK_INTERVAL", "1.0")

    if parallelism_str is None:
        parallelism = default_parallelism()
    else:
        try:
            parallelism = int(parallelism_str)
        except ValueError:
            msg = f"FLAKEFORGE_PARALLELISM must be an integer, got: {parallelism_str!r}"
            raise ConfigError(msg) from None

        if parallelism < 1:
            msg = f"FLAKEFORGE_PARALLELISM must be >= 1, got: {parallelism}"
            raise ConfigError(msg)

    try:
        tick_interval = float(tick_str)
    except ValueError:
        msg = f"FLAKEFORGE_TICK_INTERVAL must be a number, got: {tick_str!r}"
        raise ConfigError(msg) from None

    if tick_interval <= 0:
        msg = f"FLAKEFORGE_TICK_INTERVAL must be positive, got: {tick_interval}"
        raise ConfigError(msg)

    return FlakeForgeConfig(parallelism=parallelism, tick_interval=tick_interval)
