"""Configuration helpers and feature flag evaluation."""

from __future__ import annotations

import os
from functools import lru_cache


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@lru_cache(maxsize=None)
def feature_enabled(name: str, default: bool = False) -> bool:
    """Return True when the named feature flag is enabled via environment variable.

    Feature names map to environment variables using the pattern:
        feature.transform.preserve_for_condition → GROOVY2CS_FEATURE_TRANSFORM_PRESERVE_FOR_CONDITION
    Values are interpreted case-insensitively; "1", "true", "yes", "on" enable the flag
    and "0", "false", "no", "off" disable it. Anything else falls back to ``default``.

    Results are cached per (name, default); call ``feature_enabled.cache_clear()``
    after changing the environment at runtime.
    """

    env_key = env_key_for(name)
    raw = os.getenv(env_key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def env_key_for(name: str) -> str:
    return "GROOVY2CS_" + name.upper().replace(".", "_")
