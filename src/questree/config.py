"""Environment-driven defaults for tree building and catalog encoding."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class QuestreeSettings(BaseSettings):
    """Default build and encoding parameters, overridable via `QUESTREE_*` variables.

    Values are read from the process environment and from a `.env` file in
    the working directory. Explicit `BuildOptions` / `EncodingOptions`
    passed by a caller always take precedence over these defaults.

    Attributes:
        max_depth (int): Default maximum number of tree levels.
        min_leaf_size (int): Default subset size at or below which a node becomes a leaf.
        min_gain (float): Default minimum impurity reduction required to accept a split.
        min_branch_fraction (float): Default minimum share of a node's products per branch.
        max_categories (int | None): Default one-hot cap per categorical column; `None` disables capping.

    Examples:
        >>> import os
        >>> os.environ["QUESTREE_MAX_DEPTH"] = "4"  # doctest: +SKIP
        >>> QuestreeSettings().max_depth  # doctest: +SKIP
        4
    """

    model_config = SettingsConfigDict(
        env_prefix="QUESTREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_depth: int = Field(default=6, ge=1, description="Default maximum number of tree levels.")
    min_leaf_size: int = Field(default=3, ge=1, description="Default leaf size threshold.")
    min_gain: float = Field(default=1e-4, ge=0.0, description="Default minimum impurity reduction per split.")
    min_branch_fraction: float = Field(
        default=0.05,
        ge=0.0,
        lt=0.5,
        description="Default minimum share of a node's products required on each branch.",
    )
    max_categories: int | None = Field(
        default=None,
        ge=2,
        description="Default one-hot cap per categorical column; None keeps every observed value.",
    )


@lru_cache(maxsize=1)
def get_settings() -> QuestreeSettings:
    """Return the process-wide settings, loading them on first use.

    Returns:
        QuestreeSettings: The cached settings instance. Call
            `get_settings.cache_clear()` to reload after changing the environment.
    """
    return QuestreeSettings()
