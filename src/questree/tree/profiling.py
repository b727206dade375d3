"""Attribute profiling: catalog-wide statistics and semantic hints for each encoded feature."""

from __future__ import annotations

import re
from collections.abc import Collection, Sequence
from typing import Final

import polars as pl
from loguru import logger

from questree.tree.models import (
    AttributeProfile,
    AttributeType,
    FeatureSpec,
    PreferenceDirection,
    ProductVector,
    SemanticKind,
    ValueRange,
    ValueScale,
)

ONE_HOT_SEPARATOR: Final[str] = "="

_EMPTY_RANGE: Final[ValueRange] = ValueRange(min=0.0, max=0.0, q25=0.0, q75=0.0, mean=0.0, median=0.0, std=0.0)

_COORDINATE_NAMES: Final[frozenset[str]] = frozenset({"lat", "lng", "lon", "latitude", "longitude"})

# Ordered (semantic, name keywords) pairs; the first match wins.
_SEMANTIC_KEYWORDS: Final[tuple[tuple[SemanticKind, tuple[str, ...]], ...]] = (
    ("price", ("price", "cost", "amount", "usd", "dollar", "$")),
    ("rating", ("rating", "review", "score", "stars")),
    ("percentage", ("percent", "percentage", "%", "discount")),
    ("duration", ("duration", "time", "delay", "wait", "day", "hour", "minute", "second")),
    ("dimension", ("width", "height", "length", "depth", "size")),
    ("weight", ("weight", "mass")),
    ("count", ("count", "quantity", "num", "qty")),
)

_SEMANTIC_DESCRIPTIONS: Final[dict[SemanticKind, str]] = {
    "price": "affordability",
    "rating": "customer ratings",
    "percentage": "percentage",
    "duration": "duration",
    "dimension": "dimensions",
    "weight": "weight",
    "count": "count",
}

# ---------------------------------------------------------------------------
# Public interface -- Profiling
# ---------------------------------------------------------------------------


def profile_attributes(
    vectors: Sequence[ProductVector],
    feature_names: Sequence[str],
    *,
    feature_specs: Sequence[FeatureSpec] | None = None,
    comparison_features: Collection[str] = (),
) -> list[AttributeProfile]:
    """Profile every feature over the whole product set.

    Args:
        vectors (Sequence[ProductVector]): Encoded products.
        feature_names (Sequence[str]): Feature ordering shared by the vectors.
        feature_specs (Sequence[FeatureSpec] | None): Origin of each feature.
            When given, a feature's type is taken from its spec.
        comparison_features (Collection[str]): Features used in attribute
            comparison questions; their type is `"attribute"`.

    Returns:
        list[AttributeProfile]: One profile per feature, in `feature_names`
            order. Empty when there are no products or no features.

    Examples:
        >>> vectors = [ProductVector(id=str(i), values=[p], original_row=[]) for i, p in enumerate([5.0, 9.0])]
        >>> [p.description for p in profile_attributes(vectors, ["price"])]
        ['affordability']
    """
    if not vectors or not feature_names:
        return []

    kinds_by_name = {spec.name: spec.kind for spec in feature_specs} if feature_specs is not None else {}
    profiles: list[AttributeProfile] = []
    for index, name in enumerate(feature_names):
        series = pl.Series(name, [vector.values[index] for vector in vectors], dtype=pl.Float64)
        profile = profile_attribute(
            name,
            series,
            declared_type=_declared_type(name, kinds_by_name, comparison_features),
        )
        profiles.append(profile)

    logger.debug(
        "Attributes profiled",
        features=len(profiles),
        relevant=sum(profile.is_preference_relevant for profile in profiles),
    )
    return profiles


def profile_attribute(name: str, series: pl.Series, *, declared_type: AttributeType | None = None) -> AttributeProfile:
    """Profile a single feature from its values across all products.

    Args:
        name (str): Feature name.
        series (pl.Series): Float64 values, one per product.
        declared_type (AttributeType | None): Type known from the encoder or
            the caller. Inferred from the name and values when `None`.

    Returns:
        AttributeProfile: The feature's profile.
    """
    finite = series.filter(series.is_finite())
    one_hot = parse_one_hot_name(name) if declared_type in (None, "categorical") else None
    attribute_type = declared_type or _infer_type(name, series, finite)

    if finite.len() == 0:
        return AttributeProfile(
            name=name,
            type=attribute_type,
            value_range=_EMPTY_RANGE,
            is_preference_relevant=False,
            description=humanize_name(name),
        )

    value_range = compute_value_range(finite)
    unique_values = finite.n_unique()
    unique_value_ratio = unique_values / series.len()

    if one_hot is not None or attribute_type == "categorical":
        semantic: SemanticKind = "unknown"
        direction: PreferenceDirection = "neutral"
        description = _one_hot_description(name, one_hot)
        unit = None
    else:
        semantic = detect_semantic(name, value_range, unique_value_ratio)
        direction = determine_direction(semantic, name)
        description = describe_attribute(name, semantic)
        unit = infer_unit(name, semantic, value_range)

    has_spread = value_range.max > value_range.min and unique_values > 1
    return AttributeProfile(
        name=name,
        type=attribute_type,
        value_range=value_range,
        is_preference_relevant=has_spread and semantic not in ("coordinate", "identifier"),
        description=description,
        semantic=semantic,
        direction=direction,
        scale=determine_scale(value_range),
        unit=unit,
        unique_values=unique_values,
        unique_value_ratio=min(unique_value_ratio, 1.0),
    )


# ---------------------------------------------------------------------------
# Public helpers -- Statistics and heuristics
# ---------------------------------------------------------------------------


def compute_value_range(series: pl.Series) -> ValueRange:
    """Compute descriptive statistics with linear-interpolation quantiles.

    Args:
        series (pl.Series): Non-empty series of finite floats.

    Returns:
        ValueRange: Min, max, quartiles, mean, median and population std.
    """
    minimum = float(series.min())  # type: ignore[arg-type]
    maximum = float(series.max())  # type: ignore[arg-type]
    q25 = float(series.quantile(0.25, interpolation="linear"))  # type: ignore[arg-type]
    q75 = float(series.quantile(0.75, interpolation="linear"))  # type: ignore[arg-type]
    # Clamp float error so min <= q25 <= q75 <= max always holds.
    q25 = min(max(q25, minimum), maximum)
    q75 = min(max(q75, q25), maximum)
    return ValueRange(
        min=minimum,
        max=maximum,
        q25=q25,
        q75=q75,
        mean=float(series.mean()),  # type: ignore[arg-type]
        median=float(series.median()),  # type: ignore[arg-type]
        std=float(series.std(ddof=0) or 0.0),
    )


def parse_one_hot_name(name: str) -> tuple[str, str] | None:
    """Split a one-hot feature name into `(column, value)`.

    Args:
        name (str): Feature name.

    Returns:
        tuple[str, str] | None: The column and category value, or `None` for
            names that are not of the form `"<column>=<value>"`.
    """
    column, separator, value = name.partition(ONE_HOT_SEPARATOR)
    if not separator or not column:
        return None
    return column, value


def humanize_name(name: str) -> str:
    """Turn a column name like `"ship_days"` into `"Ship days"`.

    Args:
        name (str): Column or feature name.

    Returns:
        str: Readable text with a capitalized first letter.
    """
    readable = re.sub(r"[_-]+", " ", name).strip().lower()
    return readable[:1].upper() + readable[1:]


def detect_semantic(name: str, value_range: ValueRange, unique_value_ratio: float) -> SemanticKind:
    """Guess what a numeric feature measures from its name and values.

    Args:
        name (str): Feature name.
        value_range (ValueRange): The feature's statistics.
        unique_value_ratio (float): Distinct values per product.

    Returns:
        SemanticKind: The detected semantic, `"unknown"` when nothing matches.
    """
    lower = name.lower().strip()
    tokens = set(re.split(r"[^a-z0-9]+", lower))
    if (tokens & {"id", "identifier"}) and unique_value_ratio > 0.95 and float(value_range.mean).is_integer():
        return "identifier"
    if lower in _COORDINATE_NAMES:
        return "coordinate"
    for semantic, keywords in _SEMANTIC_KEYWORDS:
        if not any(keyword in lower for keyword in keywords):
            continue
        if semantic == "count" and (value_range.min < 0 or not float(value_range.mean).is_integer()):
            continue
        if semantic == "dimension" and value_range.min < 0:
            continue
        return semantic
    if "rate" in lower or "ratio" in lower:
        if value_range.min >= 0 and value_range.max <= 100:
            return "percentage"
    return "unknown"


def determine_direction(semantic: SemanticKind, name: str) -> PreferenceDirection:
    """Return whether customers usually prefer higher or lower values.

    Args:
        semantic (SemanticKind): The detected semantic.
        name (str): Feature name, used for negative keywords like `"error"`.

    Returns:
        PreferenceDirection: The usual preference.
    """
    lower = name.lower()
    negative = any(word in lower for word in ("error", "failure", "defect", "issue"))
    match semantic:
        case "price" | "duration":
            return "lower_better"
        case "rating":
            return "higher_better"
        case "percentage" | "count":
            return "lower_better" if negative else "higher_better"
        case _:
            return "neutral"


def describe_attribute(name: str, semantic: SemanticKind) -> str:
    """Return the customer-facing phrase for a numeric feature.

    Args:
        name (str): Feature name.
        semantic (SemanticKind): The detected semantic.

    Returns:
        str: e.g. `"affordability"` for prices or `"shipping speed"` for
            delivery durations; a humanized name otherwise.
    """
    lower = name.lower()
    if semantic == "duration":
        if "ship" in lower or "delivery" in lower:
            return "shipping speed"
        if "time" in lower or "wait" in lower:
            return "time efficiency"
    if semantic == "percentage" and ("discount" in lower or "sale" in lower):
        return "discount"
    if semantic == "count" and "feature" in lower:
        return "number of features"
    if semantic == "dimension" and "size" in lower:
        return "size"
    return _SEMANTIC_DESCRIPTIONS.get(semantic, humanize_name(name))


def infer_unit(name: str, semantic: SemanticKind, value_range: ValueRange) -> str | None:
    """Infer a display unit from the feature name and values.

    Args:
        name (str): Feature name.
        semantic (SemanticKind): The detected semantic.
        value_range (ValueRange): The feature's statistics.

    Returns:
        str | None: A unit such as `"dollars"` or `"days"`, or `None`.
    """
    lower = name.lower()
    match semantic:
        case "price":
            return "dollars"
        case "percentage":
            return "percent"
        case "duration":
            for unit in ("day", "hour", "minute", "second"):
                if unit in lower:
                    return f"{unit}s"
            return "days" if value_range.max < 10 else "hours" if value_range.max < 100 else "minutes"
        case "weight":
            if "lb" in lower or "pound" in lower:
                return "pounds"
            return "kilograms" if "kg" in lower or value_range.max > 100 else "grams"
        case "dimension":
            if "cm" in lower:
                return "centimeters"
            if "inch" in lower:
                return "inches"
            return "units"
        case _:
            return None


def determine_scale(value_range: ValueRange) -> ValueScale:
    """Bucket a feature by the magnitude of its extreme values.

    Args:
        value_range (ValueRange): The feature's statistics.

    Returns:
        ValueScale: `"small"` below 10, `"medium"` below 1000, else `"large"`.
    """
    magnitude = max(abs(value_range.max), abs(value_range.min))
    if magnitude < 10:
        return "small"
    if magnitude < 1000:
        return "medium"
    return "large"


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _declared_type(
    name: str,
    kinds_by_name: dict[str, str],
    comparison_features: Collection[str],
) -> AttributeType | None:
    if name in comparison_features:
        return "attribute"
    match kinds_by_name.get(name):
        case "numeric":
            return "numeric"
        case "categorical":
            return "categorical"
        case _:
            return None


def _infer_type(name: str, series: pl.Series, finite: pl.Series) -> AttributeType:
    if parse_one_hot_name(name) is not None:
        return "categorical"
    if series.len() > 0 and finite.len() == series.len():
        return "numeric"
    return "unknown"


def _one_hot_description(name: str, one_hot: tuple[str, str] | None) -> str:
    if one_hot is None:
        return humanize_name(name)
    column, value = one_hot
    column_text = re.sub(r"[_-]+", " ", column).strip().lower()
    value_text = re.sub(r"[_-]+", " ", value).strip().lower()
    return f"{column_text} is {value_text}"
