"""Customer-facing phrasing for hyperplane splits and attribute comparisons.

Question text is derived only from a node's weights and threshold plus the
catalog's attribute profiles, so the same tree always yields the same
questions.
"""

from __future__ import annotations

import math
import re
import zlib
from collections.abc import Sequence
from typing import Final, NamedTuple

from questree.exceptions import InvalidNodeError
from questree.tree.models import AttributeProfile, InternalNode, LeafNode, Question, QuestionChoice
from questree.tree.profiling import humanize_name, parse_one_hot_name

type QuestionText = tuple[str, str, str]

_MAX_DOMINANT_FEATURES: Final[int] = 3
_ONE_HOT_BOOST: Final[float] = 3.0
_WEIGHT_EPSILON: Final[float] = 1e-9
_EARLY_DEPTH: Final[int] = 2
_LATE_DEPTH: Final[int] = 4

_MIDDLE_TEMPLATES: Final[tuple[str, ...]] = (
    "Would you prefer products with {left} or {right}?",
    "What matters more to you: {left} or {right}?",
    "Which do you value more: {left} or {right}?",
)
_ATTRIBUTE_TEMPLATES: Final[tuple[str, ...]] = (
    "What matters more: {a} or {b}?",
    "Would you prefer {a} or {b}?",
    "Which is more important: {a} or {b}?",
)


class DominantFeature(NamedTuple):
    """A feature that drives a split, ranked by boosted absolute weight.

    Attributes:
        name (str): Feature name.
        weight (float): Raw hyperplane weight.
        score (float): Absolute weight, boosted for one-hot features.
    """

    name: str
    weight: float
    score: float


# ---------------------------------------------------------------------------
# Public interface -- Question phrasing
# ---------------------------------------------------------------------------


def generate_question_text(
    node: InternalNode | LeafNode,
    profiles: Sequence[AttributeProfile] | None = None,
    *,
    depth: int = 0,
) -> QuestionText:
    """Phrase the split of an internal node as a two-choice question.

    Axis-aligned splits (a single non-zero weight) state the cutoff directly.
    Oblique splits describe the dominant features of each side, using value
    ranges from the profiles when available.

    Args:
        node (InternalNode | LeafNode): The node to phrase.
        profiles (Sequence[AttributeProfile] | None): Catalog profiles. When
            given, preference-irrelevant features are left out of the text.
        depth (int): Number of questions already answered; selects early,
            middle, or late templates.

    Returns:
        QuestionText: `(text, left_label, right_label)`.

    Raises:
        InvalidNodeError: If `node` is a leaf.

    Examples:
        >>> node = InternalNode(  # doctest: +SKIP
        ...     feature_names=["price"], weights=[1.0], threshold=12.5, sample_count=4, left=..., right=...
        ... )
        >>> generate_question_text(node)[1:]  # doctest: +SKIP
        ('price at or below 12.50', 'price above 12.50')
    """
    if isinstance(node, LeafNode):
        raise InvalidNodeError("Cannot phrase a question for a leaf node", node_type=node.type)

    profile_map = {profile.name: profile for profile in profiles} if profiles is not None else {}
    non_zero = [(index, weight) for index, weight in enumerate(node.weights) if abs(weight) > _WEIGHT_EPSILON]

    labels: tuple[str, str] | None = None
    if len(non_zero) == 1:
        index, weight = non_zero[0]
        labels = _axis_aligned_labels(node.feature_names[index], weight, node.threshold, profile_map)
    if labels is None:
        dominant = rank_dominant_features(node.weights, node.feature_names, profile_map or None)
        labels = _oblique_labels(dominant, profile_map)

    left_label, right_label = labels
    return _apply_template(left_label, right_label, node.threshold, depth), left_label, right_label


def generate_attribute_question(
    attribute_a: str,
    attribute_b: str,
    profiles: Sequence[AttributeProfile] | None = None,
) -> Question:
    """Build a question asking which of two attributes matters more.

    The template is picked from a checksum of the two names, so the same pair
    always yields the same text.

    Args:
        attribute_a (str): Attribute offered as the left choice.
        attribute_b (str): Attribute offered as the right choice.
        profiles (Sequence[AttributeProfile] | None): Profiles supplying the
            customer-facing descriptions.

    Returns:
        Question: An `"attribute"` question with no hyperplane.
    """
    profile_map = {profile.name: profile for profile in profiles} if profiles is not None else {}
    desc_a = describe_feature(attribute_a, profile_map)
    desc_b = describe_feature(attribute_b, profile_map)
    template = _ATTRIBUTE_TEMPLATES[zlib.crc32(f"{attribute_a}|{attribute_b}".encode()) % len(_ATTRIBUTE_TEMPLATES)]
    return Question(
        id=f"attr_{attribute_a}_{attribute_b}",
        text=template.format(a=desc_a, b=desc_b),
        type="attribute",
        choices=(QuestionChoice(side="left", label=desc_a), QuestionChoice(side="right", label=desc_b)),
        attribute_a=attribute_a,
        attribute_b=attribute_b,
    )


# ---------------------------------------------------------------------------
# Public helpers -- Feature ranking and formatting
# ---------------------------------------------------------------------------


def rank_dominant_features(
    weights: Sequence[float],
    feature_names: Sequence[str],
    profiles: dict[str, AttributeProfile] | None = None,
) -> list[DominantFeature]:
    """Rank the features of a hyperplane by boosted absolute weight.

    One-hot features are boosted because presence or absence of a category
    phrases more clearly than a weighted mix of numbers. Features with zero
    weight are dropped, and so are preference-irrelevant ones when profiles
    are given, unless that would leave nothing.

    Args:
        weights (Sequence[float]): Hyperplane weights.
        feature_names (Sequence[str]): Feature names parallel to `weights`.
        profiles (dict[str, AttributeProfile] | None): Profiles keyed by name.

    Returns:
        list[DominantFeature]: At most three features, strongest first.
            Ties keep feature order.
    """
    candidates = [
        DominantFeature(
            name=name,
            weight=weight,
            score=abs(weight) * (_ONE_HOT_BOOST if parse_one_hot_name(name) is not None else 1.0),
        )
        for name, weight in zip(feature_names, weights, strict=True)
        if abs(weight) > _WEIGHT_EPSILON
    ]
    if profiles:
        relevant = [
            candidate
            for candidate in candidates
            if candidate.name not in profiles or profiles[candidate.name].is_preference_relevant
        ]
        candidates = relevant or candidates
    candidates.sort(key=lambda candidate: -candidate.score)
    return candidates[:_MAX_DOMINANT_FEATURES]


def describe_feature(name: str, profiles: dict[str, AttributeProfile]) -> str:
    """Return the customer-facing phrase for a feature.

    Args:
        name (str): Feature name.
        profiles (dict[str, AttributeProfile]): Profiles keyed by name.

    Returns:
        str: The profile description, `"<column> is <value>"` for one-hot
            names, or the humanized name.
    """
    if name in profiles:
        return profiles[name].description
    one_hot = parse_one_hot_name(name)
    if one_hot is not None:
        column, value = one_hot
        return f"{_readable(column)} is {_readable(value)}"
    return humanize_name(name)


def format_value(value: float, profile: AttributeProfile | None = None) -> str:
    """Format a number for question text, rounding by the profile's scale.

    Args:
        value (float): The value to display.
        profile (AttributeProfile | None): Supplies scale, semantic and unit.

    Returns:
        str: e.g. `"12.50"`, `"$12.50"` for prices, or `"3.5 days"`.
    """
    if profile is None:
        return f"{value:.2f}"
    if profile.semantic == "price":
        return f"${value:,.2f}"
    match profile.scale:
        case "small":
            text = f"{value:.2f}"
        case "medium":
            text = f"{value:.1f}"
        case _:
            text = f"{value:,.0f}"
    return f"{text} {profile.unit}" if profile.unit else text


def describe_value_range(profile: AttributeProfile, *, is_low: bool) -> str:
    """Describe the low or high end of a feature's catalog-wide range.

    Args:
        profile (AttributeProfile): The feature's profile.
        is_low (bool): Describe the low end when `True`, the high end otherwise.

    Returns:
        str: e.g. `"budget-friendly (under $8.00)"` or `"high ratings (4.50+)"`.
    """
    value_range = profile.value_range
    match profile.semantic:
        case "price":
            if is_low:
                return f"budget-friendly (under {format_value(min(value_range.q25, value_range.max * 0.3), profile)})"
            return f"premium (over {format_value(max(value_range.q75, value_range.max * 0.7), profile)})"
        case "rating":
            if is_low:
                low = format_value(value_range.q25, profile)
                return f"moderate ratings ({low}-{format_value(value_range.median, profile)})"
            return f"high ratings ({format_value(value_range.q75, profile)}+)"
        case "duration" | "count":
            faster = profile.direction == "lower_better"
            if is_low:
                return f"{'faster' if faster else 'fewer'} (under {format_value(value_range.q25, profile)})"
            return f"{'slower' if faster else 'more'} (over {format_value(value_range.q75, profile)})"
        case _:
            if is_low:
                return f"lower {profile.description} (around {format_value(value_range.q25, profile)})"
            return f"higher {profile.description} (around {format_value(value_range.q75, profile)})"


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _readable(text: str) -> str:
    return re.sub(r"[_-]+", " ", text).strip().lower()


def _axis_aligned_labels(
    name: str,
    weight: float,
    threshold: float,
    profiles: dict[str, AttributeProfile],
) -> tuple[str, str] | None:
    """Phrase a single-feature split as a direct cutoff or category test.

    Args:
        name (str): The split feature.
        weight (float): Its non-zero weight.
        threshold (float): The node threshold.
        profiles (dict[str, AttributeProfile]): Profiles keyed by name.

    Returns:
        tuple[str, str] | None: `(left_label, right_label)`, or `None` when a
            one-hot split sends both values to the same side.
    """
    one_hot = parse_one_hot_name(name)
    if one_hot is not None:
        column, value = _readable(one_hot[0]), _readable(one_hot[1])
        present_left = weight * 1.0 <= threshold
        absent_left = 0.0 <= threshold
        if present_left == absent_left:
            return None
        present, absent = f"{column} is {value}", f"{column} is not {value}"
        return (present, absent) if present_left else (absent, present)

    cutoff = threshold / weight
    if not math.isfinite(cutoff):
        return None
    formatted = format_value(cutoff, profiles.get(name))
    readable = _readable(name)
    if weight > 0:
        return f"{readable} at or below {formatted}", f"{readable} above {formatted}"
    return f"{readable} at or above {formatted}", f"{readable} below {formatted}"


def _oblique_labels(dominant: list[DominantFeature], profiles: dict[str, AttributeProfile]) -> tuple[str, str]:
    """Describe both sides of a multi-feature split.

    Positive weights push higher values to the right, negative weights push
    lower values to the right.

    Args:
        dominant (list[DominantFeature]): Ranked features of the split.
        profiles (dict[str, AttributeProfile]): Profiles keyed by name.

    Returns:
        tuple[str, str]: `(left_label, right_label)`.
    """
    left_parts: list[str] = []
    right_parts: list[str] = []
    for feature in dominant:
        high_goes_right = feature.weight > 0
        one_hot = parse_one_hot_name(feature.name)
        profile = profiles.get(feature.name)
        if one_hot is not None:
            column, value = _readable(one_hot[0]), _readable(one_hot[1])
            low, high = f"{column} is not {value}", f"{column} is {value}"
        elif profile is not None:
            low, high = describe_value_range(profile, is_low=True), describe_value_range(profile, is_low=False)
        else:
            description = describe_feature(feature.name, profiles)
            low, high = f"less {description.lower()}", f"more {description.lower()}"
        left_parts.append(low if high_goes_right else high)
        right_parts.append(high if high_goes_right else low)

    if not left_parts:
        return "one set of products", "another set of products"
    return " and ".join(left_parts), " and ".join(right_parts)


def _apply_template(left: str, right: str, threshold: float, depth: int) -> str:
    if depth <= _EARLY_DEPTH:
        return f"Would you prefer products with {left} or {right}?"
    if depth >= _LATE_DEPTH:
        return f"Within your narrowed choices, would you prefer {left} or {right}?"
    template = _MIDDLE_TEMPLATES[abs(math.floor(threshold * 1000)) % len(_MIDDLE_TEMPLATES)]
    return template.format(left=left, right=right)
