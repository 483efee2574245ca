"""
Utility Functions for the Task Recommender

Contains helper functions for encoding, normalisation and safe arithmetic
shared by the feature encoder, the trainer and the API layer.
"""

import math
from typing import List, Optional, Union

from taskweave.categories import get_categories, is_valid_category_value

# Mood readings on the 1-5 scale map onto the 0-100 energy range
MOOD_SCALE_TO_ENERGY = [0, 20, 40, 60, 80, 100]
MOOD_SCALE_FALLBACK = 60


def encode_categorical_feature(value: Optional[str], category_name: str) -> List[float]:
    """
    Encode a categorical value using one-hot encoding over a standardised list.

    Unlike free-form encoders there is no fallback bucket: an unknown or
    missing value encodes as the all-zero vector.

    Args:
        value: The categorical value to encode
        category_name: Name of the category (must exist in categories.py)

    Returns:
        One-hot encoded feature vector

    Example:
        >>> encode_categorical_feature('Personal', 'task_category')
        [0.0, 0.0, 1.0, 0.0]

        >>> encode_categorical_feature('tag-7f3a', 'task_category')
        [0.0, 0.0, 0.0, 0.0]
    """
    try:
        categories = get_categories(category_name)
    except KeyError:
        raise ValueError(f"Unknown category name: {category_name}")

    features = [0.0] * len(categories)
    if value is not None and is_valid_category_value(category_name, value):
        features[categories.index(value)] = 1.0

    return features


def normalise_energy(value: Union[int, float, str]) -> float:
    """
    Convert a mood/energy reading to the 0-100 energy range.

    Readings at or below 5 are treated as the 1-5 mood scale; anything larger
    is already an energy value and is clamped to [0, 100].
    """
    val = float(value)
    if val <= 5:
        # Mood 0 reads as no energy rather than the unknown-mood fallback
        index = int(math.floor(val + 0.5))
        if 0 <= index < len(MOOD_SCALE_TO_ENERGY):
            return float(MOOD_SCALE_TO_ENERGY[index])
        return float(MOOD_SCALE_FALLBACK)
    return clamp(val, 0.0, 100.0)


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide two numbers, returning default if the denominator is zero."""
    if denominator == 0:
        return default
    return numerator / denominator


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
