"""
Feature extraction for the contextual bandit.

Turns a ContextSnapshot into the fixed-length context vector used by every
arm. Everything is computed relative to ``ctx.current_time`` so that the
same snapshot always yields the same vector, which historical replay relies
on.

Layout (index: meaning):
    0      bias, always 1.0
    1      hour of day / 24
    2      user energy / 100
    3      queue pressure: min(1, active minutes / 480)
    4      urgency ratio: share of active tasks due within 24h
    5      recency of the last completion: max(0, 1 - hours since / 4)
    6      duration of the last completed task, capped at one hour
    7-10   one-hot category of the last completed task
"""

from datetime import timedelta
from typing import List

import numpy as np

from taskweave.config import FEATURE_DIM, FeatureConfig, StrategyConfig
from taskweave.models.entities import ContextSnapshot
from taskweave.utils import encode_categorical_feature, safe_divide

FEATURE_NAMES = [
    'bias',
    'hour_of_day',
    'energy',
    'queue_pressure',
    'urgency_ratio',
    'completion_recency',
    'last_duration',
    'last_category_work',
    'last_category_wellbeing',
    'last_category_personal',
    'last_category_hobbies',
]


def build_context_vector(ctx: ContextSnapshot,
                         feature_config: FeatureConfig = None,
                         strategy_config: StrategyConfig = None) -> np.ndarray:
    """
    Encode a context snapshot as a length-11 float vector.

    Args:
        ctx: Live context supplied by the caller
        feature_config: Normalisation constants (defaults if omitted)
        strategy_config: Supplies the urgency window (defaults if omitted)

    Returns:
        numpy array of shape (FEATURE_DIM,)
    """
    feature_config = feature_config or FeatureConfig()
    strategy_config = strategy_config or StrategyConfig()
    now = ctx.current_time

    hour = now.hour / 24.0
    energy = ctx.energy / 100.0

    total_minutes = sum(task.duration for task in ctx.tasks)
    queue_pressure = min(1.0, total_minutes / feature_config.queue_capacity_minutes)

    urgent_cutoff = now + timedelta(hours=strategy_config.urgency_window_hours)
    urgent_count = sum(1 for task in ctx.tasks if task.due_date is not None and task.due_date < urgent_cutoff)
    urgency_ratio = safe_divide(urgent_count, len(ctx.tasks))

    recency = 0.0
    last_duration = 0.0
    last_categories: List[float] = [0.0, 0.0, 0.0, 0.0]

    last = ctx.last_completed()
    if last is not None:
        if last.completed_at is not None:
            hours_since = (now - last.completed_at).total_seconds() / 3600.0
            recency = max(0.0, 1.0 - hours_since / feature_config.recency_window_hours)
        seconds = last.actual_duration if last.actual_duration else last.duration * 60
        last_duration = min(1.0, seconds / feature_config.duration_normalisation_seconds)
        last_categories = encode_categorical_feature(last.category, 'task_category')

    features = [
        1.0,
        hour,
        energy,
        queue_pressure,
        urgency_ratio,
        recency,
        last_duration,
    ] + last_categories

    vector = np.array(features, dtype=float)
    assert vector.shape == (FEATURE_DIM,), f"Context vector has {vector.shape[0]} features, expected {FEATURE_DIM}"
    return vector


def describe_context_vector(vector: np.ndarray) -> dict:
    """Map each feature name to its value, rounded for logging."""
    return {name: round(float(value), 4) for name, value in zip(FEATURE_NAMES, vector)}
