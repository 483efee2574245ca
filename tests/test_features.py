"""Tests for the context vector encoder."""

from datetime import timedelta

import numpy as np
import pytest

from conftest import NOW
from taskweave.config import FEATURE_DIM
from taskweave.models.features import FEATURE_NAMES, build_context_vector, describe_context_vector


def test_vector_shape_and_bias(make_context):
    x = build_context_vector(make_context())
    assert x.shape == (FEATURE_DIM,)
    assert len(FEATURE_NAMES) == FEATURE_DIM
    assert x[0] == 1.0


def test_hour_and_energy(make_context):
    x = build_context_vector(make_context(energy=85))
    assert x[1] == pytest.approx(10 / 24)
    assert x[2] == pytest.approx(0.85)


def test_queue_pressure_is_capped(make_task, make_context):
    light = make_context(tasks=[make_task("a", duration=120)])
    heavy = make_context(tasks=[make_task("a", duration=240), make_task("b", duration=480)])
    assert build_context_vector(light)[3] == pytest.approx(0.25)
    assert build_context_vector(heavy)[3] == 1.0


def test_urgency_ratio(make_task, make_context):
    tasks = [
        make_task("a", due_date=NOW + timedelta(hours=2)),
        make_task("b", due_date=NOW + timedelta(days=3)),
        make_task("c"),
        make_task("d", due_date=NOW - timedelta(hours=1)),
    ]
    assert build_context_vector(make_context(tasks=tasks))[4] == pytest.approx(0.5)
    assert build_context_vector(make_context(tasks=[]))[4] == 0.0


def test_nothing_completed_leaves_history_features_zero(make_context):
    x = build_context_vector(make_context())
    assert np.all(x[5:] == 0.0)


def test_recency_and_duration_of_last_completion(make_task, make_context):
    last = make_task("done", category="Personal", completed_at=NOW - timedelta(hours=1), actual_duration=1800)
    x = build_context_vector(make_context(completed=[last]))
    assert x[5] == pytest.approx(0.75)
    assert x[6] == pytest.approx(0.5)
    assert list(x[7:]) == [0.0, 0.0, 1.0, 0.0]


def test_planned_duration_used_without_actual(make_task, make_context):
    last = make_task("done", duration=90, completed_at=NOW - timedelta(hours=5))
    x = build_context_vector(make_context(completed=[last]))
    assert x[5] == 0.0
    assert x[6] == 1.0
    assert x[7] == 1.0


def test_most_recent_completion_wins(make_task, make_context):
    older = make_task("old", category="Hobbies", completed_at=NOW - timedelta(hours=3))
    newer = make_task("new", category="Wellbeing", completed_at=NOW - timedelta(minutes=30))
    x = build_context_vector(make_context(completed=[newer, older]))
    assert list(x[7:]) == [0.0, 1.0, 0.0, 0.0]


def test_unknown_category_encodes_as_zero(make_task, make_context):
    last = make_task("done", category="tag-7f3a", completed_at=NOW - timedelta(minutes=10))
    x = build_context_vector(make_context(completed=[last]))
    assert list(x[7:]) == [0.0, 0.0, 0.0, 0.0]


def test_encoding_is_deterministic(make_task, make_context):
    tasks = [make_task("a", duration=45, due_date=NOW + timedelta(hours=3))]
    last = make_task("done", completed_at=NOW - timedelta(minutes=42))
    ctx = make_context(tasks=tasks, completed=[last], energy=63)
    np.testing.assert_allclose(build_context_vector(ctx), build_context_vector(ctx), atol=1e-9)


def test_describe_context_vector(make_context):
    description = describe_context_vector(build_context_vector(make_context(energy=40)))
    assert description['bias'] == 1.0
    assert description['energy'] == 0.4
