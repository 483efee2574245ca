"""Tests for encoding and normalisation helpers."""

import pytest

from taskweave.categories import get_default_value, is_valid_category_value
from taskweave.utils import encode_categorical_feature, normalise_energy, safe_divide


def test_encode_categorical_feature():
    assert encode_categorical_feature('Work', 'task_category') == [1.0, 0.0, 0.0, 0.0]
    assert encode_categorical_feature('Hobbies', 'task_category') == [0.0, 0.0, 0.0, 1.0]
    assert encode_categorical_feature(None, 'task_category') == [0.0, 0.0, 0.0, 0.0]
    assert encode_categorical_feature('work', 'task_category') == [0.0, 0.0, 0.0, 0.0]
    with pytest.raises(ValueError):
        encode_categorical_feature('Work', 'no_such_category')


@pytest.mark.parametrize("reading, energy", [
    (0, 0.0),
    (1, 20.0),
    (3, 60.0),
    (4, 80.0),
    (3.5, 80.0),
    (4.6, 100.0),
    ("2", 40.0),
    (-3, 60.0),
    (72, 72.0),
    (150, 100.0),
])
def test_normalise_energy(reading, energy):
    assert normalise_energy(reading) == energy


def test_non_numeric_reading_raises():
    with pytest.raises(ValueError):
        normalise_energy("tired")


def test_safe_divide():
    assert safe_divide(1, 4) == 0.25
    assert safe_divide(1, 0) == 0.0
    assert safe_divide(1, 0, default=-1.0) == -1.0


def test_category_lookups():
    assert get_default_value('energy_level') == 'Medium'
    assert is_valid_category_value('task_status', 'archived')
    assert not is_valid_category_value('task_status', 'deleted')
