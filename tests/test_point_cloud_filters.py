"""Tests for shared point cloud filtering utilities."""

import numpy as np
import pandas as pd
import pytest

from lidar_catalog.utils.point_cloud_filters import (
    apply_record_filter,
    create_classification_mask,
)


def test_create_classification_mask_ground_only():
    """Test ground-only filtering (class 2)."""
    classes = np.array([1, 2, 2, 3, 2, 1, 5, 2])
    mask = create_classification_mask(classes, ground_only=True)

    expected = np.array([False, True, True, False, True, False, False, True])
    assert np.array_equal(mask, expected)
    assert mask.sum() == 4  # 4 ground points


def test_create_classification_mask_custom_filter():
    """Test custom classification filter."""
    classes = np.array([1, 2, 2, 3, 2, 1, 5, 2])
    mask = create_classification_mask(classes, classification_filter=[1, 3])

    expected = np.array([True, False, False, True, False, True, False, False])
    assert np.array_equal(mask, expected)


def test_custom_filter_overrides_ground_only():
    classes = np.array([1, 2, 6])
    mask = create_classification_mask(classes, ground_only=True, classification_filter=[6])
    assert mask.tolist() == [False, False, True]


def test_create_classification_mask_no_filter():
    """Test no filtering (all points accepted)."""
    classes = np.array([1, 2, 3])
    assert create_classification_mask(classes).all()


@pytest.fixture
def points():
    return pd.DataFrame({
        "X": [0.0, 1.0, 2.0, 3.0],
        "Y": [0.0, 0.0, 1.0, 1.0],
        "Z": [1.0, 5.0, 10.0, 20.0],
        "intensity": [10, 200, 30, 400],
    })


class TestApplyRecordFilter:

    def test_none_returns_input(self, points):
        assert apply_record_filter(points, None) is points

    def test_query_string(self, points):
        out = apply_record_filter(points, "Z > 4 and intensity < 300")
        assert out["Z"].tolist() == [5.0, 10.0]

    def test_mask_callable(self, points):
        out = apply_record_filter(points, lambda df: df["X"] >= 2)
        assert out["X"].tolist() == [2.0, 3.0]

    def test_mask_callable_wrong_shape(self, points):
        with pytest.raises(ValueError, match="shape"):
            apply_record_filter(points, lambda df: np.ones(2, dtype=bool))
