"""Tests for the in-memory identity matcher."""
import numpy as np
import pytest

from photo_faces.core.exceptions import EmbeddingDimensionError
from photo_faces.domain.entities.records import PersonRecord
from photo_faces.domain.value_objects.recognition import UNKNOWN_DISTANCE
from photo_faces.services.identity_matcher import IdentityMatcher
from tests.conftest import near, unit


def test_empty_matcher_reports_unknown():
    matcher = IdentityMatcher(threshold=0.55)

    result = matcher.match(unit(0))

    assert result.is_unknown
    assert not result.is_confident
    assert result.distance == UNKNOWN_DISTANCE


def test_match_returns_closest_person():
    matcher = IdentityMatcher(threshold=0.55)
    matcher.add_person(1, unit(0))
    matcher.add_person(2, unit(1))

    result = matcher.match(near(unit(1), 0.1))

    assert result.person_id == 2
    assert result.distance == pytest.approx(0.1, abs=1e-6)
    assert result.is_confident


def test_distance_equal_to_threshold_is_not_a_match():
    """Acceptance is strictly below the threshold."""
    matcher = IdentityMatcher(threshold=0.5)
    matcher.add_person(1, unit(0))

    result = matcher.match(near(unit(0), 0.5))

    assert result.person_id == 1
    assert result.distance == pytest.approx(0.5)
    assert not result.is_confident


def test_threshold_is_monotonic():
    matcher = IdentityMatcher(threshold=0.55)
    matcher.add_person(1, unit(0))

    assert matcher.match(near(unit(0), 0.3)).is_confident
    assert not matcher.match(near(unit(0), 0.8)).is_confident


def test_person_distance_is_minimum_over_descriptors():
    matcher = IdentityMatcher(threshold=0.55)
    matcher.add_person(1, unit(0))
    matcher.add_descriptor(1, unit(2))

    result = matcher.match(near(unit(2), 0.2))

    assert result.person_id == 1
    assert result.distance == pytest.approx(0.2, abs=1e-6)
    assert matcher.descriptor_count == 2


def test_ties_resolve_to_first_added_person():
    matcher = IdentityMatcher(threshold=0.55)
    matcher.add_person(7, unit(0))
    matcher.add_person(3, unit(0))

    assert matcher.match(unit(0)).person_id == 7


def test_added_person_is_visible_to_next_match():
    matcher = IdentityMatcher(threshold=0.55)
    assert matcher.match(unit(0)).is_unknown

    matcher.add_person(1, unit(0))

    result = matcher.match(unit(0))
    assert result.person_id == 1
    assert result.distance == pytest.approx(0.0)
    assert 1 in matcher
    assert len(matcher) == 1


def test_add_existing_person_raises():
    matcher = IdentityMatcher()
    matcher.add_person(1, unit(0))

    with pytest.raises(ValueError):
        matcher.add_person(1, unit(1))


def test_add_descriptor_to_unknown_person_raises():
    matcher = IdentityMatcher()

    with pytest.raises(KeyError):
        matcher.add_descriptor(42, unit(0))


def test_dimension_mismatch_raises():
    matcher = IdentityMatcher()
    matcher.add_person(1, unit(0))

    with pytest.raises(EmbeddingDimensionError):
        matcher.match(np.zeros(3, dtype=np.float32))
    with pytest.raises(EmbeddingDimensionError):
        matcher.add_person(2, [0.0, 1.0])


def test_remove_and_clear():
    matcher = IdentityMatcher()
    matcher.add_person(1, unit(0))
    matcher.add_person(2, unit(1))

    matcher.remove_person(1)
    assert matcher.person_ids == [2]

    matcher.clear()
    assert len(matcher) == 0
    assert matcher.dimension is None
    # Dimension is free again once empty
    matcher.add_person(3, [1.0, 0.0])
    assert matcher.dimension == 2


def test_from_persons_loads_every_descriptor():
    persons = [
        PersonRecord(id=1, descriptors=[unit(0).tolist(), unit(2).tolist()]),
        PersonRecord(id=2, descriptors=[unit(1).tolist()]),
    ]

    matcher = IdentityMatcher.from_persons(persons, threshold=0.4)

    assert matcher.person_ids == [1, 2]
    assert matcher.descriptor_count == 3
    assert matcher.threshold == 0.4
    assert matcher.match(unit(2)).person_id == 1


@pytest.mark.parametrize("threshold", [0.0, -0.1])
def test_non_positive_threshold_is_rejected(threshold):
    with pytest.raises(ValueError):
        IdentityMatcher(threshold=threshold)
