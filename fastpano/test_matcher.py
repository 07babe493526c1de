"""Tests for descriptor matching."""

import numpy as np

from fastpano.config import StitchConfig
from fastpano.matcher import FeatureMatcher, matched_points


def unit_rows(rng, n, dim=32):
    vectors = rng.normal(size=(n, dim))
    return vectors / np.linalg.norm(vectors, axis=1, keepdims=True)


def test_empty_input_gives_no_matches():
    matcher = FeatureMatcher()
    some = np.ones((3, 8))

    assert matcher.match(np.empty((0, 8)), some) == []
    assert matcher.match(some, np.empty((0, 8))) == []


def test_permuted_descriptors_match_exactly():
    rng = np.random.default_rng(0)
    desc1 = unit_rows(rng, 20)
    perm = rng.permutation(20)
    desc2 = desc1[perm]

    matches = FeatureMatcher().match(desc1, desc2)

    assert len(matches) == 20
    for m in matches:
        assert perm[m['trainIdx']] == m['queryIdx']
        assert m['distance'] < 1e-6


def test_ambiguous_duplicates_fail_ratio_test():
    rng = np.random.default_rng(1)
    desc1 = unit_rows(rng, 3)
    desc2 = np.vstack([desc1[0], desc1[0], desc1[1], desc1[2]])

    matches = FeatureMatcher().match(desc1, desc2)

    assert sorted(m['queryIdx'] for m in matches) == [1, 2]


def test_train_index_claimed_once():
    rng = np.random.default_rng(2)
    base = unit_rows(rng, 3)
    desc2 = base
    desc1 = np.vstack([base[0], base[0] + 0.05 * unit_rows(rng, 1)[0]])

    matches = FeatureMatcher().match(desc1, desc2)

    assert len(matches) == 1
    assert matches[0]['queryIdx'] == 0
    assert matches[0]['trainIdx'] == 0

    non_unique = FeatureMatcher(unique=False).match(desc1, desc2)
    assert len(non_unique) == 2


def test_absolute_cutoff_rejects_distant_nearest():
    rng = np.random.default_rng(3)
    a, b = unit_rows(rng, 2)
    desc1 = a[np.newaxis]
    desc2 = np.vstack([a + 0.8 * b, a + 5.0 * b])

    assert FeatureMatcher(max_distance=0.7).match(desc1, desc2) == []
    assert len(FeatureMatcher(max_distance=1.0).match(desc1, desc2)) == 1


def test_single_train_descriptor_uses_cutoff_only():
    desc2 = np.array([[1.0, 0.0]])
    desc1 = np.array([[1.0, 0.1], [0.0, 1.0]])

    matches = FeatureMatcher(max_distance=0.5).match(desc1, desc2)

    assert [(m['queryIdx'], m['trainIdx']) for m in matches] == [(0, 0)]


def test_matches_sorted_by_distance():
    rng = np.random.default_rng(4)
    desc2 = unit_rows(rng, 10)
    noise = 0.01 * np.arange(10)[:, np.newaxis] * unit_rows(rng, 10)
    desc1 = desc2 + noise

    distances = [m['distance'] for m in FeatureMatcher().match(desc1, desc2)]

    assert distances == sorted(distances)


def test_cross_check_keeps_mutual_matches():
    desc1 = np.array([[0.0, 0.0], [0.0, 0.3]])
    desc2 = np.array([[0.0, 0.1], [5.0, 5.0]])

    matcher = FeatureMatcher(ratio_threshold=1.0, max_distance=1.0,
                             unique=False, cross_check=True)
    matches = matcher.match(desc1, desc2)

    assert [(m['queryIdx'], m['trainIdx']) for m in matches] == [(0, 0)]


def test_matcher_from_config():
    matcher = FeatureMatcher.from_config(StitchConfig(match_ratio=0.6, match_max_distance=0.4))
    assert matcher.ratio_threshold == 0.6
    assert matcher.max_distance == 0.4


def test_matched_points():
    keypoints1 = np.array([[1, 2], [3, 4], [5, 6]])
    keypoints2 = np.array([[10, 20], [30, 40]])
    matches = [{'queryIdx': 2, 'trainIdx': 0, 'distance': 0.0},
               {'queryIdx': 0, 'trainIdx': 1, 'distance': 0.1}]

    points1, points2 = matched_points(matches, keypoints1, keypoints2)

    np.testing.assert_array_equal(points1, [[5, 6], [1, 2]])
    np.testing.assert_array_equal(points2, [[10, 20], [30, 40]])

    empty1, empty2 = matched_points([], keypoints1, keypoints2)
    assert empty1.shape == (0, 2) and empty2.shape == (0, 2)
