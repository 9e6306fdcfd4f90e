"""Tests for S03: RANSAC plane fitting and plane consolidation."""

import math

import numpy as np
import pytest

from terraseg.core.errors import DegenerateGeometry, InsufficientPoints, NoModelFound
from terraseg.steps.s03_plane_extraction._consolidation import (
    PlaneRegistry, is_similar_plane, merge_or_add,
)
from terraseg.steps.s03_plane_extraction._models import PlaneModel
from terraseg.steps.s03_plane_extraction._ransac import _sample_triples, fit_plane

from tests.conftest import make_diagonal_wall


class TestPlaneModel:
    def test_from_coefficients_normalizes(self):
        model = PlaneModel.from_coefficients(0.0, 0.0, 2.0, -4.0)
        assert model.normal == pytest.approx((0.0, 0.0, 1.0))
        assert model.offset == pytest.approx(-2.0)

    def test_zero_normal_is_degenerate(self):
        with pytest.raises(DegenerateGeometry):
            PlaneModel.from_coefficients(0.0, 0.0, 0.0, 1.0)

    def test_oriented_faces_origin(self):
        model = PlaneModel(normal=(0.0, 0.0, 1.0), offset=-0.5).oriented()
        assert model.normal == pytest.approx((0.0, 0.0, -1.0))
        assert model.offset == pytest.approx(0.5)
        assert model.oriented() == model

    def test_distance_is_signed(self):
        model = PlaneModel(normal=(0.0, 0.0, 1.0), offset=-1.0)
        d = model.distance(np.array([[0, 0, 2.0], [0, 0, 0.0]]))
        assert d.tolist() == pytest.approx([1.0, -1.0])


class TestFitPlane:
    def test_fewer_than_three_points(self):
        with pytest.raises(InsufficientPoints):
            fit_plane(np.zeros((2, 3)), 0.01, rng=np.random.default_rng(0))

    def test_collinear_points_are_degenerate(self):
        pts = np.column_stack([np.linspace(0, 1, 20), np.zeros(20), np.zeros(20)])
        with pytest.raises(NoModelFound) as exc_info:
            fit_plane(pts, 0.01, max_trials=50, rng=np.random.default_rng(0))
        assert isinstance(exc_info.value, DegenerateGeometry)

    def test_sampled_triples_are_distinct(self):
        triples = _sample_triples(4, 2000, np.random.default_rng(1))
        assert triples.min() >= 0 and triples.max() <= 3
        assert all(len(set(row)) == 3 for row in triples.tolist())

    def test_exactly_three_points(self):
        pts = np.array([[0, 0, 1.0], [1, 0, 1.0], [0, 1, 1.0]])
        fit = fit_plane(pts, 0.01, max_trials=10, rng=np.random.default_rng(0))
        assert fit.inliers.tolist() == [0, 1, 2]
        assert fit.model.normal == pytest.approx((0.0, 0.0, -1.0))
        assert fit.model.offset == pytest.approx(1.0)

    def test_dominant_plane_and_inlier_tolerance(self, orthogonal_planes):
        fit = fit_plane(orthogonal_planes, 0.01, max_trials=500, rng=np.random.default_rng(3))
        normal = fit.model.normal_array
        assert np.linalg.norm(normal) == pytest.approx(1.0, abs=1e-6)
        assert len(fit.inliers) >= 500
        dist = np.abs(fit.model.distance(orthogonal_planes[fit.inliers]))
        assert (dist <= 0.01).all()

    def test_same_seed_same_result(self, orthogonal_planes):
        a = fit_plane(orthogonal_planes, 0.01, rng=np.random.default_rng(11))
        b = fit_plane(orthogonal_planes, 0.01, rng=np.random.default_rng(11))
        assert a.model == b.model
        assert np.array_equal(a.inliers, b.inliers)

    def test_diagonal_wall_refits_share_orientation(self):
        fits = [
            fit_plane(make_diagonal_wall(seed=s), 0.005, max_trials=200, rng=np.random.default_rng(s))
            for s in range(20)
        ]
        reference = fits[0].model.normal_array
        for fit in fits:
            assert fit.model.offset > 0
            assert np.dot(fit.model.normal_array, reference) > 0.99
            assert fit.model.offset == pytest.approx(0.5 / math.sqrt(2), abs=0.005)

    def test_without_refinement(self, orthogonal_planes):
        fit = fit_plane(
            orthogonal_planes, 0.01, max_trials=500, rng=np.random.default_rng(3), optimize=False,
        )
        dist = np.abs(fit.model.distance(orthogonal_planes[fit.inliers]))
        assert (dist <= 0.01).all()


class TestConsolidation:
    def test_similar_plane_matches_first_entry(self):
        registry = [PlaneModel(normal=(0.0, 0.0, 1.0), offset=0.0)]
        candidate = PlaneModel(normal=(0.0, 0.0, 1.0), offset=0.001)
        updated, matched = merge_or_add(registry, candidate, 0.05, 0.05)
        assert matched == 0
        assert updated == [candidate]
        assert registry[0].offset == 0.0  # input untouched

    def test_dissimilar_plane_is_appended(self):
        registry = [PlaneModel(normal=(0.0, 0.0, 1.0), offset=0.0)]
        candidate = PlaneModel(normal=(1.0, 0.0, 0.0), offset=0.0)
        updated, matched = merge_or_add(registry, candidate, 0.05, 0.05)
        assert matched is None
        assert updated == [registry[0], candidate]

    def test_offset_outside_tolerance_is_new_plane(self):
        registry = [PlaneModel(normal=(0.0, 0.0, 1.0), offset=0.0)]
        candidate = PlaneModel(normal=(0.0, 0.0, 1.0), offset=-0.2)
        _, matched = merge_or_add(registry, candidate, 0.05, 0.05)
        assert matched is None

    def test_first_match_wins_over_better_match(self):
        registry = [
            PlaneModel(normal=(0.0, 0.0, 1.0), offset=-0.04),
            PlaneModel(normal=(0.0, 0.0, 1.0), offset=0.0),
        ]
        candidate = PlaneModel(normal=(0.0, 0.0, 1.0), offset=-0.001)
        updated, matched = merge_or_add(registry, candidate, 0.05, 0.05)
        assert matched == 0
        assert updated[1] == registry[1]

    def test_deterministic(self):
        registry = [
            PlaneModel(normal=(0.0, 0.0, 1.0), offset=0.0),
            PlaneModel(normal=(1.0, 0.0, 0.0), offset=-1.0),
        ]
        candidate = PlaneModel(normal=(0.9995, 0.0316, 0.0), offset=-1.01)
        results = {merge_or_add(registry, candidate, 0.05, 0.05)[1] for _ in range(10)}
        assert results == {1}

    def test_flipped_equation_is_same_plane(self):
        a = PlaneModel(normal=(-0.7071, 0.7072, 0.0), offset=0.352)
        b = PlaneModel(normal=(0.7073, -0.7069, 0.0), offset=-0.354)
        assert is_similar_plane(a, b, 0.1, 0.05)
        assert is_similar_plane(b, a, 0.1, 0.05)
        updated, matched = merge_or_add([a], b, 0.1, 0.05)
        assert matched == 0
        assert updated == [b]

    def test_flipped_equation_offset_still_checked(self):
        a = PlaneModel(normal=(0.0, 0.0, 1.0), offset=0.2)
        b = PlaneModel(normal=(0.0, 0.0, -1.0), offset=0.2)  # z = -0.2 vs z = 0.2
        assert not is_similar_plane(a, b, 0.1, 0.05)

    def test_similarity_uses_strict_bounds(self):
        a = PlaneModel(normal=(0.0, 0.0, 1.0), offset=0.0)
        b = PlaneModel(normal=(0.0, math.sin(0.1), math.cos(0.1)), offset=0.0)
        assert not is_similar_plane(a, b, 0.1 - 1e-9, 1.0)
        assert is_similar_plane(a, b, 0.1 + 1e-6, 1.0)

    def test_registry_replacement_returns_displaced_indices(self):
        reg = PlaneRegistry(angle_tolerance=0.05, offset_tolerance=0.05)
        first = PlaneModel(normal=(0.0, 0.0, 1.0), offset=0.0)
        slot, displaced = reg.consolidate(first, np.array([0, 1, 2]), np.zeros((3, 3)))
        assert (slot, displaced) == (0, None)

        second = PlaneModel(normal=(0.0, 0.0, 1.0), offset=-0.01)
        slot, displaced = reg.consolidate(second, np.array([5, 6]), np.zeros((2, 3)))
        assert slot == 0
        assert displaced.tolist() == [0, 1, 2]
        assert len(reg) == 1
        assert reg.records[0].model == second
        assert reg.records[0].indices.tolist() == [5, 6]
