"""Tests for S02: Euclidean clustering."""

from pathlib import Path

import numpy as np
import pytest

from terraseg.core.contracts import LeafSize
from terraseg.steps.s02_clustering._euclidean import (
    _union_find_components, euclidean_clusters, resolve_size_bounds,
)
from terraseg.steps.s02_clustering._normals import estimate_normals
from terraseg.steps.s02_clustering.config import ClusteringConfig
from terraseg.steps.s02_clustering.contracts import ClusteringInput
from terraseg.steps.s02_clustering.step import ClusteringStep, cluster_points
from terraseg.utils.io import load_clusters, read_json

from tests.conftest import requires_open3d


class TestUnionFind:
    def test_components(self):
        edges = np.array([[0, 1], [1, 2], [4, 5]])
        comps = _union_find_components(6, edges)
        assert [c.tolist() for c in comps] == [[0, 1, 2], [3], [4, 5]]

    def test_no_edges(self):
        comps = _union_find_components(3, np.empty((0, 2), dtype=int))
        assert len(comps) == 3


class TestEuclideanClusters:
    def test_two_blobs(self, two_blobs):
        clusters = euclidean_clusters(two_blobs, tolerance=0.1, min_size=10, max_size=10_000)
        assert len(clusters) == 2
        assert len(clusters[0]) == len(clusters[1]) == len(two_blobs) // 2
        assert not set(clusters[0].tolist()) & set(clusters[1].tolist())
        # Ordered by smallest member index
        assert clusters[0][0] == 0

    def test_size_bounds_drop_clusters(self, two_blobs):
        extra = np.array([[10.0, 10.0, 10.0]])
        points = np.vstack([two_blobs, extra])
        clusters = euclidean_clusters(points, tolerance=0.1, min_size=2, max_size=10_000)
        assert len(clusters) == 2
        assert all(len(c) >= 2 for c in clusters)

        assert euclidean_clusters(points, tolerance=0.1, min_size=2, max_size=100) == []

    def test_empty_input(self):
        assert euclidean_clusters(np.empty((0, 3)), 0.1, 1, 10) == []

    def test_normal_predicate_splits_cluster(self):
        xs = np.arange(20) * 0.05
        points = np.column_stack([xs, np.zeros(20), np.zeros(20)])
        normals = np.zeros((20, 3))
        normals[:10, 2] = 1.0
        normals[10:, 0] = 1.0

        plain = euclidean_clusters(points, 0.06, 1, 100)
        assert len(plain) == 1

        split = euclidean_clusters(points, 0.06, 1, 100, normals=normals, angle_threshold_deg=30)
        assert [c.tolist() for c in split] == [list(range(10)), list(range(10, 20))]

    def test_normal_predicate_ignores_sign(self):
        points = np.array([[0.0, 0, 0], [0.05, 0, 0]])
        normals = np.array([[0.0, 0, 1], [0.0, 0, -1]])
        clusters = euclidean_clusters(points, 0.06, 1, 10, normals=normals, angle_threshold_deg=10)
        assert len(clusters) == 1


class TestSizeBounds:
    def test_ratios(self):
        assert resolve_size_bounds(1000) == (100, 500)

    def test_absolute_sizes_win(self):
        assert resolve_size_bounds(1000, min_size=5, max_size=50) == (5, 50)

    def test_minimum_is_at_least_one(self):
        assert resolve_size_bounds(3)[0] == 1


class TestNormals:
    @requires_open3d
    def test_plane_normals(self):
        g = np.arange(10) * 0.1
        gx, gy = np.meshgrid(g, g)
        points = np.column_stack([gx.ravel(), gy.ravel(), np.zeros(gx.size)])
        normals = estimate_normals(points, k=8, viewpoint=np.array([0.0, 0.0, 5.0]))
        assert normals.shape == points.shape
        assert np.all(normals[:, 2] > 0.99)

    def test_too_few_points(self):
        assert np.all(estimate_normals(np.zeros((2, 3))) == 0)


class TestClusterPoints:
    def test_method_none_passes_whole_cloud(self, two_blobs):
        clusters = cluster_points(two_blobs, ClusteringConfig(method="none"))
        assert len(clusters) == 1
        assert np.array_equal(clusters[0], two_blobs)

    def test_default_ratios(self, two_blobs):
        clusters = cluster_points(two_blobs, ClusteringConfig(cluster_tolerance=0.06))
        assert len(clusters) == 2

    def test_downsample_clusters(self, two_blobs):
        cfg = ClusteringConfig(
            cluster_tolerance=0.06,
            min_cluster_size=10,
            max_cluster_size=10_000,
            downsample_clusters=True,
            cluster_leaf=LeafSize(x=0.1, y=0.1, z=0.1),
        )
        clusters = cluster_points(two_blobs, cfg)
        assert len(clusters) == 2
        assert all(len(c) < len(two_blobs) // 2 for c in clusters)

    @requires_open3d
    def test_use_normals_runs(self, two_blobs):
        cfg = ClusteringConfig(
            cluster_tolerance=0.06, min_cluster_size=1, max_cluster_size=10_000, use_normals=True,
        )
        clusters = cluster_points(two_blobs, cfg)
        assert sum(len(c) for c in clusters) <= len(two_blobs)


class TestClusteringStep:
    def test_config_defaults(self):
        cfg = ClusteringConfig()
        assert cfg.cluster_tolerance == pytest.approx(0.09)
        assert cfg.min_cluster_ratio == pytest.approx(0.1)
        assert cfg.max_cluster_ratio == pytest.approx(0.5)
        assert cfg.downsample_clusters is False

    def test_step_writes_clusters(self, data_root: Path, two_blobs):
        path = data_root / "interim" / "s01_preprocess" / "filtered_points.npy"
        np.save(str(path), two_blobs)
        cfg = ClusteringConfig(cluster_tolerance=0.06, min_cluster_size=10, max_cluster_size=10_000)
        step = ClusteringStep(config=cfg, data_root=data_root)
        output = step.execute(ClusteringInput(filtered_points_path=path, frame_id="odom"))

        assert output.num_clusters == 2
        assert output.num_clustered_points == len(two_blobs)
        assert len(load_clusters(output.clusters_path)) == 2
        summary = read_json(output.summary_path)
        assert summary["frame_id"] == "odom"
        assert summary["clusters"][1]["centroid"][0] == pytest.approx(2.0)

    def test_missing_input(self, data_root: Path):
        step = ClusteringStep(config=ClusteringConfig(), data_root=data_root)
        with pytest.raises(ValueError):
            step.execute(ClusteringInput(filtered_points_path=data_root / "nope.npy"))
