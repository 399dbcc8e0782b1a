"""Tests for position/orientation interpolation and decorative populations."""
import math

import numpy as np
import pytest

from treemorph.interpolation import (
    ORNAMENT_CONFIGS,
    EntityInstance,
    InstancePopulation,
    OrnamentKind,
    blend_points,
    build_ornaments,
    build_polaroids,
    foliage_color,
    lerp_vector,
    n_polaroids,
    quaternion_from_euler,
    slerp,
    weighted_progress,
)
from treemorph.positions import DualPositionEntry, DualStateSet


def same_rotation(q0, q1, atol=1e-9):
    """q and -q are the same rotation."""
    return abs(abs(float(np.dot(q0, q1))) - 1.0) < atol


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def gift():
    return EntityInstance(
        dual_entry=DualPositionEntry(np.array([0.0, 0.0, 0.0]), np.array([2.0, 4.0, 6.0])),
        chaos_rotation=quaternion_from_euler(0.3, 1.0, 2.0),
        target_rotation=quaternion_from_euler(0, 1.5, 0),
        class_weight=3.0,
        class_kind=OrnamentKind.GIFT,
    )


@pytest.fixture
def ornaments():
    return build_ornaments(60, rng=1)


# ---------------------------------------------------------------------------
# Quaternions
# ---------------------------------------------------------------------------

class TestSlerp:

    def test_endpoints(self):
        q0 = quaternion_from_euler(0.1, 0.2, 0.3)
        q1 = quaternion_from_euler(2.0, -1.0, 0.5)
        assert same_rotation(slerp(q0, q1, 0.0), q0)
        assert same_rotation(slerp(q0, q1, 1.0), q1)

    def test_unit_norm(self):
        q0 = quaternion_from_euler(0.1, 0.2, 0.3)
        q1 = quaternion_from_euler(2.0, -1.0, 0.5)
        for t in np.linspace(0, 1, 11):
            assert np.linalg.norm(slerp(q0, q1, t)) == pytest.approx(1.0)

    def test_shortest_arc(self):
        q0 = quaternion_from_euler(0, 0, 0)
        q1 = -quaternion_from_euler(0, 0.2, 0)  # same rotation, opposite hemisphere
        mid = slerp(q0, q1, 0.5)
        assert same_rotation(mid, quaternion_from_euler(0, 0.1, 0))

    def test_identical_quaternions(self):
        q = quaternion_from_euler(1.0, 2.0, 3.0)
        assert same_rotation(slerp(q, q, 0.37), q)

    def test_vectorized(self):
        q0 = np.array([quaternion_from_euler(0, 0, 0)] * 3)
        q1 = np.array([quaternion_from_euler(0, a, 0) for a in (0.2, 0.4, 0.6)])
        out = slerp(q0, q1, np.array([0.5, 0.5, 0.5]))
        for row, a in zip(out, (0.1, 0.2, 0.3)):
            assert same_rotation(row, quaternion_from_euler(0, a, 0))

    def test_euler_matches_axis_angle(self):
        q = quaternion_from_euler(0, 0, math.pi / 2)
        np.testing.assert_allclose(
            q, [0, 0, math.sin(math.pi / 4), math.cos(math.pi / 4)], atol=1e-12
        )


# ---------------------------------------------------------------------------
# Weighting
# ---------------------------------------------------------------------------

class TestWeightedProgress:

    def test_gift_ahead_of_light(self):
        assert weighted_progress(0.5, 3.0) > weighted_progress(0.5, 0.5)

    @pytest.mark.parametrize('progress', [0.01, 0.2, 0.5, 0.8, 0.95, 1.0])
    def test_monotonic_in_weight(self, progress):
        weights = np.linspace(0, 5, 51)
        values = weighted_progress(progress, weights)
        assert np.all(np.diff(values) >= 0)

    def test_clamped(self):
        assert weighted_progress(1.0, 3.0) == 1.0
        assert weighted_progress(0.0, 3.0) == 0.0
        assert np.all(weighted_progress(0.95, np.array([0.5, 3.0])) <= 1.0)

    def test_formula(self):
        assert weighted_progress(0.4, 1.5) == pytest.approx(0.4 * 1.15)


# ---------------------------------------------------------------------------
# Single instances and populations
# ---------------------------------------------------------------------------

class TestEntityInstance:

    def test_pose_is_idempotent(self, gift):
        a = gift.pose(0.3)
        b = gift.pose(0.3)
        np.testing.assert_array_equal(a[0], b[0])
        np.testing.assert_array_equal(a[1], b[1])

    def test_weighted_pose(self, gift):
        position, rotation = gift.pose(0.5)
        np.testing.assert_allclose(position, np.array([2.0, 4.0, 6.0]) * 0.65)
        assert np.linalg.norm(rotation) == pytest.approx(1.0)

    def test_unweighted_pose(self, gift):
        position, _ = gift.pose(0.5, weighted=False)
        np.testing.assert_allclose(position, [1.0, 2.0, 3.0])

    def test_formed_pose(self, gift):
        position, rotation = gift.pose(1.0)
        np.testing.assert_allclose(position, [2.0, 4.0, 6.0])
        assert same_rotation(rotation, gift.target_rotation)


class TestOrnaments:

    def test_count_and_kinds(self, ornaments):
        assert len(ornaments) == 60
        assert set(ornaments.kinds) <= {OrnamentKind.GIFT, OrnamentKind.BALL, OrnamentKind.LIGHT}
        assert ornaments.weighted

    def test_weights_match_configs(self, ornaments):
        by_kind = {c.kind: c.weight for c in ORNAMENT_CONFIGS}
        for inst in ornaments.instances:
            assert inst.class_weight == by_kind[inst.class_kind]

    def test_chaos_within_radius(self, ornaments):
        assert np.all(np.linalg.norm(ornaments.chaos_positions, axis=1) <= 10.0 + 1e-9)

    def test_target_rotation_is_upright(self, ornaments):
        # rotation about the y axis only: x and z components vanish
        np.testing.assert_allclose(ornaments.target_rotations[:, [0, 2]], 0, atol=1e-12)

    def test_poses_endpoints(self, ornaments):
        chaos = ornaments.poses(0.0)
        np.testing.assert_allclose(chaos.positions, ornaments.chaos_positions)
        formed = ornaments.poses(1.0)
        np.testing.assert_allclose(formed.positions, ornaments.target_positions)
        for q, target in zip(formed.rotations, ornaments.target_rotations):
            assert same_rotation(q, target)

    def test_heavier_classes_land_first(self, ornaments):
        groups = ornaments.groups()
        if OrnamentKind.GIFT in groups and OrnamentKind.LIGHT in groups:
            gift_t = groups[OrnamentKind.GIFT].progress(0.5)
            light_t = groups[OrnamentKind.LIGHT].progress(0.5)
            assert np.all(gift_t > light_t.max())

    def test_groups_partition(self, ornaments):
        groups = ornaments.groups()
        assert sum(len(g) for g in groups.values()) == len(ornaments)
        for kind, group in groups.items():
            assert set(group.kinds) == {kind}

    def test_same_seed_same_population(self):
        a = build_ornaments(10, rng=3)
        b = build_ornaments(10, rng=3)
        np.testing.assert_array_equal(a.target_positions, b.target_positions)

    def test_empty_population(self):
        empty = InstancePopulation([], weighted=True)
        poses = empty.poses(0.5)
        assert poses.positions.shape == (0, 3)
        assert poses.rotations.shape == (0, 4)


class TestPolaroids:

    def test_count(self):
        assert n_polaroids(5) == 15
        assert n_polaroids(20) == 30
        assert len(build_polaroids(5, rng=0)) == 15

    def test_unweighted(self):
        polaroids = build_polaroids(2, rng=0)
        assert not polaroids.weighted
        np.testing.assert_allclose(polaroids.progress(0.4), 0.4)

    def test_image_indices_cycle(self):
        polaroids = build_polaroids(3, rng=0)
        assert [p.image_index for p in polaroids.instances] == [0, 1, 2] * 3

    def test_pushed_outside_spiral(self):
        polaroids = build_polaroids(5, rng=0)
        radial = np.hypot(polaroids.target_positions[:, 0], polaroids.target_positions[:, 2])
        assert np.all(radial > 0)

    def test_invalid(self):
        with pytest.raises(ValueError):
            build_polaroids(0)


# ---------------------------------------------------------------------------
# Point cloud
# ---------------------------------------------------------------------------

class TestPointCloud:

    def test_blend_points(self):
        dual = DualStateSet.build(20, rng=0)
        np.testing.assert_allclose(blend_points(dual, 0.0), dual.chaos_positions)
        np.testing.assert_allclose(blend_points(dual, 1.0), dual.target_positions)
        np.testing.assert_allclose(
            blend_points(dual, 0.25),
            lerp_vector(dual.chaos_positions, dual.target_positions, 0.25),
        )

    def test_foliage_color(self):
        assert foliage_color(0.0) == pytest.approx((0.2, 0.6, 0.3))
        assert foliage_color(1.0) == pytest.approx((0.06, 0.3, 0.15))
