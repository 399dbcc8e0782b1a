"""Interpolation of positions and orientations between the chaos and tree states.

Nothing here holds per-frame state: every function returns the same pose for the
same (progress, entity) pair. Progress itself lives in
``treemorph.progress.ProgressController``.

Quaternions are ``(x, y, z, w)`` arrays, Euler angles are applied in XYZ order.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Sequence, Tuple, Optional

import numpy as np

from treemorph.positions import (
    DualPositionEntry,
    DualStateSet,
    chaos_point,
    decorative_target,
    resolve_rng,
)
from treemorph.util import clamp, hex_to_rgb

DFLT_WEIGHT_FACTOR = 0.1

# Spiral resolution decorative instances are placed on (the foliage population size)
DFLT_REFERENCE_TOTAL = 15000

DFLT_ORNAMENT_COUNT = 200
DFLT_ORNAMENT_CHAOS_RADIUS = 10.0
DFLT_ORNAMENT_JITTER = (0.5, 0.3, 0.5)

DFLT_N_IMAGES = 5
DFLT_POLAROIDS_PER_IMAGE = 3
DFLT_MAX_POLAROIDS = 30
DFLT_POLAROID_INDEX_JITTER = 500
DFLT_POLAROID_CHAOS_RADIUS = 12.0
DFLT_POLAROID_JITTER = (1.5, 0.8, 1.5)
DFLT_POLAROID_RADIAL_PUSH = 0.8

FOLIAGE_CHAOS_COLOR = (0.2, 0.6, 0.3)
FOLIAGE_FORMED_COLOR = (0.06, 0.3, 0.15)

# -------------------------------------------------------------------------------
# Vector and quaternion math
# -------------------------------------------------------------------------------


def lerp_vector(start, end, alpha):
    """
    Linear interpolation between two points (or two arrays of points).

    >>> lerp_vector((0, 0, 0), (2, 4, 6), 0.5)
    array([1., 2., 3.])
    """
    start = np.asarray(start, dtype=float)
    end = np.asarray(end, dtype=float)
    return start + (end - start) * alpha


def normalize_quaternion(q):
    """Scale ``q`` (or each row of ``q``) to unit length."""
    q = np.asarray(q, dtype=float)
    norm = np.linalg.norm(q, axis=-1, keepdims=True)
    if np.any(norm < 1e-12):
        raise ValueError("Cannot normalize a zero quaternion")
    return q / norm


def quaternion_from_euler(x: float, y: float, z: float) -> np.ndarray:
    """
    Unit quaternion ``(x, y, z, w)`` for Euler angles applied in XYZ order.

    >>> quaternion_from_euler(0, 0, 0)
    array([0., 0., 0., 1.])
    >>> q = quaternion_from_euler(0, math.pi, 0)
    >>> bool(np.allclose(q, [0, 1, 0, 0]))
    True
    """
    c1, c2, c3 = math.cos(x / 2), math.cos(y / 2), math.cos(z / 2)
    s1, s2, s3 = math.sin(x / 2), math.sin(y / 2), math.sin(z / 2)
    return normalize_quaternion(
        [
            s1 * c2 * c3 + c1 * s2 * s3,
            c1 * s2 * c3 - s1 * c2 * s3,
            c1 * c2 * s3 + s1 * s2 * c3,
            c1 * c2 * c3 - s1 * s2 * s3,
        ]
    )


def slerp(q0, q1, t):
    """
    Shortest-arc spherical linear interpolation between unit quaternions.

    Works on single quaternions or on ``(n, 4)`` arrays, with ``t`` a scalar or
    an array of ``n`` factors. The result is always normalized.

    >>> q0 = quaternion_from_euler(0, 0, 0)
    >>> q1 = quaternion_from_euler(0, math.pi / 2, 0)
    >>> mid = slerp(q0, q1, 0.5)
    >>> bool(np.allclose(mid, quaternion_from_euler(0, math.pi / 4, 0)))
    True
    """
    q0 = np.asarray(q0, dtype=float)
    q1 = np.asarray(q1, dtype=float)
    t = np.asarray(t, dtype=float)[..., None]

    dot = np.sum(q0 * q1, axis=-1, keepdims=True)
    # q and -q are the same rotation: flip to take the short way around
    q1 = np.where(dot < 0, -q1, q1)
    dot = np.clip(np.abs(dot), 0.0, 1.0)

    theta = np.arccos(dot)
    sin_theta = np.sin(theta)
    nearly_parallel = sin_theta < 1e-6
    safe_sin = np.where(nearly_parallel, 1.0, sin_theta)
    w0 = np.where(nearly_parallel, 1 - t, np.sin((1 - t) * theta) / safe_sin)
    w1 = np.where(nearly_parallel, t, np.sin(t * theta) / safe_sin)
    return normalize_quaternion(w0 * q0 + w1 * q1)


def random_euler(
    rng,
    *,
    x_range=(0, 2 * math.pi),
    y_range=(0, 2 * math.pi),
    z_range=(0, 2 * math.pi),
):
    """Euler angles drawn uniformly from the given ranges."""
    return tuple(rng.uniform(lo, hi) for lo, hi in (x_range, y_range, z_range))


# -------------------------------------------------------------------------------
# Progress weighting
# -------------------------------------------------------------------------------


def weighted_progress(
    eased_progress, class_weight, *, weight_factor: float = DFLT_WEIGHT_FACTOR
):
    """
    Per-instance progress: heavier classes run ahead of the group's progress.

    >>> round(weighted_progress(0.5, 3.0), 6)
    0.65
    >>> weighted_progress(0.9, 3.0)
    1.0
    """
    if np.ndim(class_weight) or np.ndim(eased_progress):
        return np.clip(
            np.asarray(eased_progress) * (1 + np.asarray(class_weight) * weight_factor),
            0.0,
            1.0,
        )
    return clamp(eased_progress * (1 + class_weight * weight_factor))


def foliage_color(eased_progress):
    """Point color hint for the renderer: lighter green in chaos, deep green when formed."""
    return tuple(
        float(c)
        for c in lerp_vector(FOLIAGE_CHAOS_COLOR, FOLIAGE_FORMED_COLOR, eased_progress)
    )


def blend_points(dual_set: DualStateSet, eased_progress: float) -> np.ndarray:
    """Current point-cloud positions, ``(count, 3)``, for the given eased progress."""
    return lerp_vector(
        dual_set.chaos_positions, dual_set.target_positions, eased_progress
    )


# -------------------------------------------------------------------------------
# Decorative instances
# -------------------------------------------------------------------------------


class OrnamentKind(str, Enum):
    GIFT = 'gift'
    BALL = 'ball'
    LIGHT = 'light'
    POLAROID = 'polaroid'


class OrnamentConfig(NamedTuple):
    kind: OrnamentKind
    color: str
    weight: float
    scale: float


ORNAMENT_CONFIGS = (
    OrnamentConfig(OrnamentKind.GIFT, '#d4af37', 3.0, 0.3),
    OrnamentConfig(OrnamentKind.GIFT, '#c0c0c0', 3.0, 0.28),
    OrnamentConfig(OrnamentKind.GIFT, '#8b0000', 3.0, 0.32),
    OrnamentConfig(OrnamentKind.BALL, '#d4af37', 1.5, 0.25),
    OrnamentConfig(OrnamentKind.BALL, '#ff1744', 1.5, 0.22),
    OrnamentConfig(OrnamentKind.BALL, '#ffffff', 1.5, 0.24),
    OrnamentConfig(OrnamentKind.BALL, '#0f4c3a', 1.5, 0.26),
    OrnamentConfig(OrnamentKind.LIGHT, '#fff9c4', 0.5, 0.15),
    OrnamentConfig(OrnamentKind.LIGHT, '#d4af37', 0.5, 0.12),
    OrnamentConfig(OrnamentKind.LIGHT, '#ffeb3b', 0.5, 0.13),
)

POLAROID_COLOR = '#ffffff'


@dataclass(frozen=True)
class EntityInstance:
    """A discrete decorative object: both positions, both orientations, its class."""

    dual_entry: DualPositionEntry
    chaos_rotation: np.ndarray
    target_rotation: np.ndarray
    class_weight: float = 0.0
    class_kind: OrnamentKind = OrnamentKind.BALL
    scale: float = 1.0
    color: str = POLAROID_COLOR
    image_index: int = 0

    def progress(self, eased_progress: float, *, weighted: bool = True) -> float:
        if not weighted:
            return eased_progress
        return weighted_progress(eased_progress, self.class_weight)

    def pose(
        self, eased_progress: float, *, weighted: bool = True
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Current (position, quaternion) of the instance."""
        t = self.progress(eased_progress, weighted=weighted)
        position = lerp_vector(
            self.dual_entry.chaos_position, self.dual_entry.target_position, t
        )
        rotation = slerp(self.chaos_rotation, self.target_rotation, t)
        return position, rotation


class InstancePoses(NamedTuple):
    positions: np.ndarray  # (n, 3)
    rotations: np.ndarray  # (n, 4), unit quaternions
    scales: np.ndarray  # (n,)
    colors: np.ndarray  # (n, 3), rgb in [0, 1]
    kinds: Tuple[OrnamentKind, ...]


class InstancePopulation:
    """
    A group of ``EntityInstance`` evaluated together from one shared progress.

    With ``weighted=True`` (ornaments), each instance's progress is boosted by its
    class weight. With ``weighted=False`` (polaroids) the group's progress is used
    as is.
    """

    def __init__(
        self,
        instances: Sequence[EntityInstance],
        *,
        weighted: bool = True,
        weight_factor: float = DFLT_WEIGHT_FACTOR,
    ):
        self.instances = tuple(instances)
        self.weighted = weighted
        self.weight_factor = weight_factor

        n = len(self.instances)
        self.chaos_positions = np.array(
            [i.dual_entry.chaos_position for i in self.instances], dtype=float
        ).reshape(n, 3)
        self.target_positions = np.array(
            [i.dual_entry.target_position for i in self.instances], dtype=float
        ).reshape(n, 3)
        self.chaos_rotations = np.array(
            [i.chaos_rotation for i in self.instances], dtype=float
        ).reshape(n, 4)
        self.target_rotations = np.array(
            [i.target_rotation for i in self.instances], dtype=float
        ).reshape(n, 4)
        self.weights = np.array([i.class_weight for i in self.instances], dtype=float)
        self.scales = np.array([i.scale for i in self.instances], dtype=float)
        self.colors = np.array(
            [hex_to_rgb(i.color) for i in self.instances], dtype=float
        ).reshape(n, 3)
        self.kinds = tuple(i.class_kind for i in self.instances)

    def __len__(self):
        return len(self.instances)

    def progress(self, eased_progress: float) -> np.ndarray:
        """Per-instance interpolation factors, ``(n,)``."""
        if not self.weighted:
            return np.full(len(self), float(eased_progress))
        return weighted_progress(
            eased_progress, self.weights, weight_factor=self.weight_factor
        )

    def poses(self, eased_progress: float) -> InstancePoses:
        t = self.progress(eased_progress)
        if not len(self):
            positions, rotations = self.chaos_positions, self.chaos_rotations
        else:
            positions = lerp_vector(
                self.chaos_positions, self.target_positions, t[:, None]
            )
            rotations = slerp(self.chaos_rotations, self.target_rotations, t)
        return InstancePoses(positions, rotations, self.scales, self.colors, self.kinds)

    def group(self, kind: OrnamentKind) -> 'InstancePopulation':
        """The sub-population of a single kind."""
        return type(self)(
            [i for i in self.instances if i.class_kind == kind],
            weighted=self.weighted,
            weight_factor=self.weight_factor,
        )

    def groups(self):
        """``{kind: sub_population}`` for every kind present, in first-seen order."""
        return {kind: self.group(kind) for kind in dict.fromkeys(self.kinds)}


def build_ornaments(
    count: int = DFLT_ORNAMENT_COUNT,
    *,
    configs: Sequence[OrnamentConfig] = ORNAMENT_CONFIGS,
    reference_total: int = DFLT_REFERENCE_TOTAL,
    chaos_radius: float = DFLT_ORNAMENT_CHAOS_RADIUS,
    jitter=DFLT_ORNAMENT_JITTER,
    rng=None,
) -> InstancePopulation:
    """
    Build the ornament population: gifts, balls and lights spread along the spiral.

    Each instance picks a config at random. In the tree state it sits (jittered) on
    the spiral, upright, with a random turn about the vertical axis.
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    rng = resolve_rng(rng)
    instances = []
    for i in range(count):
        config = configs[rng.integers(len(configs))]
        index = math.floor(i * (reference_total / count))
        instances.append(
            EntityInstance(
                dual_entry=DualPositionEntry(
                    chaos_point(chaos_radius, rng=rng),
                    decorative_target(index, reference_total, jitter=jitter, rng=rng),
                ),
                chaos_rotation=quaternion_from_euler(*random_euler(rng)),
                target_rotation=quaternion_from_euler(
                    0, rng.uniform(0, 2 * math.pi), 0
                ),
                class_weight=config.weight,
                class_kind=OrnamentKind(config.kind),
                scale=config.scale,
                color=config.color,
            )
        )
    return InstancePopulation(instances, weighted=True)


def n_polaroids(
    n_images: int = DFLT_N_IMAGES,
    *,
    per_image: int = DFLT_POLAROIDS_PER_IMAGE,
    max_count: int = DFLT_MAX_POLAROIDS,
) -> int:
    """
    Number of polaroids shown for ``n_images`` pictures.

    >>> n_polaroids(5), n_polaroids(20)
    (15, 30)
    """
    return min(n_images * per_image, max_count)


def build_polaroids(
    n_images: int = DFLT_N_IMAGES,
    *,
    count: Optional[int] = None,
    reference_total: int = DFLT_REFERENCE_TOTAL,
    index_jitter: int = DFLT_POLAROID_INDEX_JITTER,
    chaos_radius: float = DFLT_POLAROID_CHAOS_RADIUS,
    jitter=DFLT_POLAROID_JITTER,
    radial_push: float = DFLT_POLAROID_RADIAL_PUSH,
    rng=None,
) -> InstancePopulation:
    """
    Build the polaroid population, cycling through ``n_images`` pictures.

    Polaroids are pushed outward from the spiral so they hang on the outside of
    the tree, nearly upright and facing random directions.
    """
    if n_images <= 0:
        raise ValueError(f"n_images must be positive, got {n_images}")
    rng = resolve_rng(rng)
    if count is None:
        count = n_polaroids(n_images)
    instances = []
    for i in range(count):
        index = math.floor(i * (reference_total / count)) + int(
            rng.integers(index_jitter)
        )
        instances.append(
            EntityInstance(
                dual_entry=DualPositionEntry(
                    chaos_point(chaos_radius, rng=rng),
                    decorative_target(
                        index,
                        reference_total,
                        jitter=jitter,
                        radial_push=radial_push,
                        rng=rng,
                    ),
                ),
                chaos_rotation=quaternion_from_euler(*random_euler(rng)),
                target_rotation=quaternion_from_euler(
                    *random_euler(
                        rng,
                        x_range=(-0.15, 0.15),
                        y_range=(0, 2 * math.pi),
                        z_range=(-0.1, 0.1),
                    )
                ),
                class_kind=OrnamentKind.POLAROID,
                image_index=i % n_images,
            )
        )
    return InstancePopulation(instances, weighted=False)
