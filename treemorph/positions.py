"""Chaos and tree point distributions, and the dual position sets built from them.

Two target configurations exist for every population:

* the *chaos* configuration: points scattered uniformly inside a sphere,
* the *formed* configuration: points on a cone-shaped phyllotaxis spiral (the tree).

A ``DualStateSet`` pairs both configurations, entry by entry, for a whole
population. It is computed once and read every frame.
"""

import math
from typing import NamedTuple, Optional, Iterator

import numpy as np

# -------------------------------------------------------------------------------
# Constants
# -------------------------------------------------------------------------------

DFLT_CHAOS_RADIUS = 8.0

TREE_HEIGHT = 10.0
TREE_Y_OFFSET = 2.0
TREE_MAX_RADIUS = 3.5
TREE_TAPER = 0.8
RIPPLE_AMPLITUDE = 0.3
RIPPLE_CYCLES = 8

GOLDEN_ANGLE = math.pi * (3 - math.sqrt(5))


def resolve_rng(rng=None) -> np.random.Generator:
    """
    Return a numpy random generator.

    ``rng`` can be None (fresh, unseeded generator), an int seed, or a generator.

    >>> a = resolve_rng(42).random()
    >>> b = resolve_rng(42).random()
    >>> a == b
    True
    """
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


# -------------------------------------------------------------------------------
# Spatial distributions
# -------------------------------------------------------------------------------


def chaos_point(radius: float = DFLT_CHAOS_RADIUS, *, rng=None) -> np.ndarray:
    """
    Sample a point uniformly inside a sphere of the given radius.

    The radial distance is ``radius * cbrt(u)`` and the polar angle is
    ``acos(2u - 1)``, so that density is uniform per unit volume
    (a naive spherical grid would cluster at the center and at the poles).

    Args:
        radius: Radius of the sphere (must be positive)
        rng: Random generator, seed, or None

    Returns:
        np.ndarray: The (x, y, z) point
    """
    if radius <= 0:
        raise ValueError(f"radius must be positive, got {radius}")
    rng = resolve_rng(rng)
    theta = rng.uniform(0, 2 * math.pi)
    phi = math.acos(2 * rng.random() - 1)
    r = math.cbrt(rng.random()) * radius
    return np.array(
        [
            r * math.sin(phi) * math.cos(theta),
            r * math.sin(phi) * math.sin(theta),
            r * math.cos(phi),
        ]
    )


def chaos_points(
    count: int, radius: float = DFLT_CHAOS_RADIUS, *, rng=None
) -> np.ndarray:
    """Vectorized ``chaos_point``: a ``(count, 3)`` array of points inside a sphere."""
    if radius <= 0:
        raise ValueError(f"radius must be positive, got {radius}")
    rng = resolve_rng(rng)
    theta = rng.uniform(0, 2 * math.pi, size=count)
    phi = np.arccos(2 * rng.random(count) - 1)
    r = np.cbrt(rng.random(count)) * radius
    sin_phi = np.sin(phi)
    return np.column_stack(
        [r * sin_phi * np.cos(theta), r * sin_phi * np.sin(theta), r * np.cos(phi)]
    )


def spiral_ripple(height_ratio):
    """Small sinusoidal radius modulation along the height of the tree."""
    return np.sin(height_ratio * math.pi * RIPPLE_CYCLES) * RIPPLE_AMPLITUDE


def tree_point(index: int, total: int) -> np.ndarray:
    """
    Map ``index`` in ``[0, total)`` to a point on the tree's phyllotaxis spiral.

    Height grows linearly with ``index / total``, the radius tapers towards
    the top, and successive points turn by the golden angle.

    >>> tree_point(0, 10)
    array([ 3.5, -2. ,  0. ])
    >>> p = tree_point(5, 10)
    >>> bool(p[1] == 3.0)
    True
    """
    if total <= 0:
        raise ValueError(f"total must be positive, got {total}")
    height_ratio = index / total
    y = height_ratio * TREE_HEIGHT - TREE_Y_OFFSET
    radius = TREE_MAX_RADIUS * (1 - height_ratio * TREE_TAPER)
    radius = radius + float(spiral_ripple(height_ratio))
    theta = index * GOLDEN_ANGLE
    return np.array([math.cos(theta) * radius, y, math.sin(theta) * radius])


def tree_points(total: int) -> np.ndarray:
    """Vectorized ``tree_point`` for all indices of ``range(total)``."""
    if total <= 0:
        raise ValueError(f"total must be positive, got {total}")
    index = np.arange(total)
    height_ratio = index / total
    y = height_ratio * TREE_HEIGHT - TREE_Y_OFFSET
    radius = TREE_MAX_RADIUS * (1 - height_ratio * TREE_TAPER) + spiral_ripple(
        height_ratio
    )
    theta = index * GOLDEN_ANGLE
    return np.column_stack([np.cos(theta) * radius, y, np.sin(theta) * radius])


def decorative_target(
    index: int,
    total: int,
    *,
    jitter=(0.5, 0.3, 0.5),
    radial_push: float = 0.0,
    rng=None,
) -> np.ndarray:
    """
    Tree target for a decorative instance: a spiral point, jittered and nudged.

    Args:
        index, total: Spiral coordinates (see ``tree_point``)
        jitter: Full width of the uniform random offset on each axis
        radial_push: Length of the nudge along the normalized spiral position
        rng: Random generator, seed, or None

    Returns:
        np.ndarray: The (x, y, z) target position
    """
    rng = resolve_rng(rng)
    point = tree_point(index, total)
    offset = (rng.random(3) - 0.5) * np.asarray(jitter, dtype=float)
    nudge = np.zeros(3)
    norm = np.linalg.norm(point)
    if radial_push and norm > 0:
        nudge = point / norm * radial_push
    return point + offset + nudge


# -------------------------------------------------------------------------------
# Dual position sets
# -------------------------------------------------------------------------------


class DualPositionEntry(NamedTuple):
    """The chaos and formed positions of a single entity."""

    chaos_position: np.ndarray
    target_position: np.ndarray


def _frozen(a: np.ndarray) -> np.ndarray:
    a = np.ascontiguousarray(a, dtype=float)
    a.setflags(write=False)
    return a


class DualStateSet:
    """
    Immutable pairing of a chaos position and a tree position for every entity.

    Positions are held as two read-only ``(count, 3)`` arrays, which is also the
    layout a renderer wants for its per-vertex attributes.

    >>> dual = DualStateSet.build(10, rng=0)
    >>> len(dual)
    10
    >>> dual.target_positions.flags.writeable
    False
    """

    def __init__(self, chaos_positions, target_positions):
        chaos_positions = np.asarray(chaos_positions, dtype=float)
        target_positions = np.asarray(target_positions, dtype=float)
        if chaos_positions.shape != target_positions.shape:
            raise ValueError(
                f"Shape mismatch: {chaos_positions.shape} != {target_positions.shape}"
            )
        if chaos_positions.ndim != 2 or chaos_positions.shape[1] != 3:
            raise ValueError(f"Expected (count, 3) arrays, got {chaos_positions.shape}")
        self.chaos_positions = _frozen(chaos_positions)
        self.target_positions = _frozen(target_positions)

    @classmethod
    def build(
        cls, count: int, *, radius: float = DFLT_CHAOS_RADIUS, rng=None
    ) -> 'DualStateSet':
        """Build the set for ``count`` entities (a count change means a new set)."""
        if count <= 0:
            raise ValueError(f"count must be positive, got {count}")
        return cls(chaos_points(count, radius, rng=rng), tree_points(count))

    @classmethod
    def from_entries(cls, entries) -> 'DualStateSet':
        entries = list(entries)
        return cls(
            [e.chaos_position for e in entries], [e.target_position for e in entries]
        )

    def __len__(self):
        return len(self.chaos_positions)

    def __getitem__(self, i) -> DualPositionEntry:
        return DualPositionEntry(self.chaos_positions[i], self.target_positions[i])

    def __iter__(self) -> Iterator[DualPositionEntry]:
        for i in range(len(self)):
            yield self[i]

    def __repr__(self):
        return f"{type(self).__name__}(count={len(self)})"


def build_dual_positions(
    count: int, *, radius: float = DFLT_CHAOS_RADIUS, rng: Optional[object] = None
):
    """List of ``DualPositionEntry`` for ``count`` entities."""
    return list(DualStateSet.build(count, radius=radius, rng=rng))
