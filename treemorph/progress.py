"""Per-population progress toward the requested state, and its easing."""

from typing import Union

from treemorph.control import TreeState
from treemorph.util import clamp

# Convergence rates, per second. The point cloud settles first, polaroids last.
FOLIAGE_SPEED = 1.2
ORNAMENT_SPEED = 0.8
POLAROID_SPEED = 0.7


def smooth_step(t: float) -> float:
    """
    Cubic Hermite easing, flat at both ends.

    >>> smooth_step(0.0), smooth_step(0.5), smooth_step(1.0)
    (0.0, 0.5, 1.0)
    """
    return t * t * (3 - 2 * t)


class ProgressController:
    """
    A scalar in [0, 1] that exponentially approaches its target, one tick at a time.

    The target is 1 when the tree is FORMED and 0 in CHAOS.

    >>> pc = ProgressController(speed=1.0, value=0.0)
    >>> pc.update(0.5, TreeState.FORMED)
    0.5
    >>> pc.update(0.5, TreeState.FORMED)
    0.75
    """

    def __init__(self, speed: float, value: float = 1.0):
        self.speed = speed
        self.value = clamp(float(value))
        self.target = self.value

    @classmethod
    def for_state(cls, state: TreeState, speed: float) -> 'ProgressController':
        """A controller already settled on ``state``."""
        return cls(speed, value=TreeState(state).progress_target)

    def update(self, dt: float, target: Union[TreeState, float]) -> float:
        """
        Advance by ``dt`` seconds toward ``target`` (a ``TreeState`` or 0/1).

        Returns:
            The new (raw, un-eased) value.
        """
        if isinstance(target, TreeState):
            target = target.progress_target
        self.target = float(target)
        dt = max(float(dt), 0.0)
        self.value += (self.target - self.value) * self.speed * dt
        self.value = clamp(self.value)
        return self.value

    @property
    def eased(self) -> float:
        """The value passed through ``smooth_step``."""
        return smooth_step(self.value)

    def reset(self, state: TreeState):
        self.value = self.target = TreeState(state).progress_target

    def __repr__(self):
        return (
            f"{type(self).__name__}(speed={self.speed}, value={self.value:.4f}, "
            f"target={self.target})"
        )
