"""The scene: populations, their progress, and the state they all converge toward.

A ``Scene`` is the one place that owns the mutable state of a running morph. Each
``tick`` resolves the authoritative state first, then advances every population's
progress, then evaluates poses, so all populations see the same state in a tick.
"""

from typing import Dict, NamedTuple, Optional, Tuple

import numpy as np

from treemorph.control import ControlSignalRouter, TreeState, DFLT_TREE_STATE
from treemorph.hand_features import GestureClassifier, GestureState
from treemorph.interpolation import (
    DFLT_N_IMAGES,
    DFLT_ORNAMENT_COUNT,
    InstancePoses,
    OrnamentKind,
    blend_points,
    build_ornaments,
    build_polaroids,
    foliage_color,
    lerp_vector,
)
from treemorph.positions import DFLT_CHAOS_RADIUS, DualStateSet, resolve_rng
from treemorph.progress import (
    FOLIAGE_SPEED,
    ORNAMENT_SPEED,
    POLAROID_SPEED,
    ProgressController,
)

DFLT_FOLIAGE_COUNT = 15000

DFLT_CAMERA_POSITION = (0.0, 4.0, 20.0)
DFLT_LOOK_AT = (0.0, 4.0, 0.0)
DFLT_CAMERA_SMOOTHING = 0.1
HAND_CAMERA_GAIN = (10.0, 5.0, 1.0)


def camera_target(gesture_enabled: bool, hand_center=None) -> np.ndarray:
    """
    Where the camera should head: the default spot, or a spot steered by the hand.

    >>> camera_target(False)
    array([ 0.,  4., 20.])
    >>> camera_target(True, (0.5, -0.2, 1.0))
    array([ 5.,  3., 21.])
    """
    target = np.array(DFLT_CAMERA_POSITION)
    if gesture_enabled and hand_center is not None:
        target = target + np.asarray(hand_center, dtype=float) * HAND_CAMERA_GAIN
    return target


class FrameOutput(NamedTuple):
    """Everything the renderer needs for one frame."""

    state: TreeState
    foliage_progress: float
    foliage_color: Tuple[float, float, float]
    ornaments: Dict[OrnamentKind, InstancePoses]
    polaroids: InstancePoses
    camera_position: np.ndarray
    camera_target: np.ndarray
    gesture: GestureState


class Scene:
    """
    State container of a running morph.

    Args:
        foliage_count: Number of points of the foliage cloud
        ornament_count: Number of ornaments
        n_images: Number of polaroid pictures
        state: Initial tree state
        classifier: Gesture classifier read by the router (a new one if None)
        session: Optional ``GestureSession`` started/stopped with gesture control
        rng: Random generator or seed used to build the populations
    """

    def __init__(
        self,
        *,
        foliage_count: int = DFLT_FOLIAGE_COUNT,
        ornament_count: int = DFLT_ORNAMENT_COUNT,
        n_images: int = DFLT_N_IMAGES,
        state: TreeState = DFLT_TREE_STATE,
        classifier: Optional[GestureClassifier] = None,
        session=None,
        foliage_speed: float = FOLIAGE_SPEED,
        ornament_speed: float = ORNAMENT_SPEED,
        polaroid_speed: float = POLAROID_SPEED,
        camera_smoothing: float = DFLT_CAMERA_SMOOTHING,
        rng=None,
    ):
        self.router = ControlSignalRouter(state)
        self.classifier = classifier or (
            session.classifier if session is not None else GestureClassifier()
        )
        self.session = session
        self.speeds = {
            'foliage': foliage_speed,
            'ornaments': ornament_speed,
            'polaroids': polaroid_speed,
        }
        self.camera_smoothing = camera_smoothing
        self.camera_position = np.array(DFLT_CAMERA_POSITION)
        self.rng = resolve_rng(rng)
        self.rebuild(
            foliage_count=foliage_count, ornament_count=ornament_count, n_images=n_images
        )

    def rebuild(
        self,
        *,
        foliage_count: int = DFLT_FOLIAGE_COUNT,
        ornament_count: int = DFLT_ORNAMENT_COUNT,
        n_images: int = DFLT_N_IMAGES,
    ):
        """(Re)build every population, with progress settled on the current state."""
        state = self.router.state
        self.foliage = DualStateSet.build(
            foliage_count, radius=DFLT_CHAOS_RADIUS, rng=self.rng
        )
        self.foliage_progress = ProgressController.for_state(
            state, self.speeds['foliage']
        )

        self.ornament_groups = build_ornaments(ornament_count, rng=self.rng).groups()
        self.ornament_progress = {
            kind: ProgressController.for_state(state, self.speeds['ornaments'])
            for kind in self.ornament_groups
        }

        self.polaroids = build_polaroids(n_images, rng=self.rng)
        self.polaroid_progress = ProgressController.for_state(
            state, self.speeds['polaroids']
        )

    # ---------------------------------------------------------------------------
    # UI side

    @property
    def state(self) -> TreeState:
        return self.router.state

    @property
    def gesture(self) -> GestureState:
        return self.classifier.state

    @property
    def gesture_enabled(self) -> bool:
        return self.router.gesture_enabled

    def set_manual_toggle(self) -> TreeState:
        return self.router.toggle(self.classifier.state)

    def set_gesture_enabled(self, enabled: bool) -> TreeState:
        """Turn gesture control on or off, starting or stopping the capture session."""
        enabled = bool(enabled)
        if enabled == self.router.gesture_enabled:
            return self.router.state
        if self.session is not None:
            if enabled:
                self.session.start()
            else:
                self.session.stop()
        elif enabled:
            # frames are fed to the classifier directly
            self.classifier.start()
        else:
            self.classifier.stop()
        return self.router.set_gesture_enabled(enabled)

    # ---------------------------------------------------------------------------
    # Frame side

    def tick(self, dt: float) -> FrameOutput:
        """Advance the scene by ``dt`` seconds."""
        state = self.router.resolve(self.classifier.state)

        self.foliage_progress.update(dt, state)
        for controller in self.ornament_progress.values():
            controller.update(dt, state)
        self.polaroid_progress.update(dt, state)

        target = camera_target(self.gesture_enabled, self.gesture.hand_center)
        self.camera_position = lerp_vector(
            self.camera_position, target, self.camera_smoothing
        )

        foliage_eased = self.foliage_progress.eased
        return FrameOutput(
            state=state,
            foliage_progress=foliage_eased,
            foliage_color=foliage_color(foliage_eased),
            ornaments={
                kind: group.poses(self.ornament_progress[kind].eased)
                for kind, group in self.ornament_groups.items()
            },
            polaroids=self.polaroids.poses(self.polaroid_progress.eased),
            camera_position=self.camera_position,
            camera_target=target,
            gesture=self.gesture,
        )

    def foliage_points(self, frame: Optional[FrameOutput] = None) -> np.ndarray:
        """Foliage positions, blended by the frame's (or the current) eased progress."""
        progress = (
            frame.foliage_progress if frame is not None else self.foliage_progress.eased
        )
        return blend_points(self.foliage, progress)
