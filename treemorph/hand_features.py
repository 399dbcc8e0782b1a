"""Hand landmark features, and the open/closed hand classifier built on them."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from treemorph.util import (
    FINGERTIPS,
    N_HAND_LANDMARKS,
    HandLandmark,
    as_vector3,
    is_finite_vector,
    return_none,
)

DFLT_OPEN_THRESHOLD = 0.3
DFLT_Z_SCALE = 10.0
DFLT_LOG_EVERY = 30

# -------------------------------------------------------------------------------
# Errors
# -------------------------------------------------------------------------------


class GestureError(Exception):
    """Base class of gesture control failures. None of them is fatal to the scene."""


class AcquisitionFailure(GestureError):
    """Camera permission denied, or camera unavailable."""


class DetectorLoadFailure(GestureError):
    """The hand detector library could not be loaded or initialized."""


class RuntimeClassificationFailure(GestureError):
    """A landmark frame that could not be interpreted."""


# -------------------------------------------------------------------------------
# Hand feature extraction helpers
# -------------------------------------------------------------------------------


def calculate_euclidean_distance(point1, point2):
    """Calculate the Euclidean distance between two 3D points."""
    return math.sqrt(
        (point1[0] - point2[0]) ** 2
        + (point1[1] - point2[1]) ** 2
        + (point1[2] - point2[2]) ** 2
    )


def _coords(landmark):
    if hasattr(landmark, 'x'):
        return (landmark.x, landmark.y, landmark.z)
    return tuple(landmark)[:3]


def landmarks_array(frame) -> np.ndarray:
    """
    Convert a landmark frame to a ``(21, 3)`` float array.

    Accepts a MediaPipe ``NormalizedLandmarkList`` (anything with a ``landmark``
    attribute), a sequence of objects with ``x, y, z`` attributes, or an array-like
    of shape ``(21, 3)``.

    Raises:
        RuntimeClassificationFailure: If the frame does not have 21 3D points.

    >>> landmarks_array([(0.5, 0.5, 0.0)] * 21).shape
    (21, 3)
    """
    if hasattr(frame, 'landmark'):
        frame = frame.landmark
    try:
        points = np.array([_coords(lm) for lm in frame], dtype=float)
    except (TypeError, ValueError) as err:
        raise RuntimeClassificationFailure(f"Malformed landmark frame: {err}") from err
    if points.shape != (N_HAND_LANDMARKS, 3):
        raise RuntimeClassificationFailure(
            f"Expected {N_HAND_LANDMARKS} 3D landmarks, got shape {points.shape}"
        )
    return points


def openness(
    landmarks,
    *,
    palm_index: int = HandLandmark.WRIST,
    fingertips: Sequence[int] = FINGERTIPS,
) -> float:
    """
    Mean distance from the palm base to each fingertip, in normalized landmark units.

    A fist scores low, a spread hand scores high.
    """
    landmarks = np.asarray(landmarks, dtype=float)
    palm = landmarks[palm_index]
    return float(
        np.mean([calculate_euclidean_distance(palm, landmarks[i]) for i in fingertips])
    )


def hand_center(wrist, *, z_scale: float = DFLT_Z_SCALE) -> np.ndarray:
    """
    Map the wrist landmark to symmetric, device-like coordinates.

    x and y go from [0, 1] image coordinates to [-1, 1] (y pointing up), and the
    near-zero depth is scaled up so that it matters.

    >>> hand_center((0.75, 0.25, -0.01))
    array([0.5, 0.5, 0.1])
    """
    x, y, z = as_vector3(wrist[:3])
    return np.array([(x - 0.5) * 2, -(y - 0.5) * 2, -z * z_scale])


# -------------------------------------------------------------------------------
# Gesture state
# -------------------------------------------------------------------------------


class GestureStatus(str, Enum):
    INACTIVE = 'Inactive'
    REQUESTING_CAMERA = 'Requesting camera...'
    CAMERA_OBTAINED = 'Camera obtained'
    LOADING_DETECTOR = 'Loading hand detector...'
    INITIALIZING_DETECTOR = 'Initializing hand detector...'
    READY = 'Ready - waiting for hand...'
    HAND_DETECTED = 'Hand detected!'
    NO_HAND_DETECTED = 'No hand detected'
    ERROR = 'Error'


# Statuses in which landmark frames are interpreted
LISTENING_STATUSES = frozenset(
    {GestureStatus.READY, GestureStatus.HAND_DETECTED, GestureStatus.NO_HAND_DETECTED}
)


@dataclass
class GestureState:
    """The latest reading of the hand: written by the classifier, read by the router and UI."""

    is_open: bool = False
    hand_center: np.ndarray = field(default_factory=lambda: np.zeros(3))
    status: GestureStatus = GestureStatus.INACTIVE
    error: Optional[str] = None
    mean_distance: float = 0.0

    @property
    def status_label(self) -> str:
        if self.status is GestureStatus.ERROR and self.error:
            return f"Error: {self.error}"
        return self.status.value

    def to_dict(self):
        """Serialize to JSON-friendly dict."""
        return {
            'is_open': self.is_open,
            'hand_center': [float(c) for c in self.hand_center],
            'status': self.status_label,
            'error': self.error,
            'mean_distance': self.mean_distance,
        }


# -------------------------------------------------------------------------------
# Classifier
# -------------------------------------------------------------------------------


class GestureClassifier:
    """
    Turns landmark frames into an open/closed reading and a hand position.

    Frames are only interpreted once the detector is ready. After an error, frames
    are ignored until ``reset`` is called (which a fresh acquisition does).

    Args:
        open_threshold: Mean palm-to-fingertip distance above which the hand is open
        z_scale: Scale applied to the wrist depth
        on_status: Called with the ``GestureState`` whenever the status changes
        log_gesture: Called with a summary dict every ``log_every`` frames
        log_every: Frame period of ``log_gesture``
    """

    def __init__(
        self,
        *,
        open_threshold: float = DFLT_OPEN_THRESHOLD,
        z_scale: float = DFLT_Z_SCALE,
        palm_index: int = HandLandmark.WRIST,
        fingertips: Sequence[int] = FINGERTIPS,
        on_status: Optional[Callable] = None,
        log_gesture: Optional[Callable] = None,
        log_every: int = DFLT_LOG_EVERY,
    ):
        self.open_threshold = open_threshold
        self.z_scale = z_scale
        self.palm_index = palm_index
        self.fingertips = tuple(fingertips)
        self.on_status = on_status or return_none
        self.log_gesture = log_gesture or return_none
        self.log_every = log_every

        self.state = GestureState()
        self.frame_count = 0

    @property
    def listening(self) -> bool:
        return self.state.status in LISTENING_STATUSES

    def set_status(self, status: GestureStatus):
        status = GestureStatus(status)
        if status is not self.state.status:
            self.state.status = status
            self.on_status(self.state)

    def reset(self, status: GestureStatus = GestureStatus.INACTIVE):
        """Clear the error and openness (the hand position is kept), and set ``status``."""
        self.state.error = None
        self.state.is_open = False
        self.frame_count = 0
        self.set_status(status)

    def start(self):
        """Start listening to landmark frames (for sources that need no acquisition)."""
        self.reset(GestureStatus.READY)

    def stop(self):
        self.reset(GestureStatus.INACTIVE)

    def on_landmark_frame(self, frame) -> GestureState:
        """Interpret one frame of hand landmarks."""
        if not self.listening:
            return self.state
        try:
            points = landmarks_array(frame)
        except RuntimeClassificationFailure as err:
            return self.on_error(str(err))
        if not is_finite_vector(points):
            return self.on_no_hand()

        self.frame_count += 1
        mean_distance = openness(
            points, palm_index=self.palm_index, fingertips=self.fingertips
        )
        self.state.mean_distance = mean_distance
        self.state.is_open = mean_distance > self.open_threshold
        self.state.hand_center = hand_center(
            points[HandLandmark.WRIST], z_scale=self.z_scale
        )
        self.set_status(GestureStatus.HAND_DETECTED)

        if self.log_every and self.frame_count % self.log_every == 0:
            self.log_gesture(dict(self.state.to_dict(), frame_count=self.frame_count))
        return self.state

    def on_no_hand(self) -> GestureState:
        """No hand in this frame: the hand is not open, and stays where it was last seen."""
        if not self.listening:
            return self.state
        self.frame_count += 1
        self.state.is_open = False
        self.set_status(GestureStatus.NO_HAND_DETECTED)
        return self.state

    def on_error(self, message: str) -> GestureState:
        """Enter the terminal error status."""
        self.state.error = str(message)
        self.state.is_open = False
        self.set_status(GestureStatus.ERROR)
        return self.state
