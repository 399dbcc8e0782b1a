"""Camera capture, hand detection, and the gesture control session tying them together.

The classifier core never touches a camera or a detector library directly. A
``GestureSession`` acquires both (asynchronously, so frame ticks keep running),
then, once per tick, reads a camera frame, runs the detector on it, and hands the
result to the ``GestureClassifier``.
"""

import asyncio
from functools import partial
from typing import Any, Callable, Optional, Protocol

import cv2

from treemorph.hand_features import (
    AcquisitionFailure,
    DetectorLoadFailure,
    GestureClassifier,
    GestureStatus,
)

DFLT_CAMERA_INDEX = 0
DFLT_FRAME_SIZE = (1280, 720)

# -------------------------------------------------------------------------------
# Collaborator interfaces
# -------------------------------------------------------------------------------


class Camera(Protocol):
    def read(self) -> Any:
        """Return the next image."""

    def release(self) -> None:
        ...


class HandDetector(Protocol):
    def process(self, img) -> Optional[Any]:
        """Return the landmarks of the first hand found in ``img``, or None."""

    def close(self) -> None:
        ...


# -------------------------------------------------------------------------------
# Camera handling
# -------------------------------------------------------------------------------


class CameraReadError(AcquisitionFailure):
    """Exception raised when camera read fails."""


class CameraSource:
    """
    An OpenCV camera.

    Args:
        index: Camera device index
        frame_size: Requested (width, height)
        mirror: Flip images horizontally for a more natural interaction
    """

    def __init__(
        self,
        index: int = DFLT_CAMERA_INDEX,
        *,
        frame_size=DFLT_FRAME_SIZE,
        mirror: bool = True,
    ):
        self.index = index
        self.mirror = mirror
        self.cap = cv2.VideoCapture(index)
        if not self.cap.isOpened():
            self.cap.release()
            raise AcquisitionFailure(f"Could not open camera {index}")
        width, height = frame_size
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

    def read(self):
        """
        Read a frame from the camera.

        Raises:
            CameraReadError: If the camera read operation fails
        """
        success, img = self.cap.read()
        if not success:
            raise CameraReadError("Failed to read from camera")
        if self.mirror:
            img = cv2.flip(img, 1)
        return img

    def release(self):
        self.cap.release()


# -------------------------------------------------------------------------------
# Hand detector
# -------------------------------------------------------------------------------


class MediaPipeHandDetector:
    """
    Detects a hand using MediaPipe Hands.

    Attributes:
        max_hands (int): Maximum number of hands to detect.
        model_complexity (int): Landmark model complexity (0 or 1).
        detection_con (float): Minimum detection confidence threshold.
        track_con (float): Minimum tracking confidence threshold.
    """

    def __init__(
        self,
        mp_hands,
        *,
        max_hands=1,
        model_complexity=1,
        detection_con=0.5,
        track_con=0.5,
    ):
        self.mp_hands = mp_hands
        self.max_hands = max_hands
        self.model_complexity = model_complexity
        self.detection_con = detection_con
        self.track_con = track_con

        self.hands = self.mp_hands.Hands(
            static_image_mode=False,
            max_num_hands=self.max_hands,
            model_complexity=self.model_complexity,
            min_detection_confidence=self.detection_con,
            min_tracking_confidence=self.track_con,
        )
        self.hand_detection = None

    def process(self, img):
        """
        Detects hands in the provided (BGR) image.

        Returns:
            The landmark list of the first hand, or None if there is no hand.
        """
        img_rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        self.hand_detection = self.hands.process(img_rgb)
        if not self.hand_detection.multi_hand_landmarks:
            return None
        return self.hand_detection.multi_hand_landmarks[0]

    def close(self):
        self.hands.close()


def load_mediapipe_detector(**detector_kwargs) -> Callable[[], HandDetector]:
    """
    Import MediaPipe and return a factory of ``MediaPipeHandDetector``.

    Raises:
        DetectorLoadFailure: If MediaPipe can't be imported.
    """
    try:
        import mediapipe as mp
    except ImportError as err:
        raise DetectorLoadFailure(f"Could not load mediapipe: {err}") from err
    return partial(MediaPipeHandDetector, mp.solutions.hands, **detector_kwargs)


detector_loaders = {
    'mediapipe': load_mediapipe_detector,
}


# -------------------------------------------------------------------------------
# Session
# -------------------------------------------------------------------------------


class CancellationToken:
    """Liveness flag of one acquisition. Once cancelled, its results are discarded."""

    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def __repr__(self):
        return f"{type(self).__name__}(cancelled={self.cancelled})"


def _release(resource, method_name):
    if resource is not None:
        getattr(resource, method_name)()


class GestureSession:
    """
    Owns the camera and the detector while gesture control is enabled.

    ``start`` launches the acquisition as an asyncio task; the classifier's status
    walks through the acquisition phases. ``poll`` is called once per frame tick.
    ``stop`` releases everything synchronously, and any acquisition still in flight
    drops what it obtains when it completes.

    Args:
        classifier: Receives frames, no-hand signals and errors
        camera_factory: Callable returning a ``Camera``
        detector_loader: Callable returning a ``HandDetector`` factory
    """

    def __init__(
        self,
        classifier: GestureClassifier,
        *,
        camera_factory: Callable[[], Camera] = CameraSource,
        detector_loader: Callable[[], Callable[[], HandDetector]] = load_mediapipe_detector,
    ):
        self.classifier = classifier
        self.camera_factory = camera_factory
        self.detector_loader = detector_loader

        self.camera = None
        self.detector = None
        self.token = None
        self.task = None

    @property
    def active(self) -> bool:
        """True between ``start`` and ``stop``."""
        return self.token is not None and not self.token.cancelled

    @property
    def ready(self) -> bool:
        return self.active and self.camera is not None and self.detector is not None

    def start(self) -> 'asyncio.Task':
        """Begin acquiring the camera and detector. Must be called from a running loop."""
        if self.active:
            return self.task
        self.token = CancellationToken()
        self.classifier.reset(GestureStatus.REQUESTING_CAMERA)
        self.task = asyncio.get_running_loop().create_task(self.acquire(self.token))
        return self.task

    async def acquire(self, token: CancellationToken):
        """The acquisition sequence: camera, detector load, detector init, ready."""
        camera = detector = None
        if token.cancelled:
            return
        try:
            self.classifier.set_status(GestureStatus.REQUESTING_CAMERA)
            camera = await asyncio.to_thread(self.camera_factory)
            if token.cancelled:
                return
            self.classifier.set_status(GestureStatus.CAMERA_OBTAINED)

            self.classifier.set_status(GestureStatus.LOADING_DETECTOR)
            try:
                detector_factory = await asyncio.to_thread(self.detector_loader)
            except DetectorLoadFailure:
                raise
            except Exception as err:
                raise DetectorLoadFailure(str(err)) from err
            if token.cancelled:
                return

            self.classifier.set_status(GestureStatus.INITIALIZING_DETECTOR)
            try:
                detector = await asyncio.to_thread(detector_factory)
            except Exception as err:
                raise DetectorLoadFailure(str(err)) from err
            if token.cancelled:
                return

            self.camera, self.detector = camera, detector
            camera = detector = None
            self.classifier.set_status(GestureStatus.READY)
        except Exception as err:
            if not token.cancelled:
                self.classifier.on_error(str(err) or type(err).__name__)
        finally:
            # Anything still held locally was not handed over to the session
            _release(camera, 'release')
            _release(detector, 'close')

    def poll(self):
        """
        Read one camera frame and classify it. Does nothing until the session is ready.

        Returns:
            The camera image, or None.
        """
        if not self.ready:
            return None
        try:
            img = self.camera.read()
            landmarks = self.detector.process(img)
        except Exception as err:
            self.classifier.on_error(str(err) or type(err).__name__)
            self._release_resources()
            return None
        if landmarks is None:
            self.classifier.on_no_hand()
        else:
            self.classifier.on_landmark_frame(landmarks)
        if self.classifier.state.status is GestureStatus.ERROR:
            # the classifier ignores frames until restarted
            self._release_resources()
        return img

    def _release_resources(self):
        camera, detector = self.camera, self.detector
        self.camera = self.detector = None
        _release(camera, 'release')
        _release(detector, 'close')

    def stop(self):
        """Stop landmark ingestion and release the camera and detector, right away."""
        if self.token is not None:
            self.token.cancel()
        self._release_resources()
        self.classifier.stop()
