"""Utility functions for running the treemorph preview."""

import asyncio
import time
from functools import partial
from typing import Any, Callable, Dict, Optional, TypeVar, Union

import cv2
import numpy as np

from treemorph.capture import CameraSource, GestureSession, detector_loaders
from treemorph.display import DFLT_BACKGROUND, draw_scene as DFLT_DRAW_ON_SCREEN
from treemorph.hand_features import GestureClassifier
from treemorph.interpolation import DFLT_N_IMAGES, DFLT_ORNAMENT_COUNT
from treemorph.scene import DFLT_FOLIAGE_COUNT, Scene
from treemorph.util import print_json_if_possible

# -------------------------------------------------------------------------------
# Object resolution
# -------------------------------------------------------------------------------

T = TypeVar('T')


def resolve_object(
    obj: Union[str, T],
    *,
    object_map: Dict[str, T],
    expected_type: type = None,
    error_message: str = None,
) -> T:
    """
    Resolves an object by either returning it directly if it's of the correct type,
    or looking it up in a mapping if it's a string.

    Args:
        obj: The object to resolve. Can be a string (to be looked up in object_map)
             or the object itself (if it's already of type T).
        object_map: A dictionary mapping strings to objects of type T.
        expected_type: (Optional) The expected type of the resolved object.
        error_message: (Optional) A custom error message to use if a ValueError
                       or TypeError is raised.

    Returns:
        The resolved object of type T.

    Raises:
        TypeError: If obj is not a string or of the expected type.
        ValueError: If obj is a string but is not found in object_map.

    >>> resolve_object('a', object_map={'a': 1})
    1
    >>> resolve_object(2, object_map={'a': 1})
    2
    """
    if isinstance(obj, str):
        if obj in object_map:
            resolved_obj = object_map[obj]
        else:
            msg = error_message or f"Unknown object identifier: {obj}"
            raise ValueError(msg)
    elif expected_type is None or isinstance(obj, expected_type):
        resolved_obj = obj
    else:
        msg = error_message or f"Expected type {expected_type}, got {type(obj)}"
        raise TypeError(msg)

    if expected_type and not isinstance(resolved_obj, expected_type):
        msg = (
            error_message
            or f"Resolved object should be of type {expected_type}, got {type(resolved_obj)}"
        )
        raise TypeError(msg)

    return resolved_obj


resolve_detector_loader = partial(resolve_object, object_map=detector_loaders)


# -------------------------------------------------------------------------------
# Logging utilities
# -------------------------------------------------------------------------------


def print_status(gesture_state):
    """Print a gesture status change."""
    print(f"[gesture] {gesture_state.status_label}")


# -------------------------------------------------------------------------------
# Keyboard handling functions
# -------------------------------------------------------------------------------

ESCAPE_KEY_ASCII = 27
BREAK_KEYS = {ESCAPE_KEY_ASCII, ord('q')}
TOGGLE_KEY = ord(' ')
GESTURE_KEY = ord('g')


class KeyboardBreakSignal(Exception):
    """Exception raised when a break key is pressed."""


def read_keyboard(wait_time: int = 1) -> int:
    """
    Read keyboard input with the specified wait time.

    Args:
        wait_time: Time to wait for keyboard input in milliseconds

    Returns:
        The key code or 255 if no key was pressed
    """
    return cv2.waitKey(wait_time) & 0xFF


def keyboard_feature_vector(key_code: int) -> Dict[str, Any]:
    """
    Convert a key code into a feature vector with keyboard information.

    Raises:
        KeyboardBreakSignal: If a key that signals program termination is pressed

    >>> fv = keyboard_feature_vector(ord(' '))
    >>> fv['toggle'], fv['gesture_switch']
    (True, False)
    """
    if key_code in BREAK_KEYS:
        raise KeyboardBreakSignal(f"Break key pressed: {key_code}")
    return {
        'key_code': key_code,
        'toggle': key_code == TOGGLE_KEY,
        'gesture_switch': key_code == GESTURE_KEY,
        'timestamp': time.time(),
    }


# -------------------------------------------------------------------------------
# Main run function
# -------------------------------------------------------------------------------

DFLT_WINDOW_NAME = 'Tree Morph'
DFLT_DETECTOR = 'mediapipe'
DFLT_SIZE = (1280, 720)


async def arun_treemorph(
    *,
    foliage_count: int = DFLT_FOLIAGE_COUNT,
    ornament_count: int = DFLT_ORNAMENT_COUNT,
    n_images: int = DFLT_N_IMAGES,
    camera_index: int = 0,
    detector: Union[str, Callable] = DFLT_DETECTOR,
    open_threshold: float = 0.3,
    z_scale: float = 10.0,
    gesture: bool = False,
    log_gesture: Optional[Callable] = None,
    log_status: Optional[Callable] = None,
    window_name: str = DFLT_WINDOW_NAME,
    size=DFLT_SIZE,
    draw_on_screen: Optional[Callable] = DFLT_DRAW_ON_SCREEN,
    seed: Optional[int] = None,
):
    """
    Run the morph preview until a break key is pressed.

    Keys: space toggles the tree state, ``g`` toggles gesture control,
    escape or ``q`` quits.
    """
    detector_loader = resolve_detector_loader(detector)
    classifier = GestureClassifier(
        open_threshold=open_threshold,
        z_scale=z_scale,
        on_status=log_status,
        log_gesture=log_gesture,
    )
    session = GestureSession(
        classifier,
        camera_factory=partial(CameraSource, camera_index),
        detector_loader=detector_loader,
    )
    scene = Scene(
        foliage_count=foliage_count,
        ornament_count=ornament_count,
        n_images=n_images,
        session=session,
        rng=seed,
    )
    if gesture:
        scene.set_gesture_enabled(True)

    width, height = size
    last_time = time.perf_counter()
    try:
        while True:
            keyboard_fv = keyboard_feature_vector(read_keyboard())
            if keyboard_fv['toggle']:
                scene.set_manual_toggle()
            if keyboard_fv['gesture_switch']:
                scene.set_gesture_enabled(not scene.gesture_enabled)

            camera_img = session.poll()

            now = time.perf_counter()
            frame = scene.tick(now - last_time)
            last_time = now

            if draw_on_screen:
                img = np.full((height, width, 3), DFLT_BACKGROUND, dtype=np.uint8)
                img = draw_on_screen(
                    img,
                    frame,
                    scene.foliage_points(frame),
                    camera_img=camera_img,
                    gesture_enabled=scene.gesture_enabled,
                )
                cv2.imshow(window_name, img)

            # let the acquisition task make progress
            await asyncio.sleep(0)
    except KeyboardBreakSignal:
        pass
    finally:
        session.stop()
        cv2.destroyAllWindows()


def run_treemorph(**kwargs):
    """Synchronous entry point of ``arun_treemorph``."""
    asyncio.run(arun_treemorph(**kwargs))


def treemorph_cli(
    # Populations
    foliage_count: int = DFLT_FOLIAGE_COUNT,
    ornament_count: int = DFLT_ORNAMENT_COUNT,
    n_images: int = DFLT_N_IMAGES,
    seed: int = None,
    # Gesture control
    gesture: bool = False,
    camera_index: int = 0,
    detector: str = DFLT_DETECTOR,
    open_threshold: float = 0.3,
    z_scale: float = 10.0,
    # Logging options
    log_gesture: bool = False,
    log_status: bool = False,
    # Display options
    window_name: str = DFLT_WINDOW_NAME,
    # List available components
    list_detectors: bool = False,
):
    """
    Run the tree morph preview with the specified parameters.

    Args:
        foliage_count: Number of foliage points
        ornament_count: Number of ornaments
        n_images: Number of polaroid pictures
        seed: Random seed for the populations (random if not given)
        gesture: Start with gesture control enabled
        camera_index: Camera device index
        detector: Name of the hand detector
        open_threshold: Mean palm-to-fingertip distance above which the hand is open
        z_scale: Scale of the hand depth
        log_gesture: Whether to print periodic gesture readings
        log_status: Whether to print gesture status changes
        window_name: Title for the display window
        list_detectors: List available hand detectors and exit
    """
    if list_detectors:
        print("Available hand detectors:")
        for name in sorted(detector_loaders):
            print(f"  - {name}")
        return

    run_treemorph(
        foliage_count=foliage_count,
        ornament_count=ornament_count,
        n_images=n_images,
        seed=seed,
        gesture=gesture,
        camera_index=camera_index,
        detector=detector,
        open_threshold=open_threshold,
        z_scale=z_scale,
        log_gesture=print_json_if_possible if log_gesture else None,
        log_status=print_status if log_status else None,
        window_name=window_name,
    )


def main():
    import argh

    argh.dispatch_command(treemorph_cli)
