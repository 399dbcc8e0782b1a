"""Utils for treemorph."""

import json

import numpy as np


def return_none(*args, **kwargs):
    """
    An empty function that returns None no matter the arguments.
    Often used as a "do nothing" general callback function.
    """
    return None


# --------------------------------------------------------------------------------------
# Constants


class HandLandmark:
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_FINGER_MCP = 5
    INDEX_FINGER_PIP = 6
    INDEX_FINGER_DIP = 7
    INDEX_FINGER_TIP = 8
    MIDDLE_FINGER_MCP = 9
    MIDDLE_FINGER_PIP = 10
    MIDDLE_FINGER_DIP = 11
    MIDDLE_FINGER_TIP = 12
    RING_FINGER_MCP = 13
    RING_FINGER_PIP = 14
    RING_FINGER_DIP = 15
    RING_FINGER_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


N_HAND_LANDMARKS = 21

FINGERTIPS = (
    HandLandmark.THUMB_TIP,
    HandLandmark.INDEX_FINGER_TIP,
    HandLandmark.MIDDLE_FINGER_TIP,
    HandLandmark.RING_FINGER_TIP,
    HandLandmark.PINKY_TIP,
)


# --------------------------------------------------------------------------------------
# Math utils


def clamp(value, low=0.0, high=1.0):
    """
    Clamp a value to the ``[low, high]`` interval.

    >>> clamp(1.7)
    1.0
    >>> clamp(-0.2)
    0.0
    >>> clamp(5, 0, 10)
    5
    """
    return max(low, min(high, value))


def as_vector3(xyz) -> np.ndarray:
    """
    Convert an (x, y, z) triple (or anything with x, y, z attributes) to a float array.

    >>> as_vector3((1, 2, 3))
    array([1., 2., 3.])
    """
    if hasattr(xyz, 'x'):
        xyz = (xyz.x, xyz.y, xyz.z)
    return np.asarray(xyz, dtype=float).reshape(3)


def is_finite_vector(v) -> bool:
    """
    True if all components of ``v`` are finite numbers.

    >>> is_finite_vector((0.1, 0.2, 0.3))
    True
    >>> is_finite_vector((0.1, float('nan'), 0.3))
    False
    """
    return bool(np.all(np.isfinite(np.asarray(v, dtype=float))))


def hex_to_rgb(hex_color: str):
    """
    Convert a ``#rrggbb`` string to an (r, g, b) tuple of floats in [0, 1].

    >>> hex_to_rgb('#ff0000')
    (1.0, 0.0, 0.0)
    """
    hex_color = hex_color.lstrip('#')
    return tuple(int(hex_color[i : i + 2], 16) / 255 for i in (0, 2, 4))


# --------------------------------------------------------------------------------------
# String utils


def format_float(value, ndigits=2):
    return f"{value:.{ndigits}f}"


def _json_default(obj):
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if hasattr(obj, 'value'):
        return obj.value
    raise TypeError(f"Not JSON serializable: {type(obj)}")


def print_json_if_possible(x):
    """Prints the input as JSON (falling back to repr) and adds a newline."""
    try:
        x = json.dumps(x, default=_json_default)
    except (TypeError, ValueError):
        pass
    print(x)
    print()
