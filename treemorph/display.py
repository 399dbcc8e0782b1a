"""Preview drawing: a quick OpenCV rendering of a frame, with a status overlay."""

import math
from typing import Union, Tuple, Optional, Callable

import cv2
import numpy as np

from treemorph.scene import DFLT_LOOK_AT, FrameOutput
from treemorph.util import format_float

# -------------------------------------------------------------------------------
# Types
# -------------------------------------------------------------------------------

Color = Union[Tuple[int, int, int], Tuple[int, int, int, int]]  # BGR or BGRA

DFLT_FOV = 50.0
DFLT_BACKGROUND: Color = (42, 58, 10)  # deep green, BGR
GOLD: Color = (55, 175, 212)

# -------------------------------------------------------------------------------
# Projection
# -------------------------------------------------------------------------------


def rgb_to_bgr255(rgb) -> Tuple[int, int, int]:
    """
    Convert an rgb triple in [0, 1] to an OpenCV BGR color.

    >>> rgb_to_bgr255((1.0, 0.5, 0.0))
    (0, 128, 255)
    """
    r, g, b = (int(round(c * 255)) for c in rgb)
    return (b, g, r)


def camera_basis(eye, target, up=(0.0, 1.0, 0.0)) -> np.ndarray:
    """Rows: right, up and forward unit vectors of a camera at ``eye`` looking at ``target``."""
    eye = np.asarray(eye, dtype=float)
    forward = np.asarray(target, dtype=float) - eye
    forward /= np.linalg.norm(forward)
    right = np.cross(forward, up)
    right /= np.linalg.norm(right)
    true_up = np.cross(right, forward)
    return np.stack([right, true_up, forward])


def project_points(
    points,
    *,
    camera_position,
    look_at=DFLT_LOOK_AT,
    fov: float = DFLT_FOV,
    size: Tuple[int, int] = (1280, 720),
    near: float = 0.1,
):
    """
    Perspective projection of 3D points to pixel coordinates.

    Args:
        points: ``(n, 3)`` array of world positions
        camera_position: Camera location
        look_at: The point the camera looks at
        fov: Vertical field of view, in degrees
        size: Image (width, height)
        near: Points closer than this (or behind the camera) are not visible

    Returns:
        tuple: ``(pixels, depth, visible)``, arrays of shapes ``(n, 2)``, ``(n,)``, ``(n,)``

    >>> pixels, depth, visible = project_points(
    ...     [[0, 4, 0]], camera_position=(0, 4, 20), size=(200, 100))
    >>> pixels.tolist(), depth.tolist(), visible.tolist()
    ([[100, 50]], [20.0], [True])
    """
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    width, height = size
    basis = camera_basis(camera_position, look_at)
    cam = (points - np.asarray(camera_position, dtype=float)) @ basis.T
    depth = cam[:, 2]
    safe_depth = np.where(depth > near, depth, 1.0)
    focal = (height / 2) / math.tan(math.radians(fov) / 2)
    u = width / 2 + focal * cam[:, 0] / safe_depth
    v = height / 2 - focal * cam[:, 1] / safe_depth
    pixels = np.column_stack([u, v]).round().astype(int)
    visible = (
        (depth > near)
        & (pixels[:, 0] >= 0)
        & (pixels[:, 0] < width)
        & (pixels[:, 1] >= 0)
        & (pixels[:, 1] < height)
    )
    return pixels, depth, visible


# -------------------------------------------------------------------------------
# Screen drawing functions
# -------------------------------------------------------------------------------


def display_status_on_image(
    img: np.ndarray,
    status: dict,
    *,
    font=cv2.FONT_HERSHEY_SIMPLEX,
    font_scale: float = 0.6,
    color: Color = GOLD,
    thickness: float = 1,
    float_format: str = ".2f",
    x_pos=10,
    y_pos=30,
    y_increment=26,
    bg_color: Color = (0, 0, 0, 128),  # black, semi-transparent (BGR + alpha)
):
    """
    Display key/value status lines on the image with a semi-transparent background.

    Args:
        img: The image to draw on
        status: Dictionary of values to show
        font: Font type to use
        font_scale: Size of the font
        color: Text color in BGR format
        thickness: Line thickness of text
        float_format: Format string for float values
        x_pos: Starting x position for text
        y_pos: Starting y position for text
        y_increment: Vertical space between lines
        bg_color: Background color (BGR + alpha) where alpha is 0-255
    """
    if not status:
        return img

    overlay = img.copy()

    if len(bg_color) == 4:
        bg_rgb = bg_color[:3]
        alpha = bg_color[3] / 255.0
    else:
        bg_rgb = bg_color
        alpha = 0.5

    def lines():
        for idx, (key, value) in enumerate(status.items()):
            if isinstance(value, float):
                value = f"{value:{float_format}}"
            yield idx, f"{key}: {value}"

    padding = 5
    for idx, text in lines():
        (text_width, text_height), _ = cv2.getTextSize(
            text, font, font_scale, thickness
        )
        cv2.rectangle(
            overlay,
            (x_pos - padding, y_pos + idx * y_increment - text_height - padding),
            (x_pos + text_width + padding, y_pos + idx * y_increment + padding),
            bg_rgb,
            -1,
        )

    cv2.addWeighted(overlay, alpha, img, 1 - alpha, 0, img)

    for idx, text in lines():
        cv2.putText(
            img, text, (x_pos, y_pos + idx * y_increment), font, font_scale, color, thickness
        )

    return img


def draw_points(img, points, color: Color, *, camera_position, look_at=DFLT_LOOK_AT):
    """Plot points as single pixels (cheap enough for the whole foliage cloud)."""
    h, w = img.shape[:2]
    pixels, _, visible = project_points(
        points, camera_position=camera_position, look_at=look_at, size=(w, h)
    )
    pixels = pixels[visible]
    img[pixels[:, 1], pixels[:, 0]] = color
    return img


def draw_instances(
    img, poses, *, camera_position, look_at=DFLT_LOOK_AT, square=False, pixel_scale=400
):
    """Draw instances as discs (or squares), far ones first, sized by scale and depth."""
    h, w = img.shape[:2]
    pixels, depth, visible = project_points(
        poses.positions, camera_position=camera_position, look_at=look_at, size=(w, h)
    )
    for i in np.argsort(-depth):
        if not visible[i]:
            continue
        radius = max(1, int(pixel_scale * poses.scales[i] / depth[i]))
        color = rgb_to_bgr255(poses.colors[i])
        x, y = pixels[i]
        if square:
            cv2.rectangle(img, (x - radius, y - radius), (x + radius, y + radius), color, -1)
        else:
            cv2.circle(img, (x, y), radius, color, -1)
    return img


def draw_camera_inset(img, camera_img, *, width=200, height=150, margin=10):
    """Paste a thumbnail of the camera image in the top right corner, with a white border."""
    if camera_img is None:
        return img
    h, w = img.shape[:2]
    thumb = cv2.resize(camera_img, (width, height))
    x0, y0 = w - width - margin, margin
    img[y0 : y0 + height, x0 : x0 + width] = thumb
    cv2.rectangle(img, (x0, y0), (x0 + width, y0 + height), (255, 255, 255), 2)
    return img


def frame_status(frame: FrameOutput, *, gesture_enabled: bool = False) -> dict:
    """The lines shown in the overlay."""
    status = {'State': frame.state.value}
    if gesture_enabled:
        gesture = frame.gesture
        status['Status'] = gesture.status_label
        if not gesture.error:
            status['Hand'] = 'Open - CHAOS' if gesture.is_open else 'Closed - FORMED'
            status['Position'] = ' '.join(
                f"{axis}: {format_float(c)}" for axis, c in zip('xyz', gesture.hand_center)
            )
    return status


def draw_scene(
    img: np.ndarray,
    frame: FrameOutput,
    foliage_points: np.ndarray,
    *,
    camera_img: Optional[np.ndarray] = None,
    gesture_enabled: bool = False,
    draw_status: Optional[Callable] = display_status_on_image,
):
    """
    Draw the foliage, ornaments, polaroids and status overlay of a frame.

    Args:
        img: The image to draw on
        frame: The ``FrameOutput`` of the tick
        foliage_points: Current foliage positions
        camera_img: Camera image to show as an inset (or None)
        gesture_enabled: Whether to show the hand status lines
        draw_status: Function to draw the status (or None to skip)

    Returns:
        img: The image with visualizations added
    """
    view = dict(camera_position=frame.camera_position)
    img = draw_points(
        img, foliage_points, rgb_to_bgr255(frame.foliage_color), **view
    )
    for poses in frame.ornaments.values():
        img = draw_instances(img, poses, **view)
    img = draw_instances(img, frame.polaroids, square=True, **view)
    img = draw_camera_inset(img, camera_img)
    if draw_status:
        img = draw_status(img, frame_status(frame, gesture_enabled=gesture_enabled))
    return img
