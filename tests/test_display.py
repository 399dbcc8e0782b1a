"""Tests for the preview drawing and run-loop helpers."""
import numpy as np
import pytest

from treemorph.display import (
    camera_basis,
    display_status_on_image,
    draw_scene,
    frame_status,
    project_points,
)
from treemorph.scene import Scene
from treemorph.script_utils import (
    KeyboardBreakSignal,
    keyboard_feature_vector,
    resolve_detector_loader,
    resolve_object,
)
from treemorph.capture import load_mediapipe_detector


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def scene():
    return Scene(foliage_count=300, ornament_count=20, n_images=2, rng=0)


@pytest.fixture
def canvas():
    return np.zeros((120, 160, 3), dtype=np.uint8)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

class TestProjection:

    def test_basis_is_orthonormal(self):
        basis = camera_basis((3, 5, 20), (0, 4, 0))
        np.testing.assert_allclose(basis @ basis.T, np.eye(3), atol=1e-12)

    def test_behind_camera_not_visible(self):
        _, depth, visible = project_points(
            [[0, 4, 30]], camera_position=(0, 4, 20), size=(100, 100)
        )
        assert depth[0] < 0
        assert not visible[0]

    def test_right_and_up(self):
        pixels, _, _ = project_points(
            [[1, 5, 0]], camera_position=(0, 4, 20), size=(100, 100)
        )
        assert pixels[0, 0] > 50
        assert pixels[0, 1] < 50


# ---------------------------------------------------------------------------
# Drawing
# ---------------------------------------------------------------------------

class TestDrawing:

    def test_draw_scene_paints_something(self, scene, canvas):
        frame = scene.tick(1 / 60)
        img = draw_scene(canvas, frame, scene.foliage_points(frame))
        assert img.shape == (120, 160, 3)
        assert img.any()

    def test_draw_scene_with_camera_inset(self, scene):
        img = np.zeros((400, 600, 3), dtype=np.uint8)
        camera_img = np.full((48, 64, 3), 200, dtype=np.uint8)
        frame = scene.tick(1 / 60)
        draw_scene(img, frame, scene.foliage_points(frame), camera_img=camera_img, draw_status=None)
        assert (img[20:150, 400:580] == 200).all()

    def test_status_overlay(self, canvas):
        img = display_status_on_image(canvas, {'State': 'FORMED', 'x': 0.5})
        assert img.any()
        assert display_status_on_image(canvas.copy() * 0, {}).sum() == 0

    def test_frame_status(self, scene):
        frame = scene.tick(1 / 60)
        assert frame_status(frame) == {'State': 'FORMED'}
        status = frame_status(frame, gesture_enabled=True)
        assert status['Status'] == 'Inactive'
        assert status['Hand'] == 'Closed - FORMED'

    def test_frame_status_position(self, scene):
        scene.set_gesture_enabled(True)
        scene.classifier.on_landmark_frame([(0.75, 0.25, -0.01)] * 21)
        status = frame_status(scene.tick(1 / 60), gesture_enabled=True)
        assert status['Position'] == 'x: 0.50 y: 0.50 z: 0.10'

    def test_frame_status_error(self, scene):
        scene.classifier.on_error('Permission denied')
        status = frame_status(scene.tick(1 / 60), gesture_enabled=True)
        assert status['Status'] == 'Error: Permission denied'
        assert 'Hand' not in status


# ---------------------------------------------------------------------------
# Run-loop helpers
# ---------------------------------------------------------------------------

class TestScriptUtils:

    def test_break_keys(self):
        with pytest.raises(KeyboardBreakSignal):
            keyboard_feature_vector(27)
        with pytest.raises(KeyboardBreakSignal):
            keyboard_feature_vector(ord('q'))

    def test_gesture_key(self):
        fv = keyboard_feature_vector(ord('g'))
        assert fv['gesture_switch'] and not fv['toggle']

    def test_no_key(self):
        fv = keyboard_feature_vector(255)
        assert not fv['gesture_switch'] and not fv['toggle']

    def test_resolve_detector(self):
        assert resolve_detector_loader('mediapipe') is load_mediapipe_detector
        with pytest.raises(ValueError):
            resolve_detector_loader('kinect')

    def test_resolve_object_type_check(self):
        with pytest.raises(TypeError):
            resolve_object(3, object_map={}, expected_type=str)
