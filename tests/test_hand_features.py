"""Tests for the hand openness classifier."""
import math
from types import SimpleNamespace

import numpy as np
import pytest

from treemorph.hand_features import (
    GestureClassifier,
    GestureState,
    GestureStatus,
    RuntimeClassificationFailure,
    hand_center,
    landmarks_array,
    openness,
)
from treemorph.util import FINGERTIPS, HandLandmark


def make_hand(tip_distance, wrist=(0.5, 0.6, -0.02)):
    """21 landmarks: fingertips at ``tip_distance`` from the wrist, the rest close to it."""
    wrist = np.asarray(wrist, dtype=float)
    points = np.tile(wrist, (21, 1)) + 0.01
    points[HandLandmark.WRIST] = wrist
    for k, tip in enumerate(FINGERTIPS):
        angle = math.pi / 6 + k * math.pi / 6
        points[tip] = wrist + tip_distance * np.array([math.cos(angle), -math.sin(angle), 0.0])
    return points


def as_landmark_objects(points):
    """Mimic a MediaPipe NormalizedLandmarkList."""
    return SimpleNamespace(
        landmark=[SimpleNamespace(x=x, y=y, z=z) for x, y, z in points]
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def statuses():
    return []


@pytest.fixture
def classifier(statuses):
    c = GestureClassifier(on_status=lambda s: statuses.append(s.status))
    c.start()
    return c


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------

class TestFeatures:

    def test_openness_is_mean_tip_distance(self):
        assert openness(make_hand(0.2)) == pytest.approx(0.2)
        assert openness(make_hand(0.45)) == pytest.approx(0.45)

    def test_hand_center_mapping(self):
        np.testing.assert_allclose(hand_center((0.5, 0.5, 0.0)), [0, 0, 0])
        np.testing.assert_allclose(hand_center((0.0, 0.0, 0.05)), [-1, 1, -0.5])
        np.testing.assert_allclose(hand_center((1.0, 1.0, -0.1), z_scale=5), [1, -1, 0.5])

    def test_landmarks_array_accepts_objects(self):
        points = make_hand(0.2)
        np.testing.assert_allclose(landmarks_array(as_landmark_objects(points)), points)

    @pytest.mark.parametrize('frame', [
        [(0.1, 0.2, 0.3)] * 20,
        [(0.1, 0.2)] * 21,
        [(0.1, 0.2, 0.3)] * 20 + [(0.1,)],
        [None] * 21,
    ])
    def test_landmarks_array_rejects_malformed(self, frame):
        with pytest.raises(RuntimeClassificationFailure):
            landmarks_array(frame)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

class TestGestureClassifier:

    def test_closed_hand(self, classifier):
        state = classifier.on_landmark_frame(make_hand(0.15))
        assert state.is_open is False
        assert state.status is GestureStatus.HAND_DETECTED

    def test_open_hand(self, classifier):
        state = classifier.on_landmark_frame(make_hand(0.4))
        assert state.is_open is True
        assert state.mean_distance == pytest.approx(0.4)

    def test_hand_center_from_wrist(self, classifier):
        state = classifier.on_landmark_frame(make_hand(0.4, wrist=(0.75, 0.25, -0.01)))
        np.testing.assert_allclose(state.hand_center, [0.5, 0.5, 0.1])

    def test_no_hand_resets_openness_keeps_position(self, classifier):
        classifier.on_landmark_frame(make_hand(0.4, wrist=(0.2, 0.3, 0.0)))
        before = classifier.state.hand_center.copy()
        state = classifier.on_no_hand()
        assert state.is_open is False
        assert state.status is GestureStatus.NO_HAND_DETECTED
        np.testing.assert_array_equal(state.hand_center, before)

    def test_nan_frame_is_no_hand(self, classifier):
        classifier.on_landmark_frame(make_hand(0.4, wrist=(0.2, 0.3, 0.0)))
        before = classifier.state.hand_center.copy()
        frame = make_hand(0.4)
        frame[HandLandmark.WRIST, 0] = np.nan
        state = classifier.on_landmark_frame(frame)
        assert state.is_open is False
        assert state.status is GestureStatus.NO_HAND_DETECTED
        np.testing.assert_array_equal(state.hand_center, before)
        assert np.all(np.isfinite(state.hand_center))

    def test_malformed_frame_is_an_error(self, classifier):
        state = classifier.on_landmark_frame([(0.1, 0.2, 0.3)] * 5)
        assert state.status is GestureStatus.ERROR
        assert state.error
        assert state.status_label.startswith('Error: ')

    def test_frames_ignored_after_error(self, classifier):
        classifier.on_error('camera unplugged')
        state = classifier.on_landmark_frame(make_hand(0.4))
        assert state.is_open is False
        assert state.status is GestureStatus.ERROR
        assert state.error == 'camera unplugged'

    def test_reset_clears_error(self, classifier):
        classifier.on_error('boom')
        classifier.reset(GestureStatus.READY)
        assert classifier.state.error is None
        assert classifier.on_landmark_frame(make_hand(0.4)).is_open

    def test_frames_ignored_until_ready(self):
        classifier = GestureClassifier()
        state = classifier.on_landmark_frame(make_hand(0.4))
        assert state.is_open is False
        assert state.status is GestureStatus.INACTIVE

    def test_start_and_stop(self):
        classifier = GestureClassifier()
        classifier.start()
        assert classifier.listening
        assert classifier.on_landmark_frame(make_hand(0.4)).is_open is True
        classifier.stop()
        assert classifier.state.status is GestureStatus.INACTIVE
        assert classifier.state.is_open is False
        assert classifier.on_landmark_frame(make_hand(0.4)).is_open is False

    def test_start_clears_error(self, classifier):
        classifier.on_error('boom')
        classifier.start()
        assert classifier.state.status is GestureStatus.READY
        assert classifier.state.error is None

    def test_custom_threshold(self):
        classifier = GestureClassifier(open_threshold=0.5)
        classifier.start()
        assert classifier.on_landmark_frame(make_hand(0.4)).is_open is False

    def test_status_notified_on_change_only(self, classifier, statuses):
        classifier.on_landmark_frame(make_hand(0.4))
        classifier.on_landmark_frame(make_hand(0.1))
        classifier.on_no_hand()
        classifier.on_no_hand()
        classifier.on_landmark_frame(make_hand(0.1))
        assert statuses == [
            GestureStatus.READY,
            GestureStatus.HAND_DETECTED,
            GestureStatus.NO_HAND_DETECTED,
            GestureStatus.HAND_DETECTED,
        ]

    def test_periodic_log(self):
        logged = []
        classifier = GestureClassifier(log_gesture=logged.append, log_every=3)
        classifier.start()
        for _ in range(7):
            classifier.on_landmark_frame(make_hand(0.4))
        assert [entry['frame_count'] for entry in logged] == [3, 6]
        assert logged[0]['is_open'] is True


class TestGestureState:

    def test_defaults(self):
        state = GestureState()
        assert state.is_open is False
        assert state.status_label == 'Inactive'
        np.testing.assert_array_equal(state.hand_center, [0, 0, 0])

    def test_to_dict(self):
        d = GestureState(is_open=True, hand_center=np.array([0.1, 0.2, 0.3])).to_dict()
        assert d['is_open'] is True
        assert d['hand_center'] == [0.1, 0.2, 0.3]
