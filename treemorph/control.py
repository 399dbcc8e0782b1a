"""The authoritative tree state, and how manual and gesture inputs set it."""

from enum import Enum

from treemorph.hand_features import GestureStatus


class TreeState(str, Enum):
    """Which configuration every population converges toward."""

    CHAOS = 'CHAOS'
    FORMED = 'FORMED'

    @property
    def progress_target(self) -> float:
        """1.0 for FORMED, 0.0 for CHAOS."""
        return 1.0 if self is TreeState.FORMED else 0.0

    def flipped(self) -> 'TreeState':
        return TreeState.CHAOS if self is TreeState.FORMED else TreeState.FORMED


DFLT_TREE_STATE = TreeState.FORMED


class ControlSignalRouter:
    """
    Single writer of the authoritative ``TreeState``.

    With gesture control off, ``toggle`` flips the state. With gesture control on,
    the state follows the hand: a closed fist forms the tree, an open hand
    scatters it, and ``toggle`` is ignored. If gesture control fails (its status
    is ERROR), the state stops following the hand and ``toggle`` works again.

    >>> router = ControlSignalRouter()
    >>> router.state
    <TreeState.FORMED: 'FORMED'>
    >>> router.toggle().value
    'CHAOS'
    >>> router.toggle().value
    'FORMED'
    """

    def __init__(self, state: TreeState = DFLT_TREE_STATE):
        self.state = TreeState(state)
        self.gesture_enabled = False

    def hand_in_control(self, gesture_state=None) -> bool:
        """True if gesture control is on and has not failed."""
        if not self.gesture_enabled:
            return False
        return gesture_state is None or gesture_state.status is not GestureStatus.ERROR

    def toggle(self, gesture_state=None) -> TreeState:
        """Manual toggle. Ignored while the hand is in control."""
        if not self.hand_in_control(gesture_state):
            self.state = self.state.flipped()
        return self.state

    def set_gesture_enabled(self, enabled: bool) -> TreeState:
        """
        Turn gesture control on or off.

        Turning it off puts the tree back in the FORMED state.
        """
        enabled = bool(enabled)
        if self.gesture_enabled and not enabled:
            self.state = TreeState.FORMED
        self.gesture_enabled = enabled
        return self.state

    def resolve(self, gesture_state) -> TreeState:
        """Apply the latest gesture reading (if the hand is in control) and return the state."""
        if self.hand_in_control(gesture_state):
            self.state = TreeState.CHAOS if gesture_state.is_open else TreeState.FORMED
        return self.state
