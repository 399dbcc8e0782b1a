"""

Morph a cloud of particles and decorations between two shapes: a scattered,
spherical "chaos" and an ordered, spiral-packed tree. 

What morphs, and toward what, is decided every frame by a single tree state,
flipped either by hand (a manual toggle) or by a hand *gesture* seen through a
camera: a closed fist forms the tree, an open hand makes it explode.

Here's a bit about what exists so far:

* positions.py: the two distributions (uniform inside a sphere, golden-angle
    spiral on a cone) and the ``DualStateSet`` pairing them for a population.
* progress.py: per-population progress, easing toward the requested state at a
    per-population speed, so that foliage, ornaments and polaroids land one after
    the other.
* interpolation.py: positions and orientations (slerp) of points, ornaments and
    polaroids, given a progress. Heavier ornaments (gifts) land before light ones.
* hand_features.py: open/closed hand classification and hand position from
    hand landmarks.
* capture.py: camera and MediaPipe hand detector, acquired asynchronously and
    released on demand.
* control.py / scene.py: the authoritative state, and the scene that ticks it all.
* display.py / script_utils.py: an OpenCV preview window, run with
    ``python bin/treemorph_cli.py``.

"""

from treemorph.control import TreeState, ControlSignalRouter
from treemorph.positions import (
    GOLDEN_ANGLE,
    DualPositionEntry,
    DualStateSet,
    build_dual_positions,
    chaos_point,
    tree_point,
)
from treemorph.progress import (
    FOLIAGE_SPEED,
    ORNAMENT_SPEED,
    POLAROID_SPEED,
    ProgressController,
    smooth_step,
)
from treemorph.interpolation import (
    EntityInstance,
    InstancePopulation,
    OrnamentKind,
    build_ornaments,
    build_polaroids,
    slerp,
    weighted_progress,
)
from treemorph.hand_features import (
    GestureClassifier,
    GestureState,
    GestureStatus,
    GestureError,
    AcquisitionFailure,
    DetectorLoadFailure,
    RuntimeClassificationFailure,
)
from treemorph.scene import Scene, FrameOutput
