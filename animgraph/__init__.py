"""
animgraph: Animated scene graphs from glTF assets

Loads hierarchical 3D scenes (meshes, materials, textures, node hierarchy,
keyframe animation) into a form a renderer can drive frame by frame.

Key Features:
- Flattened global vertex/index buffers with one primitive per draw call
- Index-addressed node arena with TRS or matrix local transforms
- World matrices recomputed on demand from torch transform state
- Linear / slerp keyframe playback with a single active animation
- Pluggable render backend boundary (HostBackend for headless use)

Example:
    >>> import animgraph
    >>> from animgraph.core import HostBackend
    >>> model = animgraph.load_model('scenes/drone.gltf', backend=HostBackend())
    >>> model.tick(1.0 / 60.0)
    >>> commands = list(model.draw_commands())
"""

__version__ = "0.1.0"
__author__ = "animgraph Contributors"

from . import core
from . import utils
from . import scene
from . import animation
from . import data

from .data import GltfDocument, load_model
from .utils import Config

__all__ = [
    "core",
    "utils",
    "scene",
    "animation",
    "data",
    "GltfDocument",
    "load_model",
    "Config",
]
