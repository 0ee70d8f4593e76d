"""
Utilities for animgraph.

Includes quaternion and matrix math, configuration management and posed
mesh export.
"""

from .quaternion import (
    normalize_quaternion,
    quaternion_from_xyzw,
    quaternion_to_matrix,
    quaternion_slerp,
)
from .matrix import (
    translation_matrix,
    rotation_matrix,
    scale_matrix,
    compose_trs,
    matrix_from_column_major,
    matrix_to_column_major,
    transform_points,
)
from .config import (
    Config,
    load_config,
    save_config,
)
from .export import (
    posed_vertices,
    posed_mesh,
    save_posed_mesh,
)

__all__ = [
    # Quaternion
    "normalize_quaternion",
    "quaternion_from_xyzw",
    "quaternion_to_matrix",
    "quaternion_slerp",
    # Matrix
    "translation_matrix",
    "rotation_matrix",
    "scale_matrix",
    "compose_trs",
    "matrix_from_column_major",
    "matrix_to_column_major",
    "transform_points",
    # Config
    "Config",
    "load_config",
    "save_config",
    # Export
    "posed_vertices",
    "posed_mesh",
    "save_posed_mesh",
]
