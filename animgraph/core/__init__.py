"""
Core module for animgraph.

Contains:
- Constants: glTF enumerations, transform defaults and numeric constants
- Types: Type aliases and the vertex layout
- Exceptions: The load-error hierarchy
- Base: The abstract GPU resource boundary
"""

from .constants import (
    # Numeric constants
    DEFAULT_EPS_NORM,
    MATRIX4_NBYTES,
    # Transform defaults
    IDENTITY_ROTATION,
    ZERO_TRANSLATION,
    UNIT_SCALE,
    DEFAULT_VERTEX_COLOR,
    # Component types
    COMPONENT_UNSIGNED_BYTE,
    COMPONENT_UNSIGNED_SHORT,
    COMPONENT_UNSIGNED_INT,
    COMPONENT_FLOAT,
    # Attribute semantics
    ATTRIBUTE_POSITION,
    ATTRIBUTE_NORMAL,
    ATTRIBUTE_TEXCOORD,
)

from .types import (
    Vector3,
    Quaternion,
    Matrix4,
    MatrixDict,
    GeometryBuffers,
    VERTEX_DTYPE,
    INDEX_DTYPE,
)

from .exceptions import (
    SceneLoadError,
    AssetReadError,
    GeometryError,
    SceneGraphError,
    AnimationLoadError,
)

from .base import (
    RenderBackend,
    HostBackend,
)

__all__ = [
    # Constants
    "DEFAULT_EPS_NORM",
    "MATRIX4_NBYTES",
    "IDENTITY_ROTATION",
    "ZERO_TRANSLATION",
    "UNIT_SCALE",
    "DEFAULT_VERTEX_COLOR",
    "COMPONENT_UNSIGNED_BYTE",
    "COMPONENT_UNSIGNED_SHORT",
    "COMPONENT_UNSIGNED_INT",
    "COMPONENT_FLOAT",
    "ATTRIBUTE_POSITION",
    "ATTRIBUTE_NORMAL",
    "ATTRIBUTE_TEXCOORD",
    # Types
    "Vector3",
    "Quaternion",
    "Matrix4",
    "MatrixDict",
    "GeometryBuffers",
    "VERTEX_DTYPE",
    "INDEX_DTYPE",
    # Exceptions
    "SceneLoadError",
    "AssetReadError",
    "GeometryError",
    "SceneGraphError",
    "AnimationLoadError",
    # Backends
    "RenderBackend",
    "HostBackend",
]
