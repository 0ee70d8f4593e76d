"""
Centralized constants for animgraph.

This module defines the default values, glTF enumerations and numeric
constants used throughout the library.

Usage:
    from animgraph.core.constants import DEFAULT_EPS_NORM, COMPONENT_UNSIGNED_SHORT
"""

import numpy as np

# =============================================================================
# Numeric Constants
# =============================================================================

# Epsilon for normalization operations
DEFAULT_EPS_NORM: float = 1e-12

# Size in bytes of one float32 4x4 matrix (the per-node GPU region)
MATRIX4_NBYTES: int = 16 * 4


# =============================================================================
# Transform Defaults
# =============================================================================

# Identity rotation as [w, x, y, z]
IDENTITY_ROTATION = (1.0, 0.0, 0.0, 0.0)
ZERO_TRANSLATION = (0.0, 0.0, 0.0)
UNIT_SCALE = (1.0, 1.0, 1.0)

# Opaque white, used for every vertex
DEFAULT_VERTEX_COLOR = (1.0, 1.0, 1.0, 1.0)


# =============================================================================
# glTF Accessor Component Types
# =============================================================================

COMPONENT_BYTE: int = 5120
COMPONENT_UNSIGNED_BYTE: int = 5121
COMPONENT_SHORT: int = 5122
COMPONENT_UNSIGNED_SHORT: int = 5123
COMPONENT_UNSIGNED_INT: int = 5125
COMPONENT_FLOAT: int = 5126

COMPONENT_DTYPES = {
    COMPONENT_BYTE: np.int8,
    COMPONENT_UNSIGNED_BYTE: np.uint8,
    COMPONENT_SHORT: np.int16,
    COMPONENT_UNSIGNED_SHORT: np.uint16,
    COMPONENT_UNSIGNED_INT: np.uint32,
    COMPONENT_FLOAT: np.float32,
}

# Index buffers may only use the unsigned widths
INDEX_COMPONENT_DTYPES = {
    COMPONENT_UNSIGNED_BYTE: np.uint8,
    COMPONENT_UNSIGNED_SHORT: np.uint16,
    COMPONENT_UNSIGNED_INT: np.uint32,
}

ACCESSOR_COMPONENT_COUNTS = {
    'SCALAR': 1,
    'VEC2': 2,
    'VEC3': 3,
    'VEC4': 4,
    'MAT2': 4,
    'MAT3': 9,
    'MAT4': 16,
}


# =============================================================================
# Attribute Semantics
# =============================================================================

ATTRIBUTE_POSITION: str = 'POSITION'
ATTRIBUTE_NORMAL: str = 'NORMAL'
ATTRIBUTE_TEXCOORD: str = 'TEXCOORD_0'


# =============================================================================
# GLB Container
# =============================================================================

GLB_MAGIC: int = 0x46546C67  # 'glTF'
GLB_CHUNK_JSON: int = 0x4E4F534A  # 'JSON'
GLB_CHUNK_BIN: int = 0x004E4942  # 'BIN\0'
