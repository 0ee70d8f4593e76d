"""
Type aliases and shape conventions for animgraph.

Shape Conventions:
==================

Transform state lives in torch tensors (float32):
    - translation: (3,)
    - rotation:    (4,) unit quaternion as [w, x, y, z]
    - scale:       (3,)
    - matrices:    (4, 4), column vectors, so a point p maps to M @ [p, 1]

Geometry lives in numpy arrays:
    - vertex buffer: structured array with VERTEX_DTYPE records
    - index buffer:  (N,) uint32

glTF stores quaternions as [x, y, z, w] and matrices column-major; both are
converted at the decoder boundary, except keyframe output values, which are
kept as written and converted when a rotation channel is evaluated.
"""

from typing import Dict, Tuple
import numpy as np
import torch


# =============================================================================
# Tensor Type Aliases
# =============================================================================

# (3,) translation or scale
Vector3 = torch.Tensor

# (4,) quaternion [w, x, y, z]
Quaternion = torch.Tensor

# (4, 4) homogeneous transform
Matrix4 = torch.Tensor

# World matrices keyed by node index
MatrixDict = Dict[int, torch.Tensor]

# (vertices, indices) pair produced by the geometry assembler
GeometryBuffers = Tuple[np.ndarray, np.ndarray]


# =============================================================================
# Vertex Layout
# =============================================================================

VERTEX_DTYPE = np.dtype([
    ('position', np.float32, (3,)),
    ('normal', np.float32, (3,)),
    ('uv', np.float32, (2,)),
    ('color', np.float32, (4,)),
])

INDEX_DTYPE = np.dtype(np.uint32)
