"""
Flattening of per-primitive vertex/index data into global buffers.

Every primitive in a scene is appended to one vertex sequence and one index
sequence, so a renderer binds geometry once and issues one indexed draw per
primitive. Indices are widened to uint32 and rebased onto the global vertex
sequence as they are appended.
"""

from typing import List, NamedTuple, Optional, Sequence
import logging

import numpy as np

from ..core.constants import DEFAULT_VERTEX_COLOR, INDEX_COMPONENT_DTYPES
from ..core.exceptions import GeometryError
from ..core.types import GeometryBuffers, VERTEX_DTYPE, INDEX_DTYPE

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

class VertexAttributes(NamedTuple):
    """Per-vertex attribute arrays for one primitive."""
    positions: np.ndarray                # (V, 3) float32, required
    normals: Optional[np.ndarray] = None     # (V, 3) float32
    texcoords: Optional[np.ndarray] = None   # (V, 2) float32


class Primitive(NamedTuple):
    """One draw-call-sized slice of the global buffers."""
    first_index: int
    index_count: int
    material_index: Optional[int]        # None when unassigned
    vertex_start: int
    vertex_count: int


# =============================================================================
# Helpers
# =============================================================================

def normalize_normals(normals: np.ndarray) -> np.ndarray:
    """
    Normalize normals to unit length, leaving zero vectors at zero.

    Args:
        normals: (V, 3) array

    Returns:
        (V, 3) float32 array without NaNs
    """
    normals = np.asarray(normals, dtype=np.float32)
    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    safe = np.where(lengths > 0, lengths, 1.0)
    return np.where(lengths > 0, normals / safe, 0.0).astype(np.float32)


def attribute_array(values, width: int, name: str) -> np.ndarray:
    """Convert an attribute to a (V, width) float32 array, rejecting other shapes."""
    array = np.asarray(values, dtype=np.float32)
    if array.ndim != 2 or array.shape[1] != width:
        raise GeometryError(f"{name} must have shape (V, {width}), got {array.shape}")
    return array


def widen_indices(indices: np.ndarray, component_type: int) -> np.ndarray:
    """
    Widen 8/16/32-bit unsigned indices to uint32.

    Args:
        indices: Index values as read from the source
        component_type: glTF component type code of the index accessor

    Returns:
        (N,) uint32 array

    Raises:
        GeometryError: If the component type is not an unsigned index width
    """
    dtype = INDEX_COMPONENT_DTYPES.get(component_type)
    if dtype is None:
        raise GeometryError(f"Index component type {component_type} not supported")
    indices = np.asarray(indices).reshape(-1)
    return indices.astype(dtype, copy=False).astype(INDEX_DTYPE)


# =============================================================================
# Assembler
# =============================================================================

class GeometryAssembler:
    """
    Accumulates primitives into one vertex and one index sequence.

    The buffers are append-only while a scene loads. finalize() seals the
    assembler and returns the concatenated arrays, which are never resized
    afterwards.
    """

    def __init__(self, vertex_color: Sequence[float] = DEFAULT_VERTEX_COLOR):
        """
        Args:
            vertex_color: RGBA color written to every vertex
        """
        self.vertex_color = np.asarray(vertex_color, dtype=np.float32)
        if self.vertex_color.shape != (4,):
            raise ValueError(f"vertex_color must have 4 components, got {self.vertex_color.shape}")

        self._vertex_chunks: List[np.ndarray] = []
        self._index_chunks: List[np.ndarray] = []
        self._vertex_count = 0
        self._index_count = 0
        self._buffers: Optional[GeometryBuffers] = None

    @property
    def vertex_count(self) -> int:
        return self._vertex_count

    @property
    def index_count(self) -> int:
        return self._index_count

    @property
    def sealed(self) -> bool:
        return self._buffers is not None

    def append_primitive(
        self,
        attributes: VertexAttributes,
        indices: Optional[np.ndarray],
        component_type: Optional[int] = None,
        material_index: Optional[int] = None
    ) -> Primitive:
        """
        Append one primitive's vertices and indices.

        Args:
            attributes: Vertex attribute arrays (positions required)
            indices: Source indices, or None for a non-indexed primitive
            component_type: glTF component type of the indices
            material_index: Index into the model's materials, or None

        Returns:
            Primitive describing the appended slice

        Raises:
            GeometryError: On missing or misshapen attributes, mismatched
                attribute counts, unsupported index widths, or a sealed assembler
        """
        if self.sealed:
            raise GeometryError("Cannot append primitives after the geometry has been finalized")

        if attributes.positions is None:
            raise GeometryError("Primitive has no POSITION data")

        positions = attribute_array(attributes.positions, 3, 'POSITION')
        vertex_count = positions.shape[0]

        vertices = np.zeros(vertex_count, dtype=VERTEX_DTYPE)
        vertices['position'] = positions

        if attributes.normals is not None:
            normals = attribute_array(attributes.normals, 3, 'NORMAL')
            if normals.shape[0] != vertex_count:
                raise GeometryError(
                    f"NORMAL count {normals.shape[0]} does not match vertex count {vertex_count}"
                )
            vertices['normal'] = normalize_normals(normals)

        if attributes.texcoords is not None:
            texcoords = attribute_array(attributes.texcoords, 2, 'TEXCOORD_0')
            if texcoords.shape[0] != vertex_count:
                raise GeometryError(
                    f"TEXCOORD_0 count {texcoords.shape[0]} does not match vertex count {vertex_count}"
                )
            vertices['uv'] = texcoords

        vertices['color'] = self.vertex_color

        if indices is None:
            local_indices = np.arange(vertex_count, dtype=INDEX_DTYPE)
        else:
            local_indices = widen_indices(indices, component_type)

        vertex_start = self._vertex_count
        first_index = self._index_count

        self._vertex_chunks.append(vertices)
        self._index_chunks.append(local_indices + INDEX_DTYPE.type(vertex_start))
        self._vertex_count += vertex_count
        self._index_count += local_indices.shape[0]

        logger.debug(
            f"Appended primitive: {vertex_count} vertices at {vertex_start}, "
            f"{local_indices.shape[0]} indices at {first_index}"
        )

        return Primitive(
            first_index=first_index,
            index_count=int(local_indices.shape[0]),
            material_index=material_index,
            vertex_start=vertex_start,
            vertex_count=vertex_count,
        )

    def finalize(self) -> GeometryBuffers:
        """
        Seal the assembler and return the global buffers.

        Returns:
            vertices: (V,) structured array with VERTEX_DTYPE records
            indices: (N,) uint32 array
        """
        if self._buffers is None:
            if self._vertex_chunks:
                vertices = np.concatenate(self._vertex_chunks)
                indices = np.concatenate(self._index_chunks)
            else:
                vertices = np.zeros(0, dtype=VERTEX_DTYPE)
                indices = np.zeros(0, dtype=INDEX_DTYPE)
            vertices.setflags(write=False)
            indices.setflags(write=False)
            self._buffers = (vertices, indices)
            self._vertex_chunks = []
            self._index_chunks = []
        return self._buffers
