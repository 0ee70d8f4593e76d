"""
Abstract boundary between the scene core and a GPU resource layer.

The core never allocates graphics resources itself. It only asks a backend to:
    - upload the finished global vertex and index sequences once
    - create one small region per renderable node, sized for a 4x4 matrix
    - overwrite that region every tick
    - release the region when the model is torn down

Node regions receive matrices in column-major order, the layout shader
uniform blocks expect.

Whatever the backend returns from create_node_buffer() is an opaque binding
handle. The core stores it on the node and hands it back unchanged when
issuing draw commands.

Class Hierarchy:
    RenderBackend (abstract)
    └── HostBackend (in-memory, for headless use and tests)
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import numpy as np


class RenderBackend(ABC):
    """
    Abstract base class for GPU resource layers.

    Subclasses must implement:
        - upload_geometry(): receive the global vertex/index sequences
        - create_node_buffer(): allocate a per-node region, return a handle
        - write_node_buffer(): overwrite a per-node region

    Example:
        class MyBackend(RenderBackend):
            def upload_geometry(self, vertices, indices):
                self.vbo = ctx.buffer(vertices.tobytes())
                self.ibo = ctx.buffer(indices.tobytes())

            def create_node_buffer(self, node_index, size):
                return ctx.buffer(reserve=size)

            def write_node_buffer(self, binding, data):
                binding.write(data.tobytes())
    """

    @abstractmethod
    def upload_geometry(self, vertices: np.ndarray, indices: np.ndarray) -> None:
        """
        Upload the global vertex and index sequences as two GPU regions.

        Args:
            vertices: Structured vertex array (V,)
            indices: uint32 index array (N,)
        """
        pass

    @abstractmethod
    def create_node_buffer(self, node_index: int, size: int) -> Any:
        """
        Allocate a writable region for one node's transform data.

        Args:
            node_index: Index of the node the region belongs to
            size: Region size in bytes

        Returns:
            Opaque binding handle
        """
        pass

    @abstractmethod
    def write_node_buffer(self, binding: Any, data: np.ndarray) -> None:
        """
        Overwrite a node region.

        Args:
            binding: Handle returned by create_node_buffer()
            data: float32 array to copy into the region
        """
        pass

    def release_node_buffer(self, binding: Any) -> None:
        """Release a node region. Default is a no-op."""
        pass


class HostBackend(RenderBackend):
    """
    Backend that keeps everything in host memory.

    Useful for headless evaluation (exporting posed meshes, inspecting world
    matrices) and for testing the driver loop without a graphics API.
    """

    def __init__(self):
        self.vertices: Optional[np.ndarray] = None
        self.indices: Optional[np.ndarray] = None
        self.node_buffers: Dict[int, np.ndarray] = {}
        self.upload_count = 0
        self.write_count = 0
        self._next_handle = 0

    def upload_geometry(self, vertices: np.ndarray, indices: np.ndarray) -> None:
        self.vertices = vertices.copy()
        self.indices = indices.copy()
        self.upload_count += 1

    def create_node_buffer(self, node_index: int, size: int) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self.node_buffers[handle] = np.zeros(size // 4, dtype=np.float32)
        return handle

    def write_node_buffer(self, binding: int, data: np.ndarray) -> None:
        region = self.node_buffers[binding]
        flat = np.ascontiguousarray(data, dtype=np.float32).reshape(-1)
        if flat.size > region.size:
            raise ValueError(
                f"Data of {flat.size} floats does not fit region of {region.size}"
            )
        region[:flat.size] = flat
        self.write_count += 1

    def release_node_buffer(self, binding: int) -> None:
        self.node_buffers.pop(binding, None)

    def read_matrix(self, binding: int) -> np.ndarray:
        """Read a node region (stored column-major) back as a (4, 4) matrix."""
        return self.node_buffers[binding][:16].reshape(4, 4).T.copy()
