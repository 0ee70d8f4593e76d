"""
Loaded model: the owner of the node tree, geometry, materials and animations.

The Model is the surface a renderer drives once per frame:

    model.prepare(backend)          # once, after loading
    while running:
        model.tick(dt)              # animate and refresh node regions
        for cmd in model.draw_commands():
            ...                     # one indexed draw per primitive
    model.close()
"""

from typing import Dict, Iterator, List, NamedTuple, Optional, Any
import logging

import numpy as np
import torch

from ..animation.evaluator import AnimationEvaluator
from ..animation.types import Animation
from ..core.base import RenderBackend
from ..core.constants import MATRIX4_NBYTES
from ..utils.matrix import matrix_to_column_major
from .materials import Image, Material, Texture
from .node import SceneGraph, SceneNode
from .transforms import TransformResolver

logger = logging.getLogger(__name__)


class DrawCommand(NamedTuple):
    """One indexed draw: a primitive's index range plus its node's binding."""
    node_index: int
    first_index: int
    index_count: int
    material_index: Optional[int]
    binding: Any


class Model:
    """
    An animated scene ready for rendering.

    Attributes:
        graph: Node tree
        vertices: Global vertex sequence (VERTEX_DTYPE records)
        indices: Global uint32 index sequence
        materials, textures, images: Surface data, indexed by primitives
        animations: Decoded animations
        backend: Render backend after prepare(), else None
    """

    def __init__(
        self,
        graph: SceneGraph,
        vertices: np.ndarray,
        indices: np.ndarray,
        materials: Optional[List[Material]] = None,
        textures: Optional[List[Texture]] = None,
        images: Optional[List[Image]] = None,
        animations: Optional[List[Animation]] = None,
        active_animation: Optional[int] = 0
    ):
        self.graph = graph
        self.vertices = vertices
        self.indices = indices
        self.materials = list(materials or [])
        self.textures = list(textures or [])
        self.images = list(images or [])
        self.animations = list(animations or [])

        self.resolver = TransformResolver(graph)
        self.evaluator = AnimationEvaluator()
        self.backend: Optional[RenderBackend] = None

        self._active_animation = active_animation

    def __repr__(self) -> str:
        return (
            f"Model(nodes={len(self.graph)}, renderable={len(self.graph.renderable)}, "
            f"vertices={self.vertices.shape[0]}, indices={self.indices.shape[0]}, "
            f"animations={len(self.animations)})"
        )

    # -------------------------------------------------------------------------
    # Animation
    # -------------------------------------------------------------------------

    @property
    def active_animation(self) -> Optional[int]:
        return self._active_animation

    def select_animation(self, index: Optional[int]) -> None:
        """
        Choose the animation driven by tick().

        Out-of-range selections are accepted; tick() then skips playback
        and logs the condition once.
        """
        self._active_animation = index
        if index is not None and 0 <= index < len(self.animations):
            logger.info(f"Selected animation {index} '{self.animations[index].name}'")

    def tick(self, delta_time: float) -> bool:
        """
        Advance the active animation and republish world matrices.

        Args:
            delta_time: Seconds since the previous frame

        Returns:
            True if the animation was applied this frame
        """
        applied = self.evaluator.tick(self.animations, self._active_animation, delta_time)
        if applied and self.backend is not None:
            self.refresh_node_buffers()
        return applied

    # -------------------------------------------------------------------------
    # Transforms
    # -------------------------------------------------------------------------

    def world_matrix(self, node_index: int) -> torch.Tensor:
        return self.resolver.world_matrix(self.graph.node(node_index))

    def world_matrices(self) -> Dict[int, torch.Tensor]:
        """World matrices of every renderable node, keyed by node index."""
        return self.resolver.world_matrices()

    # -------------------------------------------------------------------------
    # Backend
    # -------------------------------------------------------------------------

    def prepare(self, backend: RenderBackend) -> None:
        """
        Register the model's GPU resources with a backend.

        Uploads the global geometry once, creates one matrix-sized region per
        renderable node and writes the initial world matrices.
        """
        if self.backend is not None:
            raise RuntimeError("Model is already prepared")

        backend.upload_geometry(self.vertices, self.indices)
        for node in self.graph.renderable_nodes():
            node.binding = backend.create_node_buffer(node.index, MATRIX4_NBYTES)
        self.backend = backend

        self.refresh_node_buffers()
        logger.info(
            f"Prepared {len(self.graph.renderable)} node regions, "
            f"{self.vertices.shape[0]} vertices, {self.indices.shape[0]} indices"
        )

    def refresh_node_buffers(self) -> None:
        """Write every renderable node's world matrix to its region."""
        if self.backend is None:
            raise RuntimeError("Model has no backend; call prepare() first")
        for node in self.graph.renderable_nodes():
            matrix = self.resolver.world_matrix(node)
            self.backend.write_node_buffer(node.binding, matrix_to_column_major(matrix))

    def draw_commands(self) -> Iterator[DrawCommand]:
        """
        Yield one draw per non-empty primitive, in renderable order.

        Node bindings are None until prepare() has run.
        """
        for node in self.graph.renderable_nodes():
            for primitive in node.primitives:
                if primitive.index_count == 0:
                    continue
                yield DrawCommand(
                    node_index=node.index,
                    first_index=primitive.first_index,
                    index_count=primitive.index_count,
                    material_index=primitive.material_index,
                    binding=node.binding,
                )

    # -------------------------------------------------------------------------
    # Materials
    # -------------------------------------------------------------------------

    def base_color_image(self, material_index: Optional[int]) -> Optional[int]:
        """Image index behind a material's base color texture, or None."""
        if material_index is None or not 0 <= material_index < len(self.materials):
            return None
        texture_index = self.materials[material_index].base_color_texture
        if texture_index is None or not 0 <= texture_index < len(self.textures):
            return None
        return self.textures[texture_index].image_index

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def close(self) -> List[SceneNode]:
        """
        Destroy the node tree, children before parents.

        Per-node regions are released through the backend as their nodes go.

        Returns:
            Destroyed nodes in destruction order
        """
        removed = self.graph.clear()
        for node in removed:
            if node.binding is not None:
                if self.backend is not None:
                    self.backend.release_node_buffer(node.binding)
                node.binding = None
        self.backend = None
        return removed

    def __enter__(self) -> 'Model':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
