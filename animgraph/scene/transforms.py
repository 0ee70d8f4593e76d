"""
Local and world transform resolution for scene nodes.

Matrices are recomputed on every call. Animation mutates translation,
rotation and scale every frame, so nothing is cached between calls.
"""

from typing import Iterable, Optional

import torch

from ..core.types import Matrix4, MatrixDict
from ..utils.matrix import compose_trs, transform_points
from .node import SceneGraph, SceneNode


class TransformResolver:
    """
    Computes node matrices over a SceneGraph.

    local = T(translation) @ R(rotation) @ S(scale) @ matrix
    world = root.local @ ... @ parent.local @ node.local
    """

    def __init__(self, graph: SceneGraph):
        """
        Args:
            graph: Graph owning the nodes whose parents are walked
        """
        self.graph = graph

    @staticmethod
    def local_matrix(node: SceneNode) -> Matrix4:
        """
        Compute a node's local matrix.

        Args:
            node: Scene node

        Returns:
            (4, 4) local transform
        """
        return compose_trs(node.translation, node.rotation, node.scale) @ node.matrix

    def world_matrix(self, node: SceneNode) -> Matrix4:
        """
        Compute a node's world matrix by walking to its root.

        Each ancestor's local matrix is applied on the left, so ancestors
        closer to the root are applied outermost.

        Args:
            node: Scene node owned by this resolver's graph

        Returns:
            (4, 4) world transform
        """
        matrix = self.local_matrix(node)
        for ancestor in self.graph.ancestors(node):
            matrix = self.local_matrix(ancestor) @ matrix
        return matrix

    def world_matrices(self, nodes: Optional[Iterable[SceneNode]] = None) -> MatrixDict:
        """
        World matrices keyed by node index.

        Args:
            nodes: Nodes to resolve (default: every renderable node)
        """
        if nodes is None:
            nodes = self.graph.renderable_nodes()
        return {node.index: self.world_matrix(node) for node in nodes}

    def transform_point(self, node: SceneNode, point: torch.Tensor) -> torch.Tensor:
        """Map a point (..., 3) from node space to world space."""
        return transform_points(self.world_matrix(node), point)
