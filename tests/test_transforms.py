"""
Tests for local and world matrix resolution.

1. Local matrix: T @ R @ S @ matrix, identity by default
2. World matrix: ancestors applied on the left
3. No caching: mutated transforms are reflected immediately
"""

import math

import pytest
import torch

from animgraph.scene.builder import SceneGraphBuilder
from animgraph.scene.geometry import GeometryAssembler
from animgraph.scene.node import SceneGraph, SceneNode
from animgraph.scene.transforms import TransformResolver
from animgraph.utils.matrix import compose_trs

from conftest import axis_angle


@pytest.fixture
def chain_graph(chain_document):
    builder = SceneGraphBuilder(chain_document, GeometryAssembler())
    return builder.build_scene()


class TestLocalMatrix:
    """Tests for local matrix composition."""

    def test_identity(self):
        """Identity TRS and identity matrix give the identity."""
        assert torch.equal(TransformResolver.local_matrix(SceneNode(0)), torch.eye(4))

    def test_translation(self):
        node = SceneNode(0)
        node.translation = torch.tensor([1.0, 2.0, 3.0])
        local = TransformResolver.local_matrix(node)
        assert torch.allclose(local[:3, 3], torch.tensor([1.0, 2.0, 3.0]))
        assert torch.allclose(local[:3, :3], torch.eye(3))

    def test_composition_order(self):
        """Scale is applied first, then rotation, then translation."""
        node = SceneNode(0)
        node.translation = torch.tensor([10.0, 0.0, 0.0])
        node.rotation = axis_angle([0.0, 0.0, 1.0], math.pi / 2)
        node.scale = torch.tensor([2.0, 2.0, 2.0])

        point = torch.tensor([1.0, 0.0, 0.0, 1.0])
        mapped = TransformResolver.local_matrix(node) @ point
        # (1,0,0) -> scaled (2,0,0) -> rotated (0,2,0) -> translated (10,2,0)
        assert torch.allclose(mapped[:3], torch.tensor([10.0, 2.0, 0.0]), atol=1e-5)

    def test_raw_matrix_applied_last(self):
        node = SceneNode(0)
        node.translation = torch.tensor([1.0, 0.0, 0.0])
        node.matrix = torch.diag(torch.tensor([3.0, 3.0, 3.0, 1.0]))
        expected = compose_trs(node.translation, node.rotation, node.scale) @ node.matrix
        assert torch.allclose(TransformResolver.local_matrix(node), expected)


class TestWorldMatrix:
    """Tests for world matrix resolution over the hierarchy."""

    def test_chain_translates_origin(self, chain_graph):
        """Root (1,0,0), child (0,1,0), grandchild (0,0,1) put the origin at (1,1,1)."""
        resolver = TransformResolver(chain_graph)
        grandchild = chain_graph.node(0)
        origin = resolver.transform_point(grandchild, torch.zeros(3))
        assert torch.equal(origin, torch.tensor([1.0, 1.0, 1.0]))

    def test_root_world_equals_local(self, chain_graph):
        resolver = TransformResolver(chain_graph)
        root = chain_graph.node(2)
        assert torch.equal(resolver.world_matrix(root), resolver.local_matrix(root))

    def test_parent_rotation_applies_to_child_offset(self):
        graph = SceneGraph()
        parent = SceneNode(0)
        child = SceneNode(1, parent=0)
        parent.children = [1]
        graph.index.register(parent)
        graph.index.register(child)
        graph.roots = [0]

        parent.rotation = axis_angle([0.0, 0.0, 1.0], math.pi / 2)
        child.translation = torch.tensor([1.0, 0.0, 0.0])

        world_origin = TransformResolver(graph).transform_point(child, torch.zeros(3))
        assert torch.allclose(world_origin, torch.tensor([0.0, 1.0, 0.0]), atol=1e-6)

    def test_not_cached(self, chain_graph):
        """Changing an ancestor's transform changes descendants immediately."""
        resolver = TransformResolver(chain_graph)
        grandchild = chain_graph.node(0)
        before = resolver.world_matrix(grandchild).clone()

        chain_graph.node(2).translation = torch.tensor([5.0, 0.0, 0.0])
        after = resolver.world_matrix(grandchild)

        assert not torch.equal(before, after)
        assert torch.allclose(after[:3, 3], torch.tensor([5.0, 1.0, 1.0]))

    def test_world_matrices_for_renderable(self, chain_graph):
        matrices = TransformResolver(chain_graph).world_matrices()
        assert list(matrices.keys()) == [0, 2]
        assert torch.allclose(matrices[2][:3, 3], torch.tensor([1.0, 0.0, 0.0]))

    def test_transform_point_batched(self, chain_graph):
        resolver = TransformResolver(chain_graph)
        points = torch.tensor([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
        mapped = resolver.transform_point(chain_graph.node(0), points)
        assert torch.allclose(mapped, torch.tensor([[1.0, 1.0, 1.0], [2.0, 1.0, 1.0]]))
