"""
Construction of the scene graph from flat, index-referencing node records.

Node records follow the glTF layout: optional translation (3), rotation (4,
x/y/z/w), scale (3) or matrix (16, column-major), a list of child node
indices and an optional mesh index. Mesh primitives are flattened into a
GeometryAssembler as their node is built.
"""

from typing import Any, Dict, List, Optional, Union
import logging

import numpy as np
import torch

from ..core.constants import ATTRIBUTE_NORMAL, ATTRIBUTE_POSITION, ATTRIBUTE_TEXCOORD
from ..core.exceptions import GeometryError, SceneGraphError
from ..utils.matrix import matrix_from_column_major
from ..utils.quaternion import normalize_quaternion, quaternion_from_xyzw
from .geometry import GeometryAssembler, Primitive, VertexAttributes
from .node import SceneGraph, SceneNode, TransformSource

logger = logging.getLogger(__name__)


class SceneGraphBuilder:
    """
    Builds a SceneGraph and its flattened geometry from a parsed asset.

    The document must expose `nodes`, `meshes`, `scenes`, `default_scene`,
    `accessor(i)` and `read_accessor(i)` (see GltfDocument).
    """

    def __init__(
        self,
        document,
        assembler: GeometryAssembler,
        strict_transforms: bool = True,
        device: Union[str, torch.device] = 'cpu'
    ):
        """
        Args:
            document: Parsed asset
            assembler: Receives every primitive's vertices and indices
            strict_transforms: Reject nodes that declare both a matrix and TRS
            device: Torch device for node transform state
        """
        self.document = document
        self.assembler = assembler
        self.strict_transforms = strict_transforms
        self.device = torch.device(device) if isinstance(device, str) else device
        self.graph = SceneGraph()

    # -------------------------------------------------------------------------
    # Scene
    # -------------------------------------------------------------------------

    def root_indices(self, scene_index: Optional[int] = None) -> List[int]:
        """
        Top-level node indices for a scene.

        Uses the requested scene, else the file's default scene, else scene 0.
        Files without scenes use every node that is nobody's child.
        """
        scenes = self.document.scenes
        if scene_index is None:
            scene_index = self.document.default_scene
        if scene_index is None and scenes:
            scene_index = 0

        if scene_index is not None:
            if not 0 <= scene_index < len(scenes):
                raise SceneGraphError(f"Scene {scene_index} does not exist")
            return list(scenes[scene_index].get('nodes', []))

        child_indices = set()
        for record in self.document.nodes:
            child_indices.update(record.get('children', []))
        return [i for i in range(len(self.document.nodes)) if i not in child_indices]

    def build_scene(self, scene_index: Optional[int] = None) -> SceneGraph:
        """
        Build every tree of a scene.

        Args:
            scene_index: Scene to build (None = default scene)

        Returns:
            The populated SceneGraph
        """
        for node_index in self.root_indices(scene_index):
            self.build_node(node_index, None)
        return self.graph

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def build_node(self, node_index: int, parent: Optional[SceneNode]) -> SceneNode:
        """
        Build a node and, recursively, its subtree.

        Children are built before this node's mesh. The node attaches itself
        to its parent (or to the root list) once both are done, and joins the
        renderable list if it ended up with at least one primitive.

        Args:
            node_index: Index into the document's node array
            parent: Already-created parent node, or None for a root

        Returns:
            The created SceneNode
        """
        records = self.document.nodes
        if not isinstance(node_index, int) or not 0 <= node_index < len(records):
            raise SceneGraphError(f"Node index {node_index} out of range (0..{len(records) - 1})")
        record = records[node_index]

        node = SceneNode(
            index=node_index,
            parent=parent.index if parent is not None else None,
            name=record.get('name'),
            device=self.device,
        )
        self.graph.index.register(node)
        self._decode_transform(node, record)

        for child_index in record.get('children', []):
            self.build_node(child_index, node)

        if record.get('mesh') is not None:
            node.mesh = record['mesh']
            node.primitives.extend(self._load_mesh(node.mesh))

        if parent is not None:
            parent.children.append(node.index)
        else:
            self.graph.roots.append(node.index)

        if node.primitives:
            self.graph.renderable.append(node.index)

        return node

    def _decode_transform(self, node: SceneNode, record: Dict[str, Any]) -> None:
        """Populate TRS or matrix state from a node record."""
        has_trs = any(key in record for key in ('translation', 'rotation', 'scale'))
        has_matrix = 'matrix' in record

        if has_trs and has_matrix:
            if self.strict_transforms:
                raise SceneGraphError(
                    f"Node {node.index} declares both a matrix and translation/rotation/scale"
                )
            logger.warning(
                f"Node {node.index} declares both a matrix and TRS; combining as T * R * S * M"
            )

        if 'translation' in record:
            node.translation = self._vector(record['translation'], 3, node.index, 'translation')
        if 'rotation' in record:
            xyzw = self._vector(record['rotation'], 4, node.index, 'rotation')
            node.rotation = normalize_quaternion(quaternion_from_xyzw(xyzw))
        if 'scale' in record:
            node.scale = self._vector(record['scale'], 3, node.index, 'scale')
        if has_matrix:
            try:
                node.matrix = matrix_from_column_major(record['matrix']).to(self.device)
            except (TypeError, ValueError) as e:
                raise SceneGraphError(f"Node {node.index}: {e}") from e

        if has_trs and has_matrix:
            node.transform_source = TransformSource.BOTH
        elif has_matrix:
            node.transform_source = TransformSource.MATRIX
        elif has_trs:
            node.transform_source = TransformSource.TRS

    def _vector(self, values, size: int, node_index: int, field: str) -> torch.Tensor:
        try:
            values = [float(v) for v in values]
        except (TypeError, ValueError) as e:
            raise SceneGraphError(f"Node {node_index} {field} is not a list of numbers: {e}") from e
        if len(values) != size:
            raise SceneGraphError(
                f"Node {node_index} {field} has {len(values)} components, expected {size}"
            )
        return torch.tensor(values, dtype=torch.float32, device=self.device)

    # -------------------------------------------------------------------------
    # Meshes
    # -------------------------------------------------------------------------

    def _load_mesh(self, mesh_index: int) -> List[Primitive]:
        """Append every primitive of a mesh to the assembler."""
        meshes = self.document.meshes
        if not isinstance(mesh_index, int) or not 0 <= mesh_index < len(meshes):
            raise SceneGraphError(f"Mesh {mesh_index} does not exist")

        primitives = []
        for prim_idx, record in enumerate(meshes[mesh_index].get('primitives', [])):
            attributes = record.get('attributes', {})

            if ATTRIBUTE_POSITION not in attributes:
                raise GeometryError(f"Mesh {mesh_index} primitive {prim_idx} has no POSITION attribute")
            positions = self.document.read_accessor(attributes[ATTRIBUTE_POSITION])

            normals = None
            if ATTRIBUTE_NORMAL in attributes:
                normals = self.document.read_accessor(attributes[ATTRIBUTE_NORMAL])
            else:
                logger.debug(f"Mesh {mesh_index} primitive {prim_idx}: no NORMAL, using zero normals")

            texcoords = None
            if ATTRIBUTE_TEXCOORD in attributes:
                texcoords = self.document.read_accessor(attributes[ATTRIBUTE_TEXCOORD])
            else:
                logger.debug(f"Mesh {mesh_index} primitive {prim_idx}: no TEXCOORD_0, using zero UVs")

            indices = None
            component_type = None
            if record.get('indices') is not None:
                index_accessor = self.document.accessor(record['indices'])
                component_type = index_accessor.get('componentType')
                indices = self.document.read_accessor(record['indices'])

            try:
                primitive = self.assembler.append_primitive(
                    VertexAttributes(
                        positions=np.asarray(positions, dtype=np.float32),
                        normals=normals,
                        texcoords=texcoords,
                    ),
                    indices,
                    component_type=component_type,
                    material_index=record.get('material'),
                )
            except GeometryError as e:
                raise GeometryError(f"Mesh {mesh_index} primitive {prim_idx}: {e}") from e

            primitives.append(primitive)

        return primitives
