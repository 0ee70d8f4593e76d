"""
Scene graph nodes stored in an index-addressed arena.

Nodes refer to each other by their stable source index: a node stores its
parent's index and an ordered list of child indices, and the SceneGraph owns
every node. Destroying a subtree is a post-order sweep over the arena.
"""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional
import logging

import torch

from ..core.constants import IDENTITY_ROTATION, UNIT_SCALE, ZERO_TRANSLATION
from ..core.exceptions import SceneGraphError
from .geometry import Primitive

logger = logging.getLogger(__name__)


class TransformSource(Enum):
    """How the source file defined a node's local transform."""
    NONE = 'none'        # neither TRS nor matrix given; identity
    TRS = 'trs'          # translation / rotation / scale fields
    MATRIX = 'matrix'    # explicit 4x4 matrix
    BOTH = 'both'        # malformed source, accepted only in permissive mode


class SceneNode:
    """
    Single node in the scene hierarchy.

    Local transform state is decomposed into translation, rotation and scale
    plus a raw matrix, combined as T @ R @ S @ matrix. Only one of the two
    representations is populated from the source; the other stays identity.
    Animation mutates translation, rotation and scale in place.
    """

    def __init__(
        self,
        index: int,
        parent: Optional[int] = None,
        name: Optional[str] = None,
        device: torch.device = None
    ):
        """
        Args:
            index: Stable node index from the source file
            parent: Index of the parent node (None for a root)
            name: Optional node name
            device: Torch device for transform state
        """
        self.index = index
        self.parent = parent
        self.name = name if name is not None else f'node_{index}'
        self.children: List[int] = []

        self.translation = torch.tensor(ZERO_TRANSLATION, dtype=torch.float32, device=device)
        self.rotation = torch.tensor(IDENTITY_ROTATION, dtype=torch.float32, device=device)
        self.scale = torch.tensor(UNIT_SCALE, dtype=torch.float32, device=device)
        self.matrix = torch.eye(4, dtype=torch.float32, device=device)
        self.transform_source = TransformSource.NONE

        self.mesh: Optional[int] = None
        self.primitives: List[Primitive] = []

        # Opaque handle from the render backend, never interpreted here
        self.binding: Any = None

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def is_leaf(self) -> bool:
        return len(self.children) == 0

    @property
    def is_renderable(self) -> bool:
        return len(self.primitives) > 0

    def __repr__(self) -> str:
        return (
            f"SceneNode(index={self.index}, name={self.name!r}, parent={self.parent}, "
            f"children={self.children}, primitives={len(self.primitives)})"
        )


class NodeIndex:
    """
    Lookup from stable node index to SceneNode.

    Populated as nodes are created, so references by index (animation
    channels) can be resolved once the tree exists.
    """

    def __init__(self):
        self._nodes: Dict[int, SceneNode] = {}

    def register(self, node: SceneNode) -> None:
        """
        Add a node.

        Raises:
            SceneGraphError: If a node with the same index already exists,
                which means the source references it from two places
        """
        if node.index in self._nodes:
            raise SceneGraphError(f"Node {node.index} is referenced more than once in the hierarchy")
        self._nodes[node.index] = node

    def lookup(self, index: int) -> Optional[SceneNode]:
        """Return the node with this index, or None."""
        return self._nodes.get(index)

    def remove(self, index: int) -> Optional[SceneNode]:
        return self._nodes.pop(index, None)

    def __contains__(self, index: int) -> bool:
        return index in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[SceneNode]:
        return iter(self._nodes.values())


class SceneGraph:
    """
    Arena owning every node of a scene.

    Attributes:
        index: NodeIndex over all live nodes
        roots: Top-level node indices in build order
        renderable: Indices of nodes carrying primitives, in draw order
    """

    def __init__(self):
        self.index = NodeIndex()
        self.roots: List[int] = []
        self.renderable: List[int] = []

    def __len__(self) -> int:
        return len(self.index)

    def __contains__(self, node_index: int) -> bool:
        return node_index in self.index

    def node(self, node_index: int) -> SceneNode:
        """
        Get a node by index.

        Raises:
            KeyError: If no such node exists in this graph
        """
        node = self.index.lookup(node_index)
        if node is None:
            raise KeyError(f"Node {node_index} not found")
        return node

    def lookup(self, node_index: int) -> Optional[SceneNode]:
        return self.index.lookup(node_index)

    def parent_of(self, node: SceneNode) -> Optional[SceneNode]:
        if node.parent is None:
            return None
        return self.node(node.parent)

    def renderable_nodes(self) -> List[SceneNode]:
        """Nodes carrying geometry, in first-discovered depth-first order."""
        return [self.node(i) for i in self.renderable]

    def iter_depth_first(self, start: Optional[int] = None) -> Iterator[SceneNode]:
        """
        Pre-order traversal.

        Args:
            start: Subtree root, or None to walk every root in order
        """
        stack = [start] if start is not None else list(reversed(self.roots))
        while stack:
            node = self.node(stack.pop())
            yield node
            stack.extend(reversed(node.children))

    def iter_post_order(self, start: Optional[int] = None) -> Iterator[SceneNode]:
        """Post-order traversal: children are yielded before their parent."""
        roots = [start] if start is not None else list(self.roots)
        for root in roots:
            stack = [(root, False)]
            while stack:
                node_index, expanded = stack.pop()
                node = self.node(node_index)
                if expanded:
                    yield node
                else:
                    stack.append((node_index, True))
                    stack.extend((child, False) for child in reversed(node.children))

    def ancestors(self, node: SceneNode) -> Iterator[SceneNode]:
        """Walk from the node's parent up to its root."""
        current = self.parent_of(node)
        while current is not None:
            yield current
            current = self.parent_of(current)

    def depth(self, node: SceneNode) -> int:
        return sum(1 for _ in self.ancestors(node))

    def destroy_subtree(self, node_index: int) -> List[SceneNode]:
        """
        Remove a node and all of its descendants, children first.

        Args:
            node_index: Root of the subtree to remove

        Returns:
            Removed nodes in destruction order
        """
        root = self.node(node_index)
        removed = list(self.iter_post_order(node_index))

        if root.parent is not None:
            parent = self.lookup(root.parent)
            if parent is not None:
                parent.children.remove(node_index)
        elif node_index in self.roots:
            self.roots.remove(node_index)

        removed_ids = set()
        for node in removed:
            self.index.remove(node.index)
            removed_ids.add(node.index)
            node.children = []
            node.parent = None

        self.renderable = [i for i in self.renderable if i not in removed_ids]
        return removed

    def clear(self) -> List[SceneNode]:
        """Destroy every tree in the graph, post-order per root."""
        removed = []
        for root in list(self.roots):
            removed.extend(self.destroy_subtree(root))
        logger.debug(f"Destroyed {len(removed)} nodes")
        return removed
