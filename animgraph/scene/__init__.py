"""
Scene representation for animgraph.

Includes geometry flattening, the node arena, hierarchy construction,
transform resolution, materials and the renderer-facing Model.
"""

from .geometry import (
    VertexAttributes,
    Primitive,
    GeometryAssembler,
    normalize_normals,
    widen_indices,
)
from .node import (
    TransformSource,
    SceneNode,
    NodeIndex,
    SceneGraph,
)
from .builder import SceneGraphBuilder
from .transforms import TransformResolver
from .materials import (
    Image,
    Texture,
    Material,
    expand_to_rgba,
    decode_image,
    load_images,
    load_textures,
    load_materials,
)
from .model import (
    DrawCommand,
    Model,
)

__all__ = [
    # Geometry
    "VertexAttributes",
    "Primitive",
    "GeometryAssembler",
    "normalize_normals",
    "widen_indices",
    # Nodes
    "TransformSource",
    "SceneNode",
    "NodeIndex",
    "SceneGraph",
    "SceneGraphBuilder",
    "TransformResolver",
    # Materials
    "Image",
    "Texture",
    "Material",
    "expand_to_rgba",
    "decode_image",
    "load_images",
    "load_textures",
    "load_materials",
    # Model
    "DrawCommand",
    "Model",
]
